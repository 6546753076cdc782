from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

import structlog

from townhall.config import settings
from townhall.services.time_windows import as_utc, next_weekly_reset, parse_timestamp

log = structlog.get_logger()


class VoteDirection(str, Enum):
    UP = "up"
    DOWN = "down"

    @property
    def counter(self) -> str:
        return "upvotes" if self is VoteDirection.UP else "downvotes"

    @property
    def opposite(self) -> "VoteDirection":
        return VoteDirection.DOWN if self is VoteDirection.UP else VoteDirection.UP


@dataclass(frozen=True)
class VoteQuota:
    """
    Per-user weekly allowance, mirrored from the profile row.

    Invariant: 0 <= votes_remaining <= weekly_vote_limit. Values from the
    backend outside that range are clamped (and logged) on construction.
    """
    votes_remaining: int
    weekly_vote_limit: int
    votes_reset_at: datetime | None = None

    def __post_init__(self):
        limit = max(0, int(self.weekly_vote_limit))
        remaining = min(max(0, int(self.votes_remaining)), limit)
        if remaining != self.votes_remaining or limit != self.weekly_vote_limit:
            log.warning(
                "vote_quota_clamped",
                votes_remaining=self.votes_remaining,
                weekly_vote_limit=self.weekly_vote_limit,
            )
        object.__setattr__(self, "weekly_vote_limit", limit)
        object.__setattr__(self, "votes_remaining", remaining)

    @classmethod
    def from_row(cls, row: dict) -> "VoteQuota":
        return cls(
            votes_remaining=int(row.get("votes_remaining") or 0),
            weekly_vote_limit=int(row.get("weekly_vote_limit") or settings.weekly_vote_limit),
            votes_reset_at=parse_timestamp(row.get("votes_reset_at")),
        )

    def with_remaining(self, votes_remaining: int) -> "VoteQuota":
        return replace(self, votes_remaining=votes_remaining)

    def rolled_over(self, now: datetime) -> "VoteQuota":
        """Display prediction once the reset boundary has passed; the backend performs the real reset."""
        if self.votes_reset_at is None or as_utc(now) < as_utc(self.votes_reset_at):
            return self
        return VoteQuota(
            votes_remaining=self.weekly_vote_limit,
            weekly_vote_limit=self.weekly_vote_limit,
            votes_reset_at=next_weekly_reset(now),
        )


@dataclass(frozen=True)
class VoteHistoryItem:
    idea_id: str
    idea_title: str
    vote_type: VoteDirection
    voted_at: datetime

    @classmethod
    def from_row(cls, row: dict) -> "VoteHistoryItem":
        return cls(
            idea_id=str(row["idea_id"]),
            idea_title=row.get("idea_title") or "",
            vote_type=VoteDirection(row["vote_type"]),
            voted_at=parse_timestamp(row["voted_at"]),
        )
