from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Literal

import structlog

from townhall.models.category import Category, IdeaType
from townhall.models.vote import VoteDirection
from townhall.services.time_windows import DeadlineLabel, as_utc, deadline_label, parse_timestamp, utcnow

log = structlog.get_logger()

Counter = Literal["upvotes", "downvotes"]


@dataclass
class IdeaAggregate:
    """
    One idea plus the viewer-derived vote state.

    `upvotes`/`downvotes` mirror the backend's counters and never go below
    zero. `user_vote` is joined from the viewer's own vote row, it is not a
    property of the idea itself.
    """
    id: str
    title: str
    description: str
    type: IdeaType
    category: Category
    created_at: datetime
    user_id: str | None = None
    location_value: str = ""
    location_level: str = ""
    country: str = ""
    is_anonymous: bool = False
    is_official_proposal: bool = False
    voting_ends_at: datetime | None = None
    upvotes: int = 0
    downvotes: int = 0
    user_vote: VoteDirection | None = None
    author_name: str | None = None

    # ---------- counters ----------

    def apply_delta(self, counter: Counter, delta: int) -> int:
        """Add `delta` to a counter, flooring at zero. Never raises."""
        if counter not in ("upvotes", "downvotes"):
            log.warning("vote_counter_unknown", idea_id=self.id, counter=counter)
            return 0
        current = getattr(self, counter)
        target = current + int(delta)
        if target < 0:
            # Floor-at-zero hides a double decrement somewhere upstream.
            log.warning("vote_counter_clamped", idea_id=self.id, counter=counter, current=current, delta=delta)
            target = 0
        setattr(self, counter, target)
        return target

    @property
    def net_score(self) -> int:
        return self.upvotes - self.downvotes

    @property
    def engagement(self) -> int:
        return self.upvotes + self.downvotes

    # ---------- deadline ----------

    def is_voting_open(self, now: datetime | None = None) -> bool:
        if self.voting_ends_at is None:
            return True
        return as_utc(self.voting_ends_at) > as_utc(now or utcnow())

    def deadline_status(self, now: datetime | None = None) -> DeadlineLabel | None:
        if self.voting_ends_at is None:
            return None
        return deadline_label(self.voting_ends_at, now or utcnow())

    def copy(self) -> "IdeaAggregate":
        return replace(self)

    # ---------- backend rows ----------

    @classmethod
    def from_row(cls, row: dict) -> "IdeaAggregate":
        """
        Build from an `ideas` row fetched with the author profile and the
        viewer's vote joined in (`profiles(name)`, `votes(vote_type)`).
        Raises ValueError for a type or category outside the closed sets.
        """
        profile = row.get("profiles") or {}
        votes = row.get("votes") or []
        user_vote = row.get("user_vote")
        if user_vote is None and votes:
            user_vote = votes[0].get("vote_type")
        is_anonymous = bool(row.get("is_anonymous"))
        return cls(
            id=str(row["id"]),
            title=row.get("title") or "",
            description=row.get("description") or "",
            type=IdeaType(row["type"]),
            category=Category.parse(row.get("category") or ""),
            created_at=parse_timestamp(row["created_at"]),
            user_id=str(row["user_id"]) if row.get("user_id") else None,
            location_value=row.get("location_value") or row.get("location") or "",
            location_level=row.get("location_level") or "",
            country=row.get("country") or "",
            is_anonymous=is_anonymous,
            is_official_proposal=bool(row.get("is_official_proposal")),
            voting_ends_at=parse_timestamp(row.get("voting_ends_at")),
            upvotes=max(0, int(row.get("upvotes") or 0)),
            downvotes=max(0, int(row.get("downvotes") or 0)),
            user_vote=VoteDirection(user_vote) if user_vote else None,
            author_name=None if is_anonymous else (row.get("author_name") or profile.get("name")),
        )
