from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from townhall.models.idea import IdeaAggregate
from townhall.models.vote import VoteDirection, VoteQuota
from townhall.services.errors import NotAuthenticated, QuotaExhausted, VotingClosed
from townhall.services.time_windows import utcnow

Transition = Literal["cast", "retract", "switch"]


@dataclass(frozen=True)
class VoteDecision:
    """
    Outcome of one vote click, computed before anything is written.

    `quota` is None when the viewer's allowance is unknown; the backend
    response then decides the balance.
    """
    idea_id: str
    transition: Transition
    previous: VoteDirection | None
    user_vote: VoteDirection | None
    upvotes_delta: int
    downvotes_delta: int
    quota: VoteQuota | None

    @property
    def votes_remaining(self) -> int | None:
        return self.quota.votes_remaining if self.quota else None

    def apply_to(self, idea: IdeaAggregate) -> None:
        """Mutate `idea` in place: counters (floored at zero) and the viewer's vote."""
        if self.upvotes_delta:
            idea.apply_delta("upvotes", self.upvotes_delta)
        if self.downvotes_delta:
            idea.apply_delta("downvotes", self.downvotes_delta)
        idea.user_vote = self.user_vote


def _deltas(direction: VoteDirection, amount: int) -> tuple[int, int]:
    return (amount, 0) if direction is VoteDirection.UP else (0, amount)


def apply_vote(
    user_id: str | None,
    idea: IdeaAggregate,
    direction: VoteDirection | str,
    quota: VoteQuota | None,
    now: datetime | None = None,
) -> VoteDecision:
    """
    Decide what a vote click does.

    Transitions (current viewer vote -> requested direction):
      - none -> d:       cast; consumes one weekly vote, +1 on d's counter
      - d -> d:          retract; refunds one vote, -1 on d's counter
      - opposite -> d:   switch; quota unchanged, -1 old counter, +1 new counter

    Raises NotAuthenticated, VotingClosed or QuotaExhausted (cast only, when
    nothing is left). Pure: neither the idea nor the quota is modified.
    """
    if not user_id:
        raise NotAuthenticated("You must be logged in to vote")
    direction = VoteDirection(direction)
    now = now or utcnow()
    if not idea.is_voting_open(now):
        raise VotingClosed()

    previous = idea.user_vote

    if previous is None:
        if quota is not None and quota.votes_remaining <= 0:
            raise QuotaExhausted()
        up, down = _deltas(direction, +1)
        return VoteDecision(
            idea_id=idea.id,
            transition="cast",
            previous=None,
            user_vote=direction,
            upvotes_delta=up,
            downvotes_delta=down,
            quota=quota.with_remaining(quota.votes_remaining - 1) if quota else None,
        )

    if previous is direction:
        up, down = _deltas(direction, -1)
        refunded = None
        if quota is not None:
            refunded = quota.with_remaining(min(quota.weekly_vote_limit, quota.votes_remaining + 1))
        return VoteDecision(
            idea_id=idea.id,
            transition="retract",
            previous=previous,
            user_vote=None,
            upvotes_delta=up,
            downvotes_delta=down,
            quota=refunded,
        )

    old_up, old_down = _deltas(previous, -1)
    new_up, new_down = _deltas(direction, +1)
    return VoteDecision(
        idea_id=idea.id,
        transition="switch",
        previous=previous,
        user_vote=direction,
        upvotes_delta=old_up + new_up,
        downvotes_delta=old_down + new_down,
        quota=quota,
    )
