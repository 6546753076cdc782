from __future__ import annotations
import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Literal

import structlog

from townhall.config import settings
from townhall.models.idea import IdeaAggregate
from townhall.models.vote import VoteDirection, VoteQuota
from townhall.services.backend import BackendError
from townhall.services.errors import (
    ActionError,
    ActionFailed,
    EmailNotVerified,
    IdeaNotFound,
    NotAuthenticated,
    QuotaExhausted,
    VoteTimeout,
)
from townhall.services.idea_store import IdeaStore
from townhall.services.ideas import CastVoteResult, IdeaRepository, mentions_unverified_email, translate_error
from townhall.services.time_windows import utcnow
from townhall.services.vote_ledger import VoteDecision, apply_vote

log = structlog.get_logger()

QUOTA_ERROR_CODES = {"QUOTA_EXHAUSTED", "NO_VOTES_REMAINING"}


@dataclass(frozen=True)
class _PendingVote:
    decision: VoteDecision
    # weekly votes this click took from the local quota; negative for a refund
    spent: int


class VotePhase(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class VoteOutcome:
    status: Literal["committed", "ignored", "discarded"]
    idea: IdeaAggregate | None
    votes_remaining: int | None
    message: str | None = None


def _error_from_result(result: CastVoteResult) -> ActionError:
    if result.error_code == "EMAIL_NOT_VERIFIED" or mentions_unverified_email(result.message):
        return EmailNotVerified("Please verify your email address before voting")
    if result.error_code in QUOTA_ERROR_CODES:
        return QuotaExhausted(result.message)
    return ActionFailed(result.message or "Failed to process vote")


class OptimisticVoteCoordinator:
    """
    Applies a vote to the store right away, then confirms it with the backend.

    Per idea the phase runs idle -> submitting -> committed | rolled_back ->
    idle. While an idea is submitting, further clicks on it are ignored;
    votes on other ideas proceed independently. A failed confirmation
    reloads every view from the backend, so the store never keeps a count
    the server rejected.
    """

    def __init__(
        self,
        viewer_id: str | None,
        store: IdeaStore,
        repository: IdeaRepository,
        quota: VoteQuota | None = None,
        *,
        timeout: float | None = None,
        location: str | None = None,
    ):
        self.viewer_id = viewer_id
        self.store = store
        # rebound per request to the caller's current credentials
        self.repository = repository
        self.quota = quota
        self.timeout = settings.vote_timeout_seconds if timeout is None else timeout
        self.location = location
        self.detached = False
        self._phases: dict[str, VotePhase] = {}
        self._pending: dict[str, _PendingVote] = {}

    def phase(self, idea_id: str) -> VotePhase:
        return self._phases.get(idea_id, VotePhase.IDLE)

    @property
    def in_flight(self) -> set[str]:
        return set(self._phases)

    def detach(self) -> None:
        """Stop touching the store; responses still in flight are discarded."""
        self.detached = True

    @property
    def votes_remaining(self) -> int | None:
        return self.quota.votes_remaining if self.quota else None

    def _snapshot(self, idea_id: str) -> IdeaAggregate | None:
        idea = self.store.get(idea_id)
        return idea.copy() if idea else None

    async def vote(self, idea_id: str, direction: VoteDirection | str, now: datetime | None = None) -> VoteOutcome:
        if not self.viewer_id:
            raise NotAuthenticated("You must be logged in to vote")
        direction = VoteDirection(direction)
        idea = self.store.get(idea_id)
        if idea is None:
            raise IdeaNotFound()

        # a rollback still in progress counts as busy too
        if self.phase(idea_id) is not VotePhase.IDLE:
            log.info("vote_ignored", idea_id=idea_id, user_id=self.viewer_id)
            return VoteOutcome("ignored", idea.copy(), self.votes_remaining, "A vote on this idea is already being processed")

        now = now or utcnow()
        if self.quota is not None:
            self.quota = self.quota.rolled_over(now)
        # raises before anything is mutated
        decision = apply_vote(self.viewer_id, idea, direction, self.quota, now)

        spent = 0
        if self.quota is not None and decision.quota is not None:
            spent = self.quota.votes_remaining - decision.quota.votes_remaining
        pending = _PendingVote(decision, spent)

        self._phases[idea_id] = VotePhase.SUBMITTING
        self._pending[idea_id] = pending
        try:
            self._apply(decision)
            return await self._confirm(pending, direction)
        finally:
            self._phases.pop(idea_id, None)
            self._pending.pop(idea_id, None)

    def _apply(self, decision: VoteDecision) -> None:
        self.store.apply_vote(decision)
        if decision.quota is not None:
            self.quota = decision.quota

    async def _confirm(self, pending: _PendingVote, direction: VoteDirection) -> VoteOutcome:
        decision = pending.decision
        idea_id = decision.idea_id
        error: ActionError | None = None
        result: CastVoteResult | None = None
        try:
            result = await asyncio.wait_for(self.repository.cast_vote(idea_id, direction), self.timeout)
        except asyncio.TimeoutError:
            error = VoteTimeout()
        except BackendError as exc:
            error = translate_error(exc, "voting")
            error.__cause__ = exc
        except Exception as exc:
            log.exception("vote_confirm_crashed", idea_id=idea_id, user_id=self.viewer_id)
            error = ActionFailed("Failed to process vote")
            error.__cause__ = exc
        else:
            if not result.success:
                error = _error_from_result(result)

        if self.detached:
            log.info("vote_response_discarded", idea_id=idea_id, user_id=self.viewer_id, failed=error is not None)
            return VoteOutcome("discarded", None, None)

        if error is not None:
            self._phases[idea_id] = VotePhase.ROLLED_BACK
            log.warning(
                "vote_rolled_back",
                idea_id=idea_id, user_id=self.viewer_id, transition=decision.transition, kind=error.kind.value,
            )
            self._pending.pop(idea_id, None)
            await self._rollback(pending)
            raise error

        self._phases[idea_id] = VotePhase.COMMITTED
        if result.new_votes_remaining is not None:
            self._reconcile_quota(result.new_votes_remaining)
        log.info(
            "vote_committed",
            idea_id=idea_id, user_id=self.viewer_id, transition=decision.transition,
            votes_remaining=self.votes_remaining,
        )
        return VoteOutcome("committed", self._snapshot(idea_id), self.votes_remaining, result.message)

    def _reconcile_quota(self, remaining: int) -> None:
        if self.quota is None:
            self.quota = VoteQuota(votes_remaining=remaining, weekly_vote_limit=max(remaining, settings.weekly_vote_limit))
        else:
            self.quota = self.quota.with_remaining(remaining)

    def _shift_quota(self, amount: int) -> None:
        if self.quota is not None and amount:
            self.quota = self.quota.with_remaining(self.quota.votes_remaining + amount)

    async def _rollback(self, failed: _PendingVote) -> None:
        # hand back what the failed click took; a server balance overrides it below
        self._shift_quota(failed.spent)
        try:
            views = await self.repository.load_views(self.viewer_id, self.location)
            quota = await self.repository.fetch_vote_status(self.viewer_id)
        except ActionError as exc:
            # store stays optimistic; the next read reloads it
            self.store.loaded = False
            log.error("vote_rollback_failed", user_id=self.viewer_id, error=exc.message)
            return
        if self.detached:
            return
        self.store.replace_views(views)
        if quota is not None:
            self.quota = quota
        self._reapply_pending(server_quota=quota is not None)

    def _reapply_pending(self, server_quota: bool) -> None:
        """
        Put back votes on other ideas that are still submitting.

        The reload may have landed before the server applied them. A row that
        still shows the vote as it was before the click gets the optimistic
        change again; a row that already shows the new vote is left alone.
        """
        for pending in self._pending.values():
            decision = pending.decision
            idea = self.store.get(decision.idea_id)
            if idea is None or idea.user_vote is not decision.previous:
                continue
            self.store.apply_vote(decision)
            if server_quota:
                self._shift_quota(-pending.spent)
            log.info("vote_reapplied", idea_id=decision.idea_id, user_id=self.viewer_id)
