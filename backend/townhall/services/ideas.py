from __future__ import annotations
import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from townhall.models.category import Category, Role
from townhall.models.idea import IdeaAggregate
from townhall.models.user import Viewer
from townhall.models.vote import VoteDirection, VoteHistoryItem, VoteQuota
from townhall.schemas.idea import IdeaCreate, IdeaUpdate
from townhall.services.backend import BackendClient, BackendError, BackendUnreachable, Order, eq, gt, gte
from townhall.services.errors import (
    ActionFailed,
    BackendUnavailable,
    EmailNotVerified,
    Forbidden,
    IdeaNotFound,
    InvalidIdea,
)
from townhall.services.feed_ranker import trending_categories
from townhall.services.idea_store import ViewName
from townhall.services.time_windows import as_utc, utcnow

log = structlog.get_logger()

IDEAS = "ideas"
VOTES = "votes"
PROFILES = "profiles"

# author display name and the viewer's own vote, joined in one call
IDEA_SELECT = "*,profiles(name),votes(vote_type)"

EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"


def _remaining_from_payload(value) -> int | None:
    if value is None:
        return None
    if not isinstance(value, bool):
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            pass
    log.warning("vote_remaining_unreadable", value=repr(value))
    return None


@dataclass(frozen=True)
class CastVoteResult:
    success: bool
    message: str | None = None
    new_votes_remaining: int | None = None
    error_code: str | None = None

    @classmethod
    def from_payload(cls, payload) -> "CastVoteResult":
        if not isinstance(payload, dict):
            return cls(success=False, message="Failed to process vote")
        return cls(
            success=bool(payload.get("success")),
            message=payload.get("message"),
            new_votes_remaining=_remaining_from_payload(payload.get("new_votes_remaining_this_week")),
            error_code=payload.get("error_code"),
        )


@dataclass(frozen=True)
class Profile:
    id: str
    name: str | None
    role: Role
    email_verified: bool


def mentions_unverified_email(*texts: str | None) -> bool:
    text = " ".join(t for t in texts if t)
    return EMAIL_NOT_VERIFIED in text or "verify your email" in text


def translate_error(exc: BackendError, action: str) -> Exception:
    """Map a backend failure to the ActionError the caller should see."""
    if isinstance(exc, BackendUnreachable):
        return BackendUnavailable()
    if mentions_unverified_email(exc.code, exc.message):
        return EmailNotVerified(f"Please verify your email address before {action}")
    if exc.status_code == 403:
        return Forbidden()
    return ActionFailed(exc.message or f"Error {action}")


class IdeaRepository:
    """Idea, vote and profile operations against the hosted backend."""

    def __init__(self, client: BackendClient):
        self.client = client

    # ---------- reads ----------

    async def fetch_ideas(self, viewer_id: str | None, *, owner_id: str | None = None, location: str | None = None) -> list[IdeaAggregate]:
        filters = []
        if viewer_id:
            filters.append(eq("votes.user_id", viewer_id))
        if owner_id:
            filters.append(eq("user_id", owner_id))
        if location:
            filters.append(eq("location_value", location))
        try:
            rows = await self.client.fetch(IDEAS, select=IDEA_SELECT, filters=filters, order=Order("created_at"))
        except BackendError as exc:
            raise translate_error(exc, "loading ideas") from exc
        ideas: list[IdeaAggregate] = []
        for row in rows:
            try:
                ideas.append(IdeaAggregate.from_row(row))
            except (KeyError, ValueError) as exc:
                log.warning("idea_row_invalid", idea_id=row.get("id"), error=str(exc))
        return ideas

    async def load_views(self, viewer_id: str | None, location: str | None = None) -> dict[ViewName, list[IdeaAggregate]]:
        """The three feed views, fetched concurrently."""
        fetches = [self.fetch_ideas(viewer_id, location=location)]
        if location:
            fetches.append(self.fetch_ideas(viewer_id))
        if viewer_id:
            fetches.append(self.fetch_ideas(viewer_id, owner_id=viewer_id))
        results = await asyncio.gather(*fetches)
        all_ideas = results[0]
        global_ideas = results[1] if location else all_ideas
        user_ideas = results[-1] if viewer_id else []
        return {"all": all_ideas, "global": global_ideas, "user": user_ideas}

    async def fetch_profile(self, user_id: str) -> Profile | None:
        try:
            row = await self.client.fetch_one(
                PROFILES, select="id,name,role,email_confirmed_at", filters=[eq("id", user_id)]
            )
        except BackendError as exc:
            raise translate_error(exc, "loading your profile") from exc
        if not row:
            return None
        return Profile(
            id=str(row["id"]),
            name=row.get("name"),
            role=Role.parse(row.get("role")),
            email_verified=bool(row.get("email_confirmed_at")),
        )

    async def fetch_vote_status(self, user_id: str) -> VoteQuota | None:
        try:
            row = await self.client.fetch_one(
                PROFILES, select="votes_remaining,votes_reset_at,weekly_vote_limit", filters=[eq("id", user_id)]
            )
        except BackendError as exc:
            raise translate_error(exc, "loading your votes") from exc
        return VoteQuota.from_row(row) if row else None

    async def fetch_vote_history(self, user_id: str) -> list[VoteHistoryItem]:
        try:
            rows = await self.client.rpc("get_user_vote_history", {"p_user_id": user_id})
        except BackendError as exc:
            raise translate_error(exc, "loading vote history") from exc
        return [VoteHistoryItem.from_row(r) for r in rows or []]

    # ---------- writes ----------

    async def create_idea(self, viewer: Viewer, payload: IdeaCreate, now: datetime | None = None) -> IdeaAggregate:
        if not viewer.email_verified:
            raise EmailNotVerified("Please verify your email address before creating ideas")
        if payload.is_official_proposal:
            if not viewer.role.can_file_official_proposals:
                raise Forbidden("Only representatives can create official proposals")
            if as_utc(payload.voting_ends_at) <= as_utc(now or utcnow()):
                raise InvalidIdea("Voting deadline must be in the future")
        try:
            row = await self.client.insert(IDEAS, payload.to_row(viewer.id), select="*,profiles(name)")
        except BackendError as exc:
            raise translate_error(exc, "creating ideas") from exc
        idea = IdeaAggregate.from_row(row)
        log.info("idea_created", idea_id=idea.id, user_id=viewer.id, official=idea.is_official_proposal)
        return idea

    def _ownership_filters(self, viewer: Viewer, idea_id: str) -> list:
        # id AND owner at the data layer; administrators match by id alone
        filters = [eq("id", idea_id)]
        if not viewer.role.can_edit_any_idea:
            filters.append(eq("user_id", viewer.id))
        return filters

    async def update_idea(self, viewer: Viewer, idea_id: str, patch: IdeaUpdate) -> dict:
        changes = patch.to_patch()
        if not changes:
            raise InvalidIdea("Nothing to update")
        try:
            row = await self.client.update(IDEAS, changes, filters=self._ownership_filters(viewer, idea_id))
        except BackendError as exc:
            raise translate_error(exc, "updating the idea") from exc
        if row is None:
            raise IdeaNotFound("Idea not found or not yours to edit")
        log.info("idea_updated", idea_id=idea_id, user_id=viewer.id, fields=sorted(changes))
        return {k: row.get(k, v) for k, v in changes.items()}

    async def delete_idea(self, viewer: Viewer, idea_id: str) -> None:
        try:
            removed = await self.client.delete(IDEAS, filters=self._ownership_filters(viewer, idea_id))
        except BackendError as exc:
            raise translate_error(exc, "deleting the idea") from exc
        if not removed:
            raise IdeaNotFound("Idea not found or not yours to delete")
        log.info("idea_deleted", idea_id=idea_id, user_id=viewer.id)

    async def cast_vote(self, idea_id: str, direction: VoteDirection) -> CastVoteResult:
        """
        Authoritative vote via the `increment_vote` RPC.

        Backend errors propagate as BackendError; the coordinator decides
        what a failure means for the optimistic state.
        """
        payload = await self.client.rpc("increment_vote", {"p_idea_id": idea_id, "p_vote_type": direction.value})
        return CastVoteResult.from_payload(payload)

    # ---------- stats ----------

    async def dashboard_stats(self, now: datetime | None = None) -> dict:
        now = as_utc(now or utcnow())
        week_ago = (now - timedelta(days=7)).isoformat()
        try:
            total_votes, voters, posters, recent, official, active_official = await asyncio.gather(
                self.client.count(VOTES),
                self.client.fetch(VOTES, select="user_id", filters=[gte("voted_at", week_ago)]),
                self.client.fetch(IDEAS, select="user_id", filters=[gte("created_at", week_ago)]),
                self.client.fetch(IDEAS, select="category", filters=[gte("created_at", week_ago)]),
                self.client.count(IDEAS, filters=[eq("is_official_proposal", True)]),
                self.client.count(IDEAS, filters=[eq("is_official_proposal", True), gt("voting_ends_at", now.isoformat())]),
            )
        except BackendError as exc:
            raise translate_error(exc, "loading statistics") from exc

        active_users = {r["user_id"] for r in voters + posters if r.get("user_id")}
        categorised = []
        for r in recent:
            try:
                categorised.append(Category.parse(r.get("category") or ""))
            except ValueError:
                continue
        return {
            "total_votes": total_votes,
            "active_users": len(active_users),
            "trending_categories": [
                {"category": cat, "label": cat.label, "count": n}
                for cat, n in trending_categories(categorised, limit=3)
            ],
            "official_proposals": official,
            "active_official_proposals": active_official,
        }
