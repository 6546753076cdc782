from __future__ import annotations
import asyncio
import uuid
from datetime import datetime, timedelta, timezone

from townhall.models.category import Category, IdeaType, Role
from townhall.models.idea import IdeaAggregate
from townhall.models.user import Viewer
from townhall.models.vote import VoteDirection, VoteHistoryItem, VoteQuota
from townhall.services.ideas import CastVoteResult, IdeaRepository, Profile
from townhall.services.time_windows import utcnow

NOW = datetime(2025, 3, 12, 12, 0, tzinfo=timezone.utc)  # a Wednesday


def make_idea(idea_id: str, **fields) -> IdeaAggregate:
    defaults = dict(
        title=f"Idea {idea_id}",
        description="Fix the potholes on Main Street",
        type=IdeaType.PROPOSAL,
        category=Category.INFRASTRUCTURE,
        created_at=NOW - timedelta(days=1),
        user_id="author-1",
        location_value="Springfield",
        country="US",
    )
    defaults.update(fields)
    return IdeaAggregate(id=idea_id, **defaults)


def make_viewer(user_id: str = "user-1", **fields) -> Viewer:
    fields.setdefault("email_verified", True)
    fields.setdefault("email", f"{user_id}@example.com")
    fields.setdefault("name", user_id.title())
    return Viewer(id=user_id, **fields)


class _FakeTables:
    """Just enough of BackendClient for the repository's write paths."""

    def __init__(self, repo: "FakeRepository"):
        self.repo = repo

    def _match(self, filters) -> list[IdeaAggregate]:
        return [
            i for i in self.repo.ideas.values()
            if all(str(getattr(i, f.column)) == str(f.value) for f in filters)
        ]

    async def insert(self, table, record, *, select="*"):
        row = {
            "id": str(uuid.uuid4()),
            "created_at": utcnow().isoformat(),
            "upvotes": 0,
            "downvotes": 0,
            **record,
            "profiles": {"name": self.repo.names.get(record["user_id"])},
        }
        idea = IdeaAggregate.from_row(row)
        self.repo.ideas[idea.id] = idea
        return row

    async def update(self, table, patch, *, filters, select="*"):
        hits = self._match(filters)
        if not hits:
            return None
        for key, value in patch.items():
            setattr(hits[0], key, value)
        return {"id": hits[0].id, **patch}

    async def delete(self, table, *, filters):
        hits = self._match(filters)
        for idea in hits:
            del self.repo.ideas[idea.id]
        return len(hits)


class FakeRepository(IdeaRepository):
    """
    In-memory stand-in for the hosted backend.

    `cast_vote` behaves like the `increment_vote` function (toggle, switch,
    weekly quota) unless `cast_error`/`cast_result` force an outcome. Set
    `gate` to hold responses until the test releases them.
    """

    def __init__(self, ideas=(), *, viewer_id: str = "user-1", quota: VoteQuota | None = None):
        super().__init__(client=_FakeTables(self))
        self.viewer_id = viewer_id
        self.ideas: dict[str, IdeaAggregate] = {i.id: i.copy() for i in ideas}
        self.user_votes: dict[str, VoteDirection] = {
            i.id: i.user_vote for i in ideas if i.user_vote is not None
        }
        for idea in self.ideas.values():
            idea.user_vote = None
        self.quota = quota if quota is not None else VoteQuota(votes_remaining=10, weekly_vote_limit=10)
        self.profiles: dict[str, Profile] = {
            viewer_id: Profile(id=viewer_id, name="Viewer", role=Role.CITIZEN, email_verified=True),
        }
        self.names: dict[str, str] = {viewer_id: "Viewer"}
        self.history: list[VoteHistoryItem] = []
        self.cast_calls: list[tuple[str, VoteDirection]] = []
        self.cast_error: Exception | None = None
        self.cast_result: CastVoteResult | None = None
        self.gate: asyncio.Event | None = None
        self.load_calls = 0
        self.fail_loads = None

    # ---------- reads ----------

    async def fetch_ideas(self, viewer_id, *, owner_id=None, location=None):
        out = []
        for idea in sorted(self.ideas.values(), key=lambda i: i.created_at, reverse=True):
            if owner_id and idea.user_id != owner_id:
                continue
            if location and idea.location_value != location:
                continue
            copy = idea.copy()
            copy.user_vote = self.user_votes.get(idea.id) if viewer_id == self.viewer_id else None
            out.append(copy)
        return out

    async def load_views(self, viewer_id, location=None):
        self.load_calls += 1
        if self.fail_loads is not None:
            raise self.fail_loads
        return await super().load_views(viewer_id, location)

    async def fetch_profile(self, user_id):
        return self.profiles.get(user_id)

    async def fetch_vote_status(self, user_id):
        return self.quota if user_id == self.viewer_id else None

    async def fetch_vote_history(self, user_id):
        return list(self.history)

    async def dashboard_stats(self, now=None):
        return {
            "total_votes": len(self.user_votes),
            "active_users": 1,
            "trending_categories": [],
            "official_proposals": sum(i.is_official_proposal for i in self.ideas.values()),
            "active_official_proposals": 0,
        }

    # ---------- votes ----------

    async def cast_vote(self, idea_id, direction):
        direction = VoteDirection(direction)
        self.cast_calls.append((idea_id, direction))
        if self.gate is not None:
            await self.gate.wait()
        if self.cast_error is not None:
            raise self.cast_error
        if self.cast_result is not None:
            return self.cast_result

        idea = self.ideas[idea_id]
        previous = self.user_votes.get(idea_id)
        remaining = self.quota.votes_remaining
        if previous is None:
            if remaining <= 0:
                return CastVoteResult(False, "No votes remaining this week", remaining, "NO_VOTES_REMAINING")
            idea.apply_delta(direction.counter, +1)
            self.user_votes[idea_id] = direction
            remaining -= 1
        elif previous is direction:
            idea.apply_delta(direction.counter, -1)
            del self.user_votes[idea_id]
            remaining = min(self.quota.weekly_vote_limit, remaining + 1)
        else:
            idea.apply_delta(previous.counter, -1)
            idea.apply_delta(direction.counter, +1)
            self.user_votes[idea_id] = direction
        self.quota = self.quota.with_remaining(remaining)
        return CastVoteResult(True, "Vote recorded successfully!", remaining)
