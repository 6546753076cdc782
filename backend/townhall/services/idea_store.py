from __future__ import annotations
from typing import Iterable, Literal, Mapping

import structlog

from townhall.models.idea import IdeaAggregate
from townhall.services.vote_ledger import VoteDecision

log = structlog.get_logger()

ViewName = Literal["all", "global", "user"]
VIEWS: tuple[ViewName, ...] = ("all", "global", "user")


class IdeaStore:
    """
    One record per idea id; the three feed views are ordered id lists over it.

    Every mutation goes through the single record, so a vote, edit or delete
    is visible in all views at once and no view can hold a stale copy.
    """

    def __init__(self, owner_id: str | None = None):
        self.owner_id = owner_id
        self._ideas: dict[str, IdeaAggregate] = {}
        self._views: dict[ViewName, list[str]] = {v: [] for v in VIEWS}
        self.loaded = False

    # ---------- reads ----------

    def get(self, idea_id: str) -> IdeaAggregate | None:
        return self._ideas.get(idea_id)

    def view(self, name: ViewName) -> list[IdeaAggregate]:
        return [self._ideas[i] for i in self._views[name] if i in self._ideas]

    def snapshot(self) -> dict[ViewName, list[IdeaAggregate]]:
        """Detached copies of every view, e.g. to compare before/after a vote."""
        return {name: [i.copy() for i in self.view(name)] for name in VIEWS}

    def __contains__(self, idea_id: str) -> bool:
        return idea_id in self._ideas

    def __len__(self) -> int:
        return len(self._ideas)

    # ---------- writes ----------

    def replace_views(self, views: Mapping[ViewName, Iterable[IdeaAggregate]]) -> None:
        """
        Swap in freshly fetched views in one step.

        A view missing from `views` is emptied. When the same id arrives in
        several views the last copy wins; they come from the same fetch.
        """
        ideas: dict[str, IdeaAggregate] = {}
        order: dict[ViewName, list[str]] = {v: [] for v in VIEWS}
        for name in VIEWS:
            for idea in views.get(name, ()):
                ideas[idea.id] = idea
                order[name].append(idea.id)
        self._ideas = ideas
        self._views = order
        self.loaded = True
        log.debug("idea_store_replaced", owner_id=self.owner_id, **{v: len(order[v]) for v in VIEWS})

    def apply_vote(self, decision: VoteDecision) -> IdeaAggregate | None:
        idea = self._ideas.get(decision.idea_id)
        if idea is None:
            return None
        decision.apply_to(idea)
        return idea

    def add(self, idea: IdeaAggregate) -> None:
        """A newly created idea goes to the top of every view it belongs to."""
        self._ideas[idea.id] = idea
        targets: list[ViewName] = ["all", "global"]
        if self.owner_id and idea.user_id == self.owner_id:
            targets.append("user")
        for name in VIEWS:
            ids = [i for i in self._views[name] if i != idea.id]
            if name in targets:
                ids.insert(0, idea.id)
            self._views[name] = ids

    def patch(self, idea_id: str, **fields) -> IdeaAggregate | None:
        idea = self._ideas.get(idea_id)
        if idea is None:
            return None
        for key, value in fields.items():
            if hasattr(idea, key):
                setattr(idea, key, value)
        return idea

    def remove(self, idea_id: str) -> bool:
        if self._ideas.pop(idea_id, None) is None:
            return False
        for name in VIEWS:
            self._views[name] = [i for i in self._views[name] if i != idea_id]
        return True
