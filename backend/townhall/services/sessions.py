from __future__ import annotations
import asyncio
from collections import OrderedDict

import structlog

from townhall.config import settings
from townhall.models.user import Viewer
from townhall.models.vote import VoteQuota
from townhall.services.idea_store import IdeaStore
from townhall.services.ideas import IdeaRepository
from townhall.services.vote_coordinator import OptimisticVoteCoordinator

log = structlog.get_logger()

_CURRENT = object()


class ViewerSession:
    """The viewer's normalised store plus the coordinator that votes against it."""

    def __init__(self, viewer: Viewer, repository: IdeaRepository):
        self.viewer = viewer
        self.store = IdeaStore(owner_id=viewer.id)
        self.coordinator = OptimisticVoteCoordinator(viewer.id, self.store, repository)
        self._load_lock = asyncio.Lock()

    @property
    def repository(self) -> IdeaRepository:
        return self.coordinator.repository

    @property
    def quota(self) -> VoteQuota | None:
        return self.coordinator.quota

    def bind(self, viewer: Viewer, repository: IdeaRepository) -> "ViewerSession":
        # role or email status may have changed since the last request
        self.viewer = viewer
        self.coordinator.repository = repository
        return self

    async def ensure_loaded(self, location: str | None | object = _CURRENT) -> "ViewerSession":
        """Load once; a different `location` reloads, omitting it keeps the current one."""
        if location is _CURRENT:
            location = self.coordinator.location
        if self.store.loaded and location == self.coordinator.location:
            return self
        return await self.reload(location)

    async def reload(self, location: str | None = None) -> "ViewerSession":
        async with self._load_lock:
            views = await self.repository.load_views(self.viewer.id, location)
            quota = await self.repository.fetch_vote_status(self.viewer.id)
            self.store.replace_views(views)
            self.coordinator.location = location
            self.coordinator.quota = quota
        log.debug("session_loaded", user_id=self.viewer.id, ideas=len(self.store), location=location)
        return self

    def close(self) -> None:
        self.coordinator.detach()


class SessionRegistry:
    """LRU of viewer sessions; evicted sessions are detached."""

    def __init__(self, max_size: int | None = None):
        self.max_size = max_size or settings.session_cache_size
        self._sessions: OrderedDict[str, ViewerSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, viewer_id: str) -> bool:
        return viewer_id in self._sessions

    def open(self, viewer: Viewer, repository: IdeaRepository) -> ViewerSession:
        session = self._sessions.get(viewer.id)
        if session is not None:
            self._sessions.move_to_end(viewer.id)
            return session.bind(viewer, repository)
        session = ViewerSession(viewer, repository)
        self._sessions[viewer.id] = session
        while len(self._sessions) > self.max_size:
            evicted_id, evicted = self._sessions.popitem(last=False)
            evicted.close()
            log.debug("session_evicted", user_id=evicted_id)
        return session

    def discard(self, viewer_id: str) -> None:
        session = self._sessions.pop(viewer_id, None)
        if session is not None:
            session.close()

    def clear(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
