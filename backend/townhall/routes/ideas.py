from __future__ import annotations
from fastapi import APIRouter, Depends, Response

from townhall.auth_deps import get_viewer_session
from townhall.schemas.feed import FilterConfig
from townhall.schemas.idea import IdeaCreate, IdeaPublic, IdeaUpdate
from townhall.services.errors import Forbidden, IdeaNotFound
from townhall.services.feed_ranker import rank
from townhall.services.sessions import ViewerSession
from townhall.services.time_windows import utcnow

router = APIRouter(prefix="/ideas", tags=["ideas"])


def _check_can_edit(session: ViewerSession, idea_id: str) -> None:
    # the backend filters by owner as well; this only spares a round trip
    idea = session.store.get(idea_id)
    if idea is not None and not session.viewer.can_edit(idea.user_id):
        raise Forbidden("You can only change your own ideas")


@router.get("/mine", response_model=list[IdeaPublic])
async def my_ideas(session: ViewerSession = Depends(get_viewer_session)):
    await session.ensure_loaded()
    now = utcnow()
    ranked = rank(session.store.view("user"), FilterConfig(sort_by="newest"), now)
    return [IdeaPublic.from_aggregate(i, session.viewer.id, now) for i in ranked.ideas]


@router.post("", response_model=IdeaPublic, status_code=201)
async def create_idea(payload: IdeaCreate, session: ViewerSession = Depends(get_viewer_session)):
    idea = await session.repository.create_idea(session.viewer, payload)
    if session.store.loaded:
        session.store.add(idea)
    return IdeaPublic.from_aggregate(idea, session.viewer.id)


@router.patch("/{idea_id}", response_model=IdeaPublic)
async def update_idea(idea_id: str, payload: IdeaUpdate, session: ViewerSession = Depends(get_viewer_session)):
    _check_can_edit(session, idea_id)
    changes = await session.repository.update_idea(session.viewer, idea_id, payload)
    idea = session.store.patch(idea_id, **changes)
    if idea is None:
        await session.reload(session.coordinator.location)
        idea = session.store.get(idea_id)
        if idea is None:
            raise IdeaNotFound()
    return IdeaPublic.from_aggregate(idea, session.viewer.id)


@router.delete("/{idea_id}", status_code=204)
async def delete_idea(idea_id: str, session: ViewerSession = Depends(get_viewer_session)):
    _check_can_edit(session, idea_id)
    await session.repository.delete_idea(session.viewer, idea_id)
    session.store.remove(idea_id)
    return Response(status_code=204)
