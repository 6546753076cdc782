from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException

from townhall.auth_deps import get_current_user, get_repository, get_viewer_session
from townhall.models.user import Viewer
from townhall.schemas.idea import IdeaPublic
from townhall.schemas.vote import VoteCreate, VoteHistoryItemPublic, VoteResultPublic, VoteStatusPublic
from townhall.services.ideas import IdeaRepository
from townhall.services.sessions import ViewerSession
from townhall.services.time_windows import utcnow

router = APIRouter(tags=["votes"])

_DEFAULT_MESSAGES = {
    "committed": "Vote recorded successfully!",
    "ignored": "A vote on this idea is already being processed",
    "discarded": "Vote response discarded",
}


@router.post("/ideas/{idea_id}/vote", response_model=VoteResultPublic)
async def vote_on_idea(idea_id: str, payload: VoteCreate, session: ViewerSession = Depends(get_viewer_session)):
    await session.ensure_loaded()
    outcome = await session.coordinator.vote(idea_id, payload.vote_type)
    return VoteResultPublic(
        status=outcome.status,
        message=outcome.message or _DEFAULT_MESSAGES[outcome.status],
        idea=IdeaPublic.from_aggregate(outcome.idea, session.viewer.id) if outcome.idea else None,
        votes_remaining=outcome.votes_remaining,
    )


@router.get("/votes/status", response_model=VoteStatusPublic)
async def vote_status(session: ViewerSession = Depends(get_viewer_session)):
    quota = await session.repository.fetch_vote_status(session.viewer.id)
    if quota is None:
        raise HTTPException(status_code=404, detail="Vote status not found")
    session.coordinator.quota = quota
    shown = quota.rolled_over(utcnow())
    return VoteStatusPublic(
        votes_remaining=shown.votes_remaining,
        weekly_vote_limit=shown.weekly_vote_limit,
        votes_reset_at=shown.votes_reset_at,
    )


@router.get("/votes/history", response_model=list[VoteHistoryItemPublic])
async def vote_history(user: Viewer = Depends(get_current_user), repository: IdeaRepository = Depends(get_repository)):
    items = await repository.fetch_vote_history(user.id)
    return [
        VoteHistoryItemPublic(idea_id=i.idea_id, idea_title=i.idea_title, vote_type=i.vote_type, voted_at=i.voted_at)
        for i in items
    ]
