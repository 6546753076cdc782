from __future__ import annotations
from fastapi import APIRouter, Depends, Query

from townhall.auth_deps import get_viewer_session
from townhall.schemas.feed import FeedResponse, FilterConfig
from townhall.schemas.idea import IdeaPublic
from townhall.services.feed_ranker import rank
from townhall.services.idea_store import ViewName
from townhall.services.sessions import ViewerSession
from townhall.services.time_windows import utcnow

router = APIRouter(prefix="/feed", tags=["feed"])


@router.get("", response_model=FeedResponse)
async def get_feed(
    idea_type: str | None = Query(None, alias="type"),
    category: str | None = None,
    country: str | None = None,
    search: str | None = Query(None, alias="q"),
    time_range: str | None = None,
    sort_by: str | None = None,
    official_only: str | None = None,
    view: ViewName = "all",
    location: str | None = None,
    refresh: bool = False,
    session: ViewerSession = Depends(get_viewer_session),
):
    config = FilterConfig(
        type=idea_type,
        category=category,
        country=country,
        search_term=search,
        time_range=time_range,
        sort_by=sort_by,
        show_official_only=official_only or False,
    )
    if refresh:
        await session.reload(location)
    else:
        await session.ensure_loaded(location)

    now = utcnow()
    ranked = rank(session.store.view(view), config, now)
    viewer_id = session.viewer.id
    return FeedResponse(
        official=[IdeaPublic.from_aggregate(i, viewer_id, now) for i in ranked.official],
        community=[IdeaPublic.from_aggregate(i, viewer_id, now) for i in ranked.community],
        total=len(ranked),
        votes_remaining=session.coordinator.votes_remaining,
        filters=config,
    )
