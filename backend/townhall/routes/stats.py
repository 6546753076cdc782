from __future__ import annotations
from fastapi import APIRouter, Depends

from townhall.auth_deps import get_current_user, get_repository
from townhall.schemas.feed import DashboardStats
from townhall.services.ideas import IdeaRepository

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=DashboardStats)
async def dashboard_stats(_user=Depends(get_current_user), repository: IdeaRepository = Depends(get_repository)):
    return await repository.dashboard_stats()
