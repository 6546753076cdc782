from __future__ import annotations
from pydantic import BaseModel
from datetime import datetime
from typing import Literal

from townhall.models.vote import VoteDirection
from townhall.schemas.idea import IdeaPublic


class VoteCreate(BaseModel):
    vote_type: VoteDirection


class VoteResultPublic(BaseModel):
    status: Literal["committed", "ignored", "discarded"]
    message: str
    idea: IdeaPublic | None = None
    votes_remaining: int | None = None


class VoteStatusPublic(BaseModel):
    votes_remaining: int
    weekly_vote_limit: int
    votes_reset_at: datetime | None = None


class VoteHistoryItemPublic(BaseModel):
    idea_id: str
    idea_title: str
    vote_type: VoteDirection
    voted_at: datetime
