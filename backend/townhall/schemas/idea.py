from __future__ import annotations
from dataclasses import asdict
from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime

from townhall.models.category import Category, IdeaType
from townhall.models.idea import IdeaAggregate
from townhall.models.vote import VoteDirection
from townhall.services.time_windows import utcnow


class DeadlinePublic(BaseModel):
    text: str
    days_left: int
    urgent: bool
    ended: bool


class IdeaPublic(BaseModel):
    id: str
    title: str
    description: str
    type: IdeaType
    category: Category
    category_label: str
    location_value: str
    location_level: str
    country: str
    is_anonymous: bool
    is_official_proposal: bool
    voting_ends_at: datetime | None = None
    voting_open: bool
    deadline: DeadlinePublic | None = None
    upvotes: int
    downvotes: int
    net_score: int
    user_vote: VoteDirection | None = None
    # 🔒 withheld when the idea is anonymous
    author_name: str | None = None
    is_owner: bool = False
    created_at: datetime

    @classmethod
    def from_aggregate(cls, idea: IdeaAggregate, viewer_id: str | None = None, now: datetime | None = None) -> "IdeaPublic":
        now = now or utcnow()
        label = idea.deadline_status(now)
        return cls(
            id=idea.id,
            title=idea.title,
            description=idea.description,
            type=idea.type,
            category=idea.category,
            category_label=idea.category.label,
            location_value=idea.location_value,
            location_level=idea.location_level,
            country=idea.country,
            is_anonymous=idea.is_anonymous,
            is_official_proposal=idea.is_official_proposal,
            voting_ends_at=idea.voting_ends_at,
            voting_open=idea.is_voting_open(now),
            deadline=DeadlinePublic(**asdict(label)) if label else None,
            upvotes=idea.upvotes,
            downvotes=idea.downvotes,
            net_score=idea.net_score,
            user_vote=idea.user_vote,
            author_name=None if idea.is_anonymous else idea.author_name,
            is_owner=bool(viewer_id) and viewer_id == idea.user_id,
            created_at=idea.created_at,
        )


class IdeaCreate(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=1, max_length=5000)
    type: IdeaType
    category: Category
    location_value: str = Field(default="", max_length=200)
    location_level: str = Field(default="", max_length=50)
    country: str = Field(default="", max_length=100)
    is_anonymous: bool = False
    is_official_proposal: bool = False
    voting_ends_at: datetime | None = None

    @field_validator("category", mode="before")
    @classmethod
    def accept_legacy_slug(cls, v):
        return Category.parse(v) if isinstance(v, str) else v

    @model_validator(mode="after")
    def official_needs_deadline(self):
        if self.is_official_proposal and self.voting_ends_at is None:
            raise ValueError("Voting deadline is required for official proposals")
        if not self.is_official_proposal:
            self.voting_ends_at = None
        return self

    def to_row(self, user_id: str) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "category": self.category.value,
            "location_value": self.location_value,
            "location_level": self.location_level,
            "country": self.country,
            "is_anonymous": self.is_anonymous,
            "is_official_proposal": self.is_official_proposal,
            "voting_ends_at": self.voting_ends_at.isoformat() if self.voting_ends_at else None,
            "user_id": user_id,
        }


class IdeaUpdate(BaseModel):
    """Only the text of an idea is editable after creation."""
    title: str | None = Field(default=None, min_length=3, max_length=200)
    description: str | None = Field(default=None, min_length=1, max_length=5000)

    def to_patch(self) -> dict:
        return self.model_dump(exclude_none=True)
