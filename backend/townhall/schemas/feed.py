from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Literal

from townhall.models.category import Category, IdeaType
from townhall.schemas.idea import IdeaPublic
from townhall.services.time_windows import TIME_RANGES

SortBy = Literal["newest", "popular", "controversial", "official", "ending_soon"]
TimeRange = Literal["today", "week", "month", "all"]

SORT_OPTIONS = ("newest", "popular", "controversial", "official", "ending_soon")
DEFAULT_SORT: SortBy = "official"

_NO_FILTER = {"", "all", "any", "*"}


def _blank(v) -> bool:
    return v is None or (isinstance(v, str) and v.strip().lower() in _NO_FILTER)


class FilterConfig(BaseModel):
    """
    Feed filter + sort selection. Every field defaults to "no filter".

    Unrecognised values never fail validation; they fall back to the default
    so a stale client link still renders a feed.
    """
    model_config = ConfigDict(frozen=True)

    type: IdeaType | None = None
    category: Category | None = None
    country: str | None = None
    search_term: str = ""
    time_range: TimeRange = "all"
    sort_by: SortBy = DEFAULT_SORT
    show_official_only: bool = False

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v):
        if _blank(v):
            return None
        try:
            return v if isinstance(v, IdeaType) else IdeaType(str(v).strip().lower())
        except ValueError:
            return None

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v):
        if _blank(v):
            return None
        try:
            return v if isinstance(v, Category) else Category.parse(str(v))
        except ValueError:
            return None

    @field_validator("country", mode="before")
    @classmethod
    def coerce_country(cls, v):
        return None if _blank(v) else str(v).strip()

    @field_validator("search_term", mode="before")
    @classmethod
    def coerce_search_term(cls, v):
        return "" if v is None else str(v).strip()

    @field_validator("time_range", mode="before")
    @classmethod
    def coerce_time_range(cls, v):
        v = str(v).strip().lower() if v is not None else "all"
        return v if v in TIME_RANGES else "all"

    @field_validator("sort_by", mode="before")
    @classmethod
    def coerce_sort_by(cls, v):
        v = str(v).strip().lower() if v is not None else DEFAULT_SORT
        return v if v in SORT_OPTIONS else DEFAULT_SORT

    @field_validator("show_official_only", mode="before")
    @classmethod
    def coerce_official_only(cls, v):
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in {"1", "true", "yes", "on"}


class FeedResponse(BaseModel):
    official: list[IdeaPublic]
    community: list[IdeaPublic]
    total: int
    votes_remaining: int | None = None
    filters: FilterConfig = Field(default_factory=FilterConfig)


class CategoryCount(BaseModel):
    category: Category
    label: str
    count: int


class DashboardStats(BaseModel):
    total_votes: int
    active_users: int
    trending_categories: list[CategoryCount]
    official_proposals: int
    active_official_proposals: int
