from __future__ import annotations
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import cmp_to_key
from typing import Iterable, Sequence

from townhall.models.category import Category
from townhall.models.idea import IdeaAggregate
from townhall.schemas.feed import FilterConfig
from townhall.services.time_windows import (
    ENDING_SOON_WINDOW,
    as_utc,
    is_ending_soon,
    time_range_lower_bound,
    utcnow,
)

_FOREVER = float("inf")


@dataclass(frozen=True)
class RankedFeed:
    """Ordered ideas plus the two display sections, projected from that order."""
    ideas: list[IdeaAggregate]

    @property
    def official(self) -> list[IdeaAggregate]:
        return [i for i in self.ideas if i.is_official_proposal]

    @property
    def community(self) -> list[IdeaAggregate]:
        return [i for i in self.ideas if not i.is_official_proposal]

    def __len__(self) -> int:
        return len(self.ideas)


def _matches(idea: IdeaAggregate, config: FilterConfig, since: datetime | None, needle: str) -> bool:
    if config.type is not None and idea.type is not config.type:
        return False
    if config.category is not None and idea.category is not config.category:
        return False
    if config.country is not None and idea.country != config.country:
        return False
    if needle and needle not in idea.title.lower() and needle not in idea.description.lower():
        return False
    if since is not None and as_utc(idea.created_at) < since:
        return False
    if config.show_official_only and not idea.is_official_proposal:
        return False
    return True


def filter_ideas(ideas: Iterable[IdeaAggregate], config: FilterConfig, now: datetime) -> list[IdeaAggregate]:
    # One time-range bound per pass so every idea is judged against the same instant.
    since = time_range_lower_bound(config.time_range, now)
    needle = config.search_term.lower()
    return [i for i in ideas if _matches(i, config, since, needle)]


def _deadline_ts(idea: IdeaAggregate) -> float:
    return as_utc(idea.voting_ends_at).timestamp() if idea.voting_ends_at else _FOREVER


def _cmp(a: float, b: float) -> int:
    return (a > b) - (a < b)


def _comparator(config: FilterConfig, now: datetime, window: timedelta):
    sort_by = config.sort_by

    def compare(a: IdeaAggregate, b: IdeaAggregate) -> int:
        # 1. official proposals always lead
        if a.is_official_proposal != b.is_official_proposal:
            return -1 if a.is_official_proposal else 1

        both_official = a.is_official_proposal and b.is_official_proposal

        # 2. deadline urgency among official proposals
        if both_official:
            a_soon = is_ending_soon(a.voting_ends_at, now, window)
            b_soon = is_ending_soon(b.voting_ends_at, now, window)
            if a_soon != b_soon:
                return -1 if a_soon else 1
            by_deadline = _cmp(_deadline_ts(a), _deadline_ts(b))
            if by_deadline:
                return by_deadline

        # 3. the selected criterion
        if sort_by == "controversial":
            return _cmp(b.engagement, a.engagement)
        if sort_by == "ending_soon" and both_official:
            return _cmp(_deadline_ts(a), _deadline_ts(b))
        if sort_by == "newest":
            return _cmp(as_utc(b.created_at).timestamp(), as_utc(a.created_at).timestamp())
        # official, popular, ending_soon outside official pairs
        return _cmp(b.net_score, a.net_score)

    return compare


def sort_ideas(
    ideas: Sequence[IdeaAggregate],
    config: FilterConfig,
    now: datetime,
    window: timedelta = ENDING_SOON_WINDOW,
) -> list[IdeaAggregate]:
    """
    Total order over `ideas`:
      1. official proposals before community ideas, whatever `sort_by` says
      2. among official proposals: ending soon (deadline within `window`)
         first, then earlier deadline first (no deadline = +infinity)
      3. `sort_by`: net score, engagement, deadline or recency
      4. input order (Python's sort is stable)
    """
    return sorted(ideas, key=cmp_to_key(_comparator(config, now, window)))


def rank(
    ideas: Iterable[IdeaAggregate],
    config: FilterConfig | None = None,
    now: datetime | None = None,
) -> RankedFeed:
    """Filter then order; pure, and deterministic for a given `now`."""
    config = config or FilterConfig()
    now = as_utc(now or utcnow())
    return RankedFeed(ideas=sort_ideas(filter_ideas(ideas, config, now), config, now))


def trending_categories(categories: Iterable[Category], limit: int = 3) -> list[tuple[Category, int]]:
    """Most frequent categories; equal counts keep first-seen order."""
    return Counter(categories).most_common(limit)
