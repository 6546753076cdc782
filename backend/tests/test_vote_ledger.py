from __future__ import annotations
from datetime import timedelta
import pytest

from townhall.models.vote import VoteDirection, VoteQuota
from townhall.services.errors import NotAuthenticated, QuotaExhausted, VotingClosed
from townhall.services.vote_ledger import apply_vote
from fakes import NOW, make_idea

UP, DOWN = VoteDirection.UP, VoteDirection.DOWN


def _quota(remaining=10, limit=10):
    return VoteQuota(votes_remaining=remaining, weekly_vote_limit=limit)


def test_first_vote_casts_and_spends_one():
    idea = make_idea("i1", upvotes=4, downvotes=1)
    d = apply_vote("u1", idea, UP, _quota(3), NOW)
    assert d.transition == "cast"
    assert (d.upvotes_delta, d.downvotes_delta) == (1, 0)
    assert d.user_vote is UP
    assert d.votes_remaining == 2
    # pure: nothing touched yet
    assert idea.upvotes == 4 and idea.user_vote is None

    d.apply_to(idea)
    assert (idea.upvotes, idea.downvotes, idea.user_vote) == (5, 1, UP)


def test_same_direction_retracts_and_refunds():
    idea = make_idea("i1", upvotes=5, user_vote=UP)
    d = apply_vote("u1", idea, "up", _quota(2), NOW)
    assert d.transition == "retract"
    assert d.user_vote is None
    assert d.upvotes_delta == -1
    assert d.votes_remaining == 3


def test_refund_never_exceeds_weekly_limit():
    idea = make_idea("i1", upvotes=1, user_vote=UP)
    d = apply_vote("u1", idea, UP, _quota(10, 10), NOW)
    assert d.votes_remaining == 10


def test_switch_moves_one_vote_between_counters_without_quota_change():
    idea = make_idea("i1", upvotes=3, downvotes=2, user_vote=UP)
    d = apply_vote("u1", idea, DOWN, _quota(4), NOW)
    assert d.transition == "switch"
    assert (d.upvotes_delta, d.downvotes_delta) == (-1, 1)
    assert d.votes_remaining == 4
    d.apply_to(idea)
    assert (idea.upvotes, idea.downvotes, idea.user_vote) == (2, 3, DOWN)


def test_switch_allowed_with_zero_votes_left():
    idea = make_idea("i1", upvotes=1, user_vote=UP)
    d = apply_vote("u1", idea, DOWN, _quota(0), NOW)
    assert d.transition == "switch"
    assert d.votes_remaining == 0


def test_retract_allowed_with_zero_votes_left():
    idea = make_idea("i1", downvotes=1, user_vote=DOWN)
    d = apply_vote("u1", idea, DOWN, _quota(0), NOW)
    assert d.votes_remaining == 1


def test_cast_with_no_votes_left_is_refused():
    idea = make_idea("i1")
    with pytest.raises(QuotaExhausted) as exc:
        apply_vote("u1", idea, UP, _quota(0), NOW)
    assert exc.value.status_code == 409
    assert "votes this week" in exc.value.message


def test_anonymous_voter_is_refused():
    with pytest.raises(NotAuthenticated):
        apply_vote(None, make_idea("i1"), UP, _quota(), NOW)


def test_closed_official_proposal_is_refused():
    idea = make_idea("i1", is_official_proposal=True, voting_ends_at=NOW - timedelta(minutes=1))
    with pytest.raises(VotingClosed):
        apply_vote("u1", idea, UP, _quota(), NOW)


def test_open_official_proposal_accepts_votes():
    idea = make_idea("i1", is_official_proposal=True, voting_ends_at=NOW + timedelta(hours=1))
    assert apply_vote("u1", idea, UP, _quota(), NOW).transition == "cast"


def test_unknown_quota_leaves_the_decision_to_the_server():
    d = apply_vote("u1", make_idea("i1"), UP, None, NOW)
    assert d.quota is None and d.votes_remaining is None


def test_cast_then_retract_restores_counts_and_quota():
    idea = make_idea("i1", upvotes=7, downvotes=2)
    quota = _quota(5)
    first = apply_vote("u1", idea, DOWN, quota, NOW)
    first.apply_to(idea)
    second = apply_vote("u1", idea, DOWN, first.quota, NOW)
    second.apply_to(idea)
    assert (idea.upvotes, idea.downvotes, idea.user_vote) == (7, 2, None)
    assert second.quota == quota


def test_counters_never_go_negative():
    # stale row: the viewer's vote is recorded but the counter already reads 0
    idea = make_idea("i1", upvotes=0, user_vote=UP)
    apply_vote("u1", idea, UP, _quota(), NOW).apply_to(idea)
    assert idea.upvotes == 0


def test_single_vote_moves_between_ideas_after_retract():
    x, y = make_idea("x"), make_idea("y")
    quota = _quota(1)

    d = apply_vote("u1", x, UP, quota, NOW)
    d.apply_to(x)
    assert (x.upvotes, x.downvotes, d.votes_remaining) == (1, 0, 0)

    with pytest.raises(QuotaExhausted):
        apply_vote("u1", y, UP, d.quota, NOW)

    d = apply_vote("u1", x, UP, d.quota, NOW)
    d.apply_to(x)
    assert (x.upvotes, x.downvotes, d.votes_remaining) == (0, 0, 1)

    d = apply_vote("u1", y, UP, d.quota, NOW)
    d.apply_to(y)
    assert y.upvotes == 1 and d.votes_remaining == 0


def test_switch_down_to_up_on_scored_idea():
    idea = make_idea("i1", upvotes=5, downvotes=2, user_vote=DOWN)
    d = apply_vote("u1", idea, UP, _quota(6), NOW)
    d.apply_to(idea)
    assert (idea.upvotes, idea.downvotes) == (6, 1)
    assert d.votes_remaining == 6


@pytest.mark.parametrize("sequence", [
    [UP, UP, UP],
    [UP, DOWN, DOWN, UP],
    [DOWN, UP, UP, DOWN, DOWN],
])
def test_quota_spent_matches_active_vote(sequence):
    idea = make_idea("i1")
    quota = _quota(5)
    for direction in sequence:
        d = apply_vote("u1", idea, direction, quota, NOW)
        d.apply_to(idea)
        quota = d.quota
    active = 1 if idea.user_vote is not None else 0
    assert quota.votes_remaining == 5 - active
    assert idea.upvotes + idea.downvotes == active
