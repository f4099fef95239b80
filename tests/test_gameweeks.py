from datetime import timedelta

import pytest

import repository
from conftest import GW1_DEADLINE, GW2_DEADLINE, NOW
from errors import DeadlinePassedError, ValidationError
from gameweeks import (
    compute_deadline, effective_gameweek_for_time, ensure_before_deadline, gameweek_for_kickoff,
    require_upcoming_gameweek, resolve_match_gameweek, set_deadlines, upcoming_gameweek,
)


def test_effective_gameweek(league, db):
    with db.db_session() as conn:
        assert effective_gameweek_for_time(conn, NOW) == 1
        assert effective_gameweek_for_time(conn, GW1_DEADLINE) == 2
        # past every deadline: placeholder one past the last gameweek
        assert effective_gameweek_for_time(conn, GW2_DEADLINE + timedelta(days=1)) == 3


def test_effective_gameweek_without_gameweeks(db):
    with db.db_session() as conn:
        assert effective_gameweek_for_time(conn, NOW) is None


def test_upcoming_gameweek(league, db):
    with db.db_session() as conn:
        assert upcoming_gameweek(conn, NOW).number == 1
        assert upcoming_gameweek(conn, GW1_DEADLINE - timedelta(seconds=1)).number == 1
        assert upcoming_gameweek(conn, GW1_DEADLINE).number == 2
        assert upcoming_gameweek(conn, GW2_DEADLINE) is None
        with pytest.raises(ValidationError) as exc:
            require_upcoming_gameweek(conn, GW2_DEADLINE, "make transfers")
        assert exc.value.reason == "no_active_gameweek"


def test_deadline_gate(league, db):
    with db.db_session() as conn:
        gw1 = upcoming_gameweek(conn, NOW)
    ensure_before_deadline(gw1, GW1_DEADLINE - timedelta(seconds=1), "edit")
    with pytest.raises(DeadlinePassedError):
        ensure_before_deadline(gw1, GW1_DEADLINE, "edit")
    with pytest.raises(DeadlinePassedError):
        ensure_before_deadline(gw1, GW1_DEADLINE + timedelta(minutes=5), "edit")
    ensure_before_deadline(None, NOW, "edit")


def test_compute_deadline():
    k1 = NOW + timedelta(days=3, hours=20)
    k2 = NOW + timedelta(days=3, hours=18)
    assert compute_deadline([k1, k2]) == k2 - timedelta(hours=1)


def test_set_deadlines(league, db):
    k1 = NOW + timedelta(days=10, hours=20)
    k2 = NOW + timedelta(days=10, hours=18)
    with db.db_session() as conn:
        gw3 = repository.create_gameweek(conn, 3)
        for kickoff in (k1, k2):
            mid = repository.create_match(conn, league["c2"], league["c4"], kickoff)
            repository.create_fixture(conn, gw3, league["c2"], league["c4"], match_id=mid)
        repository.create_fixture(conn, gw3, None, None, bye=True)

        gw4 = repository.create_gameweek(conn, 4)
        mid = repository.create_match(conn, league["c2"], league["c4"])  # no kickoff yet
        repository.create_fixture(conn, gw4, league["c2"], league["c4"], match_id=mid)

        gw5 = repository.create_gameweek(conn, 5)
        repository.create_fixture(conn, gw5, None, None)  # knockout slot, no match yet

    with db.db_transaction() as conn:
        assert set_deadlines(conn) == [3]
    with db.db_transaction() as conn:
        assert set_deadlines(conn) == []
        assert repository.get_gameweek(conn, gw3).deadline == k2 - timedelta(hours=1)
        assert repository.get_gameweek(conn, gw4).deadline is None
        # already-set deadlines are left alone
        assert repository.get_gameweek(conn, league["gw1"]).deadline == GW1_DEADLINE


def test_resolve_match_gameweek(league, db):
    with db.db_session() as conn:
        match = repository.get_match(conn, league["match1"])
        assert resolve_match_gameweek(conn, match) == 1

        loose = repository.get_match(conn, repository.create_match(
            conn, league["c2"], league["c5"], GW1_DEADLINE + timedelta(days=2)))
        assert resolve_match_gameweek(conn, loose) == 2
        loose.gameweek = 7
        assert resolve_match_gameweek(conn, loose) == 7

        assert gameweek_for_kickoff(conn, None) is None
        assert gameweek_for_kickoff(conn, GW2_DEADLINE + timedelta(days=1)) is None
