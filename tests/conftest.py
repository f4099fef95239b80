from datetime import datetime, timedelta, timezone

import pytest

import database
import fantasy
import repository

NOW = datetime.now(timezone.utc).replace(microsecond=0)
GW1_DEADLINE = NOW + timedelta(days=1)
GW2_DEADLINE = NOW + timedelta(days=8)

# name, club, position code, price
PLAYERS = [
    ("gk1", "c1", "GK", 10), ("d1", "c1", "CB", 9), ("m1", "c1", "CM", 10),
    ("gk2", "c2", "GK", 10), ("d2", "c2", "LB", 10), ("m2", "c2", "AM", 10),
    ("d3", "c3", "RB", 10), ("m3", "c3", "DM", 10), ("f1", "c3", "ST", 10),
    ("d4", "c4", "CB", 10), ("m4", "c4", "LM", 9), ("f2", "c4", "CF", 10),
    ("d5", "c5", "CB", 10), ("m5", "c5", "RM", 10), ("f3", "c5", "ST", 10),
    # outside the default squad
    ("gk3", "c6", "GK", 7), ("d6", "c6", "CB", 7), ("m6", "c6", "CM", 7),
    ("f4", "c7", "ST", 7), ("f5", "c7", "FW", 12), ("d7", "c1", "CB", 7),
]

SQUAD = ["gk1", "gk2", "d1", "d2", "d3", "d4", "d5", "m1", "m2", "m3", "m4", "m5", "f1", "f2", "f3"]
XI_442 = ["gk1", "d1", "d2", "d3", "d4", "m1", "m2", "m3", "m4", "f1", "f2"]


@pytest.fixture
def db(tmp_path, monkeypatch):
    monkeypatch.setattr(database, "DB_PATH", str(tmp_path / "fantasy.db"))
    database.init_db()
    return database


@pytest.fixture
def league(db):
    """Seven clubs, a player pool, two gameweeks with deadlines and one GW1
    match (c1 at home to c3)."""
    ids = {}
    with db.db_session() as conn:
        for club in ("c1", "c2", "c3", "c4", "c5", "c6", "c7"):
            ids[club] = repository.create_club(conn, club.upper())
        for name, club, pos, price in PLAYERS:
            ids[name] = repository.create_player(conn, name, ids[club], pos, price)
        ids["gw1"] = repository.create_gameweek(conn, 1, GW1_DEADLINE)
        ids["gw2"] = repository.create_gameweek(conn, 2, GW2_DEADLINE)
        ids["match1"] = repository.create_match(conn, ids["c1"], ids["c3"], GW1_DEADLINE + timedelta(hours=1))
        repository.create_fixture(conn, ids["gw1"], ids["c1"], ids["c3"], match_id=ids["match1"])
    return ids


def pick(league, names):
    return [league[n] for n in names]


@pytest.fixture
def team(league):
    """User u1's squad with a 4-4-2 for GW1, f1 captain and m1 vice."""
    t = fantasy.create_team("u1", "Team One", pick(league, SQUAD), now=NOW)
    return fantasy.set_lineup("u1", t.id, pick(league, XI_442), league["f1"], league["m1"], now=NOW)
