from datetime import timedelta

import jobs
import matches
import repository
from conftest import GW2_DEADLINE
from matches import MatchUpdate


def test_unknown_job_is_rejected(db):
    assert jobs.main(["reindex"]) == 2


def test_deadline_job_fills_missing_deadlines(league, db):
    kickoff = GW2_DEADLINE + timedelta(days=7)
    with db.db_session() as conn:
        gw3 = repository.create_gameweek(conn, 3)
        m = repository.create_match(conn, league["c2"], league["c5"], kickoff)
        repository.create_fixture(conn, gw3, league["c2"], league["c5"], match_id=m)

    assert jobs.main(["deadlines"]) == 0
    with db.db_session() as conn:
        assert repository.get_gameweek(conn, gw3).deadline == kickoff - timedelta(hours=1)
    assert jobs.run_deadlines() == []


def test_all_runs_every_job(league, db):
    matches.update_match(league["match1"], MatchUpdate(
        lineups={"away": [league["f1"]]},
        goals=[{"scorer": league["f1"]}],
        fulltime=True,
    ), is_admin=True)

    assert jobs.main([]) == 0
    with db.db_session() as conn:
        assert repository.get_player(conn, league["f1"]).price > 10
    assert jobs.run_points() == []
    assert jobs.run_prices() == 0
