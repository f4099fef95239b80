import pytest

import fantasy
import matches
import repository
from conftest import NOW, SQUAD, XI_442
from errors import NotFoundError, ValidationError
from matches import MatchUpdate
from models import RosterEntry
from merge_players import replace_ids, replace_player


@pytest.fixture
def duplicate(league, db):
    """A second record for f1, used by user u2's team and in the match log."""
    with db.db_session() as conn:
        dup = repository.create_player(conn, "f1 (dup)", league["c3"], "ST", 10)
    squad = [league[n] for n in SQUAD if n != "f1"] + [dup]
    xi = [league[n] for n in XI_442 if n != "f1"] + [dup]
    t = fantasy.create_team("u2", "Dup", squad, now=NOW)
    fantasy.set_lineup("u2", t.id, xi, dup, now=NOW)
    matches.update_match(league["match1"], MatchUpdate(
        lineups={"away": [dup, league["m3"]]},
        goals=[{"scorer": dup, "assist": league["m3"], "team": "away"}],
        cards=[{"player": dup}],
        man_of_the_match=dup,
    ), is_admin=True)
    return dup


def test_replace_ids_dedupes():
    assert replace_ids([1, 2, 3], 2, 9) == ([1, 9, 3], True)
    assert replace_ids([1, 2, 3], 2, 3) == ([1, 3], True)
    assert replace_ids([1, 3], 2, 9) == ([1, 3], False)


def test_merge_rewrites_teams_and_matches(team, league, duplicate):
    f1 = league["f1"]
    summary = replace_player(duplicate, f1)
    assert summary["matches_updated"] == [league["match1"]]

    dup_team = fantasy.get_team_for_user("u2")
    assert dup_team.id in summary["fantasy_teams_updated"]
    assert team.id not in summary["fantasy_teams_updated"]
    assert f1 in dup_team.player_ids() and duplicate not in dup_team.player_ids()
    assert dup_team.entry_for(f1).is_starting
    assert dup_team.captain_id == f1
    assert f1 in dup_team.lineup_snapshots[1].starting
    assert dup_team.lineup_snapshots[1].captain == f1

    m = matches.get_match(league["match1"])
    assert m.lineups["away"] == [f1, league["m3"]]
    assert m.goals[0].scorer_id == f1
    assert m.cards[0].player_id == f1
    assert m.man_of_the_match_id == f1
    assert m.result == "0-1"


def test_merge_collapses_duplicate_roster_entries(team, league, db):
    with db.db_session() as conn:
        t = repository.get_fantasy_team(conn, team.id)
        dup = repository.create_player(conn, "f3 (dup)", league["c5"], "ST", 10)
        t.roster.append(RosterEntry(player_id=dup, player_price=10, position="ST",
                                    club_id=league["c5"], is_starting=True))
        repository.save_fantasy_team(conn, t)

    replace_player(dup, league["f3"])
    t = fantasy.get_team(team.id)
    assert t.player_ids().count(league["f3"]) == 1
    assert len(t.roster) == 15
    assert t.entry_for(league["f3"]).is_starting


def test_dry_run_writes_nothing(team, league, duplicate):
    summary = replace_player(duplicate, league["f1"], dry_run=True)
    assert summary["dry_run"]
    assert summary["matches_updated"] == [league["match1"]]
    assert matches.get_match(league["match1"]).goals[0].scorer_id == duplicate
    assert fantasy.get_team_for_user("u2").captain_id == duplicate


def test_merge_argument_checks(league):
    with pytest.raises(ValidationError):
        replace_player(league["f1"], league["f1"])
    with pytest.raises(NotFoundError):
        replace_player(9999, league["f1"])
