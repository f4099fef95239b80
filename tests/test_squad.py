import pytest

from errors import NotFoundError, SquadViolation, ValidationError
from models import Player, RosterEntry
from squad import formation_error, validate_formation, validate_squad
from scoring import Position

# 2 GK, 5 DEF, 5 MID, 3 FWD over five clubs, total 148
LAYOUT = [
    ("GK", 1, 10), ("CB", 1, 9), ("CM", 1, 10),
    ("GK", 2, 10), ("LB", 2, 10), ("AM", 2, 10),
    ("RB", 3, 10), ("DM", 3, 10), ("ST", 3, 10),
    ("CB", 4, 10), ("LM", 4, 9), ("CF", 4, 10),
    ("CB", 5, 10), ("RM", 5, 10), ("ST", 5, 10),
]


def make_players(layout=LAYOUT):
    return {i: Player(id=i, name=f"p{i}", club_id=club, position=pos, price=price)
            for i, (pos, club, price) in enumerate(layout, start=1)}


def test_valid_squad_within_budget():
    players = make_players()
    result = validate_squad(list(players), players, 150)
    assert result.valid
    assert result.total_price == 148
    assert len(result.enriched) == 15
    assert all(not e.is_starting for e in result.enriched)
    assert result.enriched[1].player_price == 9
    assert result.enriched[1].club_id == 1


def test_budget_exceeded():
    players = make_players()
    players[2].price = 12  # one defender 9 -> 12, total 151
    result = validate_squad(list(players), players, 150)
    assert not result.valid
    assert result.reason == SquadViolation.BUDGET
    with pytest.raises(ValidationError) as exc:
        result.raise_for_violation()
    assert exc.value.reason == "budget"


def test_wrong_size_or_duplicates():
    players = make_players()
    ids = list(players)
    assert validate_squad(ids[:14], players, 150).reason == SquadViolation.SQUAD_SIZE
    assert validate_squad(ids[:14] + [ids[0]], players, 150).reason == SquadViolation.SQUAD_SIZE


def test_missing_player_is_not_found():
    players = make_players()
    ids = list(players)[:14] + [99]
    result = validate_squad(ids, players, 150)
    assert result.reason == SquadViolation.PLAYERS_NOT_FOUND
    with pytest.raises(NotFoundError):
        result.raise_for_violation()


def test_goalkeeper_count():
    layout = list(LAYOUT)
    layout[14] = ("GK", 5, 10)  # third keeper instead of a forward
    players = make_players(layout)
    assert validate_squad(list(players), players, 150).reason == SquadViolation.GOALKEEPER_COUNT


def test_position_bands():
    layout = list(LAYOUT)
    layout[13] = ("ST", 5, 10)  # 4 MID, 4 FWD
    players = make_players(layout)
    assert validate_squad(list(players), players, 150).reason == SquadViolation.FORWARD_COUNT

    layout = list(LAYOUT)
    layout[2] = ("CB", 1, 10)  # 6 DEF, 4 MID
    players = make_players(layout)
    assert validate_squad(list(players), players, 150).reason == SquadViolation.DEFENDER_COUNT


def test_club_cap():
    layout = list(LAYOUT)
    layout[12] = ("CB", 1, 10)  # fourth player from club 1
    players = make_players(layout)
    assert validate_squad(list(players), players, 150).reason == SquadViolation.TEAM_CAP


def _entry(pid, pos, starting=True):
    return RosterEntry(player_id=pid, player_price=7, position=pos, is_starting=starting)


def test_formation_bands():
    assert formation_error([Position.GK] + [Position.DEF] * 4 + [Position.MID] * 4 + [Position.FWD] * 2) is None
    assert formation_error([Position.GK] + [Position.DEF] * 3 + [Position.MID] * 4 + [Position.FWD] * 3) is None
    assert "GK" in formation_error([Position.GK] * 2 + [Position.DEF] * 4 + [Position.MID] * 3 + [Position.FWD] * 2)
    assert formation_error([Position.GK] + [Position.DEF] * 2 + [Position.MID] * 5 + [Position.FWD] * 3)
    assert formation_error([Position.GK] + [Position.DEF] * 4 + [Position.MID] * 4 + [Position.FWD])


def test_validate_formation_only_looks_at_starters():
    roster = [_entry(1, "GK"), _entry(2, "GK", starting=False)]
    roster += [_entry(10 + i, "CB") for i in range(4)]
    roster += [_entry(20 + i, "CM") for i in range(4)]
    roster += [_entry(30 + i, "ST") for i in range(2)]
    validate_formation(roster)

    roster[1].is_starting = True
    with pytest.raises(ValidationError) as exc:
        validate_formation(roster)
    assert exc.value.reason == "formation"
