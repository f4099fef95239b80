"""
Fantasy team lifecycle: creation, squad edits, transfers, lineups,
substitutions and captaincy.

Every operation loads the team, validates everything up front and writes
the team back once. The write carries the version that was read, so two
concurrent changes to one roster can't both land.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

import repository
from database import db_session, db_transaction
from errors import AuthorizationError, NotFoundError, ValidationError
from gameweeks import (
    effective_gameweek_for_time, ensure_before_deadline, gameweek_by_number,
    require_upcoming_gameweek,
)
from models import FantasyTeam, LineupSnapshot, RosterEntry, TransferQuota, utcnow
from rules import DEFAULT_LINEUP_KEY, FREE_TRANSFERS_PER_GAMEWEEK, LINEUP_RULES, SQUAD_RULES
from scoring import Position
from squad import validate_formation, validate_squad

logger = logging.getLogger(__name__)


def _load_owned(conn, team_id: int, user_id: str) -> FantasyTeam:
    team = repository.get_fantasy_team(conn, team_id)
    if team is None:
        raise NotFoundError("Fantasy team not found")
    if str(team.user_id) != str(user_id):
        raise AuthorizationError("Not authorized to change this team")
    return team


def _snapshot(team: FantasyTeam, key, now: datetime):
    team.lineup_snapshots[key] = LineupSnapshot(
        starting=team.starting_ids(),
        captain=team.captain_id,
        vice_captain=team.vice_captain_id,
        set_at=now,
        is_default=key == DEFAULT_LINEUP_KEY,
    )
    team.last_lineup_set_at = now


def _parse_target(target):
    """None -> upcoming gameweek, "default" -> durable default, else a gameweek number."""
    if target is None:
        return None
    if str(target).strip().lower() == DEFAULT_LINEUP_KEY:
        return DEFAULT_LINEUP_KEY
    try:
        number = int(target)
    except (TypeError, ValueError):
        number = 0
    if number <= 0 or str(number) != str(target).strip():
        raise ValidationError("target must be 'default' or a valid gameweek number", reason="invalid_target")
    return number


# ─── Queries ───

def get_team(team_id: int) -> FantasyTeam:
    with db_session() as conn:
        team = repository.get_fantasy_team(conn, team_id)
    if team is None:
        raise NotFoundError("Fantasy team not found")
    return team


def get_team_for_user(user_id: str) -> FantasyTeam:
    with db_session() as conn:
        team = repository.get_fantasy_team_by_user(conn, user_id)
    if team is None:
        raise NotFoundError("Fantasy team not found")
    return team


def list_teams(user_id: Optional[str] = None, competition_id: Optional[int] = None) -> list[FantasyTeam]:
    with db_session() as conn:
        return repository.list_fantasy_teams(conn, user_id=user_id, competition_id=competition_id)


# ─── Create / edit / delete ───

def create_team(user_id: str, team_name: str, player_ids: list, team_logo: Optional[str] = None,
                budget: Optional[float] = None, competition_id: Optional[int] = None,
                now: Optional[datetime] = None) -> FantasyTeam:
    now = now or utcnow()
    if not team_name:
        raise ValidationError("teamName required", reason="team_name")
    budget = SQUAD_RULES["budget"] if budget is None else budget

    with db_transaction() as conn:
        if repository.get_fantasy_team_by_user(conn, user_id):
            raise ValidationError("Team already created", reason="team_exists")

        players = repository.get_players(conn, player_ids)
        result = validate_squad(list(player_ids), players, budget)
        result.raise_for_violation()

        effective = effective_gameweek_for_time(conn, now)
        team = FantasyTeam(
            id=None,
            user_id=str(user_id),
            team_name=team_name,
            team_logo=team_logo,
            competition_id=competition_id,
            budget=budget,
            roster=result.enriched,
            effective_gameweek=effective,
            transfers=TransferQuota(last_reset_gw=effective, used_in_gw=0),
            created_at=now,
        )
        repository.insert_fantasy_team(conn, team)

    logger.info(f"Fantasy team {team.id} created for user {user_id}, effective from GW{effective}")
    return team


def edit_team(user_id: str, team_id: int, team_name: Optional[str] = None, team_logo: Optional[str] = None,
              player_ids: Optional[list] = None, now: Optional[datetime] = None) -> FantasyTeam:
    """Rename / re-logo, or replace the whole squad before the upcoming deadline."""
    now = now or utcnow()
    with db_transaction() as conn:
        team = _load_owned(conn, team_id, user_id)

        if player_ids is not None:
            require_upcoming_gameweek(conn, now, "edit squad")
            players = repository.get_players(conn, player_ids)
            result = validate_squad(list(player_ids), players, team.budget)
            result.raise_for_violation()
            team.roster = result.enriched
            kept = set(team.player_ids())
            if team.captain_id not in kept:
                team.captain_id = None
            if team.vice_captain_id not in kept:
                team.vice_captain_id = None

        if team_name:
            team.team_name = team_name
        if team_logo:
            team.team_logo = team_logo

        repository.save_fantasy_team(conn, team)
    return team


def delete_team(user_id: str, team_id: int, is_admin: bool = False):
    with db_transaction() as conn:
        team = repository.get_fantasy_team(conn, team_id)
        if team is None:
            raise NotFoundError("Fantasy team not found")
        if not is_admin and str(team.user_id) != str(user_id):
            raise AuthorizationError("Not authorized to delete this team")
        repository.delete_fantasy_team(conn, team_id)
    logger.info(f"Fantasy team {team_id} deleted")


# ─── Transfers ───

def make_transfers(user_id: str, team_id: int, transfers: list, now: Optional[datetime] = None) -> FantasyTeam:
    """
    Apply a batch of (out, in) pairs. All or nothing: any violation leaves
    the roster and the transfer counter untouched.
    """
    now = now or utcnow()
    if not transfers:
        raise ValidationError("transfers required", reason="no_transfers")
    pairs = [(int(out_id), int(in_id)) for out_id, in_id in transfers]
    out_ids = [o for o, _ in pairs]
    in_ids = [i for _, i in pairs]

    with db_transaction() as conn:
        team = _load_owned(conn, team_id, user_id)
        upcoming = require_upcoming_gameweek(conn, now, "make transfers")

        quota = replace(team.transfers)
        if quota.last_reset_gw is None or quota.last_reset_gw < upcoming.number:
            quota = TransferQuota(last_reset_gw=upcoming.number, used_in_gw=0)

        free_left = max(0, FREE_TRANSFERS_PER_GAMEWEEK - quota.used_in_gw)
        if len(pairs) > free_left:
            raise ValidationError(f"You have {free_left} free transfers left for this gameweek",
                                  reason="transfer_quota")

        if len(set(out_ids)) != len(out_ids) or len(set(in_ids)) != len(in_ids):
            raise ValidationError("Each player can only be transferred once per batch", reason="duplicate_transfer")
        roster_ids = set(team.player_ids())
        for out_id in out_ids:
            if out_id not in roster_ids:
                raise ValidationError(f"Attempting to remove player not in squad: {out_id}", reason="not_in_squad")
        for in_id in in_ids:
            if in_id in roster_ids:
                raise ValidationError(f"Incoming player already in squad: {in_id}", reason="already_in_squad")

        incoming = repository.get_players(conn, in_ids)
        if len(incoming) != len(in_ids):
            raise NotFoundError("Some incoming players not found", reason="players_not_found")

        swaps = dict(pairs)
        new_roster = []
        for entry in team.roster:
            if entry.player_id not in swaps:
                new_roster.append(replace(entry))
                continue
            p = incoming[swaps[entry.player_id]]
            new_roster.append(RosterEntry(
                player_id=p.id,
                player_price=p.price,
                position=p.position,
                club_id=p.club_id,
                is_starting=entry.is_starting,
            ))

        # Composition, club cap and budget at current prices, on the resulting squad
        new_ids = [e.player_id for e in new_roster]
        current = repository.get_players(conn, new_ids)
        validate_squad(new_ids, current, team.budget).raise_for_violation()

        had_lineup = len(team.starting_ids()) == LINEUP_RULES["starting_size"]
        if had_lineup:
            validate_formation(new_roster)

        team.roster = new_roster
        if team.captain_id in swaps:
            team.captain_id = None
        if team.vice_captain_id in swaps:
            team.vice_captain_id = None
        quota.used_in_gw += len(pairs)
        team.transfers = quota

        repository.save_fantasy_team(conn, team)

    logger.info(f"Team {team_id}: {len(pairs)} transfer(s) for GW{upcoming.number}, "
                f"{quota.used_in_gw}/{FREE_TRANSFERS_PER_GAMEWEEK} used")
    return team


# ─── Lineups ───

def set_lineup(user_id: str, team_id: int, starting_ids: list, captain: int,
               vice_captain: Optional[int] = None, target=None,
               now: Optional[datetime] = None) -> FantasyTeam:
    now = now or utcnow()
    size = LINEUP_RULES["starting_size"]
    starting = [int(pid) for pid in starting_ids or []]
    if len(starting) != size or len(set(starting)) != size:
        raise ValidationError(f"startingPlayerIds must be {size} different player ids", reason="formation")
    if captain is None:
        raise ValidationError("captain required", reason="captain")
    captain = int(captain)
    vice_captain = int(vice_captain) if vice_captain is not None else None
    key = _parse_target(target)

    with db_transaction() as conn:
        team = _load_owned(conn, team_id, user_id)

        roster_ids = set(team.player_ids())
        if any(pid not in roster_ids for pid in starting):
            raise ValidationError("Starting players must be from your roster", reason="not_in_squad")
        if captain not in starting:
            raise ValidationError("Captain must be among starting players", reason="captain")
        if vice_captain is not None:
            if vice_captain not in starting:
                raise ValidationError("Vice-captain must be among starting players", reason="vice_captain")
            if vice_captain == captain:
                raise ValidationError("Captain and vice-captain must differ", reason="vice_captain")

        if key is None:
            key = require_upcoming_gameweek(conn, now, "set lineup").number
        if key != DEFAULT_LINEUP_KEY:
            # A gameweek whose deadline has passed is locked
            ensure_before_deadline(gameweek_by_number(conn, key), now, "set lineup")

        chosen = set(starting)
        new_roster = [replace(e, is_starting=e.player_id in chosen) for e in team.roster]
        validate_formation(new_roster)

        team.roster = new_roster
        team.captain_id = captain
        team.vice_captain_id = vice_captain
        _snapshot(team, key, now)
        if key != DEFAULT_LINEUP_KEY and (team.effective_gameweek is None or team.effective_gameweek > key):
            team.effective_gameweek = key

        repository.save_fantasy_team(conn, team)
    return team


def substitute(user_id: str, team_id: int, out_id: int, in_id: int, now: Optional[datetime] = None) -> FantasyTeam:
    """Swap one starter with one bench player and refresh the default lineup."""
    now = now or utcnow()
    out_id, in_id = int(out_id), int(in_id)
    with db_transaction() as conn:
        team = _load_owned(conn, team_id, user_id)

        out_entry = team.entry_for(out_id)
        in_entry = team.entry_for(in_id)
        if out_entry is None:
            raise ValidationError("Player to remove (out) not found in this team's roster", reason="not_in_squad")
        if in_entry is None:
            raise ValidationError("Player to add (in) not found in this team's roster", reason="not_in_squad")
        if not out_entry.is_starting or in_entry.is_starting:
            raise ValidationError("Substitution must swap a starter with a bench player", reason="substitution")
        if (out_entry.category == Position.GK) != (in_entry.category == Position.GK):
            raise ValidationError("Goalkeeper may only be substituted with another goalkeeper.",
                                  reason="goalkeeper_swap")

        new_roster = []
        for e in team.roster:
            if e.player_id == out_id:
                e = replace(e, is_starting=False)
            elif e.player_id == in_id:
                e = replace(e, is_starting=True)
            else:
                e = replace(e)
            new_roster.append(e)
        validate_formation(new_roster)

        team.roster = new_roster
        if team.captain_id == out_id:
            team.captain_id = None
        if team.vice_captain_id == out_id:
            team.vice_captain_id = None
        _snapshot(team, DEFAULT_LINEUP_KEY, now)

        repository.save_fantasy_team(conn, team)
    return team


def set_captain(user_id: str, team_id: int, captain: Optional[int] = None,
                vice_captain: Optional[int] = None, now: Optional[datetime] = None) -> FantasyTeam:
    now = now or utcnow()
    if captain is None and vice_captain is None:
        raise ValidationError("captain or viceCaptain required", reason="captain")
    with db_transaction() as conn:
        team = _load_owned(conn, team_id, user_id)
        starting = set(team.starting_ids())

        if captain is not None:
            if int(captain) not in starting:
                raise ValidationError("Captain must be one of the starting XI.", reason="captain")
            team.captain_id = int(captain)
        if vice_captain is not None:
            if int(vice_captain) not in starting:
                raise ValidationError("Vice-captain must be one of the starting XI.", reason="vice_captain")
            team.vice_captain_id = int(vice_captain)
        if team.captain_id is not None and team.captain_id == team.vice_captain_id:
            raise ValidationError("Captain and vice-captain must differ", reason="vice_captain")

        _snapshot(team, DEFAULT_LINEUP_KEY, now)
        repository.save_fantasy_team(conn, team)
    return team
