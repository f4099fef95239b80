"""
Merge a duplicate player into its canonical record.

Rewrites every fantasy roster (merging duplicate entries), captaincy, lineup
snapshots and match reference (lineups, bench, goals, cards, substitutions,
man of the match) from one player id to another, in one transaction.

Usage:
    python merge_players.py <from_player_id> <to_player_id> [--dry]

Back up the database file before running it for real.
"""

import logging
import os
import sys

import repository
from database import db_session, db_transaction
from errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def replace_ids(ids: list, from_id: int, to_id: int) -> tuple[list, bool]:
    """Swap from_id for to_id and drop the duplicates that creates."""
    out = []
    for pid in ids:
        pid = to_id if pid == from_id else pid
        if pid not in out:
            out.append(pid)
    return out, out != list(ids)


def merge_team(team, from_id: int, to_id: int) -> bool:
    changed = False
    from_entries = [e for e in team.roster if e.player_id == from_id]
    keep = team.entry_for(to_id)

    if from_entries and keep is None:
        for e in from_entries:
            e.player_id = to_id
        changed = True
    elif from_entries:
        for e in from_entries:
            if e.is_starting and not keep.is_starting:
                keep.is_starting = True
            if not keep.player_price and e.player_price:
                keep.player_price = e.player_price
            if not keep.position and e.position:
                keep.position = e.position
            if keep.club_id is None and e.club_id is not None:
                keep.club_id = e.club_id
        team.roster = [e for e in team.roster if e.player_id != from_id]
        changed = True

    if team.captain_id == from_id:
        team.captain_id = to_id
        changed = True
    if team.vice_captain_id == from_id:
        team.vice_captain_id = to_id
        changed = True

    for snap in team.lineup_snapshots.values():
        snap.starting, moved = replace_ids(snap.starting, from_id, to_id)
        changed |= moved
        if snap.captain == from_id:
            snap.captain = to_id
            changed = True
        if snap.vice_captain == from_id:
            snap.vice_captain = to_id
            changed = True
    return changed


def merge_match(match, from_id: int, to_id: int) -> bool:
    changed = False
    for sides in (match.lineups, match.bench):
        for side in ("home", "away"):
            sides[side], moved = replace_ids(sides[side], from_id, to_id)
            changed |= moved

    for g in match.goals:
        for attr in ("scorer_id", "assist_id", "own_goal_by"):
            if getattr(g, attr) == from_id:
                setattr(g, attr, to_id)
                changed = True
    for s in match.substitutions:
        for attr in ("player_in", "player_out"):
            if getattr(s, attr) == from_id:
                setattr(s, attr, to_id)
                changed = True
    for c in match.cards:
        if c.player_id == from_id:
            c.player_id = to_id
            changed = True
    if match.man_of_the_match_id == from_id:
        match.man_of_the_match_id = to_id
        changed = True
    return changed


def _merge(conn, from_id: int, to_id: int, dry_run: bool) -> dict:
    if repository.get_player(conn, from_id) is None:
        raise NotFoundError(f"from player not found: {from_id}")
    if repository.get_player(conn, to_id) is None:
        raise NotFoundError(f"to player not found: {to_id}")

    summary = {"fantasy_teams_updated": [], "matches_updated": [], "dry_run": dry_run}
    for team in repository.list_fantasy_teams(conn):
        if merge_team(team, from_id, to_id):
            summary["fantasy_teams_updated"].append(team.id)
            if not dry_run:
                repository.save_fantasy_team(conn, team)

    for match in repository.list_matches(conn):
        if merge_match(match, from_id, to_id):
            summary["matches_updated"].append(match.id)
            if not dry_run:
                repository.save_match(conn, match)
    return summary


def replace_player(from_id: int, to_id: int, dry_run: bool = False) -> dict:
    if from_id == to_id:
        raise ValidationError("from and to player ids are identical, nothing to do")

    if dry_run:
        with db_session() as conn:
            summary = _merge(conn, from_id, to_id, dry_run=True)
    else:
        with db_transaction() as conn:
            summary = _merge(conn, from_id, to_id, dry_run=False)

    verb = "would update" if dry_run else "updated"
    logger.info(f"Merge {from_id} -> {to_id}: {verb} {len(summary['fantasy_teams_updated'])} fantasy teams, "
                f"{len(summary['matches_updated'])} matches")
    return summary


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    if len(args) < 2:
        print("Usage: python merge_players.py <from_player_id> <to_player_id> [--dry]")
        sys.exit(1)
    result = replace_player(int(args[0]), int(args[1]), dry_run="--dry" in sys.argv)
    print(f"Fantasy teams: {result['fantasy_teams_updated']}")
    print(f"Matches: {result['matches_updated']}")
