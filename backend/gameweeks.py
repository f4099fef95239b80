"""
Gameweek & Deadline Resolver

Maps a moment (or a match) to its gameweek and gates roster changes on the
upcoming deadline. Deadlines are filled in by set_deadlines(), run from the
external scheduler (see jobs.py).
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import repository
from errors import DeadlinePassedError, ValidationError
from models import Gameweek, Match, parse_dt
from rules import DEADLINE_OFFSET_HOURS

logger = logging.getLogger(__name__)


def _with_deadline(conn) -> list[Gameweek]:
    return [gw for gw in repository.list_gameweeks(conn) if gw.deadline is not None]


def effective_gameweek_for_time(conn, when: datetime) -> Optional[int]:
    """The first gameweek a squad created at `when` plays in.

    Earliest gameweek whose deadline is still ahead; otherwise a placeholder
    one past the last known gameweek; None when there are no gameweeks.
    """
    when = parse_dt(when)
    ahead = [gw for gw in _with_deadline(conn) if gw.deadline > when]
    if ahead:
        return min(ahead, key=lambda gw: gw.number).number
    every = repository.list_gameweeks(conn)
    if every:
        return max(gw.number for gw in every) + 1
    return None


def upcoming_gameweek(conn, now: datetime) -> Optional[Gameweek]:
    """The gameweek with the soonest deadline after `now`. Never cached."""
    now = parse_dt(now)
    ahead = [gw for gw in _with_deadline(conn) if gw.deadline > now]
    if not ahead:
        return None
    return min(ahead, key=lambda gw: (gw.deadline, gw.number))


def gameweek_by_number(conn, number: int) -> Optional[Gameweek]:
    for gw in repository.list_gameweeks(conn):
        if gw.number == number:
            return gw
    return None


def ensure_before_deadline(gameweek: Optional[Gameweek], now: datetime, action: str):
    if gameweek is None or gameweek.deadline is None:
        return
    if parse_dt(now) >= gameweek.deadline:
        raise DeadlinePassedError(f"Cannot {action} after the gameweek {gameweek.number} deadline")


def require_upcoming_gameweek(conn, now: datetime, action: str) -> Gameweek:
    gw = upcoming_gameweek(conn, now)
    if gw is None:
        raise ValidationError(f"No active gameweek found to {action}", reason="no_active_gameweek")
    ensure_before_deadline(gw, now, action)
    return gw


def gameweek_for_kickoff(conn, kickoff: Optional[datetime]) -> Optional[int]:
    """First gameweek whose deadline falls after the kickoff."""
    if kickoff is None:
        return None
    kickoff = parse_dt(kickoff)
    later = [gw for gw in _with_deadline(conn) if gw.deadline > kickoff]
    if not later:
        return None
    return min(later, key=lambda gw: gw.number).number


def resolve_match_gameweek(conn, match: Match) -> Optional[int]:
    """Fixture's gameweek, then the match's own stamp, then by kickoff date."""
    fixture = repository.fixture_for_match(conn, match.id)
    if fixture and fixture.gameweek_id is not None:
        gw = repository.get_gameweek(conn, fixture.gameweek_id)
        if gw:
            return gw.number
    if match.gameweek is not None:
        return match.gameweek
    return gameweek_for_kickoff(conn, match.kickoff)


def compute_deadline(kickoffs: list) -> datetime:
    return min(parse_dt(k) for k in kickoffs) - timedelta(hours=DEADLINE_OFFSET_HOURS)


def set_deadlines(conn) -> list[int]:
    """Fill in the deadline of every gameweek whose fixtures all have kickoff
    times. Gameweeks that already have a deadline are left alone.
    Returns the gameweek numbers that got a deadline."""
    updated = []
    for gw in repository.gameweeks_without_deadline(conn):
        fixtures = repository.fixtures_for_gameweek(conn, gw.id)
        if not fixtures or any(f.match_id is None for f in fixtures if not f.bye):
            continue
        matches = repository.get_matches(conn, [f.match_id for f in fixtures if not f.bye])
        if not matches or any(m.kickoff is None for m in matches):
            continue
        deadline = compute_deadline([m.kickoff for m in matches])
        if repository.set_gameweek_deadline(conn, gw.id, deadline):
            logger.info(f"Gameweek {gw.number} deadline set: {deadline.isoformat()}")
            updated.append(gw.number)
    return updated
