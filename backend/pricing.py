"""
Post-match price sweep.

Finished matches not yet priced raise the price of players who scored,
assisted or kept a clean sheet. Each match is priced in its own transaction
together with its "applied" flag, so a match is never priced twice.
"""

import logging

import repository
from database import db_session, db_transaction
from events import extract_performances
from rules import PRICE_RULES
from scoring import PlayerPerformance, Position

logger = logging.getLogger(__name__)


def goal_increase(goals: int) -> float:
    steps = PRICE_RULES["goal_increases"]
    if goals <= 0:
        return 0.0
    return steps[min(goals, len(steps) - 1)]


def assist_increase(assists: int) -> float:
    steps = PRICE_RULES["assist_increases"]
    if assists <= 0:
        return 0.0
    if assists >= len(steps):
        return PRICE_RULES["assist_increase_above_3"]
    return steps[assists]


def price_delta(perf: PlayerPerformance, position: Position, conceded: int) -> float:
    delta = 0.0
    if position in (Position.GK, Position.DEF) and perf.started and conceded == 0:
        delta += PRICE_RULES["clean_sheet_increase"]
    delta += goal_increase(perf.goals)
    delta += assist_increase(perf.assists)
    return round(min(delta, PRICE_RULES["per_match_max_increase"]), 2)


def price_match(match_id: int) -> dict:
    """Apply price changes for one match. Returns {player id: delta} for changed players."""
    changed = {}
    with db_transaction() as conn:
        match = repository.get_match(conn, match_id)
        if match is None or match.price_updates_applied:
            return changed

        summary = extract_performances(match)
        conceded = summary.conceded
        players = repository.get_players(conn, summary.performances)
        for pid, perf in summary.performances.items():
            player = players.get(pid)
            if player is None:
                continue
            club_id = summary.club_of(pid, player.club_id)
            delta = price_delta(perf, player.category, conceded.get(club_id, 0))
            if delta <= 0:
                continue
            repository.adjust_player_price(conn, pid, delta, PRICE_RULES["min_price"], PRICE_RULES["max_price"])
            changed[pid] = delta

        repository.mark_prices_applied(conn, match_id)
    return changed


def apply_price_updates() -> int:
    """Price every finished, unpriced match. Returns the number of matches priced."""
    with db_session() as conn:
        pending = repository.unpriced_fulltime_matches(conn)
    if not pending:
        return 0

    logger.info(f"Price sweep: {len(pending)} finished match(es)")
    priced = 0
    for match_id in pending:
        try:
            changed = price_match(match_id)
        except Exception:
            logger.exception(f"Price update failed for match {match_id}")
            continue
        priced += 1
        if changed:
            logger.info(f"Match {match_id}: prices raised for {len(changed)} players")
        else:
            logger.info(f"Match {match_id}: no price changes")
    return priced
