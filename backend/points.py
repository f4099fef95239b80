"""
Points Distribution
Scores every player of a finished match and fans the points out to the
fantasy teams holding them. One match is one transaction: a failed run leaves
nothing behind and the match stays unprocessed, so it is simply run again.
"""

import logging
from datetime import datetime
from typing import Optional

import repository
from database import db_session, db_transaction
from errors import NotFoundError, ValidationError
from events import extract_performances
from gameweeks import resolve_match_gameweek
from models import Contributor, LineupSnapshot, MatchPoints, utcnow
from rules import LINEUP_RULES, SCORING
from scoring import score_player_performance

logger = logging.getLogger(__name__)


def _score_players(conn, match, summary, gameweek) -> dict:
    """Score and persist every player in the performance map. Returns id -> points."""
    players = repository.get_players(conn, summary.performances)
    conceded = summary.conceded
    outcomes = summary.outcomes
    scores = {}
    for pid, perf in summary.performances.items():
        player = players.get(pid)
        if player is None:
            logger.warning(f"Match {match.id}: player {pid} in event log is unknown, skipped")
            continue
        club_id = summary.club_of(pid, player.club_id)
        pts = score_player_performance(
            perf,
            player.category,
            conceded_goals=conceded.get(club_id, 0),
            started=perf.started,
            subbed_on=perf.subbed_on,
            team_outcome=outcomes.get(club_id),
        )
        repository.record_fantasy_stat(conn, pid, match.id, gameweek, pts)
        scores[pid] = pts
    return scores


def _team_match_points(team, summary, scores: dict, gameweek) -> MatchPoints:
    contributors = []
    total = 0
    for entry in team.roster:
        if entry.player_id not in scores:
            continue
        raw = scores[entry.player_id]
        perf = summary.performances[entry.player_id]
        is_captain = team.captain_id == entry.player_id
        counted = 0
        if entry.is_starting or perf.subbed_on:
            counted = raw * SCORING["captain_multiplier"] if is_captain else raw
        total += counted
        contributors.append(Contributor(
            player_id=entry.player_id,
            points=raw,
            counted_points=counted,
            is_starting=entry.is_starting,
            is_captain=is_captain,
            is_vice=team.vice_captain_id == entry.player_id,
        ))
    return MatchPoints(points=total, gameweek=gameweek, contributors=contributors)


def recompute_totals(team):
    """Gameweek totals from stored match points, season total from gameweek totals."""
    by_gw = {}
    for mp in team.match_points.values():
        if mp.gameweek is None:
            continue
        by_gw[mp.gameweek] = by_gw.get(mp.gameweek, 0) + mp.points
    team.gameweek_points = dict(sorted(by_gw.items()))
    team.points = sum(team.gameweek_points.values())


def compute_points_for_match(match_id: int, now: Optional[datetime] = None) -> dict:
    """Distribute fantasy points for a fulltime match. Safe to run repeatedly.

    Returns {fantasy team id: points earned from this match}.
    """
    now = now or utcnow()
    with db_transaction() as conn:
        match = repository.get_match(conn, match_id)
        if match is None:
            raise NotFoundError("Match not found")
        if not match.fulltime:
            raise ValidationError("Match is not finished", reason="not_fulltime")

        summary = extract_performances(match)
        gameweek = resolve_match_gameweek(conn, match)
        scores = _score_players(conn, match, summary, gameweek)

        team_points = {}
        for team in repository.teams_holding_players(conn, scores):
            if (team.effective_gameweek is not None and gameweek is not None
                    and team.effective_gameweek > gameweek):
                continue

            mp = _team_match_points(team, summary, scores, gameweek)
            team.match_points[match.id] = mp
            recompute_totals(team)

            starting = team.starting_ids()
            if (gameweek is not None and len(starting) == LINEUP_RULES["starting_size"]
                    and gameweek not in team.lineup_snapshots):
                team.lineup_snapshots[gameweek] = LineupSnapshot(
                    starting=starting,
                    captain=team.captain_id,
                    vice_captain=team.vice_captain_id,
                    set_at=now,
                )

            repository.save_fantasy_team(conn, team)
            team_points[team.id] = mp.points

        repository.mark_match_processed(conn, match.id, gameweek, team_points)

    logger.info(f"Match {match_id} processed for GW{gameweek}: "
                f"{len(scores)} players scored, {len(team_points)} fantasy teams updated")
    return team_points


def process_pending_matches(now: Optional[datetime] = None) -> list[int]:
    """Retry every fulltime match whose points were never distributed."""
    with db_session() as conn:
        pending = repository.unprocessed_fulltime_matches(conn)

    done = []
    for match_id in pending:
        try:
            compute_points_for_match(match_id, now=now)
        except Exception:
            logger.exception(f"Points distribution failed for match {match_id}")
            continue
        done.append(match_id)
    return done
