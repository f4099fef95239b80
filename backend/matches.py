"""
Match updates: append goals, cards and substitutions, set lineups, man of
the match and scalars, and flip a match to fulltime.

The match edit, player counters and standings commit together. Points are
distributed after that commit; a failure there is logged and left to
points.process_pending_matches().
"""

import logging
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel

import repository
from database import db_session, db_transaction
from errors import AuthorizationError, NotFoundError, ValidationError
from models import Card, Goal, Match, Substitution
from points import compute_points_for_match
from rules import BANS

logger = logging.getLogger(__name__)

TeamRef = Union[int, str]


class GoalIn(BaseModel):
    scorer: Optional[int] = None
    assist: Optional[int] = None
    team: Optional[TeamRef] = None  # "home" / "away" / club id; side of the scorer
    minute: Optional[int] = None
    own_goal: bool = False


class CardIn(BaseModel):
    player: int
    type: str = "Yellow"
    team: Optional[TeamRef] = None
    minute: Optional[int] = None


class SubstitutionIn(BaseModel):
    player_in: Optional[int] = None
    player_out: Optional[int] = None
    team: Optional[TeamRef] = None
    minute: Optional[int] = None


class SidesIn(BaseModel):
    home: Optional[list[int]] = None
    away: Optional[list[int]] = None


class MatchUpdate(BaseModel):
    goals: list[GoalIn] = []
    cards: list[CardIn] = []
    substitutions: list[SubstitutionIn] = []
    lineups: Optional[SidesIn] = None
    bench: Optional[SidesIn] = None
    man_of_the_match: Optional[int] = None
    kickoff: Optional[datetime] = None
    venue: Optional[str] = None
    fulltime: Optional[bool] = None

    def player_ids(self) -> set:
        ids = set()
        for g in self.goals:
            ids.update(x for x in (g.scorer, g.assist) if x is not None)
        ids.update(c.player for c in self.cards)
        for s in self.substitutions:
            ids.update(x for x in (s.player_in, s.player_out) if x is not None)
        for sides in (self.lineups, self.bench):
            if sides:
                ids.update(sides.home or [])
                ids.update(sides.away or [])
        if self.man_of_the_match is not None:
            ids.add(self.man_of_the_match)
        return ids

    def touches_events(self) -> bool:
        return bool(self.cards or self.substitutions or self.lineups or self.bench
                    or self.man_of_the_match is not None)


def resolve_team(value, match: Match) -> Optional[int]:
    """Map "home"/"away"/"h"/"a" or a club id to one of the match's two sides."""
    if value is None or value == "":
        return None
    text = str(value).strip().lower()
    if text in ("home", "h"):
        return match.home_club_id
    if text in ("away", "a"):
        return match.away_club_id
    if text.isdigit() and int(text) in (match.home_club_id, match.away_club_id):
        return int(text)
    raise ValidationError(f"Team {value!r} is not playing in this match", reason="team")


def _opponent(club_id: int, match: Match) -> int:
    return match.away_club_id if club_id == match.home_club_id else match.home_club_id


def _apply_goal(conn, match: Match, g: GoalIn, players: dict):
    side = resolve_team(g.team, match)
    if side is None and g.scorer is not None:
        club_id = players[g.scorer].club_id
        if club_id in (match.home_club_id, match.away_club_id):
            side = club_id
    if side is None:
        side = match.home_club_id

    if g.own_goal:
        match.goals.append(Goal(team_id=_opponent(side, match), minute=g.minute,
                                own_goal=True, own_goal_by=g.scorer))
        return

    match.goals.append(Goal(team_id=side, minute=g.minute, scorer_id=g.scorer, assist_id=g.assist))
    if g.scorer is not None:
        repository.bump_player_counters(conn, g.scorer, goals=1)
        repository.bump_performance(conn, g.scorer, match.id, goals=1)
    if g.assist is not None:
        repository.bump_player_counters(conn, g.assist, assists=1)
        repository.bump_performance(conn, g.assist, match.id, assists=1)


def _apply_card(conn, match: Match, c: CardIn):
    card_type = "Red" if str(c.type).strip().lower() == "red" else "Yellow"
    match.cards.append(Card(player_id=c.player, card_type=card_type, minute=c.minute,
                            team_id=resolve_team(c.team, match)))

    if card_type == "Red":
        repository.bump_player_counters(conn, c.player, total_red_cards=1, match_ban=BANS["straight_red"])
        repository.bump_performance(conn, c.player, match.id, red_card=True)
        return

    repository.bump_player_counters(conn, c.player, total_yellow_cards=1)
    perf = repository.bump_performance(conn, c.player, match.id, yellow_cards=1)
    if perf["yellow_cards"] == 2:
        repository.bump_player_counters(conn, c.player, total_red_cards=1, match_ban=BANS["second_yellow"])
        repository.bump_performance(conn, c.player, match.id, red_card=True)


def _apply_sides(conn, match: Match, current: dict, sides: SidesIn):
    for side in ("home", "away"):
        ids = getattr(sides, side)
        if ids is None:
            continue
        current[side] = list(ids)
        for pid in ids:
            repository.bump_performance(conn, pid, match.id)


def update_match(match_id: int, update: MatchUpdate, is_admin: bool = False,
                 now: Optional[datetime] = None) -> Match:
    if not is_admin:
        raise AuthorizationError("You are not authorized to update matches")

    with db_transaction() as conn:
        match = repository.get_match(conn, match_id)
        if match is None:
            raise NotFoundError("Match not found")
        was_fulltime = match.fulltime

        if was_fulltime and update.goals:
            raise ValidationError("Goals cannot be added after match is full-time", reason="fulltime")
        if was_fulltime and update.fulltime is False:
            raise ValidationError("A finished match cannot be reopened", reason="fulltime")

        wanted = update.player_ids()
        players = repository.get_players(conn, wanted)
        missing = sorted(wanted - set(players))
        if missing:
            raise NotFoundError(f"Players not found: {missing}", reason="players_not_found")

        for g in update.goals:
            _apply_goal(conn, match, g, players)
        for c in update.cards:
            _apply_card(conn, match, c)
        for s in update.substitutions:
            match.substitutions.append(Substitution(minute=s.minute, team_id=resolve_team(s.team, match),
                                                    player_in=s.player_in, player_out=s.player_out))
            if s.player_in is not None:
                repository.bump_performance(conn, s.player_in, match.id)

        if update.man_of_the_match is not None:
            match.man_of_the_match_id = update.man_of_the_match
            repository.bump_performance(conn, update.man_of_the_match, match.id, man_of_the_match=True)

        if update.lineups:
            _apply_sides(conn, match, match.lineups, update.lineups)
        if update.bench:
            _apply_sides(conn, match, match.bench, update.bench)

        if update.kickoff is not None:
            match.kickoff = update.kickoff
        if update.venue is not None:
            match.venue = update.venue
        if update.fulltime:
            match.fulltime = True

        repository.save_match(conn, match)

        just_finished = match.fulltime and not was_fulltime
        if just_finished:
            repository.record_result(conn, match.home_club_id, match.home_score, match.away_score)
            repository.record_result(conn, match.away_club_id, match.away_score, match.home_score)
            logger.info(f"Match {match_id} fulltime: {match.result}")

    # Corrections to a finished match are re-distributed; the pipeline is idempotent
    if just_finished or (was_fulltime and update.touches_events()):
        try:
            compute_points_for_match(match_id, now=now)
        except Exception:
            logger.exception(f"Points distribution failed for match {match_id}, left for the pending sweep")

    return get_match(match_id)


def get_match(match_id: int) -> Match:
    with db_session() as conn:
        match = repository.get_match(conn, match_id)
    if match is None:
        raise NotFoundError("Match not found")
    return match
