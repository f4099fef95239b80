"""
Match Event Extractor
Builds a per-player performance map from a match's event log, and derives
the scoreboard from the goal log.
"""

from dataclasses import dataclass, field
from typing import Optional

from scoring import PlayerPerformance


@dataclass
class MatchSummary:
    home_club_id: int
    away_club_id: int
    home_score: int
    away_score: int
    performances: dict = field(default_factory=dict)  # player id -> PlayerPerformance
    appeared_for: dict = field(default_factory=dict)  # player id -> club id seen in the event log

    @property
    def conceded(self) -> dict:
        """Goals conceded per club: simply the opponent's final score."""
        return {self.home_club_id: self.away_score, self.away_club_id: self.home_score}

    @property
    def outcomes(self) -> dict:
        if self.home_score > self.away_score:
            home, away = "win", "loss"
        elif self.home_score < self.away_score:
            home, away = "loss", "win"
        else:
            home = away = "draw"
        return {self.home_club_id: home, self.away_club_id: away}

    def club_of(self, player_id: int, registered_club_id: Optional[int] = None) -> Optional[int]:
        """The club a player represented in this match.

        The player's registered club wins when it is one of the two sides.
        """
        if registered_club_id in (self.home_club_id, self.away_club_id):
            return registered_club_id
        return self.appeared_for.get(player_id, registered_club_id)


def compute_scoreboard(match) -> tuple[int, int]:
    """Count goals by beneficiary team. Own goals are already stored
    against the opponent, goals for neither side are ignored."""
    home = away = 0
    for g in match.goals:
        if g.team_id is None:
            continue
        if g.team_id == match.home_club_id:
            home += 1
        elif g.team_id == match.away_club_id:
            away += 1
    return home, away


def apply_scoreboard(match):
    match.home_score, match.away_score = compute_scoreboard(match)
    match.result = f"{match.home_score}-{match.away_score}"


def extract_performances(match) -> MatchSummary:
    home_score, away_score = compute_scoreboard(match)
    summary = MatchSummary(
        home_club_id=match.home_club_id,
        away_club_id=match.away_club_id,
        home_score=home_score,
        away_score=away_score,
    )
    perfs = summary.performances

    def perf(player_id) -> PlayerPerformance:
        if player_id not in perfs:
            perfs[player_id] = PlayerPerformance()
        return perfs[player_id]

    def seen(player_id, club_id):
        if player_id is not None and club_id is not None:
            summary.appeared_for.setdefault(player_id, club_id)

    # Goals: credit the nominal scorer only
    for g in match.goals:
        if g.scorer_id is not None and not g.own_goal:
            perf(g.scorer_id).goals += 1
        if g.assist_id is not None and not g.own_goal:
            perf(g.assist_id).assists += 1
        if g.own_goal and g.own_goal_by is not None:
            perf(g.own_goal_by).own_goals += 1

    # Cards: two yellows in one match is a dismissal
    for c in match.cards:
        if c.player_id is None:
            continue
        p = perf(c.player_id)
        if "red" in (c.card_type or "").lower():
            p.red_card = True
        else:
            p.yellow_cards += 1
            if p.yellow_cards >= 2:
                p.red_card = True
        seen(c.player_id, c.team_id)

    if match.man_of_the_match_id is not None:
        perf(match.man_of_the_match_id).man_of_the_match = True

    sides = {"home": match.home_club_id, "away": match.away_club_id}
    for side, club_id in sides.items():
        for pid in match.lineups.get(side, []):
            perf(pid).started = True
            seen(pid, club_id)
        for pid in match.bench.get(side, []):
            seen(pid, club_id)

    outgoing = []
    for s in match.substitutions:
        if s.player_in is not None:
            perf(s.player_in).subbed_on = True
            seen(s.player_in, s.team_id)
        if s.player_out is not None:
            perf(s.player_out)
            seen(s.player_out, s.team_id)
            outgoing.append(s.player_out)

    # Someone taken off who was never listed nor brought on must have started
    for pid in outgoing:
        p = perfs[pid]
        if not p.started and not p.subbed_on:
            p.started = True

    return summary
