"""
Fantasy League Scoring Engine
Turns one player's performance in one match into fantasy points.
"""

from enum import Enum
from dataclasses import dataclass
from typing import Optional

from rules import SCORING, POSITION_CATEGORIES


class Position(str, Enum):
    GK = "GK"
    DEF = "DEF"
    MID = "MID"
    FWD = "FWD"


def position_category(position_code: Optional[str]) -> Position:
    """Map a fine-grained position code (CB, AM, ST...) to GK/DEF/MID/FWD.

    Unknown codes count as midfielders.
    """
    code = (position_code or "").strip().upper()
    if code in Position.__members__:
        return Position(code)
    return Position(POSITION_CATEGORIES.get(code, "MID"))


@dataclass
class PlayerPerformance:
    """What one player did in one match, built from the match event log."""
    goals: int = 0
    assists: int = 0
    yellow_cards: int = 0
    red_card: bool = False
    man_of_the_match: bool = False
    started: bool = False
    subbed_on: bool = False
    own_goals: int = 0

    @property
    def played(self) -> bool:
        return self.started or self.subbed_on


def score_player_performance(
    perf: PlayerPerformance,
    position: Position,
    conceded_goals: int = 0,
    started: bool = False,
    subbed_on: bool = False,
    team_outcome: Optional[str] = None,
) -> int:
    """Calculate fantasy points for one player in one match."""
    pts = 0

    # Appearance
    if started:
        pts += SCORING["appearance_started"]
    elif subbed_on:
        pts += SCORING["appearance_sub"]

    # Goals by position
    pts += perf.goals * SCORING["goal"][position.value]

    # Assists
    pts += perf.assists * SCORING["assist"]

    # Player of the Match
    if perf.man_of_the_match:
        pts += SCORING["man_of_the_match"]

    # Cards: a dismissal (straight or second yellow) takes the red penalty only
    if perf.red_card:
        pts += SCORING["red_card"]
    else:
        pts += perf.yellow_cards * SCORING["yellow_card"]

    # Clean sheet, starters only
    if started and conceded_goals == 0:
        pts += SCORING["clean_sheet"][position.value]

    # Team outcome, only if the player was on the pitch
    if (started or subbed_on) and team_outcome:
        pts += SCORING["outcome"].get(team_outcome, 0)

    return int(round(pts))
