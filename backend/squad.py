"""
Squad Validator
Roster composition, per-club cap and budget checks for squad creation,
squad replacement and transfers, plus the starting XI formation check.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from errors import NotFoundError, SquadViolation, ValidationError
from models import RosterEntry
from rules import SQUAD_RULES, LINEUP_RULES
from scoring import Position

_BANDS = (
    (Position.DEF, "def_range", SquadViolation.DEFENDER_COUNT, "Defenders"),
    (Position.MID, "mid_range", SquadViolation.MIDFIELDER_COUNT, "Midfielders"),
    (Position.FWD, "fwd_range", SquadViolation.FORWARD_COUNT, "Forwards"),
)


@dataclass
class SquadResult:
    valid: bool
    reason: Optional[SquadViolation] = None
    message: str = ""
    enriched: list = field(default_factory=list)
    total_price: float = 0.0

    def raise_for_violation(self):
        if self.valid:
            return
        if self.reason == SquadViolation.PLAYERS_NOT_FOUND:
            raise NotFoundError(self.message, reason=self.reason)
        raise ValidationError(self.message, reason=self.reason)


def _fail(reason: SquadViolation, message: str) -> SquadResult:
    return SquadResult(valid=False, reason=reason, message=message)


def validate_squad(player_ids: list, players: dict, budget: float,
                   rules: dict = SQUAD_RULES) -> SquadResult:
    """
    Validate a full squad and stamp each entry with its locked price,
    position and club.

    player_ids: requested ids, in order
    players: id -> Player for every id that exists
    """
    size = rules["squad_size"]
    if len(player_ids) != size or len(set(player_ids)) != size:
        return _fail(SquadViolation.SQUAD_SIZE, f"Squad must be exactly {size} different players")

    missing = [pid for pid in player_ids if pid not in players]
    if missing:
        return _fail(SquadViolation.PLAYERS_NOT_FOUND, f"Some players not found: {missing}")

    squad = [players[pid] for pid in player_ids]

    pos_counts = Counter(p.category for p in squad)
    if pos_counts[Position.GK] != rules["gk_count"]:
        return _fail(SquadViolation.GOALKEEPER_COUNT,
                     f"You must have exactly {rules['gk_count']} goalkeepers")
    for pos, key, reason, label in _BANDS:
        lo, hi = rules[key]
        if not lo <= pos_counts[pos] <= hi:
            return _fail(reason, f"{label} must be between {lo}-{hi}")

    club_counts = Counter(p.club_id for p in squad if p.club_id is not None)
    for club_id, count in club_counts.items():
        if count > rules["max_per_club"]:
            return _fail(SquadViolation.TEAM_CAP,
                         f"You cannot have more than {rules['max_per_club']} players from the same team")

    total_price = round(sum(p.price for p in squad), 2)
    if total_price > budget:
        return _fail(SquadViolation.BUDGET, f"Total squad cost {total_price} exceeds budget {budget}")

    enriched = [
        RosterEntry(
            player_id=p.id,
            player_price=p.price,
            position=p.position,
            club_id=p.club_id,
            is_starting=False,
        )
        for p in squad
    ]
    return SquadResult(valid=True, enriched=enriched, total_price=total_price)


def formation_error(categories: list, rules: dict = LINEUP_RULES) -> Optional[str]:
    """Check a starting XI given its position categories. Returns an error message or None."""
    if len(categories) != rules["starting_size"]:
        return f"Starting XI must have exactly {rules['starting_size']} players"
    counts = Counter(categories)
    if counts[Position.GK] != rules["gk_count"]:
        return f"Starting XI must include exactly {rules['gk_count']} GK"
    for pos, key, _, label in _BANDS:
        lo, hi = rules[key]
        if not lo <= counts[pos] <= hi:
            return f"{label} in the starting XI must be between {lo} and {hi}"
    return None


def validate_formation(roster: list):
    """Raise if the roster's entries flagged as starting don't form a legal XI."""
    err = formation_error([e.category for e in roster if e.is_starting])
    if err:
        raise ValidationError(err, reason="formation")
