"""
Typed records for every stored document, plus row <-> record conversion.
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional, Union

from rules import DEFAULT_LINEUP_KEY
from scoring import Position, position_category

# A lineup snapshot key: a gameweek number or the literal "default"
GameweekKey = Union[int, str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_dt(value) -> Optional[datetime]:
    """Parse a stored timestamp. Naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_iso(value: Optional[datetime]) -> Optional[str]:
    dt = parse_dt(value)
    return dt.isoformat() if dt else None


def gameweek_key(key) -> GameweekKey:
    """Normalize a map key loaded from JSON ("3" -> 3, "default" stays)."""
    if isinstance(key, int):
        return key
    text = str(key).strip()
    if text.lower() == DEFAULT_LINEUP_KEY:
        return DEFAULT_LINEUP_KEY
    return int(text)


# ─── Real-world side ───

@dataclass
class Club:
    id: int
    name: str
    short_name: Optional[str] = None
    played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0

    @classmethod
    def from_row(cls, row) -> "Club":
        return cls(**dict(row))


@dataclass
class Player:
    id: int
    name: str
    club_id: Optional[int]
    position: str
    price: float = 7.0
    goals: int = 0
    assists: int = 0
    total_yellow_cards: int = 0
    total_red_cards: int = 0
    match_ban: int = 0
    total_fantasy_points: int = 0

    @property
    def category(self) -> Position:
        return position_category(self.position)

    @classmethod
    def from_row(cls, row) -> "Player":
        r = dict(row)
        return cls(
            id=r["id"],
            name=r["name"],
            club_id=r["club_id"],
            position=r["position"],
            price=r["price"],
            goals=r["goals"],
            assists=r["assists"],
            total_yellow_cards=r["total_yellow_cards"],
            total_red_cards=r["total_red_cards"],
            match_ban=r["match_ban"],
            total_fantasy_points=r["total_fantasy_points"],
        )


@dataclass
class Goal:
    team_id: Optional[int]  # beneficiary: whose scoreboard the goal counts on
    minute: Optional[int] = None
    scorer_id: Optional[int] = None
    assist_id: Optional[int] = None
    own_goal: bool = False
    own_goal_by: Optional[int] = None


@dataclass
class Card:
    player_id: Optional[int]
    card_type: str  # "Yellow" | "Red"
    minute: Optional[int] = None
    team_id: Optional[int] = None


@dataclass
class Substitution:
    minute: Optional[int] = None
    team_id: Optional[int] = None
    player_in: Optional[int] = None
    player_out: Optional[int] = None


def _sides(raw) -> dict:
    raw = raw or {}
    return {"home": list(raw.get("home") or []), "away": list(raw.get("away") or [])}


@dataclass
class Match:
    id: int
    home_club_id: int
    away_club_id: int
    kickoff: Optional[datetime] = None
    venue: Optional[str] = None
    lineups: dict = field(default_factory=lambda: {"home": [], "away": []})
    bench: dict = field(default_factory=lambda: {"home": [], "away": []})
    goals: list = field(default_factory=list)
    cards: list = field(default_factory=list)
    substitutions: list = field(default_factory=list)
    man_of_the_match_id: Optional[int] = None
    home_score: int = 0
    away_score: int = 0
    result: Optional[str] = None
    fulltime: bool = False
    gameweek: Optional[int] = None
    fantasy_processed: bool = False
    fantasy_team_points: dict = field(default_factory=dict)
    price_updates_applied: bool = False

    @classmethod
    def from_row(cls, row) -> "Match":
        r = dict(row)
        return cls(
            id=r["id"],
            home_club_id=r["home_club_id"],
            away_club_id=r["away_club_id"],
            kickoff=parse_dt(r["kickoff"]),
            venue=r["venue"],
            lineups=_sides(json.loads(r["lineups_json"])),
            bench=_sides(json.loads(r["bench_json"])),
            goals=[Goal(**g) for g in json.loads(r["goals_json"])],
            cards=[Card(**c) for c in json.loads(r["cards_json"])],
            substitutions=[Substitution(**s) for s in json.loads(r["substitutions_json"])],
            man_of_the_match_id=r["man_of_the_match_id"],
            home_score=r["home_score"] or 0,
            away_score=r["away_score"] or 0,
            result=r["result"],
            fulltime=bool(r["fulltime"]),
            gameweek=r["gameweek"],
            fantasy_processed=bool(r["fantasy_processed"]),
            fantasy_team_points={int(k): v for k, v in json.loads(r["fantasy_team_points_json"]).items()},
            price_updates_applied=bool(r["price_updates_applied"]),
        )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "home_club_id": self.home_club_id,
            "away_club_id": self.away_club_id,
            "kickoff": to_iso(self.kickoff),
            "venue": self.venue,
            "lineups_json": json.dumps(self.lineups),
            "bench_json": json.dumps(self.bench),
            "goals_json": json.dumps([asdict(g) for g in self.goals]),
            "cards_json": json.dumps([asdict(c) for c in self.cards]),
            "substitutions_json": json.dumps([asdict(s) for s in self.substitutions]),
            "man_of_the_match_id": self.man_of_the_match_id,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "result": self.result,
            "fulltime": int(self.fulltime),
            "gameweek": self.gameweek,
            "fantasy_processed": int(self.fantasy_processed),
            "fantasy_team_points_json": json.dumps({str(k): v for k, v in self.fantasy_team_points.items()}),
            "price_updates_applied": int(self.price_updates_applied),
        }


@dataclass
class Gameweek:
    id: int
    number: int
    deadline: Optional[datetime] = None
    stage: str = "regular"
    competition_id: Optional[int] = None

    @classmethod
    def from_row(cls, row) -> "Gameweek":
        r = dict(row)
        return cls(
            id=r["id"],
            number=r["number"],
            deadline=parse_dt(r["deadline"]),
            stage=r["stage"],
            competition_id=r["competition_id"],
        )


@dataclass
class Fixture:
    id: int
    gameweek_id: Optional[int]
    home_club_id: Optional[int] = None  # None/None = unfilled knockout slot
    away_club_id: Optional[int] = None
    match_id: Optional[int] = None
    bye: bool = False

    @classmethod
    def from_row(cls, row) -> "Fixture":
        r = dict(row)
        return cls(
            id=r["id"],
            gameweek_id=r["gameweek_id"],
            home_club_id=r["home_club_id"],
            away_club_id=r["away_club_id"],
            match_id=r["match_id"],
            bye=bool(r["bye"]),
        )


# ─── Fantasy side ───

@dataclass
class RosterEntry:
    player_id: int
    player_price: float
    position: str
    club_id: Optional[int] = None
    is_starting: bool = False

    @property
    def category(self) -> Position:
        return position_category(self.position)


@dataclass
class LineupSnapshot:
    starting: list
    captain: Optional[int] = None
    vice_captain: Optional[int] = None
    set_at: Optional[datetime] = None
    is_default: bool = False

    def to_dict(self) -> dict:
        return {
            "starting": list(self.starting),
            "captain": self.captain,
            "vice_captain": self.vice_captain,
            "set_at": to_iso(self.set_at),
            "is_default": self.is_default,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "LineupSnapshot":
        return cls(
            starting=list(d.get("starting") or []),
            captain=d.get("captain"),
            vice_captain=d.get("vice_captain"),
            set_at=parse_dt(d.get("set_at")),
            is_default=bool(d.get("is_default")),
        )


@dataclass
class Contributor:
    player_id: int
    points: int
    counted_points: int
    is_starting: bool = False
    is_captain: bool = False
    is_vice: bool = False


@dataclass
class MatchPoints:
    points: int
    gameweek: Optional[int] = None
    contributors: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict) -> "MatchPoints":
        return cls(
            points=d.get("points", 0),
            gameweek=d.get("gameweek"),
            contributors=[Contributor(**c) for c in d.get("contributors") or []],
        )


@dataclass
class TransferQuota:
    last_reset_gw: Optional[int] = None
    used_in_gw: int = 0


@dataclass
class FantasyTeam:
    id: Optional[int]
    user_id: str
    team_name: str
    roster: list = field(default_factory=list)
    team_logo: Optional[str] = None
    competition_id: Optional[int] = None
    budget: float = 150.0
    points: int = 0
    captain_id: Optional[int] = None
    vice_captain_id: Optional[int] = None
    effective_gameweek: Optional[int] = None
    transfers: TransferQuota = field(default_factory=TransferQuota)
    gameweek_points: dict = field(default_factory=dict)  # gw number -> points
    match_points: dict = field(default_factory=dict)  # match id -> MatchPoints
    lineup_snapshots: dict = field(default_factory=dict)  # GameweekKey -> LineupSnapshot
    last_lineup_set_at: Optional[datetime] = None
    version: int = 1
    created_at: Optional[datetime] = None

    def entry_for(self, player_id) -> Optional[RosterEntry]:
        for entry in self.roster:
            if entry.player_id == player_id:
                return entry
        return None

    def player_ids(self) -> list:
        return [e.player_id for e in self.roster]

    def starting_ids(self) -> list:
        return [e.player_id for e in self.roster if e.is_starting]

    @classmethod
    def from_row(cls, row) -> "FantasyTeam":
        r = dict(row)
        return cls(
            id=r["id"],
            user_id=r["user_id"],
            team_name=r["team_name"],
            team_logo=r["team_logo"],
            competition_id=r["competition_id"],
            budget=r["budget"],
            points=r["points"],
            captain_id=r["captain_id"],
            vice_captain_id=r["vice_captain_id"],
            effective_gameweek=r["effective_gameweek"],
            transfers=TransferQuota(r["transfers_last_reset_gw"], r["transfers_used_in_gw"]),
            roster=[RosterEntry(**e) for e in json.loads(r["roster_json"])],
            gameweek_points={int(k): v for k, v in json.loads(r["gameweek_points_json"]).items()},
            match_points={
                int(k): MatchPoints.from_dict(v) for k, v in json.loads(r["match_points_json"]).items()
            },
            lineup_snapshots={
                gameweek_key(k): LineupSnapshot.from_dict(v)
                for k, v in json.loads(r["lineup_snapshots_json"]).items()
            },
            last_lineup_set_at=parse_dt(r["last_lineup_set_at"]),
            version=r["version"],
            created_at=parse_dt(r["created_at"]),
        )

    def to_row(self) -> dict:
        return {
            "user_id": self.user_id,
            "team_name": self.team_name,
            "team_logo": self.team_logo,
            "competition_id": self.competition_id,
            "budget": self.budget,
            "points": self.points,
            "captain_id": self.captain_id,
            "vice_captain_id": self.vice_captain_id,
            "effective_gameweek": self.effective_gameweek,
            "transfers_last_reset_gw": self.transfers.last_reset_gw,
            "transfers_used_in_gw": self.transfers.used_in_gw,
            "roster_json": json.dumps([asdict(e) for e in self.roster]),
            "gameweek_points_json": json.dumps({str(k): v for k, v in self.gameweek_points.items()}),
            "match_points_json": json.dumps({str(k): asdict(v) for k, v in self.match_points.items()}),
            "lineup_snapshots_json": json.dumps(
                {str(k): v.to_dict() for k, v in self.lineup_snapshots.items()}
            ),
            "last_lineup_set_at": to_iso(self.last_lineup_set_at),
            "created_at": to_iso(self.created_at or utcnow()),
        }

    def to_dict(self) -> dict:
        """Response shape for the HTTP layer."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "team_name": self.team_name,
            "team_logo": self.team_logo,
            "competition_id": self.competition_id,
            "budget": self.budget,
            "points": self.points,
            "captain": self.captain_id,
            "vice_captain": self.vice_captain_id,
            "effective_gameweek": self.effective_gameweek,
            "transfers": asdict(self.transfers),
            "players": [asdict(e) for e in self.roster],
            "gameweek_points": dict(self.gameweek_points),
            "match_points": {k: asdict(v) for k, v in self.match_points.items()},
            "lineup_snapshots": {str(k): v.to_dict() for k, v in self.lineup_snapshots.items()},
            "last_lineup_set_at": to_iso(self.last_lineup_set_at),
            "created_at": to_iso(self.created_at),
        }
