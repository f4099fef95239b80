"""
Fantasy League - FastAPI Backend
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional, Union

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import fantasy
import matches
import repository
from database import init_db, db_session, db_transaction
from errors import AuthorizationError, FantasyError, NotFoundError, ValidationError
from gameweeks import set_deadlines, upcoming_gameweek
from models import utcnow
from points import compute_points_for_match
from rules import POSITION_CATEGORIES, PRICE_RULES, STAGES, get_squad_rules

app = FastAPI(title="Fantasy League", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup():
    init_db()


@app.exception_handler(FantasyError)
def fantasy_error(request: Request, exc: FantasyError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "reason": exc.reason})


# ─── Caller identity ───
# Authentication happens upstream; the gateway forwards the verified identity.

@dataclass
class Caller:
    user_id: str
    is_admin: bool = False


def current_caller(x_user_id: Optional[str] = Header(None),
                   x_user_role: Optional[str] = Header(None)) -> Caller:
    if not x_user_id:
        raise HTTPException(401, "Not authenticated")
    return Caller(user_id=x_user_id, is_admin=(x_user_role or "").lower() == "admin")


def require_admin(caller: Caller):
    if not caller.is_admin:
        raise AuthorizationError("Admin only")


@app.get("/api/rules")
def get_rules():
    return get_squad_rules()


# ─── Clubs ───

class ClubCreate(BaseModel):
    name: str
    short_name: Optional[str] = None


@app.get("/api/clubs")
def get_clubs():
    with db_session() as conn:
        return [asdict(c) for c in repository.list_clubs(conn)]


@app.post("/api/clubs")
def create_club(c: ClubCreate, caller: Caller = Depends(current_caller)):
    require_admin(caller)
    with db_session() as conn:
        return {"id": repository.create_club(conn, c.name, c.short_name)}


# ─── Players ───

class PlayerCreate(BaseModel):
    name: str
    club_id: Optional[int] = None
    position: str
    price: float = PRICE_RULES["default_price"]


@app.get("/api/players")
def get_players(position: Optional[str] = None, club_id: Optional[int] = None):
    with db_session() as conn:
        return [asdict(p) for p in repository.list_players(conn, position=position, club_id=club_id)]


@app.get("/api/players/{player_id}")
def get_player(player_id: int):
    with db_session() as conn:
        player = repository.get_player(conn, player_id)
        if player is None:
            raise NotFoundError("Player not found")
        stats = repository.fantasy_stats_for_player(conn, player_id)
    return {**asdict(player), "category": player.category.value, "fantasy_stats": stats}


@app.post("/api/players")
def create_player(p: PlayerCreate, caller: Caller = Depends(current_caller)):
    require_admin(caller)
    if p.position.upper() not in POSITION_CATEGORIES:
        raise ValidationError(f"Unknown position {p.position}", reason="position")
    if not PRICE_RULES["min_price"] <= p.price <= PRICE_RULES["max_price"]:
        raise ValidationError(
            f"Price must be between {PRICE_RULES['min_price']} and {PRICE_RULES['max_price']}", reason="price")
    with db_session() as conn:
        if p.club_id is not None and repository.get_club(conn, p.club_id) is None:
            raise NotFoundError("Club not found")
        return {"id": repository.create_player(conn, p.name, p.club_id, p.position, p.price)}


# ─── Gameweeks & Fixtures ───

class GameweekCreate(BaseModel):
    number: int
    deadline: Optional[datetime] = None
    stage: str = "regular"
    competition_id: Optional[int] = None


class FixtureCreate(BaseModel):
    gameweek_id: int
    home_club_id: Optional[int] = None
    away_club_id: Optional[int] = None
    kickoff: Optional[datetime] = None
    venue: Optional[str] = None
    bye: bool = False


@app.get("/api/gameweeks")
def get_gameweeks():
    with db_session() as conn:
        gws = repository.list_gameweeks(conn)
        upcoming = upcoming_gameweek(conn, utcnow())
    return {
        "gameweeks": [asdict(gw) for gw in gws],
        "upcoming": upcoming.number if upcoming else None,
    }


@app.post("/api/gameweeks")
def create_gameweek(g: GameweekCreate, caller: Caller = Depends(current_caller)):
    require_admin(caller)
    if g.stage not in STAGES:
        raise ValidationError(f"stage must be one of {', '.join(STAGES)}", reason="stage")
    with db_session() as conn:
        return {"id": repository.create_gameweek(conn, g.number, g.deadline, g.stage, g.competition_id)}


@app.post("/api/gameweeks/deadlines")
def run_deadlines(caller: Caller = Depends(current_caller)):
    require_admin(caller)
    with db_transaction() as conn:
        return {"updated": set_deadlines(conn)}


@app.get("/api/fixtures")
def get_fixtures(gameweek_id: int):
    with db_session() as conn:
        return [asdict(f) for f in repository.fixtures_for_gameweek(conn, gameweek_id)]


@app.post("/api/fixtures")
def create_fixture(f: FixtureCreate, caller: Caller = Depends(current_caller)):
    """Create a fixture, and its match when both sides are known."""
    require_admin(caller)
    with db_session() as conn:
        if repository.get_gameweek(conn, f.gameweek_id) is None:
            raise NotFoundError("Gameweek not found")
        match_id = None
        if not f.bye and f.home_club_id and f.away_club_id:
            if f.home_club_id == f.away_club_id:
                raise ValidationError("A club cannot play itself", reason="fixture")
            if not repository.get_club(conn, f.home_club_id) or not repository.get_club(conn, f.away_club_id):
                raise NotFoundError("Club not found")
            match_id = repository.create_match(conn, f.home_club_id, f.away_club_id, f.kickoff, f.venue)
        fixture_id = repository.create_fixture(conn, f.gameweek_id, f.home_club_id, f.away_club_id,
                                               match_id=match_id, bye=f.bye)
        return {"id": fixture_id, "match_id": match_id}


# ─── Matches ───

@app.get("/api/matches/{match_id}")
def get_match(match_id: int):
    return asdict(matches.get_match(match_id))


@app.patch("/api/matches/{match_id}")
def update_match(match_id: int, update: matches.MatchUpdate, caller: Caller = Depends(current_caller)):
    return asdict(matches.update_match(match_id, update, is_admin=caller.is_admin))


@app.post("/api/matches/{match_id}/points")
def recompute_match_points(match_id: int, caller: Caller = Depends(current_caller)):
    require_admin(caller)
    return {"team_points": compute_points_for_match(match_id)}


# ─── Fantasy teams ───

class TeamCreate(BaseModel):
    team_name: str
    player_ids: list[int]
    team_logo: Optional[str] = None
    competition_id: Optional[int] = None


class TeamEdit(BaseModel):
    team_name: Optional[str] = None
    team_logo: Optional[str] = None
    player_ids: Optional[list[int]] = None


class TransferRequest(BaseModel):
    transfers: list[dict]


class LineupRequest(BaseModel):
    starting_player_ids: list[int]
    captain: int
    vice_captain: Optional[int] = None
    target: Optional[Union[int, str]] = None  # gameweek number or "default"; omitted = upcoming


class SubstituteRequest(BaseModel):
    out_player_id: int
    in_player_id: int


class CaptainRequest(BaseModel):
    captain: Optional[int] = None
    vice_captain: Optional[int] = None


@app.get("/api/fantasy/teams")
def list_teams(user_id: Optional[str] = None, competition_id: Optional[int] = None):
    return [t.to_dict() for t in fantasy.list_teams(user_id=user_id, competition_id=competition_id)]


@app.get("/api/fantasy/teams/me")
def get_my_team(caller: Caller = Depends(current_caller)):
    return fantasy.get_team_for_user(caller.user_id).to_dict()


@app.get("/api/fantasy/teams/{team_id}")
def get_team(team_id: int):
    return fantasy.get_team(team_id).to_dict()


@app.post("/api/fantasy/teams")
def create_team(req: TeamCreate, caller: Caller = Depends(current_caller)):
    team = fantasy.create_team(caller.user_id, req.team_name, req.player_ids,
                               team_logo=req.team_logo, competition_id=req.competition_id)
    return team.to_dict()


@app.patch("/api/fantasy/teams/{team_id}")
def edit_team(team_id: int, req: TeamEdit, caller: Caller = Depends(current_caller)):
    team = fantasy.edit_team(caller.user_id, team_id, team_name=req.team_name,
                             team_logo=req.team_logo, player_ids=req.player_ids)
    return team.to_dict()


@app.delete("/api/fantasy/teams/{team_id}")
def delete_team(team_id: int, caller: Caller = Depends(current_caller)):
    fantasy.delete_team(caller.user_id, team_id, is_admin=caller.is_admin)
    return {"status": "deleted"}


@app.post("/api/fantasy/teams/{team_id}/transfers")
def make_transfers(team_id: int, req: TransferRequest, caller: Caller = Depends(current_caller)):
    """Body: {"transfers": [{"out": <player id>, "in": <player id>}, ...]}"""
    try:
        pairs = [(int(t["out"]), int(t["in"])) for t in req.transfers]
    except (KeyError, TypeError, ValueError):
        raise ValidationError("Each transfer needs integer 'out' and 'in' player ids", reason="transfers")
    return fantasy.make_transfers(caller.user_id, team_id, pairs).to_dict()


@app.put("/api/fantasy/teams/{team_id}/lineup")
def set_lineup(team_id: int, req: LineupRequest, caller: Caller = Depends(current_caller)):
    team = fantasy.set_lineup(caller.user_id, team_id, req.starting_player_ids, req.captain,
                              vice_captain=req.vice_captain, target=req.target)
    return team.to_dict()


@app.post("/api/fantasy/teams/{team_id}/substitute")
def substitute(team_id: int, req: SubstituteRequest, caller: Caller = Depends(current_caller)):
    return fantasy.substitute(caller.user_id, team_id, req.out_player_id, req.in_player_id).to_dict()


@app.put("/api/fantasy/teams/{team_id}/captain")
def set_captain(team_id: int, req: CaptainRequest, caller: Caller = Depends(current_caller)):
    team = fantasy.set_captain(caller.user_id, team_id, captain=req.captain, vice_captain=req.vice_captain)
    return team.to_dict()
