"""
Read/write operations for every document. No business rules here.

Shared documents (players, matches) are changed through single atomic
UPDATE statements so concurrent sweeps and admin edits never lose writes.
Fantasy teams are saved with an optimistic version check.
"""

import json
import sqlite3
from datetime import datetime
from typing import Optional

from errors import ConflictError
from events import apply_scoreboard
from models import (
    Club, Player, Match, Gameweek, Fixture, FantasyTeam, to_iso,
)

PERFORMANCE_COUNTERS = ("goals", "assists", "yellow_cards")
PERFORMANCE_FLAGS = ("red_card", "man_of_the_match")
PLAYER_COUNTERS = ("goals", "assists", "total_yellow_cards", "total_red_cards", "match_ban")


# ─── Clubs ───

def create_club(conn, name: str, short_name: Optional[str] = None) -> int:
    cur = conn.execute("INSERT INTO clubs (name, short_name) VALUES (?, ?)", (name, short_name))
    return cur.lastrowid


def get_club(conn, club_id: int) -> Optional[Club]:
    row = conn.execute("SELECT * FROM clubs WHERE id = ?", (club_id,)).fetchone()
    return Club.from_row(row) if row else None


def list_clubs(conn) -> list[Club]:
    rows = conn.execute("SELECT * FROM clubs ORDER BY points DESC, goals_for - goals_against DESC").fetchall()
    return [Club.from_row(r) for r in rows]


def record_result(conn, club_id: int, goals_for: int, goals_against: int):
    if goals_for > goals_against:
        win, draw, loss, pts = 1, 0, 0, 3
    elif goals_for == goals_against:
        win, draw, loss, pts = 0, 1, 0, 1
    else:
        win, draw, loss, pts = 0, 0, 1, 0
    conn.execute("""
        UPDATE clubs SET played = played + 1, wins = wins + ?, draws = draws + ?,
            losses = losses + ?, goals_for = goals_for + ?, goals_against = goals_against + ?,
            points = points + ?
        WHERE id = ?
    """, (win, draw, loss, goals_for, goals_against, pts, club_id))


# ─── Players ───

def create_player(conn, name: str, club_id: Optional[int], position: str, price: float = 7.0) -> int:
    cur = conn.execute(
        "INSERT INTO players (name, club_id, position, price) VALUES (?, ?, ?, ?)",
        (name, club_id, position.upper(), price),
    )
    return cur.lastrowid


def get_player(conn, player_id: int) -> Optional[Player]:
    row = conn.execute("SELECT * FROM players WHERE id = ?", (player_id,)).fetchone()
    return Player.from_row(row) if row else None


def get_players(conn, player_ids) -> dict[int, Player]:
    ids = list(dict.fromkeys(player_ids))
    if not ids:
        return {}
    marks = ",".join("?" * len(ids))
    rows = conn.execute(f"SELECT * FROM players WHERE id IN ({marks})", ids).fetchall()
    return {r["id"]: Player.from_row(r) for r in rows}


def list_players(conn, position: Optional[str] = None, club_id: Optional[int] = None) -> list[Player]:
    q = "SELECT * FROM players WHERE 1=1"
    params = []
    if position:
        q += " AND position = ?"
        params.append(position.upper())
    if club_id:
        q += " AND club_id = ?"
        params.append(club_id)
    q += " ORDER BY price DESC"
    return [Player.from_row(r) for r in conn.execute(q, params).fetchall()]


def bump_player_counters(conn, player_id: int, **deltas):
    parts = []
    params = []
    for column, delta in deltas.items():
        if column not in PLAYER_COUNTERS:
            raise ValueError(f"unknown player counter: {column}")
        parts.append(f"{column} = {column} + ?")
        params.append(delta)
    if not parts:
        return
    params.append(player_id)
    conn.execute(f"UPDATE players SET {', '.join(parts)} WHERE id = ?", params)


def adjust_player_price(conn, player_id: int, delta: float, min_price: float, max_price: float) -> int:
    cur = conn.execute(
        "UPDATE players SET price = ROUND(MIN(MAX(price + ?, ?), ?), 1) WHERE id = ?",
        (delta, min_price, max_price, player_id),
    )
    return cur.rowcount


def get_performance(conn, player_id: int, match_id: int) -> Optional[dict]:
    row = conn.execute(
        "SELECT * FROM player_performances WHERE player_id = ? AND match_id = ?",
        (player_id, match_id),
    ).fetchone()
    return dict(row) if row else None


def bump_performance(conn, player_id: int, match_id: int, **changes) -> dict:
    """Create the (player, match) performance record if needed, then apply
    counter increments and flag sets in one statement each."""
    conn.execute(
        "INSERT INTO player_performances (player_id, match_id) VALUES (?, ?) "
        "ON CONFLICT(player_id, match_id) DO NOTHING",
        (player_id, match_id),
    )
    parts = []
    params = []
    for column, value in changes.items():
        if column in PERFORMANCE_COUNTERS:
            parts.append(f"{column} = {column} + ?")
            params.append(value)
        elif column in PERFORMANCE_FLAGS:
            parts.append(f"{column} = ?")
            params.append(int(bool(value)))
        else:
            raise ValueError(f"unknown performance field: {column}")
    if parts:
        params.extend([player_id, match_id])
        conn.execute(
            f"UPDATE player_performances SET {', '.join(parts)} WHERE player_id = ? AND match_id = ?",
            params,
        )
    return get_performance(conn, player_id, match_id)


def record_fantasy_stat(conn, player_id: int, match_id: int, gameweek: Optional[int], points: int) -> int:
    """Store a player's points for a match and move the season total.

    Returns the amount the season total moved: the full points on first
    record, the correction on a changed re-run, zero on an identical re-run.
    """
    row = conn.execute(
        "SELECT points FROM player_fantasy_stats WHERE player_id = ? AND match_id = ?",
        (player_id, match_id),
    ).fetchone()
    if row is None:
        conn.execute(
            "INSERT INTO player_fantasy_stats (player_id, match_id, gameweek, points) VALUES (?, ?, ?, ?)",
            (player_id, match_id, gameweek, points),
        )
        delta = points
    else:
        delta = points - row["points"]
        conn.execute(
            "UPDATE player_fantasy_stats SET points = ?, gameweek = ? WHERE player_id = ? AND match_id = ?",
            (points, gameweek, player_id, match_id),
        )
    if delta:
        conn.execute(
            "UPDATE players SET total_fantasy_points = total_fantasy_points + ? WHERE id = ?",
            (delta, player_id),
        )
    return delta


def fantasy_stats_for_player(conn, player_id: int) -> list[dict]:
    rows = conn.execute(
        "SELECT match_id, gameweek, points, created_at FROM player_fantasy_stats "
        "WHERE player_id = ? ORDER BY id",
        (player_id,),
    ).fetchall()
    return [dict(r) for r in rows]


# ─── Gameweeks & Fixtures ───

def create_gameweek(conn, number: int, deadline: Optional[datetime] = None, stage: str = "regular",
                    competition_id: Optional[int] = None) -> int:
    cur = conn.execute(
        "INSERT INTO gameweeks (number, deadline, stage, competition_id) VALUES (?, ?, ?, ?)",
        (number, to_iso(deadline), stage, competition_id),
    )
    return cur.lastrowid


def get_gameweek(conn, gameweek_id: int) -> Optional[Gameweek]:
    row = conn.execute("SELECT * FROM gameweeks WHERE id = ?", (gameweek_id,)).fetchone()
    return Gameweek.from_row(row) if row else None


def list_gameweeks(conn) -> list[Gameweek]:
    rows = conn.execute("SELECT * FROM gameweeks ORDER BY number").fetchall()
    return [Gameweek.from_row(r) for r in rows]


def gameweeks_without_deadline(conn) -> list[Gameweek]:
    rows = conn.execute("SELECT * FROM gameweeks WHERE deadline IS NULL ORDER BY number").fetchall()
    return [Gameweek.from_row(r) for r in rows]


def set_gameweek_deadline(conn, gameweek_id: int, deadline: datetime) -> bool:
    cur = conn.execute(
        "UPDATE gameweeks SET deadline = ? WHERE id = ? AND deadline IS NULL",
        (to_iso(deadline), gameweek_id),
    )
    return cur.rowcount == 1


def create_fixture(conn, gameweek_id: int, home_club_id: Optional[int], away_club_id: Optional[int],
                   match_id: Optional[int] = None, bye: bool = False,
                   competition_id: Optional[int] = None) -> int:
    cur = conn.execute(
        "INSERT INTO fixtures (gameweek_id, home_club_id, away_club_id, match_id, bye, competition_id) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        (gameweek_id, home_club_id, away_club_id, match_id, int(bye), competition_id),
    )
    return cur.lastrowid


def fixtures_for_gameweek(conn, gameweek_id: int) -> list[Fixture]:
    rows = conn.execute("SELECT * FROM fixtures WHERE gameweek_id = ? ORDER BY id", (gameweek_id,)).fetchall()
    return [Fixture.from_row(r) for r in rows]


def fixture_for_match(conn, match_id: int) -> Optional[Fixture]:
    row = conn.execute("SELECT * FROM fixtures WHERE match_id = ?", (match_id,)).fetchone()
    return Fixture.from_row(row) if row else None


# ─── Matches ───

def create_match(conn, home_club_id: int, away_club_id: int, kickoff: Optional[datetime] = None,
                 venue: Optional[str] = None) -> int:
    cur = conn.execute(
        "INSERT INTO matches (home_club_id, away_club_id, kickoff, venue, result) VALUES (?, ?, ?, ?, '0-0')",
        (home_club_id, away_club_id, to_iso(kickoff), venue),
    )
    return cur.lastrowid


def get_match(conn, match_id: int) -> Optional[Match]:
    row = conn.execute("SELECT * FROM matches WHERE id = ?", (match_id,)).fetchone()
    return Match.from_row(row) if row else None


def get_matches(conn, match_ids) -> list[Match]:
    ids = [m for m in match_ids if m is not None]
    if not ids:
        return []
    marks = ",".join("?" * len(ids))
    rows = conn.execute(f"SELECT * FROM matches WHERE id IN ({marks})", ids).fetchall()
    return [Match.from_row(r) for r in rows]


def list_matches(conn) -> list[Match]:
    rows = conn.execute("SELECT * FROM matches ORDER BY kickoff, id").fetchall()
    return [Match.from_row(r) for r in rows]


def save_match(conn, match: Match):
    """Persist the whole match document. The scoreboard is always derived
    from the goal log here, never taken from the caller."""
    apply_scoreboard(match)
    row = match.to_row()
    columns = [c for c in row if c != "id"]
    assignments = ", ".join(f"{c} = ?" for c in columns)
    conn.execute(
        f"UPDATE matches SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
        [row[c] for c in columns] + [match.id],
    )


def mark_match_processed(conn, match_id: int, gameweek: Optional[int], team_points: dict):
    conn.execute(
        "UPDATE matches SET fantasy_processed = 1, gameweek = COALESCE(?, gameweek), "
        "fantasy_team_points_json = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
        (gameweek, json.dumps({str(k): v for k, v in team_points.items()}), match_id),
    )


def mark_prices_applied(conn, match_id: int):
    conn.execute("UPDATE matches SET price_updates_applied = 1 WHERE id = ?", (match_id,))


def unprocessed_fulltime_matches(conn) -> list[int]:
    rows = conn.execute(
        "SELECT id FROM matches WHERE fulltime = 1 AND fantasy_processed = 0 ORDER BY kickoff, id"
    ).fetchall()
    return [r["id"] for r in rows]


def unpriced_fulltime_matches(conn) -> list[int]:
    rows = conn.execute(
        "SELECT id FROM matches WHERE fulltime = 1 AND price_updates_applied = 0 ORDER BY kickoff, id"
    ).fetchall()
    return [r["id"] for r in rows]


# ─── Fantasy teams ───

def insert_fantasy_team(conn, team: FantasyTeam) -> int:
    row = team.to_row()
    columns = list(row)
    try:
        cur = conn.execute(
            f"INSERT INTO fantasy_teams ({', '.join(columns)}) VALUES ({','.join('?' * len(columns))})",
            [row[c] for c in columns],
        )
    except sqlite3.IntegrityError as e:
        raise ConflictError("Team already created", reason="team_exists") from e
    team.id = cur.lastrowid
    team.version = 1
    return team.id


def save_fantasy_team(conn, team: FantasyTeam):
    """Write the team back only if nobody else saved it since it was read."""
    row = team.to_row()
    columns = list(row)
    assignments = ", ".join(f"{c} = ?" for c in columns)
    cur = conn.execute(
        f"UPDATE fantasy_teams SET {assignments}, version = version + 1 WHERE id = ? AND version = ?",
        [row[c] for c in columns] + [team.id, team.version],
    )
    if cur.rowcount != 1:
        raise ConflictError("Fantasy team was modified concurrently, reload and retry")
    team.version += 1


def get_fantasy_team(conn, team_id: int) -> Optional[FantasyTeam]:
    row = conn.execute("SELECT * FROM fantasy_teams WHERE id = ?", (team_id,)).fetchone()
    return FantasyTeam.from_row(row) if row else None


def get_fantasy_team_by_user(conn, user_id: str) -> Optional[FantasyTeam]:
    row = conn.execute("SELECT * FROM fantasy_teams WHERE user_id = ?", (str(user_id),)).fetchone()
    return FantasyTeam.from_row(row) if row else None


def list_fantasy_teams(conn, user_id: Optional[str] = None, competition_id: Optional[int] = None) -> list[FantasyTeam]:
    q = "SELECT * FROM fantasy_teams WHERE 1=1"
    params = []
    if user_id:
        q += " AND user_id = ?"
        params.append(str(user_id))
    if competition_id:
        q += " AND competition_id = ?"
        params.append(competition_id)
    q += " ORDER BY points DESC, id"
    return [FantasyTeam.from_row(r) for r in conn.execute(q, params).fetchall()]


def teams_holding_players(conn, player_ids) -> list[FantasyTeam]:
    ids = list(dict.fromkeys(player_ids))
    if not ids:
        return []
    marks = ",".join("?" * len(ids))
    rows = conn.execute(f"""
        SELECT * FROM fantasy_teams WHERE id IN (
            SELECT DISTINCT ft.id FROM fantasy_teams ft, json_each(ft.roster_json) AS entry
            WHERE json_extract(entry.value, '$.player_id') IN ({marks})
        ) ORDER BY id
    """, ids).fetchall()
    return [FantasyTeam.from_row(r) for r in rows]


def delete_fantasy_team(conn, team_id: int) -> bool:
    cur = conn.execute("DELETE FROM fantasy_teams WHERE id = ?", (team_id,))
    return cur.rowcount == 1
