"""
Database layer - SQLite, one row per document with JSON columns for embedded lists.
"""

import sqlite3
import os
from contextlib import contextmanager

DB_PATH = os.environ.get("DB_PATH", "/app/data/fantasy.db")


def get_db():
    conn = sqlite3.connect(DB_PATH, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def db_session():
    conn = get_db()
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


@contextmanager
def db_transaction():
    """Read-modify-write unit holding the write lock from the first read.

    Everything done on the connection lands together or not at all.
    """
    conn = get_db()
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db():
    with db_session() as conn:
        conn.executescript("""
        CREATE TABLE IF NOT EXISTS clubs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            short_name TEXT,
            played INTEGER DEFAULT 0,
            wins INTEGER DEFAULT 0,
            draws INTEGER DEFAULT 0,
            losses INTEGER DEFAULT 0,
            goals_for INTEGER DEFAULT 0,
            goals_against INTEGER DEFAULT 0,
            points INTEGER DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS players (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            club_id INTEGER REFERENCES clubs(id),
            position TEXT NOT NULL CHECK(position IN
                ('GK','CB','LB','RB','LWB','RWB','CM','DM','AM','LM','RM','ST','CF','LW','RW','FW')),
            price REAL NOT NULL DEFAULT 7 CHECK(price >= 7 AND price <= 12),
            goals INTEGER DEFAULT 0,
            assists INTEGER DEFAULT 0,
            total_yellow_cards INTEGER DEFAULT 0,
            total_red_cards INTEGER DEFAULT 0,
            match_ban INTEGER DEFAULT 0,
            total_fantasy_points INTEGER DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS player_performances (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            player_id INTEGER NOT NULL REFERENCES players(id),
            match_id INTEGER NOT NULL REFERENCES matches(id),
            goals INTEGER DEFAULT 0,
            assists INTEGER DEFAULT 0,
            yellow_cards INTEGER DEFAULT 0,
            red_card INTEGER DEFAULT 0,
            man_of_the_match INTEGER DEFAULT 0,
            UNIQUE(player_id, match_id)
        );

        CREATE TABLE IF NOT EXISTS player_fantasy_stats (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            player_id INTEGER NOT NULL REFERENCES players(id),
            match_id INTEGER NOT NULL REFERENCES matches(id),
            gameweek INTEGER,
            points INTEGER NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(player_id, match_id)
        );

        CREATE TABLE IF NOT EXISTS gameweeks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            competition_id INTEGER,
            number INTEGER NOT NULL,
            deadline TEXT,
            stage TEXT NOT NULL DEFAULT 'regular'
                CHECK(stage IN ('regular','playoff','semifinal','final')),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(competition_id, number)
        );

        CREATE TABLE IF NOT EXISTS matches (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            home_club_id INTEGER NOT NULL REFERENCES clubs(id),
            away_club_id INTEGER NOT NULL REFERENCES clubs(id),
            kickoff TEXT,
            venue TEXT,
            lineups_json TEXT NOT NULL DEFAULT '{"home": [], "away": []}',
            bench_json TEXT NOT NULL DEFAULT '{"home": [], "away": []}',
            goals_json TEXT NOT NULL DEFAULT '[]',
            cards_json TEXT NOT NULL DEFAULT '[]',
            substitutions_json TEXT NOT NULL DEFAULT '[]',
            man_of_the_match_id INTEGER,
            home_score INTEGER DEFAULT 0,
            away_score INTEGER DEFAULT 0,
            result TEXT,
            fulltime INTEGER DEFAULT 0,
            gameweek INTEGER,
            fantasy_processed INTEGER DEFAULT 0,
            fantasy_team_points_json TEXT NOT NULL DEFAULT '{}',
            price_updates_applied INTEGER DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS fixtures (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            gameweek_id INTEGER REFERENCES gameweeks(id),
            competition_id INTEGER,
            home_club_id INTEGER REFERENCES clubs(id),
            away_club_id INTEGER REFERENCES clubs(id),
            match_id INTEGER UNIQUE REFERENCES matches(id),
            bye INTEGER DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS fantasy_teams (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL UNIQUE,
            team_name TEXT NOT NULL,
            team_logo TEXT,
            competition_id INTEGER,
            budget REAL NOT NULL DEFAULT 150,
            points INTEGER NOT NULL DEFAULT 0,
            captain_id INTEGER,
            vice_captain_id INTEGER,
            effective_gameweek INTEGER,
            transfers_last_reset_gw INTEGER,
            transfers_used_in_gw INTEGER NOT NULL DEFAULT 0,
            roster_json TEXT NOT NULL DEFAULT '[]',
            gameweek_points_json TEXT NOT NULL DEFAULT '{}',
            match_points_json TEXT NOT NULL DEFAULT '{}',
            lineup_snapshots_json TEXT NOT NULL DEFAULT '{}',
            last_lineup_set_at TEXT,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_players_club ON players(club_id);
        CREATE INDEX IF NOT EXISTS idx_fixtures_gameweek ON fixtures(gameweek_id);
        CREATE INDEX IF NOT EXISTS idx_matches_pending ON matches(fulltime, fantasy_processed);
        """)
