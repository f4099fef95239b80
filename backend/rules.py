"""
Fantasy League Rules
All squad, lineup, transfer, scoring and pricing rules in one place.
"""

# Squad composition (checked at creation, squad replacement and after transfers)
SQUAD_RULES = {
    "squad_size": 15,
    "budget": 150.0,
    "max_per_club": 3,
    "gk_count": 2,
    "def_range": (4, 5),
    "mid_range": (4, 5),
    "fwd_range": (2, 3),
}

# Starting XI formation
LINEUP_RULES = {
    "starting_size": 11,
    "gk_count": 1,
    "def_range": (3, 5),
    "mid_range": (3, 5),
    "fwd_range": (1, 3),
}

# Free transfers reset every gameweek, no carry over, no paid hits
FREE_TRANSFERS_PER_GAMEWEEK = 3

# Deadline = earliest kickoff in the gameweek minus this many hours
DEADLINE_OFFSET_HOURS = 1

# Per-player scoring weights
SCORING = {
    "appearance_started": 2,
    "appearance_sub": 1,
    "goal": {"GK": 6, "DEF": 6, "MID": 5, "FWD": 4},
    "assist": 3,
    "man_of_the_match": 3,
    "yellow_card": -1,
    "red_card": -3,
    "clean_sheet": {"GK": 4, "DEF": 4, "MID": 1, "FWD": 0},
    "outcome": {"win": 3, "draw": 2, "loss": 1},
    "captain_multiplier": 2,
}

# Match bans handed out when cards are recorded
BANS = {
    "second_yellow": 1,
    "straight_red": 3,
}

# Post-match price movement
PRICE_RULES = {
    "min_price": 7.0,
    "max_price": 12.0,
    "default_price": 7.0,
    "clean_sheet_increase": 0.2,
    "goal_increases": [0, 0.7, 1.0, 1.5],  # index = goals, 3+ -> last
    "assist_increases": [0, 0.5, 0.8, 1.0],  # index = assists, 3 -> last
    "assist_increase_above_3": 2.0,
    "per_match_max_increase": 2.0,
}

# Fine-grained position codes -> category
POSITION_CATEGORIES = {
    "GK": "GK",
    "CB": "DEF", "LB": "DEF", "RB": "DEF", "LWB": "DEF", "RWB": "DEF",
    "CM": "MID", "DM": "MID", "AM": "MID", "LM": "MID", "RM": "MID",
    "ST": "FWD", "CF": "FWD", "LW": "FWD", "RW": "FWD", "FW": "FWD",
}

# Gameweek stage tags
STAGES = ("regular", "playoff", "semifinal", "final")

DEFAULT_LINEUP_KEY = "default"


def get_squad_rules() -> dict:
    """Get squad + lineup rules as one summary."""
    return {
        **SQUAD_RULES,
        "free_transfers": FREE_TRANSFERS_PER_GAMEWEEK,
        "lineup": LINEUP_RULES,
        "scoring": SCORING,
    }
