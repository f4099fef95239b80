"""
Scheduled jobs, run by an external scheduler (cron, systemd timer, k8s CronJob).

Usage:
    python jobs.py deadlines   # fill in gameweek deadlines
    python jobs.py prices      # post-match price sweep
    python jobs.py points      # retry fantasy points for unprocessed finished matches
    python jobs.py all

Every job is idempotent, so overlapping or repeated runs are harmless.
"""

import logging
import os
import sys

from database import db_transaction, init_db
from gameweeks import set_deadlines
from points import process_pending_matches
from pricing import apply_price_updates

logger = logging.getLogger("jobs")


def run_deadlines() -> list[int]:
    with db_transaction() as conn:
        updated = set_deadlines(conn)
    if not updated:
        logger.info("No gameweek ready for a deadline")
    return updated


def run_prices() -> int:
    return apply_price_updates()


def run_points() -> list[int]:
    done = process_pending_matches()
    if done:
        logger.info(f"Distributed points for matches {done}")
    return done


JOBS = {
    "deadlines": run_deadlines,
    "prices": run_prices,
    "points": run_points,
}


def main(argv: list) -> int:
    names = argv or ["all"]
    if names == ["all"]:
        names = list(JOBS)
    unknown = [n for n in names if n not in JOBS]
    if unknown:
        print(f"Unknown job(s): {', '.join(unknown)}. Choose from: {', '.join(JOBS)}, all")
        return 2

    init_db()
    for name in names:
        logger.info(f"Running job: {name}")
        JOBS[name]()
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    sys.exit(main(sys.argv[1:]))
