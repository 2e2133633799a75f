#!/usr/bin/env python3
"""
Run the daily accumulator pipeline and print the resulting tickets.

Usage:
    python scripts/run_accumulators.py                  # current season, commit
    python scripts/run_accumulators.py --season 2025
    python scripts/run_accumulators.py --dry-run        # print only, roll back
"""

import sys
import os
import json

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dotenv import load_dotenv
load_dotenv()

import argparse
import logging

from backend.services.accumulator_builder import run_daily_accumulators
from backend.services.accumulator_engine import format_combo_ticket

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Build today's accumulators")
    parser.add_argument("--season", help="Season label, e.g. 2025 for 2025/26 (default: current)")
    parser.add_argument("--dry-run", action="store_true", help="Print combos without committing")
    parser.add_argument("--json", action="store_true", help="Print the run summary as JSON")
    args = parser.parse_args()

    summary = run_daily_accumulators(season=args.season, commit=not args.dry_run)
    combos = summary.pop("combos")

    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        print(
            f"\nSeason {summary['season']}: {summary['dominant_teams']} dominant teams, "
            f"{summary['picks_generated']} picks, {summary['combos_built']} accumulators\n"
        )
        for combo in combos:
            print(format_combo_ticket(combo))
            print()

    for err in summary["errors"]:
        logger.warning("Run error: %s", err)

    return 0 if summary["status"] == "ok" else 1


if __name__ == "__main__":
    sys.exit(main())
