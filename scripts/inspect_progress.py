#!/usr/bin/env python3
"""
inspect_progress.py - Show, export or reset a learner's stored progress.

Usage:
  python scripts/inspect_progress.py
  python scripts/inspect_progress.py --calendar --days 28
  python scripts/inspect_progress.py --export progress.json
  python scripts/inspect_progress.py --reset
  python scripts/inspect_progress.py --db /tmp/progress.db
"""

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from aiplayground.classroom import Navigator, ProgressStore, SQLiteStorage, default_registry
from aiplayground.config import EngineConfig

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

LEVEL_MARKS = " ░▒▓█"


def print_summary(navigator: Navigator):
    summary = navigator.get_progress_summary()
    streak = summary["streak"]

    print("=" * 50)
    print("PROGRESS")
    print("=" * 50)
    print(f"Modules completed: {summary['modules_completed']} / {summary['total_modules']}")
    print(f"Steps completed:   {summary['steps_completed']}")
    print(f"Quizzes answered:  {summary['quizzes_answered']}")
    print(f"Challenges won:    {summary['challenges_completed']}")
    print(f"Streak:            {streak['current']} (longest {streak['longest']})")
    print(f"Badges:            {summary['badges']}")
    print()
    for tier in summary["tiers"]:
        lock = " " if tier["unlocked"] else "🔒"
        print(f"{lock} Tier {tier['id']}: {tier['title']} ({tier['completed']}/{tier['total']})")
    if summary["recommended_module_id"]:
        print(f"\nNext up: {summary['recommended_module_id']}")


def print_calendar(store: ProgressStore, days: int):
    """One row per weekday, one column per week."""
    cells = store.activity_counts(days)
    rows = ["" for _ in range(7)]
    for i, cell in enumerate(cells):
        rows[i % 7] += LEVEL_MARKS[cell["level"]]
    total = sum(cell["count"] for cell in cells)
    print(f"\nActivity, last {days} days ({total} entries):")
    for row in rows:
        print(f"  {row}")


def main():
    config = EngineConfig.from_env()

    parser = argparse.ArgumentParser(
        description="Inspect stored learner progress",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=config.progress_db,
        help="Progress database path"
    )
    parser.add_argument(
        "--calendar",
        action="store_true",
        help="Show the activity calendar"
    )
    parser.add_argument(
        "--days",
        type=int,
        default=config.activity_window_days,
        help="Activity calendar window in days"
    )
    parser.add_argument(
        "--export",
        type=Path,
        default=None,
        help="Write the progress document as JSON to this path"
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Reset progress to defaults (previous document is backed up)"
    )
    args = parser.parse_args()
    logging.getLogger().setLevel(config.log_level)

    registry = default_registry()
    with ProgressStore(registry, SQLiteStorage(args.db), storage_key=config.storage_key) as store:
        if args.reset:
            store.reset_progress()
            logger.info(f"Progress reset in {args.db}")
            return

        if args.export:
            args.export.write_text(store.export_json(), encoding="utf-8")
            logger.info(f"Exported progress to: {args.export}")

        print_summary(Navigator(registry, store))
        if args.calendar:
            print_calendar(store, args.days)


if __name__ == "__main__":
    main()
