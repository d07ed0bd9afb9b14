"""
Schema migrations for the persisted progress document.

Migrations operate on the raw JSON dict before validation. Each entry in
MIGRATIONS upgrades a document from its key version to the next one.
"""

import logging
from datetime import date
from typing import Any, Callable

from aiplayground.schemas import SCHEMA_VERSION, StreakData

from .streak import compute_streak


logger = logging.getLogger(__name__)

Migration = Callable[[dict[str, Any]], dict[str, Any]]


class MigrationError(ValueError):
    """No migration path from the stored version to the current one."""


def _v1_to_v2(doc: dict[str, Any]) -> dict[str, Any]:
    """
    v1 stored one aggregated log row per day and an empty string for a
    streak that never started. v2 logs one entry per learner action.

    Rows that are not objects are dropped. A streak that is not an object
    is rebuilt from the remaining log days.
    """
    entries = []
    rows = doc.get("activityLog")
    for row in rows if isinstance(rows, list) else []:
        if not isinstance(row, dict):
            continue
        day = row.get("date")
        if not isinstance(day, str) or not day:
            continue
        modules = row.get("modulesWorkedOn")
        if not isinstance(modules, list) or not modules:
            modules = [""]
        for module_id in modules:
            entries.append({
                "type": "session",
                "date": day,
                "timestamp": f"{day}T00:00:00",
                "moduleId": module_id if isinstance(module_id, str) else "",
            })

    streak = doc.get("streak")
    if isinstance(streak, dict):
        streak = dict(streak)
        if not streak.get("lastActiveDate"):
            streak["lastActiveDate"] = None
    else:
        streak = _rebuild_streak(entries)

    return {**doc, "version": 2, "streak": streak, "activityLog": entries}


def _rebuild_streak(entries: list[dict[str, Any]]) -> dict[str, Any]:
    """Streak as of the last logged day; load-time decay applies the real date."""
    days = set()
    for entry in entries:
        try:
            days.add(date.fromisoformat(entry["date"]))
        except ValueError:
            continue
    if not days:
        return StreakData().model_dump(mode="json", by_alias=True)
    streak = compute_streak(days, max(days))
    return streak.model_dump(mode="json", by_alias=True)


MIGRATIONS: dict[int, Migration] = {
    1: _v1_to_v2,
}


def migrate(doc: dict[str, Any]) -> dict[str, Any]:
    """
    Upgrade a raw document to SCHEMA_VERSION, applying migrations in order.

    Raises:
        MigrationError: Version missing, newer than supported, or with a gap
            in the migration chain
    """
    version = doc.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise MigrationError(f"Progress document has no usable version: {version!r}")
    if version > SCHEMA_VERSION:
        raise MigrationError(
            f"Progress document version {version} is newer than supported {SCHEMA_VERSION}"
        )

    while version < SCHEMA_VERSION:
        step = MIGRATIONS.get(version)
        if step is None:
            raise MigrationError(f"No migration from version {version}")
        logger.info(f"Migrating progress document v{version} -> v{version + 1}")
        doc = step(doc)
        version = doc["version"]

    return doc
