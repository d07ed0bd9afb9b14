"""
Streak and activity accounting.

Pure functions over StreakData and the activity log; the progress store
calls them after every activity write.
"""

from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable

from aiplayground.schemas import ActivityEntry, StreakData


# ── Streak ────────────────────────────────────────────────────────────────────

def advance_streak(streak: StreakData, today: date) -> tuple[StreakData, bool]:
    """
    Apply one day of activity to the streak.

    Same-day activity changes nothing. Activity the day after the last
    active date extends the streak; any larger gap (or no prior activity)
    restarts it at 1. Entries dated before the last active date leave the
    streak alone.

    Returns:
        (new streak, True if this call started or extended the streak)
    """
    last = streak.last_active_date

    if last == today:
        return streak, False
    if last is not None and today < last:
        return streak, False

    if last is not None and last == today - timedelta(days=1):
        current = streak.current + 1
    else:
        current = 1

    return StreakData(
        current=current,
        longest=max(streak.longest, current),
        last_active_date=today,
    ), True


def decay_streak(streak: StreakData, today: date) -> StreakData:
    """Zero the current streak if the last active day is before yesterday."""
    last = streak.last_active_date
    if streak.current == 0:
        return streak
    if last is None or last < today - timedelta(days=1):
        return StreakData(current=0, longest=streak.longest, last_active_date=last)
    return streak


def compute_streak(active: Iterable[date], today: date) -> StreakData:
    """
    Rebuild streak data from the set of active days.

    The current streak counts back from today, or from yesterday if today
    has no activity yet.
    """
    days = set(active)
    if not days:
        return StreakData()

    start = today if today in days else today - timedelta(days=1)
    current = 0
    check = start
    while check in days:
        current += 1
        check -= timedelta(days=1)

    longest, run, prev = 0, 0, None
    for d in sorted(days):
        if prev is None or d == prev + timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        prev = d

    return StreakData(
        current=current,
        longest=max(longest, current),
        last_active_date=max(days),
    )


# ── Activity calendar ─────────────────────────────────────────────────────────

def daily_counts(log: Iterable[ActivityEntry]) -> dict[date, int]:
    counts: dict[date, int] = defaultdict(int)
    for entry in log:
        counts[entry.date] += 1
    return dict(counts)


def _level(n: int, max_day: int) -> int:
    if n == 0:
        return 0
    ratio = n / max_day
    if ratio <= 0.25:
        return 1
    if ratio <= 0.50:
        return 2
    if ratio <= 0.75:
        return 3
    return 4


def activity_window(
    log: Iterable[ActivityEntry],
    today: date,
    days: int = 84,
) -> list[dict]:
    """
    Per-day activity counts for the trailing window ending today.

    Each cell:
        date   : "YYYY-MM-DD"
        count  : number of activity entries that day
        level  : 0-4, relative to the busiest day in the window
    """
    start = today - timedelta(days=days - 1)
    counts = {d: n for d, n in daily_counts(log).items() if start <= d <= today}
    max_day = max(counts.values(), default=1)

    cells = []
    current = start
    while current <= today:
        count = counts.get(current, 0)
        cells.append({
            "date": current.isoformat(),
            "count": count,
            "level": _level(count, max_day),
        })
        current += timedelta(days=1)
    return cells


def already_logged(log: list[ActivityEntry], entry: ActivityEntry) -> bool:
    """True if an entry for the same action on the same day is in the log."""
    return any(existing.same_action(entry) for existing in reversed(log))
