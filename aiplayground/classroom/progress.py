"""
ProgressStore - Own the persisted learner progress document.

Stores one JSON document per learner under a fixed storage key:
- Per-module step completion, quiz answers, challenges
- Tier unlock state and badges
- Append-only activity log with derived streak
- User settings

Every mutation goes through the store and ends in a save. Reads never
raise: unavailable or corrupt storage degrades to the default state.
"""

import asyncio
import json
import logging
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Optional, Protocol

from pydantic import ValidationError

from aiplayground.config import DEFAULT_PROGRESS_DB, STORAGE_KEY
from aiplayground.schemas import (
    ActivityEntry,
    ActivityType,
    ModuleContent,
    ModuleProgress,
    ModuleStatus,
    ProgressState,
    TierProgress,
    UserSettings,
    create_default_progress,
)

from .badges import award_badges
from .migrations import MigrationError, migrate
from .registry import ContentRegistry
from .streak import activity_window, advance_streak, already_logged, decay_streak


logger = logging.getLogger(__name__)

STORAGE_ERRORS = (sqlite3.Error, OSError)


# -----------------------------------------------------------------------------
# Storage backends
# -----------------------------------------------------------------------------

class ProgressStorage(Protocol):
    """Key/value persistence for serialized progress documents."""

    def read(self, key: str) -> Optional[str]: ...

    def write(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class SQLiteStorage:
    """
    Key/value documents in a SQLite database (~/.aiplayground/progress.db).

    The database and table are created on first use, so constructing the
    storage never touches the disk.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path else DEFAULT_PROGRESS_DB
        self._ready = False

    def _ensure_database(self):
        """Create database and table if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS documents (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
            """)
            conn.commit()
        finally:
            conn.close()
        self._ready = True

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection."""
        if not self._ready:
            self._ensure_database()
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def read(self, key: str) -> Optional[str]:
        conn = self._get_connection()
        try:
            cursor = conn.execute("SELECT value FROM documents WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row["value"] if row else None
        finally:
            conn.close()

    def write(self, key: str, value: str) -> None:
        conn = self._get_connection()
        try:
            now = datetime.now().isoformat()
            conn.execute(
                """INSERT INTO documents (key, value, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                     value = excluded.value,
                     updated_at = excluded.updated_at""",
                (key, value, now)
            )
            conn.commit()
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM documents WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()


class MemoryStorage:
    """Dict-backed storage for tests and throwaway sessions."""

    def __init__(self, documents: Optional[dict[str, str]] = None):
        self.documents = dict(documents or {})

    def read(self, key: str) -> Optional[str]:
        return self.documents.get(key)

    def write(self, key: str, value: str) -> None:
        self.documents[key] = value

    def delete(self, key: str) -> None:
        self.documents.pop(key, None)


def backup_key(storage_key: str, label: str) -> str:
    return f"{storage_key}.backup-{label}"


# -----------------------------------------------------------------------------
# Progress store
# -----------------------------------------------------------------------------

class ProgressStore:
    """
    Single source of truth for durable learner state.

    Create one per learner and pass it to whatever needs progress; there is
    no module-level instance. Until load() (or load_async()) resolves the
    store serves a default state, and anything recorded in the meantime is
    merged into the loaded document rather than discarded.
    """

    def __init__(
        self,
        registry: ContentRegistry,
        storage: Optional[ProgressStorage] = None,
        clock: Optional[Callable[[], datetime]] = None,
        storage_key: str = STORAGE_KEY,
    ):
        """
        Initialize progress store.

        Args:
            registry: Content registry used to validate ids and find tiers
            storage: Storage backend (default: SQLite at ~/.aiplayground/progress.db)
            clock: Returns the current local time (default: datetime.now)
            storage_key: Key of the persisted document
        """
        self.registry = registry
        self.storage = storage if storage is not None else SQLiteStorage()
        self.storage_key = storage_key
        self._clock = clock or datetime.now
        self.state = create_default_progress(self._now())
        self.is_loaded = False
        self.streak_just_earned = False
        self._dirty_before_load = False
        self._closed = False

    def _now(self) -> datetime:
        return self._clock()

    def _today(self) -> date:
        return self._now().date()

    def __enter__(self) -> "ProgressStore":
        if not self.is_loaded:
            self.load()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """End the store's lifecycle; later saves are refused."""
        self._closed = True
        self.streak_just_earned = False

    # -------------------------------------------------------------------------
    # Load / Save
    # -------------------------------------------------------------------------

    def load(self) -> ProgressState:
        """
        Read the persisted document.

        Missing -> default state. Older version -> migrated. Corrupt or
        unmigratable -> default state, raw bytes kept under a backup key.
        Never raises.
        """
        return self._adopt(self._read_state())

    async def load_async(self) -> ProgressState:
        """Load without blocking the event loop; the state swap happens on the loop."""
        loaded = await asyncio.to_thread(self._read_state)
        return self._adopt(loaded)

    def _adopt(self, loaded: ProgressState) -> ProgressState:
        touched = []
        if self._dirty_before_load:
            touched = list(self.state.all_modules())
            self._reconcile(loaded)
        loaded.streak = decay_streak(loaded.streak, self._today())
        self.state = loaded
        self.is_loaded = True

        if self._dirty_before_load:
            self._dirty_before_load = False
            for module_id in touched:
                found = self._resolve(module_id)
                if found is not None:
                    self._refresh_status(*found)
            self._check_tier_unlocks()
            self._release_locked_modules()
            award_badges(self.state)
            self.save()
        return self.state

    def _read_state(self) -> ProgressState:
        try:
            raw = self.storage.read(self.storage_key)
        except STORAGE_ERRORS as e:
            logger.warning(f"Progress storage unavailable, using defaults: {e}")
            return create_default_progress(self._now())

        if raw is None:
            return create_default_progress(self._now())

        try:
            doc = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Stored progress is not valid JSON, resetting: {e}")
            self._backup(raw, "corrupt")
            return create_default_progress(self._now())

        if not isinstance(doc, dict):
            logger.warning("Stored progress is not a JSON object, resetting")
            self._backup(raw, "corrupt")
            return create_default_progress(self._now())

        version = doc.get("version")
        try:
            doc = migrate(doc)
            return ProgressState.model_validate(doc)
        except MigrationError as e:
            logger.warning(f"Cannot migrate stored progress, resetting: {e}")
        except ValidationError as e:
            logger.warning(f"Stored progress failed validation, resetting: {e}")
        except (TypeError, AttributeError, KeyError, ValueError) as e:
            logger.warning(f"Stored progress is malformed, resetting: {e!r}")

        self._backup(raw, f"v{version}")
        return create_default_progress(self._now())

    def _backup(self, raw: str, label: str):
        key = backup_key(self.storage_key, label)
        try:
            self.storage.write(key, raw)
            logger.info(f"Previous progress preserved under {key}")
        except STORAGE_ERRORS as e:
            logger.warning(f"Could not back up previous progress: {e}")

    def _reconcile(self, loaded: ProgressState):
        """Fold writes made before the load resolved into the loaded state."""
        for tier_id, live_tier in self.state.tiers.items():
            tier = loaded.tiers.setdefault(tier_id, TierProgress())
            tier.unlocked = tier.unlocked or live_tier.unlocked
            for module_id, live in live_tier.modules.items():
                mod = tier.modules.setdefault(module_id, ModuleProgress(status=live.status))
                mod.steps_completed |= live.steps_completed
                mod.challenges_completed |= live.challenges_completed
                mod.quiz_answers.update(live.quiz_answers)
                mod.playground_visited = mod.playground_visited or live.playground_visited
                mod.last_accessed_step = live.last_accessed_step or mod.last_accessed_step
                mod.status = mod.status.advance(live.status)
                mod.completed_at = mod.completed_at or live.completed_at

        loaded.badges |= self.state.badges
        for entry in self.state.activity_log:
            if already_logged(loaded.activity_log, entry):
                continue
            loaded.activity_log.append(entry)
            loaded.streak, _ = advance_streak(loaded.streak, entry.date)

    def save(self, state: Optional[ProgressState] = None) -> bool:
        """
        Serialize and persist the state (default: the current one).

        Returns:
            True if written; storage errors are logged, never raised
        """
        if state is not None:
            self.state = state
        if self._closed:
            logger.warning("Progress store is closed, not saving")
            return False

        self.state.last_updated = self._now()
        if not self.is_loaded:
            self._dirty_before_load = True
            return False

        try:
            self.storage.write(self.storage_key, self.state.model_dump_json(by_alias=True))
        except STORAGE_ERRORS as e:
            logger.warning(f"Could not save progress: {e}")
            return False
        return True

    def export_json(self, indent: int = 2) -> str:
        return self.state.model_dump_json(by_alias=True, indent=indent)

    def reset_progress(self) -> ProgressState:
        """Replace the whole state with defaults, keeping the old document as a backup."""
        self._backup(self.state.model_dump_json(by_alias=True), "reset")
        self.state = create_default_progress(self._now())
        self.streak_just_earned = False
        logger.info("Progress reset")
        self.save()
        return self.state

    # -------------------------------------------------------------------------
    # Activity & Streak
    # -------------------------------------------------------------------------

    def record_activity(self, entry: ActivityEntry) -> ProgressState:
        """Append an activity entry, recompute the streak and save."""
        self._append(entry)
        self.save()
        return self.state

    def _append(self, entry: ActivityEntry):
        self.state.activity_log.append(entry)
        self.state.streak, extended = advance_streak(self.state.streak, entry.date)
        if extended:
            self.streak_just_earned = True
        award_badges(self.state)

    def _log(self, activity_type: ActivityType, module_id: str, **ids):
        """Log an action unless the same action is already logged today."""
        entry = ActivityEntry.at(self._now(), activity_type, module_id, **ids)
        if already_logged(self.state.activity_log, entry):
            return
        self._append(entry)

    def dismiss_streak_popup(self):
        self.streak_just_earned = False

    def activity_counts(self, days: int = 84, today: Optional[date] = None) -> list[dict]:
        """Per-day activity counts for the trailing window (activity calendar)."""
        return activity_window(self.state.activity_log, today or self._today(), days)

    # -------------------------------------------------------------------------
    # Module Progress
    # -------------------------------------------------------------------------

    def get_module_progress(self, module_id: str) -> ModuleProgress:
        """Copy of a module's progress; a fresh record if never touched."""
        _, mod = self.state.find_module(module_id)
        if mod is not None:
            return mod.model_copy(deep=True)
        meta = self.registry.get_metadata(module_id)
        if meta is None:
            return ModuleProgress()
        return ModuleProgress(status=self._initial_status(meta.tier_id, meta.prerequisites))

    def _resolve(self, module_id: str) -> Optional[tuple[ModuleContent, ModuleProgress]]:
        """Content plus live progress; a new record is only attached on write."""
        content = self.registry.resolve(module_id)
        if content is None:
            logger.warning(f"Unknown module: {module_id}")
            return None

        _, mod = self.state.find_module(module_id)
        if mod is None:
            mod = ModuleProgress(
                status=self._initial_status(content.tier_id, content.prerequisites)
            )
        return content, mod

    def _attach(self, content: ModuleContent, mod: ModuleProgress):
        _, existing = self.state.find_module(content.id)
        if existing is None:
            tier = self.state.tiers.setdefault(content.tier_id, TierProgress())
            tier.modules[content.id] = mod

    def _initial_status(self, tier_id: int, prerequisites: list[str]) -> ModuleStatus:
        tier = self.state.tiers.get(tier_id)
        if tier is None or not tier.unlocked:
            return ModuleStatus.LOCKED
        if not self._prerequisites_met(prerequisites):
            return ModuleStatus.LOCKED
        return ModuleStatus.AVAILABLE

    def _prerequisites_met(self, prerequisites: list[str]) -> bool:
        modules = self.state.all_modules()
        return all(
            p in modules and modules[p].status == ModuleStatus.COMPLETED
            for p in prerequisites
        )

    def is_module_complete(self, content: ModuleContent, mod: ModuleProgress) -> bool:
        """Required steps covered and the completion gate satisfied."""
        if not content.required_step_ids() <= mod.steps_completed:
            return False
        if content.completion.require_all_quizzes:
            if not content.quiz_step_ids() <= set(mod.quiz_answers):
                return False
        return set(content.completion.required_challenges) <= mod.challenges_completed

    def _refresh_status(self, content: ModuleContent, mod: ModuleProgress):
        """Recompute a module's status; it only ever moves forward."""
        mod.steps_completed &= set(content.step_ids)

        status = mod.status
        if self._initial_status(content.tier_id, content.prerequisites) == ModuleStatus.AVAILABLE:
            status = status.advance(ModuleStatus.AVAILABLE)
        if mod.steps_completed or mod.quiz_answers or mod.challenges_completed:
            status = status.advance(ModuleStatus.IN_PROGRESS)
        if self.is_module_complete(content, mod):
            status = status.advance(ModuleStatus.COMPLETED)

        if status == ModuleStatus.COMPLETED and mod.status != ModuleStatus.COMPLETED:
            mod.completed_at = self._now()
            logger.info(f"Module completed: {content.id}")
        mod.status = status

    def _release_locked_modules(self):
        """Locked modules whose tier and prerequisites are now satisfied become available."""
        for tier_id, tier in self.state.tiers.items():
            if not tier.unlocked:
                continue
            for module_id, mod in tier.modules.items():
                if mod.status != ModuleStatus.LOCKED:
                    continue
                meta = self.registry.get_metadata(module_id)
                prerequisites = meta.prerequisites if meta else []
                if self._prerequisites_met(prerequisites):
                    mod.status = ModuleStatus.AVAILABLE

    def _after_write(self, content: ModuleContent, mod: ModuleProgress):
        self._attach(content, mod)
        self._refresh_status(content, mod)
        self._check_tier_unlocks()
        self._release_locked_modules()
        award_badges(self.state)
        self.save()

    def complete_step(self, module_id: str, step_id: str) -> Optional[ModuleProgress]:
        """
        Mark a step completed.

        Returns:
            The module's updated progress, or None for an unknown module/step
        """
        found = self._resolve(module_id)
        if found is None:
            return None
        content, mod = found

        if content.get_step(step_id) is None:
            logger.warning(f"Unknown step {step_id} in module {module_id}")
            return None

        mod.steps_completed.add(step_id)
        mod.last_accessed_step = step_id
        self._log(ActivityType.STEP, module_id, step_id=step_id)
        self._after_write(content, mod)
        return mod.model_copy(deep=True)

    def record_quiz_answer(self, module_id: str, step_id: str, index: int) -> Optional[ModuleProgress]:
        """
        Store the selected option index for a quiz step (overwrites a prior answer).

        Only the raw index is kept; correctness is derived from content.
        """
        found = self._resolve(module_id)
        if found is None:
            return None
        content, mod = found

        step = content.get_step(step_id)
        if step is None or step.quiz is None:
            logger.warning(f"No quiz at step {step_id} in module {module_id}")
            return None
        if not 0 <= index < len(step.quiz.options):
            logger.warning(f"Quiz answer {index} out of range for {module_id}/{step_id}")
            return None

        mod.quiz_answers[step_id] = index
        self._log(ActivityType.QUIZ, module_id, step_id=step_id)
        self._after_write(content, mod)
        return mod.model_copy(deep=True)

    def complete_challenge(self, module_id: str, challenge_id: str) -> Optional[ModuleProgress]:
        """
        Mark a challenge completed.

        Re-completing is a no-op for counts and logs nothing more the same day.
        """
        found = self._resolve(module_id)
        if found is None:
            return None
        content, mod = found

        if content.get_challenge(challenge_id) is None:
            logger.warning(f"Unknown challenge {challenge_id} in module {module_id}")
            return None

        if challenge_id not in mod.challenges_completed:
            logger.info(f"Challenge completed: {module_id}/{challenge_id}")
        mod.challenges_completed.add(challenge_id)
        self._log(ActivityType.CHALLENGE, module_id, challenge_id=challenge_id)
        self._after_write(content, mod)
        return mod.model_copy(deep=True)

    def set_last_accessed_step(self, module_id: str, step_id: str) -> Optional[ModuleProgress]:
        found = self._resolve(module_id)
        if found is None:
            return None
        content, mod = found
        if content.get_step(step_id) is None:
            logger.warning(f"Unknown step {step_id} in module {module_id}")
            return None
        mod.last_accessed_step = step_id
        self._attach(content, mod)
        self.save()
        return mod.model_copy(deep=True)

    def visit_playground(self, module_id: str) -> Optional[ModuleProgress]:
        found = self._resolve(module_id)
        if found is None:
            return None
        content, mod = found
        mod.playground_visited = True
        self._log(ActivityType.SESSION, module_id)
        self._after_write(content, mod)
        return mod.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Tiers
    # -------------------------------------------------------------------------

    def tier_completion_fraction(self, tier_id: int) -> float:
        """Fraction of the tier's modules (per registry metadata) that are completed."""
        modules = self.registry.modules_in_tier(tier_id)
        if not modules:
            return 0.0
        progress = self.state.all_modules()
        completed = sum(
            1 for m in modules
            if m.id in progress and progress[m.id].status == ModuleStatus.COMPLETED
        )
        return completed / len(modules)

    def _check_tier_unlocks(self):
        for tier in self.registry.list_tiers():
            next_id = self.registry.next_tier_id(tier.id)
            if next_id is None:
                continue
            next_tier = self.state.tiers.setdefault(next_id, TierProgress())
            if next_tier.unlocked:
                continue
            if self.tier_completion_fraction(tier.id) >= tier.unlock_threshold:
                next_tier.unlocked = True
                logger.info(f"Tier {next_id} unlocked")

    def unlock_tier(self, tier_id: int) -> Optional[TierProgress]:
        """Unlock a tier explicitly. Returns None for an unknown tier."""
        if self.registry.get_tier(tier_id) is None and tier_id not in self.state.tiers:
            logger.warning(f"Unknown tier: {tier_id}")
            return None

        tier = self.state.tiers.setdefault(tier_id, TierProgress())
        if not tier.unlocked:
            tier.unlocked = True
            logger.info(f"Tier {tier_id} unlocked")
            self._release_locked_modules()
            award_badges(self.state)
            self.save()
        return tier.model_copy(deep=True)

    def is_tier_unlocked(self, tier_id: int) -> bool:
        tier = self.state.tiers.get(tier_id)
        return bool(tier and tier.unlocked)

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def update_settings(self, **changes) -> UserSettings:
        """
        Change user settings (theme, go_deeper, animation_speed, sidebar_collapsed).

        Raises:
            ValueError: Unknown setting name or invalid value
        """
        unknown = set(changes) - set(UserSettings.model_fields)
        if unknown:
            raise ValueError(f"Unknown settings: {sorted(unknown)}")

        merged = {**self.state.settings.model_dump(), **changes}
        self.state.settings = UserSettings.model_validate(merged)
        self.save()
        return self.state.settings.model_copy()

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def stats(self) -> dict:
        """Totals for dashboards."""
        modules = self.state.all_modules()
        return {
            "modules_completed": sum(
                1 for m in modules.values() if m.status == ModuleStatus.COMPLETED
            ),
            "modules_in_progress": sum(
                1 for m in modules.values() if m.status == ModuleStatus.IN_PROGRESS
            ),
            "steps_completed": sum(len(m.steps_completed) for m in modules.values()),
            "quizzes_answered": sum(len(m.quiz_answers) for m in modules.values()),
            "challenges_completed": sum(len(m.challenges_completed) for m in modules.values()),
            "streak": self.state.streak.model_dump(),
            "badges": len(self.state.badges),
            "activity_entries": len(self.state.activity_log),
        }
