"""
Navigator - Module sequencing, prerequisite checking, and tier status.

Provides:
- Module availability based on progress, tier locks and prerequisites
- Per-tier completion fractions and unlock status
- Recommended next module
- Progress summary for display
"""

from dataclasses import dataclass
from typing import Optional

from aiplayground.schemas import ModuleMeta, ModuleStatus, TierMeta

from .progress import ProgressStore
from .registry import ContentRegistry


@dataclass
class NavigationModule:
    """Module with navigation metadata."""
    meta: ModuleMeta
    availability: ModuleStatus
    missing_prerequisites: list[str]  # IDs of incomplete prerequisites


@dataclass
class NavigationTier:
    """Tier with modules and completion data."""
    tier: TierMeta
    unlocked: bool
    modules: list[NavigationModule]
    completed_count: int
    total_count: int

    @property
    def completion_fraction(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self.completed_count / self.total_count


class Navigator:
    """
    Navigate the curriculum with tier and prerequisite checking.

    Combines ContentRegistry (metadata) with ProgressStore (learner state).
    Read-only: every mutation still goes through the store.
    """

    def __init__(self, registry: ContentRegistry, store: ProgressStore):
        self.registry = registry
        self.store = store
        self._module_order = [m.id for m in registry.list_metadata()]

    @property
    def total_modules(self) -> int:
        return len(self._module_order)

    # -------------------------------------------------------------------------
    # Availability Checking
    # -------------------------------------------------------------------------

    def get_module_availability(self, module_id: str) -> tuple[ModuleStatus, list[str]]:
        """
        Check module availability based on progress, tier and prerequisites.

        Returns:
            Tuple of (availability status, list of missing prerequisite IDs)
        """
        meta = self.registry.get_metadata(module_id)
        if not meta:
            return ModuleStatus.LOCKED, []

        progress = self.store.get_module_progress(module_id)
        if progress.status in (ModuleStatus.COMPLETED, ModuleStatus.IN_PROGRESS):
            return progress.status, []

        modules = self.store.state.all_modules()
        missing = [
            prereq for prereq in meta.prerequisites
            if prereq not in modules or modules[prereq].status != ModuleStatus.COMPLETED
        ]

        if not self.store.is_tier_unlocked(meta.tier_id) or missing:
            return ModuleStatus.LOCKED, missing

        return ModuleStatus.AVAILABLE, []

    def is_module_available(self, module_id: str) -> bool:
        availability, _ = self.get_module_availability(module_id)
        return availability != ModuleStatus.LOCKED

    def get_locked_reason(self, module_id: str) -> Optional[str]:
        """Human-readable reason a module is locked, or None if it isn't."""
        meta = self.registry.get_metadata(module_id)
        if meta is None:
            return "Unknown module"

        availability, missing = self.get_module_availability(module_id)
        if availability != ModuleStatus.LOCKED:
            return None

        if not self.store.is_tier_unlocked(meta.tier_id):
            previous = [t for t in self.registry.list_tiers() if t.id < meta.tier_id]
            if previous:
                tier = previous[-1]
                return f"Complete {round(tier.unlock_threshold * 100)}% of Tier {tier.id} to unlock"
            return f"Tier {meta.tier_id} is locked"

        titles = []
        for prereq in missing:
            prereq_meta = self.registry.get_metadata(prereq)
            titles.append(prereq_meta.title if prereq_meta else prereq)
        return "Requires " + ", ".join(titles)

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def get_next_module_id(self, current_id: str) -> Optional[str]:
        if current_id not in self._module_order:
            return None
        idx = self._module_order.index(current_id)
        if idx + 1 >= len(self._module_order):
            return None
        return self._module_order[idx + 1]

    def get_recommended_module_id(self) -> Optional[str]:
        """
        Get the recommended module for the learner.

        Priority:
        1. First module in progress
        2. First available module not yet started
        3. First module
        """
        for module_id in self._module_order:
            availability, _ = self.get_module_availability(module_id)
            if availability == ModuleStatus.IN_PROGRESS:
                return module_id

        for module_id in self._module_order:
            availability, _ = self.get_module_availability(module_id)
            if availability == ModuleStatus.AVAILABLE:
                return module_id

        return self._module_order[0] if self._module_order else None

    # -------------------------------------------------------------------------
    # Curriculum Tree
    # -------------------------------------------------------------------------

    def get_navigation_tree(self) -> list[NavigationTier]:
        """Every tier with its modules, each annotated with availability."""
        tree = []
        for tier in self.registry.list_tiers():
            nav_modules = []
            completed_count = 0

            for meta in self.registry.modules_in_tier(tier.id):
                availability, missing = self.get_module_availability(meta.id)
                if availability == ModuleStatus.COMPLETED:
                    completed_count += 1
                nav_modules.append(NavigationModule(
                    meta=meta,
                    availability=availability,
                    missing_prerequisites=missing,
                ))

            tree.append(NavigationTier(
                tier=tier,
                unlocked=self.store.is_tier_unlocked(tier.id),
                modules=nav_modules,
                completed_count=completed_count,
                total_count=len(nav_modules),
            ))
        return tree

    # -------------------------------------------------------------------------
    # Progress Summary
    # -------------------------------------------------------------------------

    def get_progress_summary(self) -> dict:
        """Get progress summary for display."""
        stats = self.store.stats()
        tier_stats = [
            {
                "id": nav_tier.tier.id,
                "title": nav_tier.tier.title,
                "unlocked": nav_tier.unlocked,
                "completed": nav_tier.completed_count,
                "total": nav_tier.total_count,
                "fraction": round(nav_tier.completion_fraction, 2),
            }
            for nav_tier in self.get_navigation_tree()
        ]

        return {
            **stats,
            "total_modules": self.total_modules,
            "tiers": tier_stats,
            "recommended_module_id": self.get_recommended_module_id(),
        }
