"""
ContentRegistry - Resolve module ids to lesson content.

Provides read-only access to:
- Module content, loaded lazily through one loader per module id
- Static module metadata in pedagogical order (prerequisites first)
- Tier metadata with unlock thresholds
"""

import asyncio
import logging
from functools import partial
from pathlib import Path
from typing import Callable, Optional

import yaml
from pydantic import ValidationError

from aiplayground.schemas import ModuleContent, ModuleMeta, TierMeta
from aiplayground.utils.content_loader import ContentError, load_module_content


logger = logging.getLogger(__name__)

ModuleLoader = Callable[[], ModuleContent]


# -----------------------------------------------------------------------------
# Shipped curriculum
# -----------------------------------------------------------------------------

# Bundle names under aiplayground/content, keyed by module id
MODULE_BUNDLES = {
    "vectors": "tier0/vectors",
    "vector-spaces": "tier0/vector-spaces",
    "matrices": "tier0/matrices",
    "eigenvalues": "tier0/eigenvalues",
    "optimization": "tier0/optimization",
    "chain-rule": "tier0/chain-rule",
}

# ORDER MATTERS: pedagogical sequence, prerequisites first
MODULE_META = [
    ModuleMeta(
        id="vectors",
        tier_id=0,
        cluster_id="linear-algebra",
        title="Vectors",
        description="Arrows, magnitudes, dot products.",
        prerequisites=[],
        difficulty="beginner",
        estimated_minutes=30,
    ),
    ModuleMeta(
        id="vector-spaces",
        tier_id=0,
        cluster_id="linear-algebra",
        title="Vector Spaces & Independence",
        description="Span, linear independence, basis, dimension.",
        prerequisites=["vectors"],
        difficulty="beginner",
        estimated_minutes=30,
    ),
    ModuleMeta(
        id="matrices",
        tier_id=0,
        cluster_id="linear-algebra",
        title="Matrix Operations",
        description="Matrices as transformations, determinants, inverses.",
        prerequisites=["vectors"],
        difficulty="beginner",
        estimated_minutes=30,
    ),
    ModuleMeta(
        id="eigenvalues",
        tier_id=0,
        cluster_id="linear-algebra",
        title="Eigenvalues & Eigenvectors",
        description="The special directions that survive a transformation.",
        prerequisites=["vectors", "vector-spaces", "matrices"],
        difficulty="intermediate",
        estimated_minutes=45,
    ),
    ModuleMeta(
        id="optimization",
        tier_id=0,
        cluster_id="optimization",
        title="Optimization & Gradient Descent",
        description="From derivatives to Adam.",
        prerequisites=["vectors", "matrices"],
        difficulty="intermediate",
        estimated_minutes=60,
    ),
    ModuleMeta(
        id="chain-rule",
        tier_id=0,
        cluster_id="calculus",
        title="The Chain Rule",
        description="How gradients flow through computation graphs.",
        prerequisites=["optimization"],
        difficulty="intermediate",
        estimated_minutes=50,
    ),
]

TIER_META = [
    TierMeta(id=0, title="Mathematical Foundations",
             description="Vectors, matrices, calculus, probability."),
    TierMeta(id=1, title="ML Fundamentals",
             description="Linear regression, gradient descent, classification."),
    TierMeta(id=2, title="Deep Learning Core",
             description="Neural networks, backpropagation, CNNs."),
    TierMeta(id=3, title="Advanced Architectures",
             description="Transformers, attention, generative models."),
    TierMeta(id=4, title="Frontiers & Applications",
             description="Reinforcement learning, multimodal AI."),
    TierMeta(id=5, title="Research & Open Problems",
             description="Alignment, scaling laws, open problems."),
]


class ContentRegistry:
    """
    Resolve module ids to content without depending on the bundle shape.

    Each module id maps to a zero-argument loader. Loaders run on first
    resolve and the result is memoized; a loader that fails is reported as
    absent and retried on the next resolve.
    """

    def __init__(
        self,
        loaders: dict[str, ModuleLoader],
        meta: list[ModuleMeta],
        tiers: Optional[list[TierMeta]] = None,
    ):
        """
        Initialize registry.

        Args:
            loaders: Module id -> loader returning ModuleContent
            meta: Static metadata in pedagogical order
            tiers: Tier metadata (default: the six curriculum tiers)
        """
        self._loaders = dict(loaders)
        self._meta = list(meta)
        self._meta_index = {m.id: m for m in self._meta}
        self._tiers = {t.id: t for t in (tiers if tiers is not None else TIER_META)}
        self._cache: dict[str, ModuleContent] = {}

    @classmethod
    def from_modules(
        cls,
        modules: list[ModuleContent],
        tiers: Optional[list[TierMeta]] = None,
    ) -> "ContentRegistry":
        """Build a registry over in-memory content, metadata derived from it."""
        loaders = {m.id: (lambda m=m: m) for m in modules}
        return cls(loaders, [m.to_meta() for m in modules], tiers)

    # -------------------------------------------------------------------------
    # Content
    # -------------------------------------------------------------------------

    def resolve(self, module_id: str) -> Optional[ModuleContent]:
        """Get full content for a module, or None if unknown or unloadable."""
        if module_id in self._cache:
            return self._cache[module_id]

        loader = self._loaders.get(module_id)
        if loader is None:
            return None

        try:
            content = loader()
        except (ContentError, OSError, UnicodeDecodeError, yaml.YAMLError, ValidationError) as e:
            logger.warning(f"Failed to load content for module {module_id}: {e}")
            return None

        self._cache[module_id] = content
        return content

    async def resolve_async(self, module_id: str) -> Optional[ModuleContent]:
        """Resolve off the event loop (bundle loading does file I/O)."""
        if module_id in self._cache:
            return self._cache[module_id]
        return await asyncio.to_thread(self.resolve, module_id)

    def module_ids(self) -> list[str]:
        return list(self._loaders)

    def is_loaded(self, module_id: str) -> bool:
        return module_id in self._cache

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def list_metadata(self) -> list[ModuleMeta]:
        """All module metadata, prerequisites before dependents."""
        return list(self._meta)

    def get_metadata(self, module_id: str) -> Optional[ModuleMeta]:
        return self._meta_index.get(module_id)

    def modules_in_tier(self, tier_id: int) -> list[ModuleMeta]:
        return [m for m in self._meta if m.tier_id == tier_id]

    def tier_of(self, module_id: str) -> Optional[int]:
        meta = self._meta_index.get(module_id)
        return meta.tier_id if meta else None

    # -------------------------------------------------------------------------
    # Tiers
    # -------------------------------------------------------------------------

    def list_tiers(self) -> list[TierMeta]:
        return [self._tiers[tid] for tid in sorted(self._tiers)]

    def get_tier(self, tier_id: int) -> Optional[TierMeta]:
        return self._tiers.get(tier_id)

    def next_tier_id(self, tier_id: int) -> Optional[int]:
        later = [tid for tid in self._tiers if tid > tier_id]
        return min(later) if later else None

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate_order(self) -> list[str]:
        """
        Check metadata ordering.

        Returns:
            List of problems; empty when every prerequisite is a known module
            listed before its dependent.
        """
        errors = []
        seen: set[str] = set()
        for meta in self._meta:
            for prereq in meta.prerequisites:
                if prereq not in self._meta_index:
                    errors.append(f"{meta.id}: unknown prerequisite {prereq}")
                elif prereq not in seen:
                    errors.append(f"{meta.id}: prerequisite {prereq} is listed after it")
            if meta.tier_id not in self._tiers:
                errors.append(f"{meta.id}: unknown tier {meta.tier_id}")
            seen.add(meta.id)
        return errors


def default_registry(content_dir: Optional[Path] = None) -> ContentRegistry:
    """Registry over the YAML bundles shipped with the package."""
    loaders = {
        module_id: partial(load_module_content, bundle, content_dir)
        for module_id, bundle in MODULE_BUNDLES.items()
    }
    return ContentRegistry(loaders, MODULE_META, TIER_META)
