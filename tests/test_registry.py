"""
ContentRegistry and shipped content tests.
"""

import asyncio

import pytest
import yaml

from conftest import make_modules

from aiplayground.challenges import get_scorer
from aiplayground.classroom import (
    MODULE_BUNDLES,
    ContentRegistry,
    MemoryStorage,
    ProgressStore,
    default_registry,
)
from aiplayground.schemas import ModuleMeta, ModuleProgress, ModuleStatus
from aiplayground.utils import ContentError, get_available_bundles, load_bundle, load_module_content


class TestContentRegistry:
    """Test lazy resolution and metadata lookups."""

    def test_resolve_is_lazy_and_memoized(self):
        modules = {m.id: m for m in make_modules()}
        calls = []

        def loader():
            calls.append("vectors")
            return modules["vectors"]

        registry = ContentRegistry({"vectors": loader}, [modules["vectors"].to_meta()])
        assert calls == []
        assert not registry.is_loaded("vectors")
        assert registry.resolve("vectors") is modules["vectors"]
        assert registry.resolve("vectors") is modules["vectors"]
        assert calls == ["vectors"]
        assert registry.is_loaded("vectors")

    def test_unknown_module(self, registry):
        assert registry.resolve("nope") is None
        assert registry.get_metadata("nope") is None
        assert registry.tier_of("nope") is None

    def test_failing_loader_is_absent(self):
        def loader():
            raise ContentError("missing")

        registry = ContentRegistry({"broken": loader}, [])
        assert registry.resolve("broken") is None
        assert not registry.is_loaded("broken")

    @pytest.mark.parametrize("error", [
        PermissionError("denied"),
        IsADirectoryError("tier0/vectors.yaml"),
        UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte"),
    ])
    def test_unreadable_bundle_is_absent(self, error):
        def loader():
            raise error

        registry = ContentRegistry({"broken": loader}, [])
        assert registry.resolve("broken") is None

    def test_unreadable_bundle_does_not_break_store(self, clock):
        def loader():
            raise PermissionError("denied")

        meta = ModuleMeta(id="broken", tier_id=0, cluster_id="c", title="Broken")
        store = ProgressStore(ContentRegistry({"broken": loader}, [meta]), MemoryStorage(), clock=clock)
        store.load()
        assert store.complete_step("broken", "s1") is None

    def test_non_utf8_bundle_is_absent(self, tmp_path):
        (tmp_path / "tier0").mkdir()
        (tmp_path / "tier0" / "vectors.yaml").write_bytes(b"id: vectors\ntitle: \xff\xfe\n")
        assert default_registry(tmp_path).resolve("vectors") is None

    def test_resolve_async(self, registry):
        content = asyncio.run(registry.resolve_async("vectors"))
        assert content.id == "vectors"

    def test_metadata(self, registry):
        assert [m.id for m in registry.list_metadata()] == ["vectors", "matrices", "regression"]
        assert [m.id for m in registry.modules_in_tier(0)] == ["vectors", "matrices"]
        assert registry.tier_of("regression") == 1
        assert registry.module_ids() == ["vectors", "matrices", "regression"]

    def test_tiers(self, registry):
        assert [t.id for t in registry.list_tiers()] == [0, 1, 2]
        assert registry.get_tier(1).unlock_threshold == 0.7
        assert registry.next_tier_id(0) == 1
        assert registry.next_tier_id(2) is None

    def test_validate_order(self, registry):
        assert registry.validate_order() == []

    def test_validate_order_reports_problems(self):
        meta = [
            ModuleMeta(id="b", tier_id=0, cluster_id="c", title="B", prerequisites=["a"]),
            ModuleMeta(id="a", tier_id=0, cluster_id="c", title="A"),
            ModuleMeta(id="c", tier_id=9, cluster_id="c", title="C", prerequisites=["zzz"]),
        ]
        errors = ContentRegistry({}, meta).validate_order()
        assert "b: prerequisite a is listed after it" in errors
        assert "c: unknown prerequisite zzz" in errors
        assert "c: unknown tier 9" in errors


class TestContentLoader:
    """Test YAML bundle loading."""

    def test_missing_bundle(self, tmp_path):
        with pytest.raises(ContentError):
            load_bundle("tier0/nope", tmp_path)

    def test_invalid_yaml_is_absent(self, tmp_path):
        (tmp_path / "tier0").mkdir()
        (tmp_path / "tier0" / "vectors.yaml").write_text("steps: [unclosed", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            load_bundle("tier0/vectors", tmp_path)
        assert default_registry(tmp_path).resolve("vectors") is None

    def test_available_bundles(self):
        bundles = get_available_bundles()
        for name in MODULE_BUNDLES.values():
            assert name in bundles


class TestShippedContent:
    """Test the bundles shipped with the package."""

    @pytest.mark.parametrize("module_id", list(MODULE_BUNDLES))
    def test_bundle_validates(self, module_id):
        module = load_module_content(MODULE_BUNDLES[module_id])
        assert module.id == module_id
        assert module.tier_id == 0

    @pytest.mark.parametrize("module_id", list(MODULE_BUNDLES))
    def test_every_challenge_has_scorer(self, module_id):
        module = load_module_content(MODULE_BUNDLES[module_id])
        for challenge in module.challenges:
            assert get_scorer(module_id, challenge.id) is not None, challenge.id

    def test_tier_zero_modules(self):
        registry = default_registry()
        assert [m.id for m in registry.modules_in_tier(0)] == [
            "vectors", "vector-spaces", "matrices", "eigenvalues", "optimization", "chain-rule",
        ]

    def test_tier_zero_unlock_needs_five_of_six(self, clock):
        store = ProgressStore(default_registry(), MemoryStorage(), clock=clock)
        store.load()
        threshold = store.registry.get_tier(0).unlock_threshold
        done = ["vectors", "vector-spaces", "matrices", "eigenvalues", "optimization"]

        for module_id in done[:4]:
            store.state.tiers[0].modules[module_id] = ModuleProgress(status=ModuleStatus.COMPLETED)
        assert store.tier_completion_fraction(0) == pytest.approx(4 / 6)
        assert store.tier_completion_fraction(0) < threshold

        store.state.tiers[0].modules[done[4]] = ModuleProgress(status=ModuleStatus.COMPLETED)
        assert store.tier_completion_fraction(0) >= threshold

    def test_default_registry(self):
        registry = default_registry()
        assert registry.validate_order() == []
        for meta in registry.list_metadata():
            content = registry.resolve(meta.id)
            assert content is not None
            assert sorted(content.prerequisites) == sorted(meta.prerequisites)
