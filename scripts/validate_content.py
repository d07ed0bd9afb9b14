#!/usr/bin/env python3
"""
validate_content.py - Check every lesson bundle and the curriculum ordering.

Validates each YAML bundle against the ModuleContent schema, checks that
every registered module resolves, that metadata matches the bundle, and
that prerequisites precede their dependents.

Usage:
  python scripts/validate_content.py
  python scripts/validate_content.py --content-dir path/to/content
"""

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import yaml
from pydantic import ValidationError

from aiplayground.challenges import get_scorer
from aiplayground.classroom import default_registry
from aiplayground.config import EngineConfig
from aiplayground.utils import ContentError, get_available_bundles, load_module_content

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def validate_bundles(content_dir: Path | None) -> list[str]:
    """Schema-validate every bundle file."""
    issues = []
    bundles = get_available_bundles(content_dir)
    logger.info(f"Found {len(bundles)} bundles")
    for name in bundles:
        try:
            module = load_module_content(name, content_dir)
        except (ContentError, yaml.YAMLError, ValidationError) as e:
            issues.append(f"{name}: {e}")
            continue
        logger.info(
            f"  {name}: {len(module.steps)} steps, {len(module.quiz_step_ids())} quizzes, "
            f"{len(module.challenges)} challenges"
        )
    return issues


def validate_registry(content_dir: Path | None) -> list[str]:
    """Resolve every registered module and cross-check it with its metadata."""
    registry = default_registry(content_dir)
    issues = list(registry.validate_order())

    for meta in registry.list_metadata():
        content = registry.resolve(meta.id)
        if content is None:
            issues.append(f"{meta.id}: does not resolve")
            continue
        if content.id != meta.id:
            issues.append(f"{meta.id}: bundle declares id {content.id}")
        if content.tier_id != meta.tier_id:
            issues.append(f"{meta.id}: bundle tier {content.tier_id} != metadata tier {meta.tier_id}")
        if sorted(content.prerequisites) != sorted(meta.prerequisites):
            issues.append(f"{meta.id}: prerequisites differ between bundle and metadata")
        for challenge in content.challenges:
            if get_scorer(meta.id, challenge.id) is None:
                issues.append(f"{meta.id}: no scorer for challenge {challenge.id}")
    return issues


def main():
    parser = argparse.ArgumentParser(
        description="Validate lesson bundles and curriculum ordering",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--content-dir",
        type=Path,
        default=None,
        help="Content directory (default: bundles shipped with the package)"
    )
    args = parser.parse_args()
    logging.getLogger().setLevel(EngineConfig.from_env().log_level)

    logger.info("Validating bundles...")
    issues = validate_bundles(args.content_dir)

    logger.info("Validating registry...")
    issues += validate_registry(args.content_dir)

    if issues:
        logger.warning(f"Found {len(issues)} content issues:")
        for issue in issues:
            logger.warning(f"  - {issue}")
        sys.exit(1)

    logger.info("  All content checks passed!")


if __name__ == "__main__":
    main()
