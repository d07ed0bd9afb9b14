"""
Content loader utility for AI Playground.

Loads YAML lesson bundles from the content/ directory.
"""

from pathlib import Path
from typing import Any
import yaml

from aiplayground.schemas import ModuleContent


# Default content directory (inside the package)
CONTENT_DIR = Path(__file__).parent.parent / "content"


class ContentError(FileNotFoundError):
    """A lesson bundle file does not exist."""


def bundle_path(name: str, content_dir: Path | None = None) -> Path:
    """Path of a bundle given as "tier0/vectors" (no .yaml extension)."""
    return (content_dir or CONTENT_DIR) / f"{name}.yaml"


def load_bundle(name: str, content_dir: Path | None = None) -> dict[str, Any]:
    """
    Load a raw lesson bundle by name.

    Args:
        name: Bundle name without .yaml extension (e.g., "tier0/vectors")
        content_dir: Optional custom content directory

    Returns:
        Dict with the parsed YAML bundle

    Raises:
        ContentError: If the bundle file doesn't exist
        yaml.YAMLError: If YAML parsing fails
    """
    file_path = bundle_path(name, content_dir)

    if not file_path.exists():
        raise ContentError(f"Lesson bundle not found: {file_path}")

    with open(file_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_module_content(name: str, content_dir: Path | None = None) -> ModuleContent:
    """Load a bundle and validate it as module content."""
    return ModuleContent.model_validate(load_bundle(name, content_dir))


def get_available_bundles(content_dir: Path | None = None) -> list[str]:
    """
    List all available lesson bundles.

    Returns:
        Bundle names relative to the content directory, e.g. "tier0/vectors"
    """
    dir_path = content_dir or CONTENT_DIR
    if not dir_path.exists():
        return []
    return sorted(
        p.relative_to(dir_path).with_suffix("").as_posix()
        for p in dir_path.rglob("*.yaml")
    )
