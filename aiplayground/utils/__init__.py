"""AI Playground utilities."""

from .content_loader import (
    CONTENT_DIR,
    ContentError,
    load_bundle,
    load_module_content,
    get_available_bundles,
)

__all__ = [
    "CONTENT_DIR",
    "ContentError",
    "load_bundle",
    "load_module_content",
    "get_available_bundles",
]
