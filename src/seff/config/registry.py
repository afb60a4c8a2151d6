"""Default resource type registry factory."""

from __future__ import annotations

from seff.engine.registry import ResourceTypeRegistry
from seff.resources.local import (
    LocalDirectoryResource,
    LocalFileResource,
    LocalManifestResource,
)


def default_registry() -> ResourceTypeRegistry:
    """Create a frozen registry with all built-in resource types."""
    registry = ResourceTypeRegistry()
    registry.register(LocalDirectoryResource)
    registry.register(LocalFileResource)
    registry.register(LocalManifestResource)
    return registry.freeze()
