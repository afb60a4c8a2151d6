"""YAML project loading and the deploy/destroy API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from seff.config.loader import ConfigError, load_config, load_settings
from seff.config.project import build_graph
from seff.config.registry import default_registry
from seff.config.schema import ProjectConfig, ResourceDeclaration, Settings
from seff.core.state import StateFile, StateRecorder
from seff.engine.lock import StateLock
from seff.engine.resource_graph import ResourceGraph

if TYPE_CHECKING:
    from pathlib import Path

    from seff.engine.registry import ResourceTypeRegistry
    from seff.engine.types import ProgressCallback, TransitionResult

__all__ = [
    "ConfigError",
    "ProjectConfig",
    "ResourceDeclaration",
    "Settings",
    "build_graph",
    "default_registry",
    "deploy",
    "destroy",
    "load",
    "load_config",
    "load_settings",
    "load_state",
]

logger = logging.getLogger(__name__)


def load(path: Path | str) -> ProjectConfig:
    """Load a YAML project file."""
    return load_config(path)


def load_state(
    config: ProjectConfig, *, registry: ResourceTypeRegistry | None = None
) -> ResourceGraph:
    """Return the recorded graph, empty when nothing has been deployed yet."""
    registry = registry if registry is not None else default_registry()
    return StateFile(config.state_path).load_graph(registry, config.name)


async def deploy(
    config: ProjectConfig,
    *,
    registry: ResourceTypeRegistry | None = None,
    progress: ProgressCallback | None = None,
) -> TransitionResult:
    """Converge the cloud to the declared resources.

    State is saved after every step. Until a resource missing from the
    project has been removed, the state keeps recording it, so a deploy that
    fails or is interrupted leaves a state file a later deploy resumes from.
    """
    registry = registry if registry is not None else default_registry()
    store = StateFile(config.state_path)
    target = build_graph(config, registry)

    with StateLock(config.state_path, timeout=config.lock_timeout):
        previous = store.load_graph(registry, config.name)
        logger.info(
            "Deploying %s: %d recorded, %d declared", config.name, len(previous), len(target)
        )
        recorder = StateRecorder(store, target, previous=previous, progress=progress)
        result = await previous.transition_to_graph(target, recorder)
        store.save_graph(target)
    return result


async def destroy(
    config: ProjectConfig,
    *,
    registry: ResourceTypeRegistry | None = None,
    progress: ProgressCallback | None = None,
) -> TransitionResult:
    """Remove every recorded resource, then delete the state file."""
    registry = registry if registry is not None else default_registry()
    store = StateFile(config.state_path)

    with StateLock(config.state_path, timeout=config.lock_timeout):
        previous = store.load_graph(registry, config.name)
        logger.info("Destroying %s: %d recorded", config.name, len(previous))
        target = ResourceGraph(config.name)
        recorder = StateRecorder(store, target, previous=previous, progress=progress)
        result = await previous.transition_to_graph(target, recorder)
        store.remove()
    return result
