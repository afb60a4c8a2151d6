"""Resource graph reconciliation engine."""

from seff.engine.errors import (
    DependencyCycleError,
    DeserializationError,
    DuplicateResourceError,
    DuplicateResourceTypeError,
    EngineError,
    InvalidIdentifierError,
    MissingDependencyError,
    MissingParentError,
    MissingResourceError,
    RegistryFrozenError,
    ResourceRelationError,
    StateError,
    StateLockError,
    UnknownResourceTypeError,
)
from seff.engine.registry import ResourceTypeRegistration, ResourceTypeRegistry
from seff.engine.resource_graph import ResourceGraph
from seff.engine.types import (
    ChangeEvent,
    ChangeObserver,
    ChangeType,
    ProgressCallback,
    TransitionResult,
)

__all__ = [
    "ChangeEvent",
    "ChangeObserver",
    "ChangeType",
    "DependencyCycleError",
    "DeserializationError",
    "DuplicateResourceError",
    "DuplicateResourceTypeError",
    "EngineError",
    "InvalidIdentifierError",
    "MissingDependencyError",
    "MissingParentError",
    "MissingResourceError",
    "ProgressCallback",
    "RegistryFrozenError",
    "ResourceGraph",
    "ResourceRelationError",
    "ResourceTypeRegistration",
    "ResourceTypeRegistry",
    "StateError",
    "StateLockError",
    "TransitionResult",
    "UnknownResourceTypeError",
]
