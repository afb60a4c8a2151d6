"""Engine error types."""

from __future__ import annotations


class EngineError(Exception):
    """Base exception for engine errors."""


class InvalidIdentifierError(EngineError, ValueError):
    """Raised when a name, tag, crn or uid does not have the required format."""

    def __init__(self, kind: str, value: object) -> None:
        super().__init__(f"Invalid {kind}: {value!r}")
        self.kind = kind
        self.value = value


class ResourceRelationError(EngineError):
    """Raised when a parent or dependency relation cannot be established."""


class DependencyCycleError(EngineError):
    """Raised when dependencies contain a cycle."""

    def __init__(self, uids: list[str]) -> None:
        msg = "Dependency cycle detected"
        if uids:
            msg += f": {', '.join(uids)}"
        super().__init__(msg)
        self.uids = uids


class DuplicateResourceError(EngineError):
    """Raised when a graph already holds a resource with the same uid."""

    def __init__(self, uid: str) -> None:
        super().__init__(f"Duplicate resource: {uid}")
        self.uid = uid


class MissingResourceError(EngineError):
    """Raised when a uid cannot be resolved in a graph."""

    def __init__(self, uid: str, message: str | None = None) -> None:
        super().__init__(message or f"Resource not found: {uid}")
        self.uid = uid


class MissingParentError(MissingResourceError):
    """Raised when a resource is added before its parent."""

    def __init__(self, uid: str, parent_uid: str) -> None:
        super().__init__(parent_uid, f"Missing parent for resource {uid}: {parent_uid}")
        self.resource_uid = uid


class MissingDependencyError(MissingResourceError):
    """Raised when a resource is added before one of its dependencies."""

    def __init__(self, uid: str, tag: str, dependency_uid: str) -> None:
        super().__init__(
            dependency_uid,
            f"Missing dependency for resource {uid} (tag {tag}): {dependency_uid}",
        )
        self.resource_uid = uid
        self.tag = tag


class UnknownResourceTypeError(EngineError):
    """Raised when a resource type has no registration."""

    def __init__(self, resource_type: str) -> None:
        super().__init__(f"Unknown resource type: {resource_type}")
        self.resource_type = resource_type


class DuplicateResourceTypeError(EngineError):
    """Raised when a resource type is registered twice."""

    def __init__(self, resource_type: str) -> None:
        super().__init__(f"Resource type already registered: {resource_type}")
        self.resource_type = resource_type


class RegistryFrozenError(EngineError):
    """Raised when registering into a registry that has been frozen."""


class DeserializationError(EngineError):
    """Raised when persisted graph data is malformed or inconsistent.

    The underlying problem (unknown type, dangling uid, bad record) is
    chained via ``__cause__`` when there is one.
    """


class StateError(EngineError):
    """Raised when the state file cannot be read or decoded."""


class StateLockError(EngineError):
    """Raised when the state lock cannot be acquired or released."""
