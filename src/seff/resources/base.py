"""Base resource class and identifier rules.

A resource is the local representative of one cloud object: a table, a
bucket, a function, or a smaller piece of a larger construct such as an
API method or a link between two functions. Resources start unrealized
(no crn), become realized when ``create()`` stores the crn issued by the
provider, may then be updated, and finally lose their crn when removed.

Two kinds of edges connect resources:

- ``parent``: the owning resource. It must exist before the child, and the
  provider deletes the child together with the parent.
- ``dependencies``: resources referenced under a semantic tag. They must
  exist before the dependent and are removed after it.

Both edge kinds together must stay acyclic; the setters refuse edges that
would close a cycle.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar, Protocol

from pydantic import BaseModel, ValidationError

from seff.engine.errors import (
    DependencyCycleError,
    DeserializationError,
    EngineError,
    InvalidIdentifierError,
    ResourceRelationError,
    UnknownResourceTypeError,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from seff.engine.registry import ResourceTypeRegistry

_NAME_RE = re.compile(r"[a-zA-Z_][\w\-]*", re.ASCII)
_TYPE_RE = re.compile(r"[a-zA-Z_]\w*", re.ASCII)
_UID_RE = re.compile(r"uid:([a-zA-Z_]\w*):([a-zA-Z_][\w\-]*)", re.ASCII)
_CRN_RE = re.compile(r"\S+")


def validate_name(name: Any) -> str:
    if not isinstance(name, str) or not _NAME_RE.fullmatch(name):
        raise InvalidIdentifierError("resource name", name)
    return name


def validate_tag(tag: Any) -> str:
    if not isinstance(tag, str) or not _NAME_RE.fullmatch(tag):
        raise InvalidIdentifierError("resource dependency tag", tag)
    return tag


def validate_crn(crn: Any) -> str:
    if not isinstance(crn, str) or not _CRN_RE.fullmatch(crn):
        raise InvalidIdentifierError("cloud resource name", crn)
    return crn


def is_uid(value: Any) -> bool:
    return isinstance(value, str) and _UID_RE.fullmatch(value) is not None


def validate_uid(uid: Any) -> str:
    if not is_uid(uid):
        raise InvalidIdentifierError("resource UID", uid)
    return uid


def make_uid(resource_type: str, name: str) -> str:
    if not _TYPE_RE.fullmatch(resource_type):
        raise InvalidIdentifierError("resource type", resource_type)
    return f"uid:{resource_type}:{validate_name(name)}"


def parse_uid(uid: str) -> tuple[str, str]:
    """Split a uid into ``(resource_type, name)``."""
    match = _UID_RE.fullmatch(uid) if isinstance(uid, str) else None
    if match is None:
        raise InvalidIdentifierError("resource UID", uid)
    return match[1], match[2]


class ResourcePool(Protocol):
    """Resolves uids to resources while a graph is being restored."""

    def get_resource_by_uid(self, uid: str) -> Resource: ...


class ResourceRecord(BaseModel):
    """Persisted form of a single resource (the value half of a state entry)."""

    name: str
    crn: str | None = None
    args: list[Any]
    deps: dict[str, str] = {}
    parent: str | None = None


class Resource(ABC):
    """Base class for all managed resources.

    Subclasses set ``resource_type`` and keep the constructor signature
    ``(name, crn=None, *extra_args)`` where ``extra_args`` is exactly what
    ``to_constructor_arguments()`` returns.
    """

    resource_type: ClassVar[str]

    def __init__(self, name: str, crn: str | None = None) -> None:
        self._name = validate_name(name)
        self._crn = None if crn is None else validate_crn(crn)
        self._parent: Resource | None = None
        self._dependencies: dict[str, Resource] = {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.uid} crn={self._crn!r}>"

    @property
    def name(self) -> str:
        return self._name

    @property
    def crn(self) -> str | None:
        """Cloud resource name issued by the provider, once created."""
        return self._crn

    @property
    def parent(self) -> Resource | None:
        return self._parent

    @property
    def dependencies(self) -> Mapping[str, Resource]:
        return MappingProxyType(self._dependencies)

    @property
    def uid(self) -> str:
        """Unique identifier within a graph: one resource per type and name."""
        return make_uid(self.resource_type, self._name)

    def ancestors(self) -> Iterator[Resource]:
        r = self._parent
        while r is not None:
            yield r
            r = r._parent

    def root(self) -> Resource:
        """The top-most ancestor, or the resource itself when it has no parent."""
        r = self
        while r._parent is not None:
            r = r._parent
        return r

    def reaches(self, other: Resource) -> bool:
        """Whether *other* is reachable from this resource via parent/dependency edges."""
        seen: set[int] = set()
        stack: list[Resource] = [self]
        while stack:
            r = stack.pop()
            if r is other:
                return True
            if id(r) in seen:
                continue
            seen.add(id(r))
            if r._parent is not None:
                stack.append(r._parent)
            stack.extend(r._dependencies.values())
        return False

    def add_dependency(self, tag: str, resource: Resource) -> None:
        """Reference *resource* under *tag*.

        Dependencies are created first and removed last. When this resource is
        removed but a dependency survives, the dependency gets a chance to drop
        configuration pointing back here (see
        ``remove_configuration_from_dependency``).
        """
        validate_tag(tag)
        if tag in self._dependencies:
            raise ResourceRelationError(f"Duplicate dependency for resource {self.name}: {tag}")
        if resource.reaches(self):
            raise DependencyCycleError([self.uid, resource.uid])
        self._dependencies[tag] = resource

    def set_crn(self, crn: str) -> None:
        self._crn = validate_crn(crn)

    def set_parent(self, resource: Resource) -> None:
        if self._parent is not None:
            raise ResourceRelationError(f"Parent already set for resource: {self.name}")
        if resource.reaches(self):
            raise DependencyCycleError([self.uid, resource.uid])
        self._parent = resource

    # -- Persistence ---------------------------------------------------------

    @abstractmethod
    def is_equal(self, other: Any) -> bool:
        """Compare configuration with another resource of the same type.

        Name and crn are not part of the comparison. A ``True`` result means
        no update is needed.
        """

    @abstractmethod
    def to_constructor_arguments(self) -> list[Any]:
        """Extra constructor arguments (after name and crn) to rebuild this resource."""

    def serialize(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self._name}
        if self._crn is not None:
            data["crn"] = self._crn
        data["args"] = [
            arg.uid if isinstance(arg, Resource) else arg
            for arg in self.to_constructor_arguments()
        ]
        data["deps"] = {tag: r.uid for tag, r in self._dependencies.items()}
        if self._parent is not None:
            data["parent"] = self._parent.uid
        return data

    @staticmethod
    def deserialize(
        uid: Any,
        data: Any,
        pool: ResourcePool,
        registry: ResourceTypeRegistry,
    ) -> Resource:
        """Rebuild a resource from the output of ``serialize()``.

        The type and name come from *uid*; uid-valued arguments, the parent and
        the dependencies are resolved through *pool*.
        """
        if not isinstance(uid, str):
            raise DeserializationError(f"Invalid resource identifier: {uid!r}")
        match = _UID_RE.fullmatch(uid)
        if match is None:
            raise DeserializationError(f"Malformed identifier: {uid}")
        resource_type, name = match[1], match[2]

        try:
            registration = registry.get(resource_type)
        except UnknownResourceTypeError as e:
            raise DeserializationError(f"Resource class not found: {resource_type}") from e

        try:
            record = ResourceRecord.model_validate(data)
        except ValidationError as e:
            raise DeserializationError(f"Invalid serialized resource {uid}: {e}") from e
        if record.name != name:
            raise DeserializationError(f"Serialized UID mismatches resource name: {record.name}")

        try:
            args = [pool.get_resource_by_uid(a) if is_uid(a) else a for a in record.args]
            resource = registration.resource_class(record.name, record.crn, *args)
            if record.parent is not None:
                resource.set_parent(pool.get_resource_by_uid(validate_uid(record.parent)))
            for tag, dep_uid in record.deps.items():
                resource.add_dependency(tag, pool.get_resource_by_uid(validate_uid(dep_uid)))
        except (EngineError, TypeError, ValueError) as e:
            raise DeserializationError(f"Cannot restore resource {uid}: {e}") from e
        return resource

    # -- Lifecycle -----------------------------------------------------------

    @abstractmethod
    async def create(self) -> None:
        """Create the cloud object and store its crn via ``set_crn``.

        Multi-step implementations must undo the steps already taken before
        re-raising a failure.
        """

    @abstractmethod
    async def update(self, previous: Resource) -> None:
        """Bring the cloud object in line with this resource.

        *previous* is the recorded state of the same resource; only called when
        ``is_equal(previous)`` is false.
        """

    @abstractmethod
    async def remove(self) -> None:
        """Delete the cloud object."""

    async def dependencies_changed(self) -> None:
        """React to a changed or updated dependency. No-op by default."""

    async def remove_configuration_from_dependency(self, dependency: Resource) -> None:
        """Unwind configuration this resource placed on a surviving dependency.

        Called before this resource is removed, once for each dependency that
        is not removed along with it. No-op by default.
        """
        _ = dependency

    def has_been_removed(self) -> None:
        """Mark the cloud object as gone.

        Called after ``remove()``, and for resources deleted by the provider
        together with their parent, whose ``remove()`` is never called.
        """
        self._crn = None
