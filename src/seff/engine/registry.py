"""Resource type registry used to rebuild typed resources from records."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from seff.engine.errors import (
    DuplicateResourceTypeError,
    RegistryFrozenError,
    UnknownResourceTypeError,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from seff.resources.base import Resource

_TYPE_RE = re.compile(r"^[a-zA-Z_]\w*$")


@dataclass(frozen=True)
class ResourceTypeRegistration:
    resource_type: str
    resource_class: type[Resource]


class ResourceTypeRegistry:
    """Registry mapping resource_type -> resource class.

    Populated during an explicit initialization step and frozen afterwards;
    the registry is handed to whatever needs to construct resources by type.
    """

    def __init__(self) -> None:
        self._registrations: dict[str, ResourceTypeRegistration] = {}
        self._frozen = False

    def register(self, resource_class: type[Resource]) -> type[Resource]:
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register {resource_class.__name__}: registry is frozen"
            )

        resource_type = getattr(resource_class, "resource_type", None)
        if not isinstance(resource_type, str) or not _TYPE_RE.match(resource_type):
            raise ValueError(
                f"Resource class {resource_class.__name__} must define a classvar "
                f"`resource_type` matching {_TYPE_RE.pattern}"
            )
        if not callable(getattr(resource_class, "to_constructor_arguments", None)):
            raise ValueError(f"Invalid resource class: {resource_class.__name__}")

        if resource_type in self._registrations:
            raise DuplicateResourceTypeError(resource_type)

        self._registrations[resource_type] = ResourceTypeRegistration(
            resource_type=resource_type,
            resource_class=resource_class,
        )
        return resource_class

    def freeze(self) -> ResourceTypeRegistry:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, resource_type: str) -> ResourceTypeRegistration:
        try:
            return self._registrations[resource_type]
        except KeyError as e:
            raise UnknownResourceTypeError(resource_type) from e

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._registrations

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._registrations))
