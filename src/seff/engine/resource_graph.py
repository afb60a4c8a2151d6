"""Resource graph: structural invariants, persistence and transitions.

A graph holds resources together with their parent and dependency
relations. Resources must be added in topological order (parent and
dependencies first), so the insertion order doubles as creation order and
as serialization order.

Transitioning from one graph to another converges the cloud from the
state recorded in the receiver to the state declared in the target, in
three phases:

1. create or update target resources, in target order;
2. push dependency changes to resources whose own configuration is
   unchanged;
3. remove resources missing from the target, dependents before their
   dependencies, one call per parent cluster.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from seff.engine.errors import (
    DependencyCycleError,
    DeserializationError,
    DuplicateResourceError,
    EngineError,
    MissingDependencyError,
    MissingParentError,
    MissingResourceError,
)
from seff.engine.graph import DependencyGraph
from seff.engine.types import ChangeEvent, ChangeType, TransitionResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator

    from seff.engine.registry import ResourceTypeRegistry
    from seff.engine.types import ChangeObserver
    from seff.resources.base import Resource

logger = logging.getLogger(__name__)


@dataclass
class _RemovalGroup:
    """A removal candidate plus the removed descendants the provider deletes with it."""

    resource: Resource
    members: list[Resource] = field(default_factory=list)
    # uids of every dependency of a member, together with the dependency's ancestors
    dependency_roots: set[str] = field(default_factory=set)

    def add(self, res: Resource) -> None:
        self.members.append(res)
        for dep in res.dependencies.values():
            self.dependency_roots.add(dep.uid)
            self.dependency_roots.update(a.uid for a in dep.ancestors())


def _is_ancestor(res: Resource, maybe_ancestor: Resource) -> bool:
    return any(a.uid == maybe_ancestor.uid for a in res.ancestors())


class ResourceGraph:
    """An ordered collection of resources and their relations."""

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self._resources: dict[str, Resource] = {}
        self._order: list[Resource] = []

    def __repr__(self) -> str:
        return f"<ResourceGraph {self.name!r} ({len(self._order)} resources)>"

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[Resource]:
        return iter(list(self._order))

    def __contains__(self, uid: object) -> bool:
        return uid in self._resources

    @property
    def resources(self) -> list[Resource]:
        """Resources in insertion order."""
        return list(self._order)

    def add(self, resource: Resource) -> Resource:
        """Add a resource whose parent and dependencies are already in the graph."""
        uid = resource.uid
        if uid in self._resources:
            raise DuplicateResourceError(uid)
        parent = resource.parent
        if parent is not None and parent.uid not in self._resources:
            raise MissingParentError(uid, parent.uid)
        for tag, dep in resource.dependencies.items():
            if dep.uid not in self._resources:
                raise MissingDependencyError(uid, tag, dep.uid)
        related = [*resource.dependencies.values()] + ([parent] if parent is not None else [])
        if any(r.reaches(resource) for r in related):
            raise DependencyCycleError([uid])

        self._resources[uid] = resource
        self._order.append(resource)
        return resource

    def find_resource_by_name(self, name: str, cls: type[Resource]) -> Resource | None:
        """Return the first resource called *name* that is an instance of *cls*."""
        for resource in self._order:
            if resource.name == name and isinstance(resource, cls):
                return resource
        return None

    def get_resource_by_uid(self, uid: str) -> Resource:
        try:
            return self._resources[uid]
        except KeyError as e:
            raise MissingResourceError(uid) from e

    # -- Persistence ---------------------------------------------------------

    def serialize(
        self, *, include: Callable[[Resource], bool] | None = None
    ) -> list[list[Any]]:
        """Serialize as ``[uid, record]`` pairs in creation order."""
        return [
            [res.uid, res.serialize()]
            for res in self._order
            if include is None or include(res)
        ]

    @classmethod
    def deserialize(
        cls,
        data: Any,
        registry: ResourceTypeRegistry,
        name: str | None = None,
    ) -> ResourceGraph:
        """Rebuild a graph from ``serialize()`` output, validating every entry."""
        from seff.resources.base import Resource

        if not isinstance(data, list):
            raise DeserializationError(f"Serialized graph data is not an array: {data!r}")
        graph = cls(name)
        for item in data:
            if not isinstance(item, list | tuple) or len(item) != 2:
                raise DeserializationError(f"Invalid item in serialized graph data: {item!r}")
            uid, record = item
            resource = Resource.deserialize(uid, record, graph, registry)
            try:
                graph.add(resource)
            except EngineError as e:
                raise DeserializationError(str(e)) from e
        logger.debug("Deserialized graph %s with %d resources", name, len(graph))
        return graph

    # -- Lifecycle -----------------------------------------------------------

    async def transition_to_graph(
        self,
        target: ResourceGraph,
        observer: ChangeObserver | None = None,
    ) -> TransitionResult:
        """Converge the cloud from this graph's recorded state to *target*.

        *observer* is awaited after every create, update and remove, and once
        with ``None`` when phase 1 ends on a run of unchanged resources. Any
        exception raised by a resource or by the observer aborts the transition
        as is; nothing is rolled back.
        """
        result = TransitionResult()
        async with contextlib.aclosing(self.transition_steps(target)) as steps:
            async for event in steps:
                if event is None:
                    result.checkpoints += 1
                else:
                    result.events.append(event)
                if observer is not None:
                    await observer(event)

        s = result.summary()
        logger.info(
            "Transition complete: %d created, %d updated, %d removed",
            s["create"],
            s["update"],
            s["remove"],
        )
        return result

    async def transition_steps(
        self, target: ResourceGraph
    ) -> AsyncIterator[ChangeEvent | None]:
        """Run the transition, yielding each change once it has been applied.

        The generator does not resume until the consumer asks for the next
        step, so a consumer may persist progress between steps.
        """
        updated: set[str] = set()
        unchanged: list[tuple[Resource, Resource]] = []

        # Phase 1: create or update, in target order.
        pending = 0
        for res in target._order:
            prev = self._resources.get(res.uid)
            if prev is not None and prev.crn is not None:
                res.set_crn(prev.crn)
                if res.is_equal(prev):
                    pending += 1
                    unchanged.append((res, prev))
                    continue
                logger.info("Updating %s resource: %s", res.resource_type, res.name)
                await res.update(prev)
                updated.add(res.uid)
                pending = 0
                yield ChangeEvent(ChangeType.UPDATE, res)
            else:
                logger.info("Creating %s resource: %s", res.resource_type, res.name)
                await res.create()
                if res.crn is None:
                    raise EngineError(f"Resource {res.uid} did not record a crn when created")
                pending = 0
                yield ChangeEvent(ChangeType.CREATE, res)
        if pending:
            logger.debug("%d resources unchanged", pending)
            yield None

        # Phase 2: propagate dependency changes to unchanged resources.
        for res, prev in unchanged:
            deps = {d.uid for d in res.dependencies.values()}
            prev_deps = {d.uid for d in prev.dependencies.values()}
            if deps & updated or deps != prev_deps:
                logger.info("Dependencies changed for %s resource: %s", res.resource_type, res.name)
                await res.dependencies_changed()
                updated.add(res.uid)
                yield ChangeEvent(ChangeType.UPDATE, res)

        # Phase 3: remove what the target no longer declares.
        async for event in self._remove_missing(target):
            yield event

    async def _remove_missing(self, target: ResourceGraph) -> AsyncIterator[ChangeEvent]:
        removals: dict[str, Resource] = {}
        groups: list[_RemovalGroup] = []
        for res in self._order:
            if res.crn is None or res.uid in target._resources:
                continue
            removals[res.uid] = res
            group = next((g for g in groups if _is_ancestor(res, g.resource)), None)
            if group is None:
                group = _RemovalGroup(res)
                groups.append(group)
            group.add(res)

        if not groups:
            return

        for res in removals.values():
            for dep in res.dependencies.values():
                if dep.uid not in removals:
                    logger.info("Removing configuration of %s from resource: %s", res.uid, dep.uid)
                    await res.remove_configuration_from_dependency(dep)

        for group in self._removal_order(groups):
            res = group.resource
            logger.info("Removing %s resource: %s", res.resource_type, res.name)
            await res.remove()
            yield ChangeEvent(ChangeType.REMOVE, res)
            for member in group.members:
                if member is not res:
                    logger.debug("Removed with parent %s: %s", res.uid, member.uid)
                member.has_been_removed()

    @staticmethod
    def _removal_order(groups: list[_RemovalGroup]) -> list[_RemovalGroup]:
        """Order groups so that a group goes before every group it depends on.

        Unrelated groups keep their recorded order.
        """
        by_uid = {g.resource.uid: g for g in groups}
        priorities = {uid: i for i, uid in enumerate(by_uid)}
        # uid -> groups that have to be removed before it
        waits_for: dict[str, list[str]] = {uid: [] for uid in by_uid}
        for g in groups:
            for dep_uid in g.dependency_roots:
                if dep_uid in by_uid and dep_uid != g.resource.uid:
                    waits_for[dep_uid].append(g.resource.uid)
        order = DependencyGraph(by_uid, waits_for, priorities=priorities).topological_order(
            strict=False
        )
        return [by_uid[uid] for uid in order]
