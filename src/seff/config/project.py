"""Build a resource graph from project declarations."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from seff.config.loader import ConfigError
from seff.engine.errors import EngineError, MissingResourceError, UnknownResourceTypeError
from seff.engine.resource_graph import ResourceGraph
from seff.resources.base import make_uid

if TYPE_CHECKING:
    from seff.config.schema import ProjectConfig, ResourceDeclaration
    from seff.engine.registry import ResourceTypeRegistry
    from seff.resources.base import Resource

logger = logging.getLogger(__name__)

_REF_RE = re.compile(r"([a-zA-Z_]\w*)\.([a-zA-Z_][\w\-]*)", re.ASCII)


def _lookup(graph: ResourceGraph, ref: Any, decl: ResourceDeclaration) -> Resource:
    match = _REF_RE.fullmatch(ref) if isinstance(ref, str) else None
    if match is None:
        raise ConfigError(f"{decl.address}: invalid reference {ref!r} (expected '<type>.<name>')")
    try:
        return graph.get_resource_by_uid(make_uid(match[1], match[2]))
    except MissingResourceError as e:
        raise ConfigError(
            f"{decl.address}: reference to undeclared resource '{ref}' "
            "(declare it earlier in the file)"
        ) from e


def _resolve_arg(graph: ResourceGraph, arg: Any, decl: ResourceDeclaration) -> Any:
    if isinstance(arg, dict) and set(arg) == {"ref"}:
        return _lookup(graph, arg["ref"], decl)
    return arg


def _same_relations(a: Resource, b: Resource) -> bool:
    parent_a = a.parent.uid if a.parent is not None else None
    parent_b = b.parent.uid if b.parent is not None else None
    deps_a = {tag: r.uid for tag, r in a.dependencies.items()}
    deps_b = {tag: r.uid for tag, r in b.dependencies.items()}
    return parent_a == parent_b and deps_a == deps_b


def _reuse_shared(graph: ResourceGraph, resource: Resource, decl: ResourceDeclaration) -> bool:
    """Resolve a repeated shared declaration to the resource declared first.

    Returns ``False`` when *resource* is the first declaration of its kind.
    """
    existing = graph.find_resource_by_name(resource.name, type(resource))
    if existing is None or existing.uid != resource.uid:
        return False
    if not (existing.is_equal(resource) and _same_relations(existing, resource)):
        raise ConfigError(
            f"{decl.address}: shared resource is declared again with a different configuration"
        )
    logger.debug("Reusing shared resource %s", existing.uid)
    return True


def build_graph(config: ProjectConfig, registry: ResourceTypeRegistry) -> ResourceGraph:
    """Instantiate every declared resource, wire its relations and add it to a new graph.

    Repeated ``shared`` declarations are checked against the first one and
    then skipped.

    Raises:
        ConfigError: For unknown types, unresolvable references, bad arguments,
            conflicting shared declarations or relations the graph rejects.
    """
    graph = ResourceGraph(config.name)
    for decl in config.resources:
        try:
            registration = registry.get(decl.type)
        except UnknownResourceTypeError as e:
            raise ConfigError(f"{decl.address}: {e}") from e

        args = [_resolve_arg(graph, a, decl) for a in decl.args]
        parent = _lookup(graph, decl.parent, decl) if decl.parent is not None else None
        deps = {tag: _lookup(graph, ref, decl) for tag, ref in decl.deps.items()}

        try:
            resource = registration.resource_class(decl.name, None, *args)
            if parent is not None:
                resource.set_parent(parent)
            for tag, dep in deps.items():
                resource.add_dependency(tag, dep)
            if decl.shared and _reuse_shared(graph, resource, decl):
                continue
            graph.add(resource)
        except (EngineError, TypeError, ValueError) as e:
            raise ConfigError(f"{decl.address}: {e}") from e

    logger.debug("Built graph %s with %d resources", config.name, len(graph))
    return graph
