"""Dependency graph utilities."""

from __future__ import annotations

import heapq
import logging
from typing import TYPE_CHECKING

from seff.engine.errors import DependencyCycleError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)


class DependencyGraph:
    """A directed graph where nodes depend on other nodes."""

    def __init__(
        self,
        nodes: Iterable[str],
        dependencies: Mapping[str, Iterable[str]],
        priorities: Mapping[str, int] | None = None,
    ) -> None:
        self._nodes = set(nodes)
        self._priorities = priorities or {}
        # node -> filtered deps within graph
        self._deps: dict[str, set[str]] = {}
        for node in self._nodes:
            deps = set(dependencies.get(node, []))
            self._deps[node] = {d for d in deps if d in self._nodes and d != node}

    def topological_order(self, *, strict: bool = True) -> list[str]:
        """Return deterministic topo order (priority, then lexicographic tie-break).

        With ``strict=False`` a cycle does not raise: the lowest-priority node
        still waiting is released and ordering resumes from there.
        """
        indegree: dict[str, int] = dict.fromkeys(self._nodes, 0)
        dependents: dict[str, set[str]] = {n: set() for n in self._nodes}

        for node, deps in self._deps.items():
            indegree[node] = len(deps)
            for dep in deps:
                dependents[dep].add(node)

        ready: list[tuple[int, str]] = [
            (self._priorities.get(n, 0), n) for n, deg in indegree.items() if deg == 0
        ]
        heapq.heapify(ready)

        order: list[str] = []
        placed: set[str] = set()
        while len(order) < len(self._nodes):
            if not ready:
                remaining = sorted(self._nodes - placed)
                if strict:
                    raise DependencyCycleError(remaining)
                forced = min(remaining, key=lambda n: (self._priorities.get(n, 0), n))
                logger.warning("Breaking dependency cycle at %s (waiting: %s)", forced, remaining)
                indegree[forced] = 0
                heapq.heappush(ready, (self._priorities.get(forced, 0), forced))

            _, node = heapq.heappop(ready)
            order.append(node)
            placed.add(node)
            for child in sorted(dependents[node]):
                if child in placed:
                    continue
                indegree[child] -= 1
                if indegree[child] == 0:
                    heapq.heappush(ready, (self._priorities.get(child, 0), child))

        return order
