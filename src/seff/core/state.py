"""Persisted state: the serialized resource graph of the last transition."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from seff.engine.errors import StateError
from seff.engine.graph import DependencyGraph
from seff.engine.resource_graph import ResourceGraph
from seff.engine.types import ChangeType
from seff.resources.base import is_uid

if TYPE_CHECKING:
    from seff.engine.registry import ResourceTypeRegistry
    from seff.engine.types import ChangeEvent, ProgressCallback
    from seff.resources.base import Resource

logger = logging.getLogger(__name__)


class StateFile:
    """JSON state file holding ``[uid, record]`` pairs in creation order."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"StateFile({str(self.path)!r})"

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Any | None:
        """Return the decoded state, or ``None`` when there is no state file."""
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No state file at %s", self.path)
            return None
        except OSError as e:
            raise StateError(f"Error loading state file {self.path}: {e}") from e
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise StateError(f"State file {self.path} is not valid JSON: {e}") from e

    def save(self, data: Any) -> None:
        """Save state to the JSON file.

        - Writes atomically (temp file + rename)
        - Writes a `.backup` copy of the previous state when overwriting
        """
        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)

        backup_path = Path(str(path) + ".backup")
        # Avoid TOCTOU race between exists() and read_bytes().
        with contextlib.suppress(FileNotFoundError):
            backup_path.write_bytes(path.read_bytes())

        content = json.dumps(data, separators=(",", ":"))

        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        tmp_file = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            tmp_file.replace(path)
        finally:
            with contextlib.suppress(FileNotFoundError):
                tmp_file.unlink()
        logger.debug("State saved: %d entries path=%s", len(data), path)

    def remove(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.debug("State file not found: %s", self.path)
            return
        logger.info("Removed state file %s", self.path)

    def load_graph(self, registry: ResourceTypeRegistry, name: str | None = None) -> ResourceGraph:
        """Load the recorded graph; an absent file yields an empty graph."""
        data = self.load()
        graph = ResourceGraph.deserialize(data if data is not None else [], registry, name)
        logger.debug("State loaded: %d resources from %s", len(graph), self.path)
        return graph

    def save_graph(self, graph: ResourceGraph) -> None:
        self.save(graph.serialize())


class StateRecorder:
    """Change observer that persists the state of a running transition.

    Every save holds the resources of *target* that are already in place,
    the recorded form of target resources not reached yet, and the
    resources of *previous* that still await removal. A failure or crash
    at any step therefore leaves a state file a later run converges from.
    Resources already removed, and the descendants the provider removed
    with them, are left out.
    """

    def __init__(
        self,
        store: StateFile,
        target: ResourceGraph,
        *,
        previous: ResourceGraph | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        self._store = store
        self._target = target
        self._previous = previous if previous is not None else ResourceGraph()
        self._progress = progress
        self._removed: set[str] = set()
        self.saves = 0

    def _is_removed(self, resource: Resource) -> bool:
        if resource.uid in self._removed:
            return True
        return any(a.uid in self._removed for a in resource.ancestors())

    def _recorded(self, resource: Resource) -> Resource:
        """Return the previous form of a target resource the transition has not reached."""
        if resource.crn is None and resource.uid in self._previous:
            prev = self._previous.get_resource_by_uid(resource.uid)
            if prev.crn is not None:
                return prev
        return resource

    def snapshot(self) -> list[list[Any]]:
        """Serialize the current state as ``[uid, record]`` pairs, dependencies first."""
        records: dict[str, dict[str, Any]] = {}
        for res in self._target:
            records[res.uid] = self._recorded(res).serialize()
        for res in self._previous:
            if res.uid not in records and not self._is_removed(res):
                records[res.uid] = res.serialize()

        refs = {uid: _references(record) for uid, record in records.items()}
        dangling = [uid for uid in refs if not refs[uid] <= records.keys()]
        while dangling:
            for uid in dangling:
                logger.debug("Not recording %s: it refers to a resource that is gone", uid)
                del records[uid], refs[uid]
            dangling = [uid for uid in refs if not refs[uid] <= records.keys()]

        priorities = {uid: i for i, uid in enumerate(records)}
        order = DependencyGraph(records, refs, priorities=priorities).topological_order(
            strict=False
        )
        return [[uid, records[uid]] for uid in order]

    async def __call__(self, event: ChangeEvent | None) -> None:
        if self._progress is not None:
            self._progress(event)
        if event is not None and event.type is ChangeType.REMOVE:
            self._removed.add(event.resource.uid)
        self._store.save(self.snapshot())
        self.saves += 1


def _references(record: dict[str, Any]) -> set[str]:
    refs = {a for a in record.get("args", []) if is_uid(a)}
    refs.update(record.get("deps", {}).values())
    if record.get("parent") is not None:
        refs.add(record["parent"])
    return refs
