from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest

from seff.core.state import StateFile, StateRecorder
from seff.engine.errors import DeserializationError, StateError, StateLockError
from seff.engine.lock import StateLock
from seff.engine.resource_graph import ResourceGraph
from seff.engine.types import ChangeEvent, ChangeType

if TYPE_CHECKING:
    from pathlib import Path

# ---------------------------------------------------------------------------
# StateFile
# ---------------------------------------------------------------------------


def test_load_missing_returns_none(tmp_path: Path) -> None:
    store = StateFile(tmp_path / "missing.state.json")
    assert not store.exists()
    assert store.load() is None


def test_save_writes_compact_json(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "demo.state.json"
    store = StateFile(path)
    store.save([["uid:Fake:a", {"name": "a", "args": [0], "deps": {}}]])

    assert path.read_text() == '[["uid:Fake:a",{"name":"a","args":[0],"deps":{}}]]'
    assert store.load() == [["uid:Fake:a", {"name": "a", "args": [0], "deps": {}}]]


def test_save_creates_backup(tmp_path: Path) -> None:
    path = tmp_path / "demo.state.json"
    store = StateFile(path)
    store.save([])
    store.save([["uid:Fake:a", {"name": "a", "args": []}]])

    backup = tmp_path / "demo.state.json.backup"
    assert json.loads(backup.read_text()) == []
    assert [p.name for p in tmp_path.iterdir() if p.name.startswith(".")] == []


def test_load_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "demo.state.json"
    path.write_text("{not json")
    with pytest.raises(StateError, match="not valid JSON"):
        StateFile(path).load()


def test_remove(tmp_path: Path) -> None:
    store = StateFile(tmp_path / "demo.state.json")
    store.save([])
    store.remove()
    assert not store.exists()
    store.remove()


def test_graph_round_trip(tmp_path: Path, fake_cls, registry) -> None:
    graph = ResourceGraph("demo")
    a = graph.add(fake_cls("a", "crn:a", {"k": "v"}))
    b = fake_cls("b", "crn:b")
    b.set_parent(a)
    graph.add(b)

    store = StateFile(tmp_path / "demo.state.json")
    store.save_graph(graph)
    loaded = store.load_graph(registry, "demo")

    assert loaded.serialize() == graph.serialize()
    assert loaded.name == "demo"


def test_load_graph_missing_file_is_empty(tmp_path: Path, registry) -> None:
    assert len(StateFile(tmp_path / "none.json").load_graph(registry)) == 0


def test_load_graph_corrupt_state(tmp_path: Path, registry) -> None:
    path = tmp_path / "demo.state.json"
    path.write_text('[["uid:Fake:a", {"name": "a", "args": [], "parent": "uid:Fake:zz"}]]')
    with pytest.raises(DeserializationError):
        StateFile(path).load_graph(registry)


# ---------------------------------------------------------------------------
# StateRecorder
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_recorder_saves_after_every_step(tmp_path: Path, fake_cls) -> None:
    store = StateFile(tmp_path / "demo.state.json")
    target = ResourceGraph()
    target.add(fake_cls("a"))
    target.add(fake_cls("b"))
    progress = MagicMock()
    snapshots: list[list] = []

    recorder = StateRecorder(store, target, progress=progress)

    async def observer(event: ChangeEvent | None) -> None:
        await recorder(event)
        snapshots.append(store.load())

    await ResourceGraph().transition_to_graph(target, observer)

    assert recorder.saves == 2
    assert progress.call_count == 2
    # The first checkpoint already records a's crn.
    assert snapshots[0][0][1]["crn"] == "crn:fake:a"
    assert "crn" not in snapshots[0][1][1]
    assert snapshots[1] == target.serialize()


@pytest.mark.asyncio
async def test_recorder_prunes_removed_resources(tmp_path: Path, fake_cls) -> None:
    store = StateFile(tmp_path / "demo.state.json")
    previous = ResourceGraph()
    api = previous.add(fake_cls("api", "crn:api"))
    method = fake_cls("method", "crn:method")
    method.set_parent(api)
    previous.add(method)
    previous.add(fake_cls("other", "crn:other"))

    recorder = StateRecorder(store, ResourceGraph(), previous=previous)
    await recorder(ChangeEvent(ChangeType.REMOVE, api))

    assert [uid for uid, _ in store.load()] == ["uid:Fake:other"]

    await recorder(None)
    assert recorder.saves == 2
    assert [uid for uid, _ in store.load()] == ["uid:Fake:other"]


@pytest.mark.asyncio
async def test_recorder_keeps_pending_removals(tmp_path: Path, fake_cls) -> None:
    store = StateFile(tmp_path / "demo.state.json")
    previous = ResourceGraph()
    a = previous.add(fake_cls("a", "crn:a"))
    x = fake_cls("x", "crn:x")
    x.add_dependency("a", a)
    previous.add(x)
    target = ResourceGraph()
    target.add(fake_cls("c", "crn:c"))
    target.add(fake_cls("a", "crn:a"))

    recorder = StateRecorder(store, target, previous=previous)
    await recorder(None)

    snapshot = store.load()
    assert [uid for uid, _ in snapshot] == ["uid:Fake:c", "uid:Fake:a", "uid:Fake:x"]
    assert snapshot[2][1]["deps"] == {"a": "uid:Fake:a"}

    await recorder(ChangeEvent(ChangeType.REMOVE, x))
    assert [uid for uid, _ in store.load()] == ["uid:Fake:c", "uid:Fake:a"]


@pytest.mark.asyncio
async def test_recorder_keeps_recorded_form_until_reached(tmp_path: Path, fake_cls) -> None:
    store = StateFile(tmp_path / "demo.state.json")
    previous = ResourceGraph()
    previous.add(fake_cls("a", "crn:a", 1))
    target = ResourceGraph()
    target.add(fake_cls("new", "crn:new"))
    a = target.add(fake_cls("a", None, 2))

    recorder = StateRecorder(store, target, previous=previous)
    await recorder(None)

    assert store.load()[1] == [
        "uid:Fake:a",
        {"name": "a", "crn": "crn:a", "args": [1], "deps": {}},
    ]

    a.set_crn("crn:a")
    await recorder(None)
    assert store.load()[1][1]["args"] == [2]


@pytest.mark.asyncio
async def test_recorder_orders_dependencies_first(tmp_path: Path, fake_cls) -> None:
    store = StateFile(tmp_path / "demo.state.json")
    previous = ResourceGraph()
    previous.add(fake_cls("old", "crn:old"))
    b = fake_cls("b", "crn:b")
    b.add_dependency("old", previous.get_resource_by_uid("uid:Fake:old"))
    previous.add(b)
    # b is declared again without the dependency but has not been reached yet.
    target = ResourceGraph()
    target.add(fake_cls("b"))

    recorder = StateRecorder(store, target, previous=previous)
    await recorder(None)

    assert [uid for uid, _ in store.load()] == ["uid:Fake:old", "uid:Fake:b"]



# ---------------------------------------------------------------------------
# StateLock
# ---------------------------------------------------------------------------


def test_lock_writes_pid_and_releases(tmp_path: Path) -> None:
    state = tmp_path / "demo.state.json"
    lock = StateLock(state)
    assert lock.lock_path == tmp_path / "demo.state.json.lock"

    with lock:
        assert lock.lock_path.read_text() == str(os.getpid())
    assert lock.lock_path.read_text() == ""

    with StateLock(state, timeout=0):
        pass


def test_lock_times_out_when_held(tmp_path: Path) -> None:
    state = tmp_path / "demo.state.json"
    with StateLock(state), pytest.raises(StateLockError, match="Timed out"):
        with StateLock(state, timeout=0.2):
            pass
