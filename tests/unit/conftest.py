"""Shared fixtures for unit tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

import pytest

from seff.config import load
from seff.engine.registry import ResourceTypeRegistry
from seff.resources.base import Resource

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from seff.config.schema import ProjectConfig

_SFF_ENV_VARS = (
    "SFF_STATE_FILE",
    "SFF_STATE_FILE_POSTFIX",
    "SFF_LOCK_TIMEOUT",
    "SFF_LOG",
    "NO_COLOR",
)


class FakeResource(Resource):
    """In-memory resource that journals every lifecycle call.

    ``fail_on`` holds ``(operation, name)`` pairs that raise ``RuntimeError``.
    """

    resource_type: ClassVar[str] = "Fake"
    calls: ClassVar[list[tuple[str, str]]] = []
    fail_on: ClassVar[set[tuple[str, str]]] = set()

    def __init__(self, name: str, crn: str | None = None, value: Any = 0) -> None:
        super().__init__(name, crn)
        self.value = value

    def _record(self, op: str, detail: str | None = None) -> None:
        FakeResource.calls.append((op, detail or self.uid))
        if (op, self.name) in FakeResource.fail_on:
            raise RuntimeError(f"{op} failed for {self.name}")

    def is_equal(self, other: Any) -> bool:
        return type(other) is type(self) and self.value == other.value

    def to_constructor_arguments(self) -> list[Any]:
        return [self.value]

    async def create(self) -> None:
        self._record("create")
        self.set_crn(f"crn:{self.resource_type.lower()}:{self.name}")

    async def update(self, previous: Resource) -> None:
        self._record("update")

    async def remove(self) -> None:
        self._record("remove")

    async def dependencies_changed(self) -> None:
        self._record("dependencies_changed")

    async def remove_configuration_from_dependency(self, dependency: Resource) -> None:
        self._record("remove_configuration", f"{self.uid}->{dependency.uid}")

    def has_been_removed(self) -> None:
        FakeResource.calls.append(("has_been_removed", self.uid))
        super().has_been_removed()


class OtherResource(FakeResource):
    """Second type; its single argument may be another resource."""

    resource_type: ClassVar[str] = "Other"

    def __init__(self, name: str, crn: str | None = None, target: Any = None) -> None:
        super().__init__(name, crn, target)

    @property
    def target(self) -> Any:
        return self.value

    def is_equal(self, other: Any) -> bool:
        if type(other) is not type(self):
            return False
        if isinstance(self.target, Resource) and isinstance(other.target, Resource):
            return self.target.uid == other.target.uid
        return self.target == other.target


@pytest.fixture(autouse=True)
def _clean_sff_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove SFF_* env vars so unit tests don't leak local config."""
    for var in _SFF_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _reset_fakes() -> None:
    FakeResource.calls = []
    FakeResource.fail_on = set()


@pytest.fixture
def calls(_reset_fakes: None) -> list[tuple[str, str]]:
    """Journal of lifecycle calls made by fake resources, reset per test."""
    return FakeResource.calls


@pytest.fixture
def fake_cls() -> type[FakeResource]:
    return FakeResource


@pytest.fixture
def other_cls() -> type[OtherResource]:
    return OtherResource


@pytest.fixture
def registry() -> ResourceTypeRegistry:
    reg = ResourceTypeRegistry()
    reg.register(FakeResource)
    reg.register(OtherResource)
    return reg.freeze()


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., ProjectConfig]:
    """Factory fixture: write YAML + optional .env, return loaded ProjectConfig."""

    def _make(
        yaml_str: str, *, dotenv: str | None = None, filename: str = "demo.yaml"
    ) -> ProjectConfig:
        (tmp_path / filename).write_text(yaml_str)
        if dotenv is not None:
            (tmp_path / ".env").write_text(dotenv)
        return load(tmp_path / filename)

    return _make
