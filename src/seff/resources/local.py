"""Local filesystem resources.

These implement the resource contract against the local filesystem, with
``file://`` URIs as crns. A directory owns the files parented to it: removing
the directory deletes them too, so the engine never calls ``remove()`` on
those files.
"""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Any, ClassVar
from urllib.parse import unquote, urlparse

from seff.engine.errors import EngineError
from seff.resources.base import Resource

logger = logging.getLogger(__name__)


def path_to_crn(path: Path) -> str:
    return path.resolve().as_uri()


def crn_to_path(crn: str) -> Path:
    parsed = urlparse(crn)
    if parsed.scheme != "file":
        raise ValueError(f"Not a local resource name: {crn}")
    return Path(unquote(parsed.path))


def recorded_path(resource: Resource) -> Path:
    """Return where *resource* was created; it must have a crn."""
    if resource.crn is None:
        raise EngineError(f"Resource {resource.uid} has no crn")
    return crn_to_path(resource.crn)


def _moved(resource: Resource, other: Resource) -> bool:
    """True when *other* was recorded somewhere else than *resource* now resolves to."""
    parent = resource.parent
    if not isinstance(parent, LocalDirectoryResource) or parent.crn is None or other.crn is None:
        return False
    return crn_to_path(other.crn) != crn_to_path(parent.crn) / resource.name


class LocalDirectoryResource(Resource):
    """A directory ``<root>/<name>``, or ``<parent>/<name>`` below another directory.

    Moving a directory carries its contents along. Nested directories and
    files then no longer match their recorded location, so they are updated
    in turn and record their new crn.
    """

    resource_type: ClassVar[str] = "LocalDirectory"

    def __init__(self, name: str, crn: str | None = None, root: str = ".") -> None:
        super().__init__(name, crn)
        self.root = root

    @property
    def path(self) -> Path:
        parent = self.parent
        if isinstance(parent, LocalDirectoryResource):
            if parent.crn is not None:
                return crn_to_path(parent.crn) / self.name
            return parent.path / self.name
        return Path(self.root) / self.name

    def is_equal(self, other: Any) -> bool:
        return (
            isinstance(other, LocalDirectoryResource)
            and self.root == other.root
            and _parent_name(self) == _parent_name(other)
            and not _moved(self, other)
        )

    def to_constructor_arguments(self) -> list[Any]:
        return [self.root]

    async def create(self) -> None:
        path = self.path
        logger.debug("Creating directory %s", path)
        path.mkdir(parents=True, exist_ok=True)
        self.set_crn(path_to_crn(path))

    async def update(self, previous: Resource) -> None:
        old, new = recorded_path(previous), self.path
        if old != new.resolve():
            if old.exists():
                logger.debug("Moving directory %s -> %s", old, new)
                new.parent.mkdir(parents=True, exist_ok=True)
                old.rename(new)
            else:
                logger.debug("Directory moved along with its parent: %s", new)
                new.mkdir(parents=True, exist_ok=True)
        self.set_crn(path_to_crn(new))

    async def remove(self) -> None:
        path = recorded_path(self)
        if not path.exists():
            logger.warning("Directory already gone: %s", path)
            return
        logger.debug("Removing directory tree %s", path)
        shutil.rmtree(path)


class LocalFileResource(Resource):
    """A text file inside the ``LocalDirectory`` it is parented to."""

    resource_type: ClassVar[str] = "LocalFile"

    def __init__(self, name: str, crn: str | None = None, content: str = "") -> None:
        super().__init__(name, crn)
        self.content = content

    @property
    def path(self) -> Path:
        parent = self.parent
        if not isinstance(parent, LocalDirectoryResource) or parent.crn is None:
            raise RuntimeError(f"File {self.name} needs a created LocalDirectory parent")
        return crn_to_path(parent.crn) / self.name

    def is_equal(self, other: Any) -> bool:
        return (
            isinstance(other, LocalFileResource)
            and self.content == other.content
            and _parent_name(self) == _parent_name(other)
            and not _moved(self, other)
        )

    def to_constructor_arguments(self) -> list[Any]:
        return [self.content]

    async def create(self) -> None:
        path = self.path
        logger.debug("Writing file %s", path)
        path.write_text(self.content, encoding="utf-8")
        self.set_crn(path_to_crn(path))

    async def update(self, previous: Resource) -> None:
        path = self.path
        if previous.crn is not None and crn_to_path(previous.crn) != path:
            crn_to_path(previous.crn).unlink(missing_ok=True)
        logger.debug("Rewriting file %s", path)
        path.write_text(self.content, encoding="utf-8")
        self.set_crn(path_to_crn(path))

    async def remove(self) -> None:
        path = recorded_path(self)
        logger.debug("Removing file %s", path)
        path.unlink(missing_ok=True)


class LocalManifestResource(Resource):
    """A JSON file ``<root>/<name>.json`` listing the crn of every dependency by tag.

    Each directory dependency also receives a ``.<name>.manifest`` marker,
    which is removed again when the manifest goes away but the directory
    stays.
    """

    resource_type: ClassVar[str] = "LocalManifest"

    def __init__(self, name: str, crn: str | None = None, root: str = ".") -> None:
        super().__init__(name, crn)
        self.root = root

    @property
    def path(self) -> Path:
        return Path(self.root) / f"{self.name}.json"

    def _marker(self, directory: Resource) -> Path | None:
        if not isinstance(directory, LocalDirectoryResource) or directory.crn is None:
            return None
        return crn_to_path(directory.crn) / f".{self.name}.manifest"

    def entries(self) -> dict[str, str | None]:
        return {tag: dep.crn for tag, dep in sorted(self.dependencies.items())}

    def is_equal(self, other: Any) -> bool:
        return isinstance(other, LocalManifestResource) and self.root == other.root

    def to_constructor_arguments(self) -> list[Any]:
        return [self.root]

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.entries(), indent=2) + "\n", encoding="utf-8")

    def _register(self) -> list[Path]:
        written: list[Path] = []
        try:
            for dep in self.dependencies.values():
                marker = self._marker(dep)
                if marker is None:
                    continue
                marker.write_text(path_to_crn(self.path), encoding="utf-8")
                written.append(marker)
        except OSError:
            for marker in written:
                marker.unlink(missing_ok=True)
            raise
        return written

    async def create(self) -> None:
        logger.debug("Writing manifest %s", self.path)
        markers = self._register()
        try:
            self._write()
        except OSError:
            logger.info("Error creating manifest %s: cleaning up", self.name)
            for marker in markers:
                marker.unlink(missing_ok=True)
            raise
        self.set_crn(path_to_crn(self.path))

    async def update(self, previous: Resource) -> None:
        if previous.crn is not None and crn_to_path(previous.crn) != self.path.resolve():
            crn_to_path(previous.crn).unlink(missing_ok=True)
        self._register()
        self._write()
        self.set_crn(path_to_crn(self.path))

    async def dependencies_changed(self) -> None:
        logger.debug("Refreshing manifest %s", self.path)
        self._register()
        self._write()

    async def remove_configuration_from_dependency(self, dependency: Resource) -> None:
        marker = self._marker(dependency)
        if marker is not None:
            logger.debug("Removing manifest marker %s", marker)
            marker.unlink(missing_ok=True)

    async def remove(self) -> None:
        path = recorded_path(self)
        logger.debug("Removing manifest %s", path)
        path.unlink(missing_ok=True)


def _parent_name(resource: Resource) -> str | None:
    return resource.parent.name if resource.parent is not None else None
