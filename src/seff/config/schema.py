"""Configuration models for YAML project files."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tool settings.

    Fields can be set via constructor kwargs or environment variables with
    the ``SFF_`` prefix.  Constructor kwargs take precedence.
    """

    model_config = SettingsConfigDict(env_prefix="SFF_")

    state_file: Path | None = None
    state_file_postfix: str = ".state.json"
    lock_timeout: float | None = None
    log: str | None = None


def _none_to_list(v: Any) -> Any:
    return v if v is not None else []


def _none_to_dict(v: Any) -> Any:
    return v if v is not None else {}


class ResourceDeclaration(BaseModel):
    """One resource entry of a project file.

    ``parent`` and ``deps`` values, and ``{ref: ...}`` arguments, refer to
    earlier entries as ``<type>.<name>``.

    A ``shared`` entry may be declared again further down, typically through
    a YAML alias; the repeats resolve to the first declaration as long as
    they describe the same resource.
    """

    model_config = ConfigDict(extra="forbid")

    type: str = Field(pattern=r"^[a-zA-Z_][a-zA-Z0-9_]*$")
    name: str = Field(pattern=r"^[a-zA-Z_][a-zA-Z0-9_\-]*$")
    args: Annotated[list[Any], BeforeValidator(_none_to_list)] = []
    deps: Annotated[dict[str, str], BeforeValidator(_none_to_dict)] = {}
    parent: str | None = None
    shared: bool = False

    @property
    def address(self) -> str:
        return f"{self.type}.{self.name}"


class ProjectConfig(BaseModel):
    """A project: its name, where its state lives, and its resources in creation order."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(pattern=r"^[a-zA-Z_][a-zA-Z0-9_]*$")
    state_path: Path
    lock_timeout: float | None = None
    resources: Annotated[list[ResourceDeclaration], BeforeValidator(_none_to_list)] = []
    config_dir: Path = Path()
