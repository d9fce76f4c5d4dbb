"""
models for venvswitch.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, final


class EnvKind(Enum):
    """
    enumeration of supported environment kinds.
    """

    VENV = "venv"
    CONDA = "conda"


class DiscoveryOrigin(Enum):
    """
    where a descriptor came from. informational only.
    """

    CONFIGURED_PATH = "configured"
    PARENT_DIRECTORY = "parent"
    CONDA_PATH = "conda_path"
    ACTIVE_DETECTED = "active"
    CREATED = "created"


def make_identifier(kind: EnvKind, venv_name: str, project_name: str) -> str:
    """
    build the path-independent identity of an environment.

    arguments:
        `kind: EnvKind`
            environment kind
        `venv_name: str`
            base name of the environment directory
        `project_name: str`
            name of the owning project directory (ignored for conda)

    returns: `str`
        `"<project>/<venv>"` for venvs, `"conda/<name>"` for conda environments
    """
    if kind is EnvKind.CONDA:
        return f"conda/{venv_name}"
    return f"{project_name}/{venv_name}"


@final
@dataclass(eq=False)
class EnvironmentDescriptor:
    """
    identifies and locates one environment.

    the identity fields never change after discovery. `cached_path` is the last
    known location and may be stale; it is only ever replaced through
    `update_cached_path`.

    attributes:
        `kind: EnvKind`
            venv or conda
        `venv_name: str`
            base name of the environment directory
        `project_name: str`
            owning project directory name (same as `venv_name` for conda)
        `origin: DiscoveryOrigin`
            how the environment was found
        `display_name: str`
            human readable label
        `cached_path: Path | None`
            last known location
        `python_version: str | None`
            interpreter version, when it could be read from disk
    """

    kind: EnvKind
    venv_name: str
    project_name: str
    origin: DiscoveryOrigin
    display_name: str
    cached_path: Path | None = None
    python_version: str | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def from_path(
        cls,
        path: Path,
        kind: EnvKind,
        origin: DiscoveryOrigin,
        display_name: str | None = None,
    ) -> EnvironmentDescriptor:
        """
        create a descriptor for an environment directory.

        the venv name is the directory name and the project name its parent's
        name. conda environments are their own project.

        arguments:
            `path: Path`
                environment directory
            `kind: EnvKind`
                environment kind
            `origin: DiscoveryOrigin`
                discovery provenance
            `display_name: str | None`
                label override (default: the venv name, `conda: ` prefixed for conda)

        returns: `EnvironmentDescriptor`
            new descriptor with `cached_path` set to `path`
        """
        venv_name = path.name
        if kind is EnvKind.CONDA:
            project_name = venv_name
            default_name = f"conda: {venv_name}"
        else:
            project_name = path.parent.name
            default_name = venv_name

        return cls(
            kind=kind,
            venv_name=venv_name,
            project_name=project_name,
            origin=origin,
            display_name=display_name or default_name,
            cached_path=path,
        )

    @property
    def identifier(self) -> str:
        """deduplication key, see `make_identifier`."""
        return make_identifier(self.kind, self.venv_name, self.project_name)

    def update_cached_path(self, expected: Path | None, new: Path) -> bool:
        """
        replace the cached location if it still equals `expected`.

        arguments:
            `expected: Path | None`
                the cached path the caller observed before searching
            `new: Path`
                freshly resolved location

        returns: `bool`
            true if the swap happened, false if another caller got there first
        """
        with self._lock:
            if self.cached_path != expected:
                return False
            self.cached_path = new
            return True

    def to_dict(self) -> dict[str, Any]:
        """
        convert to a json-ready dictionary.

        returns: `dict[str, Any]`
            descriptor fields with enums and paths as strings
        """
        return {
            "identifier": self.identifier,
            "name": self.display_name,
            "kind": self.kind.value,
            "venv_name": self.venv_name,
            "project_name": self.project_name,
            "origin": self.origin.value,
            "path": str(self.cached_path) if self.cached_path else None,
            "python_version": self.python_version,
        }
