"""
environment discovery for venvswitch.

the walks in this module are shared by discovery and the resolver: discovery
turns every candidate into a descriptor, the resolver stops at the first
candidate whose identifier matches the one it is looking for.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from .config import Config
from .layout import is_conda_env, is_directory, is_venv, read_python_version
from .models import DiscoveryOrigin, EnvironmentDescriptor, EnvKind, make_identifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """
    an environment directory found by a walk, before it becomes a descriptor.

    attributes:
        `path: Path`
            environment directory
        `kind: EnvKind`
            environment kind
        `origin: DiscoveryOrigin`
            which part of the walk produced it
        `display_name: str`
            label for pickers
    """

    path: Path
    kind: EnvKind
    origin: DiscoveryOrigin
    display_name: str

    @property
    def identifier(self) -> str:
        """identifier the candidate's descriptor would have."""
        venv_name = self.path.name
        return make_identifier(self.kind, venv_name, self.path.parent.name)

    def to_descriptor(self) -> EnvironmentDescriptor:
        """build a fresh descriptor located at the candidate's path."""
        descriptor = EnvironmentDescriptor.from_path(
            self.path, self.kind, self.origin, self.display_name
        )
        descriptor.python_version = read_python_version(self.path, self.kind)
        return descriptor


def _subdirectories(root: Path) -> list[Path]:
    """immediate subdirectories of `root` in name order, empty if unreadable."""
    try:
        entries = sorted(root.iterdir())
    except OSError as e:
        logger.debug("cannot list %s: %s", root, e)
        return []

    return [entry for entry in entries if is_directory(entry)]


def parent_directories(start: Path, depth: int) -> Iterator[Path]:
    """
    yield `start` and its ancestors, at most `depth` directories in total.

    the walk ends early at the filesystem root, which is the directory that is
    its own parent.

    arguments:
        `start: Path`
            first directory to yield
        `depth: int`
            maximum number of directories

    returns: `Iterator[Path]`
        directories from `start` upwards
    """
    directory = start
    for _ in range(depth):
        yield directory
        if directory.parent == directory:
            return
        directory = directory.parent


def iter_venv_candidates(
    config: Config,
    names: Iterable[str] | None = None,
    cwd: Path | None = None,
) -> Iterator[Candidate]:
    """
    walk the configured venv roots and the parent-directory chain.

    arguments:
        `config: Config`
            search configuration
        `names: Iterable[str] | None`
            venv directory names to look for inside projects and parent
            directories (default: `config.venv_names`)
        `cwd: Path | None`
            start of the parent-directory walk (default: the current directory)

    returns: `Iterator[Candidate]`
        candidates in discovery order, possibly with repeated identifiers
    """
    venv_names = list(config.venv_names if names is None else names)

    for root in config.venv_roots:
        if not is_directory(root):
            logger.debug("skipping venv root %s, not a directory", root)
            continue

        if is_venv(root):
            yield Candidate(root, EnvKind.VENV, DiscoveryOrigin.CONFIGURED_PATH, root.name)
            continue

        for entry in _subdirectories(root):
            if is_venv(entry):
                yield Candidate(entry, EnvKind.VENV, DiscoveryOrigin.CONFIGURED_PATH, entry.name)
                continue

            for venv_name in venv_names:
                venv_path = entry.joinpath(venv_name)
                if is_venv(venv_path):
                    yield Candidate(
                        venv_path,
                        EnvKind.VENV,
                        DiscoveryOrigin.CONFIGURED_PATH,
                        f"{entry.name} ({venv_name})",
                    )

    start = cwd if cwd is not None else Path(os.getcwd())
    for directory in parent_directories(start, config.parents):
        for venv_name in venv_names:
            venv_path = directory.joinpath(venv_name)
            if is_venv(venv_path):
                yield Candidate(
                    venv_path,
                    EnvKind.VENV,
                    DiscoveryOrigin.PARENT_DIRECTORY,
                    f"{directory.name or directory}/{venv_name}",
                )


def iter_conda_candidates(config: Config) -> Iterator[Candidate]:
    """
    walk the configured conda roots.

    arguments:
        `config: Config`
            search configuration

    returns: `Iterator[Candidate]`
        one candidate per conda environment directory
    """
    for root in config.conda_roots:
        if not is_directory(root):
            logger.debug("skipping conda root %s, not a directory", root)
            continue

        for entry in _subdirectories(root):
            if is_conda_env(entry):
                yield Candidate(entry, EnvKind.CONDA, DiscoveryOrigin.CONDA_PATH, f"conda: {entry.name}")


def _deduplicate(candidates: Iterable[Candidate]) -> list[EnvironmentDescriptor]:
    """keep the first candidate per identifier."""
    seen: set[str] = set()
    results: list[EnvironmentDescriptor] = []

    for candidate in candidates:
        identifier = candidate.identifier
        if identifier in seen:
            logger.debug("dropping duplicate %s at %s", identifier, candidate.path)
            continue
        seen.add(identifier)
        results.append(candidate.to_descriptor())

    return results


def discover_venvs(config: Config, cwd: Path | None = None) -> list[EnvironmentDescriptor]:
    """
    find all virtual environments.

    arguments:
        `config: Config`
            search configuration
        `cwd: Path | None`
            start of the parent-directory walk (default: the current directory)

    returns: `list[EnvironmentDescriptor]`
        venv descriptors, deduplicated by identifier, first discovery wins
    """
    venvs = _deduplicate(iter_venv_candidates(config, cwd=cwd))
    logger.debug("discovered %d virtual environment(s)", len(venvs))
    return venvs


def discover_conda_envs(config: Config) -> list[EnvironmentDescriptor]:
    """
    find all conda environments.

    arguments:
        `config: Config`
            search configuration

    returns: `list[EnvironmentDescriptor]`
        conda descriptors, empty when conda discovery is disabled
    """
    if not config.show_conda:
        return []

    envs = _deduplicate(iter_conda_candidates(config))
    logger.debug("discovered %d conda environment(s)", len(envs))
    return envs


def list_environments(config: Config, cwd: Path | None = None) -> list[EnvironmentDescriptor]:
    """virtual environments followed by conda environments."""
    return discover_venvs(config, cwd=cwd) + discover_conda_envs(config)
