"""
lazy location resolution for discovered environments.

a descriptor's `cached_path` is trusted only after it passes the validity
predicate for its kind; otherwise the discovery walk is repeated, constrained
to the descriptor's venv name, and the first candidate with a matching
identifier is cached.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from . import discovery
from .config import Config
from .layout import get_python_executable, is_directory, is_environment
from .models import EnvironmentDescriptor, EnvKind

logger = logging.getLogger(__name__)


def _cached_path_is_valid(descriptor: EnvironmentDescriptor) -> bool:
    path = descriptor.cached_path
    if path is None or str(path) == "":
        return False
    return is_directory(path) and is_environment(path, descriptor.kind)


def _candidates_for(
    descriptor: EnvironmentDescriptor,
    config: Config,
    cwd: Path | None,
) -> Iterator[discovery.Candidate]:
    if descriptor.kind is EnvKind.CONDA:
        return discovery.iter_conda_candidates(config)
    return discovery.iter_venv_candidates(config, names=[descriptor.venv_name], cwd=cwd)


def resolve_path(
    descriptor: EnvironmentDescriptor,
    config: Config,
    cwd: Path | None = None,
) -> Path | None:
    """
    find the current location of an environment.

    arguments:
        `descriptor: EnvironmentDescriptor`
            previously discovered environment; its `cached_path` is updated on
            a successful search
        `config: Config`
            search configuration
        `cwd: Path | None`
            start of the parent-directory walk (default: the current directory)

    returns: `Path | None`
        environment directory, or none if it no longer exists anywhere
    """
    if _cached_path_is_valid(descriptor):
        logger.debug("cache hit for %s: %s", descriptor.identifier, descriptor.cached_path)
        return descriptor.cached_path

    stale = descriptor.cached_path
    logger.debug("cache miss for %s (was %s), searching", descriptor.identifier, stale)

    for candidate in _candidates_for(descriptor, config, cwd):
        if candidate.identifier != descriptor.identifier:
            continue

        if not descriptor.update_cached_path(stale, candidate.path):
            # a concurrent resolution already replaced the cache
            logger.debug("cache for %s updated concurrently", descriptor.identifier)
            if _cached_path_is_valid(descriptor):
                return descriptor.cached_path
            return candidate.path

        logger.debug("resolved %s to %s", descriptor.identifier, candidate.path)
        return candidate.path

    logger.debug("could not resolve %s", descriptor.identifier)
    return None


def get_interpreter_path(
    descriptor: EnvironmentDescriptor,
    config: Config,
    cwd: Path | None = None,
) -> Path | None:
    """
    get the python executable of an environment.

    arguments:
        `descriptor: EnvironmentDescriptor`
            environment to look up
        `config: Config`
            search configuration
        `cwd: Path | None`
            start of the parent-directory walk (default: the current directory)

    returns: `Path | None`
        interpreter path, or none if the environment or its interpreter is gone
    """
    env_path = resolve_path(descriptor, config, cwd=cwd)
    if env_path is None:
        return None
    return get_python_executable(env_path, descriptor.kind)
