"""
exclusive environment activation.

at most one environment is active per process. activation snapshots the
search-path variables and applies an overlay on top of them; deactivation
puts the snapshot back verbatim instead of subtracting the overlay, so it is
correct even if something else edited PATH in the meantime.
"""

from __future__ import annotations

import logging
import os
import re
import threading
from collections.abc import Callable, MutableMapping
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from typing import final

from .config import Config
from .errors import EnvironmentNotFound, InterpreterMissing, NoActiveEnvironment, VenvSwitchError
from .layout import expected_python_executable, get_python_executable, is_directory, overlay_directories
from .models import EnvironmentDescriptor, EnvKind
from .resolver import resolve_path

logger = logging.getLogger(__name__)

# variable that points collaborators at the active interpreter
INTERPRETER_MARKER = "VENVSWITCH_PYTHON"

# every variable activation may set, besides PATH and PYTHONPATH
MARKER_VARIABLES = ("VIRTUAL_ENV", "CONDA_PREFIX", "CONDA_DEFAULT_ENV", INTERPRETER_MARKER)

_PYTHONPATH_EXPORT = re.compile(r"^\s*export\s+PYTHONPATH=([^\n]+)$", re.MULTILINE)

Hook = Callable[[EnvironmentDescriptor | None], None]


def probe_conda_module_path(prefix: Path) -> str | None:
    """
    look for PYTHONPATH exports in a conda environment's activation hooks.

    conda runs `etc/conda/activate.d/*.sh` on activation; packages use them to
    extend the module search path. only literal entries are picked up,
    references to other variables are skipped.

    arguments:
        `prefix: Path`
            conda environment prefix

    returns: `str | None`
        exported entries joined with `os.pathsep`, or none if nothing was found
    """
    activate_d = prefix.joinpath("etc", "conda", "activate.d")
    try:
        scripts = sorted(activate_d.glob("*.sh"))
    except OSError:
        return None

    fragments: list[str] = []
    for script in scripts:
        try:
            text = script.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug("cannot read activation script %s: %s", script, e)
            continue

        for match in _PYTHONPATH_EXPORT.finditer(text):
            value = match.group(1).strip().strip("\"'")
            for entry in value.split(":"):
                entry = entry.strip()
                if entry and "$" not in entry and entry not in fragments:
                    fragments.append(entry)

    if not fragments:
        return None
    return os.pathsep.join(fragments)


def configured_module_paths(descriptor: EnvironmentDescriptor, config: Config) -> list[str]:
    """
    extra module search path entries configured for an environment.

    arguments:
        `descriptor: EnvironmentDescriptor`
            environment being activated
        `config: Config`
            configuration holding the `module_paths` mapping

    returns: `list[str]`
        existing directories from every pattern that matches the venv name or
        the display name
    """
    entries: list[str] = []
    for pattern, paths in config.module_paths.items():
        if not (fnmatch(descriptor.venv_name, pattern) or fnmatch(descriptor.display_name, pattern)):
            continue
        for raw in paths:
            path = Path(raw).expanduser()
            if not is_directory(path):
                logger.debug("configured module path %s for %s does not exist", path, pattern)
                continue
            if str(path) not in entries:
                entries.append(str(path))
    return entries


@dataclass
class ActivationState:
    """
    the single active slot.

    attributes:
        `active: EnvironmentDescriptor | None`
            active environment, none while inactive
        `saved_path: str | None`
            PATH before activation (none if it was unset)
        `saved_module_path: str | None`
            PYTHONPATH before activation (none if it was unset)
        `interpreter: Path | None`
            interpreter of the active environment
    """

    active: EnvironmentDescriptor | None = None
    saved_path: str | None = None
    saved_module_path: str | None = None
    interpreter: Path | None = None

    @property
    def is_active(self) -> bool:
        return self.active is not None


@dataclass(frozen=True)
class ActivationResult:
    """
    outcome of an activation transition.

    attributes:
        `success: bool`
            whether the transition happened
        `reason: str`
            human readable explanation
        `descriptor: EnvironmentDescriptor | None`
            environment the transition was about
        `error: VenvSwitchError | None`
            the failure, when `success` is false
    """

    success: bool
    reason: str
    descriptor: EnvironmentDescriptor | None = None
    error: VenvSwitchError | None = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def failed(cls, error: VenvSwitchError, descriptor: EnvironmentDescriptor | None = None) -> ActivationResult:
        return cls(success=False, reason=error.msg, descriptor=descriptor, error=error)


def _restore(environ: MutableMapping[str, str], name: str, value: str | None) -> None:
    if value is None:
        environ.pop(name, None)
    else:
        environ[name] = value


def _prepend(entries: list[str], current: str | None) -> str:
    parts = list(entries)
    if current:
        parts.append(current)
    return os.pathsep.join(parts)


@final
class EnvironmentActivator:
    """
    owns the process environment overlay.

    all reads and writes of PATH, PYTHONPATH and the marker variables go
    through this class. transitions are serialised with a lock.

    attributes:
        `config: Config`
            configuration used for resolution and module paths
        `environ: MutableMapping[str, str]`
            the environment being modified (default: `os.environ`)
        `state: ActivationState`
            current state
    """

    config: Config
    environ: MutableMapping[str, str]
    state: ActivationState
    _hooks: list[Hook]
    _lock: threading.RLock

    def __init__(
        self,
        config: Config,
        environ: MutableMapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> None:
        self.config = config
        self.environ = os.environ if environ is None else environ
        self.state = ActivationState()
        self._cwd = cwd
        self._hooks = []
        self._lock = threading.RLock()

    def add_hook(self, hook: Hook) -> None:
        """
        register a callback for activation changes.

        hooks are called synchronously in registration order with the new
        descriptor, or with none after deactivation.
        """
        self._hooks.append(hook)

    def activate(self, descriptor: EnvironmentDescriptor) -> ActivationResult:
        """
        make `descriptor` the active environment.

        a currently active environment is torn down first, so overlays never
        accumulate. failures leave the state untouched.

        arguments:
            `descriptor: EnvironmentDescriptor`
                environment to activate

        returns: `ActivationResult`
            success, or a failure carrying `EnvironmentNotFound` or `InterpreterMissing`
        """
        with self._lock:
            previous_cache = descriptor.cached_path
            env_path = resolve_path(descriptor, self.config, cwd=self._cwd)
            if env_path is None:
                error = EnvironmentNotFound(descriptor.identifier, previous_cache)
                logger.warning("%s", error.msg)
                return ActivationResult.failed(error, descriptor)

            python_exe = get_python_executable(env_path, descriptor.kind)
            if python_exe is None:
                error = InterpreterMissing(
                    descriptor.identifier, expected_python_executable(env_path, descriptor.kind)
                )
                logger.warning("%s", error.msg)
                return ActivationResult.failed(error, descriptor)

            if (previous := self.state.active) is not None:
                logger.debug("replacing active environment %s", previous.identifier)
                self._teardown()

            self.state.saved_path = self.environ.get("PATH")
            self.state.saved_module_path = self.environ.get("PYTHONPATH")

            self._apply_overlay(descriptor, env_path, python_exe)

            self.state.active = descriptor
            self.state.interpreter = python_exe
            logger.debug("activated %s at %s", descriptor.identifier, env_path)

        self._run_hooks(descriptor)
        return ActivationResult(
            success=True,
            reason=f"activated {descriptor.display_name} ({env_path})",
            descriptor=descriptor,
        )

    def deactivate(self) -> ActivationResult:
        """
        deactivate the active environment and restore the saved variables.

        returns: `ActivationResult`
            success, or a failure carrying `NoActiveEnvironment`
        """
        with self._lock:
            descriptor = self.state.active
            if descriptor is None:
                return ActivationResult.failed(NoActiveEnvironment())

            self._teardown()
            logger.debug("deactivated %s", descriptor.identifier)

        self._run_hooks(None)
        return ActivationResult(
            success=True,
            reason=f"deactivated {descriptor.display_name}",
            descriptor=descriptor,
        )

    def _apply_overlay(
        self,
        descriptor: EnvironmentDescriptor,
        env_path: Path,
        python_exe: Path,
    ) -> None:
        environ = self.environ

        path_entries = [str(d) for d in overlay_directories(env_path, descriptor.kind)]
        environ["PATH"] = _prepend(path_entries, self.state.saved_path)

        # clear markers of the other kind, possibly set before this process started
        if descriptor.kind is EnvKind.VENV:
            environ.pop("CONDA_PREFIX", None)
            environ.pop("CONDA_DEFAULT_ENV", None)
            environ["VIRTUAL_ENV"] = str(env_path)
        else:
            environ.pop("VIRTUAL_ENV", None)
            environ["CONDA_PREFIX"] = str(env_path)
            environ["CONDA_DEFAULT_ENV"] = env_path.name

        environ[INTERPRETER_MARKER] = str(python_exe)

        module_entries: list[str] = []
        if descriptor.kind is EnvKind.CONDA:
            if probed := probe_conda_module_path(env_path):
                logger.debug("conda activation hooks of %s export %s", env_path, probed)
                module_entries.append(probed)
        module_entries.extend(configured_module_paths(descriptor, self.config))

        if module_entries:
            environ["PYTHONPATH"] = _prepend(module_entries, self.state.saved_module_path)

    def _teardown(self) -> None:
        """restore the snapshot and clear markers, without running hooks."""
        _restore(self.environ, "PATH", self.state.saved_path)
        _restore(self.environ, "PYTHONPATH", self.state.saved_module_path)
        for name in MARKER_VARIABLES:
            self.environ.pop(name, None)

        self.state = ActivationState()

    def _run_hooks(self, descriptor: EnvironmentDescriptor | None) -> None:
        for hook in self._hooks:
            try:
                hook(descriptor)
            except Exception:
                logger.exception("environment change hook %r failed", hook)
