"""
high-level environment management.

this is the surface editor integrations talk to: list environments, switch
between them, and query the active one.
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any, final

from . import discovery
from .activation import ActivationResult, EnvironmentActivator, Hook
from .config import Config
from .creation import create_venv
from .errors import EnvironmentNotFound, InterpreterMissing, NoActiveEnvironment, VenvSwitchError
from .layout import expected_python_executable
from .models import DiscoveryOrigin, EnvironmentDescriptor, EnvKind
from .packages import list_packages
from .resolver import get_interpreter_path, resolve_path
from .runner import ScriptResult, run_script

logger = logging.getLogger(__name__)


@final
class EnvironmentManager:
    """
    facade over discovery, resolution, activation and package queries.

    attributes:
        `config: Config`
            configuration settings
        `activator: EnvironmentActivator`
            owner of the activation state
    """

    config: Config
    activator: EnvironmentActivator

    def __init__(
        self,
        config: Config | None = None,
        environ: MutableMapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> None:
        """
        initialise the manager.

        arguments:
            `config: Config | None`
                configuration settings (default: auto-load from the current directory)
            `environ: MutableMapping[str, str] | None`
                process environment to manage (default: `os.environ`)
            `cwd: Path | None`
                start of parent-directory walks (default: the current directory)
        """
        self.config = config or Config.load()
        self._cwd = cwd
        self.activator = EnvironmentActivator(self.config, environ, cwd=cwd)

    @property
    def environ(self) -> MutableMapping[str, str]:
        return self.activator.environ

    @property
    def active(self) -> EnvironmentDescriptor | None:
        """currently active environment."""
        return self.activator.state.active

    def add_hook(self, hook: Hook) -> None:
        """register a callback for activation changes, see `EnvironmentActivator.add_hook`."""
        self.activator.add_hook(hook)

    def list_environments(self) -> list[EnvironmentDescriptor]:
        """discover virtual and conda environments."""
        return discovery.list_environments(self.config, cwd=self._cwd)

    def find(self, identifier: str) -> EnvironmentDescriptor | None:
        """
        look up a discovered environment by identifier.

        the active environment is returned as-is when it matches, so callers
        keep working with the same descriptor object.

        arguments:
            `identifier: str`
                identifier such as `myproject/.venv` or `conda/base`

        returns: `EnvironmentDescriptor | None`
            matching descriptor, or none
        """
        if self.active is not None and self.active.identifier == identifier:
            return self.active

        for descriptor in self.list_environments():
            if descriptor.identifier == identifier:
                return descriptor
        return None

    def activate(self, target: EnvironmentDescriptor | str) -> ActivationResult:
        """
        activate an environment given as a descriptor or an identifier.

        returns: `ActivationResult`
            outcome of the transition
        """
        if isinstance(target, str):
            descriptor = self.find(target)
            if descriptor is None:
                return ActivationResult.failed(EnvironmentNotFound(target))
        else:
            descriptor = target

        result = self.activator.activate(descriptor)
        if result:
            logger.info("activated python environment: %s", descriptor.display_name)
        return result

    def deactivate(self) -> ActivationResult:
        """deactivate the active environment."""
        result = self.activator.deactivate()
        if result and result.descriptor is not None:
            logger.info("deactivated python environment: %s", result.descriptor.display_name)
        else:
            logger.info("%s", result.reason)
        return result

    def get_interpreter_path(self, descriptor: EnvironmentDescriptor) -> Path | None:
        """resolved interpreter of an environment, or none."""
        return get_interpreter_path(descriptor, self.config, cwd=self._cwd)

    def get_packages(self, descriptor: EnvironmentDescriptor | None) -> list[str]:
        """installed packages of an environment, diagnostics on failure."""
        return list_packages(descriptor, self.config, cwd=self._cwd)

    def detect_externally_active(self) -> EnvironmentDescriptor | None:
        """
        describe the environment activated before this process started.

        `VIRTUAL_ENV` is checked before `CONDA_PREFIX`.

        returns: `EnvironmentDescriptor | None`
            descriptor for the externally active environment, or none
        """
        if venv := self.environ.get("VIRTUAL_ENV"):
            return EnvironmentDescriptor.from_path(
                Path(venv), EnvKind.VENV, DiscoveryOrigin.ACTIVE_DETECTED
            )

        if conda := self.environ.get("CONDA_PREFIX"):
            return EnvironmentDescriptor.from_path(
                Path(conda), EnvKind.CONDA, DiscoveryOrigin.ACTIVE_DETECTED
            )

        return None

    def startup(self) -> ActivationResult | None:
        """
        adopt an externally active environment if configured to.

        returns: `ActivationResult | None`
            outcome of the activation, none if nothing was attempted
        """
        if not self.config.auto_detect_on_start:
            return None

        descriptor = self.detect_externally_active()
        if descriptor is None:
            return None

        logger.debug("adopting externally active environment %s", descriptor.identifier)
        return self.activate(descriptor)

    def create_environment(self, name: str, parent: str | Path | None = None) -> ActivationResult:
        """
        create a virtual environment and activate it.

        arguments:
            `name: str`
                directory name of the new environment
            `parent: str | Path | None`
                directory to create it in (default: the walk's starting directory)

        returns: `ActivationResult`
            outcome of the activation

        raises:
            `CreationFailed`
                if the environment cannot be created
        """
        if parent is None and self._cwd is not None:
            parent = self._cwd
        descriptor = create_venv(name, parent)
        return self.activate(descriptor)

    def info(self) -> dict[str, Any] | None:
        """
        describe the active environment for status displays.

        returns: `dict[str, Any] | None`
            name, kind, identifier, path and interpreter, none while inactive
        """
        descriptor = self.active
        if descriptor is None:
            return None

        interpreter = self.activator.state.interpreter
        return {
            "name": descriptor.display_name,
            "kind": descriptor.kind.value,
            "identifier": descriptor.identifier,
            "path": str(descriptor.cached_path) if descriptor.cached_path else None,
            "python": str(interpreter) if interpreter else None,
            "python_version": descriptor.python_version,
        }

    async def run_script(self, script: str | Path, *args: str) -> ScriptResult:
        """
        run a python script with the active environment's interpreter.

        the child inherits the managed environment, overlay included.

        arguments:
            `script: str | Path`
                path to a `.py` file
            `*args: str`
                extra command-line arguments

        returns: `ScriptResult`
            exit code and captured output

        raises:
            `NoActiveEnvironment`
                if nothing is active
            `InterpreterMissing`
                if the active environment lost its interpreter
            `VenvSwitchError`
                if the script is not an existing python file
        """
        descriptor = self.active
        if descriptor is None:
            raise NoActiveEnvironment()

        script_path = Path(script).resolve()
        if script_path.suffix != ".py" or not script_path.is_file():
            raise VenvSwitchError(f"not a python script: {script_path}")

        interpreter = self.get_interpreter_path(descriptor)
        if interpreter is None:
            env_path = resolve_path(descriptor, self.config, cwd=self._cwd)
            if env_path is None:
                raise EnvironmentNotFound(descriptor.identifier, descriptor.cached_path)
            raise InterpreterMissing(descriptor.identifier, expected_python_executable(env_path, descriptor.kind))

        logger.info("running %s with %s (%s)", script_path, descriptor.display_name, interpreter)
        return await run_script(interpreter, script_path, *args, env=dict(self.environ))
