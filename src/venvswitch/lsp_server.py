"""
language server protocol integration for venvswitch.

exposes environment management as workspace commands and tells the client
which interpreter its python language servers should use after every
activation change.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, final

from lsprotocol import types
from pygls.lsp.server import LanguageServer

from .config import Config
from .errors import VenvSwitchError
from .lsp_settings import all_server_settings
from .manager import EnvironmentManager
from .models import EnvironmentDescriptor

logger = logging.getLogger(__name__)

CHANGE_NOTIFICATION = "venvswitch/didChangeEnvironment"

COMMAND_LIST = "venvswitch.listEnvironments"
COMMAND_ACTIVATE = "venvswitch.activate"
COMMAND_DEACTIVATE = "venvswitch.deactivate"
COMMAND_INTERPRETER = "venvswitch.interpreterPath"
COMMAND_PACKAGES = "venvswitch.packages"
COMMAND_INFO = "venvswitch.info"
COMMAND_RUN_SCRIPT = "venvswitch.runScript"


def _arguments(args: tuple[Any, ...]) -> list[Any]:
    """normalise command arguments, passed either unpacked or as one list."""
    if len(args) == 1 and isinstance(args[0], list):
        return list(args[0])  # pyright: ignore[reportUnknownArgumentType]
    return list(args)


def _identifier_argument(args: tuple[Any, ...]) -> str:
    arguments = _arguments(args)
    if not arguments or not isinstance(arguments[0], str):
        raise ValueError("expected an environment identifier as the first argument")
    return arguments[0]


@final
class VenvSwitchLanguageServer(LanguageServer):
    """
    lsp server for venvswitch.

    attributes:
        `config: Config`
            configuration settings
        `manager: EnvironmentManager`
            environment manager the commands operate on
    """

    config: Config
    manager: EnvironmentManager

    def __init__(self, config: Config | None = None, manager: EnvironmentManager | None = None) -> None:
        """
        initialise the lsp server.

        arguments:
            `config: Config | None`
                configuration settings (default: auto-load from workspace)
            `manager: EnvironmentManager | None`
                manager to expose (default: one built from `config`)
        """
        super().__init__("venvswitch", "0.1.0")  # pyright: ignore[reportUnknownMemberType]

        self.config = config or (manager.config if manager else Config.load())
        self.manager = manager or EnvironmentManager(self.config)
        self.manager.add_hook(self._notify_environment_changed)

        self._register_handlers()

    def _register_handlers(self) -> None:
        """Register lsp method handlers and workspace commands."""

        @self.feature(types.INITIALIZED)
        def on_initialized(params: types.InitializedParams) -> None:
            """Adopt the environment the editor was started in."""
            result = self.manager.startup()
            if result is not None and not result:
                self._show(result.reason, types.MessageType.Warning)

        _ = on_initialized  # registered via decorator

        @self.command(COMMAND_LIST)
        def list_environments(*args: Any) -> list[dict[str, Any]]:
            return self.list_environments()

        @self.command(COMMAND_ACTIVATE)
        def activate(*args: Any) -> dict[str, Any]:
            return self.activate(_identifier_argument(args))

        @self.command(COMMAND_DEACTIVATE)
        def deactivate(*args: Any) -> dict[str, Any]:
            return self.deactivate()

        @self.command(COMMAND_INTERPRETER)
        def interpreter_path(*args: Any) -> str | None:
            return self.interpreter_path(_identifier_argument(args))

        @self.command(COMMAND_PACKAGES)
        def packages(*args: Any) -> list[str]:
            return self.packages(_identifier_argument(args))

        @self.command(COMMAND_INFO)
        def info(*args: Any) -> dict[str, Any] | None:
            return self.manager.info()

        @self.command(COMMAND_RUN_SCRIPT)
        async def run_script(*args: Any) -> dict[str, Any]:
            arguments = _arguments(args)
            if not arguments or not isinstance(arguments[0], str):
                raise ValueError("expected a script path as the first argument")
            return await self.run_script(arguments[0], *[str(a) for a in arguments[1:]])

        _ = (list_environments, activate, deactivate, interpreter_path, packages, info, run_script)

    def list_environments(self) -> list[dict[str, Any]]:
        """discovered environments as json-ready dictionaries."""
        return [descriptor.to_dict() for descriptor in self.manager.list_environments()]

    def activate(self, identifier: str) -> dict[str, Any]:
        """
        activate an environment by identifier.

        arguments:
            `identifier: str`
                environment identifier

        returns: `dict[str, Any]`
            `success` flag and `reason`
        """
        result = self.manager.activate(identifier)
        self._show(result.reason, types.MessageType.Info if result else types.MessageType.Error)
        return {"success": result.success, "reason": result.reason}

    def deactivate(self) -> dict[str, Any]:
        """deactivate the active environment, see `activate` for the result shape."""
        result = self.manager.deactivate()
        self._show(result.reason, types.MessageType.Info)
        return {"success": result.success, "reason": result.reason}

    def interpreter_path(self, identifier: str) -> str | None:
        """interpreter of a discovered environment, none if it cannot be resolved."""
        descriptor = self.manager.find(identifier)
        if descriptor is None:
            return None
        interpreter = self.manager.get_interpreter_path(descriptor)
        return str(interpreter) if interpreter else None

    def packages(self, identifier: str) -> list[str]:
        """installed packages of a discovered environment, diagnostics on failure."""
        descriptor = self.manager.find(identifier)
        if descriptor is None:
            return [f"ERROR: environment not found - {identifier}"]
        return self.manager.get_packages(descriptor)

    async def run_script(self, script: str, *args: str) -> dict[str, Any]:
        """
        run a script in the active environment and report how it went.

        arguments:
            `script: str`
                path or file uri of the script
            `*args: str`
                extra command-line arguments

        returns: `dict[str, Any]`
            `success`, `returncode`, `stdout`, `stderr` (or `reason` on failure to start)
        """
        try:
            result = await self.manager.run_script(_uri_to_path(script), *args)
        except VenvSwitchError as e:
            self._show(e.msg, types.MessageType.Error)
            return {"success": False, "reason": e.msg}
        except OSError as e:
            reason = f"could not start {script}: {e}"
            self._show(reason, types.MessageType.Error)
            return {"success": False, "reason": reason}

        if result.ok:
            self._show("script executed successfully", types.MessageType.Info)
        else:
            self._show(
                f"script execution failed with exit code: {result.returncode}",
                types.MessageType.Error,
            )
        return {
            "success": result.ok,
            "returncode": result.returncode,
            "stdout": result.stdout,
            "stderr": result.stderr,
        }

    def environment_payload(self, descriptor: EnvironmentDescriptor | None) -> dict[str, Any]:
        """
        build the body of the environment-change notification.

        arguments:
            `descriptor: EnvironmentDescriptor | None`
                newly active environment, none after deactivation

        returns: `dict[str, Any]`
            the environment, its interpreter and per-server settings
        """
        if descriptor is None:
            return {"environment": None, "pythonPath": None, "settings": {}}

        interpreter = self.manager.activator.state.interpreter
        python_path = str(interpreter) if interpreter else None
        return {
            "environment": descriptor.to_dict(),
            "pythonPath": python_path,
            "settings": all_server_settings(python_path) if python_path else {},
        }

    def _notify_environment_changed(self, descriptor: EnvironmentDescriptor | None) -> None:
        logger.debug(
            "notifying client of environment change: %s",
            descriptor.identifier if descriptor else None,
        )
        self.protocol.notify(CHANGE_NOTIFICATION, self.environment_payload(descriptor))

    def _show(self, message: str, kind: types.MessageType) -> None:
        self.window_show_message(types.ShowMessageParams(type=kind, message=message))


def _uri_to_path(uri: str) -> Path:
    """
    convert a file uri or plain path to a path.

    file:///path/to/file.py -> /path/to/file.py (unix)
    file:///B%3A/path/to/file.py -> B:/path/to/file.py (windows, url encoded)
    """
    if not uri.startswith("file://"):
        return Path(uri)

    from urllib.parse import unquote

    file_path = unquote(uri[7:])

    # strip leading slash if followed by a drive letter
    if len(file_path) >= 3 and file_path[0] == "/" and file_path[1].isalpha() and file_path[2] == ":":
        file_path = file_path[1:]

    return Path(file_path)


def create_server(config: Config | None = None) -> VenvSwitchLanguageServer:
    """
    create and configure the lsp server.

    arguments:
        `config: Config | None`
            configuration settings

    returns: `VenvSwitchLanguageServer`
        configured lsp server
    """
    return VenvSwitchLanguageServer(config)


def run_server_stdio(config: Config | None = None) -> None:
    """
    run the lsp server over stdio.

    arguments:
        `config: Config | None`
            configuration settings
    """
    server = create_server(config)
    server.start_io()
