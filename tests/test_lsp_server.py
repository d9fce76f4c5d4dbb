"""tests for the lsp server module.

the server is exercised through its python methods; the client connection is
replaced with mocks.
"""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from lsprotocol import types

from venvswitch.config import Config
from venvswitch.lsp_server import (
    CHANGE_NOTIFICATION,
    VenvSwitchLanguageServer,
    _arguments,
    _identifier_argument,
    _uri_to_path,
    create_server,
)
from venvswitch.lsp_settings import PYTHON_SERVERS
from venvswitch.manager import EnvironmentManager
from venvswitch.runner import ScriptResult

from tests.fixtures.environments import make_venv


@pytest.fixture
def server(config: Config, workdir: Path) -> VenvSwitchLanguageServer:
    manager = EnvironmentManager(config, {"PATH": "/usr/bin"}, cwd=workdir)
    server = VenvSwitchLanguageServer(config, manager)
    server.window_show_message = MagicMock()  # type: ignore[method-assign]
    return server


@pytest.fixture
def notify(server: VenvSwitchLanguageServer):
    with patch.object(server.protocol, "notify") as notify:
        yield notify


class TestVenvSwitchLanguageServer:
    """tests for the main lsp server class."""

    def test_server_creation(self, config: Config) -> None:
        """test that server can be created."""
        server = VenvSwitchLanguageServer(config)

        assert server.config is config
        assert server.manager.config is config
        assert server.manager.active is None

    def test_server_default_config(self) -> None:
        """test that server uses default config when none provided."""
        with patch.object(Config, "load", return_value=Config()):
            server = VenvSwitchLanguageServer()

        assert server.config is not None
        assert server.manager is not None

    def test_create_server(self, config: Config) -> None:
        """test the factory."""
        assert isinstance(create_server(config), VenvSwitchLanguageServer)

    def test_list_environments(self, envs_root: Path, server: VenvSwitchLanguageServer) -> None:
        """test that environments are returned as json-ready dictionaries."""
        make_venv(envs_root / "proj" / ".venv")

        environments = server.list_environments()

        assert len(environments) == 1
        assert environments[0]["identifier"] == "proj/.venv"
        assert environments[0]["kind"] == "venv"
        assert environments[0]["path"] == str(envs_root / "proj" / ".venv")


class TestActivationCommands:
    """tests for activation through the server."""

    def test_activate_notifies_client(
        self, envs_root: Path, server: VenvSwitchLanguageServer, notify: MagicMock
    ) -> None:
        """test that activation sends the interpreter and server settings."""
        make_venv(envs_root / "proj" / ".venv")

        response = server.activate("proj/.venv")

        assert response["success"] is True
        notify.assert_called_once()
        method, payload = notify.call_args.args
        assert method == CHANGE_NOTIFICATION
        assert payload["environment"]["identifier"] == "proj/.venv"
        assert Path(payload["pythonPath"]).parent.parent == envs_root / "proj" / ".venv"
        assert set(payload["settings"]) == set(PYTHON_SERVERS)

        params = server.window_show_message.call_args.args[0]  # type: ignore[attr-defined]
        assert params.type == types.MessageType.Info

    def test_activate_unknown(self, server: VenvSwitchLanguageServer, notify: MagicMock) -> None:
        """test that a failed activation is shown as an error and not broadcast."""
        response = server.activate("nowhere/.venv")

        assert response["success"] is False
        assert "nowhere/.venv" in response["reason"]
        notify.assert_not_called()
        params = server.window_show_message.call_args.args[0]  # type: ignore[attr-defined]
        assert params.type == types.MessageType.Error

    def test_deactivate_notifies_client(
        self, envs_root: Path, server: VenvSwitchLanguageServer, notify: MagicMock
    ) -> None:
        """test that deactivation clears the interpreter on the client."""
        make_venv(envs_root / "proj" / ".venv")
        server.activate("proj/.venv")

        response = server.deactivate()

        assert response["success"] is True
        method, payload = notify.call_args.args
        assert method == CHANGE_NOTIFICATION
        assert payload == {"environment": None, "pythonPath": None, "settings": {}}

    def test_deactivate_when_inactive(self, server: VenvSwitchLanguageServer, notify: MagicMock) -> None:
        """test that deactivating nothing is reported."""
        response = server.deactivate()

        assert response == {"success": False, "reason": "no environment is currently active"}
        notify.assert_not_called()


class TestQueryCommands:
    """tests for the read-only commands."""

    def test_interpreter_path(self, envs_root: Path, server: VenvSwitchLanguageServer) -> None:
        """test interpreter lookup by identifier."""
        make_venv(envs_root / "proj" / ".venv")

        path = server.interpreter_path("proj/.venv")

        assert path is not None
        assert Path(path).parent.parent == envs_root / "proj" / ".venv"
        assert server.interpreter_path("nowhere/.venv") is None

    def test_packages_unknown(self, server: VenvSwitchLanguageServer) -> None:
        """test the diagnostic for an unknown identifier."""
        assert server.packages("nowhere/.venv") == ["ERROR: environment not found - nowhere/.venv"]

    def test_packages(self, envs_root: Path, server: VenvSwitchLanguageServer) -> None:
        """test that package lines are passed through."""
        make_venv(envs_root / "proj" / ".venv")

        with patch.object(server.manager, "get_packages", return_value=["pip 24.0"]) as get_packages:
            assert server.packages("proj/.venv") == ["pip 24.0"]

        assert get_packages.call_args.args[0].identifier == "proj/.venv"


class TestRunScriptCommand:
    """tests for running scripts through the server."""

    @pytest.mark.asyncio
    async def test_without_active_environment(self, tmp_path: Path, server: VenvSwitchLanguageServer) -> None:
        """test that the failure is reported to the client."""
        script = tmp_path / "main.py"
        script.write_text("print('hi')\n")

        response = await server.run_script(str(script))

        assert response == {"success": False, "reason": "no environment is currently active"}

    @pytest.mark.asyncio
    async def test_reports_result(
        self, tmp_path: Path, envs_root: Path, server: VenvSwitchLanguageServer
    ) -> None:
        """test that a finished script is summarised."""
        make_venv(envs_root / "proj" / ".venv")
        server.activate("proj/.venv")
        script = tmp_path / "main.py"
        script.write_text("raise SystemExit(2)\n")

        with patch("venvswitch.manager.run_script", return_value=ScriptResult(2, "", "boom")):
            response = await server.run_script(script.as_uri())

        assert response == {"success": False, "returncode": 2, "stdout": "", "stderr": "boom"}
        params = server.window_show_message.call_args.args[0]  # type: ignore[attr-defined]
        assert params.message == "script execution failed with exit code: 2"

    @pytest.mark.asyncio
    async def test_interpreter_cannot_start(
        self, tmp_path: Path, envs_root: Path, server: VenvSwitchLanguageServer
    ) -> None:
        """test that an os error from the launch is reported to the client."""
        make_venv(envs_root / "proj" / ".venv")
        server.activate("proj/.venv")
        script = tmp_path / "main.py"
        script.write_text("print('hi')\n")

        with patch("venvswitch.manager.run_script", side_effect=PermissionError(13, "Permission denied")):
            response = await server.run_script(str(script))

        assert response["success"] is False
        assert response["reason"].startswith(f"could not start {script}")
        params = server.window_show_message.call_args.args[0]  # type: ignore[attr-defined]
        assert params.type == types.MessageType.Error


class TestArguments:
    """tests for command argument handling."""

    def test_unpacked(self) -> None:
        """test arguments passed one by one."""
        assert _arguments(("proj/.venv",)) == ["proj/.venv"]

    def test_single_list(self) -> None:
        """test arguments passed as one list."""
        assert _arguments((["proj/.venv", "x"],)) == ["proj/.venv", "x"]

    def test_identifier_required(self) -> None:
        """test that a missing identifier is rejected."""
        with pytest.raises(ValueError, match="environment identifier"):
            _identifier_argument(())
        with pytest.raises(ValueError, match="environment identifier"):
            _identifier_argument((42,))


class TestUriToPath:
    """tests for uri conversion."""

    def test_plain_path(self) -> None:
        """test that plain paths pass through."""
        assert _uri_to_path("/tmp/main.py") == Path("/tmp/main.py")

    @pytest.mark.skipif(sys.platform == "win32", reason="posix path")
    def test_file_uri(self) -> None:
        """test a unix file uri."""
        assert _uri_to_path("file:///home/user/main%20file.py") == Path("/home/user/main file.py")

    def test_windows_drive(self) -> None:
        """test that the slash before a drive letter is stripped."""
        assert str(_uri_to_path("file:///C%3A/code/main.py")).replace("\\", "/") == "C:/code/main.py"
