"""tests for the runner module."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

from venvswitch.runner import ScriptResult, run_script


def _script(path: Path, body: str) -> Path:
    path.write_text(body)
    return path


class TestRunScript:
    """tests for run_script, using the interpreter running the tests."""

    @pytest.mark.asyncio
    async def test_captures_output(self, tmp_path: Path) -> None:
        """test that stdout, stderr and the exit code are captured."""
        script = _script(
            tmp_path / "hello.py",
            "import sys\nprint('hello', *sys.argv[1:])\nprint('oops', file=sys.stderr)\n",
        )

        result = await run_script(sys.executable, script, "a", "b")

        assert result.ok
        assert result.returncode == 0
        assert result.stdout.strip() == "hello a b"
        assert result.stderr.strip() == "oops"

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, tmp_path: Path) -> None:
        """test that a failing script is reported, not raised."""
        script = _script(tmp_path / "fail.py", "raise SystemExit(3)\n")

        result = await run_script(sys.executable, script)

        assert not result.ok
        assert result.returncode == 3

    @pytest.mark.asyncio
    async def test_default_cwd_is_script_directory(self, tmp_path: Path) -> None:
        """test that scripts run from their own directory."""
        scripts = tmp_path / "scripts"
        scripts.mkdir()
        script = _script(scripts / "where.py", "import os\nprint(os.getcwd())\n")

        result = await run_script(sys.executable, script)

        assert Path(result.stdout.strip()).resolve() == scripts.resolve()

    @pytest.mark.asyncio
    async def test_environment_is_passed(self, tmp_path: Path) -> None:
        """test that the child sees the given environment."""
        script = _script(tmp_path / "env.py", "import os\nprint(os.environ.get('VIRTUAL_ENV'))\n")
        env = {"VIRTUAL_ENV": "/envs/proj/.venv", "SYSTEMROOT": "C:\\Windows"}

        result = await run_script(sys.executable, script, env=env)

        assert result.stdout.strip() == "/envs/proj/.venv"

    @pytest.mark.asyncio
    async def test_cancellation_stops_process(self, tmp_path: Path) -> None:
        """test that cancelling the run terminates the child."""
        marker = tmp_path / "finished"
        script = _script(
            tmp_path / "slow.py",
            f"import time, pathlib\ntime.sleep(30)\npathlib.Path({str(marker)!r}).write_text('done')\n",
        )

        task = asyncio.create_task(run_script(sys.executable, script))
        await asyncio.sleep(0.5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert not marker.exists()


class TestScriptResult:
    """tests for ScriptResult."""

    def test_ok(self) -> None:
        """test that only a zero exit code is ok."""
        assert ScriptResult(0, "", "").ok
        assert not ScriptResult(1, "", "").ok
        assert not ScriptResult(-15, "", "").ok
