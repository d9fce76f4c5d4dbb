"""
script execution inside an environment.

the only asynchronous operation in venvswitch. it reports a result and never
touches the activation state.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# seconds between terminate() and kill() when a run is cancelled
TERMINATE_GRACE = 3.0


@dataclass(frozen=True)
class ScriptResult:
    """
    outcome of a finished script.

    attributes:
        `returncode: int`
            exit code of the interpreter
        `stdout: str`
            captured standard output
        `stderr: str`
            captured standard error
    """

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def _stop(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), TERMINATE_GRACE)
    except asyncio.TimeoutError:
        logger.debug("process %d ignored terminate, killing", process.pid)
        process.kill()
        await process.wait()


async def run_script(
    interpreter: str | Path,
    script: str | Path,
    *args: str,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ScriptResult:
    """
    run a python script and capture its output.

    cancelling the awaiting task terminates the child process.

    arguments:
        `interpreter: str | Path`
            python executable to run the script with
        `script: str | Path`
            script to run
        `*args: str`
            extra command-line arguments for the script
        `cwd: str | Path | None`
            working directory (default: the script's directory)
        `env: Mapping[str, str] | None`
            environment for the child (default: the current process environment)

    returns: `ScriptResult`
        exit code and captured output
    """
    script_path = Path(script)
    workdir = Path(cwd) if cwd is not None else script_path.parent
    child_env = dict(os.environ if env is None else env)

    logger.debug("running %s with %s", script_path, interpreter)
    process = await asyncio.create_subprocess_exec(
        str(interpreter),
        str(script_path),
        *args,
        cwd=str(workdir),
        env=child_env,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        logger.debug("run of %s cancelled, stopping process %d", script_path, process.pid)
        await _stop(process)
        raise

    returncode = process.returncode if process.returncode is not None else -1
    logger.debug("%s exited with %d", script_path, returncode)
    return ScriptResult(
        returncode=returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
