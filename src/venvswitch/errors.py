"""
error taxonomy for venvswitch.

every error carries a `msg` that names the offending identifier or path
and the most likely cause, so callers can surface it as-is.
"""

from __future__ import annotations

from pathlib import Path


class VenvSwitchError(Exception):
    """base class for all venvswitch errors."""

    msg: str

    def __init__(self, msg: str) -> None:
        self.msg = msg
        super().__init__(self.msg)


class EnvironmentNotFound(VenvSwitchError):
    """the environment could not be located after a cache miss and a full search."""

    def __init__(self, identifier: str, cached_path: Path | None = None) -> None:
        self.identifier = identifier
        self.cached_path = cached_path
        msg = f"environment not found: {identifier}"
        if cached_path is not None:
            msg += f"\nlast known location: {cached_path}"
        msg += "\nthe directory may have been moved, renamed or deleted; rediscover environments"
        super().__init__(msg)


class InterpreterMissing(VenvSwitchError):
    """the environment directory exists but has no python interpreter."""

    def __init__(self, identifier: str, path: Path) -> None:
        self.identifier = identifier
        self.path = path
        super().__init__(
            f"python interpreter missing in environment {identifier}"
            f"\nlooked in: {path}"
            f"\nthe environment may be broken or only partially created"
        )


class NoActiveEnvironment(VenvSwitchError):
    """deactivation was requested with nothing active."""

    def __init__(self) -> None:
        super().__init__("no environment is currently active")


class PackageQueryFailed(VenvSwitchError):
    """the package manager of an environment could not list its packages."""

    def __init__(self, identifier: str, output: str, returncode: int | None = None) -> None:
        self.identifier = identifier
        self.output = output
        self.returncode = returncode
        msg = f"pip list failed for {identifier}"
        if returncode is not None:
            msg += f" (exit code {returncode})"
        super().__init__(msg)

    def diagnostic_lines(self) -> list[str]:
        """
        render the failure as preview lines.

        returns: `list[str]`
            an error header, a blank separator and the raw package manager output
        """
        return [f"ERROR: {self.msg}", "", *self.output.splitlines()]


class CreationFailed(VenvSwitchError):
    """a new virtual environment could not be created."""

    def __init__(self, path: Path, reason: str, output: str = "") -> None:
        self.path = path
        self.reason = reason
        self.output = output
        msg = f"failed to create virtual environment at {path}: {reason}"
        if output:
            msg += f"\n{output}"
        super().__init__(msg)


class ConfigError(VenvSwitchError):
    """the configuration is malformed."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"invalid configuration in {source}: {reason}")
