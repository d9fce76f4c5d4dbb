"""
settings payloads that point python language servers at an interpreter.
"""

from __future__ import annotations

from typing import Any

PYTHON_SERVERS = ("pyright", "basedpyright", "pylsp", "jedi_language_server")


def server_settings(server: str, python_path: str) -> dict[str, Any] | None:
    """
    build the `workspace/didChangeConfiguration` settings for one server.

    arguments:
        `server: str`
            language server name, one of `PYTHON_SERVERS`
        `python_path: str`
            interpreter the server should analyse against

    returns: `dict[str, Any] | None`
        settings to merge into the server's configuration, none for unknown servers
    """
    if server in ("pyright", "basedpyright"):
        return {
            "python": {
                "pythonPath": python_path,
                "analysis": {
                    "autoSearchPaths": True,
                    "diagnosticMode": "workspace",
                    "useLibraryCodeForTypes": True,
                },
            }
        }
    if server == "pylsp":
        return {"pylsp": {"plugins": {"jedi": {"environment": python_path}}}}
    if server == "jedi_language_server":
        return {"jedi": {"environment": python_path}}
    return None


def all_server_settings(python_path: str) -> dict[str, dict[str, Any]]:
    """settings for every known python language server, keyed by server name."""
    payload: dict[str, dict[str, Any]] = {}
    for server in PYTHON_SERVERS:
        if (settings := server_settings(server, python_path)) is not None:
            payload[server] = settings
    return payload
