"""
venvswitch: python environment discovery and activation for editors.

this package finds virtual and conda environments across configured search
roots, re-resolves their location lazily, and keeps exactly one of them
active by overlaying PATH and the usual marker variables. editors drive it
through the lsp server or the cli.
"""

from __future__ import annotations

from .activation import ActivationResult, ActivationState, EnvironmentActivator
from .config import Config
from .discovery import discover_conda_envs, discover_venvs, list_environments
from .errors import (
    ConfigError,
    CreationFailed,
    EnvironmentNotFound,
    InterpreterMissing,
    NoActiveEnvironment,
    PackageQueryFailed,
    VenvSwitchError,
)
from .manager import EnvironmentManager
from .models import DiscoveryOrigin, EnvironmentDescriptor, EnvKind, make_identifier
from .packages import list_packages
from .resolver import get_interpreter_path, resolve_path

__version__ = "0.1.0"
__all__ = [
    "ActivationResult",
    "ActivationState",
    "EnvironmentActivator",
    "Config",
    "discover_conda_envs",
    "discover_venvs",
    "list_environments",
    "ConfigError",
    "CreationFailed",
    "EnvironmentNotFound",
    "InterpreterMissing",
    "NoActiveEnvironment",
    "PackageQueryFailed",
    "VenvSwitchError",
    "EnvironmentManager",
    "DiscoveryOrigin",
    "EnvironmentDescriptor",
    "EnvKind",
    "make_identifier",
    "list_packages",
    "get_interpreter_path",
    "resolve_path",
]
