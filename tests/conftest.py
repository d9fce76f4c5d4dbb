"""
shared fixtures for venvswitch tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest import mock

import pytest

from venvswitch.config import Config


@pytest.fixture(autouse=True)
def clear_active_environment():
    """clear activation markers to avoid detecting the test runner's venv."""
    with mock.patch.dict(os.environ, clear=False):
        for name in ("VIRTUAL_ENV", "CONDA_PREFIX", "CONDA_DEFAULT_ENV", "VENVSWITCH_PYTHON"):
            os.environ.pop(name, None)
        for name in [n for n in os.environ if n.startswith("VENVSWITCH_")]:
            os.environ.pop(name, None)
        yield


@pytest.fixture
def envs_root(tmp_path: Path) -> Path:
    """an empty venv search root."""
    root = tmp_path / "envs"
    root.mkdir()
    return root


@pytest.fixture
def conda_root(tmp_path: Path) -> Path:
    """an empty conda search root."""
    root = tmp_path / "conda" / "envs"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """an empty directory used as the cwd of parent-directory walks."""
    cwd = tmp_path / "work" / "project"
    cwd.mkdir(parents=True)
    return cwd


@pytest.fixture
def config(envs_root: Path, conda_root: Path) -> Config:
    """configuration searching only the temporary roots."""
    return Config(
        venv_paths=[str(envs_root)],
        conda_paths=[str(conda_root)],
        parents=0,
    )
