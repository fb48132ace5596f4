"""
Shared fixtures for rye_self tests.
"""

import logging

import pytest

from rye_self.config import AppConfig
from rye_self.platform_ops import UnixPlatformOps


@pytest.fixture(autouse=True)
def propagate_logs():
    """Let caplog see records from the rye_self logger tree."""
    logger = logging.getLogger("rye_self")
    previous = logger.propagate
    logger.propagate = True
    yield
    logger.propagate = previous


@pytest.fixture
def app_config(tmp_path):
    """AppConfig rooted in a temporary home, using the default home display."""
    return AppConfig(app_dir=tmp_path / "home" / ".rye", home_display="$HOME/.rye")


@pytest.fixture
def running_exe(tmp_path):
    """A fake executable standing in for the running rye binary."""
    exe = tmp_path / "downloads" / "rye"
    exe.parent.mkdir()
    exe.write_bytes(b"old-binary")
    exe.chmod(0o755)
    return exe


@pytest.fixture
def unix_ops(running_exe):
    return UnixPlatformOps(executable=running_exe)
