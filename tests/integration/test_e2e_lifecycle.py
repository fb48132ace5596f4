"""
End-to-end integration tests for the self-management lifecycle.

Install, update and uninstall run against a temporary application
directory. Only network access and child processes are mocked.
"""

import gzip
import hashlib
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

skip_on_windows = pytest.mark.skipif(
    sys.platform == "win32",
    reason="Unix release assets and symlink shims"
)

from rye_self import (
    AppConfig,
    ChecksumMismatch,
    InstallMode,
    UnixPlatformOps,
    perform_install,
    uninstall,
    update,
)


def bootstrap(config, ops):
    path = config.app_dir / "self"
    path.mkdir(parents=True, exist_ok=True)
    (path / "pyvenv.cfg").write_text("home = /usr/bin\n")
    return path


def install(config, exe):
    return perform_install(
        InstallMode.NO_PROMPTS,
        config=config,
        ops=UnixPlatformOps(executable=exe),
        bootstrap=bootstrap,
        environ={"PATH": "/usr/bin", "SHELL": "/bin/zsh"},
    )


def serve_release(binary, checksum=True):
    asset = gzip.compress(binary)
    digest = hashlib.sha256(asset).hexdigest().encode()

    def download(url, timeout=60):
        if url.endswith(".sha256"):
            return digest if checksum else b"deadbeef"
        return asset

    return download


def layout(directory: Path):
    return sorted(
        (str(p.relative_to(directory)), p.is_symlink())
        for p in directory.rglob("*")
    )


@pytest.fixture
def config(tmp_path):
    return AppConfig(app_dir=tmp_path / "home" / ".rye", home_display="$HOME/.rye")


@pytest.fixture
def downloaded(tmp_path):
    exe = tmp_path / "Downloads" / "rye"
    exe.parent.mkdir()
    exe.write_bytes(b"rye 0.15.0")
    exe.chmod(0o755)
    return exe


@skip_on_windows
class TestLifecycle:
    """Install, update and uninstall in sequence."""

    def test_install_update_uninstall(self, config, downloaded):
        """Test a full lifecycle leaves only config.yml and an empty env file."""
        install(config, downloaded)
        shims = config.shims_dir
        installed = UnixPlatformOps(executable=shims / "rye")
        # a shim manager that copies instead of linking
        (shims / "python").unlink()
        (shims / "python").write_bytes(b"rye 0.15.0")
        config.config_file.write_text("self:\n  timeout_seconds: 30\n")

        with patch("rye_self.download.download_url", side_effect=serve_release(b"rye 0.16.0")), \
                patch("rye_self.updater.subprocess.run", return_value=MagicMock(returncode=0)):
            update(config, installed)

        assert (shims / "rye").read_bytes() == b"rye 0.16.0"
        assert (shims / "python").read_bytes() == b"rye 0.16.0"
        assert (shims / "python3").is_symlink()
        assert downloaded.read_bytes() == b"rye 0.15.0"

        uninstall(config, installed, yes=True)

        assert sorted(p.name for p in config.app_dir.iterdir()) == ["config.yml", "env"]
        assert config.env_file.read_text() == ""

    def test_failed_update_keeps_installation(self, config, downloaded):
        """Test a checksum failure leaves the installed layout unchanged."""
        install(config, downloaded)
        before = layout(config.app_dir)
        installed = UnixPlatformOps(executable=config.shims_dir / "rye")

        with patch("rye_self.download.download_url", side_effect=serve_release(b"evil", checksum=False)):
            with pytest.raises(ChecksumMismatch):
                update(config, installed)

        assert layout(config.app_dir) == before
        assert (config.shims_dir / "rye").read_bytes() == b"rye 0.15.0"

    def test_reinstall_after_uninstall(self, config, downloaded):
        """Test reinstalling after an uninstall yields the original layout."""
        install(config, downloaded)
        first = layout(config.app_dir)

        uninstall(config, UnixPlatformOps(executable=downloaded), yes=True)
        install(config, downloaded)

        assert layout(config.app_dir) == first
