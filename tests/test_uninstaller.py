"""
Tests for the uninstaller (rye_self/uninstaller.py).
"""

import shutil
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from rye_self.common import QuietExit
from rye_self.config import AppConfig
from rye_self.platform_ops import UnixPlatformOps, WindowsPlatformOps
from rye_self.uninstaller import UninstallError, uninstall

pytestmark = pytest.mark.skipif(
    sys.platform == "win32",
    reason="Unix symlink semantics"
)


def lock_file(name):
    """Make Path.unlink fail for one file name, as a running binary on Windows does."""
    real_unlink = Path.unlink

    def unlink(self, *args, **kwargs):
        if self.name == name:
            raise PermissionError("in use")
        return real_unlink(self, *args, **kwargs)

    return patch("pathlib.Path.unlink", unlink)


@pytest.fixture
def installed(app_config):
    """A populated application directory."""
    app_dir = app_config.app_dir
    shims = app_config.shims_dir
    shims.mkdir(parents=True)
    (shims / "rye").write_bytes(b"installed")
    (shims / "python").symlink_to(shims / "rye")
    (shims / "python3").write_bytes(b"installed")
    for name in ("self", "py", "pip-tools"):
        (app_dir / name / "lib").mkdir(parents=True)
    app_config.env_file.write_text("# rye shell setup\n")
    app_config.config_file.write_text("self:\n  verbose: true\n")
    return app_config


class TestUninstall:
    """Tests for uninstall."""

    def test_declined(self, installed, unix_ops):
        """Test declining exits quietly and removes nothing."""
        with pytest.raises(QuietExit) as exc:
            uninstall(installed, unix_ops, confirm_fn=lambda prompt: False)

        assert exc.value.code == 1
        assert (installed.shims_dir / "rye").exists()
        assert (installed.app_dir / "self").is_dir()

    def test_yes_skips_prompt(self, installed, unix_ops):
        """Test --yes never prompts."""
        confirm_fn = MagicMock()
        uninstall(installed, unix_ops, yes=True, confirm_fn=confirm_fn)
        confirm_fn.assert_not_called()

    def test_removes_state(self, installed, unix_ops, capsys):
        """Test shims and state directories are removed."""
        result = uninstall(installed, unix_ops, yes=True)

        app_dir = installed.app_dir
        assert not installed.shims_dir.exists()
        for name in ("self", "py", "pip-tools"):
            assert not (app_dir / name).exists()
        assert set(result.removed_shims) == {"rye", "python", "python3"}
        assert set(result.removed_dirs) >= {"self", "py", "pip-tools", "shims"}
        assert result.self_deleted is False

        out = capsys.readouterr().out
        assert "Done!" in out
        assert "Don't forget to remove the sourcing of $HOME/.rye/env from your shell config." in out

    def test_env_file_truncated_config_kept(self, installed, unix_ops):
        """Test the env file is emptied and config.yml survives."""
        result = uninstall(installed, unix_ops, yes=True)

        assert result.env_truncated is True
        assert installed.env_file.read_text() == ""
        assert installed.config_file.read_text() == "self:\n  verbose: true\n"

    def test_running_from_app_dir(self, installed):
        """Test the running executable inside the app dir is deleted."""
        ops = UnixPlatformOps(executable=installed.shims_dir / "rye")
        with patch.object(ops, "self_delete_outside_path", wraps=ops.self_delete_outside_path) as mock_delete:
            uninstall(installed, ops, yes=True)

        # the shim pass already removed the file on Unix
        mock_delete.assert_not_called()
        assert not installed.shims_dir.exists()

    def test_locked_running_executable(self, installed):
        """Test a binary that survives the shim pass is deleted outside the app dir."""
        exe = installed.shims_dir / "rye"
        ops = WindowsPlatformOps(executable=exe)
        with lock_file("rye"), \
                patch.object(ops, "schedule_delete") as mock_schedule:
            result = uninstall(installed, ops, yes=True)

        assert result.self_deleted is True
        assert "rye" in result.failed_shims
        moved = mock_schedule.call_args[0][0]
        assert moved.parent == installed.app_dir.resolve().parent
        assert not installed.shims_dir.exists()

    def test_self_delete_failure(self, installed):
        """Test failing to move the running executable is fatal."""
        exe = installed.shims_dir / "rye"
        ops = UnixPlatformOps(executable=exe)
        with lock_file("rye"):
            with pytest.raises(UninstallError):
                uninstall(installed, ops, yes=True)

    def test_not_installed(self, app_config, unix_ops, capsys):
        """Test uninstalling without an app dir only prints advice."""
        result = uninstall(app_config, unix_ops, yes=True)

        assert result.removed_dirs == ()
        assert "Done!" in capsys.readouterr().out

    def test_state_dir_failure_continues(self, installed, unix_ops):
        """Test a failing state directory removal does not stop the rest."""
        real_rmtree = shutil.rmtree

        def flaky(path, *args, **kwargs):
            if path.name == "py":
                raise PermissionError("busy")
            return real_rmtree(path, *args, **kwargs)

        with patch("rye_self.uninstaller.shutil.rmtree", side_effect=flaky):
            result = uninstall(installed, unix_ops, yes=True)

        assert "py" not in result.removed_dirs
        assert (installed.app_dir / "py").exists()
        assert not (installed.app_dir / "self").exists()
        assert result.env_truncated is True

    def test_windows_path_advice(self, tmp_path, capsys):
        """Test Windows users are told to edit PATH."""
        config = AppConfig(app_dir=tmp_path / ".rye", home_display="%USERPROFILE%\\.rye")
        uninstall(config, WindowsPlatformOps(), yes=True)
        assert "Don't forget to remove %USERPROFILE%\\.rye\\shims from your PATH" in capsys.readouterr().out
