"""
Tests for replacement of the running executable (rye_self/replace.py).
"""

import os
import sys
from unittest.mock import patch

import pytest

from rye_self.platform_ops import UnixPlatformOps
from rye_self.replace import ReplaceError, self_replace


@pytest.fixture
def new_exe(tmp_path):
    path = tmp_path / "pending" / "rye-update-1"
    path.parent.mkdir()
    path.write_bytes(b"new-binary")
    return path


class TestSelfReplace:
    """Tests for self_replace."""

    def test_replaces_bytes(self, running_exe, new_exe, unix_ops):
        """Test the target holds the new bytes afterwards."""
        target = self_replace(new_exe, unix_ops)

        assert target == running_exe.resolve()
        assert running_exe.read_bytes() == b"new-binary"
        # the pending file is owned by the caller
        assert new_exe.exists()

    def test_no_staging_leftovers(self, running_exe, new_exe, unix_ops):
        """Test no staged file remains next to the target."""
        self_replace(new_exe, unix_ops)
        assert [p.name for p in running_exe.parent.iterdir()] == ["rye"]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_keeps_mode(self, running_exe, new_exe, unix_ops):
        """Test the replacement keeps the target's permissions."""
        self_replace(new_exe, unix_ops)
        assert os.access(running_exe, os.X_OK)

    @pytest.mark.skipif(sys.platform == "win32", reason="Unix symlink semantics")
    def test_resolves_symlinked_target(self, tmp_path, running_exe, new_exe):
        """Test the real file is replaced, not the symlink pointing at it."""
        link = tmp_path / "rye-link"
        link.symlink_to(running_exe)

        self_replace(new_exe, UnixPlatformOps(executable=link))

        assert link.is_symlink()
        assert running_exe.read_bytes() == b"new-binary"

    def test_explicit_current_exe(self, tmp_path, new_exe, unix_ops):
        """Test a caller-resolved path takes precedence over the lookup."""
        other = tmp_path / "other" / "rye"
        other.parent.mkdir()
        other.write_bytes(b"other-old")

        self_replace(new_exe, unix_ops, current_exe=other)

        assert other.read_bytes() == b"new-binary"

    def test_failed_swap_keeps_original(self, running_exe, new_exe, unix_ops):
        """Test a failed swap leaves the original binary and no staged file."""
        with patch.object(unix_ops, "swap_into_place", side_effect=PermissionError("denied")):
            with pytest.raises(ReplaceError):
                self_replace(new_exe, unix_ops)

        assert running_exe.read_bytes() == b"old-binary"
        assert [p.name for p in running_exe.parent.iterdir()] == ["rye"]

    def test_missing_new_exe(self, tmp_path, running_exe, unix_ops):
        """Test a missing replacement is reported as ReplaceError."""
        with pytest.raises(ReplaceError):
            self_replace(tmp_path / "missing", unix_ops)
        assert running_exe.read_bytes() == b"old-binary"
