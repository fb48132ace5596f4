"""
Tests for release payload decoding (rye_self/payload.py).
"""

import gzip
import os
import sys

import pytest

from rye_self.payload import PayloadError, decode_payload, write_pending_update
from rye_self.platform_ops import UnixPlatformOps, WindowsPlatformOps


class TestDecodePayload:
    """Tests for decode_payload."""

    def test_gzip(self):
        """Test Unix assets are gunzipped."""
        assert decode_payload(gzip.compress(b"new-binary"), UnixPlatformOps()) == b"new-binary"

    def test_corrupt_gzip(self):
        """Test a corrupt archive raises PayloadError."""
        with pytest.raises(PayloadError):
            decode_payload(b"not a gzip stream", UnixPlatformOps())

    def test_truncated_gzip(self):
        """Test a truncated archive raises PayloadError."""
        data = gzip.compress(b"new-binary" * 100)
        with pytest.raises(PayloadError):
            decode_payload(data[:-10], UnixPlatformOps())

    def test_windows_passthrough(self):
        """Test Windows assets are used as is."""
        assert decode_payload(b"MZ-binary", WindowsPlatformOps()) == b"MZ-binary"


class TestWritePendingUpdate:
    """Tests for write_pending_update."""

    def test_writes_executable(self, tmp_path):
        """Test the decoded image is written as an executable file."""
        path = write_pending_update(gzip.compress(b"new-binary"), UnixPlatformOps(), tmp_path)

        assert path.parent == tmp_path
        assert path.name.startswith("rye-update-")
        assert path.read_bytes() == b"new-binary"
        if sys.platform != "win32":
            assert os.access(path, os.X_OK)

    def test_unique_names(self, tmp_path):
        """Test two pending updates never collide."""
        ops = UnixPlatformOps()
        first = write_pending_update(gzip.compress(b"a"), ops, tmp_path)
        second = write_pending_update(gzip.compress(b"b"), ops, tmp_path)
        assert first != second
        assert first.read_bytes() == b"a"

    def test_corrupt_payload_writes_nothing(self, tmp_path):
        """Test nothing is left behind when decoding fails."""
        with pytest.raises(PayloadError):
            write_pending_update(b"garbage", UnixPlatformOps(), tmp_path)
        assert list(tmp_path.iterdir()) == []
