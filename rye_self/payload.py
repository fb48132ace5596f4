"""
Decoding of downloaded release assets into runnable executables.
"""

from __future__ import annotations

import os
import stat
import tempfile
import zlib
from pathlib import Path

from .common import SelfManageError
from .platform_ops import PlatformOps


class PayloadError(SelfManageError):
    """Raised when a release asset cannot be decoded."""
    pass


def decode_payload(data: bytes, ops: PlatformOps) -> bytes:
    """
    Decode a verified release asset for this platform.

    Raises:
        PayloadError: If the archive is corrupt or truncated
    """
    try:
        return ops.decode_payload(data)
    except (OSError, EOFError, zlib.error) as e:
        raise PayloadError(f"could not decompress release binary: {e}") from e


def write_pending_update(data: bytes, ops: PlatformOps, directory: Path) -> Path:
    """
    Decode ``data`` into a new, uniquely named executable in ``directory``.

    Args:
        data: Verified release asset bytes
        ops: Platform operations
        directory: Scoped temporary directory owning the file

    Returns:
        Path to the pending executable
    """
    image = decode_payload(data, ops)
    fd, name = tempfile.mkstemp(prefix="rye-update-", suffix=ops.exe_suffix, dir=directory)
    with os.fdopen(fd, "wb") as f:
        f.write(image)
    path = Path(name)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path
