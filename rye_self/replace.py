"""
Replacement of the running executable.

The new image is first staged next to the target so that the final step
is a single rename within one directory. Readers of the target path see
either the complete old binary or the complete new one.
"""

from __future__ import annotations

import os
import shutil
import uuid
from pathlib import Path

from .common import SelfManageError, vlog
from .platform_ops import PlatformOps


class ReplaceError(SelfManageError):
    """Raised when the running executable could not be replaced."""
    pass


def _stage_copy(new_exe: Path, target: Path) -> Path:
    staged = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
    shutil.copyfile(new_exe, staged)
    with open(staged, "rb+") as f:
        os.fsync(f.fileno())
    try:
        shutil.copymode(target, staged)
    except OSError:
        staged.chmod(0o755)
    return staged


def self_replace(
    new_exe: Path,
    ops: PlatformOps,
    current_exe: Path | None = None,
    verbose: bool = False,
) -> Path:
    """
    Replace the running executable with ``new_exe``.

    Args:
        new_exe: Fully written and verified replacement binary
        ops: Platform operations
        current_exe: Running executable, resolved by the caller before any
            destructive step (looked up now if omitted)
        verbose: Enable verbose logging

    Returns:
        The path that now holds the new binary

    Raises:
        ReplaceError: If staging or the final swap fails. The original
            binary is untouched in that case.
    """
    if current_exe is None:
        current_exe = ops.current_exe()
    target = current_exe.resolve()

    staged: Path | None = None
    try:
        staged = _stage_copy(new_exe, target)
        vlog(f"Staged {new_exe} as {staged}", verbose)
        ops.swap_into_place(staged, target)
    except OSError as e:
        if staged is not None:
            staged.unlink(missing_ok=True)
        raise ReplaceError(f"could not replace {target}: {e}") from e

    vlog(f"Replaced {target}", verbose)
    return target
