"""
Synchronisation of shim executables with the primary binary.

Symlinked shims follow the primary binary automatically. Hard links and
copies keep the old bytes after a replacement and have to be recreated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .common import vlog
from .config import TOOL_NAME
from .platform_ops import PlatformOps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShimSyncResult:
    """
    Outcome of a shim synchronisation.

    Attributes:
        updated: Shims that were (re)created
        symlinks: Symlinked shims left untouched
        skipped: Shims that could not be updated
    """
    updated: tuple[str, ...] = ()
    symlinks: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()


def primary_binary(shims_dir: Path, ops: PlatformOps) -> Path:
    """Location of the installed primary binary inside the shim directory."""
    return shims_dir / ops.exe_name(TOOL_NAME)


def _is_primary(entry: Path, primary: Path) -> bool:
    try:
        return entry.resolve() == primary
    except OSError:
        return False


def update_core_shims(
    shims_dir: Path,
    primary: Path,
    ops: PlatformOps,
    verbose: bool = False,
) -> ShimSyncResult:
    """
    Make every shim in ``shims_dir`` run ``primary`` again.

    Copy-based shims are recreated, symlinks are left alone and missing
    core shims are created. The installed primary binary itself is never
    touched. Individual failures are skipped.

    Args:
        shims_dir: Directory holding the shims
        primary: The (already replaced) primary binary
        ops: Platform operations
        verbose: Enable verbose logging

    Returns:
        ShimSyncResult
    """
    installed = primary_binary(shims_dir, ops)
    primary = primary.resolve()
    updated: list[str] = []
    symlinks: list[str] = []
    skipped: list[str] = []

    pending: dict[str, Path] = {}
    for entry in sorted(shims_dir.iterdir()):
        if entry.name.startswith("."):
            continue
        if entry.name == installed.name:
            # the installed binary is never turned into a link
            continue
        if entry.is_symlink():
            symlinks.append(entry.name)
            continue
        if not entry.is_file() or _is_primary(entry, primary):
            continue
        pending[entry.name] = entry

    for name in ops.core_shims:
        shim = shims_dir / ops.exe_name(name)
        if shim.name not in pending and not shim.is_symlink() and not shim.exists():
            pending[shim.name] = shim

    for name, shim in pending.items():
        try:
            ops.link_shim(primary, shim)
        except OSError as e:
            logger.debug(f"Could not update shim {shim}: {e}")
            skipped.append(name)
            continue
        vlog(f"Updated shim {shim}", verbose)
        updated.append(name)

    return ShimSyncResult(
        updated=tuple(updated),
        symlinks=tuple(symlinks),
        skipped=tuple(skipped),
    )
