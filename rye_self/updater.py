"""
Self update of the rye binary.

Release builds are downloaded and verified in memory, decoded into a
scoped temporary directory and swapped in with ``self_replace``. Builds
from a git tag or revision go through ``cargo install``. Both end by
re-pointing copy-based shims at the new binary.

Two rye processes updating at the same time are not coordinated with each
other; there is no lock file.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .common import SelfManageError, vlog
from .config import TOOL_NAME, AppConfig
from .download import fetch_verified_release, resolve_release_asset
from .payload import write_pending_update
from .platform_ops import PlatformOps
from .replace import self_replace
from .shims import ShimSyncResult, primary_binary, update_core_shims

logger = logging.getLogger(__name__)


class UpdateError(SelfManageError):
    """Raised when an update cannot be performed."""
    pass


@dataclass(frozen=True)
class UpdateResult:
    """
    Outcome of a completed update.

    Attributes:
        target: Executable that now holds the new binary
        source: 'release' or 'git'
        requested: Requested version, tag or revision
        shims: Shim synchronisation outcome (None without a shim directory)
    """
    target: Path
    source: str
    requested: str
    shims: ShimSyncResult | None = None


def update_exe_and_shims(
    new_exe: Path,
    config: AppConfig,
    ops: PlatformOps,
    current_exe: Path,
    verbose: bool = False,
) -> ShimSyncResult | None:
    """
    Replace the running executable and re-point the shims at the
    installed binary.

    Args:
        new_exe: Verified replacement binary
        config: Application configuration
        ops: Platform operations
        current_exe: Canonical path of the running executable, resolved
            before anything was modified
        verbose: Enable verbose logging

    Returns:
        Shim synchronisation outcome, or None if rye was never installed
    """
    shims = config.app_dir.resolve() / "shims"

    self_replace(new_exe, ops, current_exe, verbose)

    # hard links and copies still hold the old binary
    if shims.is_dir():
        primary = primary_binary(shims, ops)
        if not primary.is_file():
            primary = current_exe
        result = update_core_shims(shims, primary, ops, verbose)
        for name in result.skipped:
            logger.warning(f"could not update shim {shims / name}")
        return result
    return None


def update_from_release(
    version: str | None,
    config: AppConfig,
    ops: PlatformOps,
    current_exe: Path,
    verbose: bool = False,
) -> UpdateResult:
    """Download, verify and install a published release binary."""
    asset = resolve_release_asset(version, ops, config.preferences.release_repo)
    print(f"Updating to {asset.version}")
    vlog(f"Release asset: {asset.url}", verbose)

    data = fetch_verified_release(asset, config.preferences.timeout_seconds)

    with tempfile.TemporaryDirectory(prefix="rye-update-") as tmp:
        pending = write_pending_update(data, ops, Path(tmp))
        shims = update_exe_and_shims(pending, config, ops, current_exe, verbose)

    return UpdateResult(target=current_exe, source="release", requested=asset.version, shims=shims)


def update_from_source(
    config: AppConfig,
    ops: PlatformOps,
    current_exe: Path,
    tag: str | None = None,
    rev: str | None = None,
    force: bool = False,
    verbose: bool = False,
) -> UpdateResult:
    """Build rye from a git tag or revision with cargo and install it."""
    with tempfile.TemporaryDirectory(prefix="rye-build-") as tmp:
        root = Path(tmp)
        command = [
            "cargo", "install",
            "--git", config.preferences.release_repo,
            "--root", str(root),
        ]
        if rev:
            command += ["--rev", rev]
        elif tag:
            command += ["--tag", tag]
        if force:
            command.append("--force")
        command.append(TOOL_NAME)

        env = dict(os.environ)
        env["PATH"] = os.pathsep.join([str(root / "bin"), env.get("PATH", "")])

        vlog(f"Executing: {' '.join(command)}", verbose)
        try:
            result = subprocess.run(command, env=env, check=False)
        except OSError as e:
            raise UpdateError(f"unable to update via cargo-install: {e}") from e
        if result.returncode != 0:
            raise UpdateError("failed to self-update via cargo-install")

        new_exe = root / "bin" / ops.exe_name(TOOL_NAME)
        shims = update_exe_and_shims(new_exe, config, ops, current_exe, verbose)

    return UpdateResult(target=current_exe, source="git", requested=rev or tag or "", shims=shims)


def update(
    config: AppConfig,
    ops: PlatformOps,
    version: str | None = None,
    tag: str | None = None,
    rev: str | None = None,
    force: bool = False,
    verbose: bool = False,
) -> UpdateResult:
    """
    Update rye in place.

    Args:
        config: Application configuration
        ops: Platform operations
        version: Release version (default: latest)
        tag: Git tag to build from
        rev: Git revision to build from
        force: Force reinstallation when building from git
        verbose: Enable verbose logging

    Returns:
        UpdateResult

    Raises:
        UpdateError: If arguments conflict or a source build fails
        DownloadError: If the release cannot be downloaded
        ChecksumMismatch: If the release does not match its checksum
        ReplaceError: If the executable cannot be replaced
    """
    if tag and rev:
        raise UpdateError("--tag and --rev cannot be used together")

    # resolve before replacing; after a rename the lookup can point elsewhere
    current_exe = ops.current_exe().resolve()

    if tag or rev:
        result = update_from_source(config, ops, current_exe, tag, rev, force, verbose)
    else:
        result = update_from_release(version, config, ops, current_exe, verbose)

    print("Updated!")
    print()
    try:
        subprocess.run([str(current_exe), "--version"], check=False)
    except OSError as e:
        logger.warning(f"could not run {current_exe}: {e}")
    return result
