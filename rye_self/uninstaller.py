"""
Removal of rye's managed state.

Every step is best effort except moving the running executable out of the
application directory. ``config.yml`` is left behind and the env file is
truncated rather than deleted, because shells that already sourced it would
otherwise fail on their next command.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .common import QuietExit, SelfManageError, confirm, vlog
from .config import AppConfig
from .platform_ops import PlatformOps

logger = logging.getLogger(__name__)


class UninstallError(SelfManageError):
    """Raised when the running executable cannot be removed."""
    pass


@dataclass(frozen=True)
class UninstallResult:
    """
    Outcome of an uninstallation.

    Attributes:
        removed_shims: Shim files that were deleted
        failed_shims: Shim files that could not be deleted
        removed_dirs: Directories that were removed
        self_deleted: Whether the running executable had to be scheduled
            for deletion
        env_truncated: Whether the env file was emptied
    """
    removed_shims: tuple[str, ...] = ()
    failed_shims: tuple[str, ...] = ()
    removed_dirs: tuple[str, ...] = ()
    self_deleted: bool = False
    env_truncated: bool = False


def remove_dir_all_if_exists(path: Path) -> bool:
    """Recursively remove ``path`` if it is a directory."""
    if not path.is_dir():
        return False
    shutil.rmtree(path)
    return True


def _is_inside(path: Path, directory: Path) -> bool:
    try:
        path.relative_to(directory)
    except ValueError:
        return False
    return True


def _remove_shims(shims_dir: Path) -> tuple[list[str], list[str]]:
    removed: list[str] = []
    failed: list[str] = []
    try:
        entries = list(shims_dir.iterdir())
    except OSError:
        return removed, failed
    for entry in entries:
        if entry.is_dir() and not entry.is_symlink():
            continue
        try:
            entry.unlink()
        except OSError as e:
            # the running executable cannot be deleted on Windows
            logger.debug(f"Could not remove {entry}: {e}")
            failed.append(entry.name)
        else:
            removed.append(entry.name)
    return removed, failed


def print_path_advice(config: AppConfig, ops: PlatformOps) -> None:
    """Tell the user what to remove from their shell configuration."""
    if ops.needs_env_file:
        env_file = f"{config.home_display.rstrip('/')}/env"
        print(f"Don't forget to remove the sourcing of {env_file} from your shell config.")
    else:
        shims = config.home_display.rstrip("\\") + "\\shims"
        print(f"Don't forget to remove {shims} from your PATH")


def uninstall(
    config: AppConfig,
    ops: PlatformOps,
    yes: bool = False,
    confirm_fn: Callable[[str], bool] = confirm,
    verbose: bool = False,
) -> UninstallResult:
    """
    Uninstall rye.

    Args:
        config: Application configuration
        ops: Platform operations
        yes: Skip the confirmation prompt
        confirm_fn: Prompt used for the confirmation
        verbose: Enable verbose logging

    Returns:
        UninstallResult

    Raises:
        QuietExit: If the user declines the confirmation
        UninstallError: If the running executable cannot be moved out of
            the application directory
    """
    if not yes and not confirm_fn("Do you want to uninstall rye?"):
        raise QuietExit(1)

    result = UninstallResult()
    app_dir = config.app_dir
    if app_dir.is_dir():
        real_exe = ops.current_exe().resolve()
        real_app_dir = app_dir.resolve()

        removed_shims, failed_shims = _remove_shims(config.shims_dir)
        vlog(f"Removed shims: {removed_shims}, left behind: {failed_shims}", verbose)

        removed_dirs: list[str] = []
        for state_dir in config.state_dirs():
            try:
                if remove_dir_all_if_exists(state_dir):
                    removed_dirs.append(state_dir.name)
            except OSError as e:
                logger.debug(f"Could not remove {state_dir}: {e}")

        self_deleted = False
        if _is_inside(real_exe, real_app_dir) and real_exe.is_file():
            try:
                ops.self_delete_outside_path(real_exe, real_app_dir)
            except OSError as e:
                raise UninstallError(f"could not remove running executable {real_exe}: {e}") from e
            self_deleted = True

        try:
            if remove_dir_all_if_exists(config.shims_dir):
                removed_dirs.append(config.shims_dir.name)
        except OSError as e:
            logger.debug(f"Could not remove {config.shims_dir}: {e}")

        env_truncated = False
        if config.env_file.is_file():
            try:
                config.env_file.write_text("", encoding="utf-8")
                env_truncated = True
            except OSError as e:
                logger.debug(f"Could not truncate {config.env_file}: {e}")

        result = UninstallResult(
            removed_shims=tuple(removed_shims),
            failed_shims=tuple(failed_shims),
            removed_dirs=tuple(removed_dirs),
            self_deleted=self_deleted,
            env_truncated=env_truncated,
        )

    print("Done!")
    print()
    print_path_advice(config, ops)
    return result
