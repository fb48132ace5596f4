"""
Platform-specific file operations used by self management.

Every OS-dependent decision (executable suffix, release archive format,
how a running binary is swapped, how shims are linked, how the running
binary is deleted on uninstall) lives behind ``PlatformOps``. The variant
is chosen once at startup by ``detect_platform_ops()`` and passed to every
component.
"""

from __future__ import annotations

import gzip
import logging
import os
import platform
import shutil
import subprocess
import sys
import tempfile
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from .common import vlog

logger = logging.getLogger(__name__)

SELF_CLEANUP_DIR = ".rye-self-cleanup"

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
}


class PlatformOps(ABC):
    """
    Capability interface for OS-dependent self-management operations.

    Attributes:
        os_name: Release asset OS component ('linux', 'macos', 'windows')
        exe_suffix: Suffix of executables ('' or '.exe')
        asset_suffix: Suffix of published release assets
        needs_env_file: Whether PATH is augmented through a sourced env file
        default_home_display: Default app dir as shown to the user
        core_shims: Shim names that always point at the primary binary
    """
    os_name: str = ""
    exe_suffix: str = ""
    asset_suffix: str = ""
    needs_env_file: bool = False
    default_home_display: str = ""
    core_shims: tuple[str, ...] = ("python", "python3")

    def __init__(self, executable: Path | None = None, verbose: bool = False):
        self._executable = executable
        self.verbose = verbose

    def current_exe(self) -> Path:
        """Path of the executable of the running tool."""
        if self._executable is not None:
            return self._executable
        if getattr(sys, "frozen", False):
            return Path(sys.executable)
        return Path(sys.argv[0]).absolute()

    @property
    def arch(self) -> str:
        machine = platform.machine().lower()
        return _ARCH_ALIASES.get(machine, machine)

    def exe_name(self, name: str) -> str:
        return f"{name}{self.exe_suffix}"

    @abstractmethod
    def default_app_dir(self) -> Path:
        """Expanded default application directory."""

    @abstractmethod
    def decode_payload(self, data: bytes) -> bytes:
        """Turn a downloaded release asset into an executable image."""

    @abstractmethod
    def swap_into_place(self, staged: Path, target: Path) -> None:
        """
        Atomically make ``staged`` the file at ``target``.

        ``staged`` must live in the same directory as ``target``. ``target``
        may be the executable of the running process.
        """

    @abstractmethod
    def link_shim(self, target: Path, link: Path) -> None:
        """Create or recreate ``link`` so that it runs ``target``."""

    @abstractmethod
    def self_delete_outside_path(self, exe: Path, directory: Path) -> None:
        """
        Delete the running executable ``exe`` so that ``directory`` can be
        removed. Deletion may be deferred until the process exits.
        """

    def symlinks_supported(self) -> bool:
        return True


class UnixPlatformOps(PlatformOps):
    """Linux and macOS: running binaries may be unlinked and replaced."""

    exe_suffix = ""
    asset_suffix = ".gz"
    needs_env_file = True
    default_home_display = "$HOME/.rye"

    def __init__(self, executable: Path | None = None, verbose: bool = False):
        super().__init__(executable, verbose)
        self.os_name = "macos" if sys.platform == "darwin" else "linux"

    def default_app_dir(self) -> Path:
        return Path.home() / ".rye"

    def decode_payload(self, data: bytes) -> bytes:
        return gzip.decompress(data)

    def swap_into_place(self, staged: Path, target: Path) -> None:
        os.replace(staged, target)

    def link_shim(self, target: Path, link: Path) -> None:
        # build the symlink under a temporary name and rename it over the shim
        tmp = link.with_name(f".{link.name}.{uuid.uuid4().hex}")
        os.symlink(target, tmp)
        try:
            os.replace(tmp, link)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    def self_delete_outside_path(self, exe: Path, directory: Path) -> None:
        vlog(f"Removing running executable {exe}", self.verbose)
        exe.unlink(missing_ok=True)


class WindowsPlatformOps(PlatformOps):
    """Windows: a running binary cannot be deleted, only renamed."""

    os_name = "windows"
    exe_suffix = ".exe"
    asset_suffix = ".exe"
    needs_env_file = False
    default_home_display = "%USERPROFILE%\\.rye"
    core_shims = ("python", "python3", "pythonw")

    def default_app_dir(self) -> Path:
        return Path(os.environ.get("USERPROFILE") or Path.home()) / ".rye"

    def decode_payload(self, data: bytes) -> bytes:
        return data

    def swap_into_place(self, staged: Path, target: Path) -> None:
        cleanup_dir = target.parent / SELF_CLEANUP_DIR
        cleanup_dir.mkdir(exist_ok=True)
        relocated = cleanup_dir / f"{target.stem}.{uuid.uuid4().hex}.old{target.suffix}"

        os.rename(target, relocated)
        try:
            os.replace(staged, target)
        except OSError:
            os.rename(relocated, target)
            raise
        # the new binary is in place; the old one is only clutter now
        self._defer_delete(relocated)

    def link_shim(self, target: Path, link: Path) -> None:
        link.unlink(missing_ok=True)
        try:
            os.symlink(target, link)
            return
        except OSError:
            vlog(f"Symlink failed for {link}, falling back to hardlink", self.verbose)
        try:
            os.link(target, link)
        except OSError:
            shutil.copy2(target, link)

    def self_delete_outside_path(self, exe: Path, directory: Path) -> None:
        outside = directory.resolve().parent / f".{exe.stem}.{uuid.uuid4().hex}.deleteme{exe.suffix}"
        vlog(f"Moving running executable out of {directory} to {outside}", self.verbose)
        os.rename(exe, outside)
        self._defer_delete(outside)

    def symlinks_supported(self) -> bool:
        with tempfile.TemporaryDirectory() as tmp:
            probe = Path(tmp) / "probe"
            probe.write_bytes(b"")
            try:
                os.symlink(probe, Path(tmp) / "link")
            except OSError:
                return False
            return True

    def _defer_delete(self, path: Path) -> None:
        try:
            self.schedule_delete(path)
        except OSError as e:
            logger.warning(f"could not schedule deletion of {path}, remove it manually: {e}")

    def schedule_delete(self, path: Path) -> None:
        """
        Delete ``path`` once this process has exited.

        A detached cmd.exe keeps retrying the delete until the file is no
        longer locked, then removes its own script.
        """
        fd, script = tempfile.mkstemp(prefix="rye-self-delete-", suffix=".cmd")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(
                ":retry\r\n"
                f'del /f /q "{path}" >nul 2>&1\r\n'
                f'if exist "{path}" (timeout /t 1 /nobreak >nul & goto retry)\r\n'
                '(goto) 2>nul & del "%~f0"\r\n'
            )
        creationflags = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
        try:
            subprocess.Popen(["cmd.exe", "/c", script], creationflags=creationflags, close_fds=True)
        except OSError:
            os.unlink(script)
            raise
        vlog(f"Scheduled deletion of {path}", self.verbose)


def detect_platform_ops(executable: Path | None = None, verbose: bool = False) -> PlatformOps:
    """Pick the PlatformOps variant for the running OS."""
    if os.name == "nt":
        return WindowsPlatformOps(executable, verbose)
    return UnixPlatformOps(executable, verbose)
