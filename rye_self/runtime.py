"""
Toolchain registration and internal runtime bootstrap.

These are the collaborators the installer calls out to. The installer only
cares that registration yields an identifier and that bootstrap yields the
path of the internal environment.
"""

from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from packaging.specifiers import SpecifierSet
from packaging.version import InvalidVersion, Version

from .common import SelfManageError, vlog
from .config import PY_DIR, SELF_DIR, AppConfig
from .platform_ops import PlatformOps
from .shims import primary_binary, update_core_shims

# Interpreter versions usable for the internal environment
SELF_COMPATIBLE_VERSIONS = SpecifierSet(">=3.9,<3.14")

_PROBE = "import sys, platform; print(sys.implementation.name, platform.python_version())"


class ToolchainError(SelfManageError):
    """Raised when a toolchain cannot be inspected or registered."""
    pass


class ToolchainValidationError(ToolchainError):
    """Raised when a toolchain is rejected for internal use."""
    pass


class RuntimeBootstrapError(SelfManageError):
    """Raised when the internal environment cannot be created."""
    pass


@dataclass(frozen=True)
class ToolchainVersion:
    """Kind and version of a Python toolchain."""
    name: str
    version: Version

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


def is_self_compatible_toolchain(ver: ToolchainVersion) -> bool:
    """Check whether a toolchain can host the internal environment."""
    return ver.version in SELF_COMPATIBLE_VERSIONS


def validate_self_toolchain(ver: ToolchainVersion) -> None:
    """
    Reject toolchains that cannot be used internally.

    Raises:
        ToolchainValidationError: If the toolchain is not CPython or its
            version is outside SELF_COMPATIBLE_VERSIONS
    """
    if ver.name != "cpython":
        raise ToolchainValidationError(
            f"Only cpython toolchains are allowed, got '{ver.name}'"
        )
    if not is_self_compatible_toolchain(ver):
        raise ToolchainValidationError(
            f"Toolchain {ver} is not version compatible for internal use.",
            remediation=f"Use a cpython toolchain matching {SELF_COMPATIBLE_VERSIONS}",
        )


def probe_toolchain(path: Path, timeout: int = 30) -> ToolchainVersion:
    """
    Ask an interpreter for its implementation name and version.

    Raises:
        ToolchainError: If the interpreter cannot be run or answers garbage
    """
    try:
        result = subprocess.run(
            [str(path), "-c", _PROBE],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise ToolchainError(f"could not run toolchain at {path}: {e}") from e

    if result.returncode != 0:
        raise ToolchainError(
            f"toolchain at {path} failed with exit code {result.returncode}: {result.stderr[:200]}"
        )

    parts = result.stdout.split()
    if len(parts) != 2:
        raise ToolchainError(f"unexpected answer from toolchain at {path}: {result.stdout!r}")
    try:
        return ToolchainVersion(name=parts[0], version=Version(parts[1]))
    except InvalidVersion as e:
        raise ToolchainError(f"toolchain at {path} reported an invalid version: {parts[1]}") from e


def register_toolchain(
    app_dir: Path,
    path: Path,
    validate: Callable[[ToolchainVersion], None],
    verbose: bool = False,
) -> str:
    """
    Register the interpreter at ``path`` under ``py/``.

    Args:
        app_dir: Application directory
        path: Interpreter executable
        validate: Raises if the toolchain must not be registered
        verbose: Enable verbose logging

    Returns:
        The toolchain identifier, e.g. ``cpython@3.12.1``
    """
    ver = probe_toolchain(path)
    validate(ver)

    py_dir = app_dir / PY_DIR
    py_dir.mkdir(parents=True, exist_ok=True)
    marker = py_dir / f"{ver}.toolchain"
    marker.write_text(f"{path.absolute()}\n", encoding="utf-8")
    vlog(f"Registered {ver} at {marker}", verbose)
    return str(ver)


def ensure_self_venv(
    config: AppConfig,
    ops: PlatformOps,
    python: Path | None = None,
    verbose: bool = False,
) -> Path:
    """
    Make sure the internal environment under ``self/`` exists.

    Returns:
        Path of the internal environment
    """
    venv_dir = config.app_dir / SELF_DIR
    if not (venv_dir / "pyvenv.cfg").is_file():
        interpreter = str(python or sys.executable)
        vlog(f"Creating internal environment with {interpreter}", verbose)
        try:
            result = subprocess.run(
                [interpreter, "-m", "venv", str(venv_dir)],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise RuntimeBootstrapError(f"could not create {venv_dir}: {e}") from e
        if result.returncode != 0:
            raise RuntimeBootstrapError(
                f"could not create {venv_dir}: {result.stderr[:200]}"
            )

    if config.shims_dir.is_dir():
        primary = primary_binary(config.shims_dir, ops)
        if not primary.is_file():
            primary = ops.current_exe()
        update_core_shims(config.shims_dir, primary, ops, verbose)
    return venv_dir
