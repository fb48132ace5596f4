"""
Configuration for rye self management.

The application directory is resolved once per process from ``RYE_HOME``
(or the platform default) and carried around as an explicit ``AppConfig``.
Optional preferences are read from ``config.yml`` inside that directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping

import yaml

from .common import vlog

if TYPE_CHECKING:
    from .platform_ops import PlatformOps


TOOL_NAME = "rye"

HOME_ENV = "RYE_HOME"
NO_AUTO_INSTALL_ENV = "RYE_NO_AUTO_INSTALL"
TOOLCHAIN_ENV = "RYE_TOOLCHAIN"

CONFIG_FILE_NAME = "config.yml"
DEFAULT_RELEASE_REPO = "https://github.com/mitsuhiko/rye"

SHIMS_DIR = "shims"
SELF_DIR = "self"
PY_DIR = "py"
PIP_TOOLS_DIR = "pip-tools"
ENV_FILE = "env"


@dataclass(frozen=True)
class Preferences:
    """
    User preferences for self management.

    Attributes:
        release_repo: Repository that publishes release binaries
        timeout_seconds: Timeout for network operations
        verbose: Enable verbose logging by default
    """
    release_repo: str = DEFAULT_RELEASE_REPO
    timeout_seconds: int = 60
    verbose: bool = False

    def __post_init__(self):
        if not self.release_repo.startswith(("https://", "http://")):
            raise ValueError(
                f"Invalid release_repo: {self.release_repo}. "
                "Must be an http(s) URL"
            )
        if self.timeout_seconds < 1 or self.timeout_seconds > 600:
            raise ValueError(
                f"Invalid timeout_seconds: {self.timeout_seconds}. "
                "Must be between 1 and 600"
            )

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Preferences:
        """Create Preferences from dictionary."""
        return Preferences(
            release_repo=str(data.get("release_repo", DEFAULT_RELEASE_REPO)).rstrip("/"),
            timeout_seconds=int(data.get("timeout_seconds", 60)),
            verbose=bool(data.get("verbose", False)),
        )


@dataclass(frozen=True)
class AppConfig:
    """
    Resolved application directory and environment settings.

    Attributes:
        app_dir: Root of all managed state
        custom_home: Whether app_dir came from RYE_HOME
        home_display: app_dir as it should appear in generated scripts and
            advice (``$HOME/.rye`` rather than the expanded path by default)
        no_auto_install: Unattended first-run installation is disabled
        toolchain: Toolchain to pre-register during unattended installation
        preferences: Preferences loaded from config.yml
    """
    app_dir: Path
    custom_home: bool = False
    home_display: str = ""
    no_auto_install: bool = False
    toolchain: Path | None = None
    preferences: Preferences = field(default_factory=Preferences)

    @property
    def shims_dir(self) -> Path:
        return self.app_dir / SHIMS_DIR

    @property
    def env_file(self) -> Path:
        return self.app_dir / ENV_FILE

    @property
    def config_file(self) -> Path:
        return self.app_dir / CONFIG_FILE_NAME

    def state_dirs(self) -> tuple[Path, ...]:
        """Internal runtime directories, opaque to self management."""
        return (
            self.app_dir / SELF_DIR,
            self.app_dir / PY_DIR,
            self.app_dir / PIP_TOOLS_DIR,
        )


def _load_yaml(file_path: Path) -> dict[str, Any] | None:
    """
    Load YAML configuration file.

    Returns:
        Parsed configuration dictionary, or None if the file is unreadable
        or not valid YAML
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return None


def load_preferences(file_path: Path, verbose: bool = False) -> Preferences:
    """
    Load preferences from a config file, falling back to defaults.

    Args:
        file_path: Path to config.yml
        verbose: Enable verbose logging

    Returns:
        Preferences (defaults if the file is missing or invalid)
    """
    if not file_path.is_file():
        return Preferences()

    vlog(f"Loading config from: {file_path}", verbose)
    data = _load_yaml(file_path)
    if data is None:
        vlog(f"Invalid config file: {file_path}", verbose)
        return Preferences()

    section = data.get("self", data)
    if not isinstance(section, dict):
        vlog(f"Ignoring malformed 'self' section in {file_path}", verbose)
        return Preferences()

    try:
        return Preferences.from_dict(section)
    except (ValueError, TypeError) as e:
        vlog(f"Config validation failed for {file_path}: {e}", verbose)
        return Preferences()


def load_config(
    ops: PlatformOps,
    environ: Mapping[str, str] | None = None,
    verbose: bool = False,
) -> AppConfig:
    """
    Resolve the application directory and settings once at startup.

    Args:
        ops: Platform operations (supplies the default home)
        environ: Environment mapping (defaults to os.environ)
        verbose: Enable verbose logging

    Returns:
        AppConfig
    """
    if environ is None:
        environ = os.environ

    custom = environ.get(HOME_ENV)
    if custom:
        app_dir = Path(custom)
        home_display = custom
    else:
        app_dir = ops.default_app_dir()
        home_display = ops.default_home_display
    vlog(f"Application directory: {app_dir} (custom={bool(custom)})", verbose)

    toolchain = environ.get(TOOLCHAIN_ENV)
    return AppConfig(
        app_dir=app_dir,
        custom_home=bool(custom),
        home_display=home_display,
        no_auto_install=environ.get(NO_AUTO_INSTALL_ENV) == "1",
        toolchain=Path(toolchain) if toolchain else None,
        preferences=load_preferences(app_dir / CONFIG_FILE_NAME, verbose),
    )
