"""
Rye self management - install, verified self update, shim sync, uninstall.

Core Modules:
- Platform: PlatformOps capability per OS family
- Update: release download with checksum verification, payload decoding,
  atomic self replacement, shim synchronisation
- Lifecycle: installer (incl. unattended first-run install), uninstaller
"""

__version__ = "0.1.0"

VERSION = __version__

from .common import QuietExit, SelfManageError
from .config import AppConfig, Preferences, load_config
from .platform_ops import PlatformOps, UnixPlatformOps, WindowsPlatformOps, detect_platform_ops
from .download import (
    ChecksumMismatch,
    DownloadError,
    ReleaseAsset,
    ResourceNotFound,
    check_checksum,
    download_url,
    download_url_ignore_404,
    fetch_verified_release,
    resolve_release_asset,
)
from .payload import PayloadError, decode_payload, write_pending_update
from .replace import ReplaceError, self_replace
from .shims import ShimSyncResult, update_core_shims
from .runtime import ToolchainValidationError, ToolchainVersion, ensure_self_venv, register_toolchain
from .installer import InstallError, InstallMode, InstallResult, auto_self_install, perform_install, render_env_file
from .uninstaller import UninstallError, UninstallResult, uninstall
from .updater import UpdateError, UpdateResult, update, update_exe_and_shims
from .logging_config import setup_logging, get_logger

__all__ = [
    "__version__",
    "VERSION",
    # Errors
    "SelfManageError",
    "QuietExit",
    # Configuration
    "AppConfig",
    "Preferences",
    "load_config",
    # Platform
    "PlatformOps",
    "UnixPlatformOps",
    "WindowsPlatformOps",
    "detect_platform_ops",
    # Download
    "ReleaseAsset",
    "DownloadError",
    "ResourceNotFound",
    "ChecksumMismatch",
    "resolve_release_asset",
    "download_url",
    "download_url_ignore_404",
    "check_checksum",
    "fetch_verified_release",
    # Payload
    "PayloadError",
    "decode_payload",
    "write_pending_update",
    # Replace and shims
    "ReplaceError",
    "self_replace",
    "ShimSyncResult",
    "update_core_shims",
    # Runtime
    "ToolchainVersion",
    "ToolchainValidationError",
    "register_toolchain",
    "ensure_self_venv",
    # Lifecycle
    "InstallError",
    "InstallMode",
    "InstallResult",
    "perform_install",
    "auto_self_install",
    "render_env_file",
    "UninstallError",
    "UninstallResult",
    "uninstall",
    "UpdateError",
    "UpdateResult",
    "update",
    "update_exe_and_shims",
    # Logging
    "setup_logging",
    "get_logger",
]
