"""
First-time installation of rye into its application directory.

The installer walks through a fixed sequence of steps:

    greeting -> confirm -> place binary -> env file -> register toolchain
    -> bootstrap runtime -> PATH advice

Only the confirmation can be cancelled. Every step after it either
completes or raises.
"""

from __future__ import annotations

import enum
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping

from . import __version__
from .common import QuietExit, SelfManageError, confirm, vlog
from .config import HOME_ENV, AppConfig
from .environment import ShellEnvironment, detect_shell_environment
from .logging_config import get_logger
from .platform_ops import PlatformOps
from .runtime import ToolchainVersion, ensure_self_venv, register_toolchain, validate_self_toolchain
from .shims import primary_binary, update_core_shims

INSTALL_GUIDE_URL = "https://rye-up.com/guide/installation/"
DEVELOPER_MODE_URL = "https://rye-up.com/guide/faq/#windows-developer-mode"

Registrar = Callable[[Path, Path, Callable[[ToolchainVersion], None]], str]
Bootstrapper = Callable[[AppConfig, PlatformOps], Path]


class InstallError(SelfManageError):
    """Raised when a filesystem step of the installation fails."""
    pass


class InstallMode(enum.Enum):
    """How the installer was started."""
    DEFAULT = "default"
    NO_PROMPTS = "no-prompts"
    AUTO_INSTALL = "auto-install"


@dataclass(frozen=True)
class InstallResult:
    """
    Outcome of a completed installation.

    Attributes:
        target: Installed primary binary
        env_file: Generated env file (None where no env file is used)
        toolchain: Identifier of the registered toolchain, if any
        self_path: Internal runtime environment
        on_path: Whether the shim directory already was on PATH
    """
    target: Path
    env_file: Path | None
    toolchain: str | None
    self_path: Path
    on_path: bool


def render_env_file(custom_home: bool, rye_home: str) -> str:
    """
    Render the shell script that puts the shim directory on PATH.

    RYE_HOME is only exported when the user overrode it. The PATH entry is
    added at most once, however often the script is sourced.
    """
    lines = ["", "# rye shell setup"]
    if custom_home:
        lines.append(f'export {HOME_ENV}="{rye_home}"')
    lines += [
        'case ":${PATH}:" in',
        f'  *:"{rye_home}/shims":*)',
        "    ;;",
        "  *)",
        f'    export PATH="{rye_home}/shims:$PATH"',
        "    ;;",
        "esac",
        "",
    ]
    return "\n".join(lines) + "\n"


def _greet(mode: InstallMode, config: AppConfig, ops: PlatformOps) -> None:
    print("Welcome to Rye!")

    if mode is InstallMode.AUTO_INSTALL:
        print()
        print("Rye has detected that it's not installed on this computer yet and")
        print("automatically started the installer for you.  For more information")
        print(f"read {INSTALL_GUIDE_URL}")

    print()
    print(f"This installer will install rye to {config.app_dir}")
    print(f"This path can be changed by exporting the {HOME_ENV} environment variable.")
    print()
    print("Details:")
    print(f"  Rye Version: {__version__}")
    print(f"  Platform: {ops.os_name} ({ops.arch})")

    if ops.os_name == "windows" and not ops.symlinks_supported():
        print()
        get_logger().warning("your Windows configuration does not support symlinks.")
        print()
        print("It's strongly recommended that you enable developer mode in Windows to")
        print("enable symlinks.  You need to enable this before continuing the setup.")
        print(f"Learn more at {DEVELOPER_MODE_URL}")
    print()


def place_binary(config: AppConfig, ops: PlatformOps, exe: Path, verbose: bool = False) -> Path:
    """
    Copy the running executable into the shim directory.

    Returns:
        Path of the installed primary binary

    Raises:
        InstallError: If the directory cannot be created or the copy fails
    """
    shims = config.shims_dir
    target = primary_binary(shims, ops)
    try:
        shims.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise InstallError(f"could not create {shims}: {e}") from e

    if target.is_file() and target.resolve() == exe.resolve():
        vlog(f"{target} is the running executable, leaving it in place", verbose)
    else:
        try:
            if target.is_file() or target.is_symlink():
                target.unlink()
            shutil.copy2(exe, target)
        except OSError as e:
            raise InstallError(f"could not install binary to {target}: {e}") from e

    update_core_shims(shims, target, ops, verbose)
    return target


def write_env_file(config: AppConfig, ops: PlatformOps) -> Path | None:
    """Write the env file where PATH is set up by sourcing it."""
    if not ops.needs_env_file:
        return None
    env_file = config.env_file
    try:
        env_file.write_text(render_env_file(config.custom_home, config.home_display), encoding="utf-8")
    except OSError as e:
        raise InstallError(f"could not write {env_file}: {e}") from e
    return env_file


def report_path_advice(config: AppConfig, ops: PlatformOps, shell: ShellEnvironment) -> bool:
    """
    Print instructions for putting the shim directory on PATH.

    Returns:
        Whether the shim directory already is on PATH
    """
    shims = config.shims_dir
    if ops.needs_env_file:
        if shell.has_on_path(shims):
            return True
        print()
        print(f"The rye directory {shims} was not detected on PATH.")
        print("It is highly recommended that you add it.")
        print("Add this at the end of your .profile, .zprofile or similar:")
        print()
        print(f'    source "{config.home_display}/env"')
        print()
        if shell.is_fish:
            print("To make it work with fish, run this once instead:")
            print()
            print(f'    set -Ua fish_user_paths "{config.home_display}/shims"')
            print()
        print("Note: after adding rye to your path, restart your shell for it to take effect.")
        return False

    on_path = shell.has_on_path(shims)
    if not on_path:
        print()
        print(f"Note: You need to manually add {config.home_display}\\shims to your PATH.")
    return on_path


def perform_install(
    mode: InstallMode,
    toolchain_path: Path | None = None,
    *,
    config: AppConfig,
    ops: PlatformOps,
    confirm_fn: Callable[[str], bool] = confirm,
    register: Registrar = register_toolchain,
    bootstrap: Bootstrapper = ensure_self_venv,
    environ: Mapping[str, str] | None = None,
    verbose: bool = False,
) -> InstallResult:
    """
    Install the running executable into the application directory.

    Args:
        mode: How the installer was started
        toolchain_path: Toolchain to register before bootstrapping
        config: Application configuration
        ops: Platform operations
        confirm_fn: Prompt used for the confirmation step
        register: Toolchain registrar
        bootstrap: Internal runtime bootstrapper
        environ: Environment used for PATH/shell detection
        verbose: Enable verbose logging

    Returns:
        InstallResult

    Raises:
        QuietExit: If the user declines the confirmation
        InstallError: If placing the binary or writing the env file fails
        ToolchainValidationError: If the toolchain is rejected
    """
    exe = ops.current_exe()
    _greet(mode, config, ops)

    if mode is InstallMode.DEFAULT and not confirm_fn("Continue?"):
        get_logger().error("Installation cancelled!")
        raise QuietExit(1)

    target = place_binary(config, ops, exe, verbose)
    print(f"Installed binary to {target}")

    env_file = write_env_file(config, ops)

    toolchain = None
    if toolchain_path is not None:
        print(f"Registering toolchain at {toolchain_path}")
        toolchain = register(config.app_dir, toolchain_path, validate_self_toolchain)
        print(f"Registered toolchain as {toolchain}")

    self_path = bootstrap(config, ops)
    print(f"Updated self-python installation at {self_path}")

    on_path = report_path_advice(config, ops, detect_shell_environment(environ, verbose))

    print(f"For more information read {INSTALL_GUIDE_URL}")
    print()
    print("All done!")

    return InstallResult(
        target=target,
        env_file=env_file,
        toolchain=toolchain,
        self_path=self_path,
        on_path=on_path,
    )


def auto_self_install(
    config: AppConfig,
    ops: PlatformOps,
    **kwargs,
) -> bool:
    """
    Install rye unprompted if it is not installed yet.

    Disabled by RYE_NO_AUTO_INSTALL=1. RYE_TOOLCHAIN names a toolchain to
    register during the installation.

    Returns:
        True if an installation was performed
    """
    if config.no_auto_install:
        return False

    target = primary_binary(config.shims_dir, ops)
    if config.app_dir.is_dir() and target.is_file():
        return False

    perform_install(InstallMode.AUTO_INSTALL, config.toolchain, config=config, ops=ops, **kwargs)
    return True
