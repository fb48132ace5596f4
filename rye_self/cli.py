"""
Command line entry point for rye self management.

Usage:
    rye-self update [--version V | --tag T | --rev R] [--force]
    rye-self uninstall [--yes]
    rye-self install [--yes] [--toolchain PATH]   (run by the installer)
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from .common import QuietExit, SelfManageError
from .config import AppConfig, load_config
from .installer import InstallMode, auto_self_install, perform_install
from .logging_config import get_logger, setup_logging
from .platform_ops import PlatformOps, detect_platform_ops
from .uninstaller import uninstall
from .updater import update


def cmd_update(args: argparse.Namespace, config: AppConfig, ops: PlatformOps) -> int:
    """Update rye to a release, tag or revision."""
    update(
        config,
        ops,
        version=args.version,
        tag=args.tag,
        rev=args.rev,
        force=args.force,
        verbose=args.verbose,
    )
    return 0


def cmd_install(args: argparse.Namespace, config: AppConfig, ops: PlatformOps) -> int:
    """Install the running binary into the application directory."""
    perform_install(
        InstallMode.NO_PROMPTS if args.yes else InstallMode.DEFAULT,
        args.toolchain,
        config=config,
        ops=ops,
        verbose=args.verbose,
    )
    return 0


def cmd_uninstall(args: argparse.Namespace, config: AppConfig, ops: PlatformOps) -> int:
    """Remove rye's managed state."""
    uninstall(config, ops, yes=args.yes, verbose=args.verbose)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rye-self",
        description="Rye self management",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_update = sub.add_parser("update", help="Performs an update of rye.")
    p_update.add_argument("--version", help="Update to a specific version.")
    source = p_update.add_mutually_exclusive_group()
    source.add_argument("--tag", help="Update to a specific tag.")
    source.add_argument("--rev", help="Update to a specific git rev.")
    p_update.add_argument("--force", action="store_true", help="Force reinstallation")
    p_update.set_defaults(func=cmd_update)

    p_install = sub.add_parser("install")
    p_install.add_argument("--yes", "-y", action="store_true", help="Skip prompts.")
    p_install.add_argument(
        "--toolchain",
        type=Path,
        help="Register a specific toolchain before bootstrap.",
    )
    p_install.set_defaults(func=cmd_install)

    p_uninstall = sub.add_parser("uninstall", help="Uninstalls rye again.")
    p_uninstall.add_argument("--yes", "-y", action="store_true", help="Skip safety check.")
    p_uninstall.set_defaults(func=cmd_uninstall)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    ops = detect_platform_ops(verbose=args.verbose)
    config = load_config(ops, verbose=args.verbose)
    setup_logging(verbose=args.verbose or config.preferences.verbose)

    try:
        if args.command == "update" and auto_self_install(config, ops, verbose=args.verbose):
            return 0
        return args.func(args, config, ops)
    except QuietExit as e:
        return e.code
    except SelfManageError as e:
        get_logger().error(e.message)
        if e.remediation:
            print(f"hint: {e.remediation}", file=sys.stderr)
        return 1


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
