"""
Shell environment detection for post-install advice.

Detects:
- which interactive shell the user runs (fish needs different advice)
- whether a directory is already reachable through PATH
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .common import vlog


@dataclass(frozen=True)
class ShellEnvironment:
    """
    Detected shell information.

    Attributes:
        shell: Shell name ('bash', 'zsh', 'fish', ...) or None if unknown
        path_entries: Entries of PATH in order
        indicators: Evidence for the detection decision
    """
    shell: str | None
    path_entries: tuple[str, ...] = ()
    indicators: tuple[str, ...] = ()

    @property
    def is_fish(self) -> bool:
        return self.shell == "fish"

    def has_on_path(self, directory: Path) -> bool:
        """Check whether ``directory`` (or an alias of it) is on PATH."""
        for entry in self.path_entries:
            if not entry:
                continue
            try:
                if os.path.samefile(entry, directory):
                    return True
            except OSError:
                continue
        return False


def detect_shell_environment(
    environ: Mapping[str, str] | None = None,
    verbose: bool = False,
) -> ShellEnvironment:
    """
    Detect the user's shell and PATH.

    Detection priority:
    1. FISH_VERSION (set inside fish sessions)
    2. Basename of SHELL
    3. Unknown

    Args:
        environ: Environment mapping (defaults to os.environ)
        verbose: Enable verbose logging

    Returns:
        ShellEnvironment
    """
    if environ is None:
        environ = os.environ

    path_entries = tuple(environ.get("PATH", "").split(os.pathsep))

    if environ.get("FISH_VERSION"):
        vlog("fish detected via FISH_VERSION", verbose)
        return ShellEnvironment(
            shell="fish",
            path_entries=path_entries,
            indicators=(f"env:FISH_VERSION={environ['FISH_VERSION']}",),
        )

    shell_path = environ.get("SHELL")
    if shell_path:
        name = Path(shell_path).name
        if name.endswith(".exe"):
            name = name[:-4]
        vlog(f"Shell detected via SHELL: {name}", verbose)
        return ShellEnvironment(
            shell=name,
            path_entries=path_entries,
            indicators=(f"env:SHELL={shell_path}",),
        )

    vlog("Shell could not be detected", verbose)
    return ShellEnvironment(shell=None, path_entries=path_entries)
