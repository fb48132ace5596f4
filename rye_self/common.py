"""
Common utilities shared across rye_self modules.
"""

from __future__ import annotations

import os
import sys


class SelfManageError(Exception):
    """
    Base exception for self-management failures.

    Attributes:
        message: Human-readable error message
        remediation: Suggested fix for the error
    """
    def __init__(self, message: str, remediation: str | None = None):
        self.message = message
        self.remediation = remediation
        super().__init__(message)


class QuietExit(Exception):
    """
    Terminate the process with an exit code but without an error message.

    Raised when the user declines a confirmation prompt.
    """
    def __init__(self, code: int = 1):
        self.code = code
        super().__init__(f"quiet exit ({code})")


def confirm(prompt: str) -> bool:
    """
    Ask the user a yes/no question.

    Args:
        prompt: Question to display

    Returns:
        True if user confirms, False otherwise (always False without a TTY)
    """
    if not sys.stdin.isatty():
        # Non-interactive (CI/CD)
        return False

    print(f"{prompt} [y/N]: ", end="")
    response = input().strip().lower()
    return response in ('y', 'yes')


def vlog(msg: str, verbose: bool = False) -> None:
    """
    Log verbose message using structured logging.

    Args:
        msg: Message to log
        verbose: Whether verbose mode is enabled
    """
    if verbose or os.environ.get("RYE_SELF_DEBUG", "0") == "1":
        from .logging_config import get_logger
        get_logger().info(msg)
