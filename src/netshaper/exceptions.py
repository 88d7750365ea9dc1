"""
Custom exceptions for the netshaper package.
"""

from typing import Optional, Sequence


class NetShaperError(Exception):
    """Base exception for all netshaper errors."""

    pass


class InvalidConfigurationError(NetShaperError, ValueError):
    """
    Raised when a traffic configuration fails validation.

    Always raised at construction time, never once rules are applied.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class AlreadyAppliedError(NetShaperError):
    """
    Raised when apply() is called while rules are already active.

    Call cleanup() first to remove the previously applied rule set.
    """

    def __init__(self, message: str = "Traffic shaping rules are already applied"):
        super().__init__(message)


class NotAppliedError(NetShaperError):
    """Raised when a live update is requested before apply()."""

    def __init__(self, message: str = "Traffic shaping rules are not applied"):
        super().__init__(message)


class CommandExecutionFailedError(NetShaperError):
    """
    Raised when a pfctl/dnctl command fails or cannot be launched.

    This may indicate insufficient privileges, a missing tool,
    or a host in an unexpected state.
    """

    def __init__(
        self, command: str, underlying_error: str, returncode: Optional[int] = None
    ):
        self.command = command
        self.underlying_error = underlying_error
        self.returncode = returncode
        if returncode is None:
            message = f"Command failed: {command}"
        else:
            message = f"Command failed (exit {returncode}): {command}"
        if underlying_error:
            message += f"\nError: {underlying_error}"
        super().__init__(message)


class RollbackFailedError(NetShaperError):
    """
    Raised when apply() fails and undoing its partial work fails as well.

    The host should be treated as untrusted; cleanup(force=True) or manual
    intervention may be needed.
    """

    def __init__(
        self,
        original: CommandExecutionFailedError,
        cleanup_errors: Sequence[CommandExecutionFailedError],
    ):
        self.original = original
        self.cleanup_errors = list(cleanup_errors)
        message = f"Apply failed and rollback did not complete.\nOriginal: {original}"
        for error in self.cleanup_errors:
            message += f"\nRollback: {error}"
        super().__init__(message)


class ManifestLoadError(NetShaperError):
    """
    Raised when a simulation manifest cannot be loaded.

    Check that the file exists, is valid YAML, and has the expected structure.
    """

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        message = f"Failed to load manifest from: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
