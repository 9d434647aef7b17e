"""
Error taxonomy for drawer operations.

Exception Hierarchy:
    DrawerError (base)
    ├── OperationInProgress      - another drawer operation holds the flag
    ├── DaemonUnavailable        - tray service unreachable (cached or live)
    ├── PrinterResolutionFailure - no printer could be determined
    ├── DrawerCommandFailure     - tray service rejected the print call
    ├── CertificateFailure       - certificate refused by the tray service
    └── SigningFailure           - signature refused by the tray service

None of these is fatal to the host workflow. They are caught at the
controller boundary, reported, and the page always resumes.
"""

from typing import Any


class DrawerError(Exception):
    """Base exception for all drawer errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class OperationInProgress(DrawerError):
    """A drawer operation is already running."""

    def __init__(self, message: str = 'Operation already in progress'):
        super().__init__(message)


class DaemonUnavailable(DrawerError):
    """
    The tray service could not be reached.

    Raised both for the cached "unavailable" state (no connection attempted)
    and for live connect failures, timeouts and dropped connections.
    """


class PrinterResolutionFailure(DrawerError):
    """Neither a register mapping nor a system default printer was found."""


class DrawerCommandFailure(DrawerError):
    """The tray service answered the print call with an error."""


class CertificateFailure(DrawerError):
    """The tray service refused our certificate."""


class SigningFailure(DrawerError):
    """The tray service refused a message signature."""


# Error classes, used for notification wording and for availability marking
CONNECTION = 'connection'
PRINTER = 'printer'
SECURITY = 'security'
UNKNOWN = 'unknown'


def classify(error: BaseException) -> str:
    """Map an exception onto one of the error classes."""
    if isinstance(error, DaemonUnavailable):
        return CONNECTION
    if isinstance(error, (PrinterResolutionFailure, DrawerCommandFailure)):
        return PRINTER
    if isinstance(error, (CertificateFailure, SigningFailure)):
        return SECURITY
    return UNKNOWN


def is_connection_error(error: BaseException) -> bool:
    return classify(error) == CONNECTION
