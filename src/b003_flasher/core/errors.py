"""
Failure kinds and exceptions for a flash session.

Every kind is terminal for the session that raised it. The numeric driver
code is kept when the driver returned one so operators can report it.
"""

from enum import Enum
from typing import Optional


class FlashErrorKind(Enum):
    """Terminal failure kinds of a flash session."""
    OPEN_FAILED = "OpenFailed"
    INTERFACE_SETUP_FAILED = "InterfaceSetupFailed"
    IDENTIFY_FAILED = "IdentifyFailed"
    NO_IMAGE_SUPPLIED = "NoImageSupplied"
    FETCH_FAILED = "FetchFailed"
    WRITE_FAILED = "WriteFailed"
    BOOT_FAILED = "BootFailed"
    SOURCE_UNAVAILABLE = "SourceUnavailable"


class FlashError(Exception):
    """
    Raised by a session step when the device or image source fails.

    Attributes:
        kind: Which step failed
        code: Driver status code or HTTP status, when one exists
        status: Operator-facing status line for this failure
    """
    def __init__(self, kind: FlashErrorKind, status: str, code: Optional[int] = None):
        self.kind = kind
        self.code = code
        self.status = status
        super().__init__(status)

    def __str__(self) -> str:
        if self.code is None:
            return f"{self.kind.value}: {self.status}"
        return f"{self.kind.value}({self.code}): {self.status}"


class SessionStateError(Exception):
    """A session was used outside of its single-use lifecycle."""


class SessionBusyError(SessionStateError):
    """A new session was requested while another one is still active."""
