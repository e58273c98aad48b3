"""
Core module for B003 Flasher.

This module provides the single source of truth for:
- Image sources and their resolution (image_source.py)
- The device driver boundary (driver.py)
- The flash session state machine (session.py)
- Trust gating for external images (safety.py)
- Result objects (results.py)
- Unified flash workflow (actions.py)
- Standardized messages (messages.py)

Both CLI and Streamlit UI should call into this module rather than
implementing their own logic.
"""

from .errors import FlashError, FlashErrorKind, SessionBusyError, SessionStateError
from .image_source import (
    ImageSource,
    LocalImageSource,
    RemoteImageSource,
    ImageSourceError,
    SourceUnavailableError,
    FetchFailedError,
    UntrustedSourceError,
    is_trusted_image_url,
    image_source_from_url,
    resolve_image,
)
from .driver import (
    DeviceDriver,
    DriverLoadError,
    SimulatedDriver,
    load_driver,
    VENDOR_ID,
    PRODUCT_ID,
    FLASH_ORIGIN,
)
from .parsing import ChipIdentity, parse_int, format_identity_value
from .session import FlashSession, FlashState
from .safety import SafetyContext, require_source_trust, TrustNotAcknowledgedError
from .results import OperationResult
from .messages import (
    MessageLevel,
    MessageCode,
    MessageItem,
    result_to_messages,
    COMMON_MESSAGES,
)
from .actions import flash, Flasher

__all__ = [
    # Errors
    "FlashError",
    "FlashErrorKind",
    "SessionBusyError",
    "SessionStateError",
    # Image sources
    "ImageSource",
    "LocalImageSource",
    "RemoteImageSource",
    "ImageSourceError",
    "SourceUnavailableError",
    "FetchFailedError",
    "UntrustedSourceError",
    "is_trusted_image_url",
    "image_source_from_url",
    "resolve_image",
    # Driver
    "DeviceDriver",
    "DriverLoadError",
    "SimulatedDriver",
    "load_driver",
    "VENDOR_ID",
    "PRODUCT_ID",
    "FLASH_ORIGIN",
    # Parsing
    "ChipIdentity",
    "parse_int",
    "format_identity_value",
    # Session
    "FlashSession",
    "FlashState",
    # Safety
    "SafetyContext",
    "require_source_trust",
    "TrustNotAcknowledgedError",
    # Results
    "OperationResult",
    # Messages
    "MessageLevel",
    "MessageCode",
    "MessageItem",
    "result_to_messages",
    "COMMON_MESSAGES",
    # Actions
    "flash",
    "Flasher",
]
