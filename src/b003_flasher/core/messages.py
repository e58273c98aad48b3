"""
Standardized operator messages for B003 Flasher.

Provides structured message items with stable codes that both CLI and
Streamlit can display consistently.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List

from .driver import VENDOR_ID
from .errors import FlashErrorKind


class MessageLevel(Enum):
    """Severity level for messages."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class MessageCode(Enum):
    """Stable codes for known conditions."""
    # Session failures
    E_OPEN_FAILED = "E_OPEN_FAILED"
    E_INTERFACE_SETUP_FAILED = "E_INTERFACE_SETUP_FAILED"
    E_IDENTIFY_FAILED = "E_IDENTIFY_FAILED"
    E_NO_IMAGE_SUPPLIED = "E_NO_IMAGE_SUPPLIED"
    E_FETCH_FAILED = "E_FETCH_FAILED"
    E_SOURCE_UNAVAILABLE = "E_SOURCE_UNAVAILABLE"
    E_WRITE_FAILED = "E_WRITE_FAILED"
    E_BOOT_FAILED = "E_BOOT_FAILED"

    # Host / source warnings
    W_UNTRUSTED_SOURCE = "W_UNTRUSTED_SOURCE"
    W_HID_UNAVAILABLE = "W_HID_UNAVAILABLE"
    W_DEVICE_NOT_FOUND = "W_DEVICE_NOT_FOUND"
    W_SIMULATED = "W_SIMULATED"
    W_EMPTY_IMAGE = "W_EMPTY_IMAGE"

    # Generic
    W_UNKNOWN = "W_UNKNOWN"


UDEV_RULE_PATH = "/etc/udev/rules.d/99-ch32v003.rules"
UDEV_RULE = (
    f'KERNEL=="hidraw*", ATTRS{{idVendor}}=="{VENDOR_ID:04x}", '
    'MODE="0664", GROUP="plugdev"'
)
PLUGDEV_COMMAND = "usermod -aG plugdev $your_user"
HID_DOCS_URL = "https://developer.chrome.com/docs/capabilities/hid"

OPEN_FAILED_REMEDIATION = (
    "The HID backend works but could not open the device. On Linux you "
    "probably need a udev rule for read & write access (by default HID "
    f"devices are read-only). Create {UDEV_RULE_PATH} containing:\n"
    f"  {UDEV_RULE}\n"
    f"and add your user to the plugdev group: {PLUGDEV_COMMAND}\n"
    f"More information: {HID_DOCS_URL}"
)

# Default remediation hints for each code
REMEDIATIONS: Dict[MessageCode, str] = {
    MessageCode.E_OPEN_FAILED: OPEN_FAILED_REMEDIATION,
    MessageCode.E_INTERFACE_SETUP_FAILED:
        "Replug the device in bootloader mode and start a new flash.",
    MessageCode.E_IDENTIFY_FAILED:
        "The bootloader did not report its chip info. Check that the device is a B003 bootloader.",
    MessageCode.E_NO_IMAGE_SUPPLIED:
        "Select a .bin file before flashing.",
    MessageCode.E_FETCH_FAILED:
        "The external image server refused the request. Check the URL.",
    MessageCode.E_SOURCE_UNAVAILABLE:
        "The image could not be read. Check the file or your network connection.",
    MessageCode.E_WRITE_FAILED:
        "The bootloader rejected the image. Note the code and check the image size and format.",
    MessageCode.E_BOOT_FAILED:
        "Please reset the device manually.",
    MessageCode.W_UNTRUSTED_SOURCE:
        "Only flash if you trust the source!",
    MessageCode.W_HID_UNAVAILABLE:
        "Install the hidapi package (pip install hidapi) and its system library.",
    MessageCode.W_DEVICE_NOT_FOUND:
        "Connect the device in bootloader mode and check the USB cable.",
    MessageCode.W_SIMULATED:
        "No device was touched. Pick a real driver to flash hardware.",
    MessageCode.W_EMPTY_IMAGE:
        "The image is empty. Check that the right file was selected.",
    MessageCode.W_UNKNOWN:
        "Check logs for more details.",
}

KIND_CODES: Dict[FlashErrorKind, MessageCode] = {
    FlashErrorKind.OPEN_FAILED: MessageCode.E_OPEN_FAILED,
    FlashErrorKind.INTERFACE_SETUP_FAILED: MessageCode.E_INTERFACE_SETUP_FAILED,
    FlashErrorKind.IDENTIFY_FAILED: MessageCode.E_IDENTIFY_FAILED,
    FlashErrorKind.NO_IMAGE_SUPPLIED: MessageCode.E_NO_IMAGE_SUPPLIED,
    FlashErrorKind.FETCH_FAILED: MessageCode.E_FETCH_FAILED,
    FlashErrorKind.SOURCE_UNAVAILABLE: MessageCode.E_SOURCE_UNAVAILABLE,
    FlashErrorKind.WRITE_FAILED: MessageCode.E_WRITE_FAILED,
    FlashErrorKind.BOOT_FAILED: MessageCode.E_BOOT_FAILED,
}


@dataclass
class MessageItem:
    """
    Structured message with stable code.

    Attributes:
        level: Severity (INFO, WARN, ERROR)
        code: Stable code for programmatic handling
        title: Short, user-facing title
        detail: Longer explanation of the issue
        remediation: Suggested action to resolve the issue
    """
    level: MessageLevel
    code: MessageCode
    title: str
    detail: str = ""
    remediation: str = ""

    def __post_init__(self):
        """Set default remediation if not provided."""
        if not self.remediation and self.code in REMEDIATIONS:
            self.remediation = REMEDIATIONS[self.code]

    @classmethod
    def info(cls, code: MessageCode, title: str, detail: str = "", remediation: str = "") -> "MessageItem":
        """Create an INFO-level message."""
        return cls(MessageLevel.INFO, code, title, detail, remediation)

    @classmethod
    def warn(cls, code: MessageCode, title: str, detail: str = "", remediation: str = "") -> "MessageItem":
        """Create a WARN-level message."""
        return cls(MessageLevel.WARN, code, title, detail, remediation)

    @classmethod
    def error(cls, code: MessageCode, title: str, detail: str = "", remediation: str = "") -> "MessageItem":
        """Create an ERROR-level message."""
        return cls(MessageLevel.ERROR, code, title, detail, remediation)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON/display."""
        return {
            "level": self.level.value,
            "code": self.code.value,
            "title": self.title,
            "detail": self.detail,
            "remediation": self.remediation,
        }


def message_for_failure(kind: FlashErrorKind, status: str, code=None) -> MessageItem:
    """Build the ERROR message for a terminal failure, keeping the driver code."""
    detail = f"{kind.value} (code {code})" if code is not None else kind.value
    return MessageItem.error(KIND_CODES[kind], status, detail)


def result_to_messages(result: "OperationResult") -> List[MessageItem]:
    """
    Convert an OperationResult's warnings and failure into MessageItems.

    Args:
        result: OperationResult from core operations

    Returns:
        List of MessageItem objects, warnings first
    """
    items = []

    for msg in result.warnings:
        lower = msg.lower()
        if "untrusted" in lower or "external" in lower:
            code = MessageCode.W_UNTRUSTED_SOURCE
        elif "simulat" in lower:
            code = MessageCode.W_SIMULATED
        elif "empty" in lower:
            code = MessageCode.W_EMPTY_IMAGE
        else:
            code = MessageCode.W_UNKNOWN
        items.append(MessageItem.warn(code, msg))

    if result.error_kind is not None:
        items.append(message_for_failure(result.error_kind, result.status, result.error_code))
    else:
        for err in result.errors:
            items.append(MessageItem.error(MessageCode.W_UNKNOWN, err))

    return items


# Pre-built common messages for convenience
COMMON_MESSAGES = {
    "hid_unavailable": MessageItem.error(
        MessageCode.W_HID_UNAVAILABLE,
        "HID backend not available",
        "The hidapi library could not be loaded on this host.",
    ),
    "device_not_found": MessageItem.warn(
        MessageCode.W_DEVICE_NOT_FOUND,
        "No B003 bootloader detected",
        "No HID device with the bootloader vendor/product id is attached.",
    ),
    "simulation_mode": MessageItem.info(
        MessageCode.W_SIMULATED,
        "Simulation mode - no device touched",
        "The simulated driver accepted every step.",
    ),
}
