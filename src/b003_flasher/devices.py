"""
Host-side discovery of B003 bootloaders.

Enumerates HID devices through hidapi. This only looks at what the host can
see; opening and talking to the bootloader is the driver's job.
"""

import logging
from dataclasses import dataclass
from typing import List

from b003_flasher.core.driver import PRODUCT_ID, VENDOR_ID
from b003_flasher.core.messages import PLUGDEV_COMMAND, UDEV_RULE, UDEV_RULE_PATH

try:
    import hid  # type: ignore
except Exception:
    hid = None

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HidDeviceInfo:
    """One enumerated HID interface."""
    path: str
    vendor_id: int
    product_id: int
    manufacturer: str = ""
    product: str = ""
    serial_number: str = ""
    interface_number: int = -1

    @property
    def label(self) -> str:
        name = " ".join(part for part in (self.manufacturer, self.product) if part) or "HID device"
        return f"{name} ({self.vendor_id:04x}:{self.product_id:04x})"


def hid_backend_available() -> bool:
    """Whether hidapi could be imported on this host."""
    return hid is not None


def _decode_path(path) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return str(path or "")


def list_bootloader_devices(vendor_id: int = VENDOR_ID, product_id: int = PRODUCT_ID) -> List[HidDeviceInfo]:
    """
    List attached HID interfaces matching the bootloader ids.

    Returns an empty list when hidapi is missing.
    """
    if hid is None:
        logger.warning("hidapi is not available; cannot enumerate HID devices")
        return []

    devices = []
    for entry in hid.enumerate(vendor_id, product_id):
        devices.append(HidDeviceInfo(
            path=_decode_path(entry.get("path")),
            vendor_id=int(entry.get("vendor_id", vendor_id)),
            product_id=int(entry.get("product_id", product_id)),
            manufacturer=entry.get("manufacturer_string") or "",
            product=entry.get("product_string") or "",
            serial_number=entry.get("serial_number") or "",
            interface_number=int(entry.get("interface_number", -1)),
        ))
    logger.debug("Found %d HID interface(s) for %04x:%04x", len(devices), vendor_id, product_id)
    return devices


def udev_instructions() -> List[str]:
    """Steps that give a Linux user read & write access to the bootloader."""
    return [
        f"Create {UDEV_RULE_PATH} with the following contents:",
        f"  {UDEV_RULE}",
        f"Add your user to the plugdev group: {PLUGDEV_COMMAND}",
        "Reload the rules (sudo udevadm control --reload-rules && sudo udevadm trigger) and replug the device.",
    ]
