"""
Device driver boundary.

The bootloader protocol and the USB/HID transport live outside this package.
A driver is anything exposing the five operations of ``DeviceDriver``; the
orchestrator only ever talks to it through them.

This module provides:
- The ``DeviceDriver`` protocol and the fixed device constants
- ``SimulatedDriver`` for dry runs and tests
- ``load_driver`` to build a driver from an import path
"""

import importlib
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple, Union, runtime_checkable

logger = logging.getLogger(__name__)

VENDOR_ID = 0x1209
PRODUCT_ID = 0xB003
FLASH_ORIGIN = 0x08000000

STATUS_OK = 0

SIMULATED_DRIVER = "simulated"


class DriverLoadError(Exception):
    """Raised when a driver spec cannot be turned into a driver."""


@runtime_checkable
class DeviceDriver(Protocol):
    """Operations the orchestrator consumes. Status codes: 0 means success."""

    def open(self, vendor_id: int, product_id: int) -> Any:
        ...

    def configure_interface(self, handle: Any) -> int:
        ...

    def query_identity(self, handle: Any) -> Mapping[str, Union[int, str]]:
        ...

    def write_image(self, handle: Any, image: bytes, address: int) -> int:
        ...

    def boot(self, handle: Any) -> int:
        ...


def handle_is_open(handle: Any) -> bool:
    """
    Evaluate a handle's "opened" predicate.

    Uses ``handle.opened`` (attribute or method) when present, otherwise the
    handle's truthiness. ``None`` is never open.
    """
    if handle is None:
        return False
    opened = getattr(handle, "opened", None)
    if opened is None:
        return bool(handle)
    if callable(opened):
        return bool(opened())
    return bool(opened)


@dataclass
class SimulatedHandle:
    """Handle returned by ``SimulatedDriver``."""
    vendor_id: int
    product_id: int
    opened: bool = True
    close_calls: int = 0

    def close(self) -> None:
        self.close_calls += 1
        self.opened = False


DEFAULT_SIMULATED_IDENTITY: Dict[str, Union[int, str]] = {
    "chip_id": 0x00300500,
    "flash_size": 16 * 1024,
    "bootloader_version": 0x00000102,
}


@dataclass
class SimulatedDriver:
    """
    In-memory driver that never touches hardware.

    Every call is recorded in ``calls`` as ``(operation, args)``. Results can
    be overridden per step to exercise failure paths.

    Example:
        driver = SimulatedDriver(write_status=5)
        driver.calls  # [("open", (0x1209, 0xB003)), ...]
    """
    configure_status: int = STATUS_OK
    write_status: int = STATUS_OK
    boot_status: int = STATUS_OK
    identity: Optional[Mapping[str, Union[int, str]]] = field(
        default_factory=lambda: dict(DEFAULT_SIMULATED_IDENTITY)
    )
    open_error: Optional[Exception] = None
    identity_error: Optional[Exception] = None
    open_returns_closed: bool = False
    calls: List[Tuple[str, tuple]] = field(default_factory=list)
    written: Optional[bytes] = None
    handles: List[SimulatedHandle] = field(default_factory=list)

    @property
    def operations(self) -> List[str]:
        """Names of the recorded calls, in order."""
        return [name for name, _ in self.calls]

    def open(self, vendor_id: int, product_id: int) -> SimulatedHandle:
        self.calls.append(("open", (vendor_id, product_id)))
        if self.open_error is not None:
            raise self.open_error
        handle = SimulatedHandle(vendor_id, product_id, opened=not self.open_returns_closed)
        self.handles.append(handle)
        logger.debug("Simulated open %04x:%04x", vendor_id, product_id)
        return handle

    def configure_interface(self, handle: SimulatedHandle) -> int:
        self.calls.append(("configure_interface", (handle,)))
        return self.configure_status

    def query_identity(self, handle: SimulatedHandle) -> Optional[Mapping[str, Union[int, str]]]:
        self.calls.append(("query_identity", (handle,)))
        if self.identity_error is not None:
            raise self.identity_error
        return self.identity

    def write_image(self, handle: SimulatedHandle, image: bytes, address: int) -> int:
        self.calls.append(("write_image", (handle, len(image), address)))
        if self.write_status == STATUS_OK:
            self.written = bytes(image)
        logger.debug("Simulated write of %d bytes at 0x%08X", len(image), address)
        return self.write_status

    def boot(self, handle: SimulatedHandle) -> int:
        self.calls.append(("boot", (handle,)))
        return self.boot_status


def load_driver(spec: Optional[str] = None, **kwargs: Any) -> DeviceDriver:
    """
    Build a driver from a spec string.

    Accepts:
        - None, "" or "simulated": a ``SimulatedDriver``
        - "package.module:Name": ``Name`` is imported and called with
          ``kwargs`` (a class or a factory function)

    Raises:
        DriverLoadError: If the spec is malformed, the import fails, or the
            object does not provide the driver operations.
    """
    spec = (spec or "").strip()
    if not spec or spec.lower() == SIMULATED_DRIVER:
        return SimulatedDriver(**kwargs)

    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise DriverLoadError(
            f"Invalid driver '{spec}'. Use 'simulated' or 'package.module:Factory'."
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise DriverLoadError(f"Cannot import driver module '{module_name}': {e}") from e

    try:
        factory = getattr(module, attr)
    except AttributeError as e:
        raise DriverLoadError(f"Module '{module_name}' has no attribute '{attr}'") from e

    try:
        driver = factory(**kwargs)
    except Exception as e:
        raise DriverLoadError(f"Driver factory '{spec}' failed: {e}") from e

    if not isinstance(driver, DeviceDriver):
        raise DriverLoadError(
            f"'{spec}' does not provide open/configure_interface/query_identity/write_image/boot"
        )

    logger.debug("Loaded driver %s", spec)
    return driver
