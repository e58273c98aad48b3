"""
Device programming session.

One ``FlashSession`` drives a single device through the fixed sequence

    open -> configure interface -> identify -> write image -> boot

with no retries and no backward transitions. Any step failure is terminal;
cleanup always runs exactly once when the session reaches a terminal state.
A session is single-use: a new attempt needs a new session.
"""

import hashlib
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .driver import FLASH_ORIGIN, PRODUCT_ID, STATUS_OK, VENDOR_ID, DeviceDriver, handle_is_open
from .errors import FlashError, FlashErrorKind, SessionStateError
from .image_source import (
    FetchFailedError,
    ImageSource,
    SourceUnavailableError,
    resolve_image,
)
from .parsing import ChipIdentity

logger = logging.getLogger(__name__)

STATUS_NOT_CONNECTED = "Not connected"
STATUS_OPENING = "Opening device"
STATUS_OPENED = "Device opened"
STATUS_INTERFACE_READY = "Interface setup"
STATUS_IDENTIFIED = "Chip Info acquired"
STATUS_WRITING = "Writing Image..."
STATUS_DONE = "Done!"

STATUS_OPEN_FAILED = "Failed opening device"
STATUS_INTERFACE_FAILED = "Failed setting up interface"
STATUS_IDENTIFY_FAILED = "Failed acquiring chip info"
STATUS_NO_IMAGE = "No file opened!"
STATUS_FETCH_FAILED = "Failed to fetch external image!"
STATUS_SOURCE_UNAVAILABLE = "Image source unavailable!"


class FlashState(Enum):
    """Session states, in the only order they can be visited."""
    IDLE = "idle"
    OPENING = "opening"
    OPENED = "opened"
    INTERFACE_READY = "interface_ready"
    IDENTIFIED = "identified"
    WRITING = "writing"
    BOOTING = "booting"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (FlashState.DONE, FlashState.FAILED)


StatusCallback = Callable[[str], None]

# Failure recorded when an unexpected exception escapes the step running in a state
_ABORT_FAILURES: Dict[FlashState, Tuple[FlashErrorKind, str]] = {
    FlashState.IDLE: (FlashErrorKind.OPEN_FAILED, STATUS_OPEN_FAILED),
    FlashState.OPENING: (FlashErrorKind.OPEN_FAILED, STATUS_OPEN_FAILED),
    FlashState.OPENED: (FlashErrorKind.INTERFACE_SETUP_FAILED, STATUS_INTERFACE_FAILED),
    FlashState.INTERFACE_READY: (FlashErrorKind.IDENTIFY_FAILED, STATUS_IDENTIFY_FAILED),
    FlashState.IDENTIFIED: (FlashErrorKind.WRITE_FAILED, "Failed writing image"),
    FlashState.WRITING: (FlashErrorKind.WRITE_FAILED, "Failed writing image"),
    FlashState.BOOTING: (FlashErrorKind.BOOT_FAILED, "Failed booting... please reset the device"),
}


class FlashSession:
    """
    Single flash attempt against one device.

    Example:
        session = FlashSession(driver, LocalImageSource("app.bin"))
        state = session.run()
        if state is FlashState.FAILED:
            print(session.error)

    Attributes:
        status: Last status line emitted
        status_history: Every status line emitted, in order
        state: Current ``FlashState``
        handle: Device handle, only between open and cleanup
        image: Resolved image bytes, only between resolution and cleanup
        identity: Chip identity, only between identify and cleanup
        identity_fields: Rendered identity pairs, kept after cleanup for display
        image_sha256: Digest of the image handed to the driver
        error: The terminal ``FlashError`` when the session failed
        reached: Every state the session entered, in order
    """

    def __init__(
        self,
        driver: DeviceDriver,
        source: ImageSource,
        *,
        on_status: Optional[StatusCallback] = None,
        fetch_timeout: Optional[float] = None,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        flash_origin: int = FLASH_ORIGIN,
    ) -> None:
        self.driver = driver
        self.source = source
        self.on_status = on_status
        self.fetch_timeout = fetch_timeout
        self.vendor_id = vendor_id
        self.product_id = product_id
        self.flash_origin = flash_origin

        self.state = FlashState.IDLE
        self.status = STATUS_NOT_CONNECTED
        self.status_history: List[str] = []
        self.reached: List[FlashState] = [FlashState.IDLE]
        self.handle: Any = None
        self.image: Optional[bytes] = None
        self.identity: Optional[ChipIdentity] = None
        self.error: Optional[FlashError] = None
        self.image_len = 0
        self.image_sha256 = ""
        self.identity_fields: List[Tuple[str, str]] = []
        self.cleanup_count = 0
        self._cleaned = False

        self._steps: Dict[FlashState, Callable[[], FlashState]] = {
            FlashState.IDLE: self._open,
            FlashState.OPENED: self._configure,
            FlashState.INTERFACE_READY: self._identify,
            FlashState.IDENTIFIED: self._write,
            FlashState.BOOTING: self._boot,
        }

    # ---------- status ----------
    def _emit(self, message: str) -> None:
        self.status = message
        self.status_history.append(message)
        logger.info(message)
        if self.on_status:
            self.on_status(message)

    def _enter(self, state: FlashState) -> None:
        self.state = state
        self.reached.append(state)

    # ---------- steps ----------
    def _open(self) -> FlashState:
        self._enter(FlashState.OPENING)
        self._emit(STATUS_OPENING)
        try:
            # Kept before the check so cleanup can release whatever was returned
            self.handle = self.driver.open(self.vendor_id, self.product_id)
            opened = handle_is_open(self.handle)
        except Exception:
            logger.exception("Opening %04x:%04x failed", self.vendor_id, self.product_id)
            raise FlashError(FlashErrorKind.OPEN_FAILED, STATUS_OPEN_FAILED)

        if not opened:
            raise FlashError(FlashErrorKind.OPEN_FAILED, STATUS_OPEN_FAILED)

        self._emit(STATUS_OPENED)
        return FlashState.OPENED

    def _configure(self) -> FlashState:
        try:
            result = self.driver.configure_interface(self.handle)
        except Exception:
            logger.exception("Interface setup raised")
            raise FlashError(FlashErrorKind.INTERFACE_SETUP_FAILED, STATUS_INTERFACE_FAILED)

        logger.debug("Setup interface returned %r", result)
        if result != STATUS_OK:
            raise FlashError(
                FlashErrorKind.INTERFACE_SETUP_FAILED,
                STATUS_INTERFACE_FAILED,
                code=_as_code(result),
            )

        self._emit(STATUS_INTERFACE_READY)
        return FlashState.INTERFACE_READY

    def _identify(self) -> FlashState:
        try:
            info = self.driver.query_identity(self.handle)
        except Exception:
            logger.exception("Chip identity query raised")
            raise FlashError(FlashErrorKind.IDENTIFY_FAILED, STATUS_IDENTIFY_FAILED)

        if not isinstance(info, Mapping):
            logger.error("Chip identity query returned %r", info)
            raise FlashError(FlashErrorKind.IDENTIFY_FAILED, STATUS_IDENTIFY_FAILED)

        self.identity = ChipIdentity(info)
        self.identity_fields = self.identity.formatted()
        logger.info("Chip Info:")
        for key, rendered in self.identity_fields:
            logger.info("%s: %s", key, rendered)

        self._emit(STATUS_IDENTIFIED)
        return FlashState.IDENTIFIED

    def _write(self) -> FlashState:
        self._enter(FlashState.WRITING)
        self._emit(STATUS_WRITING)

        if self.source.is_empty:
            raise FlashError(FlashErrorKind.NO_IMAGE_SUPPLIED, STATUS_NO_IMAGE)

        try:
            self.image = resolve_image(self.source, timeout=self.fetch_timeout)
        except FetchFailedError as e:
            logger.error("%s", e)
            raise FlashError(FlashErrorKind.FETCH_FAILED, STATUS_FETCH_FAILED, code=e.status_code)
        except SourceUnavailableError as e:
            logger.error("%s", e)
            raise FlashError(FlashErrorKind.SOURCE_UNAVAILABLE, STATUS_SOURCE_UNAVAILABLE)

        self.image_len = len(self.image)
        self.image_sha256 = hashlib.sha256(self.image).hexdigest()
        logger.debug("Writing %d bytes at 0x%08X", self.image_len, self.flash_origin)

        try:
            result = self.driver.write_image(self.handle, self.image, self.flash_origin)
        except Exception:
            logger.exception("Image write raised")
            raise FlashError(FlashErrorKind.WRITE_FAILED, "Failed writing image")

        if result != STATUS_OK:
            code = _as_code(result)
            raise FlashError(FlashErrorKind.WRITE_FAILED, f"Failed writing image ({result})", code=code)

        return FlashState.BOOTING

    def _boot(self) -> FlashState:
        try:
            result = self.driver.boot(self.handle)
        except Exception:
            logger.exception("Boot command raised")
            raise FlashError(FlashErrorKind.BOOT_FAILED, "Failed booting... please reset the device")

        if result != STATUS_OK:
            raise FlashError(
                FlashErrorKind.BOOT_FAILED,
                f"Failed booting ({result})... please reset the device",
                code=_as_code(result),
            )

        self._emit(STATUS_DONE)
        return FlashState.DONE

    # ---------- lifecycle ----------
    def run(self) -> FlashState:
        """
        Drive the session to a terminal state.

        Returns:
            ``FlashState.DONE`` or ``FlashState.FAILED``

        Raises:
            SessionStateError: If this session was already run.
        """
        if self.state is not FlashState.IDLE or self.status_history:
            raise SessionStateError("A flash session can only be run once; start a new session")

        try:
            while not self.state.is_terminal:
                step = self._steps[self.state]
                try:
                    next_state = step()
                except FlashError as e:
                    self._fail(e)
                    break
                self._enter(next_state)
        except Exception:
            logger.exception("Flash session aborted at %s", self.state.value)
            self._abort()
        finally:
            self.cleanup()
        return self.state

    def _fail(self, error: FlashError) -> None:
        self.error = error
        logger.error("Flash failed at %s: %s", self.state.value, error)
        self._emit(error.status)
        self._enter(FlashState.FAILED)

    def _abort(self) -> None:
        """Terminal failure for an exception no step mapped (e.g. a raising status callback)."""
        if self.error is None:
            kind, status = _ABORT_FAILURES.get(self.state, _ABORT_FAILURES[FlashState.OPENING])
            self.error = FlashError(kind, status)
        # The callback may be what raised; record the status without calling it again
        if self.status != self.error.status:
            self.status = self.error.status
            self.status_history.append(self.error.status)
        self._enter(FlashState.FAILED)

    def cleanup(self) -> None:
        """
        Release the device handle and drop image and identity.

        Idempotent: only the first call does any work, later calls are no-ops.
        """
        if self._cleaned:
            return
        self._cleaned = True
        self.cleanup_count += 1

        handle, self.handle = self.handle, None
        close = getattr(handle, "close", None)
        if callable(close):
            try:
                close()
            except Exception:
                logger.warning("Closing device handle failed", exc_info=True)

        self.image = None
        self.identity = None

    def acknowledge(self) -> None:
        """Operator dismissed the outcome; return to the idle status."""
        self.cleanup()
        self.status = STATUS_NOT_CONNECTED


def _as_code(result: Any) -> Optional[int]:
    try:
        return int(result)
    except (TypeError, ValueError):
        return None
