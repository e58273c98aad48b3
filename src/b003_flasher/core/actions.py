"""
Core workflow actions for B003 Flasher.

This module exposes the functions both CLI and Streamlit call.
Every flash runs in a fresh ``FlashSession`` and comes back as an
``OperationResult``; driver exceptions never reach the caller.
"""

import logging
from contextlib import contextmanager
from typing import Callable, List, Optional

from .driver import DeviceDriver, FLASH_ORIGIN, PRODUCT_ID, VENDOR_ID, SimulatedDriver
from .errors import SessionBusyError
from .image_source import ImageSource, describe_source
from .results import OperationResult
from .safety import SafetyContext, require_source_trust
from .session import STATUS_NOT_CONNECTED, FlashSession, FlashState

logger = logging.getLogger(__name__)


class _ListLogHandler(logging.Handler):
    """Capture log records into a list of formatted strings."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.records = []
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


@contextmanager
def _capture_logs(logger_name: str = "b003_flasher"):
    """Capture logs for core operations into a list."""
    target_logger = logging.getLogger(logger_name)
    handler = _ListLogHandler()
    previous_level = target_logger.level
    if previous_level in (logging.NOTSET, logging.WARNING, logging.ERROR, logging.CRITICAL):
        target_logger.setLevel(logging.INFO)
    target_logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        target_logger.removeHandler(handler)
        target_logger.setLevel(previous_level)


def session_result(session: FlashSession, logs: Optional[List[str]] = None) -> OperationResult:
    """Build the OperationResult for a session that reached a terminal state."""
    common = dict(
        state=session.state.value,
        status=session.status,
        status_history=list(session.status_history),
        identity=dict(session.identity_fields),
    )

    if session.state is FlashState.DONE:
        result = OperationResult.success(
            operation="flash",
            source=describe_source(session.source),
            bytes_len=session.image_len,
            **common,
        )
    else:
        error = session.error
        result = OperationResult.failure(
            operation="flash",
            error=str(error),
            error_kind=error.kind,
            error_code=error.code,
            source=describe_source(session.source),
            bytes_len=session.image_len,
            **common,
        )

    if session.image_sha256:
        result.hashes["sha256"] = session.image_sha256
    result.metadata["reached"] = [state.value for state in session.reached]
    result.metadata["flash_origin"] = f"0x{session.flash_origin:08X}"
    result.metadata["device"] = f"{session.vendor_id:04x}:{session.product_id:04x}"
    if isinstance(session.driver, SimulatedDriver):
        result.metadata["simulated"] = True
        result.add_warning("Simulation mode - no device touched")
    if session.state is FlashState.DONE and session.image_len == 0:
        result.add_warning("Image was empty - zero bytes written")
    if logs is not None:
        result.logs = logs
    return result


def flash(
    source: ImageSource,
    driver: DeviceDriver,
    *,
    safety_ctx: Optional[SafetyContext] = None,
    on_status: Optional[Callable[[str], None]] = None,
    fetch_timeout: Optional[float] = None,
    vendor_id: int = VENDOR_ID,
    product_id: int = PRODUCT_ID,
    flash_origin: int = FLASH_ORIGIN,
) -> OperationResult:
    """
    Flash one image to one device: open → configure → identify → write → boot.

    This is the main entry point for both CLI and Streamlit flash operations.

    Args:
        source: Local or remote image source
        driver: Device driver providing the five bootloader operations
        safety_ctx: Trust gate for remote sources (remote sources without
            a context are refused)
        on_status: Optional callback receiving each status line
        fetch_timeout: Optional HTTP timeout for remote sources

    Returns:
        OperationResult with the session outcome

    Raises:
        TrustNotAcknowledgedError: Remote source was not acknowledged.
            Raised before the device is touched.
    """
    ctx = safety_ctx or SafetyContext(interactive=False)
    require_source_trust(ctx, source)

    with _capture_logs() as logs:
        session = FlashSession(
            driver,
            source,
            on_status=on_status,
            fetch_timeout=fetch_timeout,
            vendor_id=vendor_id,
            product_id=product_id,
            flash_origin=flash_origin,
        )
        session.run()
        result = session_result(session, logs)

    for warning in ctx.warnings:
        result.add_warning(warning)
    return result


class Flasher:
    """
    Keeps the operator-visible status and the single active session.

    Mirrors the page the operator looks at: the status line starts at
    "Not connected", follows the active session and keeps the terminal
    status. An open failure puts up a remediation dialog that has to be
    acknowledged before the next session; no second session starts while
    one is running.

    Example:
        flasher = Flasher(driver)
        result = flasher.flash(LocalImageSource("app.bin"))
        if not result.ok:
            flasher.acknowledge()
    """

    def __init__(
        self,
        driver: DeviceDriver,
        *,
        fetch_timeout: Optional[float] = None,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        flash_origin: int = FLASH_ORIGIN,
        on_status: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.driver = driver
        self.fetch_timeout = fetch_timeout
        self.vendor_id = vendor_id
        self.product_id = product_id
        self.flash_origin = flash_origin
        self.on_status = on_status
        self.status = STATUS_NOT_CONNECTED
        self.last_result: Optional[OperationResult] = None
        self._active = False

    @property
    def busy(self) -> bool:
        return self._active

    @property
    def awaiting_acknowledgement(self) -> bool:
        """The open-failed dialog is on screen and must be dismissed first."""
        return self.last_result is not None and self.last_result.requires_open_remediation

    def _set_status(self, message: str) -> None:
        self.status = message
        if self.on_status:
            self.on_status(message)

    def flash(self, source: ImageSource, safety_ctx: Optional[SafetyContext] = None) -> OperationResult:
        """
        Run one fresh session.

        Raises:
            SessionBusyError: A session is running or the open-failed dialog is pending.
            TrustNotAcknowledgedError: Remote source was not acknowledged.
        """
        if self._active:
            raise SessionBusyError("A flash session is already running")
        if self.awaiting_acknowledgement:
            raise SessionBusyError("Acknowledge the previous failure before flashing again")

        self._active = True
        try:
            result = flash(
                source,
                self.driver,
                safety_ctx=safety_ctx,
                on_status=self._set_status,
                fetch_timeout=self.fetch_timeout,
                vendor_id=self.vendor_id,
                product_id=self.product_id,
                flash_origin=self.flash_origin,
            )
        finally:
            self._active = False

        self.last_result = result
        return result

    def acknowledge(self) -> None:
        """Operator closed the dialog; back to "Not connected"."""
        self.last_result = None
        self._set_status(STATUS_NOT_CONNECTED)
