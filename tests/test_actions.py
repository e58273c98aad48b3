"""Tests for the flash workflow and the Flasher controller."""

import hashlib
import io
from unittest.mock import MagicMock, patch

import pytest

from b003_flasher.core.actions import Flasher, flash
from b003_flasher.core.driver import SimulatedDriver
from b003_flasher.core.errors import FlashErrorKind, SessionBusyError
from b003_flasher.core.image_source import LocalImageSource, RemoteImageSource
from b003_flasher.core.safety import SafetyContext, TrustNotAcknowledgedError

URL = "https://example.com/fw.bin"


def _local(data=b"\x10\x20\x30"):
    return LocalImageSource(io.BytesIO(data))


class TestFlash:
    """Test the flash() entry point used by CLI and UI."""

    def test_success_result(self):
        result = flash(_local(b"image"), SimulatedDriver())

        assert result.ok
        assert result.operation == "flash"
        assert result.state == "done"
        assert result.status == "Done!"
        assert result.bytes_len == 5
        assert result.hashes["sha256"] == hashlib.sha256(b"image").hexdigest()
        assert result.metadata["flash_origin"] == "0x08000000"
        assert result.metadata["device"] == "1209:b003"

    def test_simulated_driver_flagged(self):
        result = flash(_local(), SimulatedDriver())
        assert result.metadata["simulated"] is True
        assert any("Simulation mode" in w for w in result.warnings)

    def test_identity_in_result(self):
        result = flash(_local(), SimulatedDriver(identity={"chip_id": 0x1234}))
        assert result.identity == {"chip_id": "00001234"}

    def test_empty_image_warns(self):
        result = flash(_local(b""), SimulatedDriver())
        assert result.ok
        assert any("empty" in w for w in result.warnings)

    def test_failure_result(self):
        result = flash(_local(), SimulatedDriver(write_status=5))

        assert not result.ok
        assert result.state == "failed"
        assert result.error_kind is FlashErrorKind.WRITE_FAILED
        assert result.error_code == 5
        assert result.status == "Failed writing image (5)"
        assert result.errors

    def test_reached_states_recorded(self):
        result = flash(_local(), SimulatedDriver(configure_status=2))
        assert result.metadata["reached"] == ["idle", "opening", "opened", "failed"]

    def test_logs_captured(self):
        result = flash(_local(), SimulatedDriver())
        assert any("Opening device" in line for line in result.logs)
        assert any("Done!" in line for line in result.logs)

    def test_status_callback(self):
        seen = []
        flash(_local(), SimulatedDriver(), on_status=seen.append)
        assert seen[0] == "Opening device"
        assert seen[-1] == "Done!"

    def test_custom_flash_origin(self):
        driver = SimulatedDriver()
        result = flash(_local(), driver, flash_origin=0x08001000)
        assert driver.calls[3][1][2] == 0x08001000
        assert result.metadata["flash_origin"] == "0x08001000"


class TestFlashRemote:
    """Remote sources pass the trust gate before the device is touched."""

    def test_refused_without_context(self):
        driver = SimulatedDriver()
        with patch("b003_flasher.core.image_source.requests.get") as get:
            with pytest.raises(TrustNotAcknowledgedError):
                flash(RemoteImageSource(URL), driver)

        assert driver.calls == []
        get.assert_not_called()

    def test_acknowledged_flashes(self):
        driver = SimulatedDriver()
        ctx = SafetyContext(acknowledged=True)
        with patch("b003_flasher.core.image_source.requests.get") as get:
            get.return_value = MagicMock(ok=True, status_code=200, content=b"\x01\x02")
            result = flash(RemoteImageSource(URL), driver, safety_ctx=ctx)

        assert result.ok
        assert driver.written == b"\x01\x02"
        assert any("untrusted" in w for w in result.warnings)
        assert "untrusted" in result.source

    def test_fetch_failure(self):
        ctx = SafetyContext(acknowledged=True)
        with patch("b003_flasher.core.image_source.requests.get") as get:
            get.return_value = MagicMock(ok=False, status_code=404)
            result = flash(RemoteImageSource(URL), SimulatedDriver(), safety_ctx=ctx, fetch_timeout=3.0)

        assert not result.ok
        assert result.error_kind is FlashErrorKind.FETCH_FAILED
        assert result.error_code == 404
        assert "identified" in result.metadata["reached"]
        get.assert_called_once_with(URL, timeout=3.0)


class TestFlasher:
    """Test the controller that keeps status across sessions."""

    def test_initial_status(self):
        flasher = Flasher(SimulatedDriver())
        assert flasher.status == "Not connected"
        assert not flasher.busy
        assert not flasher.awaiting_acknowledgement

    def test_terminal_status_stays_visible(self):
        flasher = Flasher(SimulatedDriver())
        result = flasher.flash(_local())

        assert result.ok
        assert flasher.status == "Done!"
        assert flasher.last_result is result

    def test_on_status_forwarded(self):
        seen = []
        flasher = Flasher(SimulatedDriver(), on_status=seen.append)
        flasher.flash(_local())
        assert seen[-1] == "Done!"

    def test_open_failure_requires_acknowledgement(self):
        driver = SimulatedDriver(open_error=OSError("denied"))
        flasher = Flasher(driver)
        result = flasher.flash(_local())

        assert result.requires_open_remediation
        assert flasher.awaiting_acknowledgement
        assert flasher.status == "Failed opening device"

        with pytest.raises(SessionBusyError):
            flasher.flash(_local())
        assert driver.operations == ["open"]

    def test_acknowledge_returns_to_not_connected(self):
        driver = SimulatedDriver(open_error=OSError("denied"))
        flasher = Flasher(driver)
        flasher.flash(_local())
        flasher.acknowledge()

        assert flasher.status == "Not connected"
        assert not flasher.awaiting_acknowledgement

        driver.open_error = None
        assert flasher.flash(_local()).ok

    def test_other_failures_do_not_block(self):
        driver = SimulatedDriver(write_status=1)
        flasher = Flasher(driver)
        flasher.flash(_local())

        assert not flasher.awaiting_acknowledgement
        driver.write_status = 0
        assert flasher.flash(_local()).ok

    def test_each_flash_is_a_fresh_session(self):
        driver = SimulatedDriver()
        flasher = Flasher(driver)
        flasher.flash(_local())
        flasher.flash(_local())

        assert driver.operations.count("open") == 2
        assert len(driver.handles) == 2
        assert all(h.close_calls == 1 for h in driver.handles)

    def test_no_second_session_while_running(self):
        errors = []

        class ReentrantDriver(SimulatedDriver):
            def configure_interface(self, handle):
                try:
                    flasher.flash(_local())
                except SessionBusyError as e:
                    errors.append(e)
                return super().configure_interface(handle)

        flasher = Flasher(ReentrantDriver())
        result = flasher.flash(_local())

        assert result.ok
        assert len(errors) == 1
        assert not flasher.busy

    def test_untrusted_remote_refused(self):
        flasher = Flasher(SimulatedDriver())
        with pytest.raises(TrustNotAcknowledgedError):
            flasher.flash(RemoteImageSource(URL), SafetyContext(interactive=False))

        assert not flasher.busy
        assert flasher.last_result is None
