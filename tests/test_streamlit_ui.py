"""Tests for the Streamlit page (skipped without the ui extra)."""

import io
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

pytest.importorskip("streamlit")
from streamlit.testing.v1 import AppTest  # noqa: E402

import b003_flasher  # noqa: E402

APP_PATH = str(Path(b003_flasher.__file__).parent / "streamlit_ui.py")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DRIVER", "IMAGE_URL", "FETCH_TIMEOUT", "VENDOR_ID", "PRODUCT_ID"):
        monkeypatch.delenv(f"B003_FLASHER_{name}", raising=False)


class TestFlashPage:
    """Test what the operator sees."""

    def test_backend_missing(self):
        with patch("b003_flasher.devices.hid", None):
            at = AppTest.from_file(APP_PATH).run()

        assert not at.exception
        assert any("HID backend not available" in e.value for e in at.error)
        assert len(at.button) == 0

    def test_local_mode_waits_for_file(self):
        with patch("b003_flasher.devices.hid", MagicMock()):
            at = AppTest.from_file(APP_PATH).run()

        assert not at.exception
        assert any("Not connected" in m.value for m in at.markdown)
        flash_button = at.button[0]
        assert flash_button.label == "Flash to device"
        assert flash_button.disabled

    def test_remote_mode_shows_warning(self):
        with patch("b003_flasher.devices.hid", MagicMock()):
            at = AppTest.from_file(APP_PATH)
            at.query_params["image"] = "https://example.com/fw.bin"
            at.run()

        assert not at.exception
        assert any("External Binary Warning" in w.value for w in at.warning)
        assert at.checkbox[0].value is False
        assert at.button[0].disabled


class TestOpenFailedDialog:
    """Test that every way out of the open-failed dialog acknowledges it."""

    def test_dismiss_acknowledges(self):
        from b003_flasher import streamlit_ui

        fake_st = MagicMock()
        with patch.object(streamlit_ui, "st", fake_st):
            streamlit_ui._acknowledge_open_failure()

        fake_st.session_state.flasher.acknowledge.assert_called_once_with()

    def test_dismiss_clears_real_flasher(self):
        from b003_flasher import streamlit_ui
        from b003_flasher.core.actions import Flasher
        from b003_flasher.core.driver import SimulatedDriver
        from b003_flasher.core.image_source import LocalImageSource

        flasher = Flasher(SimulatedDriver(open_error=OSError("no such device")))
        flasher.flash(LocalImageSource(io.BytesIO(b"\x01")))
        assert flasher.awaiting_acknowledgement

        fake_st = MagicMock()
        fake_st.session_state.flasher = flasher
        with patch.object(streamlit_ui, "st", fake_st):
            streamlit_ui._acknowledge_open_failure()

        assert not flasher.awaiting_acknowledgement
        assert flasher.status == "Not connected"
