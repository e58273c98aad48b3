"""
Streamlit UI for B003 Flasher.

Single page: pick a .bin (or follow the ``?image=`` link), flash it, read
the status line.

NOTE: This module requires the optional 'ui' extra to be installed:
    pip install -e ".[ui]"
"""

import logging
import sys
from pathlib import Path

# Guard streamlit import - it's an optional dependency
try:
    import streamlit as st
except ImportError as e:
    _missing = "streamlit" if "streamlit" in str(e) else str(e)
    print(
        f"\n[ERROR] Missing required package: {_missing}\n\n"
        f"The Streamlit UI requires extra dependencies.\n"
        f"Install them with:\n\n"
        f"    pip install -e \".[ui]\"\n\n"
        f"Or install streamlit directly:\n\n"
        f"    pip install streamlit\n"
    )
    sys.exit(1)

from b003_flasher.config import load_config
from b003_flasher.core.actions import Flasher
from b003_flasher.core.driver import SIMULATED_DRIVER, DriverLoadError, load_driver
from b003_flasher.core.errors import SessionBusyError
from b003_flasher.core.image_source import LocalImageSource, describe_source, image_source_from_url
from b003_flasher.core.safety import TrustNotAcknowledgedError, create_streamlit_safety_context
from b003_flasher.devices import hid_backend_available
from b003_flasher.ui.components import (
    render_backend_unsupported,
    render_external_warning,
    render_open_failed_body,
    render_raw_logs,
    render_result_preview,
    render_status_line,
)

logger = logging.getLogger(__name__)


def _init_session_state(config):
    """Initialize session state for persistence."""
    if "flasher" not in st.session_state:
        st.session_state.flasher = Flasher(
            load_driver(config.driver),
            fetch_timeout=config.fetch_timeout,
            vendor_id=config.vendor_id,
            product_id=config.product_id,
            flash_origin=config.flash_origin,
        )
        st.session_state.driver_spec = config.driver
    if "external_ack" not in st.session_state:
        st.session_state.external_ack = False


def _acknowledge_open_failure() -> None:
    st.session_state.flasher.acknowledge()


# Closing with X, Escape or a click outside also acknowledges
@st.dialog("Failed to open the device!", on_dismiss=_acknowledge_open_failure)
def _open_failed_dialog() -> None:
    render_open_failed_body()
    if st.button("Close", type="primary"):
        _acknowledge_open_failure()
        st.rerun()


def main():
    """Streamlit app main."""
    st.set_page_config(
        page_title="B003 Flasher",
        page_icon="⚡",
        layout="centered",
    )

    st.title("⚡ B003 Flasher")
    st.caption("Flash firmware images to CH32 chips running the B003 USB bootloader.")

    if not hid_backend_available():
        render_backend_unsupported()
        return

    try:
        config = load_config()
    except ValueError as e:
        st.error(f"❌ **Invalid configuration:** {e}")
        return

    try:
        _init_session_state(config)
    except DriverLoadError as e:
        st.error(f"❌ **Driver not available:** {e}")
        return

    flasher: Flasher = st.session_state.flasher
    if st.session_state.driver_spec == SIMULATED_DRIVER:
        st.info("ℹ️ Simulation mode - no device is touched. Set B003_FLASHER_DRIVER to use real hardware.")

    remote = image_source_from_url(st.query_params.get("image") or config.image_url)

    status_box = st.empty()
    with status_box:
        render_status_line(flasher.status)

    if remote is None:
        upload = st.file_uploader("Firmware image", type=["bin"])
        source = LocalImageSource(upload)
        ready = upload is not None
    else:
        acknowledged = render_external_warning(remote)
        source = remote
        ready = acknowledged

    clicked = st.button(
        "Flash to device",
        type="primary",
        disabled=not ready or flasher.busy or flasher.awaiting_acknowledgement,
        use_container_width=True,
    )

    if clicked:
        _do_flash(flasher, source, status_box)

    result = flasher.last_result
    if result is not None:
        render_result_preview(result)
        render_raw_logs(result.logs)

    if flasher.awaiting_acknowledgement:
        _open_failed_dialog()


def _do_flash(flasher: Flasher, source, status_box) -> None:
    """Run one session, streaming status lines into the placeholder."""

    def _on_status(message: str) -> None:
        with status_box:
            render_status_line(message, busy=True)

    logger.info("Flash requested: %s", describe_source(source))
    flasher.on_status = _on_status
    safety_ctx = create_streamlit_safety_context(st.session_state.external_ack)
    try:
        flasher.flash(source, safety_ctx=safety_ctx)
    except TrustNotAcknowledgedError as e:
        st.warning(f"⚠️ {e.reason}")
    except SessionBusyError as e:
        st.warning(f"⚠️ {e}")
    finally:
        flasher.on_status = None

    with status_box:
        render_status_line(flasher.status)


def launch() -> None:
    """Launch the Streamlit app without requiring a manual CLI command."""
    from streamlit.web import bootstrap

    app_path = str(Path(__file__).resolve())
    bootstrap.run(app_path, "streamlit run", [], {})


if __name__ == "__main__":
    main()
