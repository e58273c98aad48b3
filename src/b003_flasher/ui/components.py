"""
Reusable Streamlit UI components for B003 Flasher.

Provides the building blocks of the flash page:
- Status line
- External binary warning card with acknowledgment
- Message list with collapsible details
- Result preview and raw logs
"""

from typing import Any, Dict, List, Optional

import streamlit as st

from b003_flasher.core.image_source import RemoteImageSource
from b003_flasher.core.messages import (
    COMMON_MESSAGES,
    HID_DOCS_URL,
    MessageItem,
    MessageLevel,
    PLUGDEV_COMMAND,
    UDEV_RULE,
    UDEV_RULE_PATH,
    result_to_messages,
)
from b003_flasher.core.results import OperationResult


# =============================================================================
# Status Line
# =============================================================================

def render_status_line(status: str, busy: bool = False) -> None:
    """Render the operator-visible status string."""
    icon = "⏳" if busy else "🔌"
    st.markdown(f"{icon} **Status:** {status}")


# =============================================================================
# External Binary Warning
# =============================================================================

def render_external_warning(source: RemoteImageSource, key: str = "external_ack") -> bool:
    """
    Render the warning card shown instead of the file picker.

    Args:
        source: The remote image source in use
        key: Session state key for the acknowledgment checkbox

    Returns:
        bool: True when the operator acknowledged the risk
    """
    with st.container(border=True):
        st.warning("⚠️ **External Binary Warning**")
        st.markdown(
            "An external binary URL was supplied. "
            "**Only flash if you trust the source!**"
        )
        st.code(source.url, language=None)
        return st.checkbox(
            "I trust this source and want to flash it",
            key=key,
        )


# =============================================================================
# Message List
# =============================================================================

def render_message_list(
    messages: List[MessageItem],
    collapsed_default: bool = True,
    title: str = "⚠️ Warnings & Errors",
) -> None:
    """
    Render a list of messages in a collapsible expander.

    Args:
        messages: List of MessageItem objects to display
        collapsed_default: Whether expander is collapsed by default
        title: Title for the expander section
    """
    if not messages:
        return

    error_count = sum(1 for m in messages if m.level == MessageLevel.ERROR)
    warn_count = sum(1 for m in messages if m.level == MessageLevel.WARN)

    counts = []
    if error_count:
        counts.append(f"❌ {error_count} error{'s' if error_count > 1 else ''}")
    if warn_count:
        counts.append(f"⚠️ {warn_count} warning{'s' if warn_count > 1 else ''}")

    display_title = f"{title} ({', '.join(counts)})" if counts else title

    # Force open if there are errors
    expanded = not collapsed_default or error_count > 0

    with st.expander(display_title, expanded=expanded):
        for message in messages:
            _render_single_message(message)


def _render_single_message(message: MessageItem) -> None:
    """Render a single message item."""
    if message.level == MessageLevel.ERROR:
        container = st.error
    elif message.level == MessageLevel.WARN:
        container = st.warning
    else:
        container = st.info

    container(f"**{message.title}**")

    if message.detail or message.remediation:
        with st.expander(f"Details ({message.code.value})", expanded=False):
            if message.detail:
                st.markdown(message.detail)
            if message.remediation:
                st.markdown(f"**Suggested action:** {message.remediation}")


# =============================================================================
# Open Failed / Backend Panels
# =============================================================================

def render_open_failed_body() -> None:
    """Remediation shown when the device could not be opened."""
    st.markdown(
        "The HID backend works but could not open the device. On Linux you "
        "probably need a udev rule for read & write access, as HID devices "
        "are read-only by default."
    )
    st.markdown(f"Create `{UDEV_RULE_PATH}` with the following contents:")
    st.code(UDEV_RULE, language=None)
    st.markdown("and make sure your user is in the plugdev group:")
    st.code(PLUGDEV_COMMAND, language="bash")
    st.markdown(f"[More information]({HID_DOCS_URL})")


def render_backend_unsupported() -> None:
    """Panel shown in place of the flasher when hidapi is missing."""
    message = COMMON_MESSAGES["hid_unavailable"]
    st.error(f"❌ **{message.title}**")
    st.markdown(message.detail)
    if message.remediation:
        st.markdown(f"**Suggested action:** {message.remediation}")
    st.markdown(f"[More about HID access]({HID_DOCS_URL})")


# =============================================================================
# Result Preview
# =============================================================================

def render_result_preview(result: OperationResult, title: str = "📊 Flash Details") -> None:
    """
    Render the outcome of a flash session.

    Shows source, size, chip info and hashes in a structured format.
    """
    if result.ok:
        st.success(f"✅ **{result.status}**")
    else:
        st.error(f"❌ **{result.status}**")

    render_message_list(result_to_messages(result), collapsed_default=result.ok)

    details: Dict[str, Any] = {
        "source": result.source,
        "bytes_length": result.bytes_len,
        "identity": result.identity,
        "hashes": result.hashes,
        "metadata": result.metadata,
    }
    with st.expander(title, expanded=False):
        render_result_details(details)


def render_result_details(details: Dict[str, Any]) -> None:
    """Render result details as a structured display."""
    col1, col2 = st.columns(2)

    with col1:
        if details.get("source"):
            st.markdown(f"**Source:** `{details['source']}`")
        if details.get("metadata", {}).get("flash_origin"):
            st.markdown(f"**Flash origin:** `{details['metadata']['flash_origin']}`")

    with col2:
        if details.get("bytes_length") is not None:
            st.markdown(f"**Size:** {details['bytes_length']:,} bytes")
        if details.get("metadata", {}).get("device"):
            st.markdown(f"**Device:** `{details['metadata']['device']}`")

    if details.get("identity"):
        st.markdown("**Chip info:**")
        for name, value in details["identity"].items():
            st.text(f"{name}: {value}")

    if details.get("hashes"):
        st.markdown("**Hashes:**")
        for name, value in details["hashes"].items():
            if value:
                display_val = value[:16] + "..." if len(value) > 16 else value
                st.code(f"{name}: {display_val}", language=None)


# =============================================================================
# Raw Logs Component
# =============================================================================

def render_raw_logs(
    logs: Optional[List[str]],
    title: str = "📜 Raw Logs",
    collapsed_default: bool = True,
) -> None:
    """
    Render raw log output in a collapsible section.

    Args:
        logs: List of log lines to display
        title: Title for the section
        collapsed_default: Whether to collapse by default
    """
    if not logs:
        return

    with st.expander(title, expanded=not collapsed_default):
        st.code("\n".join(logs), language="text")
