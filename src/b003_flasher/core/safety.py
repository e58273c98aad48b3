"""
Trust gating for image sources.

Remote images come from a URL handed to us from outside (query parameter,
environment, CLI option). Before such an image may be flashed the operator
has to acknowledge it as untrusted. Both CLI and Streamlit use this module
so the rule is enforced identically.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .image_source import ImageSource, RemoteImageSource

# Confirmation token required for non-interactive acknowledgment
CONFIRMATION_TOKEN = "TRUST"


class TrustNotAcknowledgedError(Exception):
    """
    Raised when an untrusted source is flashed without acknowledgment.

    Attributes:
        reason: Human-readable explanation of why flashing was refused
        details: Additional context (url)
    """
    def __init__(self, reason: str, details: Optional[dict] = None):
        self.reason = reason
        self.details = details or {}
        super().__init__(reason)


@dataclass
class SafetyContext:
    """
    Everything needed to decide whether a source may be flashed.

    Attributes:
        acknowledged: Operator already accepted the untrusted source
            (``--yes`` on the CLI, checkbox in the UI)
        confirmation_token: For non-interactive mode, must match CONFIRMATION_TOKEN
        interactive: Whether the front end can prompt for confirmation
        warnings: Messages accumulated while gating
    """
    acknowledged: bool = False
    confirmation_token: Optional[str] = None
    interactive: bool = True
    warnings: List[str] = field(default_factory=list)

    # CLI sets these to prompt functions
    prompt_confirmation: Optional[Callable[[str], bool]] = None
    show_details: Optional[Callable[[dict], None]] = None

    def add_warning(self, message: str) -> None:
        """Add a warning to the context."""
        self.warnings.append(message)


def untrusted_warning(source: RemoteImageSource) -> str:
    return f"External binary {source.url} is untrusted. Only flash if you trust the source!"


def require_source_trust(ctx: SafetyContext, source: ImageSource) -> None:
    """
    Enforce the trust rule for a source.

    Rules enforced:
    1. Local sources are always allowed
    2. Remote sources are flagged as untrusted (warning recorded)
    3. Prior acknowledgment allows the flash
    4. A confirmation token must match exactly
    5. Interactive front ends must prompt and get a yes

    Raises:
        TrustNotAcknowledgedError: If the remote source was not acknowledged
    """
    if not isinstance(source, RemoteImageSource):
        return

    details = {"url": source.url, "trusted": False}
    ctx.add_warning(untrusted_warning(source))

    if ctx.acknowledged:
        return

    if ctx.confirmation_token is not None:
        if ctx.confirmation_token.strip().upper() != CONFIRMATION_TOKEN:
            raise TrustNotAcknowledgedError(
                f"Confirmation token mismatch. Expected '{CONFIRMATION_TOKEN}'.",
                details=details,
            )
        return

    if ctx.interactive and ctx.prompt_confirmation:
        if ctx.show_details:
            ctx.show_details(details)
        if not ctx.prompt_confirmation(f"Flash the external binary from {source.url}?"):
            raise TrustNotAcknowledgedError(
                "External binary not acknowledged. Flash aborted by user.",
                details=details,
            )
        return

    raise TrustNotAcknowledgedError(
        "External binary must be acknowledged as untrusted before flashing. "
        f"CLI: pass --yes or --confirm {CONFIRMATION_TOKEN}. UI: tick the warning checkbox.",
        details=details,
    )


def create_cli_safety_context(
    yes: bool = False,
    confirmation_token: Optional[str] = None,
) -> SafetyContext:
    """
    Create a SafetyContext configured for CLI usage.

    Prompts interactively only when stdin is a TTY and no token was given.
    """
    import sys

    interactive = sys.stdin.isatty() and confirmation_token is None

    return SafetyContext(
        acknowledged=yes,
        confirmation_token=confirmation_token,
        interactive=interactive,
    )


def create_streamlit_safety_context(risk_acknowledged: bool) -> SafetyContext:
    """Streamlit never prompts; the warning checkbox is the acknowledgment."""
    return SafetyContext(acknowledged=bool(risk_acknowledged), interactive=False)
