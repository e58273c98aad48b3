"""
Result objects for core operations.

Provides a unified result structure that both CLI and Streamlit can use
to display flash outcomes consistently.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import FlashErrorKind


@dataclass
class OperationResult:
    """
    Unified result object for a flash attempt.

    CLI prints a readable summary; Streamlit uses the same data to render UI.

    Attributes:
        ok: Whether the session reached Done
        operation: Name of the operation (e.g., "flash")
        source: Description of the image source
        state: Terminal session state value ("done" / "failed")
        status: Final status line shown to the operator
        status_history: Every status line emitted, in order
        error_kind: Failure kind when the session failed
        error_code: Driver status code or HTTP status, when one exists
        identity: Chip identity fields rendered for display
        bytes_len: Number of image bytes handed to the driver
        hashes: Dict of hash values (sha256 of the image)
        warnings: Non-blocking issues encountered
        errors: Blocking errors that caused failure
        metadata: Additional operation-specific data
        logs: Captured log lines from the operation
    """
    ok: bool
    operation: str
    source: str = ""
    state: str = ""
    status: str = ""
    status_history: List[str] = field(default_factory=list)
    error_kind: Optional[FlashErrorKind] = None
    error_code: Optional[int] = None
    identity: Dict[str, str] = field(default_factory=dict)
    bytes_len: int = 0
    hashes: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    logs: List[str] = field(default_factory=list)

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    @property
    def requires_open_remediation(self) -> bool:
        """True when the host could not open the device (permissions)."""
        return self.error_kind is FlashErrorKind.OPEN_FAILED

    def to_summary(self) -> str:
        """
        Generate a human-readable summary string.

        Suitable for CLI output or simple logging.
        """
        status = "SUCCESS" if self.ok else "FAILED"
        lines = [f"[{status}] {self.operation}"]

        if self.source:
            lines.append(f"  Source: {self.source}")
        if self.status:
            lines.append(f"  Status: {self.status}")
        if self.error_kind is not None:
            kind = self.error_kind.value
            if self.error_code is not None:
                kind = f"{kind}({self.error_code})"
            lines.append(f"  Failure: {kind}")
        if self.bytes_len:
            lines.append(f"  Bytes: {self.bytes_len:,}")

        if self.identity:
            lines.append("  Chip Info:")
            for key, value in self.identity.items():
                lines.append(f"    {key}: {value}")

        if self.hashes:
            for name, value in self.hashes.items():
                lines.append(f"  {name}: {value[:16]}...")

        if self.warnings:
            lines.append("  Warnings:")
            for warn in self.warnings:
                lines.append(f"    - {warn}")

        if self.errors:
            lines.append("  Errors:")
            for err in self.errors:
                lines.append(f"    - {err}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ok": self.ok,
            "operation": self.operation,
            "source": self.source,
            "state": self.state,
            "status": self.status,
            "status_history": self.status_history,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error_code": self.error_code,
            "identity": self.identity,
            "bytes_len": self.bytes_len,
            "hashes": self.hashes,
            "warnings": self.warnings,
            "errors": self.errors,
            "metadata": self.metadata,
            "logs": self.logs,
        }

    @classmethod
    def success(
        cls,
        operation: str,
        source: str = "",
        bytes_len: int = 0,
        **kwargs,
    ) -> "OperationResult":
        """Create a successful result."""
        return cls(
            ok=True,
            operation=operation,
            source=source,
            bytes_len=bytes_len,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        operation: str,
        error: str,
        error_kind: Optional[FlashErrorKind] = None,
        error_code: Optional[int] = None,
        **kwargs,
    ) -> "OperationResult":
        """Create a failed result."""
        result = cls(
            ok=False,
            operation=operation,
            error_kind=error_kind,
            error_code=error_code,
            **kwargs,
        )
        result.errors.append(error)
        return result
