"""
Centralized parsing and formatting helpers.

Both CLI and Streamlit must import these helpers rather than re-implement.
"""

from collections import abc
from types import MappingProxyType
from typing import Iterator, List, Mapping, Optional, Tuple, Union

IdentityValue = Union[int, str]


def parse_int(value: Optional[str], label: str = "value") -> Optional[int]:
    """
    Parse an integer from string, supporting multiple formats.

    Accepts:
        - Decimal: "4096"
        - Hex with 0x prefix: "0x1209" or "0X1209"
        - Hex with h suffix: "1209h"
        - None or empty for "not set"

    Raises:
        ValueError: If value cannot be parsed.
    """
    if value is None:
        return None

    value = value.strip()
    if not value:
        return None

    try:
        if value.lower().startswith("0x"):
            return int(value, 16)
        if value.lower().endswith("h"):
            return int(value[:-1], 16)
        return int(value)
    except ValueError:
        raise ValueError(
            f"Invalid {label} '{value}'. Use decimal (4617), hex (0x1209), or suffix (1209h)."
        )


def format_identity_value(value: IdentityValue) -> str:
    """
    Render numbers as zero-padded 8-digit hex, everything else verbatim.

    Numbers are not masked: a negative value keeps its sign (-1 -> "-0000001")
    and values wider than 32 bits keep every digit.
    """
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, int):
        return f"{value:08x}"
    return str(value)


class ChipIdentity(abc.Mapping):
    """
    Read-only chip identity reported by the bootloader.

    Produced once per session and only used for display.
    """

    def __init__(self, fields: Mapping[str, IdentityValue]):
        self._fields = MappingProxyType(dict(fields))

    def __getitem__(self, key: str) -> IdentityValue:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"ChipIdentity({dict(self._fields)!r})"

    def formatted(self) -> List[Tuple[str, str]]:
        """(key, rendered value) pairs in driver order."""
        return [(key, format_identity_value(value)) for key, value in self._fields.items()]

    def to_dict(self) -> dict:
        return {key: rendered for key, rendered in self.formatted()}
