"""MAC address normalization and display helpers.

Switches report MACs in several notations for the same address:
- LibreNMS ports_fdb: aabbccddeeff
- Cisco CLI: aabb.ccdd.eeff
- Huawei CLI: aabb-ccdd-eeff
- Most UIs: AA:BB:CC:DD:EE:FF

All comparisons work on the bare lowercase hex form.
"""
import html
import re
from typing import Optional

from fdbhistory.core.exceptions import InvalidMacFilterError

MAC_HEX_LENGTH = 12

_NON_HEX = re.compile(r"[^0-9a-f]")
_MAC_NOTATION = re.compile(r"^[0-9A-Fa-f:.\-\s]+$")

# Separators stripped from stored values when matching in SQL. Values with
# any other non-hex character are malformed and are not expected to match.
MAC_SEPARATORS = (":", "-", ".", " ", "_", "/")


def normalize_mac(value: Optional[str]) -> str:
    """Strip everything but hex digits and lowercase the rest."""
    return _NON_HEX.sub("", str(value or "").lower())


def canonical_mac(value: Optional[str]) -> str:
    """Return the storage form of a MAC.

    Well-formed MACs in any common notation become 12 lowercase hex chars.
    Anything else is kept as given (trimmed) so that malformed source data
    is still recorded instead of being silently rewritten.
    """
    raw = str(value or "").strip()
    if raw and _MAC_NOTATION.match(raw):
        clean = normalize_mac(raw)
        if len(clean) == MAC_HEX_LENGTH:
            return clean
    return raw


def format_mac(value: Optional[str]) -> str:
    """Format a MAC as colon-separated octets.

    Returns the original value HTML-escaped if it cannot be normalized.
    """
    clean = normalize_mac(value)
    if len(clean) != MAC_HEX_LENGTH:
        return html.escape(str(value or ""))
    return ":".join(clean[i:i + 2] for i in range(0, MAC_HEX_LENGTH, 2))


def normalize_mac_filter(raw: str) -> str:
    """Validate MAC search input and return the hex needle.

    Raises:
        InvalidMacFilterError: if nothing is left after normalization or
            the input is longer than a full MAC.
    """
    needle = normalize_mac(raw)
    if not needle:
        raise InvalidMacFilterError(
            "Invalid MAC address - please enter at least a few hex characters."
        )
    if len(needle) > MAC_HEX_LENGTH:
        raise InvalidMacFilterError(
            "MAC address too long. A full MAC is 12 hex characters (e.g. aabbccddeeff)."
        )
    return needle
