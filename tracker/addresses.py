"""Wallet address validation and normalization."""
from __future__ import annotations

import re

_ADDRESS_RE = re.compile(r"0x[0-9a-f]{40}")


class InvalidAddressError(ValueError):
    """Raised when a wallet address is not a 0x-prefixed 40-hex-char string."""

    def __init__(self, address: object) -> None:
        self.address = address
        super().__init__(f"Invalid address: {address!r}")


def normalize_address(address: str) -> str:
    """Return *address* stripped and lowercased, raising on a malformed value."""
    if not isinstance(address, str):
        raise InvalidAddressError(address)
    normalized = address.strip().lower()
    if not _ADDRESS_RE.fullmatch(normalized):
        raise InvalidAddressError(address)
    return normalized


def short_address(address: str) -> str:
    """Truncate an address for log lines."""
    return address[:10] + "..."
