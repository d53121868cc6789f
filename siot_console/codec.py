"""Textual encodings for addresses and amounts exchanged with a Siotchain node.

Addresses are 20-byte values written as ``0x`` followed by 40 lower-case hex
digits. Amounts are non-negative integers in the smallest indivisible unit;
the console only divides them by :data:`DISPLAY_SCALE` when printing a
balance. The ``*_quantity`` and ``decode_hex_bytes`` helpers cover the
``0x``-prefixed hex strings the node uses on the wire.
"""

from __future__ import annotations

import binascii
import re

ADDRESS_LENGTH = 20
ADDRESS_TEXT_LENGTH = 2 + 2 * ADDRESS_LENGTH
HEX_PREFIX = "0x"
DISPLAY_SCALE = 10**12
EXAMPLE_ADDRESS = "0x9821e8c1dc176c92cac40b3c1fdb795aa1b38f89"

_DECIMAL_RE = re.compile(r"[0-9]+")
_HEX_ADDRESS_RE = re.compile(r"(0[xX])?[0-9a-fA-F]{40}")
_CANONICAL_ADDRESS_RE = re.compile(r"0x[0-9a-f]{40}")
_HEX_DIGITS_RE = re.compile(r"[0-9a-fA-F]+")


class CodecError(ValueError):
    """Raised when a textual value cannot be decoded."""


class AddressFormatError(CodecError):
    """Raised when an address literal does not have the ``0x`` + 40 hex shape."""


class AmountFormatError(CodecError):
    """Raised when an amount is not a base-10 non-negative integer."""


def decode_address(text: str) -> bytes:
    """Decode a ``0x``-prefixed, 42 character address literal into 20 bytes."""

    if len(text) != ADDRESS_TEXT_LENGTH:
        raise AddressFormatError(
            "input address should have the length of 40 and have a prefix of 0x, "
            f"e.g. {EXAMPLE_ADDRESS}"
        )
    if not text.startswith(HEX_PREFIX):
        raise AddressFormatError("input should have prefix of 0x")
    if not _CANONICAL_ADDRESS_RE.fullmatch(text):
        raise AddressFormatError(
            "input address should only contain lower-case hexadecimal digits after 0x"
        )
    return bytes.fromhex(text[2:])


def encode_address(raw: bytes) -> str:
    """Render ``raw`` as ``0x`` + 40 lower-case hex digits, left-padded with zeros."""

    if len(raw) > ADDRESS_LENGTH:
        raise AddressFormatError(
            f"address must be at most {ADDRESS_LENGTH} bytes, got {len(raw)}"
        )
    return HEX_PREFIX + raw.hex().rjust(2 * ADDRESS_LENGTH, "0")


def is_hex_address(text: str) -> bool:
    """Return True for 40 hex digits with an optional ``0x`` prefix."""

    return _HEX_ADDRESS_RE.fullmatch(text) is not None


def hex_to_address(text: str) -> bytes:
    """Convert a string accepted by :func:`is_hex_address` into 20 bytes."""

    if not is_hex_address(text):
        raise AddressFormatError(f"not a hex address: {text!r}")
    return bytes.fromhex(text[-2 * ADDRESS_LENGTH:])


def decode_amount(text: str) -> int:
    """Parse a base-10 amount, rejecting signs, separators and non-digits."""

    if not _DECIMAL_RE.fullmatch(text):
        raise AmountFormatError(f"amount should be a non-negative base-10 integer, got {text!r}")
    return int(text, 10)


def scale_for_display(amount: int) -> int:
    return amount // DISPLAY_SCALE


def encode_quantity(value: int) -> str:
    if value < 0:
        raise CodecError(f"quantity must be non-negative, got {value}")
    return hex(value)


def decode_quantity(text: str) -> int:
    if not isinstance(text, str) or not text.startswith(HEX_PREFIX):
        raise CodecError(f"expected 0x-prefixed hex quantity, got {text!r}")
    if not _HEX_DIGITS_RE.fullmatch(text[2:]):
        raise CodecError(f"expected 0x-prefixed hex quantity, got {text!r}")
    return int(text[2:], 16)


def decode_hex_bytes(text: str) -> bytes:
    if not isinstance(text, str) or not text.startswith(HEX_PREFIX):
        raise CodecError(f"expected 0x-prefixed hex bytes, got {text!r}")
    try:
        return binascii.unhexlify(text[2:])
    except (binascii.Error, ValueError) as exc:
        raise CodecError(f"expected 0x-prefixed hex bytes, got {text!r}") from exc
