"""BN254 field element helpers."""

from __future__ import annotations

from eth_utils import keccak

from .constants import BN254_SCALAR_MODULUS, FIELD_BYTES, FIELD_HEX_DIGITS
from .errors import SchemaMismatch

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def parse_field(value, label: str = "value") -> int:
    """
    Parse a field element from a hex string, int, or big-endian bytes.

    Raises:
        SchemaMismatch: If the value is not a canonical BN254 scalar.
    """
    if isinstance(value, bool):
        raise SchemaMismatch(f"{label} must be a field element, not bool")

    if isinstance(value, int):
        number = value
    elif isinstance(value, (bytes, bytearray)):
        if not value:
            raise SchemaMismatch(f"{label} cannot be empty")
        if len(value) > FIELD_BYTES:
            raise SchemaMismatch(f"{label} must be at most {FIELD_BYTES} bytes")
        number = int.from_bytes(bytes(value), "big")
    elif isinstance(value, str):
        number = _parse_hex(value.strip(), label)
    else:
        raise SchemaMismatch(f"{label} must be hex str, int, or bytes")

    if number < 0:
        raise SchemaMismatch(f"{label} must be non-negative")
    if number >= BN254_SCALAR_MODULUS:
        raise SchemaMismatch(f"{label} is not in the BN254 scalar field")
    return number


def to_field_hex(value, label: str = "value") -> str:
    """Normalize a field element to ``0x`` followed by 64 hex digits."""
    return format_field(parse_field(value, label))


def format_field(number: int) -> str:
    return "0x" + format(number, "x").rjust(FIELD_HEX_DIGITS, "0")


def field_to_bytes(value) -> bytes:
    return parse_field(value).to_bytes(FIELD_BYTES, "big")


def split_field_words(blob: bytes) -> tuple[str, ...]:
    """Split a concatenation of 32-byte big-endian words into field hex strings."""
    if len(blob) % FIELD_BYTES:
        raise ValueError(f"length {len(blob)} is not a multiple of {FIELD_BYTES}")
    return tuple(
        format_field(int.from_bytes(blob[i : i + FIELD_BYTES], "big"))
        for i in range(0, len(blob), FIELD_BYTES)
    )


def hash_word(word: str) -> str:
    """
    Hash a word into the BN254 scalar field.

    Computes ``keccak256(utf8(word)) mod r``, the same reduction the game
    contract applies to answers before storing them.
    """
    if not isinstance(word, str):
        raise TypeError("word must be str")
    digest = keccak(text=word)
    return format_field(int.from_bytes(digest, "big") % BN254_SCALAR_MODULUS)


def _parse_hex(text: str, label: str) -> int:
    if text.startswith(("0x", "0X")):
        digits = text[2:]
    else:
        digits = text
    if not digits:
        raise SchemaMismatch(f"{label} cannot be empty")
    if len(digits) > FIELD_HEX_DIGITS:
        raise SchemaMismatch(f"{label} must be at most {FIELD_HEX_DIGITS} hex digits")
    if any(ch not in _HEX_DIGITS for ch in digits):
        raise SchemaMismatch(f"{label} is not valid hex")
    return int(digits, 16)
