# stealth_core/hexcodec.py
"""
Fixed-width hex helpers.

Curve libraries and int -> hex conversions drop leading zero bytes, which
silently shortens private keys, coordinates and random numbers. Everything
that crosses a module boundary goes through these helpers so every field
keeps its exact byte width.
"""
import re
from typing import Union

from .errors import InvalidInput

# byte widths
LENGTHS = {
    "address": 20,
    "tx_hash": 32,
    "private_key": 32,
    "random_number": 32,
    "ciphertext": 32,
    "compressed_public_key": 33,
    "public_key": 65,
    "signature": 65,
}

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")


def strip0x(s: str) -> str:
    return s[2:] if isinstance(s, str) and s.lower().startswith("0x") else s


def b2h(b: bytes) -> str:
    return "0x" + b.hex()


def is_hex(s, prefixed: bool = True) -> bool:
    """True if `s` is a hex string; with prefixed=True the 0x prefix is required."""
    if not isinstance(s, str):
        return False
    if prefixed:
        if not s.startswith("0x"):
            return False
        s = s[2:]
    return _HEX_RE.match(s) is not None


def pad_hex(hex_digits: str, byte_length: int = 32) -> str:
    """Left-pad `hex_digits` (no 0x prefix) with zeros to exactly 2*byte_length chars."""
    if not isinstance(hex_digits, str):
        raise InvalidInput("Input is not a valid hex string")
    if hex_digits[:2].lower() == "0x":
        raise InvalidInput("Input must not contain 0x prefix")
    if not is_hex(hex_digits, prefixed=False):
        raise InvalidInput("Input is not a valid hex string")
    width = byte_length * 2
    if len(hex_digits) > width:
        raise InvalidInput(f"Input is longer than {byte_length} bytes")
    return hex_digits.rjust(width, "0")


def int_to_hex32(x: int) -> str:
    """0x-prefixed, zero-padded 32-byte hex of a non-negative int."""
    if x < 0 or x >= 1 << 256:
        raise InvalidInput("value does not fit in 32 bytes")
    return "0x" + pad_hex(format(x, "x"), 32)


def require_hex(value: str, byte_length: int, name: str = "value") -> str:
    """Validate a 0x-prefixed hex string of exactly `byte_length` bytes and return it."""
    if not is_hex(value):
        raise InvalidInput(f"{name} must be a hex string with 0x prefix")
    if len(value) != 2 + 2 * byte_length:
        raise InvalidInput(f"{name} must be {byte_length} bytes, got {(len(value) - 2) / 2:g}")
    return value


def h2b(h: str, byte_length: int = None) -> bytes:
    s = strip0x(h)
    if not is_hex(s, prefixed=False) or len(s) % 2 != 0:
        raise InvalidInput("invalid hex")
    b = bytes.fromhex(s)
    if byte_length is not None and len(b) != byte_length:
        raise InvalidInput(f"expected {byte_length} bytes, got {len(b)}")
    return b


def to_int(value: Union[int, str]) -> int:
    """Int passthrough, or parse 0x-hex. Used for uint256 fields read from contracts."""
    if isinstance(value, bool):
        raise InvalidInput("expected int or hex string")
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    if is_hex(value) and len(value) > 2:
        return int(value, 16)
    raise InvalidInput("expected int or hex string")
