# stealth_core/random_number.py
import secrets

from .hexcodec import h2b, int_to_hex32


class RandomNumber:
    """
    A fresh 32-byte secret drawn once per send.

    The value is used both as an EC scalar (reduced mod n by the caller) and
    as the one-time-pad operand, so it is kept as the raw 32-byte integer.
    """

    __slots__ = ("_value",)

    def __init__(self, value: int = None):
        if value is None:
            value = int.from_bytes(secrets.token_bytes(32), "big")
        # validates width
        int_to_hex32(value)
        self._value = value

    @classmethod
    def generate(cls) -> "RandomNumber":
        return cls()

    @classmethod
    def from_hex(cls, h: str) -> "RandomNumber":
        return cls(int.from_bytes(h2b(h, 32), "big"))

    @property
    def value(self) -> int:
        return self._value

    @property
    def as_hex(self) -> str:
        return int_to_hex32(self._value)

    @property
    def as_hex_slim(self) -> str:
        return self.as_hex[2:]

    @property
    def as_bytes(self) -> bytes:
        return self._value.to_bytes(32, "big")

    def __eq__(self, other):
        return isinstance(other, RandomNumber) and other._value == self._value

    def __hash__(self):
        return hash(self._value)

    def __repr__(self):
        return "RandomNumber(<hidden>)"
