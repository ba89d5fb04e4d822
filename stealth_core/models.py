# stealth_core/models.py
"""Record types exchanged between the key engine, the protocol and the registry."""
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from web3 import Web3

from .errors import InvalidInput
from .hexcodec import LENGTHS, b2h, int_to_hex32, require_hex, to_int


def parse_model(model_cls, data, error_cls=InvalidInput):
    """Build `model_cls` from an instance or mapping, re-raising pydantic errors as `error_cls`."""
    if isinstance(data, model_cls):
        return data
    if not isinstance(data, Mapping):
        raise error_cls(f"expected {model_cls.__name__} or mapping, got {type(data).__name__}")
    try:
        return model_cls(**data)
    except ValidationError as e:
        raise error_cls(f"invalid {model_cls.__name__}: {e.errors()[0]['msg']}") from e


def _public_key_hex(v: str, name: str) -> str:
    require_hex(v, LENGTHS["public_key"], name)
    if v[2:4] != "04":
        raise ValueError(f"{name} must be uncompressed (0x04 prefix)")
    return v.lower()


def _hex32(v: Any) -> str:
    # bytes32 from event logs, uint256 from contract reads, or hex
    if isinstance(v, (bytes, bytearray)):
        if len(v) != 32:
            raise ValueError("expected 32 bytes")
        return b2h(bytes(v))
    if isinstance(v, int) and not isinstance(v, bool):
        return int_to_hex32(v)
    return require_hex(v, 32).lower()


class EncryptedPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    ephemeral_public_key: str  # 65B uncompressed, 0x04...
    ciphertext: str            # 32B

    @field_validator("ephemeral_public_key")
    @classmethod
    def _check_ephemeral(cls, v: str) -> str:
        return _public_key_hex(v, "ephemeral_public_key")

    @field_validator("ciphertext", mode="before")
    @classmethod
    def _check_ciphertext(cls, v: Any) -> str:
        return _hex32(v)


class StealthKeys(BaseModel):
    """Registry read result. A None key means the account never registered."""
    model_config = ConfigDict(frozen=True)

    spending_public_key: Optional[str] = None
    viewing_public_key: Optional[str] = None

    @field_validator("spending_public_key", "viewing_public_key")
    @classmethod
    def _check_key(cls, v: Optional[str], info) -> Optional[str]:
        if v is None:
            return v
        return _public_key_hex(v, info.field_name)

    @property
    def is_registered(self) -> bool:
        return bool(self.spending_public_key) and bool(self.viewing_public_key)


class CompressedPublicKey(BaseModel):
    model_config = ConfigDict(frozen=True)

    prefix: int
    pub_key_x_coordinate: str

    @field_validator("prefix")
    @classmethod
    def _check_prefix(cls, v: int) -> int:
        if v not in (2, 3):
            raise ValueError("prefix must be 2 or 3")
        return v

    @field_validator("pub_key_x_coordinate", mode="before")
    @classmethod
    def _check_x(cls, v: Any) -> str:
        return _hex32(v)


class SmartAccountKeys(BaseModel):
    """The four setStealthKeys arguments, for callers building their own call data."""
    model_config = ConfigDict(frozen=True)

    spending_prefix: int
    spending_pub_key_x: str
    viewing_prefix: int
    viewing_pub_key_x: str

    def as_contract_args(self):
        return (
            self.spending_prefix,
            int(self.spending_pub_key_x, 16),
            self.viewing_prefix,
            int(self.viewing_pub_key_x, 16),
        )


class Announcement(BaseModel):
    """One Announcement event as seen on chain. Consumed, never produced, by the core."""
    model_config = ConfigDict(frozen=True)

    ephemeral_pub_key_x: str
    ciphertext: str
    receiver_address: str
    token_address: Optional[str] = None
    amount_or_id: int = 0

    @field_validator("ephemeral_pub_key_x", "ciphertext", mode="before")
    @classmethod
    def _check_word(cls, v: Any) -> str:
        return _hex32(v)

    @field_validator("receiver_address", "token_address")
    @classmethod
    def _check_address(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not Web3.is_address(v):
            raise ValueError(f"invalid address: {v}")
        return Web3.to_checksum_address(v)

    @field_validator("amount_or_id", mode="before")
    @classmethod
    def _check_amount(cls, v: Union[int, str]) -> int:
        if isinstance(v, str) and v.isdigit():
            return int(v)
        return to_int(v)

    @classmethod
    def from_event(cls, args: Mapping[str, Any]) -> "Announcement":
        """Map decoded `Announcement(receiver, amount, token, pkx, ciphertext)` event args."""
        return parse_model(cls, {
            "ephemeral_pub_key_x": args.get("pkx"),
            "ciphertext": args.get("ciphertext"),
            "receiver_address": args.get("receiver"),
            "token_address": args.get("token"),
            "amount_or_id": args.get("amount", 0),
        })
