# stealth_core/results.py
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


class NoMatchReason(str, Enum):
    MALFORMED_ANNOUNCEMENT = "malformed_announcement"
    INVALID_VIEWING_KEY = "invalid_viewing_key"
    INVALID_ACCOUNT = "invalid_account"
    DECRYPTION_FAILED = "decryption_failed"
    NOT_REGISTERED = "not_registered"
    REGISTRY_UNAVAILABLE = "registry_unavailable"
    ADDRESS_MISMATCH = "address_mismatch"


class Match(BaseModel):
    """Announcement pays the scanning user. `random_number` derives the stealth private key."""
    model_config = ConfigDict(frozen=True)

    stealth_address: str
    random_number: str
    ephemeral_pub_key_x: str
    ciphertext: str
    token_address: Optional[str] = None
    amount_or_id: int = 0

    @property
    def is_for_user(self) -> bool:
        return True


class NoMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: NoMatchReason
    detail: str = ""
    # candidate address, only set when the check got as far as comparing addresses
    stealth_address: Optional[str] = None

    @property
    def is_for_user(self) -> bool:
        return False


VerificationResult = Union[Match, NoMatch]
