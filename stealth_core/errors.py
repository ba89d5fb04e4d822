# stealth_core/errors.py


class StealthError(Exception):
    """Base class for every error raised by stealth_core."""


class InvalidInput(StealthError, ValueError):
    """Malformed hex, wrong width, or otherwise unusable input."""


class InvalidKey(StealthError, ValueError):
    """Private scalar out of range, or public key not on secp256k1."""


class SignatureFormatError(InvalidInput):
    pass


class InvalidPayload(InvalidInput):
    """EncryptedPayload missing a field or carrying a malformed one."""


class MissingPrivateKey(StealthError):
    """Operation needs a private scalar but the KeyPair is public-only."""


class RecipientNotRegistered(StealthError, LookupError):
    def __init__(self, account: str):
        super().__init__(
            f"Address {account} has not registered stealth keys. "
            "Please ask them to set up their account"
        )
        self.account = account


class RegistryUnavailable(StealthError):
    """Registry read failed at the network / provider level."""
