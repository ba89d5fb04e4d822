# stealth_core/protocol.py
"""
The three stealth-payment operations.

  generate_key_pair    signature -> (spending, viewing) key pairs
  prepare_send         recipient -> stealth address + encrypted random number
  verify_announcement  announcement -> Match / NoMatch for the scanning user
"""
import hashlib
import logging
from typing import Mapping, NamedTuple, Union

from .errors import (
    InvalidInput,
    InvalidKey,
    MissingPrivateKey,
    RecipientNotRegistered,
    RegistryUnavailable,
    SignatureFormatError,
    StealthError,
)
from .hexcodec import LENGTHS, b2h, is_hex
from .keypair import KeyPair
from .models import Announcement, EncryptedPayload, StealthKeys, parse_model
from .random_number import RandomNumber
from .registry import KeyRegistry
from .results import Match, NoMatch, NoMatchReason, VerificationResult

logger = logging.getLogger(__name__)

_SIGNATURE_HEX_LEN = 2 + 2 * LENGTHS["signature"]  # 132


class StealthKeyPairs(NamedTuple):
    spending_key_pair: KeyPair
    viewing_key_pair: KeyPair


class SendPreparation(NamedTuple):
    stealth_key_pair: KeyPair
    pub_key_x_coordinate: str
    encrypted: EncryptedPayload


def generate_key_pair(signature: Union[str, bytes]) -> StealthKeyPairs:
    """
    Derive spending and viewing key pairs from a 65-byte signature (r || s || v).

    spending = sha256(r), viewing = sha256(s). Re-signing the same message with the
    same account regenerates the same keys, so nothing needs to be stored.
    """
    if isinstance(signature, (bytes, bytearray)):
        signature = b2h(bytes(signature))
    if not is_hex(signature) or len(signature) != _SIGNATURE_HEX_LEN:
        raise SignatureFormatError("Signature must be 65 bytes of hex with 0x prefix")

    r = signature[2:66]
    s = signature[66:130]
    v = signature[-2:]
    if f"0x{r}{s}{v}" != signature:
        raise SignatureFormatError("Signature incorrectly generated or parsed")

    spending_private_key = b2h(hashlib.sha256(bytes.fromhex(r)).digest())
    viewing_private_key = b2h(hashlib.sha256(bytes.fromhex(s)).digest())

    # KeyPair rejects a hash outside [1, n-1] with InvalidKey
    return StealthKeyPairs(
        spending_key_pair=KeyPair(spending_private_key),
        viewing_key_pair=KeyPair(viewing_private_key),
    )


def prepare_send(recipient: str, registry: KeyRegistry) -> SendPreparation:
    """
    Everything a sender needs to pay `recipient` privately.

    The caller sends funds to `stealth_key_pair.address` and publishes
    `pub_key_x_coordinate` and `encrypted.ciphertext` in the announcement.
    """
    keys = registry.get_stealth_keys(recipient)
    try:
        keys = _stealth_keys(keys)
    except InvalidInput:
        raise RecipientNotRegistered(recipient)
    if not keys.is_registered:
        raise RecipientNotRegistered(recipient)

    spending_key_pair = KeyPair(keys.spending_public_key)
    viewing_key_pair = KeyPair(keys.viewing_public_key)

    random_number = RandomNumber.generate()
    encrypted = viewing_key_pair.encrypt(random_number)

    # the sign prefix is dropped on purpose; the recipient rebuilds the point
    # assuming even y, which ECDH tolerates
    pub_key_x_coordinate = KeyPair.compress_public_key(encrypted.ephemeral_public_key).pub_key_x_coordinate

    stealth_key_pair = spending_key_pair.mul_public_key(random_number)
    logger.info("[sender] prepared stealth address %s for %s", stealth_key_pair.address, recipient)
    return SendPreparation(stealth_key_pair, pub_key_x_coordinate, encrypted)


def verify_announcement(
    announcement: Union[Announcement, Mapping],
    registry: KeyRegistry,
    viewing_private_key: Union[str, KeyPair],
    account: str,
) -> VerificationResult:
    """
    Check whether `announcement` pays `account`.

    `account` is the identity whose registered spending key the stealth address
    was derived from, i.e. the user scanning for their own funds. Never raises:
    every failure becomes a NoMatch carrying the reason, so one bad announcement
    cannot stop a scan over many.
    """
    try:
        announcement = parse_model(Announcement, announcement)
    except InvalidInput as e:
        return _no_match(NoMatchReason.MALFORMED_ANNOUNCEMENT, e)

    try:
        viewing_key_pair = viewing_private_key if isinstance(viewing_private_key, KeyPair) else KeyPair(viewing_private_key)
        if not viewing_key_pair.has_private_key:
            raise MissingPrivateKey("viewing key has no private key")
    except (InvalidKey, MissingPrivateKey) as e:
        return _no_match(NoMatchReason.INVALID_VIEWING_KEY, e)

    try:
        ephemeral_public_key = KeyPair.uncompress_from_x(announcement.ephemeral_pub_key_x)
        random_number = viewing_key_pair.decrypt(
            EncryptedPayload(ephemeral_public_key=ephemeral_public_key, ciphertext=announcement.ciphertext)
        )
    except (StealthError, ValueError) as e:
        return _no_match(NoMatchReason.DECRYPTION_FAILED, e)

    try:
        keys = registry.get_stealth_keys(account)
    except RecipientNotRegistered as e:
        return _no_match(NoMatchReason.NOT_REGISTERED, e)
    except InvalidInput as e:
        return _no_match(NoMatchReason.INVALID_ACCOUNT, e)
    except RegistryUnavailable as e:
        return _no_match(NoMatchReason.REGISTRY_UNAVAILABLE, e)
    except Exception as e:
        # registries are pluggable; any failure of theirs is a lookup failure here
        logger.warning("[scanner] registry lookup for %s failed: %r", account, e)
        return _no_match(NoMatchReason.REGISTRY_UNAVAILABLE, e)

    try:
        keys = _stealth_keys(keys)
    except InvalidInput as e:
        return _no_match(NoMatchReason.NOT_REGISTERED, e)
    if not keys.is_registered:
        return _no_match(NoMatchReason.NOT_REGISTERED, f"{account} has no stealth keys")

    try:
        stealth_address = KeyPair(keys.spending_public_key).mul_public_key(random_number).address
    except (StealthError, ValueError) as e:
        return _no_match(NoMatchReason.DECRYPTION_FAILED, e)

    if stealth_address != announcement.receiver_address:
        logger.debug("[scanner] no match: computed %s, announced %s", stealth_address, announcement.receiver_address)
        return NoMatch(
            reason=NoMatchReason.ADDRESS_MISMATCH,
            detail="computed stealth address differs from announced receiver",
            stealth_address=stealth_address,
        )

    logger.debug("[scanner] MATCH %s", stealth_address)
    return Match(
        stealth_address=stealth_address,
        random_number=random_number,
        ephemeral_pub_key_x=announcement.ephemeral_pub_key_x,
        ciphertext=announcement.ciphertext,
        token_address=announcement.token_address,
        amount_or_id=announcement.amount_or_id,
    )


def _stealth_keys(keys) -> StealthKeys:
    # registries may answer None, or a mapping, for an unregistered account
    if keys is None:
        return StealthKeys()
    return parse_model(StealthKeys, keys)


def _no_match(reason: NoMatchReason, err) -> NoMatch:
    logger.debug("[scanner] no match (%s): %s", reason.value, err)
    return NoMatch(reason=reason, detail=str(err))
