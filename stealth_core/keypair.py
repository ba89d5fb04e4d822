# stealth_core/keypair.py
"""
secp256k1 key pairs for stealth payments.

KeyPair is the only place that touches curve arithmetic. Point math goes
through coincurve, ECDH through `cryptography` (ECDH + one-time pad over a
sha256 shared secret). Both providers are imported, and the curve object
created, once at module load.
"""
import hashlib
from typing import Mapping, Optional, Tuple, Union

from coincurve import PrivateKey, PublicKey
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from web3 import Web3

from .errors import InvalidInput, InvalidKey, InvalidPayload, MissingPrivateKey
from .hexcodec import LENGTHS, b2h, h2b, int_to_hex32, is_hex, to_int
from .models import CompressedPublicKey, EncryptedPayload, parse_model
from .random_number import RandomNumber

SECP_N = int("0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)

CURVE = ec.SECP256K1()

_PRIVATE_KEY_HEX_LEN = 2 + 2 * LENGTHS["private_key"]   # 66
_PUBLIC_KEY_HEX_LEN = 2 + 2 * LENGTHS["public_key"]     # 132

Scalar = Union[RandomNumber, str, int]


def _scalar(value: Scalar) -> int:
    if isinstance(value, RandomNumber):
        return value.value
    if isinstance(value, str):
        if not is_hex(value) or len(value) <= 2:
            raise InvalidInput("scalar must be a hex string with 0x prefix")
        return int(value, 16)
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise InvalidInput("scalar must be non-negative")
        return value
    raise InvalidInput(f"unsupported scalar type {type(value).__name__}")


class KeyPair:
    """
    Either a full key pair (private scalar + public point) or a public-key-only view.

    Construct from a 0x-prefixed 32-byte private key (66 chars) or a 0x04-prefixed
    65-byte uncompressed public key (132 chars). Instances are immutable; every
    other representation is computed from the canonical key on access.
    """

    __slots__ = ("_private_key", "_public_key")

    def __init__(self, key: str):
        if not is_hex(key):
            raise InvalidKey("Key must be in hex format with 0x prefix")

        self._private_key: Optional[PrivateKey] = None
        if len(key) == _PRIVATE_KEY_HEX_LEN:
            try:
                self._private_key = PrivateKey(h2b(key))
            except ValueError as e:
                raise InvalidKey(f"Invalid secp256k1 private key: {e}")
            self._public_key: PublicKey = self._private_key.public_key
        elif len(key) == _PUBLIC_KEY_HEX_LEN:
            if key[2:4] != "04":
                raise InvalidKey("Public key must be uncompressed with 0x04 prefix")
            try:
                self._public_key = PublicKey(h2b(key))
            except ValueError as e:
                raise InvalidKey(f"Invalid secp256k1 public key: {e}")
        else:
            raise InvalidKey(
                "Key must be a 66 character private key or a 132 character public key"
            )

    # ---- views -------------------------------------------------------------

    @property
    def has_private_key(self) -> bool:
        return self._private_key is not None

    @property
    def private_key_hex(self) -> Optional[str]:
        if self._private_key is None:
            return None
        return b2h(self._private_key.secret)

    @property
    def public_key_bytes(self) -> bytes:
        return self._public_key.format(compressed=False)

    @property
    def public_key_hex(self) -> str:
        return b2h(self.public_key_bytes)

    @property
    def public_key_hex_slim(self) -> str:
        """x || y without the 0x04 prefix."""
        return self.public_key_bytes[1:].hex()

    @property
    def public_key_coords(self) -> Tuple[str, str]:
        x, y = self._public_key.point()
        return int_to_hex32(x), int_to_hex32(y)

    def get_public(self, compressed: bool = False) -> str:
        return b2h(self._public_key.format(compressed=compressed))

    @property
    def address(self) -> str:
        """EIP-55 checksum address: last 20 bytes of keccak256(x || y)."""
        digest = Web3.keccak(self.public_key_bytes[1:])
        return Web3.to_checksum_address(b2h(digest[-20:]))

    def __eq__(self, other):
        return isinstance(other, KeyPair) and other.public_key_bytes == self.public_key_bytes

    def __hash__(self):
        return hash(self.public_key_bytes)

    def __repr__(self):
        kind = "private" if self.has_private_key else "public"
        return f"KeyPair({kind}, address={self.address})"

    # ---- coordinate transforms ---------------------------------------------

    @staticmethod
    def uncompress_from_x(pkx: Union[int, str], prefix: Optional[int] = None) -> str:
        """
        Rebuild an uncompressed public key from its x-coordinate.

        When `prefix` is omitted the point is assumed to have even y (prefix 2).
        That is only safe where the result feeds ECDH: the shared secret hashes the
        x-coordinate of the shared point alone, and k*(x, y) and k*(x, -y) share
        their x. Anything that needs the canonical point (address derivation,
        comparing against a registered key) must pass the real prefix, since the
        x-coordinate alone cannot tell the two points apart.
        """
        try:
            x = to_int(pkx)
            x_hex = int_to_hex32(x)
        except InvalidInput as e:
            raise InvalidKey(f"Invalid x-coordinate: {e}")

        if not prefix:
            prefix = 2
        try:
            prefix = int(prefix)
        except (TypeError, ValueError):
            raise InvalidKey("Prefix must be 2 or 3")
        if prefix not in (2, 3):
            raise InvalidKey("Prefix must be 2 or 3")

        try:
            point = PublicKey(bytes([prefix]) + h2b(x_hex))
        except ValueError as e:
            raise InvalidKey(f"x-coordinate is not on secp256k1: {e}")
        return b2h(point.format(compressed=False))

    @staticmethod
    def compress_public_key(uncompressed_public_key: str) -> CompressedPublicKey:
        """Split an uncompressed key into its sign prefix (2 or 3) and x-coordinate."""
        if not isinstance(uncompressed_public_key, str) or len(uncompressed_public_key) != _PUBLIC_KEY_HEX_LEN:
            raise InvalidKey("Expected a 132 character uncompressed public key")
        return KeyPair(uncompressed_public_key)._compressed()

    def _compressed(self) -> CompressedPublicKey:
        c = self._public_key.format(compressed=True)
        return CompressedPublicKey(prefix=c[0], pub_key_x_coordinate=b2h(c[1:]))

    # ---- ECDH --------------------------------------------------------------

    @staticmethod
    def get_shared_secret(private_key_hex: str, public_key_hex: str) -> str:
        """
        sha256 of the x-coordinate of private_key * public_key, as 0x-hex.

        Only x is hashed, never the sign prefix, so a counterpart point rebuilt
        with `uncompress_from_x` under the wrong parity yields the same secret.
        Both encrypt and decrypt must use this exact derivation; a mismatch does
        not fail, it silently decrypts to garbage.
        """
        if not is_hex(private_key_hex) or len(private_key_hex) != _PRIVATE_KEY_HEX_LEN:
            raise InvalidKey("Invalid private key")
        if not is_hex(public_key_hex) or len(public_key_hex) != _PUBLIC_KEY_HEX_LEN:
            raise InvalidKey("Invalid public key")

        k = int(private_key_hex, 16)
        if not 1 <= k < SECP_N:
            raise InvalidKey("Invalid private key")
        try:
            priv = ec.derive_private_key(k, CURVE)
            pub = ec.EllipticCurvePublicKey.from_encoded_point(CURVE, h2b(public_key_hex))
        except ValueError as e:
            raise InvalidKey(f"Invalid key for ECDH: {e}")

        # cryptography's ECDH output is the 32-byte x-coordinate of the shared point
        shared_x = priv.exchange(ec.ECDH(), pub)
        return b2h(hashlib.sha256(shared_x).digest())

    def encrypt(self, number: RandomNumber) -> EncryptedPayload:
        """Encrypt `number` to this public key. No private key needed."""
        if not isinstance(number, RandomNumber):
            raise InvalidInput("encrypt expects a RandomNumber")

        ephemeral = ec.generate_private_key(CURVE)
        ephemeral_private_key_hex = int_to_hex32(ephemeral.private_numbers().private_value)
        ephemeral_public_key = ephemeral.public_key().public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.UncompressedPoint,
        )

        shared_secret = KeyPair.get_shared_secret(ephemeral_private_key_hex, self.public_key_hex)
        ciphertext = number.value ^ int(shared_secret, 16)
        return EncryptedPayload(
            ephemeral_public_key=b2h(ephemeral_public_key),
            ciphertext=int_to_hex32(ciphertext),
        )

    def decrypt(self, payload: Union[EncryptedPayload, Mapping]) -> str:
        """Recover the random number (32-byte 0x-hex) from an EncryptedPayload."""
        payload = parse_model(EncryptedPayload, payload, InvalidPayload)
        if self._private_key is None:
            raise MissingPrivateKey("KeyPair has no associated private key to decrypt with")

        try:
            shared_secret = KeyPair.get_shared_secret(self.private_key_hex, payload.ephemeral_public_key)
        except InvalidKey as e:
            raise InvalidPayload(f"ephemeral_public_key is not usable: {e}")
        plaintext = int(payload.ciphertext, 16) ^ int(shared_secret, 16)
        return int_to_hex32(plaintext)

    # ---- scalar multiplication ---------------------------------------------

    def mul_public_key(self, value: Scalar) -> "KeyPair":
        """Public-only KeyPair for (value mod n) * P."""
        k = _scalar(value) % SECP_N
        if k == 0:
            raise InvalidInput("scalar is zero modulo the curve order")
        point = self._public_key.multiply(k.to_bytes(32, "big"))
        return KeyPair(b2h(point.format(compressed=False)))

    def mul_private_key(self, value: Scalar) -> "KeyPair":
        """KeyPair for the private scalar (priv * value) mod n."""
        if self._private_key is None:
            raise MissingPrivateKey("KeyPair has no associated private key to multiply")
        k = (int.from_bytes(self._private_key.secret, "big") * _scalar(value)) % SECP_N
        if k == 0:
            raise InvalidInput("scalar is zero modulo the curve order")
        return KeyPair(int_to_hex32(k))

    @staticmethod
    def compute_stealth_private_key(spending_private_key: str, random_number: Scalar) -> str:
        """Private key controlling the stealth address derived with `random_number`."""
        stealth = KeyPair(spending_private_key).mul_private_key(random_number)
        if stealth.private_key_hex is None:
            raise MissingPrivateKey("Stealth key pair must have a private key")
        return stealth.private_key_hex
