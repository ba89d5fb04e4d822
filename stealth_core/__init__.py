from .errors import (
    StealthError,
    InvalidInput,
    InvalidKey,
    SignatureFormatError,
    InvalidPayload,
    MissingPrivateKey,
    RecipientNotRegistered,
    RegistryUnavailable,
)
from .hexcodec import LENGTHS, pad_hex
from .random_number import RandomNumber
from .models import Announcement, EncryptedPayload, StealthKeys, CompressedPublicKey, SmartAccountKeys
from .keypair import KeyPair, SECP_N
from .registry import KeyRegistry, InMemoryKeyRegistry, StealthKeyRegistry, prepare_keys_for_smart_account
from .results import Match, NoMatch, NoMatchReason
from .protocol import generate_key_pair, prepare_send, verify_announcement, StealthKeyPairs, SendPreparation
from .scan import scan_announcements, find_user_funds
from .config import Settings
