# stealth_core/registry.py
"""
Stealth key registry collaborators.

The on-chain registry stores each key compressed, as (prefix, x) uint256
pairs. A zero in any slot means the account has not registered.
"""
import logging
from typing import Dict, Optional, Protocol, Tuple

import requests
from web3 import Web3
from web3.exceptions import Web3Exception

from .config import Settings
from .errors import InvalidInput, RecipientNotRegistered, RegistryUnavailable
from .keypair import KeyPair
from .models import SmartAccountKeys, StealthKeys

logger = logging.getLogger(__name__)

REGISTRY_ADDRESSES = {
    80001: "0x9c2608361246B598d9587723bDBD3D5458eaE1C4",  # mumbai
}
DEFAULT_REGISTRY_ADDRESS = "0x31fe56609C65Cd0C510E7125f051D440424D38f3"

_UINT = {"type": "uint256"}

STEALTH_KEY_REGISTRY_ABI = [
    {
        "type": "event", "name": "StealthKeyChanged", "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "registrant", "type": "address"},
            {"indexed": False, "name": "spendingPubKeyPrefix", **_UINT},
            {"indexed": False, "name": "spendingPubKey", **_UINT},
            {"indexed": False, "name": "viewingPubKeyPrefix", **_UINT},
            {"indexed": False, "name": "viewingPubKey", **_UINT},
        ],
    },
    {
        "type": "function", "name": "setStealthKeys", "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spendingPubKeyPrefix", **_UINT},
            {"name": "spendingPubKey", **_UINT},
            {"name": "viewingPubKeyPrefix", **_UINT},
            {"name": "viewingPubKey", **_UINT},
        ],
        "outputs": [],
    },
    {
        "type": "function", "name": "setStealthKeysOnBehalf", "stateMutability": "nonpayable",
        "inputs": [
            {"name": "registrant", "type": "address"},
            {"name": "spendingPubKeyPrefix", **_UINT},
            {"name": "spendingPubKey", **_UINT},
            {"name": "viewingPubKeyPrefix", **_UINT},
            {"name": "viewingPubKey", **_UINT},
            {"name": "v", "type": "uint8"},
            {"name": "r", "type": "bytes32"},
            {"name": "s", "type": "bytes32"},
        ],
        "outputs": [],
    },
    {
        "type": "function", "name": "stealthKeys", "stateMutability": "view",
        "inputs": [{"name": "registrant", "type": "address"}],
        "outputs": [
            {"name": "spendingPubKeyPrefix", **_UINT},
            {"name": "spendingPubKey", **_UINT},
            {"name": "viewingPubKeyPrefix", **_UINT},
            {"name": "viewingPubKey", **_UINT},
        ],
    },
]

# errors that mean "could not talk to the chain", as opposed to "bad input"
_NETWORK_ERRORS = (Web3Exception, requests.exceptions.RequestException, OSError)


class KeyRegistry(Protocol):
    def get_stealth_keys(self, account: str) -> StealthKeys:
        ...


def _checksum(account: str) -> str:
    if not Web3.is_address(account):
        raise InvalidInput(f"invalid account address: {account}")
    return Web3.to_checksum_address(account)


def prepare_keys_for_smart_account(spending_public_key: str, viewing_public_key: str) -> SmartAccountKeys:
    """Compressed (prefix, x) form of both keys, ready for a setStealthKeys call."""
    spending = KeyPair.compress_public_key(spending_public_key)
    viewing = KeyPair.compress_public_key(viewing_public_key)
    return SmartAccountKeys(
        spending_prefix=spending.prefix,
        spending_pub_key_x=spending.pub_key_x_coordinate,
        viewing_prefix=viewing.prefix,
        viewing_pub_key_x=viewing.pub_key_x_coordinate,
    )


def keys_from_registry_slots(account: str, slots: Tuple[int, int, int, int]) -> StealthKeys:
    """Turn the four stored uint256 values back into uncompressed public keys."""
    spending_prefix, spending_x, viewing_prefix, viewing_x = slots
    if spending_prefix == 0 or spending_x == 0 or viewing_prefix == 0 or viewing_x == 0:
        raise RecipientNotRegistered(account)
    return StealthKeys(
        spending_public_key=KeyPair.uncompress_from_x(spending_x, int(spending_prefix)),
        viewing_public_key=KeyPair.uncompress_from_x(viewing_x, int(viewing_prefix)),
    )


class InMemoryKeyRegistry:
    """Registry kept in a dict, storing exactly what the contract stores."""

    def __init__(self):
        self._slots: Dict[str, Tuple[int, int, int, int]] = {}

    def set_stealth_keys(self, account: str, spending_public_key: str, viewing_public_key: str) -> SmartAccountKeys:
        account = _checksum(account)
        keys = prepare_keys_for_smart_account(spending_public_key, viewing_public_key)
        self._slots[account] = keys.as_contract_args()
        logger.info("[registry] stealth keys set for %s", account)
        return keys

    def get_stealth_keys(self, account: str) -> StealthKeys:
        slots = self._slots.get(_checksum(account), (0, 0, 0, 0))
        return keys_from_registry_slots(account, slots)


class StealthKeyRegistry:
    """
    Read access to the deployed StealthKeyRegistry contract.

    Writes are left to the caller: `build_set_stealth_keys_transaction` returns an
    unsigned transaction and `prepare_keys_for_smart_account` returns bare
    arguments for account-abstraction wallets.
    """

    def __init__(self, w3: Web3, address: Optional[str] = None):
        self.w3 = w3
        if address is None:
            try:
                chain_id = w3.eth.chain_id
            except _NETWORK_ERRORS as e:
                raise RegistryUnavailable(f"could not read chain id: {e}")
            address = REGISTRY_ADDRESSES.get(int(chain_id), DEFAULT_REGISTRY_ADDRESS)
        self.address = _checksum(address)
        self._contract = w3.eth.contract(address=self.address, abi=STEALTH_KEY_REGISTRY_ABI)

    @classmethod
    def from_settings(cls, settings: Settings) -> "StealthKeyRegistry":
        w3 = Web3(Web3.HTTPProvider(settings.rpc_url, request_kwargs={"timeout": settings.http_timeout_s}))
        return cls(w3, settings.registry_address)

    def get_stealth_keys(self, account: str) -> StealthKeys:
        account = _checksum(account)
        try:
            slots = self._contract.functions.stealthKeys(account).call()
        except _NETWORK_ERRORS as e:
            logger.warning("[registry] stealthKeys(%s) failed: %s", account, e)
            raise RegistryUnavailable(f"stealthKeys({account}) failed: {e}")
        logger.info("[registry] fetched stealth keys for %s", account)
        return keys_from_registry_slots(account, tuple(int(v) for v in slots))

    prepare_keys_for_smart_account = staticmethod(prepare_keys_for_smart_account)

    def build_set_stealth_keys_transaction(self, spending_public_key: str, viewing_public_key: str, sender: str) -> dict:
        """Unsigned setStealthKeys transaction for an externally owned account."""
        keys = prepare_keys_for_smart_account(spending_public_key, viewing_public_key)
        try:
            return self._contract.functions.setStealthKeys(*keys.as_contract_args()).build_transaction({
                "from": _checksum(sender),
            })
        except _NETWORK_ERRORS as e:
            raise RegistryUnavailable(f"could not build setStealthKeys transaction: {e}")
