"""
stealth_core test fixtures
"""

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from stealth_core import InMemoryKeyRegistry, generate_key_pair
from stealth_core.hexcodec import b2h

# fixed accounts, so derived stealth keys are deterministic across runs
ALICE_KEY = "0x" + "11" * 32
BOB_KEY = "0x" + "22" * 32
CAROL_KEY = "0x" + "33" * 32

KEY_GENERATION_MESSAGE = "Sign this message to generate your stealth keys"


def sign_key_message(private_key: str) -> str:
    signed = Account.sign_message(encode_defunct(text=KEY_GENERATION_MESSAGE), private_key=private_key)
    return b2h(bytes(signed.signature))


@pytest.fixture
def alice():
    return Account.from_key(ALICE_KEY)


@pytest.fixture
def bob():
    return Account.from_key(BOB_KEY)


@pytest.fixture
def carol():
    """Never registers."""
    return Account.from_key(CAROL_KEY)


@pytest.fixture
def alice_signature() -> str:
    return sign_key_message(ALICE_KEY)


@pytest.fixture
def alice_keys(alice_signature):
    return generate_key_pair(alice_signature)


@pytest.fixture
def bob_keys():
    return generate_key_pair(sign_key_message(BOB_KEY))


@pytest.fixture
def registry(alice, bob, alice_keys, bob_keys) -> InMemoryKeyRegistry:
    """Registry with alice and bob registered."""
    reg = InMemoryKeyRegistry()
    reg.set_stealth_keys(
        alice.address,
        alice_keys.spending_key_pair.public_key_hex,
        alice_keys.viewing_key_pair.public_key_hex,
    )
    reg.set_stealth_keys(
        bob.address,
        bob_keys.spending_key_pair.public_key_hex,
        bob_keys.viewing_key_pair.public_key_hex,
    )
    return reg


@pytest.fixture
def announce():
    """Turn a SendPreparation into the announcement a sender would publish."""
    def make(prepared, amount=10**18, token="0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"):
        return {
            "ephemeral_pub_key_x": prepared.pub_key_x_coordinate,
            "ciphertext": prepared.encrypted.ciphertext,
            "receiver_address": prepared.stealth_key_pair.address,
            "token_address": token,
            "amount_or_id": amount,
        }
    return make
