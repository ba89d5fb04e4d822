"""
Protocol tests: key generation, send preparation, announcement verification
"""

import hashlib

import pytest

from stealth_core import (
    Announcement,
    InvalidInput,
    KeyPair,
    Match,
    NoMatch,
    NoMatchReason,
    RecipientNotRegistered,
    RegistryUnavailable,
    SignatureFormatError,
    StealthKeys,
    generate_key_pair,
    prepare_send,
    verify_announcement,
)


class _StaticRegistry:
    def __init__(self, keys):
        self.keys = keys

    def get_stealth_keys(self, account):
        return self.keys


class _AbsentRegistry:
    """Answers None for every account."""

    def get_stealth_keys(self, account):
        return None


class _FailingRegistry:
    def __init__(self, exc):
        self.exc = exc

    def get_stealth_keys(self, account):
        raise self.exc


class TestGenerateKeyPair:

    def test_deterministic(self, alice_signature):
        first = generate_key_pair(alice_signature)
        second = generate_key_pair(alice_signature)
        assert first.spending_key_pair.private_key_hex == second.spending_key_pair.private_key_hex
        assert first.viewing_key_pair.private_key_hex == second.viewing_key_pair.private_key_hex

    def test_keys_are_sha256_of_r_and_s(self, alice_signature):
        keys = generate_key_pair(alice_signature)
        r = bytes.fromhex(alice_signature[2:66])
        s = bytes.fromhex(alice_signature[66:130])
        assert keys.spending_key_pair.private_key_hex == "0x" + hashlib.sha256(r).hexdigest()
        assert keys.viewing_key_pair.private_key_hex == "0x" + hashlib.sha256(s).hexdigest()

    def test_spending_and_viewing_differ(self, alice_keys):
        assert alice_keys.spending_key_pair != alice_keys.viewing_key_pair

    def test_accepts_bytes(self, alice_signature, alice_keys):
        keys = generate_key_pair(bytes.fromhex(alice_signature[2:]))
        assert keys.spending_key_pair == alice_keys.spending_key_pair

    def test_v_does_not_affect_keys(self, alice_signature, alice_keys):
        flipped = alice_signature[:-2] + ("1c" if alice_signature[-2:] == "1b" else "1b")
        keys = generate_key_pair(flipped)
        assert keys.spending_key_pair == alice_keys.spending_key_pair
        assert keys.viewing_key_pair == alice_keys.viewing_key_pair

    def test_different_signers_different_keys(self, alice_keys, bob_keys):
        assert alice_keys.spending_key_pair != bob_keys.spending_key_pair
        assert alice_keys.viewing_key_pair != bob_keys.viewing_key_pair

    @pytest.mark.parametrize("mangle", [
        lambda sig: sig[:-2],           # 64 bytes
        lambda sig: sig + "00",         # 66 bytes
        lambda sig: sig[:-1],           # odd length
        lambda sig: sig[2:],            # no 0x prefix
        lambda sig: "0X" + sig[2:],     # wrong prefix
        lambda sig: sig[:10] + "g" + sig[11:],
        lambda sig: "",
    ])
    def test_rejects_malformed_signature(self, alice_signature, mangle):
        with pytest.raises(SignatureFormatError):
            generate_key_pair(mangle(alice_signature))

    def test_signature_error_is_invalid_input(self):
        with pytest.raises(InvalidInput):
            generate_key_pair("0x1234")


class TestPrepareSend:

    def test_stealth_address_matches_recipient_private_derivation(self, alice, alice_keys, registry):
        prepared = prepare_send(alice.address, registry)
        random_number = alice_keys.viewing_key_pair.decrypt(prepared.encrypted)
        owned = alice_keys.spending_key_pair.mul_private_key(random_number)
        assert owned.address == prepared.stealth_key_pair.address
        assert not prepared.stealth_key_pair.has_private_key

    def test_pub_key_x_is_ephemeral_x(self, alice, registry):
        prepared = prepare_send(alice.address, registry)
        assert len(prepared.pub_key_x_coordinate) == 66
        assert prepared.pub_key_x_coordinate[2:] == prepared.encrypted.ephemeral_public_key[4:68]

    def test_fresh_randomness_per_send(self, alice, registry):
        first = prepare_send(alice.address, registry)
        second = prepare_send(alice.address, registry)
        assert first.stealth_key_pair.address != second.stealth_key_pair.address
        assert first.encrypted.ciphertext != second.encrypted.ciphertext

    def test_unregistered_recipient(self, carol, registry):
        with pytest.raises(RecipientNotRegistered):
            prepare_send(carol.address, registry)

    @pytest.mark.parametrize("missing", ["spending_public_key", "viewing_public_key"])
    def test_zero_valued_key_means_unregistered(self, alice_keys, missing):
        keys = {
            "spending_public_key": alice_keys.spending_key_pair.public_key_hex,
            "viewing_public_key": alice_keys.viewing_key_pair.public_key_hex,
        }
        keys[missing] = None
        with pytest.raises(RecipientNotRegistered):
            prepare_send("0x" + "ab" * 20, _StaticRegistry(StealthKeys(**keys)))

    def test_absent_answer_means_unregistered(self, alice):
        with pytest.raises(RecipientNotRegistered):
            prepare_send(alice.address, _AbsentRegistry())

    def test_malformed_answer_means_unregistered(self, alice):
        with pytest.raises(RecipientNotRegistered):
            prepare_send(alice.address, _StaticRegistry({"spending_public_key": "0x1234"}))

    def test_mapping_answer_accepted(self, alice, alice_keys):
        keys = {
            "spending_public_key": alice_keys.spending_key_pair.public_key_hex,
            "viewing_public_key": alice_keys.viewing_key_pair.public_key_hex,
        }
        prepared = prepare_send(alice.address, _StaticRegistry(keys))
        assert alice_keys.viewing_key_pair.decrypt(prepared.encrypted)

    def test_registry_failure_surfaces(self, alice):
        with pytest.raises(RegistryUnavailable):
            prepare_send(alice.address, _FailingRegistry(RegistryUnavailable("down")))


class TestVerifyAnnouncement:

    def test_end_to_end(self, alice, bob, alice_keys, registry, announce):
        """Bob pays alice; alice finds the payment and can spend from it."""
        prepared = prepare_send(alice.address, registry)
        announcement = announce(prepared, amount=5)

        result = verify_announcement(
            announcement, registry, alice_keys.viewing_key_pair.private_key_hex, alice.address
        )
        assert isinstance(result, Match)
        assert result.is_for_user
        assert result.stealth_address == prepared.stealth_key_pair.address
        assert result.amount_or_id == 5
        assert result.ephemeral_pub_key_x == prepared.pub_key_x_coordinate
        assert result.ciphertext == prepared.encrypted.ciphertext

        stealth_private_key = KeyPair.compute_stealth_private_key(
            alice_keys.spending_key_pair.private_key_hex, result.random_number
        )
        assert KeyPair(stealth_private_key).address == prepared.stealth_key_pair.address

    def test_accepts_announcement_model_and_key_pair(self, alice, alice_keys, registry, announce):
        prepared = prepare_send(alice.address, registry)
        announcement = Announcement(**announce(prepared))
        result = verify_announcement(announcement, registry, alice_keys.viewing_key_pair, alice.address)
        assert result.is_for_user

    def test_tampered_ciphertext(self, alice, alice_keys, registry, announce):
        prepared = prepare_send(alice.address, registry)
        announcement = announce(prepared)
        ct = announcement["ciphertext"]
        announcement["ciphertext"] = ct[:-2] + format(int(ct[-2:], 16) ^ 0x01, "02x")

        result = verify_announcement(
            announcement, registry, alice_keys.viewing_key_pair.private_key_hex, alice.address
        )
        assert not result.is_for_user
        assert result.reason == NoMatchReason.ADDRESS_MISMATCH

    def test_wrong_viewing_key(self, alice, bob_keys, registry, announce):
        prepared = prepare_send(alice.address, registry)
        result = verify_announcement(
            announce(prepared), registry, bob_keys.viewing_key_pair.private_key_hex, alice.address
        )
        assert isinstance(result, NoMatch)
        assert not result.is_for_user

    def test_payment_to_someone_else(self, alice, bob, bob_keys, registry, announce):
        prepared = prepare_send(alice.address, registry)
        result = verify_announcement(
            announce(prepared), registry, bob_keys.viewing_key_pair.private_key_hex, bob.address
        )
        assert not result.is_for_user
        assert result.reason == NoMatchReason.ADDRESS_MISMATCH
        assert result.stealth_address is not None

    def test_unregistered_account(self, alice, carol, alice_keys, registry, announce):
        prepared = prepare_send(alice.address, registry)
        result = verify_announcement(
            announce(prepared), registry, alice_keys.viewing_key_pair.private_key_hex, carol.address
        )
        assert not result.is_for_user
        assert result.reason == NoMatchReason.NOT_REGISTERED

    @pytest.mark.parametrize("exc,reason", [
        (RegistryUnavailable("timeout"), NoMatchReason.REGISTRY_UNAVAILABLE),
        (RuntimeError("boom"), NoMatchReason.REGISTRY_UNAVAILABLE),
        (RecipientNotRegistered("0x" + "00" * 20), NoMatchReason.NOT_REGISTERED),
    ])
    def test_registry_failures_become_no_match(self, alice, alice_keys, registry, announce, exc, reason):
        prepared = prepare_send(alice.address, registry)
        result = verify_announcement(
            announce(prepared), _FailingRegistry(exc), alice_keys.viewing_key_pair.private_key_hex, alice.address
        )
        assert not result.is_for_user
        assert result.reason == reason

    def test_empty_keys_from_registry(self, alice, alice_keys, registry, announce):
        prepared = prepare_send(alice.address, registry)
        result = verify_announcement(
            announce(prepared), _StaticRegistry(StealthKeys()), alice_keys.viewing_key_pair.private_key_hex, alice.address
        )
        assert result.reason == NoMatchReason.NOT_REGISTERED

    def test_absent_registry_answer(self, alice, alice_keys, registry, announce):
        announcement = announce(prepare_send(alice.address, registry))
        result = verify_announcement(
            announcement, _AbsentRegistry(), alice_keys.viewing_key_pair.private_key_hex, alice.address
        )
        assert not result.is_for_user
        assert result.reason == NoMatchReason.NOT_REGISTERED

    @pytest.mark.parametrize("answer", ["garbage", {"spending_public_key": "0x1234"}, 42])
    def test_malformed_registry_answer(self, alice, alice_keys, registry, announce, answer):
        announcement = announce(prepare_send(alice.address, registry))
        result = verify_announcement(
            announcement, _StaticRegistry(answer), alice_keys.viewing_key_pair.private_key_hex, alice.address
        )
        assert result.reason == NoMatchReason.NOT_REGISTERED

    @pytest.mark.parametrize("account", [None, "0x1234", "not-an-address"])
    def test_invalid_account(self, alice, alice_keys, registry, announce, account):
        announcement = announce(prepare_send(alice.address, registry))
        result = verify_announcement(
            announcement, registry, alice_keys.viewing_key_pair.private_key_hex, account
        )
        assert not result.is_for_user
        assert result.reason == NoMatchReason.INVALID_ACCOUNT

    @pytest.mark.parametrize("mutate", [
        lambda a: a.pop("ciphertext"),
        lambda a: a.pop("receiver_address"),
        lambda a: a.update(ciphertext="0x1234"),
        lambda a: a.update(receiver_address="not-an-address"),
        lambda a: a.update(ephemeral_pub_key_x="nothex"),
        lambda a: a.update(amount_or_id="lots"),
    ])
    def test_malformed_announcement(self, alice, alice_keys, registry, announce, mutate):
        announcement = announce(prepare_send(alice.address, registry))
        mutate(announcement)
        result = verify_announcement(
            announcement, registry, alice_keys.viewing_key_pair.private_key_hex, alice.address
        )
        assert not result.is_for_user
        assert result.reason == NoMatchReason.MALFORMED_ANNOUNCEMENT

    def test_not_a_mapping(self, alice, alice_keys, registry):
        result = verify_announcement(None, registry, alice_keys.viewing_key_pair.private_key_hex, alice.address)
        assert result.reason == NoMatchReason.MALFORMED_ANNOUNCEMENT

    def test_x_not_on_curve(self, alice, alice_keys, registry, announce):
        announcement = announce(prepare_send(alice.address, registry))
        announcement["ephemeral_pub_key_x"] = "0x" + "ff" * 32
        result = verify_announcement(
            announcement, registry, alice_keys.viewing_key_pair.private_key_hex, alice.address
        )
        assert result.reason == NoMatchReason.DECRYPTION_FAILED

    @pytest.mark.parametrize("viewing_key", ["0x1234", "", None, "0x" + "00" * 32])
    def test_invalid_viewing_key(self, alice, registry, announce, viewing_key):
        announcement = announce(prepare_send(alice.address, registry))
        result = verify_announcement(announcement, registry, viewing_key, alice.address)
        assert result.reason == NoMatchReason.INVALID_VIEWING_KEY

    def test_public_only_viewing_key(self, alice, alice_keys, registry, announce):
        announcement = announce(prepare_send(alice.address, registry))
        result = verify_announcement(
            announcement, registry, alice_keys.viewing_key_pair.public_key_hex, alice.address
        )
        assert result.reason == NoMatchReason.INVALID_VIEWING_KEY
