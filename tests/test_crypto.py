"""
Tests for the cipher primitive.

Tests cover:
- Key derivation (determinism, size, empty input)
- Encrypt/decrypt round trip and IV freshness
- Fail-closed behavior for wrong keys, wrong IVs and tampered ciphertext
- IV hex validation at the storage boundary
- RNG failure propagation
- KeyMaterial wiping and redaction
"""
import hashlib
import os
from unittest import mock

import pytest

from filevault.vault import crypto
from filevault.vault.crypto import (
    IV_SIZE,
    TAG_SIZE,
    decrypt,
    decrypt_stored,
    derive_key,
    encode_iv,
    encrypt,
    from_hex,
    parse_iv,
    to_hex,
)
from filevault.vault.config import VaultConfig, set_config
from filevault.vault.exceptions import (
    ConfigurationError,
    DecryptionFailed,
    InvalidIV,
    RNGFailure,
)
from filevault.vault.material import KeyMaterial


# --- Test Key Derivation ---

class TestDeriveKey:
    """Tests for derive_key."""

    def test_key_is_32_bytes(self):
        assert len(derive_key("correct-key-123")) == 32

    def test_deterministic(self):
        assert derive_key("abc") == derive_key("abc")

    def test_matches_sha256_of_utf8(self):
        secret = "pässwörd-ключ"
        assert derive_key(secret) == hashlib.sha256(secret.encode("utf-8")).digest()

    def test_empty_secret_is_accepted(self):
        """The primitive has no failure mode; callers reject empty secrets."""
        assert derive_key("") == hashlib.sha256(b"").digest()

    def test_key_material_equals_string(self):
        with KeyMaterial("correct-key-123") as key:
            assert derive_key(key) == derive_key("correct-key-123")

    def test_different_secrets_differ(self):
        assert derive_key("a") != derive_key("b")


# --- Test Round Trip ---

class TestEncryptDecrypt:
    """Tests for encrypt/decrypt."""

    @pytest.mark.parametrize("plaintext", [
        b"",
        b"hello world",
        b"x" * 15,
        b"x" * 16,
        b"x" * 17,
        bytes(range(256)) * 40,
    ])
    def test_round_trip(self, plaintext):
        iv, ciphertext = encrypt(plaintext, "correct-key-123")
        assert decrypt(ciphertext, "correct-key-123", iv) == plaintext

    def test_iv_is_16_bytes(self):
        payload = encrypt(b"data", "secret")
        assert len(payload.iv) == IV_SIZE

    def test_ciphertext_is_padded_body_plus_tag(self):
        payload = encrypt(b"hello world", "secret")
        # 11 bytes pad to one block
        assert len(payload.ciphertext) == 16 + TAG_SIZE

    def test_ciphertext_differs_from_plaintext(self):
        payload = encrypt(b"hello world" * 4, "secret")
        assert b"hello world" not in payload.ciphertext

    def test_hex_helpers(self):
        payload = encrypt(b"hello world", "secret")
        assert payload.iv_hex == payload.iv.hex()
        assert len(payload.iv_hex) == 32
        assert payload.iv_hex == payload.iv_hex.lower()
        assert from_hex(payload.ciphertext_hex) == payload.ciphertext

    def test_iv_uniqueness(self):
        """10,000 encryptions of the same input never repeat an IV."""
        ivs = {encrypt(b"p", "s").iv for _ in range(10_000)}
        assert len(ivs) == 10_000

    def test_same_input_different_ciphertext(self):
        first = encrypt(b"hello world", "secret")
        second = encrypt(b"hello world", "secret")
        assert first.ciphertext != second.ciphertext

    def test_key_material_round_trip(self):
        with KeyMaterial("correct-key-123") as key:
            iv, ciphertext = encrypt(b"hello world", key)
            assert decrypt(ciphertext, key, iv) == b"hello world"


# --- Test Fail-Closed Decryption ---

class TestDecryptFailures:
    """Tests for decryption failure paths."""

    def test_wrong_key_fails(self):
        iv, ciphertext = encrypt(b"hello world", "correct-key-123")
        with pytest.raises(DecryptionFailed):
            decrypt(ciphertext, "wrong-key-456", iv)

    def test_wrong_key_fails_for_many_pairs(self):
        """No wrong key ever yields garbage plaintext."""
        for i in range(300):
            iv, ciphertext = encrypt(os.urandom(i % 50), f"key-{i}")
            with pytest.raises(DecryptionFailed):
                decrypt(ciphertext, f"other-{i}", iv)

    def test_wrong_iv_fails(self):
        _, ciphertext = encrypt(b"hello world", "secret")
        with pytest.raises(DecryptionFailed):
            decrypt(ciphertext, "secret", os.urandom(16))

    def test_flipped_body_byte_fails(self):
        iv, ciphertext = encrypt(b"hello world", "secret")
        tampered = bytearray(ciphertext)
        tampered[0] ^= 0x01
        with pytest.raises(DecryptionFailed):
            decrypt(bytes(tampered), "secret", iv)

    def test_flipped_tag_byte_fails(self):
        iv, ciphertext = encrypt(b"hello world", "secret")
        tampered = bytearray(ciphertext)
        tampered[-1] ^= 0x80
        with pytest.raises(DecryptionFailed):
            decrypt(bytes(tampered), "secret", iv)

    @pytest.mark.parametrize("size", [0, 1, 16, TAG_SIZE, TAG_SIZE + 15, TAG_SIZE + 17])
    def test_bad_length_fails(self, size):
        with pytest.raises(DecryptionFailed):
            decrypt(b"\x00" * size, "secret", os.urandom(16))

    def test_truncated_ciphertext_fails(self):
        iv, ciphertext = encrypt(b"x" * 40, "secret")
        with pytest.raises(DecryptionFailed):
            decrypt(ciphertext[16:], "secret", iv)

    @pytest.mark.parametrize("iv", [b"", b"\x00" * 15, b"\x00" * 17, b"\x00" * 32])
    def test_wrong_iv_size_is_invalid_iv(self, iv):
        _, ciphertext = encrypt(b"data", "secret")
        with pytest.raises(InvalidIV):
            decrypt(ciphertext, "secret", iv)

    def test_invalid_iv_is_not_decryption_failed(self):
        assert not issubclass(InvalidIV, DecryptionFailed)

    def test_bad_hex_ciphertext(self):
        with pytest.raises(DecryptionFailed):
            from_hex("zz")


# --- Test IV Codec ---

class TestIVCodec:
    """Tests for the IV storage encoding."""

    def test_encode_parse(self):
        iv = os.urandom(16)
        encoded = encode_iv(iv)
        assert len(encoded) == 32
        assert parse_iv(encoded) == iv

    def test_uppercase_hex_rejected(self):
        """Stored IVs are lowercase hex; anything else needs repair."""
        with pytest.raises(InvalidIV):
            parse_iv("AB" * 16)
        assert parse_iv("ab" * 16) == b"\xab" * 16

    @pytest.mark.parametrize("bad", [
        "",
        "0" * 30,
        "0" * 31,
        "0" * 33,
        "0" * 34,
        "g" * 32,
        "0" * 30 + "-1",
        " " + "0" * 31,
        "0x" + "0" * 30,
    ])
    def test_malformed_iv_rejected(self, bad):
        with pytest.raises(InvalidIV):
            parse_iv(bad)

    def test_non_string_rejected(self):
        with pytest.raises(InvalidIV):
            parse_iv(None)

    def test_encode_wrong_size(self):
        with pytest.raises(InvalidIV):
            encode_iv(b"\x00" * 8)

    def test_decrypt_stored_rejects_before_cipher(self):
        _, ciphertext = encrypt(b"data", "secret")
        with mock.patch.object(crypto, "decrypt") as cipher:
            with pytest.raises(InvalidIV):
                decrypt_stored(ciphertext, "secret", "abc")
            cipher.assert_not_called()

    def test_decrypt_stored_round_trip(self):
        payload = encrypt(b"hello world", "secret")
        assert decrypt_stored(payload.ciphertext, "secret", payload.iv_hex) == b"hello world"

    def test_ciphertext_hex_round_trip(self):
        data = os.urandom(64)
        assert from_hex(to_hex(data)) == data


# --- Test Configured Algorithm ---

class TestConfiguredAlgorithm:
    """The cipher is chosen from VaultConfig.algorithm on every call."""

    def test_unknown_algorithm_refuses_encrypt(self):
        set_config(VaultConfig.model_construct(algorithm="aes-128-gcm"))
        with pytest.raises(ConfigurationError):
            encrypt(b"data", "secret")

    def test_unknown_algorithm_refuses_decrypt(self, vault_config):
        iv, ciphertext = encrypt(b"data", "secret")
        set_config(vault_config.model_copy(update={"algorithm": "aes-128-gcm"}))
        with pytest.raises(ConfigurationError):
            decrypt(ciphertext, "secret", iv)


# --- Test RNG Failure ---

class TestRNGFailure:
    """RNG failures abort the encryption; no fallback IV is used."""

    def test_oserror_raises_rng_failure(self):
        with mock.patch.object(crypto.os, "urandom", side_effect=OSError("no entropy")):
            with pytest.raises(RNGFailure):
                encrypt(b"data", "secret")

    def test_short_read_raises_rng_failure(self):
        with mock.patch.object(crypto.os, "urandom", return_value=b"\x00" * 4):
            with pytest.raises(RNGFailure):
                encrypt(b"data", "secret")


# --- Test KeyMaterial ---

class TestKeyMaterial:
    """Tests for the wipeable secret holder."""

    def test_wipe_zeroes_buffer(self):
        key = KeyMaterial("correct-key-123")
        buf = key.buffer
        key.wipe()
        assert all(b == 0 for b in buf)
        assert key.wiped

    def test_context_manager_wipes(self):
        with KeyMaterial("secret") as key:
            assert key.reveal() == "secret"
        assert key.wiped
        with pytest.raises(ValueError):
            key.reveal()

    def test_repr_is_redacted(self):
        key = KeyMaterial("correct-key-123")
        assert "correct-key-123" not in repr(key)
        assert "correct-key-123" not in str(key)

    def test_len_counts_characters(self):
        assert len(KeyMaterial("ключ")) == 4

    def test_empty_is_falsy(self):
        assert not KeyMaterial("")
        assert KeyMaterial("x")
