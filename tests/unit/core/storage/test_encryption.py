"""Tests for PayloadCipher — sealing, opening and key rotation."""

from __future__ import annotations

import pytest

from pawpass.core.storage.encryption import EncryptionError, PayloadCipher


class TestPayloadCipher:
    def test_seal_hides_plaintext(self, cipher):
        sealed = cipher.seal({"vaccine_name": "Rabies"})
        assert "Rabies" not in sealed
        assert cipher.open(sealed) == {"vaccine_name": "Rabies"}

    def test_none_and_empty(self, cipher):
        assert cipher.seal(None) == ""
        assert cipher.open("") is None

    def test_wrong_key_raises(self, cipher):
        sealed = cipher.seal({"a": 1})
        other = PayloadCipher(PayloadCipher.generate_key())
        with pytest.raises(EncryptionError, match="Decryption failed"):
            other.open(sealed)

    def test_empty_key_raises(self):
        with pytest.raises(EncryptionError, match="must not be empty"):
            PayloadCipher("")

    def test_malformed_key_raises(self):
        with pytest.raises(EncryptionError, match="Invalid encryption key"):
            PayloadCipher("not-a-fernet-key")


class TestKeyRotation:
    def test_old_payloads_open_after_rotation(self):
        old_key = PayloadCipher.generate_key()
        new_key = PayloadCipher.generate_key()
        sealed = PayloadCipher(old_key).seal({"weight": 4.2})

        rotated_cipher = PayloadCipher(f"{new_key},{old_key}")
        assert rotated_cipher.key_count == 2
        assert rotated_cipher.open(sealed) == {"weight": 4.2}

    def test_rotate_moves_payload_to_primary_key(self):
        old_key = PayloadCipher.generate_key()
        new_key = PayloadCipher.generate_key()
        sealed = PayloadCipher(old_key).seal({"weight": 4.2})

        resealed = PayloadCipher(f"{new_key},{old_key}").rotate(sealed)
        assert PayloadCipher(new_key).open(resealed) == {"weight": 4.2}
