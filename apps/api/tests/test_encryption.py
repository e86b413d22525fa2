"""
Tests for SDK payload encryption.
"""

import base64

import pytest

from flagforge.core.features.encryption import (
    decrypt_payload,
    encrypt_payload,
    generate_encryption_key,
)
from flagforge.core.features.exceptions import PayloadEncryptionError


def test_round_trip():
    key = generate_encryption_key()
    plaintext = '{"show-banner":{"defaultValue":true}}'

    encrypted = encrypt_payload(plaintext, key)

    assert decrypt_payload(encrypted, key) == plaintext


def test_envelope_format():
    """base64(iv) "." base64(ciphertext), 16-byte IV."""
    encrypted = encrypt_payload("{}", generate_encryption_key())
    iv_b64, ct_b64 = encrypted.split(".")
    assert len(base64.b64decode(iv_b64)) == 16
    assert len(base64.b64decode(ct_b64)) % 16 == 0


def test_random_iv_per_call():
    key = generate_encryption_key()
    assert encrypt_payload("{}", key) != encrypt_payload("{}", key)


def test_generated_key_is_128_bits():
    assert len(base64.b64decode(generate_encryption_key())) == 16


@pytest.mark.parametrize("key", ["not base64!", base64.b64encode(b"short").decode()])
def test_invalid_key(key):
    with pytest.raises(PayloadEncryptionError):
        encrypt_payload("{}", key)


def test_wrong_key_fails():
    """A wrong key either fails padding or yields different content."""
    encrypted = encrypt_payload('{"a":1}', generate_encryption_key())
    try:
        decrypted = decrypt_payload(encrypted, generate_encryption_key())
    except PayloadEncryptionError:
        return
    assert decrypted != '{"a":1}'


def test_malformed_envelope():
    with pytest.raises(PayloadEncryptionError):
        decrypt_payload("no-dot-here", generate_encryption_key())
