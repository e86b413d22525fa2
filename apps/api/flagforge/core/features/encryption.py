"""
SDK payload encryption.

AES-CBC with PKCS7 padding and a random 16-byte IV per call. The wire
format understood by the SDKs is::

    base64(iv) + "." + base64(ciphertext)

Keys are base64-encoded 128-bit AES keys (see generate_encryption_key).
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .exceptions import PayloadEncryptionError

_IV_SIZE = 16
_KEY_SIZE = 16


def generate_encryption_key() -> str:
    """Generate a random base64 AES-128 key."""
    return base64.b64encode(os.urandom(_KEY_SIZE)).decode("ascii")


def _load_key(key: str) -> bytes:
    try:
        raw = base64.b64decode(key, validate=True)
    except (binascii.Error, ValueError) as e:
        raise PayloadEncryptionError("Encryption key is not valid base64") from e
    if len(raw) not in (16, 24, 32):
        raise PayloadEncryptionError("Encryption key must be 128, 192 or 256 bits")
    return raw


def encrypt_payload(plaintext: str, key: str) -> str:
    """
    Encrypt a serialized payload.

    Raises:
        PayloadEncryptionError: The key is malformed.
    """
    iv = os.urandom(_IV_SIZE)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    data = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(_load_key(key)), modes.CBC(iv)).encryptor()
    ct = encryptor.update(data) + encryptor.finalize()

    return base64.b64encode(iv).decode("ascii") + "." + base64.b64encode(ct).decode("ascii")


def decrypt_payload(encrypted: str, key: str) -> str:
    """
    Decrypt a payload produced by encrypt_payload.

    Raises:
        PayloadEncryptionError: Malformed envelope, wrong key or bad padding.
    """
    try:
        iv_b64, ct_b64 = encrypted.split(".", 1)
        iv = base64.b64decode(iv_b64, validate=True)
        ct = base64.b64decode(ct_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise PayloadEncryptionError("Malformed encrypted payload") from e

    aes_key = _load_key(key)
    try:
        decryptor = Cipher(algorithms.AES(aes_key), modes.CBC(iv)).decryptor()
        data = decryptor.update(ct) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plaintext = unpadder.update(data) + unpadder.finalize()
        return plaintext.decode("utf-8")
    except ValueError as e:
        raise PayloadEncryptionError("Payload could not be decrypted") from e
