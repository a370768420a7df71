"""AES-256-GCM sealing of refresh tokens at rest.

Stored layout is ``base64(nonce[12] || ciphertext || tag[16])`` with no
associated data.  Rows written by earlier deployments use the same layout,
so the format must not change.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from outreach.domain.errors import ConfigurationError, DecryptionFailure

KEY_LENGTH = 32
NONCE_LENGTH = 12
TAG_LENGTH = 16


def derive_key(key_material: str) -> bytes:
    """Fit the configured secret to the AES-256 key length.

    The UTF-8 encoding is truncated to 32 bytes, or right-padded with zero
    bytes when shorter.

    Raises:
        ConfigurationError: If *key_material* is empty.
    """
    if not key_material:
        raise ConfigurationError("ENCRYPTION_KEY is not configured")
    raw = key_material.encode("utf-8")[:KEY_LENGTH]
    return raw.ljust(KEY_LENGTH, b"\0")


def seal(plaintext: str, key_material: str) -> str:
    """Encrypt *plaintext* under a fresh random nonce.

    Two calls with the same input never produce the same output.

    Args:
        plaintext: The secret to protect (e.g. a refresh token).
        key_material: The process-wide encryption secret.

    Returns:
        The base64-encoded sealed blob.
    """
    aes = AESGCM(derive_key(key_material))
    nonce = os.urandom(NONCE_LENGTH)
    encrypted = aes.encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + encrypted).decode("ascii")


def open_sealed(sealed_blob: str, key_material: str) -> str:
    """Decrypt and authenticate a blob produced by ``seal``.

    Args:
        sealed_blob: The base64-encoded sealed blob.
        key_material: The process-wide encryption secret.

    Returns:
        The original plaintext.

    Raises:
        DecryptionFailure: If the blob is malformed, was tampered with, or
            was sealed under a different key.
    """
    key = derive_key(key_material)
    try:
        packed = base64.b64decode(sealed_blob, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecryptionFailure("Sealed credential is not valid base64") from exc

    if len(packed) < NONCE_LENGTH + TAG_LENGTH:
        raise DecryptionFailure("Sealed credential is truncated")

    nonce, ciphertext = packed[:NONCE_LENGTH], packed[NONCE_LENGTH:]
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        raise DecryptionFailure("Failed to decrypt refresh token") from exc

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionFailure("Decrypted credential is not valid UTF-8") from exc
