"""
OTP Code Cipher
===============
Authenticated encryption of OTP codes at rest (AES-256-GCM).
"""

import os
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ..errors import ConfigurationError, DecryptError

NONCE_SIZE = 12  # 96-bit GCM nonce
KEY_INFO = b"otp-code-cipher"


def derive_key(secret: str, info: bytes = KEY_INFO) -> bytes:
    """Derive a 256-bit key from a long-lived secret with HKDF-SHA256."""
    if not secret:
        raise ConfigurationError("OTP secret key is not configured")
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=info,
    ).derive(secret.encode())


class CodeCipher:
    """
    Seals and opens OTP codes.

    The key is derived once at construction and only held in memory. Each
    ``seal`` draws a fresh random nonce, which must be stored next to the
    ciphertext and passed back to ``open``.
    """

    def __init__(self, secret: str):
        self._aead = AESGCM(derive_key(secret))

    def __repr__(self) -> str:
        return "CodeCipher(<redacted>)"

    def seal(self, code: str, associated_data: bytes = b"") -> Tuple[bytes, bytes]:
        """
        Encrypt a code.

        Args:
            code: Plaintext code
            associated_data: Authenticated context the ciphertext is bound to

        Returns:
            Tuple of (ciphertext, nonce)
        """
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, code.encode(), associated_data or None)
        return ciphertext, nonce

    def open(self, ciphertext: bytes, nonce: bytes, associated_data: bytes = b"") -> str:
        """
        Decrypt a code.

        Args:
            ciphertext: Sealed code
            nonce: Nonce returned by ``seal``
            associated_data: Same context passed to ``seal``

        Returns:
            Plaintext code

        Raises:
            DecryptError: If the ciphertext, nonce or context was altered
        """
        if len(nonce) != NONCE_SIZE:
            raise DecryptError("Invalid nonce length")
        try:
            plaintext = self._aead.decrypt(nonce, ciphertext, associated_data or None)
        except InvalidTag:
            raise DecryptError("Code material failed authentication") from None
        try:
            return plaintext.decode()
        except UnicodeDecodeError:
            raise DecryptError("Code material is not valid text") from None


def record_context(phone_number: str, verification_type: str) -> bytes:
    """Associated data binding a sealed code to its record."""
    return f"{phone_number}|{verification_type}".encode()
