"""
Check-in token codec.

token = hex(iv) + ":" + hex(AES-256-CBC(sha256(secret), iv, email))

Every encode uses a fresh IV, so tokens for the same email differ and must
be compared after decoding. The scheme carries no authentication tag.
"""

import logging
import os
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from event_checkin.core.exceptions import InvalidToken
from event_checkin.utils.crypto import derive_key, normalize_email

logger = logging.getLogger(__name__)

DELIMITER = ":"
IV_SIZE = 16
BLOCK_BITS = 128


class TokenCodec:
    def __init__(self, secret: str):
        if not secret:
            raise ValueError("token secret must not be empty")
        self._key = derive_key(secret)

    def encode(self, email: str) -> str:
        plaintext = normalize_email(email).encode("utf-8")
        iv = os.urandom(IV_SIZE)

        padder = padding.PKCS7(BLOCK_BITS).padder()
        padded = padder.update(plaintext) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return f"{iv.hex()}{DELIMITER}{ciphertext.hex()}"

    def decode(self, token: Optional[str]) -> str:
        if not isinstance(token, str) or not token.strip():
            raise InvalidToken("empty token")

        parts = token.strip().split(DELIMITER)
        if len(parts) != 2:
            raise InvalidToken("wrong delimiter count")

        try:
            iv = bytes.fromhex(parts[0])
            ciphertext = bytes.fromhex(parts[1])
        except ValueError:
            raise InvalidToken("not hex encoded")

        if len(iv) != IV_SIZE:
            raise InvalidToken("bad iv length")
        if not ciphertext or len(ciphertext) % (BLOCK_BITS // 8):
            raise InvalidToken("bad ciphertext length")

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        try:
            unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            email = plaintext.decode("utf-8")
        except ValueError:
            # UnicodeDecodeError is a ValueError too
            logger.warning("Rejected check-in token: decryption failed")
            raise InvalidToken("decryption failed")

        email = normalize_email(email)
        if not email:
            raise InvalidToken("empty payload")
        return email
