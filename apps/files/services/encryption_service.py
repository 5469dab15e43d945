import base64
import hashlib
import logging
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

SALT_HEADER = b"Salted__"
SALT_SIZE = 8
KEY_SIZE = 32  # AES-256
IV_SIZE = 16
BLOCK_SIZE_BITS = 128


class EncryptionService:
    """
    Passphrase-based AES-256-CBC in the OpenSSL "Salted__" envelope.

    This is the format produced by `openssl enc -aes-256-cbc -md md5` and by
    crypto-js when AES.encrypt is given a string key: an 8 byte random salt,
    key and IV derived with EVP_BytesToKey over MD5, PKCS#7 padding, and the
    whole envelope rendered as standard base64.
    """

    def __init__(self, passphrase: str):
        if not passphrase:
            raise ValueError("passphrase cannot be empty")
        self._passphrase = passphrase.encode("utf-8")

    def _derive_key_iv(self, salt: bytes):
        # EVP_BytesToKey with MD5 and a single iteration
        derived = b""
        block = b""
        while len(derived) < KEY_SIZE + IV_SIZE:
            block = hashlib.md5(block + self._passphrase + salt, usedforsecurity=False).digest()
            derived += block
        return derived[:KEY_SIZE], derived[KEY_SIZE:KEY_SIZE + IV_SIZE]

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypts a text and returns the base64 rendering of the salted envelope.
        """
        salt = os.urandom(SALT_SIZE)
        key, iv = self._derive_key_iv(salt)

        padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        return base64.b64encode(SALT_HEADER + salt + ciphertext).decode("ascii")

    def decrypt(self, envelope: str) -> str:
        """
        Decrypts what encrypt() produced.

        Raises ValueError if the envelope is malformed, the padding is wrong
        or the plaintext is not UTF-8. A wrong key usually ends up here too,
        but not always, so callers must authenticate the result separately.
        """
        raw = base64.b64decode(envelope, validate=True)
        if base64.b64encode(raw).decode("ascii") != envelope:
            raise ValueError("Ciphertext is not canonical base64")
        if not raw.startswith(SALT_HEADER):
            raise ValueError("Ciphertext is missing the salt header")

        salt = raw[len(SALT_HEADER):len(SALT_HEADER) + SALT_SIZE]
        ciphertext = raw[len(SALT_HEADER) + SALT_SIZE:]
        if len(salt) != SALT_SIZE or not ciphertext or len(ciphertext) % (BLOCK_SIZE_BITS // 8):
            raise ValueError("Ciphertext has an invalid length")

        key, iv = self._derive_key_iv(salt)
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode("utf-8")


def urlsafe_encode(text: str) -> str:
    """Base64url without padding, as used for the path segment of a token."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).rstrip(b"=").decode("ascii")


def urlsafe_decode(text: str) -> str:
    """Inverse of urlsafe_encode. Raises ValueError on malformed input."""
    padded = text + "=" * (-len(text) % 4)
    raw = base64.b64decode(padded, altchars=b"-_", validate=True)
    # Reject inputs that only differ from the canonical encoding in unused bits
    if base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii") != text:
        raise ValueError("Input is not canonical base64url")
    return raw.decode("utf-8")
