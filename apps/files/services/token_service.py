import hashlib
import hmac
import json
import logging
import re
import time
from dataclasses import dataclass

from apps.files.descriptors import ContentDescriptor
from apps.files.exceptions import (
    InvalidExpiry,
    InvalidSignature,
    MalformedDescriptor,
    TokenExpired,
)
from apps.files.services.encryption_service import EncryptionService, urlsafe_decode, urlsafe_encode
from apps.files.validators import DescriptorValidator

logger = logging.getLogger(__name__)

# Epoch milliseconds
EXPIRY_PATTERN = re.compile(r"\A[0-9]+\Z")


@dataclass(frozen=True)
class SignedToken:
    digit: str
    encrypted: str

    def to_dict(self) -> dict:
        return {"digit": self.digit, "encrypted": self.encrypted}


class TokenService:
    """
    Turns content descriptors into opaque (digit, encrypted) tokens and back.

    The digit is an HMAC-SHA256 over the canonical descriptor serialization;
    the encrypted part is that same serialization, AES encrypted. Decryption
    alone proves nothing, so decode() always recomputes the digit over the
    decrypted plaintext before looking at its contents.
    """

    def __init__(self, keyring, encryption_service=None, clock=None):
        self._signing_key = keyring.signing_key.encode("utf-8")
        self._encryption_service = encryption_service or EncryptionService(keyring.encryption_key)
        self._clock = clock or time.time

    def compute_digit(self, serialization: str) -> str:
        return hmac.new(self._signing_key, serialization.encode("utf-8"), hashlib.sha256).hexdigest()

    def encode(self, descriptor: ContentDescriptor) -> SignedToken:
        serialization = descriptor.serialize()
        digit = self.compute_digit(serialization)
        encrypted = urlsafe_encode(self._encryption_service.encrypt(serialization))
        return SignedToken(digit=digit, encrypted=encrypted)

    def issue(self, payload) -> SignedToken:
        """
        Validates an issuance request and encodes it. Callers of the public
        API may not supply segments; those only come from uploads.
        """
        validator = DescriptorValidator(payload, allow_segments=False)
        if not validator.validate():
            raise MalformedDescriptor(validator.get_validation_report())
        self.check_expiry_format(payload.get('expiredAt'))

        descriptor = ContentDescriptor.from_dict(payload)
        token = self.encode(descriptor)
        logger.info(f"Issued token for content: {descriptor.display_name}")
        return token

    def decode(self, digit: str, encrypted: str) -> ContentDescriptor:
        """
        Authenticates a token and returns its descriptor.

        Order matters: signature, then schema, then expiry.
        """
        try:
            plaintext = self._encryption_service.decrypt(urlsafe_decode(encrypted))
        except ValueError as e:
            logger.warning(f"Token could not be decrypted: {e}")
            raise InvalidSignature() from e

        expected = self.compute_digit(plaintext)
        if not hmac.compare_digest(expected.encode("ascii"), digit.encode("utf-8")):
            logger.warning("Token digit mismatch")
            raise InvalidSignature()

        try:
            data = json.loads(plaintext)
        except ValueError as e:
            raise MalformedDescriptor("Descriptor is not valid JSON") from e

        validator = DescriptorValidator(data)
        if not validator.validate():
            raise MalformedDescriptor(validator.get_validation_report())

        descriptor = ContentDescriptor.from_dict(data)
        self._check_expiry(descriptor.expired_at)
        return descriptor

    def check_expiry_format(self, expired_at):
        """
        Returns expiredAt as integer epoch milliseconds, or None when unset.
        Only plain ASCII digit strings are accepted, the same as the upload form.
        """
        if expired_at is None:
            return None
        if not isinstance(expired_at, str) or not EXPIRY_PATTERN.match(expired_at):
            raise InvalidExpiry()
        return int(expired_at)

    def _check_expiry(self, expired_at):
        expires_ms = self.check_expiry_format(expired_at)
        if expires_ms is None:
            return
        now_ms = self._clock() * 1000
        if now_ms > expires_ms:
            logger.info(f"Token expired at {expired_at}")
            raise TokenExpired()
