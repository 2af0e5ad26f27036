"""
Authenticated envelope encryption for the PinVault payload.

An envelope is the only thing ever persisted: a fresh salt, a fresh nonce
and the AES-256-GCM output (ciphertext followed by the 16-byte tag) of the
serialized item list under ``PBKDF2(pin, salt)``.

Persisted record (JSON, every field standard base64)::

    {"iv": <12-byte nonce>, "salt": <16-byte salt>, "data": <ciphertext||tag>}

A wrong PIN, a flipped byte, a truncated field or a record that does not
parse at all all surface as the same :class:`AuthenticationError`.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from pinvault.core.exceptions import AuthenticationError

from .kdf import (
    NONCE_LENGTH,
    PBKDF2_ITERATIONS,
    SALT_LENGTH,
    derive_key,
    generate_nonce,
    generate_salt,
)

logger = logging.getLogger(__name__)

TAG_LENGTH = 16


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _unb64(value: Any) -> bytes:
    if not isinstance(value, str):
        raise AuthenticationError()
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError):
        raise AuthenticationError() from None


@dataclass(frozen=True)
class Envelope:
    """Self-contained sealed payload."""

    salt: bytes
    nonce: bytes
    ciphertext: bytes

    def to_dict(self) -> Dict[str, str]:
        return {
            "iv": _b64(self.nonce),
            "salt": _b64(self.salt),
            "data": _b64(self.ciphertext),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "Envelope":
        """Parse a persisted record, rejecting anything malformed."""
        if not isinstance(record, dict):
            raise AuthenticationError()
        try:
            nonce = _unb64(record["iv"])
            salt = _unb64(record["salt"])
            ciphertext = _unb64(record["data"])
        except KeyError:
            raise AuthenticationError() from None

        if len(salt) != SALT_LENGTH or len(nonce) != NONCE_LENGTH:
            raise AuthenticationError()
        if len(ciphertext) < TAG_LENGTH:
            raise AuthenticationError()
        return cls(salt=salt, nonce=nonce, ciphertext=ciphertext)

    @classmethod
    def from_json(cls, text: str) -> "Envelope":
        try:
            record = json.loads(text)
        except (TypeError, ValueError):
            raise AuthenticationError() from None
        return cls.from_dict(record)


class EnvelopeCipher:
    """
    Seal/open byte payloads under a PIN.

    The cipher holds no key material between calls: every ``seal`` draws a
    new salt and nonce and derives a new key; every ``open`` derives the key
    from the salt stored in the envelope.

    ``iterations`` defaults to the fixed interoperable PBKDF2 count; other
    values produce envelopes that only a cipher with the same count can open.
    """

    def __init__(self, iterations: int = PBKDF2_ITERATIONS):
        self.iterations = iterations

    def seal(self, plaintext: bytes, pin: str) -> Envelope:
        """
        Encrypt ``plaintext`` under ``pin``.

        Raises ``EntropyUnavailableError`` if the OS random source is missing.
        """
        salt = generate_salt()
        nonce = generate_nonce()
        key = derive_key(pin, salt, iterations=self.iterations)
        ct = AESGCM(key).encrypt(nonce, plaintext, None)
        return Envelope(salt=salt, nonce=nonce, ciphertext=ct)

    def open(self, envelope: Envelope, pin: str) -> bytes:
        """
        Decrypt ``envelope`` with ``pin`` and return the plaintext.

        Raises ``AuthenticationError`` on a wrong PIN or any tampering.
        """
        if len(envelope.salt) != SALT_LENGTH or len(envelope.nonce) != NONCE_LENGTH:
            raise AuthenticationError()
        key = derive_key(pin, envelope.salt, iterations=self.iterations)
        try:
            return AESGCM(key).decrypt(envelope.nonce, envelope.ciphertext, None)
        except InvalidTag:
            logger.debug("envelope authentication failed")
            raise AuthenticationError() from None
