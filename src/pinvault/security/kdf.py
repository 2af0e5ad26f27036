"""PIN-based key derivation for PinVault."""
import os

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from pinvault.core.exceptions import EntropyUnavailableError

SALT_LENGTH = 16
NONCE_LENGTH = 12
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 100_000


def _random_bytes(length: int) -> bytes:
    try:
        return os.urandom(length)
    except NotImplementedError as exc:
        raise EntropyUnavailableError("no secure random source available") from exc


def generate_salt(length: int = SALT_LENGTH) -> bytes:
    """Return a cryptographically secure random salt."""
    return _random_bytes(length)


def generate_nonce(length: int = NONCE_LENGTH) -> bytes:
    """Return a fresh random AES-GCM nonce."""
    return _random_bytes(length)


def derive_key(
    pin: bytes,
    salt: bytes,
    iterations: int = PBKDF2_ITERATIONS,
    key_len: int = KEY_LENGTH,
) -> bytes:
    """
    Derive an AES key from a PIN using PBKDF2-HMAC-SHA256.
    Returns raw derived key bytes.
    """
    if isinstance(pin, str):
        pin = pin.encode("utf-8")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=key_len,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(pin)
