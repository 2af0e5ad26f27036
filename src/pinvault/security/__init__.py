"""Security helpers: PIN key derivation and envelope encryption for PinVault.

This package provides:
- PBKDF2-HMAC-SHA256 key derivation from a short numeric PIN
- AES-256-GCM sealing of the serialized item list into a self-contained envelope
- A thin OS keystore wrapper used by the keyring storage backend
"""

from .kdf import generate_salt, generate_nonce, derive_key
from .envelope import Envelope, EnvelopeCipher
from .keystore import save_secret, load_secret, delete_secret, assess_keyring_backend

__all__ = [
    "generate_salt",
    "generate_nonce",
    "derive_key",
    "Envelope",
    "EnvelopeCipher",
    "save_secret",
    "load_secret",
    "delete_secret",
    "assess_keyring_backend",
]
