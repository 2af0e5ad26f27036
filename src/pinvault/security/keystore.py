"""OS keystore integration using keyring for storing the sealed vault record.

This module provides a tiny wrapper around `keyring` to store and retrieve
a text secret under a service/account pair. Only ciphertext ever goes in;
the keystore is a storage location here, not a key escrow.
"""
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError


def save_secret(service: str, account: str, secret: str) -> None:
    """Persist ``secret`` in the OS keystore under (service, account)."""
    keyring.set_password(service, account, secret)


def load_secret(service: str, account: str) -> Optional[str]:
    """Load a persisted secret from the OS keystore; returns None if absent."""
    return keyring.get_password(service, account)


def delete_secret(service: str, account: str) -> bool:
    """Remove the secret from the OS keystore. False if there was none."""
    try:
        keyring.delete_password(service, account)
    except PasswordDeleteError:
        return False
    return True


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_secure, message) describing the current keyring backend.

    Heuristics are used because the `keyring` package exposes different backends
    across platforms.
    """
    try:
        backend = keyring.get_keyring()
    except KeyringError as e:
        return False, f"failed to get keyring backend: {e}"

    name = backend.__class__.__name__
    priority = getattr(backend, "priority", None)

    insecure_indicators = ("Plaintext", "Uncrypted", "Simple", "File")
    if any(tok in name for tok in insecure_indicators):
        return False, f"insecure backend detected: {name}"

    if priority is not None and priority <= 0:
        return False, f"no suitable secure keyring backend available (priority={priority}, backend={name})"

    # treat known platform backends as acceptable
    if "Win" in name or "Keychain" in name or "SecretService" in name or "KWallet" in name:
        return True, f"backend looks acceptable: {name} (priority={priority})"

    return True, f"unknown backend '{name}', treat with caution (priority={priority})"
