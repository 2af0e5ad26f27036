"""
Storage backends for the sealed vault record

Structure Map for reference (file backend):
==============================
 - <home>/                (default ~/.pinvault)
      - vault.json        sealed envelope record {"iv", "salt", "data"}
      - vault.json.tmp    transient, only while a save is in flight
      - pinvault.log      CLI log file
==============================
For reference:
> A backend only ever sees the envelope, never a PIN or plaintext
> save() is a whole-record replace: readers observe the old record or the new one, never a mix
> Malformed records load fine as far as storage is concerned; the cipher rejects them on open

The controller is the only caller of these classes.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from keyring.errors import KeyringError

from ..security.envelope import Envelope
from ..security.keystore import (
    assess_keyring_backend,
    delete_secret,
    load_secret,
    save_secret,
)
from .exceptions import StorageError

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / ".pinvault"
VAULT_FILENAME = "vault.json"
KEYRING_SERVICE = "pinvault"
KEYRING_ACCOUNT = "vault"


class VaultStore(ABC):
    """Opaque load/save of one envelope."""

    @abstractmethod
    def exists(self) -> bool:
        ...

    @abstractmethod
    def load(self) -> Optional[Envelope]:
        """Return the persisted envelope, or None when no vault is configured."""

    @abstractmethod
    def save(self, envelope: Envelope) -> None:
        """Atomically replace the persisted envelope. Raises StorageError."""

    @abstractmethod
    def clear(self) -> None:
        """Remove the persisted envelope if there is one."""


class FileVaultStore(VaultStore):
    """Envelope record in a single JSON file, replaced via temp file + rename"""

    def __init__(self, path: Optional[str | Path] = None):
        self.path = Path(path).expanduser() if path else DEFAULT_HOME / VAULT_FILENAME

    @property
    def _tmp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[Envelope]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("could not read vault file %s: %s", self.path, exc)
            raise StorageError(f"could not read vault file: {exc}") from exc
        return Envelope.from_json(text)

    def save(self, envelope: Envelope) -> None:
        tmp = self._tmp_path
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(envelope.to_json())
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except OSError as exc:
            logger.error("could not write vault file %s: %s", self.path, exc)
            try:
                tmp.unlink()
            except OSError:
                pass
            raise StorageError(f"could not write vault file: {exc}") from exc

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError(f"could not remove vault file: {exc}") from exc


class KeyringVaultStore(VaultStore):
    """Envelope record kept as a string entry in the OS keystore"""

    def __init__(self, service: str = KEYRING_SERVICE, account: str = KEYRING_ACCOUNT):
        self.service = service
        self.account = account
        secure, msg = assess_keyring_backend()
        if not secure:
            # only ciphertext is stored, so an insecure backend is not fatal
            logger.warning("keyring backend check: %s", msg)

    def _read(self) -> Optional[str]:
        try:
            return load_secret(self.service, self.account)
        except KeyringError as exc:
            raise StorageError(f"could not read from keyring: {exc}") from exc

    def exists(self) -> bool:
        return self._read() is not None

    def load(self) -> Optional[Envelope]:
        text = self._read()
        if text is None:
            return None
        return Envelope.from_json(text)

    def save(self, envelope: Envelope) -> None:
        try:
            save_secret(self.service, self.account, envelope.to_json())
        except KeyringError as exc:
            logger.error("could not write to keyring: %s", exc)
            raise StorageError(f"could not write to keyring: {exc}") from exc

    def clear(self) -> None:
        try:
            delete_secret(self.service, self.account)
        except KeyringError as exc:
            raise StorageError(f"could not remove keyring entry: {exc}") from exc


class MemoryVaultStore(VaultStore):
    """Process-local store holding the serialized record"""

    def __init__(self, record: Optional[str] = None):
        self.record = record

    def exists(self) -> bool:
        return self.record is not None

    def load(self) -> Optional[Envelope]:
        if self.record is None:
            return None
        return Envelope.from_json(self.record)

    def save(self, envelope: Envelope) -> None:
        self.record = envelope.to_json()

    def clear(self) -> None:
        self.record = None
