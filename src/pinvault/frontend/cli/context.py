"""Small helper to build a PinVault app context for the TUI."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import logging
import os

from pinvault.core.exceptions import ValidationError
from pinvault.core.models import VaultState
from pinvault.core.storage import (
    DEFAULT_HOME,
    VAULT_FILENAME,
    FileVaultStore,
    KeyringVaultStore,
    VaultStore,
)
from pinvault.core.vault import VaultController

BACKENDS = ("file", "keyring")
LOG_FILENAME = "pinvault.log"


@dataclass
class AppContext:
    """Container for runtime objects the UI needs."""

    vault: VaultController
    home: Path
    backend: str = "file"

    @property
    def first_run(self) -> bool:
        return self.vault.state is VaultState.UNINITIALIZED

    @property
    def log_file(self) -> Path:
        return self.home / LOG_FILENAME


def resolve_home(home: Optional[str | Path] = None) -> Path:
    if home is None:
        home = os.getenv("PINVAULT_HOME")
    return Path(home).expanduser() if home else DEFAULT_HOME


def resolve_backend(backend: Optional[str] = None) -> str:
    name = (backend or os.getenv("PINVAULT_BACKEND") or "file").strip().lower()
    if name not in BACKENDS:
        raise ValidationError(
            f"unknown storage backend {name!r}; expected one of {', '.join(BACKENDS)}"
        )
    return name


def resolve_log_level(level: Optional[str] = None) -> int:
    name = (level or os.getenv("PINVAULT_LOG_LEVEL") or "INFO").strip().upper()
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        raise ValidationError(f"unknown log level {name!r}")
    return value


def make_store(backend: str, home: Path) -> VaultStore:
    if backend == "keyring":
        return KeyringVaultStore()
    return FileVaultStore(home / VAULT_FILENAME)


def build_context(
    home: Optional[str | Path] = None,
    backend: Optional[str] = None,
) -> AppContext:
    """
    Resolve configuration and open the vault controller.

    Configuration precedence: explicit arguments, then the environment
    variables ``PINVAULT_HOME`` and ``PINVAULT_BACKEND``, then defaults
    (``~/.pinvault`` and the file backend).

    The controller probes the store on construction, so ``first_run`` is
    True exactly when no sealed vault exists yet and the UI should offer PIN
    setup instead of unlock.
    """
    home_path = resolve_home(home)
    backend_name = resolve_backend(backend)
    store = make_store(backend_name, home_path)
    return AppContext(vault=VaultController(store), home=home_path, backend=backend_name)
