"""
Vault controller: lock state machine and PIN-gated mutations

States::

    UNINITIALIZED --setup_pin--> UNLOCKED <--unlock-- LOCKED
                                 UNLOCKED --lock----> LOCKED
    UNLOCKED/LOCKED --destroy--> UNINITIALIZED

Every write goes through ``_mutate``: load the persisted envelope, open it
with the PIN supplied for this write, apply the change to that freshly
decrypted copy, seal under a new salt and nonce, save, and only then swap
the in-memory items. Any failure before the swap leaves both the stored
envelope and the in-memory state as they were.

One lock serializes every command, so two seal-then-save sequences never
interleave.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Tuple, TypeVar

from ..security.envelope import EnvelopeCipher
from .exceptions import (
    AuthenticationError,
    InvalidStateError,
    NotFoundError,
    StorageError,
)
from .item_store import ItemStore, new_item_id
from .models import VaultItem, VaultState
from .storage import VaultStore
from .validators import validate_pin, validate_pin_confirmation, validate_title

logger = logging.getLogger(__name__)

T = TypeVar("T")


class VaultController:
    """Owns the vault state; the only component that talks to the store."""

    def __init__(
        self,
        store: VaultStore,
        cipher: Optional[EnvelopeCipher] = None,
        id_factory: Callable[[], str] = new_item_id,
    ):
        self.store = store
        self.cipher = cipher or EnvelopeCipher()
        self.id_factory = id_factory
        self._lock = threading.Lock()
        self._items: Optional[ItemStore] = None
        self._state = VaultState.LOCKED if self._probe() else VaultState.UNINITIALIZED
        logger.info("vault opened in state %s", self._state.value)

    def _probe(self) -> bool:
        try:
            return self.store.exists()
        except OSError as exc:
            raise StorageError(f"could not probe vault storage: {exc}") from exc

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> VaultState:
        return self._state

    def current_state(self) -> VaultState:
        return self._state

    @property
    def is_unlocked(self) -> bool:
        return self._state is VaultState.UNLOCKED

    def current_items(self) -> Tuple[VaultItem, ...]:
        """Decrypted items, in insertion order. Only available while unlocked."""
        if self._state is not VaultState.UNLOCKED or self._items is None:
            raise InvalidStateError("vault is locked")
        return self._items.all()

    def get_item(self, item_id: str) -> VaultItem:
        if self._state is not VaultState.UNLOCKED or self._items is None:
            raise InvalidStateError("vault is locked")
        item = self._items.get(item_id)
        if item is None:
            raise NotFoundError(f"no item with id {item_id!r}")
        return item

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _require(self, *states: VaultState) -> None:
        if self._state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidStateError(
                f"operation not valid while {self._state.value} (needs {allowed})"
            )

    def setup_pin(self, pin: str, confirmation: Optional[str] = None) -> None:
        """Create a new, empty vault sealed under ``pin`` and unlock it."""
        validate_pin(pin)
        validate_pin_confirmation(pin, confirmation)
        with self._lock:
            self._require(VaultState.UNINITIALIZED)
            empty = ItemStore()
            envelope = self.cipher.seal(empty.to_payload(), pin)
            self.store.save(envelope)
            self._items = empty
            self._state = VaultState.UNLOCKED
        logger.info("vault created and unlocked")

    def unlock(self, pin: str) -> Tuple[VaultItem, ...]:
        """Decrypt the persisted vault with ``pin`` and hold its items.

        Raises AuthenticationError on a wrong PIN or corrupted data; the
        vault stays locked.
        """
        validate_pin(pin)
        with self._lock:
            self._require(VaultState.LOCKED)
            try:
                items = self._open_persisted(pin)
            except AuthenticationError:
                logger.warning("unlock rejected")
                raise
            self._items = items
            self._state = VaultState.UNLOCKED
        logger.info("vault unlocked (%d items)", len(items))
        return items.all()

    def lock(self) -> None:
        """Drop the decrypted items and return to LOCKED. Never touches storage."""
        with self._lock:
            if self._state is not VaultState.UNLOCKED:
                return
            if self._items is not None:
                self._items.clear()
            self._items = None
            self._state = VaultState.LOCKED
        logger.info("vault locked")

    def destroy(self, pin: str) -> None:
        """Delete the persisted vault after verifying ``pin`` against it."""
        validate_pin(pin)
        with self._lock:
            self._require(VaultState.LOCKED, VaultState.UNLOCKED)
            self._open_persisted(pin)
            self.store.clear()
            if self._items is not None:
                self._items.clear()
            self._items = None
            self._state = VaultState.UNINITIALIZED
        logger.info("vault destroyed")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _open_persisted(self, pin: str) -> ItemStore:
        envelope = self.store.load()
        if envelope is None:
            raise StorageError("no vault found in storage")
        plaintext = self.cipher.open(envelope, pin)
        try:
            return ItemStore.from_payload(plaintext)
        except ValueError:
            # authenticated but unreadable: same outward failure as tampering
            raise AuthenticationError() from None

    def _mutate(self, pin: str, change: Callable[[ItemStore], T]) -> T:
        validate_pin(pin)
        with self._lock:
            self._require(VaultState.UNLOCKED)
            try:
                working = self._open_persisted(pin)
            except AuthenticationError:
                logger.warning("mutation rejected: PIN did not open the stored vault")
                raise
            result = change(working)
            envelope = self.cipher.seal(working.to_payload(), pin)
            self.store.save(envelope)
            previous = self._items
            self._items = working
            if previous is not None:
                previous.clear()
        return result

    def add_item(self, item: VaultItem, pin: str) -> VaultItem:
        """Store a new item under a freshly generated id and return it."""
        validate_title(item.title)

        def change(items: ItemStore) -> VaultItem:
            item_id = items.add(item, id_factory=self.id_factory)
            return items.get(item_id)

        added = self._mutate(pin, change)
        logger.info("item %s added", added.id)
        return added

    def update_item(self, item: VaultItem, pin: str) -> VaultItem:
        """Replace the stored item with the same id. NotFoundError if absent."""
        validate_title(item.title)
        if item.id is None:
            raise NotFoundError("item has no id")

        def change(items: ItemStore) -> VaultItem:
            if not items.update(item):
                raise NotFoundError(f"no item with id {item.id!r}")
            return item

        updated = self._mutate(pin, change)
        logger.info("item %s updated", item.id)
        return updated

    def delete_item(self, item_id: str, pin: str) -> None:
        """Remove the item with ``item_id``. NotFoundError if absent."""

        def change(items: ItemStore) -> None:
            if not items.remove(item_id):
                raise NotFoundError(f"no item with id {item_id!r}")

        self._mutate(pin, change)
        logger.info("item %s deleted", item_id)
