"""
In-memory ordered collection of vault items.

Pure data operations only: nothing here touches storage or crypto. The
controller decrypts a payload into an ItemStore, applies one operation,
then re-seals ``to_payload()``.
"""

from __future__ import annotations

import json
import uuid
from typing import Callable, Iterable, List, Optional, Tuple

from .exceptions import ValidationError
from .models import VaultItem, create_item_from_dict


def new_item_id() -> str:
    return str(uuid.uuid4())


class ItemStore:
    """Insertion-ordered items with ids unique across the collection."""

    def __init__(self, items: Optional[Iterable[VaultItem]] = None):
        self._items: List[VaultItem] = []
        for item in items or ():
            self._append(item)

    def _append(self, item: VaultItem) -> None:
        if item.id is None:
            raise ValidationError("stored items must carry an id")
        if self._index_of(item.id) is not None:
            raise ValidationError(f"duplicate item id {item.id!r}")
        self._items.append(item)

    def _index_of(self, item_id: str) -> Optional[int]:
        for i, item in enumerate(self._items):
            if item.id == item_id:
                return i
        return None

    def add(self, item: VaultItem, id_factory: Callable[[], str] = new_item_id) -> str:
        """Append ``item`` under a fresh id and return that id.

        ``id_factory`` is drawn until it yields an id not already present.
        """
        if item.id is not None:
            raise ValidationError("new items must not carry an id")
        item_id = id_factory()
        while item_id in self:
            item_id = id_factory()
        self._append(item.with_id(item_id))
        return item_id

    def update(self, item: VaultItem) -> bool:
        """Replace the item with the same id in place. False if absent."""
        idx = self._index_of(item.id) if item.id is not None else None
        if idx is None:
            return False
        self._items[idx] = item
        return True

    def remove(self, item_id: str) -> bool:
        """Drop the item with ``item_id``. False if absent."""
        idx = self._index_of(item_id)
        if idx is None:
            return False
        del self._items[idx]
        return True

    def get(self, item_id: str) -> Optional[VaultItem]:
        idx = self._index_of(item_id)
        return None if idx is None else self._items[idx]

    def all(self) -> Tuple[VaultItem, ...]:
        # snapshot: later mutations do not show through an earlier result
        return tuple(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self.all())

    def __contains__(self, item_id) -> bool:
        return self._index_of(item_id) is not None

    # ------------------------------------------------------------------
    # Payload encoding
    # ------------------------------------------------------------------

    def to_payload(self) -> bytes:
        """Serialize to the UTF-8 JSON array that gets sealed."""
        records = [item.to_dict() for item in self._items]
        return json.dumps(records, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_payload(cls, raw: bytes) -> "ItemStore":
        """Rebuild a store from ``to_payload`` output.

        Raises ValueError if the bytes are not a JSON array of item records.
        """
        try:
            records = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValueError(f"payload is not valid JSON: {exc}") from exc
        if not isinstance(records, list):
            raise ValueError("payload must be a list of items")
        return cls(create_item_from_dict(record) for record in records)
