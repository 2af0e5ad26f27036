"""
Base data models for vault items and the vault lifecycle
"""

from enum import Enum
from typing import Any, Dict, Optional


class ItemCategory(Enum):
    # Closed set of item kinds. Values are the labels written into the encrypted payload.
    LOGIN = "Login/Senha"
    CREDIT_CARD = "Cartão de Crédito"
    WIFI = "Wi-Fi"
    NOTE = "Nota Secreta"
    OTHER = "Outros"

    @classmethod
    def parse(cls, value):
        """
            Resolve a category from its stored value or its member name
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            pass
        key = str(value).strip().upper().replace("-", "_").replace(" ", "_")
        aliases = {"CREDITCARD": "CREDIT_CARD", "WI_FI": "WIFI"}
        key = aliases.get(key, key)
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown item category: {value!r}") from None


class VaultState(Enum):
    # Where the vault is in its lifecycle
    UNINITIALIZED = "uninitialized"
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class VaultItem:
    """
        One secret held in the vault.

        Items are immutable. ``id`` is None until the controller assigns one
        on creation; use :meth:`replace` to derive edited copies.
    """

    __slots__ = ('_id', '_title', '_category', '_primary_field', '_secondary_field', '_notes')

    def __init__(self, title="", category=ItemCategory.LOGIN, primary_field="", secondary_field=None, notes=None, id=None):
        set_field = object.__setattr__
        set_field(self, '_id', id)
        set_field(self, '_title', title)
        set_field(self, '_category', ItemCategory.parse(category))
        set_field(self, '_primary_field', primary_field)
        set_field(self, '_secondary_field', secondary_field)
        set_field(self, '_notes', notes)

    def __setattr__(self, name, value):
        raise AttributeError(f"VaultItem is read-only; use replace() to change {name!r}")

    def __delattr__(self, name):
        raise AttributeError("VaultItem is read-only")

    @property
    def id(self) -> Optional[str]:
        return self._id

    @property
    def title(self) -> str:
        return self._title

    @property
    def category(self) -> ItemCategory:
        return self._category

    @property
    def primary_field(self) -> str:
        return self._primary_field

    @property
    def secondary_field(self) -> Optional[str]:
        return self._secondary_field

    @property
    def notes(self) -> Optional[str]:
        return self._notes

    def with_id(self, item_id: str) -> "VaultItem":
        """
            Copy of this item carrying ``item_id``
        """
        return VaultItem(
            title=self.title,
            category=self.category,
            primary_field=self.primary_field,
            secondary_field=self.secondary_field,
            notes=self.notes,
            id=item_id,
        )

    def replace(self, **changes) -> "VaultItem":
        """
            Copy of this item with the given fields changed; the id is kept
        """
        if "id" in changes:
            raise AttributeError("VaultItem.id cannot be changed")
        fields = {
            'title': self.title,
            'category': self.category,
            'primary_field': self.primary_field,
            'secondary_field': self.secondary_field,
            'notes': self.notes,
        }
        fields.update(changes)
        return VaultItem(id=self._id, **fields)

    def matches(self, term: str) -> bool:
        """
            Case-insensitive match against title and notes
        """
        needle = (term or "").strip().lower()
        if not needle:
            return True
        return needle in self.title.lower() or needle in (self.notes or "").lower()

    def to_dict(self) -> Dict[str, Any]:
        """
            Convert to the payload record. Optional fields are left out when unset.
        """
        data = {
            'id': self._id,
            'title': self.title,
            'category': self.category.value,
            'primaryField': self.primary_field,
        }
        if self.secondary_field is not None:
            data['secondaryField'] = self.secondary_field
        if self.notes is not None:
            data['notes'] = self.notes
        return data

    def __repr__(self):
        # secrets stay out of reprs and tracebacks
        return f"VaultItem(id={self._id!r}, title={self.title!r}, category={self.category.name})"

    def __eq__(self, other):
        if not isinstance(other, VaultItem):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash(self._id)


def create_item_from_dict(data: Dict[str, Any]) -> VaultItem:
    """
        Create a VaultItem from a payload record
    """
    if not isinstance(data, dict):
        raise ValueError("item record must be an object")
    for key in ('id', 'title', 'category', 'primaryField'):
        if key not in data:
            raise ValueError(f"item record is missing {key!r}")

    return VaultItem(
        id=data['id'],
        title=data['title'],
        category=ItemCategory.parse(data['category']),
        primary_field=data['primaryField'],
        secondary_field=data.get('secondaryField'),
        notes=data.get('notes'),
    )
