"""Copy item fields to the system clipboard through pyperclip."""

from __future__ import annotations

import pyperclip

from pinvault.core.models import VaultItem


def copy_to_clipboard(text: str) -> None:
    """Copy text to the system clipboard.

    Raises:
        pyperclip.PyperclipException: If clipboard access fails.
    """
    pyperclip.copy(text)


def copy_item_field(item: VaultItem, secondary: bool = False) -> bool:
    """Copy the item's primary (or secondary) field.

    Returns False without touching the clipboard when the field is empty.
    """
    value = item.secondary_field if secondary else item.primary_field
    if not value:
        return False
    copy_to_clipboard(value)
    return True
