"""Display labels for item categories.

Pure presentation mapping; the engine only knows the closed ItemCategory set.
"""

from __future__ import annotations

from typing import Iterable, List, Tuple

from pinvault.core.models import ItemCategory, VaultItem

CATEGORY_NAMES = {
    ItemCategory.LOGIN: "Login",
    ItemCategory.CREDIT_CARD: "Credit card",
    ItemCategory.WIFI: "Wi-Fi",
    ItemCategory.NOTE: "Secret note",
    ItemCategory.OTHER: "Other",
}

CATEGORY_ICONS = {
    ItemCategory.LOGIN: "👤",
    ItemCategory.CREDIT_CARD: "💳",
    ItemCategory.WIFI: "📶",
    ItemCategory.NOTE: "📝",
    ItemCategory.OTHER: "📦",
}


def category_name(category: ItemCategory) -> str:
    return CATEGORY_NAMES[category]


def category_icon(category: ItemCategory) -> str:
    return CATEGORY_ICONS[category]


def field_labels(category: ItemCategory) -> Tuple[str, str]:
    """Return (primary, secondary) field labels for a category."""
    if category is ItemCategory.CREDIT_CARD:
        return "Card number", "CVV"
    if category is ItemCategory.WIFI:
        return "Network name (SSID)", "Password"
    return "Username / E-mail", "Password"


def category_options() -> List[Tuple[str, ItemCategory]]:
    # (label, value) pairs in declaration order, as Select widgets expect
    return [(f"{category_icon(c)} {category_name(c)}", c) for c in ItemCategory]


def filter_items(items: Iterable[VaultItem], term: str) -> List[VaultItem]:
    return [item for item in items if item.matches(term)]


def mask(value: str | None) -> str:
    if not value:
        return ""
    return "•" * min(len(value), 12)
