"""
Validation Utilities
====================

Input checks applied before any engine call does cryptographic or storage work.
"""

from __future__ import annotations

from typing import Optional

from .exceptions import ValidationError

PIN_MIN_LENGTH = 4
PIN_MAX_LENGTH = 6


def validate_pin(pin: str) -> str:
    """
    Validate a vault PIN.

    Args:
        pin: The PIN as typed by the user

    Returns:
        The PIN unchanged

    Raises:
        ValidationError: If the PIN is not 4-6 ASCII digits
    """
    if not isinstance(pin, str):
        raise ValidationError("PIN must be a string")
    if not PIN_MIN_LENGTH <= len(pin) <= PIN_MAX_LENGTH:
        raise ValidationError(
            f"PIN must be {PIN_MIN_LENGTH} to {PIN_MAX_LENGTH} digits"
        )
    if not (pin.isascii() and pin.isdigit()):
        raise ValidationError("PIN must contain digits only")
    return pin


def validate_pin_confirmation(pin: str, confirmation: Optional[str]) -> None:
    """Raise ValidationError when a setup confirmation does not match."""
    if confirmation is not None and pin != confirmation:
        raise ValidationError("PINs do not match")


def validate_title(title: str) -> str:
    """Return the title, rejecting empty or whitespace-only values."""
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required")
    return title
