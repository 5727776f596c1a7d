"""
Spec accessor.

Parts carry a free-form key/value bag ("Socket", "Memory Type", ...). Keys
come from imports and manual entry, so lookups ignore case.
"""

from typing import Optional

from item import InventoryItem, SpecValue


def get_spec(item: Optional[InventoryItem], key: str) -> Optional[SpecValue]:
    """Returns the first spec whose key matches `key` case-insensitively, else None."""
    if item is None or not item.specs:
        return None
    wanted = key.lower()
    for k, value in item.specs.items():
        if k.lower() == wanted:
            return value
    return None


def first_spec(item: Optional[InventoryItem], *keys: str) -> Optional[SpecValue]:
    """Tries each key in order; empty strings count as absent."""
    for key in keys:
        value = get_spec(item, key)
        if value is not None and str(value).strip() != "":
            return value
    return None
