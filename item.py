"""
Inventory item domain model.

This file defines the universal record every part of the engine works on,
plus the change batch that engine operations hand back to the caller.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

SpecValue = Union[str, int, float]


class ItemStatus(str, Enum):
    IN_STOCK = "In Stock"
    ORDERED = "Ordered"
    IN_COMPOSITION = "In Composition"
    SOLD = "Sold"
    TRADED = "Traded"


# Statuses that mean the item has left inventory for good.
DISPOSED_STATUSES = (ItemStatus.SOLD, ItemStatus.TRADED)

RETRO_BUNDLE = "Retro Bundle"
SMART_BUNDLE = "Smart Bundle"
CUSTOM_PC = "Custom Built PC"


def new_id(prefix: str) -> str:
    """Returns a fresh, never-reused item id such as 'pc-3f9a1c0b2d4e'."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass
class InventoryItem:
    """
    A single tracked item: a standalone part, a composite (PC build or
    bundle) or a component currently linked into a composite.

    Fields map one-to-one onto the `items` table columns, except the link
    lists which live in their own tables.
    """

    id: str
    name: str
    category: str
    buy_price: float
    buy_date: Optional[str] = None
    sub_category: Optional[str] = None
    status: ItemStatus = ItemStatus.IN_STOCK
    vendor: Optional[str] = None
    description: str = ""
    notes: list[str] = field(default_factory=list)

    sell_price: Optional[float] = None
    sell_date: Optional[str] = None
    profit: Optional[float] = None
    fee_amount: Optional[float] = None
    has_fee: bool = False
    payment_type: Optional[str] = None
    platform_sold: Optional[str] = None
    platform_bought: Optional[str] = None
    container_sold_date: Optional[str] = None

    is_defective: bool = False
    is_draft: bool = False
    specs: dict[str, SpecValue] = field(default_factory=dict)

    is_pc: bool = False
    is_bundle: bool = False
    component_ids: list[str] = field(default_factory=list)
    parent_container_id: Optional[str] = None

    traded_from_id: Optional[str] = None
    traded_for_ids: list[str] = field(default_factory=list)
    cash_on_top: Optional[float] = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("Item id must be a non-empty string.")
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("Item name must be a non-empty string.")
        if self.buy_price is None or self.buy_price < 0:
            raise ValueError(f"buy_price must be >= 0 (item '{self.name}').")
        if not isinstance(self.status, ItemStatus):
            try:
                self.status = ItemStatus(self.status)
            except ValueError:
                allowed = ", ".join(s.value for s in ItemStatus)
                raise ValueError(f"Invalid status '{self.status}'. Allowed: {allowed}") from None
        for key, value in self.specs.items():
            # Spec values are stored as JSON; only plain text and numbers are allowed.
            if not isinstance(value, (str, int, float)):
                raise ValueError(f"Spec '{key}' must be text or a number, got {type(value).__name__}.")

    @property
    def is_composite(self) -> bool:
        return self.is_pc or self.is_bundle

    @property
    def is_retro_bundle(self) -> bool:
        return self.sub_category == RETRO_BUNDLE

    def in_category(self, name: str) -> bool:
        """True when either taxonomy level equals `name`."""
        return self.category == name or self.sub_category == name

    def add_note(self, note: str) -> None:
        if not isinstance(note, str) or not note.strip():
            raise ValueError("Note must be a non-empty string.")
        self.notes.append(note.strip())


@dataclass
class ChangeSet:
    """
    Result of one engine operation: records to create, records to overwrite
    and ids to delete. The caller applies the whole batch atomically.
    """

    created: list[InventoryItem] = field(default_factory=list)
    updated: list[InventoryItem] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    def touched_ids(self) -> list[str]:
        return [i.id for i in self.created] + [i.id for i in self.updated] + list(self.deleted)

    def find(self, item_id: str) -> Optional[InventoryItem]:
        """Looks up a created or updated record by id."""
        for item in self.created + self.updated:
            if item.id == item_id:
                return item
        return None
