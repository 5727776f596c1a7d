"""
Slot assembly engine.

A BuildDraft holds the per-slot selections of a PC build being put
together (or edited). It filters eligible candidates per slot, applies the
compatibility rules, derives a build name and sums the cost. Nothing here
touches item statuses; that happens when the draft is assembled.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from catalog import Catalog
from compatibility import (
    CPU_SLOT,
    MOBO_SLOT,
    MOTHERBOARDS,
    PROCESSORS,
    RAM,
    RAM_SLOT,
    check_slot_compatibility,
)
from item import ItemStatus, InventoryItem

logger = logging.getLogger(__name__)

GPU_SLOT = "GPU"
STORAGE_SLOT = "STORAGE"
PSU_SLOT = "PSU"
CASE_SLOT = "CASE"
COOLING_SLOT = "COOLING"
FANS_SLOT = "FANS"
MISC_SLOT = "MISC"

DEFAULT_BUILD_NAME = "New Gaming PC"
MAX_NAME_LENGTH = 52
NAME_SEPARATOR = " · "

# Composite entities that must never be offered as a single part.
_BUNDLE_CATEGORIES = ("PC Bundle",)


@dataclass(frozen=True)
class SlotDefinition:
    id: str
    label: str
    category: str
    required: bool = False
    multiple: bool = False


DEFAULT_SLOTS: tuple[SlotDefinition, ...] = (
    SlotDefinition(CPU_SLOT, "Processor", PROCESSORS, required=True),
    SlotDefinition(GPU_SLOT, "Graphics Card", "Graphics Cards", required=True),
    SlotDefinition(MOBO_SLOT, "Motherboard", MOTHERBOARDS, required=True),
    SlotDefinition(RAM_SLOT, "Memory (RAM)", RAM, required=True),
    SlotDefinition(STORAGE_SLOT, "Storage", "Storage (SSD/HDD)", required=True),
    SlotDefinition(PSU_SLOT, "Power Supply", "Power Supplies", required=True),
    SlotDefinition(CASE_SLOT, "Case", "Cases", required=True),
    SlotDefinition(COOLING_SLOT, "CPU Cooler", "Cooling"),
    SlotDefinition(FANS_SLOT, "Case Fans", "Fans", multiple=True),
    SlotDefinition(MISC_SLOT, "Accessories", "Misc", multiple=True),
)


@dataclass
class CandidateList:
    """Items offered for a slot, plus how many were hidden as incompatible."""

    items: list[InventoryItem] = field(default_factory=list)
    hidden_incompatible: int = 0


def short_part_name(name: str, slot_id: str) -> str:
    """Bounded-length token used in generated build names."""
    n = (name or "").strip()
    if not n:
        return ""
    if slot_id == CPU_SLOT:
        return re.sub(r"^(AMD|Intel)\s+", "", n, flags=re.IGNORECASE).strip()[:18].strip()
    if slot_id == GPU_SLOT:
        match = re.search(r"(RTX|GTX|RX)\s*\d+\s*\w*", n, re.IGNORECASE) or re.search(
            r"\d{4}\s*(XT|Gaming|OC)?", n, re.IGNORECASE
        )
        if match:
            return match.group(0).strip()[:14].strip()
        stripped = re.sub(
            r"^(MSI|ASUS|Gigabyte|EVGA|Sapphire|XFX|PowerColor)\s+", "", n, flags=re.IGNORECASE
        )
        return stripped.strip()[:14].strip()
    if slot_id == RAM_SLOT:
        match = re.search(r"\d+\s*GB\s*(DDR\d*)?", n, re.IGNORECASE)
        return (match.group(0) if match else n[:12]).strip()
    if slot_id == STORAGE_SLOT:
        match = re.search(r"\d+\s*(TB|GB)\s*(NVMe|SSD|HDD)?", n, re.IGNORECASE)
        return (match.group(0) if match else n[:12]).strip()
    return n[:14].strip()


def derive_build_name(
    selections: dict[str, list[InventoryItem]],
    *,
    max_length: int = MAX_NAME_LENGTH,
    default: str = DEFAULT_BUILD_NAME,
) -> str:
    segments = []
    for slot_id in (CPU_SLOT, GPU_SLOT, RAM_SLOT, STORAGE_SLOT):
        chosen = selections.get(slot_id)
        if chosen:
            token = short_part_name(chosen[0].name, slot_id)
            if token:
                segments.append(token)
    if not segments:
        return default
    name = NAME_SEPARATOR.join(segments)
    if len(name) > max_length:
        name = name[: max_length - 2] + "…"
    return name


def _matches_slot(item: InventoryItem, slot: SlotDefinition) -> bool:
    if slot.id == MISC_SLOT:
        return True
    if slot.id == FANS_SLOT:
        return item.in_category("Fans") or item.sub_category == "Case Fans" or item.in_category("Cooling")
    return item.in_category(slot.category)


def slot_for_item(
    item: InventoryItem,
    slots: Sequence[SlotDefinition] = DEFAULT_SLOTS,
    selections: Optional[dict[str, list[InventoryItem]]] = None,
) -> SlotDefinition:
    """
    First matching slot that can still take the item. A filled single-select
    slot is skipped, so a second cooling part lands in Fans and anything left
    over lands in Misc.
    """
    selections = selections or {}
    for slot in slots:
        if not _matches_slot(item, slot):
            continue
        if slot.multiple or not selections.get(slot.id):
            return slot
    return slots[-1]


# Name-driven slots; a change here refreshes the auto-derived name.
_NAMING_SLOTS = (CPU_SLOT, GPU_SLOT, RAM_SLOT, STORAGE_SLOT)


class BuildDraft:
    """
    Selections for one PC build. `editing_id` is set when the draft was
    loaded from an existing composite.
    """

    def __init__(
        self,
        slots: Sequence[SlotDefinition] = DEFAULT_SLOTS,
        *,
        editing_id: Optional[str] = None,
        max_name_length: int = MAX_NAME_LENGTH,
        default_name: str = DEFAULT_BUILD_NAME,
    ) -> None:
        self.slots = tuple(slots)
        self.editing_id = editing_id
        self.max_name_length = max_name_length
        self.default_name = default_name
        self.selections: dict[str, list[InventoryItem]] = {s.id: [] for s in self.slots}
        self._name = default_name
        self._name_overridden = False

    @classmethod
    def from_composite(cls, catalog: Catalog, composite_id: str, **kwargs) -> "BuildDraft":
        composite = catalog.require(composite_id)
        if not composite.is_composite:
            raise ValueError(f"Item '{composite.name}' is not a PC build or bundle.")
        draft = cls(editing_id=composite_id, **kwargs)
        for component in catalog.components_of(composite_id):
            draft.selections[slot_for_item(component, draft.slots, draft.selections).id].append(component)
        # An existing build keeps its saved name until the user changes parts or renames it.
        draft._name = composite.name
        return draft

    def slot(self, slot_id: str) -> SlotDefinition:
        for s in self.slots:
            if s.id == slot_id:
                return s
        raise ValueError(f"Unknown slot '{slot_id}'.")

    @property
    def name(self) -> str:
        return self._name

    @property
    def name_overridden(self) -> bool:
        return self._name_overridden

    def rename(self, name: str) -> None:
        """Sets an explicit name; automatic naming stops until reset_name()."""
        self._name = (name or "").strip()
        self._name_overridden = True

    def reset_name(self) -> None:
        self._name_overridden = False
        self._refresh_name()

    def _refresh_name(self) -> None:
        if self._name_overridden:
            return
        self._name = derive_build_name(
            self.selections, max_length=self.max_name_length, default=self.default_name
        )

    def _is_eligible(self, item: InventoryItem, catalog: Catalog) -> bool:
        if item.is_composite or item.category in _BUNDLE_CATEGORIES or item.sub_category in _BUNDLE_CATEGORIES:
            return False
        if item.is_defective:
            return False
        if item.status != ItemStatus.IN_STOCK:
            return self.editing_id is not None and catalog.parent_of(item.id) == self.editing_id
        return True

    def candidates(self, slot_id: str, catalog: Catalog, query: str = "") -> CandidateList:
        slot = self.slot(slot_id)
        needle = query.strip().lower()
        matching = [
            i for i in catalog
            if self._is_eligible(i, catalog)
            and _matches_slot(i, slot)
            and (not needle or needle in i.name.lower())
        ]
        result = CandidateList()
        for item in matching:
            if check_slot_compatibility(item, slot_id, self.selections).compatible:
                result.items.append(item)
            else:
                result.hidden_incompatible += 1
        logger.debug(
            "Slot %s: %d candidates, %d hidden as incompatible",
            slot_id, len(result.items), result.hidden_incompatible,
        )
        return result

    def is_selected(self, slot_id: str, item_id: str) -> bool:
        return any(i.id == item_id for i in self.selections.get(slot_id, []))

    def toggle(self, slot_id: str, item: InventoryItem) -> None:
        """
        Selected items are removed. Otherwise multi-select slots append and
        single-select slots replace their current occupant.
        """
        slot = self.slot(slot_id)
        current = self.selections.setdefault(slot_id, [])
        if self.is_selected(slot_id, item.id):
            self.selections[slot_id] = [i for i in current if i.id != item.id]
        elif slot.multiple:
            current.append(item)
        else:
            self.selections[slot_id] = [item]
        if slot_id in _NAMING_SLOTS:
            self._refresh_name()

    def selected_items(self) -> list[InventoryItem]:
        """Flattened selection in slot order, each item once."""
        seen: set[str] = set()
        flat: list[InventoryItem] = []
        for slot in self.slots:
            for item in self.selections.get(slot.id, []):
                if item.id not in seen:
                    seen.add(item.id)
                    flat.append(item)
        return flat

    def total_cost(self) -> float:
        return sum(i.buy_price for i in self.selected_items())

    def missing_required(self) -> list[SlotDefinition]:
        return [s for s in self.slots if s.required and not self.selections.get(s.id)]

    def validate(self, *, enforce_required_slots: bool = False) -> None:
        if not self._name.strip():
            raise ValueError("Enter a name for the build.")
        if not self.selected_items():
            raise ValueError("Build is empty.")
        if enforce_required_slots:
            missing = self.missing_required()
            if missing:
                raise ValueError(
                    "Required slots are empty: " + ", ".join(s.label for s in missing)
                )
