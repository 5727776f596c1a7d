"""
Compatibility resolver.

Decides whether CPUs, motherboards and RAM fit together, using only the
spec bags on the parts. Two entry points:

- check_slot_compatibility: can a candidate go into a build slot given the
  parts already selected?
- compatible_partners: which catalog items pair with a given part?

A missing spec is never a conflict. Vendor inference from brand/chipset
text is best effort and returns None when it cannot tell.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence

from item import DISPOSED_STATUSES, InventoryItem
from specs import first_spec

logger = logging.getLogger(__name__)

PROCESSORS = "Processors"
MOTHERBOARDS = "Motherboards"
RAM = "RAM"

CPU_SLOT = "CPU"
MOBO_SLOT = "MOBO"
RAM_SLOT = "RAM"

BRAND_KEYS = ("Brand", "Vendor")
CHIPSET_KEYS = ("Chipset",)
BOARD_MEMORY_KEYS = ("Memory Type", "RAM Type")
RAM_MEMORY_KEYS = ("Memory Type", "RAM Type", "Type", "DDR")


class Vendor(str, Enum):
    AMD = "amd"
    INTEL = "intel"


# Keys are normalised socket strings (see normalize_socket).
SOCKET_VENDORS: dict[str, Vendor] = {
    "AM3": Vendor.AMD,
    "AM3+": Vendor.AMD,
    "AM4": Vendor.AMD,
    "AM5": Vendor.AMD,
    "TR4": Vendor.AMD,
    "STRX4": Vendor.AMD,
    "STR5": Vendor.AMD,
    "SWRX8": Vendor.AMD,
    "LGA1150": Vendor.INTEL,
    "LGA1151": Vendor.INTEL,
    "LGA1155": Vendor.INTEL,
    "LGA1156": Vendor.INTEL,
    "LGA1200": Vendor.INTEL,
    "LGA1700": Vendor.INTEL,
    "LGA1851": Vendor.INTEL,
    "LGA2011": Vendor.INTEL,
    "LGA20113": Vendor.INTEL,
    "LGA2066": Vendor.INTEL,
    "LGA4677": Vendor.INTEL,
}

SOCKET_RAM_GENERATIONS: dict[str, tuple[str, ...]] = {
    "AM3": ("DDR3",),
    "AM3+": ("DDR3",),
    "AM4": ("DDR4",),
    "AM5": ("DDR5",),
    "TR4": ("DDR4",),
    "STRX4": ("DDR4",),
    "STR5": ("DDR5",),
    "SWRX8": ("DDR4",),
    "LGA1150": ("DDR3",),
    "LGA1155": ("DDR3",),
    "LGA1156": ("DDR3",),
    "LGA2011": ("DDR3",),
    "LGA1151": ("DDR4",),
    "LGA1200": ("DDR4",),
    "LGA20113": ("DDR4",),
    "LGA2066": ("DDR4",),
    "LGA1700": ("DDR4", "DDR5"),
    "LGA1851": ("DDR5",),
    "LGA4677": ("DDR5",),
}

AMD_CHIPSETS = frozenset({
    "A320", "A520", "A620",
    "B350", "B450", "B550", "B650", "B840", "B850",
    "X370", "X470", "X570", "X670", "X870",
    "TRX40", "WRX80", "WRX90",
})
INTEL_CHIPSETS = frozenset({
    "H110", "H170", "H270", "H310", "H370", "H410", "H470", "H510", "H570",
    "H610", "H670", "H770", "H810",
    "B150", "B250", "B360", "B365", "B460", "B560", "B660", "B760", "B860",
    "Z170", "Z270", "Z370", "Z390", "Z490", "Z590", "Z690", "Z790", "Z890",
    "X79", "X99", "X299", "W480", "W680", "W790",
})

AMD_MARKERS = ("AMD", "RYZEN", "THREADRIPPER")
INTEL_MARKERS = ("INTEL", "CORE")

_DDR_RE = re.compile(r"DDR\d")
# Suffix letters cover variants such as X670E, B550M and B650I.
_CHIPSET_RE = re.compile(r"\b([A-Z]{1,3}\d{2,3})[EMI]?\b")


@dataclass(frozen=True)
class CompatibilityResult:
    compatible: bool
    reason: Optional[str] = None


COMPATIBLE = CompatibilityResult(True)


@dataclass
class CompatibleGroup:
    label: str
    items: list[InventoryItem] = field(default_factory=list)


def normalize_socket(value: object) -> str:
    """'LGA 1700', 'lga-1700' and 'LGA1700' all normalise to 'LGA1700'."""
    if value is None:
        return ""
    return re.sub(r"[\s\-]+", "", str(value)).upper()


def socket_vendor(socket: str) -> Optional[Vendor]:
    s = normalize_socket(socket)
    if not s:
        return None
    if s in SOCKET_VENDORS:
        return SOCKET_VENDORS[s]
    if s.startswith("AM"):
        return Vendor.AMD
    if s.startswith("LGA") or s.startswith("S"):
        return Vendor.INTEL
    return None


def vendor_from_text(text: object) -> Optional[Vendor]:
    """Scans brand text for vendor markers. AMD markers win ('AMD Ryzen 8-Core')."""
    if text is None:
        return None
    upper = str(text).upper()
    if any(marker in upper for marker in AMD_MARKERS):
        return Vendor.AMD
    if any(marker in upper for marker in INTEL_MARKERS):
        return Vendor.INTEL
    return None


def chipset_vendor(text: object) -> Optional[Vendor]:
    if text is None:
        return None
    for token in _CHIPSET_RE.findall(str(text).upper()):
        if token in AMD_CHIPSETS:
            return Vendor.AMD
        if token in INTEL_CHIPSETS:
            return Vendor.INTEL
    return None


def cpu_vendor(cpu: InventoryItem) -> Optional[Vendor]:
    return vendor_from_text(first_spec(cpu, *BRAND_KEYS))


def board_vendor(board: InventoryItem) -> Optional[Vendor]:
    """Brand text first (rarely names AMD/Intel on boards), then the chipset spec, then the name."""
    found = vendor_from_text(first_spec(board, *BRAND_KEYS))
    if found is not None:
        return found
    return chipset_vendor(first_spec(board, *CHIPSET_KEYS)) or chipset_vendor(board.name)


def ram_generation(value: object) -> Optional[str]:
    """'DDR4 3200' -> 'DDR4'. Returns None when no generation token is present."""
    if value is None:
        return None
    match = _DDR_RE.search(str(value).upper())
    return match.group(0) if match else None


def ram_generations(value: object) -> tuple[str, ...]:
    """All generations a board declares, e.g. 'DDR4, DDR5' or 'DDR4/DDR5'."""
    if value is None:
        return ()
    found: list[str] = []
    for token in _DDR_RE.findall(str(value).upper()):
        if token not in found:
            found.append(token)
    return tuple(found)


def _socket(item: InventoryItem) -> str:
    return normalize_socket(first_spec(item, "Socket"))


def _label(vendor: Vendor) -> str:
    return "AMD" if vendor is Vendor.AMD else "Intel"


def check_cpu_board(cpu: InventoryItem, board: InventoryItem, *, candidate_is_cpu: bool) -> CompatibilityResult:
    """
    Socket and vendor-family check between one CPU and one motherboard.

    The selected part is the anchor. When the anchor lists a socket, the
    candidate must list the same one; a candidate without a socket spec is
    rejected in that case.
    """
    cpu_socket = _socket(cpu)
    board_socket = _socket(board)
    anchor_socket, candidate_socket = (board_socket, cpu_socket) if candidate_is_cpu else (cpu_socket, board_socket)
    anchor_kind = "Motherboard" if candidate_is_cpu else "CPU"
    candidate_kind = "CPU" if candidate_is_cpu else "board"

    if anchor_socket:
        if not candidate_socket:
            return CompatibilityResult(
                False, f"{anchor_kind} is {anchor_socket}; this {candidate_kind} lists no socket"
            )
        if anchor_socket != candidate_socket:
            return CompatibilityResult(
                False, f"{anchor_kind} is {anchor_socket}; this {candidate_kind} is {candidate_socket}"
            )

    family_by_socket = socket_vendor(board_socket or cpu_socket)
    cpu_family = cpu_vendor(cpu)
    board_family = board_vendor(board)

    if family_by_socket and cpu_family and cpu_family != family_by_socket:
        return CompatibilityResult(
            False,
            f"{board_socket or cpu_socket} is an {_label(family_by_socket)} socket; "
            f"this is an {_label(cpu_family)} CPU",
        )
    if board_family and cpu_family and board_family != cpu_family:
        return CompatibilityResult(
            False, f"{_label(cpu_family)} CPU cannot use an {_label(board_family)} motherboard"
        )
    if family_by_socket and board_family and board_family != family_by_socket:
        return CompatibilityResult(
            False,
            f"{board_socket or cpu_socket} is an {_label(family_by_socket)} socket; "
            f"this board has an {_label(board_family)} chipset",
        )
    return COMPATIBLE


def check_ram(ram: InventoryItem, board: Optional[InventoryItem], cpu: Optional[InventoryItem]) -> CompatibilityResult:
    generation = ram_generation(first_spec(ram, *RAM_MEMORY_KEYS))
    if generation is None:
        return COMPATIBLE

    # A board's own declaration takes precedence over what the CPU socket implies.
    if board is not None:
        declared = ram_generations(first_spec(board, *BOARD_MEMORY_KEYS))
        if declared:
            if generation in declared:
                return COMPATIBLE
            return CompatibilityResult(
                False, f"Motherboard supports {'/'.join(declared)}; this is {generation}"
            )

    if cpu is not None:
        socket = _socket(cpu)
        allowed = SOCKET_RAM_GENERATIONS.get(socket)
        if allowed:
            if generation in allowed:
                return COMPATIBLE
            return CompatibilityResult(
                False, f"CPU socket {socket} supports {'/'.join(allowed)}; this is {generation}"
            )
    return COMPATIBLE


def _first(selections: Mapping[str, Sequence[InventoryItem]], slot_id: str) -> Optional[InventoryItem]:
    chosen = selections.get(slot_id) or ()
    return chosen[0] if chosen else None


def check_slot_compatibility(
    candidate: InventoryItem,
    slot_id: str,
    selections: Mapping[str, Sequence[InventoryItem]],
) -> CompatibilityResult:
    """Can `candidate` occupy `slot_id` given the current per-slot selections?"""
    board = _first(selections, MOBO_SLOT)
    cpu = _first(selections, CPU_SLOT)

    if slot_id == CPU_SLOT:
        if board is None:
            return COMPATIBLE
        return check_cpu_board(candidate, board, candidate_is_cpu=True)
    if slot_id == MOBO_SLOT:
        if cpu is None:
            return COMPATIBLE
        return check_cpu_board(cpu, candidate, candidate_is_cpu=False)
    if slot_id == RAM_SLOT:
        return check_ram(candidate, board, cpu)
    # No rule for this slot.
    return COMPATIBLE


def _memory_text(item: InventoryItem, keys: Iterable[str]) -> str:
    value = first_spec(item, *keys)
    return str(value).strip().upper() if value is not None else ""


def _memory_overlaps(board_mem: str, ram_type: str) -> bool:
    return bool(board_mem and ram_type) and (ram_type in board_mem or board_mem in ram_type)


def compatible_partners(item: InventoryItem, catalog: Iterable[InventoryItem]) -> list[CompatibleGroup]:
    """
    Groups of catalog items that pair with `item`. Sold/traded items and the
    item itself are skipped; empty groups are left out.
    """
    others = [i for i in catalog if i.id != item.id and i.status not in DISPOSED_STATUSES]
    groups: list[CompatibleGroup] = []

    def both_sockets(cpu: InventoryItem, board: InventoryItem) -> bool:
        return bool(_socket(cpu)) and bool(_socket(board))

    if item.in_category(PROCESSORS) and _socket(item):
        boards = [
            o for o in others
            if o.in_category(MOTHERBOARDS)
            and both_sockets(item, o)
            and check_cpu_board(item, o, candidate_is_cpu=False).compatible
        ]
        groups.append(CompatibleGroup("Compatible motherboards", boards))

    if item.in_category(MOTHERBOARDS):
        if _socket(item):
            cpus = [
                o for o in others
                if o.in_category(PROCESSORS)
                and both_sockets(o, item)
                and check_cpu_board(o, item, candidate_is_cpu=True).compatible
            ]
            groups.append(CompatibleGroup("Compatible CPUs", cpus))
        board_mem = _memory_text(item, BOARD_MEMORY_KEYS)
        if board_mem:
            rams = [
                o for o in others
                if o.in_category(RAM) and _memory_overlaps(board_mem, _memory_text(o, RAM_MEMORY_KEYS))
            ]
            groups.append(CompatibleGroup("Compatible RAM", rams))

    if item.in_category(RAM):
        ram_type = _memory_text(item, RAM_MEMORY_KEYS)
        if ram_type:
            boards = [
                o for o in others
                if o.in_category(MOTHERBOARDS) and _memory_overlaps(_memory_text(o, BOARD_MEMORY_KEYS), ram_type)
            ]
            groups.append(CompatibleGroup("Compatible motherboards", boards))

    result = [g for g in groups if g.items]
    logger.debug("Compatible partners for %s: %s", item.id, {g.label: len(g.items) for g in result})
    return result
