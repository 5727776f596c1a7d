"""
Composition manager.

Owns the parent/child linkage between composite assets (PC builds,
bundles) and their components. Every operation reads a Catalog snapshot
and returns a ChangeSet; nothing is mutated in place. The caller must
apply the whole batch atomically.
"""

import logging
import re
from dataclasses import dataclass, replace
from datetime import date
from typing import Optional, Sequence

from catalog import Catalog
from item import (
    CUSTOM_PC,
    DISPOSED_STATUSES,
    RETRO_BUNDLE,
    SMART_BUNDLE,
    ChangeSet,
    InventoryItem,
    ItemStatus,
    new_id,
)

logger = logging.getLogger(__name__)

# Fields wiped when a forward build returns its parts to stock.
_SALE_FIELDS = ("sell_price", "sell_date", "profit", "payment_type", "platform_sold", "container_sold_date")

_BRAND_WORDS = re.compile(r"(Intel|AMD|Core|Ryzen|NVIDIA|GeForce|Radeon|ASUS|MSI|Gigabyte)", re.IGNORECASE)


def _today() -> str:
    return date.today().isoformat()


def _contents_listing(title: str, components: Sequence[InventoryItem]) -> str:
    return title + "\n" + "\n".join(f"- {c.name}" for c in components)


def _resolve_components(catalog: Catalog, component_ids: Sequence[str]) -> list[InventoryItem]:
    seen: set[str] = set()
    components = []
    for component_id in component_ids:
        if component_id in seen:
            continue
        seen.add(component_id)
        components.append(catalog.require(component_id))
    return components


def assemble(
    catalog: Catalog,
    name: str,
    component_ids: Sequence[str],
    *,
    composite_id: Optional[str] = None,
    bundle: bool = False,
) -> ChangeSet:
    """
    Creates a composite from the given components, or re-links an existing
    one when `composite_id` names a composite already in the catalog.

    Components dropped from an edited composite go back to stock with their
    back-reference cleared, in the same batch.
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Enter a name for the build.")
    if not component_ids:
        raise ValueError("Build is empty.")

    existing = catalog.get(composite_id) if composite_id else None
    if existing is not None and not existing.is_composite:
        raise ValueError(f"Item '{existing.name}' is not a PC build or bundle.")
    if existing is not None and (existing.is_retro_bundle or existing.status in DISPOSED_STATUSES):
        raise ValueError(f"'{existing.name}' is already sold; dismantle it instead of editing.")
    target_id = composite_id or new_id("bundle" if bundle else "pc")

    components = _resolve_components(catalog, component_ids)
    for c in components:
        if c.id == target_id:
            raise ValueError("A build cannot contain itself.")
        if c.is_composite:
            raise ValueError(f"'{c.name}' is itself a build or bundle.")
        owner = catalog.parent_of(c.id)
        if owner is not None and owner != target_id:
            raise ValueError(f"'{c.name}' already belongs to another build.")
        if owner is None and c.status != ItemStatus.IN_STOCK:
            raise ValueError(f"'{c.name}' is not in stock (status: {c.status.value}).")

    total_cost = sum(c.buy_price for c in components)
    new_ids = [c.id for c in components]
    if bundle:
        listing = _contents_listing("Bundle contents:", components)
    else:
        listing = _contents_listing("Custom Build Specs:", components)

    changes = ChangeSet()
    if existing is not None:
        composite = replace(
            existing,
            name=name,
            buy_price=total_cost,
            component_ids=new_ids,
            status=ItemStatus.IN_STOCK,
            description=listing,
        )
        changes.updated.append(composite)
    else:
        composite = InventoryItem(
            id=target_id,
            name=name,
            category="Bundle" if bundle else "PC",
            sub_category=SMART_BUNDLE if bundle else CUSTOM_PC,
            buy_price=total_cost,
            status=ItemStatus.IN_STOCK,
            vendor="Bundle" if bundle else "Custom Build",
            description=listing,
            is_pc=not bundle,
            is_bundle=bundle,
            component_ids=new_ids,
        )
        changes.created.append(composite)

    for c in components:
        changes.updated.append(
            replace(c, status=ItemStatus.IN_COMPOSITION, parent_container_id=target_id)
        )

    if existing is not None:
        kept = set(new_ids)
        for previous in catalog.components_of(target_id):
            if previous.id not in kept:
                changes.updated.append(
                    replace(previous, status=ItemStatus.IN_STOCK, parent_container_id=None)
                )

    logger.debug(
        "Assembled %s '%s' from %d components (%d records changed)",
        target_id, name, len(components), len(changes.touched_ids()),
    )
    return changes


def sell_composite(
    catalog: Catalog,
    composite_id: str,
    sell_price: float,
    sell_date: Optional[str] = None,
    *,
    fee_amount: float = 0.0,
    profit: Optional[float] = None,
    payment_type: Optional[str] = None,
    platform_sold: Optional[str] = None,
) -> ChangeSet:
    """
    Records the composite's sale and carries the sale date down to every
    component. Component buy dates are left as they are.
    """
    composite = catalog.require(composite_id)
    if not composite.is_composite:
        raise ValueError(f"Item '{composite.name}' is not a PC build or bundle.")
    if composite.status in DISPOSED_STATUSES:
        raise ValueError(f"'{composite.name}' is already {composite.status.value.lower()}.")
    if sell_price is None or sell_price < 0:
        raise ValueError("Sell price must be >= 0.")

    sold_at = sell_date or _today()
    fee = fee_amount or 0.0
    changes = ChangeSet()
    changes.updated.append(
        replace(
            composite,
            status=ItemStatus.SOLD,
            sell_price=sell_price,
            sell_date=sold_at,
            fee_amount=fee,
            has_fee=fee > 0,
            profit=profit if profit is not None else sell_price - composite.buy_price - fee,
            payment_type=payment_type,
            platform_sold=platform_sold,
        )
    )
    for c in catalog.components_of(composite_id):
        changes.updated.append(
            replace(c, status=ItemStatus.SOLD, sell_date=sold_at, container_sold_date=sold_at)
        )
    return changes


def dismantle(catalog: Catalog, composite_id: str) -> ChangeSet:
    """
    Deletes a composite and releases its components.

    Components of a retro bundle go back to SOLD with their own sale
    records intact. Components of a forward build or smart bundle go back
    to IN_STOCK with every sale-related field cleared.
    """
    composite = catalog.require(composite_id)
    if not composite.is_composite:
        raise ValueError(f"Item '{composite.name}' is not a PC build or bundle.")

    changes = ChangeSet(deleted=[composite_id])
    for c in catalog.components_of(composite_id):
        if composite.is_retro_bundle:
            restored = replace(c, status=ItemStatus.SOLD, parent_container_id=None)
        else:
            restored = replace(
                c,
                status=ItemStatus.IN_STOCK,
                parent_container_id=None,
                **{f: None for f in _SALE_FIELDS},
            )
        changes.updated.append(restored)

    logger.debug("Dismantled %s, released %d components", composite_id, len(changes.updated))
    return changes


@dataclass(frozen=True)
class RetroBundleSummary:
    """Preview of a retroactive bundle before it is created."""

    name: str
    total_sell: float
    total_buy: float
    total_fees: float
    margin: float
    has_fee: bool
    platform_sold: str
    payment_type: str
    sell_date: str
    item_count: int


def _clean_name(name: str) -> str:
    return re.sub(r"\s+", " ", _BRAND_WORDS.sub("", name)).strip()


def suggest_bundle_name(items: Sequence[InventoryItem]) -> str:
    cpus = [i for i in items if i.in_category("Processors")]
    gpus = [i for i in items if i.in_category("Graphics Cards")]
    boards = [i for i in items if i.in_category("Motherboards")]
    cases = [i for i in items if i.in_category("Cases")]

    if cases and cpus and gpus:
        return f"Gaming PC: {_clean_name(cpus[0].name)} + {_clean_name(gpus[0].name)}"
    if cpus and boards:
        return f"Upgrade Bundle: {_clean_name(cpus[0].name)} + Mobo"
    if len(gpus) > 1:
        return f"GPU Bundle: {len(gpus)}x Graphics Cards"

    by_price = sorted(items, key=lambda i: i.buy_price, reverse=True)
    top = " + ".join(i.name for i in by_price[:2])
    return f"Bundle: {top}{'...' if len(items) > 2 else ''}"


def _check_retro_selection(catalog: Catalog, items: Sequence[InventoryItem]) -> None:
    if len(items) < 2:
        raise ValueError("Select at least 2 items to bundle.")
    for i in items:
        if i.status not in DISPOSED_STATUSES:
            raise ValueError(f"'{i.name}' has not been sold or traded.")
        if i.is_composite:
            raise ValueError(f"'{i.name}' is itself a build or bundle.")
        if catalog.parent_of(i.id) is not None:
            raise ValueError(f"'{i.name}' already belongs to a bundle.")


def summarize_retro_bundle(
    catalog: Catalog,
    item_ids: Sequence[str],
    *,
    today: Optional[str] = None,
) -> RetroBundleSummary:
    items = _resolve_components(catalog, item_ids)
    _check_retro_selection(catalog, items)

    total_sell = sum(i.sell_price or 0 for i in items)
    total_buy = sum(i.buy_price or 0 for i in items)
    total_fees = sum(i.fee_amount or 0 for i in items)

    # Items bundled together were sold together, so the first one speaks for all.
    first = items[0]
    sell_dates = {i.sell_date for i in items if i.sell_date}
    sell_date = sell_dates.pop() if len(sell_dates) == 1 else (today or _today())

    return RetroBundleSummary(
        name=suggest_bundle_name(items),
        total_sell=total_sell,
        total_buy=total_buy,
        total_fees=total_fees,
        margin=total_sell - total_buy - total_fees,
        has_fee=any(i.has_fee for i in items),
        platform_sold=first.platform_sold or "Other",
        payment_type=first.payment_type or "Other",
        sell_date=sell_date,
        item_count=len(items),
    )


def retro_bundle(
    catalog: Catalog,
    item_ids: Sequence[str],
    *,
    name: Optional[str] = None,
    sell_date: Optional[str] = None,
    bundle_id: Optional[str] = None,
    today: Optional[str] = None,
) -> ChangeSet:
    """
    Groups already-sold items into one aggregate sale record. The original
    items keep their own sale fields and come back via dismantle().
    """
    summary = summarize_retro_bundle(catalog, item_ids, today=today)
    items = _resolve_components(catalog, item_ids)
    target_id = bundle_id or new_id("bundle")
    bundle_name = (name or "").strip() or summary.name

    bundle = InventoryItem(
        id=target_id,
        name=bundle_name,
        category="Bundle",
        sub_category=RETRO_BUNDLE,
        status=ItemStatus.SOLD,
        buy_price=summary.total_buy,
        sell_price=summary.total_sell,
        profit=summary.margin,
        fee_amount=summary.total_fees,
        has_fee=summary.has_fee,
        sell_date=sell_date or summary.sell_date,
        platform_sold=summary.platform_sold,
        payment_type=summary.payment_type,
        vendor="Combined",
        description=f"Retroactive bundle of {len(items)} items.",
        is_bundle=True,
        component_ids=[i.id for i in items],
    )
    changes = ChangeSet(created=[bundle])
    for i in items:
        changes.updated.append(
            replace(i, status=ItemStatus.IN_COMPOSITION, parent_container_id=target_id)
        )
    logger.debug("Retro bundle %s over %d items, margin %.2f", target_id, len(items), summary.margin)
    return changes
