"""
Trade exchange engine.

Turns the disposal of one item into zero or more acquired items plus an
optional cash delta (positive = received, negative = paid).
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from catalog import Catalog
from item import DISPOSED_STATUSES, ChangeSet, InventoryItem, ItemStatus, SpecValue, new_id

logger = logging.getLogger(__name__)

TRADE_PAYMENT = "Trade"


@dataclass
class IncomingDraft:
    """An item received in a trade, valued by the user."""

    name: str
    value: float
    category: str = "PC Components"
    sub_category: Optional[str] = None
    specs: dict[str, SpecValue] = field(default_factory=dict)


@dataclass(frozen=True)
class TradeQuote:
    total_incoming_value: float
    cash_delta: float
    total_trade_value: float
    projected_profit: float


def quote_trade(outgoing: InventoryItem, incoming: Sequence[IncomingDraft], cash_delta: float = 0.0) -> TradeQuote:
    for draft in incoming:
        if not draft.name or not draft.name.strip():
            raise ValueError("Every incoming item needs a name.")
        if draft.value is None or draft.value < 0:
            raise ValueError(f"Value for '{draft.name}' must be >= 0.")
    total_incoming = sum(d.value for d in incoming)
    total_trade = total_incoming + cash_delta
    return TradeQuote(
        total_incoming_value=total_incoming,
        cash_delta=cash_delta,
        total_trade_value=total_trade,
        projected_profit=total_trade - outgoing.buy_price,
    )


def execute_trade(
    catalog: Catalog,
    outgoing_id: str,
    incoming: Sequence[IncomingDraft],
    cash_delta: float,
    trade_date: str,
    note: str = "",
) -> ChangeSet:
    """
    Marks the outgoing item TRADED and creates one IN_STOCK item per
    incoming draft, each with the trade value as its cost basis.
    """
    outgoing = catalog.require(outgoing_id)
    if not incoming and not cash_delta:
        raise ValueError("Please add at least one item or cash to the trade.")
    if outgoing.status in DISPOSED_STATUSES:
        raise ValueError(f"'{outgoing.name}' is already {outgoing.status.value.lower()}.")
    if outgoing.status == ItemStatus.IN_COMPOSITION or catalog.parent_of(outgoing_id) is not None:
        raise ValueError(f"'{outgoing.name}' is part of a build; dismantle it first.")
    if not trade_date:
        raise ValueError("Trade date is required.")

    quote = quote_trade(outgoing, incoming, cash_delta)
    context = f"[Trade Context]: {note.strip()}" if note and note.strip() else None

    acquired: list[InventoryItem] = []
    for draft in incoming:
        received = InventoryItem(
            id=new_id("trade"),
            name=draft.name.strip(),
            category=draft.category,
            sub_category=draft.sub_category or draft.category,
            buy_price=draft.value,
            buy_date=trade_date,
            status=ItemStatus.IN_STOCK,
            vendor=TRADE_PAYMENT,
            specs=dict(draft.specs),
            traded_from_id=outgoing.id,
        )
        received.add_note(f"Acquired via trade from: {outgoing.name} (Value: {draft.value:.2f})")
        if context:
            received.add_note(context)
        acquired.append(received)

    traded = replace(
        outgoing,
        status=ItemStatus.TRADED,
        sell_price=quote.total_trade_value,
        sell_date=trade_date,
        profit=quote.projected_profit,
        payment_type=TRADE_PAYMENT,
        traded_for_ids=[i.id for i in acquired],
        cash_on_top=cash_delta,
        notes=list(outgoing.notes),
    )
    if context:
        traded.add_note(context)
    logger.debug(
        "Trade of %s: %d incoming, cash %.2f, value %.2f",
        outgoing_id, len(acquired), cash_delta, quote.total_trade_value,
    )
    return ChangeSet(created=acquired, updated=[traded])
