"""
Command-line interface (CLI) for the resale inventory.

Menu-driven front end over InventoryService. Subscribes to service events
to print confirmations and link warnings.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from builder import BuildDraft
from catalog import Catalog
from config import configure_logging, load_settings
from db import get_connection, init_db
import events as ev
from events import Event, EventBus
from item import InventoryItem, ItemStatus, new_id
from services import InventoryService
from trade import IncomingDraft


def _prompt_non_empty(prompt: str) -> str:
    while True:
        value = input(prompt).strip()
        if value:
            return value
        print("Input cannot be empty. Please try again.")


def _prompt_int(prompt: str, *, min_value: Optional[int] = None, default: Optional[int] = None) -> int:
    while True:
        raw = input(prompt).strip()
        if raw == "" and default is not None:
            return default
        try:
            value = int(raw)
        except ValueError:
            print("Please enter a valid whole number (integer).")
            continue

        if min_value is not None and value < min_value:
            print(f"Please enter a value >= {min_value}.")
            continue

        return value


def _prompt_money(prompt: str, *, default: Optional[float] = None, allow_negative: bool = False) -> float:
    while True:
        raw = input(prompt).strip().replace(",", ".")
        if raw == "" and default is not None:
            return default
        try:
            value = float(raw)
        except ValueError:
            print("Please enter an amount such as 120 or 89.90.")
            continue
        if value < 0 and not allow_negative:
            print("Please enter an amount >= 0.")
            continue
        return value


def _prompt_specs() -> dict[str, str]:
    specs: dict[str, str] = {}
    print("Specs as 'Key=Value', empty line to finish (e.g. Socket=AM4).")
    while True:
        line = input("  spec: ").strip()
        if not line:
            return specs
        if "=" not in line:
            print("  Use the form Key=Value.")
            continue
        key, value = line.split("=", 1)
        if key.strip():
            specs[key.strip()] = value.strip()


def _format_item(item: InventoryItem) -> str:
    price = f"buy={item.buy_price:.2f}"
    if item.sell_price is not None:
        price += f" sell={item.sell_price:.2f}"
    flags = ""
    if item.is_pc:
        flags = " [PC]"
    elif item.is_bundle:
        flags = f" [{item.sub_category or 'Bundle'}]"
    if item.is_defective:
        flags += " [defective]"
    return f"id={item.id} | {item.name}{flags} | {item.category} | {item.status.value} | {price}"


def _print_catalog(catalog: Catalog) -> None:
    # Components are printed beneath their composite, not at top level.
    for item in catalog:
        if catalog.parent_of(item.id) is not None:
            continue
        print(f"- {_format_item(item)}")
        for component in catalog.components_of(item.id):
            print(f"    └ {_format_item(component)}")


def _handle_event(event: Event) -> None:
    if event.name == ev.LINK_ISSUES_FOUND:
        for composite_id, component_id, problem in event.payload.get("issues", []):
            print(f"[WARN] composite {composite_id} / component {component_id}: {problem}")
        return
    subject = event.payload.get("composite_id") or event.payload.get("item_id", "<unknown>")
    print(f"[{event.name}] {subject}")


def _edit_build(service: InventoryService, draft: BuildDraft, user: str) -> None:
    while True:
        print(f"\nBuild: {draft.name}  (total cost {draft.total_cost():.2f})")
        for pos, slot in enumerate(draft.slots, start=1):
            chosen = ", ".join(i.name for i in draft.selections.get(slot.id, [])) or "-"
            marker = "*" if slot.required else " "
            print(f" {pos:2d}){marker} {slot.label}: {chosen}")
        print("  r) Rename   a) Auto-name   s) Save   q) Cancel")
        choice = input("Slot number or action: ").strip().lower()

        if choice == "q":
            return
        if choice == "r":
            draft.rename(_prompt_non_empty("Build name: "))
            continue
        if choice == "a":
            draft.reset_name()
            continue
        if choice == "s":
            try:
                composite_id = service.save_build(user, draft)
                print(f"Saved build id={composite_id}.")
                return
            except (ValueError, RuntimeError) as e:
                print(f"Error: {e}")
                continue

        try:
            slot = draft.slots[int(choice) - 1]
        except (ValueError, IndexError):
            print("Invalid choice. Please try again.")
            continue

        query = input("Filter by name (optional): ").strip()
        found = draft.candidates(slot.id, service.snapshot(), query)
        if not found.items:
            print("No matching items in stock.")
        for pos, item in enumerate(found.items, start=1):
            mark = "x" if draft.is_selected(slot.id, item.id) else " "
            print(f"  [{mark}] {pos}) {item.name} ({item.buy_price:.2f})")
        if found.hidden_incompatible:
            print(f"  ({found.hidden_incompatible} incompatible items hidden)")
        if found.items:
            pick = _prompt_int("Toggle which item? (0 = none) ", min_value=0, default=0)
            if 1 <= pick <= len(found.items):
                draft.toggle(slot.id, found.items[pick - 1])


def run(db_path: Optional[str] = None) -> None:
    settings = load_settings()
    configure_logging(settings)

    print("Resale Hardware Inventory")
    print("-------------------------")

    user = _prompt_non_empty("Enter your name (for audit logging): ")

    bus = EventBus()
    for name in (
        ev.COMPOSITE_ASSEMBLED, ev.COMPOSITE_UPDATED, ev.COMPOSITE_SOLD,
        ev.COMPOSITE_DISMANTLED, ev.RETRO_BUNDLE_CREATED, ev.ITEM_TRADED, ev.LINK_ISSUES_FOUND,
    ):
        bus.subscribe(name, _handle_event)

    conn = get_connection(db_path or settings.db_path)
    init_db(conn)
    service = InventoryService(conn, bus, settings)

    try:
        while True:
            print("\nMenu:")
            print(" 1) List inventory")
            print(" 2) Add item")
            print(" 3) Show compatible parts for an item")
            print(" 4) Build a new PC")
            print(" 5) Edit an existing build")
            print(" 6) Sell a build or bundle")
            print(" 7) Dismantle a build or bundle")
            print(" 8) Bundle sold items retroactively")
            print(" 9) Trade an item")
            print("10) View recent logs")
            print("11) Exit")

            choice = _prompt_int("Choose an option: ", min_value=1)

            if choice == 1:
                catalog = service.snapshot()
                if not len(catalog):
                    print("No items found.")
                else:
                    _print_catalog(catalog)

            elif choice == 2:
                try:
                    item = InventoryItem(
                        id=new_id("item"),
                        name=_prompt_non_empty("Name: "),
                        category=_prompt_non_empty("Category (e.g. Processors, RAM): "),
                        sub_category=input("Sub-category (optional): ").strip() or None,
                        buy_price=_prompt_money("Buy price: "),
                        buy_date=input("Buy date (YYYY-MM-DD, optional): ").strip() or None,
                        status=input("Status [In Stock]: ").strip() or ItemStatus.IN_STOCK,
                        specs=_prompt_specs(),
                    )
                    print(f"Created item id={service.add_item(user, item)}.")
                except (ValueError, RuntimeError) as e:
                    print(f"Error: {e}")

            elif choice == 3:
                item_id = _prompt_non_empty("Item id: ")
                try:
                    groups = service.compatible_partners(item_id)
                except ValueError as e:
                    print(f"Error: {e}")
                    continue
                if not groups:
                    print("No compatible items found.")
                for group in groups:
                    print(f"{group.label}:")
                    for item in group.items:
                        print(f"  - {_format_item(item)}")

            elif choice == 4:
                _edit_build(service, service.new_build(), user)

            elif choice == 5:
                try:
                    draft = service.edit_build(_prompt_non_empty("Build id: "))
                except ValueError as e:
                    print(f"Error: {e}")
                    continue
                _edit_build(service, draft, user)

            elif choice == 6:
                composite_id = _prompt_non_empty("Build/bundle id: ")
                price = _prompt_money("Sell price: ")
                sell_date = input("Sell date (YYYY-MM-DD, blank = today): ").strip() or None
                fee = _prompt_money("Fees [0]: ", default=0.0)
                platform = input("Platform (optional): ").strip() or None
                payment = input("Payment type (optional): ").strip() or None
                try:
                    service.sell_composite(
                        user, composite_id, price, sell_date,
                        fee_amount=fee, payment_type=payment, platform_sold=platform,
                    )
                    print("Sale recorded.")
                except (ValueError, RuntimeError) as e:
                    print(f"Error: {e}")

            elif choice == 7:
                composite_id = _prompt_non_empty("Build/bundle id: ")
                try:
                    released = service.dismantle(user, composite_id)
                    print(f"Dismantled; {len(released)} components restored.")
                except (ValueError, RuntimeError) as e:
                    print(f"Error: {e}")

            elif choice == 8:
                raw = _prompt_non_empty("Sold item ids (comma separated): ")
                item_ids = [p.strip() for p in raw.split(",") if p.strip()]
                try:
                    summary = service.preview_retro_bundle(item_ids)
                    print(
                        f"{summary.item_count} items | sell {summary.total_sell:.2f} | "
                        f"buy {summary.total_buy:.2f} | fees {summary.total_fees:.2f} | "
                        f"margin {summary.margin:.2f} | date {summary.sell_date}"
                    )
                    name = input(f"Bundle name [{summary.name}]: ").strip() or None
                    bundle_id = service.create_retro_bundle(user, item_ids, name=name)
                    print(f"Created bundle id={bundle_id}.")
                except (ValueError, RuntimeError) as e:
                    print(f"Error: {e}")

            elif choice == 9:
                outgoing_id = _prompt_non_empty("Outgoing item id: ")
                incoming: list[IncomingDraft] = []
                while True:
                    name = input("Incoming item name (blank to finish): ").strip()
                    if not name:
                        break
                    value = _prompt_money("  Assigned value: ")
                    category = input("  Category [PC Components]: ").strip() or "PC Components"
                    incoming.append(IncomingDraft(name=name, value=value, category=category))
                cash = _prompt_money("Cash (+ received / - paid) [0]: ", default=0.0, allow_negative=True)
                trade_date = input("Trade date (YYYY-MM-DD, blank = today): ").strip() or None
                note = input("Note (optional): ").strip()
                try:
                    acquired = service.trade(user, outgoing_id, incoming, cash, trade_date, note)
                    print(f"Trade recorded; {len(acquired)} items added to stock.")
                except (ValueError, RuntimeError) as e:
                    print(f"Error: {e}")

            elif choice == 10:
                limit = _prompt_int("How many log entries? [50]: ", min_value=1, default=50)
                rows = service.list_logs(item_id=None, limit=limit)
                if not rows:
                    print("No logs found.")
                else:
                    for r in rows:
                        print(
                            f"- {r['timestamp']} | item={r['item_id']} | user={r['actor']} | "
                            f"action={r['action']} | {r['status_before'] or '-'} -> "
                            f"{r['status_after'] or '-'} | msg={r['message']}"
                        )

            elif choice == 11:
                print("Goodbye.")
                return

            else:
                print("Invalid choice. Please try again.")

    except KeyboardInterrupt:
        print("\nExiting...")
    except sqlite3.Error as e:
        print(f"Fatal database error: {e}")
    finally:
        conn.close()


if __name__ == "__main__":
    run()
