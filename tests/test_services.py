import sqlite3
import unittest
from datetime import date
from unittest import mock

import events as ev
import repositories as repo
from config import Settings
from db import get_connection, init_db
from events import EventBus
from item import InventoryItem, ItemStatus
from services import InventoryService
from trade import IncomingDraft

USER = "Test Engineer"


class ServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.conn = get_connection(":memory:")
        init_db(self.conn)
        self.bus = EventBus()
        self.events = []
        for name in (ev.COMPOSITE_ASSEMBLED, ev.COMPOSITE_UPDATED, ev.COMPOSITE_DISMANTLED,
                     ev.RETRO_BUNDLE_CREATED, ev.ITEM_TRADED, ev.COMPOSITE_SOLD):
            self.bus.subscribe(name, self.events.append)
        self.service = InventoryService(self.conn, self.bus, Settings(db_path=":memory:"))

        self.service.add_item(USER, InventoryItem(
            id="cpu", name="AMD Ryzen 5 5600X", category="Processors", buy_price=120,
            buy_date="2026-01-02", specs={"Socket": "AM4", "Brand": "AMD"},
        ))
        self.service.add_item(USER, InventoryItem(
            id="mb", name="ASUS TUF B550-Plus", category="Motherboards", buy_price=90,
            specs={"Socket": "AM4", "Memory Type": "DDR4"},
        ))
        self.service.add_item(USER, InventoryItem(
            id="ram", name="Corsair 16GB DDR4", category="RAM", buy_price=35,
            specs={"Memory Type": "DDR4 3200"},
        ))

    def tearDown(self) -> None:
        self.conn.close()

    def _build(self, *item_ids: str) -> str:
        draft = self.service.new_build()
        catalog = self.service.snapshot()
        slots = {"cpu": "CPU", "mb": "MOBO", "ram": "RAM"}
        for item_id in item_ids:
            draft.toggle(slots[item_id], catalog.get(item_id))
        return self.service.save_build(USER, draft)

    def test_add_and_reload_round_trips_specs(self) -> None:
        cpu = self.service.get_item("cpu")
        self.assertEqual(cpu.specs, {"Brand": "AMD", "Socket": "AM4"})
        self.assertEqual(cpu.buy_date, "2026-01-02")
        self.assertEqual(len(self.service.list_items()), 3)

    def test_duplicate_id_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.service.add_item(USER, InventoryItem(id="cpu", name="Dup", category="Processors", buy_price=1))

    def test_saved_build_persists_links(self) -> None:
        pc_id = self._build("cpu", "mb", "ram")
        pc = self.service.get_item(pc_id)
        self.assertEqual(pc.component_ids, ["cpu", "mb", "ram"])
        self.assertEqual(pc.buy_price, 245)
        for component_id in pc.component_ids:
            component = self.service.get_item(component_id)
            self.assertEqual(component.parent_container_id, pc_id)
            self.assertEqual(component.status, ItemStatus.IN_COMPOSITION)
        self.assertEqual(self.events[-1].name, ev.COMPOSITE_ASSEMBLED)

    def test_edit_build_releases_dropped_parts(self) -> None:
        pc_id = self._build("cpu", "mb", "ram")
        draft = self.service.edit_build(pc_id)
        draft.toggle("RAM", self.service.get_item("ram"))
        self.service.save_build(USER, draft)

        self.assertEqual(self.service.get_item(pc_id).component_ids, ["cpu", "mb"])
        ram = self.service.get_item("ram")
        self.assertEqual(ram.status, ItemStatus.IN_STOCK)
        self.assertIsNone(ram.parent_container_id)
        self.assertEqual(self.events[-1].name, ev.COMPOSITE_UPDATED)

    def test_required_slots_enforced_when_configured(self) -> None:
        strict = InventoryService(self.conn, self.bus, Settings(enforce_required_slots=True))
        draft = strict.new_build()
        draft.toggle("CPU", strict.get_item("cpu"))
        with self.assertRaises(ValueError):
            strict.save_build(USER, draft)
        self.assertEqual(strict.get_item("cpu").status, ItemStatus.IN_STOCK)

    def test_dismantle_deletes_build_and_keeps_audit_trail(self) -> None:
        pc_id = self._build("cpu", "mb")
        released = self.service.dismantle(USER, pc_id)
        self.assertEqual(sorted(released), ["cpu", "mb"])
        self.assertIsNone(self.service.get_item(pc_id))
        self.assertEqual(self.service.get_item("cpu").status, ItemStatus.IN_STOCK)

        actions = [r["action"] for r in self.service.list_logs(item_id=pc_id, limit=100)]
        self.assertIn("ASSEMBLE_BUILD", actions)
        self.assertIn("DISMANTLE", actions)

    def test_sell_then_retro_flow(self) -> None:
        pc_id = self._build("cpu", "mb")
        self.service.sell_composite(USER, pc_id, 300, "2026-06-01", payment_type="Cash")
        cpu = self.service.get_item("cpu")
        self.assertEqual(cpu.status, ItemStatus.SOLD)
        self.assertEqual(cpu.sell_date, "2026-06-01")
        self.assertEqual(cpu.buy_date, "2026-01-02")
        self.assertEqual(self.events[-1].name, ev.COMPOSITE_SOLD)

    def test_retro_bundle_and_dismantle(self) -> None:
        self.service.trade(USER, "cpu", [], 150, "2026-02-01")
        self.service.trade(USER, "ram", [], 40, "2026-02-01")
        preview = self.service.preview_retro_bundle(["cpu", "ram"])
        self.assertEqual(preview.total_sell, 190)

        bundle_id = self.service.create_retro_bundle(USER, ["cpu", "ram"])
        bundle = self.service.get_item(bundle_id)
        self.assertEqual(bundle.status, ItemStatus.SOLD)
        self.assertEqual(bundle.profit, 190 - 155)
        self.assertEqual(self.service.get_item("cpu").parent_container_id, bundle_id)

        self.service.dismantle(USER, bundle_id)
        cpu = self.service.get_item("cpu")
        self.assertEqual(cpu.status, ItemStatus.SOLD)
        self.assertEqual(cpu.sell_price, 150)
        self.assertIsNone(cpu.parent_container_id)

    def test_trade_persists_links_both_ways(self) -> None:
        acquired = self.service.trade(
            USER, "mb", [IncomingDraft("Intel Core i5-12400", 110, category="Processors")],
            cash_delta=-20, trade_date="2026-03-03", note="Swap",
        )
        board = self.service.get_item("mb")
        self.assertEqual(board.status, ItemStatus.TRADED)
        self.assertEqual(board.traded_for_ids, acquired)
        self.assertEqual(board.sell_price, 90)
        self.assertEqual(board.cash_on_top, -20)
        new_cpu = self.service.get_item(acquired[0])
        self.assertEqual(new_cpu.traded_from_id, "mb")
        self.assertEqual(new_cpu.buy_price, 110)
        self.assertEqual(self.events[-1].payload["acquired_ids"], acquired)

    def test_rejected_trade_leaves_catalog_untouched(self) -> None:
        with self.assertRaises(ValueError):
            self.service.trade(USER, "mb", [], 0)
        self.assertEqual(self.service.get_item("mb").status, ItemStatus.IN_STOCK)
        self.assertEqual(self.events, [])

    def test_compatible_partners(self) -> None:
        groups = {g.label: [i.id for i in g.items] for g in self.service.compatible_partners("mb")}
        self.assertEqual(groups, {"Compatible CPUs": ["cpu"], "Compatible RAM": ["ram"]})

    def test_build_and_bundle_events_carry_composite_name(self) -> None:
        pc_id = self._build("cpu")
        self.assertEqual(self.events[-1].payload["composite_name"], self.service.get_item(pc_id).name)

        bundle_id = self.service.create_smart_bundle(USER, "Kit", ["ram"])
        self.assertEqual(self.events[-1].name, ev.COMPOSITE_ASSEMBLED)
        self.assertEqual(self.events[-1].payload["composite_name"], "Kit")
        self.assertEqual(self.service.get_item("ram").parent_container_id, bundle_id)

    def test_failure_outside_sqlite_leaves_no_partial_batch(self) -> None:
        incoming = [IncomingDraft("GPU", 80, category="Graphics Cards")]
        with mock.patch.object(repo, "replace_trade_links", side_effect=TypeError("unserialisable")):
            with self.assertRaises(TypeError):
                self.service.trade(USER, "mb", incoming, trade_date="2026-03-03")

        # A later successful commit must not sweep up the aborted rows.
        self.service.add_item(USER, InventoryItem(id="psu", name="Corsair RM650", category="Power Supplies",
                                                  buy_price=50))
        self.assertEqual(sorted(i.id for i in self.service.list_items()), ["cpu", "mb", "psu", "ram"])
        self.assertEqual(self.service.get_item("mb").status, ItemStatus.IN_STOCK)
        self.assertEqual(self.events, [])

    def test_unstorable_spec_value_rejected_before_writing(self) -> None:
        incoming = [
            IncomingDraft("GPU", 80, category="Graphics Cards"),
            IncomingDraft("Cooler", 20, category="Cooling", specs={"Bought": date(2026, 1, 1)}),
        ]
        with self.assertRaises(ValueError):
            self.service.trade(USER, "mb", incoming, trade_date="2026-03-03")
        self.assertEqual(len(self.service.list_items()), 3)
        self.assertEqual(self.service.get_item("mb").status, ItemStatus.IN_STOCK)

    def test_link_issues_reported_once_per_change(self) -> None:
        reported = []
        self.bus.subscribe(ev.LINK_ISSUES_FOUND, reported.append)
        pc_id = self._build("cpu")
        self.conn.execute(
            "INSERT INTO composite_components (composite_id, component_id, position) VALUES (?, ?, ?)",
            (pc_id, "ghost", 1),
        )
        self.conn.commit()

        self.service.list_items()
        self.service.list_items()
        self.service.get_item("cpu")
        self.assertEqual(len(reported), 1)
        self.assertEqual(reported[0].payload["issues"], [(pc_id, "ghost", "missing component")])

    def test_database_error_rolls_back(self) -> None:
        self.conn.execute("DROP TABLE logs")
        with self.assertRaises(RuntimeError):
            self._build("cpu", "mb")
        self.assertEqual(self.service.get_item("cpu").status, ItemStatus.IN_STOCK)
        self.assertEqual(len(self.service.list_items()), 3)
        with self.assertRaises(sqlite3.OperationalError):
            self.service.list_logs()


if __name__ == "__main__":
    unittest.main(verbosity=2)
