import unittest

from compatibility import (
    Vendor,
    board_vendor,
    check_slot_compatibility,
    compatible_partners,
    normalize_socket,
    ram_generation,
    ram_generations,
    socket_vendor,
)
from item import InventoryItem, ItemStatus
from specs import get_spec


def part(item_id, category, name=None, status=ItemStatus.IN_STOCK, **specs):
    return InventoryItem(
        id=item_id,
        name=name or item_id,
        category=category,
        buy_price=10.0,
        status=status,
        specs={k.replace("_", " "): v for k, v in specs.items()},
    )


class SpecAccessorTests(unittest.TestCase):
    def test_lookup_ignores_key_case(self) -> None:
        cpu = part("cpu", "Processors", Socket="AM4")
        self.assertEqual(get_spec(cpu, "socket"), "AM4")
        self.assertEqual(get_spec(cpu, "SOCKET"), "AM4")

    def test_missing_key_and_missing_item(self) -> None:
        cpu = part("cpu", "Processors")
        self.assertIsNone(get_spec(cpu, "Socket"))
        self.assertIsNone(get_spec(None, "Socket"))


class NormalisationTests(unittest.TestCase):
    def test_socket_spellings_normalise_together(self) -> None:
        self.assertEqual(normalize_socket("LGA 1700"), "LGA1700")
        self.assertEqual(normalize_socket("lga-1700"), "LGA1700")
        self.assertEqual(normalize_socket("LGA1700"), "LGA1700")
        self.assertEqual(normalize_socket(normalize_socket("lga 1700")), "LGA1700")

    def test_socket_vendor_table_and_prefix_fallback(self) -> None:
        self.assertEqual(socket_vendor("AM4"), Vendor.AMD)
        self.assertEqual(socket_vendor("sTRX4"), Vendor.AMD)
        self.assertEqual(socket_vendor("LGA 1851"), Vendor.INTEL)
        self.assertEqual(socket_vendor("AM2+"), Vendor.AMD)
        self.assertEqual(socket_vendor("LGA 775"), Vendor.INTEL)
        self.assertEqual(socket_vendor("S1200"), Vendor.INTEL)
        self.assertIsNone(socket_vendor("FM2"))
        self.assertIsNone(socket_vendor(""))

    def test_ram_generation_drops_speed(self) -> None:
        self.assertEqual(ram_generation("DDR4 3200"), "DDR4")
        self.assertEqual(ram_generation("ddr5-6000"), "DDR5")
        self.assertIsNone(ram_generation("SODIMM"))
        self.assertEqual(ram_generations("DDR4, DDR5"), ("DDR4", "DDR5"))
        self.assertEqual(ram_generations("DDR4/DDR5"), ("DDR4", "DDR5"))

    def test_board_vendor_from_chipset_name(self) -> None:
        self.assertEqual(board_vendor(part("b1", "Motherboards", name="MSI MAG B550M Mortar")), Vendor.AMD)
        self.assertEqual(board_vendor(part("b2", "Motherboards", name="ASUS ROG Strix Z790-E")), Vendor.INTEL)
        self.assertEqual(board_vendor(part("b3", "Motherboards", name="Board", Chipset="X670E")), Vendor.AMD)
        self.assertIsNone(board_vendor(part("b4", "Motherboards", name="Mystery Board", Brand="ASUS")))


class CpuSlotTests(unittest.TestCase):
    def test_any_cpu_fits_without_motherboard(self) -> None:
        cpu = part("cpu", "Processors", Socket="LGA1700", Brand="Intel")
        self.assertTrue(check_slot_compatibility(cpu, "CPU", {}).compatible)

    def test_socket_mismatch_rejected(self) -> None:
        board = part("mb", "Motherboards", Socket="AM4")
        cpu = part("cpu", "Processors", Socket="AM5", Brand="AMD")
        result = check_slot_compatibility(cpu, "CPU", {"MOBO": [board]})
        self.assertFalse(result.compatible)
        self.assertIn("AM4", result.reason)

    def test_spelling_variants_match(self) -> None:
        board = part("mb", "Motherboards", Socket="LGA 1700")
        cpu = part("cpu", "Processors", Socket="lga-1700", Brand="Intel")
        self.assertTrue(check_slot_compatibility(cpu, "CPU", {"MOBO": [board]}).compatible)

    def test_cpu_without_socket_rejected_when_board_has_one(self) -> None:
        board = part("mb", "Motherboards", Socket="AM4")
        cpu = part("cpu", "Processors", Brand="AMD")
        self.assertFalse(check_slot_compatibility(cpu, "CPU", {"MOBO": [board]}).compatible)

    def test_board_without_socket_spec_is_unconstrained(self) -> None:
        board = part("mb", "Motherboards", name="Unknown board")
        cpu = part("cpu", "Processors", Socket="AM4", Brand="AMD")
        self.assertTrue(check_slot_compatibility(cpu, "CPU", {"MOBO": [board]}).compatible)

    def test_amd_cpu_on_intel_socket_rejected_even_with_same_socket_text(self) -> None:
        board = part("mb", "Motherboards", Socket="LGA1700")
        cpu = part("cpu", "Processors", Socket="LGA1700", Brand="AMD Ryzen")
        result = check_slot_compatibility(cpu, "CPU", {"MOBO": [board]})
        self.assertFalse(result.compatible)
        self.assertIn("Intel", result.reason)

    def test_eight_core_ryzen_is_not_mistaken_for_intel(self) -> None:
        board = part("mb", "Motherboards", Socket="AM4")
        cpu = part("cpu", "Processors", Socket="AM4", Brand="AMD Ryzen 7 8-Core")
        self.assertTrue(check_slot_compatibility(cpu, "CPU", {"MOBO": [board]}).compatible)


class MotherboardSlotTests(unittest.TestCase):
    def test_matching_board_accepted(self) -> None:
        cpu = part("cpu", "Processors", Socket="AM4", Brand="AMD")
        board = part("mb", "Motherboards", name="ASUS TUF B550-Plus", Socket="AM4")
        self.assertTrue(check_slot_compatibility(board, "MOBO", {"CPU": [cpu]}).compatible)

    def test_intel_chipset_rejected_for_amd_cpu(self) -> None:
        cpu = part("cpu", "Processors", Brand="AMD Ryzen 5 5600X")
        board = part("mb", "Motherboards", name="MSI PRO B660M-A")
        result = check_slot_compatibility(board, "MOBO", {"CPU": [cpu]})
        self.assertFalse(result.compatible)

    def test_chipset_disagreeing_with_cpu_socket_rejected(self) -> None:
        cpu = part("cpu", "Processors", Socket="AM4")
        board = part("mb", "Motherboards", name="Gigabyte Z790 UD", Socket="AM4")
        self.assertFalse(check_slot_compatibility(board, "MOBO", {"CPU": [cpu]}).compatible)

    def test_board_without_specs_accepted_for_unbranded_cpu(self) -> None:
        cpu = part("cpu", "Processors")
        board = part("mb", "Motherboards", name="Generic board")
        self.assertTrue(check_slot_compatibility(board, "MOBO", {"CPU": [cpu]}).compatible)


class RamSlotTests(unittest.TestCase):
    def test_board_memory_type_decides(self) -> None:
        board = part("mb", "Motherboards", Socket="AM4", Memory_Type="DDR4")
        ram_a = part("ram-a", "RAM", Memory_Type="DDR5")
        ram_b = part("ram-b", "RAM", Memory_Type="DDR4 3200")

        rejected = check_slot_compatibility(ram_a, "RAM", {"MOBO": [board]})
        self.assertFalse(rejected.compatible)
        self.assertIn("DDR4", rejected.reason)
        self.assertTrue(check_slot_compatibility(ram_b, "RAM", {"MOBO": [board]}).compatible)

    def test_board_listing_two_generations(self) -> None:
        board = part("mb", "Motherboards", Memory_Type="DDR4, DDR5")
        ram = part("ram", "RAM", Memory_Type="DDR5")
        self.assertTrue(check_slot_compatibility(ram, "RAM", {"MOBO": [board]}).compatible)

    def test_lga1700_cpu_allows_both_generations(self) -> None:
        cpu = part("cpu", "Processors", Socket="LGA1700")
        for memory in ("DDR4", "DDR5 6000"):
            ram = part("ram", "RAM", Memory_Type=memory)
            self.assertTrue(check_slot_compatibility(ram, "RAM", {"CPU": [cpu]}).compatible)

    def test_cpu_socket_table_rejects_old_generation(self) -> None:
        cpu = part("cpu", "Processors", Socket="AM5")
        ram = part("ram", "RAM", Memory_Type="DDR4")
        result = check_slot_compatibility(ram, "RAM", {"CPU": [cpu]})
        self.assertFalse(result.compatible)
        self.assertIn("DDR5", result.reason)

    def test_board_declaration_beats_cpu_table(self) -> None:
        cpu = part("cpu", "Processors", Socket="AM5")
        board = part("mb", "Motherboards", Memory_Type="DDR4")
        ram = part("ram", "RAM", Memory_Type="DDR4")
        self.assertTrue(check_slot_compatibility(ram, "RAM", {"CPU": [cpu], "MOBO": [board]}).compatible)

    def test_ram_without_type_is_unconstrained(self) -> None:
        board = part("mb", "Motherboards", Memory_Type="DDR4")
        ram = part("ram", "RAM")
        self.assertTrue(check_slot_compatibility(ram, "RAM", {"MOBO": [board]}).compatible)

    def test_other_slots_have_no_rule(self) -> None:
        gpu = part("gpu", "Graphics Cards")
        self.assertTrue(check_slot_compatibility(gpu, "GPU", {}).compatible)


class CompatiblePartnersTests(unittest.TestCase):
    def setUp(self) -> None:
        self.cpu = part("cpu", "Processors", Socket="AM4", Brand="AMD")
        self.board_ok = part("mb-ok", "Motherboards", name="B550 board", Socket="AM4", Memory_Type="DDR4")
        self.board_intel = part("mb-intel", "Motherboards", Socket="LGA1700", Memory_Type="DDR5")
        self.board_sold = part("mb-sold", "Motherboards", Socket="AM4", status=ItemStatus.SOLD)
        self.ram4 = part("ram4", "RAM", Memory_Type="DDR4 3200")
        self.ram5 = part("ram5", "RAM", Memory_Type="DDR5")
        self.catalog = [self.cpu, self.board_ok, self.board_intel, self.board_sold, self.ram4, self.ram5]

    def test_processor_lists_matching_boards_only(self) -> None:
        groups = compatible_partners(self.cpu, self.catalog)
        self.assertEqual([g.label for g in groups], ["Compatible motherboards"])
        self.assertEqual([i.id for i in groups[0].items], ["mb-ok"])

    def test_motherboard_lists_cpus_and_ram(self) -> None:
        groups = {g.label: [i.id for i in g.items] for g in compatible_partners(self.board_ok, self.catalog)}
        self.assertEqual(groups["Compatible CPUs"], ["cpu"])
        self.assertEqual(groups["Compatible RAM"], ["ram4"])

    def test_ram_lists_boards_by_text_containment(self) -> None:
        groups = compatible_partners(self.ram5, self.catalog)
        self.assertEqual([i.id for i in groups[0].items], ["mb-intel"])

    def test_empty_groups_omitted(self) -> None:
        lonely = part("mb-x", "Motherboards", Socket="AM3", Memory_Type="DDR3")
        self.assertEqual(compatible_partners(lonely, self.catalog), [])

    def test_unrelated_category_has_no_groups(self) -> None:
        self.assertEqual(compatible_partners(part("psu", "Power Supplies"), self.catalog), [])


if __name__ == "__main__":
    unittest.main(verbosity=2)
