import json
import tempfile
import unittest
from pathlib import Path

from store.state import TravelState
from store.storage import InMemoryStateStorage, JsonFileStateStorage


class TravelStateTests(unittest.TestCase):
    def setUp(self):
        self.storage = InMemoryStateStorage()
        self.state = TravelState(self.storage)

    def test_first_passport_becomes_primary(self):
        self.state.add_passport("fra")
        self.state.add_passport("UZB")
        self.state.add_passport("FRA")

        self.assertEqual(self.state.passports, ("FRA", "UZB"))
        self.assertEqual(self.state.primary_passport, "FRA")

    def test_removing_primary_reassigns_to_remaining_member(self):
        for code in ("FRA", "UZB", "JPN"):
            self.state.add_passport(code)
        self.state.set_primary_passport("UZB")

        self.state.remove_passport("UZB")
        self.assertIn(self.state.primary_passport, self.state.passports)

        self.state.remove_passport("FRA")
        self.state.remove_passport("JPN")
        self.assertEqual(self.state.passports, ())
        self.assertIsNone(self.state.primary_passport)

    def test_primary_must_be_a_member(self):
        self.state.add_passport("FRA")
        with self.assertRaises(ValueError):
            self.state.set_primary_passport("DEU")
        self.assertEqual(self.state.primary_passport, "FRA")

        self.state.set_primary_passport(None)
        self.assertIsNone(self.state.primary_passport)

    def test_toggle_visited_removes_from_wishlist(self):
        self.state.toggle_country("JPN", mode="wishlist")
        self.state.toggle_country("JPN", mode="visited")

        self.assertIn("JPN", self.state.visited)
        self.assertNotIn("JPN", self.state.wishlist)

    def test_toggle_wishlist_removes_from_visited(self):
        self.state.toggle_country("KAZ")
        self.state.set_mode("wishlist")
        self.state.toggle_country("KAZ")

        self.assertEqual(self.state.wishlist, frozenset({"KAZ"}))
        self.assertEqual(self.state.visited, frozenset())

    def test_toggle_twice_removes(self):
        self.state.toggle_country("ITA")
        self.state.toggle_country("ITA")
        self.assertEqual(self.state.visited, frozenset())

    def test_rejects_bad_input(self):
        with self.assertRaises(ValueError):
            self.state.add_passport("FRANCE")
        with self.assertRaises(ValueError):
            self.state.set_mode("someday")
        with self.assertRaises(ValueError):
            self.state.toggle_country("JPN", mode="favourites")

    def test_every_mutation_is_persisted(self):
        self.state.add_passport("FRA")
        self.state.toggle_country("JPN")

        stored = self.storage.get_item("tc.mobi")
        self.assertEqual(stored["passports"], ["FRA"])
        self.assertEqual(stored["visited"], ["JPN"])

    def test_round_trip_reproduces_state(self):
        for code in ("FRA", "UZB"):
            self.state.add_passport(code)
        self.state.set_primary_passport("UZB")
        for code in ("JPN", "KAZ", "ITA"):
            self.state.toggle_country(code, mode="visited")
        for code in ("PER", "CHL"):
            self.state.toggle_country(code, mode="wishlist")

        reloaded = TravelState.open(self.storage)

        self.assertEqual(set(reloaded.passports), {"FRA", "UZB"})
        self.assertEqual(reloaded.primary_passport, "UZB")
        self.assertEqual(reloaded.visited, frozenset({"JPN", "KAZ", "ITA"}))
        self.assertEqual(reloaded.wishlist, frozenset({"PER", "CHL"}))

    def test_load_repairs_broken_invariants(self):
        self.storage.set_item(
            "tc.mobi",
            {
                "passports": ["FRA", "bad code"],
                "primaryPassport": "DEU",
                "visited": ["JPN", "KAZ"],
                "wishlist": ["KAZ", "PER"],
                "mode": "nonsense",
            },
        )
        state = TravelState.open(self.storage)

        self.assertEqual(state.passports, ("FRA",))
        self.assertIsNone(state.primary_passport)
        self.assertEqual(state.wishlist, frozenset({"PER"}))
        self.assertEqual(state.mode, "visited")

    def test_load_ignores_non_list_collections(self):
        self.storage.set_item(
            "tc.mobi",
            {"passports": 5, "primaryPassport": "FRA", "visited": "JPN", "wishlist": {"a": 1}},
        )
        state = TravelState.open(self.storage)

        self.assertEqual(state.passports, ())
        self.assertIsNone(state.primary_passport)
        self.assertEqual(state.visited, frozenset())
        self.assertEqual(state.wishlist, frozenset())

    def test_remove_country_and_reset(self):
        self.state.toggle_country("JPN")
        self.state.remove_country("JPN")
        self.assertEqual(self.state.visited, frozenset())

        self.state.add_passport("FRA")
        self.state.reset()
        self.assertIsNone(self.storage.get_item("tc.mobi"))
        self.assertEqual(self.state.passports, ())

    def test_coverage(self):
        for code in ("JPN", "KAZ"):
            self.state.toggle_country(code)
        self.state.toggle_country("PER", mode="wishlist")

        self.assertEqual(self.state.coverage(total=8), {"visited": 25.0, "wishlist": 12.5})
        self.assertEqual(self.state.coverage(total=0), {"visited": 0.0, "wishlist": 0.0})


class JsonFileStorageTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.path = Path(self.tmpdir.name) / "state.json"

    def test_state_survives_a_new_storage_instance(self):
        state = TravelState(JsonFileStateStorage(self.path))
        state.add_passport("FRA")
        state.toggle_country("JPN")
        state.toggle_country("PER", mode="wishlist")

        reloaded = TravelState.open(JsonFileStateStorage(self.path))

        self.assertEqual(reloaded.passports, ("FRA",))
        self.assertEqual(reloaded.primary_passport, "FRA")
        self.assertEqual(reloaded.visited, frozenset({"JPN"}))
        self.assertEqual(reloaded.wishlist, frozenset({"PER"}))

    def test_sets_are_stored_as_sequences_under_app_key(self):
        state = TravelState(JsonFileStateStorage(self.path), key="my.app")
        state.toggle_country("KAZ")
        state.toggle_country("JPN")

        data = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(data["my.app"]["visited"], ["JPN", "KAZ"])

    def test_missing_file_loads_empty_state(self):
        state = TravelState.open(JsonFileStateStorage(self.path))
        self.assertEqual(state.passports, ())
        self.assertEqual(state.visited, frozenset())

    def test_corrupt_file_loads_empty_state(self):
        self.path.write_text("{not json", encoding="utf-8")

        with self.assertLogs("store.storage", level="WARNING"):
            state = TravelState.open(JsonFileStateStorage(self.path))
        self.assertEqual(state.passports, ())
        self.assertEqual(state.visited, frozenset())

        state.add_passport("FRA")
        data = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(data["tc.mobi"]["passports"], ["FRA"])

    def test_remove_item(self):
        storage = JsonFileStateStorage(self.path)
        storage.set_item("a", {"x": 1})
        storage.set_item("b", {"y": 2})
        storage.remove_item("a")

        self.assertIsNone(storage.get_item("a"))
        self.assertEqual(storage.get_item("b"), {"y": 2})


if __name__ == "__main__":
    unittest.main()
