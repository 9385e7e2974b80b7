# tests/test_session_storage.py

"""Tests for the session key/value store."""

import unittest

from src.storage.session_storage import SessionStorage


class TestSessionStorage(unittest.TestCase):
    """SessionStorage basics."""

    def setUp(self) -> None:
        self.storage = SessionStorage()

    def test_set_get_remove(self) -> None:
        self.storage.set_item("a", "1")
        self.assertEqual(self.storage.get_item("a"), "1")
        self.storage.remove_item("a")
        self.assertIsNone(self.storage.get_item("a"))

    def test_remove_missing_is_noop(self) -> None:
        self.storage.remove_item("missing")
        self.assertEqual(self.storage.keys(), [])

    def test_clear_reports_count(self) -> None:
        self.storage.set_item("a", "1")
        self.storage.set_item("b", "2")
        self.assertEqual(self.storage.clear(), 2)
        self.assertEqual(self.storage.keys(), [])


if __name__ == "__main__":
    unittest.main()
