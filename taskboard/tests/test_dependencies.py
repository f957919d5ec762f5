import unittest

from taskboard.config import Settings
from taskboard.dependencies import build_store
from taskboard.store import InMemoryUserProjectStore, SqlUserProjectStore


class BuildStoreTests(unittest.TestCase):
    def test_defaults_to_in_memory_without_database_url(self):
        store = build_store(Settings(database_url=None))
        self.assertIsInstance(store, InMemoryUserProjectStore)

    def test_in_memory_toggle_wins_over_database_url(self):
        store = build_store(
            Settings(
                database_url="sqlite+pysqlite:///:memory:",
                use_in_memory_backends=True,
            )
        )
        self.assertIsInstance(store, InMemoryUserProjectStore)

    def test_database_url_selects_sql_store(self):
        store = build_store(
            Settings(database_url="sqlite+pysqlite:///:memory:")
        )
        self.assertIsInstance(store, SqlUserProjectStore)
        store.close()


if __name__ == "__main__":
    unittest.main()
