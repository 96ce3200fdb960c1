import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from offline_sync.storage import (
    SKIPPED_ONBOARDING_KEY,
    FileKeyValueStore,
    InMemoryKeyValueStore,
    TimestampMarker,
)


class FileKeyValueStoreTests(unittest.IsolatedAsyncioTestCase):
    async def test_values_survive_a_new_store_instance(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = FileKeyValueStore(tmp)
            await store.set("query-cache:profile", b'{"name": "Ada"}')

            reopened = FileKeyValueStore(tmp)
            self.assertEqual(await reopened.get("query-cache:profile"), b'{"name": "Ada"}')

    async def test_keys_map_to_hashed_file_names_without_leftover_temp_files(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = FileKeyValueStore(tmp)
            await store.set("../../etc/passwd", b"x")
            await store.set("../../etc/passwd", b"y")

            files = sorted(p.name for p in Path(tmp).iterdir())
            self.assertEqual(len(files), 1)
            self.assertTrue(files[0].endswith(".bin"))
            self.assertEqual(await store.get("../../etc/passwd"), b"y")

    async def test_delete_is_idempotent(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = FileKeyValueStore(tmp)
            await store.set("auth_token", b"abc")
            await store.delete("auth_token")
            await store.delete("auth_token")
            self.assertIsNone(await store.get("auth_token"))

    async def test_missing_directory_reads_as_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = FileKeyValueStore(str(Path(tmp) / "not-created-yet"))
            self.assertIsNone(await store.get("anything"))


class TimestampMarkerTests(unittest.IsolatedAsyncioTestCase):
    async def test_skip_marker_holds_for_twenty_four_hours(self) -> None:
        store = InMemoryKeyValueStore()
        marker = TimestampMarker(store, SKIPPED_ONBOARDING_KEY)
        marked = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        await marker.mark(marked)

        self.assertEqual(await marker.marked_at(), marked)
        self.assertTrue(await marker.is_within(timedelta(hours=24), now=marked + timedelta(hours=23)))
        self.assertFalse(await marker.is_within(timedelta(hours=24), now=marked + timedelta(hours=24)))
        self.assertEqual(store.snapshot()[SKIPPED_ONBOARDING_KEY], b"2026-03-01T12:00:00Z")

    async def test_unset_and_unparseable_markers_read_as_unset(self) -> None:
        store = InMemoryKeyValueStore({SKIPPED_ONBOARDING_KEY: b"not a timestamp"})
        marker = TimestampMarker(store, SKIPPED_ONBOARDING_KEY)
        self.assertIsNone(await marker.marked_at())
        self.assertFalse(await marker.is_within(timedelta(hours=24)))

        await marker.clear()
        self.assertNotIn(SKIPPED_ONBOARDING_KEY, store.snapshot())
        self.assertFalse(await marker.is_within(timedelta(hours=24)))


if __name__ == "__main__":
    unittest.main()
