"""Tests for the log store module."""

import os
import re
import shutil
import tempfile
import threading
import unittest
from datetime import datetime, timezone

from telemetry.config import Config
from telemetry.exceptions import UnknownCategoryError
from telemetry.formatter import format_client_error
from telemetry.inspector import parse_entries
from telemetry.log_store import APPLICATION, DATABASE, ERROR, LogStore, rotated_name
from telemetry.models import ErrorRecord


class TestAppendBasic(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.log_dir = os.path.join(self.tmpdir, "logs")

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def _store(self, **overrides):
        return LogStore(Config(log_dir=self.log_dir, **overrides))

    def test_file_created_lazily(self):
        store = self._store()
        self.assertFalse(os.path.exists(store.path_for(APPLICATION)))
        store.append(APPLICATION, "first\n")
        with open(store.path_for(APPLICATION)) as f:
            self.assertEqual(f.read(), "first\n")

    def test_appends_in_order(self):
        store = self._store()
        store.append(APPLICATION, "one\n")
        store.append(APPLICATION, "two\n")
        with open(store.path_for(APPLICATION)) as f:
            self.assertEqual(f.readlines(), ["one\n", "two\n"])

    def test_categories_are_separate_files(self):
        store = self._store()
        store.append(APPLICATION, "app\n")
        store.append(ERROR, "err\n")
        store.append(DATABASE, "db\n")
        self.assertEqual(
            sorted(os.listdir(self.log_dir)),
            ["app_errors.log", "database_errors.log", "server_errors.log"],
        )

    def test_unknown_category(self):
        store = self._store()
        with self.assertRaises(UnknownCategoryError):
            store.append("metrics", "x\n")
        with self.assertRaises(ValueError):
            store.rotate_if_oversize("metrics")

    def test_log_event_format(self):
        store = self._store()
        self.assertTrue(store.log_event(ERROR, "error", "Failed to log client error: bad\ninput"))
        with open(store.path_for(ERROR)) as f:
            line = f.read()
        self.assertRegex(
            line,
            r"^\[\d{2}/\d{2}/\d{4} \d{2}:\d{2}:\d{2}\] \[ERROR\] Failed to log client error: bad input\n$",
        )

    def test_log_event_disabled(self):
        store = self._store(enabled=False)
        self.assertFalse(store.log_event(APPLICATION, "INFO", "hello"))
        self.assertFalse(os.path.exists(store.path_for(APPLICATION)))


class TestRotation(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def _store(self, max_size):
        now = datetime(2026, 1, 15, 12, 0, 0, 123456, tzinfo=timezone.utc)
        return LogStore(
            Config(log_dir=self.tmpdir, max_file_size_bytes=max_size),
            time_func=lambda: now,
        )

    def test_no_rotation_under_ceiling(self):
        store = self._store(1000)
        store.append(APPLICATION, "x" * 999 + "\n")
        self.assertIsNone(store.rotate_if_oversize(APPLICATION))

    def test_missing_file_is_not_rotated(self):
        store = self._store(10)
        self.assertIsNone(store.rotate_if_oversize(DATABASE))

    def test_rotated_file_naming(self):
        self.assertEqual(
            rotated_name("app_errors.log", datetime(2026, 1, 15, 12, 0, 0, 123456)),
            "app_errors.log.20260115_120000_123456.old",
        )

    def test_single_rotation_preserves_entries(self):
        store = self._store(100)
        rotations = []
        entries = [f"entry-{i:02d} {'.' * 20}\n" for i in range(6)]
        for entry in entries:
            rotated = store.append(APPLICATION, entry)
            if rotated is not None:
                rotations.append(rotated)

        self.assertEqual(len(rotations), 1)
        self.assertTrue(os.path.basename(rotations[0]).endswith(".old"))

        with open(rotations[0]) as f:
            before = f.read()
        with open(store.path_for(APPLICATION)) as f:
            after = f.read()

        # 4 entries of 30 bytes cross the 100 byte ceiling; rotation happens before the 5th
        self.assertEqual(before, "".join(entries[:4]))
        self.assertEqual(after, "".join(entries[4:]))

    def test_categories_rotate_independently(self):
        store = self._store(10)
        store.append(APPLICATION, "a" * 20 + "\n")
        store.append(DATABASE, "d\n")
        self.assertIsNotNone(store.rotate_if_oversize(APPLICATION))
        self.assertIsNone(store.rotate_if_oversize(DATABASE))
        self.assertFalse(os.path.exists(store.path_for(APPLICATION)))
        self.assertTrue(os.path.exists(store.path_for(DATABASE)))


class TestConcurrentAppends(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def _run_writers(self, store, num_threads=6, per_thread=50):
        errors = []

        def worker(thread_id):
            try:
                for i in range(per_thread):
                    record = ErrorRecord(
                        message=f"thread-{thread_id}-entry-{i}",
                        source=f"worker-{thread_id}.js",
                        context=f"ctx-{i}",
                        stack_trace=(f"at frame{thread_id}", f"at entry{i}"),
                    )
                    store.append(APPLICATION, format_client_error(record, f"10.0.0.{thread_id}"))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(t,)) for t in range(num_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(errors, [])

    def _all_entries(self):
        entries = []
        for name in sorted(os.listdir(self.tmpdir)):
            with open(os.path.join(self.tmpdir, name)) as f:
                entries.extend(parse_entries(f.read()))
        return entries

    def _assert_intact(self, entries, expected_count):
        self.assertEqual(len(entries), expected_count)
        seen = set()
        for entry in entries:
            match = re.match(r"^thread-(\d+)-entry-(\d+)$", entry["Message"])
            self.assertIsNotNone(match, entry)
            thread_id, i = match.groups()
            self.assertEqual(entry["Source"], f"worker-{thread_id}.js")
            self.assertEqual(entry["Context"], f"ctx-{i}")
            self.assertEqual(entry["IP"], f"10.0.0.{thread_id}")
            self.assertEqual(entry["stack_trace"], [f"at frame{thread_id}", f"at entry{i}"])
            seen.add(entry["Message"])
        self.assertEqual(len(seen), expected_count)

    def test_entries_never_interleave(self):
        store = LogStore(Config(log_dir=self.tmpdir))
        self._run_writers(store)
        self._assert_intact(self._all_entries(), 300)

    def test_no_loss_or_duplication_across_rotations(self):
        store = LogStore(Config(log_dir=self.tmpdir, max_file_size_bytes=4096))
        self._run_writers(store)
        self.assertGreater(len(os.listdir(self.tmpdir)), 1)
        self._assert_intact(self._all_entries(), 300)


if __name__ == "__main__":
    unittest.main()
