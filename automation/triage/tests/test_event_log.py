from __future__ import annotations

import json
import tempfile
import threading
import unittest
from pathlib import Path
from unittest import mock

from automation.triage.event_log import EventLog
from automation.triage.records import ChangeAction, ChangeRecord


def _record(number: int, label: str = "P-high", action: ChangeAction = ChangeAction.ADD) -> ChangeRecord:
    return ChangeRecord(
        action=action,
        issue_number=number,
        issue_title=f"Issue {number}",
        label=label,
        user="alice",
    )


class EventLogTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "state" / "data.json"

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_append_keeps_order_and_persists(self) -> None:
        log = EventLog(self.path)
        log.append(_record(1))
        log.append(_record(2, "P-low", ChangeAction.REMOVE))

        self.assertEqual([r.issue_number for r in log.all()], [1, 2])
        on_disk = json.loads(self.path.read_text())
        self.assertEqual(on_disk[1]["action"], "remove")
        self.assertEqual(on_disk[1]["label"], "P-low")

    def test_restart_reloads_primary_file(self) -> None:
        log = EventLog(self.path)
        log.append(_record(1))
        log.append(_record(2))

        reloaded = EventLog(self.path)
        self.assertEqual(reloaded.all(), log.all())

    def test_missing_file_starts_empty(self) -> None:
        self.assertEqual(EventLog(self.path).all(), [])

    def test_snapshot_and_clear_drains_everything(self) -> None:
        log = EventLog(self.path)
        log.append(_record(1))
        log.append(_record(2))

        drained = log.snapshot_and_clear()

        self.assertEqual([r.issue_number for r in drained], [1, 2])
        self.assertEqual(log.all(), [])
        self.assertEqual(json.loads(self.path.read_text()), [])

    def test_all_returns_a_copy(self) -> None:
        log = EventLog(self.path)
        log.append(_record(1))

        log.all().clear()

        self.assertEqual(len(log), 1)

    def test_failed_rename_leaves_prior_primary_intact(self) -> None:
        log = EventLog(self.path)
        log.append(_record(1))

        with mock.patch("automation.triage.event_log.os.replace", side_effect=OSError("disk gone")):
            with self.assertRaises(OSError):
                log.append(_record(2))

        self.assertEqual([r["issue_number"] for r in json.loads(self.path.read_text())], [1])
        self.assertEqual([r.issue_number for r in EventLog(self.path).all()], [1])
        self.assertFalse(self.path.with_name("data.json.tmp").exists())

    def test_failed_clear_keeps_records_in_memory_and_on_disk(self) -> None:
        log = EventLog(self.path)
        log.append(_record(1))
        log.append(_record(2))

        with mock.patch("automation.triage.event_log.os.replace", side_effect=OSError("disk gone")):
            with self.assertRaises(OSError):
                log.snapshot_and_clear()

        self.assertEqual([r.issue_number for r in log.all()], [1, 2])
        log.append(_record(3))
        self.assertEqual([r.issue_number for r in EventLog(self.path).all()], [1, 2, 3])

    def test_drain_then_restore_puts_records_before_newer_ones(self) -> None:
        log = EventLog(self.path)
        log.append(_record(1))

        drained = log.drain()
        self.assertEqual(log.all(), [])
        # The file is untouched until persist() or restore().
        self.assertEqual(len(json.loads(self.path.read_text())), 1)

        log.append(_record(2))
        log.restore(drained)

        self.assertEqual([r.issue_number for r in log.all()], [1, 2])
        self.assertEqual([r.issue_number for r in EventLog(self.path).all()], [1, 2])

    def test_drain_then_persist_writes_empty_log(self) -> None:
        log = EventLog(self.path)
        log.append(_record(1))

        log.drain()
        log.persist()

        self.assertEqual(json.loads(self.path.read_text()), [])

    def test_interrupted_temp_write_is_ignored_on_restart(self) -> None:
        log = EventLog(self.path)
        log.append(_record(1))
        self.path.with_name("data.json.tmp").write_text('[{"action": "add", "issue_num')

        reloaded = EventLog(self.path)

        self.assertEqual([r.issue_number for r in reloaded.all()], [1])
        self.assertFalse(self.path.with_name("data.json.tmp").exists())

    def test_concurrent_appends_during_drain_are_not_lost_or_duplicated(self) -> None:
        log = EventLog(self.path)
        total = 200
        drained: list[ChangeRecord] = []

        def writer(offset: int) -> None:
            for i in range(total // 4):
                log.append(_record(offset + i))

        threads = [threading.Thread(target=writer, args=(n * 1000,)) for n in range(4)]
        for t in threads:
            t.start()
        while any(t.is_alive() for t in threads):
            drained.extend(log.snapshot_and_clear())
        for t in threads:
            t.join()
        drained.extend(log.snapshot_and_clear())

        numbers = [r.issue_number for r in drained]
        self.assertEqual(len(numbers), total)
        self.assertEqual(len(set(numbers)), total)


if __name__ == "__main__":
    unittest.main()
