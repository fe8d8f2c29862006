"""Append-only log of priority changes, mirrored to a JSON file after every change."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path

from automation.triage.records import ChangeRecord

logger = logging.getLogger("triage-bot")


class EventLog:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._records: list[ChangeRecord] = self._load()

    def _load(self) -> list[ChangeRecord]:
        # The primary file is the source of truth; a leftover temp file is an interrupted write.
        tmp_path = self._tmp_path()
        if tmp_path.exists():
            logger.warning("discarding interrupted event log write path=%s", tmp_path)
            tmp_path.unlink(missing_ok=True)
        if not self.path.exists():
            return []
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        return [ChangeRecord.from_dict(item) for item in raw]

    def _tmp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._tmp_path()
        data = json.dumps([record.to_dict() for record in self._records], indent=2)
        try:
            with open(tmp_path, "w", encoding="utf-8") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)

    def append(self, record: ChangeRecord) -> None:
        with self._lock:
            self._records.append(record)
            self._save()

    def snapshot_and_clear(self) -> list[ChangeRecord]:
        with self._lock:
            drained, self._records = self._records, []
            try:
                self._save()
            except OSError:
                self._records = drained + self._records
                raise
        return drained

    def drain(self) -> list[ChangeRecord]:
        """Take every record out of memory without touching the file.

        Pair with ``persist()`` once the drained records are safe elsewhere,
        or ``restore()`` if they are not.
        """
        with self._lock:
            drained, self._records = self._records, []
        return drained

    def restore(self, records: list[ChangeRecord]) -> None:
        # Drained records go back in front of anything appended since.
        with self._lock:
            self._records = list(records) + self._records
            self._save()

    def persist(self) -> None:
        with self._lock:
            self._save()

    def all(self) -> list[ChangeRecord]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
