from __future__ import annotations

import json
import logging
import os
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from ._util import _as_local
from .model import Record, Stats
from .notify import RECORD_UPDATED, EventBus
from .stats import compute_stats

logger = logging.getLogger(__name__)


class StoreError(Exception):
    pass


class RecordNotFoundError(StoreError, KeyError):
    def __init__(self, record_id: str):
        super().__init__(record_id)
        self.record_id = record_id

    def __str__(self) -> str:
        return f"no record with id {self.record_id!r}"


class RecordStore(Protocol):
    def get_records(self) -> list[Record]: ...

    def delete_record(self, record_id: str) -> None: ...

    def update_record(self, record: Record) -> None: ...

    def clear_records(self) -> int: ...

    def get_stats(self, now: datetime | None = None) -> Stats: ...


# -------------------------
# File helpers
# -------------------------


def _read_json(path: Path) -> dict[str, Any]:
    """
    Safe load:
    - missing/empty -> {}
    - corrupt -> raw text backed up next to the file, then {}
    Never raises on bad content.
    """
    if not path.exists():
        return {}

    txt = path.read_text(encoding="utf-8").strip()
    if not txt:
        return {}

    try:
        data = json.loads(txt)
    except json.JSONDecodeError:
        backup = path.with_suffix(f".corrupt-{int(time.time())}.json")
        backup.write_text(txt, encoding="utf-8")
        logger.warning("data file %s is not valid JSON; backed up to %s", path, backup)
        _write_json(path, {})
        return {}
    return data if isinstance(data, dict) else {}


def _write_json(path: Path, data: Any) -> None:
    # temp file in the same dir + fsync + os.replace
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")

    payload = json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(payload)
        f.flush()
        os.fsync(f.fileno())

    os.replace(tmp, path)

    try:
        os.chmod(path, 0o600)
    except OSError:
        pass


# -------------------------
# Store
# -------------------------


class JsonRecordStore:
    """Records kept in one JSON file under the "records" key, insertion ordered."""

    def __init__(self, data_path: Path, bus: EventBus | None = None):
        self.data_path = Path(data_path)
        self.bus = bus

    # -------- raw document --------

    def load(self) -> dict[str, Any]:
        data = _read_json(self.data_path)
        if not isinstance(data.get("records"), list):
            data["records"] = []
        return data

    def save(self, data: dict[str, Any]) -> None:
        _write_json(self.data_path, data)

    def init(self) -> None:
        self.save(self.load())

    def _changed(self) -> None:
        if self.bus is not None:
            self.bus.publish(RECORD_UPDATED)

    # -------- contract --------

    def get_records(self) -> list[Record]:
        out: list[Record] = []
        skipped = 0
        for raw in self.load()["records"]:
            rec = Record.from_dict(raw)
            if rec is None:
                skipped += 1
                continue
            out.append(rec)
        if skipped:
            logger.debug("skipped %d malformed rows in %s", skipped, self.data_path)
        return out

    def get_record(self, record_id: str) -> Record:
        for rec in self.get_records():
            if rec.id == record_id:
                return rec
        raise RecordNotFoundError(record_id)

    def add_record(self, start_time: datetime, duration: float, notes: str | None = None) -> Record:
        data = self.load()
        rec = Record(id=uuid.uuid4().hex, start_time=_as_local(start_time), duration=duration, notes=notes)
        data["records"].append(rec.to_dict())
        self.save(data)
        logger.debug("added record %s", rec.id)
        self._changed()
        return rec

    def delete_record(self, record_id: str) -> None:
        data = self.load()
        rows = data["records"]
        kept = [r for r in rows if not (isinstance(r, dict) and r.get("id") == record_id)]
        if len(kept) == len(rows):
            raise RecordNotFoundError(record_id)
        data["records"] = kept
        self.save(data)
        logger.debug("deleted record %s", record_id)
        self._changed()

    def update_record(self, record: Record) -> None:
        data = self.load()
        rows = data["records"]
        for i, r in enumerate(rows):
            if isinstance(r, dict) and r.get("id") == record.id:
                rows[i] = record.to_dict()
                break
        else:
            raise RecordNotFoundError(record.id)
        self.save(data)
        logger.debug("updated record %s", record.id)
        self._changed()

    def clear_records(self) -> int:
        """Drop every record in one write. Returns how many were removed."""
        data = self.load()
        before = len(data["records"])
        data["records"] = []
        self.save(data)
        logger.debug("cleared %d records", before)
        self._changed()
        return before

    def get_stats(self, now: datetime | None = None) -> Stats:
        return compute_stats(self.get_records(), now)
