"""
View-side snapshots of the record store.

Every mutation goes through the store and is followed by a full re-pull, so
the snapshot never drifts from what is on disk. Failed mutations are logged,
the view resyncs, and the error propagates to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, TypeVar

from ._util import _as_local
from .heatmap import build_calendar
from .model import Record, Stats, join_duration, split_duration
from .notify import ChangeNotifier, Subscription
from .store import JsonRecordStore, StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _LiveView:
    def __init__(self) -> None:
        self.subscription: Subscription | None = None
        self.listeners: list[Callable[[], None]] = []

    def refresh(self) -> None:
        raise NotImplementedError

    def _changed(self) -> None:
        for listener in list(self.listeners):
            listener()

    def attach(self, notifier: ChangeNotifier) -> Subscription:
        """Load now, then keep refreshing on every trigger until detach()."""
        self.detach()
        self.subscription = notifier.watch(self.refresh)
        self.refresh()
        return self.subscription

    def refresh_live(self) -> None:
        """Refresh now, absorbing any refresh the subscription already has queued."""
        if self.subscription is not None:
            self.subscription.refresh_now()
        else:
            self.refresh()

    def detach(self) -> None:
        if self.subscription is not None:
            self.subscription.close()
            self.subscription = None


@dataclass
class EditDraft:
    """Uncommitted edit of one record; the committed record is left alone."""

    record_id: str
    start_time: datetime
    duration: float
    notes: str | None

    @classmethod
    def from_record(cls, record: Record) -> EditDraft:
        return cls(record.id, record.start_time, record.duration, record.notes)

    @property
    def minutes(self) -> int:
        return split_duration(self.duration)[0]

    @property
    def seconds(self) -> int:
        return split_duration(self.duration)[1]

    def set_start_time(self, value: datetime) -> None:
        self.start_time = _as_local(value)

    def set_minutes(self, raw: object) -> None:
        self.duration = join_duration(raw, self.seconds)

    def set_seconds(self, raw: object) -> None:
        self.duration = join_duration(self.minutes, raw)

    def set_duration(self, value: float) -> None:
        self.duration = float(value)

    def set_notes(self, text: str | None) -> None:
        self.notes = text or None

    def to_record(self) -> Record:
        return Record(id=self.record_id, start_time=self.start_time, duration=self.duration, notes=self.notes)


class StatsPanel(_LiveView):
    def __init__(self, store: JsonRecordStore, clock: Callable[[], datetime] | None = None):
        super().__init__()
        self.store = store
        self.stats = Stats()
        self.records: list[Record] = []
        self.calendar = build_calendar([])
        self._clock = clock

    def refresh(self, now: datetime | None = None) -> None:
        if now is None and self._clock is not None:
            now = self._clock()
        self.stats = self.store.get_stats(now)
        self.records = self.store.get_records()
        self.calendar = build_calendar(self.records, now.astimezone().date() if now else None)
        self._changed()


class HistoryList(_LiveView):
    def __init__(self, store: JsonRecordStore, stats_panel: StatsPanel | None = None):
        super().__init__()
        self.store = store
        self.stats_panel = stats_panel
        self.records: list[Record] = []

    def refresh(self) -> None:
        self.records = self.store.get_records()
        self._changed()

    def newest_first(self) -> list[Record]:
        return list(reversed(self.records))

    def _mutate(self, action: str, fn: Callable[[], T]) -> T:
        try:
            result = fn()
        except StoreError as e:
            logger.warning("%s failed: %s; resyncing", action, e)
            self._resync()
            raise
        self._resync()
        return result

    def _resync(self) -> None:
        self.refresh_live()
        if self.stats_panel is not None:
            self.stats_panel.refresh_live()

    def delete(self, record_id: str) -> None:
        self._mutate(f"delete {record_id}", lambda: self.store.delete_record(record_id))

    def begin_edit(self, record_id: str) -> EditDraft:
        for rec in self.records:
            if rec.id == record_id:
                return EditDraft.from_record(rec)
        return EditDraft.from_record(self.store.get_record(record_id))

    def commit_edit(self, draft: EditDraft) -> Record:
        record = draft.to_record()
        self._mutate(f"update {record.id}", lambda: self.store.update_record(record))
        return record

    def clear_all(self) -> int:
        return self._mutate("clear all", self.store.clear_records)
