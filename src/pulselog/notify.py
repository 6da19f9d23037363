"""
Change propagation.

Three independent triggers keep a view in sync with the record store:
  - a periodic timer (REFRESH_INTERVAL_MS)
  - the in-process "record-updated" signal, published by the store after a mutation
  - the "storage" signal, published by StorageWatcher when another process
    rewrites the data file

All three funnel into Subscription.invalidate(), which schedules at most one
refresh per tick. Refresh callbacks must re-pull full state.

Scheduling uses the Tk after()/after_cancel() pair, so a tk.Tk root can be
passed straight in as the scheduler.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

RECORD_UPDATED = "record-updated"
STORAGE_CHANGED = "storage"
RECORDS_KEY = "pulselog_records"

REFRESH_INTERVAL_MS = 60_000
STORAGE_POLL_MS = 2_000


class Scheduler(Protocol):
    def after(self, ms: int, func: Callable[[], None]) -> Any: ...

    def after_cancel(self, job: Any) -> None: ...


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[..., None]]] = {}

    def subscribe(self, topic: str, handler: Callable[..., None]) -> Callable[[], None]:
        """Register handler for topic; returns a function that removes it again."""
        self._handlers.setdefault(topic, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, topic: str, **payload: Any) -> None:
        # copy: handlers may unsubscribe while we iterate
        for handler in list(self._handlers.get(topic, [])):
            handler(**payload)

    def handler_count(self, topic: str) -> int:
        return len(self._handlers.get(topic, []))


class Subscription:
    """One view's registration with the notifier. close() releases everything."""

    def __init__(
        self,
        refresh: Callable[[], None],
        bus: EventBus,
        scheduler: Scheduler,
        interval_ms: int,
        storage_key: str,
    ) -> None:
        self._refresh = refresh
        self._scheduler = scheduler
        self._interval_ms = interval_ms
        self._storage_key = storage_key
        self._pending: Any = None
        self._timer: Any = None
        self._closed = False

        self._unsubscribers = [
            bus.subscribe(RECORD_UPDATED, self._on_record_updated),
            bus.subscribe(STORAGE_CHANGED, self._on_storage),
        ]
        self._timer = scheduler.after(interval_ms, self._tick)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def invalidate(self) -> None:
        if self._closed or self._pending is not None:
            return
        self._pending = self._scheduler.after(0, self._flush)

    def refresh_now(self) -> None:
        if self._pending is not None:
            self._scheduler.after_cancel(self._pending)
            self._pending = None
        self._run_refresh()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        for job in (self._timer, self._pending):
            if job is not None:
                self._scheduler.after_cancel(job)
        self._timer = None
        self._pending = None

    # -------- triggers --------

    def _on_record_updated(self, **_payload: Any) -> None:
        self.invalidate()

    def _on_storage(self, key: str | None = None, **_payload: Any) -> None:
        if key == self._storage_key:
            self.invalidate()

    def _tick(self) -> None:
        self._timer = None
        if self._closed:
            return
        self.invalidate()
        self._timer = self._scheduler.after(self._interval_ms, self._tick)

    def _flush(self) -> None:
        self._pending = None
        if not self._closed:
            self._run_refresh()

    def _run_refresh(self) -> None:
        try:
            self._refresh()
        except Exception:
            # keep the timer alive; the next trigger retries
            logger.exception("refresh failed")


class ChangeNotifier:
    def __init__(
        self,
        bus: EventBus,
        scheduler: Scheduler,
        interval_ms: int = REFRESH_INTERVAL_MS,
        storage_key: str = RECORDS_KEY,
    ) -> None:
        self.bus = bus
        self.scheduler = scheduler
        self.interval_ms = interval_ms
        self.storage_key = storage_key

    def watch(self, refresh: Callable[[], None]) -> Subscription:
        return Subscription(refresh, self.bus, self.scheduler, self.interval_ms, self.storage_key)


class StorageWatcher:
    """Polls the data file and publishes STORAGE_CHANGED when its signature moves."""

    def __init__(
        self,
        path: Path,
        bus: EventBus,
        scheduler: Scheduler,
        key: str = RECORDS_KEY,
        poll_ms: int = STORAGE_POLL_MS,
    ) -> None:
        self.path = Path(path)
        self.bus = bus
        self.scheduler = scheduler
        self.key = key
        self.poll_ms = poll_ms
        self._seen = self._signature()
        self._closed = False
        self._job: Any = scheduler.after(poll_ms, self._poll)

    def _signature(self) -> tuple[int, int] | None:
        try:
            st = self.path.stat()
        except OSError:
            return None
        return (st.st_mtime_ns, st.st_size)

    def check(self) -> bool:
        sig = self._signature()
        if sig == self._seen:
            return False
        self._seen = sig
        logger.debug("data file changed on disk: %s", self.path)
        self.bus.publish(STORAGE_CHANGED, key=self.key)
        return True

    def _poll(self) -> None:
        self._job = None
        self.check()
        if not self._closed:
            self._job = self.scheduler.after(self.poll_ms, self._poll)

    def close(self) -> None:
        self._closed = True
        if self._job is not None:
            self.scheduler.after_cancel(self._job)
            self._job = None
