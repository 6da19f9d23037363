"""Tk-free checks for the GUI helpers (no window is created)."""

from __future__ import annotations

from datetime import date, datetime
from types import SimpleNamespace

import pytest

pytest.importorskip("tkinter")

from pulselog.gui import CAL_LEFT, CAL_TOP, CELL, GAP, PulseLogApp, cell_at, cell_caption  # noqa: E402
from pulselog.heatmap import build_calendar  # noqa: E402
from pulselog.model import Record  # noqa: E402
from pulselog.reconcile import EditDraft, HistoryList  # noqa: E402
from pulselog.store import RecordNotFoundError  # noqa: E402

TODAY = date(2026, 10, 21)

# ---- heat-map hover ----


def test_cell_at_hits_cells_and_misses_gaps():
    step = CELL + GAP
    assert cell_at(CAL_LEFT, CAL_TOP) == (0, 0)
    assert cell_at(CAL_LEFT + 3 * step + 1, CAL_TOP + 2 * step + 1) == (3, 2)
    assert cell_at(CAL_LEFT + CELL, CAL_TOP) is None  # gap between weeks
    assert cell_at(CAL_LEFT - 1, CAL_TOP) is None
    assert cell_at(CAL_LEFT, CAL_TOP + 7 * step) is None
    assert cell_at(CAL_LEFT + 52 * step, CAL_TOP) is None


def test_cell_caption_shows_date_and_total():
    recs = [
        Record(id="a", start_time=datetime(2026, 10, 21, 9, 0), duration=12.5),
        Record(id="b", start_time=datetime(2026, 10, 21, 20, 0), duration=3),
    ]
    grid = build_calendar(recs, TODAY)
    week, col = grid.cell_for(TODAY)
    assert cell_caption(grid, week, col) == "2026-10-21  15分30秒"
    assert cell_caption(grid, 0, 0) == f"{grid.start_date.isoformat()}  0分0秒"


# ---- edit dialog ----


def test_failed_commit_keeps_editor_open(store):
    rec = store.add_record(datetime(2026, 10, 20, 12, 0), 5)
    history = HistoryList(store)
    history.refresh()
    draft = history.begin_edit(rec.id)
    draft.set_minutes(9)
    store.delete_record(rec.id)  # gone behind the dialog's back

    closed = []
    app = SimpleNamespace(history=history, _close_editor=lambda: closed.append(True))
    with pytest.raises(RecordNotFoundError):
        PulseLogApp._commit_editor(app, draft)
    assert closed == []
    assert draft.minutes == 9


def test_commit_closes_editor(store):
    rec = store.add_record(datetime(2026, 10, 20, 12, 0), 5)
    history = HistoryList(store)
    history.refresh()
    draft: EditDraft = history.begin_edit(rec.id)
    draft.set_notes("evening")

    closed = []
    app = SimpleNamespace(history=history, _close_editor=lambda: closed.append(True))
    PulseLogApp._commit_editor(app, draft)
    assert closed == [True]
    assert store.get_record(rec.id).notes == "evening"
