from __future__ import annotations

import tkinter as tk
from datetime import datetime
from tkinter import messagebox, ttk

from ._util import _fmt_stamp
from .heatmap import DAYS_IN_WEEK, WEEKDAY_LABELS, WEEKS_TO_SHOW, CalendarGrid
from .model import format_duration
from .notify import ChangeNotifier, EventBus, StorageWatcher
from .paths import resolve_data_path
from .reconcile import EditDraft, HistoryList, StatsPanel
from .safety import assert_safe_data_path
from .store import JsonRecordStore, StoreError
from .timeparse import parse_time

# -------------------------
# Heat-map palette
# -------------------------

LEVEL_COLORS = [
    "#ebedf0",  # 0: nothing logged
    "#c6e4ff",
    "#90caf9",
    "#64b5f6",
    "#2196f3",
    "#0d47a1",  # 5: 180+ minutes
]

CELL = 11
GAP = 2
CAL_LEFT = 22
CAL_TOP = 16


def cell_at(x: float, y: float) -> tuple[int, int] | None:
    """Map a canvas point to (week, day) on the heat-map, or None off the cells."""
    step = CELL + GAP
    dx = x - CAL_LEFT
    dy = y - CAL_TOP
    if dx < 0 or dy < 0:
        return None
    week, wx = divmod(int(dx), step)
    col, cy = divmod(int(dy), step)
    if wx >= CELL or cy >= CELL or week >= WEEKS_TO_SHOW or col >= DAYS_IN_WEEK:
        return None
    return week, col


def cell_caption(grid: CalendarGrid, week: int, col: int) -> str:
    return f"{grid.date_at(week, col).isoformat()}  {format_duration(grid.cells[week][col])}"


class PulseLogApp(tk.Tk):
    def __init__(self, store: JsonRecordStore, bus: EventBus):
        super().__init__()
        self.title("pulselog")
        self.geometry("820x560")
        self.store = store

        # the Tk root doubles as the after()/after_cancel() scheduler
        self.notifier = ChangeNotifier(bus, self)
        self.watcher = StorageWatcher(store.data_path, bus, self)

        self.stats_panel = StatsPanel(store)
        self.history = HistoryList(store, self.stats_panel)
        self.history.listeners.append(self._render_history)
        self.stats_panel.listeners.append(self._render_stats)

        self._row_ids: dict[str, str] = {}
        self._edit_win: tk.Toplevel | None = None

        self._build_header()
        self._build_tabs()

        self.history.attach(self.notifier)
        self.stats_panel.attach(self.notifier)

        self.protocol("WM_DELETE_WINDOW", self._on_close)

    # -------- Crash guard --------

    def report_callback_exception(self, exc, val, tb):  # type: ignore[override]
        import traceback

        traceback.print_exception(exc, val, tb)
        try:
            messagebox.showerror("Crash prevented", f"{exc.__name__}: {val}")
        except tk.TclError:
            pass

    def _safe_cmd(self, fn):
        def wrapped(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except StoreError as e:
                # the views already resynced; just tell the user
                messagebox.showwarning("Out of date", f"{e}\n\nThe list has been reloaded.")
                return None
            except Exception as e:
                import traceback

                traceback.print_exc()
                messagebox.showerror("Crash prevented", f"{type(e).__name__}: {e}")
                return None

        return wrapped

    def _on_close(self) -> None:
        self.history.detach()
        self.stats_panel.detach()
        self.watcher.close()
        self.destroy()

    # -------------------------
    # Layout
    # -------------------------

    def _build_header(self) -> None:
        frm = ttk.Frame(self, padding=10)
        frm.pack(fill="x")

        ttk.Label(frm, text="pulselog", font=("TkDefaultFont", 16, "bold")).pack(side="left")
        ttk.Label(frm, text=str(self.store.data_path), foreground="#666").pack(side="left", padx=12)
        ttk.Button(frm, text="Refresh", command=self._safe_cmd(self._refresh_now)).pack(side="right")

    def _build_tabs(self) -> None:
        self.nb = ttk.Notebook(self)
        self.nb.pack(fill="both", expand=True, padx=10, pady=10)

        self.tab_history = ttk.Frame(self.nb, padding=10)
        self.tab_stats = ttk.Frame(self.nb, padding=10)
        self.nb.add(self.tab_history, text="History")
        self.nb.add(self.tab_stats, text="Stats")

        self._build_history_tab()
        self._build_stats_tab()

    def _refresh_now(self) -> None:
        self.history.refresh()
        self.stats_panel.refresh()

    # -------------------------
    # History tab
    # -------------------------

    def _build_history_tab(self) -> None:
        cols = ("when", "duration", "notes")
        self.tree = ttk.Treeview(self.tab_history, columns=cols, show="headings", height=18)
        self.tree.heading("when", text="Start")
        self.tree.heading("duration", text="Duration")
        self.tree.heading("notes", text="Notes")
        self.tree.column("when", width=180)
        self.tree.column("duration", width=100)
        self.tree.column("notes", width=400)
        self.tree.pack(fill="both", expand=True)
        self.tree.bind("<Double-1>", lambda _e: self._safe_cmd(self._edit_selected)())

        btns = ttk.Frame(self.tab_history)
        btns.pack(fill="x", pady=(8, 0))
        ttk.Button(btns, text="Edit…", command=self._safe_cmd(self._edit_selected)).pack(side="left")
        ttk.Button(btns, text="Delete", command=self._safe_cmd(self._delete_selected)).pack(side="left", padx=6)
        ttk.Button(btns, text="Clear all…", command=self._safe_cmd(self._clear_all)).pack(side="right")

    def _render_history(self) -> None:
        self.tree.delete(*self.tree.get_children())
        self._row_ids.clear()
        for rec in self.history.newest_first():
            iid = self.tree.insert(
                "",
                tk.END,
                values=(_fmt_stamp(rec.start_time), format_duration(rec.duration), rec.notes or ""),
            )
            self._row_ids[iid] = rec.id

    def _selected_id(self) -> str | None:
        sel = self.tree.selection()
        if not sel:
            return None
        return self._row_ids.get(sel[0])

    def _delete_selected(self) -> None:
        record_id = self._selected_id()
        if record_id is None:
            return
        self.history.delete(record_id)

    def _clear_all(self) -> None:
        if not self.history.records:
            return
        if not messagebox.askyesno(
            "Clear all records",
            f"Delete all {len(self.history.records)} records? This cannot be undone.",
        ):
            return
        self.history.clear_all()

    def _edit_selected(self) -> None:
        record_id = self._selected_id()
        if record_id is None:
            return
        self._open_editor(self.history.begin_edit(record_id))

    def _open_editor(self, draft: EditDraft) -> None:
        if self._edit_win is not None:
            self._edit_win.destroy()

        win = tk.Toplevel(self)
        win.title("Edit record")
        win.transient(self)
        self._edit_win = win

        frm = ttk.Frame(win, padding=12)
        frm.pack(fill="both", expand=True)

        time_var = tk.StringVar(value=draft.start_time.strftime("%Y-%m-%d %H:%M:%S"))
        min_var = tk.StringVar(value=str(draft.minutes))
        sec_var = tk.StringVar(value=str(draft.seconds))
        notes_var = tk.StringVar(value=draft.notes or "")

        ttk.Label(frm, text="时间").grid(row=0, column=0, sticky="w")
        ttk.Entry(frm, textvariable=time_var, width=22).grid(row=0, column=1, columnspan=4, sticky="w")

        ttk.Label(frm, text="持续时间").grid(row=1, column=0, sticky="w", pady=6)
        ttk.Spinbox(frm, from_=0, to=999, textvariable=min_var, width=5).grid(row=1, column=1)
        ttk.Label(frm, text="分").grid(row=1, column=2)
        ttk.Spinbox(frm, from_=0, to=59, textvariable=sec_var, width=4).grid(row=1, column=3)
        ttk.Label(frm, text="秒").grid(row=1, column=4)

        ttk.Label(frm, text="备注").grid(row=2, column=0, sticky="w")
        ttk.Entry(frm, textvariable=notes_var, width=30).grid(row=2, column=1, columnspan=4, sticky="w")

        # each field feeds the draft on its own; the committed record stays untouched
        min_var.trace_add("write", lambda *_: draft.set_minutes(min_var.get()))
        sec_var.trace_add("write", lambda *_: draft.set_seconds(sec_var.get()))
        notes_var.trace_add("write", lambda *_: draft.set_notes(notes_var.get().strip()))

        def confirm() -> None:
            try:
                start: datetime = parse_time(time_var.get())
            except SystemExit as e:
                messagebox.showerror("Bad time", str(e), parent=win)
                return
            draft.set_start_time(start)
            self._commit_editor(draft)

        btns = ttk.Frame(frm)
        btns.grid(row=3, column=0, columnspan=5, sticky="e", pady=(10, 0))
        ttk.Button(btns, text="取消", command=self._close_editor).pack(side="left")
        ttk.Button(btns, text="确定", command=self._safe_cmd(confirm)).pack(side="left", padx=(6, 0))

    def _commit_editor(self, draft: EditDraft) -> None:
        # a failed commit raises before the dialog closes, so the draft survives
        self.history.commit_edit(draft)
        self._close_editor()

    def _close_editor(self) -> None:
        if self._edit_win is not None:
            self._edit_win.destroy()
            self._edit_win = None

    # -------------------------
    # Stats tab
    # -------------------------

    def _build_stats_tab(self) -> None:
        cards = ttk.Frame(self.tab_stats)
        cards.pack(fill="x")

        self.stat_vars: dict[str, tk.StringVar] = {}
        labels = [
            ("average_duration", "平均时长(分)"),
            ("max_duration", "最长时长(分)"),
            ("total_count", "总次数"),
            ("frequency_per_week", "本周次数"),
            ("frequency_per_month", "本月次数"),
            ("frequency_per_year", "本年次数"),
        ]
        for i, (key, text) in enumerate(labels):
            box = ttk.LabelFrame(cards, text=text, padding=8)
            box.grid(row=i // 3, column=i % 3, sticky="nsew", padx=4, pady=4)
            var = tk.StringVar(value="0")
            ttk.Label(box, textvariable=var, font=("TkDefaultFont", 14, "bold")).pack(anchor="w")
            self.stat_vars[key] = var
        for c in range(3):
            cards.columnconfigure(c, weight=1)

        cal_box = ttk.LabelFrame(self.tab_stats, text="日历", padding=6)
        cal_box.pack(fill="both", expand=True, pady=(10, 0))
        self.cal_canvas = tk.Canvas(cal_box, height=130, bg="white", highlightthickness=0)
        self.cal_canvas.pack(fill="both", expand=True)
        self.cal_hover = tk.StringVar(value="")
        ttk.Label(cal_box, textvariable=self.cal_hover, foreground="#666").pack(anchor="w")
        self.cal_canvas.bind("<Motion>", self._on_calendar_motion)
        self.cal_canvas.bind("<Leave>", lambda _e: self.cal_hover.set(""))

    def _render_stats(self) -> None:
        s = self.stats_panel.stats
        self.stat_vars["average_duration"].set(f"{s.average_duration:.1f}")
        self.stat_vars["max_duration"].set(f"{s.max_duration:.1f}")
        self.stat_vars["total_count"].set(str(s.total_count))
        self.stat_vars["frequency_per_week"].set(str(s.frequency_per_week))
        self.stat_vars["frequency_per_month"].set(str(s.frequency_per_month))
        self.stat_vars["frequency_per_year"].set(str(s.frequency_per_year))
        self._draw_calendar()

    def _draw_calendar(self) -> None:
        canvas = self.cal_canvas
        canvas.delete("all")
        grid = self.stats_panel.calendar

        left, top = CAL_LEFT, CAL_TOP
        step = CELL + GAP

        for week, label in grid.month_labels.items():
            canvas.create_text(left + week * step, 2, text=label, anchor="nw", fill="#666", font=("TkDefaultFont", 8))

        for col in range(DAYS_IN_WEEK):
            canvas.create_text(2, top + col * step, text=WEEKDAY_LABELS[col], anchor="nw", fill="#666", font=("TkDefaultFont", 8))

        for week in range(len(grid.cells)):
            for col in range(DAYS_IN_WEEK):
                x = left + week * step
                y = top + col * step
                canvas.create_rectangle(
                    x, y, x + CELL, y + CELL, fill=LEVEL_COLORS[grid.level(week, col)], outline=""
                )

    def _on_calendar_motion(self, event) -> None:
        pos = cell_at(event.x, event.y)
        if pos is None or pos[0] >= len(self.stats_panel.calendar.cells):
            self.cal_hover.set("")
            return
        self.cal_hover.set(cell_caption(self.stats_panel.calendar, *pos))


# -------------------------
# GUI Entrypoint
# -------------------------


def run_gui(argv=None) -> None:
    data_path = resolve_data_path(None, None)
    assert_safe_data_path(data_path, allow_repo_data_path=False)
    bus = EventBus()
    app = PulseLogApp(JsonRecordStore(data_path, bus), bus)
    app.mainloop()


if __name__ == "__main__":
    run_gui()
