"""
Contribution calendar.

The grid covers WEEKS_TO_SHOW weeks ending on the Sunday that closes the
current week. Rows run oldest -> newest, columns Monday -> Sunday, and each
cell holds the summed minutes of every record whose local date falls on it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable

from ._util import _now_local
from .model import Record

DAYS_IN_WEEK = 7
WEEKS_TO_SHOW = 52
WEEKDAY_LABELS = ["一", "二", "三", "四", "五", "六", "日"]

# (lower bound in minutes, level), checked top-down
LEVEL_THRESHOLDS = [(180, 5), (120, 4), (60, 3), (30, 2)]
LEVEL_GLYPHS = "·░▒▓█■"


def contribution_level(minutes: float) -> int:
    for bound, level in LEVEL_THRESHOLDS:
        if minutes >= bound:
            return level
    return 1 if minutes > 0 else 0


def _sunday_based_weekday(d: date) -> int:
    # Sunday=0 .. Saturday=6
    return (d.weekday() + 1) % DAYS_IN_WEEK


def window_bounds(today: date) -> tuple[date, date]:
    """(first day, last day) of the trailing window; the last day is always a Sunday."""
    end_of_week = today + timedelta(days=DAYS_IN_WEEK - _sunday_based_weekday(today))
    start_date = end_of_week - timedelta(days=DAYS_IN_WEEK * WEEKS_TO_SHOW - 1)
    return start_date, end_of_week


def month_labels(start_date: date) -> dict[int, str]:
    labels: dict[int, str] = {}
    for week in range(WEEKS_TO_SHOW):
        d = start_date + timedelta(days=week * DAYS_IN_WEEK)
        if week == 0 or d.day <= 7:
            labels[week] = f"{d.month}月"
    return labels


@dataclass
class CalendarGrid:
    start_date: date
    end_date: date
    cells: list[list[float]]
    month_labels: dict[int, str] = field(default_factory=dict)

    def level(self, row: int, col: int) -> int:
        return contribution_level(self.cells[row][col])

    def levels(self) -> list[list[int]]:
        return [[contribution_level(m) for m in row] for row in self.cells]

    def date_at(self, row: int, col: int) -> date:
        return self.start_date + timedelta(days=row * DAYS_IN_WEEK + col)

    def cell_for(self, d: date) -> tuple[int, int] | None:
        if not (self.start_date <= d <= self.end_date):
            return None
        offset = (d - self.start_date).days
        return offset // DAYS_IN_WEEK, offset % DAYS_IN_WEEK

    def minutes_on(self, d: date) -> float:
        pos = self.cell_for(d)
        if pos is None:
            return 0.0
        return self.cells[pos[0]][pos[1]]

    def total_minutes(self) -> float:
        return sum(sum(row) for row in self.cells)


def build_calendar(records: Iterable[Record], today: date | None = None) -> CalendarGrid:
    if today is None:
        today = _now_local().date()
    start_date, end_of_week = window_bounds(today)

    cells = [[0.0] * DAYS_IN_WEEK for _ in range(WEEKS_TO_SHOW)]

    for r in records:
        d = r.local_date()
        if d < start_date or d > end_of_week:
            continue
        days_diff = (end_of_week - d).days
        week_index = days_diff // DAYS_IN_WEEK
        day_index = days_diff % DAYS_IN_WEEK
        cells[WEEKS_TO_SHOW - 1 - week_index][DAYS_IN_WEEK - 1 - day_index] += r.duration

    return CalendarGrid(
        start_date=start_date,
        end_date=end_of_week,
        cells=cells,
        month_labels=month_labels(start_date),
    )


def render_calendar(grid: CalendarGrid, glyphs: str = LEVEL_GLYPHS) -> list[str]:
    """
    Text heat-map for the terminal: one line per weekday, one glyph per week,
    newest week on the right. Month labels sit above the week they start in.
    """
    weeks = len(grid.cells)
    margin = "   "  # weekday labels are double-width + one space

    header = [" "] * weeks
    for week, label in sorted(grid.month_labels.items()):
        text = label.rstrip("月")
        span = range(week, week + len(text))
        if span.stop > weeks or any(header[i] != " " for i in span):
            continue
        for i, ch in zip(span, text):
            header[i] = ch
    lines = [(margin + "".join(header)).rstrip()]

    for col in range(DAYS_IN_WEEK):
        row_glyphs = "".join(glyphs[grid.level(row, col)] for row in range(weeks))
        lines.append(f"{WEEKDAY_LABELS[col]} {row_glyphs}")

    lines.append(margin + "少 " + " ".join(glyphs) + " 多")
    return lines
