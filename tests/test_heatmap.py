"""Tests for the contribution calendar."""

from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from pulselog.heatmap import (
    DAYS_IN_WEEK,
    WEEKS_TO_SHOW,
    build_calendar,
    contribution_level,
    month_labels,
    render_calendar,
    window_bounds,
)
from pulselog.model import Record

WEDNESDAY = date(2026, 10, 21)
SUNDAY = date(2026, 10, 25)


def _rec(d: date, minutes: float, rid: str = "r", hour: int = 12) -> Record:
    return Record(id=rid, start_time=datetime(d.year, d.month, d.day, hour, 0), duration=minutes)


# ---- levels ----


@pytest.mark.parametrize(
    "minutes, level",
    [
        (0, 0),
        (0.01, 1),
        (29.999, 1),
        (30, 2),
        (59.999, 2),
        (60, 3),
        (119.999, 3),
        (120, 4),
        (179.999, 4),
        (180, 5),
        (1000, 5),
    ],
)
def test_contribution_level_boundaries(minutes, level):
    assert contribution_level(minutes) == level


# ---- window ----


def test_window_ends_on_following_sunday():
    start, end = window_bounds(WEDNESDAY)
    assert end == date(2026, 10, 25)
    assert end.weekday() == 6
    assert start == date(2025, 10, 27)
    assert start.weekday() == 0
    assert (end - start).days == WEEKS_TO_SHOW * DAYS_IN_WEEK - 1


def test_window_on_sunday_reaches_next_sunday():
    _, end = window_bounds(SUNDAY)
    assert end == date(2026, 11, 1)


def test_window_on_saturday():
    _, end = window_bounds(date(2026, 10, 24))
    assert end == date(2026, 10, 25)


# ---- grid ----


def test_empty_grid_is_all_zero():
    grid = build_calendar([], WEDNESDAY)
    assert len(grid.cells) == WEEKS_TO_SHOW
    assert all(len(row) == DAYS_IN_WEEK for row in grid.cells)
    assert grid.total_minutes() == 0
    assert all(level == 0 for row in grid.levels() for level in row)


def test_today_lands_in_last_row_on_its_weekday():
    grid = build_calendar([_rec(WEDNESDAY, 15)], WEDNESDAY)
    assert grid.cells[51][2] == 15
    assert grid.total_minutes() == 15


def test_first_day_of_window_is_top_left():
    grid = build_calendar([_rec(date(2025, 10, 27), 40)], WEDNESDAY)
    assert grid.cells[0][0] == 40


def test_last_day_of_window_is_bottom_right():
    grid = build_calendar([_rec(date(2026, 10, 25), 40)], WEDNESDAY)
    assert grid.cells[51][6] == 40


def test_sunday_today_sits_in_second_to_last_row():
    grid = build_calendar([_rec(SUNDAY, 5)], SUNDAY)
    assert grid.cells[50][6] == 5


def test_records_outside_window_are_ignored():
    records = [
        _rec(date(2025, 10, 26), 99, "before"),
        _rec(date(2026, 10, 26), 99, "after"),
        _rec(date(2026, 10, 20), 7, "inside"),
    ]
    grid = build_calendar(records, WEDNESDAY)
    assert grid.total_minutes() == 7


def test_same_day_records_sum():
    records = [_rec(WEDNESDAY, 10, "a", hour=8), _rec(WEDNESDAY, 25, "b", hour=22)]
    grid = build_calendar(records, WEDNESDAY)
    assert grid.minutes_on(WEDNESDAY) == 35
    row, col = grid.cell_for(WEDNESDAY)
    assert grid.level(row, col) == 2


def test_cell_for_and_date_at_agree():
    grid = build_calendar([], WEDNESDAY)
    for d in (grid.start_date, WEDNESDAY, grid.end_date, date(2026, 2, 14)):
        row, col = grid.cell_for(d)
        assert grid.date_at(row, col) == d


def test_cell_for_outside_window():
    grid = build_calendar([], WEDNESDAY)
    assert grid.cell_for(grid.start_date - timedelta(days=1)) is None
    assert grid.minutes_on(grid.end_date + timedelta(days=1)) == 0.0


def test_every_cell_date_matches_bucketing():
    # a record on each day of the window lands exactly on the cell whose date it is
    start, _ = window_bounds(WEDNESDAY)
    records = [_rec(start + timedelta(days=i), i + 1, f"r{i}") for i in range(WEEKS_TO_SHOW * DAYS_IN_WEEK)]
    grid = build_calendar(records, WEDNESDAY)
    for row in range(WEEKS_TO_SHOW):
        for col in range(DAYS_IN_WEEK):
            offset = (grid.date_at(row, col) - start).days
            assert grid.cells[row][col] == offset + 1


# ---- month labels ----


def test_month_labels_row_zero_always_labelled():
    labels = month_labels(date(2025, 10, 27))
    assert labels[0] == "10月"


def test_month_labels_first_week_of_each_month():
    start = date(2025, 10, 27)
    labels = month_labels(start)
    assert labels[1] == "11月"
    assert len(labels) == 13
    for week, label in labels.items():
        d = start + timedelta(days=7 * week)
        assert label == f"{d.month}月"
        assert week == 0 or d.day <= 7


def test_grid_carries_month_labels():
    grid = build_calendar([], WEDNESDAY)
    assert grid.month_labels == month_labels(grid.start_date)


# ---- rendering ----


def test_render_shape():
    grid = build_calendar([_rec(WEDNESDAY, 200)], WEDNESDAY)
    lines = render_calendar(grid)
    assert len(lines) == 1 + DAYS_IN_WEEK + 1
    wednesday_line = lines[1 + 2]
    assert wednesday_line.startswith("三 ")
    assert wednesday_line.endswith("■")
    assert len(wednesday_line) == 2 + WEEKS_TO_SHOW


def test_render_header_starts_with_first_month():
    lines = render_calendar(build_calendar([], WEDNESDAY))
    assert lines[0].lstrip().startswith("10")
