"""Tests for cli.py helpers and commands."""

from __future__ import annotations

import json
from datetime import datetime, timedelta

import pytest

from pulselog.cli import _parse_duration, _resolve_id, main
from pulselog.model import Record
from pulselog.store import JsonRecordStore

# ---- _parse_duration ----


def test_parse_duration_none():
    assert _parse_duration(None, "--x") is None
    assert _parse_duration("  ", "--x") is None


def test_parse_duration_plain_minutes():
    assert _parse_duration("12", "--x") == 12


def test_parse_duration_fractional():
    assert _parse_duration("5.5", "--x") == 5.5


def test_parse_duration_m_ss():
    assert _parse_duration("12:30", "--x") == pytest.approx(12.5)


def test_parse_duration_units():
    assert _parse_duration("1h5m", "--x") == pytest.approx(65)
    assert _parse_duration("5m30s", "--x") == pytest.approx(5.5)
    assert _parse_duration("90s", "--x") == pytest.approx(1.5)


@pytest.mark.parametrize("value", ["abc", "12:75", "-3", "5m3", "1:2:3", "inf"])
def test_parse_duration_bad_raises(value):
    with pytest.raises(SystemExit):
        _parse_duration(value, "--x")


# ---- _resolve_id ----


def _records(*ids: str) -> list[Record]:
    return [Record(id=i, start_time=datetime(2026, 10, 19, 12, 0), duration=1) for i in ids]


def test_resolve_id_prefix():
    assert _resolve_id(_records("abc123", "def456"), "abc") == "abc123"


def test_resolve_id_ambiguous():
    with pytest.raises(SystemExit):
        _resolve_id(_records("abc123", "abc456"), "abc")


def test_resolve_id_missing():
    with pytest.raises(SystemExit):
        _resolve_id(_records("abc123"), "zzz")


# ---- commands ----


@pytest.fixture()
def run(data_path, capsys):
    def _run(*argv: str) -> str:
        main(["--data", str(data_path), *argv])
        return capsys.readouterr().out

    return _run


def test_init_and_where(run, data_path):
    out = run("init")
    assert "Initialized" in out
    assert json.loads(data_path.read_text()) == {"records": []}
    out = run("where")
    assert str(data_path) in out
    assert "--data" in out


def test_add_and_list_newest_first(run, data_path):
    run("add", "--duration", "12:30", "--time", "2026-10-19 21:30", "--notes", "first")
    run("add", "--duration", "3", "--time", "2026-10-20 08:00")
    out = run("list")
    lines = [line for line in out.splitlines() if "—" in line]
    assert len(lines) == 2
    assert "2026-10-20" in lines[0]
    assert "12分30秒" in lines[1]
    assert "(first)" in lines[1]


def test_list_empty(run):
    assert "No records yet." in run("list")


def test_edit_minutes_seconds(run, data_path):
    run("add", "--duration", "10", "--time", "2026-10-19 21:30")
    rid = JsonRecordStore(data_path).get_records()[0].id
    run("edit", rid[:6], "--minutes", "5", "--seconds", "30", "--notes", "tweaked")
    rec = JsonRecordStore(data_path).get_records()[0]
    assert rec.duration == pytest.approx(5.5)
    assert rec.notes == "tweaked"


def test_edit_malformed_minutes_fall_back_to_zero(run, data_path):
    run("add", "--duration", "10:20", "--time", "2026-10-19 21:30")
    rid = JsonRecordStore(data_path).get_records()[0].id
    run("edit", rid, "--minutes", "lots")
    assert JsonRecordStore(data_path).get_records()[0].duration == pytest.approx(20 / 60)


def test_delete(run, data_path):
    run("add", "--duration", "10", "--time", "2026-10-19 21:30")
    run("add", "--duration", "11", "--time", "2026-10-19 22:30")
    first = JsonRecordStore(data_path).get_records()[0].id
    out = run("delete", first)
    assert "1 left" in out
    assert [r.duration for r in JsonRecordStore(data_path).get_records()] == [11]


def test_delete_unknown_id(run):
    run("init")
    with pytest.raises(SystemExit):
        run("delete", "nope")


def test_clear_requires_yes(run, data_path):
    run("add", "--duration", "10")
    with pytest.raises(SystemExit):
        run("clear")
    assert len(JsonRecordStore(data_path).get_records()) == 1


def test_clear_then_stats_zero(run, data_path):
    run("add", "--duration", "10")
    run("add", "--duration", "20")
    assert "deleted 2 records" in run("clear", "--yes")
    assert JsonRecordStore(data_path).get_records() == []
    out = run("stats")
    assert "总次数: 0" in out
    assert "平均时长(分): 0.0" in out


def test_stats(run):
    run("add", "--duration", "10", "--time", "1 hours ago")
    run("add", "--duration", "20", "--time", "2 hours ago")
    out = run("stats")
    assert "总次数: 2" in out
    assert "平均时长(分): 15.0" in out
    assert "最长时长(分): 20.0" in out


def test_calendar(run):
    run("add", "--duration", "200", "--time", "1 minutes ago")
    out = run("calendar", "--totals")
    assert "日历" in out
    assert "■" in out
    assert "200.0 minutes in window" in out


def test_doctor_reports_malformed_rows(run, data_path):
    data_path.write_text(json.dumps({"records": [{"id": "x"}]}), encoding="utf-8")
    out = run("doctor")
    assert "0 records" in out
    assert "1 malformed" in out


def test_add_rejects_bad_time(run):
    with pytest.raises(SystemExit):
        run("add", "--duration", "5", "--time", "sometime maybe")


def test_env_var_selects_data_file(tmp_path, monkeypatch, capsys):
    target = tmp_path / "env.json"
    monkeypatch.setenv("PULSELOG_DATA", str(target))
    main(["add", "--duration", "4", "--time", (datetime.now() - timedelta(minutes=5)).isoformat()])
    capsys.readouterr()
    assert len(JsonRecordStore(target).get_records()) == 1
