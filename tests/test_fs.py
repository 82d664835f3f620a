from __future__ import annotations

from pathlib import Path

from refwatch.fs import append_jsonl, expand_path, read_jsonl, utcnow_iso


def test_jsonl_append_creates_parents(tmp_path: Path):
    p = tmp_path / "nested" / "events.jsonl"
    append_jsonl(p, {"b": 2, "a": 1})
    append_jsonl(p, {"c": [1, 2]})
    assert p.read_text(encoding="utf-8").splitlines()[0] == '{"a":1,"b":2}'
    assert read_jsonl(p) == [{"a": 1, "b": 2}, {"c": [1, 2]}]


def test_read_jsonl_skips_blank_lines(tmp_path: Path):
    p = tmp_path / "events.jsonl"
    p.write_text('{"a":1}\n\n   \n{"a":2}\n', encoding="utf-8")
    assert [r["a"] for r in read_jsonl(p)] == [1, 2]


def test_expand_path(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("MIRRORS", "/srv/mirrors")
    assert expand_path("~/x.git") == tmp_path / "x.git"
    assert expand_path("$MIRRORS/x.git") == Path("/srv/mirrors/x.git")


def test_utcnow_iso_format():
    ts = utcnow_iso()
    assert ts.endswith("Z")
    assert len(ts) == len("2024-01-01T00:00:00Z")
