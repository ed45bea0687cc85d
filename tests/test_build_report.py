from __future__ import annotations

import datetime as dt
import json
from pathlib import Path

from registry_authors.build_report import (
    build_report,
    fmt_duration,
    load_chunk_sources,
    render_html,
    result_for_test,
    run_build_report,
    summarize,
)
from registry_authors.config import project_paths


def _src(sid: str, status: str | None, results: list[dict] | None = None, duration_ms: int | None = None) -> dict:
    src: dict = {"id": sid, "name": sid.upper()}
    if status is not None:
        test: dict = {"status": status, "results": results or []}
        if duration_ms is not None:
            test["durationMs"] = duration_ms
        src["test"] = test
    return src


def test_summarize_counts() -> None:
    sources = [
        _src("a", "pass"),
        _src("b", "fail"),
        _src("c", "error"),
        _src("d", "skipped"),
        _src("e", None),
    ]
    assert summarize(sources) == {"total": 5, "tested": 4, "passed": 1, "failed": 2}


def test_fmt_duration() -> None:
    start = dt.datetime(2026, 1, 1, 0, 0, 0, tzinfo=dt.timezone.utc)
    assert fmt_duration(start, start) == "0m 0s"
    assert fmt_duration(start, start + dt.timedelta(minutes=3, seconds=7, milliseconds=900)) == "3m 7s"
    assert fmt_duration(start, start - dt.timedelta(seconds=5)) == "0m 0s"


def test_result_for_test() -> None:
    src = _src("a", "fail", [{"test": "home", "passed": True}, {"test": "search", "passed": False, "error": "boom"}])
    assert result_for_test(src, "home") == "pass"
    assert result_for_test(src, "search") == "fail"
    assert result_for_test(src, "pages") == "skip"
    assert result_for_test(_src("b", None), "home") == "skip"


def test_load_chunk_sources_sorts_and_skips_bad_files(tmp_path: Path, capsys) -> None:
    (tmp_path / "chunk-1.json").write_text(json.dumps({"chunk": 1, "sources": [_src("zz", "pass"), _src("bb", "fail")]}), encoding="utf-8")
    (tmp_path / "chunk-2.json").write_text(json.dumps({"chunk": 2, "sources": [_src("aa", None)]}), encoding="utf-8")
    (tmp_path / "chunk-3.json").write_text("{oops", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    sources = load_chunk_sources(tmp_path)

    assert [s["id"] for s in sources] == ["aa", "bb", "zz"]
    assert "chunk-3.json" in capsys.readouterr().err
    assert load_chunk_sources(tmp_path / "missing") == []


def test_build_report_uses_ci_environment() -> None:
    now = dt.datetime(2026, 3, 1, 12, 0, 0, tzinfo=dt.timezone.utc)
    report = build_report(
        [_src("a", "pass")],
        environ={"BUILD_START_TIME": "2026-03-01T11:58:30Z", "GITHUB_SHA": "abcdef123456", "GITHUB_RUN_ID": "42"},
        now=now,
    )
    assert report["timestamp"] == "2026-03-01T12:00:00.000Z"
    assert report["commit"] == "abcdef123456"
    assert report["runId"] == "42"
    assert report["duration"] == "1m 30s"
    assert report["summary"]["passed"] == 1

    local = build_report([], environ={}, now=now)
    assert (local["commit"], local["runId"], local["duration"]) == ("local", "local", "0m 0s")


def test_render_html_escapes_and_marks_rows() -> None:
    sources = [
        _src("en.<x>", "fail", [{"test": "home", "passed": False, "error": "<script>alert(1)</script>"}], duration_ms=2500),
        _src("en.ok", "pass", [{"test": "home", "passed": True}]),
    ]
    report = build_report(sources, environ={"GITHUB_SHA": "abcdef123456"})
    page = render_html(report)

    assert page.startswith("<!DOCTYPE html>")
    assert "<script>alert(1)</script>" not in page
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in page
    assert "en.&lt;x&gt;" in page
    assert '<tr class="failed">' in page
    assert '<tr class="success">' in page
    assert "2.5s" in page
    assert "1 failed" in page
    assert "<code>abcdef1</code>" in page


def test_run_build_report_writes_files(tmp_path: Path, capsys) -> None:
    paths = project_paths(tmp_path, environ={})
    paths.build_results_dir.mkdir(parents=True)
    (paths.build_results_dir / "0.json").write_text(json.dumps({"chunk": 0, "sources": [_src("a", "pass"), _src("b", "fail")]}), encoding="utf-8")

    assert run_build_report(paths, environ={}) == 0

    report = json.loads((paths.dist_dir / "build-report.json").read_text(encoding="utf-8"))
    assert report["summary"] == {"total": 2, "tested": 2, "passed": 1, "failed": 1}
    assert (paths.dist_dir / "build-report.html").exists()
    assert "Passed: 1" in capsys.readouterr().out
