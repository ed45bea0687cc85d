from __future__ import annotations

import datetime as dt
import html
import json
import os
import sys
from pathlib import Path
from typing import Mapping

from .config import ProjectPaths
from .output import ensure_dir, utc_timestamp, write_json

TEST_TYPES: tuple[str, ...] = ("home", "listings", "search", "details", "chapters", "pages", "image")

REPORT_TITLE = "Sources - Test Report"


def load_chunk_sources(cache_dir: Path) -> list[dict]:
    """Concatenate `sources` from every chunk file, sorted by source id. Bad files are skipped."""
    sources: list[dict] = []
    if not cache_dir.exists():
        return sources
    for path in sorted(cache_dir.glob("*.json")):
        try:
            chunk = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            print(f"Error reading {path.name}: {e}", file=sys.stderr)
            continue
        items = chunk.get("sources") if isinstance(chunk, dict) else None
        if not isinstance(items, list):
            print(f"Error reading {path.name}: no `sources` list", file=sys.stderr)
            continue
        sources.extend(s for s in items if isinstance(s, dict))
    sources.sort(key=lambda s: str(s.get("id", "")))
    return sources


def _test_status(src: dict) -> str | None:
    test = src.get("test")
    if not isinstance(test, dict):
        return None
    return str(test.get("status", "") or "")


def summarize(sources: list[dict]) -> dict[str, int]:
    statuses = [_test_status(s) for s in sources]
    return {
        "total": len(sources),
        "tested": sum(1 for st in statuses if st is not None),
        "passed": sum(1 for st in statuses if st == "pass"),
        "failed": sum(1 for st in statuses if st is not None and st not in ("pass", "skipped")),
    }


def fmt_duration(start: dt.datetime, end: dt.datetime) -> str:
    ms = max(0, int((end - start).total_seconds() * 1000))
    return f"{ms // 60000}m {(ms % 60000) // 1000}s"


def parse_start_time(value: str | None, *, default: dt.datetime) -> dt.datetime:
    s = (value or "").strip()
    if not s:
        return default
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        d = dt.datetime.fromisoformat(s)
    except ValueError:
        return default
    if d.tzinfo is None:
        d = d.replace(tzinfo=dt.timezone.utc)
    return d


def build_report(sources: list[dict], *, environ: Mapping[str, str], now: dt.datetime | None = None) -> dict:
    end = now or dt.datetime.now(dt.timezone.utc)
    start = parse_start_time(environ.get("BUILD_START_TIME"), default=end)
    return {
        "timestamp": utc_timestamp(end),
        "commit": environ.get("GITHUB_SHA") or "local",
        "runId": environ.get("GITHUB_RUN_ID") or "local",
        "duration": fmt_duration(start, end),
        "summary": summarize(sources),
        "sources": sources,
    }


def result_for_test(src: dict, test_name: str) -> str:
    test = src.get("test") if isinstance(src.get("test"), dict) else {}
    for r in test.get("results") or []:
        if isinstance(r, dict) and r.get("test") == test_name:
            return "pass" if r.get("passed") else "fail"
    return "skip"


def status_class(status: str) -> str:
    if status in ("pass", "success"):
        return "success"
    if status in ("fail", "failed"):
        return "failed"
    if status == "error":
        return "error"
    return "skipped"


_ICONS = {
    "pass": '<span class="success">✅</span>',
    "fail": '<span class="failed">❌</span>',
    "skip": '<span class="skipped">—</span>',
}

_CSS = """
:root { --bg: #0d1117; --bg2: #161b22; --text: #c9d1d9; --muted: #8b949e; --border: #30363d;
        --success: #3fb950; --failed: #f85149; --warning: #d29922; --skipped: #8b949e; }
* { box-sizing: border-box; }
body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Helvetica, Arial, sans-serif;
       background: var(--bg); color: var(--text); margin: 0; padding: 2rem; line-height: 1.5; }
.container { max-width: 1400px; margin: 0 auto; }
h1 { margin: 0 0 0.5rem; font-size: 1.75rem; }
.meta { color: var(--muted); margin-bottom: 2rem; font-size: 0.9rem; }
.summary { display: grid; grid-template-columns: repeat(auto-fit, minmax(120px, 1fr)); gap: 1rem; margin-bottom: 2rem; }
.stat { background: var(--bg2); border: 1px solid var(--border); border-radius: 8px; padding: 1rem; text-align: center; }
.stat-value { font-size: 2rem; font-weight: bold; }
.stat-label { color: var(--muted); font-size: 0.85rem; }
.stat.success .stat-value { color: var(--success); }
.stat.failed .stat-value { color: var(--failed); }
.filters { margin-bottom: 1rem; display: flex; gap: 0.5rem; flex-wrap: wrap; }
.filter-btn { background: var(--bg2); border: 1px solid var(--border); color: var(--text);
              padding: 0.5rem 1rem; border-radius: 6px; cursor: pointer; }
.filter-btn.active { border-color: var(--success); }
table { width: 100%; border-collapse: collapse; background: var(--bg2); font-size: 0.9rem; }
th, td { padding: 0.5rem 0.75rem; text-align: center; border-bottom: 1px solid var(--border); }
td:first-child, td:nth-child(2), th:first-child, th:nth-child(2) { text-align: left; }
.success { color: var(--success); } .failed { color: var(--failed); }
.error { color: var(--warning); } .skipped { color: var(--skipped); }
.error-details pre { background: var(--bg); padding: 0.75rem; border-radius: 6px; font-size: 0.75rem;
                     max-height: 200px; overflow: auto; text-align: left; }
.hidden { display: none; }
""".strip()

_SCRIPT = """
document.querySelectorAll('.filter-btn').forEach(btn => {
  btn.addEventListener('click', () => {
    document.querySelectorAll('.filter-btn').forEach(b => b.classList.remove('active'));
    btn.classList.add('active');
    const filter = btn.dataset.filter;
    document.querySelectorAll('#sources tr').forEach(row => {
      row.classList.toggle('hidden', filter !== 'all' && !row.classList.contains(filter));
    });
  });
});
""".strip()


def _source_row(src: dict) -> str:
    esc = html.escape
    test = src.get("test") if isinstance(src.get("test"), dict) else {}
    status = str(test.get("status", "") or "skipped")
    cells = "".join(f"<td>{_ICONS[result_for_test(src, t)]}</td>" for t in TEST_TYPES)

    duration_ms = test.get("durationMs")
    duration = f"{float(duration_ms) / 1000:.1f}s" if duration_ms else "-"

    failed = [r for r in (test.get("results") or []) if isinstance(r, dict) and not r.get("passed")]
    errors = ""
    if failed:
        detail = "\n".join(f"{esc(str(r.get('test', '')))}: {esc(str(r.get('error') or 'unknown error'))}" for r in failed)
        errors = f'<details class="error-details"><summary>{len(failed)} failed</summary><pre>{detail}</pre></details>'

    return (
        f'<tr class="{status_class(status)}">'
        f"<td><code>{esc(str(src.get('id', '')))}</code></td>"
        f"<td>{esc(str(src.get('name', '')))}</td>"
        f"{cells}<td>{duration}</td><td>{errors}</td></tr>"
    )


def render_html(report: dict) -> str:
    esc = html.escape
    summary = report["summary"]
    headers = "".join(f'<th title="{t}">{t[:4]}</th>' for t in TEST_TYPES)
    rows = "\n".join(_source_row(s) for s in report["sources"])

    lines: list[str] = []
    lines.append("<!DOCTYPE html>")
    lines.append('<html lang="en">')
    lines.append("<head>")
    lines.append('<meta charset="UTF-8">')
    lines.append('<meta name="viewport" content="width=device-width, initial-scale=1.0">')
    lines.append(f"<title>{REPORT_TITLE}</title>")
    lines.append(f"<style>\n{_CSS}\n</style>")
    lines.append("</head>")
    lines.append("<body>")
    lines.append('<div class="container">')
    lines.append(f"<h1>🧪 {REPORT_TITLE}</h1>")
    lines.append(
        '<div class="meta">'
        f"<span>Commit: <code>{esc(str(report['commit'])[:7])}</code></span> · "
        f"<span>Run: <code>#{esc(str(report['runId']))}</code></span> · "
        f"<span>Duration: <strong>{esc(str(report['duration']))}</strong></span> · "
        f"<span>{esc(str(report['timestamp']))}</span>"
        "</div>"
    )
    lines.append('<div class="summary">')
    for label, key, cls in (("Total", "total", ""), ("Tested", "tested", ""), ("Passed", "passed", " success"), ("Failed", "failed", " failed")):
        lines.append(f'<div class="stat{cls}"><div class="stat-value">{summary[key]}</div><div class="stat-label">{label}</div></div>')
    lines.append("</div>")
    lines.append('<div class="filters">')
    lines.append(f'<button class="filter-btn active" data-filter="all">All ({summary["total"]})</button>')
    lines.append(f'<button class="filter-btn" data-filter="success">Passed ({summary["passed"]})</button>')
    lines.append(f'<button class="filter-btn" data-filter="failed">Failed ({summary["failed"]})</button>')
    lines.append("</div>")
    lines.append("<table>")
    lines.append(f"<thead><tr><th>Source ID</th><th>Name</th>{headers}<th>Time</th><th>Errors</th></tr></thead>")
    lines.append(f'<tbody id="sources">\n{rows}\n</tbody>')
    lines.append("</table>")
    lines.append("</div>")
    lines.append(f"<script>\n{_SCRIPT}\n</script>")
    lines.append("</body>")
    lines.append("</html>")
    return "\n".join(lines) + "\n"


def run_build_report(paths: ProjectPaths, *, environ: Mapping[str, str] | None = None, now: dt.datetime | None = None) -> int:
    env = os.environ if environ is None else environ
    sources = load_chunk_sources(paths.build_results_dir)
    report = build_report(sources, environ=env, now=now)

    ensure_dir(paths.dist_dir)
    write_json(paths.dist_dir / "build-report.json", report)
    (paths.dist_dir / "build-report.html").write_text(render_html(report), encoding="utf-8")

    summary = report["summary"]
    print("Build report generated:")
    print(f"  Total: {summary['total']}")
    print(f"  Tested: {summary['tested']}")
    print(f"  Passed: {summary['passed']} ✓")
    print(f"  Failed: {summary['failed']} ✗")
    return 0
