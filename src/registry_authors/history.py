from __future__ import annotations

import datetime as dt
import subprocess
from pathlib import Path

from .git import GitError, log_path_commits
from .models import CommitStat

# Tried in order; the first one that exists in the checkout wins.
SOURCE_DIR_PATTERNS: tuple[str, ...] = (
    "sources/{source_id}",
    "src/{source_id}",
    "{source_id}",
)


def find_source_dir(repo: Path, source_id: str) -> str | None:
    if not source_id:
        return None
    for pattern in SOURCE_DIR_PATTERNS:
        rel = pattern.format(source_id=source_id)
        if (repo / rel).exists():
            return rel
    return None


def date_only(commit_iso: str) -> str | None:
    s = (commit_iso or "").strip().split("T", 1)[0]
    if len(s) != 10:
        return None
    try:
        dt.date.fromisoformat(s)
    except ValueError:
        return None
    return s


def parse_log_line(line: str) -> tuple[str, str, str] | None:
    """Split an `email|name|iso-date` line; names may themselves contain `|`."""
    if line.count("|") < 2:
        return None
    email, rest = line.split("|", 1)
    name, commit_iso = rest.rsplit("|", 1)
    email = email.strip()
    name = name.strip()
    day = date_only(commit_iso)
    if not email or not name or day is None:
        return None
    return email, name, day


def after_cutoff(day: str, cutoff: str | None, *, include_cutoff_day: bool = False) -> bool:
    if not cutoff:
        return True
    if include_cutoff_day:
        return day >= cutoff
    return day > cutoff


def git_since(cutoff: str | None) -> str | None:
    # One day of slack: git compares UTC instants, the cutoff compares the author's local date.
    if not cutoff:
        return None
    try:
        day = dt.date.fromisoformat(cutoff)
    except ValueError:
        return None
    return f"{(day - dt.timedelta(days=1)).isoformat()}T00:00:00Z"


def aggregate_commits(
    lines: list[str],
    *,
    cutoff: str | None = None,
    include_cutoff_day: bool = False,
) -> list[CommitStat]:
    """
    Fold newest-first log lines into one CommitStat per email.

    Lines are replayed oldest to newest, so the stored name is the one used on the
    author's most recent commit. Malformed lines are skipped.
    """
    by_email: dict[str, dict[str, object]] = {}
    for line in reversed(lines):
        parsed = parse_log_line(line)
        if parsed is None:
            continue
        email, name, day = parsed
        if not after_cutoff(day, cutoff, include_cutoff_day=include_cutoff_day):
            continue

        existing = by_email.get(email)
        if existing is None:
            by_email[email] = {"name": name, "commits": 1, "first_commit": day}
            continue
        existing["commits"] = int(existing["commits"]) + 1
        existing["name"] = name
        if day < str(existing["first_commit"]):
            existing["first_commit"] = day

    return [
        CommitStat(
            email=email,
            name=str(st["name"]),
            commits=int(st["commits"]),
            first_commit=str(st["first_commit"]),
        )
        for email, st in by_email.items()
    ]


def scan_source_commits(
    repo: Path,
    source_id: str,
    *,
    cutoff: str | None = None,
    include_cutoff_day: bool = False,
    timeout_s: int = 300,
) -> list[CommitStat]:
    """
    Per-email commit stats for one registry entry's directory in `repo`.

    A missing checkout or directory, a failing git invocation and undecodable output
    all yield an empty list; the entry then relies on historical data alone.
    """
    rel_path = find_source_dir(repo, source_id)
    if rel_path is None:
        return []

    since = git_since(cutoff)
    try:
        lines = log_path_commits(repo, rel_path, since=since, timeout_s=timeout_s)
    except (GitError, OSError, subprocess.SubprocessError, ValueError):
        return []
    return aggregate_commits(lines, cutoff=cutoff, include_cutoff_day=include_cutoff_day)
