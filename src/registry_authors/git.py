from __future__ import annotations

import subprocess
from pathlib import Path

LOG_FORMAT = "%ae|%an|%aI"


class GitError(RuntimeError):
    pass


def run_git(args: list[str], cwd: Path, timeout_s: int = 300) -> tuple[int, str, str]:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        encoding="utf-8",
        timeout=timeout_s,
    )
    return proc.returncode, proc.stdout, proc.stderr


def log_path_commits(repo: Path, rel_path: str, *, since: str | None = None, timeout_s: int = 300) -> list[str]:
    """
    Return `email|name|iso-date` lines for commits touching `rel_path`, newest first.

    `since` is passed to git as a coarse prefilter only; exact date filtering is the
    caller's job.
    """
    args = ["log", f"--format={LOG_FORMAT}"]
    if since:
        args.append(f"--since={since}")
    args += ["--", rel_path]
    code, out, err = run_git(args, cwd=repo, timeout_s=timeout_s)
    if code != 0:
        raise GitError(f"git log failed in {repo} (exit {code}): {err.strip()[:500]}")
    return [line for line in out.splitlines() if line.strip()]
