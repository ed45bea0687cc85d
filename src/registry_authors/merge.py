from __future__ import annotations

import dataclasses
import datetime as dt
from typing import Iterable

from .identity import github_username_from_email, identity_key
from .models import CommitStat, ResolvedAuthor


def is_valid_stat(c: CommitStat) -> bool:
    if not c.email.strip() or not c.name.strip():
        return False
    if c.commits < 0 or len(c.first_commit) != 10:
        return False
    try:
        dt.date.fromisoformat(c.first_commit)
    except (TypeError, ValueError):
        return False
    return True


def merge_by_email(historical: Iterable[CommitStat], current: Iterable[CommitStat]) -> list[CommitStat]:
    """
    Pass 1: fold both sources into one record per exact email.

    Commit counts add up and the earliest date wins. The name stays whatever the
    first record seen for that email carried (historical records come first), and
    is only filled in when that one is empty. Malformed current-run records are
    dropped; historical records are always kept so their commits are counted.
    """
    by_email: dict[str, CommitStat] = {}
    for c in [*historical, *(c for c in current if is_valid_stat(c))]:
        existing = by_email.get(c.email)
        if existing is None:
            by_email[c.email] = c
            continue
        by_email[c.email] = dataclasses.replace(
            existing,
            name=existing.name or c.name,
            commits=existing.commits + c.commits,
            first_commit=min(existing.first_commit, c.first_commit),
        )
    return list(by_email.values())


@dataclasses.dataclass
class _IdentityAcc:
    github: str | None
    name: str
    commits: int
    first_commit: str

    def add(self, c: CommitStat, github: str | None) -> None:
        self.commits += c.commits
        # Strictly earlier only: on a date tie the first record in merged order keeps the name.
        if c.first_commit < self.first_commit:
            self.first_commit = c.first_commit
            self.name = c.name or self.name
        elif not self.name:
            self.name = c.name
        if github and not self.github:
            self.github = github


def resolve_identities(records: Iterable[CommitStat]) -> list[ResolvedAuthor]:
    """
    Pass 2: group per-email records by identity key (noreply username, else email,
    both lower-cased) and sort the result by first commit date.
    """
    by_identity: dict[str, _IdentityAcc] = {}
    for c in records:
        github = github_username_from_email(c.email)
        key = identity_key(c.email)
        acc = by_identity.get(key)
        if acc is None:
            by_identity[key] = _IdentityAcc(github=github, name=c.name, commits=c.commits, first_commit=c.first_commit)
            continue
        acc.add(c, github)

    authors = [
        ResolvedAuthor(github=a.github, name=a.name, commits=a.commits, first_commit=a.first_commit)
        for a in by_identity.values()
    ]
    # ISO dates sort correctly as plain strings; sorted() is stable for equal dates.
    return sorted(authors, key=lambda a: a.first_commit)


def merge_contributors(historical: Iterable[CommitStat], current: Iterable[CommitStat]) -> list[ResolvedAuthor]:
    return resolve_identities(merge_by_email(historical, current))
