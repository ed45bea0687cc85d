from __future__ import annotations

import dataclasses


@dataclasses.dataclass(frozen=True)
class CommitStat:
    email: str
    name: str
    commits: int = 0
    first_commit: str = ""  # YYYY-MM-DD

    @classmethod
    def from_dict(cls, data: dict) -> "CommitStat":
        return cls(
            email=str(data.get("email", "") or ""),
            name=str(data.get("name", "") or ""),
            commits=int(data.get("commits", 0) or 0),
            first_commit=str(data.get("firstCommit", "") or ""),
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "email": self.email,
            "name": self.name,
            "commits": self.commits,
            "firstCommit": self.first_commit,
        }


@dataclasses.dataclass(frozen=True)
class ResolvedAuthor:
    github: str | None
    name: str
    commits: int
    first_commit: str

    def to_dict(self) -> dict[str, object]:
        return {
            "github": self.github,
            "name": self.name,
            "commits": self.commits,
            "firstCommit": self.first_commit,
        }


@dataclasses.dataclass(frozen=True)
class RegistryConfig:
    id: str
    name: str
    url: str
    repo: str
    has_historical_commits: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "RegistryConfig":
        return cls(
            id=str(data.get("id", "") or ""),
            name=str(data.get("name", "") or ""),
            url=str(data.get("url", "") or ""),
            repo=str(data.get("repo", "") or ""),
            has_historical_commits=bool(data.get("hasHistoricalCommits", False)),
        )

    @property
    def base_url(self) -> str:
        """Registry URL with its last path segment dropped, e.g. https://host/a/index.min.json -> https://host/a/"""
        u = self.url
        if "/" not in u:
            return u
        head, _, tail = u.rpartition("/")
        if not tail:
            return u
        return head + "/"

    @property
    def repo_slug(self) -> str:
        parts = [p for p in self.repo.rstrip("/").split("/") if p]
        slug = "/".join(parts[-2:])
        if slug.endswith(".git"):
            slug = slug[:-4]
        return slug


@dataclasses.dataclass
class SourceResult:
    """Outcome of enriching one registry entry; `source` is the rewritten upstream object."""

    index: int
    source_id: str
    source: dict[str, object]
    authors: list[ResolvedAuthor]
