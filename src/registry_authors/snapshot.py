from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from .models import CommitStat


@dataclasses.dataclass(frozen=True)
class HistoricalSnapshot:
    """
    Precomputed per-source commit stats, loaded once per run and shared read-only.

    Records in the snapshot predate the cutoff used for live scanning, so the two
    sources never overlap in time.
    """

    sources: Mapping[str, tuple[CommitStat, ...]] = dataclasses.field(
        default_factory=lambda: MappingProxyType({})
    )

    def records_for(self, source_id: str) -> list[CommitStat]:
        return list(self.sources.get(source_id, ()))


def _parse_records(raw: object) -> tuple[CommitStat, ...]:
    if not isinstance(raw, list):
        return ()
    out: list[CommitStat] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            out.append(CommitStat.from_dict(item))
        except (TypeError, ValueError):
            continue
    return tuple(out)


def load_snapshot(path: Path) -> HistoricalSnapshot:
    """
    Load `{"sources": {<source id>: [{email, name, commits, firstCommit}, ...]}}`.

    A missing file is an empty snapshot. A file that exists but cannot be parsed is
    corrupted input every entry depends on, so it raises RuntimeError.
    """
    if not path.exists():
        return HistoricalSnapshot()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise RuntimeError(f"historical snapshot is unreadable: {path}: {e}") from e

    if not isinstance(data, dict):
        raise RuntimeError(f"historical snapshot must be a JSON object: {path}")
    sources = data.get("sources", {})
    if not isinstance(sources, dict):
        raise RuntimeError(f"historical snapshot `sources` must be an object: {path}")

    parsed = {str(source_id): _parse_records(records) for source_id, records in sources.items()}
    return HistoricalSnapshot(sources=MappingProxyType(parsed))
