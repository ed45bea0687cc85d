from __future__ import annotations

import dataclasses
import datetime as dt
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .config import ProjectPaths, load_json, load_registries
from .history import scan_source_commits
from .merge import merge_contributors
from .models import CommitStat, RegistryConfig, SourceResult
from .output import ensure_dir, utc_timestamp, write_json, write_json_min
from .snapshot import HistoricalSnapshot, load_snapshot


@dataclasses.dataclass(frozen=True)
class ScanOptions:
    cutoff: str
    include_cutoff_day: bool = False
    jobs: int = 1
    git_timeout_s: int = 300


def absolutize_url(url: str, base_url: str) -> str:
    if url.startswith("http"):
        return url
    return f"{base_url}{url}"


def enrich_source(
    index: int,
    source: dict,
    *,
    config: RegistryConfig,
    repo_path: Path | None,
    snapshot: HistoricalSnapshot,
    options: ScanOptions,
) -> SourceResult:
    source_id = str(source.get("id", "") or "")
    historical = snapshot.records_for(source_id)
    current: list[CommitStat] = []
    if repo_path is not None:
        cutoff = options.cutoff if config.has_historical_commits else None
        current = scan_source_commits(
            repo_path,
            source_id,
            cutoff=cutoff,
            include_cutoff_day=options.include_cutoff_day,
            timeout_s=options.git_timeout_s,
        )
    authors = merge_contributors(historical, current)

    base_url = config.base_url
    enriched: dict[str, object] = dict(source)
    for key in ("downloadURL", "iconURL"):
        value = enriched.get(key)
        if isinstance(value, str):
            enriched[key] = absolutize_url(value, base_url)
    enriched["authors"] = [a.to_dict() for a in authors]
    return SourceResult(index=index, source_id=source_id, source=enriched, authors=authors)


def enrich_sources(
    sources: list[dict],
    *,
    config: RegistryConfig,
    repo_path: Path | None,
    snapshot: HistoricalSnapshot,
    options: ScanOptions,
) -> list[SourceResult]:
    """Enrich every source; results come back in upstream order whatever `options.jobs` is."""
    results: list[SourceResult] = []
    kwargs = {"config": config, "repo_path": repo_path, "snapshot": snapshot, "options": options}
    if options.jobs <= 1 or len(sources) <= 1:
        for i, src in enumerate(sources):
            results.append(enrich_source(i, src, **kwargs))
        return results

    with ThreadPoolExecutor(max_workers=options.jobs) as ex:
        futs = [ex.submit(enrich_source, i, src, **kwargs) for i, src in enumerate(sources)]
        for fut in futs:
            results.append(fut.result())
    results.sort(key=lambda r: r.index)
    return results


def process_registry(
    config: RegistryConfig,
    *,
    paths: ProjectPaths,
    snapshot: HistoricalSnapshot,
    options: ScanOptions,
    now: dt.datetime | None = None,
) -> Path | None:
    out_dir = paths.registry_dir(config.id)
    upstream_path = out_dir / "upstream.json"
    output_path = out_dir / "index.json"
    min_output_path = out_dir / "index.min.json"

    if not upstream_path.exists():
        print(f"Upstream not found: {upstream_path}", file=sys.stderr)
        return None

    upstream = load_json(upstream_path)
    if not isinstance(upstream, dict) or not isinstance(upstream.get("sources"), list):
        print(f"Upstream has no `sources` list: {upstream_path}", file=sys.stderr)
        return None
    sources = [s for s in upstream["sources"] if isinstance(s, dict)]

    repo_path = paths.repo_path(config)
    repo_exists = repo_path.exists()

    print(f"\nProcessing {config.name} ({len(sources)} sources)...")
    if not repo_exists:
        print("  (repo not cloned, using historical data only)")

    results = enrich_sources(
        sources,
        config=config,
        repo_path=repo_path if repo_exists else None,
        snapshot=snapshot if config.has_historical_commits else HistoricalSnapshot(),
        options=options,
    )

    for r in results:
        authors_info = f" ({len(r.authors)} authors)" if r.authors else ""
        print(f"  ✓ {r.source_id}{authors_info}")

    enriched = {
        "name": config.name,
        "generated": utc_timestamp(now),
        "upstream": config.base_url,
        "sources": [r.source for r in results],
    }
    ensure_dir(out_dir)
    write_json(output_path, enriched)
    write_json_min(min_output_path, enriched)

    with_authors = sum(1 for r in results if r.authors)
    print(f"  → {output_path} ({with_authors}/{len(results)} with authors)")
    return output_path


def run_postprocess(paths: ProjectPaths, *, options: ScanOptions) -> int:
    configs = load_registries(paths.registries_path)

    # Loaded once and shared read-only by every entry of every registry that uses it.
    snapshot = HistoricalSnapshot()
    if any(c.has_historical_commits for c in configs):
        snapshot = load_snapshot(paths.historical_commits_path)

    for config in configs:
        process_registry(config, paths=paths, snapshot=snapshot, options=options)

    print("\nDone")
    return 0
