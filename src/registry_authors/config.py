from __future__ import annotations

import dataclasses
import json
import os
from pathlib import Path
from typing import Mapping

from .models import RegistryConfig

# Commits up to this day are covered by data/historical-commits.json.
DEFAULT_HISTORICAL_CUTOFF = "2025-06-12"


@dataclasses.dataclass(frozen=True)
class ProjectPaths:
    root: Path
    repos_dir: Path

    @property
    def registries_path(self) -> Path:
        return self.root / "data" / "registries.json"

    @property
    def historical_commits_path(self) -> Path:
        return self.root / "data" / "historical-commits.json"

    @property
    def dist_dir(self) -> Path:
        return self.root / "dist"

    @property
    def build_results_dir(self) -> Path:
        return self.root / ".cache" / "build-results"

    def registry_dir(self, registry_id: str) -> Path:
        return self.dist_dir / registry_id

    def repo_path(self, config: RegistryConfig) -> Path:
        return self.repos_dir / config.repo_slug


def project_paths(root: Path, *, repos_dir: Path | None = None, environ: Mapping[str, str] | None = None) -> ProjectPaths:
    env = os.environ if environ is None else environ
    root = root.resolve()
    if repos_dir is None:
        from_env = str(env.get("REPOS_DIR", "") or "").strip()
        repos_dir = Path(from_env) if from_env else root / "repos"
    return ProjectPaths(root=root, repos_dir=repos_dir.resolve())


def load_json(path: Path) -> object:
    return json.loads(path.read_text(encoding="utf-8"))


def load_registries(path: Path) -> list[RegistryConfig]:
    if not path.exists():
        raise RuntimeError(f"registries config not found: {path}")
    try:
        data = load_json(path)
    except ValueError as e:
        raise RuntimeError(f"registries config is not valid JSON: {path}: {e}") from e
    if not isinstance(data, list):
        raise RuntimeError(f"registries config must be a JSON list: {path}")

    configs: list[RegistryConfig] = []
    for item in data:
        if not isinstance(item, dict):
            raise RuntimeError(f"registries config entries must be objects: {path}")
        cfg = RegistryConfig.from_dict(item)
        if not cfg.id:
            raise RuntimeError(f"registry entry without `id` in {path}")
        configs.append(cfg)
    return configs
