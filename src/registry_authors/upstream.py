from __future__ import annotations

import json
import os
import ssl
import urllib.error
import urllib.request
from pathlib import Path

import certifi

from . import __version__
from .config import ProjectPaths, load_registries
from .models import RegistryConfig
from .output import ensure_dir, write_json


def fetch_registry(url: str, *, timeout_s: int = 30, ca_bundle_path: str = "") -> dict:
    """GET an upstream registry document and check it looks like one."""
    if not url.strip():
        raise ValueError("registry url is required")

    req = urllib.request.Request(
        url,
        method="GET",
        headers={
            "Accept": "application/json",
            "User-Agent": f"registry-authors/{__version__}",
        },
    )
    ctx = _ssl_context(ca_bundle_path=ca_bundle_path)
    try:
        with urllib.request.urlopen(req, timeout=timeout_s, context=ctx) as resp:
            code = int(getattr(resp, "status", 0) or 0)
            body = resp.read().decode("utf-8", errors="replace")
            if not (200 <= code < 300):
                raise RuntimeError(f"fetch failed: HTTP {code}: {body[:500]}")
    except urllib.error.HTTPError as e:
        payload = ""
        try:
            payload = e.read().decode("utf-8", errors="replace")
        except OSError:
            payload = ""
        raise RuntimeError(f"fetch failed: {url}: HTTP {e.code}: {payload[:500]}") from e
    except urllib.error.URLError as e:
        msg = f"fetch failed: {url}: {e}"
        if _is_cert_verify_error(e):
            msg = msg + "\n" + _cert_verify_hint(ca_bundle_path=ca_bundle_path)
        raise RuntimeError(msg) from e

    try:
        data = json.loads(body)
    except ValueError as e:
        raise RuntimeError(f"fetch failed: {url}: response is not JSON: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("sources"), list):
        raise RuntimeError(f"fetch failed: {url}: response has no `sources` list")
    return data


def fetch_upstream(config: RegistryConfig, *, paths: ProjectPaths, timeout_s: int = 30, ca_bundle_path: str = "") -> Path:
    registry = fetch_registry(config.url, timeout_s=timeout_s, ca_bundle_path=ca_bundle_path)
    out_dir = paths.registry_dir(config.id)
    ensure_dir(out_dir)
    out_path = out_dir / "upstream.json"
    write_json(out_path, registry)
    print(f"  → {out_path} ({len(registry['sources'])} sources)")
    return out_path


def run_fetch(paths: ProjectPaths, *, timeout_s: int = 30, ca_bundle_path: str = "") -> int:
    configs = load_registries(paths.registries_path)
    print(f"Fetching {len(configs)} registries...\n")
    for config in configs:
        print(f"Fetching {config.name}...")
        fetch_upstream(config, paths=paths, timeout_s=timeout_s, ca_bundle_path=ca_bundle_path)
    print("\nDone")
    return 0


# Checked after --ca-bundle, before the system store.
CA_BUNDLE_ENV_VARS: tuple[str, ...] = ("SSL_CERT_FILE", "REQUESTS_CA_BUNDLE")


def _ssl_context(*, ca_bundle_path: str) -> ssl.SSLContext:
    location = ca_bundle_location(ca_bundle_path)
    if location is None:
        return ssl.create_default_context()
    if location.is_dir():
        return ssl.create_default_context(capath=str(location))
    return ssl.create_default_context(cafile=str(location))


def ca_bundle_location(explicit: str = "") -> Path | None:
    """
    Where trusted CAs come from: `--ca-bundle`, then the env vars above, then the
    system store (None), then certifi when the system has no store at all.
    """
    for raw in (explicit, *(os.environ.get(k) for k in CA_BUNDLE_ENV_VARS)):
        if raw and raw.strip():
            return Path(raw.strip()).expanduser()
    defaults = ssl.get_default_verify_paths()
    if defaults.cafile and Path(defaults.cafile).exists():
        return None
    if defaults.capath and Path(defaults.capath).is_dir():
        return None
    return Path(certifi.where())


def _is_cert_verify_error(e: urllib.error.URLError) -> bool:
    return isinstance(e.reason, ssl.SSLCertVerificationError) or "CERTIFICATE_VERIFY_FAILED" in str(e)


def _cert_verify_hint(*, ca_bundle_path: str) -> str:
    if ca_bundle_path.strip():
        return f"  the registry's certificate is not signed by any CA in {ca_bundle_path}"
    return (
        "  the registry's certificate is not trusted by this machine; "
        "rerun `registry-authors fetch --ca-bundle <file-or-dir>` or set SSL_CERT_FILE"
    )
