"""YAML/dict config loader for pii-shield.

Supports loading from a YAML file or a plain dict (for embedding
in a larger service config).

Example YAML:

    pii_shield:
      overlap_policy: keep_best    # "keep_best" or "reject"
      retain_values: false
      encoding: utf-8
      sessions:
        backend: sqlite            # "memory" or "sqlite"
        path: ~/.pii-shield/sessions.db
      storage:
        backend: filesystem        # "memory" or "filesystem"
        root: ~/.pii-shield/objects
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any

from .errors import ValidationError
from .pipeline import DocumentProcessor, PipelineConfig
from .rewriter import OverlapPolicy
from .store import FileObjectStore, MemoryObjectStore, SessionStore
from .store_sqlite import SqliteSessionStore

DEFAULT_HOME = Path.home() / ".pii-shield"
DEFAULT_DB = os.environ.get("PII_SHIELD_DB", str(DEFAULT_HOME / "sessions.db"))
DEFAULT_STORAGE = os.environ.get("PII_SHIELD_STORAGE", str(DEFAULT_HOME / "objects"))


def load_config(data: dict[str, Any] | None) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    data = data or {}
    # Support nested under "pii_shield" key or flat
    if "pii_shield" in data:
        data = data["pii_shield"] or {}

    sessions = data.get("sessions", {}) or {}
    storage = data.get("storage", {}) or {}

    try:
        overlap_policy = OverlapPolicy(data.get("overlap_policy", OverlapPolicy.KEEP_BEST.value))
    except ValueError as e:
        raise ValidationError(f"Unknown overlap_policy: {data.get('overlap_policy')!r}") from e

    cfg = {
        "overlap_policy": overlap_policy,
        "retain_values": bool(data.get("retain_values", False)),
        "encoding": data.get("encoding", "utf-8"),
        "sessions_backend": sessions.get("backend", "memory"),
        "sessions_path": sessions.get("path", DEFAULT_DB),
        "storage_backend": storage.get("backend", "memory"),
        "storage_root": storage.get("root", DEFAULT_STORAGE),
    }
    if cfg["sessions_backend"] not in ("memory", "sqlite"):
        raise ValidationError(f"Unknown sessions backend: {cfg['sessions_backend']!r}")
    if cfg["storage_backend"] not in ("memory", "filesystem"):
        raise ValidationError(f"Unknown storage backend: {cfg['storage_backend']!r}")
    return cfg


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    import yaml
    with open(path) as f:
        return load_config(yaml.safe_load(f))


def create_processor(config: dict[str, Any] | None = None) -> DocumentProcessor:
    """Create a fully wired processor from a config dict."""
    cfg = config if config is not None and "sessions_backend" in config else load_config(config)

    if cfg["sessions_backend"] == "sqlite":
        sessions = SqliteSessionStore(db_path=cfg["sessions_path"])
    else:
        sessions = SessionStore()

    if cfg["storage_backend"] == "filesystem":
        objects = FileObjectStore(cfg["storage_root"])
    else:
        objects = MemoryObjectStore()

    return DocumentProcessor(
        sessions=sessions,
        objects=objects,
        config=PipelineConfig(
            overlap_policy=cfg["overlap_policy"],
            retain_values=cfg["retain_values"],
            encoding=cfg["encoding"],
        ),
    )
