from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

DEFAULT_CONFIG_PATHS: Tuple[Path, ...] = (
    Path("config/cowrite.yaml"),
    Path("cowrite.yaml"),
)
ENV_PREFIX = "COWRITE_"


@dataclass(frozen=True)
class Settings:
    data_dir: Path = Path("./data/documents")
    accounts_path: Path = Path("./data/accounts.json")
    jwt_secret: str = "cowrite-development-secret-change-me-please"
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = 3600
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"]
    )
    log_level: str = "INFO"
    log_dir: Optional[Path] = None
    title_debounce: float = 1.5
    content_debounce: float = 2.0
    host: str = "127.0.0.1"
    port: int = 5000


_CACHE: Settings | None = None
_CACHE_SIGNATURE: tuple[str, float] | None = None


def _config_path() -> Optional[Path]:
    override = os.getenv(f"{ENV_PREFIX}CONFIG")
    if override:
        return Path(override).expanduser()
    for candidate in DEFAULT_CONFIG_PATHS:
        if candidate.exists():
            return candidate
    return None


def _signature(path: Optional[Path]) -> tuple[str, float]:
    if path is None:
        return ("", 0.0)
    try:
        return (str(path), path.stat().st_mtime)
    except FileNotFoundError:
        return (str(path), 0.0)


def _read_file(path: Optional[Path]) -> Dict[str, Any]:
    if path is None or not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def _coerce(name: str, value: Any, default: Any) -> Any:
    if name == "cors_origins":
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return [str(item) for item in value or []]
    if name in {"data_dir", "accounts_path", "log_dir"}:
        return Path(str(value)).expanduser() if value not in (None, "") else None
    if isinstance(default, bool):
        return str(value).strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return str(value)


def build_settings(
    overrides: Optional[Dict[str, Any]] = None, *, path: Optional[Path] = None
) -> Settings:
    """Merge defaults, the YAML file, ``COWRITE_*`` env vars and ``overrides``."""
    base = Settings()
    values: Dict[str, Any] = {}
    raw = _read_file(path if path is not None else _config_path())
    for item in fields(Settings):
        default = getattr(base, item.name)
        if item.name in raw:
            values[item.name] = _coerce(item.name, raw[item.name], default)
        env_value = os.getenv(f"{ENV_PREFIX}{item.name.upper()}")
        if env_value is not None:
            values[item.name] = _coerce(item.name, env_value, default)
        if overrides and item.name in overrides:
            values[item.name] = _coerce(item.name, overrides[item.name], default)
    for required in ("data_dir", "accounts_path"):
        if values.get(required, "") is None:
            values.pop(required)
    return replace(base, **values)


def load_settings(*, refresh: bool = False) -> Settings:
    global _CACHE, _CACHE_SIGNATURE
    path = _config_path()
    signature = _signature(path)
    if not refresh and _CACHE is not None and signature == _CACHE_SIGNATURE:
        return _CACHE
    _CACHE = build_settings(path=path)
    _CACHE_SIGNATURE = signature
    return _CACHE


def refresh_cache() -> Settings:
    return load_settings(refresh=True)


__all__ = [
    "Settings",
    "build_settings",
    "load_settings",
    "refresh_cache",
    "ENV_PREFIX",
]
