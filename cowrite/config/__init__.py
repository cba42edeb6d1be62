from __future__ import annotations

from .settings import Settings, build_settings, load_settings, refresh_cache

__all__ = ["Settings", "build_settings", "load_settings", "refresh_cache"]
