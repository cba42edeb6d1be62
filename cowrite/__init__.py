"""cowrite package namespace."""

from __future__ import annotations

__version__ = "0.3.0"

__all__: list[str] = ["__version__"]
