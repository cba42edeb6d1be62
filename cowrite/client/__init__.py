from __future__ import annotations

from .api import DocumentApi
from .session import AuthSession

__all__ = ["AuthSession", "DocumentApi"]
