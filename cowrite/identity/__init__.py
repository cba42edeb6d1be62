from __future__ import annotations

from .accounts import Account, AccountRegistry
from .tokens import TokenVerifier, bearer_token

__all__ = ["Account", "AccountRegistry", "TokenVerifier", "bearer_token"]
