"""
pkg_tokens.admin

Operator-side configuration and tooling:

- TokenServiceSettings: signing, storage and policy settings.
- settings_from_env: builds settings from TOKENS_* environment variables.
- `pkg-tokens-admin` (admin.cli): issue, list, revoke and sweep tokens
  directly against the configured store.
"""

from __future__ import annotations

from .env import settings_from_env
from .settings import TokenServiceSettings

__all__ = [
    "TokenServiceSettings",
    "settings_from_env",
]
