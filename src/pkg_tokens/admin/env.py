from __future__ import annotations

import os

from ..domain.constants import (
    DEFAULT_AUDIENCE,
    DEFAULT_BULK_REVOKE_LIMIT,
    DEFAULT_CAS_MAX_ATTEMPTS,
    DEFAULT_ISSUER,
    DEFAULT_KEY_ID,
    DEFAULT_MAX_EXPIRATION_MINUTES,
)
from .settings import TokenServiceSettings


def settings_from_env() -> TokenServiceSettings:
    def _bool(key: str, default: bool = False) -> bool:
        raw = os.getenv(key)
        if raw is None:
            return default
        return str(raw).strip().lower() in {"1", "true", "yes", "on"}

    def _int(key: str, default: int) -> int:
        raw = os.getenv(key)
        if raw is None or not raw.strip():
            return default
        try:
            return int(raw)
        except ValueError as exc:
            raise RuntimeError(f"{key} must be an integer, got {raw!r}") from exc

    def _list(key: str) -> tuple[str, ...]:
        raw = os.getenv(key) or ""
        return tuple(item.strip() for item in raw.split(",") if item.strip())

    secret_key = os.getenv("TOKENS_SECRET_KEY")
    store_backend = (os.getenv("TOKENS_STORE_BACKEND") or "memory").strip().lower()
    sqlite_path = os.getenv("TOKENS_SQLITE_PATH")

    required = [("TOKENS_SECRET_KEY", secret_key)]
    if store_backend == "sqlite":
        required.append(("TOKENS_SQLITE_PATH", sqlite_path))
    missing = [n for n, v in required if not v]
    if missing:
        raise RuntimeError(f"Missing token service settings: {', '.join(missing)}")

    return TokenServiceSettings(
        secret_key=secret_key,
        issuer=os.getenv("TOKENS_ISSUER") or DEFAULT_ISSUER,
        key_id=os.getenv("TOKENS_KEY_ID") or DEFAULT_KEY_ID,
        max_expiration_minutes=_int("TOKENS_MAX_EXPIRATION_MINUTES", DEFAULT_MAX_EXPIRATION_MINUTES),
        bulk_revoke_limit=_int("TOKENS_BULK_REVOKE_LIMIT", DEFAULT_BULK_REVOKE_LIMIT),
        verbose_auth_errors=_bool("TOKENS_VERBOSE_AUTH_ERRORS", False),
        # an empty value disables the default audience
        default_audience=os.getenv("TOKENS_DEFAULT_AUDIENCE", DEFAULT_AUDIENCE).strip() or None,
        allowed_audiences=_list("TOKENS_ALLOWED_AUDIENCES"),
        store_backend=store_backend,
        sqlite_path=sqlite_path,
        cas_max_attempts=_int("TOKENS_CAS_MAX_ATTEMPTS", DEFAULT_CAS_MAX_ATTEMPTS),
    )
