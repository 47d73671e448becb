from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from ..domain.constants import (
    DEFAULT_AUDIENCE,
    DEFAULT_BULK_REVOKE_LIMIT,
    DEFAULT_CAS_MAX_ATTEMPTS,
    DEFAULT_ISSUER,
    DEFAULT_KEY_ID,
    DEFAULT_MAX_EXPIRATION_MINUTES,
    SIGNING_ALGORITHM,
)

MIN_SECRET_LENGTH = 32
STORE_BACKENDS = ("memory", "sqlite")


@dataclass(slots=True)
class TokenServiceSettings:
    """
    Signing, storage and policy settings for the token service.

    Host code decides how to construct this (env, config file, etc.).
    """
    secret_key: str
    issuer: str = DEFAULT_ISSUER
    key_id: str = DEFAULT_KEY_ID
    algorithm: str = SIGNING_ALGORITHM

    # Policy
    max_expiration_minutes: int = DEFAULT_MAX_EXPIRATION_MINUTES
    bulk_revoke_limit: int = DEFAULT_BULK_REVOKE_LIMIT
    verbose_auth_errors: bool = False

    # Audience
    default_audience: Optional[str] = DEFAULT_AUDIENCE
    allowed_audiences: Tuple[str, ...] = ()

    # Storage
    store_backend: str = "memory"
    sqlite_path: Optional[str] = None
    cas_max_attempts: int = DEFAULT_CAS_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        if not isinstance(self.secret_key, str) or len(self.secret_key) < MIN_SECRET_LENGTH:
            raise ValueError(f"secret_key must be a string of at least {MIN_SECRET_LENGTH} characters")
        if not self.issuer.strip():
            raise ValueError("issuer must not be blank")
        if not self.key_id.strip():
            raise ValueError("key_id must not be blank")

        self.algorithm = self.algorithm.strip().upper()
        if self.algorithm != SIGNING_ALGORITHM:
            raise ValueError(f"Unsupported algorithm {self.algorithm!r}; only {SIGNING_ALGORITHM} is supported")

        if self.max_expiration_minutes <= 0:
            raise ValueError("max_expiration_minutes must be positive")
        if self.bulk_revoke_limit <= 0:
            raise ValueError("bulk_revoke_limit must be positive")
        if self.cas_max_attempts <= 0:
            raise ValueError("cas_max_attempts must be positive")

        self.allowed_audiences = tuple(self.allowed_audiences)
        if self.default_audience is not None and not self.default_audience.strip():
            raise ValueError("default_audience must not be blank")
        if self.allowed_audiences and self.default_audience and self.default_audience not in self.allowed_audiences:
            raise ValueError("default_audience must be one of allowed_audiences")

        if self.store_backend not in STORE_BACKENDS:
            raise ValueError(f"store_backend must be one of {STORE_BACKENDS}, got {self.store_backend!r}")
        if self.store_backend == "sqlite" and not self.sqlite_path:
            raise ValueError("sqlite_path is required for the sqlite store backend")
