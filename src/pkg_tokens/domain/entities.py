from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from .constants import TokenStatus
from .exceptions import InvalidDurationError


@dataclass(frozen=True, slots=True)
class TokenRecord:
    """
    Lifecycle state of one issued token.

    `token_id`, `owner_id`, `name`, `claims`, `audience`, `issued_at` and
    `key_id` never change. `expires_at` only moves forward and `status` never leaves REVOKED.
    `version` is bumped by the store on every committed write and is what
    compare-and-swap updates check against.
    """
    token_id: str
    owner_id: str
    name: str
    claims: Dict[str, Any]
    issued_at: datetime
    expires_at: datetime
    key_id: str
    audience: Tuple[str, ...] = ()
    status: TokenStatus = TokenStatus.ACTIVE
    version: int = 0
    revoked_at: Optional[datetime] = None
    revocation_reason: Optional[str] = None

    def effective_status(self, now: datetime) -> TokenStatus:
        """Stored status with time-derived expiry folded in."""
        if self.status is TokenStatus.REVOKED:
            return TokenStatus.REVOKED
        if self.status is TokenStatus.EXPIRED or now >= self.expires_at:
            return TokenStatus.EXPIRED
        return TokenStatus.ACTIVE

    def is_usable(self, now: datetime) -> bool:
        return self.effective_status(now) is TokenStatus.ACTIVE

    # --- transitions (pure, return new records) ---------------------------

    def extended(self, minutes: int, now: datetime) -> "TokenRecord":
        base = max(self.expires_at, now)
        try:
            expires_at = base + timedelta(minutes=minutes)
        except OverflowError as exc:
            raise InvalidDurationError("Extended expiry is beyond the supported date range") from exc
        return replace(self, expires_at=expires_at)

    def revoked(self, now: datetime, reason: Optional[str] = None) -> "TokenRecord":
        return replace(
            self,
            status=TokenStatus.REVOKED,
            revoked_at=now,
            revocation_reason=reason,
        )

    def marked_expired(self) -> "TokenRecord":
        return replace(self, status=TokenStatus.EXPIRED)


@dataclass(frozen=True, slots=True)
class TokenView:
    """
    Public projection of a record, as returned by owner-scoped listing.
    """
    token_id: str
    jwt_name: str
    status: TokenStatus
    issued_at: datetime
    expires_at: datetime
    revoked_at: Optional[datetime] = None
    revocation_reason: Optional[str] = None

    @classmethod
    def from_record(cls, record: TokenRecord, now: datetime) -> "TokenView":
        return cls(
            token_id=record.token_id,
            jwt_name=record.name,
            status=record.effective_status(now),
            issued_at=record.issued_at,
            expires_at=record.expires_at,
            revoked_at=record.revoked_at,
            revocation_reason=record.revocation_reason,
        )


@dataclass(frozen=True, slots=True)
class DecodedToken:
    header: Dict[str, Any]
    payload: Dict[str, Any]


@dataclass(frozen=True, slots=True)
class CallerIdentity:
    """
    Who is calling, as established by a valid bearer token.
    """
    owner_id: str
    token_id: str


@dataclass(frozen=True, slots=True)
class IssuedToken:
    token_id: str
    token: str
    name: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class ExtendedToken:
    token_id: str
    name: str
    expires_at: datetime
    # Re-signed token carrying the new `exp`; same `jti` and claims.
    token: str


@dataclass(frozen=True, slots=True)
class RevokedToken:
    token_id: str
    status: TokenStatus
    newly_revoked: bool


@dataclass(slots=True)
class BulkRevokeSummary:
    newly_revoked: List[str] = field(default_factory=list)
    already_revoked: List[str] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.newly_revoked) + len(self.already_revoked) + len(self.failed)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "newly_revoked": len(self.newly_revoked),
            "already_revoked": len(self.already_revoked),
            "failed": len(self.failed),
            "newly_revoked_tokens": list(self.newly_revoked),
            "already_revoked_tokens": list(self.already_revoked),
            "failed_tokens": list(self.failed),
        }


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """
    Non-raising outcome of checking a token, for introspection-style callers.
    """
    valid: bool
    status: str
    reason: Optional[str] = None
    owner_id: Optional[str] = None
    token_id: Optional[str] = None
    claims: Optional[Dict[str, Any]] = None
    audience: Optional[List[str]] = None
    expires_at: Optional[datetime] = None
