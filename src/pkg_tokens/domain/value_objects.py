# src/pkg_tokens/domain/value_objects.py

from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from .constants import RESERVED_CLAIMS, TokenStatus
from .exceptions import InvalidClaimsError, InvalidDurationError


# --- Durations -------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExpirationMinutes:
    """
    A validated, bounded number of minutes used for both issuance and extension.

    Booleans are rejected even though they are ints in Python.
    """
    value: int
    maximum: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise InvalidDurationError(f"Duration must be an integer number of minutes, got {self.value!r}")
        if self.value <= 0:
            raise InvalidDurationError(f"Duration must be positive, got {self.value}")
        if self.value > self.maximum:
            raise InvalidDurationError(
                f"Duration of {self.value} minutes exceeds the maximum of {self.maximum}"
            )

    @property
    def seconds(self) -> int:
        return self.value * 60


# --- Claims ----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ClaimMap:
    """
    Caller-supplied custom claims, kept in insertion order.

    Content is opaque to the service: only string keys, JSON serializability
    and collisions with injected lifecycle claims are checked. A `sub` claim is
    allowed when it names the token owner.
    """
    values: Dict[str, Any]

    def __init__(self, claims: Mapping[str, Any] | None, owner_id: Optional[str] = None) -> None:
        if claims is None:
            claims = {}
        if not isinstance(claims, Mapping):
            raise InvalidClaimsError("claims must be a mapping")

        for key in claims:
            if not isinstance(key, str) or not key:
                raise InvalidClaimsError(f"Claim keys must be non-empty strings, got {key!r}")

        reserved = sorted(RESERVED_CLAIMS.intersection(claims))
        if reserved:
            raise InvalidClaimsError(f"Reserved claims may not be supplied: {reserved}")

        if owner_id is not None and "sub" in claims and claims["sub"] != owner_id:
            raise InvalidClaimsError("The 'sub' claim must match the token owner")

        try:
            encoded = json.dumps(dict(claims), separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise InvalidClaimsError("claims are not JSON serializable") from exc

        # detached from the caller down to nested containers
        object.__setattr__(self, "values", json.loads(encoded))

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.values)


# --- Audience --------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Audience:
    """
    Intended recipients of a token (`aud`), given as one string or a list.

    Duplicates are dropped, first occurrence wins.
    """
    values: Tuple[str, ...]

    def __init__(self, raw: Union[str, Sequence[str], None] = None) -> None:
        if raw is None:
            items: Sequence[Any] = ()
        elif isinstance(raw, str):
            items = (raw,)
        elif isinstance(raw, (list, tuple)):
            items = raw
        else:
            raise InvalidClaimsError("audience must be a string or a list of strings")

        values: list[str] = []
        for item in items:
            if not isinstance(item, str) or not item.strip():
                raise InvalidClaimsError(f"Audience entries must be non-empty strings, got {item!r}")
            if item not in values:
                values.append(item)

        object.__setattr__(self, "values", tuple(values))

    def __bool__(self) -> bool:
        return bool(self.values)


# --- Listing ---------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TokenListFilter:
    """
    Optional narrowing of an owner's token list.

    - status:   effective status to keep (time-derived expiry folded in)
    - jwt_name: exact token name to keep
    - issued_after / issued_before / expires_after / expires_before:
      inclusive bounds; naive datetimes are taken as UTC
    - limit / offset: paging over the most-recent-first ordering
    """
    status: Optional[TokenStatus] = None
    jwt_name: Optional[str] = None
    issued_after: Optional[datetime] = None
    issued_before: Optional[datetime] = None
    expires_after: Optional[datetime] = None
    expires_before: Optional[datetime] = None
    limit: Optional[int] = None
    offset: int = 0

    def __post_init__(self) -> None:
        for name in ("issued_after", "issued_before", "expires_after", "expires_before"):
            value = getattr(self, name)
            if value is not None and value.tzinfo is None:
                object.__setattr__(self, name, value.replace(tzinfo=timezone.utc))
        if self.offset < 0:
            raise ValueError("offset must not be negative")
        if self.limit is not None and self.limit <= 0:
            raise ValueError("limit must be positive")

    def matches(self, issued_at: datetime, expires_at: datetime) -> bool:
        """Date-range part of the filter."""
        if self.issued_after is not None and issued_at < self.issued_after:
            return False
        if self.issued_before is not None and issued_at > self.issued_before:
            return False
        if self.expires_after is not None and expires_at < self.expires_after:
            return False
        if self.expires_before is not None and expires_at > self.expires_before:
            return False
        return True
