from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, List, Mapping, Protocol, Sequence

from .entities import DecodedToken, TokenRecord


# A pure transition applied inside a compare-and-swap update. It may raise a
# domain error to abort; returning the record unchanged skips the write.
RecordMutation = Callable[[TokenRecord], TokenRecord]


class Clock(Protocol):
    """Port for reading the current time (timezone-aware UTC)."""

    def now(self) -> datetime:
        ...


class TokenCodec(Protocol):
    """
    Port for encoding/decoding the signed token representation.

    Implementations live in the adapters layer (e.g. the PyJWT codec).
    """

    key_id: str

    def encode(
        self,
        owner_id: str,
        claims: Mapping[str, Any],
        issued_at: datetime,
        expires_at: datetime,
        token_id: str,
        audience: Sequence[str] = (),
    ) -> str:
        ...

    def decode(self, token: str) -> DecodedToken:
        """
        Parse the token and verify its signature.

        Raises:
          - MalformedTokenError
          - SignatureInvalidError
        """
        ...


class TokenStore(Protocol):
    """
    Port for durable TokenRecord storage keyed by token id, indexed by owner.
    """

    def create(self, record: TokenRecord) -> TokenRecord:
        """Raises DuplicateTokenIdError if the id already exists."""
        ...

    def get(self, token_id: str) -> TokenRecord:
        """Raises NotFoundError if absent."""
        ...

    def list_by_owner(self, owner_id: str) -> List[TokenRecord]:
        """Most-recent-first."""
        ...

    def update(self, token_id: str, mutation: RecordMutation) -> TokenRecord:
        """
        Atomic read-modify-write.

        Raises:
          - NotFoundError
          - ConcurrencyConflictError after the bounded number of CAS attempts
          - whatever the mutation raises
        """
        ...

    def list_expired_active(self, now: datetime) -> List[TokenRecord]:
        """Records still stored as ACTIVE whose expiry has passed."""
        ...
