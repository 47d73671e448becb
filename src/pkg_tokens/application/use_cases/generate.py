from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple, Union

from ...domain.constants import DEFAULT_AUDIENCE, DEFAULT_MAX_EXPIRATION_MINUTES, TokenStatus
from ...domain.entities import IssuedToken, TokenRecord
from ...domain.exceptions import InvalidClaimsError, InvalidDurationError
from ...domain.ports import Clock, TokenCodec, TokenStore
from ...domain.value_objects import Audience, ClaimMap, ExpirationMinutes
from ..common import current_time

logger = logging.getLogger(__name__)


def new_token_id() -> str:
    """Random 122-bit identifier."""
    return str(uuid.uuid4())


@dataclass(slots=True)
class GenerateTokenUseCase:
    """
    Application use case:
    - Validate duration, custom claims and audience
    - Persist a fresh ACTIVE record
    - Mint the signed token via the TokenCodec port

    The only lifecycle operation that does not require an existing token.
    """

    store: TokenStore
    codec: TokenCodec
    clock: Clock
    max_expiration_minutes: int = DEFAULT_MAX_EXPIRATION_MINUTES
    id_factory: Callable[[], str] = new_token_id
    default_audience: Optional[str] = DEFAULT_AUDIENCE
    # empty means any audience may be requested
    allowed_audiences: Tuple[str, ...] = ()

    def execute(
            self,
            owner_id: str,
            name: str,
            claims: Mapping[str, Any] | None,
            expiration_in_minutes: int,
            audience: Union[str, Sequence[str], None] = None,
    ) -> IssuedToken:
        """
        Raises:
            InvalidDurationError
            InvalidClaimsError (including an audience outside `allowed_audiences`)
            ValueError (blank name)
            DuplicateTokenIdError
        """
        if not isinstance(owner_id, str) or not owner_id.strip():
            raise InvalidClaimsError("Token owner (sub) must be a non-empty string")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Token name must be a non-empty string")

        minutes = ExpirationMinutes(expiration_in_minutes, self.max_expiration_minutes)
        claim_map = ClaimMap(claims, owner_id=owner_id)
        audiences = self._resolve_audience(Audience(audience))

        issued_at = current_time(self.clock)
        try:
            expires_at = issued_at + timedelta(seconds=minutes.seconds)
        except OverflowError as exc:
            raise InvalidDurationError("Expiry is beyond the supported date range") from exc
        token_id = self.id_factory()

        record = TokenRecord(
            token_id=token_id,
            owner_id=owner_id,
            name=name,
            claims=claim_map.as_dict(),
            issued_at=issued_at,
            expires_at=expires_at,
            key_id=self.codec.key_id,
            audience=audiences,
            status=TokenStatus.ACTIVE,
        )

        # nothing is persisted unless signing succeeds
        token = self.codec.encode(owner_id, record.claims, issued_at, expires_at, token_id, audiences)
        self.store.create(record)

        logger.info(
            "Issued token %s (%s) for owner %s, expires at %s",
            token_id, name, owner_id, expires_at.isoformat(),
        )
        return IssuedToken(
            token_id=token_id,
            token=token,
            name=name,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def _resolve_audience(self, requested: Audience) -> Tuple[str, ...]:
        if not requested:
            return (self.default_audience,) if self.default_audience else ()
        if self.allowed_audiences:
            rejected = [a for a in requested.values if a not in self.allowed_audiences]
            if rejected:
                raise InvalidClaimsError(f"One or more requested audiences are not allowed: {rejected}")
        return requested.values
