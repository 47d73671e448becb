from __future__ import annotations

import logging
from dataclasses import dataclass

from ...domain.constants import DEFAULT_MAX_EXPIRATION_MINUTES, TokenStatus
from ...domain.entities import CallerIdentity, ExtendedToken, TokenRecord
from ...domain.exceptions import AlreadyExpiredError, AlreadyRevokedError
from ...domain.ports import Clock, TokenCodec, TokenStore
from ...domain.value_objects import ExpirationMinutes
from ..common import current_time, ensure_owner

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExtendTokenUseCase:
    """
    Application use case: push a token's expiry forward.

    The caller must be authorized by any valid token of the same owner; the
    presented token and the target need not be the same. Expired tokens are
    not resurrected, they have to be reissued. The re-signed token keeps the
    claims and audience fixed at issuance.
    """

    store: TokenStore
    codec: TokenCodec
    clock: Clock
    max_expiration_minutes: int = DEFAULT_MAX_EXPIRATION_MINUTES

    def execute(
            self,
            token_id: str,
            extension_in_minutes: int,
            caller: CallerIdentity,
    ) -> ExtendedToken:
        """
        Raises:
            InvalidDurationError
            NotFoundError
            ForbiddenError
            AlreadyRevokedError
            AlreadyExpiredError
            ConcurrencyConflictError
        """
        minutes = ExpirationMinutes(extension_in_minutes, self.max_expiration_minutes)

        ensure_owner(self.store.get(token_id), caller)

        def extend(current: TokenRecord) -> TokenRecord:
            now = current_time(self.clock)
            status = current.effective_status(now)
            if status is TokenStatus.REVOKED:
                raise AlreadyRevokedError(f"Token {token_id} is revoked and cannot be extended")
            if status is TokenStatus.EXPIRED:
                raise AlreadyExpiredError(f"Token {token_id} has expired and cannot be extended")
            return current.extended(minutes.value, now)

        updated = self.store.update(token_id, extend)
        token = self.codec.encode(
            updated.owner_id,
            updated.claims,
            updated.issued_at,
            updated.expires_at,
            updated.token_id,
            updated.audience,
        )

        logger.info(
            "Extended token %s by %s minutes, now expires at %s",
            token_id, minutes.value, updated.expires_at.isoformat(),
        )
        return ExtendedToken(
            token_id=token_id,
            name=updated.name,
            expires_at=updated.expires_at,
            token=token,
        )
