from __future__ import annotations

import logging
from dataclasses import dataclass

from ...domain.constants import TokenStatus
from ...domain.entities import CallerIdentity
from ...domain.exceptions import (
    SignatureInvalidError,
    TokenExpiredError,
    TokenRevokedError,
    TokenServiceError,
)
from ...domain.ports import Clock, TokenCodec, TokenStore
from ..common import current_time

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuthorizeTokenUseCase:
    """
    Application use case:
    - Decode a presented token via the TokenCodec port
    - Resolve its record by the embedded token id
    - Accept it only while the record is effectively ACTIVE

    The stored `expires_at` is authoritative, so an extension applies to
    tokens already handed out.
    """

    store: TokenStore
    codec: TokenCodec
    clock: Clock

    def execute(self, token: str) -> CallerIdentity:
        """
        Authorize a token and return the caller identity it binds.

        Raises:
            MalformedTokenError
            SignatureInvalidError
            NotFoundError
            TokenRevokedError
            TokenExpiredError
        """
        try:
            return self._authorize(token)
        except TokenServiceError as exc:
            logger.warning("Bearer token rejected: %s", type(exc).__name__)
            raise

    def _authorize(self, token: str) -> CallerIdentity:
        decoded = self.codec.decode(token)
        payload = decoded.payload

        record = self.store.get(payload["jti"])

        if record.owner_id != payload["sub"] or record.key_id != decoded.header.get("kid"):
            raise SignatureInvalidError("Token does not match its issued record")

        status = record.effective_status(current_time(self.clock))
        if status is TokenStatus.REVOKED:
            raise TokenRevokedError("Token has been revoked")
        if status is TokenStatus.EXPIRED:
            raise TokenExpiredError("Token has expired")

        return CallerIdentity(owner_id=record.owner_id, token_id=record.token_id)
