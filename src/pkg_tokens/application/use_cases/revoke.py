from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ...domain.constants import DEFAULT_BULK_REVOKE_LIMIT, TokenStatus
from ...domain.entities import BulkRevokeSummary, CallerIdentity, RevokedToken, TokenRecord
from ...domain.exceptions import (
    AlreadyRevokedError,
    ConcurrencyConflictError,
    ForbiddenError,
    NotFoundError,
)
from ...domain.ports import Clock, TokenStore
from ..common import current_time, ensure_owner

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RevokeTokenUseCase:
    """
    Application use case: revoke a token owned by the caller.

    Idempotent: revoking an already revoked token reports success with
    `newly_revoked=False`. Expiry does not matter, revocation always sticks.
    """

    store: TokenStore
    clock: Clock

    def execute(
            self,
            token_id: str,
            caller: CallerIdentity,
            reason: Optional[str] = None,
    ) -> RevokedToken:
        """
        Raises:
            NotFoundError
            ForbiddenError
            ConcurrencyConflictError
        """
        ensure_owner(self.store.get(token_id), caller)

        def revoke(current: TokenRecord) -> TokenRecord:
            if current.status is TokenStatus.REVOKED:
                raise AlreadyRevokedError(f"Token {token_id} is already revoked")
            return current.revoked(current_time(self.clock), reason)

        try:
            self.store.update(token_id, revoke)
        except AlreadyRevokedError:
            logger.info("Token %s was already revoked", token_id)
            return RevokedToken(token_id=token_id, status=TokenStatus.REVOKED, newly_revoked=False)

        logger.info("Revoked token %s (reason: %s)", token_id, reason)
        return RevokedToken(token_id=token_id, status=TokenStatus.REVOKED, newly_revoked=True)


@dataclass(slots=True)
class BulkRevokeUseCase:
    """
    Revoke many tokens of one owner, reporting a per-id outcome instead of
    failing the whole batch.
    """

    revoke_use_case: RevokeTokenUseCase
    limit: int = DEFAULT_BULK_REVOKE_LIMIT

    def execute(
            self,
            token_ids: Sequence[str],
            caller: CallerIdentity,
            reason: Optional[str] = None,
    ) -> BulkRevokeSummary:
        """
        Raises:
            ValueError if the batch is empty or larger than the limit.
        """
        if not token_ids:
            raise ValueError("token_ids must not be empty")
        if len(token_ids) > self.limit:
            raise ValueError(f"Cannot revoke more than {self.limit} tokens at once")

        summary = BulkRevokeSummary()
        for token_id in token_ids:
            try:
                result = self.revoke_use_case.execute(token_id, caller, reason)
            except NotFoundError:
                summary.failed.append({"token_id": token_id, "reason": "not_found"})
                continue
            except ForbiddenError:
                summary.failed.append({"token_id": token_id, "reason": "forbidden"})
                continue
            except ConcurrencyConflictError:
                summary.failed.append({"token_id": token_id, "reason": "conflict"})
                continue

            if result.newly_revoked:
                summary.newly_revoked.append(token_id)
            else:
                summary.already_revoked.append(token_id)

        logger.info(
            "Bulk revocation for owner %s: %s newly revoked, %s already revoked, %s failed",
            caller.owner_id,
            len(summary.newly_revoked),
            len(summary.already_revoked),
            len(summary.failed),
        )
        return summary
