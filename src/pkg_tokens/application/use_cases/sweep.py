from __future__ import annotations

import logging
from dataclasses import dataclass

from ...domain.constants import TokenStatus
from ...domain.entities import TokenRecord
from ...domain.exceptions import ConcurrencyConflictError
from ...domain.ports import Clock, TokenStore
from ..common import current_time

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExpireSweepUseCase:
    """
    Bookkeeping job: flip stored ACTIVE records whose expiry has passed to
    EXPIRED. Readers already treat them as expired, so nothing depends on
    this running.
    """

    store: TokenStore
    clock: Clock

    def execute(self) -> int:
        now = current_time(self.clock)
        swept = 0

        for record in self.store.list_expired_active(now):
            def expire(current: TokenRecord) -> TokenRecord:
                # re-checked under CAS: a concurrent extend or revoke wins
                if current.status is TokenStatus.ACTIVE and current.expires_at <= now:
                    return current.marked_expired()
                return current

            try:
                updated = self.store.update(record.token_id, expire)
            except ConcurrencyConflictError:
                logger.warning("Skipped token %s during expiry sweep: concurrent updates", record.token_id)
                continue

            if updated.status is TokenStatus.EXPIRED and updated.version > record.version:
                swept += 1

        logger.info("Expiry sweep marked %s token(s) as expired", swept)
        return swept
