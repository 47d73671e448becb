import copy
import logging
from dataclasses import replace
from datetime import datetime
from threading import Lock
from typing import Dict, List

from ...domain.constants import DEFAULT_CAS_MAX_ATTEMPTS, TokenStatus
from ...domain.entities import TokenRecord
from ...domain.exceptions import ConcurrencyConflictError, DuplicateTokenIdError, NotFoundError
from ...domain.ports import RecordMutation, TokenStore

logger = logging.getLogger(__name__)


def _detached(record: TokenRecord) -> TokenRecord:
    """Copy whose claims share no containers with the stored record."""
    return replace(record, claims=copy.deepcopy(record.claims))


class InMemoryTokenStore(TokenStore):
    """
    Process-local token store.

    The lock only guards the dictionaries; mutations run outside it and are
    committed with a version compare-and-swap, so a slow mutation never blocks
    readers and a stale one is retried instead of overwriting a newer write.
    Records go in and come out as detached copies.
    """

    def __init__(self, max_attempts: int = DEFAULT_CAS_MAX_ATTEMPTS) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        self._max_attempts = max_attempts
        self._lock = Lock()
        self._records: Dict[str, TokenRecord] = {}
        self._sequence: Dict[str, int] = {}
        self._by_owner: Dict[str, List[str]] = {}

    def create(self, record: TokenRecord) -> TokenRecord:
        with self._lock:
            if record.token_id in self._records:
                raise DuplicateTokenIdError(f"Token id already exists: {record.token_id}")
            self._records[record.token_id] = _detached(record)
            self._sequence[record.token_id] = len(self._sequence)
            self._by_owner.setdefault(record.owner_id, []).append(record.token_id)
        return record

    def get(self, token_id: str) -> TokenRecord:
        with self._lock:
            record = self._records.get(token_id)
        if record is None:
            raise NotFoundError(f"Token not found: {token_id}")
        return _detached(record)

    def list_by_owner(self, owner_id: str) -> List[TokenRecord]:
        with self._lock:
            records = [self._records[tid] for tid in self._by_owner.get(owner_id, [])]
            sequence = dict(self._sequence)
        return sorted(
            (_detached(r) for r in records),
            key=lambda r: (r.issued_at, sequence[r.token_id]),
            reverse=True,
        )

    def update(self, token_id: str, mutation: RecordMutation) -> TokenRecord:
        for attempt in range(1, self._max_attempts + 1):
            current = self.get(token_id)
            changed = mutation(current)
            if changed is current:
                return current

            with self._lock:
                if self._records[token_id].version == current.version:
                    committed = replace(changed, version=current.version + 1)
                    self._records[token_id] = _detached(committed)
                    return committed

            logger.debug("CAS conflict on token %s (attempt %s/%s)", token_id, attempt, self._max_attempts)

        raise ConcurrencyConflictError(
            f"Could not update token {token_id} after {self._max_attempts} attempts"
        )

    def list_expired_active(self, now: datetime) -> List[TokenRecord]:
        with self._lock:
            return [
                _detached(r) for r in self._records.values()
                if r.status is TokenStatus.ACTIVE and r.expires_at <= now
            ]
