from __future__ import annotations

from datetime import datetime

from ..domain.entities import CallerIdentity, TokenRecord
from ..domain.exceptions import ForbiddenError
from ..domain.ports import Clock


def current_time(clock: Clock) -> datetime:
    """Clock reading truncated to whole seconds, the resolution of JWT timestamps."""
    return clock.now().replace(microsecond=0)


def ensure_owner(record: TokenRecord, caller: CallerIdentity) -> None:
    if record.owner_id != caller.owner_id:
        raise ForbiddenError(f"Token {record.token_id} is not owned by the caller")
