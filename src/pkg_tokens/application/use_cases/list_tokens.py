from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from ...domain.entities import TokenView
from ...domain.ports import Clock, TokenStore
from ...domain.value_objects import TokenListFilter
from ..common import current_time


@dataclass(slots=True)
class ListTokensUseCase:
    """
    Owner-scoped listing, projected to TokenView with the effective status.
    """

    store: TokenStore
    clock: Clock

    def execute(self, owner_id: str, filters: Optional[TokenListFilter] = None) -> List[TokenView]:
        filters = filters or TokenListFilter()
        now = current_time(self.clock)

        views = [
            TokenView.from_record(record, now)
            for record in self.store.list_by_owner(owner_id)
            # ownership re-checked per record
            if record.owner_id == owner_id
        ]

        if filters.status is not None:
            views = [v for v in views if v.status is filters.status]
        if filters.jwt_name is not None:
            views = [v for v in views if v.jwt_name == filters.jwt_name]
        views = [v for v in views if filters.matches(v.issued_at, v.expires_at)]

        end = None if filters.limit is None else filters.offset + filters.limit
        return views[filters.offset:end]
