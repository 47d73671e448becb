from datetime import datetime, timezone


class SystemClock:
    """Clock port backed by the wall clock, in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
