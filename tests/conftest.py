from datetime import datetime, timedelta, timezone

import pytest

from pkg_tokens.adapters.jwt.codec import JWTTokenCodec
from pkg_tokens.adapters.memory.store import InMemoryTokenStore
from pkg_tokens.admin.settings import TokenServiceSettings
from pkg_tokens.integrations.common.lifecycle_factory import create_token_lifecycle

SECRET = "test-secret-key-with-at-least-32-chars!"
T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def settings() -> TokenServiceSettings:
    return TokenServiceSettings(secret_key=SECRET, issuer="TIM", key_id="k1")


@pytest.fixture()
def codec(settings) -> JWTTokenCodec:
    return JWTTokenCodec(secret_key=settings.secret_key, issuer=settings.issuer, key_id=settings.key_id)


@pytest.fixture()
def store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture()
def lifecycle(settings, store, clock):
    return create_token_lifecycle(settings, store=store, clock=clock)
