from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

from ...adapters.clock import SystemClock
from ...adapters.jwt.codec import JWTTokenCodec
from ...adapters.memory.store import InMemoryTokenStore
from ...adapters.sqlite.store import SQLiteTokenStore
from ...admin.settings import TokenServiceSettings
from ...application.use_cases.authorize import AuthorizeTokenUseCase
from ...application.use_cases.extend import ExtendTokenUseCase
from ...application.use_cases.generate import GenerateTokenUseCase
from ...application.use_cases.list_tokens import ListTokensUseCase
from ...application.use_cases.revoke import BulkRevokeUseCase, RevokeTokenUseCase
from ...application.use_cases.sweep import ExpireSweepUseCase
from ...application.use_cases.validate import ValidateTokenUseCase
from ...domain.entities import (
    BulkRevokeSummary,
    CallerIdentity,
    ExtendedToken,
    IssuedToken,
    RevokedToken,
    TokenView,
    ValidationResult,
)
from ...domain.ports import Clock, TokenCodec, TokenStore
from ...domain.value_objects import TokenListFilter


@dataclass(slots=True)
class TokenLifecycle:
    """
    Framework-agnostic token lifecycle facade.

    Integrations (FastAPI, the admin CLI, etc.) adapt this to their own
    dependency / command systems.
    """

    generate_use_case: GenerateTokenUseCase
    authorize_use_case: AuthorizeTokenUseCase
    validate_use_case: ValidateTokenUseCase
    list_use_case: ListTokensUseCase
    extend_use_case: ExtendTokenUseCase
    revoke_use_case: RevokeTokenUseCase
    bulk_revoke_use_case: BulkRevokeUseCase
    sweep_use_case: ExpireSweepUseCase

    # --- Core operations --------------------------------------------------

    def generate(
            self,
            owner_id: str,
            name: str,
            claims: Mapping[str, Any] | None,
            expiration_in_minutes: int,
            audience: Union[str, Sequence[str], None] = None,
    ) -> IssuedToken:
        return self.generate_use_case.execute(owner_id, name, claims, expiration_in_minutes, audience)

    def authorize(self, token: str) -> CallerIdentity:
        """Token -> CallerIdentity (or raise auth exceptions)."""
        return self.authorize_use_case.execute(token)

    def list_tokens(self, caller: CallerIdentity, filters: Optional[TokenListFilter] = None) -> list[TokenView]:
        return self.list_use_case.execute(caller.owner_id, filters)

    def extend(self, token_id: str, extension_in_minutes: int, caller: CallerIdentity) -> ExtendedToken:
        return self.extend_use_case.execute(token_id, extension_in_minutes, caller)

    def revoke(self, token_id: str, caller: CallerIdentity, reason: Optional[str] = None) -> RevokedToken:
        return self.revoke_use_case.execute(token_id, caller, reason)

    # --- Supplementary operations -----------------------------------------

    def validate(self, token: str, audience: Optional[str] = None) -> ValidationResult:
        return self.validate_use_case.execute(token, audience)

    def bulk_revoke(
            self,
            token_ids: Sequence[str],
            caller: CallerIdentity,
            reason: Optional[str] = None,
    ) -> BulkRevokeSummary:
        return self.bulk_revoke_use_case.execute(token_ids, caller, reason)

    def sweep_expired(self) -> int:
        return self.sweep_use_case.execute()


def build_store(settings: TokenServiceSettings) -> TokenStore:
    if settings.store_backend == "sqlite":
        return SQLiteTokenStore(settings.sqlite_path, max_attempts=settings.cas_max_attempts)
    return InMemoryTokenStore(max_attempts=settings.cas_max_attempts)


def create_token_lifecycle(
        settings: TokenServiceSettings,
        *,
        store: TokenStore | None = None,
        clock: Clock | None = None,
) -> TokenLifecycle:
    """
    High-level factory: settings -> TokenLifecycle.

    - builds the JWT codec and the configured store
    - wires every use case against them
    - returns a TokenLifecycle facade
    """
    store = store if store is not None else build_store(settings)
    clock = clock if clock is not None else SystemClock()
    codec: TokenCodec = JWTTokenCodec(
        secret_key=settings.secret_key,
        issuer=settings.issuer,
        key_id=settings.key_id,
    )

    authorize_uc = AuthorizeTokenUseCase(store=store, codec=codec, clock=clock)
    revoke_uc = RevokeTokenUseCase(store=store, clock=clock)

    return TokenLifecycle(
        generate_use_case=GenerateTokenUseCase(
            store=store,
            codec=codec,
            clock=clock,
            max_expiration_minutes=settings.max_expiration_minutes,
            default_audience=settings.default_audience,
            allowed_audiences=settings.allowed_audiences,
        ),
        authorize_use_case=authorize_uc,
        validate_use_case=ValidateTokenUseCase(authorize_use_case=authorize_uc, store=store),
        list_use_case=ListTokensUseCase(store=store, clock=clock),
        extend_use_case=ExtendTokenUseCase(
            store=store,
            codec=codec,
            clock=clock,
            max_expiration_minutes=settings.max_expiration_minutes,
        ),
        revoke_use_case=revoke_uc,
        bulk_revoke_use_case=BulkRevokeUseCase(revoke_use_case=revoke_uc, limit=settings.bulk_revoke_limit),
        sweep_use_case=ExpireSweepUseCase(store=store, clock=clock),
    )
