"""
pkg_tokens

Clean-architecture lifecycle engine for application-defined bearer JWTs:
issue, authorize, list, extend and revoke, with FastAPI integration.
"""

__version__ = "0.1.0"

from .domain.constants import TokenStatus
from .domain.entities import (
    BulkRevokeSummary,
    CallerIdentity,
    DecodedToken,
    ExtendedToken,
    IssuedToken,
    RevokedToken,
    TokenRecord,
    TokenView,
    ValidationResult,
)
from .domain.exceptions import (
    AlreadyExpiredError,
    AlreadyRevokedError,
    AuthenticationError,
    AuthorizationError,
    ConcurrencyConflictError,
    DuplicateTokenIdError,
    ForbiddenError,
    InvalidClaimsError,
    InvalidDurationError,
    InvalidTokenError,
    LifecycleConflictError,
    MalformedTokenError,
    MissingCredentialError,
    NotFoundError,
    SignatureInvalidError,
    TokenExpiredError,
    TokenRevokedError,
    TokenServiceError,
)
from .domain.value_objects import ClaimMap, ExpirationMinutes, TokenListFilter
from .domain.ports import Clock, TokenCodec, TokenStore

from .adapters.clock import SystemClock
from .adapters.jwt.codec import JWTTokenCodec
from .adapters.memory.store import InMemoryTokenStore
from .adapters.sqlite.store import SQLiteTokenStore

from .admin.settings import TokenServiceSettings
from .integrations.common.guard import AuthorizationGuard, extract_bearer_token
from .integrations.common.lifecycle_factory import TokenLifecycle, create_token_lifecycle

__all__ = [
    "__version__",
    # domain core
    "TokenStatus",
    "TokenRecord",
    "TokenView",
    "CallerIdentity",
    "DecodedToken",
    "IssuedToken",
    "ExtendedToken",
    "RevokedToken",
    "BulkRevokeSummary",
    "ValidationResult",
    "ClaimMap",
    "ExpirationMinutes",
    "TokenListFilter",
    "Clock",
    "TokenCodec",
    "TokenStore",
    # exceptions
    "TokenServiceError",
    "AuthenticationError",
    "AuthorizationError",
    "InvalidTokenError",
    "MalformedTokenError",
    "SignatureInvalidError",
    "TokenExpiredError",
    "TokenRevokedError",
    "MissingCredentialError",
    "ForbiddenError",
    "NotFoundError",
    "DuplicateTokenIdError",
    "InvalidDurationError",
    "InvalidClaimsError",
    "LifecycleConflictError",
    "AlreadyRevokedError",
    "AlreadyExpiredError",
    "ConcurrencyConflictError",
    # adapters
    "SystemClock",
    "JWTTokenCodec",
    "InMemoryTokenStore",
    "SQLiteTokenStore",
    # wiring
    "TokenServiceSettings",
    "TokenLifecycle",
    "AuthorizationGuard",
    "create_token_lifecycle",
    "extract_bearer_token",
]
