class TokenServiceError(Exception):
    """Base class for every error raised by pkg_tokens."""
    pass


class AuthenticationError(TokenServiceError):
    """Raised when a presented credential cannot authenticate the caller."""
    pass


class AuthorizationError(TokenServiceError):
    """Raised when an authenticated caller may not act on a resource."""
    pass


class InvalidTokenError(AuthenticationError):
    """Raised when token is malformed or invalid."""
    pass


class MalformedTokenError(InvalidTokenError):
    """Raised when the token structure or its required claims cannot be parsed."""
    pass


class SignatureInvalidError(InvalidTokenError):
    """Raised when the token signature does not verify against the service key."""
    pass


class TokenExpiredError(AuthenticationError):
    """Raised when token has expired."""
    pass


class TokenRevokedError(AuthenticationError):
    """Raised when token has been revoked."""
    pass


class MissingCredentialError(AuthenticationError):
    """Raised when no bearer credential was presented."""
    pass


class ForbiddenError(AuthorizationError):
    """Raised when the caller does not own the target token."""
    pass


class NotFoundError(TokenServiceError):
    """Raised when no record exists for a token id."""
    pass


class DuplicateTokenIdError(TokenServiceError):
    pass


class InvalidDurationError(TokenServiceError):
    """Raised for non-positive or out-of-range expiration/extension minutes."""
    pass


class InvalidClaimsError(TokenServiceError):
    """Raised when custom claims are not a JSON-serializable string-keyed mapping."""
    pass


class LifecycleConflictError(TokenServiceError):
    """Raised when the record's lifecycle state forbids the requested change."""
    pass


class AlreadyRevokedError(LifecycleConflictError):
    pass


class AlreadyExpiredError(LifecycleConflictError):
    pass


class ConcurrencyConflictError(TokenServiceError):
    """
    Raised when a compare-and-swap update kept losing to concurrent writers.

    Transient: the whole operation may be retried by the caller.
    """
    retryable = True
