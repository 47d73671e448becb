from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ...domain.entities import CallerIdentity
from ...domain.exceptions import MissingCredentialError
from .lifecycle_factory import TokenLifecycle

BEARER_SCHEME = "bearer"


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Pull the token out of an `Authorization: Bearer <token>` header value.

    The scheme is matched case-insensitively.

    Raises MissingCredentialError if there is no usable bearer credential.
    """
    if not authorization or not authorization.strip():
        raise MissingCredentialError("Not authenticated")

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        raise MissingCredentialError("Authorization header does not carry a bearer token")

    token = token.strip()
    if not token:
        raise MissingCredentialError("Bearer token is empty")
    return token


@dataclass(slots=True)
class AuthorizationGuard:
    """
    Precondition for every protected operation: turns a bearer header into
    the caller identity used for ownership checks.
    """

    lifecycle: TokenLifecycle

    def authenticate(self, authorization: Optional[str]) -> CallerIdentity:
        """
        Raises:
            MissingCredentialError
            MalformedTokenError
            SignatureInvalidError
            NotFoundError
            TokenRevokedError
            TokenExpiredError
        """
        return self.authenticate_token(extract_bearer_token(authorization))

    def authenticate_token(self, token: str) -> CallerIdentity:
        if not token or not token.strip():
            raise MissingCredentialError("Not authenticated")
        return self.lifecycle.authorize(token.strip())
