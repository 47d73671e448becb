from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials

from .security import bearer_scheme, extract_token_from_request
from ..common.guard import AuthorizationGuard
from ...domain.entities import CallerIdentity
from ...domain.exceptions import (
    AuthenticationError,
    InvalidTokenError,
    MissingCredentialError,
    NotFoundError,
    TokenExpiredError,
    TokenRevokedError,
)


GENERIC_AUTH_DETAIL = "Invalid or expired token"


@dataclass(slots=True)
class FastAPITokenAuth:
    """
    FastAPI integration of the AuthorizationGuard.

    Every authentication failure becomes a 401. Unless `verbose_errors` is
    set, the detail is collapsed so callers cannot tell an unknown token from
    a revoked or expired one.
    """

    guard: AuthorizationGuard
    verbose_errors: bool = False

    def _unauthorized(self, detail: str) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail if self.verbose_errors else GENERIC_AUTH_DETAIL,
            headers={"WWW-Authenticate": "Bearer"},
        )

    def get_current_caller(
            self,
            request: Request,
            credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    ) -> CallerIdentity:
        """Dependency: Require a valid bearer token."""
        try:
            token = extract_token_from_request(request, credentials)
            return self.guard.authenticate_token(token)
        except MissingCredentialError as exc:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
                headers={"WWW-Authenticate": "Bearer"},
            ) from exc
        except TokenExpiredError as exc:
            raise self._unauthorized("Token expired") from exc
        except TokenRevokedError as exc:
            raise self._unauthorized("Token revoked") from exc
        except NotFoundError as exc:
            raise self._unauthorized("Unknown token") from exc
        except (InvalidTokenError, AuthenticationError) as exc:
            raise self._unauthorized(str(exc)) from exc
