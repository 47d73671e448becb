from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field, StrictInt

from .deps import FastAPITokenAuth
from ..common.lifecycle_factory import TokenLifecycle
from ...domain.constants import DEFAULT_EXPIRATION_MINUTES, DEFAULT_JWT_NAME, TokenStatus
from ...domain.entities import CallerIdentity, TokenView, ValidationResult
from ...domain.exceptions import (
    ConcurrencyConflictError,
    DuplicateTokenIdError,
    ForbiddenError,
    InvalidClaimsError,
    InvalidDurationError,
    LifecycleConflictError,
    NotFoundError,
)
from ...domain.value_objects import TokenListFilter

DEFAULT_PREFIX = "/jwt/custom"


# --------------------------------------------------------------------- #
# Request bodies
# --------------------------------------------------------------------- #

class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerateRequest(_Body):
    jwt_name: str = Field(default=DEFAULT_JWT_NAME, alias="JWTName")
    content: Dict[str, Any] = Field(default_factory=dict)
    expiration_in_minutes: StrictInt = Field(default=DEFAULT_EXPIRATION_MINUTES, alias="expirationInMinutes")
    set_cookie: bool = Field(default=False, alias="setCookie")
    audience: Optional[Union[str, List[str]]] = None


class ListRequest(_Body):
    status: Optional[TokenStatus] = None
    jwt_name: Optional[str] = Field(default=None, alias="jwtName")
    issued_after: Optional[datetime] = Field(default=None, alias="issuedAfter")
    issued_before: Optional[datetime] = Field(default=None, alias="issuedBefore")
    expires_after: Optional[datetime] = Field(default=None, alias="expiresAfter")
    expires_before: Optional[datetime] = Field(default=None, alias="expiresBefore")
    limit: Optional[int] = None
    offset: int = 0


class ExtendRequest(_Body):
    token_id: str = Field(alias="tokenId")
    extension_in_minutes: StrictInt = Field(alias="extensionInMinutes")
    set_cookie: bool = Field(default=False, alias="setCookie")


class RevokeRequest(_Body):
    token_id: str = Field(alias="tokenId")
    reason: Optional[str] = None


class BulkRevokeRequest(_Body):
    token_ids: List[str] = Field(alias="tokenIds")
    reason: Optional[str] = None


class ValidateRequest(_Body):
    token: str = ""
    audience: Optional[str] = None


# --------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------- #

def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


def _view_to_json(view: TokenView) -> Dict[str, Any]:
    return {
        "tokenId": view.token_id,
        "jwtName": view.jwt_name,
        "status": view.status.value,
        "issuedAt": _iso(view.issued_at),
        "expiresAt": _iso(view.expires_at),
        "revokedAt": _iso(view.revoked_at),
        "revocationReason": view.revocation_reason,
    }


def _validation_to_json(result: ValidationResult) -> Dict[str, Any]:
    return {
        "valid": result.valid,
        "status": result.status,
        "reason": result.reason,
        "subject": result.owner_id,
        "tokenId": result.token_id,
        "claims": result.claims,
        "audience": result.audience,
        "expiresAt": _iso(result.expires_at),
    }


def _set_token_cookie(response: Response, name: str, token: str) -> None:
    response.set_cookie(key=name, value=token, path="/", httponly=True)


@contextmanager
def _domain_errors() -> Iterator[None]:
    """Translate lifecycle errors on a target token into HTTP responses."""
    try:
        yield
    except (InvalidDurationError, InvalidClaimsError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except LifecycleConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ConcurrencyConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Concurrent update, retry the request",
            headers={"Retry-After": "1"},
        ) from exc
    except DuplicateTokenIdError as exc:
        # a fresh id is drawn on the next attempt
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Token id collision, retry the request",
            headers={"Retry-After": "1"},
        ) from exc


# --------------------------------------------------------------------- #
# Router
# --------------------------------------------------------------------- #

def create_token_router(
        lifecycle: TokenLifecycle,
        auth: FastAPITokenAuth,
        *,
        prefix: str = DEFAULT_PREFIX,
) -> APIRouter:
    """
    JSON-over-HTTP surface of the token lifecycle.

        POST {prefix}/generate          (no auth)
        POST {prefix}/validate          (no auth)
        POST {prefix}/validate/boolean  (no auth, text/plain "true"/"false")
        POST {prefix}/list/me           (bearer)
        POST {prefix}/extend            (bearer)
        POST {prefix}/revoke            (bearer)
        POST {prefix}/revoke/bulk       (bearer)

    `setCookie` on generate and extend also returns the token as an HttpOnly
    cookie named after the token.
    """
    router = APIRouter(prefix=prefix, tags=["tokens"])
    current_caller = auth.get_current_caller

    @router.post("/generate")
    def generate(body: GenerateRequest, response: Response) -> Dict[str, Any]:
        owner_id = body.content.get("sub")
        if not isinstance(owner_id, str) or not owner_id.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="content.sub must name the token owner",
            )
        with _domain_errors():
            issued = lifecycle.generate(
                owner_id,
                body.jwt_name,
                body.content,
                body.expiration_in_minutes,
                body.audience,
            )
        if body.set_cookie:
            _set_token_cookie(response, issued.name, issued.token)
        return {
            "status": "created",
            "name": issued.name,
            "tokenId": issued.token_id,
            "token": issued.token,
            "issuedAt": _iso(issued.issued_at),
            "expiresAt": _iso(issued.expires_at),
        }

    @router.post("/validate")
    def validate(body: ValidateRequest) -> JSONResponse:
        if not body.token.strip():
            result = ValidationResult(valid=False, status="invalid", reason="token_required")
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_validation_to_json(result))

        result = lifecycle.validate(body.token.strip(), body.audience)
        code = status.HTTP_200_OK if result.valid else status.HTTP_401_UNAUTHORIZED
        return JSONResponse(status_code=code, content=_validation_to_json(result))

    @router.post("/validate/boolean", response_class=PlainTextResponse)
    def validate_boolean(body: ValidateRequest) -> PlainTextResponse:
        if not body.token.strip():
            return PlainTextResponse("false", status_code=status.HTTP_400_BAD_REQUEST)

        result = lifecycle.validate(body.token.strip(), body.audience)
        if result.valid:
            return PlainTextResponse("true", status_code=status.HTTP_200_OK)
        return PlainTextResponse("false", status_code=status.HTTP_401_UNAUTHORIZED)

    @router.post("/list/me")
    def list_mine(
            body: Optional[ListRequest] = None,
            caller: CallerIdentity = Depends(current_caller),
    ) -> List[Dict[str, Any]]:
        body = body or ListRequest()
        with _domain_errors():
            filters = TokenListFilter(
                status=body.status,
                jwt_name=body.jwt_name,
                issued_after=body.issued_after,
                issued_before=body.issued_before,
                expires_after=body.expires_after,
                expires_before=body.expires_before,
                limit=body.limit,
                offset=body.offset,
            )
            views = lifecycle.list_tokens(caller, filters)
        return [_view_to_json(v) for v in views]

    @router.post("/extend")
    def extend(
            body: ExtendRequest,
            response: Response,
            caller: CallerIdentity = Depends(current_caller),
    ) -> Dict[str, Any]:
        with _domain_errors():
            extended = lifecycle.extend(body.token_id, body.extension_in_minutes, caller)
        if body.set_cookie:
            _set_token_cookie(response, extended.name, extended.token)
        return {
            "status": "extended",
            "tokenId": extended.token_id,
            "expiresAt": _iso(extended.expires_at),
            "token": extended.token,
        }

    @router.post("/revoke")
    def revoke(
            body: RevokeRequest,
            caller: CallerIdentity = Depends(current_caller),
    ) -> Dict[str, Any]:
        with _domain_errors():
            revoked = lifecycle.revoke(body.token_id, caller, body.reason)
        return {
            "tokenId": revoked.token_id,
            "status": revoked.status.value,
            "newlyRevoked": revoked.newly_revoked,
        }

    @router.post("/revoke/bulk")
    def bulk_revoke(
            body: BulkRevokeRequest,
            caller: CallerIdentity = Depends(current_caller),
    ) -> Dict[str, Any]:
        with _domain_errors():
            summary = lifecycle.bulk_revoke(body.token_ids, caller, body.reason)
        return {"status": "completed", **summary.as_dict()}

    return router
