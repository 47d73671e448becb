from __future__ import annotations

from fastapi import APIRouter

from .deps import FastAPITokenAuth
from .router import create_token_router
from ..common.guard import AuthorizationGuard
from ..common.lifecycle_factory import TokenLifecycle, create_token_lifecycle
from ...admin.settings import TokenServiceSettings


def create_fastapi_tokens(
    settings: TokenServiceSettings,
    *,
    lifecycle: TokenLifecycle | None = None,
    prefix: str = "/jwt/custom",
) -> APIRouter:
    """
    High-level helper for FastAPI apps:

    - Creates the TokenLifecycle from settings (unless one is given)
    - Wraps its guard in FastAPITokenAuth
    - Returns a router ready for `app.include_router(...)`
    """
    lifecycle = lifecycle or create_token_lifecycle(settings)
    auth = FastAPITokenAuth(
        guard=AuthorizationGuard(lifecycle=lifecycle),
        verbose_errors=settings.verbose_auth_errors,
    )
    return create_token_router(lifecycle, auth, prefix=prefix)


__all__ = ["FastAPITokenAuth", "create_fastapi_tokens", "create_token_router"]
