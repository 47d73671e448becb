from __future__ import annotations

from typing import Optional

from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..common.guard import extract_bearer_token

# Shared scheme so protected routes advertise bearer auth in OpenAPI
bearer_scheme = HTTPBearer(auto_error=False)


def extract_token_from_request(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = None,
) -> str:
    """
    Extract a bearer token from either:

      1. HTTPBearer credentials (preferred)
      2. The raw Authorization header

    Raises MissingCredentialError if no token is found.
    """
    # HTTPBearer already parsed the header
    if credentials is not None:
        token = (credentials.credentials or "").strip()
        if token:
            return token

    # apps that mount the dependency without bearer_scheme
    return extract_bearer_token(request.headers.get("Authorization"))
