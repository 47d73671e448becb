from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Optional

from ...domain.exceptions import (
    MalformedTokenError,
    NotFoundError,
    SignatureInvalidError,
    TokenExpiredError,
    TokenRevokedError,
)
from ...domain.entities import ValidationResult
from ...domain.ports import TokenStore
from .authorize import AuthorizeTokenUseCase


@dataclass(slots=True)
class ValidateTokenUseCase:
    """
    Non-raising variant of authorization for callers that only want to know
    whether a token is currently good, and why not.
    """

    authorize_use_case: AuthorizeTokenUseCase
    store: TokenStore

    def execute(self, token: str, audience: Optional[str] = None) -> ValidationResult:
        """
        When `audience` is given, the token must have been issued for it.
        """
        try:
            caller = self.authorize_use_case.execute(token)
        except MalformedTokenError:
            return ValidationResult(valid=False, status="invalid", reason="malformed")
        except SignatureInvalidError:
            return ValidationResult(valid=False, status="invalid", reason="bad_signature")
        except NotFoundError:
            return ValidationResult(valid=False, status="invalid", reason="unknown_token")
        except TokenRevokedError:
            return ValidationResult(valid=False, status="revoked", reason="revoked")
        except TokenExpiredError:
            return ValidationResult(valid=False, status="expired", reason="expired")

        record = self.store.get(caller.token_id)
        if audience is not None and audience not in record.audience:
            return ValidationResult(valid=False, status="invalid", reason="audience_mismatch")

        return ValidationResult(
            valid=True,
            status="active",
            owner_id=caller.owner_id,
            token_id=caller.token_id,
            claims=copy.deepcopy(record.claims),
            audience=list(record.audience),
            expires_at=record.expires_at,
        )
