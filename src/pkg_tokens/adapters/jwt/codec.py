import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Sequence

import jwt
from jwt.exceptions import (
    DecodeError,
    InvalidAlgorithmError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidTokenError as JWTInvalidTokenError,
    MissingRequiredClaimError,
)

from ...domain.constants import SIGNING_ALGORITHM
from ...domain.entities import DecodedToken
from ...domain.exceptions import InvalidClaimsError, MalformedTokenError, SignatureInvalidError
from ...domain.ports import TokenCodec

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["sub", "jti", "iat", "exp"]


def to_epoch(value: datetime) -> int:
    return int(value.timestamp())


def from_epoch(value: int) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class JWTTokenCodec(TokenCodec):
    """
    Adapter implementing TokenCodec port using PyJWT with a service-wide HMAC key.

    Infrastructure layer:
    - Knows about JWT structure, signing and verification.
    - Knows nothing about the store: embedded `exp` is carried for clients but
      expiry is enforced by the lifecycle engine against the stored record.
    """

    def __init__(self, secret_key: str, issuer: str, key_id: str) -> None:
        self._secret_key = secret_key
        self._issuer = issuer
        self.key_id = key_id

    # ------------------------------------------------------------------ #
    # Port implementation
    # ------------------------------------------------------------------ #

    def encode(
        self,
        owner_id: str,
        claims: Mapping[str, Any],
        issued_at: datetime,
        expires_at: datetime,
        token_id: str,
        audience: Sequence[str] = (),
    ) -> str:
        payload: Dict[str, Any] = dict(claims)
        payload.update(
            {
                "sub": owner_id,
                "iss": self._issuer,
                "jti": token_id,
                "iat": to_epoch(issued_at),
                "exp": to_epoch(expires_at),
            }
        )
        if audience:
            payload["aud"] = list(audience)

        try:
            token = jwt.encode(
                payload,
                self._secret_key,
                algorithm=SIGNING_ALGORITHM,
                headers={"kid": self.key_id},
            )
        except (TypeError, ValueError) as exc:
            raise InvalidClaimsError(f"Failed to encode token: {exc}") from exc

        if isinstance(token, bytes):
            token = token.decode("utf-8")
        return token

    def decode(self, token: str) -> DecodedToken:
        """
        Decode and verify a token.

        Raises:
            MalformedTokenError
            SignatureInvalidError
        """
        if not isinstance(token, str) or not token.strip():
            raise MalformedTokenError("Token is empty")

        try:
            header = jwt.get_unverified_header(token)
        except (DecodeError, JWTInvalidTokenError) as exc:
            raise MalformedTokenError(f"Malformed token: {exc}") from exc

        if header.get("kid") != self.key_id:
            raise SignatureInvalidError("Token was not signed with a known key")

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[SIGNING_ALGORITHM],
                issuer=self._issuer,
                options={
                    "require": REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "verify_aud": False,
                },
            )
        # InvalidSignatureError subclasses DecodeError, so it must come first
        except (InvalidSignatureError, InvalidAlgorithmError) as exc:
            raise SignatureInvalidError(f"Invalid token signature: {exc}") from exc
        except InvalidIssuerError as exc:
            raise SignatureInvalidError("Token was not issued by this service") from exc
        except MissingRequiredClaimError as exc:
            raise MalformedTokenError(f"Malformed token: {exc}") from exc
        except (DecodeError, JWTInvalidTokenError) as exc:
            raise MalformedTokenError(f"Malformed token: {exc}") from exc

        for name in ("sub", "jti"):
            if not isinstance(payload.get(name), str) or not payload[name]:
                raise MalformedTokenError(f"Claim '{name}' must be a non-empty string")
        for name in ("iat", "exp"):
            if isinstance(payload.get(name), bool) or not isinstance(payload.get(name), int):
                raise MalformedTokenError(f"Claim '{name}' must be an integer timestamp")

        return DecodedToken(header=dict(header), payload=payload)
