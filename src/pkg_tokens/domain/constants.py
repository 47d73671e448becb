from enum import Enum


class TokenStatus(Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


SIGNING_ALGORITHM = "HS256"

# Claims the service injects into every payload; callers may not supply them.
RESERVED_CLAIMS = frozenset({"jti", "iat", "exp", "iss", "aud"})

DEFAULT_ISSUER = "TIM"
DEFAULT_KEY_ID = "default"
DEFAULT_AUDIENCE = "tim-audience"
DEFAULT_JWT_NAME = "JWTTOKEN"
DEFAULT_EXPIRATION_MINUTES = 60
DEFAULT_MAX_EXPIRATION_MINUTES = 60 * 24 * 365
DEFAULT_CAS_MAX_ATTEMPTS = 5
DEFAULT_BULK_REVOKE_LIMIT = 100
