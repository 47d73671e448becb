from .client import TokenServiceClient, TokenServiceHTTPError

__all__ = ["TokenServiceClient", "TokenServiceHTTPError"]
