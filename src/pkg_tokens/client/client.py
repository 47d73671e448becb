from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

DEFAULT_PREFIX = "/jwt/custom"


class TokenServiceHTTPError(RuntimeError):
    """Non-2xx answer from the token service."""

    def __init__(self, status_code: int, body: Any) -> None:
        super().__init__(f"Token service returned {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class TokenServiceClient:
    """
    Minimal async client for the token lifecycle HTTP surface.

    - generate is anonymous
    - every other call presents `Authorization: Bearer <token>`
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        *,
        prefix: str = DEFAULT_PREFIX,
        timeout: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._prefix = prefix
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "TokenServiceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------ #
    # base helpers
    # ------------------------------------------------------------------ #

    def _url(self, path: str) -> str:
        return f"{self._base_url}{self._prefix}{path}"

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    async def _post(
        self,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> Any:
        headers = self._auth_headers(token) if token else {"Content-Type": "application/json"}
        resp = await self._client.post(self._url(path), json=json or {}, headers=headers)
        if resp.is_error:
            try:
                body = resp.json()
            except ValueError:
                body = resp.text
            raise TokenServiceHTTPError(resp.status_code, body)
        return resp.json()

    # ------------------------------------------------------------------ #
    # lifecycle operations
    # ------------------------------------------------------------------ #

    async def generate(
        self,
        name: str,
        claims: Dict[str, Any],
        expiration_in_minutes: int,
        *,
        audience: Union[str, List[str], None] = None,
        set_cookie: bool = False,
    ) -> dict[str, Any]:
        payload: Dict[str, Any] = {
            "JWTName": name,
            "content": claims,
            "expirationInMinutes": expiration_in_minutes,
            "setCookie": set_cookie,
        }
        if audience is not None:
            payload["audience"] = audience
        return await self._post("/generate", json=payload)

    async def list_mine(self, token: str, **filters: Any) -> list[dict[str, Any]]:
        return await self._post("/list/me", json=filters, token=token)

    async def extend(self, token: str, token_id: str, extension_in_minutes: int) -> dict[str, Any]:
        return await self._post(
            "/extend",
            json={"tokenId": token_id, "extensionInMinutes": extension_in_minutes},
            token=token,
        )

    async def revoke(self, token: str, token_id: str, reason: Optional[str] = None) -> dict[str, Any]:
        payload: Dict[str, Any] = {"tokenId": token_id}
        if reason:
            payload["reason"] = reason
        return await self._post("/revoke", json=payload, token=token)

    async def bulk_revoke(
        self,
        token: str,
        token_ids: Sequence[str],
        reason: Optional[str] = None,
    ) -> dict[str, Any]:
        payload: Dict[str, Any] = {"tokenIds": list(token_ids)}
        if reason:
            payload["reason"] = reason
        return await self._post("/revoke/bulk", json=payload, token=token)

    @staticmethod
    def _validate_body(token: str, audience: Optional[str]) -> Dict[str, Any]:
        body: Dict[str, Any] = {"token": token}
        if audience is not None:
            body["audience"] = audience
        return body

    async def validate(self, token: str, audience: Optional[str] = None) -> dict[str, Any]:
        """Validation result body; never raises for an invalid token."""
        resp = await self._client.post(self._url("/validate"), json=self._validate_body(token, audience))
        if resp.status_code not in (200, 401):
            raise TokenServiceHTTPError(resp.status_code, resp.text)
        return resp.json()

    async def validate_boolean(self, token: str, audience: Optional[str] = None) -> bool:
        resp = await self._client.post(
            self._url("/validate/boolean"), json=self._validate_body(token, audience),
        )
        if resp.status_code not in (200, 401):
            raise TokenServiceHTTPError(resp.status_code, resp.text)
        return resp.text.strip() == "true"
