"""
Client for the external auth service (GoTrue-compatible REST API).
"""

import logging
import os
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

AUTH_URL = os.getenv("AUTH_URL", "http://localhost:54321").strip()
AUTH_ANON_KEY = os.getenv("AUTH_ANON_KEY", "").strip()
AUTH_TIMEOUT_S = float(os.getenv("AUTH_TIMEOUT_S", "10"))


class AuthError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthProvider:
    def __init__(
        self,
        base_url: str = AUTH_URL,
        api_key: str = AUTH_ANON_KEY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = f"{base_url.rstrip('/')}/auth/v1"
        self.api_key = api_key
        self._transport = transport

    async def _call(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict] = None,
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        try:
            async with httpx.AsyncClient(
                timeout=AUTH_TIMEOUT_S, transport=self._transport
            ) as client:
                r = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=headers,
                    json=json,
                    params=params,
                )
        except httpx.HTTPError as e:
            logger.error(f"Auth provider unreachable: {e}")
            raise AuthError("Authentication service is unavailable") from e

        if r.is_error:
            try:
                body = r.json()
            except ValueError:
                body = {}
            message = (
                body.get("error_description")
                or body.get("msg")
                or body.get("message")
                or body.get("error")
                or f"{r.status_code} {r.reason_phrase}"
            )
            logger.warning(f"Auth provider rejected {method} {path}: {message}")
            raise AuthError(str(message), status_code=r.status_code)

        if not r.content:
            return {}
        return r.json()

    async def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        return await self._call(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )

    async def sign_in_with_id_token(
        self, provider: str, id_token: str, access_token: Optional[str] = None
    ) -> Dict[str, Any]:
        payload = {"provider": provider, "id_token": id_token}
        if access_token:
            payload["access_token"] = access_token
        return await self._call(
            "POST", "/token", params={"grant_type": "id_token"}, json=payload
        )

    async def refresh_session(self, refresh_token: str) -> Dict[str, Any]:
        return await self._call(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )

    async def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        return await self._call(
            "POST", "/signup", json={"email": email, "password": password}
        )

    async def sign_out(self, access_token: str) -> None:
        await self._call("POST", "/logout", access_token=access_token)

    async def get_user(self, access_token: str) -> Dict[str, Any]:
        return await self._call("GET", "/user", access_token=access_token)

    async def update_user(
        self, access_token: str, data: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._call(
            "PUT", "/user", json={"data": data}, access_token=access_token
        )
