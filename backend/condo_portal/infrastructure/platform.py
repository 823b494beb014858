from __future__ import annotations

import logging
import uuid
from typing import Any, Optional, Sequence

import httpx

from ..domain.repositories import AuthAdmin, BlobStorage

logger = logging.getLogger(__name__)

USER_PAGE_SIZE = 1000


class PlatformError(Exception):
    """The hosted platform answered with an error or could not be reached."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PlatformNotFoundError(PlatformError):
    pass


class PlatformConflictError(PlatformError):
    pass


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return response.text


class PlatformClient(AuthAdmin, BlobStorage):
    """
    Thin async client for the hosted platform's admin auth and storage REST APIs.
    Every call uses the service key except `change_own_password`, which acts as the user.
    """

    def __init__(
        self,
        *,
        base_url: str,
        service_key: str,
        bucket: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.bucket = bucket
        self._service_key = service_key
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"apikey": service_key},
        )

    async def __aenter__(self) -> "PlatformClient":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        token: str | None = None,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        request_headers = {"Authorization": f"Bearer {token or self._service_key}"}
        if headers:
            request_headers.update(headers)
        try:
            response = await self._client.request(
                method,
                url,
                json=json,
                content=content,
                headers=request_headers,
                params=params,
            )
        except httpx.HTTPError as exc:
            logger.error("platform %s %s failed: %s", method, url, exc)
            raise PlatformError("platform unreachable") from exc

        if response.is_success:
            return response
        message = _error_message(response)
        logger.warning("platform %s %s -> %s: %s", method, url, response.status_code, message)
        lowered = message.lower()
        if response.status_code == 404 or "not found" in lowered:
            raise PlatformNotFoundError(message, status_code=response.status_code)
        if response.status_code == 409 or "already" in lowered:
            raise PlatformConflictError(message, status_code=response.status_code)
        raise PlatformError(message, status_code=response.status_code)

    # auth admin

    async def create_user(self, *, email: str, password: str) -> uuid.UUID:
        response = await self._request(
            "POST",
            "/auth/v1/admin/users",
            json={"email": email, "password": password, "email_confirm": True},
        )
        body = response.json()
        user = body.get("user", body)
        try:
            return uuid.UUID(str(user["id"]))
        except (KeyError, ValueError) as exc:
            raise PlatformError("user creation returned no id") from exc

    async def delete_user(self, user_id: uuid.UUID) -> None:
        await self._request("DELETE", f"/auth/v1/admin/users/{user_id}")

    async def set_user_password(self, user_id: uuid.UUID, password: str) -> None:
        await self._request("PUT", f"/auth/v1/admin/users/{user_id}", json={"password": password})

    async def get_user_emails(self, user_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, str]:
        wanted = set(user_ids)
        if not wanted:
            return {}
        response = await self._request(
            "GET",
            "/auth/v1/admin/users",
            params={"page": 1, "per_page": USER_PAGE_SIZE},
        )
        emails: dict[uuid.UUID, str] = {}
        for user in response.json().get("users", []):
            try:
                user_id = uuid.UUID(str(user.get("id")))
            except ValueError:
                continue
            if user_id in wanted and user.get("email"):
                emails[user_id] = user["email"]
        return emails

    async def change_own_password(self, access_token: str, password: str) -> None:
        await self._request("PUT", "/auth/v1/user", token=access_token, json={"password": password})

    # storage

    def _object_url(self, path: str) -> str:
        return f"/storage/v1/object/{self.bucket}/{path.lstrip('/')}"

    async def upload(self, path: str, content: bytes, *, content_type: str) -> None:
        await self._request(
            "POST",
            self._object_url(path),
            content=content,
            headers={"Content-Type": content_type, "x-upsert": "false", "cache-control": "3600"},
        )

    async def download(self, path: str) -> bytes:
        response = await self._request("GET", self._object_url(path))
        return response.content

    async def remove(self, paths: Sequence[str]) -> None:
        if not paths:
            return
        await self._request("DELETE", f"/storage/v1/object/{self.bucket}", json={"prefixes": list(paths)})
