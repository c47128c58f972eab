"""Async REST client for the directory backend (aiohttp)."""

import asyncio
from typing import Any

import aiohttp

from config import settings
from utils.logger import logger


class ApiError(Exception):
    """Backend call failed (status 0 means no HTTP response)."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class NotAuthenticatedError(ApiError):
    """Authenticated call attempted without an API token."""

    def __init__(self):
        super().__init__(401, "Not authenticated")


class ApiClient:
    """JSON-over-HTTP client with optional bearer auth."""

    def __init__(self, base_url: str, token: str | None = None, timeout: int = 30):
        """
        Initialize client.

        Args:
            base_url: Backend root, e.g. http://localhost:5000
            token: Bearer token for write endpoints
            timeout: Total request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def request(
        self,
        method: str,
        endpoint: str,
        data: Any = None,
        require_auth: bool = False,
        params: dict | None = None,
    ) -> Any:
        """
        Send request and decode the JSON body.

        Args:
            method: HTTP method
            endpoint: Path starting with /api/
            data: JSON body (omitted when None)
            require_auth: Attach the bearer token
            params: Query string parameters

        Returns:
            Decoded JSON response

        Raises:
            NotAuthenticatedError: require_auth without a configured token
            ApiError: Non-2xx response, transport failure or invalid JSON
        """
        headers = {"Content-Type": "application/json"}
        if require_auth:
            if not self._token:
                raise NotAuthenticatedError()
            headers["Authorization"] = f"Bearer {self._token}"

        url = f"{self.base_url}{endpoint}"
        session = await self._get_session()
        logger.debug(f"[API] {method} {url}")

        try:
            async with session.request(method, url, json=data, headers=headers, params=params) as response:
                logger.debug(f"[API] {method} {url} -> {response.status} {response.reason}")
                if response.status >= 400:
                    raise ApiError(response.status, await self._error_message(response))
                if response.status == 204:
                    return None
                return await response.json(content_type=None)
        except ApiError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ApiError(0, f"Request to {endpoint} failed: {e or type(e).__name__}") from e
        except ValueError as e:
            raise ApiError(0, f"Invalid JSON from {endpoint}: {e}") from e

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        try:
            body = await response.json(content_type=None)
        except (aiohttp.ClientError, ValueError):
            body = None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return f"API error: {response.reason or response.status}"

    async def get(self, endpoint: str, require_auth: bool = False, params: dict | None = None) -> Any:
        return await self.request("GET", endpoint, require_auth=require_auth, params=params)

    async def post(self, endpoint: str, data: Any = None, require_auth: bool = False) -> Any:
        return await self.request("POST", endpoint, data, require_auth)

    async def put(self, endpoint: str, data: Any = None, require_auth: bool = False) -> Any:
        return await self.request("PUT", endpoint, data, require_auth)

    async def patch(self, endpoint: str, data: Any = None, require_auth: bool = False) -> Any:
        return await self.request("PATCH", endpoint, data, require_auth)

    async def delete(self, endpoint: str, require_auth: bool = False, params: dict | None = None) -> Any:
        return await self.request("DELETE", endpoint, require_auth=require_auth, params=params)


# Singleton instance
api = ApiClient(settings.api_url, settings.api_token, settings.api_timeout_seconds)
