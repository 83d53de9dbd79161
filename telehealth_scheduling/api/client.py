"""Async HTTP client for the telehealth backend."""

import logging
from typing import Any, Callable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from telehealth_scheduling.config import get_settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Backend request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class ApiConnectionError(ApiError):
    """Could not reach the backend."""

    pass


class ApiTimeoutError(ApiConnectionError):
    """Backend did not answer in time."""

    pass


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


class ApiClient:
    """Thin wrapper over ``httpx.AsyncClient``.

    Transport failures on GET are retried with exponential backoff;
    writes are sent exactly once.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        backoff_multiplier: float = 0.5,
    ):
        """Initialize API client.

        Args:
            base_url: Backend base URL (default from settings)
            timeout: Request timeout in seconds
            max_retries: Max attempts for GET requests
            token_provider: Returns the current bearer token, if any
            transport: Custom httpx transport (used in tests)
            backoff_multiplier: Base seconds for exponential retry backoff
        """
        settings = get_settings()
        self.base_url = (base_url or settings.api_root).rstrip("/")
        self.timeout = timeout or settings.api_timeout
        self.max_retries = max_retries or settings.api_max_retries
        self.token_provider = token_provider
        self.backoff_multiplier = backoff_multiplier

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
        )

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token_provider and self.token_provider())

    def _headers(self, authenticated: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if authenticated and self.token_provider:
            token = self.token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        authenticated: bool = True,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers=self._headers(authenticated),
            )
        except httpx.TimeoutException as e:
            raise ApiTimeoutError(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            raise ApiConnectionError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise ApiError(message, status_code=response.status_code, payload=response.text)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"{method} {path} returned invalid JSON", response.status_code) from e

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET with retry on connection errors and timeouts."""
        clean = {k: v for k, v in (params or {}).items() if v is not None}
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(ApiConnectionError),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff_multiplier, max=5),
            reraise=True,
        ):
            with attempt:
                return await self._send("GET", path, params=clean)

    async def post(self, path: str, json: Any = None, authenticated: bool = True) -> Any:
        return await self._send("POST", path, json=json, authenticated=authenticated)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self._send("PUT", path, json=json)

    async def delete(self, path: str, json: Any = None) -> Any:
        return await self._send("DELETE", path, json=json)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
