"""HTTP client for the inventory API."""

import logging
from typing import Any, Protocol

import httpx

from stockbox.exceptions import ApiError, RateLimitedError

logger = logging.getLogger(__name__)


class ApiClient(Protocol):
    """What the import controller needs from the backend."""

    async def create(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Create one entity and return the decoded response body."""
        ...


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def error_message(response: httpx.Response) -> str:
    """Extract a readable error message from an error response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, list) and value:
                return "; ".join(str(item) for item in value)
    text = response.text.strip() if response.text else ""
    return text[:200] or response.reason_phrase or f"HTTP {response.status_code}"


class HttpApiClient:
    """ApiClient backed by httpx.AsyncClient.

    Usable as an async context manager; a client passed in by the caller is
    left open.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = headers

    async def create(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a payload to an endpoint.

        Raises:
            RateLimitedError: The API answered 429.
            ApiError: Any other error status or a transport failure.
        """
        try:
            response = await self._client.post(endpoint, json=payload, headers=self._headers)
        except httpx.HTTPError as e:
            raise ApiError(f"Request to {endpoint} failed: {e}") from e
        self._raise_for_status(response)

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            logger.warning("Non-JSON response from %s", endpoint)
            return {}
        return body if isinstance(body, dict) else {"data": body}

    async def list_entities(self, endpoint: str) -> list[dict[str, Any]]:
        """GET the records of an entity collection.

        The list may come bare or wrapped in an object under the
        collection's name ({"suppliers": [...]}), "data" or "items".

        Raises:
            RateLimitedError: The API answered 429.
            ApiError: Any other error status, a transport failure or a body
                holding no list.
        """
        try:
            response = await self._client.get(endpoint, headers=self._headers)
        except httpx.HTTPError as e:
            raise ApiError(f"Request to {endpoint} failed: {e}") from e
        self._raise_for_status(response)

        try:
            body = response.json()
        except ValueError as e:
            raise ApiError(f"Non-JSON response from {endpoint}") from e

        if isinstance(body, dict):
            collection = endpoint.rstrip("/").rsplit("/", 1)[-1]
            for key in (collection, "data", "items"):
                if isinstance(body.get(key), list):
                    body = body[key]
                    break
        if not isinstance(body, list):
            raise ApiError(f"No record list in response from {endpoint}")
        return [item for item in body if isinstance(item, dict)]

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code == 429:
            raise RateLimitedError(
                error_message(response),
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        if response.is_error:
            raise ApiError(error_message(response), status_code=response.status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
