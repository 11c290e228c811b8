"""Base async HTTP client with retry logic, timeouts, and error handling.

All remote gateways inherit from this class to get consistent behavior for
retries, timeouts, and error handling.
"""

import logging
from typing import Any, Self

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

# The request never reached the server
UNSENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)
RETRYABLE_ERRORS = (httpx.TimeoutException, httpx.ConnectError)


class HTTPClientError(Exception):
    """Base exception for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body

    @property
    def is_transport_error(self) -> bool:
        """True when no HTTP response was received, or the server failed."""
        return self.status_code is None or self.status_code >= 500


class HTTPClient:
    """Base async HTTP client with retry logic, timeouts, and error handling.

    Example usage:
        class OtpGateway(HTTPClient):
            def __init__(self):
                super().__init__(base_url="https://gateway.example.com", timeout=15.0)

            async def send(self, email: str) -> dict:
                return await self.post_json("/send-otp", json={"email": email})
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.default_headers = headers or {}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url or "",
                timeout=self.timeout,
                headers=self.default_headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        url: str,
        params: dict | None = None,
        json: dict | None = None,
        headers: dict | None = None,
        idempotent: bool | None = None,
    ) -> httpx.Response:
        """Make HTTP request, retrying timeouts and connection failures.

        Requests that are not idempotent are only retried when they never
        left the client; a read timeout may hide a request the server
        already processed. ``idempotent`` defaults from the method.

        Raises:
            HTTPClientError: On HTTP errors, timeouts, or connection failures
        """
        if idempotent is None:
            idempotent = method.upper() in IDEMPOTENT_METHODS
        retrying = retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(RETRYABLE_ERRORS if idempotent else UNSENT_ERRORS),
            reraise=True,
        )
        merged_headers = {**self.default_headers, **(headers or {})}

        async def send() -> httpx.Response:
            return await self.client.request(
                method=method,
                url=url,
                params=params,
                json=json,
                headers=merged_headers,
            )

        try:
            response = await retrying(send)()
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"HTTP {e.response.status_code} for {method} {url}: {e.response.text[:200]}"
            )
            raise HTTPClientError(
                message=f"HTTP {e.response.status_code}: {e.response.reason_phrase}",
                status_code=e.response.status_code,
                response_body=e.response.text,
            ) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout for {method} {url}")
            raise HTTPClientError(f"Request timed out: {url}") from e
        except httpx.TransportError as e:
            logger.warning(f"Connection error for {method} {url}: {e}")
            raise HTTPClientError(f"Connection failed: {url}") from e

    async def get(
        self,
        url: str,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """HTTP GET request."""
        return await self._request("GET", url, params=params, headers=headers)

    async def post(
        self,
        url: str,
        json: dict | None = None,
        params: dict | None = None,
        headers: dict | None = None,
        idempotent: bool = False,
    ) -> httpx.Response:
        """HTTP POST request."""
        return await self._request(
            "POST", url, params=params, json=json, headers=headers, idempotent=idempotent
        )

    async def put(
        self,
        url: str,
        json: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """HTTP PUT request."""
        return await self._request("PUT", url, json=json, headers=headers)

    async def get_json(self, url: str, params: dict | None = None, headers: dict | None = None) -> Any:
        """HTTP GET returning parsed JSON."""
        response = await self.get(url, params=params, headers=headers)
        return response.json()

    async def post_json(
        self,
        url: str,
        json: dict | None = None,
        params: dict | None = None,
        headers: dict | None = None,
        idempotent: bool = False,
    ) -> Any:
        """HTTP POST returning parsed JSON.

        Pass ``idempotent=True`` for read-only endpoints so that timeouts
        are retried as well.
        """
        response = await self.post(
            url, json=json, params=params, headers=headers, idempotent=idempotent
        )
        if not response.content:
            return None
        return response.json()
