"""Base API client with common functionality."""

import asyncio
import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .constants import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    HTTP_FORBIDDEN,
    HTTP_NOT_FOUND,
    HTTP_TOO_MANY_REQUESTS,
    HTTP_UNAUTHORIZED,
)
from .errors import AuthRequired, NotFound, PlatformError, RateLimited
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class BaseAPIClient:
    """
    Base class for API clients with common request handling.

    Requests run on a worker thread so the blocking ``requests`` session does
    not stall the event loop; the rate limiter is awaited first. Error
    statuses are turned into the PlatformError subclasses.
    """

    service_name = "API"
    platform = ""
    rate_key = ""

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        headers: Optional[dict] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        max_retries: int = 3,
    ):
        """Initialize API client with an optional access token."""
        self.access_token = access_token
        self.base_url = base_url
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self.session = requests.Session()

        # Retry 429s with backoff; the last 429 is returned so it maps to RateLimited
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[HTTP_TOO_MANY_REQUESTS],
            allowed_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        default_headers = {}
        if access_token:
            default_headers["Authorization"] = f"Bearer {access_token}"
        if headers:
            default_headers.update(headers)

        self.session.headers.update(default_headers)

    async def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Wait for a rate limit slot, then send the request off the event loop."""
        if self.rate_limiter is not None and self.rate_key:
            await self.rate_limiter.acquire(self.rate_key)
        return await asyncio.to_thread(self._send, method, url, **kwargs)

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{self.service_name} request failed: {e}")
            raise PlatformError(f"{self.service_name} request failed: {e}", platform=self.platform) from e

        self._raise_for_status(response)
        return response

    def _raise_for_status(self, response: requests.Response) -> None:
        """Map error responses onto the platform error types."""
        status = response.status_code
        if status < 400:
            return

        if status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
            logger.error(f"{self.service_name} authentication failed (HTTP {status})")
            logger.error(f"{self.service_name} access token is missing, invalid or expired")
            raise AuthRequired(
                f"{self.service_name} authentication failed (HTTP {status})",
                platform=self.platform,
                status_code=status,
            )
        if status == HTTP_NOT_FOUND:
            raise NotFound(f"{self.service_name} resource not found", platform=self.platform, status_code=status)
        if status == HTTP_TOO_MANY_REQUESTS:
            logger.warning(f"{self.service_name} rate limit exceeded")
            raise RateLimited(f"{self.service_name} rate limit exceeded", platform=self.platform, status_code=status)

        logger.error(f"{self.service_name} API error: {status}")
        logger.debug(f"Response: {response.text}")
        raise PlatformError(f"{self.service_name} API error: HTTP {status}", platform=self.platform, status_code=status)

    def close(self) -> None:
        self.session.close()
