"""Base HTTP client with rate limiting and retry handling."""

import asyncio
import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List
import logging

import aiohttp

from ..core.errors import MarketDataError

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 300


def excerpt(text: str, length: int = EXCERPT_LENGTH) -> str:
    """Truncate a response body for inclusion in an error message."""
    return text[:length]


@dataclass
class RateLimitConfig:
    """Rate limiting configuration."""

    requests_per_minute: int = 30
    backoff_factor: float = 1.5
    max_wait: float = 5.0


@dataclass
class APIClientConfig:
    """Configuration for HTTP clients."""

    base_url: str
    api_key: Optional[str] = None
    timeout: int = 15
    max_retries: int = 1
    retry_delay: float = 1.0
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class APIResponse:
    """Raw response body with status and timing metadata."""

    text: str
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    response_time: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_success(self) -> bool:
        """Check if response was successful."""
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            MarketDataError: If the body is not valid JSON
        """
        try:
            return json.loads(self.text)
        except ValueError as e:
            raise MarketDataError(f"Parse error: {e}\nResponse: {excerpt(self.text)}") from e


class RateLimiter:
    """Sliding one-minute window rate limiter."""

    def __init__(self, config: RateLimitConfig):
        """Initialize rate limiter.

        Args:
            config: Rate limiting configuration
        """
        self.config = config
        self._request_times: List[float] = []
        self._lock = asyncio.Lock()

    async def acquire(self) -> bool:
        """Acquire permission to make a request.

        Returns:
            True if request is allowed, False if rate limited
        """
        async with self._lock:
            now = time.time()

            minute_ago = now - 60
            self._request_times = [t for t in self._request_times if t > minute_ago]

            if len(self._request_times) >= self.config.requests_per_minute:
                return False

            self._request_times.append(now)
            return True

    async def wait_if_needed(self) -> float:
        """Wait for a free slot in the window and claim it.

        Returns:
            Time waited in seconds

        Raises:
            MarketDataError: If the next slot opens later than ``max_wait``
        """
        waited = 0.0
        while not await self.acquire():
            oldest_request = min(self._request_times) if self._request_times else time.time()
            wait_time = max(0.01, 60 - (time.time() - oldest_request))

            if waited + wait_time > self.config.max_wait:
                raise MarketDataError(f"Rate limited, next request allowed in {wait_time:.0f}s")

            logger.info(f"Rate limited, waiting {wait_time:.2f} seconds")
            await asyncio.sleep(wait_time)
            waited += wait_time

        return waited


class BaseAPIClient:
    """Shared session, rate limiting and retry loop for the HTTP clients."""

    def __init__(self, config: APIClientConfig, name: str):
        """Initialize API client.

        Args:
            config: API client configuration
            name: Short name used in log messages
        """
        self.config = config
        self.name = name
        self.rate_limiter = RateLimiter(config.rate_limit)
        self._session: Optional[aiohttp.ClientSession] = None
        self._request_count = 0

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def start(self):
        """Start the client session."""
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers=self.config.headers
            )
            logger.debug(f"Started {self.name} client")

    async def stop(self):
        """Stop the client session."""
        if self._session:
            await self._session.close()
            self._session = None
            logger.debug(f"Stopped {self.name} client")

    def _get_auth_params(self) -> Dict[str, str]:
        """Get query parameters that authenticate a request."""
        return {}

    async def _make_request(self, method: str, endpoint: str,
                            params: Optional[Dict[str, Any]] = None,
                            headers: Optional[Dict[str, str]] = None,
                            data: Optional[str] = None) -> APIResponse:
        """Make HTTP request with rate limiting and retries.

        Only transport failures are retried; any HTTP status is returned to the
        caller, which decides what counts as an error.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: Path relative to the base URL
            params: Query parameters
            headers: Additional headers
            data: Request body

        Returns:
            APIResponse with body text and metadata

        Raises:
            MarketDataError: If every attempt failed at the transport level
        """
        if not self._session:
            await self.start()

        await self.rate_limiter.wait_if_needed()

        url = f"{self.config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        request_params = dict(params or {})
        if self.config.api_key:
            request_params.update(self._get_auth_params())

        start_time = time.time()
        last_exception: Optional[Exception] = None

        for attempt in range(self.config.max_retries + 1):
            try:
                async with self._session.request(
                    method=method,
                    url=url,
                    params=request_params or None,
                    headers=headers,
                    data=data
                ) as response:
                    text = await response.text()
                    response_time = time.time() - start_time
                    self._request_count += 1

                    logger.debug(f"{method} {url} -> {response.status} ({response_time:.3f}s)")

                    return APIResponse(
                        text=text,
                        status_code=response.status,
                        headers=dict(response.headers),
                        response_time=response_time
                    )

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                logger.warning(f"{self.name} request attempt {attempt + 1} failed: {e!r}")

                if attempt < self.config.max_retries:
                    delay = self.config.retry_delay * (self.config.rate_limit.backoff_factor ** attempt)
                    await asyncio.sleep(delay)

        reason = str(last_exception) or type(last_exception).__name__
        raise MarketDataError(f"Network error: {reason}")

    async def _get_json(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET an endpoint and decode its JSON body.

        Raises:
            MarketDataError: On transport failure, non-2xx status or bad JSON
        """
        response = await self._make_request("GET", endpoint, params=params)
        if not response.is_success:
            raise MarketDataError(
                f"{self.name} HTTP {response.status_code}: {excerpt(response.text)}")
        return response.json()

    def get_stats(self) -> Dict[str, Any]:
        """Get client statistics.

        Returns:
            Dictionary with client statistics
        """
        return {
            'name': self.name,
            'request_count': self._request_count,
            'base_url': self.config.base_url,
            'has_api_key': bool(self.config.api_key),
        }
