"""
Backend Clients - Transport adapters for SLPDB and the REST indexer.

A client performs exactly one HTTP request per call and returns the
decoded JSON body verbatim. Failures surface as BackendError:
- aiohttp connection errors and timeouts
- HTTP status >= 400
- bodies that are not JSON

No retry is performed here.
"""

import asyncio
import base64
import json
import logging
import time
from datetime import datetime
from typing import Any, Optional

import aiohttp

from slp_data.config import SlpDataConfig
from slp_data.exceptions import BackendError
from slp_data.models import ClientHealth, ClientStatus


logger = logging.getLogger(__name__)


class BaseBackendClient:
    """
    Shared HTTP plumbing for backend clients.

    Features:
    - Lazily created (or injected) aiohttp session with a bounded timeout
    - Uniform error mapping to BackendError
    - Health tracking by consecutive failures
    """

    DEFAULT_TIMEOUT = 30.0
    DEGRADED_THRESHOLD = 3  # consecutive failures before degraded
    UNAVAILABLE_THRESHOLD = 5  # consecutive failures before unavailable

    name = "backend"

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

        self._health = ClientHealth(
            status=ClientStatus.UNKNOWN,
            last_check=datetime.utcnow(),
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": "slp-data/1.0",
        }

    async def _make_request(
        self,
        method: str,
        url: str,
        json_body: Optional[Any] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Make HTTP request and return the decoded JSON body."""
        session = await self._get_session()

        start_time = time.time()
        try:
            async with session.request(
                method,
                url,
                json=json_body,
                headers=headers,
                # Injected sessions carry their own timeout; bound every call.
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as response:
                latency_ms = (time.time() - start_time) * 1000

                if response.status >= 400:
                    body = await response.text()
                    raise BackendError(
                        message=f"HTTP {response.status}",
                        source_name=self.name,
                        status_code=response.status,
                        response_body=body[:1000],
                        request_url=url,
                    )

                try:
                    data = await response.json(content_type=None)
                except (json.JSONDecodeError, ValueError) as e:
                    raise BackendError(
                        message="Response body is not valid JSON",
                        source_name=self.name,
                        status_code=response.status,
                        request_url=url,
                        original_error=e,
                    )

                logger.debug(f"[{self.name}] {method} completed in {latency_ms:.1f}ms")
                self._on_success(latency_ms)
                return data

        except BackendError as e:
            self._on_error(e)
            raise
        except asyncio.TimeoutError as e:
            error = BackendError(
                message=f"Timed out after {self._timeout}s",
                source_name=self.name,
                request_url=url,
                original_error=e,
                context={"timeout": True},
            )
            self._on_error(error)
            raise error
        except aiohttp.ClientError as e:
            error = BackendError(
                message=f"Connection error: {e}",
                source_name=self.name,
                request_url=url,
                original_error=e,
            )
            self._on_error(error)
            raise error

    def _on_success(self, latency_ms: float) -> None:
        self._health.request_count += 1
        self._health.latency_ms = latency_ms
        self._health.consecutive_failures = 0
        self._health.last_check = datetime.utcnow()

        if self._health.status != ClientStatus.HEALTHY:
            if self._health.status != ClientStatus.UNKNOWN:
                logger.info(f"[{self.name}] Recovered to HEALTHY status")
            self._health.status = ClientStatus.HEALTHY

    def _on_error(self, error: BackendError) -> None:
        self._health.request_count += 1
        self._health.error_count += 1
        self._health.consecutive_failures += 1
        self._health.last_error = str(error)
        self._health.last_error_time = datetime.utcnow()
        self._health.last_check = self._health.last_error_time

        if self._health.consecutive_failures >= self.UNAVAILABLE_THRESHOLD:
            if self._health.status != ClientStatus.UNAVAILABLE:
                self._health.status = ClientStatus.UNAVAILABLE
                logger.error(
                    f"[{self.name}] Marked UNAVAILABLE after "
                    f"{self._health.consecutive_failures} failures"
                )
        elif self._health.consecutive_failures >= self.DEGRADED_THRESHOLD:
            if self._health.status != ClientStatus.DEGRADED:
                self._health.status = ClientStatus.DEGRADED
                logger.warning(
                    f"[{self.name}] Marked DEGRADED after "
                    f"{self._health.consecutive_failures} failures"
                )

    def get_health(self) -> ClientHealth:
        """Get current health status."""
        return self._health

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseBackendClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(url={self._base_url}, status={self._health.status.value})>"


class SlpdbClient(BaseBackendClient):
    """
    SLPDB query endpoint client.

    Queries travel base64-encoded in the URL path and are authenticated
    with HTTP Basic auth for private instances.
    """

    name = "slpdb"

    def __init__(
        self,
        base_url: str,
        password: str,
        username: str = "BITBOX",
        timeout: float = BaseBackendClient.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(base_url, timeout, session)
        self._username = username
        self._password = password

    @classmethod
    def from_config(
        cls,
        config: SlpDataConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> "SlpdbClient":
        return cls(
            base_url=config.slpdb_url,
            password=config.slpdb_pass,
            username=config.slpdb_user,
            timeout=config.slpdb_timeout,
            session=session,
        )

    @staticmethod
    def encode_query(query: dict[str, Any]) -> str:
        """Compact JSON, then base64."""
        query_string = json.dumps(query, separators=(",", ":"))
        return base64.b64encode(query_string.encode("utf-8")).decode("ascii")

    def query_url(self, query: dict[str, Any]) -> str:
        return f"{self._base_url}q/{self.encode_query(query)}"

    def auth_header(self) -> dict[str, str]:
        combined = f"{self._username}:{self._password}"
        credential = base64.b64encode(combined.encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {credential}"}

    async def execute(self, query: dict[str, Any]) -> dict[str, Any]:
        """
        Run one query document.

        Returns:
            Decoded body keyed by collection letter (c, u, t, g)
        """
        return await self._make_request(
            "GET",
            self.query_url(query),
            headers=self.auth_header(),
        )


class IndexerClient(BaseBackendClient):
    """Plain JSON REST indexer client."""

    name = "slp_indexer"

    @classmethod
    def from_config(
        cls,
        config: SlpDataConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> "IndexerClient":
        return cls(
            base_url=config.slp_indexer_url,
            timeout=config.indexer_timeout,
            session=session,
        )

    async def get(self, path: str) -> Any:
        return await self._make_request("GET", f"{self._base_url}{path}")

    async def post(self, path: str, body: Any) -> Any:
        return await self._make_request("POST", f"{self._base_url}{path}", json_body=body)
