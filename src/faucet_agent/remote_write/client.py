"""Remote write client and the metric sink built on it."""

import asyncio
import logging
from typing import Mapping, Optional
from urllib.parse import urlparse

import aiohttp

from .. import BIN_NAME, __version__
from ..errors import ConfigurationError, DeliveryError
from ..models.metrics import MetricFamilies
from .protocol import encode_write_request, families_to_write_request


logger = logging.getLogger(__name__)

REMOTE_WRITE_VERSION = "0.1.0"
MAX_ERROR_BODY_BYTES = 512


class RemoteWriteClient:
    """
    Sends compressed write requests to a Prometheus remote write endpoint.

    Use as an async context manager; the HTTP session lives for the
    lifetime of the context.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 15.0,
        user_agent: str = f"{BIN_NAME}/{__version__}",
    ):
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ConfigurationError(f"Invalid Prometheus remote write URI: {url!r}")
        if timeout_seconds <= 0:
            raise ConfigurationError("Remote write timeout must be positive")

        self.url = url
        self.timeout_seconds = timeout_seconds
        self.headers = {
            'Content-Encoding': 'snappy',
            'Content-Type': 'application/x-protobuf',
            'User-Agent': user_agent,
            'X-Prometheus-Remote-Write-Version': REMOTE_WRITE_VERSION,
        }
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers=self.headers,
            )

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    async def store(self, payload: bytes):
        """
        POST one compressed write request.

        Raises:
            DeliveryError: On transport failure, timeout or a non-2xx response
        """
        if not self.session:
            raise RuntimeError("Client not initialized. Use async context manager.")

        try:
            async with self.session.post(self.url, data=payload) as response:
                if 200 <= response.status < 300:
                    return

                body = await response.content.read(MAX_ERROR_BODY_BYTES)
                message = body.decode('utf-8', errors='replace').strip()
                recoverable = response.status >= 500 or response.status == 429
                raise DeliveryError(
                    f"server returned HTTP status {response.status}: {message}",
                    status=response.status,
                    recoverable=recoverable,
                )
        except asyncio.TimeoutError as e:
            raise DeliveryError(f"request timed out after {self.timeout_seconds}s") from e
        except aiohttp.ClientError as e:
            raise DeliveryError(f"request failed: {e}") from e


class MetricSink:
    """Builds, encodes and delivers one write request per call."""

    def __init__(self, client: RemoteWriteClient, extra_labels: Optional[Mapping[str, str]] = None):
        self.client = client
        self.extra_labels = dict(extra_labels or {})

    async def send(self, families: MetricFamilies):
        """
        Deliver the families as one write request; an empty mapping still
        produces a (empty) request.

        Raises:
            DeliveryError: If the request cannot be built or is not accepted
        """
        try:
            request = families_to_write_request(families, self.extra_labels)
            payload = encode_write_request(request)
        except Exception as e:
            raise DeliveryError(f"Unable to encode write request: {e}", recoverable=False) from e

        await self.client.store(payload)

        logger.debug(f"Sent write request with {len(request.timeseries)} series ({len(payload)} bytes)")
