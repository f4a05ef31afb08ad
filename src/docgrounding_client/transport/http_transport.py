"""HTTPS transport with mutual TLS for the token and pipeline endpoints.

Every request presents the client certificate and key. Transport failures are
raised as ``NetworkError`` and retried with exponential backoff; HTTP error
statuses are returned to the caller for classification and never retried.
"""

from __future__ import annotations

import json
import ssl
import time
from dataclasses import dataclass, field
from http.client import HTTPException
from typing import Any, Callable, Dict, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from loguru import logger

from ..credential import Credential
from ..errors import NetworkError, ParseError, ValidationError

USER_AGENT = "DocGrounding-Client/1.0.0"


@dataclass
class TransportConfig:
    """Configuration for the HTTP transport."""

    timeout_seconds: float = 30.0  # Request timeout
    max_retries: int = 3  # Additional attempts after a network failure
    retry_backoff_base: float = 1.0  # Base backoff delay
    retry_backoff_max: float = 30.0  # Maximum backoff delay


@dataclass
class HttpResponse:
    """Status and raw body of an HTTP exchange."""

    status: int
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            ParseError: If the body is not valid JSON
        """
        try:
            return json.loads(self.body)
        except ValueError as e:
            raise ParseError(f"Response body is not valid JSON: {self.body[:200]!r}") from e


def build_mtls_context(credential: Credential) -> ssl.SSLContext:
    """Create an SSL context presenting the client certificate and key."""
    context = ssl.create_default_context()
    try:
        context.load_cert_chain(certfile=str(credential.cert_path), keyfile=str(credential.key_path))
    except (ssl.SSLError, OSError) as e:
        raise ValidationError(f"Failed to load client certificate {credential.cert_path}: {e}") from e
    return context


class HttpTransport:
    """Synchronous HTTPS client with mutual TLS and bounded retries."""

    def __init__(
        self,
        credential: Credential,
        config: Optional[TransportConfig] = None,
        context_factory: Callable[[Credential], ssl.SSLContext] = build_mtls_context,
    ):
        """Initialize the transport.

        Args:
            credential: Client certificate and key presented on every request
            config: Timeout and retry settings
            context_factory: Builds the SSL context from the credential
        """
        self.credential = credential
        self.config = config or TransportConfig()
        self._context_factory = context_factory
        self._context: Optional[ssl.SSLContext] = None

    def request(self, method: str, url: str, headers: Optional[Dict[str, str]] = None, data: Optional[bytes] = None) -> HttpResponse:
        """Send a request, retrying only on transport failures.

        Args:
            method: HTTP method
            url: Absolute URL
            headers: Extra request headers
            data: Encoded request body

        Returns:
            HttpResponse for any HTTP status, including 4xx and 5xx

        Raises:
            NetworkError: If every attempt failed at the transport level
        """
        last_error: Optional[NetworkError] = None

        for attempt in range(self.config.max_retries + 1):
            try:
                return self._send_request(method, url, headers or {}, data)

            except NetworkError as e:
                last_error = e

                if attempt < self.config.max_retries:
                    delay = min(self.config.retry_backoff_base * (2**attempt), self.config.retry_backoff_max)
                    logger.warning(f"{method} {url} attempt {attempt + 1} failed: {e}. Retrying in {delay:.1f}s...")
                    time.sleep(delay)

        raise NetworkError(f"Failed after {self.config.max_retries + 1} attempts: {last_error}") from last_error

    def _ssl_context(self) -> ssl.SSLContext:
        if self._context is None:
            self._context = self._context_factory(self.credential)
        return self._context

    def _send_request(self, method: str, url: str, headers: Dict[str, str], data: Optional[bytes]) -> HttpResponse:
        """Send a single HTTP request."""
        req = Request(url, data=data, method=method, headers={"User-Agent": USER_AGENT, **headers})
        context = self._ssl_context()

        try:
            with urlopen(req, timeout=self.config.timeout_seconds, context=context) as response:
                body = response.read().decode("utf-8", errors="replace")
                logger.debug(f"{method} {url} -> {response.status}")
                return HttpResponse(status=response.status, body=body, headers=dict(response.headers.items()))

        except HTTPError as e:
            # Non-2xx statuses are classified by the caller
            body = e.read().decode("utf-8", errors="replace") if e.fp is not None else ""
            logger.debug(f"{method} {url} -> {e.code}")
            return HttpResponse(status=e.code, body=body, headers=dict(e.headers.items()) if e.headers else {})

        except URLError as e:
            raise NetworkError(f"Network error: {e.reason}") from e

        except (OSError, HTTPException) as e:
            # TLS handshake failures, timeouts and dropped connections
            raise NetworkError(f"Network error: {e}") from e
