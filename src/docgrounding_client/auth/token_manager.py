"""OAuth2 client-credentials token acquisition over mutual TLS."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from urllib.parse import urlencode

from loguru import logger

from ..credential import Credential
from ..errors import AuthError, ParseError, ValidationError
from ..transport import HttpTransport, TransportConfig


@dataclass
class AccessToken:
    """Bearer token with optional expiry tracking.

    ``expires_in`` is only known when the token endpoint reports it; without it
    the token never reports itself as expired.
    """

    value: str
    issued_at: datetime
    token_type: str = "Bearer"
    expires_in: Optional[int] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.expires_in is None:
            return None
        return self.issued_at + timedelta(seconds=self.expires_in)

    def is_expired(self, margin_seconds: int = 0) -> bool:
        """Check if token is expired (with optional margin)."""
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return datetime.now(timezone.utc) >= (expires_at - timedelta(seconds=margin_seconds))

    def to_header(self) -> str:
        """Get authorization header value."""
        return f"{self.token_type} {self.value}"

    def preview(self) -> str:
        return f"{self.value[:20]}..."


class TokenManager:
    """Exchanges the client credential for a bearer token."""

    def __init__(
        self,
        transport_config: Optional[TransportConfig] = None,
        transport_factory: Optional[Callable[[Credential], HttpTransport]] = None,
    ):
        """Initialize the token manager.

        Args:
            transport_config: Timeout and retry settings for the token request
            transport_factory: Builds the transport for a credential (tests inject fakes)
        """
        self.transport_config = transport_config or TransportConfig()
        self._transport_factory = transport_factory or (lambda credential: HttpTransport(credential, self.transport_config))
        self._token: Optional[AccessToken] = None

    def acquire(self, token_endpoint: str, client_id: str, credential: Credential) -> AccessToken:
        """Request a new access token with the client-credentials grant.

        Args:
            token_endpoint: OAuth2 token endpoint URL
            client_id: OAuth2 client id
            credential: Client certificate and key for mutual TLS

        Returns:
            The new access token, also cached on the manager

        Raises:
            ValidationError: If the endpoint or client id is empty
            AuthError: If the response carries no usable token
            NetworkError: If the endpoint cannot be reached
        """
        if not token_endpoint:
            raise ValidationError("Token endpoint is required")

        if not client_id:
            raise ValidationError("Client ID is required")

        logger.info("Requesting access token...")

        transport = self._transport_factory(credential)
        body = urlencode({"client_id": client_id, "grant_type": "client_credentials"}).encode("utf-8")
        response = transport.request(
            "POST",
            token_endpoint,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            data=body,
        )

        if not response.ok:
            raise AuthError(f"Token request failed with HTTP {response.status}", status_code=response.status, body=response.body)

        try:
            data = response.json()
        except ParseError as e:
            raise AuthError("Token response is not valid JSON", status_code=response.status, body=response.body) from e

        value = data.get("access_token") if isinstance(data, dict) else None
        if not value:
            raise AuthError("No access token in response", status_code=response.status, body=response.body)

        expires_in = data.get("expires_in")
        try:
            expires_in = int(expires_in) if expires_in is not None else None
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid expires_in: {expires_in!r}")
            expires_in = None

        self._token = AccessToken(
            value=value,
            issued_at=datetime.now(timezone.utc),
            token_type=data.get("token_type") or "Bearer",
            expires_in=expires_in,
        )

        logger.info(f"Access token obtained successfully: {self._token.preview()}")
        return self._token

    def current(self) -> Optional[AccessToken]:
        """Cached token, or None when missing or known to be expired."""
        if self._token is None or self._token.is_expired():
            return None
        return self._token

    def clear(self) -> None:
        self._token = None
