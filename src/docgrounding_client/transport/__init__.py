"""HTTPS transport module with mutual TLS."""

from .http_transport import HttpResponse, HttpTransport, TransportConfig, build_mtls_context

__all__ = ["HttpTransport", "HttpResponse", "TransportConfig", "build_mtls_context"]
