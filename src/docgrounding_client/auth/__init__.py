"""OAuth2 token acquisition module."""

from ..config.settings import derive_token_endpoint
from .token_manager import AccessToken, TokenManager

__all__ = ["AccessToken", "TokenManager", "derive_token_endpoint"]
