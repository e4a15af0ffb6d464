"""FreeAgent API client layer.

This module re-exports the public client API for easy importing.
"""

from freeagent.api.auth import OAuthClient, TokenSet, generate_pkce_pair
from freeagent.api.client import ClientSettings, FreeAgentClient
from freeagent.api.errors import (
    AuthenticationError,
    ConfigError,
    ForbiddenError,
    FreeAgentError,
    NotFoundError,
    RateLimitError,
    ServerError,
    TokenError,
    ValidationError,
)
from freeagent.api.pagination import Page
from freeagent.api.ratelimit import RateLimiter
from freeagent.api.resources import REGISTRY, Collection, FreeAgent, get_spec

__all__ = [
    # Client
    "ClientSettings",
    "FreeAgent",
    "FreeAgentClient",
    "OAuthClient",
    "Page",
    "RateLimiter",
    "TokenSet",
    "generate_pkce_pair",
    # Resources
    "REGISTRY",
    "Collection",
    "get_spec",
    # Errors
    "AuthenticationError",
    "ConfigError",
    "ForbiddenError",
    "FreeAgentError",
    "NotFoundError",
    "RateLimitError",
    "ServerError",
    "TokenError",
    "ValidationError",
]
