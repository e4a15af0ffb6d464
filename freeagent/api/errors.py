"""Exceptions raised by the FreeAgent client."""

import json
import xml.etree.ElementTree as ET
from typing import Any

import requests

from freeagent.api.ratelimit import parse_retry_after


class ConfigError(Exception):
    """Raised when client configuration is missing or invalid."""


class FreeAgentError(Exception):
    """Base exception for FreeAgent API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: requests.Response | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class AuthenticationError(FreeAgentError):
    """Raised when the access token is rejected (401)."""


class ForbiddenError(FreeAgentError):
    """Raised when the user lacks the access level for a resource (403)."""


class NotFoundError(FreeAgentError):
    """Raised when a resource does not exist (404)."""


class ValidationError(FreeAgentError):
    """Raised when the server rejects a payload (422)."""

    def __init__(
        self,
        message: str,
        messages: list[str],
        status_code: int | None = 422,
        response: requests.Response | None = None,
    ) -> None:
        super().__init__(message, status_code, response)
        self.messages = messages


class RateLimitError(FreeAgentError):
    """Raised when rate limited (429) and retries are exhausted."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        status_code: int | None = 429,
        response: requests.Response | None = None,
    ) -> None:
        super().__init__(message, status_code, response)
        self.retry_after = retry_after


class ServerError(FreeAgentError):
    """Raised when the server returns a 5xx error."""


class TokenError(FreeAgentError):
    """Raised when the OAuth token endpoint refuses a request."""

    def __init__(
        self,
        error: str,
        description: str | None = None,
        status_code: int | None = None,
        response: requests.Response | None = None,
    ) -> None:
        message = f"{error} - {description}" if description else error
        super().__init__(message, status_code, response)
        self.error = error
        self.description = description


def _messages_from_error_node(node: Any) -> list[str]:
    if isinstance(node, list):
        messages: list[str] = []
        for item in node:
            messages.extend(_messages_from_error_node(item))
        return messages
    if isinstance(node, dict):
        message = node.get("message")
        return [str(message)] if message is not None else []
    if isinstance(node, str):
        return [node]
    return []


def extract_error_messages(body: str) -> list[str]:
    """Extract ``errors.error.message`` values from a JSON or XML error body.

    ``errors.error`` may hold a single object or a list of them. Bodies that
    cannot be parsed are returned as a single raw message.

    Args:
        body: Response text.

    Returns:
        List of error messages, possibly empty for an empty body.
    """
    text = body.strip()
    if not text:
        return []

    if text.startswith("<"):
        try:
            root = ET.fromstring(text)
        except ET.ParseError:
            return [text]
        messages = [el.text.strip() for el in root.iter("message") if el.text and el.text.strip()]
        return messages or [text]

    try:
        data = json.loads(text)
    except ValueError:
        return [text]

    if isinstance(data, dict):
        errors = data.get("errors")
        if isinstance(errors, dict):
            messages = _messages_from_error_node(errors.get("error"))
            if messages:
                return messages
        elif isinstance(errors, list):
            messages = _messages_from_error_node(errors)
            if messages:
                return messages
    return [text]


def error_from_response(response: requests.Response) -> FreeAgentError:
    """Map an unsuccessful response to the matching exception.

    Args:
        response: Non-2xx HTTP response.

    Returns:
        Exception instance for the caller to raise.
    """
    status = response.status_code
    messages = extract_error_messages(response.text or "")
    detail = "; ".join(messages) if messages else f"HTTP {status}"
    url = response.request.url if response.request is not None else response.url

    if status == 401:
        return AuthenticationError(f"Authentication failed: {detail}", status, response)
    if status == 403:
        return ForbiddenError(f"Access forbidden for {url}: {detail}", status, response)
    if status == 404:
        return NotFoundError(f"Resource not found: {url}", status, response)
    if status == 422:
        return ValidationError(f"Validation failed: {detail}", messages, status, response)
    if status == 429:
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        return RateLimitError(f"Rate limited: {detail}", retry_after, status, response)
    if status >= 500:
        return ServerError(f"Server error ({status}): {detail}", status, response)
    return FreeAgentError(f"API error ({status}): {detail}", status, response)
