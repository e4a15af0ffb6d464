"""HTTP client for the FreeAgent API.

Handles bearer authentication with token refresh, content negotiation,
the X-Api-Version header, rate limiting, retries with backoff, pagination
and a short-lived cache of GET responses.
"""

import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import date
from typing import Any
from urllib.parse import urlsplit

import requests

from freeagent import __version__
from freeagent.api.auth import OAuthClient, TokenSet, base_url_for
from freeagent.api.codec import decode, encode, media_type
from freeagent.api.errors import AuthenticationError, FreeAgentError, error_from_response
from freeagent.api.pagination import (
    DEFAULT_PER_PAGE,
    Page,
    parse_link_header,
    parse_total_count,
    validate_per_page,
)
from freeagent.api.ratelimit import RateLimiter, parse_retry_after
from freeagent.dates import format_date

logger = logging.getLogger(__name__)

USER_AGENT = f"freeagent-cli/{__version__}"

IDEMPOTENT_METHODS = frozenset({"GET", "PUT", "DELETE"})


@dataclass
class ClientSettings:
    """Resolved settings for one FreeAgent account."""

    client_id: str
    client_secrets: list[str]
    profile: str = "default"
    sandbox: bool = False
    api_version: date | None = None
    format: str = "json"
    per_page: int = DEFAULT_PER_PAGE
    redirect_uri: str = "urn:ietf:wg:oauth:2.0:oob"
    refresh_token: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def base_url(self) -> str:
        return base_url_for(self.sandbox)


@dataclass
class CachedResponse:
    body: Any
    headers: dict[str, str]
    expires_at: float


class FreeAgentClient:
    """Client for the FreeAgent REST API.

    Example:
        ```python
        client = FreeAgentClient(settings, tokens=load_tokens("default"))
        for invoice in client.paginate("invoices", "invoices", params={"view": "open"}):
            print(invoice["reference"])
        ```

    Args:
        settings: Account settings.
        tokens: Current tokens. If None, a refresh token from settings is used.
        session: HTTP session, injectable for tests.
        oauth: OAuth client used for token refresh.
        rate_limiter: Shared rate limiter.
        sleep: Sleep function used between retries.
        clock: Monotonic clock used for cache expiry.
        on_token_refresh: Called with new tokens after every refresh.
        cache_ttl: Seconds to keep GET responses. 0 disables the cache.
        max_retries: Retries for 429, 5xx and connection failures.
    """

    CACHE_TTL = 300
    MAX_RETRIES = 3
    INITIAL_RETRY_DELAY = 1.0
    MAX_RETRY_DELAY = 30.0
    REQUEST_TIMEOUT = 30.0

    def __init__(
        self,
        settings: ClientSettings,
        tokens: TokenSet | None = None,
        session: requests.Session | None = None,
        oauth: OAuthClient | None = None,
        rate_limiter: RateLimiter | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        on_token_refresh: Callable[[TokenSet], None] | None = None,
        cache_ttl: float | None = None,
        max_retries: int | None = None,
    ) -> None:
        media_type(settings.format)
        validate_per_page(settings.per_page)

        self.settings = settings
        self.base_url = settings.base_url
        self.tokens = tokens
        self.session = session or requests.Session()
        self.rate_limiter = rate_limiter or RateLimiter(sleep=sleep)
        self.oauth = oauth or OAuthClient(
            settings.client_id,
            settings.client_secrets,
            sandbox=settings.sandbox,
            session=self.session,
            rate_limiter=self.rate_limiter,
        )
        self.on_token_refresh = on_token_refresh
        self.cache_ttl = self.CACHE_TTL if cache_ttl is None else cache_ttl
        self.max_retries = self.MAX_RETRIES if max_retries is None else max_retries
        self._sleep = sleep
        self._clock = clock
        self._cache: dict[tuple[str, tuple[tuple[str, str], ...]], CachedResponse] = {}

    # =========================================================================
    # Authentication
    # =========================================================================

    def refresh_tokens(self) -> TokenSet:
        """Refresh the access token and notify ``on_token_refresh``.

        Raises:
            AuthenticationError: If no refresh token is available.
            TokenError: If the token endpoint refuses the refresh.
        """
        refresh_token = (self.tokens.refresh_token if self.tokens else None) or self.settings.refresh_token
        if not refresh_token:
            raise AuthenticationError(f"No refresh token for profile '{self.settings.profile}'. Run 'freeagent login'.")

        self.tokens = self.oauth.refresh(refresh_token)
        if self.on_token_refresh is not None:
            self.on_token_refresh(self.tokens)
        return self.tokens

    def _access_token(self) -> str:
        if self.tokens is None or self.tokens.is_expired():
            self.refresh_tokens()
        assert self.tokens is not None
        return self.tokens.access_token

    # =========================================================================
    # Requests
    # =========================================================================

    def url_for(self, path: str) -> str:
        """Resolve a path like ``invoices/12`` against the API base URL."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self, has_body: bool) -> dict[str, str]:
        mime = media_type(self.settings.format)
        headers = {
            "Accept": mime,
            "User-Agent": USER_AGENT,
            "Authorization": f"Bearer {self._access_token()}",
        }
        if has_body:
            headers["Content-Type"] = mime
        if self.settings.api_version is not None:
            headers["X-Api-Version"] = format_date(self.settings.api_version)
        return headers

    def _backoff_delay(self, attempt: int) -> float:
        return min(self.INITIAL_RETRY_DELAY * (2**attempt), self.MAX_RETRY_DELAY)

    def _send(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        body: str | None = None,
    ) -> requests.Response:
        method = method.upper()
        attempt = 0
        refreshed = False

        while True:
            headers = self._headers(body is not None)
            self.rate_limiter.acquire()
            logger.debug("%s %s params=%s", method, url, params)

            try:
                response = self.session.request(
                    method, url, params=params, data=body, headers=headers, timeout=self.REQUEST_TIMEOUT
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                if method not in IDEMPOTENT_METHODS or attempt >= self.max_retries:
                    raise FreeAgentError(f"Connection to FreeAgent failed: {e}") from e
                delay = self._backoff_delay(attempt)
                logger.warning("Connection error on %s %s, retrying in %.1fs: %s", method, url, delay, e)
                self._sleep(delay)
                attempt += 1
                continue

            status = response.status_code

            if status == 401 and not refreshed:
                logger.info("Access token rejected, refreshing")
                self.refresh_tokens()
                refreshed = True
                continue

            if status == 429 and attempt < self.max_retries:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                delay = retry_after if retry_after is not None else self._backoff_delay(attempt)
                logger.warning("Rate limited on %s %s, waiting %.1fs", method, url, delay)
                self._sleep(delay)
                attempt += 1
                continue

            if status >= 500 and method in IDEMPOTENT_METHODS and attempt < self.max_retries:
                delay = self._backoff_delay(attempt)
                logger.warning("Server error %d on %s %s, retrying in %.1fs", status, method, url, delay)
                self._sleep(delay)
                attempt += 1
                continue

            if not response.ok:
                raise error_from_response(response)

            return response

    def _decode(self, response: requests.Response) -> Any:
        if response.status_code == 204:
            return None
        return decode(response.text, self.settings.format)

    @staticmethod
    def _cache_key(url: str, params: dict[str, Any] | None) -> tuple[str, tuple[tuple[str, str], ...]]:
        items = tuple(sorted((str(k), str(v)) for k, v in (params or {}).items()))
        return url, items

    def _collection_path(self, url: str) -> str:
        path = urlsplit(url).path
        base_path = urlsplit(self.base_url).path.rstrip("/")
        relative = path[len(base_path) :] if path.startswith(base_path) else path
        segment = relative.strip("/").split("/", 1)[0]
        return f"{base_path}/{segment}"

    def invalidate(self, path: str | None = None) -> None:
        """Drop cached GET responses for a collection, or all of them.

        Keys are matched on their URL path, so pages fetched through absolute
        ``next`` links carrying their own query string are dropped as well.
        """
        if path is None:
            self._cache.clear()
            return
        prefix = self._collection_path(self.url_for(path))
        stale = []
        for key in self._cache:
            key_path = urlsplit(key[0]).path
            if key_path == prefix or key_path.startswith(prefix + "/"):
                stale.append(key)
        for key in stale:
            del self._cache[key]

    def _get_with_headers(self, path: str, params: dict[str, Any] | None = None) -> tuple[Any, dict[str, str]]:
        url = self.url_for(path)
        key = self._cache_key(url, params)

        if self.cache_ttl > 0:
            cached = self._cache.get(key)
            if cached is not None and cached.expires_at > self._clock():
                logger.debug("Cache hit for %s", url)
                return cached.body, cached.headers

        response = self._send("GET", url, params=params)
        body = self._decode(response)
        headers = {name: response.headers[name] for name in ("Link", "X-Total-Count") if name in response.headers}

        if self.cache_ttl > 0:
            self._cache[key] = CachedResponse(body, headers, self._clock() + self.cache_ttl)
        return body, headers

    def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded body.

        Writes invalidate cached responses for the collection they touch.

        Raises:
            FreeAgentError: Or one of its subclasses on failure.
        """
        method = method.upper()
        if method == "GET":
            body, _ = self._get_with_headers(path, params)
            return body

        data = encode(payload, self.settings.format) if payload is not None else None
        response = self._send(method, self.url_for(path), params=params, body=data)
        self.invalidate(path)
        return self._decode(response)

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, payload: dict[str, Any] | None = None, params: dict[str, Any] | None = None) -> Any:
        return self.request("POST", path, params=params, payload=payload)

    def put(self, path: str, payload: dict[str, Any] | None = None, params: dict[str, Any] | None = None) -> Any:
        return self.request("PUT", path, params=params, payload=payload)

    def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self.request("DELETE", path, params=params)

    # =========================================================================
    # Pagination
    # =========================================================================

    def get_page(
        self,
        path: str,
        key: str,
        params: dict[str, Any] | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> Page:
        """Fetch one page of a list endpoint.

        Args:
            path: Collection path or an absolute ``next`` link.
            key: Root key holding the items, e.g. ``invoices``.
            params: Extra query parameters.
            page: Page number, starting at 1.
            per_page: Page size, 1..100.
        """
        query = dict(params or {})
        if page is not None:
            if page < 1:
                raise ValueError(f"page must be at least 1, got {page}")
            query["page"] = page
        if per_page is not None:
            query["per_page"] = validate_per_page(per_page)

        body, headers = self._get_with_headers(path, query or None)
        items = body.get(key, []) if isinstance(body, dict) else []
        if items is None:
            items = []
        return Page(
            items=list(items),
            links=parse_link_header(headers.get("Link")),
            total_count=parse_total_count(headers.get("X-Total-Count")),
        )

    def paginate(
        self,
        path: str,
        key: str,
        params: dict[str, Any] | None = None,
        per_page: int | None = None,
        limit: int | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Yield items across pages by following ``next`` links.

        Args:
            path: Collection path.
            key: Root key holding the items.
            params: Filters such as ``view`` or ``updated_since``.
            per_page: Page size, defaults to the configured size.
            limit: Stop after this many items.
        """
        if limit is not None and limit <= 0:
            return

        size = per_page if per_page is not None else self.settings.per_page
        page = self.get_page(path, key, params=params, per_page=size)
        yielded = 0

        while True:
            for item in page.items:
                yield item
                yielded += 1
                if limit is not None and yielded >= limit:
                    return
            if not page.next_url:
                return
            page = self.get_page(page.next_url, key)
