"""Shared fixtures: a fake HTTP transport mounted on a real requests.Session."""

import json
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlsplit

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from freeagent.api.auth import TokenSet
from freeagent.api.client import ClientSettings, FreeAgentClient
from freeagent.api.ratelimit import RateLimiter


class FakeAdapter(BaseAdapter):
    """Serves queued responses and records every request it sees."""

    def __init__(self) -> None:
        super().__init__()
        self.routes: list[dict[str, Any]] = []
        self.requests: list[requests.PreparedRequest] = []

    def add(
        self,
        method: str,
        path: str,
        status: int = 200,
        json_body: Any = None,
        text: str | None = None,
        headers: dict[str, str] | None = None,
        error: Exception | None = None,
    ) -> None:
        """Queue a response for the next request whose URL path ends with ``path``.

        When ``error`` is given the matching request raises it instead.
        """
        if text is None:
            text = json.dumps(json_body) if json_body is not None else ""
        self.routes.append(
            {
                "method": method.upper(),
                "path": path,
                "status": status,
                "text": text,
                "headers": headers or {},
                "error": error,
            }
        )

    def send(self, request: requests.PreparedRequest, **kwargs: Any) -> requests.Response:
        self.requests.append(request)
        path = urlsplit(request.url).path
        for index, route in enumerate(self.routes):
            if route["method"] == request.method and path.endswith(route["path"]):
                del self.routes[index]
                if route["error"] is not None:
                    raise route["error"]
                return self._build(request, route)
        raise AssertionError(f"Unexpected request: {request.method} {request.url}")

    @staticmethod
    def _build(request: requests.PreparedRequest, route: dict[str, Any]) -> requests.Response:
        response = requests.Response()
        response.status_code = route["status"]
        response._content = route["text"].encode("utf-8")
        response.headers = CaseInsensitiveDict(route["headers"])
        response.encoding = "utf-8"
        response.url = request.url
        response.request = request
        return response

    def close(self) -> None:
        pass

    def api_requests(self) -> list[requests.PreparedRequest]:
        return [r for r in self.requests if "token_endpoint" not in r.url]


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def session(adapter: FakeAdapter) -> requests.Session:
    s = requests.Session()
    s.mount("https://", adapter)
    return s


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(client_id="client-id", client_secrets=["secret-1"], refresh_token="refresh-1")


@pytest.fixture
def tokens() -> TokenSet:
    return TokenSet(
        access_token="access-1",
        refresh_token="refresh-1",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def client(
    settings: ClientSettings, tokens: TokenSet, session: requests.Session, sleeps: list[float]
) -> FreeAgentClient:
    return FreeAgentClient(
        settings,
        tokens=tokens,
        session=session,
        rate_limiter=RateLimiter(sleep=sleeps.append),
        sleep=sleeps.append,
    )
