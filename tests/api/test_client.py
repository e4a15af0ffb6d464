"""Tests for freeagent.api.client."""

import json
from datetime import date, datetime, timedelta, timezone

import pytest
import requests

from freeagent.api.auth import TokenSet
from freeagent.api.client import ClientSettings, FreeAgentClient
from freeagent.api.errors import (
    AuthenticationError,
    FreeAgentError,
    NotFoundError,
    RateLimitError,
    ServerError,
    ValidationError,
)
from freeagent.api.ratelimit import RateLimiter

TOKEN_RESPONSE = {"access_token": "access-2", "token_type": "bearer", "expires_in": 3600, "refresh_token": "refresh-2"}


class TestHeaders:
    """Tests for request headers."""

    def test_sends_bearer_token_and_json_accept(self, client, adapter) -> None:
        """Should authenticate and negotiate JSON by default."""
        adapter.add("GET", "/v2/company", json_body={"company": {"name": "Acme"}})

        assert client.get("company") == {"company": {"name": "Acme"}}

        request = adapter.requests[0]
        assert request.url == "https://api.freeagent.com/v2/company"
        assert request.headers["Authorization"] == "Bearer access-1"
        assert request.headers["Accept"] == "application/json"
        assert request.headers["User-Agent"].startswith("freeagent-cli/")
        assert "X-Api-Version" not in request.headers
        assert "Content-Type" not in request.headers

    def test_sends_api_version_header(self, settings, tokens, session, adapter) -> None:
        """Should send X-Api-Version as a date when configured."""
        settings.api_version = date(2024, 6, 1)
        client = FreeAgentClient(settings, tokens=tokens, session=session)
        adapter.add("GET", "/v2/company", json_body={"company": {}})

        client.get("company")

        assert adapter.requests[0].headers["X-Api-Version"] == "2024-06-01"

    def test_sandbox_uses_sandbox_host(self, tokens, session, adapter) -> None:
        """Should talk to the sandbox host for sandbox profiles."""
        settings = ClientSettings(client_id="id", client_secrets=["s"], sandbox=True)
        client = FreeAgentClient(settings, tokens=tokens, session=session)
        adapter.add("GET", "/v2/users/me", json_body={"user": {}})

        client.get("users/me")

        assert adapter.requests[0].url == "https://api.sandbox.freeagent.com/v2/users/me"

    def test_xml_format(self, settings, tokens, session, adapter) -> None:
        """Should send and decode XML bodies when configured for XML."""
        settings.format = "xml"
        client = FreeAgentClient(settings, tokens=tokens, session=session)
        adapter.add(
            "POST",
            "/v2/projects",
            status=201,
            text='<?xml version="1.0" encoding="UTF-8"?><freeagent><project><name>Site</name>'
            '<budget type="decimal">10.5</budget></project></freeagent>',
        )

        result = client.post("projects", {"project": {"name": "Site"}})

        request = adapter.requests[0]
        assert request.headers["Accept"] == "application/xml"
        assert request.headers["Content-Type"] == "application/xml"
        assert "<freeagent><project><name>Site</name></project></freeagent>" in request.body
        assert str(result["project"]["budget"]) == "10.5"

    def test_json_body_on_write(self, client, adapter) -> None:
        """Should encode payloads as JSON with a Content-Type."""
        adapter.add("POST", "/v2/contacts", status=201, json_body={"contact": {"first_name": "Ada"}})

        client.post("contacts", {"contact": {"first_name": "Ada"}})

        request = adapter.requests[0]
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.body) == {"contact": {"first_name": "Ada"}}

    def test_unsupported_format_rejected(self, tokens, session) -> None:
        """Should refuse formats other than json and xml."""
        settings = ClientSettings(client_id="id", client_secrets=["s"], format="yaml")
        with pytest.raises(ValueError):
            FreeAgentClient(settings, tokens=tokens, session=session)


class TestTokenRefresh:
    """Tests for access token refresh."""

    def test_refreshes_on_401_and_retries(self, client, adapter) -> None:
        """Should refresh once after a 401 and replay the request."""
        refreshed = []
        client.on_token_refresh = refreshed.append
        adapter.add("GET", "/v2/company", status=401, json_body={"errors": {"error": {"message": "expired"}}})
        adapter.add("POST", "/v2/token_endpoint", json_body=TOKEN_RESPONSE)
        adapter.add("GET", "/v2/company", json_body={"company": {"name": "Acme"}})

        assert client.get("company")["company"]["name"] == "Acme"

        assert adapter.requests[-1].headers["Authorization"] == "Bearer access-2"
        assert [t.access_token for t in refreshed] == ["access-2"]
        assert client.tokens.refresh_token == "refresh-2"

    def test_second_401_raises(self, client, adapter) -> None:
        """Should not loop when the refreshed token is also rejected."""
        adapter.add("GET", "/v2/company", status=401)
        adapter.add("POST", "/v2/token_endpoint", json_body=TOKEN_RESPONSE)
        adapter.add("GET", "/v2/company", status=401)

        with pytest.raises(AuthenticationError):
            client.get("company")

    def test_refreshes_expired_token_before_request(self, settings, session, adapter) -> None:
        """Should refresh up front when the stored token has expired."""
        expired = TokenSet("old", "refresh-1", datetime.now(timezone.utc) - timedelta(minutes=5))
        client = FreeAgentClient(settings, tokens=expired, session=session)
        adapter.add("POST", "/v2/token_endpoint", json_body=TOKEN_RESPONSE)
        adapter.add("GET", "/v2/company", json_body={"company": {}})

        client.get("company")

        assert "token_endpoint" in adapter.requests[0].url
        assert adapter.requests[1].headers["Authorization"] == "Bearer access-2"

    def test_uses_settings_refresh_token_without_stored_tokens(self, settings, session, adapter) -> None:
        """Should bootstrap from the configured refresh token."""
        client = FreeAgentClient(settings, tokens=None, session=session)
        adapter.add("POST", "/v2/token_endpoint", json_body=TOKEN_RESPONSE)
        adapter.add("GET", "/v2/company", json_body={"company": {}})

        client.get("company")

        assert "refresh_token=refresh-1" in adapter.requests[0].body

    def test_no_refresh_token_raises(self, session) -> None:
        """Should explain that login is needed when there is nothing to refresh with."""
        client = FreeAgentClient(ClientSettings(client_id="id", client_secrets=["s"]), session=session)

        with pytest.raises(AuthenticationError, match="freeagent login"):
            client.get("company")


class TestRetries:
    """Tests for rate limit and server error handling."""

    def test_waits_retry_after_on_429(self, client, adapter, sleeps) -> None:
        """Should honour Retry-After before retrying."""
        adapter.add("GET", "/v2/invoices", status=429, headers={"Retry-After": "7"})
        adapter.add("GET", "/v2/invoices", json_body={"invoices": []})

        assert client.get("invoices") == {"invoices": []}
        assert sleeps == [7.0]

    def test_429_without_retry_after_backs_off(self, client, adapter, sleeps) -> None:
        """Should fall back to exponential backoff."""
        adapter.add("GET", "/v2/invoices", status=429)
        adapter.add("GET", "/v2/invoices", status=429)
        adapter.add("GET", "/v2/invoices", json_body={"invoices": []})

        client.get("invoices")

        assert sleeps == [1.0, 2.0]

    def test_429_exhausted_raises(self, client, adapter) -> None:
        """Should raise RateLimitError once retries run out."""
        for _ in range(client.max_retries + 1):
            adapter.add("GET", "/v2/invoices", status=429, headers={"Retry-After": "30"})

        with pytest.raises(RateLimitError) as exc_info:
            client.get("invoices")

        assert exc_info.value.retry_after == 30.0
        assert exc_info.value.status_code == 429

    def test_retries_server_errors_on_get(self, client, adapter, sleeps) -> None:
        """Should retry idempotent requests after 5xx."""
        adapter.add("GET", "/v2/company", status=502)
        adapter.add("GET", "/v2/company", status=503)
        adapter.add("GET", "/v2/company", json_body={"company": {}})

        client.get("company")

        assert sleeps == [1.0, 2.0]

    def test_does_not_retry_post_on_server_error(self, client, adapter, sleeps) -> None:
        """Should not repeat a create that may have been applied."""
        adapter.add("POST", "/v2/invoices", status=500, text="boom")

        with pytest.raises(ServerError):
            client.post("invoices", {"invoice": {}})

        assert sleeps == []
        assert len(adapter.requests) == 1

    def test_retries_connection_errors_on_get(self, client, adapter, sleeps) -> None:
        """Should back off and retry a GET whose connection failed."""
        adapter.add("GET", "/v2/company", error=requests.ConnectionError("connection reset"))
        adapter.add("GET", "/v2/company", error=requests.Timeout("read timed out"))
        adapter.add("GET", "/v2/company", json_body={"company": {"name": "Acme"}})

        assert client.get("company")["company"]["name"] == "Acme"
        assert sleeps == [1.0, 2.0]

    def test_connection_errors_exhausted_raise(self, client, adapter, sleeps) -> None:
        for _ in range(client.max_retries + 1):
            adapter.add("GET", "/v2/company", error=requests.ConnectionError("connection refused"))

        with pytest.raises(FreeAgentError, match="Connection to FreeAgent failed"):
            client.get("company")

        assert sleeps == [1.0, 2.0, 4.0]

    def test_does_not_retry_post_on_connection_error(self, client, adapter, sleeps) -> None:
        """Should surface the failure rather than risk a duplicate create."""
        adapter.add("POST", "/v2/invoices", error=requests.ConnectionError("connection reset"))

        with pytest.raises(FreeAgentError, match="Connection to FreeAgent failed"):
            client.post("invoices", {"invoice": {}})

        assert sleeps == []
        assert len(adapter.requests) == 1

    def test_backoff_is_capped(self, client) -> None:
        """Should never wait longer than the maximum delay."""
        assert client._backoff_delay(10) == client.MAX_RETRY_DELAY


class TestErrors:
    """Tests for error mapping."""

    def test_not_found(self, client, adapter) -> None:
        adapter.add("GET", "/v2/invoices/999", status=404)

        with pytest.raises(NotFoundError):
            client.get("invoices/999")

    def test_validation_messages(self, client, adapter) -> None:
        """Should expose each errors.error.message."""
        adapter.add(
            "POST",
            "/v2/capital_assets",
            status=422,
            json_body={"errors": {"error": {"message": "Depreciation schedule is no longer supported"}}},
        )

        with pytest.raises(ValidationError) as exc_info:
            client.post("capital_assets", {"capital_asset": {}})

        assert exc_info.value.messages == ["Depreciation schedule is no longer supported"]

    def test_other_client_error(self, client, adapter) -> None:
        adapter.add("GET", "/v2/company", status=400, text="bad")

        with pytest.raises(FreeAgentError) as exc_info:
            client.get("company")

        assert exc_info.value.status_code == 400


class TestPagination:
    """Tests for get_page and paginate."""

    def test_get_page_reads_headers(self, client, adapter) -> None:
        """Should expose links and the total count."""
        adapter.add(
            "GET",
            "/v2/contacts",
            json_body={"contacts": [{"url": "https://api.freeagent.com/v2/contacts/1"}]},
            headers={
                "Link": "<https://api.freeagent.com/v2/contacts?page=2&per_page=1>; rel='next'",
                "X-Total-Count": "2",
            },
        )

        page = client.get_page("contacts", "contacts", per_page=1)

        assert len(page.items) == 1
        assert page.total_count == 2
        assert page.has_next
        assert "per_page=1" in adapter.requests[0].url

    def test_paginate_follows_next_links(self, client, adapter) -> None:
        """Should walk every page until there is no next link."""
        adapter.add(
            "GET",
            "/v2/invoices",
            json_body={"invoices": [{"reference": "001"}, {"reference": "002"}]},
            headers={"Link": "<https://api.freeagent.com/v2/invoices?page=2&per_page=2>; rel='next'"},
        )
        adapter.add("GET", "/v2/invoices", json_body={"invoices": [{"reference": "003"}]})

        refs = [invoice["reference"] for invoice in client.paginate("invoices", "invoices", per_page=2)]

        assert refs == ["001", "002", "003"]
        assert "page=2" in adapter.requests[1].url

    def test_paginate_respects_limit(self, client, adapter) -> None:
        """Should stop fetching once the limit is reached."""
        adapter.add(
            "GET",
            "/v2/invoices",
            json_body={"invoices": [{"reference": "001"}, {"reference": "002"}]},
            headers={"Link": "<https://api.freeagent.com/v2/invoices?page=2>; rel='next'"},
        )

        refs = [invoice["reference"] for invoice in client.paginate("invoices", "invoices", limit=1)]

        assert refs == ["001"]
        assert len(adapter.requests) == 1

    def test_rejects_oversized_pages(self, client) -> None:
        with pytest.raises(ValueError):
            client.get_page("invoices", "invoices", per_page=101)

    def test_rejects_page_zero(self, client) -> None:
        with pytest.raises(ValueError):
            client.get_page("invoices", "invoices", page=0)


class TestCache:
    """Tests for the GET response cache."""

    def test_repeated_get_is_cached(self, client, adapter) -> None:
        adapter.add("GET", "/v2/bank_accounts", json_body={"bank_accounts": []})

        client.get("bank_accounts")
        client.get("bank_accounts")

        assert len(adapter.requests) == 1

    def test_write_invalidates_collection(self, client, adapter) -> None:
        """Should refetch a collection after one of its records changes."""
        adapter.add("GET", "/v2/bank_accounts", json_body={"bank_accounts": []})
        adapter.add("PUT", "/v2/bank_accounts/5", json_body={"bank_account": {"name": "New"}})
        adapter.add("GET", "/v2/bank_accounts", json_body={"bank_accounts": [{"name": "New"}]})

        client.get("bank_accounts")
        client.put("bank_accounts/5", {"bank_account": {"name": "New"}})
        result = client.get("bank_accounts")

        assert result == {"bank_accounts": [{"name": "New"}]}

    def test_write_invalidates_pages_fetched_from_next_links(self, client, adapter) -> None:
        """Should drop later pages cached under absolute next links."""
        next_link = {"Link": "<https://api.freeagent.com/v2/invoices?page=2&per_page=1>; rel='next'"}
        adapter.add("GET", "/v2/invoices", json_body={"invoices": [{"reference": "001"}]}, headers=next_link)
        adapter.add("GET", "/v2/invoices", json_body={"invoices": [{"reference": "002"}]})
        adapter.add("PUT", "/v2/invoices/2", json_body={"invoice": {"reference": "002-EDITED"}})
        adapter.add("GET", "/v2/invoices", json_body={"invoices": [{"reference": "001"}]}, headers=next_link)
        adapter.add("GET", "/v2/invoices", json_body={"invoices": [{"reference": "002-EDITED"}]})

        list(client.paginate("invoices", "invoices", per_page=1))
        client.put("invoices/2", {"invoice": {"reference": "002-EDITED"}})
        refs = [invoice["reference"] for invoice in client.paginate("invoices", "invoices", per_page=1)]

        assert refs == ["001", "002-EDITED"]
        assert len(adapter.requests) == 5

    def test_write_leaves_other_collections_cached(self, client, adapter) -> None:
        adapter.add("GET", "/v2/contacts", json_body={"contacts": []})
        adapter.add("PUT", "/v2/invoices/2", json_body={"invoice": {}})

        client.get("contacts")
        client.put("invoices/2", {"invoice": {}})
        client.get("contacts")

        assert len(adapter.requests) == 2

    def test_cache_expires(self, settings, tokens, session, adapter) -> None:
        now = [0.0]
        client = FreeAgentClient(
            settings, tokens=tokens, session=session, clock=lambda: now[0], rate_limiter=RateLimiter()
        )
        adapter.add("GET", "/v2/company", json_body={"company": {}})
        adapter.add("GET", "/v2/company", json_body={"company": {}})

        client.get("company")
        now[0] = client.CACHE_TTL + 1
        client.get("company")

        assert len(adapter.requests) == 2

    def test_cache_can_be_disabled(self, settings, tokens, session, adapter) -> None:
        client = FreeAgentClient(settings, tokens=tokens, session=session, cache_ttl=0)
        adapter.add("GET", "/v2/company", json_body={"company": {}})
        adapter.add("GET", "/v2/company", json_body={"company": {}})

        client.get("company")
        client.get("company")

        assert len(adapter.requests) == 2


class TestLogging:
    """Tests for the client's log output."""

    def test_warns_while_rate_limited(self, client, adapter, caplog) -> None:
        adapter.add("GET", "/v2/invoices", status=429, headers={"Retry-After": "3"})
        adapter.add("GET", "/v2/invoices", json_body={"invoices": []})

        with caplog.at_level("DEBUG", logger="freeagent"):
            client.get("invoices")

        warnings = [r.getMessage() for r in caplog.records if r.levelname == "WARNING"]
        assert warnings == ["Rate limited on GET https://api.freeagent.com/v2/invoices, waiting 3.0s"]

    def test_warns_on_connection_retry(self, client, adapter, caplog) -> None:
        adapter.add("GET", "/v2/company", error=requests.ConnectionError("connection reset"))
        adapter.add("GET", "/v2/company", json_body={"company": {}})

        with caplog.at_level("DEBUG", logger="freeagent"):
            client.get("company")

        assert any(r.levelname == "WARNING" and "Connection error" in r.getMessage() for r in caplog.records)

    def test_never_logs_secrets_or_tokens(self, client, adapter, caplog) -> None:
        """Should keep credentials out of the log across a refresh and retry."""
        adapter.add("GET", "/v2/company", status=401)
        adapter.add("POST", "/v2/token_endpoint", json_body=TOKEN_RESPONSE)
        adapter.add("GET", "/v2/company", status=503)
        adapter.add("GET", "/v2/company", json_body={"company": {}})

        with caplog.at_level("DEBUG", logger="freeagent"):
            client.get("company")

        assert caplog.records
        for value in ("secret-1", "access-1", "refresh-1", "access-2", "refresh-2"):
            assert value not in caplog.text
