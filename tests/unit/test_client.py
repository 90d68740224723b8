import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import aiohttp
import pytest
from yarl import URL

from envgod.client import EnvGodClient
from envgod.errors import (
    HTTPStatusError,
    InvalidResponseError,
    RequestTimeoutError,
    TransportError,
    UnauthorizedError,
)
from envgod.models import CacheEntry, EnvGodConfig, parse_expiry

API_URL = "http://api.envgod.test"
EXCHANGE_URL = f"{API_URL}/v1/auth/exchange"
BUNDLE_URL = f"{API_URL}/v1/bundle"


@pytest.fixture
def config():
    return EnvGodConfig(
        api_url=API_URL, api_key="test-api-key", project="test-proj", env="dev", service="api"
    )


def calls(mock, method, url):
    return mock.requests.get((method, URL(url)), [])


class TestExchangeToken:
    @pytest.mark.asyncio
    async def test_success_populates_entry(self, config, mock_api):
        expires = datetime.now(timezone.utc) + timedelta(minutes=5)
        mock_api.post(EXCHANGE_URL, payload={"token": "jwt-123", "expiresAt": expires.isoformat()})
        entry = CacheEntry()

        token = await EnvGodClient().exchange_token(config, "test-api-key", entry, timeout=1.0)

        assert token == "jwt-123"
        assert entry.token == "jwt-123"
        assert entry.token_expires_at == pytest.approx(expires.timestamp())

        (call,) = calls(mock_api, "POST", EXCHANGE_URL)
        assert call.kwargs["headers"]["Authorization"] == "Bearer test-api-key"
        assert call.kwargs["json"] == {"project": "test-proj", "env": "dev", "service": "api"}

    @pytest.mark.asyncio
    async def test_org_included_in_scope(self, config, mock_api):
        scoped = replace(config, org="acme")
        mock_api.post(EXCHANGE_URL, payload={"token": "t", "expiresAt": "2099-01-01T00:00:00Z"})

        await EnvGodClient().exchange_token(scoped, "k", CacheEntry())

        (call,) = calls(mock_api, "POST", EXCHANGE_URL)
        assert call.kwargs["json"]["org"] == "acme"

    @pytest.mark.asyncio
    async def test_failure_carries_status(self, config, mock_api):
        mock_api.post(EXCHANGE_URL, status=403, reason="Forbidden")
        entry = CacheEntry()

        with pytest.raises(HTTPStatusError, match="Auth exchange failed: 403") as exc:
            await EnvGodClient().exchange_token(config, "k", entry)

        assert exc.value.status == 403
        assert not isinstance(exc.value, UnauthorizedError)
        assert entry.token is None

    @pytest.mark.asyncio
    async def test_exchange_401_is_not_the_retry_signal(self, config, mock_api):
        mock_api.post(EXCHANGE_URL, status=401)
        with pytest.raises(HTTPStatusError) as exc:
            await EnvGodClient().exchange_token(config, "k", CacheEntry())
        assert not isinstance(exc.value, UnauthorizedError)

    @pytest.mark.asyncio
    async def test_timeout(self, config, mock_api):
        mock_api.post(EXCHANGE_URL, exception=asyncio.TimeoutError())
        with pytest.raises(RequestTimeoutError, match="timed out after 250ms"):
            await EnvGodClient().exchange_token(config, "k", CacheEntry(), timeout=0.25)

    @pytest.mark.asyncio
    async def test_missing_token(self, config, mock_api):
        mock_api.post(EXCHANGE_URL, payload={"expiresAt": "2099-01-01T00:00:00Z"})
        with pytest.raises(InvalidResponseError):
            await EnvGodClient().exchange_token(config, "k", CacheEntry())

    @pytest.mark.asyncio
    async def test_bad_expiry(self, config, mock_api):
        mock_api.post(EXCHANGE_URL, payload={"token": "t", "expiresAt": "tomorrow"})
        entry = CacheEntry()
        with pytest.raises(InvalidResponseError):
            await EnvGodClient().exchange_token(config, "k", entry)
        assert entry.token is None


class TestFetchBundle:
    @pytest.mark.asyncio
    async def test_success(self, config, mock_api):
        mock_api.get(BUNDLE_URL, payload={"values": {"SECRET_FOO": "bar", "PORT": 8080}})

        values = await EnvGodClient().fetch_bundle(config, "jwt-123")

        assert values == {"SECRET_FOO": "bar", "PORT": "8080"}
        (call,) = calls(mock_api, "GET", BUNDLE_URL)
        assert call.kwargs["headers"] == {"Authorization": "Bearer jwt-123"}

    @pytest.mark.asyncio
    async def test_json_scalars_rendered_as_json(self, config, mock_api):
        mock_api.get(BUNDLE_URL, payload={"values": {"DEBUG": True, "RATIO": 1.5, "EMPTY": ""}})

        values = await EnvGodClient().fetch_bundle(config, "t")

        assert values == {"DEBUG": "true", "RATIO": "1.5", "EMPTY": ""}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [None, {"nested": "x"}, ["a", "b"], "a\x00b"])
    async def test_invalid_value_rejected(self, config, mock_api, value):
        mock_api.get(BUNDLE_URL, payload={"values": {"OK": "1", "DB_PASSWORD": value}})

        with pytest.raises(InvalidResponseError, match="DB_PASSWORD"):
            await EnvGodClient().fetch_bundle(config, "t")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["BAD=KEY", "", "NUL\x00KEY"])
    async def test_invalid_name_rejected(self, config, mock_api, name):
        mock_api.get(BUNDLE_URL, payload={"values": {"FIRST": "1", name: "2", "LAST": "3"}})

        with pytest.raises(InvalidResponseError, match="invalid variable name"):
            await EnvGodClient().fetch_bundle(config, "t")

    @pytest.mark.asyncio
    async def test_401_is_unauthorized(self, config, mock_api):
        mock_api.get(BUNDLE_URL, status=401, payload={"error": "Unauthorized"})
        with pytest.raises(UnauthorizedError) as exc:
            await EnvGodClient().fetch_bundle(config, "expired")
        assert exc.value.status == 401

    @pytest.mark.asyncio
    async def test_other_status_is_generic(self, config, mock_api):
        mock_api.get(BUNDLE_URL, status=500, reason="Internal Server Error")
        with pytest.raises(HTTPStatusError, match="Fetch bundle failed: 500") as exc:
            await EnvGodClient().fetch_bundle(config, "t")
        assert not isinstance(exc.value, UnauthorizedError)

    @pytest.mark.asyncio
    async def test_missing_values(self, config, mock_api):
        mock_api.get(BUNDLE_URL, payload={"vals": {}})
        with pytest.raises(InvalidResponseError):
            await EnvGodClient().fetch_bundle(config, "t")

    @pytest.mark.asyncio
    async def test_invalid_json(self, config, mock_api):
        mock_api.get(BUNDLE_URL, body="not json", content_type="text/plain")
        with pytest.raises(InvalidResponseError):
            await EnvGodClient().fetch_bundle(config, "t")

    @pytest.mark.asyncio
    async def test_connection_error(self, config, mock_api):
        mock_api.get(BUNDLE_URL, exception=aiohttp.ClientConnectionError("refused"))
        with pytest.raises(TransportError):
            await EnvGodClient().fetch_bundle(config, "t")


class TestParseExpiry:
    def test_zulu_suffix(self):
        assert parse_expiry("2030-01-01T00:00:00.000Z") == datetime(2030, 1, 1, tzinfo=timezone.utc).timestamp()

    def test_offset(self):
        expected = datetime(2030, 1, 1, tzinfo=timezone.utc).timestamp()
        assert parse_expiry("2030-01-01T02:00:00+02:00") == expected

    def test_naive_is_utc(self):
        assert parse_expiry("2030-01-01T00:00:00") == datetime(2030, 1, 1, tzinfo=timezone.utc).timestamp()

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_invalid(self, value):
        with pytest.raises(InvalidResponseError):
            parse_expiry(value)
