"""Tests for UserRecord and HttpUserLookup."""

import json

import httpx
import pytest

from update_pipeline import HttpUserLookup, PipelineSettings, UserLookupError, UserRecord


def make_lookup(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpUserLookup("http://backend.test/", client=client)


def test_record_from_backend_payload():
    record = UserRecord.model_validate(
        {
            "id": "u1",
            "telegramId": "42",
            "firstName": "Ann",
            "role": "BLOGGER",
            "isActive": True,
            "balance": 150,
        }
    )
    assert record.telegram_id == "42"
    assert record.first_name == "Ann"
    assert record.is_active is True
    assert record.model_extra["balance"] == 150


def test_record_without_active_flag_is_inactive():
    assert UserRecord(id="u1").is_active is False


def test_record_coerces_numeric_ids():
    assert UserRecord.model_validate({"id": 7, "telegramId": 42}).telegram_id == "42"


def test_base_url_comes_from_settings(monkeypatch):
    monkeypatch.setenv("API_URL", "http://ignored:3001")
    settings = PipelineSettings(api_url="http://configured:3001/", lookup_timeout=2.0)
    lookup = HttpUserLookup.from_settings(settings, client=httpx.AsyncClient())
    assert lookup.base_url == "http://configured:3001/api"


def test_api_url_is_required():
    with pytest.raises(TypeError):
        HttpUserLookup(client=httpx.AsyncClient())


async def test_found_user():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"user": {"id": "u1", "telegramId": "42", "isActive": True}})

    user = await make_lookup(handler).find_user_by_identity("42")

    assert user.is_active
    assert seen["url"] == "http://backend.test/api/auth/telegram"
    assert seen["body"] == {"telegramId": "42", "firstName": "Check", "skipRegistration": True}


@pytest.mark.parametrize("status", [401, 404])
async def test_not_found_statuses(status):
    lookup = make_lookup(lambda request: httpx.Response(status))
    assert await lookup.find_user_by_identity("42") is None


async def test_missing_user_field():
    lookup = make_lookup(lambda request: httpx.Response(200, json={"token": "x"}))
    assert await lookup.find_user_by_identity("42") is None


async def test_server_error_raises():
    lookup = make_lookup(lambda request: httpx.Response(503))
    with pytest.raises(UserLookupError, match="HTTP 503"):
        await lookup.find_user_by_identity("42")


async def test_malformed_payload_raises():
    lookup = make_lookup(lambda request: httpx.Response(200, json={"user": {"isActive": True}}))
    with pytest.raises(UserLookupError, match="malformed"):
        await lookup.find_user_by_identity("42")


async def test_transport_error_propagates():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(httpx.ConnectError):
        await make_lookup(handler).find_user_by_identity("42")


async def test_injected_client_is_not_closed():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404)))
    async with HttpUserLookup("http://backend.test", client=client):
        pass
    assert not client.is_closed
    await client.aclose()


async def test_owned_client_is_closed():
    lookup = HttpUserLookup("http://backend.test")
    await lookup.aclose()
    assert lookup._client.is_closed
