"""
HTTP-level tests for the PostgREST client.
"""

import json
import re

import httpx
import pytest

from rescue_timeline.services.supabase import client as client_module
from rescue_timeline.services.supabase.client import (
    SupabaseClient,
    SupabaseError,
    format_supabase_error,
)

BASE_URL = "https://example.supabase.co"
REST_URL = f"{BASE_URL}/rest/v1"


@pytest.fixture
def supabase():
    return SupabaseClient(BASE_URL, "anon-key")


@pytest.fixture
def no_backoff(monkeypatch):
    monkeypatch.setattr(client_module, "BACKOFF_FACTOR", 0)


@pytest.mark.asyncio
async def test_rpc_forwards_caller_token(httpx_mock, supabase):
    httpx_mock.add_response(
        method="POST", url=f"{REST_URL}/rpc/get_calendar_events", json=[{"event_id": "a"}]
    )

    rows = await supabase.rpc("get_calendar_events", {"p_org_id": "org_1"}, access_token="jwt")

    assert rows == [{"event_id": "a"}]
    request = httpx_mock.get_request()
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["Authorization"] == "Bearer jwt"
    assert json.loads(request.content) == {"p_org_id": "org_1"}
    await supabase.close()


@pytest.mark.asyncio
async def test_anon_key_is_used_without_token(httpx_mock, supabase):
    httpx_mock.add_response(method="POST", url=f"{REST_URL}/rpc/get_dog_timeline", json=[])

    await supabase.rpc("get_dog_timeline", {})

    assert httpx_mock.get_request().headers["Authorization"] == "Bearer anon-key"
    await supabase.close()


@pytest.mark.asyncio
async def test_select_builds_postgrest_query(httpx_mock, supabase):
    httpx_mock.add_response(
        method="GET", url=re.compile(rf"{re.escape(REST_URL)}/activity_events\?.*"), json=[]
    )

    rows = await supabase.select(
        "activity_events",
        filters={"org_id": "org_1", "entity_type": "transport"},
        order="created_at.desc",
        limit=20,
    )

    assert rows == []
    params = httpx_mock.get_request().url.params
    assert params["select"] == "*"
    assert params["org_id"] == "eq.org_1"
    assert params["entity_type"] == "eq.transport"
    assert params["order"] == "created_at.desc"
    assert params["limit"] == "20"
    await supabase.close()


@pytest.mark.asyncio
async def test_insert_returns_representation(httpx_mock, supabase):
    httpx_mock.add_response(
        method="POST", url=f"{REST_URL}/calendar_events", status_code=201, json=[{"id": 7}]
    )

    row = await supabase.insert("calendar_events", {"title": "Vet"}, access_token="jwt")

    assert row == {"id": 7}
    assert httpx_mock.get_request().headers["Prefer"] == "return=representation"
    await supabase.close()


@pytest.mark.asyncio
async def test_upsert_merges_on_conflict_columns(httpx_mock, supabase):
    httpx_mock.add_response(
        method="POST",
        url=re.compile(rf"{re.escape(REST_URL)}/calendar_reminders\?.*"),
        status_code=201,
    )

    await supabase.upsert(
        "calendar_reminders", [{"deterministic_key": "k"}], on_conflict="org_id,deterministic_key"
    )

    request = httpx_mock.get_request()
    assert request.url.params["on_conflict"] == "org_id,deterministic_key"
    assert request.headers["Prefer"] == "resolution=merge-duplicates"
    await supabase.close()


@pytest.mark.asyncio
async def test_error_body_becomes_supabase_error(httpx_mock, supabase):
    httpx_mock.add_response(
        method="POST",
        url=f"{REST_URL}/rpc/get_calendar_events",
        status_code=403,
        json={"code": "42501", "message": "permission denied for table calendar_events"},
    )

    with pytest.raises(SupabaseError) as exc_info:
        await supabase.rpc("get_calendar_events", {})

    error = exc_info.value
    assert error.code == "42501"
    assert error.status_code == 403
    assert error.is_rls_error() is True
    assert format_supabase_error(error, "Failed to load events").startswith(
        "Failed to load events: Access denied by RLS."
    )
    await supabase.close()


@pytest.mark.asyncio
async def test_missing_rpc_is_detected(httpx_mock, supabase):
    httpx_mock.add_response(
        method="POST",
        url=f"{REST_URL}/rpc/get_dog_timeline",
        status_code=404,
        json={"code": "42883", "message": "function get_dog_timeline does not exist"},
    )

    with pytest.raises(SupabaseError) as exc_info:
        await supabase.rpc("get_dog_timeline", {})

    assert exc_info.value.is_missing_rpc("get_dog_timeline") is True
    assert "RPC is missing" in format_supabase_error(exc_info.value)
    await supabase.close()


@pytest.mark.asyncio
async def test_transient_status_is_retried(httpx_mock, supabase, no_backoff):
    url = f"{REST_URL}/rpc/get_calendar_events"
    httpx_mock.add_response(method="POST", url=url, status_code=503)
    httpx_mock.add_response(method="POST", url=url, json=[])

    assert await supabase.rpc("get_calendar_events", {}) == []
    assert len(httpx_mock.get_requests()) == 2
    await supabase.close()


@pytest.mark.asyncio
async def test_insert_is_sent_once_on_transient_status(httpx_mock, supabase, no_backoff):
    httpx_mock.add_response(method="POST", url=f"{REST_URL}/calendar_events", status_code=503)

    with pytest.raises(SupabaseError) as exc_info:
        await supabase.insert("calendar_events", {"title": "Vet"})

    assert exc_info.value.status_code == 503
    assert len(httpx_mock.get_requests()) == 1
    await supabase.close()


@pytest.mark.asyncio
async def test_insert_is_sent_once_on_connection_error(httpx_mock, supabase, no_backoff):
    httpx_mock.add_exception(httpx.ReadTimeout("read timed out"))

    with pytest.raises(SupabaseError):
        await supabase.insert("calendar_events", {"title": "Vet"})

    assert len(httpx_mock.get_requests()) == 1
    await supabase.close()


@pytest.mark.asyncio
async def test_connection_errors_give_up_after_retries(httpx_mock, supabase, no_backoff):
    for _ in range(client_module.MAX_RETRIES):
        httpx_mock.add_exception(httpx.ConnectError("connection refused"))

    with pytest.raises(SupabaseError) as exc_info:
        await supabase.rpc("get_calendar_events", {})

    assert "Supabase request failed" in str(exc_info.value)
    await supabase.close()


@pytest.mark.asyncio
async def test_health_check(httpx_mock, supabase):
    httpx_mock.add_response(method="GET", url=f"{REST_URL}/", status_code=200, json={})

    assert await supabase.health_check() == {"healthy": True, "status_code": 200}
    await supabase.close()
