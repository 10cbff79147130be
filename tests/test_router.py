import json

import pytest

from payloads import make_check_run_payload, make_check_suite_payload
from wptchecks.github import MalformedPayloadError, create_router, route_event


@pytest.mark.asyncio
async def test_routes_check_run(make_context, checks_api):
    ctx = make_context()
    payload = json.dumps(make_check_run_payload()).encode()

    assert await route_event(create_router(), "check_run", payload, ctx, "d-1")
    assert len(checks_api.scheduled) == 1


@pytest.mark.asyncio
async def test_routes_check_suite(make_context, store):
    ctx = make_context()
    payload = make_check_suite_payload()

    assert await route_event(create_router(), "check_suite", payload, ctx)
    assert len(store.get_suites(payload["check_suite"]["head_sha"])) == 1


@pytest.mark.asyncio
async def test_unregistered_event_is_ignored(make_context):
    ctx = make_context()

    assert not await route_event(create_router(), "push", {"ref": "x"}, ctx)


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [b"{not json", b"[1, 2]", "null", [], 1, None])
async def test_undecodable_payload(make_context, payload):
    with pytest.raises(MalformedPayloadError):
        await route_event(create_router(), "check_run", payload, make_context())


@pytest.mark.asyncio
async def test_payload_missing_fields(make_context):
    payload = make_check_run_payload()
    del payload["check_run"]["head_sha"]

    with pytest.raises(MalformedPayloadError):
        await route_event(create_router(), "check_run", payload, make_context())


@pytest.mark.asyncio
async def test_invalid_commit_sha(make_context):
    payload = make_check_suite_payload(sha="A" * 40)

    with pytest.raises(MalformedPayloadError):
        await route_event(create_router(), "check_suite", payload, make_context())
