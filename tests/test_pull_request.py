import pytest

from fakes import RecordingChecksAPI
from payloads import HOME_REPO_ID, SHA, make_pull_request_payload
from wptchecks.github import handle_pull_request_event
from wptchecks.github.model import PullRequestEvent


async def dispatch(payload, ctx):
    event = PullRequestEvent.model_validate(payload)
    return await handle_pull_request_event(event, payload, ctx)


@pytest.mark.asyncio
@pytest.mark.parametrize("action", ["opened", "synchronize"])
async def test_fork_pull_requests_home_suite(make_context, checks_api, action):
    ctx = make_context()
    payload = make_pull_request_payload(action=action, number=42)

    assert await dispatch(payload, ctx) is True
    assert checks_api.created_suites == [(23318, 577173, SHA, (42,))]


@pytest.mark.asyncio
async def test_deleted_fork_counts_as_fork(make_context, checks_api):
    ctx = make_context()
    payload = make_pull_request_payload(head_repo_id=None)

    assert await dispatch(payload, ctx) is True
    assert len(checks_api.created_suites) == 1


@pytest.mark.asyncio
async def test_same_repository_pull(make_context, checks_api):
    ctx = make_context()
    payload = make_pull_request_payload(head_repo_id=HOME_REPO_ID)

    assert await dispatch(payload, ctx) is False
    assert checks_api.created_suites == []


@pytest.mark.asyncio
async def test_pull_request_author_is_checked(make_context, checks_api):
    ctx = make_context()
    # The sender differs from the author, only the author counts.
    payload = make_pull_request_payload(user="octocat")

    assert await dispatch(payload, ctx) is False
    assert checks_api.created_suites == []


@pytest.mark.asyncio
async def test_ignored_action(make_context, checks_api):
    ctx = make_context()
    payload = make_pull_request_payload(action="closed")

    assert await dispatch(payload, ctx) is False
    assert checks_api.created_suites == []


@pytest.mark.asyncio
async def test_suite_creation_failure_propagates(make_context):
    api = RecordingChecksAPI(fail_create=RuntimeError("GitHub unavailable"))
    ctx = make_context(api=api)

    with pytest.raises(RuntimeError):
        await dispatch(make_pull_request_payload(), ctx)
