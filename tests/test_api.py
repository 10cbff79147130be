import http

import gidgethub
import pytest

from payloads import SHA, make_check_run_payload
from wptchecks.cache import Cache, QueueItem
from wptchecks.github.api import ChecksAPI
from wptchecks.github.model import CheckRun, Installation
from wptchecks.model import ChecksConfig
from wptchecks.product import ProductSpec
from wptchecks.secret_store import EnvSecretStore, SecretNotFound


class _RecordingGitHub:
    def __init__(self, post_result=None, error=None):
        self.post_result = post_result if post_result is not None else {"id": 1}
        self.error = error
        self.posts = []
        self.patches = []

    async def post(self, url, data):
        if self.error is not None:
            raise self.error
        self.posts.append((url, data))
        return self.post_result

    async def patch(self, url, data):
        self.patches.append((url, data))
        return {}


@pytest.fixture
def queue(tmp_path):
    cache = Cache(str(tmp_path / "queue"))
    yield cache
    cache.close()


def make_api(store, queue, gh=None, environment="prod", secrets=None):
    api = ChecksAPI(
        None,
        secrets or EnvSecretStore({"GITHUB_APP_PRIVATE_KEY": "pem"}),
        store,
        queue,
        ChecksConfig(),
        environment=environment,
    )
    clients = []

    async def client_for(app_id, installation_id):
        clients.append((app_id, installation_id))
        return gh

    api.client_for = client_for
    api.clients = clients
    return api


def make_run(**kwargs):
    return CheckRun.model_validate(make_check_run_payload(**kwargs)["check_run"])


@pytest.mark.asyncio
async def test_create_suite(store, queue):
    gh = _RecordingGitHub()
    api = make_api(store, queue, gh)

    assert await api.create_suite(23318, 577173, SHA, 42)

    assert api.clients == [(23318, 577173)]
    assert gh.posts == [
        ("/repos/web-platform-tests/wpt/check-suites", {"head_sha": SHA})
    ]
    assert api.call_count == 1
    assert queue.api_calls == 1
    [suite] = store.get_suites(SHA)
    assert (suite.owner, suite.repo) == ("web-platform-tests", "wpt")
    assert suite.app_id == 23318
    assert suite.pr_numbers == [42]


@pytest.mark.asyncio
async def test_create_suite_error_propagates(store, queue):
    gh = _RecordingGitHub(error=gidgethub.BadRequest(http.HTTPStatus(422)))
    api = make_api(store, queue, gh)

    with pytest.raises(gidgethub.BadRequest):
        await api.create_suite(23318, 577173, SHA)
    assert store.get_suites(SHA) == []


@pytest.mark.asyncio
async def test_schedule_results_processing(store, queue):
    api = make_api(store, queue)
    product = ProductSpec("chrome", labels=frozenset({"experimental"}))

    assert await api.schedule_results_processing(SHA, product)
    assert not await api.schedule_results_processing(SHA, product)

    assert list(queue.deque) == [QueueItem(sha=SHA, product="chrome[experimental]")]


@pytest.mark.asyncio
async def test_ignore_failure(store, queue):
    gh = _RecordingGitHub()
    api = make_api(store, queue, gh)
    run = make_run(status="completed")

    await api.ignore_failure(
        "lukebjerring", "web-platform-tests", "wpt", run, Installation(id=577173)
    )

    [(url, data)] = gh.patches
    assert url == "/repos/web-platform-tests/wpt/check-runs/4242"
    assert data["conclusion"] == "success"
    assert data["output"]["title"] == "2 regressions"
    assert data["output"]["summary"] == (
        "This check was marked as a success by @lukebjerring via the _Ignore_ "
        "action.\n\nSome tests regressed"
    )
    assert [a["identifier"] for a in data["actions"]] == ["recompute"]
    assert api.clients == [(23318, 577173)]


@pytest.mark.asyncio
async def test_cancel_run(store, queue):
    gh = _RecordingGitHub()
    api = make_api(store, queue, gh)
    run = make_run(status="in_progress")

    await api.cancel_run(
        "lukebjerring", "web-platform-tests", "wpt", run, Installation(id=577173)
    )

    [(url, data)] = gh.patches
    assert url == "/repos/web-platform-tests/wpt/check-runs/4242"
    assert data["status"] == "completed"
    assert data["conclusion"] == "cancelled"
    assert data["completed_at"].endswith("Z")


def test_home_repo_installation(store, queue):
    assert make_api(store, queue).get_home_repo_app_installation() == (23318, 577173)
    staging = make_api(store, queue, environment="staging")
    assert staging.get_home_repo_app_installation() == (19965, 449270)


def test_private_key_per_app(store, queue):
    secrets = EnvSecretStore(
        {"GITHUB_APP_PRIVATE_KEY_19965": "staging-pem", "GITHUB_APP_PRIVATE_KEY": "pem"}
    )
    api = make_api(store, queue, secrets=secrets)

    assert api.private_key(19965) == "staging-pem"
    assert api.private_key(23318) == "pem"


def test_missing_private_key(store, queue):
    api = make_api(store, queue, secrets=EnvSecretStore({}))

    with pytest.raises(SecretNotFound):
        api.private_key(23318)
