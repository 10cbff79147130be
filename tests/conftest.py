import pytest

from wptchecks.flags import FlagSnapshot
from wptchecks.github import HandlerContext
from wptchecks.model import ChecksConfig
from wptchecks.storage import CheckStore

from fakes import RecordingBackend, RecordingChecksAPI


@pytest.fixture
def store(tmp_path):
    store = CheckStore(str(tmp_path / "checks.sqlite3"))
    store.initialize()
    return store


@pytest.fixture
def checks_api():
    return RecordingChecksAPI()


@pytest.fixture
def make_context(store, checks_api):
    def make(flags=(), settings=None, api=None, azure=None, taskcluster=None):
        return HandlerContext(
            api=api or checks_api,
            store=store,
            flags=FlagSnapshot(flags),
            settings=settings or ChecksConfig(),
            azure=azure or RecordingBackend(),
            taskcluster=taskcluster or RecordingBackend(),
        )

    return make
