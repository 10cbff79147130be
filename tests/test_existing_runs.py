import pytest

from fakes import RecordingChecksAPI
from wptchecks.github import (
    ResultsProcessingError,
    schedule_processing_for_existing_runs,
)
from wptchecks.product import ProductSpec
from wptchecks.storage import TestRunRow


SHA = "d" * 40


def seed_runs(store, *browsers):
    for browser in browsers:
        store.add_test_run(TestRunRow(browser_name=browser, full_revision_hash=SHA))


@pytest.mark.asyncio
async def test_only_products_with_runs_are_scheduled(store):
    seed_runs(store, "chrome", "firefox")
    api = RecordingChecksAPI()
    products = [ProductSpec("chrome"), ProductSpec("safari"), ProductSpec("firefox")]

    assert await schedule_processing_for_existing_runs(api, store, SHA, products)
    assert api.scheduled == [
        (SHA, "chrome", "existing_runs"),
        (SHA, "firefox", "existing_runs"),
    ]


@pytest.mark.asyncio
async def test_nothing_to_schedule(store):
    api = RecordingChecksAPI()

    assert not await schedule_processing_for_existing_runs(
        api, store, SHA, [ProductSpec("chrome")]
    )
    assert api.scheduled == []


@pytest.mark.asyncio
async def test_failure_stops_the_scan(store):
    seed_runs(store, "chrome", "firefox")
    api = RecordingChecksAPI(fail_products=["chrome"])
    products = [ProductSpec("chrome"), ProductSpec("firefox")]

    with pytest.raises(ResultsProcessingError) as excinfo:
        await schedule_processing_for_existing_runs(api, store, SHA, products)

    assert api.scheduled == []
    assert excinfo.value.product == ProductSpec("chrome")
    assert excinfo.value.scheduled == []
    assert not excinfo.value.scheduled_some
    assert isinstance(excinfo.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_failure_reports_earlier_products(store):
    seed_runs(store, "chrome", "firefox", "safari")
    api = RecordingChecksAPI(fail_products=["firefox"])
    products = [ProductSpec("chrome"), ProductSpec("firefox"), ProductSpec("safari")]

    with pytest.raises(ResultsProcessingError) as excinfo:
        await schedule_processing_for_existing_runs(
            api, store, SHA, products, trigger="cli"
        )

    assert api.scheduled == [(SHA, "chrome", "cli")]
    assert excinfo.value.scheduled == [ProductSpec("chrome")]
    assert excinfo.value.scheduled_some
    assert "firefox" in str(excinfo.value)
