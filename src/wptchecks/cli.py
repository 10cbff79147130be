import asyncio
from datetime import datetime
import logging
from typing import List, Optional

import typer
import aiohttp
import humanize
from tabulate import tabulate

from wptchecks import config
from wptchecks.cache import get_cache
from wptchecks.db_migrations import current_revision, migrate_check_db
from wptchecks.flags import Flag
from wptchecks.github import schedule_processing_for_existing_runs
from wptchecks.github.api import ChecksAPI
from wptchecks.logger import configure_logging, get_log_handlers
from wptchecks.model import load_checks_config
from wptchecks.product import parse_product_spec
from wptchecks.secret_store import EnvSecretStore
from wptchecks.storage import CheckStore, TestRunRow
from wptchecks.web import create_app


logger = logging.getLogger("wptchecks")


async def process_item(session: aiohttp.ClientSession, item) -> None:
    url = f"{config.RESULTS_PROCESSING_URL}/{item.sha}"
    logger.info("Processing %s via %s", item, url)
    async with session.post(url, params={"product": item.product}) as resp:
        resp.raise_for_status()


async def job_loop():
    logger.info("Entering job loop")
    i = 0
    async with aiohttp.ClientSession() as session:
        while True:
            try:
                logger.debug("Sleeping for %d", config.WORKER_SLEEP)
                await asyncio.sleep(config.WORKER_SLEEP)

                with get_cache() as cache:
                    if i == 60 or i == 0:
                        i = 0
                        logger.info("Queue size: %d", len(cache.deque))
                    i += 1
                    logger.debug("Getting item from processing queue")
                    item = await cache.pull()
                    if item is None:
                        logger.debug("Queue empty")
                        continue

                    if config.DRY_RUN:
                        logger.info("Dry run, not processing %s", item)
                        continue

                    try:
                        await process_item(session, item)
                    except aiohttp.ClientError:
                        cache.record_worker_error()
                        logger.error("Failed to process %s", item, exc_info=True)
                        await cache.requeue(item)

            except (KeyboardInterrupt, asyncio.CancelledError):
                raise
            except Exception:
                with get_cache() as cache:
                    cache.record_worker_error()
                logger.error("Job loop encountered error", exc_info=True)


app = typer.Typer()


@app.callback()
def init():
    configure_logging()
    logger.setLevel(config.OVERRIDE_LOGGING)
    get_log_handlers(logger)


@app.command()
def serve(host: str = "0.0.0.0", port: int = 8000):
    create_app().run(host=host, port=port, single_process=True)


@app.command()
def worker():
    asyncio.run(job_loop())


@app.command()
def migrate(revision: str = "head"):
    migrate_check_db(config.CHECK_DB_PATH, revision=revision)
    typer.echo(f"Check store at revision {current_revision(config.CHECK_DB_PATH)}")


@app.command()
def queue():
    with get_cache() as cache:
        rows = []
        for item in cache.deque:
            since = cache.queued_since(item)
            rows.append(
                (
                    item.sha[:7],
                    item.product,
                    humanize.naturaltime(datetime.now() - since)
                    if since is not None
                    else "",
                )
            )
    typer.echo(
        tabulate(rows, headers=("SHA", "Product", "Queued"), tablefmt="github")
    )


@app.command()
def flag(name: Flag, enable: bool = typer.Option(..., "--enable/--disable")):
    store = CheckStore(config.CHECK_DB_PATH)
    store.initialize()
    store.set_flag(name.value, enable)
    typer.echo(f"{name.value} = {enable}")


@app.command()
def add_run(
    sha: str,
    browser: str,
    browser_version: Optional[str] = None,
    os_name: Optional[str] = None,
    os_version: Optional[str] = None,
    label: List[str] = typer.Option([], "--label"),
    results_url: Optional[str] = None,
):
    store = CheckStore(config.CHECK_DB_PATH)
    store.initialize()
    run = store.add_test_run(
        TestRunRow(
            browser_name=browser,
            browser_version=browser_version,
            os_name=os_name,
            os_version=os_version,
            full_revision_hash=sha,
            labels=label,
            results_url=results_url,
            time_start=datetime.now(),
        )
    )
    typer.echo(f"Stored run {run.id}")


@app.command()
def reprocess(sha: str, product: List[str] = typer.Option([], "--product")):
    """Schedule processing for the products that already have runs for SHA."""
    settings = load_checks_config(config.CHECKS_CONFIG)
    products = [parse_product_spec(p, settings.browser_names) for p in product]
    store = CheckStore(config.CHECK_DB_PATH)
    store.initialize()

    async def handle():
        with get_cache() as cache:
            api = ChecksAPI(None, EnvSecretStore(), store, cache, settings)
            scheduled = await schedule_processing_for_existing_runs(
                api, store, sha, products, trigger="cli"
            )
        typer.echo(f"Scheduled: {scheduled}")

    asyncio.run(handle())
