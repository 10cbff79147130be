from typing import Any, Mapping, Optional

from sanic import Sanic, response, Request
from sanic.response import HTTPResponse
import aiohttp
import gidgethub
from gidgethub import sansio
from sanic.log import logger
import sanic.log
import cachetools
from prometheus_client import core
from prometheus_client.exposition import generate_latest

from wptchecks import config
from wptchecks.backends import ForwardingBackend
from wptchecks.cache import get_cache
from wptchecks.flags import FlagSnapshot
from wptchecks.github import (
    SUPPORTED_EVENTS,
    HandlerContext,
    MalformedPayloadError,
    create_router,
    route_event,
)
from wptchecks.github.api import ChecksAPI
from wptchecks.logger import configure_logging, get_log_handlers
from wptchecks.metric import (
    api_call_count,
    error_counter,
    queue_size,
    request_counter,
    webhook_counter,
    worker_error_count,
)
from wptchecks.model import ChecksConfig, load_checks_config
from wptchecks.secret_store import (
    WEBHOOK_SECRET_NAME,
    EnvSecretStore,
    SecretNotFound,
)
from wptchecks.storage import CheckStore


def build_context(app) -> HandlerContext:
    # One flag snapshot per delivery keeps lookups consistent within it.
    flags = FlagSnapshot(app.config.FEATURE_FLAGS, app.ctx.store.load_flags())
    return HandlerContext(
        api=app.ctx.checks_api,
        store=app.ctx.store,
        flags=flags,
        settings=app.ctx.settings,
        azure=app.ctx.azure,
        taskcluster=app.ctx.taskcluster,
    )


async def process_check_event(
    app,
    event_name: str,
    payload: Mapping[str, Any],
    delivery_id: Optional[str] = None,
) -> HTTPResponse:
    ctx = build_context(app)
    try:
        processed = await route_event(
            app.ctx.github_router, event_name, payload, ctx, delivery_id
        )
    except MalformedPayloadError as e:
        logger.error("Malformed %s payload: %s", event_name, e)
        return response.text(str(e), status=400)
    except Exception as e:
        error_counter.labels(context="event_dispatch").inc()
        logger.error(
            "Exception raised when handling %s event", event_name, exc_info=True
        )
        return response.text(str(e), status=500)

    if processed:
        return response.text("wpt.fyi check(s) scheduled successfully\n")
    return response.empty(status=204)


async def handle_check_webhook(app, headers, body: bytes) -> HTTPResponse:
    content_type = headers.get("content-type")
    if content_type != "application/json":
        logger.error("Invalid content-type: %s", content_type)
        return response.empty(status=400)

    event_name = headers.get("x-github-event")
    if event_name not in SUPPORTED_EVENTS:
        logger.debug("Ignoring %s event", event_name)
        return response.empty(status=400)

    try:
        secret = app.ctx.secrets.get(WEBHOOK_SECRET_NAME)
    except SecretNotFound:
        error_counter.labels(context="webhook_secret").inc()
        return response.text(
            "Unable to verify request: secret not found", status=500
        )

    try:
        event = sansio.Event.from_http(headers, body, secret=secret)
    except gidgethub.ValidationFailure as e:
        logger.error("%s", e)
        return response.text(str(e), status=500)
    except (gidgethub.BadRequest, ValueError) as e:
        logger.error("Unable to decode %s payload: %s", event_name, e)
        return response.text(str(e), status=400)

    logger.debug("GitHub Delivery: %s", event.delivery_id)

    webhook_counter.labels(
        event=event.event,
        app=_app_label(event.data),
    ).inc()

    return await process_check_event(app, event.event, event.data, event.delivery_id)


async def update_queue_metrics(cache) -> None:
    async with cache.lock:
        queue_size.set(len(cache.deque))
    api_call_count.set(cache.api_calls)
    worker_error_count.set(cache.worker_errors)


def _app_label(data: Any) -> str:
    if not isinstance(data, Mapping):
        return "none"
    for key in ("check_suite", "check_run"):
        app = (data.get(key) or {}).get("app") or {}
        if "id" in app:
            return str(app["id"])
    return "none"


def create_app(settings: Optional[ChecksConfig] = None):

    app = Sanic("wptchecks")
    app.update_config(config)

    configure_logging()

    sanic.log.logger.handlers = []
    get_log_handlers(sanic.log.logger)

    app.ctx.settings = settings or load_checks_config(config.CHECKS_CONFIG)
    app.ctx.secrets = EnvSecretStore()
    app.ctx.cache = cachetools.LRUCache(maxsize=500)
    app.ctx.github_router = create_router()

    @app.listener("before_server_start")
    async def init(app, loop):
        logger.debug("Creating aiohttp session")
        app.ctx.aiohttp_session = aiohttp.ClientSession()

        app.ctx.store = CheckStore(config.CHECK_DB_PATH)
        app.ctx.store.initialize()

        app.ctx.queue = get_cache()

        app.ctx.checks_api = ChecksAPI(
            app.ctx.aiohttp_session,
            app.ctx.secrets,
            app.ctx.store,
            app.ctx.queue,
            app.ctx.settings,
            environment=config.CHECKS_ENVIRONMENT,
            http_cache=app.ctx.cache,
        )
        app.ctx.azure = ForwardingBackend(
            "Azure Pipelines", config.AZURE_BACKEND_URL, app.ctx.aiohttp_session
        )
        app.ctx.taskcluster = ForwardingBackend(
            "Taskcluster", config.TASKCLUSTER_BACKEND_URL, app.ctx.aiohttp_session
        )

    @app.listener("after_server_stop")
    async def shutdown(app, loop):
        await app.ctx.aiohttp_session.close()
        app.ctx.queue.close()

    @app.on_request
    async def on_request(request: Request):
        if request.path == "/metrics":
            return
        request_counter.labels(path=request.path).inc()

    @app.get("/status")
    async def status(request):
        logger.debug("status check")
        return response.text("ok")

    @app.route("/api/webhook/check", methods=["POST"])
    async def check_webhook(request):
        logger.debug("Webhook received")
        return await handle_check_webhook(app, request.headers, request.body)

    @app.get("/metrics")
    async def metrics(request):
        await update_queue_metrics(app.ctx.queue)

        data = generate_latest(core.REGISTRY)
        return response.raw(data)

    return app
