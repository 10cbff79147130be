"""Handling of the GitHub events sent to the wpt.fyi check apps.

The wpt.fyi and staging.wpt.fyi GitHub Apps create the "wpt.fyi" checks on
commits, summarizing the results of the CI runs for each browser. We react
to three events:

- ``check_suite``: record the suite, make sure pulls from forks get a suite on
  the home repository, and recompute existing results when rerequested.
- ``check_run``: schedule results processing for the run's product, or apply
  the ignore/cancel buttons shown on our check runs.
- ``pull_request``: create a check suite on the home repository for pulls
  from forks, since GitHub only creates one for commits pushed to it.

Azure Pipelines ``check_run`` and Taskcluster ``check_suite`` events are
forwarded to those integrations while their feature flags are on.

Every handler returns ``True`` when it did something, ``False`` when the event
was deliberately ignored, and raises when an action we attempted failed.
"""

from dataclasses import dataclass
import json
from typing import Any, List, Mapping, Optional, Sequence, Type, TypeVar, Union

from gidgethub.routing import Router
from gidgethub.sansio import Event
import pydantic
from sanic.log import logger

from wptchecks.access import AccessGate
from wptchecks.apps import AppIdentity, resolve_app
from wptchecks.backends import ForwardingBackend
from wptchecks.flags import FeatureFlags, Flag
from wptchecks.github.actions import (
    PullRequestDecision,
    RunDecision,
    SuiteDecision,
    decide_pull_request,
    decide_run,
    decide_suite,
)
from wptchecks.github.api import ChecksAPI
from wptchecks.github.model import (
    CheckRunEvent,
    CheckSuiteEvent,
    PullRequestEvent,
)
from wptchecks.metric import results_processing_counter, webhook_skipped_counter
from wptchecks.model import ChecksConfig
from wptchecks.product import ProductNameResolver, ProductSpec
from wptchecks.storage import CheckStore

SUPPORTED_EVENTS = ("check_suite", "check_run", "pull_request")

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


class MalformedPayloadError(ValueError):
    pass


class ResultsProcessingError(Exception):
    """Scheduling failed part way through a scan of existing results."""

    sha: str
    product: ProductSpec
    scheduled: List[ProductSpec]

    def __init__(self, sha: str, product: ProductSpec, scheduled: List[ProductSpec]):
        self.sha = sha
        self.product = product
        self.scheduled = scheduled
        super().__init__(
            f"Failed to schedule results processing for {product} @ {sha[:7]} "
            f"({len(scheduled)} product(s) scheduled before)"
        )

    @property
    def scheduled_some(self) -> bool:
        return len(self.scheduled) > 0


@dataclass
class HandlerContext:
    api: ChecksAPI
    store: CheckStore
    flags: FeatureFlags
    settings: ChecksConfig
    azure: ForwardingBackend
    taskcluster: ForwardingBackend

    @property
    def gate(self) -> AccessGate:
        return AccessGate(self.settings.allowed_senders, self.flags)

    @property
    def resolver(self) -> ProductNameResolver:
        return ProductNameResolver(
            self.settings.run_name_pattern, self.settings.browser_names
        )

    def resolve_app(self, app_id: int) -> AppIdentity:
        return resolve_app(app_id, self.settings.app_ids)


def _skip(event: str, reason: str) -> bool:
    webhook_skipped_counter.labels(event=event, reason=reason).inc()
    return False


def decode_payload(payload: Union[bytes, str, Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(payload, Mapping):
        return payload
    if not isinstance(payload, (bytes, bytearray, str)):
        raise MalformedPayloadError("Payload must be a JSON object")
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise MalformedPayloadError(f"Invalid JSON payload: {e}") from e
    if not isinstance(data, Mapping):
        raise MalformedPayloadError("Payload must be a JSON object")
    return data


def parse_event(model: Type[ModelT], data: Mapping[str, Any]) -> ModelT:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        raise MalformedPayloadError(str(e)) from e


async def handle_check_suite_event(
    event: CheckSuiteEvent, raw: Mapping[str, Any], ctx: HandlerContext
) -> bool:
    suite = event.check_suite
    owner = event.repository.owner.login
    repo = event.repository.name
    sha = suite.head_sha
    app = ctx.resolve_app(suite.app.id)

    logger.debug(
        "Check suite %s: %s/%s @ %s (App %s, ID %d, %s)",
        event.action,
        owner,
        repo,
        sha[:7],
        suite.app.name,
        suite.app.id,
        app.value,
    )

    if app is AppIdentity.taskcluster:
        if ctx.flags.is_enabled(Flag.process_taskcluster_check_runs):
            return await ctx.taskcluster.handle_check_suite_event(raw)
        logger.info("Ignoring Taskcluster check_suite event")
        return _skip("check_suite", "backend_disabled")

    if not app.is_native:
        logger.info("Ignoring check_suite App ID %d", suite.app.id)
        return _skip("check_suite", "unknown_app")

    login = event.sender.login
    if not ctx.gate.is_authorized(login):
        logger.info("Sender %s not allowed to trigger wpt.fyi checks", login)
        return _skip("check_suite", "unauthorized")

    decision = decide_suite(event.action)
    if decision is SuiteDecision.ignore:
        logger.debug("Ignoring check_suite action %s", event.action)
        return _skip("check_suite", "action")

    home_id = ctx.settings.home_repository.id
    pr_numbers = [pr.number for pr in suite.pull_requests if pr.targets(home_id)]
    installation_id = event.installation.id

    if decision is SuiteDecision.ensure:
        # GitHub does not create a suite on the home repository for commits
        # that only exist on a fork, so ask for one per fork pull.
        for pr in suite.pull_requests:
            if not (pr.targets(home_id) and pr.is_cross_fork):
                continue
            logger.info(
                "Pull %d @ %s comes from a fork, requesting a home check suite",
                pr.number,
                sha[:7],
            )
            await ctx.api.create_suite(suite.app.id, installation_id, sha, *pr_numbers)

    ctx.store.ensure_suite(sha, owner, repo, suite.app.id, installation_id, pr_numbers)

    if decision is SuiteDecision.ensure_and_rescan:
        products = ctx.settings.rescan_products()
        logger.info(
            "Check suite rerequested for %s, rescanning %s",
            sha[:7],
            [str(p) for p in products] or "all products",
        )
        return await schedule_processing_for_existing_runs(
            ctx.api, ctx.store, sha, products, trigger="check_suite_rerequested"
        )

    return True


async def handle_check_run_event(
    event: CheckRunEvent, raw: Mapping[str, Any], ctx: HandlerContext
) -> bool:
    run = event.check_run
    owner = event.repository.owner.login
    repo = event.repository.name
    sha = run.head_sha
    app = ctx.resolve_app(run.app.id)

    logger.debug(
        "Check run %s: %s/%s @ %s (App %s, ID %d, %s)",
        event.action,
        owner,
        repo,
        sha[:7],
        run.app.name,
        run.app.id,
        app.value,
    )

    if app is AppIdentity.azure_pipelines:
        if ctx.flags.is_enabled(Flag.process_azure_check_runs):
            return await ctx.azure.handle_check_run_event(raw)
        logger.info("Ignoring Azure Pipelines check_run event")
        return _skip("check_run", "backend_disabled")

    if not app.is_native:
        logger.info("Ignoring check_run App ID %d", run.app.id)
        return _skip("check_run", "unknown_app")

    login = event.sender.login
    if not ctx.gate.is_authorized(login):
        logger.info("Sender %s not allowed to trigger wpt.fyi checks", login)
        return _skip("check_run", "unauthorized")

    requested_action = (
        event.requested_action.identifier if event.requested_action else None
    )
    decision = decide_run(event.action, run.status, requested_action)

    if decision is RunDecision.ignore_failure:
        await ctx.api.ignore_failure(login, owner, repo, run, event.installation)
        return True

    if decision is RunDecision.cancel:
        await ctx.api.cancel_run(login, owner, repo, run, event.installation)
        return True

    if decision is RunDecision.ignore:
        logger.debug(
            "Ignoring %s action (%s) for %s check_run",
            event.action,
            requested_action,
            run.status,
        )
        return _skip("check_run", "action")

    logger.debug(
        "GitHub check run %d (%s @ %s) was %s", run.id, run.name, sha[:7], event.action
    )
    try:
        product = ctx.resolver.resolve(run.name)
    except ValueError:
        logger.error('Failed to parse "%s" as product spec', run.name)
        raise

    await ctx.api.schedule_results_processing(sha, product)
    return True


async def handle_pull_request_event(
    event: PullRequestEvent, raw: Mapping[str, Any], ctx: HandlerContext
) -> bool:
    pr = event.pull_request

    login = pr.user.login
    if not ctx.gate.is_authorized(login):
        logger.info("Sender %s not allowed to trigger wpt.fyi checks", login)
        return _skip("pull_request", "unauthorized")

    if decide_pull_request(event.action) is PullRequestDecision.ignore:
        logger.debug("Skipping pull request action %s", event.action)
        return _skip("pull_request", "action")

    home_id = ctx.settings.home_repository.id
    if pr.targets(home_id) and pr.is_cross_fork:
        logger.info("%s is across forks, requesting a home check suite", pr)
        app_id, installation_id = ctx.api.get_home_repo_app_installation()
        return await ctx.api.create_suite(
            app_id, installation_id, pr.head.sha, event.number
        )

    return _skip("pull_request", "same_repository")


async def schedule_processing_for_existing_runs(
    api: ChecksAPI,
    store: CheckStore,
    sha: str,
    products: Sequence[ProductSpec] = (),
    trigger: str = "existing_runs",
) -> bool:
    """Schedule processing for every product that already has runs for ``sha``.

    Stops at the first scheduling failure, raising a ``ResultsProcessingError``
    that lists the products scheduled before it.
    """
    runs_by_product = store.load_runs(products, sha)
    scheduled: List[ProductSpec] = []
    for product, runs in runs_by_product.items():
        if len(runs) == 0:
            logger.debug("No stored runs for %s @ %s", product, sha[:7])
            continue
        try:
            await api.schedule_results_processing(sha, product, trigger=trigger)
        except Exception as e:
            raise ResultsProcessingError(sha, product, scheduled) from e
        scheduled.append(product)

    results_processing_counter.labels(trigger=f"{trigger}_scan").inc()
    logger.info(
        "Scheduled processing for %d existing product(s) @ %s", len(scheduled), sha[:7]
    )
    return len(scheduled) > 0


def create_router():
    router = Router()

    @router.register("check_suite")
    async def on_check_suite(event: Event, ctx: HandlerContext):
        check_suite = parse_event(CheckSuiteEvent, event.data)
        return await handle_check_suite_event(check_suite, event.data, ctx)

    @router.register("check_run")
    async def on_check_run(event: Event, ctx: HandlerContext):
        check_run = parse_event(CheckRunEvent, event.data)
        return await handle_check_run_event(check_run, event.data, ctx)

    @router.register("pull_request")
    async def on_pull_request(event: Event, ctx: HandlerContext):
        pull_request = parse_event(PullRequestEvent, event.data)
        return await handle_pull_request_event(pull_request, event.data, ctx)

    return router


async def route_event(
    router: Router,
    event_name: str,
    payload: Union[bytes, str, Mapping[str, Any]],
    ctx: HandlerContext,
    delivery_id: Optional[str] = None,
) -> bool:
    data = decode_payload(payload)
    event = Event(data, event=event_name, delivery_id=delivery_id or "")

    callbacks = router.fetch(event)
    if not callbacks:
        logger.debug("Ignoring %s event", event_name)
        return False

    processed = False
    for callback in callbacks:
        processed = await callback(event, ctx) or processed
    return processed
