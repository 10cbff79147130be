from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import aiocache
import aiohttp
import gidgethub
from gidgethub import aiohttp as gh_aiohttp
from gidgethub.abc import GitHubAPI
from gidgethub.apps import get_installation_access_token
from sanic.log import logger

from wptchecks import config as app_config
from wptchecks.cache import Cache, QueueItem
from wptchecks.github.model import CheckRun, CheckRunAction, Installation
from wptchecks.metric import (
    check_suite_request_counter,
    results_processing_counter,
)
from wptchecks.model import ChecksConfig
from wptchecks.product import ProductSpec
from wptchecks.secret_store import SecretNotFound, SecretStore
from wptchecks.storage import CheckStore

RECOMPUTE_ACTION = CheckRunAction(
    label="Recompute",
    description="Recompute the summary based on latest data",
    identifier="recompute",
)


@aiocache.cached(
    ttl=app_config.ACCESS_TOKEN_TTL,
    key_builder=lambda fn, gh, app_id, installation_id, private_key: (
        f"{app_id}:{installation_id}"
    ),
)
async def get_access_token(
    gh: GitHubAPI, app_id: int, installation_id: int, private_key: str
) -> str:
    logger.debug(
        "Getting NEW installation access token for app %d, installation %d",
        app_id,
        installation_id,
    )
    access_token_response = await get_installation_access_token(
        gh,
        installation_id=installation_id,
        app_id=str(app_id),
        private_key=private_key,
    )
    return access_token_response["token"]


class ChecksAPI:
    """Calls back into GitHub and the results pipeline on behalf of our apps."""

    session: aiohttp.ClientSession
    call_count: int

    def __init__(
        self,
        session: aiohttp.ClientSession,
        secrets: SecretStore,
        store: CheckStore,
        queue: Cache,
        settings: ChecksConfig,
        environment: str = "prod",
        http_cache: Optional[Any] = None,
    ):
        self.session = session
        self.secrets = secrets
        self.store = store
        self.queue = queue
        self.settings = settings
        self.environment = environment
        self.http_cache = http_cache
        self.call_count = 0

    def private_key(self, app_id: int) -> str:
        try:
            return self.secrets.get(f"github-app-private-key-{app_id}")
        except SecretNotFound:
            return self.secrets.get("github-app-private-key")

    async def client_for(self, app_id: int, installation_id: int) -> GitHubAPI:
        gh_pre = gh_aiohttp.GitHubAPI(self.session, __name__)
        token = await get_access_token(
            gh_pre, app_id, installation_id, self.private_key(app_id)
        )
        return gh_aiohttp.GitHubAPI(
            self.session,
            __name__,
            oauth_token=token,
            cache=self.http_cache,
        )

    def get_home_repo_app_installation(self) -> Tuple[int, int]:
        home = self.settings.home_repository
        if self.environment == "staging":
            return self.settings.app_ids.wptfyi_staging, home.staging_installation_id
        return self.settings.app_ids.wptfyi, home.installation_id

    async def create_suite(
        self, app_id: int, installation_id: int, sha: str, *pr_numbers: int
    ) -> bool:
        home = self.settings.home_repository
        logger.debug(
            "Creating check_suite for %s/%s @ %s", home.owner, home.name, sha[:7]
        )
        gh = await self.client_for(app_id, installation_id)

        self._count_call()
        try:
            suite = await gh.post(
                f"/repos/{home.owner}/{home.name}/check-suites",
                data={"head_sha": sha},
            )
        except gidgethub.GitHubException:
            check_suite_request_counter.labels(result="error").inc()
            logger.error("Failed to create GitHub check suite for %s", sha[:7])
            raise

        if suite is None:
            check_suite_request_counter.labels(result="empty").inc()
            return False

        logger.info("check_suite %s created", suite.get("id"))
        check_suite_request_counter.labels(result="created").inc()
        self.store.ensure_suite(
            sha, home.owner, home.name, app_id, installation_id, pr_numbers
        )
        return True

    async def schedule_results_processing(
        self, sha: str, product: ProductSpec, trigger: str = "check_run"
    ) -> bool:
        item = QueueItem(sha=sha, product=str(product))
        if not await self.queue.push(item):
            # The waiting item picks up the same data when it is processed.
            logger.debug("%s is still waiting for processing", item)
            return False
        results_processing_counter.labels(trigger=trigger).inc()
        return True

    async def ignore_failure(
        self,
        sender: str,
        owner: str,
        repo: str,
        run: CheckRun,
        installation: Installation,
    ) -> None:
        gh = await self.client_for(run.app.id, installation.id)

        # Keep the previous output, but say who ignored the failure.
        summary = (
            f"This check was marked as a success by @{sender} "
            "via the _Ignore_ action.\n\n"
        )
        output: Dict[str, Any] = {"title": run.name, "summary": summary}
        if run.output is not None:
            if run.output.title:
                output["title"] = run.output.title
            output["summary"] = summary + (run.output.summary or "")
            if run.output.text:
                output["text"] = run.output.text

        logger.info(
            "%s ignored failure of check run %d (%s)", sender, run.id, run.name
        )
        await self._update_check_run(
            gh,
            owner,
            repo,
            run.id,
            {
                "name": run.name,
                "conclusion": "success",
                "output": output,
                "actions": [RECOMPUTE_ACTION.model_dump()],
            },
        )

    async def cancel_run(
        self,
        sender: str,
        owner: str,
        repo: str,
        run: CheckRun,
        installation: Installation,
    ) -> None:
        gh = await self.client_for(run.app.id, installation.id)

        logger.info("%s cancelled check run %d (%s)", sender, run.id, run.name)
        await self._update_check_run(
            gh,
            owner,
            repo,
            run.id,
            {
                "name": run.name,
                "status": "completed",
                "conclusion": "cancelled",
                "completed_at": datetime.now(timezone.utc).strftime(
                    "%Y-%m-%dT%H:%M:%SZ"
                ),
            },
        )

    async def _update_check_run(
        self,
        gh: GitHubAPI,
        owner: str,
        repo: str,
        check_run_id: int,
        payload: Dict[str, Any],
    ) -> None:
        url = f"/repos/{owner}/{repo}/check-runs/{check_run_id}"
        logger.debug("Updating check run %d, %s", check_run_id, url)
        self._count_call()
        await gh.patch(url, data=payload)

    def _count_call(self) -> None:
        self.call_count += 1
        self.queue.record_api_call()
