"""Experimental CI integrations that consume check events themselves.

Azure Pipelines results arrive through ``check_run`` events and Taskcluster
results through ``check_suite`` events. Both are only forwarded when their
feature flag is on; the receiving service decides what to do with them.
"""

from typing import Any, Mapping, Optional

import aiohttp
from sanic.log import logger


class ForwardingBackend:
    name: str
    url: Optional[str]

    def __init__(
        self,
        name: str,
        url: Optional[str],
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.name = name
        self.url = url
        self.session = session

    async def handle_check_run_event(self, payload: Mapping[str, Any]) -> bool:
        return await self._forward("check_run", payload)

    async def handle_check_suite_event(self, payload: Mapping[str, Any]) -> bool:
        return await self._forward("check_suite", payload)

    async def _forward(self, event: str, payload: Mapping[str, Any]) -> bool:
        if self.url is None or self.session is None:
            logger.warning(
                "No %s backend configured, dropping %s event", self.name, event
            )
            return False

        logger.debug(
            "Forwarding %s event to %s backend at %s", event, self.name, self.url
        )
        async with self.session.post(
            self.url,
            json=payload,
            headers={"X-GitHub-Event": event},
        ) as resp:
            if resp.status == 204:
                logger.debug("%s backend ignored %s event", self.name, event)
                return False
            resp.raise_for_status()
            return True
