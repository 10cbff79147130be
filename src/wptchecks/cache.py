import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import diskcache
import logging

from wptchecks import config

logger = logging.getLogger("wptchecks")


@dataclass(frozen=True)
class QueueItem:
    sha: str
    product: str

    @property
    def key(self) -> str:
        return f"{self.sha}:{self.product}"

    def __str__(self) -> str:
        return f"{self.product}@{self.sha[:7]}"


class Cache(diskcache.Cache):
    lock: asyncio.Lock
    queued_key: str = "queued"
    queued_at_key: str = "queued_at"
    api_calls_key: str = "num_api_requests"
    worker_errors_key: str = "num_worker_errors"

    deque: diskcache.Deque

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.lock = asyncio.Lock()
        self.deque = diskcache.Deque(directory=self.directory + "/dequeue")

    async def in_queue(self, item: QueueItem) -> bool:
        async with self.lock:
            return item.key in self.get(self.queued_key, set())

    async def push(self, item: QueueItem) -> bool:
        """Queue ``item`` unless an identical item is still waiting.

        A waiting item is processed against the latest data anyway, so
        redelivered webhooks collapse into it. Once the worker has pulled an
        item, the same (sha, product) can be queued again.
        """
        async with self.lock:
            queued = self.get(self.queued_key, set())
            if item.key in queued:
                logger.info("%s already in queue, skipping", item)
                return False
            queued.add(item.key)
            self.set(self.queued_key, queued)
            self.set(f"{self.queued_at_key}_{item.key}", datetime.now())
            self.deque.append(item)
            logger.info("Pushing %s", item)
            return True

    async def pull(self) -> Optional[QueueItem]:
        async with self.lock:
            logger.debug("Queue size is %d", len(self.deque))
            if len(self.deque) == 0:
                logger.debug("Empty queue")
                return None

            item = self.deque.popleft()
            queued = self.get(self.queued_key, set())
            queued.discard(item.key)
            self.set(self.queued_key, queued)
            self.delete(f"{self.queued_at_key}_{item.key}")
            return item

    async def requeue(self, item: QueueItem) -> None:
        async with self.lock:
            queued = self.get(self.queued_key, set())
            queued.add(item.key)
            self.set(self.queued_key, queued)
            self.set(f"{self.queued_at_key}_{item.key}", datetime.now())
            self.deque.append(item)
            logger.info("Re-queued %s", item)

    def queued_since(self, item: QueueItem) -> Optional[datetime]:
        return self.get(f"{self.queued_at_key}_{item.key}")

    # The worker and the web server run in separate processes, so counters
    # shared between them live in the cache.
    def record_api_call(self) -> int:
        return self.incr(self.api_calls_key)

    def record_worker_error(self) -> int:
        return self.incr(self.worker_errors_key)

    @property
    def api_calls(self) -> int:
        return self.get(self.api_calls_key, 0)

    @property
    def worker_errors(self) -> int:
        return self.get(self.worker_errors_key, 0)


def get_cache(directory: Optional[str] = None):
    directory = directory or config.DISKCACHE_DIR
    logger.info("Opening cache dir: %s", directory)
    return Cache(directory)
