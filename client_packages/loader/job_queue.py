from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence

from redis import Redis
from rq import Queue, Worker

from .settings import LoaderSettings, build_loader

logger = logging.getLogger(__name__)


def run_warm_job(package_names: Sequence[str], settings: LoaderSettings) -> List[str]:
    """
    RQ task entrypoint. Loads the given packages one by one so that the shared
    cache backend holds their latest data for the next client.
    """
    loader = build_loader(settings)

    async def warm() -> List[str]:
        try:
            packages = await loader.fetch_packages(package_names)
            await loader.wait_idle()
        finally:
            loader.close()
        return [package.name for package in packages]

    names = asyncio.run(warm())
    logger.info("Warmed package cache for %s", ", ".join(names))
    return names


class RQJobQueue:
    """
    Redis-backed job queue using RQ. Loads keep retrying while the package
    server is unreachable, so every job carries a timeout.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        queue_name: str = "package-warmup",
        job_timeout: int = 600,
    ):
        self.redis = Redis.from_url(redis_url)
        self.queue = Queue(queue_name, connection=self.redis)
        self.job_timeout = job_timeout

    def enqueue_warm_job(self, package_names: Sequence[str], settings: LoaderSettings):
        return self.queue.enqueue(
            run_warm_job,
            list(package_names),
            settings,
            job_timeout=self.job_timeout,
            retry=None,
        )

    def work(self):
        worker = Worker([self.queue], connection=self.redis)
        worker.work(with_scheduler=True)
