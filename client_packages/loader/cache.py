from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Protocol

from .models import CacheError, PackageRequest
from .repository import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore, SqlAlchemyKeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "pkg-cache"


class CacheBackend(Protocol):
    async def get_metadata(self, request: PackageRequest) -> Optional[Dict[str, Any]]:
        ...

    async def get_data(self, request: PackageRequest) -> Optional[str]:
        ...

    async def set(self, request: PackageRequest, metadata: Dict[str, Any], data: str) -> None:
        ...

    async def delete(self, request: PackageRequest) -> None:
        ...


class NoopCacheBackend:
    """
    Backend used when no persistent storage is available: every read misses
    and every write succeeds.
    """

    async def get_metadata(self, request: PackageRequest) -> Optional[Dict[str, Any]]:
        return None

    async def get_data(self, request: PackageRequest) -> Optional[str]:
        return None

    async def set(self, request: PackageRequest, metadata: Dict[str, Any], data: str) -> None:
        return None

    async def delete(self, request: PackageRequest) -> None:
        return None


class KeyValueCacheBackend:
    """
    Persistent backend on top of a string key-value store. Every package gets
    a data key and a JSON metadata key. Reads that fail for any reason delete
    both keys and report a miss, so corrupt entries heal themselves.

    Store calls are blocking and run in the loop's default executor.
    """

    def __init__(self, store: KeyValueStore, namespace: str = DEFAULT_NAMESPACE):
        self.store = store
        self.namespace = namespace

    def key(self, request: PackageRequest, sub_key: str) -> str:
        return f"{self.namespace}/{request.key}/{sub_key}"

    async def get_metadata(self, request: PackageRequest) -> Optional[Dict[str, Any]]:
        try:
            raw = await self._run(self.store.get_item, self.key(request, "metadata"))
            result = json.loads(raw) if raw is not None else None
        except (CacheError, ValueError) as exc:
            logger.warning("Unreadable cached metadata for %s: %s", request, exc)
            result = None

        if not result or not isinstance(result, dict):
            await self._discard(request)
            return None
        return result

    async def get_data(self, request: PackageRequest) -> Optional[str]:
        try:
            result = await self._run(self.store.get_item, self.key(request, "data"))
        except CacheError as exc:
            logger.warning("Unreadable cached data for %s: %s", request, exc)
            result = None

        if not result:
            await self._discard(request)
            return None
        return result

    async def set(self, request: PackageRequest, metadata: Dict[str, Any], data: str) -> None:
        try:
            serialized = json.dumps(metadata)
        except (TypeError, ValueError) as exc:
            raise CacheError(f"Cannot serialize metadata for {request}") from exc

        await self._run(self._write, request, serialized, data)

    async def delete(self, request: PackageRequest) -> None:
        await self._run(self._remove, request)

    async def _run(self, func, *args):
        return await asyncio.get_running_loop().run_in_executor(None, func, *args)

    def _write(self, request: PackageRequest, metadata: str, data: str) -> None:
        # data first: metadata without data reads as a miss
        self.store.set_item(self.key(request, "data"), data)
        self.store.set_item(self.key(request, "metadata"), metadata)

    def _remove(self, request: PackageRequest) -> None:
        self.store.remove_item(self.key(request, "metadata"))
        self.store.remove_item(self.key(request, "data"))

    async def _discard(self, request: PackageRequest) -> None:
        try:
            await self.delete(request)
        except CacheError as exc:
            logger.warning("Could not clean up cache entry for %s: %s", request, exc)


def probe_cache_backend(
    redis_url: Optional[str] = None,
    database_url: Optional[str] = None,
    namespace: str = DEFAULT_NAMESPACE,
    in_memory: bool = False,
) -> CacheBackend:
    """
    Picks the cache backend once, at construction time: Redis when it answers,
    then a SQL database when one is configured, then an in-process store if
    asked for, and the no-op backend otherwise.
    """
    if redis_url and RedisKeyValueStore.probe(redis_url):
        logger.info("Caching packages in Redis at %s", redis_url)
        return KeyValueCacheBackend(RedisKeyValueStore(redis_url), namespace=namespace)

    if database_url:
        try:
            store = SqlAlchemyKeyValueStore(database_url)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Database %s is not usable as package cache: %s", database_url, exc)
        else:
            logger.info("Caching packages in %s", database_url)
            return KeyValueCacheBackend(store, namespace=namespace)

    if in_memory:
        return KeyValueCacheBackend(InMemoryKeyValueStore(), namespace=namespace)

    logger.info("No persistent cache available, packages will always be downloaded")
    return NoopCacheBackend()
