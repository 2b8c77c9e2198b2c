"""
Package loading subsystem exports.
"""

from .assimilation import AssimilationEngine
from .cache import CacheBackend, KeyValueCacheBackend, NoopCacheBackend, probe_cache_backend
from .engine import DelimitedPackageFormat, PackageFormat, from_cache, from_data
from .events import EventBus
from .job_queue import RQJobQueue, run_warm_job
from .loader import PackageLoader
from .mime import ContentType, parse_content_type
from .models import (
    CSS,
    HTML,
    JAVASCRIPT,
    CacheError,
    ClientConfig,
    ConnectionState,
    Container,
    LoadError,
    PackageFormatError,
    PackageNotLoadedError,
    PackageRequest,
    PackageSummary,
    Response,
    TransportError,
)
from .package import Package
from .rendering import MemoryRenderer, Renderer
from .repository import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore, SqlAlchemyKeyValueStore
from .settings import LoaderSettings, build_loader
from .transport import HttpxTransport, Transport, classify_status

__all__ = [
    "AssimilationEngine",
    "CSS",
    "CacheBackend",
    "CacheError",
    "ClientConfig",
    "ConnectionState",
    "Container",
    "ContentType",
    "DelimitedPackageFormat",
    "EventBus",
    "HTML",
    "HttpxTransport",
    "InMemoryKeyValueStore",
    "JAVASCRIPT",
    "KeyValueCacheBackend",
    "KeyValueStore",
    "LoadError",
    "LoaderSettings",
    "MemoryRenderer",
    "NoopCacheBackend",
    "Package",
    "PackageFormat",
    "PackageFormatError",
    "PackageLoader",
    "PackageNotLoadedError",
    "PackageRequest",
    "PackageSummary",
    "RQJobQueue",
    "RedisKeyValueStore",
    "Renderer",
    "Response",
    "SqlAlchemyKeyValueStore",
    "Transport",
    "TransportError",
    "build_loader",
    "classify_status",
    "from_cache",
    "from_data",
    "parse_content_type",
    "probe_cache_backend",
    "run_warm_job",
]
