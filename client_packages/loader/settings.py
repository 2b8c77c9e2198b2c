from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .cache import DEFAULT_NAMESPACE, probe_cache_backend
from .loader import PackageLoader, ScriptSink
from .rendering import MemoryRenderer, Renderer
from .transport import HttpxTransport


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class LoaderSettings:
    app_name: str
    base_url: str
    languages: List[str] = field(default_factory=lambda: ["en"])
    densities: List[float] = field(default_factory=lambda: [1.0])
    screen_width: Optional[int] = None
    screen_height: Optional[int] = None
    timeout: float = 30.0
    retry_interval: float = 1.5
    redis_url: Optional[str] = None
    database_url: Optional[str] = None
    cache_namespace: str = DEFAULT_NAMESPACE
    cors_credentials: bool = False

    @classmethod
    def from_env(cls) -> "LoaderSettings":
        width = os.getenv("PACKAGE_LOADER_SCREEN_WIDTH")
        height = os.getenv("PACKAGE_LOADER_SCREEN_HEIGHT")
        return cls(
            app_name=os.getenv("PACKAGE_LOADER_APP_NAME", "app"),
            base_url=os.getenv("PACKAGE_LOADER_BASE_URL", "http://localhost:8080"),
            languages=_split(os.getenv("PACKAGE_LOADER_LANGUAGES", "en")),
            densities=[float(d) for d in _split(os.getenv("PACKAGE_LOADER_DENSITIES", "1"))],
            screen_width=int(width) if width else None,
            screen_height=int(height) if height else None,
            timeout=float(os.getenv("PACKAGE_LOADER_TIMEOUT", "30")),
            retry_interval=float(os.getenv("PACKAGE_LOADER_RETRY_INTERVAL", "1.5")),
            redis_url=os.getenv("REDIS_URL") or None,
            database_url=os.getenv("DATABASE_URL") or None,
            cache_namespace=os.getenv("PACKAGE_LOADER_CACHE_NAMESPACE", DEFAULT_NAMESPACE),
            cors_credentials=os.getenv("PACKAGE_LOADER_CORS_CREDENTIALS", "").lower() in ("1", "true", "yes"),
        )

    def loader_config(self) -> dict:
        config = {
            "app_name": self.app_name,
            "base_url": self.base_url,
            "languages": self.languages,
            "densities": self.densities,
            "timeout": self.timeout,
            "retry_interval": self.retry_interval,
        }
        if self.cors_credentials:
            config["cors"] = {"credentials": True}
        if self.screen_width and self.screen_height:
            config["viewport"] = (self.screen_width, self.screen_height)
        return config


def build_loader(
    settings: LoaderSettings,
    renderer: Optional[Renderer] = None,
    script_sink: Optional[ScriptSink] = None,
    transport_factory: Callable[[], HttpxTransport] = HttpxTransport,
) -> PackageLoader:
    """
    Wires a loader from settings. The cache backend is probed here, once.
    """
    cache = probe_cache_backend(
        redis_url=settings.redis_url,
        database_url=settings.database_url,
        namespace=settings.cache_namespace,
    )
    loader = PackageLoader(
        transport=transport_factory(),
        cache=cache,
        renderer=renderer or MemoryRenderer(),
        script_sink=script_sink,
    )
    loader.configure(settings.loader_config())
    return loader
