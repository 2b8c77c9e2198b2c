from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set
from urllib.parse import quote, urlencode

from .assimilation import AssimilationEngine
from .cache import CacheBackend, NoopCacheBackend
from .engine import PackageFormat, from_cache, from_data, is_cache_reference
from .events import EventBus, Handler
from .models import (
    CSS,
    JAVASCRIPT,
    CacheError,
    ClientConfig,
    ConnectionState,
    Container,
    LoadError,
    PackageFormatError,
    PackageNotLoadedError,
    PackageRequest,
    TransportError,
    format_density,
)
from .package import Package
from .rendering import MemoryRenderer, Renderer
from .transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)

ScriptSink = Callable[[str, Package], Any]
LoadCallback = Callable[[Optional[LoadError], Any], Any]

MAINTENANCE_STATUS = 503


def _noop(*args: Any) -> None:
    return None


class PackageLoader:
    """
    Loads packages by name, from the cache or the package server, and keeps
    them registered by name.

    A load runs request -> cache lookup -> download -> parse -> register ->
    script -> "loaded". Network failures, maintenance (503) and corrupt
    package data are retried forever at a fixed interval; all other failures
    are final and reported to the callback.

    All methods that start loads must run inside an asyncio event loop. The
    loader is not thread-safe and does not need to be: it only mutates its
    state from its own tasks and timers.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        cache: Optional[CacheBackend] = None,
        renderer: Optional[Renderer] = None,
        script_sink: Optional[ScriptSink] = None,
        package_format: Optional[PackageFormat] = None,
        assimilation: Optional[AssimilationEngine] = None,
        events: Optional[EventBus] = None,
        timeout: float = 30.0,
        retry_interval: float = 1.5,
    ):
        self.transport: Transport = transport if transport is not None else HttpxTransport()
        self.cache: CacheBackend = cache if cache is not None else NoopCacheBackend()
        self.renderer: Renderer = renderer if renderer is not None else MemoryRenderer()
        self.script_sink = script_sink
        self.package_format = package_format
        self.assimilation = assimilation if assimilation is not None else AssimilationEngine()
        self.events = events if events is not None else EventBus()

        # network
        self.connection_state = ConnectionState.ONLINE
        self.timeout = timeout
        self.retry_interval = retry_interval

        # packages
        self.packages: Dict[str, Package] = {}
        self.active_package: Optional[Package] = None

        # configuration
        self.base_url = ""
        self.cors: Optional[Mapping[str, Any]] = None
        self.app_name: Optional[str] = None
        self.languages: List[str] = []
        self.densities: List[float] = []
        self.client_config = ClientConfig()

        self._tasks: Set[asyncio.Task] = set()
        self._retries: Dict[object, asyncio.TimerHandle] = {}
        self._closed = False

    # region events
    def on(self, event: str, handler: Handler) -> Handler:
        return self.events.on(event, handler)

    def off(self, event: str, handler: Handler) -> None:
        self.events.off(event, handler)

    def _emit(self, event: str, package_name: str, *args: Any) -> None:
        self.events.emit(f"{package_name}.{event}", *args)
        self.events.emit(event, *args)

    # endregion

    # region configuration
    def configure(self, cfg: Mapping[str, Any]) -> None:
        """
        Applies configuration; may be called more than once. Recognized keys:
        app_name, base_url, cors, languages, densities (or both nested under
        app_variants), viewport (width, height), timeout and retry_interval.
        """
        if cfg is None:
            raise ValueError("No configuration provided.")

        app_name = cfg.get("app_name")
        if app_name:
            if not isinstance(app_name, str):
                raise TypeError("config.app_name must be a string")
            if self.app_name and self.app_name != app_name:
                raise ValueError("You are not allowed to change the app_name once set")
            self.app_name = app_name

        base_url = cfg.get("base_url")
        if base_url:
            if not isinstance(base_url, str):
                raise TypeError("config.base_url must be a string")
            self.base_url = base_url.rstrip("/")

        if cfg.get("cors"):
            self.cors = cfg["cors"]

        if cfg.get("timeout") is not None:
            self.timeout = float(cfg["timeout"])
        if cfg.get("retry_interval") is not None:
            self.retry_interval = float(cfg["retry_interval"])

        variants = cfg.get("app_variants") or {}
        languages = cfg.get("languages", variants.get("languages"))
        densities = cfg.get("densities", variants.get("densities"))

        if languages:
            if not isinstance(languages, (list, tuple)):
                raise TypeError("languages must be a list of strings")
            self.languages = [language.lower() for language in languages]
            # unset the current language when the app no longer supports it
            if self.client_config.language and self.client_config.language not in self.languages:
                self.client_config.language = None

        if densities:
            if not isinstance(densities, (list, tuple)):
                raise TypeError("densities must be a list of numbers")
            self.densities = list(densities)
            if self.client_config.density and self.client_config.density not in self.densities:
                self.client_config.density = None

        if self.languages and self.client_config.language is None:
            self.set_language(self.languages[0])
        if self.densities and self.client_config.density is None:
            self.set_density(self.densities[0])

        viewport = cfg.get("viewport")
        if not self.client_config.screen and viewport and viewport[0] and viewport[1]:
            self.set_screen(viewport[0], viewport[1])

    def set_language(self, language: str) -> None:
        language = language.lower()
        if language not in self.languages:
            raise ValueError(f'Language "{language}" is not supported by this application.')
        if self.client_config.language != language:
            self.client_config.language = language
            self.events.emit("language", language)

    def set_density(self, density: float) -> None:
        if density not in self.densities:
            raise ValueError(f"Density {density} is not supported by this application.")
        if self.client_config.density != density:
            self.client_config.density = density
            self.events.emit("density", density)

    def set_screen(self, width: int, height: int) -> None:
        for label, value in (("width", width), ("height", height)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"Screen {label} must be a number")
        screen = f"{width:g}x{height:g}"
        if self.client_config.screen != screen:
            self.client_config.screen = screen
            self.events.emit("screen", screen)

    def set_cache_backend(self, cache: CacheBackend) -> None:
        self.cache = cache

    # endregion

    # region connection state
    def _set_connection_state(
        self,
        state: ConnectionState,
        error: Optional[LoadError] = None,
        package_name: Optional[str] = None,
    ) -> None:
        if self.connection_state == state:
            return
        logger.info("Connection state %s -> %s", self.connection_state.value, state.value)
        self.connection_state = state
        if error is not None and package_name:
            error.package_name = package_name
        self.events.emit(state.value, error)

    # endregion

    def create_package_request(self, package_name: str) -> PackageRequest:
        return PackageRequest(
            app_name=self.app_name,
            package_name=package_name,
            language=self.client_config.language,
            screen=self.client_config.screen or "0x0",
            density=self.client_config.density,
        )

    def get_package_url(self, request: PackageRequest, hash_: Optional[str] = None) -> str:
        params = [
            ("language", request.language),
            ("screen", request.screen),
            ("density", format_density(request.density)),
        ]
        if hash_:
            params.append(("hash", hash_))
        # defeat intermediate HTTP caches
        params.append(("rand", uuid.uuid4().hex))

        path = f"/app/{quote(request.app_name, safe='')}/{quote(request.package_name, safe='')}"
        return f"{self.base_url}{path}?{urlencode(params, quote_via=quote)}"

    def register_package(self, package: Package) -> Package:
        """
        Registers a package by name. If a package by that name is already
        registered, the new one is merged into it and the registered instance
        is returned.
        """
        existing = self.packages.get(package.name)
        if existing is None:
            self.packages[package.name] = package

        # post-processors get to see the freshly parsed content
        self._emit("parsed", package.name, package)

        if existing is not None:
            self.assimilation.assimilate(existing, package)
            return existing
        return package

    def run_script(self, package: Package) -> None:
        source = package.claim_all_content(JAVASCRIPT)
        if not source:
            return
        if self.script_sink is None:
            logger.warning("No script sink registered, dropping script of package %s", package.name)
            return
        self.script_sink(source, package)

    # region loading
    def load_package(self, package_name: str, callback: Optional[LoadCallback] = None) -> asyncio.Task:
        """
        Starts loading a package and returns the task running this attempt.
        The callback receives (error, package) once the load succeeded or
        failed for good; it is not called while the loader keeps retrying.
        """
        if self._closed:
            raise RuntimeError("The loader has been closed")
        task = asyncio.get_running_loop().create_task(self._attempt(package_name, callback or _noop))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def load_packages(self, package_names: Iterable[str], callback: Optional[LoadCallback] = None) -> None:
        """
        Loads packages one by one. The first error aborts the remaining ones.
        The callback receives (error, loaded_packages).
        """
        queue = list(package_names)
        loaded: List[Package] = []
        callback = callback or _noop

        def next_package(error: Optional[LoadError] = None, package: Optional[Package] = None) -> None:
            if error is not None:
                callback(error, loaded)
                return
            if package is not None:
                loaded.append(package)
            if not queue:
                callback(None, loaded)
                return
            self.load_package(queue.pop(0), next_package)

        next_package()

    async def fetch_package(self, package_name: str) -> Package:
        """Awaitable form of load_package: raises the final LoadError."""
        future = asyncio.get_running_loop().create_future()

        def done(error: Optional[LoadError], package: Optional[Package]) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(package)

        self.load_package(package_name, done)
        return await future

    async def fetch_packages(self, package_names: Iterable[str]) -> List[Package]:
        future = asyncio.get_running_loop().create_future()

        def done(error: Optional[LoadError], packages: List[Package]) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(packages)

        self.load_packages(package_names, done)
        return await future

    async def _attempt(self, package_name: str, callback: LoadCallback) -> None:
        try:
            package = await self._run_attempt(package_name, callback)
        except Exception as exc:  # noqa: BLE001
            # e.g. a raising event handler; the load still has to end
            self._emit_error(LoadError("Unexpected error while loading package", None, exc), package_name, callback)
            return
        if package is not None:
            callback(None, package)

    async def _run_attempt(self, package_name: str, callback: LoadCallback) -> Optional[Package]:
        """Runs one pipeline pass. Returns the package, or None once a failure has been reported."""
        try:
            request = self.create_package_request(package_name)
        except (TypeError, ValueError) as exc:
            self._emit_error(LoadError("create_package_request error", None, exc), package_name, callback)
            return

        # the cached hash lets the server answer "usecache"
        metadata = None
        try:
            metadata = await self.cache.get_metadata(request)
        except CacheError as exc:
            self._emit_warning(LoadError("Cache error", None, exc), package_name)

        url = self.get_package_url(request, metadata.get("hash") if metadata else None)

        try:
            response = await self.transport.fetch(url, timeout=self.timeout, cors=self.cors)
        except TransportError as exc:
            self._download_failed(LoadError("Download failed", exc.response, exc), package_name, callback)
            return
        except ValueError as exc:
            self._emit_error(LoadError(str(exc), None, exc), package_name, callback)
            return

        self._set_connection_state(ConnectionState.ONLINE, None, package_name)

        data = response.data
        use_cache = isinstance(data, str) and is_cache_reference(data)
        try:
            if use_cache:
                package = await from_cache(request, self.cache, self.package_format, self.renderer)
                if package is None:
                    self._emit_error(LoadError("Cached package data is not available", response), package_name, callback)
                    return
            else:
                package, metadata = from_data(request, data, self.package_format, self.renderer)
        except CacheError as exc:
            self._emit_error(LoadError("Cache read failed", response, exc), package_name, callback)
            return
        except PackageFormatError as exc:
            # a corrupt download, or a corrupt cache entry that must not be
            # offered to the server again
            if use_cache:
                await self._discard_cache(request)
            load_error = LoadError("Package parsing failed", response, exc)
            self._auto_retry(load_error, package_name, callback)
            self._emit_error(load_error, package_name, callback)
            return

        if not use_cache:
            self._spawn(self._store(request, metadata, data))

        package = self.register_package(package)

        try:
            self.run_script(package)
        except Exception as exc:  # noqa: BLE001
            self._emit_error(LoadError("Error while running package script", response, exc), package_name, callback)
            return

        self._emit("loaded", package.name, package)
        return package

    def _download_failed(self, load_error: LoadError, package_name: str, callback: LoadCallback) -> None:
        response = load_error.response
        if response is None or response.code == 0:
            self._auto_retry(load_error, package_name, callback)
            self._set_connection_state(ConnectionState.OFFLINE, load_error, package_name)
        elif response.code == MAINTENANCE_STATUS:
            self._auto_retry(load_error, package_name, callback)
            self._set_connection_state(ConnectionState.MAINTENANCE, load_error, package_name)
        else:
            # the server answered, so it is reachable
            self._set_connection_state(ConnectionState.ONLINE, load_error, package_name)
        self._emit_error(load_error, package_name, callback)

    def _auto_retry(self, load_error: LoadError, package_name: str, callback: LoadCallback) -> None:
        load_error.is_retrying = True
        token = object()

        def retry() -> None:
            self._retries.pop(token, None)
            if not self._closed:
                self.load_package(package_name, callback)

        self._retries[token] = asyncio.get_running_loop().call_later(self.retry_interval, retry)

    def _emit_error(self, error: LoadError, package_name: str, callback: LoadCallback) -> None:
        error.package_name = package_name
        if error.is_retrying:
            logger.warning("Loading package %s failed, retrying in %ss: %s", package_name, self.retry_interval, error)
        else:
            logger.error("Loading package %s failed: %s", package_name, error)

        self.events.emit("error", error)
        self.events.emit(f"{package_name}.error", error)

        if not error.is_retrying:
            asyncio.get_running_loop().call_soon(callback, error, None)

    def _emit_warning(self, warning: LoadError, package_name: str) -> None:
        warning.package_name = package_name
        logger.warning("Package %s: %s", package_name, warning)
        self.events.emit("warning", warning)
        self.events.emit(f"{package_name}.warning", warning)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _store(self, request: PackageRequest, metadata: Dict[str, Any], data: str) -> None:
        try:
            await self.cache.set(request, metadata, data)
        except CacheError as exc:
            logger.warning("Could not cache package %s: %s", request, exc)

    async def _discard_cache(self, request: PackageRequest) -> None:
        try:
            await self.cache.delete(request)
        except CacheError as exc:
            logger.warning("Could not drop cached package %s: %s", request, exc)

    async def wait_idle(self) -> None:
        """Waits for background work (cache writes) started by finished loads."""
        current = asyncio.current_task()
        pending = [task for task in self._tasks if task is not current]
        if pending:
            await asyncio.wait(pending)

    def close(self) -> None:
        """Cancels pending retries and in-flight loads. The loader cannot be reused."""
        self._closed = True
        for handle in self._retries.values():
            handle.cancel()
        self._retries.clear()
        for task in list(self._tasks):
            task.cancel()

    # endregion

    # region registry
    def list_packages(self) -> List[Package]:
        return list(self.packages.values())

    def get_package(self, package_name: str) -> Package:
        package = self.packages.get(package_name)
        if package is None:
            raise PackageNotLoadedError(f'Package "{package_name}" has not been loaded (yet).')
        return package

    def get_active_package(self) -> Optional[Package]:
        return self.active_package

    def get_html(self, package_name: str) -> Container:
        return self.get_package(package_name).get_html()

    def inject_html(self, package_name: str) -> Container:
        return self.get_package(package_name).inject_html()

    def display_package(self, package_name: str) -> Optional[Container]:
        """
        Shows the package with the given name and hides the active one: CSS
        and HTML are injected and the HTML container is made visible.
        """
        package = self.get_package(package_name)

        if self.active_package is not None:
            if package is self.active_package:
                return None
            previous = self.active_package
            self._emit("close", previous.name, previous)
            previous.hide_html()
            if CSS in previous.containers:
                previous.eject_css()

        self.active_package = package
        package.inject_css()
        container = package.show_html()

        self._emit("display", package.name, container, package)
        return container

    # endregion
