from __future__ import annotations

from typing import Dict, List, Optional, Union
from urllib.parse import parse_qs, urlparse

import pytest

from client_packages.loader import (
    CacheError,
    InMemoryKeyValueStore,
    KeyValueCacheBackend,
    MemoryRenderer,
    PackageLoader,
    Response,
    TransportError,
    classify_status,
)

SAMPLE_PACKAGE = (
    "delimiter: --X--\n"
    "hash: abc123\n"
    "\n"
    "text/html\n<b>hi</b>--X--text/css\n.a{color:red}--X--text/javascript\nwindow.ready = true;"
)


def make_package_data(html: str = "<b>hi</b>", css: str = ".a{color:red}", js: Optional[str] = None, extra: Dict[str, str] = None, hash_: str = "abc123") -> str:
    parts = []
    if html:
        parts.append(f"text/html\n{html}")
    if css:
        parts.append(f"text/css\n{css}")
    if js:
        parts.append(f"text/javascript\n{js}")
    for content_type, content in (extra or {}).items():
        parts.append(f"{content_type}\n{content}")
    return f"delimiter: --X--\nhash: {hash_}\n\n" + "--X--".join(parts)


class FakeTransport:
    """
    Plays back queued outcomes. Each outcome is a Response (status codes are
    classified the way a real transport would), an exception instance, or
    None for "no response".
    """

    def __init__(self, outcomes: List[Union[Response, Exception, None]] = None):
        self.outcomes = list(outcomes or [])
        self.urls: List[str] = []
        self.calls: List[dict] = []

    def queue(self, *outcomes):
        self.outcomes.extend(outcomes)

    def params(self, index: int = -1) -> Dict[str, List[str]]:
        return parse_qs(urlparse(self.urls[index]).query)

    async def fetch(self, url, timeout=None, cors=None):
        self.urls.append(url)
        self.calls.append({"timeout": timeout, "cors": cors})
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if outcome is None:
            raise TransportError("Request timed out")
        if isinstance(outcome, Exception):
            raise outcome
        classify_status(outcome)
        return outcome


class SpyStore(InMemoryKeyValueStore):
    def __init__(self):
        super().__init__()
        self.removed: List[str] = []
        self.fail_reads = False
        self.fail_writes = False

    def get_item(self, key):
        if self.fail_reads:
            raise CacheError("storage unavailable")
        return super().get_item(key)

    def set_item(self, key, value):
        if self.fail_writes:
            raise CacheError("quota exceeded")
        super().set_item(key, value)

    def remove_item(self, key):
        self.removed.append(key)
        super().remove_item(key)


class ScriptRecorder:
    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    def __call__(self, source, package):
        self.calls.append((source, package.name))
        if self.fail:
            raise RuntimeError("script crashed")


def ok(data: str, code: int = 200) -> Response:
    return Response(code=code, data=data, content_type="text/plain", charset="utf-8")


@pytest.fixture
def store():
    return SpyStore()


@pytest.fixture
def cache(store):
    return KeyValueCacheBackend(store)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def scripts():
    return ScriptRecorder()


@pytest.fixture
def renderer():
    return MemoryRenderer()


@pytest.fixture
def loader(transport, cache, renderer, scripts):
    loader = PackageLoader(
        transport=transport,
        cache=cache,
        renderer=renderer,
        script_sink=scripts,
        retry_interval=0.01,
    )
    loader.configure(
        {
            "app_name": "game",
            "base_url": "http://packages.test",
            "languages": ["en", "ja"],
            "densities": [1, 2],
            "viewport": (1280, 720),
        }
    )
    return loader
