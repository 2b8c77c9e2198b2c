from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from numbers import Real
from typing import Any, Dict, List, Optional

HTML = "text/html"
CSS = "text/css"
JAVASCRIPT = "text/javascript"


class ConnectionState(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    MAINTENANCE = "maintenance"


class PackageFormatError(ValueError):
    """Raised when package data does not follow the multipart wire format."""


class CacheError(Exception):
    """Raised by cache backends and key-value stores on storage failures."""


class PackageNotLoadedError(LookupError):
    pass


def format_density(density: Real) -> str:
    return f"{density:g}"


@dataclass(frozen=True)
class PackageRequest:
    """
    Identity of a package for a particular client context. The key is what
    cache backends store entries under.
    """

    app_name: str
    package_name: str
    language: str
    screen: str
    density: float

    def __post_init__(self) -> None:
        if not self.app_name or not isinstance(self.app_name, str):
            raise TypeError("A PackageRequest needs an app_name (string)")
        if not self.package_name or not isinstance(self.package_name, str):
            raise TypeError("A PackageRequest needs a package_name (string)")
        if not self.language or not isinstance(self.language, str):
            raise TypeError("A PackageRequest needs a language (string)")
        if not self.screen or not isinstance(self.screen, str):
            raise TypeError("A PackageRequest needs a screen resolution (string)")
        if isinstance(self.density, bool) or not isinstance(self.density, Real) or not self.density:
            raise TypeError("A PackageRequest needs a pixel density (number)")

    @property
    def key(self) -> str:
        # Screen resolution is left out: it changes too often to be part of
        # the identity until it is snapped to the resolutions an app supports.
        return "/".join([self.app_name, self.package_name, self.language, format_density(self.density)])

    def __str__(self) -> str:
        return self.key


@dataclass
class ClientConfig:
    language: Optional[str] = None
    density: Optional[float] = None
    screen: Optional[str] = None


@dataclass
class Response:
    code: int
    data: str
    content_type: Optional[str] = None
    charset: Optional[str] = None


class TransportError(Exception):
    """
    Download failure. `response` is None when no response was received at all
    (network failure or timeout).
    """

    def __init__(self, message: str, response: Optional[Response] = None):
        super().__init__(message)
        self.response = response


class LoadError(Exception):
    def __init__(
        self,
        message: str,
        response: Optional[Response] = None,
        error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.response = response
        self.error = error
        # True while the loader retries on its own and no intervention is needed.
        self.is_retrying = False
        self.package_name: Optional[str] = None

    def __str__(self) -> str:
        if self.error is not None:
            return f"{self.message}: {self.error}"
        return self.message


@dataclass(eq=False)
class Container:
    content_type: str
    package_name: Optional[str]
    content: str = ""
    parent: Optional[str] = None
    visible: bool = True
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PackageSummary:
    name: str
    language: str
    screen: str
    density: float
    content_types: List[str]
    containers: List[str]
