from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from .cache import CacheBackend
from .mime import parse_content_type
from .models import PackageFormatError, PackageRequest
from .package import Package
from .rendering import Renderer

logger = logging.getLogger(__name__)

# Body sent by the server when the hash we announced is still current.
USE_CACHE = "usecache"


class PackageFormat:
    """
    Abstract package format. Implementations fill a package's content store
    from raw data and return the header metadata.
    """

    def parse(self, package: Package, data: str) -> Dict[str, str]:
        raise NotImplementedError


class DelimitedPackageFormat(PackageFormat):
    """
    Multipart text format:

        delimiter: --X--
        hash: abc123

        text/html
        <b>hi</b>--X--text/css; charset=utf-8
        .a{color:red}

    A header block ends at the first blank line and must declare the part
    delimiter. Every part starts with a content-type line; parts whose type
    cannot be resolved are dropped.
    """

    def parse(self, package: Package, data: str) -> Dict[str, str]:
        metadata = self.parse_header(data)
        index = data.find("\n\n")
        body = data[index + 2:] if index != -1 else data

        for part in body.split(metadata["delimiter"]):
            content_type, content = self._split_part(part)
            if content_type:
                package.add_content(content_type, content)

        return metadata

    def parse_header(self, data: str) -> Dict[str, str]:
        metadata: Dict[str, str] = {}
        index = data.find("\n\n")
        if index != -1:
            for line in data[:index].split("\n"):
                key, _, value = line.partition(":")
                metadata[key.strip().lower()] = value.strip()

        delimiter = metadata.get("delimiter")
        if not isinstance(delimiter, str) or not delimiter:
            raise PackageFormatError("No valid part-delimiter found in package data")
        return metadata

    def _split_part(self, part: str) -> Tuple[Optional[str], str]:
        # skip blank leading lines only; whitespace-only lines are a header
        offset = 0
        eol = part.find("\n", offset)
        while eol == offset:
            offset += 1
            eol = part.find("\n", offset)

        if eol == -1:
            raise PackageFormatError("Could not find content-type in package part")

        parsed = parse_content_type(part[offset:eol])
        return parsed.type, part[eol + 1:]


def is_cache_reference(data: str) -> bool:
    return data[: len(USE_CACHE)] == USE_CACHE


def from_data(
    request: PackageRequest,
    data: Optional[str],
    package_format: Optional[PackageFormat] = None,
    renderer: Optional[Renderer] = None,
) -> Tuple[Package, Dict[str, str]]:
    """
    Parses raw data into a new package. Persisting the data is left to the
    caller so that it can happen without holding up the load.
    """
    if not data:
        raise PackageFormatError("Package data is empty")
    if not isinstance(data, str):
        raise PackageFormatError("Package data must be a string")

    package_format = package_format or DelimitedPackageFormat()
    package = Package(request, renderer=renderer)
    metadata = package_format.parse(package, data)
    logger.debug("Parsed package %s (%s content types)", request, len(package.content))
    return package, metadata


async def from_cache(
    request: PackageRequest,
    cache: CacheBackend,
    package_format: Optional[PackageFormat] = None,
    renderer: Optional[Renderer] = None,
) -> Optional[Package]:
    """
    Parses the cached copy of a package without storing it again. Returns
    None on a cache miss; read failures propagate as CacheError.
    """
    data = await cache.get_data(request)
    if not data:
        return None
    package, _ = from_data(request, data, package_format, renderer)
    return package
