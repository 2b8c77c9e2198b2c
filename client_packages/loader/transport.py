from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

import httpx

from .mime import parse_content_type
from .models import Response, TransportError

logger = logging.getLogger(__name__)

CredentialHook = Callable[[str], Mapping[str, str]]


class Transport(Protocol):
    async def fetch(self, url: str, timeout: Optional[float] = None, cors: Optional[Mapping[str, Any]] = None) -> Response:
        ...


def classify_status(response: Response) -> None:
    """
    Raises TransportError for status codes the loader must treat as failures.

    0 is a network issue, 1xx should never reach us, 3xx is resolved by the
    client before we get here, 4xx is a request error and 5xx a server error
    (503 meaning the server is in maintenance).
    """
    code = response.code
    if code == 0:
        raise TransportError("Network issue", response)
    if 100 <= code <= 199:
        raise TransportError("Unexpected informational response", response)
    if 400 <= code <= 499:
        raise TransportError("Request failed", response)
    if 500 <= code <= 599:
        if code == 503:
            raise TransportError("Server in maintenance", response)
        raise TransportError("Server error", response)


class HttpxTransport:
    """
    Async HTTP transport based on httpx. Timeouts and connection failures are
    reported without a response.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        credential_hook: Optional[CredentialHook] = None,
    ):
        self.client = client
        self.credential_hook = credential_hook

    def _headers(self, url: str, cors: Optional[Mapping[str, Any]]) -> Dict[str, str]:
        headers = {"Cache-Control": "no-cache"}
        if cors and cors.get("credentials") and self.credential_hook is not None:
            headers.update(self.credential_hook(url))
        return headers

    async def fetch(self, url: str, timeout: Optional[float] = None, cors: Optional[Mapping[str, Any]] = None) -> Response:
        try:
            request_url = httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise ValueError(f"Invalid package URL {url}: {exc}") from exc

        # basic auth credentials embedded in the URL
        auth = None
        if request_url.username:
            auth = httpx.BasicAuth(request_url.username, request_url.password)

        headers = self._headers(url, cors)
        try:
            if self.client is not None:
                raw = await self.client.get(request_url, headers=headers, timeout=timeout, auth=auth, follow_redirects=True)
            else:
                async with httpx.AsyncClient() as client:
                    raw = await client.get(request_url, headers=headers, timeout=timeout, auth=auth, follow_redirects=True)
        except httpx.UnsupportedProtocol as exc:
            raise ValueError(f"Unsupported package URL {url}") from exc
        except httpx.TimeoutException as exc:
            raise TransportError("Request timed out") from exc
        except httpx.RequestError as exc:
            # connection failures, redirect loops, undecodable bodies
            raise TransportError(f"Network issue: {exc}") from exc

        content_type = parse_content_type(raw.headers.get("content-type"))
        response = Response(
            code=raw.status_code,
            data=raw.text,
            content_type=content_type.type,
            charset=content_type.charset,
        )
        logger.debug("GET %s -> %s", url, response.code)
        classify_status(response)
        return response
