"""
Content-type header resolution for package parts and HTTP responses.

See RFC 1341 section 4 for the header syntax. Only the bare type and the
charset parameter are of interest here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_PARAM_SPLIT = re.compile(r"\s*;\s*")
_CHARSET = re.compile(r"^charset=(.+?)$")


@dataclass
class ContentType:
    type: Optional[str] = None
    parameter: Optional[str] = None
    charset: Optional[str] = None


def parse_content_type(header: Optional[str]) -> ContentType:
    result = ContentType()
    if not isinstance(header, str):
        return result

    pieces = _PARAM_SPLIT.split(header.strip())
    mime_type = pieces[0]
    parameter = pieces[1] if len(pieces) > 1 else None

    if not mime_type:
        return result

    result.type = mime_type
    if mime_type == "application/json":
        # utf-8 is the default encoding for JSON (RFC 4627)
        result.charset = "utf-8"

    if parameter:
        result.parameter = parameter
        match = _CHARSET.match(parameter)
        if match:
            result.charset = match.group(1)

    return result
