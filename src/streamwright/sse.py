"""Server-Sent Events decoding for provider streams."""

from __future__ import annotations

import json
from typing import Any

from streamwright.errors import DecodeError

DATA_PREFIX = "data:"


def decode_line(line: str) -> Any | None:
    """Decode one line of an SSE body.

    Returns ``None`` for lines that carry no event (blank keep-alives,
    ``event:`` names, comments).  The remainder of a ``data:`` line
    must be valid JSON; anything else raises :class:`DecodeError`.
    """
    line = line.rstrip("\r\n")
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):]
    if data.startswith(" "):
        data = data[1:]
    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise DecodeError(f"failed to parse stream event: {e}", line=line) from e
