import asyncio
import json

import httpx
import pytest


# ---------------------------------------------------------------------------
# Event builders (mirror the messages stream shape)
# ---------------------------------------------------------------------------

def message_start(
    input_tokens: int = 10,
    message_id: str = "msg_1",
    model: str = "claude-test",
) -> dict:
    return {
        "type": "message_start",
        "message": {
            "id": message_id,
            "type": "message",
            "role": "assistant",
            "model": model,
            "content": [],
            "stop_reason": None,
            "stop_sequence": None,
            "usage": {"input_tokens": input_tokens, "output_tokens": 1},
        },
    }


def text_start(index: int, text: str = "") -> dict:
    return {
        "type": "content_block_start",
        "index": index,
        "content_block": {"type": "text", "text": text},
    }


def tool_start(index: int, name: str, call_id: str) -> dict:
    return {
        "type": "content_block_start",
        "index": index,
        "content_block": {
            "type": "tool_use", "id": call_id, "name": name, "input": {},
        },
    }


def text_delta(index: int, text: str) -> dict:
    return {
        "type": "content_block_delta",
        "index": index,
        "delta": {"type": "text_delta", "text": text},
    }


def json_delta(index: int, partial_json: str) -> dict:
    return {
        "type": "content_block_delta",
        "index": index,
        "delta": {"type": "input_json_delta", "partial_json": partial_json},
    }


def block_stop(index: int) -> dict:
    return {"type": "content_block_stop", "index": index}


def message_delta(
    output_tokens: int = 3,
    stop_reason: str | None = "end_turn",
    stop_sequence: str | None = None,
) -> dict:
    return {
        "type": "message_delta",
        "delta": {"stop_reason": stop_reason, "stop_sequence": stop_sequence},
        "usage": {"output_tokens": output_tokens},
    }


MESSAGE_STOP = {"type": "message_stop"}
PING = {"type": "ping"}


def sse_lines(events: list[dict]) -> list[str]:
    """Render events the way the server frames them: an ``event:``
    line, a ``data:`` line and a blank separator."""
    lines = []
    for event in events:
        lines.append(f"event: {event['type']}")
        lines.append(f"data: {json.dumps(event)}")
        lines.append("")
    return lines


def sse_body(events: list[dict]) -> bytes:
    return ("\n".join(sse_lines(events)) + "\n").encode()


def hello_events() -> list[dict]:
    return [
        message_start(input_tokens=10),
        text_start(0),
        text_delta(0, "Hi"),
        text_delta(0, " there"),
        block_stop(0),
        message_delta(output_tokens=3),
        MESSAGE_STOP,
    ]


# ---------------------------------------------------------------------------
# Transport doubles
# ---------------------------------------------------------------------------

class LineSource:
    """Async line iterator standing in for a response body.

    Records every line handed out and whether it was closed.  With
    ``hang=True`` it blocks forever once the lines run out; with
    ``fail_with`` it raises that exception instead of ending.
    """

    def __init__(self, lines, *, hang=False, fail_with=None):
        self._lines = list(lines)
        self.hang = hang
        self.fail_with = fail_with
        self.served: list[str] = []
        self.closed = False
        self.exhausted = asyncio.Event()

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        if self._lines:
            line = self._lines.pop(0)
            self.served.append(line)
            return line
        self.exhausted.set()
        if self.fail_with is not None:
            raise self.fail_with
        if self.hang:
            await asyncio.Event().wait()
        raise StopAsyncIteration

    async def aclose(self) -> None:
        self.closed = True


class Recorder:
    """Text sink that records each fragment."""

    def __init__(self):
        self.fragments: list[str] = []

    def __call__(self, fragment: str) -> None:
        self.fragments.append(fragment)


@pytest.fixture
def recorder():
    return Recorder()


class TrackingStream(httpx.AsyncByteStream):
    """Response body that records whether it was closed."""

    def __init__(self, body: bytes):
        self.body = body
        self.closed = False

    async def __aiter__(self):
        yield self.body

    async def aclose(self) -> None:
        self.closed = True
