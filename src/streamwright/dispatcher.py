"""Event dispatch for a messages stream.

:class:`EventDispatcher` is a flat table from event ``type`` to handler.
Handlers validate the fields they read and mutate a single
:class:`~streamwright.streaming.ResponseAccumulator`.

Structural fields (indices, required payload fields) are checked
strictly and fail fast.  Unknown event types are logged and skipped, so
new kinds of event never break an older consumer.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Union

from streamwright.errors import ProtocolErrorEvent, SinkError, VariantMismatch
from streamwright.events import (
    BLOCK_VARIANTS,
    DELTA_VARIANTS,
    ContentBlockDelta,
    ContentBlockStart,
    ContentBlockStop,
    InputJSONDelta,
    MessageDelta,
    MessageStart,
    TextBlockStart,
    TextDelta,
    ToolUseBlockStart,
    event_type,
    parse_as,
)
from streamwright.message import AssembledMessage
from streamwright.streaming import ResponseAccumulator, TextSegment, ToolUseSegment

TextSink = Callable[[str], Union[None, Awaitable[None]]]

# Block type name and the only delta variant each segment accepts.
SEGMENT_DELTAS = {
    TextSegment: ("text", TextDelta),
    ToolUseSegment: ("tool_use", InputJSONDelta),
}


class EventDispatcher:
    """Routes decoded events to handlers.

    Args:
        on_text: Called once per text fragment, in stream order.  May
            be a plain function or a coroutine function.  Anything it
            raises aborts the stream as :class:`SinkError`.
        logger: Receives diagnostics about ignored events.  Defaults to
            this module's logger.
    """

    def __init__(
        self,
        on_text: TextSink | None = None,
        *,
        logger: logging.Logger | None = None,
    ):
        self.accumulator = ResponseAccumulator()
        self.on_text = on_text
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.stopped = False
        self._handlers = {
            "message_start": self._on_message_start,
            "content_block_start": self._on_block_start,
            "content_block_delta": self._on_block_delta,
            "content_block_stop": self._on_block_stop,
            "message_delta": self._on_message_delta,
            "message_stop": self._on_message_stop,
            "ping": self._on_ping,
            "error": self._on_error,
        }

    async def dispatch(self, raw: Any) -> bool:
        """Apply one decoded event.  Returns ``True`` once terminal."""
        if self.stopped:
            return True
        kind = event_type(raw)
        handler = self._handlers.get(kind)
        if handler is None:
            self.logger.warning(f"Ignoring unknown event type: {kind}")
            return False
        await handler(raw)
        return self.stopped

    def result(self) -> AssembledMessage:
        """Freeze the accumulated message."""
        return self.accumulator.snapshot()

    # ------------------------------------------------------------------
    # Message-level events
    # ------------------------------------------------------------------

    async def _on_message_start(self, raw: dict) -> None:
        message = parse_as(MessageStart, raw, "message_start").message
        self.accumulator.start(
            id=message.id,
            model=message.model,
            role=message.role,
            type=message.type,
            input_tokens=message.usage.input_tokens,
        )

    async def _on_message_delta(self, raw: dict) -> None:
        event = parse_as(MessageDelta, raw, "message_delta")
        self.accumulator.finish(
            output_tokens=event.usage.output_tokens,
            stop_reason=event.delta.stop_reason,
            stop_sequence=event.delta.stop_sequence,
        )

    async def _on_message_stop(self, raw: dict) -> None:
        self.stopped = True

    async def _on_ping(self, raw: dict) -> None:
        pass

    async def _on_error(self, raw: dict) -> None:
        raise ProtocolErrorEvent(raw)

    # ------------------------------------------------------------------
    # Content block events
    # ------------------------------------------------------------------

    async def _on_block_start(self, raw: dict) -> None:
        event = parse_as(ContentBlockStart, raw, "content_block_start")
        block_type = event.content_block.type
        variant = BLOCK_VARIANTS.get(block_type)
        if variant is None:
            self.logger.debug(
                f"Skipping content block {event.index} of unknown type {block_type}"
            )
            self.accumulator.open_segment(event.index, None)
            return

        block = parse_as(variant, raw["content_block"], f"{block_type} content_block")
        if isinstance(block, TextBlockStart):
            segment = TextSegment(text=block.text)
        elif isinstance(block, ToolUseBlockStart):
            segment = ToolUseSegment(id=block.id, name=block.name)
        else:
            raise TypeError(f"unhandled block variant {type(block).__name__}")
        self.accumulator.open_segment(event.index, segment)

    async def _on_block_delta(self, raw: dict) -> None:
        event = parse_as(ContentBlockDelta, raw, "content_block_delta")
        segment = self.accumulator.segment_at(event.index)
        delta_type = event.delta.type
        if segment is None:
            self.logger.debug(
                f"Ignoring {delta_type} for skipped content block {event.index}"
            )
            return

        block_type, expected = SEGMENT_DELTAS[type(segment)]
        variant = DELTA_VARIANTS.get(delta_type)
        if variant is not expected:
            raise VariantMismatch(
                f"{delta_type} sent to {block_type} block {event.index}",
                index=event.index,
            )
        delta = parse_as(variant, raw["delta"], delta_type)
        if isinstance(delta, TextDelta):
            segment.text += delta.text
            await self._emit(delta.text)
        else:
            segment.partial_arguments += delta.partial_json

    async def _on_block_stop(self, raw: dict) -> None:
        event = parse_as(ContentBlockStop, raw, "content_block_stop")
        segment = self.accumulator.segment_at(event.index)
        if segment is not None:
            segment.close(event.index)

    async def _emit(self, fragment: str) -> None:
        if self.on_text is None:
            return
        try:
            result = self.on_text(fragment)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            raise SinkError(e) from e
