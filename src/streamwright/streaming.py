"""In-progress state of a streamed message.

The dispatcher feeds events into a :class:`ResponseAccumulator`, which
holds the message scalars, token usage and the ordered content
segments.  Segments are addressed by the index the provider assigns;
they must be started strictly in order.  Once the stream terminates,
:meth:`ResponseAccumulator.snapshot` freezes the result into an
:class:`~streamwright.message.AssembledMessage`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from streamwright.errors import (
    IndexOutOfRange,
    MalformedEvent,
    SegmentClosed,
    ToolArgumentParseError,
)
from streamwright.message import AssembledMessage, TextBlock, ToolUseBlock, Usage


@dataclass
class TextSegment:
    """A span of generated text, grown by appending deltas."""

    text: str = ""
    closed: bool = False

    def close(self, index: int) -> None:
        self.closed = True

    def to_block(self) -> TextBlock:
        return TextBlock(text=self.text)


@dataclass
class ToolUseSegment:
    """A tool invocation whose JSON input arrives in fragments."""

    id: str
    name: str
    partial_arguments: str = ""
    arguments: dict[str, Any] | None = None
    closed: bool = False

    def close(self, index: int) -> None:
        """Parse the accumulated fragments into ``arguments``.

        The buffer must hold exactly one JSON object; an empty buffer
        is invalid JSON like any other.
        """
        try:
            parsed = json.loads(self.partial_arguments)
        except json.JSONDecodeError as e:
            raise ToolArgumentParseError(
                f"failed to parse input for tool {self.name!r} at index {index}: {e}",
                index=index, partial_json=self.partial_arguments,
            ) from e
        if not isinstance(parsed, dict):
            raise ToolArgumentParseError(
                f"input for tool {self.name!r} at index {index} is "
                f"{type(parsed).__name__}, expected an object",
                index=index, partial_json=self.partial_arguments,
            )
        self.arguments = parsed
        self.closed = True

    def to_block(self) -> ToolUseBlock:
        return ToolUseBlock(id=self.id, name=self.name, input=self.arguments or {})


Segment = Union[TextSegment, ToolUseSegment]


class ResponseAccumulator:
    """Mutable message under construction.

    Only the dispatcher writes to it, from a single task, so there is
    no locking.  Blocks of a type this library does not model still
    consume their index; they occupy an empty slot so later indices
    line up, and events addressed to them resolve to ``None``.
    """

    def __init__(self) -> None:
        self.id = ""
        self.model = ""
        self.role = ""
        self.type = ""
        self.stop_reason: str | None = None
        self.stop_sequence: str | None = None
        self.input_tokens = 0
        self.output_tokens = 0
        self.started = False
        self.finished = False
        self._slots: list[Segment | None] = []

    @property
    def content(self) -> list[Segment]:
        return [s for s in self._slots if s is not None]

    def start(self, id: str, model: str, role: str, type: str, input_tokens: int) -> None:
        if self.started:
            raise MalformedEvent(
                "duplicate message_start", event_type="message_start",
            )
        self.id = id
        self.model = model
        self.role = role
        self.type = type
        self.input_tokens = input_tokens
        self.started = True

    def finish(
        self,
        output_tokens: int,
        stop_reason: str | None = None,
        stop_sequence: str | None = None,
    ) -> None:
        if self.finished:
            raise MalformedEvent(
                "duplicate message_delta", event_type="message_delta",
            )
        if stop_reason is not None:
            self.stop_reason = stop_reason
        if stop_sequence is not None:
            self.stop_sequence = stop_sequence
        self.output_tokens = output_tokens
        self.finished = True

    @property
    def next_index(self) -> int:
        return len(self._slots)

    def open_segment(self, index: int, segment: Segment | None) -> None:
        """Start the block at *index*; ``None`` reserves a skipped slot."""
        if index != self.next_index:
            raise IndexOutOfRange(
                f"content block started at index {index}, "
                f"expected {self.next_index}",
                index=index,
            )
        self._slots.append(segment)

    def segment_at(self, index: int) -> Segment | None:
        """Return the open segment at *index*.

        ``None`` means the index belongs to a skipped block.
        """
        if index < 0 or index >= len(self._slots):
            raise IndexOutOfRange(
                f"content index {index} out of range "
                f"({len(self._slots)} blocks started)",
                index=index,
            )
        segment = self._slots[index]
        if segment is not None and segment.closed:
            raise SegmentClosed(
                f"content block {index} is already closed", index=index,
            )
        return segment

    def snapshot(self) -> AssembledMessage:
        for index, segment in enumerate(self._slots):
            if isinstance(segment, ToolUseSegment) and not segment.closed:
                raise MalformedEvent(
                    f"message ended before tool_use block {index} was closed",
                    event_type="message_stop",
                )
        return AssembledMessage(
            id=self.id,
            model=self.model,
            role=self.role,
            type=self.type,
            content=tuple(s.to_block() for s in self.content),
            stop_reason=self.stop_reason,
            stop_sequence=self.stop_sequence,
            usage=Usage(
                input_tokens=self.input_tokens,
                output_tokens=self.output_tokens,
            ),
        )
