from streamwright.dispatcher import EventDispatcher
from streamwright.errors import (
    APIStatusError,
    DecodeError,
    IndexOutOfRange,
    MalformedEvent,
    ProtocolErrorEvent,
    SegmentClosed,
    SinkError,
    StreamCancelled,
    StreamError,
    ToolArgumentParseError,
    TruncatedStream,
    VariantMismatch,
)
from streamwright.instrumentation import instrument, uninstrument
from streamwright.message import AssembledMessage, TextBlock, ToolUseBlock, Usage
from streamwright.provider import MessagesClient
from streamwright.runner import StreamRunner, assemble_lines, assemble_response
from streamwright.sse import decode_line
from streamwright.streaming import ResponseAccumulator, TextSegment, ToolUseSegment

__all__ = [
    "APIStatusError",
    "AssembledMessage",
    "DecodeError",
    "EventDispatcher",
    "IndexOutOfRange",
    "MalformedEvent",
    "MessagesClient",
    "ProtocolErrorEvent",
    "ResponseAccumulator",
    "SegmentClosed",
    "SinkError",
    "StreamCancelled",
    "StreamError",
    "StreamRunner",
    "TextBlock",
    "TextSegment",
    "ToolArgumentParseError",
    "ToolUseBlock",
    "ToolUseSegment",
    "TruncatedStream",
    "Usage",
    "VariantMismatch",
    "assemble_lines",
    "assemble_response",
    "decode_line",
    "instrument",
    "uninstrument",
]
