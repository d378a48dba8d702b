"""Typed views of the events carried on a messages stream.

Each ``data:`` line decodes into a generic JSON object.  The dispatcher
reads its ``type`` and validates the rest against the matching model
below, so a missing or ill-typed field surfaces as
:class:`~streamwright.errors.MalformedEvent` instead of a stray
``KeyError`` deep inside a handler.  Fields not listed here are ignored.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError

from streamwright.errors import MalformedEvent


class WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


# message_start

class StartUsage(WireModel):
    input_tokens: StrictInt


class MessageStartBody(WireModel):
    id: StrictStr
    model: StrictStr
    role: StrictStr
    type: StrictStr
    usage: StartUsage


class MessageStart(WireModel):
    message: MessageStartBody


# content_block_start

class BlockHeader(WireModel):
    """The ``content_block`` of a start event, before its variant is known."""

    model_config = ConfigDict(extra="allow", frozen=True)

    type: StrictStr


class TextBlockStart(WireModel):
    text: StrictStr = ""


class ToolUseBlockStart(WireModel):
    id: StrictStr
    name: StrictStr


class ContentBlockStart(WireModel):
    index: StrictInt
    content_block: BlockHeader


# content_block_delta

class DeltaHeader(WireModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    type: StrictStr


class TextDelta(WireModel):
    text: StrictStr


class InputJSONDelta(WireModel):
    partial_json: StrictStr


class ContentBlockDelta(WireModel):
    index: StrictInt
    delta: DeltaHeader


# content_block_stop

class ContentBlockStop(WireModel):
    index: StrictInt


# message_delta

class MessageDeltaBody(WireModel):
    stop_reason: StrictStr | None = None
    stop_sequence: StrictStr | None = None


class DeltaUsage(WireModel):
    output_tokens: StrictInt


class MessageDelta(WireModel):
    delta: MessageDeltaBody
    usage: DeltaUsage


BLOCK_VARIANTS: dict[str, type[WireModel]] = {
    "text": TextBlockStart,
    "tool_use": ToolUseBlockStart,
}

DELTA_VARIANTS: dict[str, type[WireModel]] = {
    "text_delta": TextDelta,
    "input_json_delta": InputJSONDelta,
}

M = TypeVar("M", bound=BaseModel)


def event_type(raw: Any) -> str:
    """Return the ``type`` of a decoded event."""
    if not isinstance(raw, dict):
        raise MalformedEvent(
            f"expected a JSON object event, got {type(raw).__name__}"
        )
    value = raw.get("type")
    if not isinstance(value, str):
        raise MalformedEvent("event has no string 'type' field")
    return value


def parse_as(model: type[M], raw: Any, kind: str) -> M:
    """Validate *raw* against *model*, raising ``MalformedEvent``."""
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise MalformedEvent(
            f"invalid {kind}: {_describe(e)}", event_type=kind,
        ) from e


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    loc = ".".join(str(part) for part in first["loc"]) or "<root>"
    return f"{loc}: {first['msg']}"
