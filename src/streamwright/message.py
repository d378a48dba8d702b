from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Usage(BaseModel):
    model_config = ConfigDict(frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0


class TextBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str = ""


class ToolUseBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


ContentBlock = Annotated[
    Union[TextBlock, ToolUseBlock], Field(discriminator="type")
]


class AssembledMessage(BaseModel):
    """A completed message, as reconstructed from its event stream."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    model: str = ""
    role: str = ""
    type: str = ""
    content: tuple[ContentBlock, ...] = ()
    stop_reason: str | None = None
    stop_sequence: str | None = None
    usage: Usage = Field(default_factory=Usage)

    @property
    def text(self) -> str:
        """All text blocks joined in order."""
        return "".join(
            block.text for block in self.content
            if isinstance(block, TextBlock)
        )

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [
            block for block in self.content
            if isinstance(block, ToolUseBlock)
        ]
