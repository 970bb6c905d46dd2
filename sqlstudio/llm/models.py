"""
Conversation and Stream Delta Models

Provider-agnostic representation of a tool-calling conversation and of the
incremental events a provider streams back. Adapters translate these to
and from each provider's wire format.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, model_validator

# ============================================================================
# Content blocks
# ============================================================================


class TextBlock(BaseModel):
    """Plain text produced by the model or typed by the user."""

    type: Literal["text"] = "text"
    text: str = Field(default="", description="Block text (may be empty)")


class ToolInvocationBlock(BaseModel):
    """A tool call requested by the model."""

    type: Literal["tool_invocation"] = "tool_invocation"
    id: str = Field(..., description="Provider-assigned id, echoed by the matching result")
    name: str = Field(..., description="Tool name")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Parsed arguments")


class ToolResultBlock(BaseModel):
    """The outcome of one tool invocation, sent back to the model."""

    type: Literal["tool_result"] = "tool_result"
    invocation_id: str = Field(..., description="Id of the invocation this answers")
    payload: dict[str, Any] = Field(default_factory=dict, description="JSON result or {error}")

    @property
    def is_error(self) -> bool:
        return "error" in self.payload


ContentBlock = Annotated[
    TextBlock | ToolInvocationBlock | ToolResultBlock,
    Field(discriminator="type"),
]


class Turn(BaseModel):
    """One role-tagged message in a conversation."""

    role: Literal["user", "assistant"]
    content: list[ContentBlock] = Field(default_factory=list)

    @model_validator(mode="after")
    def ensure_content(self) -> "Turn":
        # Providers reject empty content arrays.
        if not self.content:
            self.content = [TextBlock(text="")]
        return self

    @property
    def text(self) -> str:
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))

    @property
    def tool_invocations(self) -> list[ToolInvocationBlock]:
        return [block for block in self.content if isinstance(block, ToolInvocationBlock)]

    @property
    def tool_results(self) -> list[ToolResultBlock]:
        return [block for block in self.content if isinstance(block, ToolResultBlock)]

    @classmethod
    def user_text(cls, text: str) -> "Turn":
        return cls(role="user", content=[TextBlock(text=text)])


# ============================================================================
# Streamed deltas
# ============================================================================


class BlockStart(BaseModel):
    """A new content block begins."""

    type: Literal["block_start"] = "block_start"
    kind: Literal["text", "tool_invocation"]
    id: str | None = Field(None, description="Invocation id (tool blocks only)")
    name: str | None = Field(None, description="Tool name (tool blocks only)")


class TextDelta(BaseModel):
    type: Literal["text_delta"] = "text_delta"
    text: str


class ToolArgumentDelta(BaseModel):
    """A raw fragment of a tool call's JSON arguments.

    Fragments are only valid JSON once concatenated and the block stops.
    """

    type: Literal["tool_argument_delta"] = "tool_argument_delta"
    fragment: str
    id: str | None = Field(None, description="Target invocation; the open block when omitted")


class BlockStop(BaseModel):
    type: Literal["block_stop"] = "block_stop"
    id: str | None = Field(None, description="Block to close; the open block when omitted")


class MessageStop(BaseModel):
    """End of the model's turn, with the provider's stop reason."""

    type: Literal["message_stop"] = "message_stop"
    reason: str | None = None


ProviderDelta = BlockStart | TextDelta | ToolArgumentDelta | BlockStop | MessageStop


# ============================================================================
# Request options / tool wire descriptions
# ============================================================================


class ToolSpec(BaseModel):
    """What a provider needs to know about a tool."""

    name: str
    description: str
    input_schema: dict[str, Any]


class ProviderOptions(BaseModel):
    """Per-call options for BaseLLMProvider.send()."""

    system: str | None = Field(None, description="System prompt")
    force_tool_use: bool = Field(
        default=False, description="Require the model to call a tool this turn"
    )
    model: str | None = Field(None, description="Model override")
    temperature: float | None = Field(None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(None, gt=0)
