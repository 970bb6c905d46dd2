"""
Tests for conversation and delta models.
"""

import pytest
from pydantic import TypeAdapter, ValidationError

from sqlstudio.llm.models import (
    ContentBlock,
    ProviderOptions,
    TextBlock,
    ToolInvocationBlock,
    ToolResultBlock,
    Turn,
)


class TestTurn:
    """Turn normalization and accessors."""

    def test_empty_content_gets_empty_text_block(self):
        turn = Turn(role="assistant", content=[])
        assert turn.content == [TextBlock(text="")]
        assert turn.text == ""

    def test_accessors(self):
        turn = Turn(
            role="assistant",
            content=[
                TextBlock(text="a"),
                ToolInvocationBlock(id="1", name="x"),
                TextBlock(text="b"),
            ],
        )
        assert turn.text == "ab"
        assert [block.id for block in turn.tool_invocations] == ["1"]
        assert turn.tool_results == []

    def test_blocks_from_dicts(self):
        turn = Turn.model_validate(
            {
                "role": "user",
                "content": [{"type": "tool_result", "invocation_id": "1", "payload": {"error": "x"}}],
            }
        )
        assert isinstance(turn.content[0], ToolResultBlock)
        assert turn.content[0].is_error

    def test_invalid_role(self):
        with pytest.raises(ValidationError):
            Turn(role="system", content=[])


class TestContentBlock:
    def test_discriminated_union(self):
        block = TypeAdapter(ContentBlock).validate_python(
            {"type": "tool_invocation", "id": "t", "name": "get_enums"}
        )
        assert isinstance(block, ToolInvocationBlock)
        assert block.arguments == {}

    def test_result_without_error_is_not_error(self):
        assert not ToolResultBlock(invocation_id="t", payload={"rows": []}).is_error


class TestProviderOptions:
    def test_defaults(self):
        options = ProviderOptions()
        assert options.force_tool_use is False
        assert options.system is None

    def test_rejects_bad_temperature(self):
        with pytest.raises(ValidationError):
            ProviderOptions(temperature=3.0)
