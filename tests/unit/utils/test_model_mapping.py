"""Tests for the model remap table."""

import pytest

from falproxy.utils.ids import new_message_id, new_request_id, new_tool_use_id
from falproxy.utils.model_mapping import ModelMapper


@pytest.mark.unit
class TestModelMapper:
    def test_mapped_and_unmapped_names(self):
        mapper = ModelMapper({"claude-3-5-sonnet": "anthropic/claude-3.5-sonnet"})
        assert mapper.map("claude-3-5-sonnet") == "anthropic/claude-3.5-sonnet"
        assert mapper.map("openai/gpt-4o") == "openai/gpt-4o"
        assert len(mapper) == 1

    def test_mapping_is_read_only(self):
        mapper = ModelMapper({"a": "b"})
        with pytest.raises(TypeError):
            mapper.mapping["a"] = "c"  # type: ignore[index]

    def test_source_mapping_changes_do_not_leak(self):
        source = {"a": "b"}
        mapper = ModelMapper(source)
        source["a"] = "c"
        assert mapper.map("a") == "b"

    def test_empty_mapping(self):
        assert ModelMapper().map("x") == "x"
        assert len(ModelMapper(None)) == 0


@pytest.mark.unit
def test_id_formats():
    tool_id = new_tool_use_id()
    assert tool_id.startswith("toolu_") and len(tool_id) == len("toolu_") + 24
    assert new_message_id().startswith("msg_")
    request_id = new_request_id()
    assert request_id.startswith("req-") and len(request_id) == len("req-") + 16
    assert new_tool_use_id() != tool_id
