"""Tests for compiling Anthropic conversations into fal.ai prompts."""

import json
import re

import pytest

from falproxy.llms.prompt import (
    OUTPUT_FORMAT,
    TOOL_CALL_RULES,
    build_system_text,
    compile_prompt,
    extract_text,
)
from falproxy.models.requests import MessageCreateParams, ToolUseContent


def _params(**payload):
    return MessageCreateParams.model_validate(payload)


def _compile(**payload):
    params = _params(**payload)
    return compile_prompt(params.messages, params.system, params.tools)


WEATHER_TOOL = {
    "name": "get_weather",
    "description": "Weather for a <city> & region",
    "input_schema": {
        "type": "object",
        "properties": {"city": {"type": "string"}},
        "required": ["city"],
    },
}


@pytest.mark.unit
class TestSystemText:
    def test_string_system_is_trimmed(self):
        params = _params(system="  Be brief.  ", messages=[])
        assert build_system_text(params.messages, params.system) == "Be brief."

    def test_block_system_keeps_text_blocks_only(self):
        params = _params(
            system=[
                {"type": "text", "text": " First "},
                {"type": "image"},
                {"type": "text", "text": "Second"},
            ],
            messages=[],
        )
        assert build_system_text(params.messages, params.system) == "First\n\nSecond"

    def test_system_and_developer_messages_are_appended_in_order(self):
        params = _params(
            system="Top",
            messages=[
                {"role": "system", "content": "From system"},
                {"role": "user", "content": "hi"},
                {"role": "developer", "content": [{"type": "text", "text": "Dev"}]},
            ],
        )
        assert (
            build_system_text(params.messages, params.system)
            == "Top\n\nFrom system\n\nDev"
        )

    def test_no_system_text_omits_system_section(self):
        compiled = _compile(messages=[{"role": "user", "content": "hi"}])
        assert "<system>" not in compiled.system_prompt
        assert compiled.system_prompt == ""
        assert compiled.user_prompt == "hi"

    def test_system_section_wraps_text(self):
        compiled = _compile(system="Be brief.", messages=[{"role": "user", "content": "hi"}])
        assert compiled.system_prompt == "<system>\nBe brief.\n</system>"


@pytest.mark.unit
class TestCurrentTurn:
    def test_text_blocks_are_newline_joined_and_images_dropped(self):
        compiled = _compile(
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": "look at this"},
                        {"type": "image", "source": {"type": "base64", "data": "AAA"}},
                        {"type": "text", "text": "what is it?"},
                    ],
                }
            ]
        )
        assert compiled.user_prompt == "look at this\nwhat is it?"

    def test_trailing_system_message_does_not_become_current(self):
        compiled = _compile(
            messages=[
                {"role": "user", "content": "question"},
                {"role": "system", "content": "late instruction"},
            ]
        )
        assert compiled.user_prompt == "question"
        assert "late instruction" in compiled.system_prompt
        assert "<conversation_history>" not in compiled.system_prompt

    def test_tool_results_render_as_tool_results_block(self):
        compiled = _compile(
            messages=[
                {"role": "user", "content": "weather?"},
                {
                    "role": "assistant",
                    "content": [
                        {
                            "type": "tool_use",
                            "id": "toolu_1",
                            "name": "get_weather",
                            "input": {"city": "Paris"},
                        }
                    ],
                },
                {
                    "role": "user",
                    "content": [
                        {"type": "tool_result", "tool_use_id": "toolu_1", "content": "sunny"},
                        {
                            "type": "tool_result",
                            "tool_use_id": "toolu_2",
                            "content": [{"type": "text", "text": "x"}],
                        },
                    ],
                },
            ]
        )
        assert compiled.user_prompt == (
            "<tool_results>\n"
            '<tool_result call_id="toolu_1"><![CDATA[sunny]]></tool_result>\n'
            '<tool_result call_id="toolu_2"><![CDATA[[{"type":"text","text":"x"}]]]></tool_result>\n'
            "</tool_results>"
        )

    def test_history_tool_use_without_id_gets_synthesized_id(self):
        compiled = _compile(
            messages=[
                {"role": "user", "content": "weather?"},
                {
                    "role": "assistant",
                    "content": [
                        {"type": "tool_use", "name": "get_weather", "input": {}}
                    ],
                },
                {"role": "user", "content": "and now?"},
            ]
        )
        assert re.search(
            r'<tool_call name="get_weather" call_id="toolu_[0-9a-f]{24}">',
            compiled.system_prompt,
        )

    def test_empty_tool_use_id_is_synthesized(self):
        tool_use = ToolUseContent(id="", name="get_weather")
        assert re.fullmatch(r"toolu_[0-9a-f]{24}", tool_use.id)

    def test_tool_result_cdata_terminator_is_split(self):
        compiled = _compile(
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "tool_result", "tool_use_id": "t", "content": "a]]>b"}
                    ],
                }
            ]
        )
        assert "<![CDATA[a]]]]><![CDATA[>b]]>" in compiled.user_prompt

    def test_assistant_current_turn_renders_like_history(self):
        compiled = _compile(
            messages=[
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "Partial answer"},
            ]
        )
        assert compiled.user_prompt == "<assistant>Partial answer</assistant>"


@pytest.mark.unit
class TestConversationHistory:
    def test_single_message_has_no_history_or_instructions(self):
        compiled = _compile(messages=[{"role": "user", "content": "hi"}])
        assert "<conversation_history>" not in compiled.system_prompt
        assert "<instructions>" not in compiled.system_prompt

    def test_history_is_one_block_in_chronological_order(self):
        compiled = _compile(
            system="sys",
            messages=[
                {"role": "user", "content": "first question"},
                {"role": "assistant", "content": "first answer"},
                {"role": "system", "content": "mid system"},
                {"role": "user", "content": "second question"},
                {"role": "assistant", "content": "second answer"},
                {"role": "user", "content": "current question"},
            ],
        )
        prompt = compiled.system_prompt
        assert prompt.count("<conversation_history>") == 1
        assert prompt.count("</conversation_history>") == 1

        history = prompt.split("<conversation_history>")[1].split("</conversation_history>")[0]
        entries = re.findall(r"<(user|assistant)>(.*?)</\1>", history)
        assert entries == [
            ("user", "first question"),
            ("assistant", "first answer"),
            ("user", "second question"),
            ("assistant", "second answer"),
        ]
        assert "mid system" not in history
        assert compiled.user_prompt == "current question"

    def test_sections_are_ordered(self):
        compiled = _compile(
            system="sys",
            tools=[WEATHER_TOOL],
            messages=[
                {"role": "user", "content": "a"},
                {"role": "assistant", "content": "b"},
                {"role": "user", "content": "c"},
            ],
        )
        prompt = compiled.system_prompt
        positions = [
            prompt.index(marker)
            for marker in (
                "<system>",
                "<conversation_history>",
                "<instructions>",
                "<tools>",
                "<tool_call_rules>",
                "<output_format>",
            )
        ]
        assert positions == sorted(positions)

    def test_assistant_tool_calls_in_history(self):
        compiled = _compile(
            messages=[
                {"role": "user", "content": "weather?"},
                {
                    "role": "assistant",
                    "content": [
                        {"type": "text", "text": "Checking."},
                        {
                            "type": "tool_use",
                            "id": "toolu_1",
                            "name": "get_weather",
                            "input": {"city": "Paris"},
                        },
                    ],
                },
                {"role": "user", "content": "thanks"},
            ]
        )
        assert (
            "<assistant>Checking.</assistant>\n"
            "<assistant_tool_calls>\n"
            '<tool_call name="get_weather" call_id="toolu_1">\n'
            '<arguments><![CDATA[{"city":"Paris"}]]></arguments>\n'
            "</tool_call>\n"
            "</assistant_tool_calls>"
        ) in compiled.system_prompt

    def test_user_history_tool_results_follow_user_text(self):
        compiled = _compile(
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": "here"},
                        {"type": "tool_result", "tool_use_id": "t1", "content": "42"},
                    ],
                },
                {"role": "user", "content": "next"},
            ]
        )
        assert (
            '<user>here</user>\n<tool_result call_id="t1"><![CDATA[42]]></tool_result>'
            in compiled.system_prompt
        )

    def test_empty_assistant_turn_is_skipped(self):
        compiled = _compile(
            messages=[
                {"role": "user", "content": "a"},
                {"role": "assistant", "content": []},
                {"role": "user", "content": "b"},
            ]
        )
        assert "<assistant>" not in compiled.system_prompt
        assert "<conversation_history>\n<user>a</user>\n</conversation_history>" in (
            compiled.system_prompt
        )

    def test_instructions_mention_tools_only_when_tools_exist(self):
        messages = [
            {"role": "user", "content": "a"},
            {"role": "assistant", "content": "b"},
            {"role": "user", "content": "c"},
        ]
        without_tools = _compile(messages=messages).system_prompt
        with_tools = _compile(messages=messages, tools=[WEATHER_TOOL]).system_prompt

        assert "<instructions>" in without_tools
        assert "tool call rules" not in without_tools
        assert "tool call rules" in with_tools


@pytest.mark.unit
class TestToolCatalog:
    def test_no_tools_means_no_tool_sections(self):
        compiled = _compile(
            system="sys",
            messages=[
                {"role": "user", "content": "a"},
                {"role": "assistant", "content": "b"},
                {"role": "user", "content": "c"},
            ],
        )
        for section in ("<tools>", "<tool_call_rules>", "<output_format>"):
            assert section not in compiled.system_prompt

    def test_empty_tool_list_means_no_tool_sections(self):
        compiled = _compile(tools=[], messages=[{"role": "user", "content": "a"}])
        assert compiled.system_prompt == ""

    def test_schema_round_trip(self):
        compiled = _compile(
            tools=[{"name": "T", "input_schema": {"type": "object"}}],
            messages=[{"role": "user", "content": "go"}],
        )
        prompt = compiled.system_prompt
        assert prompt.count('<tool name="T">') == 1

        match = re.search(
            r"<json_schema><!\[CDATA\[(.*?)\]\]></json_schema>", prompt, re.DOTALL
        )
        assert match is not None
        assert json.loads(match.group(1)) == {"type": "object"}

    def test_description_and_name_are_escaped(self):
        compiled = _compile(
            tools=[{**WEATHER_TOOL, "name": 'a"b'}],
            messages=[{"role": "user", "content": "go"}],
        )
        assert '<tool name="a&quot;b">' in compiled.system_prompt
        assert (
            "<description>Weather for a &lt;city&gt; &amp; region</description>"
            in compiled.system_prompt
        )

    def test_schema_cdata_terminator_is_split(self):
        compiled = _compile(
            tools=[{"name": "T", "input_schema": {"pattern": "]]>"}}],
            messages=[{"role": "user", "content": "go"}],
        )
        assert '{"pattern":"]]]]><![CDATA[>"}' in compiled.system_prompt

    def test_fixed_directives_are_included(self):
        compiled = _compile(tools=[WEATHER_TOOL], messages=[{"role": "user", "content": "go"}])
        assert compiled.system_prompt.endswith(TOOL_CALL_RULES + "\n\n" + OUTPUT_FORMAT)


@pytest.mark.unit
def test_extract_text_from_string():
    assert extract_text("plain") == "plain"


@pytest.mark.unit
def test_compile_is_deterministic():
    payload = {
        "system": "sys",
        "tools": [WEATHER_TOOL],
        "messages": [
            {"role": "user", "content": "a"},
            {"role": "assistant", "content": "b"},
            {"role": "user", "content": "c"},
        ],
    }
    assert _compile(**payload) == _compile(**payload)
