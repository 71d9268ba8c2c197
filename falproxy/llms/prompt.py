"""Compile an Anthropic conversation into the fal.ai ``(system_prompt, prompt)`` pair.

The backend only accepts two strings, so structure is encoded as XML-like
sections inside the system prompt:

- ``<system>``: top-level system text plus system/developer messages
- ``<conversation_history>``: every turn before the current one
- ``<instructions>``, ``<tools>``, ``<tool_call_rules>``, ``<output_format>``:
  directives that teach the model the ``<tool_calls>`` reply dialect

The current turn (the last non-system message) becomes the user prompt.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from falproxy.models.requests import (
    Message,
    MessageContent,
    SystemBlock,
    TextContent,
    ToolDefinition,
    ToolResultContent,
    ToolUseContent,
)

from .xml import cdata, dump_json, escape_xml


SYSTEM_ROLES = frozenset({"system", "developer"})

TOOLS_NOTE = (
    "The tools below are available for this turn only and may change between "
    "turns; call only the tools listed here."
)

TOOL_CALL_RULES = """<tool_call_rules>
  <rule>Tools are dynamic: only call a name that appears in this turn's &lt;tools&gt;.</rule>
  <rule>To call tools, output &lt;tool_calls&gt;...&lt;/tool_calls&gt; and end with the closing tag; output nothing after it (not even whitespace).</rule>
  <rule>A partial answer may be written before &lt;tool_calls&gt;.</rule>
  <rule>Never simulate or invent tool results; do not output tool results or &lt;tool_result&gt;.</rule>
  <rule>Linear dependency: if one tool needs the result of another, output only one &lt;tool_call&gt; in this turn; decide the next call in a later turn, after the real result has been added to the history.</rule>
  <rule>Never assume the result of a previous tool or build the arguments of a later call from such an assumption; wait for the real result.</rule>
  <rule>Independent calls may run in parallel: list several &lt;tool_call&gt; elements inside the same &lt;tool_calls&gt;.</rule>
  <rule>Arguments must be strict JSON (UTF-8, no comments, double quotes).</rule>
</tool_call_rules>"""

OUTPUT_FORMAT = """<output_format><![CDATA[
Your reply must take exactly one of these two forms:
1) An answer only (when no tool is needed)
2) (Optional) a partial answer, followed by
   <tool_calls>
     <tool_call name="TOOL_NAME">
       <arguments>{...strict JSON...}</arguments>
     </tool_call>
     ...(several entries run in parallel; for a linear dependency write only one)
   </tool_calls>
   (no text of any kind after this)
]]></output_format>"""


@dataclass(frozen=True)
class CompiledPrompt:
    """The two strings sent to the backend."""

    system_prompt: str
    user_prompt: str


def extract_text(content: MessageContent) -> str:
    """Join the text blocks of a message; images and other blocks are dropped."""
    if isinstance(content, str):
        return content
    texts = [
        block.text
        for block in content
        if isinstance(block, TextContent) and block.text
    ]
    return "\n".join(texts)


def _tool_uses(content: MessageContent) -> list[ToolUseContent]:
    if isinstance(content, str):
        return []
    return [block for block in content if isinstance(block, ToolUseContent)]


def _tool_results(content: MessageContent) -> list[ToolResultContent]:
    if isinstance(content, str):
        return []
    return [block for block in content if isinstance(block, ToolResultContent)]


def _system_parts(content: MessageContent | Sequence[SystemBlock]) -> list[str]:
    if isinstance(content, str):
        return [content.strip()]
    parts = []
    for block in content:
        if block.type == "text":
            text = getattr(block, "text", None)
            if text:
                parts.append(text.strip())
    return parts


def build_system_text(
    messages: Sequence[Message], system: str | Sequence[SystemBlock] | None
) -> str:
    """Merge top-level system text with system/developer messages."""
    parts: list[str] = []
    if system:
        parts.extend(_system_parts(system))
    for message in messages:
        if message.role in SYSTEM_ROLES:
            parts.extend(_system_parts(message.content))
    return "\n\n".join(part for part in parts if part)


def render_tool_result(result: ToolResultContent) -> str:
    call_id = escape_xml(result.tool_use_id or "")
    if isinstance(result.content, str):
        payload = result.content
    else:
        payload = dump_json(result.content)
    return f'<tool_result call_id="{call_id}">{cdata(payload)}</tool_result>'


def render_assistant_turn(message: Message) -> str:
    """Render an assistant turn with its text and any tool calls it made."""
    parts: list[str] = []
    text = extract_text(message.content)
    if text:
        parts.append(f"<assistant>{text}</assistant>")

    tool_uses = _tool_uses(message.content)
    if tool_uses:
        lines = ["<assistant_tool_calls>"]
        for tool_use in tool_uses:
            name = escape_xml(tool_use.name or "")
            call_id = escape_xml(tool_use.id or "")
            lines.append(f'<tool_call name="{name}" call_id="{call_id}">')
            arguments = cdata(dump_json(tool_use.input or {}))
            lines.append(f"<arguments>{arguments}</arguments>")
            lines.append("</tool_call>")
        lines.append("</assistant_tool_calls>")
        parts.append("\n".join(lines))

    return "\n".join(parts)


def render_user_history_turn(message: Message) -> list[str]:
    parts: list[str] = []
    text = extract_text(message.content)
    if text:
        parts.append(f"<user>{text}</user>")
    for result in _tool_results(message.content):
        parts.append(render_tool_result(result))
    return parts


def render_current_turn(message: Message) -> str:
    """Render the turn the model must respond to."""
    if message.role == "assistant":
        return render_assistant_turn(message)

    results = _tool_results(message.content)
    if results:
        rendered = "\n".join(render_tool_result(result) for result in results)
        return f"<tool_results>\n{rendered}\n</tool_results>"
    return extract_text(message.content)


def build_conversation(messages: Sequence[Message]) -> tuple[str, str]:
    """Split the conversation into rendered history and the current turn.

    Returns:
        Tuple of (history_xml, current_turn); history_xml is empty when the
        conversation has a single non-system message.
    """
    turns = [message for message in messages if message.role not in SYSTEM_ROLES]
    if not turns:
        return "", ""

    *history, current = turns

    history_parts: list[str] = []
    for message in history:
        if message.role == "user":
            history_parts.extend(render_user_history_turn(message))
        elif message.role == "assistant":
            rendered = render_assistant_turn(message)
            if rendered:
                history_parts.append(rendered)

    history_xml = ""
    if history_parts:
        joined = "\n".join(history_parts)
        history_xml = f"<conversation_history>\n{joined}\n</conversation_history>"

    return history_xml, render_current_turn(current)


def build_tools_xml(tools: Sequence[ToolDefinition] | None) -> str:
    if not tools:
        return ""

    lines = ["<tools>", f"  <note>{TOOLS_NOTE}</note>"]
    for tool in tools:
        name = escape_xml(tool.name or "")
        description = escape_xml(tool.description or "")
        schema = dump_json(tool.input_schema or {})
        lines.append(f'  <tool name="{name}">')
        lines.append(f"    <description>{description}</description>")
        lines.append("    <parameters>")
        lines.append(f"      <json_schema>{cdata(schema)}</json_schema>")
        lines.append("    </parameters>")
        lines.append("  </tool>")
    lines.append("</tools>")
    return "\n".join(lines)


def build_instructions(has_history: bool, has_tools: bool) -> str:
    if not has_history:
        return ""

    lines = [
        "<instructions>",
        "Answer the user's new question based on the content above.",
        "- Answer directly. Do not simulate or invent further conversation turns, "
        "do not output conversation tags (user, assistant) and do not imitate "
        "role changes.",
    ]
    if has_tools:
        lines.append(
            "- If a tool is needed, output the tool XML defined for this turn "
            "(<tool_calls>) and follow the tool call rules strictly; never "
            "simulate tool results."
        )
    lines.append("</instructions>")
    return "\n".join(lines)


def compile_prompt(
    messages: Sequence[Message],
    system: str | Sequence[SystemBlock] | None = None,
    tools: Sequence[ToolDefinition] | None = None,
) -> CompiledPrompt:
    """Fold a conversation and its tool catalog into a system/user prompt pair."""
    base_system = build_system_text(messages, system)
    history_xml, current_turn = build_conversation(messages)

    has_tools = bool(tools)
    sections = [
        f"<system>\n{base_system}\n</system>" if base_system else "",
        history_xml,
        build_instructions(bool(history_xml), has_tools),
        build_tools_xml(tools),
        TOOL_CALL_RULES if has_tools else "",
        OUTPUT_FORMAT if has_tools else "",
    ]

    return CompiledPrompt(
        system_prompt="\n\n".join(section for section in sections if section),
        user_prompt=current_turn,
    )
