"""Recover structured tool calls from the backend's free-form reply.

The model is instructed to answer either with plain text or with optional
text followed by a single block::

    <tool_calls>
      <tool_call name="NAME" call_id="ID">
        <arguments>{"strict": "json"}</arguments>
      </tool_call>
    </tool_calls>

Model output is not guaranteed to follow that shape, so parsing is
best-effort: unknown markup is skipped, broken JSON falls back to ``{}``,
and a reply cut off mid-call still yields the calls seen so far.
"""

import enum
import json
import re
from dataclasses import dataclass, field
from typing import Any

from falproxy.core.logging import get_logger
from falproxy.utils.ids import IdGenerator, new_tool_use_id


logger = get_logger(__name__)

TOOL_CALLS_MARKER = "<tool_calls"

CDATA_START = "<![CDATA["
CDATA_END = "]]>"

_CLOSE_TAG_RE = re.compile(r"</(\w+)>")
_OPEN_TAG_RE = re.compile(r"<(\w+)([^>]*)>")
_ATTRIBUTE_RE = re.compile(r'(\w+)="([^"]*)"')
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


# Tokenizer


class TokenKind(enum.Enum):
    OPEN = "open"
    CLOSE = "close"
    CDATA_START = "cdata_start"
    CDATA_END = "cdata_end"
    TEXT = "text"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    name: str = ""
    attrs: dict[str, str] = field(default_factory=dict)
    text: str = ""


def parse_attributes(raw: str) -> dict[str, str]:
    """Collect ``name="value"`` pairs; anything else is ignored."""
    return {match.group(1): match.group(2) for match in _ATTRIBUTE_RE.finditer(raw)}


def tokenize(markup: str) -> list[Token]:
    """Split tagged text into a flat token stream.

    A ``<`` that does not start a recognizable tag or CDATA marker is skipped
    one character at a time, so malformed markup never aborts the scan.
    A terminated CDATA section yields its content verbatim as one text token;
    an unterminated one is scanned like ordinary markup.
    """
    tokens: list[Token] = []
    i = 0
    length = len(markup)

    while i < length:
        if markup.startswith(CDATA_START, i):
            tokens.append(Token(TokenKind.CDATA_START))
            i += len(CDATA_START)
            end = markup.find(CDATA_END, i)
            if end != -1:
                if end > i:
                    tokens.append(Token(TokenKind.TEXT, text=markup[i:end]))
                tokens.append(Token(TokenKind.CDATA_END))
                i = end + len(CDATA_END)
        elif markup[i] == "<":
            if markup.startswith("</", i):
                match = _CLOSE_TAG_RE.match(markup, i)
                if match:
                    tokens.append(Token(TokenKind.CLOSE, name=match.group(1)))
                    i = match.end()
                else:
                    i += 1
            else:
                match = _OPEN_TAG_RE.match(markup, i)
                if match:
                    tokens.append(
                        Token(
                            TokenKind.OPEN,
                            name=match.group(1),
                            attrs=parse_attributes(match.group(2)),
                        )
                    )
                    i = match.end()
                else:
                    i += 1
        else:
            # A ]]> outside a CDATA section is plain text
            end = markup.find("<", i)
            if end == -1:
                end = length
            tokens.append(Token(TokenKind.TEXT, text=markup[i:end]))
            i = end

    return tokens


# Argument decoding


class ParseStatus(enum.Enum):
    CLEAN = "clean"
    RECOVERED = "recovered"


@dataclass(frozen=True)
class ArgumentParse:
    """Decoded tool arguments and whether recovery was needed to get them."""

    value: dict[str, Any]
    status: ParseStatus
    reason: str | None = None

    @property
    def recovered(self) -> bool:
        return self.status is ParseStatus.RECOVERED


def _as_object(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None


def decode_arguments(raw: str, truncated: bool = False) -> ArgumentParse:
    """Decode an ``<arguments>`` payload, never raising.

    Tries strict JSON, then JSON with trailing commas removed, then falls back
    to an empty object. Payloads that decode to a non-object also fall back.
    """
    text = raw.strip()
    status = ParseStatus.RECOVERED if truncated else ParseStatus.CLEAN
    reason = "truncated" if truncated else None

    try:
        value = _as_object(json.loads(text))
        if value is not None:
            return ArgumentParse(value, status, reason)
        return ArgumentParse({}, ParseStatus.RECOVERED, "not_an_object")
    except (json.JSONDecodeError, RecursionError):
        pass

    try:
        value = _as_object(json.loads(_TRAILING_COMMA_RE.sub(r"\1", text)))
        if value is not None:
            return ArgumentParse(value, ParseStatus.RECOVERED, "trailing_comma")
    except (json.JSONDecodeError, RecursionError):
        pass

    return ArgumentParse({}, ParseStatus.RECOVERED, reason or "invalid_json")


# State machine


class ParserState(enum.Enum):
    OUTSIDE = "outside"
    IN_TOOL_CALLS = "in_tool_calls"
    IN_TOOL_CALL = "in_tool_call"
    IN_ARGUMENTS = "in_arguments"


_STATE_BY_ELEMENT = {
    "tool_calls": ParserState.IN_TOOL_CALLS,
    "tool_call": ParserState.IN_TOOL_CALL,
    "arguments": ParserState.IN_ARGUMENTS,
}


@dataclass
class ToolCall:
    """A tool invocation extracted from model output."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    recovered: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "input": self.input}


@dataclass
class _PendingCall:
    id: str
    name: str
    arguments: ArgumentParse | None = None

    def finish(self) -> ToolCall:
        if self.arguments is None:
            return ToolCall(id=self.id, name=self.name, input={})
        return ToolCall(
            id=self.id,
            name=self.name,
            input=self.arguments.value,
            recovered=self.arguments.recovered,
        )


class ToolCallStateMachine:
    """Stack machine over the token stream of a ``<tool_calls>`` block.

    The element stack determines the state. Only the first ``<tool_calls>``
    block is honoured: its closing tag stops processing.
    """

    def __init__(self, id_generator: IdGenerator | None = None) -> None:
        self._new_id = id_generator or new_tool_use_id
        self._stack: list[str] = []
        self._current: _PendingCall | None = None
        self._arguments: list[str] = []
        self._in_cdata = False
        self._done = False
        self.tool_calls: list[ToolCall] = []

    @property
    def state(self) -> ParserState:
        if not self._stack:
            return ParserState.OUTSIDE
        return _STATE_BY_ELEMENT[self._stack[-1]]

    @property
    def done(self) -> bool:
        return self._done

    def feed(self, token: Token) -> None:
        if self._done:
            return

        if token.kind is TokenKind.OPEN:
            self._on_open(token)
        elif token.kind is TokenKind.CLOSE:
            self._on_close(token.name)
        elif token.kind is TokenKind.CDATA_START:
            self._in_cdata = True
        elif token.kind is TokenKind.CDATA_END:
            self._in_cdata = False
        elif token.kind is TokenKind.TEXT and self.state is ParserState.IN_ARGUMENTS:
            # CDATA boundaries are transparent to argument text
            self._arguments.append(token.text)

    def _on_open(self, token: Token) -> None:
        if token.name == "tool_calls":
            self._stack.append("tool_calls")
        elif token.name == "tool_call":
            self._current = _PendingCall(
                id=token.attrs.get("call_id") or self._new_id(),
                name=token.attrs.get("name", ""),
            )
            self._stack.append("tool_call")
        elif token.name == "arguments":
            self._stack.append("arguments")
            self._arguments = []

    def _on_close(self, name: str) -> None:
        if name == "arguments":
            if self.state is ParserState.IN_ARGUMENTS:
                self._close_arguments(truncated=False)
        elif name == "tool_call":
            if self.state is ParserState.IN_ARGUMENTS:
                # </arguments> never arrived
                self._close_arguments(truncated=True)
            self._complete_call()
            if self.state is ParserState.IN_TOOL_CALL:
                self._stack.pop()
        elif name == "tool_calls":
            if self._stack:
                self._stack.pop()
            self._done = True

    def _close_arguments(self, truncated: bool) -> None:
        parsed = decode_arguments("".join(self._arguments), truncated=truncated)
        if self._current is not None:
            self._current.arguments = parsed
        self._stack.pop()

    def _complete_call(self) -> None:
        if self._current is None:
            return
        self.tool_calls.append(self._current.finish())
        self._current = None

    def finish(self) -> list[ToolCall]:
        """Flush a call left open by a truncated reply and return all calls."""
        if self._current is not None:
            if self.state is ParserState.IN_ARGUMENTS:
                self._current.arguments = decode_arguments(
                    "".join(self._arguments), truncated=True
                )
            self._complete_call()
        return self.tool_calls


def parse_tool_calls(
    markup: str, id_generator: IdGenerator | None = None
) -> list[ToolCall]:
    """Extract tool calls from text starting at a ``<tool_calls`` marker."""
    machine = ToolCallStateMachine(id_generator=id_generator)
    for token in tokenize(markup):
        machine.feed(token)
        if machine.done:
            break
    return machine.finish()


# Entry point


@dataclass
class ParsedOutput:
    """Backend reply split into leading text and tool calls."""

    leading_text: str
    tool_calls: list[ToolCall] = field(default_factory=list)

    @property
    def recovered_count(self) -> int:
        return sum(1 for call in self.tool_calls if call.recovered)


def parse_output(raw_text: str, id_generator: IdGenerator | None = None) -> ParsedOutput:
    """Split a backend reply into leading text and parsed tool calls."""
    start = raw_text.find(TOOL_CALLS_MARKER)
    if start == -1:
        return ParsedOutput(leading_text=raw_text.strip())

    parsed = ParsedOutput(
        leading_text=raw_text[:start].strip(),
        tool_calls=parse_tool_calls(raw_text[start:], id_generator=id_generator),
    )
    if parsed.recovered_count:
        logger.debug(
            "tool_call_arguments_recovered",
            recovered=parsed.recovered_count,
            total=len(parsed.tool_calls),
        )
    return parsed
