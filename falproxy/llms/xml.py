"""Escaping helpers for the XML-flavoured prompt dialect."""

import json
from typing import Any


_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)

CDATA_END = "]]>"
CDATA_END_SPLIT = "]]]]><![CDATA[>"


def escape_xml(text: str) -> str:
    """Escape text for use as XML element or attribute content."""
    # "&" first so produced entities are not escaped again
    for char, entity in _XML_ESCAPES:
        text = text.replace(char, entity)
    return text


def escape_cdata(text: str) -> str:
    """Split any ``]]>`` so the text cannot terminate a CDATA section."""
    return text.replace(CDATA_END, CDATA_END_SPLIT)


def cdata(text: str) -> str:
    """Wrap text in a CDATA section."""
    return f"<![CDATA[{escape_cdata(text)}]]>"


def dump_json(value: Any) -> str:
    """Serialize compactly, matching what the model is asked to produce."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
