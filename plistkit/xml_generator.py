"""Writer for the XML property list format."""

from __future__ import annotations

import base64
import io
import math
from datetime import datetime, timezone
from typing import TextIO

from .text_generator import _format_real
from .values import (
    CFArray,
    CFBoolean,
    CFData,
    CFDate,
    CFDictionary,
    CFNumber,
    CFReal,
    CFString,
    CFUID,
)

XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>\n'
XML_DOCTYPE = (
    '<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" '
    '"http://www.apple.com/DTDs/PropertyList-1.0.dtd">\n'
)
XML_PREAMBLE = XML_HEADER + XML_DOCTYPE

_TEXT_ESCAPES = {
    '"': "&#34;",
    "'": "&#39;",
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    "\t": "&#x9;",
    "\n": "&#xA;",
    "\r": "&#xD;",
}


def _in_character_range(code: int) -> bool:
    return (
        code in (0x09, 0x0A, 0x0D)
        or 0x20 <= code <= 0xD7FF
        or 0xE000 <= code <= 0xFFFD
        or 0x10000 <= code <= 0x10FFFF
    )


def _escape_text(text: str) -> str:
    parts = []
    for ch in text:
        escaped = _TEXT_ESCAPES.get(ch)
        if escaped is None:
            escaped = ch if _in_character_range(ord(ch)) else "\ufffd"
        parts.append(escaped)
    return "".join(parts)


def _format_date(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    else:
        moment = moment.astimezone(timezone.utc)
    return (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}T"
        f"{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}Z"
    )


def format_xml_float(value: float) -> str:
    """Format a real the way XML property lists spell it (inf, -inf, nan)."""
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if math.isnan(value):
        return "nan"
    return _format_real(value)


class XMLPlistGenerator:
    """Writes a value tree to a text stream as an XML property list."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._indent = ""
        self._depth = 0
        self._put_newline = False

    def set_indent(self, indent: str) -> None:
        """Set the indentation string; an empty string writes compact output."""
        self._indent = indent

    def generate_document(self, value) -> None:
        """Write the whole document, preamble included, for the value tree."""
        self._write(XML_HEADER)
        self._write(XML_DOCTYPE)
        self._open_tag('plist version="1.0"')
        self._write_value(value)
        self._close_tag("plist")
        flush = getattr(self._stream, "flush", None)
        if flush is not None:
            flush()

    def _write(self, text: str) -> None:
        self._stream.write(text)

    def _write_indent(self, delta: int) -> None:
        if not self._indent:
            return
        if delta < 0:
            self._depth -= 1
        if self._put_newline:
            self._write("\n")
        else:
            self._put_newline = True
        self._write(self._indent * self._depth)
        if delta > 0:
            self._depth += 1

    def _open_tag(self, name: str) -> None:
        self._write_indent(1)
        self._write(f"<{name}>")

    def _close_tag(self, name: str) -> None:
        self._write_indent(-1)
        self._write(f"</{name}>")

    def _element(self, name: str, text: str) -> None:
        self._write_indent(0)
        if text:
            self._write(f"<{name}>{_escape_text(text)}</{name}>")
        else:
            self._write(f"<{name}/>")

    def _write_value(self, value) -> None:
        match value:
            case None:
                return
            case CFString():
                self._element("string", value.value)
            case CFNumber():
                self._element("integer", str(value.value))
            case CFReal():
                self._element("real", format_xml_float(value.value))
            case CFBoolean():
                self._element("true" if value.value else "false", "")
            case CFData():
                self._element("data", base64.b64encode(bytes(value.value)).decode("ascii"))
            case CFDate():
                self._element("date", _format_date(value.value))
            case CFDictionary():
                value.sort()
                self._open_tag("dict")
                for key, item in zip(value.keys, value.values):
                    self._element("key", key)
                    self._write_value(item)
                self._close_tag("dict")
            case CFArray():
                self._open_tag("array")
                for item in value.values:
                    self._write_value(item)
                self._close_tag("array")
            case CFUID():
                self._write_value(value.to_dict())


def generate_xml(value, indent: str = "") -> str:
    """Return the XML property list document for a value tree."""
    buffer = io.StringIO()
    generator = XMLPlistGenerator(buffer)
    generator.set_indent(indent)
    generator.generate_document(value)
    return buffer.getvalue()