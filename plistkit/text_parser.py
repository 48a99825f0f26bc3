"""Parser for the OpenStep, GNUstep and ``defaults`` text property list formats.

Strings files (a bare list of ``key = value;`` entries) are accepted as well.
"""

from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, Optional, Union

from .charsets import BASE64_VALID, GS_QUOTABLE, NEWLINE, WHITESPACE, CharacterSet
from .numeric import parse_float, parse_int, parse_uint
from .values import (
    CFArray,
    CFBoolean,
    CFData,
    CFDate,
    CFDictionary,
    CFNumber,
    CFReal,
    CFString,
    Format,
    PlistParseError,
)

EOF = None

_OCTAL_DIGITS = "01234567"
_HEX_DIGITS = "0123456789abcdefABCDEF"
_HEX_WHITESPACE = frozenset(" \t\n\r\u2028\u2029")

_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "v": "\v",
    "f": "\f",
    "t": "\t",
    "r": "\r",
    "n": "\n",
    "\\": "\\",
    '"': '"',
}

_BYTE_SUMMARY = re.compile(r"length = [0-9]+, bytes =")
_QUOTE_OR_BACKSLASH = re.compile(r'["\\]')
_DATE = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2}) ([0-9]{2}):([0-9]{2}):([0-9]{2}) "
    r"([+-])([0-9]{2})([0-9]{2})"
)


class _SyntaxError(ValueError):
    """A positioned syntax error inside a text document."""


def _rune(code: int) -> str:
    """Return the character for a code point, or U+FFFD if it is not valid."""
    if 0xD800 <= code <= 0xDFFF or code > 0x10FFFF:
        return "\ufffd"
    return chr(code)


def _digit(ch: Optional[str], digits: str, base: int) -> Optional[int]:
    if ch is not None and ch in digits:
        return int(ch, base)
    return None


def _decode_utf16(buffer: bytes, encoding: str) -> str:
    if len(buffer) % 2:
        raise ValueError("truncated utf16")
    return buffer.decode(encoding, errors="replace")


def guess_encoding_and_convert(buffer: bytes) -> str:
    """Decode a document, detecting a UTF-8 BOM or UTF-16 by BOM or zero bytes."""
    buffer = bytes(buffer)
    if buffer[:3] == b"\xef\xbb\xbf":
        return buffer[3:].decode("utf-8", errors="replace")
    if len(buffer) >= 2:
        first, second = buffer[0], buffer[1]
        if first == 0xFE and second == 0xFF:
            return _decode_utf16(buffer[2:], "utf-16-be")
        if first == 0 and second != 0:
            return _decode_utf16(buffer, "utf-16-be")
        if first == 0xFF and second == 0xFE:
            return _decode_utf16(buffer[2:], "utf-16-le")
        if first != 0 and second == 0:
            return _decode_utf16(buffer, "utf-16-le")
    return buffer.decode("utf-8", errors="replace")


class TextPlistParser:
    """Parses a text property list document into a value tree.

    After parsing, ``format`` tells which dialect was seen: OpenStep,
    GNUstep (extended ``<*...>`` or ``<[...]>`` values) or the ``defaults``
    tool output (byte summaries).
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview, str, BinaryIO]) -> None:
        if hasattr(data, "read"):
            data = data.read()
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._data = bytes(data)
        self.format = Format.OPENSTEP
        self._input = ""
        self._start = 0
        self._pos = 0
        self._width = 0

    def parse_document(self):
        """Parse the whole document and return its value tree."""
        self._start = self._pos = self._width = 0
        try:
            self._input = guess_encoding_and_convert(self._data)
            value = self._parse_value()
            self._skip_whitespace_and_comments()
            if self._peek() is not EOF:
                if not isinstance(value, CFString):
                    self._error("garbage after end of document")
                # A leading string followed by more text: a strings file.
                self._start = self._pos = 0
                value = self._parse_dictionary(ignore_eof=True)
        except ValueError as exc:
            raise PlistParseError("text", exc) from exc
        return value

    # Cursor primitives.

    def _error(self, message: str) -> None:
        consumed = self._input[: self._pos]
        line = consumed.count("\n")
        char = self._pos - consumed.rfind("\n") - 1
        raise _SyntaxError(f"{message} at line {line} character {char}")

    def _next(self) -> Optional[str]:
        if self._pos >= len(self._input):
            self._width = 0
            return EOF
        ch = self._input[self._pos]
        self._width = 1
        self._pos += 1
        return ch

    def _backup(self) -> None:
        self._pos -= self._width

    def _peek(self) -> Optional[str]:
        ch = self._next()
        self._backup()
        return ch

    def _emit(self) -> str:
        text = self._input[self._start : self._pos]
        self._start = self._pos
        return text

    def _ignore(self) -> None:
        self._start = self._pos

    def _scan_until(self, ch: str) -> None:
        index = self._input.find(ch, self._pos)
        self._pos = index if index >= 0 else len(self._input)

    def _scan_until_quote_or_backslash(self) -> None:
        match = _QUOTE_OR_BACKSLASH.search(self._input, self._pos)
        self._pos = match.start() if match else len(self._input)

    def _scan_in_set(self, charset: CharacterSet) -> None:
        while charset.contains(self._next()):
            pass
        self._backup()

    def _scan_not_in_set(self, charset: CharacterSet) -> None:
        while True:
            ch = self._next()
            if ch is EOF or charset.contains(ch):
                break
        self._backup()

    def _skip_whitespace_and_comments(self) -> None:
        while True:
            self._scan_in_set(WHITESPACE)
            if self._input.startswith("//", self._pos):
                self._scan_not_in_set(NEWLINE)
            elif self._input.startswith("/*", self._pos):
                end = self._input.find("*/", self._pos)
                if end < 0:
                    self._error("unexpected eof in block comment")
                self._pos = end + 2
            else:
                break
        self._ignore()

    def _parse_digits(self, limit: int, digits: str, base: int) -> int:
        value = 0
        for _ in range(limit):
            digit = _digit(self._next(), digits, base)
            if digit is None:
                self._backup()
                break
            value = value * base + digit
        return value

    # Grammar.

    def _parse_escape(self) -> str:
        ch = self._next()
        if ch in _SIMPLE_ESCAPES:
            result = _SIMPLE_ESCAPES[ch]
        elif ch == "x":
            result = _rune(self._parse_digits(2, _HEX_DIGITS, 16))
        elif ch in ("u", "U"):
            result = _rune(self._parse_digits(4, _HEX_DIGITS, 16))
        elif ch is not None and ch in _OCTAL_DIGITS:
            self._backup()
            result = _rune(self._parse_digits(3, _OCTAL_DIGITS, 8))
        else:
            # Unknown escapes are dropped; the character itself is kept.
            self._backup()
            result = ""
        self._ignore()
        return result

    def _parse_quoted_string(self) -> CFString:
        self._ignore()
        parts = []
        while True:
            self._scan_until_quote_or_backslash()
            ch = self._peek()
            if ch is EOF:
                self._error("unexpected eof in quoted string")
            parts.append(self._emit())
            if ch == '"':
                self._pos += 1
                return CFString("".join(parts))
            # The defaults tool writes every escape with one extra backslash;
            # only an escaped backslash appears as four of them.
            if self._input.startswith("\\\\\\\\", self._pos):
                self._pos += 4
                self._ignore()
                parts.append("\\")
            else:
                self._next()
                self._next()
                parts.append(self._parse_escape())

    def _parse_unquoted_string(self) -> CFString:
        self._scan_not_in_set(GS_QUOTABLE)
        text = self._emit()
        if not text:
            self._error(
                "invalid unquoted string (found an unquoted character that should be quoted?)"
            )
        return CFString(text)

    def _parse_byte_summary(self) -> CFString:
        self._scan_until("}")
        self._next()
        return CFString(self._emit())

    def _parse_dictionary(self, ignore_eof: bool = False):
        keys = []
        values = []
        while True:
            self._skip_whitespace_and_comments()
            ch = self._next()
            if ch is EOF:
                if not ignore_eof:
                    self._error("unexpected eof in dictionary")
                break
            if ch == "}":
                break
            if ch == '"':
                key = self._parse_quoted_string()
            else:
                self._backup()
                key = self._parse_unquoted_string()

            self._skip_whitespace_and_comments()
            delimiter = self._next()
            if delimiter == ";":
                # Strings-file shorthand: the key is its own value.
                value = key
            elif delimiter == "=":
                value = self._parse_value()
                self._skip_whitespace_and_comments()
                if self._next() != ";":
                    self._error("missing ; in dictionary")
            else:
                self._error("missing = in dictionary")

            keys.append(key.value)
            values.append(value)

        return CFDictionary(keys, values).maybe_uid(self.format == Format.OPENSTEP)

    def _parse_array(self) -> CFArray:
        values = []
        while True:
            self._skip_whitespace_and_comments()
            ch = self._next()
            if ch is EOF:
                self._error("unexpected eof in array")
            if ch == ")":
                break
            if ch == ",":
                continue
            self._backup()
            value = self._parse_value()
            if isinstance(value, CFString) and value.value == "":
                continue
            values.append(value)
        return CFArray(values)

    def _parse_date(self, text: str) -> datetime:
        match = _DATE.fullmatch(text)
        if match is None:
            self._error(f"cannot parse {text!r} as a date (expected YYYY-MM-DD HH:MM:SS +ZZZZ)")
        year, month, day, hour, minute, second, sign, off_h, off_m = match.groups()
        offset = timedelta(hours=int(off_h), minutes=int(off_m))
        if sign == "-":
            offset = -offset
        try:
            moment = datetime(
                int(year),
                int(month),
                int(day),
                int(hour),
                int(minute),
                int(second),
                tzinfo=timezone(offset),
            )
        except ValueError as exc:
            self._error(str(exc))
        return moment.astimezone(timezone.utc)

    def _parse_gnustep_value(self):
        kind = self._next()
        if kind is EOF or kind == ">":
            self._error("invalid GNUStep extended value")
        if kind not in ("I", "R", "B", "D"):
            self._error(f"unknown GNUStep extended value type `{kind}'")

        if self._peek() == '"':
            self._next()
        self._ignore()
        self._scan_until(">")
        if self._peek() is EOF:
            self._error("unterminated GNUStep extended value")
        if self._start == self._pos:
            self._error("empty GNUStep extended value")

        text = self._emit()
        self._next()
        if text.endswith('"'):
            text = text[:-1]

        if kind == "I":
            if text.startswith("-"):
                return CFNumber(parse_int(text, 10), signed=True)
            return CFNumber(parse_uint(text, 10), signed=False)
        if kind == "R":
            return CFReal(parse_float(text), wide=True)
        if kind == "B":
            return CFBoolean(text.startswith("Y"))
        return CFDate(self._parse_date(text))

    def _parse_gnustep_base64(self) -> CFData:
        self._ignore()
        self._scan_until("]")
        text = self._emit()
        if self._next() != "]":
            self._error("invalid GNUStep base64 data (expected ']')")
        if self._next() != ">":
            self._error("invalid GNUStep base64 data (expected '>')")
        filtered = BASE64_VALID.filter(text)
        try:
            data = base64.b64decode(filtered, validate=True)
        except binascii.Error as exc:
            self._error(f"invalid GNUStep base64 data: {exc}")
        return CFData(data)

    def _parse_hex_data(self) -> CFData:
        nibbles = []
        while True:
            ch = self._next()
            if ch is EOF:
                self._error("unexpected eof in data")
            if ch == ">":
                if len(nibbles) % 2:
                    self._error("uneven number of hex digits in data")
                self._ignore()
                pairs = iter(nibbles)
                return CFData(bytes(high << 4 | low for high, low in zip(pairs, pairs)))
            if ch in _HEX_WHITESPACE:
                continue
            digit = _digit(ch, _HEX_DIGITS, 16)
            if digit is None:
                self._error(f"unexpected hex digit `{ch}'")
            nibbles.append(digit)

    def _parse_value(self):
        self._skip_whitespace_and_comments()
        ch = self._next()
        if ch is EOF:
            return CFDictionary()
        if ch == "<":
            follower = self._next()
            if follower == "*":
                self.format = Format.GNUSTEP
                return self._parse_gnustep_value()
            if follower == "[":
                self.format = Format.GNUSTEP
                return self._parse_gnustep_base64()
            self._backup()
            return self._parse_hex_data()
        if ch == '"':
            return self._parse_quoted_string()
        if ch == "{":
            if _BYTE_SUMMARY.match(self._input, self._pos):
                self.format = Format.DEFAULTS
                self._backup()
                return self._parse_byte_summary()
            return self._parse_dictionary(ignore_eof=False)
        if ch == "(":
            return self._parse_array()
        self._backup()
        return self._parse_unquoted_string()


def parse_text(data):
    """Parse a text property list document and return its value tree."""
    return TextPlistParser(data).parse_document()