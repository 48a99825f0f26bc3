"""Parser for the XML property list format."""

from __future__ import annotations

import base64
import re
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, Iterator, Union
from xml.etree import ElementTree

from .numeric import parse_float, parse_int, parse_uint, unsigned_get_base
from .values import (
    CFArray,
    CFBoolean,
    CFData,
    CFDate,
    CFDictionary,
    CFNumber,
    CFReal,
    CFString,
    InvalidPlistError,
    PlistParseError,
)

_DATA_WHITESPACE = str.maketrans("", "", "\t\n \r")
_RFC3339 = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2}):([0-9]{2})"
    r"(?:\.([0-9]+))?(Z|[+-][0-9]{2}:[0-9]{2})"
)


class _EndOfInput(ValueError):
    def __init__(self) -> None:
        super().__init__("unexpected EOF")


def _local_name(element: ElementTree.Element) -> str:
    return str(element.tag).rpartition("}")[2]


def _parse_rfc3339(text: str) -> datetime:
    match = _RFC3339.fullmatch(text)
    if match is None:
        raise ValueError(f"cannot parse {text!r} as an RFC 3339 date")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    if zone == "Z":
        offset = timedelta(0)
    else:
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        if zone[0] == "-":
            offset = -offset
    microsecond = int((fraction or "0")[:6].ljust(6, "0"))
    moment = datetime(
        int(year),
        int(month),
        int(day),
        int(hour),
        int(minute),
        int(second),
        microsecond,
        tzinfo=timezone(offset),
    )
    return moment.astimezone(timezone.utc)


class XMLPlistParser:
    """Parses an XML property list document into a value tree."""

    def __init__(self, data: Union[bytes, bytearray, memoryview, str, BinaryIO]) -> None:
        if hasattr(data, "read"):
            data = data.read()
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._data = bytes(data)
        self._tokens: Iterator = iter(())
        self._ntags = 0

    def parse_document(self):
        """Parse the document and return the value of its first element."""
        self._ntags = 0
        self._tokens = self._token_stream()
        try:
            root = self._first_start_element()
            value = self._parse_element(root)
            if self._ntags == 0:
                raise InvalidPlistError("XML", "no elements encountered")
            return value
        except InvalidPlistError:
            raise
        except (ValueError, SyntaxError) as exc:
            raise PlistParseError("XML", exc) from exc

    def _token_stream(self):
        parser = ElementTree.XMLPullParser(events=("start", "end"))
        parser.feed(self._data)
        yield from parser.read_events()
        parser.close()
        yield from parser.read_events()

    def _next_token(self):
        token = next(self._tokens, None)
        if token is None:
            raise _EndOfInput()
        return token

    def _first_start_element(self) -> ElementTree.Element:
        while True:
            try:
                event, element = self._next_token()
            except (ValueError, SyntaxError) as exc:
                raise InvalidPlistError("XML", exc) from exc
            if event == "start":
                return element

    def _skip(self, element: ElementTree.Element) -> None:
        while True:
            event, current = self._next_token()
            if event == "end" and current is element:
                return

    def _char_data(self, element: ElementTree.Element) -> str:
        self._skip(element)
        return (element.text or "") + "".join(child.tail or "" for child in element)

    def _parse_element(self, element: ElementTree.Element):
        name = _local_name(element)
        if name == "plist":
            self._ntags += 1
            while True:
                event, child = self._next_token()
                if event == "end" and _local_name(child) == "plist":
                    return None
                if event == "start":
                    return self._parse_element(child)
        if name == "string":
            self._ntags += 1
            return CFString(self._char_data(element))
        if name == "integer":
            self._ntags += 1
            return self._parse_integer(self._char_data(element))
        if name == "real":
            self._ntags += 1
            return CFReal(parse_float(self._char_data(element)), wide=True)
        if name in ("true", "false"):
            self._ntags += 1
            self._skip(element)
            return CFBoolean(name == "true")
        if name == "date":
            self._ntags += 1
            return CFDate(_parse_rfc3339(self._char_data(element)))
        if name == "data":
            self._ntags += 1
            text = self._char_data(element).translate(_DATA_WHITESPACE)
            return CFData(base64.b64decode(text, validate=True))
        if name == "dict":
            self._ntags += 1
            return self._parse_dictionary()
        if name == "array":
            self._ntags += 1
            return self._parse_array()
        error = ValueError(f"encountered unknown element {name}")
        if self._ntags == 0:
            # A first element we do not know may be OpenStep data such as <abab>.
            raise InvalidPlistError("XML", error)
        raise error

    @staticmethod
    def _parse_integer(text: str) -> CFNumber:
        if not text:
            raise ValueError("invalid empty <integer/>")
        if text[0] == "-":
            digits, base = unsigned_get_base(text[1:])
            return CFNumber(parse_int("-" + digits, base), signed=True)
        digits, base = unsigned_get_base(text)
        return CFNumber(parse_uint(digits, base), signed=False)

    def _parse_dictionary(self):
        key = None
        keys = []
        values = []
        while True:
            event, element = self._next_token()
            name = _local_name(element)
            if event == "end" and name == "dict":
                if key is not None:
                    raise ValueError("missing value in dictionary")
                break
            if event != "start":
                continue
            if name == "key":
                key = self._char_data(element)
            else:
                if key is None:
                    raise ValueError("missing key in dictionary")
                keys.append(key)
                values.append(self._parse_element(element))
                key = None
        return CFDictionary(keys, values).maybe_uid(False)

    def _parse_array(self) -> CFArray:
        values = []
        while True:
            event, element = self._next_token()
            if event == "end" and _local_name(element) == "array":
                return CFArray(values)
            if event == "start":
                values.append(self._parse_element(element))


def parse_xml(data):
    """Parse an XML property list document and return its value tree."""
    return XMLPlistParser(data).parse_document()