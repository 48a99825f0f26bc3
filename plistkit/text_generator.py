"""Writers for the OpenStep and GNUstep text property list formats."""

from __future__ import annotations

import io
import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import TextIO

from .charsets import GS_QUOTABLE, OS_QUOTABLE
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
    Format,
)

_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\v": "\\v",
    "\f": "\\f",
    "\\": "\\\\",
    '"': '\\"',
    "\t": "\\t",
    "\r": "\\r",
    "\n": "\\n",
}


def _format_real(x: float) -> str:
    """Format a float with the shortest round-trip digits, %g style."""
    if math.isnan(x):
        return "NaN"
    if math.isinf(x):
        return "+Inf" if x > 0 else "-Inf"
    if x == 0:
        return "-0" if math.copysign(1.0, x) < 0 else "0"
    sign = "-" if x < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(x))).normalize().as_tuple()
    digits = "".join(map(str, digit_tuple))
    point = len(digits) + exponent
    exp = point - 1
    if exp < -4 or exp >= 6:
        mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
        exp_sign = "+" if exp >= 0 else "-"
        return f"{sign}{mantissa}e{exp_sign}{abs(exp):02d}"
    integer = digits[:point].ljust(point, "0") if point > 0 else "0"
    if len(digits) > point:
        fraction = digits[point:] if point >= 0 else "0" * -point + digits
        return f"{sign}{integer}.{fraction}"
    return f"{sign}{integer}"


def _format_date(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    else:
        moment = moment.astimezone(timezone.utc)
    return (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d} "
        f"{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d} +0000"
    )


class TextPlistGenerator:
    """Writes a value tree to a text stream in OpenStep or GNUstep syntax."""

    def __init__(self, stream: TextIO, format: int = Format.OPENSTEP) -> None:
        self._stream = stream
        self.format = Format(format)
        self._quotable = GS_QUOTABLE if self.format == Format.GNUSTEP else OS_QUOTABLE
        self._indent = ""
        self._depth = 0
        self._kv_delimiter = "="
        self._entry_delimiter = ";"
        self._array_delimiter = ","

    def set_indent(self, indent: str) -> None:
        """Set the indentation string; an empty string writes compact output."""
        self._indent = indent
        self._kv_delimiter = "=" if indent == "" else " = "

    def quote_string(self, text: str) -> str:
        """Return text escaped, and quoted if it holds any quotable character."""
        if text == "":
            return '""'
        parts = []
        quote = False
        for ch in text:
            code = ord(ch)
            if code > 0xFF:
                quote = True
                parts.append("\\U" + format(code, "04x"))
            elif code > 0x7F:
                quote = True
                parts.append("\\" + format(code, "03o"))
            else:
                if self._quotable.contains_byte(code):
                    quote = True
                parts.append(_ESCAPES.get(ch, ch))
        body = "".join(parts)
        return f'"{body}"' if quote else body

    def generate_document(self, value) -> None:
        """Write the whole document for the given value tree."""
        self._write_value(value)

    def _write(self, text: str) -> None:
        self._stream.write(text)

    def _write_indent(self) -> None:
        if self._indent:
            self._write("\n" + self._indent * self._depth)

    def _write_value(self, value) -> None:
        gnustep = self.format == Format.GNUSTEP
        match value:
            case None:
                return
            case CFDictionary():
                value.sort()
                self._write("{")
                self._depth += 1
                for key, item in zip(value.keys, value.values):
                    self._write_indent()
                    self._write(self.quote_string(key))
                    self._write(self._kv_delimiter)
                    self._write_value(item)
                    self._write(self._entry_delimiter)
                self._depth -= 1
                self._write_indent()
                self._write("}")
            case CFArray():
                self._write("(")
                self._depth += 1
                for item in value.values:
                    self._write_indent()
                    self._write_value(item)
                    self._write(self._array_delimiter)
                self._depth -= 1
                self._write_indent()
                self._write(")")
            case CFString():
                self._write(self.quote_string(value.value))
            case CFNumber():
                text = str(value.value)
                self._write(f"<*I{text}>" if gnustep else text)
            case CFReal():
                text = _format_real(value.value)
                self._write(f"<*R{text}>" if gnustep else text)
            case CFBoolean():
                if gnustep:
                    self._write("<*BY>" if value.value else "<*BN>")
                else:
                    self._write("1" if value.value else "0")
            case CFData():
                self._write("<" + bytes(value.value).hex(" ", -4) + ">")
            case CFDate():
                text = _format_date(value.value)
                self._write(f"<*D{text}>" if gnustep else self.quote_string(text))
            case CFUID():
                self._write_value(value.to_dict())


def generate_text(value, format: int = Format.OPENSTEP, indent: str = "") -> str:
    """Return the text property list document for a value tree."""
    buffer = io.StringIO()
    generator = TextPlistGenerator(buffer, format)
    generator.set_indent(indent)
    generator.generate_document(value)
    return buffer.getvalue()