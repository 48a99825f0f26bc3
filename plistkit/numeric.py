"""Strict number and boolean parsing for property list text."""

from __future__ import annotations

import math
import re

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_UINT64_MAX = (1 << 64) - 1

_DECIMAL_FLOAT = re.compile(r"(\d+\.?\d*|\.\d+)(e[+-]?\d+)?")
_HEX_FLOAT = re.compile(r"0x([0-9a-f]+\.?[0-9a-f]*|\.[0-9a-f]+)p[+-]?\d+")

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def _syntax_error(text: str) -> ValueError:
    return ValueError(f"parsing {text!r}: invalid syntax")


def _range_error(text: str) -> ValueError:
    return ValueError(f"parsing {text!r}: value out of range")


def _parse_digits(text: str, digits: str, base: int) -> int:
    if not 2 <= base <= 36:
        raise ValueError(f"parsing {text!r}: invalid base {base}")
    if not digits:
        raise _syntax_error(text)
    for ch in digits:
        if not (ch.isascii() and ch.isalnum()) or int(ch, 36) >= base:
            raise _syntax_error(text)
    return int(digits, base)


def parse_int(text: str, base: int = 10) -> int:
    """Parse a signed 64-bit integer with an optional sign."""
    negative = False
    digits = text
    if digits and digits[0] in "+-":
        negative = digits[0] == "-"
        digits = digits[1:]
    number = _parse_digits(text, digits, base)
    if negative:
        number = -number
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise _range_error(text)
    return number


def parse_uint(text: str, base: int = 10) -> int:
    """Parse an unsigned 64-bit integer; no sign is accepted."""
    number = _parse_digits(text, text, base)
    if number > _UINT64_MAX:
        raise _range_error(text)
    return number


def parse_float(text: str) -> float:
    """Parse a float, accepting inf/infinity/nan and hexadecimal notation."""
    lowered = text.lower()
    sign = ""
    body = lowered
    if body and body[0] in "+-":
        sign = body[0]
        body = body[1:]
    if body in ("inf", "infinity"):
        return -math.inf if sign == "-" else math.inf
    if body == "nan" and not sign:
        return math.nan
    if _HEX_FLOAT.fullmatch(body):
        try:
            result = float.fromhex(sign + body)
        except OverflowError:
            raise _range_error(text) from None
    elif _DECIMAL_FLOAT.fullmatch(body):
        result = float(sign + body)
    else:
        raise _syntax_error(text)
    if math.isinf(result):
        raise _range_error(text)
    return result


def parse_bool(text: str) -> bool:
    """Parse a boolean from 1/t/true/0/f/false in the accepted spellings."""
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise _syntax_error(text)


def unsigned_get_base(text: str) -> tuple[str, int]:
    """Split off a 0x/0X prefix, returning the digits and their base."""
    if len(text) > 1 and text[0] == "0" and text[1] in "xX":
        return text[2:], 16
    return text, 10