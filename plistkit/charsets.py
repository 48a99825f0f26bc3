"""Byte-range character sets used by the text property list formats."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class CharacterSet:
    """A set of characters in the range 0-255, stored as four 64-bit words."""

    words: tuple
    _mask: int = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        mask = 0
        for shift, word in enumerate(self.words):
            mask |= (word & 0xFFFFFFFFFFFFFFFF) << (64 * shift)
        object.__setattr__(self, "_mask", mask)

    def contains_byte(self, byte: int) -> bool:
        """Return whether the byte value is in the set."""
        return 0 <= byte <= 255 and bool(self._mask >> byte & 1)

    def contains(self, ch: Union[str, int, None]) -> bool:
        """Return whether a character (or code point) is in the set."""
        if ch is None or ch == "":
            return False
        code = ord(ch) if isinstance(ch, str) else ch
        return self.contains_byte(code)

    def filter(self, text: str) -> str:
        """Return text with every character outside the set removed."""
        return "".join(ch for ch in text if self.contains(ch))


GS_QUOTABLE = CharacterSet(
    (0x78001385FFFFFFFF, 0xA800000138000000, 0xFFFFFFFFFFFFFFFF, 0xFFFFFFFFFFFFFFFF)
)

OS_QUOTABLE = CharacterSet(
    (0xF4007F6FFFFFFFFF, 0xF8000001F8000001, 0xFFFFFFFFFFFFFFFF, 0xFFFFFFFFFFFFFFFF)
)

WHITESPACE = CharacterSet((0x0000000100003F00, 0, 0, 0))

NEWLINE = CharacterSet((0x0000000000002400, 0, 0, 0))

BASE64_VALID = CharacterSet((0x23FF880000000000, 0x07FFFFFE07FFFFFE, 0, 0))