"""Property list value model, format identifiers and error types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import ClassVar, Union

from .numeric import parse_uint

UID_MAGIC = "CF$UID"

_UINT64_MASK = (1 << 64) - 1


class Format(IntEnum):
    """Property list serialization formats."""

    INVALID = 0
    AUTOMATIC = 0
    XML = 1
    BINARY = 2
    OPENSTEP = 3
    GNUSTEP = 4
    DEFAULTS = 5


_FORMAT_NAMES = {
    Format.INVALID: "unknown/invalid",
    Format.XML: "XML",
    Format.BINARY: "Binary",
    Format.OPENSTEP: "OpenStep",
    Format.GNUSTEP: "GNUStep",
    Format.DEFAULTS: "Defaults(OpenStep)",
}


def format_name(format: int) -> str:
    """Return the human readable name of a format, or an empty string."""
    return _FORMAT_NAMES.get(int(format), "")


class UID(int):
    """A keyed-archiver unique object identifier, distinct from plain integers."""

    def __repr__(self) -> str:
        return f"UID({int(self)})"


class PlistError(Exception):
    """Base class for all property list errors."""


class UnknownTypeError(PlistError, TypeError):
    """Raised when a value of an unsupported type is marshalled."""

    def __init__(self, typ: object) -> None:
        self.type = typ
        name = getattr(typ, "__qualname__", None) or str(typ)
        super().__init__(f"plist: can't marshal value of type {name}")


class InvalidPlistError(PlistError, ValueError):
    """Raised when a document is not a property list of the given format."""

    def __init__(self, format: str, error: object = None) -> None:
        self.format = format
        self.error = error
        message = f"plist: invalid {format} property list"
        if error is not None:
            message += f": {error}"
        super().__init__(message)


class PlistParseError(PlistError, ValueError):
    """Raised when a property list of a known format fails to parse."""

    def __init__(self, format: str, error: object = None) -> None:
        self.format = format
        self.error = error
        message = f"plist: error parsing {format} property list"
        if error is not None:
            message += f": {error}"
        super().__init__(message)


@dataclass
class CFDictionary:
    """An ordered dictionary of string keys to property list values."""

    keys: list = field(default_factory=list)
    values: list = field(default_factory=list)
    type_name: ClassVar[str] = "dictionary"

    def sort(self) -> None:
        """Sort the entries by key, keeping values paired with their keys."""
        pairs = sorted(zip(self.keys, self.values), key=lambda pair: pair[0])
        self.keys[:] = [key for key, _ in pairs]
        self.values[:] = [value for _, value in pairs]

    def maybe_uid(self, lax: bool) -> "CFValue":
        """Return a CFUID if this dictionary is the encoding of one, else self."""
        if len(self.keys) == 1 and self.keys[0] == UID_MAGIC and len(self.values) == 1:
            inner = self.values[0]
            if isinstance(inner, CFNumber):
                return CFUID(inner.value & _UINT64_MASK)
            if lax and isinstance(inner, CFString):
                try:
                    return CFUID(parse_uint(inner.value, 10))
                except ValueError:
                    pass
        return self


@dataclass
class CFArray:
    """An ordered list of property list values."""

    values: list = field(default_factory=list)
    type_name: ClassVar[str] = "array"


@dataclass(frozen=True)
class CFString:
    """A string value."""

    value: str
    type_name: ClassVar[str] = "string"


@dataclass(frozen=True)
class CFNumber:
    """An integer value; ``signed`` records whether it came from a signed type."""

    value: int
    signed: bool = False
    type_name: ClassVar[str] = "integer"


@dataclass(frozen=True)
class CFReal:
    """A floating point value; ``wide`` is true for 64-bit precision."""

    value: float
    wide: bool = True
    type_name: ClassVar[str] = "real"


@dataclass(frozen=True)
class CFBoolean:
    """A boolean value."""

    value: bool
    type_name: ClassVar[str] = "boolean"


@dataclass(frozen=True)
class CFUID:
    """A keyed-archiver UID value."""

    value: int
    type_name: ClassVar[str] = "UID"

    def to_dict(self) -> CFDictionary:
        """Return the text/XML dictionary encoding of this UID."""
        return CFDictionary([UID_MAGIC], [CFNumber(int(self.value), signed=False)])


@dataclass(frozen=True)
class CFData:
    """A raw byte string value."""

    value: bytes
    type_name: ClassVar[str] = "data"


@dataclass(frozen=True)
class CFDate:
    """A date value."""

    value: datetime
    type_name: ClassVar[str] = "date"


CFValue = Union[
    CFDictionary, CFArray, CFString, CFNumber, CFReal, CFBoolean, CFUID, CFData, CFDate
]