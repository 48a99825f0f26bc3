"""Conversion of property list value trees into Python objects.

``Decoder.unmarshal`` takes a value tree and a target type (a class or a
typing construct such as ``list[int]``, ``dict[str, Any]``,
``tuple[int, int]`` or ``Optional[T]``) and returns a new object of that
type.  Dataclasses are filled field by field, following the layout that
``plistkit.marshal.type_info`` describes.  A class may take charge of its own
decoding by defining ``unmarshal_plist(self, unmarshal)``: it receives a
function that decodes the original value into a given type.  A class that
defines ``unmarshal_text(self, text)`` is decoded from a string value.
"""

from __future__ import annotations

import dataclasses
import functools
import math
import struct
import types
import typing
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from .marshal import type_info
from .numeric import parse_bool, parse_float, parse_int, parse_uint
from .values import (
    UID,
    CFArray,
    CFBoolean,
    CFData,
    CFDate,
    CFDictionary,
    CFNumber,
    CFReal,
    CFString,
    CFUID,
    PlistError,
)

_UINT64_MASK = (1 << 64) - 1
_TEXT_DATE_LAYOUT = "%Y-%m-%d %H:%M:%S %z"
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_NOT_OPTIONAL = object()
_UNION_TYPES = tuple(
    origin for origin in (typing.Union, getattr(types, "UnionType", None)) if origin
)

# Annotations written as strings are resolved by name for these simple types;
# anything else written as a string decodes as a plain value.
_NAMED_TYPES = {
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "bytes": bytes,
    "bytearray": bytearray,
    "list": list,
    "dict": dict,
    "tuple": tuple,
    "UID": UID,
    "datetime": datetime,
    "Any": Any,
    "object": object,
}


def _type_name(typ: Any) -> str:
    if isinstance(typ, type):
        return typ.__qualname__
    return str(typ).replace("typing.", "")


class IncompatibleDecodeTypeError(PlistError, TypeError):
    """Raised when a plist value cannot be decoded into the requested type."""

    def __init__(self, dest: Any, src: str) -> None:
        self.dest = dest
        self.src = src
        super().__init__(
            f"plist: type mismatch: tried to decode plist type `{src}' "
            f"into value of type `{_type_name(dest)}'"
        )


def _is_any(tp: Any) -> bool:
    return tp is Any or tp is object or isinstance(tp, typing.TypeVar)


def _optional_inner(tp: Any) -> Any:
    """Return T for Optional[T], or the _NOT_OPTIONAL marker."""
    if typing.get_origin(tp) in _UNION_TYPES:
        args = typing.get_args(tp)
        members = [arg for arg in args if arg is not type(None)]
        if len(members) == 1 and len(members) != len(args):
            return members[0]
    return _NOT_OPTIONAL


def _resolve_annotation(annotation: Any) -> Any:
    if isinstance(annotation, str):
        return _NAMED_TYPES.get(annotation.strip(), Any)
    return annotation


@functools.lru_cache(maxsize=None)
def _field_hints(cls: type) -> dict:
    return {
        item.name: _resolve_annotation(item.type)
        for item in dataclasses.fields(cls)
    }


def _new_struct(cls: type) -> Any:
    """Create a dataclass instance, giving required fields their zero values."""
    hints = _field_hints(cls)
    kwargs = {
        item.name: _zero_value(hints.get(item.name, Any))
        for item in dataclasses.fields(cls)
        if item.init
        and item.default is dataclasses.MISSING
        and item.default_factory is dataclasses.MISSING
    }
    return cls(**kwargs)


def _new_instance(cls: type) -> Any:
    if dataclasses.is_dataclass(cls):
        return _new_struct(cls)
    return cls()


def _zero_value(tp: Any) -> Any:
    """Return the value an absent entry of type tp decodes to."""
    if _is_any(tp) or _optional_inner(tp) is not _NOT_OPTIONAL:
        return None
    cls = typing.get_origin(tp) or tp
    if not isinstance(cls, type):
        return None
    if issubclass(cls, UID):
        return UID(0)
    if issubclass(cls, bool):
        return False
    if issubclass(cls, int):
        return 0
    if issubclass(cls, float):
        return 0.0
    if issubclass(cls, str):
        return ""
    if issubclass(cls, bytes):
        return b""
    if issubclass(cls, bytearray):
        return bytearray()
    if issubclass(cls, datetime):
        return _ZERO_TIME
    if issubclass(cls, list):
        return []
    if issubclass(cls, tuple):
        args = typing.get_args(tp)
        if args and args[-1] is not Ellipsis:
            return tuple(_zero_value(arg) for arg in args)
        return ()
    if issubclass(cls, Mapping):
        return {}
    if dataclasses.is_dataclass(cls):
        return _new_struct(cls)
    try:
        return cls()
    except TypeError:
        return None


def _narrow_float(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


class Decoder:
    """Decodes value trees into Python objects.

    With ``lax`` set, strings are accepted where numbers, booleans and dates
    are wanted, as text property lists store everything as strings.
    """

    def __init__(self, lax: bool = False) -> None:
        self.lax = lax

    def value_interface(self, value: Any) -> Any:
        """Return the plain Python form of a value tree."""
        match value:
            case CFString():
                return value.value
            case CFNumber():
                return value.value
            case CFReal():
                return value.value if value.wide else _narrow_float(value.value)
            case CFBoolean():
                return value.value
            case CFArray():
                return [self.value_interface(item) for item in value.values]
            case CFDictionary():
                return {
                    key: self.value_interface(item)
                    for key, item in zip(value.keys, value.values)
                }
            case CFData():
                return bytes(value.value)
            case CFDate():
                return value.value
            case CFUID():
                return UID(value.value)
        return None

    def unmarshal(self, value: Any, target_type: Any = Any) -> Any:
        """Decode a value tree into a new object of target_type."""
        return self._decode(value, target_type)

    def _decode_or_zero(self, value: Any, tp: Any) -> Any:
        if value is None:
            return _zero_value(tp)
        return self._decode(value, tp)

    def _decode(self, value: Any, tp: Any) -> Any:
        if value is None:
            return None
        if _is_any(tp):
            return self.value_interface(value)
        inner = _optional_inner(tp)
        if inner is not _NOT_OPTIONAL:
            return self._decode(value, inner)
        origin = typing.get_origin(tp)
        if origin in _UNION_TYPES:
            return self.value_interface(value)
        cls = origin or tp
        if not isinstance(cls, type):
            raise IncompatibleDecodeTypeError(tp, value.type_name)

        if isinstance(value, CFDate):
            if issubclass(cls, datetime):
                return value.value
            raise IncompatibleDecodeTypeError(tp, value.type_name)

        if callable(getattr(cls, "unmarshal_plist", None)):
            obj = _new_instance(cls)
            obj.unmarshal_plist(lambda target=Any: self._decode(value, target))
            return obj

        if not issubclass(cls, datetime) and callable(getattr(cls, "unmarshal_text", None)):
            if not isinstance(value, CFString):
                raise IncompatibleDecodeTypeError(tp, value.type_name)
            obj = _new_instance(cls)
            obj.unmarshal_text(value.value)
            return obj

        match value:
            case CFString():
                if issubclass(cls, str):
                    return value.value if cls is str else cls(value.value)
                if self.lax:
                    return self._decode_lax_string(value.value, tp, cls)
            case CFNumber():
                if issubclass(cls, UID):
                    return UID(value.value & _UINT64_MASK)
                if issubclass(cls, int) and not issubclass(cls, bool):
                    return value.value if cls is int else cls(value.value)
            case CFReal():
                if issubclass(cls, float):
                    return float(value.value)
            case CFBoolean():
                if issubclass(cls, bool):
                    return bool(value.value)
            case CFData():
                if issubclass(cls, bytes):
                    return bytes(value.value)
                if issubclass(cls, bytearray):
                    return bytearray(value.value)
            case CFUID():
                if issubclass(cls, UID):
                    return UID(value.value)
                if issubclass(cls, int) and not issubclass(cls, bool):
                    return int(value.value)
            case CFArray():
                return self._decode_array(value, tp, cls)
            case CFDictionary():
                return self._decode_dictionary(value, tp, cls)
        raise IncompatibleDecodeTypeError(tp, value.type_name)

    def _decode_lax_string(self, text: str, tp: Any, cls: type) -> Any:
        if issubclass(cls, bool):
            return parse_bool(text)
        if issubclass(cls, UID):
            return UID(parse_uint(text, 10))
        if issubclass(cls, int):
            try:
                return parse_int(text, 10)
            except ValueError:
                return parse_uint(text, 10)
        if issubclass(cls, float):
            return parse_float(text)
        if issubclass(cls, datetime):
            return datetime.strptime(text, _TEXT_DATE_LAYOUT).astimezone(timezone.utc)
        raise IncompatibleDecodeTypeError(tp, "string")

    def _decode_array(self, array: CFArray, tp: Any, cls: type) -> Any:
        args = typing.get_args(tp)
        if issubclass(cls, list):
            element = args[0] if args else Any
            return [self._decode_or_zero(item, element) for item in array.values]
        if issubclass(cls, tuple):
            if not args or args[-1] is Ellipsis:
                element = args[0] if args else Any
                return tuple(self._decode_or_zero(item, element) for item in array.values)
            if len(array.values) > len(args):
                raise PlistError(
                    f"plist: attempted to unmarshal {len(array.values)} values "
                    f"into an array of size {len(args)}"
                )
            decoded = [
                self._decode_or_zero(item, element)
                for item, element in zip(array.values, args)
            ]
            decoded.extend(_zero_value(element) for element in args[len(decoded):])
            return tuple(decoded)
        raise IncompatibleDecodeTypeError(tp, array.type_name)

    def _decode_dictionary(self, dictionary: CFDictionary, tp: Any, cls: type) -> Any:
        if dataclasses.is_dataclass(cls):
            return self._decode_struct(dictionary, cls)
        if not issubclass(cls, Mapping):
            raise IncompatibleDecodeTypeError(tp, dictionary.type_name)
        args = typing.get_args(tp)
        key_type, value_type = args if len(args) == 2 else (str, Any)
        if not (_is_any(key_type) or (isinstance(key_type, type) and issubclass(key_type, str))):
            raise IncompatibleDecodeTypeError(tp, dictionary.type_name)
        result = {}
        for key, item in zip(dictionary.keys, dictionary.values):
            if isinstance(key_type, type) and key_type is not str and not _is_any(key_type):
                key = key_type(key)
            result[key] = self._decode_or_zero(item, value_type)
        if cls is not dict and issubclass(cls, dict):
            return cls(result)
        return result

    def _decode_struct(self, dictionary: CFDictionary, cls: type) -> Any:
        entries = dict(zip(dictionary.keys, dictionary.values))
        obj = _new_struct(cls)
        for info in type_info(cls):
            parent = obj
            for depth, attribute in enumerate(info.path[:-1]):
                child = getattr(parent, attribute)
                if child is None:
                    child = _new_struct(info.types[depth])
                    object.__setattr__(parent, attribute, child)
                parent = child
            item = entries.get(info.name)
            if item is None:
                continue
            last = info.path[-1]
            hint = _field_hints(type(parent)).get(last, Any)
            object.__setattr__(parent, last, self._decode(item, hint))
        return obj


def to_python(value: Any) -> Any:
    """Return the plain Python form of a value tree."""
    return Decoder().value_interface(value)