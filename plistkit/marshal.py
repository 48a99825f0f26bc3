"""Conversion of Python objects into property list value trees.

Dataclasses play the part of structures: every public field becomes a
dictionary entry.  ``plist_field`` sets the entry name, ``omitempty`` and
embedding.  The name ``"-"`` leaves a field out.  Objects may take charge of
their own encoding by defining ``marshal_plist()``, which returns a
replacement value, or ``marshal_text()``, which returns text stored as a
string.
"""

from __future__ import annotations

import dataclasses
import inspect
import threading
import types
import typing
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

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
    UnknownTypeError,
)

_INT64_MIN = -(1 << 63)
_UINT64_MAX = (1 << 64) - 1

_NAME_KEY = "plist"
_OMITEMPTY_KEY = "plist_omitempty"
_EMBED_KEY = "plist_embed"


@dataclass(frozen=True)
class FieldInfo:
    """How one (possibly embedded) dataclass field appears in a property list.

    ``path`` holds the attribute names leading to the field; ``types`` holds
    the classes of the embedded objects along that path, used to create an
    embedded object that is missing.
    """

    name: str
    path: tuple
    omitempty: bool = False
    types: tuple = ()

    def value(self, obj: Any) -> Any:
        """Return the field's value in obj, creating missing embedded objects."""
        current = obj
        for depth, attribute in enumerate(self.path):
            if depth > 0 and current is None:
                parent_attr = self.path[depth - 1]
                current = self.types[depth - 1]()
                try:
                    setattr(parent, parent_attr, current)
                except dataclasses.FrozenInstanceError:
                    pass
            parent = current
            current = getattr(current, attribute)
        return current


def plist_field(name: Optional[str] = None, omitempty: bool = False, **kwargs: Any):
    """Declare a dataclass field with its property list name and options.

    ``embed=True`` among the keyword arguments flattens a dataclass-typed
    field's own fields into the enclosing dictionary.  Other keyword
    arguments go to ``dataclasses.field``.
    """
    embed = bool(kwargs.pop("embed", False))
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[_NAME_KEY] = name or ""
    metadata[_OMITEMPTY_KEY] = bool(omitempty)
    metadata[_EMBED_KEY] = embed
    return dataclasses.field(metadata=metadata, **kwargs)


_type_info_cache: dict = {}
_type_info_lock = threading.Lock()


def _lookup_name(name: str, namespace: Mapping) -> Any:
    """Resolve a possibly dotted name against a namespace, or return None."""
    head, *rest = name.split(".")
    found = namespace.get(head)
    for part in rest:
        if found is None:
            return None
        found = getattr(found, part, None)
    return found


def _struct_from_text(annotation: str, namespace: Mapping) -> Optional[type]:
    """Find the dataclass named by a textual annotation such as ``Optional[X]``."""
    text = annotation.strip()
    for prefix in ("typing.Optional[", "Optional["):
        if text.startswith(prefix) and text.endswith("]"):
            return _struct_from_text(text[len(prefix):-1], namespace)
    if "|" in text:
        members = [part.strip() for part in text.split("|") if part.strip() != "None"]
        if len(members) == 1:
            return _struct_from_text(members[0], namespace)
        return None
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
        return _struct_from_text(text[1:-1], namespace)
    return _struct_type(_lookup_name(text, namespace))


def _embedded_class(cls: type, item: dataclasses.Field) -> Optional[type]:
    """Return the dataclass held by an embedded field, if one can be found."""
    annotation = item.type
    if not isinstance(annotation, str):
        found = _struct_type(annotation)
        if found is not None:
            return found
    else:
        module = inspect.getmodule(cls)
        namespace = dict(vars(module)) if module is not None else {}
        namespace.update(vars(cls))
        found = _struct_from_text(annotation, namespace)
        if found is not None:
            return found
    factory = item.default_factory
    if factory is not dataclasses.MISSING:
        found = _struct_type(factory)
        if found is not None:
            return found
    default = item.default
    if default is not dataclasses.MISSING and dataclasses.is_dataclass(default):
        return type(default)
    return None


def _struct_type(annotation: Any) -> Optional[type]:
    """Return the dataclass named by an annotation, unwrapping Optional."""
    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        return annotation
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is getattr(types, "UnionType", None):
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return _struct_type(members[0])
    return None


def _add_field(fields: list, new: FieldInfo) -> None:
    conflicts = [index for index, old in enumerate(fields) if old.name == new.name]
    if not conflicts:
        fields.append(new)
        return
    # A shallower field already present wins, as with embedded field lookup.
    if any(len(fields[index].path) < len(new.path) for index in conflicts):
        return
    for index in reversed(conflicts):
        del fields[index]
    fields.append(new)


def _build_type_info(cls: type) -> tuple:
    fields: list = []
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        return ()
    for item in dataclasses.fields(cls):
        tag = item.metadata.get(_NAME_KEY, "")
        if item.name.startswith("_") or tag == "-":
            continue
        if item.metadata.get(_EMBED_KEY):
            inner_cls = _embedded_class(cls, item)
            if inner_cls is not None:
                for inner in type_info(inner_cls):
                    _add_field(
                        fields,
                        FieldInfo(
                            name=inner.name,
                            path=(item.name,) + inner.path,
                            omitempty=inner.omitempty,
                            types=(inner_cls,) + inner.types,
                        ),
                    )
                continue
        _add_field(
            fields,
            FieldInfo(
                name=tag or item.name,
                path=(item.name,),
                omitempty=bool(item.metadata.get(_OMITEMPTY_KEY, False)),
            ),
        )
    return tuple(fields)


def type_info(cls: type) -> tuple:
    """Return the FieldInfo entries describing how cls is laid out in a plist."""
    with _type_info_lock:
        cached = _type_info_cache.get(cls)
    if cached is not None:
        return cached
    info = _build_type_info(cls)
    with _type_info_lock:
        _type_info_cache[cls] = info
    return info


def is_empty_value(value: Any) -> bool:
    """Return whether value counts as empty for ``omitempty`` fields."""
    if value is None:
        return True
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, (str, bytes, bytearray, list, tuple, dict, set, frozenset)):
        return len(value) == 0
    if isinstance(value, Mapping):
        return len(value) == 0
    return False


def _marshal_struct(obj: Any) -> CFDictionary:
    dictionary = CFDictionary()
    for info in type_info(type(obj)):
        value = info.value(obj)
        if info.omitempty and is_empty_value(value):
            continue
        dictionary.keys.append(info.name)
        dictionary.values.append(_marshal(value))
    return dictionary


def _marshal_mapping(mapping: Mapping) -> CFDictionary:
    if any(not isinstance(key, str) for key in mapping):
        raise UnknownTypeError(type(mapping))
    dictionary = CFDictionary()
    for key, item in mapping.items():
        converted = _marshal(item)
        if converted is not None:
            dictionary.keys.append(key)
            dictionary.values.append(converted)
    return dictionary


def _marshal_int(value: int) -> CFNumber:
    if not _INT64_MIN <= value <= _UINT64_MAX:
        raise OverflowError(f"plist: integer {value} does not fit in 64 bits")
    return CFNumber(int(value), signed=value < 0)


def _marshal(value: Any):
    if value is None:
        return None
    if not isinstance(value, type):
        plist_method = getattr(value, "marshal_plist", None)
        if callable(plist_method):
            return _marshal(plist_method())
    if isinstance(value, datetime):
        return CFDate(value)
    if not isinstance(value, type):
        text_method = getattr(value, "marshal_text", None)
        if callable(text_method):
            text = text_method()
            if isinstance(text, (bytes, bytearray)):
                text = bytes(text).decode("utf-8", errors="replace")
            return CFString(text)
    if isinstance(value, UID):
        return CFUID(int(value))
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _marshal_struct(value)
    if isinstance(value, str):
        return CFString(value)
    if isinstance(value, bool):
        return CFBoolean(value)
    if isinstance(value, int):
        return _marshal_int(value)
    if isinstance(value, float):
        return CFReal(value, wide=True)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return CFData(bytes(value))
    if isinstance(value, (list, tuple)):
        return CFArray([_marshal(item) for item in value])
    if isinstance(value, Mapping):
        return _marshal_mapping(value)
    raise UnknownTypeError(type(value))


def marshal(value: Any):
    """Convert a Python object into a property list value tree.

    Raises UnknownTypeError for values with no property list form, None
    included.
    """
    result = _marshal(value)
    if result is None:
        raise UnknownTypeError(type(value))
    return result