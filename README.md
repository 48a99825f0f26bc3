# plistkit

A pure-Python library for reading and writing property lists in their text
forms: XML, OpenStep, GNUstep, and the OpenStep-like output of the macOS
`defaults read` command. That output includes byte summaries such as
`{length = 4, bytes = 0x01020304}`. The library has no dependencies outside
the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `plistkit.values` | The value tree classes, the `Format` enum, `format_name`, `UID` and the error classes |
| `plistkit.text_parser` | `TextPlistParser`, `parse_text`, `guess_encoding_and_convert` |
| `plistkit.text_generator` | `TextPlistGenerator`, `generate_text` |
| `plistkit.xml_parser` | `XMLPlistParser`, `parse_xml` |
| `plistkit.xml_generator` | `XMLPlistGenerator`, `generate_xml`, `format_xml_float` |
| `plistkit.marshal` | `marshal`, `plist_field`, `type_info`, `FieldInfo`, `is_empty_value` |
| `plistkit.unmarshal` | `Decoder`, `to_python`, `IncompatibleDecodeTypeError` |
| `plistkit.numeric` | Strict 64-bit `parse_int`, `parse_uint`, `parse_float`, `parse_bool` and `unsigned_get_base` |
| `plistkit.charsets` | `CharacterSet` and the character tables the text formats use |

## Value model

Documents are parsed into a small tree of value classes:

- `CFDictionary`, which keeps parallel `keys` and `values` lists in document order
- `CFArray`
- `CFString`, `CFNumber`, `CFReal`, `CFBoolean`, `CFData`, `CFDate` and `CFUID`

A dictionary that holds a single `CF$UID` integer entry becomes a `CFUID`. In
OpenStep text, a `CF$UID` string entry that holds a number is accepted as well.
When a dictionary is written, its entries are sorted by key.

The format constants are in the `Format` enum: `XML`, `BINARY`, `OPENSTEP`,
`GNUSTEP` and `DEFAULTS`. `format_name(format)` returns a readable name for
each one.

## Parsing

```python
from plistkit.text_parser import parse_text
from plistkit.xml_parser import parse_xml
from plistkit.unmarshal import to_python

tree = parse_text(b'{Name = Dustin; Ages = (1, 2, 3);}')
print(to_python(tree))
# {'Name': 'Dustin', 'Ages': ['1', '2', '3']}

tree = parse_xml(b'<plist version="1.0"><integer>42</integer></plist>')
print(to_python(tree))
# 42
```

Both parsers accept bytes, a `str`, or a binary file object.

The text parser:

- Detects the encoding itself. It reads UTF-8 with or without a BOM, and UTF-16 in either byte order, with or without a BOM.
- Skips `//` and `/* */` comments.
- Reads GNUstep typed values (`<*I…>`, `<*R…>`, `<*B…>`, `<*D…>`) and base64 data (`<[…]>`).
- Reads `.strings` files, including the `"key";` shorthand.
- Treats an empty document as an empty dictionary.

After `TextPlistParser(data).parse_document()`, the parser's `format` attribute
tells which dialect it saw: `OPENSTEP`, `GNUSTEP`, or `DEFAULTS`. `DEFAULTS`
means the document held byte summaries, which are returned as strings.

The XML parser accepts hexadecimal integers (`0x2a`) and RFC 3339 dates.

## Generating

```python
from plistkit.marshal import marshal
from plistkit.text_generator import generate_text
from plistkit.xml_generator import generate_xml
from plistkit.values import Format

tree = marshal({"float": 1.0, "count": 1})
print(generate_text(tree, Format.OPENSTEP, ""))   # {count=1;float=1;}
print(generate_text(tree, Format.GNUSTEP, ""))    # {count=<*I1>;float=<*R1>;}
print(generate_xml(tree, ""))
```

Pass a non-empty indent string, such as `"\t"`, to get pretty-printed output.
To write to a stream of your own, use `TextPlistGenerator(stream, format)` or
`XMLPlistGenerator(stream)`. Call `set_indent` on it, then
`generate_document(tree)`.

## Python objects

`marshal(value)` converts Python values into a tree:

| Python value | Tree value |
| --- | --- |
| `str` | `CFString` |
| `bool` | `CFBoolean` |
| `int` | `CFNumber`, which must fit in 64 bits |
| `float` | `CFReal` |
| `bytes` | `CFData` |
| `datetime` | `CFDate` |
| `UID` | `CFUID` |
| list or tuple | `CFArray` |
| mapping with string keys | `CFDictionary` |
| dataclass | `CFDictionary` |

`None` entries in mappings are dropped. An object may take charge of its own
encoding in either of two ways:

- Define `marshal_plist()`, which returns a replacement value.
- Define `marshal_text()`, which returns text that is stored as a string.

`Decoder(lax).unmarshal(tree, target_type)` goes the other way. The target type
may be a class or a typing construct such as `list[int]`, `dict[str, Any]`,
`tuple[int, int]` or `Optional[T]`. Entries that are missing from a dictionary
take the zero value of their field's type.

A class may take charge of its own decoding in either of two ways:

- Define `unmarshal_plist(self, unmarshal)`. It receives a function that decodes the original value into a given type.
- Define `unmarshal_text(self, text)`. The class is then decoded from a string value.

`to_python(tree)` returns plain Python values.

With `lax=True`, strings are converted into numbers, booleans and dates when
the target type asks for them. OpenStep text stores every scalar as a string,
so this is what makes it readable as typed data.

```python
from dataclasses import dataclass
from plistkit.marshal import marshal, plist_field
from plistkit.unmarshal import Decoder

@dataclass
class Header:
    version: str = plist_field("CFBundleInfoDictionaryVersion")
    size: int = plist_field("size", omitempty=True, default=0)

tree = marshal(Header("6.0", 4096))
header = Decoder(False).unmarshal(tree, Header)
```

`plist_field` sets how a dataclass field appears in a property list:

- A name of `"-"` leaves the field out.
- `omitempty=True` drops zero, empty and `None` values.
- `embed=True` flattens a nested dataclass's fields into the enclosing dictionary.

Fields whose names start with an underscore are skipped.

## Errors

| Error | Raised when |
| --- | --- |
| `InvalidPlistError` | The input is not an XML document at all |
| `PlistParseError` | A text or XML property list is malformed |
| `UnknownTypeError` | `marshal` is given a value with no property list form, `None` among them |
| `IncompatibleDecodeTypeError` | `Decoder` cannot decode a tree value into the requested type |

All four derive from `plistkit.values.PlistError`. Some errors do not:

- `marshal` raises `OverflowError` for integers that do not fit in 64 bits.
- Lax string conversion raises `ValueError` for text that is not a valid number, boolean or date.

## What it does not do

- The binary (`bplist00`) format is neither read nor written. `Format.BINARY` exists only as a constant.
- There is no automatic detection of the format. Choose the text parser or the XML parser yourself.
- GNUstep base64 data is read but never written. Data is always written as hex.
- The package has no command-line program. It does not run `defaults` or watch it for changes. It parses text you give it.