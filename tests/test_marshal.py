import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

import pytest

from plistkit.marshal import (
    FieldInfo,
    is_empty_value,
    marshal,
    plist_field,
    type_info,
)
from plistkit.text_generator import generate_text
from plistkit.values import (
    UID,
    CFArray,
    CFDictionary,
    CFNumber,
    CFString,
    CFUID,
    Format,
    UnknownTypeError,
)
from plistkit.xml_generator import XML_PREAMBLE, generate_xml

OS = Format.OPENSTEP
GS = Format.GNUSTEP

DATE = datetime(2013, 11, 27, 0, 34, 0, tzinfo=timezone.utc)


def openstep(value):
    return generate_text(marshal(value), OS)


def gnustep(value):
    return generate_text(marshal(value), GS)


def xml(value):
    return generate_xml(marshal(value))


@dataclass
class Basic:
    Name: str = ""


@dataclass
class BasicPrivate:
    Name: str = ""
    _age: int = 0


@dataclass
class BasicOmitted:
    Name: str = ""
    Age: int = plist_field("-", default=0)


@dataclass
class OmitEmpty:
    Name: str = ""
    Age: int = plist_field("age", omitempty=True, default=0)
    Slice: List[int] = plist_field(omitempty=True, default_factory=list)
    Bool: bool = plist_field(omitempty=True, default=False)
    Uint: int = plist_field(omitempty=True, default=0)
    Float32: float = plist_field(omitempty=True, default=0.0)
    Float64: float = plist_field(omitempty=True, default=0.0)
    Stringptr: Optional[str] = plist_field(omitempty=True, default=None)
    Notempty: int = plist_field(omitempty=True, default=0)


@dataclass
class EmbedC:
    FieldA1: str = plist_field("FieldA", default="")
    FieldA2: str = ""
    FieldB: str = ""
    FieldC: str = ""


@dataclass
class EmbedB:
    FieldB: str = ""
    embed_c: Optional[EmbedC] = plist_field(embed=True, default=None)


@dataclass
class EmbedA:
    embed_c: EmbedC = plist_field(embed=True, default_factory=EmbedC)
    embed_b: EmbedB = plist_field("EmbedB", default_factory=EmbedB)
    FieldA: str = ""


@dataclass
class SparseBundleHeader:
    InfoDictionaryVersion: str = plist_field("CFBundleInfoDictionaryVersion", default="")
    BandSize: int = plist_field("band-size", default=0)
    BackingStoreVersion: int = plist_field("bundle-backingstore-version", default=0)
    DiskImageBundleType: str = plist_field("diskimage-bundle-type", default="")
    Size: int = plist_field("size", default=0)


@dataclass
class UIDHolder:
    U: UID = plist_field("identifier", default=UID(0))


class TextMarshalingBool:
    def __init__(self, b):
        self.b = b

    def marshal_text(self):
        return b"truthful" if self.b else b"non-factual"


class TextMarshalingBoolViaPointer:
    def __init__(self, b):
        self.b = b

    def marshal_text(self):
        return "plausible" if self.b else "unimaginable"


class ArrayThatSerializesAsOneObject:
    def __init__(self, values):
        self.values = values

    def marshal_plist(self):
        if len(self.values) == 1:
            return self.values[0]
        return self.values


class PlistMarshalingBoolByPointer:
    def __init__(self, b):
        self.b = b

    def marshal_plist(self):
        return -1 if self.b else -2


class BothMarshaler:
    def marshal_plist(self):
        return {"a": "b"}

    def marshal_text(self):
        return "shouldn't see this"


@dataclass
class BothUnmarshaler:
    Blah: int = plist_field("blah", omitempty=True, default=0)


def test_string():
    assert openstep("Hello") == "Hello"
    assert gnustep("Hello") == "Hello"
    assert xml("Hello") == XML_PREAMBLE + '<plist version="1.0"><string>Hello</string></plist>'


def test_basic_structure():
    value = Basic(Name="Dustin")
    assert openstep(value) == "{Name=Dustin;}"
    assert gnustep(value) == "{Name=Dustin;}"
    assert xml(value) == (
        XML_PREAMBLE
        + '<plist version="1.0"><dict><key>Name</key><string>Dustin</string></dict></plist>'
    )


def test_private_fields_are_skipped():
    assert openstep(BasicPrivate(Name="Dustin", _age=24)) == "{Name=Dustin;}"


def test_dash_tag_omits_field():
    assert openstep(BasicOmitted(Name="Dustin", Age=24)) == "{Name=Dustin;}"


def test_omitempty_fields():
    value = OmitEmpty(Name="Dustin", Notempty=10)
    assert openstep(value) == "{Name=Dustin;Notempty=10;}"
    assert gnustep(value) == "{Name=Dustin;Notempty=<*I10>;}"
    assert xml(value) == (
        XML_PREAMBLE
        + '<plist version="1.0"><dict><key>Name</key><string>Dustin</string>'
        + "<key>Notempty</key><integer>10</integer></dict></plist>"
    )


def _embed_value():
    return EmbedA(
        embed_c=EmbedC(FieldA1="", FieldA2="", FieldB="A.C.B", FieldC="A.C.C"),
        embed_b=EmbedB(
            FieldB="A.B.B",
            embed_c=EmbedC(
                FieldA1="A.B.C.A1", FieldA2="A.B.C.A2", FieldB="", FieldC="A.B.C.C"
            ),
        ),
        FieldA="A.A",
    )


def test_anonymous_embeds():
    assert openstep(_embed_value()) == (
        '{EmbedB={FieldA="A.B.C.A1";FieldA2="A.B.C.A2";FieldB="A.B.B";FieldC="A.B.C.C";};'
        'FieldA="A.A";FieldA2="";FieldB="A.C.B";FieldC="A.C.C";}'
    )
    assert gnustep(_embed_value()) == (
        "{EmbedB={FieldA=A.B.C.A1;FieldA2=A.B.C.A2;FieldB=A.B.B;FieldC=A.B.C.C;};"
        'FieldA=A.A;FieldA2="";FieldB=A.C.B;FieldC=A.C.C;}'
    )


def test_anonymous_embeds_xml():
    assert xml(_embed_value()) == (
        XML_PREAMBLE
        + '<plist version="1.0"><dict><key>EmbedB</key><dict><key>FieldA</key>'
        + "<string>A.B.C.A1</string><key>FieldA2</key><string>A.B.C.A2</string>"
        + "<key>FieldB</key><string>A.B.B</string><key>FieldC</key><string>A.B.C.C</string>"
        + "</dict><key>FieldA</key><string>A.A</string><key>FieldA2</key><string/>"
        + "<key>FieldB</key><string>A.C.B</string><key>FieldC</key><string>A.C.C</string>"
        + "</dict></plist>"
    )


def test_type_info_resolves_embedding_conflicts():
    names = [info.name for info in type_info(EmbedA)]
    assert names == ["FieldA2", "FieldB", "FieldC", "EmbedB", "FieldA"]
    by_name = {info.name: info for info in type_info(EmbedA)}
    assert by_name["FieldA"].path == ("FieldA",)
    assert by_name["FieldA2"].path == ("embed_c", "FieldA2")


def test_type_info_shallower_field_wins_over_deeper():
    by_name = {info.name: info for info in type_info(EmbedB)}
    assert by_name["FieldB"].path == ("FieldB",)
    assert by_name["FieldA"].path == ("embed_c", "FieldA1")


def test_type_info_is_cached():
    first = type_info(Basic)
    assert [info.name for info in first] == ["Name"]
    assert [info.path for info in first] == [("Name",)]
    assert type_info(Basic) is first


def test_type_info_of_non_dataclass_is_empty():
    assert type_info(int) == ()


def test_field_info_value_creates_missing_embedded_object():
    holder = EmbedB(FieldB="x", embed_c=None)
    info = FieldInfo(name="FieldC", path=("embed_c", "FieldC"), types=(EmbedC,))
    assert info.value(holder) == ""
    assert holder.embed_c == EmbedC()


def test_nil_embedded_pointer_marshals_zero_fields():
    assert openstep(EmbedB(FieldB="x")) == '{FieldA="";FieldA2="";FieldB=x;FieldC="";}'


def test_arbitrary_byte_data():
    assert openstep(b"hello") == "<68656c6c 6f>"
    assert xml(b"hello") == XML_PREAMBLE + '<plist version="1.0"><data>aGVsbG8=</data></plist>'


def test_integer_slice():
    value = [ord(c) for c in "hello"]
    assert openstep(value) == "(104,101,108,108,111,)"
    assert gnustep(value) == "(<*I104>,<*I101>,<*I108>,<*I108>,<*I111>,)"


def test_integer_array_tuple():
    value = (ord("h"), ord("i"), ord("!"))
    assert openstep(value) == "(104,105,33,)"
    assert gnustep(value) == "(<*I104>,<*I105>,<*I33>,)"


def test_unsigned_integers_of_increasing_size():
    value = [
        0xFF, 0xFFF, 0xFFFF, 0xFFFFF, 0xFFFFFF, 0xFFFFFFF, 0xFFFFFFFF,
        0x7FFFFFFFFFFFFFFF, 0xDEADBEEFFACECAFE,
    ]
    assert openstep(value) == (
        "(255,4095,65535,1048575,16777215,268435455,4294967295,"
        "9223372036854775807,16045690985305262846,)"
    )


def test_signed_integers():
    value = [-1, -127, -255, -32767, -65535, -9223372036854775808]
    assert openstep(value) == "(-1,-127,-255,-32767,-65535,-9223372036854775808,)"
    assert gnustep(value) == (
        "(<*I-1>,<*I-127>,<*I-255>,<*I-32767>,<*I-65535>,<*I-9223372036854775808>,)"
    )
    assert marshal(-1) == CFNumber(-1, signed=True)


def test_integer_out_of_range():
    with pytest.raises(OverflowError):
        marshal(1 << 64)


def test_floats():
    value = [3.4028234663852886e38, 1.7976931348623157e308]
    assert openstep(value) == "(3.4028234663852886e+38,1.7976931348623157e+308,)"
    assert gnustep(value) == "(<*R3.4028234663852886e+38>,<*R1.7976931348623157e+308>,)"
    assert openstep(3.14159265358979323846264338327950288) == "3.141592653589793"
    assert gnustep(3.141592653589793) == "<*R3.141592653589793>"


@pytest.mark.parametrize(
    "value, os_doc, gs_doc, xml_text",
    [
        (math.nan, "NaN", "<*RNaN>", "nan"),
        (math.inf, "+Inf", "<*R+Inf>", "inf"),
        (-math.inf, "-Inf", "<*R-Inf>", "-inf"),
    ],
)
def test_special_floats(value, os_doc, gs_doc, xml_text):
    assert openstep(value) == os_doc
    assert gnustep(value) == gs_doc
    assert xml(value) == XML_PREAMBLE + f'<plist version="1.0"><real>{xml_text}</real></plist>'


def test_boolean_true():
    assert openstep(True) == "1"
    assert gnustep(True) == "<*BY>"
    assert xml(True) == XML_PREAMBLE + '<plist version="1.0"><true/></plist>'


def test_map_with_arbitrary_types():
    value = {"float": 1.0, "uint64": 1}
    assert openstep(value) == "{float=1;uint64=1;}"
    assert gnustep(value) == "{float=<*R1>;uint64=<*I1>;}"
    assert xml(value) == (
        XML_PREAMBLE
        + '<plist version="1.0"><dict><key>float</key><real>1</real>'
        + "<key>uint64</key><integer>1</integer></dict></plist>"
    )


def test_map_containing_nil():
    value = {"float": 1.5, "uint64": 1, "nil": None}
    assert openstep(value) == "{float=1.5;uint64=1;}"
    assert gnustep(value) == "{float=<*R1.5>;uint64=<*I1>;}"


def test_map_with_all_types():
    value = {
        "intarray": [1, 8, 16, 32, 64, 2, 9, 17, 33, 65],
        "floats": [32.0, 64.0],
        "booleans": [True, False],
        "strings": ["Hello, ASCII", "Hello, 世界"],
        "data": bytes([1, 2, 3, 4]),
        "date": DATE,
    }
    assert openstep(value) == (
        '{booleans=(1,0,);data=<01020304>;date="2013-11-27 00:34:00 +0000";'
        "floats=(32,64,);intarray=(1,8,16,32,64,2,9,17,33,65,);"
        'strings=("Hello, ASCII","Hello, \\U4e16\\U754c",);}'
    )
    assert gnustep(value) == (
        "{booleans=(<*BY>,<*BN>,);data=<01020304>;date=<*D2013-11-27 00:34:00 +0000>;"
        "floats=(<*R32>,<*R64>,);intarray=(<*I1>,<*I8>,<*I16>,<*I32>,<*I64>,<*I2>,"
        '<*I9>,<*I17>,<*I33>,<*I65>,);strings=("Hello, ASCII","Hello, \\U4e16\\U754c",);}'
    )


def test_structure_with_plist_tags():
    value = SparseBundleHeader(
        InfoDictionaryVersion="6.0",
        BandSize=8388608,
        Size=4 * 1048576 * 1024 * 1024,
        DiskImageBundleType="com.apple.diskimage.sparsebundle",
        BackingStoreVersion=1,
    )
    assert openstep(value) == (
        '{CFBundleInfoDictionaryVersion="6.0";"band-size"=8388608;'
        '"bundle-backingstore-version"=1;'
        '"diskimage-bundle-type"="com.apple.diskimage.sparsebundle";size=4398046511104;}'
    )
    assert gnustep(value) == (
        "{CFBundleInfoDictionaryVersion=6.0;band-size=<*I8388608>;"
        "bundle-backingstore-version=<*I1>;"
        "diskimage-bundle-type=com.apple.diskimage.sparsebundle;size=<*I4398046511104>;}"
    )


def test_array_of_byte_arrays():
    value = [b"Hello", b"World"]
    assert openstep(value) == "(<48656c6c 6f>,<576f726c 64>,)"
    assert xml(value) == (
        XML_PREAMBLE
        + '<plist version="1.0"><array><data>SGVsbG8=</data><data>V29ybGQ=</data></array></plist>'
    )


def test_date():
    assert openstep(DATE) == '"2013-11-27 00:34:00 +0000"'
    assert gnustep(DATE) == "<*D2013-11-27 00:34:00 +0000>"
    assert xml(DATE) == (
        XML_PREAMBLE + '<plist version="1.0"><date>2013-11-27T00:34:00Z</date></plist>'
    )


def test_utf8_strings():
    value = ["Hello, ASCII", "Hello, 世界"]
    assert openstep(value) == '("Hello, ASCII","Hello, \\U4e16\\U754c",)'
    assert xml(value) == (
        XML_PREAMBLE
        + '<plist version="1.0"><array><string>Hello, ASCII</string>'
        + "<string>Hello, 世界</string></array></plist>"
    )


def test_array_with_more_than_fifteen_items():
    assert openstep(list(range(1, 17))) == "(1,2,3,4,5,6,7,8,9,10,11,12,13,14,15,16,)"


def test_text_marshaler():
    assert openstep(TextMarshalingBool(True)) == "truthful"
    assert xml(TextMarshalingBool(True)) == (
        XML_PREAMBLE + '<plist version="1.0"><string>truthful</string></plist>'
    )
    assert gnustep(TextMarshalingBoolViaPointer(False)) == "unimaginable"


def test_funny_characters():
    value = {
        "\a": "\b",
        "\v": "\f",
        "\\": '"',
        "\t\r": "\n",
        "\u00c8": "wat",
        "\u0100": "hundred",
    }
    assert openstep(value) == (
        r'{"\a"="\b";"\t\r"="\n";"\v"="\f";"\\"="\"";"\310"=wat;"\U0100"=hundred;}'
    )


def test_map_with_blank_key():
    assert openstep({"": "Hello"}) == '{""=Hello;}'
    assert xml({"": "Hello"}) == (
        XML_PREAMBLE + '<plist version="1.0"><dict><key/><string>Hello</string></dict></plist>'
    )


def test_uids():
    value = [UID(0xFF), UID(0xFFFF), UID(0xFFFFFF), UID(0xFFFFFFFF), UID(0xFFFFFFFFFF)]
    assert marshal(value) == CFArray([CFUID(v) for v in value])
    assert openstep(value) == (
        "({CF$UID=255;},{CF$UID=65535;},{CF$UID=16777215;},"
        "{CF$UID=4294967295;},{CF$UID=1099511627775;},)"
    )


def test_uid_in_struct():
    value = UIDHolder(U=UID(1024))
    assert openstep(value) == "{identifier={CF$UID=1024;};}"
    assert gnustep(value) == "{identifier={CF$UID=<*I1024>;};}"


def test_custom_marshaler_by_value():
    value = [
        ArrayThatSerializesAsOneObject([100]),
        ArrayThatSerializesAsOneObject([2, 4, 6, 8]),
    ]
    assert gnustep(value) == "(<*I100>,(<*I2>,<*I4>,<*I6>,<*I8>,),)"


def test_custom_marshaler_by_pointer():
    assert openstep(PlistMarshalingBoolByPointer(True)) == "-1"
    assert gnustep(PlistMarshalingBoolByPointer(True)) == "<*I-1>"


def test_plist_marshaler_takes_precedence_over_text():
    assert gnustep(BothMarshaler()) == "{a=b;}"


def test_omitempty_nonzero_field_is_written():
    assert gnustep(BothUnmarshaler(1024)) == "{blah=<*I1024>;}"
    assert marshal(BothUnmarshaler(0)) == CFDictionary([], [])


def test_nested_marshal_tree():
    assert marshal({"k": ["v"]}) == CFDictionary(["k"], [CFArray([CFString("v")])])


def _generator():
    yield 1


@pytest.mark.parametrize(
    "thing",
    [lambda: None, None, {1: "hi"}, _generator(), object()],
    ids=["function", "nil", "map-with-integer-keys", "generator", "object"],
)
def test_invalid_marshal(thing):
    with pytest.raises(UnknownTypeError):
        marshal(thing)


def test_unknown_type_error_message():
    with pytest.raises(UnknownTypeError, match="can't marshal value of type dict"):
        marshal({1: "hi"})


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, True),
        ("", True),
        ("x", False),
        (0, True),
        (10, False),
        (0.0, True),
        (1.5, False),
        (False, True),
        (True, False),
        ([], True),
        ([1], False),
        ({}, True),
        ({"a": 1}, False),
        (b"", True),
        (Basic(), False),
    ],
)
def test_is_empty_value(value, expected):
    assert is_empty_value(value) is expected


def test_plist_field_records_metadata():
    item = plist_field("name", omitempty=True, default=1)
    assert item.default == 1
    assert item.metadata["plist"] == "name"
    assert item.metadata["plist_omitempty"] is True


def test_dataclass_field_default_factory_passthrough():
    @dataclass
    class Holder:
        items: list = field(default_factory=list)

    assert openstep(Holder(items=[1])) == "{items=(1,);}"