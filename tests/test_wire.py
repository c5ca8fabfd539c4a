import msgpack
import pytest

from ddexport.errors import MessagePackError
from ddexport.wire import Writer


def _encoded(method, value):
    writer = Writer()
    getattr(writer, method)(value)
    return writer.getvalue()


@pytest.mark.parametrize("text", ["", "a", "x" * 31, "y" * 32, "z" * 255, "w" * 256, "é" * 40000])
def test_write_str_matches_standard_encoding(text):
    assert _encoded("write_str", text) == msgpack.packb(text, use_bin_type=True)


def test_write_str_accepts_bytes():
    assert _encoded("write_str", "héllo".encode()) == _encoded("write_str", "héllo")


@pytest.mark.parametrize("length", [0, 15, 16, 65535, 65536])
def test_array_header_matches_standard(length):
    header = _encoded("write_array_len", length)
    expected = msgpack.packb([None] * length)
    assert expected.startswith(header)
    assert len(expected) - len(header) == length


@pytest.mark.parametrize("length", [0, 15, 16, 70000])
def test_map_header_matches_standard(length):
    header = _encoded("write_map_len", length)
    expected = msgpack.packb({i: None for i in range(length)})
    assert expected.startswith(header)


@pytest.mark.parametrize(
    "method,value",
    [
        ("write_u32", 0),
        ("write_u32", 2**32 - 1),
        ("write_u64", 7),
        ("write_u64", 2**64 - 1),
        ("write_i32", -1),
        ("write_i32", 2**31 - 1),
        ("write_i64", 0),
        ("write_i64", -(2**63)),
        ("write_f64", 1.5),
        ("write_f64", -123.456),
    ],
)
def test_numbers_round_trip(method, value):
    assert msgpack.unpackb(_encoded(method, value)) == value


def test_integers_are_fixed_width():
    assert len(_encoded("write_u32", 1)) == len(_encoded("write_u32", 2**32 - 1))
    assert len(_encoded("write_u64", 1)) == len(_encoded("write_u64", 2**64 - 1))
    assert _encoded("write_u32", 1)[0] == 0xCE


def test_f64_matches_double_encoding():
    assert _encoded("write_f64", 0.0) == msgpack.packb(0.0, use_single_float=False)


@pytest.mark.parametrize(
    "method,value",
    [("write_u32", -1), ("write_u32", 2**32), ("write_u64", 2**64), ("write_i32", 2**31),
     ("write_i64", 2**63), ("write_array_len", -1)],
)
def test_out_of_range_raises(method, value):
    with pytest.raises(MessagePackError):
        _encoded(method, value)


def test_sequence_decodes_as_stream():
    writer = Writer()
    writer.write_array_len(2)
    writer.write_str("service")
    writer.write_map_len(1)
    writer.write_str("k")
    writer.write_u64(99)
    assert msgpack.unpackb(writer.getvalue()) == ["service", {"k": 99}]


def test_extend_appends_raw_bytes():
    inner = Writer()
    inner.write_str("abc")
    outer = Writer()
    outer.write_array_len(1)
    outer.extend(inner.getvalue())
    assert msgpack.unpackb(outer.getvalue()) == ["abc"]
    assert len(outer) == len(outer.getvalue())