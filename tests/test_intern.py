import msgpack
import pytest

from ddexport.intern import StringInterner, literal, value_as_str
from ddexport.wire import Writer


def _dictionary(interner):
    writer = Writer()
    interner.write_dictionary(writer)
    return writer.getvalue()


def test_intern():
    interner = StringInterner()
    a_idx = interner.intern("a")
    b_idx = interner.intern("b")
    c_idx = interner.intern("c")
    d_idx = interner.intern("".join(["a"]))
    e_idx = interner.intern("c")
    assert (a_idx, b_idx, c_idx) == (0, 1, 2)
    assert d_idx == a_idx
    assert e_idx == c_idx


def test_intern_bool():
    interner = StringInterner()
    a_idx = interner.intern_value(True)
    b_idx = interner.intern_value(False)
    c_idx = interner.intern("c")
    d_idx = interner.intern_value(True)
    e_idx = interner.intern("c")
    assert (a_idx, b_idx, c_idx) == (0, 1, 2)
    assert d_idx == a_idx
    assert e_idx == c_idx


def test_intern_i64():
    interner = StringInterner()
    a_idx = interner.intern_value(1234567890)
    b_idx = interner.intern_value(-1234567890)
    c_idx = interner.intern("c")
    d_idx = interner.intern_value(1234567890)
    e_idx = interner.intern("c")
    f_idx = interner.intern_value(1234567890)
    assert (a_idx, b_idx, c_idx) == (0, 1, 2)
    assert d_idx == a_idx
    assert e_idx == c_idx
    assert f_idx == a_idx


def test_intern_f64():
    interner = StringInterner()
    a_idx = interner.intern_value(123456.7890)
    b_idx = interner.intern_value(-1234567.890)
    c_idx = interner.intern("c")
    d_idx = interner.intern_value(123456.7890)
    e_idx = interner.intern("c")
    f_idx = interner.intern_value(-1234567.890)
    assert (a_idx, b_idx, c_idx) == (0, 1, 2)
    assert d_idx == a_idx
    assert e_idx == c_idx
    assert f_idx == b_idx


@pytest.mark.parametrize(
    "first, second, empty",
    [
        ([True, False], [False, True], []),
        ([123, -123], [-123, 123], []),
        ([123.0, 0.0], [0.0, 123.0], []),
        (["a", "b"], ["b", "a"], []),
    ],
)
def test_intern_arrays(first, second, empty):
    interner = StringInterner()
    a_idx = interner.intern_value(first)
    b_idx = interner.intern_value(second)
    c_idx = interner.intern("c")
    d_idx = interner.intern_value(list(first))
    e_idx = interner.intern("c")
    f_idx = interner.intern_value(empty)
    g_idx = interner.intern_value(list(second))
    assert (a_idx, b_idx, c_idx) == (0, 1, 2)
    assert d_idx == a_idx
    assert e_idx == c_idx
    assert f_idx == 3
    assert g_idx == b_idx


def test_plain_string_and_value_are_distinct():
    interner = StringInterner()
    assert interner.intern("true") == 0
    assert interner.intern_value(True) == 1
    assert interner.intern_value("true") == 2
    assert interner.intern_value(1) == 3
    assert len(interner) == 4


def test_write_boolean_literal():
    assert literal(True) == "true"
    assert literal(False) == "false"


def test_write_i64_literal():
    assert literal(1234567890) == "1234567890"
    assert literal(-1234567890) == "-1234567890"


def test_write_f64_literal():
    assert literal(12345.678) == "12345.678"
    assert literal(-12345.678) == "-12345.678"


def test_write_string_literal():
    assert literal("abc") == '"abc"'
    assert literal("") == '""'


@pytest.mark.parametrize(
    "value, text",
    [
        (True, "true"),
        (False, "false"),
        (123, "123"),
        (0, "0"),
        (-123, "-123"),
        (123.456, "123.456"),
        (-123.456, "-123.456"),
    ],
)
def test_encode_value(value, text):
    interner = StringInterner()
    interner.intern_value(value)
    encoded = _dictionary(interner)
    assert encoded == msgpack.packb([text])
    assert value_as_str(value) == text


@pytest.mark.parametrize(
    "value, text",
    [
        (1.0, "1.0"),
        (0.0, "0.0"),
        (1e20, "1e20"),
        (1e-7, "1e-7"),
        (0.001, "0.001"),
    ],
)
def test_float_text_form(value, text):
    assert value_as_str(value) == text


def test_array_texts():
    assert value_as_str([True, False]) == "[true,false]"
    assert value_as_str([1, -2]) == "[1,-2]"
    assert value_as_str(["a", "b"]) == '["a","b"]'
    assert value_as_str([]) == "[]"


def test_dictionary_round_trip():
    interner = StringInterner()
    interner.intern("service")
    interner.intern_value(["x", "y"])
    interner.intern_value(7)
    interner.intern("service")
    decoded = msgpack.unpackb(_dictionary(interner))
    assert decoded == ["service", '["x","y"]', "7"]


def test_empty_dictionary():
    assert msgpack.unpackb(_dictionary(StringInterner())) == []


def test_mixed_array_rejected():
    with pytest.raises(TypeError):
        StringInterner().intern_value([1, "a"])


def test_unsupported_value_rejected():
    with pytest.raises(TypeError):
        StringInterner().intern_value({"a": 1})