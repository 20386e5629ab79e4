import pytest

from xv6kit.fmt import format, format_int


def test_decimal_negative():
    assert format("%d", -42) == "-42"


def test_hex_is_uppercase_and_unsigned():
    assert format("%x", 255) == "FF"
    assert format("%p", -1) == "FFFFFFFF"


def test_zero():
    assert format_int(0, 10, True) == "0"


def test_int_round_trips_through_int():
    for v in (1, 7, 99, 12345, 2**31 - 1):
        assert int(format_int(v, 10, True)) == v
        assert int(format_int(v, 16, False), 16) == v


def test_signed_wraps_to_32_bits():
    assert int(format_int(2**31, 10, True)) == -(2**31)


def test_null_string():
    assert format("name: %s", None) == "name: (null)"


def test_string_and_char():
    assert format("%s=%c", "key", 65) == "key=A"


def test_percent_literal_and_unknown():
    assert format("100%%") == "100%"
    assert format("%q") == "%q"


def test_trailing_percent_dropped():
    assert format("abc%") == "abc"


def test_missing_argument():
    with pytest.raises(TypeError):
        format("%d %d", 1)