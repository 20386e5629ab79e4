import pytest

from xv6kit.keyboard import KEY_UP, Keyboard

A_DOWN = 0x1E
LSHIFT_DOWN = 0x2A
LSHIFT_UP = 0xAA
CAPS = 0x3A
CTRL_DOWN = 0x1D
P_DOWN = 0x19


def test_plain_letter():
    assert Keyboard().feed(A_DOWN) == ord("a")


def test_shift_and_release():
    kb = Keyboard()
    assert kb.translate([LSHIFT_DOWN, A_DOWN, LSHIFT_UP, A_DOWN]) == "Aa"


def test_capslock_inverts_shift():
    kb = Keyboard()
    assert kb.translate([CAPS, A_DOWN]) == "A"
    assert kb.translate([LSHIFT_DOWN, A_DOWN]) == "a"


def test_capslock_toggles_back():
    kb = Keyboard()
    assert kb.translate([CAPS, CAPS, A_DOWN]) == "a"


def test_control_key():
    kb = Keyboard()
    assert kb.translate([CTRL_DOWN, P_DOWN]) == chr(ord("P") - ord("@"))


def test_e0_escape_arrow():
    kb = Keyboard()
    assert kb.feed(0xE0) == 0
    assert kb.feed(0x48) == KEY_UP


def test_release_returns_nothing():
    kb = Keyboard()
    assert kb.feed(A_DOWN | 0x80) == 0
    assert kb.translate([A_DOWN | 0x80]) == ""


def test_digits_and_enter():
    assert Keyboard().translate([0x02, 0x03, 0x1C]) == "12\n"


def test_rejects_out_of_range():
    with pytest.raises(ValueError):
        Keyboard().feed(0x100)