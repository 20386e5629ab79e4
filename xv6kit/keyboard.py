"""PC keyboard scancode translation."""

from __future__ import annotations

from collections.abc import Iterable

_SHIFT = 1 << 0
_CTL = 1 << 1
_ALT = 1 << 2
_CAPSLOCK = 1 << 3
_NUMLOCK = 1 << 4
_SCROLLLOCK = 1 << 5
_E0ESC = 1 << 6

KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def _ctl(ch: str) -> int:
    return (ord(ch) - ord("@")) & 0xFF


_KEYPAD_SPECIALS = {
    0xC8: KEY_UP,
    0xD0: KEY_DN,
    0xC9: KEY_PGUP,
    0xD1: KEY_PGDN,
    0xCB: KEY_LF,
    0xCD: KEY_RT,
    0x97: KEY_HOME,
    0xCF: KEY_END,
    0xD2: KEY_INS,
    0xD3: KEY_DEL,
}


def _table(base: Iterable[int], extra: dict[int, int]) -> tuple[int, ...]:
    table = [0] * 256
    for code, value in enumerate(base):
        table[code] = value
    for code, value in extra.items():
        table[code] = value
    return tuple(table)


_KEYPAD_TAIL = "\x00" * 7 + "789-456+1" + "230." + "\x00" * 4

_NORMAL = _table(
    map(
        ord,
        "\x00\x1b1234567890-=\b\t"
        "qwertyuiop[]\n\x00as"
        "dfghjkl;'`\x00\\zxcv"
        "bnm,./\x00*\x00 " + "\x00" * 6 + _KEYPAD_TAIL,
    ),
    {0x9C: ord("\n"), 0xB5: ord("/"), **_KEYPAD_SPECIALS},
)

_SHIFTED = _table(
    map(
        ord,
        "\x00\x1b!@#$%^&*()_+\b\t"
        "QWERTYUIOP{}\n\x00AS"
        'DFGHJKL:"~\x00|ZXCV'
        "BNM<>?\x00*\x00 " + "\x00" * 6 + _KEYPAD_TAIL,
    ),
    {0x9C: ord("\n"), 0xB5: ord("/"), **_KEYPAD_SPECIALS},
)

_CONTROL = _table(
    [0] * 16
    + [_ctl(c) for c in "QWERTYUI"]
    + [_ctl("O"), _ctl("P"), 0, 0, ord("\r"), 0, _ctl("A"), _ctl("S")]
    + [_ctl(c) for c in "DFGHJKL"] + [0]
    + [0, 0, 0, _ctl("\\"), _ctl("Z"), _ctl("X"), _ctl("C"), _ctl("V")]
    + [_ctl("B"), _ctl("N"), _ctl("M"), 0, 0, _ctl("/"), 0, 0],
    {0x9C: ord("\r"), 0xB5: _ctl("/"), **_KEYPAD_SPECIALS},
)

_SHIFTCODE = _table((), {0x1D: _CTL, 0x2A: _SHIFT, 0x36: _SHIFT, 0x38: _ALT, 0x9D: _CTL, 0xB8: _ALT})
_TOGGLECODE = _table((), {0x3A: _CAPSLOCK, 0x45: _NUMLOCK, 0x46: _SCROLLLOCK})

_CHARCODE = (_NORMAL, _SHIFTED, _CONTROL, _CONTROL)


class Keyboard:
    """Tracks modifier state and turns scancodes into character codes."""

    def __init__(self) -> None:
        self.state = 0

    def feed(self, data: int) -> int:
        """Process one scancode; return the character code, or 0 for none."""
        if not 0 <= data <= 0xFF:
            raise ValueError(f"scancode out of range: {data}")
        if data == 0xE0:
            self.state |= _E0ESC
            return 0
        if data & 0x80:
            # Key released.
            if not self.state & _E0ESC:
                data &= 0x7F
            self.state &= ~(_SHIFTCODE[data] | _E0ESC)
            return 0
        if self.state & _E0ESC:
            data |= 0x80
            self.state &= ~_E0ESC

        self.state |= _SHIFTCODE[data]
        self.state ^= _TOGGLECODE[data]
        c = _CHARCODE[self.state & (_CTL | _SHIFT)][data]
        if self.state & _CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c -= ord("a") - ord("A")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c

    def translate(self, scancodes: Iterable[int]) -> str:
        """Feed every scancode and return the characters they produced."""
        return "".join(chr(c) for c in map(self.feed, scancodes) if c)