"""Minimal printf-style formatting understanding %d, %x, %p, %s, %c."""

from __future__ import annotations

_DIGITS = "0123456789ABCDEF"
_MASK = 0xFFFFFFFF


def format_int(value: int, base: int, signed: bool) -> str:
    """Render a 32-bit integer in ``base``, as signed or unsigned."""
    value &= _MASK
    negative = False
    if signed and value & 0x80000000:
        negative = True
        value = (-(value - (1 << 32))) & _MASK
    digits = []
    while True:
        digits.append(_DIGITS[value % base])
        value //= base
        if value == 0:
            break
    if negative:
        digits.append("-")
    return "".join(reversed(digits))


def _char(arg: int | str) -> str:
    if isinstance(arg, str):
        return arg[:1]
    return chr(arg & 0xFF)


def format(fmt: str, *args) -> str:
    """Expand ``fmt`` with ``args``; unknown directives are printed as is."""
    values = iter(args)

    def take():
        try:
            return next(values)
        except StopIteration:
            raise TypeError("not enough arguments for format string") from None

    out = []
    pending = False
    for c in fmt:
        if not pending:
            if c == "%":
                pending = True
            else:
                out.append(c)
            continue
        if c == "d":
            out.append(format_int(take(), 10, True))
        elif c in "xp":
            out.append(format_int(take(), 16, False))
        elif c == "s":
            s = take()
            out.append("(null)" if s is None else s)
        elif c == "c":
            out.append(_char(take()))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
        pending = False
    return "".join(out)