"""Console: line-edited keyboard input and output to serial and text screen."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

from .fmt import format_int
from .layout import KernelPanic

BACKSPACE = 0x100
INPUT_BUF = 128
COLS = 80
ROWS = 25
_ATTR = 0x0700  # light grey on black


def _ctrl(ch: str) -> int:
    return ord(ch) - ord("@")


_CTRL_D = _ctrl("D")
_CTRL_H = _ctrl("H")
_CTRL_P = _ctrl("P")
_CTRL_U = _ctrl("U")


def kernel_format(fmt: str, *args) -> str:
    """Expand ``fmt`` understanding only %d, %x, %p and %s."""
    values = iter(args)

    def take():
        try:
            return next(values)
        except StopIteration:
            raise TypeError("not enough arguments for format string") from None

    out = []
    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        c = next(chars, None)
        if c is None:
            break
        if c == "d":
            out.append(format_int(take(), 10, True))
        elif c in "xp":
            out.append(format_int(take(), 16, False).lower())
        elif c == "s":
            s = take()
            out.append("(null)" if s is None else s)
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)


class Console:
    """Echoes typed input, buffers it by line, and renders output."""

    def __init__(self, procdump: Callable[[], None] | None = None):
        self.procdump = procdump
        self.output = bytearray()
        self.crt = [0] * (COLS * ROWS)
        self.pos = 0
        self._cond = threading.Condition()
        self._buf = bytearray(INPUT_BUF)
        self._r = 0  # read index
        self._w = 0  # write index
        self._e = 0  # edit index

    def _cgaputc(self, c: int) -> None:
        pos = self.pos
        if c == ord("\n"):
            pos += COLS - pos % COLS
        elif c == BACKSPACE:
            if pos > 0:
                pos -= 1
        else:
            self.crt[pos] = (c & 0xFF) | _ATTR
            pos += 1

        if pos < 0 or pos > ROWS * COLS:
            raise KernelPanic("pos under/overflow")

        if pos // COLS >= 24:
            self.crt[: 23 * COLS] = self.crt[COLS : 24 * COLS]
            pos -= COLS
            self.crt[pos : 24 * COLS] = [0] * (24 * COLS - pos)

        self.pos = pos
        self.crt[pos] = ord(" ") | _ATTR

    def putc(self, c: int) -> None:
        """Send one character, or BACKSPACE, to the serial line and screen."""
        if c == BACKSPACE:
            self.output += b"\b \b"
        else:
            self.output.append(c & 0xFF)
        self._cgaputc(c)

    def printf(self, fmt: str, *args) -> None:
        """Format with :func:`kernel_format` and print the result."""
        with self._cond:
            for ch in kernel_format(fmt, *args):
                self.putc(ord(ch))

    def interrupt(self, chars: Iterable[int] | str) -> None:
        """Handle typed characters: line editing, echo and line completion."""
        codes = chars.encode("latin-1") if isinstance(chars, str) else chars
        doprocdump = False
        with self._cond:
            for c in codes:
                if c == _CTRL_P:
                    doprocdump = True
                elif c == _CTRL_U:
                    while (
                        self._e != self._w
                        and self._buf[(self._e - 1) % INPUT_BUF] != ord("\n")
                    ):
                        self._e -= 1
                        self.putc(BACKSPACE)
                elif c in (_CTRL_H, 0x7F):
                    if self._e != self._w:
                        self._e -= 1
                        self.putc(BACKSPACE)
                elif c != 0 and self._e - self._r < INPUT_BUF:
                    if c == ord("\r"):
                        c = ord("\n")
                    self._buf[self._e % INPUT_BUF] = c
                    self._e += 1
                    self.putc(c)
                    if (
                        c == ord("\n")
                        or c == _CTRL_D
                        or self._e == self._r + INPUT_BUF
                    ):
                        self._w = self._e
                        self._cond.notify_all()
        if doprocdump and self.procdump is not None:
            self.procdump()

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes of completed input, stopping after a newline.

        Blocks until input is available.  Control-D ends the read; on its
        own it yields an empty result.
        """
        target = n
        out = bytearray()
        with self._cond:
            while n > 0:
                while self._r == self._w:
                    self._cond.wait()
                c = self._buf[self._r % INPUT_BUF]
                self._r += 1
                if c == _CTRL_D:
                    if n < target:
                        # Keep ^D so the next read returns nothing.
                        self._r -= 1
                    break
                out.append(c)
                n -= 1
                if c == ord("\n"):
                    break
        return bytes(out)

    def write(self, data: bytes) -> int:
        """Print every byte of ``data``; return how many were written."""
        with self._cond:
            for byte in data:
                self.putc(byte & 0xFF)
        return len(data)