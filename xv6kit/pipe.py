"""A bounded in-memory pipe with blocking reads and writes."""

from __future__ import annotations

import threading

PIPESIZE = 512


class Pipe:
    """A byte channel holding at most ``PIPESIZE`` unread bytes."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._cond = threading.Condition()
        self.readopen = True
        self.writeopen = True

    def write(self, data: bytes) -> int:
        """Write all of ``data``, blocking while the pipe is full.

        Raises BrokenPipeError if the read end is closed while the
        pipe is full.
        """
        with self._cond:
            for byte in data:
                while len(self._buffer) == PIPESIZE:
                    if not self.readopen:
                        raise BrokenPipeError("read end of pipe is closed")
                    self._cond.notify_all()
                    self._cond.wait()
                self._buffer.append(byte)
            self._cond.notify_all()
        return len(data)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes; empty once the pipe is drained and closed."""
        with self._cond:
            while not self._buffer and self.writeopen:
                self._cond.wait()
            chunk = bytes(self._buffer[: max(n, 0)])
            del self._buffer[: len(chunk)]
            self._cond.notify_all()
        return chunk

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable``, otherwise the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()