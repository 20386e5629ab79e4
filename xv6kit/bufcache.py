"""Buffer cache of disk blocks with least-recently-used recycling."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .disk import MemoryDisk
from .layout import BSIZE, B_BUSY, B_DIRTY, B_VALID, NBUF, KernelPanic


def _block() -> bytearray:
    return bytearray(BSIZE)


@dataclass(eq=False)
class Buffer:
    """A cached copy of one disk block."""

    dev: int = -1
    blockno: int = 0
    flags: int = 0
    data: bytearray = field(default_factory=_block)


class BufferCache:
    """Fixed pool of buffers; only one holder may use a buffer at a time."""

    def __init__(self, disk: MemoryDisk, nbuf: int = NBUF):
        self.disk = disk
        self._cond = threading.Condition()
        # Most recently used first.
        self._lru: list[Buffer] = []
        for _ in range(nbuf):
            self._lru.insert(0, Buffer())

    def _get(self, dev: int, blockno: int) -> Buffer:
        with self._cond:
            while True:
                for b in self._lru:
                    if b.dev == dev and b.blockno == blockno:
                        if not b.flags & B_BUSY:
                            b.flags |= B_BUSY
                            return b
                        self._cond.wait()
                        break
                else:
                    # Not cached: recycle a buffer that is neither busy nor dirty.
                    for b in reversed(self._lru):
                        if not b.flags & (B_BUSY | B_DIRTY):
                            b.dev = dev
                            b.blockno = blockno
                            b.flags = B_BUSY
                            return b
                    raise KernelPanic("bget: no buffers")

    def read(self, dev: int, blockno: int) -> Buffer:
        """Return a busy buffer holding the block's contents."""
        b = self._get(dev, blockno)
        if not b.flags & B_VALID:
            self.disk.rw(b)
        return b

    def write(self, buf: Buffer) -> None:
        """Write a busy buffer's contents to disk."""
        if not buf.flags & B_BUSY:
            raise KernelPanic("bwrite")
        buf.flags |= B_DIRTY
        self.disk.rw(buf)

    def release(self, buf: Buffer) -> None:
        """Give a busy buffer back and mark it most recently used."""
        if not buf.flags & B_BUSY:
            raise KernelPanic("brelse")
        with self._cond:
            self._lru.remove(buf)
            self._lru.insert(0, buf)
            buf.flags &= ~B_BUSY
            self._cond.notify_all()