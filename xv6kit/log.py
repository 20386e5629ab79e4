"""Write-ahead redo log that makes multi-block file system updates atomic.

A transaction groups the block writes of several concurrent operations.
The log only commits when no operation is in progress, so a commit never
carries half of an operation's updates.  On disk the log is a header
block listing home block numbers, followed by copies of those blocks.
"""

from __future__ import annotations

import struct
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from .bufcache import Buffer, BufferCache
from .layout import B_DIRTY, LOGSIZE, MAXOPBLOCKS, ROOTDEV, KernelPanic, Superblock

_HEADER = struct.Struct(f"<i{LOGSIZE}i")


@dataclass
class LogHeader:
    """Home block numbers of the blocks held in the log."""

    blocks: list[int] = field(default_factory=list)

    @property
    def n(self) -> int:
        return len(self.blocks)

    def pack(self) -> bytes:
        if len(self.blocks) > LOGSIZE:
            raise ValueError(f"a log header holds at most {LOGSIZE} blocks")
        padding = [0] * (LOGSIZE - len(self.blocks))
        return _HEADER.pack(len(self.blocks), *self.blocks, *padding)

    @classmethod
    def unpack(cls, data: bytes) -> LogHeader:
        n, *blocks = _HEADER.unpack_from(data)
        if not 0 <= n <= LOGSIZE:
            raise ValueError(f"corrupt log header: {n} blocks")
        return cls(list(blocks[:n]))


class Log:
    """The on-disk log of one device, recovered when it is opened."""

    def __init__(self, cache: BufferCache, dev: int = ROOTDEV):
        self.cache = cache
        self.dev = dev
        self._cond = threading.Condition()
        buf = cache.read(dev, 1)
        sb = Superblock.unpack(buf.data)
        cache.release(buf)
        self.start = sb.logstart
        self.size = sb.nlog
        self.outstanding = 0
        self.committing = False
        self.lh = LogHeader()
        self.recover()

    def _install_trans(self) -> None:
        """Copy committed blocks from the log to their home locations."""
        for tail, blockno in enumerate(self.lh.blocks):
            lbuf = self.cache.read(self.dev, self.start + tail + 1)
            dbuf = self.cache.read(self.dev, blockno)
            dbuf.data[:] = lbuf.data
            self.cache.write(dbuf)
            self.cache.release(lbuf)
            self.cache.release(dbuf)

    def _read_head(self) -> None:
        buf = self.cache.read(self.dev, self.start)
        self.lh = LogHeader.unpack(buf.data)
        self.cache.release(buf)

    def _write_head(self) -> None:
        """Write the in-memory header to disk; this is the commit point."""
        buf = self.cache.read(self.dev, self.start)
        buf.data[: _HEADER.size] = self.lh.pack()
        self.cache.write(buf)
        self.cache.release(buf)

    def _write_log(self) -> None:
        """Copy modified blocks from the cache into the log."""
        for tail, blockno in enumerate(self.lh.blocks):
            to = self.cache.read(self.dev, self.start + tail + 1)
            source = self.cache.read(self.dev, blockno)
            to.data[:] = source.data
            self.cache.write(to)
            self.cache.release(source)
            self.cache.release(to)

    def _commit(self) -> None:
        if self.lh.blocks:
            self._write_log()
            self._write_head()
            self._install_trans()
            self.lh.blocks = []
            self._write_head()

    def recover(self) -> None:
        """Install any committed transaction and clear the log."""
        self._read_head()
        self._install_trans()
        self.lh.blocks = []
        self._write_head()

    def begin_op(self) -> None:
        """Start a file system operation, waiting while log space is short."""
        with self._cond:
            while (
                self.committing
                or self.lh.n + (self.outstanding + 1) * MAXOPBLOCKS > LOGSIZE
            ):
                self._cond.wait()
            self.outstanding += 1

    def end_op(self) -> None:
        """Finish an operation; the last one out commits the transaction."""
        with self._cond:
            self.outstanding -= 1
            if self.committing:
                raise KernelPanic("log.committing")
            do_commit = self.outstanding == 0
            if do_commit:
                self.committing = True
            else:
                self._cond.notify_all()
        if do_commit:
            self._commit()
            with self._cond:
                self.committing = False
                self._cond.notify_all()

    @contextmanager
    def transaction(self) -> Iterator[Log]:
        """Run the enclosed block as one file system operation."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()

    def log_write(self, buf: Buffer) -> None:
        """Record a modified buffer in the transaction and pin it in the cache."""
        if self.lh.n >= LOGSIZE or self.lh.n >= self.size - 1:
            raise KernelPanic("too big a transaction")
        if self.outstanding < 1:
            raise KernelPanic("log_write outside of trans")
        with self._cond:
            if buf.blockno not in self.lh.blocks:
                self.lh.blocks.append(buf.blockno)
            buf.flags |= B_DIRTY