"""A disk kept entirely in memory."""

from __future__ import annotations

import os
from typing import Protocol

from .layout import BSIZE, B_BUSY, B_DIRTY, B_VALID, FSSIZE, ROOTDEV, KernelPanic


class _Buf(Protocol):
    flags: int
    dev: int
    blockno: int
    data: bytearray


class MemoryDisk:
    """Block storage backed by a bytearray; serves requests for device 1."""

    dev = ROOTDEV

    def __init__(self, data: bytes | bytearray | None = None, nblocks: int = FSSIZE):
        self.image = bytearray(data) if data is not None else bytearray(nblocks * BSIZE)
        self.disksize = len(self.image) // BSIZE

    @classmethod
    def from_file(cls, path: str | os.PathLike) -> MemoryDisk:
        with open(path, "rb") as fh:
            return cls(fh.read())

    def save(self, path: str | os.PathLike) -> None:
        with open(path, "wb") as fh:
            fh.write(self.image)

    def _offset(self, blockno: int) -> int:
        if not 0 <= blockno < self.disksize:
            raise KernelPanic("iderw: block out of range")
        return blockno * BSIZE

    def read_block(self, blockno: int) -> bytes:
        off = self._offset(blockno)
        return bytes(self.image[off : off + BSIZE])

    def write_block(self, blockno: int, data: bytes) -> None:
        if len(data) != BSIZE:
            raise ValueError(f"a block is {BSIZE} bytes, got {len(data)}")
        off = self._offset(blockno)
        self.image[off : off + BSIZE] = data

    def rw(self, buf: _Buf) -> None:
        """Write a dirty buffer to disk, or fill an invalid one from disk."""
        if not buf.flags & B_BUSY:
            raise KernelPanic("iderw: buf not busy")
        if buf.flags & (B_VALID | B_DIRTY) == B_VALID:
            raise KernelPanic("iderw: nothing to do")
        if buf.dev != self.dev:
            raise KernelPanic("iderw: request not for disk 1")
        off = self._offset(buf.blockno)
        if buf.flags & B_DIRTY:
            buf.flags &= ~B_DIRTY
            self.image[off : off + BSIZE] = buf.data
        else:
            buf.data[:] = self.image[off : off + BSIZE]
        buf.flags |= B_VALID