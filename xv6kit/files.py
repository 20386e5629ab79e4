"""Open file table: reference-counted files backed by inodes or pipes."""

from __future__ import annotations

import errno
import threading
from dataclasses import dataclass
from enum import Enum

from .fs import FileSystem, Inode
from .layout import BSIZE, LOGSIZE, NFILE, KernelPanic, Stat
from .pipe import Pipe

# Largest write done in one log transaction: room for the inode, an
# indirect block, allocation blocks and two blocks of slop for
# unaligned writes.
_MAX_WRITE = ((LOGSIZE - 1 - 1 - 2) // 2) * BSIZE


class FileKind(Enum):
    """What an open file refers to."""

    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class OpenFile:
    """One entry of the open file table."""

    kind: FileKind = FileKind.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0


class FileTable:
    """A fixed pool of open files shared by the whole system."""

    def __init__(self, fs: FileSystem | None = None, nfile: int = NFILE):
        self.fs = fs
        self._lock = threading.Lock()
        self._files = [OpenFile() for _ in range(nfile)]

    def _require_fs(self) -> FileSystem:
        if self.fs is None:
            raise ValueError("this file table has no file system")
        return self.fs

    def alloc(self) -> OpenFile:
        """Take an unused file entry with one reference."""
        with self._lock:
            for f in self._files:
                if f.ref == 0:
                    f.ref = 1
                    return f
        raise OSError(errno.ENFILE, "file table is full")

    def dup(self, f: OpenFile) -> OpenFile:
        """Take another reference to ``f``."""
        with self._lock:
            if f.ref < 1:
                raise KernelPanic("filedup")
            f.ref += 1
        return f

    def close(self, f: OpenFile) -> None:
        """Drop a reference; release the pipe end or inode on the last one."""
        with self._lock:
            if f.ref < 1:
                raise KernelPanic("fileclose")
            f.ref -= 1
            if f.ref > 0:
                return
            kind, pipe, ip, writable = f.kind, f.pipe, f.ip, f.writable
            f.kind = FileKind.NONE
            f.pipe = None
            f.ip = None
        if kind is FileKind.PIPE and pipe is not None:
            pipe.close(writable)
        elif kind is FileKind.INODE and ip is not None:
            fs = self._require_fs()
            with fs.log.transaction():
                fs.iput(ip)

    def stat(self, f: OpenFile) -> Stat:
        """Metadata of the inode behind ``f``."""
        if f.kind is not FileKind.INODE or f.ip is None:
            raise OSError(errno.EINVAL, "file has no inode to describe")
        fs = self._require_fs()
        fs.ilock(f.ip)
        try:
            return fs.stati(f.ip)
        finally:
            fs.iunlock(f.ip)

    def read(self, f: OpenFile, n: int) -> bytes:
        """Read up to ``n`` bytes, advancing the offset of an inode file."""
        if not f.readable:
            raise OSError(errno.EBADF, "file not open for reading")
        if f.kind is FileKind.PIPE and f.pipe is not None:
            return f.pipe.read(n)
        if f.kind is FileKind.INODE and f.ip is not None:
            fs = self._require_fs()
            fs.ilock(f.ip)
            try:
                data = fs.readi(f.ip, f.off, n)
                f.off += len(data)
            finally:
                fs.iunlock(f.ip)
            return data
        raise KernelPanic("fileread")

    def write(self, f: OpenFile, data: bytes) -> int:
        """Write all of ``data``; inode writes are split over transactions."""
        if not f.writable:
            raise OSError(errno.EBADF, "file not open for writing")
        if f.kind is FileKind.PIPE and f.pipe is not None:
            return f.pipe.write(data)
        if f.kind is FileKind.INODE and f.ip is not None:
            fs = self._require_fs()
            view = memoryview(bytes(data))
            done = 0
            while done < len(view):
                chunk = view[done : done + _MAX_WRITE]
                with fs.log.transaction():
                    fs.ilock(f.ip)
                    try:
                        r = fs.writei(f.ip, chunk, f.off)
                        f.off += r
                    finally:
                        fs.iunlock(f.ip)
                if r != len(chunk):
                    raise KernelPanic("short filewrite")
                done += r
            return len(view)
        raise KernelPanic("filewrite")

    def open_inode(self, ip: Inode, readable: bool, writable: bool) -> OpenFile:
        """Open the unlocked inode ``ip``; the file takes over its reference."""
        self._require_fs()
        f = self.alloc()
        f.kind = FileKind.INODE
        f.ip = ip
        f.pipe = None
        f.off = 0
        f.readable = bool(readable)
        f.writable = bool(writable)
        return f

    def pipe(self) -> tuple[OpenFile, OpenFile]:
        """Create a pipe; return its read end and its write end."""
        f0 = self.alloc()
        try:
            f1 = self.alloc()
        except OSError:
            self.close(f0)
            raise
        p = Pipe()
        f0.kind, f0.readable, f0.writable, f0.pipe, f0.ip = FileKind.PIPE, True, False, p, None
        f1.kind, f1.readable, f1.writable, f1.pipe, f1.ip = FileKind.PIPE, False, True, p, None
        return f0, f1