"""File system: block allocation, inodes, file contents, directories and paths.

Callers lock an inode before examining or changing it, and every update
that may write to disk runs inside a log transaction.
"""

from __future__ import annotations

import struct
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Protocol

from .bufcache import Buffer, BufferCache
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDEV,
    NDIRECT,
    NINDIRECT,
    NINODE,
    ROOTDEV,
    ROOTINO,
    Dirent,
    DiskInode,
    FileType,
    KernelPanic,
    Stat,
    Superblock,
    bblock,
    iblock,
)
from .log import Log

I_BUSY = 0x1
I_VALID = 0x2

_ADDR = struct.Struct("<I")
_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class _Device(Protocol):
    def read(self, n: int) -> bytes: ...

    def write(self, data: bytes) -> int: ...


def _empty_addrs() -> list[int]:
    return [0] * (NDIRECT + 1)


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode plus its cache bookkeeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    flags: int = 0
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=_empty_addrs)


def skipelem(path: str) -> tuple[str, str] | None:
    """Split off the first path element.

    Returns the element, cut to DIRSIZ characters, and the remaining path
    without leading slashes; None when no element is left.
    """
    path = path.lstrip("/")
    if not path:
        return None
    elem, _, rest = path.partition("/")
    return elem[:DIRSIZ], rest.lstrip("/")


def namecmp(s: str, t: str) -> int:
    """Compare two directory entry names on their first DIRSIZ characters."""
    a, b = s[:DIRSIZ], t[:DIRSIZ]
    return (a > b) - (a < b)


class FileSystem:
    """The file system on one device, with its inode cache."""

    def __init__(
        self,
        cache: BufferCache,
        dev: int = ROOTDEV,
        log: Log | None = None,
        devsw: dict[int, _Device] | None = None,
    ):
        self.cache = cache
        self.dev = dev
        with self._block(1) as bp:
            self.sb = Superblock.unpack(bytes(bp.data))
        self.log = log if log is not None else Log(cache, dev)
        self.devsw: dict[int, _Device] = dict(devsw or {})
        self._cond = threading.Condition()
        self._icache = [Inode() for _ in range(NINODE)]

    @contextmanager
    def _block(self, blockno: int, dev: int | None = None) -> Iterator[Buffer]:
        bp = self.cache.read(self.dev if dev is None else dev, blockno)
        try:
            yield bp
        finally:
            self.cache.release(bp)

    # Blocks.

    def _bzero(self, dev: int, bno: int) -> None:
        with self._block(bno, dev) as bp:
            bp.data[:] = bytes(BSIZE)
            self.log.log_write(bp)

    def _balloc(self, dev: int) -> int:
        """Allocate a zeroed disk block."""
        size = self.sb.size
        for b in range(0, size, BPB):
            found = None
            with self._block(bblock(b, self.sb), dev) as bp:
                for bi in range(min(BPB, size - b)):
                    m = 1 << (bi % 8)
                    if not bp.data[bi // 8] & m:
                        bp.data[bi // 8] |= m
                        self.log.log_write(bp)
                        found = b + bi
                        break
            if found is not None:
                self._bzero(dev, found)
                return found
        raise KernelPanic("balloc: out of blocks")

    def _bfree(self, dev: int, b: int) -> None:
        with self._block(bblock(b, self.sb), dev) as bp:
            bi = b % BPB
            m = 1 << (bi % 8)
            if not bp.data[bi // 8] & m:
                raise KernelPanic("freeing free block")
            bp.data[bi // 8] &= ~m & 0xFF
            self.log.log_write(bp)

    # Inodes.

    def _dinode_offset(self, inum: int) -> int:
        return (inum % IPB) * DINODE_SIZE

    def ialloc(self, type: int) -> Inode:
        """Allocate a free on-disk inode of ``type``; return it unlocked."""
        for inum in range(1, self.sb.ninodes):
            off = self._dinode_offset(inum)
            with self._block(iblock(inum, self.sb)) as bp:
                din = DiskInode.unpack(bytes(bp.data[off : off + DINODE_SIZE]))
                if din.type == 0:
                    bp.data[off : off + DINODE_SIZE] = DiskInode(type=int(type)).pack()
                    self.log.log_write(bp)
                    free = True
                else:
                    free = False
            if free:
                return self.iget(inum)
        raise KernelPanic("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy a modified in-memory inode to disk."""
        off = self._dinode_offset(ip.inum)
        din = DiskInode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs))
        with self._block(iblock(ip.inum, self.sb), ip.dev) as bp:
            bp.data[off : off + DINODE_SIZE] = din.pack()
            self.log.log_write(bp)

    def iget(self, inum: int) -> Inode:
        """Return the cached inode ``inum``, neither locked nor read from disk."""
        with self._cond:
            empty = None
            for ip in self._icache:
                if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                raise KernelPanic("iget: no inodes")
            empty.dev = self.dev
            empty.inum = inum
            empty.ref = 1
            empty.flags = 0
            return empty

    def idup(self, ip: Inode) -> Inode:
        """Take another reference to ``ip``."""
        with self._cond:
            ip.ref += 1
        return ip

    def ilock(self, ip: Inode) -> None:
        """Lock ``ip``, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise KernelPanic("ilock")
        with self._cond:
            while ip.flags & I_BUSY:
                self._cond.wait()
            ip.flags |= I_BUSY
        if not ip.flags & I_VALID:
            off = self._dinode_offset(ip.inum)
            with self._block(iblock(ip.inum, self.sb), ip.dev) as bp:
                din = DiskInode.unpack(bytes(bp.data[off : off + DINODE_SIZE]))
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.flags |= I_VALID
            if ip.type == 0:
                raise KernelPanic("ilock: no type")

    def iunlock(self, ip: Inode) -> None:
        """Unlock ``ip``."""
        if ip is None or not ip.flags & I_BUSY or ip.ref < 1:
            raise KernelPanic("iunlock")
        with self._cond:
            ip.flags &= ~I_BUSY
            self._cond.notify_all()

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if it was the last one
        and nothing links to it.  Must run inside a transaction."""
        with self._cond:
            free = ip.ref == 1 and ip.flags & I_VALID and ip.nlink == 0
            if free:
                if ip.flags & I_BUSY:
                    raise KernelPanic("iput busy")
                ip.flags |= I_BUSY
            else:
                ip.ref -= 1
                return
        self._itrunc(ip)
        ip.type = 0
        self.iupdate(ip)
        with self._cond:
            ip.flags = 0
            self._cond.notify_all()
            ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        """Unlock ``ip``, then drop the reference."""
        self.iunlock(ip)
        self.iput(ip)

    # Inode content.

    def _bmap(self, ip: Inode, bn: int) -> int:
        """Disk block holding block ``bn`` of ``ip``, allocated if missing."""
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc(ip.dev)
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc(ip.dev)
            with self._block(ip.addrs[NDIRECT], ip.dev) as bp:
                (addr,) = _ADDR.unpack_from(bp.data, bn * _ADDR.size)
                if addr == 0:
                    addr = self._balloc(ip.dev)
                    _ADDR.pack_into(bp.data, bn * _ADDR.size, addr)
                    self.log.log_write(bp)
            return addr
        raise KernelPanic("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        """Discard the contents of ``ip``."""
        for i, addr in enumerate(ip.addrs[:NDIRECT]):
            if addr:
                self._bfree(ip.dev, addr)
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self._block(ip.addrs[NDIRECT], ip.dev) as bp:
                entries = _INDIRECT.unpack(bytes(bp.data))
            for addr in entries:
                if addr:
                    self._bfree(ip.dev, addr)
            self._bfree(ip.dev, ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        """Metadata of ``ip``."""
        return Stat(type=ip.type, dev=ip.dev, ino=ip.inum, nlink=ip.nlink, size=ip.size)

    def _device(self, ip: Inode) -> _Device:
        device = self.devsw.get(ip.major) if 0 <= ip.major < NDEV else None
        if device is None:
            raise OSError(f"no device with major number {ip.major}")
        return device

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes of ``ip`` starting at ``off``."""
        if ip.type == FileType.DEV:
            return self._device(ip).read(n)
        if off < 0 or n < 0 or off > ip.size:
            raise ValueError(f"read at offset {off} of {n} bytes is out of range")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            with self._block(self._bmap(ip, off // BSIZE), ip.dev) as bp:
                m = min(n - len(out), BSIZE - off % BSIZE)
                out += bp.data[off % BSIZE : off % BSIZE + m]
            off += m
        return bytes(out)

    def writei(self, ip: Inode, data: bytes, off: int) -> int:
        """Write ``data`` into ``ip`` at ``off``; return the bytes written."""
        if ip.type == FileType.DEV:
            return self._device(ip).write(bytes(data))
        n = len(data)
        if off < 0 or off > ip.size:
            raise ValueError(f"write at offset {off} lies beyond the end of the file")
        if off + n > MAXFILE * BSIZE:
            raise ValueError("write would exceed the maximum file size")
        view = memoryview(bytes(data))
        tot = 0
        while tot < n:
            with self._block(self._bmap(ip, off // BSIZE), ip.dev) as bp:
                start = off % BSIZE
                m = min(n - tot, BSIZE - start)
                bp.data[start : start + m] = view[tot : tot + m]
                self.log.log_write(bp)
            tot += m
            off += m
        if n > 0 and off > ip.size:
            ip.size = off
            self.iupdate(ip)
        return n

    # Directories.

    def _entries(self, dp: Inode) -> Iterator[tuple[int, Dirent]]:
        for off in range(0, dp.size, DIRENT_SIZE):
            raw = self.readi(dp, off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise KernelPanic("dirlink read")
            yield off, Dirent.unpack(raw)

    def dirlookup(self, dp: Inode, name: str) -> tuple[Inode, int] | None:
        """Find ``name`` in directory ``dp``; return its inode and entry offset."""
        if dp.type != FileType.DIR:
            raise KernelPanic("dirlookup not DIR")
        for off, de in self._entries(dp):
            if de.inum and namecmp(name, de.name) == 0:
                return self.iget(de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry (``name``, ``inum``) to directory ``dp``."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(name)
        off = dp.size
        for entry_off, de in self._entries(dp):
            if de.inum == 0:
                off = entry_off
                break
        if self.writei(dp, Dirent(inum, name[:DIRSIZ]).pack(), off) != DIRENT_SIZE:
            raise KernelPanic("dirlink")

    # Paths.

    def _namex(self, path: str, parent: bool, cwd: Inode | None):
        if path.startswith("/") or cwd is None:
            ip = self.iget(ROOTINO)
        else:
            ip = self.idup(cwd)
        while (elem := skipelem(path)) is not None:
            name, path = elem
            self.ilock(ip)
            if ip.type != FileType.DIR:
                self.iunlockput(ip)
                return None
            if parent and path == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            if found is None:
                self.iunlockput(ip)
                return None
            self.iunlockput(ip)
            ip = found[0]
        if parent:
            self.iput(ip)
            return None
        return ip

    def namei(self, path: str, cwd: Inode | None = None) -> Inode | None:
        """Inode named by ``path``; relative paths start at ``cwd`` or the root."""
        return self._namex(path, False, cwd)

    def nameiparent(self, path: str, cwd: Inode | None = None) -> tuple[Inode, str] | None:
        """Inode of the directory holding ``path``'s last element, and that element."""
        return self._namex(path, True, cwd)