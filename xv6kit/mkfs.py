"""Build a file system image holding a root directory and some files."""

from __future__ import annotations

import struct
import sys
from collections.abc import Iterable, Mapping
from pathlib import Path

from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    Dirent,
    DiskInode,
    FileType,
    Superblock,
    iblock,
)

NINODES = 200
NBITMAP = FSSIZE // BPB + 1
NINODEBLOCKS = NINODES // IPB + 1
NLOG = LOGSIZE
NMETA = 2 + NLOG + NINODEBLOCKS + NBITMAP
NBLOCKS = FSSIZE - NMETA

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """An image under construction: boot, super, log, inodes, bitmap, data."""

    def __init__(self) -> None:
        self.image = bytearray(FSSIZE * BSIZE)
        self.sb = Superblock(
            size=FSSIZE,
            nblocks=NBLOCKS,
            ninodes=NINODES,
            nlog=NLOG,
            logstart=2,
            inodestart=2 + NLOG,
            bmapstart=2 + NLOG + NINODEBLOCKS,
        )
        self.freeinode = 1
        self.freeblock = NMETA
        block = bytearray(BSIZE)
        packed = self.sb.pack()
        block[: len(packed)] = packed
        self._wsect(1, block)

        self.rootino = self.ialloc(FileType.DIR)
        self.iappend(self.rootino, Dirent(self.rootino, ".").pack())
        self.iappend(self.rootino, Dirent(self.rootino, "..").pack())

    def _rsect(self, sec: int) -> bytearray:
        return self.image[sec * BSIZE : (sec + 1) * BSIZE]

    def _wsect(self, sec: int, data: bytes) -> None:
        self.image[sec * BSIZE : (sec + 1) * BSIZE] = data

    def _inode_offset(self, inum: int) -> tuple[int, int]:
        return iblock(inum, self.sb), (inum % IPB) * DINODE_SIZE

    def _rinode(self, inum: int) -> DiskInode:
        bn, off = self._inode_offset(inum)
        return DiskInode.unpack(self._rsect(bn)[off : off + DINODE_SIZE])

    def _winode(self, inum: int, din: DiskInode) -> None:
        bn, off = self._inode_offset(inum)
        block = self._rsect(bn)
        block[off : off + DINODE_SIZE] = din.pack()
        self._wsect(bn, block)

    def _alloc_block(self) -> int:
        if self.freeblock >= FSSIZE:
            raise ValueError("file system image is out of blocks")
        b = self.freeblock
        self.freeblock += 1
        return b

    def ialloc(self, type: int) -> int:
        """Allocate the next inode with the given type and one link."""
        if self.freeinode >= NINODES:
            raise ValueError("file system image is out of inodes")
        inum = self.freeinode
        self.freeinode += 1
        self._winode(inum, DiskInode(type=int(type), nlink=1, size=0))
        return inum

    def iappend(self, inum: int, data: bytes) -> None:
        """Append ``data`` to the contents of inode ``inum``."""
        din = self._rinode(inum)
        off = din.size
        rest = memoryview(bytes(data))
        while rest:
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large for the image format")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._alloc_block()
                indirect = list(_INDIRECT.unpack(self._rsect(din.addrs[NDIRECT])))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._alloc_block()
                    self._wsect(din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
                x = indirect[fbn - NDIRECT]
            n1 = min(len(rest), (fbn + 1) * BSIZE - off)
            block = self._rsect(x)
            start = off - fbn * BSIZE
            block[start : start + n1] = rest[:n1]
            self._wsect(x, block)
            rest = rest[n1:]
            off += n1
        din.size = off
        self._winode(inum, din)

    def add_file(self, name: str, data: bytes) -> int:
        """Create a regular file in the root directory; return its inode."""
        if "/" in name:
            raise ValueError(f"file name may not contain '/': {name!r}")
        inum = self.ialloc(FileType.FILE)
        self.iappend(self.rootino, Dirent(inum, name).pack())
        self.iappend(inum, data)
        return inum

    def finish(self) -> bytes:
        """Round up the root size, write the free bitmap and return the image."""
        din = self._rinode(self.rootino)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self._winode(self.rootino, din)

        used = self.freeblock
        if used >= BPB:
            raise ValueError("bitmap does not fit in one block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self._wsect(self.sb.bmapstart, bitmap)
        return bytes(self.image)


def build_image(files: Mapping[str, bytes] | Iterable[tuple[str, bytes]]) -> bytes:
    """Return an image whose root directory holds the given files."""
    builder = ImageBuilder()
    items = files.items() if isinstance(files, Mapping) else files
    for name, data in items:
        builder.add_file(name, data)
    return builder.finish()


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        sys.stderr.write("Usage: mkfs fs.img files...\n")
        return 1
    out_path, inputs = args[0], args[1:]
    print(
        f"nmeta {NMETA} (boot, super, log blocks {NLOG} inode blocks "
        f"{NINODEBLOCKS}, bitmap blocks {NBITMAP}) blocks {NBLOCKS} total {FSSIZE}"
    )
    builder = ImageBuilder()
    for path in inputs:
        if "/" in path:
            sys.stderr.write(f"mkfs: {path}: files must be in the current directory\n")
            return 1
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            sys.stderr.write(f"{path}: {exc.strerror}\n")
            return 1
        # Binaries are named _cat, _rm, ... so the host does not run them.
        name = path[1:] if path.startswith("_") else path
        try:
            builder.add_file(name, data)
        except ValueError as exc:
            sys.stderr.write(f"mkfs: {path}: {exc}\n")
            return 1
    image = builder.finish()
    print(f"balloc: first {builder.freeblock} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
    try:
        Path(out_path).write_bytes(image)
    except OSError as exc:
        sys.stderr.write(f"{out_path}: {exc.strerror}\n")
        return 1
    return 0