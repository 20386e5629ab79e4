"""User commands over a file system image: ls, cat and echo."""

from __future__ import annotations

import errno
import sys
from collections.abc import Iterable, Iterator

from .bufcache import BufferCache
from .disk import MemoryDisk
from .fs import FileSystem, Inode
from .layout import DIRENT_SIZE, DIRSIZ, Dirent, FileType, Stat

_CHUNK = 512
_PATHBUF = 512


def fmtname(path: str) -> str:
    """Last element of ``path``, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _namei(fs: FileSystem, path: str) -> Inode:
    with fs.log.transaction():
        ip = fs.namei(path)
    if ip is None:
        raise FileNotFoundError(errno.ENOENT, "cannot open", path)
    return ip


def _put(fs: FileSystem, ip: Inode) -> None:
    with fs.log.transaction():
        fs.iput(ip)


def _stat(fs: FileSystem, path: str) -> Stat:
    ip = _namei(fs, path)
    try:
        fs.ilock(ip)
        try:
            return fs.stati(ip)
        finally:
            fs.iunlock(ip)
    finally:
        _put(fs, ip)


def _line(name: str, st: Stat) -> str:
    return f"{fmtname(name)} {int(st.type)} {st.ino} {st.size}"


def ls(fs: FileSystem, path: str) -> Iterator[str]:
    """Yield one listing line for a file, or one per entry of a directory."""
    ip = _namei(fs, path)
    try:
        fs.ilock(ip)
        try:
            st = fs.stati(ip)
            raw = fs.readi(ip, 0, ip.size) if st.type == FileType.DIR else b""
        finally:
            fs.iunlock(ip)
    finally:
        _put(fs, ip)

    if st.type == FileType.FILE:
        yield _line(path, st)
    elif st.type == FileType.DIR:
        if len(path) + 1 + DIRSIZ + 1 > _PATHBUF:
            raise OSError(errno.ENAMETOOLONG, "path too long", path)
        for start in range(0, len(raw) - DIRENT_SIZE + 1, DIRENT_SIZE):
            de = Dirent.unpack(raw[start : start + DIRENT_SIZE])
            if de.inum == 0:
                continue
            child = f"{path}/{de.name}"
            try:
                child_st = _stat(fs, child)
            except FileNotFoundError:
                yield f"ls: cannot stat {child}"
                continue
            yield _line(child, child_st)


def _read_chunks(fs: FileSystem, ip: Inode) -> Iterator[bytes]:
    off = 0
    while True:
        fs.ilock(ip)
        try:
            chunk = fs.readi(ip, off, _CHUNK)
        finally:
            fs.iunlock(ip)
        if not chunk:
            return
        off += len(chunk)
        yield chunk


def cat(fs: FileSystem, paths: Iterable[str]) -> Iterator[bytes]:
    """Yield the contents of each file in turn, in chunks."""
    for path in paths:
        ip = _namei(fs, path)
        try:
            yield from _read_chunks(fs, ip)
        finally:
            _put(fs, ip)


def echo(args: Iterable[str]) -> str:
    """Arguments joined by spaces and ended with a newline; empty if none."""
    words = list(args)
    return " ".join(words) + "\n" if words else ""


_USAGE = "usage: tools ls IMAGE [path ...] | cat IMAGE [path ...] | echo [word ...]\n"


def _mount(image_path: str) -> FileSystem:
    return FileSystem(BufferCache(MemoryDisk.from_file(image_path)))


def _main_ls(fs: FileSystem, paths: list[str]) -> int:
    for path in paths:
        try:
            for line in ls(fs, path):
                print(line)
        except FileNotFoundError:
            sys.stderr.write(f"ls: cannot open {path}\n")
        except OSError as exc:
            if exc.errno != errno.ENAMETOOLONG:
                raise
            print("ls: path too long")
    return 0


def _main_cat(fs: FileSystem, paths: list[str]) -> int:
    sys.stdout.flush()
    out = sys.stdout.buffer
    if not paths:
        while chunk := sys.stdin.buffer.read(_CHUNK):
            out.write(chunk)
        out.flush()
        return 0
    try:
        for chunk in cat(fs, paths):
            out.write(chunk)
    except FileNotFoundError as exc:
        out.write(f"cat: cannot open {exc.filename}\n".encode())
        out.flush()
        return 1
    out.flush()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write(_USAGE)
        return 1
    command, rest = args[0], args[1:]
    if command == "echo":
        sys.stdout.write(echo(rest))
        return 0
    if command not in ("ls", "cat") or not rest:
        sys.stderr.write(_USAGE)
        return 1
    try:
        fs = _mount(rest[0])
    except OSError as exc:
        sys.stderr.write(f"{rest[0]}: {exc.strerror}\n")
        return 1
    paths = rest[1:]
    if command == "ls":
        return _main_ls(fs, paths or ["."])
    return _main_cat(fs, paths)