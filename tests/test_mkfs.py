import struct

import pytest

from xv6kit.layout import (
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    FSSIZE,
    IPB,
    LOGSIZE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    Dirent,
    DiskInode,
    FileType,
    Superblock,
    iblock,
)
from xv6kit.mkfs import NMETA, ImageBuilder, build_image, main


def block(image, n):
    return image[n * BSIZE : (n + 1) * BSIZE]


def superblock(image):
    return Superblock.unpack(block(image, 1))


def read_inode(image, inum):
    sb = superblock(image)
    off = iblock(inum, sb) * BSIZE + (inum % IPB) * DINODE_SIZE
    return DiskInode.unpack(image[off : off + DINODE_SIZE])


def read_contents(image, din):
    addrs = list(din.addrs[:NDIRECT])
    if din.addrs[NDIRECT]:
        addrs += struct.unpack(f"<{NINDIRECT}I", block(image, din.addrs[NDIRECT]))
    count = (din.size + BSIZE - 1) // BSIZE
    data = b"".join(block(image, a) for a in addrs[:count])
    return data[: din.size]


def root_entries(image):
    raw = read_contents(image, read_inode(image, ROOTINO))
    entries = (Dirent.unpack(raw[i : i + DIRENT_SIZE]) for i in range(0, len(raw), DIRENT_SIZE))
    return [e for e in entries if e.inum]


def test_superblock_layout():
    sb = superblock(build_image({}))
    assert sb.size == FSSIZE
    assert sb.logstart == 2
    assert sb.nlog == LOGSIZE
    assert sb.inodestart == 2 + LOGSIZE
    assert sb.size - sb.nblocks == NMETA


def test_image_size():
    assert len(build_image({})) == FSSIZE * BSIZE


def test_root_directory():
    image = build_image({})
    root = read_inode(image, ROOTINO)
    assert root.type == FileType.DIR
    assert root.nlink == 1
    assert root.size % BSIZE == 0
    names = [(e.name, e.inum) for e in root_entries(image)]
    assert names == [(".", ROOTINO), ("..", ROOTINO)]


def test_files_listed_and_readable():
    image = build_image([("README", b"hello\n"), ("cat", b"\x7fELF data")])
    entries = root_entries(image)
    assert [e.name for e in entries] == [".", "..", "README", "cat"]
    for entry, expected in zip(entries[2:], [b"hello\n", b"\x7fELF data"]):
        din = read_inode(image, entry.inum)
        assert din.type == FileType.FILE
        assert read_contents(image, din) == expected


def test_large_file_uses_indirect_block():
    data = bytes(range(256)) * 30
    image = build_image({"big": data})
    entry = root_entries(image)[2]
    din = read_inode(image, entry.inum)
    assert din.addrs[NDIRECT] != 0
    assert din.size == len(data)
    assert read_contents(image, din) == data


def test_long_name_truncated():
    image = build_image({"averyveryverylongname": b"x"})
    assert root_entries(image)[2].name == "averyveryveryl"


def test_bitmap_marks_used_blocks():
    builder = ImageBuilder()
    builder.add_file("f", b"z" * 3000)
    image = builder.finish()
    bitmap = block(image, superblock(image).bmapstart)
    for b in range(FSSIZE):
        used = bool(bitmap[b // 8] & (1 << (b % 8)))
        assert used == (b < builder.freeblock)


def test_name_with_slash_rejected():
    with pytest.raises(ValueError):
        build_image({"a/b": b""})


def test_file_too_large_rejected():
    builder = ImageBuilder()
    with pytest.raises(ValueError):
        builder.add_file("huge", bytes((NDIRECT + NINDIRECT) * BSIZE + 1))


def test_main_strips_underscore(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "_cat").write_bytes(b"meow")
    assert main(["fs.img", "_cat"]) == 0
    image = (tmp_path / "fs.img").read_bytes()
    entries = root_entries(image)
    assert [e.name for e in entries] == [".", "..", "cat"]
    assert read_contents(image, read_inode(image, entries[2].inum)) == b"meow"
    assert "nmeta" in capsys.readouterr().out


def test_main_usage(capsys):
    assert main([]) == 1
    assert "Usage: mkfs fs.img files..." in capsys.readouterr().err


def test_main_missing_input(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["fs.img", "nosuchfile"]) == 1