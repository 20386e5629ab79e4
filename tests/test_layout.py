import pytest

from xv6kit.layout import (
    BSIZE,
    BPB,
    DIRSIZ,
    IPB,
    NDIRECT,
    Dirent,
    DiskInode,
    FileType,
    KernelPanic,
    Stat,
    Superblock,
    bblock,
    iblock,
)


def test_superblock_round_trip():
    sb = Superblock(1000, 941, 200, 30, 2, 32, 58)
    assert Superblock.unpack(sb.pack()) == sb


def test_superblock_unpacks_from_full_block():
    sb = Superblock(size=1000, ninodes=200, logstart=2)
    block = sb.pack() + bytes(BSIZE - len(sb.pack()))
    assert Superblock.unpack(block) == sb


def test_dinode_fills_block_exactly():
    assert len(DiskInode().pack()) * IPB == BSIZE


def test_dinode_round_trip():
    addrs = list(range(100, 100 + NDIRECT + 1))
    din = DiskInode(FileType.FILE, 0, 0, 1, 1234, addrs)
    back = DiskInode.unpack(din.pack())
    assert back == din
    assert back.type == FileType.FILE


def test_dinode_rejects_wrong_address_count():
    with pytest.raises(ValueError):
        DiskInode(addrs=[1, 2]).pack()


def test_dirent_round_trip_and_size():
    de = Dirent(7, "README")
    packed = de.pack()
    assert BSIZE % len(packed) == 0
    assert Dirent.unpack(packed) == de


def test_dirent_name_truncated_like_strncpy():
    long_name = "abcdefghijklmnopqrstuvwxyz"
    back = Dirent.unpack(Dirent(3, long_name).pack())
    assert back.name == long_name[:DIRSIZ]


def test_dirent_layout_bytes():
    assert Dirent(1, ".").pack() == b"\x01\x00." + bytes(DIRSIZ - 1)


def test_iblock_groups_inodes():
    sb = Superblock(inodestart=32)
    assert iblock(0, sb) == sb.inodestart
    assert iblock(IPB - 1, sb) == sb.inodestart
    assert iblock(IPB, sb) == sb.inodestart + 1


def test_bblock_groups_bits():
    sb = Superblock(bmapstart=58)
    assert bblock(0, sb) == sb.bmapstart
    assert bblock(BPB - 1, sb) == sb.bmapstart
    assert bblock(BPB, sb) == sb.bmapstart + 1


def test_stat_holds_values():
    st = Stat(type=FileType.DIR, dev=1, ino=1, nlink=1, size=BSIZE)
    assert (st.type, st.ino, st.size) == (FileType.DIR, 1, BSIZE)


def test_kernel_panic_carries_message():
    panic = KernelPanic("boom")
    assert str(panic) == "boom"
    assert isinstance(panic, RuntimeError)