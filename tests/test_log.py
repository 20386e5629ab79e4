import pytest

from xv6kit.bufcache import BufferCache
from xv6kit.disk import MemoryDisk
from xv6kit.layout import B_DIRTY, BSIZE, FSSIZE, LOGSIZE, KernelPanic, Superblock
from xv6kit.log import Log, LogHeader


def make_disk(nlog=LOGSIZE):
    disk = MemoryDisk()
    sb = Superblock(size=FSSIZE, nlog=nlog, logstart=2, inodestart=2 + nlog)
    block = bytearray(BSIZE)
    packed = sb.pack()
    block[: len(packed)] = packed
    disk.write_block(1, bytes(block))
    return disk


def padded(data):
    return data + bytes(BSIZE - len(data))


def test_header_round_trip():
    header = LogHeader([5, 9, 100])
    again = LogHeader.unpack(padded(header.pack()))
    assert again.blocks == [5, 9, 100]
    assert again.n == 3


def test_header_size_fixed_by_format():
    assert len(LogHeader([1]).pack()) == 4 * (LOGSIZE + 1)


def test_header_rejects_bad_count():
    data = bytearray(LogHeader().pack())
    data[0] = LOGSIZE + 1
    with pytest.raises(ValueError):
        LogHeader.unpack(bytes(data))


def test_header_rejects_too_many_blocks():
    with pytest.raises(ValueError):
        LogHeader(list(range(LOGSIZE + 1))).pack()


def test_commit_installs_block():
    disk = make_disk()
    cache = BufferCache(disk)
    log = Log(cache)
    payload = b"x" * BSIZE
    with log.transaction():
        b = cache.read(1, 100)
        b.data[:] = payload
        log.log_write(b)
        cache.release(b)
        assert disk.read_block(100) == bytes(BSIZE)
    assert disk.read_block(100) == payload
    assert disk.read_block(3) == payload
    assert LogHeader.unpack(disk.read_block(2)).n == 0
    assert log.lh.n == 0


def test_recovery_installs_committed_transaction():
    disk = make_disk()
    disk.write_block(2, padded(LogHeader([100]).pack()))
    disk.write_block(3, b"y" * BSIZE)
    Log(BufferCache(disk))
    assert disk.read_block(100) == b"y" * BSIZE
    assert LogHeader.unpack(disk.read_block(2)).blocks == []


def test_absorption_keeps_one_entry():
    disk = make_disk()
    cache = BufferCache(disk)
    log = Log(cache)
    log.begin_op()
    b = cache.read(1, 100)
    log.log_write(b)
    log.log_write(b)
    assert log.lh.blocks == [100]
    assert b.flags & B_DIRTY
    cache.release(b)
    log.end_op()
    assert log.lh.blocks == []


def test_log_write_outside_transaction_panics():
    disk = make_disk()
    cache = BufferCache(disk)
    log = Log(cache)
    b = cache.read(1, 100)
    with pytest.raises(KernelPanic):
        log.log_write(b)


def test_transaction_too_big_panics():
    disk = make_disk(nlog=3)
    cache = BufferCache(disk)
    log = Log(cache)
    log.begin_op()
    for blockno in (100, 101):
        b = cache.read(1, blockno)
        log.log_write(b)
        cache.release(b)
    b = cache.read(1, 102)
    with pytest.raises(KernelPanic):
        log.log_write(b)


def test_outstanding_counts_operations():
    log = Log(BufferCache(make_disk()))
    log.begin_op()
    log.begin_op()
    assert log.outstanding == 2
    log.end_op()
    log.end_op()
    assert log.outstanding == 0
    assert log.committing is False