import errno

import pytest

from xv6kit.bufcache import BufferCache
from xv6kit.disk import MemoryDisk
from xv6kit.fs import FileSystem
from xv6kit.layout import DIRSIZ, FileType
from xv6kit.mkfs import build_image
from xv6kit.tools import cat, echo, fmtname, ls, main

BIG = bytes(range(256)) * 5
FILES = {"README": b"hello\n", "big": BIG}


@pytest.fixture
def fs():
    return FileSystem(BufferCache(MemoryDisk(build_image(FILES))))


@pytest.fixture
def image_path(tmp_path):
    path = tmp_path / "fs.img"
    path.write_bytes(build_image(FILES))
    return str(path)


def test_fmtname_pads_last_element():
    name = fmtname("a/b/cat")
    assert len(name) == DIRSIZ
    assert name.rstrip(" ") == "cat"


def test_fmtname_long_name_unchanged():
    long = "x" * DIRSIZ
    assert fmtname("dir/" + long) == long


def test_echo():
    assert echo(["a", "b"]) == "a b\n"
    assert echo([]) == ""


def test_ls_file(fs):
    st_ino = fs.namei("README").inum
    assert list(ls(fs, "README")) == [
        f"{fmtname('README')} {int(FileType.FILE)} {st_ino} {len(FILES['README'])}"
    ]


def test_ls_root_lists_entries(fs):
    lines = list(ls(fs, "."))
    names = {line[:DIRSIZ].rstrip(" ") for line in lines}
    assert names == {".", "..", "README", "big"}
    dot = next(line for line in lines if line.startswith(fmtname(".")))
    assert dot.split()[1:3] == [str(int(FileType.DIR)), "1"]


def test_ls_missing(fs):
    with pytest.raises(FileNotFoundError):
        list(ls(fs, "nope"))


def test_ls_path_too_long(fs):
    with pytest.raises(OSError) as info:
        list(ls(fs, "/" * 500))
    assert info.value.errno == errno.ENAMETOOLONG


def test_cat_concatenates(fs):
    assert b"".join(cat(fs, ["README"])) == FILES["README"]
    assert b"".join(cat(fs, ["README", "big"])) == FILES["README"] + BIG


def test_cat_chunks_do_not_exceed_512(fs):
    chunks = list(cat(fs, ["big"]))
    assert all(len(c) <= 512 for c in chunks)
    assert b"".join(chunks) == BIG


def test_cat_missing(fs):
    with pytest.raises(FileNotFoundError):
        list(cat(fs, ["missing"]))


def test_main_echo(capsys):
    assert main(["echo", "hi", "there"]) == 0
    assert capsys.readouterr().out == "hi there\n"


def test_main_ls(image_path, capsys):
    assert main(["ls", image_path, "README", "nope"]) == 0
    captured = capsys.readouterr()
    assert captured.out.startswith(fmtname("README"))
    assert "ls: cannot open nope" in captured.err


def test_main_cat(image_path, capsys):
    assert main(["cat", image_path, "README"]) == 0
    assert capsys.readouterr().out == "hello\n"


def test_main_cat_missing(image_path, capsys):
    assert main(["cat", image_path, "missing"]) == 1
    assert "cat: cannot open missing" in capsys.readouterr().out


def test_main_usage(capsys):
    assert main([]) == 1
    assert main(["ls"]) == 1
    assert "usage" in capsys.readouterr().err