# xv6kit

xv6kit is a small Unix-style file system written in plain Python. It builds
file system images and works with them through a stack of layers, each in
its own module:

- `xv6kit.layout`: the on-disk format and the size limits. `Superblock`,
  `DiskInode` and `Dirent` pack to bytes and unpack from them. `iblock` and
  `bblock` give the block that holds an inode or a bitmap bit. `FileType`
  lists the inode types, `Stat` holds file metadata, and `KernelPanic` is
  raised whenever an internal invariant breaks.
- `xv6kit.disk`: `MemoryDisk`, a block device kept in a `bytearray`. It loads
  with `MemoryDisk.from_file` and saves with `save`.
- `xv6kit.bufcache`: `BufferCache`, a fixed pool of `Buffer`s that reuses
  the least recently used clean buffer.
- `xv6kit.log`: `Log`, a write-ahead redo log. It recovers a committed
  transaction when it is opened. Operations run between `begin_op` and
  `end_op`, or inside `with log.transaction():`.
- `xv6kit.fs`: `FileSystem` and `Inode`. It allocates inodes and blocks,
  reads and writes file contents (`readi`, `writei`), handles directories
  (`dirlookup`, `dirlink`) and looks up paths (`namei`, `nameiparent`).
- `xv6kit.files`: `FileTable` and `OpenFile`. These are reference-counted
  open files backed by an inode or a pipe. Large writes are split over
  several log transactions.
- `xv6kit.pipe`: `Pipe`, a 512-byte bounded pipe. Reads and writes block.
- `xv6kit.console`: `Console`. It does line editing on typed input
  (backspace, Ctrl-U, Ctrl-D) and keeps its output both as a byte stream and
  as an 80×25 text screen. `kernel_format` understands `%d %x %p %s`.
- `xv6kit.keyboard`: `Keyboard`, which turns PC scancodes into characters.
  It tracks Shift, Ctrl and Caps Lock.
- `xv6kit.fmt`: `format` and `format_int`, printf-style formatting with
  `%d %x %p %s %c`. Hex digits are upper case.
- `xv6kit.grep`: `match` and `grep`, a regular-expression matcher that
  knows `^`, `$`, `.` and `*`.
- `xv6kit.mkfs`: `ImageBuilder` and `build_image`, which build an image
  whose root directory holds the given files.
- `xv6kit.tools`: `ls`, `cat`, `echo` and `fmtname`, used on a mounted
  image.

The package needs only the standard library.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Commands

### xv6-mkfs

Builds a 1000-block image that holds the given files. The files must be in
the current directory. A leading `_` is dropped from each name inside the
image:

```
xv6-mkfs fs.img README _cat _ls
```

### xv6-grep

Prints the lines of the given files, or of standard input, that match a
pattern:

```
xv6-grep 'ab*c$' notes.txt
```

### xv6-tools

Works on an image file:

```
xv6-tools ls fs.img            # lists the root directory
xv6-tools ls fs.img README     # lists one file
xv6-tools cat fs.img README    # prints file contents
xv6-tools echo hello world
```

A `ls` line shows the name padded to 14 characters, then the inode type,
the inode number and the size. When `cat` is given no paths, it copies
standard input to standard output.

## From Python

```python
from xv6kit.bufcache import BufferCache
from xv6kit.disk import MemoryDisk
from xv6kit.fmt import format
from xv6kit.fs import FileSystem
from xv6kit.grep import match
from xv6kit.mkfs import build_image
from xv6kit.tools import cat, ls

image = build_image({"hello.txt": b"hi\n"})
fs = FileSystem(BufferCache(MemoryDisk(image)))

for line in ls(fs, "/"):
    print(line)
print(b"".join(cat(fs, ["hello.txt"])))   # b"hi\n"

match("^ab*c$", "abbbc")                  # True
format("%d items, %x", 3, 255)            # "3 items, FF"
```

A `FileSystem` creates its own `Log` and recovers it when it is
constructed. Any change made through it stays in the `MemoryDisk` until
`MemoryDisk.save` writes the image out.

## What it does not do

- There are no processes, system calls, scheduler or shell. Nothing runs
  programs that are stored in an image.
- Every disk is a `MemoryDisk`. There is no driver for real block devices.
- The command-line tools only read images (`ls`, `cat`), apart from
  `xv6-mkfs`, which creates them. Nothing removes files, makes directories
  or adds links on an existing image from the command line. In Python,
  `FileSystem` gives the building blocks (`ialloc`, `writei`, `dirlink`)
  but no `unlink` or `mkdir`.
- `Console` and `Keyboard` do not talk to a terminal. The caller passes
  them characters or scancodes and reads back their output.