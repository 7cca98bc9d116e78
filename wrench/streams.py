"""Seekable binary streams arranged in a parent/child tree."""

from __future__ import annotations

import struct
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, BinaryIO, TextIO

from wrench.stacktrace import generate_stacktrace

SECTOR_SIZE = 0x800
COPY_CHUNK_SIZE = 1024 * 1024

_GREEN = "\033[1;32m"
_RED = "\033[1;31m"
_YELLOW = "\033[1;33m"
_RESET = "\033[0m"
_DIFF_ADDRESS_MARK = 0x1000000000000000


class StreamError(RuntimeError):
    """Base class for stream failures; records where it was raised."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.stack_trace = generate_stacktrace()


class StreamIOError(StreamError):
    """An I/O failure, e.g. reading past the end of a stream."""


class StreamFormatError(StreamError):
    """The stream's contents are not in the expected format."""


@dataclass(frozen=True)
class Sector32:
    """A 32-bit count of disc sectors."""

    sectors: int = 0

    def bytes(self) -> int:
        """Return the size in bytes."""
        return self.sectors * SECTOR_SIZE

    @classmethod
    def size_from_bytes(cls, size_in_bytes: int) -> Sector32:
        """Return the number of sectors needed to hold the given byte count."""
        if size_in_bytes < 0:
            raise ValueError("size must not be negative")
        sectors = -(-size_in_bytes // SECTOR_SIZE)
        if sectors > 0xFFFFFFFF:
            raise ValueError("size does not fit in a 32-bit sector count")
        return cls(sectors)


@lru_cache(maxsize=None)
def _layout(fmt: str) -> tuple[struct.Struct, int]:
    """Compile a struct format (little-endian unless stated) and count its fields."""
    if not fmt or fmt[0] not in "@=<>!":
        fmt = "<" + fmt
    compiled = struct.Struct(fmt)
    return compiled, len(compiled.unpack(bytes(compiled.size)))


class Stream(ABC):
    """A seekable byte stream that may have a parent and children."""

    def __init__(self, parent: Stream | None = None) -> None:
        self.parent = parent
        self.children: list[Stream] = []
        self.name = ""  # Displayed in the string viewer.
        self._last_printed = 0
        if parent is not None:
            parent.children.append(self)

    @abstractmethod
    def size(self) -> int:
        """Return the total size in bytes."""

    @abstractmethod
    def seek(self, offset: int) -> None:
        """Move the position to an absolute offset."""

    @abstractmethod
    def tell(self) -> int:
        """Return the current position."""

    @abstractmethod
    def read_n(self, size: int) -> bytes:
        """Read exactly ``size`` bytes."""

    @abstractmethod
    def write_n(self, data: bytes) -> None:
        """Write ``data`` at the current position."""

    @abstractmethod
    def resource_path(self) -> str:
        """Describe where the data lives, e.g. ``wad(file(LEVEL4.WAD)+0x1000)``."""

    def read(self, fmt: str, offset: int | None = None) -> Any:
        """Read a value laid out by a struct format, optionally seeking first."""
        if offset is not None:
            self.seek(offset)
        compiled, fields = _layout(fmt)
        values = compiled.unpack(self.read_n(compiled.size))
        return values[0] if fields == 1 else values

    def write(self, fmt: str, value: Any, offset: int | None = None) -> None:
        """Write a value laid out by a struct format, optionally seeking first."""
        if offset is not None:
            self.seek(offset)
        compiled, fields = _layout(fmt)
        packed = compiled.pack(value) if fields == 1 else compiled.pack(*value)
        self.write_n(packed)

    def read_string(self) -> str:
        """Read a NUL-terminated string."""
        chars = bytearray()
        while (byte := self.read_n(1)) != b"\0":
            chars += byte
        return chars.decode("latin-1")

    def peek_n(self, pos: int, size: int) -> bytes:
        """Read bytes at ``pos`` without moving the position."""
        whence = self.tell()
        try:
            self.seek(pos)
            return self.read_n(size)
        finally:
            self.seek(whence)

    def peek(self, fmt: str, offset: int | None = None) -> Any:
        """Read a value without moving the position."""
        whence = self.tell()
        try:
            return self.read(fmt, offset)
        finally:
            self.seek(whence)

    def read_multiple(self, fmt: str, count: int) -> list[Any]:
        """Read ``count`` consecutive values of the given format."""
        compiled, fields = _layout(fmt)
        data = self.read_n(compiled.size * count)
        items = list(compiled.iter_unpack(data)) if compiled.size else []
        return [item[0] for item in items] if fields == 1 else items

    def align(self, alignment: int) -> None:
        """Seek forward to the next multiple of ``alignment``."""
        pos = self.tell()
        remainder = pos % alignment
        self.seek(pos + (alignment - remainder if remainder else 0))

    def pad(self, alignment: int, padding: int = 0) -> None:
        """Write ``padding`` bytes until the position is a multiple of ``alignment``."""
        remainder = self.tell() % alignment
        if remainder:
            self.write_n(bytes([padding]) * (alignment - remainder))

    @staticmethod
    def copy_n(dest: Stream, src: Stream, size: int) -> None:
        """Copy ``size`` bytes from ``src`` to ``dest``; they must differ."""
        remaining = size
        while remaining > 0:
            chunk = min(COPY_CHUNK_SIZE, remaining)
            dest.write_n(src.read_n(chunk))
            remaining -= chunk

    def contains(self, needle: Stream) -> bool:
        """Return whether ``needle`` is this stream or one of its descendants."""
        return needle is self or any(child.contains(needle) for child in self.children)

    def detach(self) -> None:
        """Remove this stream from the tree."""
        if self.parent is not None:
            self.parent.children.remove(self)
            self.parent = None
        for child in self.children:
            if child.parent is self:
                child.parent = None
        self.children = []

    def print_diff(
        self,
        expected: Stream | None = None,
        use_binary: bool = False,
        out: TextIO | None = None,
    ) -> None:
        """Pretty print bytes written since the last call, compared to ``expected``."""
        out = sys.stdout if out is None else out
        end = self.tell()
        if end < self._last_printed:
            return

        is_bad = False
        out.write(f"{self._last_printed | _DIFF_ADDRESS_MARK:x} >>>> ")
        for i in range(self._last_printed, end):
            val = self.peek("B", i)
            if expected is not None:
                if val == expected.peek("B", i):
                    out.write(_GREEN)
                else:
                    out.write(_RED)
                    is_bad = True
            else:
                out.write(_YELLOW)
            out.write(f"{val:08b}" if use_binary else f"{val:02x}")
            out.write(_RESET)
            relative = i - self._last_printed
            if relative % 32 == 31 or (use_binary and relative % 16 == 15):
                out.write(f"\n{(i + 1) | _DIFF_ADDRESS_MARK:x} >>>> ")
            else:
                out.write(" ")
        if is_bad:
            out.write("\nEXPECTED:\n")
            expected._last_printed = self._last_printed
            expected.seek(end)
            expected.print_diff(None, use_binary, out)
            out.write("\n")
            raise StreamFormatError("Data written to stream did not match expected stream.")
        out.write("\n")
        self._last_printed = end


class FileStream(Stream):
    """A stream backed by a file on disk."""

    def __init__(self, path: str, mode: str = "rb") -> None:
        super().__init__(None)
        if "b" not in mode:
            mode += "b"
        self._path = str(path)
        try:
            self._file: BinaryIO = open(self._path, mode)
        except OSError as exc:
            raise StreamIOError("Failed to open file.") from exc

    def __enter__(self) -> FileStream:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def size(self) -> int:
        pos = self._file.tell()
        self._file.seek(0, 2)
        size = self._file.tell()
        self._file.seek(pos)
        return size

    def seek(self, offset: int) -> None:
        try:
            self._file.seek(offset)
        except (OSError, ValueError) as exc:
            raise StreamIOError("Bad stream.") from exc

    def tell(self) -> int:
        return self._file.tell()

    def read_n(self, size: int) -> bytes:
        try:
            data = self._file.read(size)
        except (OSError, ValueError) as exc:
            raise StreamIOError("Bad stream.") from exc
        if len(data) != size:
            raise StreamIOError("Bad stream.")
        return data

    def write_n(self, data: bytes) -> None:
        try:
            self._file.write(bytes(data))
        except (OSError, ValueError) as exc:
            raise StreamIOError("Bad stream.") from exc

    def resource_path(self) -> str:
        return f"file({self._path})"

    def close(self) -> None:
        """Close the underlying file."""
        self._file.close()


class ArrayStream(Stream):
    """A stream backed by an in-memory, growable byte buffer."""

    def __init__(self, parent: Stream | None = None, data: bytes = b"") -> None:
        super().__init__(parent)
        self.buffer = bytearray(data)
        self.pos = 0

    def size(self) -> int:
        return len(self.buffer)

    def seek(self, offset: int) -> None:
        self.pos = offset

    def tell(self) -> int:
        return self.pos

    def read_n(self, size: int) -> bytes:
        if self.pos + size > len(self.buffer):
            raise StreamIOError("Tried to read past end of array_stream!")
        data = bytes(self.buffer[self.pos:self.pos + size])
        self.pos += size
        return data

    def write_n(self, data: bytes) -> None:
        data = bytes(data)
        if self.pos > len(self.buffer):
            self.buffer.extend(bytes(self.pos - len(self.buffer)))
        self.buffer[self.pos:self.pos + len(data)] = data
        self.pos += len(data)

    def resource_path(self) -> str:
        return "arraystream"

    def data(self) -> bytearray:
        """Return the underlying buffer."""
        return self.buffer

    def read8(self) -> int:
        """Read one byte."""
        if self.pos >= len(self.buffer):
            raise StreamIOError("Tried to read past end of array_stream!")
        value = self.buffer[self.pos]
        self.pos += 1
        return value

    def peek8(self, offset: int | None = None) -> int:
        """Return the byte at ``offset`` (default: the position) without moving."""
        index = self.pos if offset is None else offset
        if not 0 <= index < len(self.buffer):
            raise IndexError(f"offset {index} is outside the buffer")
        return self.buffer[index]

    def write8(self, value: int) -> None:
        """Write one byte."""
        self.write_n(bytes([value]))

    @staticmethod
    def compare_contents(a: ArrayStream, b: ArrayStream) -> bool:
        """Return whether two array streams hold identical bytes."""
        return a.buffer == b.buffer


class ProxyStream(Stream):
    """A window onto a segment of a larger parent stream."""

    def __init__(self, parent: Stream, zero: int, size: int) -> None:
        super().__init__(parent)
        self._zero = zero
        self._size = size

    def size(self) -> int:
        return min(self._size, max(0, self.parent.size() - self._zero))

    def seek(self, offset: int) -> None:
        self.parent.seek(offset + self._zero)

    def tell(self) -> int:
        return self.parent.tell() - self._zero

    def read_n(self, size: int) -> bytes:
        return self.parent.read_n(size)

    def write_n(self, data: bytes) -> None:
        self.parent.write_n(data)

    def resource_path(self) -> str:
        return f"{self.parent.resource_path()}+0x{self._zero:x}"


class TraceStream(Stream):
    """Passes everything to its parent and records which bytes were read."""

    def __init__(self, parent: Stream) -> None:
        super().__init__(parent)
        self.read_mask = [False] * parent.size()

    def size(self) -> int:
        return self.parent.size()

    def seek(self, offset: int) -> None:
        self.parent.seek(offset)

    def tell(self) -> int:
        return self.parent.tell()

    def read_n(self, size: int) -> bytes:
        pos = self.tell()
        data = self.parent.read_n(size)
        end = min(self.size(), pos + size, len(self.read_mask))
        if end > pos:
            self.read_mask[pos:end] = [True] * (end - pos)
        return data

    def write_n(self, data: bytes) -> None:
        self.parent.write_n(data)

    def resource_path(self) -> str:
        return f"tracepoint({self.parent.resource_path()})"