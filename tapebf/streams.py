"""Byte sources and sinks consumed by the compiler and the interpreter.

A source hands out one byte at a time from :meth:`read1` and returns
:data:`EOF` once nothing more can be read, whether the stream ended or failed.
A sink accepts one byte at a time and reports failure by returning ``False``.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import BinaryIO, Iterable, Optional, Protocol, TextIO, Union

EOF = -1


class ByteSource(Protocol):
    def read1(self) -> int:
        ...


class ByteSink(Protocol):
    def write1(self, value: int) -> bool:
        ...


class MemorySource:
    def __init__(self, data: Union[bytes, bytearray, str, Iterable[int]] = b"") -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.data = bytes(data)
        self.position = 0

    def read1(self) -> int:
        if self.position >= len(self.data):
            return EOF
        value = self.data[self.position]
        self.position += 1
        return value

    def remaining(self) -> bytes:
        return self.data[self.position:]


class FileSource:
    def __init__(self, stream: BinaryIO, *, owned: bool = False) -> None:
        self.stream = stream
        self.owned = owned

    @classmethod
    def open(cls, path: Union[str, Path]) -> "FileSource":
        return cls(open(path, "rb"), owned=True)

    def read1(self) -> int:
        try:
            chunk = self.stream.read(1)
        except (OSError, ValueError):
            return EOF
        if not chunk:
            return EOF
        return chunk[0]

    def close(self) -> None:
        if self.owned:
            self.stream.close()

    def __enter__(self) -> "FileSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class MemorySink:
    def __init__(self, limit: Optional[int] = None) -> None:
        self.buffer = bytearray()
        self.limit = limit

    def write1(self, value: int) -> bool:
        if self.limit is not None and len(self.buffer) >= self.limit:
            return False
        self.buffer.append(value & 0xFF)
        return True

    def getvalue(self) -> bytes:
        return bytes(self.buffer)


class FileSink:
    def __init__(self, stream: BinaryIO, *, owned: bool = False, flush: bool = False) -> None:
        self.stream = stream
        self.owned = owned
        self.flush_each = flush

    @classmethod
    def open(cls, path: Union[str, Path]) -> "FileSink":
        return cls(open(path, "wb"), owned=True)

    def write1(self, value: int) -> bool:
        try:
            self.stream.write(bytes((value & 0xFF,)))
            if self.flush_each:
                self.stream.flush()
        except (OSError, ValueError):
            return False
        return True

    def close(self) -> None:
        if self.owned:
            self.stream.close()
        else:
            self.stream.flush()

    def __enter__(self) -> "FileSink":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class TextSink:
    """Sink over a text stream; each byte is written as the Latin-1 character."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def write1(self, value: int) -> bool:
        try:
            self.stream.write(chr(value & 0xFF))
        except (OSError, ValueError):
            return False
        return True

    def close(self) -> None:
        self.stream.flush()


def stdin_source() -> FileSource:
    return FileSource(sys.stdin.buffer)


def stdout_sink() -> Union[FileSink, TextSink]:
    stream = getattr(sys.stdout, "buffer", None)
    if stream is None:
        return TextSink(sys.stdout)
    # Flushing per byte keeps prompts visible while the program waits on input.
    return FileSink(stream, flush=sys.stdout.isatty())


__all__ = [
    "ByteSink",
    "ByteSource",
    "EOF",
    "FileSink",
    "FileSource",
    "MemorySink",
    "MemorySource",
    "TextSink",
    "stdin_source",
    "stdout_sink",
]
