"""Chunked, bidirectionally growing tape of signed 8-bit cells.

Cells live in fixed-size chunks linked in both directions. A :class:`Cursor`
is the only way to reach a cell; stepping off either end of a chunk links in
a fresh zeroed chunk, after checking the memory ceiling.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .errors import TapeMemoryError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 128

_memory_ceiling = 0


def set_memory_ceiling(size: int) -> None:
    """Set the process-wide cell memory ceiling in bytes (0 disables it)."""
    global _memory_ceiling
    if size < 0:
        raise ValueError("memory ceiling must be non-negative")
    _memory_ceiling = size


def get_memory_ceiling() -> int:
    return _memory_ceiling


class _Chunk:
    __slots__ = ("cells", "base", "prev", "next")

    def __init__(self, size: int, base: int) -> None:
        self.cells = bytearray(size)
        self.base = base
        self.prev: Optional[_Chunk] = None
        self.next: Optional[_Chunk] = None


class Tape:
    def __init__(self, memory_limit: Optional[int] = None, chunk_size: int = CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.memory_limit = get_memory_ceiling() if memory_limit is None else memory_limit
        self.chunk_size = chunk_size
        self.memory_used = chunk_size
        self._origin: Optional[_Chunk] = _Chunk(chunk_size, 0)

    def __enter__(self) -> "Tape":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    @property
    def released(self) -> bool:
        return self._origin is None

    def cursor(self) -> "Cursor":
        if self._origin is None:
            raise RuntimeError("tape has been released")
        return Cursor(self, self._origin)

    def _reserve(self) -> None:
        if self.memory_limit and self.memory_used + self.chunk_size > self.memory_limit:
            logger.warning(
                "tape memory ceiling reached (%d B used, %d B limit)",
                self.memory_used,
                self.memory_limit,
            )
            raise TapeMemoryError(self.memory_used, self.memory_limit)
        self.memory_used += self.chunk_size

    def _next_chunk(self, chunk: _Chunk) -> _Chunk:
        if chunk.next is None:
            self._reserve()
            new_chunk = _Chunk(self.chunk_size, chunk.base + self.chunk_size)
            new_chunk.prev = chunk
            chunk.next = new_chunk
            logger.debug("tape grew right to cell %d", new_chunk.base + self.chunk_size - 1)
        return chunk.next

    def _prev_chunk(self, chunk: _Chunk) -> _Chunk:
        if chunk.prev is None:
            self._reserve()
            new_chunk = _Chunk(self.chunk_size, chunk.base - self.chunk_size)
            new_chunk.next = chunk
            chunk.prev = new_chunk
            logger.debug("tape grew left to cell %d", new_chunk.base)
        return chunk.prev

    def chunk_count(self) -> int:
        return self.memory_used // self.chunk_size

    def window(self, position: int, radius: int) -> Tuple[int, List[int]]:
        """Signed values of the cells ``position - radius .. position + radius``.

        Cells that were never allocated read as zero; nothing is allocated.
        """
        start = position - radius
        end = position + radius + 1
        values = [0] * (end - start)
        chunk = self._origin
        while chunk is not None and chunk.prev is not None and chunk.base > start:
            chunk = chunk.prev
        while chunk is not None and chunk.base < end:
            for cell in range(max(start, chunk.base), min(end, chunk.base + len(chunk.cells))):
                raw = chunk.cells[cell - chunk.base]
                values[cell - start] = raw - 256 if raw > 127 else raw
            chunk = chunk.next
        return start, values

    def release(self) -> None:
        chunk = self._origin
        if chunk is None:
            return
        left = chunk.prev
        while left is not None:
            left.next, left.prev, left = None, None, left.prev
        right = chunk.next
        while right is not None:
            right.prev, right.next, right = None, None, right.next
        chunk.prev = chunk.next = None
        self._origin = None


class Cursor:
    """Movable position on a :class:`Tape`."""

    __slots__ = ("tape", "chunk", "index")

    def __init__(self, tape: Tape, chunk: _Chunk) -> None:
        self.tape = tape
        self.chunk = chunk
        self.index = 0

    @property
    def position(self) -> int:
        return self.chunk.base + self.index

    @property
    def raw(self) -> int:
        return self.chunk.cells[self.index]

    @raw.setter
    def raw(self, value: int) -> None:
        self.chunk.cells[self.index] = value & 0xFF

    @property
    def value(self) -> int:
        raw = self.chunk.cells[self.index]
        return raw - 256 if raw > 127 else raw

    @value.setter
    def value(self, value: int) -> None:
        self.chunk.cells[self.index] = value & 0xFF

    def add(self, amount: int) -> None:
        cells = self.chunk.cells
        cells[self.index] = (cells[self.index] + amount) & 0xFF

    def advance(self) -> None:
        if self.index < len(self.chunk.cells) - 1:
            self.index += 1
        else:
            self.chunk = self.tape._next_chunk(self.chunk)
            self.index = 0

    def retreat(self) -> None:
        if self.index > 0:
            self.index -= 1
        else:
            self.chunk = self.tape._prev_chunk(self.chunk)
            self.index = len(self.chunk.cells) - 1

    def advance_by(self, count: int) -> None:
        while count > 0:
            room = len(self.chunk.cells) - 1 - self.index
            if count <= room:
                self.index += count
                return
            count -= room + 1
            self.chunk = self.tape._next_chunk(self.chunk)
            self.index = 0

    def retreat_by(self, count: int) -> None:
        while count > 0:
            if count <= self.index:
                self.index -= count
                return
            count -= self.index + 1
            self.chunk = self.tape._prev_chunk(self.chunk)
            self.index = len(self.chunk.cells) - 1


__all__ = ["CHUNK_SIZE", "Cursor", "Tape", "get_memory_ceiling", "set_memory_ceiling"]
