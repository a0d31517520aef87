from __future__ import annotations

from typing import List

CHUNK_SIZE = 128


class CodeBuffer:
    """Append-only byte buffer made of fixed-capacity chunks.

    Bytes written by a single :meth:`append` call always land in one chunk, so
    a value emitted as a placeholder can later be overwritten in place with
    :meth:`patch`.
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size
        self._chunks: List[bytearray] = [bytearray()]
        self._length = 0

    def __len__(self) -> int:
        return self._length

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    def _add_chunk(self) -> bytearray:
        chunk = bytearray()
        self._chunks.append(chunk)
        return chunk

    def append1(self, value: int) -> None:
        chunk = self._chunks[-1]
        if len(chunk) >= self.chunk_size:
            chunk = self._add_chunk()
        chunk.append(value)
        self._length += 1

    def append(self, data: bytes) -> None:
        chunk = self._chunks[-1]
        if len(chunk) + len(data) > self.chunk_size:
            chunk = self._add_chunk()
        chunk.extend(data)
        self._length += len(data)

    def _locate(self, offset: int, size: int) -> tuple[bytearray, int]:
        if offset < 0 or size < 0 or offset + size > self._length:
            raise IndexError(f"range {offset}+{size} outside buffer of length {self._length}")

        # Common case: the target is inside the chunk being written.
        last = self._chunks[-1]
        distance = self._length - offset
        if distance <= len(last):
            index = len(last) - distance
        else:
            index = offset
            for last in self._chunks:
                if index < len(last):
                    break
                index -= len(last)
        if index + size > len(last):
            raise IndexError(f"range {offset}+{size} spans a chunk boundary")
        return last, index

    def read(self, offset: int, size: int) -> bytes:
        chunk, index = self._locate(offset, size)
        return bytes(chunk[index:index + size])

    def patch(self, offset: int, data: bytes) -> None:
        chunk, index = self._locate(offset, len(data))
        chunk[index:index + len(data)] = data

    def to_bytes(self) -> bytes:
        return b"".join(self._chunks)


class BlockStack:
    """Offsets of the pending forward-jump operands, innermost last."""

    def __init__(self) -> None:
        self._offsets: List[int] = []

    def __len__(self) -> int:
        return len(self._offsets)

    def __bool__(self) -> bool:
        return bool(self._offsets)

    def push(self, offset: int) -> None:
        self._offsets.append(offset)

    def peek(self) -> int:
        if not self._offsets:
            raise IndexError("peek on empty block stack")
        return self._offsets[-1]

    def pop(self) -> int:
        if not self._offsets:
            raise IndexError("pop from empty block stack")
        return self._offsets.pop()


__all__ = ["BlockStack", "CHUNK_SIZE", "CodeBuffer"]
