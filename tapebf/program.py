from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .opcodes import OPERAND_FORMATS, Opcode


class DecodeError(ValueError):
    """Raised when the byte stream does not decode into instructions."""


@dataclass(frozen=True)
class Instruction:
    address: int
    opcode: Opcode
    operand: Optional[int] = None

    @property
    def size(self) -> int:
        return 1 + self.opcode.operand_width

    @property
    def mnemonic(self) -> str:
        return self.opcode.mnemonic

    def format(self) -> str:
        if self.operand is None:
            return f"{self.address:04x}: {self.mnemonic}"
        return f"{self.address:04x}: {self.mnemonic:<6}{self.operand}"


def decode_at(code: bytes, address: int) -> Instruction:
    try:
        opcode = Opcode(code[address])
    except ValueError as exc:
        raise DecodeError(f"unknown opcode 0x{code[address]:02x} at 0x{address:04x}") from exc
    width = opcode.operand_width
    if not width:
        return Instruction(address, opcode)
    if address + 1 + width > len(code):
        raise DecodeError(f"truncated operand for {opcode.mnemonic} at 0x{address:04x}")
    (operand,) = struct.unpack_from(OPERAND_FORMATS[width], code, address + 1)
    return Instruction(address, opcode, operand)


@dataclass(frozen=True)
class Program:
    """Compiled bytecode, immutable once built."""

    code: bytes

    def __post_init__(self) -> None:
        if not self.code:
            raise ValueError("program must contain at least one instruction")

    def __len__(self) -> int:
        return len(self.code)

    def instruction_at(self, address: int) -> Instruction:
        return decode_at(self.code, address)

    def instructions(self) -> Iterator[Instruction]:
        address = 0
        while address < len(self.code):
            instruction = decode_at(self.code, address)
            yield instruction
            address += instruction.size

    def addresses(self) -> List[int]:
        return [instruction.address for instruction in self.instructions()]

    def dump(self) -> str:
        """Render one ``address: mnemonic operand`` line per instruction.

        Decoding stops with a ``???`` line at the first byte that is not a
        valid instruction. The layout is meant for people, not for parsing.
        """
        lines: List[str] = []
        address = 0
        while address < len(self.code):
            try:
                instruction = decode_at(self.code, address)
            except DecodeError:
                lines.append("???")
                break
            lines.append(instruction.format())
            address += instruction.size
        return "\n".join(lines)


__all__ = ["DecodeError", "Instruction", "Program", "decode_at"]
