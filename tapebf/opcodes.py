"""Instruction set of the tapebf bytecode."""
from __future__ import annotations

from enum import IntEnum
from typing import Dict


class Opcode(IntEnum):
    NXT = 0x00  # next data cell
    PRV = 0x01  # previous data cell
    INC = 0x02  # increase data
    DEC = 0x03  # decrease data
    OUT = 0x04  # output data as a byte
    IN = 0x05  # input data as a byte
    JFZ = 0x06  # jump forward if data is zero
    JBN = 0x07  # jump backward if data is nonzero
    HLT = 0x08  # halt
    NXT_N = 0x09  # NXT * n
    PRV_N = 0x0A  # PRV * n
    INC_N = 0x0B  # INC * n
    DEC_N = 0x0C  # DEC * n

    @property
    def mnemonic(self) -> str:
        if self.name.endswith("_N"):
            return self.name[:-2] + "n"
        return self.name

    @property
    def operand_width(self) -> int:
        return OPERAND_WIDTHS[self]


OPERAND_WIDTHS: Dict[Opcode, int] = {
    Opcode.NXT: 0,
    Opcode.PRV: 0,
    Opcode.INC: 0,
    Opcode.DEC: 0,
    Opcode.OUT: 0,
    Opcode.IN: 0,
    Opcode.JFZ: 4,
    Opcode.JBN: 4,
    Opcode.HLT: 0,
    Opcode.NXT_N: 2,
    Opcode.PRV_N: 2,
    Opcode.INC_N: 1,
    Opcode.DEC_N: 1,
}

# single-step opcode -> its run-length encoded variant
REPEATED: Dict[Opcode, Opcode] = {
    Opcode.NXT: Opcode.NXT_N,
    Opcode.PRV: Opcode.PRV_N,
    Opcode.INC: Opcode.INC_N,
    Opcode.DEC: Opcode.DEC_N,
}

# struct format of each operand width, little-endian unsigned
OPERAND_FORMATS: Dict[int, str] = {1: "<B", 2: "<H", 4: "<I"}


def max_repeat(opcode: Opcode) -> int:
    """Largest count the repeated variant of ``opcode`` can carry."""
    width = OPERAND_WIDTHS[REPEATED[opcode]]
    return (1 << (8 * width)) - 1


__all__ = ["Opcode", "OPERAND_FORMATS", "OPERAND_WIDTHS", "REPEATED", "max_repeat"]
