from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from .codebuf import BlockStack, CodeBuffer
from .errors import CompileError
from .opcodes import OPERAND_FORMATS, REPEATED, Opcode, max_repeat
from .program import Program
from .streams import EOF, ByteSource, MemorySource

logger = logging.getLogger(__name__)

TOKENS: Dict[int, Opcode] = {
    ord(">"): Opcode.NXT,
    ord("<"): Opcode.PRV,
    ord("+"): Opcode.INC,
    ord("-"): Opcode.DEC,
    ord("."): Opcode.OUT,
    ord(","): Opcode.IN,
    ord("["): Opcode.JFZ,
    ord("]"): Opcode.JBN,
}

JUMP_PLACEHOLDER = b"\x00\x00\x00\x00"

Source = Union[ByteSource, str, bytes, bytearray]


@dataclass(frozen=True)
class Token:
    opcode: Optional[Opcode]  # None marks end of input
    line: int
    column: int


class Scanner:
    """Turns a byte source into tokens, skipping every non-command byte."""

    def __init__(self, source: ByteSource) -> None:
        self.source = source
        self.line = 1
        self.column = 0
        self.current = self._scan()

    def _scan(self) -> Token:
        while True:
            value = self.source.read1()
            self.column += 1
            if value == EOF:
                return Token(None, self.line, self.column)
            opcode = TOKENS.get(value)
            if opcode is not None:
                return Token(opcode, self.line, self.column)
            if value == 0x0A:
                self.line += 1
                self.column = 0

    def peek(self) -> Token:
        return self.current

    def next(self) -> Token:
        token = self.current
        self.current = self._scan()
        return token


class Compiler:
    """Single-pass Brainfuck to bytecode compiler.

    Consecutive ``> < + -`` are merged into one repeated instruction. Loop
    brackets are paired with a :class:`BlockStack` of forward-jump operand
    offsets; each forward jump is emitted with a placeholder and back-patched
    when its ``]`` is reached.
    """

    def compile(self, source: Source) -> Program:
        if isinstance(source, (str, bytes, bytearray)):
            source = MemorySource(source)
        scanner = Scanner(source)
        code = CodeBuffer()
        blocks = BlockStack()
        open_brackets: List[Tuple[int, int]] = []

        while True:
            token = scanner.next()
            opcode = token.opcode
            if opcode is None:
                break
            if opcode in REPEATED:
                count = 1
                while scanner.peek().opcode is opcode:
                    scanner.next()
                    count += 1
                self._emit_run(code, opcode, count)
            elif opcode is Opcode.JFZ:
                code.append1(Opcode.JFZ)
                blocks.push(len(code))
                open_brackets.append((token.line, token.column))
                code.append(JUMP_PLACEHOLDER)
            elif opcode is Opcode.JBN:
                code.append1(Opcode.JBN)
                if not blocks:
                    raise CompileError("no matching `[' for this `]'", token.line, token.column)
                position = blocks.pop()
                open_brackets.pop()
                displacement = struct.pack("<I", len(code) - position)
                code.append(displacement)
                code.patch(position, displacement)
            else:
                code.append1(opcode)

        if blocks:
            line, column = open_brackets[-1]
            raise CompileError("`[' is not closed", line, column)

        code.append1(Opcode.HLT)
        program = Program(code.to_bytes())
        logger.debug("compiled %d bytes of bytecode (%d lines scanned)", len(program), scanner.line)
        return program

    def _emit_run(self, code: CodeBuffer, opcode: Opcode, count: int) -> None:
        repeated = REPEATED[opcode]
        fmt = OPERAND_FORMATS[repeated.operand_width]
        limit = max_repeat(opcode)
        while count > 0:
            if count == 1:
                code.append1(opcode)
                return
            n = min(count, limit)
            code.append1(repeated)
            code.append(struct.pack(fmt, n))
            count -= n


def compile_program(source: Source) -> Program:
    return Compiler().compile(source)


__all__ = ["Compiler", "Scanner", "Token", "TOKENS", "compile_program"]
