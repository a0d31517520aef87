from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Union

from .compiler import compile_program
from .errors import (
    EvaluationError,
    InputError,
    InternalError,
    OutputError,
    StepLimitExceeded,
)
from .opcodes import Opcode
from .program import DecodeError, Instruction, Program
from .streams import ByteSink, ByteSource, MemorySink, MemorySource
from .tape import Cursor, Tape

logger = logging.getLogger(__name__)

_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")

NXT = int(Opcode.NXT)
PRV = int(Opcode.PRV)
INC = int(Opcode.INC)
DEC = int(Opcode.DEC)
OUT = int(Opcode.OUT)
IN = int(Opcode.IN)
JFZ = int(Opcode.JFZ)
JBN = int(Opcode.JBN)
HLT = int(Opcode.HLT)
NXT_N = int(Opcode.NXT_N)
PRV_N = int(Opcode.PRV_N)
INC_N = int(Opcode.INC_N)
DEC_N = int(Opcode.DEC_N)

Code = Union[Program, str, bytes]
InputData = Union[bytes, bytearray, str, Iterable[int]]


def _fetch(code: bytes, pc: int) -> int:
    if not 0 <= pc < len(code):
        raise InternalError(f"internal error: code pointer out of range (CP=0x{pc:02x})")
    return code[pc]


def _operand(layout: struct.Struct, code: bytes, pc: int) -> int:
    try:
        (value,) = layout.unpack_from(code, pc)
    except struct.error as exc:
        raise InternalError(f"internal error: truncated operand (CP=0x{pc - 1:02x})") from exc
    return value


@dataclass
class ExecutionState:
    step: int
    pc: int
    opcode: Optional[str]
    operand: Optional[int]
    pointer: int
    tape_start: int
    tape: List[int]
    output: bytes
    code_length: int
    memory_used: int


@dataclass
class Interpreter:
    """Executes compiled programs on a fresh :class:`Tape` per run.

    ``memory_limit`` of ``None`` defers to the process-wide ceiling set with
    :func:`tapebf.tape.set_memory_ceiling`; ``0`` means unlimited.
    """

    memory_limit: Optional[int] = None

    def run(
        self,
        code: Code,
        input_data: InputData = b"",
        max_steps: Optional[int] = None,
    ) -> bytes:
        program = self._as_program(code)
        sink = MemorySink()
        self.evaluate(program, MemorySource(input_data), sink, max_steps=max_steps)
        return sink.getvalue()

    def evaluate(
        self,
        program: Program,
        source: ByteSource,
        sink: ByteSink,
        max_steps: Optional[int] = None,
    ) -> None:
        self._check_program(program)
        code = program.code
        logger.debug("evaluating %d bytes of bytecode", len(code))
        with Tape(self.memory_limit) as tape:
            cursor = tape.cursor()
            pc = 0
            steps = 0
            try:
                while _fetch(code, pc) != HLT:
                    if max_steps is not None and steps >= max_steps:
                        raise StepLimitExceeded("program exceeded allowed step count")
                    pc = self._execute_instruction(code, pc, cursor, source, sink)
                    steps += 1
            except EvaluationError as exc:
                logger.debug("evaluation aborted after %d steps: %s", steps, exc)
                raise
            logger.debug("evaluation halted after %d steps, %d B of tape", steps, tape.memory_used)

    def step(
        self,
        code: Code,
        input_data: Optional[InputData] = None,
        max_steps: Optional[int] = None,
        tape_window: int = 10,
    ) -> Iterator[ExecutionState]:
        program = self._as_program(code)
        self._check_program(program)
        source = MemorySource(input_data or b"")
        sink = MemorySink()
        code_bytes = program.code
        with Tape(self.memory_limit) as tape:
            cursor = tape.cursor()
            pc = 0
            steps = 0
            while True:
                try:
                    instruction = program.instruction_at(pc)
                except (DecodeError, IndexError) as exc:
                    raise InternalError(f"internal error: {exc}") from exc
                if instruction.opcode is Opcode.HLT:
                    break
                if max_steps is not None and steps >= max_steps:
                    raise StepLimitExceeded("program exceeded allowed step count")
                pc = self._execute_instruction(code_bytes, pc, cursor, source, sink)
                steps += 1
                yield self._snapshot(tape, cursor, pc, instruction, steps, sink, program, tape_window)

            # Emit final snapshot indicating completion
            yield self._snapshot(tape, cursor, pc, None, steps, sink, program, tape_window)

    def initial_state(self, code: Code, tape_window: int = 10) -> ExecutionState:
        program = self._as_program(code)
        with Tape(0) as tape:
            return self._snapshot(
                tape, tape.cursor(), 0, None, 0, MemorySink(), program, tape_window
            )

    def _execute_instruction(
        self,
        code: bytes,
        pc: int,
        cursor: Cursor,
        source: ByteSource,
        sink: ByteSink,
    ) -> int:
        opcode = _fetch(code, pc)
        pc += 1
        if opcode == INC:
            cursor.add(1)
        elif opcode == DEC:
            cursor.add(-1)
        elif opcode == NXT:
            cursor.advance()
        elif opcode == PRV:
            cursor.retreat()
        elif opcode == INC_N:
            cursor.add(_operand(_U8, code, pc))
            pc += 1
        elif opcode == DEC_N:
            cursor.add(-_operand(_U8, code, pc))
            pc += 1
        elif opcode == NXT_N:
            count = _operand(_U16, code, pc)
            pc += 2
            cursor.advance_by(count)
        elif opcode == PRV_N:
            count = _operand(_U16, code, pc)
            pc += 2
            cursor.retreat_by(count)
        elif opcode == JFZ:
            offset = _operand(_U32, code, pc)
            pc += 4
            if not cursor.raw:
                pc += offset
        elif opcode == JBN:
            offset = _operand(_U32, code, pc)
            pc += 4
            if cursor.raw:
                pc -= offset
                if pc < 0:
                    raise InternalError(f"internal error: jump before program start (CP=0x{pc + offset - 5:02x})")
        elif opcode == OUT:
            if not sink.write1(cursor.raw):
                raise OutputError()
        elif opcode == IN:
            value = source.read1()
            if value < 0:
                raise InputError()
            cursor.raw = value
        else:
            raise InternalError(f"internal error: unknown opcode 0x{opcode:02x} (CP=0x{pc - 1:02x})")
        return pc

    def _snapshot(
        self,
        tape: Tape,
        cursor: Cursor,
        pc: int,
        instruction: Optional[Instruction],
        step: int,
        sink: MemorySink,
        program: Program,
        tape_window: int,
    ) -> ExecutionState:
        start, tape_view = tape.window(cursor.position, tape_window)
        return ExecutionState(
            step=step,
            pc=pc,
            opcode=instruction.mnemonic if instruction is not None else None,
            operand=instruction.operand if instruction is not None else None,
            pointer=cursor.position,
            tape_start=start,
            tape=tape_view,
            output=sink.getvalue(),
            code_length=len(program),
            memory_used=tape.memory_used,
        )

    def _as_program(self, code: Code) -> Program:
        if isinstance(code, Program):
            return code
        return compile_program(code)

    def _check_program(self, program: Program) -> None:
        if program.code[-1] != HLT:
            raise InternalError("internal error: program is not terminated by HLT")


__all__ = ["ExecutionState", "Interpreter"]
