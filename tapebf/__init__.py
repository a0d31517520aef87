__version__ = "0.1.0"

from .codebuf import BlockStack, CodeBuffer
from .compiler import Compiler, compile_program
from .errors import (
    BrainfuckError,
    CompileError,
    EvaluationError,
    InputError,
    InternalError,
    OutputError,
    StepLimitExceeded,
    TapeMemoryError,
)
from .interpreter import ExecutionState, Interpreter
from .opcodes import Opcode
from .program import Instruction, Program
from .tape import Tape, get_memory_ceiling, set_memory_ceiling
from .visualizer import VisualizerSession

__all__ = [
    "BlockStack",
    "BrainfuckError",
    "CodeBuffer",
    "CompileError",
    "Compiler",
    "EvaluationError",
    "ExecutionState",
    "InputError",
    "Instruction",
    "InternalError",
    "Interpreter",
    "Opcode",
    "OutputError",
    "Program",
    "StepLimitExceeded",
    "Tape",
    "TapeMemoryError",
    "VisualizerSession",
    "compile_program",
    "get_memory_ceiling",
    "set_memory_ceiling",
]
