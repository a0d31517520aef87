from __future__ import annotations


class BrainfuckError(Exception):
    """Base class for every error reported by the compiler and interpreter."""


class CompileError(BrainfuckError):
    def __init__(self, message: str, line: int, column: int) -> None:
        super().__init__(f"{line}:{column}: {message}")
        self.message = message
        self.line = line
        self.column = column


class EvaluationError(BrainfuckError):
    """Fatal condition that aborts the current evaluation."""


class TapeMemoryError(EvaluationError):
    def __init__(self, used: int, limit: int) -> None:
        super().__init__(f"out of memory ({used} B / {limit} B)")
        self.used = used
        self.limit = limit


class InputError(EvaluationError):
    def __init__(self, message: str = "input error") -> None:
        super().__init__(message)


class OutputError(EvaluationError):
    def __init__(self, message: str = "output error") -> None:
        super().__init__(message)


class InternalError(EvaluationError):
    pass


class StepLimitExceeded(EvaluationError):
    """Raised when execution exceeds the configured step budget."""


__all__ = [
    "BrainfuckError",
    "CompileError",
    "EvaluationError",
    "InputError",
    "InternalError",
    "OutputError",
    "StepLimitExceeded",
    "TapeMemoryError",
]
