from __future__ import annotations

import argparse
import shlex
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .compiler import compile_program
from .errors import CompileError, EvaluationError
from .interpreter import ExecutionState, Interpreter
from .program import DecodeError, Program


def _to_input_bytes(data: str) -> List[int]:
    return list(data.encode("utf-8"))


@dataclass
class VisualizerSession:
    """Instruction-by-instruction walk through a compiled program.

    Breakpoints are bytecode addresses; a step stops on one once the code
    pointer reaches it, before that instruction runs.
    """

    code: str
    input_template: List[int]
    tape_window: int = 10
    max_steps: Optional[int] = None
    history_limit: int = 200
    memory_limit: Optional[int] = None

    def __post_init__(self) -> None:
        self.program: Program = compile_program(self.code)
        self.breakpoints: set[int] = set()
        self.history: List[ExecutionState] = []
        self.hit_breakpoint: Optional[int] = None
        self.error: Optional[str] = None
        self._init_interpreter()

    def _init_interpreter(self) -> None:
        self.interpreter = Interpreter(memory_limit=self.memory_limit)
        self._restart_generator()
        self.finished = False
        self.error = None
        self.last_state: ExecutionState = self.interpreter.initial_state(
            self.program, tape_window=self.tape_window
        )
        self._record_state(self.last_state)

    def _restart_generator(self) -> None:
        self.step_iter = self.interpreter.step(
            self.program,
            input_data=list(self.input_template),
            max_steps=self.max_steps,
            tape_window=self.tape_window,
        )

    def restart(self) -> None:
        self._init_interpreter()

    def _record_state(self, state: ExecutionState) -> None:
        self.history.append(state)
        if len(self.history) > self.history_limit:
            self.history.pop(0)
        self.last_state = state

    def step_forward(self, count: int = 1) -> Sequence[ExecutionState]:
        states: List[ExecutionState] = []
        if count <= 0:
            return states
        self.hit_breakpoint = None
        for _ in range(count):
            if self.finished:
                break
            try:
                state = next(self.step_iter)
            except StopIteration:
                self.finished = True
                break
            except EvaluationError as exc:
                self.finished = True
                self.error = str(exc)
                raise
            self._record_state(state)
            states.append(state)
            if state.opcode is None:
                self.finished = True
                break
            if state.pc in self.breakpoints:
                self.hit_breakpoint = state.pc
                break
        if not states and self.finished:
            self.hit_breakpoint = None
        return states

    def run_until_break(self, limit: Optional[int] = None) -> Sequence[ExecutionState]:
        states: List[ExecutionState] = []
        executed = 0
        while limit is None or executed < limit:
            step_states = self.step_forward(1)
            if not step_states:
                break
            states.extend(step_states)
            executed += 1
            if self.hit_breakpoint is not None:
                break
        return states

    def current_state(self) -> ExecutionState:
        return self.last_state

    def add_breakpoint(self, pc: int) -> None:
        self.breakpoints.add(pc)

    def remove_breakpoint(self, pc: int) -> bool:
        if pc in self.breakpoints:
            self.breakpoints.remove(pc)
            return True
        return False

    def clear_breakpoints(self) -> None:
        self.breakpoints.clear()

    def list_breakpoints(self) -> List[int]:
        return sorted(self.breakpoints)

    def is_finished(self) -> bool:
        return self.finished


def format_state(state: ExecutionState, program: Program) -> str:
    lines: List[str] = []
    if state.opcode is None:
        executed = "(init)" if state.step == 0 else "(halt)"
    elif state.operand is None:
        executed = state.opcode
    else:
        executed = f"{state.opcode} {state.operand}"
    lines.append(
        f"step={state.step} pc={state.pc:04x}/{state.code_length:04x} "
        f"executed={executed} pointer={state.pointer}"
    )
    if state.output:
        lines.append(f"output={state.output!r}")
    tape_parts: List[str] = []
    for idx, value in enumerate(state.tape):
        absolute = state.tape_start + idx
        cell_repr = f"{absolute}:{value:4}"
        if absolute == state.pointer:
            tape_parts.append(f"[{cell_repr}]")
        else:
            tape_parts.append(f" {cell_repr} ")
    lines.append("tape=" + " ".join(tape_parts))
    lines.append(f"next={_format_next_instruction(program, state.pc)}")
    return "\n".join(lines)


def _format_next_instruction(program: Program, pc: int) -> str:
    if pc >= len(program):
        return "[END]"
    try:
        return program.instruction_at(pc).format()
    except DecodeError:
        return "???"


def run_repl(session: VisualizerSession) -> None:
    print("tapebf visualizer (type 'help' for commands)")
    _print_state(session.current_state(), session)
    while True:
        try:
            line = input("(viz) ").strip()
        except EOFError:
            print()
            break
        if not line:
            continue
        parts = shlex.split(line)
        command = parts[0].lower()
        args = parts[1:]
        try:
            if command in {"n", "next"}:
                count = 1
                if args:
                    count = max(1, int(args[0]))
                states = session.step_forward(count)
                if states:
                    _print_state(states[-1], session)
                elif session.is_finished():
                    print("Program has finished.")
            elif command in {"r", "run"}:
                limit = int(args[0]) if args else None
                states = session.run_until_break(limit)
                if states:
                    _print_state(states[-1], session)
                    if session.hit_breakpoint is not None:
                        print(f"Hit breakpoint {session.hit_breakpoint:04x}.")
                        session.hit_breakpoint = None
                elif session.is_finished():
                    print("Program has finished.")
            elif command == "state":
                _print_state(session.current_state(), session)
            elif command == "history":
                count = int(args[0]) if args else 10
                for state in session.history[-count:]:
                    print("-" * 40)
                    print(format_state(state, session.program))
            elif command == "dump":
                print(session.program.dump())
            elif command == "break":
                if not args:
                    print("Specify a bytecode address.")
                    continue
                pc = int(args[0], 0)
                session.add_breakpoint(pc)
                print(f"Breakpoint set at {pc:04x}.")
            elif command == "breaks":
                points = session.list_breakpoints()
                if not points:
                    print("No breakpoints.")
                else:
                    print("Breakpoints:", ", ".join(f"{pc:04x}" for pc in points))
            elif command == "clear":
                if not args:
                    session.clear_breakpoints()
                    print("All breakpoints removed.")
                else:
                    pc = int(args[0], 0)
                    if session.remove_breakpoint(pc):
                        print(f"Breakpoint {pc:04x} removed.")
                    else:
                        print(f"No breakpoint at {pc:04x}.")
            elif command == "restart":
                session.restart()
                print("Session restarted.")
                _print_state(session.current_state(), session)
            elif command in {"quit", "exit"}:
                break
            elif command == "help":
                _print_help()
            else:
                print("Unknown command. See 'help'.")
        except ValueError:
            print("Invalid number.", file=sys.stderr)
        except EvaluationError as exc:
            print(f"runtime error: {exc}", file=sys.stderr)


def _print_state(state: ExecutionState, session: VisualizerSession) -> None:
    print("-" * 40)
    print(format_state(state, session.program))


def _print_help() -> None:
    print(
        "Commands:\n"
        "  next [N]    : execute N instructions (default 1)\n"
        "  run [N]     : run until a breakpoint, the end, or N instructions\n"
        "  state       : show the current state\n"
        "  history [N] : show the last N states\n"
        "  dump        : disassemble the program\n"
        "  break PC    : set a breakpoint at bytecode address PC (0x.. accepted)\n"
        "  breaks      : list breakpoints\n"
        "  clear [PC]  : remove a breakpoint (all when PC is omitted)\n"
        "  restart     : reset the session\n"
        "  quit/exit   : leave\n"
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="tapebf bytecode visualizer")
    parser.add_argument("source", help="Path to Brainfuck source file")
    parser.add_argument(
        "--input",
        default="",
        help="String supplied to the program as input",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=5_000_000,
        help="Step budget (default: 5,000,000)",
    )
    parser.add_argument(
        "--tape-window",
        type=int,
        default=10,
        help="Number of cells shown on each side of the pointer",
    )
    parser.add_argument(
        "--history-limit",
        type=int,
        default=200,
        help="Number of states kept in history",
    )
    args = parser.parse_args(argv)

    try:
        source_text = Path(args.source).read_text(encoding="utf-8")
    except OSError as exc:
        print(f"Cannot open source file: {exc}", file=sys.stderr)
        return 1

    try:
        session = VisualizerSession(
            source_text,
            input_template=_to_input_bytes(args.input),
            tape_window=args.tape_window,
            max_steps=args.max_steps,
            history_limit=args.history_limit,
        )
    except CompileError as exc:
        print(f"syntax error: {exc}", file=sys.stderr)
        return 1

    run_repl(session)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
