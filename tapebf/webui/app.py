from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Response, status
from pydantic import BaseModel, Field, validator

from tapebf import __version__
from tapebf.compiler import compile_program
from tapebf.errors import CompileError, EvaluationError, StepLimitExceeded
from tapebf.interpreter import ExecutionState, Interpreter
from tapebf.program import Program
from tapebf.tape import get_memory_ceiling
from tapebf.visualizer import VisualizerSession

from .session import SessionRecord, SessionStore

logger = logging.getLogger(__name__)

SUPPORTED_ENCODINGS = {"utf-8", "latin-1"}


def _string_to_input_bytes(data: str, encoding: str = "utf-8") -> List[int]:
    return list(data.encode(encoding))


def _state_to_dict(state: ExecutionState) -> dict:
    return {
        "step": state.step,
        "pc": state.pc,
        "opcode": state.opcode,
        "operand": state.operand,
        "pointer": state.pointer,
        "tape_start": state.tape_start,
        "tape": list(state.tape),
        "output": list(state.output),
        "code_length": state.code_length,
        "memory_used": state.memory_used,
    }


def _effective_memory_limit(requested: Optional[int]) -> Optional[int]:
    """A request may tighten the process-wide ceiling but never lift it."""
    ceiling = get_memory_ceiling()
    if requested is None or not ceiling:
        return requested
    if requested == 0 or requested > ceiling:
        return ceiling
    return requested


def _compile_error_detail(exc: CompileError) -> dict:
    return {"message": exc.message, "line": exc.line, "column": exc.column}


def _compile_or_422(code: str) -> Program:
    try:
        return compile_program(code)
    except CompileError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=_compile_error_detail(exc),
        ) from exc


def _calculate_total_steps(
    program: Program,
    input_template: List[int],
    memory_limit: Optional[int] = None,
    cap: int = 10000,
) -> tuple[int, bool]:
    interpreter = Interpreter(memory_limit=memory_limit)
    total = 0
    try:
        for state in interpreter.step(
            program,
            input_data=list(input_template),
            max_steps=cap,
        ):
            if state.step > total:
                total = state.step
    except StepLimitExceeded:
        return cap, True
    except EvaluationError:
        # The run fails at this point; the session reports the error when it gets there.
        return total, False
    return total, total >= cap


class EncodedInput(BaseModel):
    input: str = ""
    encoding: str = "utf-8"

    @validator("encoding")
    def validate_encoding(cls, value: str, values: dict) -> str:
        normalized = value.lower().replace("_", "-")
        if normalized == "latin1":
            normalized = "latin-1"
        if normalized not in SUPPORTED_ENCODINGS:
            raise ValueError("encoding must be either 'utf-8' or 'latin-1'")
        try:
            values.get("input", "").encode(normalized)
        except UnicodeEncodeError as exc:
            raise ValueError(f"input cannot be encoded as {normalized}") from exc
        return normalized


class CompileRequest(BaseModel):
    code: str


class InstructionModel(BaseModel):
    address: int
    mnemonic: str
    operand: Optional[int]


class CompileResponse(BaseModel):
    length: int
    dump: str
    instructions: List[InstructionModel]


class RunRequest(EncodedInput):
    code: str
    memory_limit: Optional[int] = Field(default=None, ge=0)
    max_steps: int = Field(default=1_000_000, ge=1)


class RunResponse(BaseModel):
    output: str
    output_bytes: List[int]


class SessionConfiguration(EncodedInput):
    code: str = ""
    tape_window: int = Field(default=10, ge=0)
    max_steps: Optional[int] = Field(default=None, ge=1)
    history_limit: int = Field(default=200, ge=1)
    memory_limit: Optional[int] = Field(default=None, ge=0)


class SessionState(BaseModel):
    step: int
    pc: int
    opcode: Optional[str]
    operand: Optional[int]
    pointer: int
    tape_start: int
    tape: List[int]
    output: List[int]
    code_length: int
    memory_used: int


class SessionPayload(BaseModel):
    session_id: str
    code: str
    dump: str
    state: SessionState
    history: List[SessionState]
    finished: bool
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    error: Optional[str]
    total_steps: int
    total_steps_capped: bool


class StepRequest(BaseModel):
    count: int = Field(default=1, ge=1)


class StepResponse(BaseModel):
    session_id: str
    states: List[SessionState]
    history: List[SessionState]
    finished: bool
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    error: Optional[str]
    total_steps: int
    total_steps_capped: bool


class SessionRunRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)
    ignore_breakpoints: bool = False


class BreakpointRequest(BaseModel):
    pc: int = Field(ge=0)


def create_app(store: Optional[SessionStore] = None) -> FastAPI:
    session_store = store or SessionStore()
    app = FastAPI(title="tapebf API", version=__version__)

    def _history_states(session: VisualizerSession) -> List[SessionState]:
        return [SessionState(**_state_to_dict(state)) for state in session.history]

    def _serialize_states(states: List[ExecutionState]) -> List[SessionState]:
        return [SessionState(**_state_to_dict(state)) for state in states]

    def _build_payload(record: SessionRecord) -> SessionPayload:
        session = record.session
        state = session.current_state()
        return SessionPayload(
            session_id=record.session_id,
            code=session.code,
            dump=session.program.dump(),
            state=SessionState(**_state_to_dict(state)),
            history=_history_states(session),
            finished=session.is_finished(),
            history_size=len(session.history),
            breakpoints=session.list_breakpoints(),
            hit_breakpoint=session.hit_breakpoint,
            error=session.error,
            total_steps=record.total_steps,
            total_steps_capped=record.total_steps_capped,
        )

    def _build_step_response(record: SessionRecord, states: List[ExecutionState]) -> StepResponse:
        session = record.session
        return StepResponse(
            session_id=record.session_id,
            states=_serialize_states(states),
            history=_history_states(session),
            finished=session.is_finished(),
            history_size=len(session.history),
            breakpoints=session.list_breakpoints(),
            hit_breakpoint=session.hit_breakpoint,
            error=session.error,
            total_steps=record.total_steps,
            total_steps_capped=record.total_steps_capped,
        )

    def _get_record(session_id: str) -> SessionRecord:
        try:
            return session_store.get(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    def _evaluation_http_error(exc: EvaluationError) -> HTTPException:
        if isinstance(exc, StepLimitExceeded):
            return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    @app.post("/api/compile", response_model=CompileResponse)
    def compile_code(payload: CompileRequest) -> CompileResponse:
        program = _compile_or_422(payload.code)
        return CompileResponse(
            length=len(program),
            dump=program.dump(),
            instructions=[
                InstructionModel(
                    address=instruction.address,
                    mnemonic=instruction.mnemonic,
                    operand=instruction.operand,
                )
                for instruction in program.instructions()
            ],
        )

    @app.post("/api/run", response_model=RunResponse)
    def run_code(payload: RunRequest) -> RunResponse:
        program = _compile_or_422(payload.code)
        interpreter = Interpreter(memory_limit=_effective_memory_limit(payload.memory_limit))
        try:
            output = interpreter.run(
                program,
                input_data=_string_to_input_bytes(payload.input, payload.encoding),
                max_steps=payload.max_steps,
            )
        except EvaluationError as exc:
            logger.info("run failed: %s", exc)
            raise _evaluation_http_error(exc) from exc
        return RunResponse(
            output=output.decode(payload.encoding, errors="replace"),
            output_bytes=list(output),
        )

    @app.post("/api/session", response_model=SessionPayload, status_code=status.HTTP_201_CREATED)
    def create_session(payload: SessionConfiguration) -> SessionPayload:
        program = _compile_or_422(payload.code)
        input_bytes = _string_to_input_bytes(payload.input, payload.encoding)
        memory_limit = _effective_memory_limit(payload.memory_limit)
        total_steps, total_steps_capped = _calculate_total_steps(
            program,
            input_bytes,
            memory_limit=memory_limit,
        )

        record: SessionRecord = session_store.create_session(
            code=payload.code,
            input_template=input_bytes,
            tape_window=payload.tape_window,
            max_steps=payload.max_steps,
            history_limit=payload.history_limit,
            memory_limit=memory_limit,
            total_steps=total_steps,
            total_steps_capped=total_steps_capped,
        )
        return _build_payload(record)

    @app.get("/api/session/{session_id}", response_model=SessionPayload)
    def get_session(session_id: str) -> SessionPayload:
        return _build_payload(_get_record(session_id))

    @app.post("/api/session/{session_id}/reset", response_model=SessionPayload)
    def reset_session(session_id: str) -> SessionPayload:
        try:
            record = session_store.reset(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return _build_payload(record)

    @app.post("/api/session/{session_id}/step", response_model=StepResponse)
    def step_session(session_id: str, payload: StepRequest) -> StepResponse:
        record = _get_record(session_id)
        try:
            states = list(record.session.step_forward(payload.count))
        except EvaluationError as exc:
            raise _evaluation_http_error(exc) from exc
        return _build_step_response(record, states)

    @app.post("/api/session/{session_id}/run", response_model=StepResponse)
    def run_session(session_id: str, payload: SessionRunRequest) -> StepResponse:
        record = _get_record(session_id)
        session = record.session
        original_breakpoints: Optional[set[int]] = None
        if payload.ignore_breakpoints:
            original_breakpoints = set(session.breakpoints)
            session.clear_breakpoints()
            session.hit_breakpoint = None

        try:
            states = list(session.run_until_break(payload.limit))
        except EvaluationError as exc:
            raise _evaluation_http_error(exc) from exc
        finally:
            if payload.ignore_breakpoints and original_breakpoints is not None:
                session.breakpoints = set(original_breakpoints)
                session.hit_breakpoint = None

        return _build_step_response(record, states)

    @app.post("/api/session/{session_id}/breakpoints", response_model=SessionPayload)
    def add_breakpoint(session_id: str, payload: BreakpointRequest) -> SessionPayload:
        record = _get_record(session_id)
        record.session.add_breakpoint(payload.pc)
        return _build_payload(record)

    @app.delete("/api/session/{session_id}/breakpoints/{pc}", response_model=SessionPayload)
    def remove_breakpoint(session_id: str, pc: int) -> SessionPayload:
        record = _get_record(session_id)
        removed = record.session.remove_breakpoint(pc)
        if not removed:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Breakpoint not found at pc={pc}",
            )
        return _build_payload(record)

    @app.delete("/api/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_session(session_id: str) -> Response:
        removed = session_store.remove(session_id)
        if not removed:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown session id: {session_id}",
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
