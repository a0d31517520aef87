import io
import unittest
from contextlib import redirect_stdout
from unittest import mock

from tapebf import CompileError, ExecutionState, InputError, StepLimitExceeded, VisualizerSession
from tapebf.compiler import compile_program
from tapebf.visualizer import _to_input_bytes, format_state, run_repl


class VisualizerSessionTests(unittest.TestCase):
    def test_basic_stepping(self) -> None:
        session = VisualizerSession("+++.", input_template=[], tape_window=2, max_steps=100)
        initial = session.current_state()
        self.assertIsNone(initial.opcode)
        self.assertEqual(initial.step, 0)
        states = session.step_forward(2)
        self.assertEqual([state.opcode for state in states], ["INCn", "OUT"])
        self.assertEqual(states[-1].pc, 3)
        self.assertEqual(states[-1].output, b"\x03")
        self.assertFalse(session.is_finished())
        final = session.step_forward(1)
        self.assertIsNone(final[-1].opcode)
        self.assertTrue(session.is_finished())
        self.assertEqual(session.step_forward(1), [])

    def test_breakpoint(self) -> None:
        session = VisualizerSession("+>+.", input_template=[], tape_window=2, max_steps=100)
        session.add_breakpoint(2)
        states = session.run_until_break()
        self.assertEqual(len(states), 2)
        self.assertEqual(session.hit_breakpoint, 2)
        self.assertEqual(session.current_state().pc, 2)
        self.assertEqual(session.current_state().pointer, 1)

    def test_restart(self) -> None:
        session = VisualizerSession("+.", input_template=[], tape_window=2, max_steps=100)
        session.step_forward(3)
        self.assertTrue(session.is_finished())
        session.restart()
        self.assertFalse(session.is_finished())
        self.assertEqual(session.current_state().step, 0)

    def test_step_forward_zero_count_keeps_state(self) -> None:
        session = VisualizerSession("++", input_template=[], history_limit=5)
        initial_state = session.current_state()
        self.assertEqual(session.step_forward(0), [])
        self.assertIs(session.current_state(), initial_state)
        self.assertIsNone(session.hit_breakpoint)

    def test_run_until_break_limit(self) -> None:
        session = VisualizerSession("+>+>+>+.", input_template=[], max_steps=100)
        session.add_breakpoint(7)
        states = session.run_until_break(limit=2)
        self.assertEqual(len(states), 2)
        self.assertIsNone(session.hit_breakpoint)
        self.assertFalse(session.is_finished())

    def test_run_until_break_propagates_step_limit(self) -> None:
        session = VisualizerSession("+[]", input_template=[], max_steps=2)
        with self.assertRaises(StepLimitExceeded):
            session.run_until_break()
        self.assertTrue(session.is_finished())

    def test_input_error_is_recorded(self) -> None:
        session = VisualizerSession(",.", input_template=[])
        with self.assertRaises(InputError):
            session.step_forward(1)
        self.assertEqual(session.error, "input error")
        self.assertTrue(session.is_finished())

    def test_input_template_feeds_program(self) -> None:
        session = VisualizerSession(",.", input_template=_to_input_bytes("Z"))
        session.run_until_break()
        self.assertEqual(session.current_state().output, b"Z")

    def test_history_limit_discards_old_entries(self) -> None:
        session = VisualizerSession("+>+>+>+.", input_template=[], history_limit=3, max_steps=100)
        session.step_forward(5)
        self.assertEqual(len(session.history), 3)
        self.assertGreater(session.history[0].step, 0)
        self.assertEqual(session.history[-1], session.current_state())

    def test_breakpoint_management_helpers(self) -> None:
        session = VisualizerSession("+++.", input_template=[])
        session.add_breakpoint(3)
        session.add_breakpoint(1)
        self.assertEqual(session.list_breakpoints(), [1, 3])
        self.assertTrue(session.remove_breakpoint(1))
        self.assertFalse(session.remove_breakpoint(99))
        session.clear_breakpoints()
        self.assertEqual(session.list_breakpoints(), [])

    def test_invalid_code_is_rejected(self) -> None:
        with self.assertRaises(CompileError):
            VisualizerSession("[", input_template=[])


class VisualizerUtilityTests(unittest.TestCase):
    def test_to_input_bytes(self) -> None:
        self.assertEqual(_to_input_bytes("Az0"), [65, 122, 48])

    def test_format_state_renders_core_sections(self) -> None:
        state = ExecutionState(
            step=3,
            pc=2,
            opcode="INCn",
            operand=2,
            pointer=1,
            tape_start=0,
            tape=[1, 2, -3],
            output=b"A",
            code_length=4,
            memory_used=128,
        )
        rendered = format_state(state, compile_program("++."))
        self.assertIn("step=3 pc=0002/0004 executed=INCn 2 pointer=1", rendered)
        self.assertIn("output=b'A'", rendered)
        self.assertIn("[1:   2]", rendered)
        self.assertIn(" 2:  -3 ", rendered)
        self.assertIn("next=0002: OUT", rendered)

    def test_format_state_marks_end(self) -> None:
        program = compile_program("+")
        state = ExecutionState(
            step=1,
            pc=2,
            opcode=None,
            operand=None,
            pointer=0,
            tape_start=0,
            tape=[1],
            output=b"",
            code_length=2,
            memory_used=128,
        )
        rendered = format_state(state, program)
        self.assertIn("executed=(halt)", rendered)
        self.assertIn("next=[END]", rendered)


class VisualizerReplTests(unittest.TestCase):
    def test_breakpoint_commands(self) -> None:
        session = VisualizerSession("+++.", input_template=[])
        commands = ["next", "break 3", "breaks", "run", "quit"]
        stdout = io.StringIO()
        with mock.patch("builtins.input", side_effect=commands), redirect_stdout(stdout):
            run_repl(session)
        printed = stdout.getvalue()
        self.assertIn("executed=INCn 3", printed)
        self.assertIn("Breakpoint set at 0003.", printed)
        self.assertIn("Breakpoints: 0003", printed)
        self.assertIn("Hit breakpoint 0003.", printed)
        self.assertEqual(session.current_state().output, b"\x03")


if __name__ == "__main__":
    unittest.main()
