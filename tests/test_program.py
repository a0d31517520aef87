import unittest

from tapebf import Opcode, Program, compile_program
from tapebf.program import DecodeError, decode_at


class DumpTests(unittest.TestCase):
    def test_dump_layout(self) -> None:
        program = compile_program("+[-]>>.")
        self.assertEqual(
            program.dump(),
            "\n".join(
                [
                    "0000: INC",
                    "0001: JFZ   6",
                    "0006: DEC",
                    "0007: JBN   6",
                    "000c: NXTn  2",
                    "000f: OUT",
                    "0010: HLT",
                ]
            ),
        )

    def test_dump_stops_at_unknown_opcode(self) -> None:
        program = Program(b"\x02\x42\x08")
        self.assertEqual(program.dump(), "0000: INC\n???")

    def test_dump_truncated_operand(self) -> None:
        program = Program(b"\x0b")
        self.assertEqual(program.dump(), "???")


class DecodeTests(unittest.TestCase):
    def test_instructions_cover_the_whole_program(self) -> None:
        program = compile_program("++[>,.<-]")
        instructions = list(program.instructions())
        self.assertEqual(instructions[-1].opcode, Opcode.HLT)
        last = instructions[-1]
        self.assertEqual(last.address + last.size, len(program))
        self.assertEqual(program.addresses()[0], 0)

    def test_operands_are_little_endian(self) -> None:
        instruction = decode_at(b"\x09\x34\x12", 0)
        self.assertEqual(instruction.operand, 0x1234)
        self.assertEqual(instruction.mnemonic, "NXTn")
        self.assertEqual(instruction.size, 3)

    def test_decode_errors(self) -> None:
        with self.assertRaises(DecodeError):
            decode_at(b"\xff", 0)
        with self.assertRaises(DecodeError):
            decode_at(b"\x06\x00\x00", 0)

    def test_program_is_immutable_and_non_empty(self) -> None:
        program = compile_program("+")
        self.assertEqual(len(program), 2)
        with self.assertRaises(AttributeError):
            program.code = b"\x08"  # type: ignore[misc]
        with self.assertRaises(ValueError):
            Program(b"")


class OpcodeTests(unittest.TestCase):
    def test_mnemonics_and_widths(self) -> None:
        self.assertEqual(Opcode.INC_N.mnemonic, "INCn")
        self.assertEqual(Opcode.JFZ.mnemonic, "JFZ")
        self.assertEqual(Opcode.JBN.operand_width, 4)
        self.assertEqual(Opcode.PRV_N.operand_width, 2)
        self.assertEqual(Opcode.DEC_N.operand_width, 1)
        self.assertEqual(Opcode.HLT, 0x08)


if __name__ == "__main__":
    unittest.main()
