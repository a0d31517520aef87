import unittest

from tapebf import Tape, TapeMemoryError, get_memory_ceiling, set_memory_ceiling


class CursorTests(unittest.TestCase):
    def test_cells_start_at_zero_and_wrap(self) -> None:
        with Tape() as tape:
            cursor = tape.cursor()
            self.assertEqual(cursor.value, 0)
            cursor.add(-1)
            self.assertEqual(cursor.value, -1)
            self.assertEqual(cursor.raw, 255)
            cursor.add(1)
            self.assertEqual(cursor.value, 0)
            cursor.value = 200
            self.assertEqual(cursor.value, -56)
            cursor.raw = 0x80
            self.assertEqual(cursor.value, -128)

    def test_advance_crosses_chunk_boundary(self) -> None:
        with Tape(chunk_size=4) as tape:
            cursor = tape.cursor()
            for _ in range(5):
                cursor.advance()
            self.assertEqual(cursor.position, 5)
            self.assertEqual(tape.chunk_count(), 2)
            self.assertEqual(tape.memory_used, 8)

    def test_retreat_grows_to_the_left(self) -> None:
        with Tape(chunk_size=4) as tape:
            cursor = tape.cursor()
            cursor.retreat()
            self.assertEqual(cursor.position, -1)
            self.assertEqual(cursor.value, 0)
            cursor.value = 9
            cursor.advance()
            self.assertEqual(cursor.position, 0)
            cursor.retreat()
            self.assertEqual(cursor.value, 9)
            self.assertEqual(tape.chunk_count(), 2)

    def test_far_walk_returns_to_zero_cell(self) -> None:
        with Tape(chunk_size=8) as tape:
            cursor = tape.cursor()
            cursor.value = 3
            cursor.retreat_by(100)
            self.assertEqual(cursor.value, 0)
            cursor.advance_by(300)
            self.assertEqual(cursor.value, 0)
            cursor.retreat_by(200)
            self.assertEqual(cursor.position, 0)
            self.assertEqual(cursor.value, 3)

    def test_bulk_moves_match_single_steps(self) -> None:
        for count in (0, 1, 3, 4, 5, 11, 64):
            with self.subTest(count=count):
                with Tape(chunk_size=4) as bulk, Tape(chunk_size=4) as single:
                    bulk_cursor = bulk.cursor()
                    single_cursor = single.cursor()
                    bulk_cursor.advance_by(count)
                    bulk_cursor.retreat_by(2 * count)
                    for _ in range(count):
                        single_cursor.advance()
                    for _ in range(2 * count):
                        single_cursor.retreat()
                    self.assertEqual(bulk_cursor.position, single_cursor.position)
                    self.assertEqual(bulk.memory_used, single.memory_used)

    def test_window_reads_without_allocating(self) -> None:
        with Tape(chunk_size=4) as tape:
            cursor = tape.cursor()
            cursor.value = 1
            cursor.advance()
            cursor.value = -2
            start, values = tape.window(0, 3)
            self.assertEqual(start, -3)
            self.assertEqual(values, [0, 0, 0, 1, -2, 0, 0])
            self.assertEqual(tape.chunk_count(), 1)

    def test_window_spans_chunks(self) -> None:
        with Tape(chunk_size=2) as tape:
            cursor = tape.cursor()
            cursor.retreat_by(3)
            cursor.value = 5
            cursor.advance_by(6)
            cursor.value = 7
            start, values = tape.window(0, 3)
            self.assertEqual(start, -3)
            self.assertEqual(values, [5, 0, 0, 0, 0, 0, 7])


class MemoryCeilingTests(unittest.TestCase):
    def tearDown(self) -> None:
        set_memory_ceiling(0)

    def test_growth_beyond_ceiling_raises(self) -> None:
        with Tape(memory_limit=12, chunk_size=4) as tape:
            cursor = tape.cursor()
            cursor.advance_by(11)
            self.assertEqual(tape.memory_used, 12)
            with self.assertRaises(TapeMemoryError) as ctx:
                cursor.advance()
            self.assertEqual(ctx.exception.used, 12)
            self.assertEqual(ctx.exception.limit, 12)
            self.assertEqual(str(ctx.exception), "out of memory (12 B / 12 B)")

    def test_ceiling_applies_in_both_directions(self) -> None:
        with Tape(memory_limit=8, chunk_size=4) as tape:
            cursor = tape.cursor()
            cursor.retreat()
            with self.assertRaises(TapeMemoryError):
                cursor.retreat_by(4)

    def test_zero_means_unlimited(self) -> None:
        with Tape(memory_limit=0, chunk_size=4) as tape:
            tape.cursor().advance_by(1000)
            self.assertEqual(tape.chunk_count(), 251)

    def test_process_wide_ceiling_is_the_default(self) -> None:
        set_memory_ceiling(256)
        self.assertEqual(get_memory_ceiling(), 256)
        with Tape() as tape:
            self.assertEqual(tape.memory_limit, 256)
        with Tape(memory_limit=0) as tape:
            self.assertEqual(tape.memory_limit, 0)

    def test_negative_ceiling_rejected(self) -> None:
        with self.assertRaises(ValueError):
            set_memory_ceiling(-1)


class ReleaseTests(unittest.TestCase):
    def test_release_on_exit_even_after_error(self) -> None:
        tape = Tape(memory_limit=4, chunk_size=4)
        with self.assertRaises(TapeMemoryError):
            with tape:
                tape.cursor().advance_by(10)
        self.assertTrue(tape.released)
        with self.assertRaises(RuntimeError):
            tape.cursor()

    def test_release_is_idempotent(self) -> None:
        tape = Tape()
        tape.release()
        tape.release()
        self.assertTrue(tape.released)


if __name__ == "__main__":
    unittest.main()
