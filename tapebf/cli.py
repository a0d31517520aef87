from __future__ import annotations

import argparse
import logging
import re
import sys
from typing import BinaryIO, Iterator, Optional, Union

from . import __version__
from .compiler import compile_program
from .errors import CompileError, EvaluationError
from .interpreter import Interpreter
from .streams import (
    ByteSink,
    ByteSource,
    FileSink,
    FileSource,
    MemorySource,
    stdin_source,
    stdout_sink,
)
from .tape import set_memory_ceiling

PROG = "tapebf"
PROMPT = "BF> "
RULER = "------------"

_SIZE_PATTERN = re.compile(
    r"(?P<number>0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+|\d+)(?P<unit>[KMG])?(?P<binary>i)?"
)
_SIZE_EXPONENTS = {"K": 1, "M": 2, "G": 3}


def parse_size(text: str) -> int:
    match = _SIZE_PATTERN.fullmatch(text.strip())
    if match is None:
        raise argparse.ArgumentTypeError(f"illegal size: `{text}'")
    number = match.group("number")
    value = int(number, 10) if number.isdigit() else int(number, 0)
    unit = match.group("unit")
    if unit:
        base = 1024 if match.group("binary") else 1000
        value *= base ** _SIZE_EXPONENTS[unit]
    elif match.group("binary"):
        raise argparse.ArgumentTypeError(f"illegal size: `{text}'")
    return value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Brainfuck bytecode compiler and interpreter",
    )
    parser.add_argument("file", nargs="?", help="execute code from FILE ('-' reads standard input)")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("-e", dest="script", metavar="SCRIPT", help="execute the SCRIPT string")
    mode.add_argument("-f", dest="script_file", metavar="FILE", help="execute code from FILE")
    mode.add_argument("-i", dest="interactive", action="store_true", help="enter interactive mode")
    parser.add_argument("-d", dest="dump_code", action="store_true", help="dump instructions")
    parser.add_argument("-c", dest="do_not_run", action="store_true", help="compile but do not execute")
    parser.add_argument(
        "-I",
        dest="input_file",
        metavar="FILE",
        help="use the FILE instead of stdin as input stream",
    )
    parser.add_argument(
        "-O",
        dest="output_file",
        metavar="FILE",
        help="use the FILE instead of stdout as output stream",
    )
    parser.add_argument(
        "-M",
        dest="memory_limit",
        metavar="SIZE[K|M|G][i]",
        type=parse_size,
        help="maximum cells (runtime memory) size",
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(levelname)s: %(message)s",
    )


def run_script(
    args: argparse.Namespace,
    script: ByteSource,
    source: ByteSource,
    sink: ByteSink,
) -> int:
    try:
        program = compile_program(script)
    except CompileError as exc:
        print(f"{PROG}: syntax error: {exc}", file=sys.stderr)
        return 1

    if args.dump_code:
        print(RULER)
        print(program.dump())
        print(RULER)
        sys.stdout.flush()

    if args.do_not_run:
        return 0

    try:
        Interpreter().evaluate(program, source, sink)
    except EvaluationError as exc:
        print(f"{PROG}: runtime error: {exc}", file=sys.stderr)
        return 1
    return 0


def _read_lines(stream: Optional[BinaryIO]) -> Iterator[str]:
    """REPL lines, from ``stream`` when programs read their input from it too.

    Sharing the stream leaves whatever follows a line for that line's ``,``.
    """
    while True:
        if stream is None:
            try:
                yield input(PROMPT)
            except EOFError:
                return
            continue
        sys.stdout.write(PROMPT)
        sys.stdout.flush()
        line = stream.readline()
        if not line:
            return
        yield line.decode("utf-8", errors="replace").rstrip("\r\n")


def run_repl(
    args: argparse.Namespace,
    source: ByteSource,
    sink: ByteSink,
    stream: Optional[BinaryIO] = None,
) -> None:
    for line in _read_lines(stream):
        run_script(args, MemorySource(line), source, sink)
    print()


def _open_script(args: argparse.Namespace) -> Union[MemorySource, FileSource]:
    if args.script is not None:
        return MemorySource(args.script)
    path = args.script_file
    if path == "-":
        return stdin_source()
    return FileSource.open(path)


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.file is not None:
        if args.script is not None or args.script_file is not None or args.interactive:
            parser.error("options `-e', `-f', `-i' and FILE are mutually exclusive")
        args.script_file = args.file
    if args.script is None and args.script_file is None and not args.interactive:
        if sys.stdin.isatty():
            args.interactive = True
        else:
            args.script_file = "-"

    _configure_logging(args.verbose)
    if args.memory_limit is not None:
        set_memory_ceiling(args.memory_limit)

    try:
        source = FileSource.open(args.input_file) if args.input_file else stdin_source()
    except OSError as exc:
        print(f"{PROG}: failed to open input stream: {exc}", file=sys.stderr)
        return 1
    try:
        sink = FileSink.open(args.output_file) if args.output_file else stdout_sink()
    except OSError as exc:
        print(f"{PROG}: failed to open output stream: {exc}", file=sys.stderr)
        source.close()
        return 1

    try:
        if args.interactive:
            shared = None if args.input_file else source.stream
            run_repl(args, source, sink, shared)
            return 0
        try:
            script = _open_script(args)
        except OSError as exc:
            print(f"{PROG}: failed to read the script: {exc}", file=sys.stderr)
            return 1
        try:
            return run_script(args, script, source, sink)
        finally:
            if isinstance(script, FileSource):
                script.close()
    finally:
        sink.close()
        source.close()


if __name__ == "__main__":
    raise SystemExit(main())
