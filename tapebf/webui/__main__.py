from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from tapebf.cli import parse_size
from tapebf.tape import set_memory_ceiling

from .app import create_app


try:
    import uvicorn
except ModuleNotFoundError as exc:  # pragma: no cover - import failure path
    uvicorn = None
    _IMPORT_ERROR = exc
else:
    _IMPORT_ERROR = None


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run the tapebf web API server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    parser.add_argument(
        "--memory-limit",
        type=parse_size,
        default=None,
        help="Default cell memory ceiling for every evaluation (e.g. 64K, 1Mi)",
    )
    parser.add_argument("--log-level", default="info", help="Log level (default: info)")
    args = parser.parse_args(argv)

    if uvicorn is None:
        message = "uvicorn is required to run the tapebf web API server"
        if _IMPORT_ERROR is not None:
            message = f"{message}: {_IMPORT_ERROR}"
        print(message, file=sys.stderr)
        return 1

    logging.basicConfig(level=args.log_level.upper())
    if args.memory_limit is not None:
        set_memory_ceiling(args.memory_limit)

    app = create_app()
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
