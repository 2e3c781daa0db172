"""pydc entry point: evaluate expressions, files, or stdin."""

from __future__ import annotations
import argparse
import sys
from typing import List, Optional, Tuple

from dispatch import ACTION_QUIT
from interpreter import Interpreter, TracebackFormatter
from values import DCRuntimeError


def _collect_sources(args: argparse.Namespace) -> Optional[List[Tuple[str, str]]]:
    sources: List[Tuple[str, str]] = [("<expression>", text) for text in args.expressions]
    for filename in args.files:
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                sources.append((filename, handle.read()))
        except OSError as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return None
    if not sources:
        sources.append(("<stdin>", sys.stdin.read()))
    return sources


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Arbitrary-value stack calculator (dc dialect)")
    parser.add_argument("files", nargs="*", help="Program files, evaluated in order after any expressions")
    parser.add_argument(
        "-e",
        "--expression",
        dest="expressions",
        action="append",
        default=[],
        help="Evaluate literal program text (may be repeated)",
    )
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Record every step and show the stack in tracebacks")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    args = parser.parse_args(argv)

    sources = _collect_sources(args)
    if sources is None:
        return 1

    interpreter = Interpreter(verbose=args.verbose)
    try:
        for filename, text in sources:
            if interpreter.run(text, filename=filename) == ACTION_QUIT:
                break
    except DCRuntimeError as error:
        sys.stdout.flush()
        formatter = TracebackFormatter(interpreter)
        print(formatter.format_text(error, verbose=args.verbose), file=sys.stderr)
        if args.traceback_json:
            print(formatter.to_json(error), file=sys.stderr)
        return 1
    finally:
        sys.stdout.flush()
    return 0


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
