"""Local demo tool for executor integration tests."""

from __future__ import annotations

import argparse
import os
import signal
import sys
import time


def main(argv: list[str] | None = None) -> int:
    """Echo input back, optionally failing, sleeping or ignoring SIGTERM."""

    parser = argparse.ArgumentParser()
    parser.add_argument("words", nargs="*")
    parser.add_argument("--stdout", default=None)
    parser.add_argument("--stderr", default=None)
    parser.add_argument("--exit-code", type=int, default=0)
    parser.add_argument("--sleep", type=float, default=0.0)
    parser.add_argument("--read-stdin", action="store_true")
    parser.add_argument("--ignore-sigterm", action="store_true")
    parser.add_argument("--print-env", default=None)
    parser.add_argument("--print-cwd", action="store_true")
    args = parser.parse_args(argv)

    if args.ignore_sigterm and hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, signal.SIG_IGN)

    if args.words:
        sys.stdout.write("\n".join(args.words) + "\n")
    if args.stdout is not None:
        sys.stdout.write(f"  {args.stdout}  \n")
    if args.read_stdin:
        sys.stdout.write(sys.stdin.read())
    if args.print_env is not None:
        sys.stdout.write(f"{args.print_env}={os.environ.get(args.print_env, '')}\n")
    if args.print_cwd:
        sys.stdout.write(f"{os.getcwd()}\n")
    sys.stdout.flush()

    if args.stderr is not None:
        sys.stderr.write(f"{args.stderr}\n")
        sys.stderr.flush()

    if args.sleep > 0:
        time.sleep(args.sleep)
    return args.exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
