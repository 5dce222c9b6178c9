"""
Command line entry point: invoke a library function from the shell.

Usage:
    python -m callcore --list
    python -m callcore NAME [ARG ...] [--spread] [--format text|json|yaml]

Each ARG is read as YAML: `3` is an integer, `hello` a string, `[1, 2]` a
slice and `{error: boom}` an error value. With --spread the last ARG is
passed as a spread slice to a variadic parameter.

Examples:
    python -m callcore divide 7 2
    python -m callcore sum --spread "[1, 2, 3, 4, 5]"
    python -m callcore split 17 --format json
"""
import argparse
import sys
from typing import List, Optional

from callcore.callcore_runtime import Runtime
from callcore.callcore_printer import Printer
from callcore.callcore_serialize import deserialize, serialize
from callcore.callcore_datatypes import FunctionHandle, KindError, Spread


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="callcore", description="Invoke a callcore function.")
    parser.add_argument("name", nargs="?", help="function to invoke")
    parser.add_argument("args", nargs="*", help="arguments, each parsed as YAML")
    parser.add_argument("--list", action="store_true", help="list the available functions")
    parser.add_argument("--spread", action="store_true", help="pass the last argument as a spread slice")
    parser.add_argument("--format", choices=("text", "json", "yaml"), default="text")
    parser.add_argument("--debug", action="store_true", help="trace invocations on stderr")
    return parser


def list_functions(runtime: Runtime) -> List[str]:
    printer = Printer()
    lines = []
    for name in sorted(runtime.root_scope.keys()):
        value = runtime.root_scope[name]
        if isinstance(value, FunctionHandle):
            lines.append(printer.pformat(value))
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    opts = build_parser().parse_intermixed_args(argv)
    runtime = Runtime(debug=True if opts.debug else None)

    if opts.list or not opts.name:
        for line in list_functions(runtime):
            print(line)
        return 0

    try:
        args = [deserialize(a, fmt="yaml") for a in opts.args]
    except Exception as e:
        print(f"Error: could not parse arguments: {e}", file=sys.stderr)
        return 2
    if opts.spread:
        if not args:
            print("Error: --spread needs at least one argument", file=sys.stderr)
            return 2
        try:
            args[-1] = Spread(args[-1])
        except KindError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2

    if opts.name not in runtime.root_scope:
        print(f"Error: unknown function: {opts.name}", file=sys.stderr)
        return 1

    result = runtime.run(opts.name, *args)
    for line in result.stdout:
        print(line)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        return 1

    if opts.format == "text":
        print(Printer().pformat(result.value))
    else:
        print(serialize(result.value, fmt=opts.format), end="" if opts.format == "yaml" else "\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
