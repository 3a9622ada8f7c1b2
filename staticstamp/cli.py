"""
Command line entry points.

    staticstamp generate ASSET_ROOT [-o TABLE] [--deps FILE]
    staticstamp serve [--config PATH] [--log PATH]

`generate` runs at build time and writes the fingerprint table; `serve`
loads that table once and serves the asset root over HTTP.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import staticstamp
from staticstamp.inc.errors import StaticFilesError, UnexpectedIoError
from staticstamp.inc.logging import logger
from staticstamp.modules.fingerprint import (
    DEFAULT_TABLE_NAME,
    dependency_lines,
    generate,
    write_table,
)


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="staticstamp", description=__doc__.split("\n\n")[0].strip())
    sub = p.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="fingerprint an asset directory")
    gen.add_argument("asset_root", type=Path)
    gen.add_argument("-o", "--output", type=Path, default=Path(DEFAULT_TABLE_NAME),
                     help=f"table to write (default: {DEFAULT_TABLE_NAME})")
    gen.add_argument("--deps", default=None,
                     help="write rerun-if-changed declarations to FILE ('-' for stdout)")
    gen.add_argument("-q", "--quiet", action="store_true")

    serve = sub.add_parser("serve", help="serve the configured asset root")
    serve.add_argument("--config", type=Path, default=None)
    serve.add_argument("--log", default=None, help="log file path")
    return p


def cmd_generate(args) -> int:
    level = logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    # the package logger is pinned to DEBUG for the file handler
    logger.setLevel(level)

    deps = []
    try:
        table = generate(args.asset_root, on_dependency=deps.append)
        # deps first, so a failed run never leaves a table behind
        if args.deps == "-":
            sys.stdout.write(dependency_lines(deps))
        elif args.deps:
            try:
                Path(args.deps).write_text(dependency_lines(deps), "utf-8")
            except OSError as e:
                raise UnexpectedIoError(f"cannot write dependencies {args.deps}: {e}") from e
        write_table(table, args.output)
    except StaticFilesError as e:
        print(f"staticstamp: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_serve(args) -> int:
    from staticstamp.inc.webserver import serve_forever

    try:
        staticstamp.initialize(args.config, log_path=args.log)
    except StaticFilesError as e:
        print(f"staticstamp: {e}", file=sys.stderr)
        return 1
    try:
        asyncio.run(serve_forever())
    except KeyboardInterrupt:
        print("\nstaticstamp stopped by user.")
    return 0


def main(argv=None) -> int:
    args = _parser().parse_args(argv)
    if args.command == "generate":
        return cmd_generate(args)
    return cmd_serve(args)


if __name__ == "__main__":
    sys.exit(main())
