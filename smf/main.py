"""
main.py — SMF Command-Line Entrypoint
========================================
Builds, inspects, and reports on block manifests.

Usage:
    smf build FILE -o OUT [--block-size N] [--name NAME]
    smf inspect PATH_OR_URL
    smf progress STATE_FILE
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from smf import codec, state
from smf.config import settings
from smf.core.chunker import build_info
from smf.errors import ManifestError
from smf.models import Info

logger = logging.getLogger("smf")


def _configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _print_info(info: Info) -> None:
    print(f"Name:       {info.name}")
    print(f"Status:     {info.status.name}")
    print(f"Hash:       {info.hash.hex()}")
    print(f"Size:       {info.size}")
    print(f"Block size: {info.block_size}")
    print(f"Encode:     {info.encode.name}")
    print(f"Type:       {info.type.name}")
    print(f"Blocks:     {len(info.block)}/{info.block_count()}")


def cmd_build(args: argparse.Namespace) -> None:
    source = Path(args.file)
    info = build_info(source.read_bytes(), args.name or source.name, args.block_size)
    codec.encode_to_file(args.output, info)
    print(f"Wrote {args.output}: {len(info.block)} blocks, {info.size} bytes")


def cmd_inspect(args: argparse.Namespace) -> None:
    _print_info(codec.load(args.source))


def cmd_progress(args: argparse.Namespace) -> None:
    meta = state.decode_from_file(args.state)
    print(f"{meta.name}: {meta.downloaded}/{meta.download_total} blocks downloaded")
    missing = meta.missing()
    if missing:
        print(f"Missing:    {', '.join(str(i) for i in missing)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="smf", description="Block manifest tool")
    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build", help="Split a file and write its manifest")
    build.add_argument("file")
    build.add_argument("-o", "--output", required=True)
    build.add_argument("--block-size", type=int, default=None)
    build.add_argument("--name", default=None)
    build.set_defaults(handler=cmd_build)

    inspect = commands.add_parser("inspect", help="Decode a manifest file or URL")
    inspect.add_argument("source")
    inspect.set_defaults(handler=cmd_inspect)

    progress = commands.add_parser("progress", help="Show download-state progress")
    progress.add_argument("state")
    progress.set_defaults(handler=cmd_progress)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    _configure_logging()
    args = build_parser().parse_args(argv)
    try:
        args.handler(args)
    except (ManifestError, OSError, ValueError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
