from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from buildmerge.app import fix_descriptor_loads, merge_descriptor, resolve_policy
from buildmerge.config import ConfigurationError, MergeStage, configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Merge generated build rules into existing descriptors")
    parser.add_argument(
        "--policy",
        type=Path,
        help="TOML merge policy (defaults to $BUILDMERGE_POLICY, then the built-in policy)",
    )
    parser.add_argument(
        "--fix",
        action="store_true",
        help="Apply fixups that squash or delete rules left by older generator versions",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug messages",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    merge = subparsers.add_parser("merge", help="Merge generated rules into a descriptor")
    merge.add_argument(
        "--old",
        type=Path,
        required=True,
        help="Existing descriptor (JSON tree)",
    )
    merge.add_argument(
        "--gen",
        type=Path,
        required=True,
        help="Generated rules (JSON tree)",
    )
    merge.add_argument(
        "--empty",
        type=Path,
        help="Empty rules whose matches should be deleted when nothing is left",
    )
    merge.add_argument(
        "--stage",
        type=MergeStage,
        choices=list(MergeStage),
        default=MergeStage.ALL,
        help="Which attributes may be rewritten (default: %(default)s)",
    )
    merge.add_argument(
        "--output",
        type=Path,
        help="Where to write the result (defaults to --old)",
    )

    loads = subparsers.add_parser("fix-loads", help="Add and trim load statements of a descriptor")
    loads.add_argument("file", type=Path, help="Descriptor (JSON tree)")
    loads.add_argument(
        "--workspace",
        action="store_true",
        help="Treat the file as a workspace file",
    )
    loads.add_argument(
        "--output",
        type=Path,
        help="Where to write the result (defaults to the input file)",
    )

    return parser.parse_args(list(argv))


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        policy = resolve_policy(parsed_args.policy, should_fix=parsed_args.fix)
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)

    try:
        if parsed_args.command == "merge":
            report = merge_descriptor(
                old_path=parsed_args.old,
                gen_path=parsed_args.gen,
                empty_path=parsed_args.empty,
                output_path=parsed_args.output,
                policy=policy,
                stage=parsed_args.stage,
            )
            if report.ignored:
                log.info("%s carries the ignore directive; left untouched", parsed_args.old)
        elif parsed_args.command == "fix-loads":
            fix_descriptor_loads(
                parsed_args.file,
                output_path=parsed_args.output,
                policy=policy,
                workspace=parsed_args.workspace,
            )
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during merge")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
