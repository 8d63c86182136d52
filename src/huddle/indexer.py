"""Command line entry point for the batch (re)index job."""

import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from huddle.application.services.index_job import (
    DEFAULT_BATCH_SIZE,
    IndexJob,
    IndexMode,
    IndexSummary,
)
from huddle.config import ConfigError, ConfigFileNotFoundError, load_config
from huddle.domain.errors import HuddleError, UpstreamError
from huddle.infrastructure.logging import get_logger, setup_logging
from huddle.wiring import build_components

USAGE_EXAMPLES = """examples:
  full update:        huddle-index
  incremental update: huddle-index --incremental --since=2024-03-19T00:00:00Z
  dry run:            huddle-index --dry-run
  custom batch size:  huddle-index --batch-size=50
"""


def _timestamp(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 timestamp: {value}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid integer: {value}") from e
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Incremental mode without ``--since`` is rejected here, so the process
    exits non-zero before loading configuration or touching any store.

    Args:
        args: Command line arguments. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="huddle-index",
        description="Chunk, embed and upsert chat messages into the vector index.",
        epilog=USAGE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in IndexMode],
        default=IndexMode.FULL.value,
        help="Index every message or only recent ones (default: full)",
    )
    parser.add_argument(
        "--incremental",
        dest="mode",
        action="store_const",
        const=IndexMode.INCREMENTAL.value,
        help="Shorthand for --mode incremental",
    )
    parser.add_argument(
        "--since",
        type=_timestamp,
        help="ISO-8601 timestamp; index messages created after it",
    )
    parser.add_argument(
        "--batch-size",
        type=_positive_int,
        default=DEFAULT_BATCH_SIZE,
        help=f"Messages per embed-and-upsert round (default: {DEFAULT_BATCH_SIZE})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be processed without calling the embedding or index APIs",
    )

    parsed = parser.parse_args(args)
    if parsed.mode == IndexMode.INCREMENTAL.value and parsed.since is None:
        parser.error("--since is required for incremental mode")
    return parsed


async def run_index(args: argparse.Namespace) -> IndexSummary:
    """Load configuration and run one index job.

    Args:
        args: Parsed command line arguments.

    Returns:
        The job summary.
    """
    config = load_config(args.config)
    setup_logging(config.logging)

    components = build_components(config)
    await components.database.initialize()
    try:
        job = IndexJob(
            messages=components.messages,
            chunker=components.chunker,
            embeddings=components.embeddings,
            index=components.index,
            logger=get_logger("index_job"),
        )
        return await job.run(
            mode=IndexMode(args.mode),
            since=args.since,
            batch_size=args.batch_size,
            dry_run=args.dry_run,
        )
    finally:
        await components.database.close()


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    try:
        summary = asyncio.run(run_index(args))
    except ConfigFileNotFoundError:
        print(f"Error: {args.config} not found", file=sys.stderr)
        sys.exit(1)
    except ConfigError as e:
        print(f"Error: Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValidationError as e:
        print(f"Error: Configuration validation error: {e}", file=sys.stderr)
        sys.exit(1)
    except UpstreamError as e:
        print(f"Error: {e}: {e.detail}", file=sys.stderr)
        sys.exit(1)
    except HuddleError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("Error: interrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: Index run failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(summary.to_payload(), indent=2))
    sys.exit(0)


if __name__ == "__main__":
    main()
