"""One-shot library scan: process every stored media item once and exit."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.logging_config import setup_service_logging  # noqa: E402
from common.redis_client import redis_client  # noqa: E402
from common.schemas import MediaType  # noqa: E402
from scanner.library_scanner import library_scanner  # noqa: E402
from translator.request_queue import translation_queue  # noqa: E402

# Configure logging
service_logger = setup_service_logging("scanner", enable_file_logging=True)
logger = service_logger.logger


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create translation requests for media with missing subtitle languages"
    )
    parser.add_argument(
        "--media-type",
        choices=[media_type.value for media_type in MediaType],
        help="Only scan movies or episodes",
    )
    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the scanner service."""
    args = parse_args(argv)
    media_type = MediaType(args.media_type) if args.media_type else None

    try:
        await redis_client.connect()
        await translation_queue.connect()

        summary = await library_scanner.scan_library(media_type)
        logger.info(f"Outcomes: {summary.outcomes}")
        return 1 if summary.failed else 0

    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        return 130
    finally:
        await translation_queue.disconnect()
        await redis_client.disconnect()
        logger.info("👋 Scanner stopped")


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
