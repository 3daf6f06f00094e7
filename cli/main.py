"""CLI entry point."""

import asyncio
import os
import sys

from common.logging_config import setup_application_logging
from cli.repl import repl_loop

DEBUG_FLAG = '--debug'


def main() -> None:
    """Entry point for the drive CLI; pass --debug for verbose logs."""
    debug = DEBUG_FLAG in sys.argv
    if debug:
        sys.argv.remove(DEBUG_FLAG)

    logger = setup_application_logging(
        ('cli', 'drive', 'common'),
        log_level=os.getenv('LOG_LEVEL', 'WARNING'),
        debug=debug,
    )
    logger.debug(f"Drive CLI starting [debug={debug}]")

    try:
        asyncio.run(repl_loop())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        logger.debug("Drive CLI exiting")


if __name__ == "__main__":
    main()
