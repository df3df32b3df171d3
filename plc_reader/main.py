import asyncio
import logging
import sys

from plc_reader.core.config import Settings, configure_logging, get_settings
from plc_reader.core.errors import ReaderError
from plc_reader.core.reader_manager import ReaderManager

logger = logging.getLogger(__name__)


async def run_reader(settings: Settings) -> int:
    manager = ReaderManager(settings)
    try:
        return await manager.run()
    except ReaderError as e:
        logger.error(f"OPC UA reader cannot run: {e}")
        return 1


def main():
    """Main entry point for the reader."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    logger.info("Hello OPCUA!")
    return asyncio.run(run_reader(settings))


if __name__ == "__main__":
    sys.exit(main())
