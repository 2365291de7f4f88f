"""
Local Content Store Data API
Main entry point for the out-of-process data API
"""

import os
import sys
import asyncio
import logging
from typing import List

from dotenv import load_dotenv

from localstore import ClientConfig
from store_api import DataAPIServer

load_dotenv()


def configure_logging(log_file: str = '') -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode='a', encoding='utf-8'))

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


logger = logging.getLogger('local_store')


async def main():
    configure_logging(os.getenv('LOCAL_STORE_LOG_FILE', ''))

    host = os.getenv('LOCAL_STORE_API_HOST', '127.0.0.1')
    port = int(os.getenv('LOCAL_STORE_API_PORT', '8080'))

    try:
        config = ClientConfig.from_env()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    logger.info(f"Starting data API for dataset '{config.dataset}'")
    logger.info(f"Assets directory: {config.resolved_assets_directory}")

    server = DataAPIServer(host=host, port=port, config=config)

    try:
        await server.start()
        await server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        await server.close()


if __name__ == '__main__':
    asyncio.run(main())
