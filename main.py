"""
Greenhouse Monitor - simulated climate monitoring and irrigation server

Runs the sensor simulation, irrigation scheduler and alert engine on one
event loop and serves the dashboard JSON API over HTTP.
"""

import asyncio
import logging
import signal
import sys

from greenhouse import GreenhouseServer
from greenhouse.utils.logger import setup_logging

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


async def main():
    """Main entry point"""
    server = GreenhouseServer()
    loop = asyncio.get_running_loop()

    # Handle shutdown signals
    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        loop.call_soon_threadsafe(server.stop)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        await server.run()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        raise
    finally:
        server.stop()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Server crashed: {e}", exc_info=True)
        sys.exit(1)
