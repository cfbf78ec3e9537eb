"""Run the OTC desk API under uvicorn: ``python -m api``."""
import asyncio
import logging
import signal

import uvicorn

from config import settings_conf

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def build_server() -> uvicorn.Server:
    """Create a uvicorn server for ``api:app`` bound to the configured address."""
    config = uvicorn.Config(
        "api:app",
        host=settings_conf['api_host'],
        port=settings_conf['api_port'],
        log_level="info"
    )
    return uvicorn.Server(config)

async def main():
    server = build_server()

    def request_exit():
        logger.info("Shutdown signal received, draining requests")
        server.should_exit = True

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, request_exit)

    logger.info(
        f"Starting OTC desk API on {settings_conf['api_host']}:{settings_conf['api_port']} "
        f"({settings_conf['store_backend']} backend)"
    )
    await server.serve()
    logger.info("OTC desk API stopped")

if __name__ == "__main__":
    asyncio.run(main())
