"""Entry point for the wallet analysis API."""

import asyncio

import uvicorn
from loguru import logger

from config.settings import settings
from src.utils.logger import setup_logger


async def main() -> None:
    setup_logger(json_logs=settings.json_logs, level=settings.log_level)

    from src.api.app import create_app

    config = uvicorn.Config(
        app=create_app(),
        host=settings.api_host,
        port=settings.api_port,
        log_level="warning",
        loop="none",  # use the existing event loop
    )
    server = uvicorn.Server(config)
    logger.info(f"Wallet Radar API starting on http://{settings.api_host}:{settings.api_port}")
    # uvicorn installs its own SIGINT/SIGTERM handlers and runs the lifespan shutdown
    await server.serve()
    logger.info("Shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
