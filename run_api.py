"""
Run the join engine API with uvicorn.

Usage:
    python run_api.py

Host, port and auto-reload come from JOINENGINE_API_HOST, JOINENGINE_API_PORT
and JOINENGINE_API_RELOAD. Interactive docs are served at /docs.
"""

import uvicorn
from loguru import logger

from joinengine.config.settings import settings


def main():
    logger.info(f"Starting join engine API on {settings.api_host}:{settings.api_port} (reload={settings.api_reload})")

    uvicorn.run(
        "joinengine.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
        reload_dirs=["joinengine"] if settings.api_reload else None,
    )


if __name__ == "__main__":
    main()
