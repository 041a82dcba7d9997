"""Run Formation Hub under uvicorn (container / PaaS entry point)."""
import logging

import uvicorn

from formation_hub import config
from formation_hub.core.logging import configure_logging

logger = logging.getLogger("formation_hub.server")

if __name__ == "__main__":
    configure_logging()
    logger.info("Starting Formation Hub on port %d", config.PORT)
    uvicorn.run(
        "formation_hub.app:app",
        host="0.0.0.0",
        port=config.PORT,
        log_level="info",
        proxy_headers=True,
    )
