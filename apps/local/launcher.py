from __future__ import annotations

import uvicorn

from raidesk.config.runtime import get_server_settings, get_storage_config
from raidesk.core.logging.logger import get_logger


def main() -> None:
    settings = get_server_settings()
    storage = get_storage_config()
    storage.data_dir.mkdir(parents=True, exist_ok=True)
    logger = get_logger()
    logger.info("Starting RAiDesk on %s:%s (data dir %s)", settings.host, settings.port, storage.data_dir)
    uvicorn.run(
        "raidesk.server.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
