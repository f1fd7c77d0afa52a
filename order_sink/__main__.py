"""Process entry point: ``python -m order_sink``."""

from __future__ import annotations

import logging
import os
import sys

import uvicorn
from pydantic import ValidationError

from order_sink.config import Settings
from order_sink.logging_setup import configure_logging
from order_sink.webhooks.handlers import create_app

logger = logging.getLogger("order_sink")


def main() -> int:
    level = configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
    try:
        settings = Settings()
    except ValidationError as e:
        # Missing project/dataset ids: refuse to start
        logger.critical("Invalid configuration, refusing to start: %s", e)
        return 1

    app = create_app(settings)
    logger.info(
        "shopify-order-sink listening on port %d | orders=%s products=%s",
        settings.port,
        settings.orders_table,
        settings.products_table,
    )
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=logging.getLevelName(level).lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
