"""
adreward.__main__ — Entry point for ``python -m adreward``
===========================================================

Wiring:
1. Load .env (secrets).
2. Configure logging.
3. Serve ``adreward.api.main:app`` with uvicorn on ``$PORT`` (5000).

The app's lifespan creates tables and opens the current week's
competition.
"""

from __future__ import annotations

import logging
import os

import uvicorn
from dotenv import load_dotenv

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("adreward")


def main() -> None:
    """Run the AdReward API server."""
    load_dotenv()

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "5000"))
    logger.info("Serving AdReward API on %s:%d", host, port)
    uvicorn.run("adreward.api.main:app", host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
