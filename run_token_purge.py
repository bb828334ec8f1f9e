"""Run the expired-token purge as a standalone process."""

import logging
import time

from nearby.config import settings
from nearby.core.database import SessionLocal
from nearby.services.token_service import token_service

logger = logging.getLogger("nearby.token_purge")


def purge_once() -> dict:
    db = SessionLocal()
    try:
        return token_service.purge_expired_tokens(db)
    finally:
        db.close()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    interval = max(settings.TOKEN_PURGE_INTERVAL_SECONDS, 1)
    logger.info(f"Token purge running every {interval}s")
    try:
        while True:
            purge_once()
            time.sleep(interval)
    except KeyboardInterrupt:
        logger.info("Token purge stopped")


if __name__ == "__main__":
    main()
