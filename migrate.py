"""Create every table of the persistent schema on DATABASE_URL.

Usage: python migrate.py
"""

import logging
import sys

from config import settings
from database import Base, create_schema, make_engine

logger = logging.getLogger("migrate")


def main() -> int:
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if not settings.DATABASE_URL:
        logger.error("DATABASE_URL is not set; nothing to migrate")
        return 1
    engine = make_engine(settings.DATABASE_URL)
    create_schema(engine)
    logger.info("Schema ready: %s", ", ".join(sorted(Base.metadata.tables)))
    engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
