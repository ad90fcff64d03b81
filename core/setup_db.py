# core/setup_db.py

import logging

from core.database import get_db_context, init_db
from core.logging_config import configure_logging
from services.user_service import ensure_default_staff

logger = logging.getLogger(__name__)


def main():
    configure_logging()
    logger.info("Creating database tables...")

    init_db()

    with get_db_context() as db:
        ensure_default_staff(db)

    logger.info("Database initialized successfully.")


if __name__ == "__main__":
    main()
