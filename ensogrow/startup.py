"""Application startup validation."""
import logging

from sqlalchemy import inspect, text

from ensogrow.db import engine
from ensogrow.settings import settings

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("users", "plants", "user_plants")


def validate_settings() -> None:
    """
    Validate all required settings at startup.

    Raises:
        ValueError: If required settings are missing or invalid
    """
    logger.info(f"Validating settings for ENV={settings.ENV}")

    settings.validate_required_for_env()
    settings.validate_ai_config()

    logger.info("Settings validation passed")


def validate_database() -> None:
    """
    Validate database connection and required tables.

    Raises:
        Exception: If database is unreachable or tables are missing
    """
    logger.info("Validating database connection...")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            existing_tables = set(inspect(conn).get_table_names())

        logger.info("Database connection successful")

        missing_tables = set(REQUIRED_TABLES) - existing_tables
        if missing_tables:
            raise ValueError(
                f"Missing required database tables: {', '.join(sorted(missing_tables))}. "
                "Run migrations with: alembic upgrade head"
            )

        logger.info(f"All required tables present: {', '.join(REQUIRED_TABLES)}")

    except Exception as e:
        logger.error(f"Database validation failed: {e}")
        raise


def run_startup_validation() -> None:
    """
    Run all startup validations.

    Called from the application lifespan; fails fast with a clear error
    message if any validation fails.
    """
    logger.info("Starting application startup validation")

    try:
        validate_settings()
        validate_database()
    except Exception as e:
        logger.error(f"Startup validation failed: {e}")
        logger.error("Application will not start until this is resolved.")
        raise

    logger.info("All startup validations passed")
