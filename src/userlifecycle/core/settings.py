"""Settings loader for the account lifecycle job.

Settings are loaded once by the entry point and handed to the components
that need them; nothing in the package reads them from module state.

Usage:
    from userlifecycle.core.settings import load_settings

    settings = load_settings()
    engine = connect_with_retry(settings.database, resolver)
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from userlifecycle.core.config import (
    ConfigValidationError,
    Settings,
    validate_settings,
)

logger = logging.getLogger(__name__)


def load_settings() -> Settings:
    """Load and validate the application settings from the environment.

    Returns:
        Validated Settings instance.

    Raises:
        SystemExit: If settings cannot be loaded or fail validation
            (fail-fast behavior).
    """
    try:
        logger.info("Loading application settings from environment")
        settings = Settings()
        validate_settings(settings)

        logger.info("Configuration loaded: %s", settings.get_startup_summary())
        return settings

    except ValidationError as e:
        error_messages = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            error_messages.append(f"  - {loc}: {msg}")

        logger.critical(
            "Configuration validation failed:\n%s",
            "\n".join(error_messages),
        )
        raise SystemExit(1) from e

    except ConfigValidationError as e:
        logger.critical(
            "Configuration validation failed: %s (field: %s)",
            e.message,
            e.field or "unknown",
        )
        raise SystemExit(1) from e
