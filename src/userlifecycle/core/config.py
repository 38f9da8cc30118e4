"""Configuration management for the account lifecycle job.

This module provides centralized configuration using Pydantic Settings.
These are deployment settings (database location, SMTP relay, email copy);
the run-time feature flags and thresholds live in the database `config`
table and are read by `userlifecycle.services.job_options`.

All configuration is loaded from environment variables with the
USERLIFECYCLE_ prefix. Nested settings use double underscore as delimiter
(e.g., USERLIFECYCLE_DATABASE__HOST).

Example:
    export USERLIFECYCLE_ENVIRONMENT=production
    export USERLIFECYCLE_DATABASE__HOST=10.0.0.12
    export USERLIFECYCLE_SMTP__HOST=smtp.example.com
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Annotated, Any, Self

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Environment(str, Enum):
    """Deployment environment.

    Production environment has additional constraints.
    """

    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class DatabaseSettings(BaseSettings):
    """Relational store connection settings.

    Either a complete `url` is given, or the URL is assembled from
    `drivername`/`host`/`port` plus credentials resolved through the
    secret resolver under the configured logical secret names.

    The default driver is PostgreSQL. The production accounts store is MySQL:
    install the `mysql` extra (`pip install userlifecycle[mysql]`) and set
    USERLIFECYCLE_DATABASE__DRIVERNAME=mysql+pymysql and
    USERLIFECYCLE_DATABASE__PORT=3306.
    """

    model_config = SettingsConfigDict(
        env_prefix="USERLIFECYCLE_DATABASE__",
        extra="ignore",
    )

    url: SecretStr | None = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides host/port/secret-based assembly",
    )
    drivername: str = Field(
        default="postgresql+psycopg",
        description="SQLAlchemy dialect+driver used when assembling the URL",
    )
    host: str = Field(
        default="127.0.0.1",
        description="Database host (Cloud SQL proxy listens on localhost)",
    )
    port: Annotated[int, Field(ge=1, le=65535)] = Field(
        default=5432,
        description="Database port",
    )
    name_secret: str = Field(
        default="database-name",
        description="Logical secret name holding the database name",
    )
    user_secret: str = Field(
        default="database-user",
        description="Logical secret name holding the database user",
    )
    password_secret: str = Field(
        default="database-password",
        description="Logical secret name holding the database password",
    )
    # The run holds a single connection for its whole duration
    pool_size: Annotated[int, Field(ge=1, le=10)] = Field(
        default=1,
        description="Connection pool size",
    )
    pool_timeout: Annotated[int, Field(ge=1, le=300)] = Field(
        default=30,
        description="Seconds to wait for a connection from the pool",
    )
    connect_retry_delay: Annotated[float, Field(ge=0, le=600)] = Field(
        default=25.0,
        description="Seconds to wait before the single connection retry",
    )
    echo: bool = Field(
        default=False,
        description="Enable SQL statement logging (dev only)",
    )


class SMTPSettings(BaseSettings):
    """SMTP settings for contact and test-run emails."""

    model_config = SettingsConfigDict(
        env_prefix="USERLIFECYCLE_SMTP__",
        extra="ignore",
    )

    host: str = Field(
        default="localhost",
        description="SMTP server hostname",
    )
    port: Annotated[int, Field(ge=1, le=65535)] = Field(
        default=1025,
        description="SMTP server port (1025 is Mailpit default)",
    )
    username: str | None = Field(
        default=None,
        description="SMTP authentication username (optional for dev)",
    )
    password: SecretStr | None = Field(
        default=None,
        description="SMTP authentication password (optional for dev)",
    )
    use_tls: bool = Field(
        default=False,
        description="Enable STARTTLS (required for production)",
    )
    use_ssl: bool = Field(
        default=False,
        description="Enable implicit TLS/SSL",
    )
    from_address: str = Field(
        default="noreply@userlifecycle.local",
        description="Sender email address",
    )
    from_name: str = Field(
        default="Account Services",
        description="Sender display name",
    )
    timeout: Annotated[int, Field(ge=1, le=120)] = Field(
        default=30,
        description="SMTP connection timeout in seconds",
    )


class NotificationSettings(BaseSettings):
    """Content settings for the emails the job sends."""

    model_config = SettingsConfigDict(
        env_prefix="USERLIFECYCLE_NOTIFICATIONS__",
        extra="ignore",
    )

    expiration_template: str = Field(
        default="expiration_notice",
        description="Template id for the upcoming-expiration email",
    )
    expiration_subject: str = Field(
        default="Accounts expiring soon",
        description="Subject of the upcoming-expiration email",
    )
    test_run_subject: str = Field(
        default="Technical Notification",
        description="Subject of the test-run report email",
    )
    test_run_body: str = Field(
        default=(
            "Dear Technical User,\n\n"
            "Please find the attached file for your review. \n\n"
            "The users in the attachment will be deactivated .\n\n"
            "Best regards,\nTeam"
        ),
        description="Plain text body of the test-run report email",
    )
    attachment_filename: str = Field(
        default="deactive_users.csv",
        description="File name of the test-run report attachment",
    )
    attachment_content_type: str = Field(
        default="application/vnd.ms-excel",
        description="MIME type of the test-run report attachment",
    )

    @field_validator("attachment_content_type")
    @classmethod
    def validate_content_type(cls, v: str) -> str:
        """Ensure the attachment type looks like a MIME type."""
        if v.count("/") != 1:
            msg = f"Attachment content type must be 'maintype/subtype', got {v!r}"
            raise ValueError(msg)
        return v


class Settings(BaseSettings):
    """Main configuration container.

    Example environment variables:
        USERLIFECYCLE_ENVIRONMENT=production
        USERLIFECYCLE_LOG_LEVEL=DEBUG
        USERLIFECYCLE_DATABASE__DRIVERNAME=mysql+pymysql
        USERLIFECYCLE_DATABASE__PORT=3306
        USERLIFECYCLE_SMTP__USE_TLS=true
    """

    model_config = SettingsConfigDict(
        env_prefix="USERLIFECYCLE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )

    environment: Environment = Field(
        default=Environment.DEV,
        description="Deployment environment (dev, staging, production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    smtp: SMTPSettings = Field(default_factory=SMTPSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the logging level name."""
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            msg = f"Log level must be one of: {', '.join(LOG_LEVELS)}"
            raise ValueError(msg)
        return level

    @model_validator(mode="after")
    def validate_production_constraints(self) -> Self:
        """Enforce production environment constraints."""
        if self.environment == Environment.PRODUCTION:
            if self.database.echo:
                msg = "SQL echo is not allowed in production environment"
                raise ValueError(msg)
            if not self.smtp.use_tls and not self.smtp.use_ssl:
                logger.warning(
                    "SMTP is configured without TLS in production. "
                    "Account holder emails will travel in clear text."
                )
        return self

    def get_startup_summary(self) -> dict[str, Any]:
        """Non-sensitive settings summary for the startup log line."""
        return {
            "environment": self.environment.value,
            "log_level": self.log_level,
            "database": {
                "drivername": self.database.drivername,
                "host": self.database.host,
                "port": self.database.port,
                "url_override": self.database.url is not None,
            },
            "smtp": {
                "host": self.smtp.host,
                "port": self.smtp.port,
                "tls": self.smtp.use_tls or self.smtp.use_ssl,
            },
        }


class ConfigValidationError(Exception):
    """Raised when configuration validation fails.

    This exception should cause fast failure at startup to prevent
    running with invalid configuration.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with error details.

        Args:
            message: Human-readable error description.
            field: Optional field name that failed validation.
        """
        self.message = message
        self.field = field
        super().__init__(message)


def validate_settings(settings: Settings) -> None:
    """Perform additional runtime validation of settings.

    Args:
        settings: Settings instance to validate.

    Raises:
        ConfigValidationError: If validation fails.
    """
    if settings.database.url is None:
        if not settings.database.host:
            raise ConfigValidationError(
                "Database host is required when no URL is given. "
                "Set USERLIFECYCLE_DATABASE__HOST or USERLIFECYCLE_DATABASE__URL.",
                field="database.host",
            )
        for field_name in ("name_secret", "user_secret", "password_secret"):
            if not getattr(settings.database, field_name):
                raise ConfigValidationError(
                    f"Secret name database.{field_name} cannot be empty.",
                    field=f"database.{field_name}",
                )

    if settings.smtp.use_tls and settings.smtp.use_ssl:
        raise ConfigValidationError(
            "STARTTLS and implicit SSL are mutually exclusive.",
            field="smtp.use_tls",
        )

    if (settings.smtp.username is None) != (settings.smtp.password is None):
        raise ConfigValidationError(
            "SMTP username and password must be set together.",
            field="smtp.username",
        )

    logger.info("Configuration validated: environment=%s", settings.environment.value)
