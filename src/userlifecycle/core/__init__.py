"""Core module.

Shared components used across the job:
- Configuration management
- Secret resolution
"""

from userlifecycle.core.config import (
    ConfigValidationError,
    DatabaseSettings,
    Environment,
    NotificationSettings,
    Settings,
    SMTPSettings,
)
from userlifecycle.core.secrets import (
    EnvironmentSecretResolver,
    SecretNotFoundError,
    SecretResolver,
)
from userlifecycle.core.settings import load_settings

__all__ = [
    "ConfigValidationError",
    "DatabaseSettings",
    "Environment",
    "EnvironmentSecretResolver",
    "NotificationSettings",
    "SMTPSettings",
    "SecretNotFoundError",
    "SecretResolver",
    "Settings",
    "load_settings",
]
