"""Secret resolution for credentials the job needs at startup.

Credentials are looked up by logical name (e.g. "database-password") so the
job does not care where they are stored. The default resolver reads them
from environment variables, which is how the secret manager sidecar and
the local `.env` both hand them over.

Example:
    export USERLIFECYCLE_SECRET_DATABASE_PASSWORD=...

    resolver = EnvironmentSecretResolver()
    password = resolver.resolve("database-password")
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_SECRET_ENV_PREFIX = "USERLIFECYCLE_SECRET_"


class SecretNotFoundError(Exception):
    """Raised when a logical secret cannot be resolved."""

    def __init__(self, name: str, source: str) -> None:
        self.name = name
        self.source = source
        super().__init__(f"Secret '{name}' not found in {source}")


class SecretResolver(Protocol):
    """Anything that turns a logical secret name into its plaintext value."""

    def resolve(self, name: str) -> str: ...


class EnvironmentSecretResolver:
    """Resolve secrets from environment variables.

    The logical name is upper-cased, dashes become underscores and the
    prefix is prepended: "database-user" -> USERLIFECYCLE_SECRET_DATABASE_USER.
    """

    def __init__(
        self,
        prefix: str = DEFAULT_SECRET_ENV_PREFIX,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.prefix = prefix
        self._environ = environ if environ is not None else os.environ

    def env_var_for(self, name: str) -> str:
        """Return the environment variable name backing a logical secret."""
        return self.prefix + name.strip().upper().replace("-", "_").replace(".", "_")

    def resolve(self, name: str) -> str:
        """Return the plaintext value of the secret.

        Raises:
            SecretNotFoundError: If the variable is unset or empty.
        """
        env_var = self.env_var_for(name)
        value = self._environ.get(env_var)
        if not value:
            raise SecretNotFoundError(name, f"environment variable {env_var}")

        # Never log the value itself
        logger.debug("Resolved secret %s from %s", name, env_var)
        return value
