"""Access-token storage for the remote call gateway.

The gateway depends on the CredentialProvider protocol rather than on a
module-level token, so there is exactly one token source per gateway.

Two implementations:
  KeyringCredentialStore: the system keychain via the `keyring` library
  InMemoryCredentialStore: process-local, used by tests and scripts

Tokens are stored under the service name 'com.orderup.app'.
"""

import logging
from typing import Protocol

import keyring
import keyring.errors

logger = logging.getLogger(__name__)

SERVICE_NAME = "com.orderup.app"

ACCESS_TOKEN_KEY = "access_token"

# Everything the login flow writes; cleared together on logout or 401
MANAGED_CREDENTIALS = [
    ACCESS_TOKEN_KEY,
    "refresh_token",
    "token_expires_in",
]


class CredentialProvider(Protocol):
    """Capability the gateway uses to read and drop the bearer token."""

    def get(self) -> str | None:
        """Return the current access token, or None if signed out."""
        ...

    def set(self, token: str) -> None:
        """Store a new access token."""
        ...

    def clear(self) -> None:
        """Remove the access token and every related credential."""
        ...


class KeyringCredentialStore:
    """Thin wrapper around keyring for access-token CRUD."""

    def __init__(self, service_name: str = SERVICE_NAME) -> None:
        self._service = service_name

    def get(self) -> str | None:
        """Retrieve the access token. Returns None if not set."""
        try:
            return keyring.get_password(self._service, ACCESS_TOKEN_KEY)
        except Exception:
            logger.warning("Keyring read failed for %s", ACCESS_TOKEN_KEY, exc_info=True)
            return None

    def set(self, token: str) -> None:
        """Store the access token."""
        keyring.set_password(self._service, ACCESS_TOKEN_KEY, token)
        logger.info("Stored credential: %s", ACCESS_TOKEN_KEY)

    def clear(self) -> None:
        """Remove all managed credentials."""
        for key in MANAGED_CREDENTIALS:
            try:
                keyring.delete_password(self._service, key)
                logger.info("Deleted credential: %s", key)
            except keyring.errors.PasswordDeleteError:
                logger.debug("Credential %s not found for deletion", key)

    def has_token(self) -> bool:
        """Check if an access token is set."""
        return self.get() is not None


class InMemoryCredentialStore:
    """Process-local token holder."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    def get(self) -> str | None:
        return self._token

    def set(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None
