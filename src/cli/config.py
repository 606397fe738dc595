"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./orderup.yaml (working directory)
3. ~/.orderup/config.yaml (user home)

Environment variables override YAML: ORDERUP_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, field_validator

from src.services.credential_store import SERVICE_NAME
from src.services.fulfillment_api import FULFILLMENT_ENDPOINT, SIMULATE_ENDPOINT
from src.services.orders_api import (
    DASHBOARD_ENDPOINT,
    LOCATIONS_ENDPOINT,
    ORDERS_ENDPOINT,
)
from src.services.paginated_fetcher import DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

Environment = Literal["dev", "uat", "prod"]

ENVIRONMENT_BASE_URLS: dict[str, str] = {
    "dev": "https://betaaccount.retailcloud.com",
    "uat": "https://www.uataccount.retailcloud.com",
    "prod": "https://www.console.retailcloud.com",
}


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class ApiConfig(BaseModel):
    """Backend connection settings."""

    base_url: str | None = None
    timeout: float = 30.0


class EndpointsConfig(BaseModel):
    """Backend paths, relative to the base URL."""

    orders: str = ORDERS_ENDPOINT
    locations: str = LOCATIONS_ENDPOINT
    simulate_fulfillment: str = SIMULATE_ENDPOINT
    fulfillment: str = FULFILLMENT_ENDPOINT
    dashboard: str = DASHBOARD_ENDPOINT


class PagingConfig(BaseModel):
    """List paging settings."""

    page_size: int = DEFAULT_PAGE_SIZE

    @field_validator("page_size")
    @classmethod
    def positive_page_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("page_size must be at least 1")
        return value


class LoggingConfig(BaseModel):
    """Logging settings applied by the CLI at startup."""

    level: str = "warning"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class CredentialsConfig(BaseModel):
    """Where the access token lives.

    ``keyring`` uses the system keychain under ``service_name``.
    ``memory`` keeps the token for the current process only.
    """

    backend: Literal["keyring", "memory"] = "keyring"
    service_name: str = SERVICE_NAME


class OrderUpConfig(BaseModel):
    """Top-level configuration for the OrderUp fulfillment client."""

    environment: Environment = "dev"
    api: ApiConfig = ApiConfig()
    endpoints: EndpointsConfig = EndpointsConfig()
    paging: PagingConfig = PagingConfig()
    logging: LoggingConfig = LoggingConfig()
    credentials: CredentialsConfig = CredentialsConfig()

    @property
    def resolved_base_url(self) -> str:
        """Explicit ``api.base_url`` if set, else the environment preset."""
        if self.api.base_url:
            return self.api.base_url.rstrip("/")
        return ENVIRONMENT_BASE_URLS[self.environment]


def _find_config_file() -> Path | None:
    """Search for config file in standard locations."""
    candidates = [
        Path.cwd() / "orderup.yaml",
        Path.cwd() / "orderup.yml",
        Path.home() / ".orderup" / "config.yaml",
        Path.home() / ".orderup" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply ORDERUP_<SECTION>_<KEY> env var overrides to config data.

    ``ORDERUP_ENVIRONMENT`` sets the top-level environment. Section
    names are matched longest-first, so ``ORDERUP_API_BASE_URL`` maps to
    section ``api``, field ``base_url``.
    """
    prefix = "ORDERUP_"
    section_names = sorted(
        (
            name
            for name, info in OrderUpConfig.model_fields.items()
            if isinstance(info.default, BaseModel)
        ),
        key=len,
        reverse=True,
    )
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        suffix = key[len(prefix):].lower()
        if suffix == "environment":
            data["environment"] = value.lower()
            continue
        matched_section = None
        matched_field = None
        for section in section_names:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                matched_section = section
                matched_field = suffix[len(section_prefix):]
                break
        if matched_section is None or not matched_field:
            continue
        if not isinstance(data.get(matched_section), dict):
            data[matched_section] = {}
        # pydantic coerces the string to the field type
        data[matched_section][matched_field] = value
    return data


def load_config(config_path: str | None = None) -> OrderUpConfig:
    """Load OrderUp configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then ~/.orderup/).

    Returns:
        Parsed and validated OrderUpConfig. Defaults (plus env
        overrides) when no config file exists.

    Raises:
        FileNotFoundError: If ``config_path`` is given but missing.
        pydantic.ValidationError: If the file has invalid values.
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()

    raw_data: dict[str, Any] = {}
    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults")

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return OrderUpConfig(**data)
