"""Service factory for CLI commands.

The factory pattern ensures CLI commands never construct the gateway or
endpoint clients directly. Everything is wired from OrderUpConfig.
"""

from src.cli.config import OrderUpConfig
from src.services.credential_store import (
    CredentialProvider,
    InMemoryCredentialStore,
    KeyringCredentialStore,
)
from src.services.fulfillment import FulfillmentController
from src.services.fulfillment_api import FulfillmentApi
from src.services.gateway import RemoteGateway
from src.services.orders_api import OrdersApi


def get_credentials(config: OrderUpConfig) -> CredentialProvider:
    """Create the credential store selected by ``credentials.backend``."""
    if config.credentials.backend == "memory":
        return InMemoryCredentialStore()
    return KeyringCredentialStore(service_name=config.credentials.service_name)


def get_gateway(
    config: OrderUpConfig,
    credentials: CredentialProvider | None = None,
) -> RemoteGateway:
    """Create a RemoteGateway for the configured environment.

    Args:
        config: Loaded configuration.
        credentials: Token source. Defaults to the configured store.

    Returns:
        Gateway to use as an async context manager.
    """
    return RemoteGateway(
        base_url=config.resolved_base_url,
        credentials=credentials or get_credentials(config),
        timeout=config.api.timeout,
    )


def get_orders_api(gateway: RemoteGateway, config: OrderUpConfig) -> OrdersApi:
    return OrdersApi(
        gateway,
        orders_endpoint=config.endpoints.orders,
        locations_endpoint=config.endpoints.locations,
        dashboard_endpoint=config.endpoints.dashboard,
        page_size=config.paging.page_size,
    )


def get_fulfillment_api(
    gateway: RemoteGateway, config: OrderUpConfig
) -> FulfillmentApi:
    return FulfillmentApi(
        gateway,
        simulate_endpoint=config.endpoints.simulate_fulfillment,
        fulfillment_endpoint=config.endpoints.fulfillment,
        page_size=config.paging.page_size,
    )


def get_fulfillment_controller(
    gateway: RemoteGateway, config: OrderUpConfig
) -> FulfillmentController:
    return FulfillmentController(get_fulfillment_api(gateway, config))
