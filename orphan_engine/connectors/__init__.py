"""
Connectors Package for the Orphan Engine.

This package provides the provider collaborators: Azure (Resource Manager
and Microsoft Graph) and an in-memory mock provider.
"""

import yaml

from ..exceptions import ConfigurationError, describe_error
from .base_connector import (
    BaseConnector,
    BindingConnector,
    ConnectorResult,
    DirectoryConnector,
    ProviderSession,
)
from .mock_connector import MockBindingConnector, MockDirectoryConnector, MockProvider, MockSession
from .normalize import normalize_kind, normalize_subject


def get_provider(config):
    """
    Build the provider bundle named by the configuration.

    Azure SDK modules are imported lazily so that the mock provider and
    the engine core can be used without Azure credentials.
    """
    if config.provider == "mock":
        if not config.mock_data:
            return MockProvider()
        try:
            return MockProvider.from_file(config.mock_data, sentinel=config.not_found_sentinel)
        except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Failed to load mock data {config.mock_data}: {describe_error(e)}") from e

    from .azure_connector import AzureProvider

    return AzureProvider(config.model_dump())


__all__ = [
    "BaseConnector",
    "BindingConnector",
    "ConnectorResult",
    "DirectoryConnector",
    "ProviderSession",
    "MockBindingConnector",
    "MockDirectoryConnector",
    "MockProvider",
    "MockSession",
    "get_provider",
    "normalize_kind",
    "normalize_subject",
]
