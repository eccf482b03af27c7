"""
SLP Data Package - Token and address data for the REST gateway.

Provides one capability interface over interchangeable SLP backends.

Features:
- SLPDB (document database, base64 query documents) backend
- Plain REST indexer backend
- One canonical record schema regardless of backend
- Backend selected once at startup from configuration
- Distinct NotFound / NotImplemented / Backend errors

Quick Start:
    from slp_data import SlpDataConfig, create_service

    async def token_supply(token_id):
        config = SlpDataConfig.from_env()
        async with create_service(config) as service:
            token = await service.get_token_stats(token_id)
            return token.to_dict()

Adding New Backends:
    1. Create class extending BaseSlpDataService
    2. Implement every abstract operation (raise self._not_implemented(...)
       for the ones the backend cannot serve)
    3. Select it in registry.create_service()
"""

from slp_data.address_indexers import (
    BaseAddressIndexer,
    BlockbookIndexer,
    NinsightIndexer,
    create_address_indexer,
)
from slp_data.base import BaseSlpDataService
from slp_data.cache import (
    CachedTransactionSource,
    MemoryTransactionCache,
    RawTransactionCache,
)
from slp_data.clients import BaseBackendClient, IndexerClient, SlpdbClient
from slp_data.config import SlpDataConfig, get_config, set_config, setup_logging
from slp_data.exceptions import (
    BackendError,
    ConfigurationError,
    NormalizationError,
    NotFoundError,
    NotImplementedByBackendError,
    RequestValidationError,
    SlpDataError,
)
from slp_data.models import (
    AddressBalance,
    AddressIndexerKind,
    AddressTokenBalance,
    Balance,
    BackendKind,
    BurnTotal,
    ClientHealth,
    ClientStatus,
    MissingToken,
    Network,
    Token,
    TokenHolderBalance,
    TransactionDetails,
    ValidationResult,
)
from slp_data.queries import IndexerRoutes, SlpdbQueryBuilder
from slp_data.registry import (
    close_default_service,
    create_service,
    get_default_service,
    set_default_service,
)
from slp_data.services import IndexerService, SlpdbService


__version__ = "1.0.0"

__all__ = [
    # Base
    "BaseSlpDataService",

    # Models
    "Token",
    "MissingToken",
    "Balance",
    "AddressTokenBalance",
    "TokenHolderBalance",
    "BurnTotal",
    "ValidationResult",
    "TransactionDetails",
    "AddressBalance",
    "ClientHealth",
    "ClientStatus",
    "BackendKind",
    "AddressIndexerKind",
    "Network",

    # Exceptions
    "SlpDataError",
    "NotFoundError",
    "NotImplementedByBackendError",
    "BackendError",
    "RequestValidationError",
    "NormalizationError",
    "ConfigurationError",

    # Config
    "SlpDataConfig",
    "get_config",
    "set_config",
    "setup_logging",

    # Queries / clients
    "SlpdbQueryBuilder",
    "IndexerRoutes",
    "BaseBackendClient",
    "SlpdbClient",
    "IndexerClient",

    # Services
    "SlpdbService",
    "IndexerService",

    # Registry
    "create_service",
    "get_default_service",
    "set_default_service",
    "close_default_service",

    # Collaborators
    "RawTransactionCache",
    "MemoryTransactionCache",
    "CachedTransactionSource",
    "BaseAddressIndexer",
    "BlockbookIndexer",
    "NinsightIndexer",
    "create_address_indexer",
]
