"""
Service Registry - Selects the SLP data service once per process.

The configured backend decides the implementation:
- SLP_INDEXER_URL set -> IndexerService
- otherwise           -> SlpdbService

The selected instance is held for the process lifetime; handlers call
get_default_service() and never name a concrete backend.
"""

import logging
from typing import Optional

import aiohttp

from slp_data.base import BaseSlpDataService
from slp_data.cache import CachedTransactionSource
from slp_data.config import SlpDataConfig, get_config
from slp_data.models import BackendKind
from slp_data.services.indexer import IndexerService
from slp_data.services.slpdb import SlpdbService


logger = logging.getLogger(__name__)


def create_service(
    config: SlpDataConfig,
    session: Optional[aiohttp.ClientSession] = None,
    transaction_source: Optional[CachedTransactionSource] = None,
) -> BaseSlpDataService:
    """
    Build the service for the configured backend.

    Raises:
        ConfigurationError: If the selected backend is not fully configured
    """
    config.validate()

    if config.backend == BackendKind.SLP_INDEXER:
        service: BaseSlpDataService = IndexerService.from_config(config, session=session)
    else:
        service = SlpdbService.from_config(
            config,
            session=session,
            transaction_source=transaction_source,
        )

    logger.info(f"Selected SLP data backend '{service.name}'")
    return service


# Singleton instance for the process
_default_service: Optional[BaseSlpDataService] = None


def get_default_service() -> BaseSlpDataService:
    """Get or create the process-wide service instance."""
    global _default_service
    if _default_service is None:
        _default_service = create_service(get_config())
    return _default_service


def set_default_service(service: Optional[BaseSlpDataService]) -> None:
    """Install a service instance (startup wiring, tests)."""
    global _default_service
    _default_service = service


async def close_default_service() -> None:
    """Close and forget the process-wide service instance."""
    global _default_service
    if _default_service is not None:
        try:
            await _default_service.close()
        finally:
            _default_service = None
        logger.info("SLP data service closed")
