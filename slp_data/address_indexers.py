"""
Address Indexers - BCH address balances from Blockbook or Ninsight.

Selected by the INDEXER setting (NINSIGHT by default). Blockbook
responses pass through unchanged; Ninsight responses are reshaped
into AddressBalance.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

import aiohttp

from slp_data import addresses as address_utils
from slp_data.clients import BaseBackendClient
from slp_data.config import SlpDataConfig
from slp_data.exceptions import NormalizationError
from slp_data.models import AddressBalance, AddressIndexerKind


logger = logging.getLogger(__name__)


class BaseAddressIndexer(BaseBackendClient, ABC):
    """Balance lookup for a single BCH address."""

    DEFAULT_TIMEOUT = 15.0

    @abstractmethod
    async def balance(self, address: str) -> Union[AddressBalance, dict[str, Any]]:
        pass

    async def balances(self, addresses: list[str]) -> list[Union[AddressBalance, dict[str, Any]]]:
        """One balance per address, fetched concurrently; first failure wins."""
        return list(await asyncio.gather(*(self.balance(address) for address in addresses)))


class BlockbookIndexer(BaseAddressIndexer):
    """Blockbook `api/v2/address` endpoint."""

    name = "blockbook"

    async def balance(self, address: str) -> dict[str, Any]:
        cash_address = address_utils.to_cash_address(address)
        return await self._make_request("GET", f"{self._base_url}api/v2/address/{cash_address}")


class NinsightIndexer(BaseAddressIndexer):
    """Ninsight (Insight-compatible) `addr` endpoint."""

    name = "ninsight"

    async def balance(self, address: str) -> AddressBalance:
        cash_address = address_utils.to_cash_address(address)
        data = await self._make_request("GET", f"{self._base_url}addr/{cash_address}")
        return self.normalize(data)

    def normalize(self, data: dict[str, Any]) -> AddressBalance:
        try:
            addr = data["addrStr"]
            return AddressBalance(
                address=addr,
                address_legacy=address_utils.to_legacy_address(addr),
                address_slp=address_utils.to_slp_address(addr),
                balance=data.get("balance", 0),
                balance_sat=data.get("balanceSat", 0),
                total_received=data.get("totalReceived", 0),
                total_received_sat=data.get("totalReceivedSat", 0),
                total_sent=data.get("totalSent", 0),
                total_sent_sat=data.get("totalSentSat", 0),
                unconfirmed_balance=data.get("unconfirmedBalance", 0),
                unconfirmed_balance_sat=data.get("unconfirmedBalanceSat", 0),
                unconfirmed_tx_appearances=data.get("unconfirmedTxAppearances", 0),
                tx_appearances=data.get("txAppearances", 0),
                transactions=list(data.get("transactions") or []),
            )
        except (KeyError, TypeError) as e:
            raise NormalizationError(
                "Malformed Ninsight address response",
                source_name=self.name,
                raw_data=data,
                original_error=e,
            )


def create_address_indexer(
    config: SlpDataConfig,
    session: Optional[aiohttp.ClientSession] = None,
) -> BaseAddressIndexer:
    if config.indexer == AddressIndexerKind.BLOCKBOOK:
        return BlockbookIndexer(config.blockbook_url, config.indexer_timeout, session)
    return NinsightIndexer(config.ninsight_url, config.indexer_timeout, session)
