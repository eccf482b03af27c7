"""
SLPDB Service - Document-database backed SLP data.

Every operation is one or more SLPDB query documents executed through
SlpdbClient. Supply figures for a single token take three concurrent
queries: token details, minted total and burned total.
"""

import asyncio
import logging
from typing import Any, Optional, Union

import aiohttp

from slp_data import addresses as address_utils
from slp_data import normalizer
from slp_data.base import BaseSlpDataService
from slp_data.cache import CachedTransactionSource
from slp_data.clients import SlpdbClient
from slp_data.config import SlpDataConfig
from slp_data.exceptions import NotFoundError
from slp_data.models import (
    AddressTokenBalance,
    Balance,
    BackendKind,
    BurnTotal,
    ClientHealth,
    MissingToken,
    Token,
    TokenHolderBalance,
    TransactionDetails,
    ValidationResult,
)
from slp_data.queries import (
    CONFIRMED,
    GRAPH,
    TOKENS,
    UNCONFIRMED,
    SlpdbQueryBuilder,
)


logger = logging.getLogger(__name__)


class SlpdbService(BaseSlpDataService):
    """
    SLP data served by SLPDB.

    Supports the full capability interface.
    """

    def __init__(
        self,
        client: SlpdbClient,
        queries: Optional[SlpdbQueryBuilder] = None,
        transaction_source: Optional[CachedTransactionSource] = None,
    ) -> None:
        self._client = client
        self._queries = queries or SlpdbQueryBuilder()
        self._transaction_source = transaction_source

    @classmethod
    def from_config(
        cls,
        config: SlpDataConfig,
        session: Optional[aiohttp.ClientSession] = None,
        transaction_source: Optional[CachedTransactionSource] = None,
    ) -> "SlpdbService":
        return cls(
            client=SlpdbClient.from_config(config, session=session),
            transaction_source=transaction_source,
        )

    @property
    def name(self) -> str:
        return "slpdb"

    @property
    def backend(self) -> BackendKind:
        return BackendKind.SLPDB

    async def _run(self, query: dict[str, Any]) -> dict[str, Any]:
        try:
            return await self._client.execute(query) or {}
        except Exception:
            logger.debug(f"[{self.name}] Query failed: {query.get('q', {}).get('db')}")
            raise

    # ─────────────────────────────────────────────────────────────
    # Tokens
    # ─────────────────────────────────────────────────────────────

    async def list_all_tokens(self) -> list[Token]:
        result = await self._run(self._queries.list_all_tokens())
        return normalizer.normalize_tokens(normalizer.merge_collections(result, TOKENS))

    async def _get_token_details(self, token_id: str) -> Token:
        result = await self._run(self._queries.token_details(token_id))
        rows = normalizer.merge_collections(result, TOKENS)
        if not rows:
            raise NotFoundError(
                "Token could not be found",
                source_name=self.name,
                entity_id=token_id,
            )
        return normalizer.normalize_token(rows[0])

    async def list_single_token(self, token_id: str) -> Token:
        return await self.get_token_stats(token_id)

    async def list_bulk_token(self, token_ids: list[str]) -> list[Union[Token, MissingToken]]:
        result = await self._run(self._queries.list_bulk_tokens(token_ids))
        rows = normalizer.merge_collections(result, TOKENS)
        return normalizer.normalize_bulk_tokens(rows, token_ids)

    async def get_token_stats(self, token_id: str) -> Token:
        minted, burned, token = await asyncio.gather(
            self.get_total_minted(token_id),
            self.get_total_burned(token_id),
            self._get_token_details(token_id),
        )
        return normalizer.with_supply(token, minted, burned)

    async def get_total_minted(self, token_id: str) -> float:
        result = await self._run(self._queries.total_minted(token_id))
        return normalizer.aggregate_count(normalizer.merge_collections(result, GRAPH))

    async def get_total_burned(self, token_id: str) -> float:
        result = await self._run(self._queries.total_burned(token_id))
        return normalizer.aggregate_count(normalizer.merge_collections(result, GRAPH))

    # ─────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────

    async def _get_decimals(self, token_id: str) -> Optional[int]:
        result = await self._run(self._queries.token_decimals(token_id))
        rows = normalizer.merge_collections(result, TOKENS)
        if not rows:
            return None
        return (rows[0].get("tokenDetails") or {}).get("decimals")

    async def get_balances_for_address_single(self, address: str) -> list[AddressTokenBalance]:
        slp_address = address_utils.to_slp_address(address)
        result = await self._run(self._queries.balances_for_address(slp_address))
        rows = normalizer.merge_collections(result, GRAPH)
        if not rows:
            return []

        # Decimal counts come from the token collection, one query per token.
        token_ids = [row["_id"] for row in rows]
        decimals = await self._fan_out(self._get_decimals, token_ids)
        return normalizer.normalize_address_balances(rows, dict(zip(token_ids, decimals)))

    async def get_balances_for_token_single(self, token_id: str) -> list[TokenHolderBalance]:
        result = await self._run(self._queries.balances_for_token(token_id))
        return normalizer.normalize_token_holders(normalizer.merge_collections(result, GRAPH), token_id)

    async def get_balances_for_address_by_token_id(self, address: str, token_id: str) -> Balance:
        slp_address = address_utils.to_slp_address(address)
        result = await self._run(self._queries.balances_for_address(slp_address))
        rows = normalizer.merge_collections(result, GRAPH)
        return normalizer.normalize_balance_for_token(rows, slp_address, token_id)

    # ─────────────────────────────────────────────────────────────
    # Transactions
    # ─────────────────────────────────────────────────────────────

    async def validate_txid(self, txid: str) -> ValidationResult:
        result = await self._run(self._queries.validate_txids([txid]))
        records = normalizer.merge_collections(result, CONFIRMED, UNCONFIRMED)
        return normalizer.normalize_validation(records, txid)

    async def validate_txid_array(self, txids: list[str]) -> list[ValidationResult]:
        if not txids:
            return []
        result = await self._run(self._queries.validate_txids(txids))
        records = normalizer.merge_collections(result, CONFIRMED, UNCONFIRMED)
        return normalizer.normalize_validation_array(records, txids)

    async def get_transaction_burn_total(self, txid: str) -> BurnTotal:
        result = await self._run(self._queries.burn_total(txid))
        return normalizer.normalize_burn_total(normalizer.merge_collections(result, GRAPH), txid)

    async def get_transaction_details(self, txid: str) -> TransactionDetails:
        if self._transaction_source is not None:
            result, raw_transaction = await asyncio.gather(
                self._run(self._queries.transaction_details(txid)),
                self._transaction_source.get_transaction(txid),
            )
        else:
            result = await self._run(self._queries.transaction_details(txid))
            raw_transaction = None

        details = normalizer.normalize_transaction_details(
            normalizer.merge_collections(result, CONFIRMED),
            normalizer.merge_collections(result, UNCONFIRMED),
            raw_transaction=raw_transaction,
        )
        if details is None:
            raise NotFoundError(
                "SLP transaction not found",
                source_name=self.name,
                entity_id=txid,
            )
        return details

    async def get_transactions_by_token_id_address(
        self,
        token_id: str,
        address: str,
    ) -> list[dict[str, Any]]:
        slp_address = address_utils.to_slp_address(address)
        result = await self._run(self._queries.transactions_by_token_address(token_id, slp_address))
        return [
            {"txid": record.get("tx", {}).get("h"), "tokenDetails": record.get("slp")}
            for record in normalizer.merge_collections(result, CONFIRMED, UNCONFIRMED)
        ]

    async def get_historical_slp_transactions(
        self,
        addresses: list[str],
        from_block: int = 0,
    ) -> list[dict[str, Any]]:
        if not addresses:
            return []
        pairs = [
            (
                address_utils.strip_prefix(address_utils.to_cash_address(address)),
                address_utils.to_slp_address(address),
            )
            for address in addresses
        ]
        result = await self._run(self._queries.historical_transactions(pairs, from_block))
        return normalizer.merge_collections(result, CONFIRMED, UNCONFIRMED)

    def get_health(self) -> ClientHealth:
        return self._client.get_health()

    async def close(self) -> None:
        await self._client.close()
