"""
SLP Indexer Service - Plain REST indexer backed SLP data.

The indexer exposes a fixed set of JSON endpoints. Operations it has no
endpoint for raise NotImplementedByBackendError:
- list_all_tokens
- get_total_minted / get_total_burned
- get_transaction_details
- get_transactions_by_token_id_address
- get_historical_slp_transactions
"""

import logging
from typing import Any, Optional, Union

import aiohttp

from slp_data import addresses as address_utils
from slp_data import normalizer
from slp_data.base import BaseSlpDataService
from slp_data.clients import IndexerClient
from slp_data.config import SlpDataConfig
from slp_data.exceptions import NormalizationError, NotFoundError
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
from slp_data.queries import IndexerRoutes


logger = logging.getLogger(__name__)


def _as_list(payload: Any) -> list[Any]:
    if payload is None:
        return []
    if isinstance(payload, list):
        return payload
    return [payload]


class IndexerService(BaseSlpDataService):
    """SLP data served by a plain REST indexer."""

    def __init__(self, client: IndexerClient) -> None:
        self._client = client

    @classmethod
    def from_config(
        cls,
        config: SlpDataConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> "IndexerService":
        return cls(client=IndexerClient.from_config(config, session=session))

    @property
    def name(self) -> str:
        return "slp_indexer"

    @property
    def backend(self) -> BackendKind:
        return BackendKind.SLP_INDEXER

    # ─────────────────────────────────────────────────────────────
    # Tokens
    # ─────────────────────────────────────────────────────────────

    async def list_all_tokens(self) -> list[Token]:
        raise self._not_implemented("list_all_tokens")

    async def _get_token(self, path: str, token_id: str) -> Token:
        payload = await self._client.get(path)
        if not payload or (isinstance(payload, dict) and payload.get("id") == "not found"):
            raise NotFoundError(
                "Token could not be found",
                source_name=self.name,
                entity_id=token_id,
            )
        return normalizer.normalize_indexer_token(payload)

    async def list_single_token(self, token_id: str) -> Token:
        return await self._get_token(IndexerRoutes.list_single_token(token_id), token_id)

    async def list_bulk_token(self, token_ids: list[str]) -> list[Union[Token, MissingToken]]:
        path, body = IndexerRoutes.list_bulk_token(token_ids)
        payload = await self._client.post(path, body)

        tokens: list[Union[Token, MissingToken]] = []
        for item in _as_list(payload):
            if item.get("valid") is False and "tokenDetails" not in item:
                tokens.append(MissingToken(id=item["id"]))
            else:
                tokens.append(normalizer.normalize_indexer_token(item))

        seen = {token.id for token in tokens}
        for token_id in token_ids:
            if token_id not in seen:
                tokens.append(MissingToken(id=token_id))
                seen.add(token_id)
        return tokens

    async def get_token_stats(self, token_id: str) -> Token:
        return await self._get_token(IndexerRoutes.token_stats(token_id), token_id)

    async def get_total_minted(self, token_id: str) -> float:
        raise self._not_implemented("get_total_minted")

    async def get_total_burned(self, token_id: str) -> float:
        raise self._not_implemented("get_total_burned")

    # ─────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────

    async def get_balances_for_address_single(self, address: str) -> list[AddressTokenBalance]:
        payload = await self._client.get(IndexerRoutes.balances_for_address(address))
        return normalizer.normalize_address_balances(_as_list(payload))

    async def get_balances_for_token_single(self, token_id: str) -> list[TokenHolderBalance]:
        payload = await self._client.get(IndexerRoutes.balances_for_token(token_id))
        return normalizer.normalize_token_holders(_as_list(payload), token_id)

    async def get_balances_for_address_by_token_id(self, address: str, token_id: str) -> Balance:
        slp_address = address_utils.to_slp_address(address)
        payload = await self._client.get(IndexerRoutes.balances_for_address(address))
        return normalizer.normalize_balance_for_token(_as_list(payload), slp_address, token_id)

    # ─────────────────────────────────────────────────────────────
    # Transactions
    # ─────────────────────────────────────────────────────────────

    def _validation(self, payload: Any) -> ValidationResult:
        try:
            return normalizer.validation_from_dict(payload)
        except (KeyError, AttributeError, TypeError) as e:
            raise NormalizationError(
                "Malformed validation result",
                source_name=self.name,
                raw_data=payload,
                field_name="txid",
                original_error=e,
            )

    async def validate_txid(self, txid: str) -> ValidationResult:
        payload = await self._client.get(IndexerRoutes.validate_txid(txid))
        if not payload:
            return ValidationResult(txid=txid, valid=False)
        return self._validation(payload)

    async def validate_txid_array(self, txids: list[str]) -> list[ValidationResult]:
        if not txids:
            return []
        path, body = IndexerRoutes.validate_txid_array(txids)
        payload = await self._client.post(path, body)
        results = [self._validation(item) for item in _as_list(payload) if item]
        return normalizer.restore_request_order(results, txids)

    async def get_transaction_burn_total(self, txid: str) -> BurnTotal:
        payload = await self._client.get(IndexerRoutes.burn_total(txid))
        if not payload:
            return BurnTotal(transaction_id=txid)
        return normalizer.burn_total_from_dict(payload, txid)

    async def get_transaction_details(self, txid: str) -> TransactionDetails:
        raise self._not_implemented("get_transaction_details")

    async def get_transactions_by_token_id_address(
        self,
        token_id: str,
        address: str,
    ) -> list[dict[str, Any]]:
        raise self._not_implemented("get_transactions_by_token_id_address")

    async def get_historical_slp_transactions(
        self,
        addresses: list[str],
        from_block: int = 0,
    ) -> list[dict[str, Any]]:
        raise self._not_implemented("get_historical_slp_transactions")

    def get_health(self) -> ClientHealth:
        return self._client.get_health()

    async def close(self) -> None:
        await self._client.close()
