"""
Base SLP Data Service - The capability interface consumed by handlers.

Every backend service MUST implement this interface so that the
gateway never depends on which backend is configured.

Operations a backend cannot serve raise NotImplementedByBackendError,
which is distinct from NotFoundError.

Bulk helpers fan out one call per item with asyncio.gather and join
before returning; the first failure fails the whole bulk call.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from slp_data.exceptions import NotImplementedByBackendError
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


logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class BaseSlpDataService(ABC):
    """
    Abstract base class for SLP data services.

    Each implementation must:
    1. Build the backend request for each operation
    2. Execute it through its backend client
    3. Normalize the raw payload to canonical records
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this service."""
        pass

    @property
    @abstractmethod
    def backend(self) -> BackendKind:
        """Backend this service talks to."""
        pass

    # ─────────────────────────────────────────────────────────────
    # Tokens
    # ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def list_all_tokens(self) -> list[Token]:
        """All tokens, newest first."""
        pass

    @abstractmethod
    async def list_single_token(self, token_id: str) -> Token:
        """
        One token with supply totals.

        Raises:
            NotFoundError: If the backend has no such token
        """
        pass

    @abstractmethod
    async def list_bulk_token(self, token_ids: list[str]) -> list[Union[Token, MissingToken]]:
        """Several tokens without supply totals; unknown ids become placeholders."""
        pass

    @abstractmethod
    async def get_token_stats(self, token_id: str) -> Token:
        """
        Token with totalMinted, totalBurned and circulatingSupply.

        Raises:
            NotFoundError: If the token details lookup returns no rows
        """
        pass

    @abstractmethod
    async def get_total_minted(self, token_id: str) -> float:
        """Quantity minted since genesis; 0 when nothing matched."""
        pass

    @abstractmethod
    async def get_total_burned(self, token_id: str) -> float:
        """Quantity burned; 0 when nothing matched."""
        pass

    # ─────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def get_balances_for_address_single(self, address: str) -> list[AddressTokenBalance]:
        pass

    @abstractmethod
    async def get_balances_for_token_single(self, token_id: str) -> list[TokenHolderBalance]:
        pass

    @abstractmethod
    async def get_balances_for_address_by_token_id(self, address: str, token_id: str) -> Balance:
        """Balance of one token at one address; zero record when absent."""
        pass

    # ─────────────────────────────────────────────────────────────
    # Transactions
    # ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def validate_txid(self, txid: str) -> ValidationResult:
        pass

    @abstractmethod
    async def validate_txid_array(self, txids: list[str]) -> list[ValidationResult]:
        """Exactly one result per requested txid, in request order."""
        pass

    @abstractmethod
    async def get_transaction_burn_total(self, txid: str) -> BurnTotal:
        pass

    @abstractmethod
    async def get_transaction_details(self, txid: str) -> TransactionDetails:
        pass

    @abstractmethod
    async def get_transactions_by_token_id_address(
        self,
        token_id: str,
        address: str,
    ) -> list[dict[str, Any]]:
        pass

    @abstractmethod
    async def get_historical_slp_transactions(
        self,
        addresses: list[str],
        from_block: int = 0,
    ) -> list[dict[str, Any]]:
        """Raw valid SLP transactions for the addresses above from_block, newest first."""
        pass

    # ─────────────────────────────────────────────────────────────
    # Bulk fan-out
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    async def _fan_out(
        func: Callable[..., Awaitable[R]],
        items: list[T],
    ) -> list[R]:
        """Run `func` per item concurrently; results in item order."""
        return list(await asyncio.gather(*(func(item) for item in items)))

    async def get_token_stats_bulk(self, token_ids: list[str]) -> list[Token]:
        return await self._fan_out(self.get_token_stats, token_ids)

    async def get_balances_for_address_bulk(
        self,
        addresses: list[str],
    ) -> list[list[AddressTokenBalance]]:
        return await self._fan_out(self.get_balances_for_address_single, addresses)

    async def get_balances_for_token_bulk(
        self,
        token_ids: list[str],
    ) -> list[list[TokenHolderBalance]]:
        return await self._fan_out(self.get_balances_for_token_single, token_ids)

    async def get_balances_for_address_by_token_id_bulk(
        self,
        pairs: list[tuple[str, str]],
    ) -> list[Balance]:
        """Pairs are (address, token_id)."""
        return list(await asyncio.gather(*(
            self.get_balances_for_address_by_token_id(address, token_id)
            for address, token_id in pairs
        )))

    async def get_transaction_burn_total_bulk(self, txids: list[str]) -> list[BurnTotal]:
        return await self._fan_out(self.get_transaction_burn_total, txids)

    async def get_transactions_by_token_id_address_bulk(
        self,
        pairs: list[tuple[str, str]],
    ) -> list[list[dict[str, Any]]]:
        """Pairs are (token_id, address)."""
        return list(await asyncio.gather(*(
            self.get_transactions_by_token_id_address(token_id, address)
            for token_id, address in pairs
        )))

    # ─────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────

    def _not_implemented(self, operation: str) -> NotImplementedByBackendError:
        return NotImplementedByBackendError(
            f"{operation} is not supported by the {self.backend.value} backend",
            source_name=self.name,
            operation=operation,
        )

    def get_health(self) -> Optional[ClientHealth]:
        """Health of the underlying backend client, if tracked."""
        return None

    async def close(self) -> None:
        """Close resources."""
        pass

    async def __aenter__(self) -> "BaseSlpDataService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, backend={self.backend.value})>"
