"""
SLP Data Models - Canonical record shapes returned to the gateway.

Every service implementation normalizes to these records. Python
attributes are snake_case; to_dict() emits the public camelCase schema.
Records are built fresh from raw backend payloads and never mutated.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class BackendKind(Enum):
    """Backends that can serve the SLP capability interface."""
    SLPDB = "slpdb"
    SLP_INDEXER = "slp_indexer"


class AddressIndexerKind(Enum):
    """Backends that serve plain BCH address balances."""
    NINSIGHT = "NINSIGHT"
    BLOCKBOOK = "BLOCKBOOK"


class Network(Enum):
    """Bitcoin Cash network an address belongs to."""
    MAINNET = "mainnet"
    TESTNET = "testnet"


class ClientStatus(Enum):
    """Health status of a backend client."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Token:
    """
    Canonical token record.

    Fields of the raw token details object that are neither renamed nor
    discarded (ticker, name, decimals, ...) travel in `extra` and are
    merged into to_dict() unchanged.
    """
    id: str
    document_hash: Optional[str]
    initial_token_qty: float
    block_created: Optional[int] = None
    block_last_active_send: Optional[int] = None
    block_last_active_mint: Optional[int] = None
    txns_since_genesis: Optional[int] = None
    valid_addresses: Optional[int] = None
    minting_baton_status: Optional[str] = None
    timestamp_unix: Optional[int] = None

    # Derived supply figures (None in bulk listings)
    total_minted: Optional[float] = None
    total_burned: Optional[float] = None
    circulating_supply: Optional[float] = None

    extra: dict[str, Any] = field(default_factory=dict)

    CANONICAL_KEYS = (
        "id",
        "documentHash",
        "initialTokenQty",
        "blockCreated",
        "blockLastActiveSend",
        "blockLastActiveMint",
        "txnsSinceGenesis",
        "validAddresses",
        "mintingBatonStatus",
        "timestampUnix",
        "totalMinted",
        "totalBurned",
        "circulatingSupply",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the public token schema."""
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "documentHash": self.document_hash,
            "initialTokenQty": self.initial_token_qty,
            "blockCreated": self.block_created,
            "blockLastActiveSend": self.block_last_active_send,
            "blockLastActiveMint": self.block_last_active_mint,
            "txnsSinceGenesis": self.txns_since_genesis,
            "validAddresses": self.valid_addresses,
            "mintingBatonStatus": self.minting_baton_status,
            "timestampUnix": self.timestamp_unix,
            "totalMinted": self.total_minted,
            "totalBurned": self.total_burned,
            "circulatingSupply": self.circulating_supply,
        })
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Token":
        """Create from a dictionary already in the public schema."""
        return cls(
            id=data["id"],
            document_hash=data.get("documentHash"),
            initial_token_qty=float(data.get("initialTokenQty") or 0),
            block_created=data.get("blockCreated"),
            block_last_active_send=data.get("blockLastActiveSend"),
            block_last_active_mint=data.get("blockLastActiveMint"),
            txns_since_genesis=data.get("txnsSinceGenesis"),
            valid_addresses=data.get("validAddresses"),
            minting_baton_status=data.get("mintingBatonStatus"),
            timestamp_unix=data.get("timestampUnix"),
            total_minted=data.get("totalMinted"),
            total_burned=data.get("totalBurned"),
            circulating_supply=data.get("circulatingSupply"),
            extra={k: v for k, v in data.items() if k not in cls.CANONICAL_KEYS},
        )


@dataclass(frozen=True)
class MissingToken:
    """Placeholder for a requested token id the backend does not know."""
    id: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "valid": False}


@dataclass(frozen=True)
class Balance:
    """Balance of one token held by one address."""
    slp_address: str
    cash_address: str
    legacy_address: str
    token_id: str
    balance: float
    balance_string: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "cashAddress": self.cash_address,
            "legacyAddress": self.legacy_address,
            "slpAddress": self.slp_address,
            "tokenId": self.token_id,
            "balance": self.balance,
            "balanceString": self.balance_string,
        }


@dataclass(frozen=True)
class AddressTokenBalance:
    """One entry of the all-tokens balance listing for an address."""
    token_id: str
    balance: float
    balance_string: str
    slp_address: str
    decimal_count: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenId": self.token_id,
            "balance": self.balance,
            "balanceString": self.balance_string,
            "slpAddress": self.slp_address,
            "decimalCount": self.decimal_count,
        }


@dataclass(frozen=True)
class TokenHolderBalance:
    """One entry of the all-holders balance listing for a token."""
    token_id: str
    slp_address: str
    token_balance: float
    token_balance_string: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenId": self.token_id,
            "slpAddress": self.slp_address,
            "tokenBalance": self.token_balance,
            "tokenBalanceString": self.token_balance_string,
        }


@dataclass(frozen=True)
class BurnTotal:
    """Token quantity destroyed by one transaction."""
    transaction_id: str
    input_total: float = 0.0
    output_total: float = 0.0
    burn_total: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "transactionId": self.transaction_id,
            "inputTotal": self.input_total,
            "outputTotal": self.output_total,
            "burnTotal": self.burn_total,
        }


@dataclass(frozen=True)
class ValidationResult:
    """SLP validity of one transaction id."""
    txid: str
    valid: bool
    invalid_reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"txid": self.txid, "valid": self.valid}
        if not self.valid and self.invalid_reason is not None:
            data["invalidReason"] = self.invalid_reason
        return data


@dataclass(frozen=True)
class TransactionDetails:
    """Token information carried by one SLP transaction."""
    token_id_hex: str
    version_type: Optional[int]
    transaction_type: Optional[str]
    send_outputs: list[str]
    token_is_valid: bool
    raw_transaction: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.raw_transaction is not None:
            data["retData"] = self.raw_transaction
        data.update({
            "tokenInfo": {
                "versionType": self.version_type,
                "transactionType": self.transaction_type,
                "tokenIdHex": self.token_id_hex,
                "sendOutputs": list(self.send_outputs),
            },
            "tokenIsValid": self.token_is_valid,
        })
        return data


@dataclass(frozen=True)
class AddressBalance:
    """BCH balance summary for one address."""
    address: str
    address_legacy: str
    address_slp: str
    balance: float
    balance_sat: int
    total_received: float
    total_received_sat: int
    total_sent: float
    total_sent_sat: int
    unconfirmed_balance: float
    unconfirmed_balance_sat: int
    unconfirmed_tx_appearances: int
    tx_appearances: int
    transactions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "balance": self.balance,
            "balanceSat": self.balance_sat,
            "totalReceived": self.total_received,
            "totalReceivedSat": self.total_received_sat,
            "totalSent": self.total_sent,
            "totalSentSat": self.total_sent_sat,
            "unconfirmedBalance": self.unconfirmed_balance,
            "unconfirmedBalanceSat": self.unconfirmed_balance_sat,
            "unconfirmedTxAppearances": self.unconfirmed_tx_appearances,
            "txAppearances": self.tx_appearances,
            "slpData": {},
            "transactions": list(self.transactions),
            "address": self.address,
            "addressLegacy": self.address_legacy,
            "addressSlp": self.address_slp,
        }


@dataclass
class ClientHealth:
    """Health status of a backend client."""
    status: ClientStatus
    last_check: datetime
    latency_ms: Optional[float] = None
    request_count: int = 0
    error_count: int = 0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    consecutive_failures: int = 0

    def is_healthy(self) -> bool:
        """Check if client is operational."""
        return self.status == ClientStatus.HEALTHY

    def is_usable(self) -> bool:
        """Check if client can still be used (healthy or degraded)."""
        return self.status in (ClientStatus.HEALTHY, ClientStatus.DEGRADED, ClientStatus.UNKNOWN)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "last_check": self.last_check.isoformat(),
            "latency_ms": self.latency_ms,
            "request_count": self.request_count,
            "error_count": self.error_count,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
            "consecutive_failures": self.consecutive_failures,
        }
