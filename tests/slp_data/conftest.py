"""
Shared fixtures for the SLP data tests.

Backend clients are replaced by mocks whose execute/get/post return
canned backend payloads; no network access happens in these tests.
"""

from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from slp_data.clients import IndexerClient, SlpdbClient
from slp_data.services import IndexerService, SlpdbService


TOKEN_ID = "aa" * 32
OTHER_TOKEN_ID = "bb" * 32

# Reference cashaddr vectors
LEGACY_ADDRESS = "1BpEi6DfDAUFd7GtittLSdBeYJvcoaVggu"
CASH_ADDRESS = "bitcoincash:qpm2qsznhks23z7629mms6s4cwef74vcwvy22gdx6a"
LEGACY_ADDRESS_B = "1KXrWXciRDZUpQwQmuM1DbwsKDLYAYsVLR"
CASH_ADDRESS_B = "bitcoincash:qr95sy3j9xwd2ap32xkykttr4cvcu7as4y0qverfuy"
P2SH_LEGACY_ADDRESS = "3CWFddi6m4ndiGyKqzYvsFYagqDLPVMTzC"
P2SH_CASH_ADDRESS = "bitcoincash:ppm2qsznhks23z7629mms6s4cwef74vcwvn0h829pq"
SLP_ADDRESS = "simpleledger:qpm2qsznhks23z7629mms6s4cwef74vcwvg3pncxyr"
P2SH_SLP_ADDRESS = "simpleledger:ppm2qsznhks23z7629mms6s4cwef74vcwvl5uul9l7"


def make_raw_token(
    token_id: str = TOKEN_ID,
    quantity: Any = "1000",
    with_stats: bool = True,
) -> dict[str, Any]:
    """A token collection record as SLPDB returns it."""
    raw: dict[str, Any] = {
        "tokenDetails": {
            "decimals": 8,
            "tokenIdHex": token_id,
            "timestamp": "2019-01-01 00:00:00",
            "timestamp_unix": 1546300800,
            "transactionType": "GENESIS",
            "versionType": 1,
            "documentUri": "https://example.com",
            "documentSha256Hex": "cc" * 32,
            "symbol": "TST",
            "name": "Test Token",
            "batonVout": 2,
            "containsBaton": True,
            "genesisOrMintQuantity": quantity,
            "sendOutputs": None,
        },
    }
    if with_stats:
        raw["tokenStats"] = {
            "block_created": 600000,
            "block_last_active_send": 600100,
            "block_last_active_mint": None,
            "qty_valid_txns_since_genesis": 42,
            "qty_valid_token_addresses": 7,
            "minting_baton_status": "ALIVE",
        }
    return raw


def make_validity_record(txid: str, valid: bool, reason: Optional[str] = None) -> dict[str, Any]:
    slp: dict[str, Any] = {"valid": valid}
    if reason is not None:
        slp["invalidReason"] = reason
    return {"tx": {"h": txid}, "slp": slp}


@pytest.fixture
def slpdb_client():
    client = MagicMock(spec=SlpdbClient)
    client.execute = AsyncMock(return_value={})
    return client


@pytest.fixture
def slpdb_service(slpdb_client):
    return SlpdbService(client=slpdb_client)


@pytest.fixture
def indexer_client():
    client = MagicMock(spec=IndexerClient)
    client.get = AsyncMock(return_value=None)
    client.post = AsyncMock(return_value=None)
    return client


@pytest.fixture
def indexer_service(indexer_client):
    return IndexerService(client=indexer_client)
