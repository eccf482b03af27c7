"""
SLPDB Service Tests.

============================================================
PURPOSE
============================================================
Exercise each operation of SlpdbService against a mocked SlpdbClient.

TEST CATEGORIES:
- Token listing and supply figures
- Balances, including zero placeholders
- Validation, burn totals and transaction details
- Bulk fan-out and failure propagation

============================================================
"""

from unittest.mock import AsyncMock

import pytest

from slp_data import addresses
from slp_data.cache import CachedTransactionSource, MemoryTransactionCache
from slp_data.exceptions import BackendError, NotFoundError
from slp_data.models import BackendKind, MissingToken
from slp_data.services import SlpdbService

from conftest import (
    CASH_ADDRESS,
    CASH_ADDRESS_B,
    LEGACY_ADDRESS,
    OTHER_TOKEN_ID,
    TOKEN_ID,
    make_raw_token,
    make_validity_record,
)


def _first_match(q):
    aggregate = q.get("aggregate") or [{}]
    return aggregate[0].get("$match", {})


def supply_responder(minted=500, burned=200, token_rows=None):
    """Answer token, minted and burned queries the way SLPDB would."""
    if token_rows is None:
        token_rows = [make_raw_token(quantity="1000")]

    async def respond(query):
        q = query["q"]
        if q["db"] == ["t"]:
            return {"t": token_rows}
        statuses = _first_match(q).get("graphTxn.outputs.status", {}).get("$in", [])
        if "BATON_UNSPENT" in statuses:
            return {"g": [{"_id": None, "count": minted}] if minted is not None else []}
        return {"g": [{"_id": None, "count": burned}] if burned is not None else []}

    return respond


# ============================================================
# TOKEN TESTS
# ============================================================

class TestTokens:
    """Tests for token operations."""

    def test_identity(self, slpdb_service):
        assert slpdb_service.name == "slpdb"
        assert slpdb_service.backend == BackendKind.SLPDB

    @pytest.mark.asyncio
    async def test_token_stats(self, slpdb_client, slpdb_service):
        """initial 1000 + minted 500 - burned 200."""
        slpdb_client.execute.side_effect = supply_responder()

        token = await slpdb_service.get_token_stats(TOKEN_ID)

        assert token.total_minted == 1500
        assert token.total_burned == 200
        assert token.circulating_supply == 1300
        assert slpdb_client.execute.await_count == 3

    @pytest.mark.asyncio
    async def test_token_stats_nothing_minted_or_burned(self, slpdb_client, slpdb_service):
        slpdb_client.execute.side_effect = supply_responder(minted=None, burned=None)

        token = await slpdb_service.get_token_stats(TOKEN_ID)

        assert token.total_minted == 1000
        assert token.total_burned == 0
        assert token.circulating_supply == 1000

    @pytest.mark.asyncio
    async def test_token_stats_not_found(self, slpdb_client, slpdb_service):
        slpdb_client.execute.side_effect = supply_responder(token_rows=[])

        with pytest.raises(NotFoundError) as exc_info:
            await slpdb_service.get_token_stats(TOKEN_ID)

        assert exc_info.value.message == "Token could not be found"
        assert exc_info.value.entity_id == TOKEN_ID

    @pytest.mark.asyncio
    async def test_list_single_token_carries_totals(self, slpdb_client, slpdb_service):
        slpdb_client.execute.side_effect = supply_responder()

        token = await slpdb_service.list_single_token(TOKEN_ID)

        assert token.to_dict()["totalMinted"] == 1500

    @pytest.mark.asyncio
    async def test_list_all_tokens(self, slpdb_client, slpdb_service):
        slpdb_client.execute.return_value = {
            "t": [make_raw_token(TOKEN_ID), make_raw_token(OTHER_TOKEN_ID)],
        }

        tokens = await slpdb_service.list_all_tokens()

        assert [t.id for t in tokens] == [TOKEN_ID, OTHER_TOKEN_ID]
        assert all(t.total_minted is None for t in tokens)

    @pytest.mark.asyncio
    async def test_list_bulk_token_with_unknown(self, slpdb_client, slpdb_service):
        slpdb_client.execute.return_value = {"t": [make_raw_token(TOKEN_ID)]}

        tokens = await slpdb_service.list_bulk_token([TOKEN_ID, OTHER_TOKEN_ID])

        assert tokens[0].id == TOKEN_ID
        assert tokens[1] == MissingToken(id=OTHER_TOKEN_ID)

    @pytest.mark.asyncio
    async def test_token_stats_bulk_in_order(self, slpdb_client, slpdb_service):
        async def respond(query):
            q = query["q"]
            if q["db"] == ["t"]:
                token_id = q["find"]["$query"]["tokenDetails.tokenIdHex"]
                return {"t": [make_raw_token(token_id)]}
            return {"g": []}

        slpdb_client.execute.side_effect = respond

        tokens = await slpdb_service.get_token_stats_bulk([OTHER_TOKEN_ID, TOKEN_ID])

        assert [t.id for t in tokens] == [OTHER_TOKEN_ID, TOKEN_ID]

    @pytest.mark.asyncio
    async def test_bulk_fails_on_first_error(self, slpdb_client, slpdb_service):
        healthy = supply_responder()

        async def respond(query):
            q = query["q"]
            if q["db"] == ["t"] and q["find"]["$query"]["tokenDetails.tokenIdHex"] == OTHER_TOKEN_ID:
                raise BackendError("HTTP 503", source_name="slpdb", status_code=503)
            return await healthy(query)

        slpdb_client.execute.side_effect = respond

        with pytest.raises(BackendError):
            await slpdb_service.get_token_stats_bulk([TOKEN_ID, OTHER_TOKEN_ID])


# ============================================================
# BALANCE TESTS
# ============================================================

class TestBalances:
    """Tests for balance operations."""

    @pytest.mark.asyncio
    async def test_balances_for_address_fetches_decimals(self, slpdb_client, slpdb_service):
        async def respond(query):
            q = query["q"]
            if q["db"] == ["t"]:
                return {"t": [{"tokenDetails": {"decimals": 2, "tokenIdHex": TOKEN_ID}}]}
            return {"g": [{"_id": TOKEN_ID, "balanceString": 12.5, "slpAddress": "simpleledger:qa"}]}

        slpdb_client.execute.side_effect = respond

        balances = await slpdb_service.get_balances_for_address_single(CASH_ADDRESS)

        assert len(balances) == 1
        assert balances[0].decimal_count == 2
        assert balances[0].balance_string == "12.5"

    @pytest.mark.asyncio
    async def test_balances_for_address_empty(self, slpdb_client, slpdb_service):
        slpdb_client.execute.return_value = {"g": []}

        assert await slpdb_service.get_balances_for_address_single(CASH_ADDRESS) == []
        assert slpdb_client.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_balances_queried_by_slp_address(self, slpdb_client, slpdb_service):
        slpdb_client.execute.return_value = {"g": []}

        await slpdb_service.get_balances_for_address_single(LEGACY_ADDRESS)

        query = slpdb_client.execute.await_args.args[0]
        match = query["q"]["aggregate"][0]["$match"]
        assert match["graphTxn.outputs"]["$elemMatch"]["address"] == addresses.to_slp_address(LEGACY_ADDRESS)

    @pytest.mark.asyncio
    async def test_balances_for_token(self, slpdb_client, slpdb_service):
        slpdb_client.execute.return_value = {"g": [
            {"_id": "simpleledger:qa", "token_balance": 3},
            {"_id": "simpleledger:qb", "token_balance": "4.5"},
        ]}

        holders = await slpdb_service.get_balances_for_token_single(TOKEN_ID)

        assert [h.token_balance_string for h in holders] == ["3", "4.5"]

    @pytest.mark.asyncio
    async def test_bulk_balance_by_token_zero_for_missing(self, slpdb_client, slpdb_service):
        holder = addresses.to_slp_address(CASH_ADDRESS)

        async def respond(query):
            address = query["q"]["aggregate"][0]["$match"]["graphTxn.outputs"]["$elemMatch"]["address"]
            if address == holder:
                return {"g": [{"_id": TOKEN_ID, "balanceString": "10", "slpAddress": holder}]}
            return {"g": []}

        slpdb_client.execute.side_effect = respond

        balances = await slpdb_service.get_balances_for_address_by_token_id_bulk([
            (CASH_ADDRESS, TOKEN_ID),
            (CASH_ADDRESS_B, TOKEN_ID),
        ])

        assert balances[0].balance == 10
        assert balances[1].balance == 0
        assert balances[1].balance_string == "0"
        assert balances[1].cash_address == CASH_ADDRESS_B
        assert balances[1].token_id == TOKEN_ID


# ============================================================
# TRANSACTION TESTS
# ============================================================

class TestTransactions:
    """Tests for transaction operations."""

    @pytest.mark.asyncio
    async def test_validate_txid_unknown(self, slpdb_client, slpdb_service):
        slpdb_client.execute.return_value = {"c": [], "u": []}

        result = await slpdb_service.validate_txid("ab" * 32)

        assert result.to_dict() == {"txid": "ab" * 32, "valid": False}

    @pytest.mark.asyncio
    async def test_validate_txid_unconfirmed(self, slpdb_client, slpdb_service):
        slpdb_client.execute.return_value = {"c": [], "u": [make_validity_record("ab" * 32, True)]}

        result = await slpdb_service.validate_txid("ab" * 32)

        assert result.valid is True

    @pytest.mark.asyncio
    async def test_validate_array_cardinality(self, slpdb_client, slpdb_service):
        a, b, c = "a" * 64, "b" * 64, "c" * 64
        slpdb_client.execute.return_value = {
            "c": [make_validity_record(b, False, "Token outputs are greater than valid token inputs.")],
            "u": [make_validity_record(a, True)],
        }

        results = await slpdb_service.validate_txid_array([a, b, c, a])

        assert len(results) == 4
        assert [r.txid for r in results] == [a, b, c, a]
        assert [r.valid for r in results] == [True, False, False, True]
        assert "invalidReason" not in results[2].to_dict()

    @pytest.mark.asyncio
    async def test_validate_empty_array(self, slpdb_client, slpdb_service):
        assert await slpdb_service.validate_txid_array([]) == []
        slpdb_client.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_burn_total_zero(self, slpdb_client, slpdb_service):
        slpdb_client.execute.return_value = {"g": [{"inputTotal": "300", "outputTotal": "300"}]}

        burn = await slpdb_service.get_transaction_burn_total("ab" * 32)

        assert burn.burn_total == 0

    @pytest.mark.asyncio
    async def test_burn_total_bulk(self, slpdb_client, slpdb_service):
        slpdb_client.execute.return_value = {"g": [{"inputTotal": 10, "outputTotal": 4}]}

        burns = await slpdb_service.get_transaction_burn_total_bulk(["a" * 64, "b" * 64])

        assert [b.transaction_id for b in burns] == ["a" * 64, "b" * 64]
        assert all(b.burn_total == 6 for b in burns)

    @pytest.mark.asyncio
    async def test_transaction_details(self, slpdb_client, slpdb_service):
        slpdb_client.execute.return_value = {
            "c": [{
                "tx": {"h": "e" * 64},
                "slp": {
                    "valid": True,
                    "detail": {
                        "decimals": 0,
                        "tokenIdHex": TOKEN_ID,
                        "transactionType": "SEND",
                        "versionType": 1,
                        "outputs": [{"address": "simpleledger:qa", "amount": "5"}],
                    },
                },
            }],
            "u": [],
        }

        details = await slpdb_service.get_transaction_details("e" * 64)

        assert details.to_dict() == {
            "tokenInfo": {
                "versionType": 1,
                "transactionType": "SEND",
                "tokenIdHex": TOKEN_ID,
                "sendOutputs": ["0", "5"],
            },
            "tokenIsValid": True,
        }

    @pytest.mark.asyncio
    async def test_transaction_details_not_found(self, slpdb_client, slpdb_service):
        slpdb_client.execute.return_value = {"c": [], "u": []}

        with pytest.raises(NotFoundError):
            await slpdb_service.get_transaction_details("e" * 64)

    @pytest.mark.asyncio
    async def test_transaction_details_with_raw_transaction(self, slpdb_client):
        fetch = AsyncMock(return_value={"txid": "e" * 64, "size": 300})
        source = CachedTransactionSource(fetch, MemoryTransactionCache())
        service = SlpdbService(client=slpdb_client, transaction_source=source)
        slpdb_client.execute.return_value = {"c": [], "u": [{
            "tx": {"h": "e" * 64},
            "slp": {"valid": True, "detail": {"tokenIdHex": TOKEN_ID, "outputs": []}},
        }]}

        details = await service.get_transaction_details("e" * 64)
        await service.get_transaction_details("e" * 64)

        assert details.to_dict()["retData"]["size"] == 300
        fetch.assert_awaited_once_with("e" * 64)

    @pytest.mark.asyncio
    async def test_transactions_by_token_address(self, slpdb_client, slpdb_service):
        slpdb_client.execute.return_value = {
            "c": [{"tx": {"h": "1" * 64}, "slp": {"valid": True}}],
            "u": [{"tx": {"h": "2" * 64}, "slp": {"valid": True}}],
        }

        txs = await slpdb_service.get_transactions_by_token_id_address(TOKEN_ID, CASH_ADDRESS)

        assert txs == [
            {"txid": "1" * 64, "tokenDetails": {"valid": True}},
            {"txid": "2" * 64, "tokenDetails": {"valid": True}},
        ]

    @pytest.mark.asyncio
    async def test_historical_transactions(self, slpdb_client, slpdb_service):
        slpdb_client.execute.return_value = {"c": [{"tx": {"h": "1"}}], "u": [{"tx": {"h": "2"}}]}

        txs = await slpdb_service.get_historical_slp_transactions([LEGACY_ADDRESS], from_block=600000)

        assert txs == [{"tx": {"h": "1"}}, {"tx": {"h": "2"}}]
        query = slpdb_client.execute.await_args.args[0]["q"]["find"]["$query"]
        assert query["$or"][0] == {"in.e.a": addresses.strip_prefix(CASH_ADDRESS)}
        assert query["$or"][1] == {"slp.detail.outputs.address": addresses.to_slp_address(CASH_ADDRESS)}
        assert query["blk.i"] == {"$not": {"$lte": 600000}}

    @pytest.mark.asyncio
    async def test_historical_transactions_no_addresses(self, slpdb_client, slpdb_service):
        """An empty address list never reaches SLPDB as an empty $or."""
        assert await slpdb_service.get_historical_slp_transactions([]) == []
        slpdb_client.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_backend_error_propagates(self, slpdb_client, slpdb_service):
        slpdb_client.execute.side_effect = BackendError("Timed out", source_name="slpdb", context={"timeout": True})

        with pytest.raises(BackendError) as exc_info:
            await slpdb_service.validate_txid("ab" * 32)

        assert exc_info.value.is_timeout()
