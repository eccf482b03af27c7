"""
Query Builder - Backend request construction.

SLPDB requests are query documents `{"v": 3, "q": {...}}` against one or
more collections:
- c: confirmed transactions
- u: unconfirmed transactions
- t: tokens
- g: graph transactions (per-output validity status)

REST indexer requests are fixed relative paths.

Nothing here performs I/O or raises; addresses arrive already converted.
"""

from typing import Any, Optional


QUERY_VERSION = 3

CONFIRMED = "c"
UNCONFIRMED = "u"
TOKENS = "t"
GRAPH = "g"

MINT_STATUSES = [
    "BATON_SPENT_IN_MINT",
    "BATON_UNSPENT",
    "BATON_SPENT_NOT_IN_MINT",
]

BURN_STATUSES = [
    "SPENT_NON_SLP",
    "BATON_SPENT_INVALID_SLP",
    "SPENT_INVALID_SLP",
    "BATON_SPENT_NON_SLP",
    "MISSING_BCH_VOUT",
    "BATON_MISSING_BCH_VOUT",
    "BATON_SPENT_NOT_IN_MINT",
    "EXCESS_INPUT_BURNED",
]

TOKEN_PROJECTION = {"tokenDetails": 1, "tokenStats": 1, "_id": 0}
VALIDITY_PROJECTION = {"slp.valid": 1, "tx.h": 1, "slp.invalidReason": 1}
HISTORY_PROJECTION = {
    "_id": 0,
    "tx.h": 1,
    "in.i": 1,
    "in.e": 1,
    "out.e": 1,
    "out.a": 1,
    "slp.detail": 1,
    "blk": 1,
}


class SlpdbQueryBuilder:
    """Builds SLPDB query documents for each logical operation."""

    LIST_LIMIT = 10000
    SINGLE_TOKEN_LIMIT = 1
    VALIDATION_LIMIT = 300
    HISTORY_LIMIT = 500
    TOKEN_TX_LIMIT = 100
    GRAPH_LIMIT = 10000

    @staticmethod
    def _wrap(q: dict[str, Any]) -> dict[str, Any]:
        return {"v": QUERY_VERSION, "q": q}

    # ─────────────────────────────────────────────────────────────
    # Token documents
    # ─────────────────────────────────────────────────────────────

    def token_details(self, token_id: str, limit: int = SINGLE_TOKEN_LIMIT) -> dict[str, Any]:
        return self._wrap({
            "db": [TOKENS],
            "find": {"$query": {"tokenDetails.tokenIdHex": token_id}},
            "project": dict(TOKEN_PROJECTION),
            "limit": limit,
        })

    def list_all_tokens(self) -> dict[str, Any]:
        return self._wrap({
            "db": [TOKENS],
            "find": {"$query": {}},
            "project": dict(TOKEN_PROJECTION),
            "sort": {"tokenStats.block_created": -1},
            "limit": self.LIST_LIMIT,
        })

    def list_bulk_tokens(self, token_ids: list[str]) -> dict[str, Any]:
        return self._wrap({
            "db": [TOKENS],
            "find": {"tokenDetails.tokenIdHex": {"$in": list(token_ids)}},
            "project": dict(TOKEN_PROJECTION),
            "sort": {"tokenStats.block_created": -1},
            "limit": self.LIST_LIMIT,
        })

    def token_decimals(self, token_id: str) -> dict[str, Any]:
        return self._wrap({
            "db": [TOKENS],
            "find": {"$query": {"tokenDetails.tokenIdHex": token_id}},
            "project": {"tokenDetails.decimals": 1, "tokenDetails.tokenIdHex": 1, "_id": 0},
            "limit": self.SINGLE_TOKEN_LIMIT,
        })

    # ─────────────────────────────────────────────────────────────
    # Supply aggregations
    # ─────────────────────────────────────────────────────────────

    def total_minted(self, token_id: str) -> dict[str, Any]:
        return self._wrap({
            "db": [GRAPH],
            "aggregate": [
                {
                    "$match": {
                        "tokenDetails.tokenIdHex": token_id,
                        "graphTxn.outputs.status": {"$in": list(MINT_STATUSES)},
                    }
                },
                {"$unwind": "$graphTxn.outputs"},
                {
                    "$group": {
                        "_id": None,
                        "count": {"$sum": "$graphTxn.outputs.slpAmount"},
                    }
                },
            ],
            "limit": 1,
        })

    def total_burned(self, token_id: str) -> dict[str, Any]:
        # Containment before the unwind, exact status after it.
        return self._wrap({
            "db": [GRAPH],
            "aggregate": [
                {
                    "$match": {
                        "tokenDetails.tokenIdHex": token_id,
                        "graphTxn.outputs.status": {"$in": list(BURN_STATUSES)},
                    }
                },
                {"$unwind": "$graphTxn.outputs"},
                {
                    "$match": {
                        "graphTxn.outputs.status": {"$in": list(BURN_STATUSES)},
                    }
                },
                {
                    "$group": {
                        "_id": None,
                        "count": {"$sum": "$graphTxn.outputs.slpAmount"},
                    }
                },
            ],
            "limit": 1,
        })

    # ─────────────────────────────────────────────────────────────
    # Balance aggregations
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def _unspent_output(slp_address: Optional[str] = None) -> dict[str, Any]:
        predicate: dict[str, Any] = {}
        if slp_address is not None:
            predicate["address"] = slp_address
        predicate["status"] = "UNSPENT"
        predicate["slpAmount"] = {"$gte": 0}
        return predicate

    def balances_for_address(self, slp_address: str) -> dict[str, Any]:
        """All token balances of one address, grouped by token id."""
        unspent = self._unspent_output(slp_address)
        return self._wrap({
            "db": [GRAPH],
            "aggregate": [
                {"$match": {"graphTxn.outputs": {"$elemMatch": unspent}}},
                {"$unwind": "$graphTxn.outputs"},
                {"$match": {f"graphTxn.outputs.{k}": v for k, v in unspent.items()}},
                {
                    "$project": {
                        "amount": "$graphTxn.outputs.slpAmount",
                        "address": "$graphTxn.outputs.address",
                        "txid": "$graphTxn.txid",
                        "vout": "$graphTxn.outputs.vout",
                        "tokenId": "$tokenDetails.tokenIdHex",
                    }
                },
                {
                    "$group": {
                        "_id": "$tokenId",
                        "balanceString": {"$sum": "$amount"},
                        "slpAddress": {"$first": "$address"},
                    }
                },
            ],
            "limit": self.GRAPH_LIMIT,
        })

    def balances_for_token(self, token_id: str) -> dict[str, Any]:
        """Balance of one token across all holders, grouped by address."""
        unspent = self._unspent_output()
        post_unwind = {f"graphTxn.outputs.{k}": v for k, v in unspent.items()}
        post_unwind["tokenDetails.tokenIdHex"] = token_id
        return self._wrap({
            "db": [GRAPH],
            "aggregate": [
                {
                    "$match": {
                        "graphTxn.outputs": {"$elemMatch": unspent},
                        "tokenDetails.tokenIdHex": token_id,
                    }
                },
                {"$unwind": "$graphTxn.outputs"},
                {"$match": post_unwind},
                {
                    "$project": {
                        "token_balance": "$graphTxn.outputs.slpAmount",
                        "address": "$graphTxn.outputs.address",
                        "txid": "$graphTxn.txid",
                        "vout": "$graphTxn.outputs.vout",
                        "tokenId": "$tokenDetails.tokenIdHex",
                    }
                },
                {
                    "$group": {
                        "_id": "$address",
                        "token_balance": {"$sum": "$token_balance"},
                    }
                },
            ],
            "limit": self.GRAPH_LIMIT,
        })

    # ─────────────────────────────────────────────────────────────
    # Transaction queries
    # ─────────────────────────────────────────────────────────────

    def burn_total(self, txid: str) -> dict[str, Any]:
        return self._wrap({
            "db": [GRAPH],
            "aggregate": [
                {"$match": {"graphTxn.txid": txid}},
                {
                    "$project": {
                        "graphTxn.txid": 1,
                        "inputTotal": {"$sum": "$graphTxn.inputs.slpAmount"},
                        "outputTotal": {"$sum": "$graphTxn.outputs.slpAmount"},
                    }
                },
            ],
            "limit": 1000,
        })

    def validate_txids(self, txids: list[str]) -> dict[str, Any]:
        if len(txids) == 1:
            match: Any = txids[0]
        else:
            match = {"$in": list(txids)}
        return self._wrap({
            "db": [CONFIRMED, UNCONFIRMED],
            "find": {"tx.h": match},
            "limit": self.VALIDATION_LIMIT,
            "project": dict(VALIDITY_PROJECTION),
        })

    def transaction_details(self, txid: str) -> dict[str, Any]:
        return self._wrap({
            "db": [CONFIRMED, UNCONFIRMED],
            "find": {"tx.h": txid},
            "limit": self.VALIDATION_LIMIT,
        })

    def transactions_by_token_address(self, token_id: str, slp_address: str) -> dict[str, Any]:
        return self._wrap({
            "db": [CONFIRMED, UNCONFIRMED],
            "find": {
                "$query": {
                    "$or": [
                        {"in.e.a": slp_address},
                        {"out.e.a": slp_address},
                    ],
                    "slp.detail.tokenIdHex": token_id,
                },
                "$orderby": {"blk.i": -1},
            },
            "project": {"_id": 0, "tx.h": 1, "slp": 1, "blk": 1},
            "limit": self.TOKEN_TX_LIMIT,
        })

    def historical_transactions(
        self,
        addresses: list[tuple[str, str]],
        from_block: int = 0,
    ) -> dict[str, Any]:
        """
        Valid SLP transactions touching any of `addresses` above `from_block`.

        Args:
            addresses: (cash address without prefix, slp address) pairs
            from_block: exclusive block height floor
        """
        or_clauses: list[dict[str, Any]] = []
        for cash_address, slp_address in addresses:
            or_clauses.append({"in.e.a": cash_address})
            or_clauses.append({"slp.detail.outputs.address": slp_address})

        return self._wrap({
            "db": [CONFIRMED, UNCONFIRMED],
            "find": {
                "$query": {
                    "$or": or_clauses,
                    "slp.valid": True,
                    "blk.i": {"$not": {"$lte": from_block}},
                },
                "$orderby": {"blk.i": -1},
            },
            "project": dict(HISTORY_PROJECTION),
            "limit": self.HISTORY_LIMIT,
        })


class IndexerRoutes:
    """Relative paths of the plain REST indexer."""

    LIST = "list/"
    BALANCES_FOR_ADDRESS = "balancesForAddress/"
    BALANCES_FOR_TOKEN = "balancesForToken/"
    VALIDATE_TXID = "validateTxid/"
    BURN_TOTAL = "burnTotal/"
    TOKEN_STATS = "tokenStats/"

    @classmethod
    def list_single_token(cls, token_id: str) -> str:
        return f"{cls.LIST}{token_id}"

    @classmethod
    def list_bulk_token(cls, token_ids: list[str]) -> tuple[str, dict[str, Any]]:
        return cls.LIST, {"tokenIds": list(token_ids)}

    @classmethod
    def balances_for_address(cls, address: str) -> str:
        return f"{cls.BALANCES_FOR_ADDRESS}{address}"

    @classmethod
    def balances_for_token(cls, token_id: str) -> str:
        return f"{cls.BALANCES_FOR_TOKEN}{token_id}"

    @classmethod
    def validate_txid(cls, txid: str) -> str:
        return f"{cls.VALIDATE_TXID}{txid}"

    @classmethod
    def validate_txid_array(cls, txids: list[str]) -> tuple[str, dict[str, Any]]:
        return cls.VALIDATE_TXID, {"txids": list(txids)}

    @classmethod
    def burn_total(cls, txid: str) -> str:
        return f"{cls.BURN_TOTAL}{txid}"

    @classmethod
    def token_stats(cls, token_id: str) -> str:
        return f"{cls.TOKEN_STATS}{token_id}"
