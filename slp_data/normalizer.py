"""
Response Normalizer - Raw backend records to canonical records.

Pure functions. Each builds a new record from the raw payload; the
decoded payload itself is never modified.

Token rules:
- tokenIdHex -> id, documentSha256Hex -> documentHash,
  timestamp_unix -> timestampUnix
- genesisOrMintQuantity (decimal string) -> initialTokenQty (float)
- transactionType, batonVout, sendOutputs are dropped
- six tokenStats fields are lifted onto the token
- supply totals stay None unless with_supply() fills them

Absence rules:
- no balance rows -> zero balance record
- no burn row -> zero burn totals
- unknown txid -> {txid, valid: False}
"""

import logging
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Union

from slp_data import addresses
from slp_data.exceptions import NormalizationError
from slp_data.models import (
    AddressTokenBalance,
    Balance,
    BurnTotal,
    MissingToken,
    Token,
    TokenHolderBalance,
    TransactionDetails,
    ValidationResult,
)


logger = logging.getLogger(__name__)


RENAMED_DETAIL_FIELDS = ("tokenIdHex", "documentSha256Hex", "genesisOrMintQuantity", "timestamp_unix")
DISCARDED_DETAIL_FIELDS = ("transactionType", "batonVout", "sendOutputs")

# tokenStats field -> Token attribute
LIFTED_STATS_FIELDS = {
    "block_created": "block_created",
    "block_last_active_send": "block_last_active_send",
    "block_last_active_mint": "block_last_active_mint",
    "qty_valid_txns_since_genesis": "txns_since_genesis",
    "qty_valid_token_addresses": "valid_addresses",
    "minting_baton_status": "minting_baton_status",
}

DEFAULT_SEND_DECIMALS = 8


# =============================================================
# AMOUNTS
# =============================================================


def amount_string(value: Any) -> str:
    """
    Exact decimal string for a backend token quantity.

    Accepts strings, ints, floats, Decimals and Mongo extended JSON
    `{"$numberDecimal": "..."}`. Integral values never carry a ".0".
    """
    if value is None:
        return "0"
    if isinstance(value, dict) and "$numberDecimal" in value:
        value = value["$numberDecimal"]
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        raise NormalizationError("Boolean is not a token quantity", raw_data=value)
    if isinstance(value, int):
        return str(value)

    try:
        dec = Decimal(str(value))
    except InvalidOperation as e:
        raise NormalizationError("Unparseable token quantity", raw_data=value, original_error=e)
    if dec == dec.to_integral_value():
        return str(int(dec))
    return format(dec.normalize(), "f")


def to_float(value: Any) -> float:
    try:
        return float(amount_string(value))
    except ValueError as e:
        raise NormalizationError("Unparseable token quantity", raw_data=value, original_error=e)


def merge_collections(payload: Optional[dict[str, Any]], *collections: str) -> list[dict[str, Any]]:
    """Concatenate the named collections of an SLPDB response, in order."""
    rows: list[dict[str, Any]] = []
    if not payload:
        return rows
    for name in collections:
        rows.extend(payload.get(name) or [])
    return rows


def aggregate_count(rows: list[dict[str, Any]]) -> float:
    """Scalar of a `$group: {_id: null, count: ...}` aggregation; 0 when empty."""
    if not rows:
        return 0
    return to_float(rows[0].get("count"))


# =============================================================
# TOKENS
# =============================================================


def normalize_token(raw: dict[str, Any]) -> Token:
    """Map one `{tokenDetails, tokenStats}` record to a Token."""
    details = raw.get("tokenDetails")
    if not isinstance(details, dict) or "tokenIdHex" not in details:
        raise NormalizationError("Token record has no tokenDetails.tokenIdHex", raw_data=raw, field_name="tokenDetails")

    stats = raw.get("tokenStats") or {}

    try:
        initial_qty = float(amount_string(details.get("genesisOrMintQuantity")))
    except ValueError as e:
        raise NormalizationError(
            "Unparseable genesisOrMintQuantity",
            raw_data=details,
            field_name="genesisOrMintQuantity",
            original_error=e,
        )

    extra = {
        k: v for k, v in details.items()
        if k not in RENAMED_DETAIL_FIELDS and k not in DISCARDED_DETAIL_FIELDS
    }
    lifted = {attr: stats.get(key) for key, attr in LIFTED_STATS_FIELDS.items()}

    return Token(
        id=details["tokenIdHex"],
        document_hash=details.get("documentSha256Hex"),
        initial_token_qty=initial_qty,
        timestamp_unix=details.get("timestamp_unix"),
        extra=extra,
        **lifted,
    )


def normalize_tokens(rows: Iterable[dict[str, Any]]) -> list[Token]:
    return [normalize_token(row) for row in rows]


def normalize_bulk_tokens(
    rows: Iterable[dict[str, Any]],
    requested_ids: list[str],
) -> list[Union[Token, MissingToken]]:
    """Tokens in backend order, then a placeholder per unknown requested id."""
    tokens: list[Union[Token, MissingToken]] = list(normalize_tokens(rows))
    found = {token.id for token in tokens}
    for token_id in requested_ids:
        if token_id not in found:
            tokens.append(MissingToken(id=token_id))
            found.add(token_id)
    return tokens


def normalize_indexer_token(raw: dict[str, Any]) -> Token:
    """REST indexer tokens arrive either raw or already in the public schema."""
    if "tokenDetails" in raw:
        return normalize_token(raw)
    if "id" not in raw:
        raise NormalizationError("Indexer token has no id", raw_data=raw, field_name="id")
    return Token.from_dict(raw)


def with_supply(token: Token, minted_since_genesis: float, burned: float) -> Token:
    """Fill totalMinted, totalBurned and circulatingSupply."""
    total_minted = token.initial_token_qty + minted_since_genesis
    return replace(
        token,
        total_minted=total_minted,
        total_burned=burned,
        circulating_supply=total_minted - burned,
    )


# =============================================================
# BALANCES
# =============================================================


def _row_token_id(row: dict[str, Any]) -> Optional[str]:
    return row.get("_id", row.get("tokenId"))


def normalize_address_balances(
    rows: Iterable[dict[str, Any]],
    decimals: Optional[dict[str, Optional[int]]] = None,
) -> list[AddressTokenBalance]:
    """Grouped-by-token rows for one address."""
    decimals = decimals or {}
    balances = []
    for row in rows:
        token_id = _row_token_id(row)
        balance_string = amount_string(row.get("balanceString"))
        balances.append(AddressTokenBalance(
            token_id=token_id,
            balance=to_float(balance_string),
            balance_string=balance_string,
            slp_address=row.get("slpAddress"),
            decimal_count=decimals.get(token_id, row.get("decimalCount")),
        ))
    return balances


def normalize_token_holders(
    rows: Iterable[dict[str, Any]],
    token_id: str,
) -> list[TokenHolderBalance]:
    """Grouped-by-address rows for one token."""
    holders = []
    for row in rows:
        raw_amount = row["token_balance"] if "token_balance" in row else row.get("tokenBalanceString")
        balance_string = amount_string(raw_amount)
        holders.append(TokenHolderBalance(
            token_id=token_id,
            slp_address=row.get("_id", row.get("slpAddress")),
            token_balance=to_float(balance_string),
            token_balance_string=balance_string,
        ))
    return holders


def zero_balance(address: str, token_id: str) -> Balance:
    slp_address = addresses.to_slp_address(address)
    return Balance(
        slp_address=slp_address,
        cash_address=addresses.to_cash_address(slp_address),
        legacy_address=addresses.to_legacy_address(slp_address),
        token_id=token_id,
        balance=0,
        balance_string="0",
    )


def normalize_balance_for_token(
    rows: Iterable[dict[str, Any]],
    address: str,
    token_id: str,
) -> Balance:
    """Pick the row for `token_id` out of an address's balances; zero if absent."""
    placeholder = zero_balance(address, token_id)
    for row in rows:
        if _row_token_id(row) == token_id:
            balance_string = amount_string(row.get("balanceString"))
            return replace(
                placeholder,
                balance=to_float(balance_string),
                balance_string=balance_string,
            )
    return placeholder


# =============================================================
# TRANSACTIONS
# =============================================================


def normalize_burn_total(rows: list[dict[str, Any]], txid: str) -> BurnTotal:
    if not rows:
        return BurnTotal(transaction_id=txid)

    input_total = to_float(rows[0].get("inputTotal"))
    output_total = to_float(rows[0].get("outputTotal"))
    burn = input_total - output_total
    if burn < 0:
        logger.warning(f"Negative burn total {burn} for {txid}: outputs exceed inputs")

    return BurnTotal(
        transaction_id=txid,
        input_total=input_total,
        output_total=output_total,
        burn_total=burn,
    )


def burn_total_from_dict(data: dict[str, Any], txid: str) -> BurnTotal:
    """Indexer burn totals arrive already in the public schema."""
    return normalize_burn_total(
        [{"inputTotal": data.get("inputTotal"), "outputTotal": data.get("outputTotal")}],
        data.get("transactionId") or txid,
    )


def validation_from_record(record: dict[str, Any]) -> ValidationResult:
    """Map a `{tx: {h}, slp: {valid, invalidReason}}` record."""
    slp = record.get("slp") or {}
    valid = bool(slp.get("valid"))
    return ValidationResult(
        txid=record["tx"]["h"],
        valid=valid,
        invalid_reason=None if valid else slp.get("invalidReason"),
    )


def validation_from_dict(data: dict[str, Any]) -> ValidationResult:
    valid = bool(data.get("valid"))
    return ValidationResult(
        txid=data["txid"],
        valid=valid,
        invalid_reason=None if valid else data.get("invalidReason"),
    )


def normalize_validation(records: list[dict[str, Any]], txid: str) -> ValidationResult:
    if not records:
        return ValidationResult(txid=txid, valid=False)
    return validation_from_record(records[0])


def restore_request_order(
    results: Iterable[ValidationResult],
    txids: list[str],
) -> list[ValidationResult]:
    """
    One result per requested txid, in request order.

    Backends drop duplicates and unknown ids; every occurrence in
    `txids` (duplicates included) resolves by lookup, falling back
    to {txid, valid: False}.
    """
    index: dict[str, ValidationResult] = {}
    for result in results:
        index.setdefault(result.txid, result)
    return [index.get(txid) or ValidationResult(txid=txid, valid=False) for txid in txids]


def normalize_validation_array(
    records: Iterable[dict[str, Any]],
    txids: list[str],
) -> list[ValidationResult]:
    return restore_request_order((validation_from_record(r) for r in records), txids)


def _send_amount(amount: Any, decimals: int) -> str:
    return amount_string(Decimal(amount_string(amount)).scaleb(decimals))


def normalize_transaction_details(
    confirmed: list[dict[str, Any]],
    unconfirmed: list[dict[str, Any]],
    raw_transaction: Optional[dict[str, Any]] = None,
) -> Optional[TransactionDetails]:
    """
    Token info of the first unconfirmed record, else the first confirmed one.

    sendOutputs holds base-unit quantities with a leading "0" for the
    OP_RETURN output. Amounts are scaled by the token's own
    `slp.detail.decimals` (8 when absent). Gateways that scale by a
    fixed 1e8 produce the same values only for 8-decimal tokens; for
    any other token these outputs differ from theirs.
    """
    records = unconfirmed or confirmed
    if not records:
        return None

    transaction = records[0]
    slp = transaction.get("slp") or {}
    detail = slp.get("detail") or {}

    try:
        decimals = int(detail.get("decimals", DEFAULT_SEND_DECIMALS))
        send_outputs = ["0"] + [
            _send_amount(output.get("amount"), decimals)
            for output in detail.get("outputs") or []
        ]
    except (InvalidOperation, TypeError, ValueError) as e:
        raise NormalizationError(
            "Unparseable token outputs",
            raw_data=detail,
            field_name="slp.detail.outputs",
            original_error=e,
        )

    return TransactionDetails(
        token_id_hex=detail.get("tokenIdHex"),
        version_type=detail.get("versionType"),
        transaction_type=detail.get("transactionType"),
        send_outputs=send_outputs,
        token_is_valid=bool(slp.get("valid")),
        raw_transaction=raw_transaction,
    )
