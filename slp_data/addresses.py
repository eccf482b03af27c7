"""
Address conversion - slp / cash / legacy forms of one address.

An address decodes to (network, kind, hash160); every representation
is re-encoded from that triple:
- cash:   bitcoincash:q... / bchtest:q...
- slp:    simpleledger:q... / slptest:q...
- legacy: base58check 1... / 3... (mainnet), m/n... / 2... (testnet)

Prefixes are optional on input.
"""

from dataclasses import dataclass

import base58

from slp_data.exceptions import RequestValidationError
from slp_data.models import Network


CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
GENERATORS = (0x98F2BC8E61, 0x79B76D99E2, 0xF33E5FB3C4, 0xAE2EABE2A8, 0x1E4F43E470)

P2PKH = "P2PKH"
P2SH = "P2SH"

CASH_PREFIXES = {Network.MAINNET: "bitcoincash", Network.TESTNET: "bchtest"}
SLP_PREFIXES = {Network.MAINNET: "simpleledger", Network.TESTNET: "slptest"}

# (network, kind) <-> legacy version byte
LEGACY_VERSIONS = {
    (Network.MAINNET, P2PKH): 0x00,
    (Network.MAINNET, P2SH): 0x05,
    (Network.TESTNET, P2PKH): 0x6F,
    (Network.TESTNET, P2SH): 0xC4,
}
LEGACY_LOOKUP = {v: k for k, v in LEGACY_VERSIONS.items()}

# cashaddr version byte type bits
TYPE_BITS = {P2PKH: 0, P2SH: 8}


@dataclass(frozen=True)
class DecodedAddress:
    network: Network
    kind: str
    hash160: bytes


def _polymod(values: list[int]) -> int:
    c = 1
    for d in values:
        c0 = c >> 35
        c = ((c & 0x07FFFFFFFF) << 5) ^ d
        for i, generator in enumerate(GENERATORS):
            if c0 & (1 << i):
                c ^= generator
    return c ^ 1


def _prefix_expand(prefix: str) -> list[int]:
    return [ord(x) & 0x1F for x in prefix] + [0]


def _convert_bits(data: bytes, from_bits: int, to_bits: int, pad: bool = True) -> list[int]:
    acc = 0
    bits = 0
    ret = []
    maxv = (1 << to_bits) - 1
    for value in data:
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            ret.append((acc >> bits) & maxv)
    if pad:
        if bits:
            ret.append((acc << (to_bits - bits)) & maxv)
    elif bits >= from_bits or ((acc << (to_bits - bits)) & maxv):
        raise ValueError("Invalid padding")
    return ret


def _encode_cashaddr(prefix: str, kind: str, hash160: bytes) -> str:
    payload = _convert_bits(bytes([TYPE_BITS[kind]]) + hash160, 8, 5)
    checksum = _polymod(_prefix_expand(prefix) + payload + [0] * 8)
    payload += [(checksum >> 5 * (7 - i)) & 0x1F for i in range(8)]
    return prefix + ":" + "".join(CHARSET[d] for d in payload)


def _decode_cashaddr(address: str) -> DecodedAddress:
    if address.lower() != address and address.upper() != address:
        raise ValueError("Mixed case address")
    address = address.lower()

    if ":" in address:
        prefix, body = address.split(":", 1)
        candidates = [prefix]
    else:
        body = address
        candidates = list(CASH_PREFIXES.values()) + list(SLP_PREFIXES.values())

    data = []
    for char in body:
        index = CHARSET.find(char)
        if index < 0:
            raise ValueError(f"Invalid character {char!r}")
        data.append(index)

    for prefix in candidates:
        if _polymod(_prefix_expand(prefix) + data) != 0:
            continue
        network = _network_for_prefix(prefix)
        decoded = bytes(_convert_bits(bytes(data[:-8]), 5, 8, pad=False))
        version, hash160 = decoded[0], decoded[1:]
        if len(hash160) != 20:
            raise ValueError("Only 160-bit hashes are supported")
        kind = P2SH if version & 0x78 == TYPE_BITS[P2SH] else P2PKH
        return DecodedAddress(network=network, kind=kind, hash160=hash160)

    raise ValueError("Bad checksum")


def _network_for_prefix(prefix: str) -> Network:
    for network in Network:
        if prefix in (CASH_PREFIXES[network], SLP_PREFIXES[network]):
            return network
    raise ValueError(f"Unknown prefix {prefix!r}")


def _decode_legacy(address: str) -> DecodedAddress:
    raw = base58.b58decode_check(address)
    if len(raw) != 21 or raw[0] not in LEGACY_LOOKUP:
        raise ValueError("Unknown legacy address version")
    network, kind = LEGACY_LOOKUP[raw[0]]
    return DecodedAddress(network=network, kind=kind, hash160=raw[1:])


def decode_address(address: str) -> DecodedAddress:
    """Decode any supported address form."""
    if not address or not isinstance(address, str):
        raise RequestValidationError("address can not be empty", field_name="address", value=address)

    try:
        return _decode_cashaddr(address)
    except ValueError:
        pass

    try:
        return _decode_legacy(address)
    except ValueError as e:
        raise RequestValidationError(
            f"Invalid BCH address. Double check your address is valid: {address}",
            field_name="address",
            value=address,
            context={"reason": str(e)},
        )


def to_cash_address(address: str) -> str:
    decoded = decode_address(address)
    return _encode_cashaddr(CASH_PREFIXES[decoded.network], decoded.kind, decoded.hash160)


def to_slp_address(address: str) -> str:
    decoded = decode_address(address)
    return _encode_cashaddr(SLP_PREFIXES[decoded.network], decoded.kind, decoded.hash160)


def to_legacy_address(address: str) -> str:
    decoded = decode_address(address)
    version = LEGACY_VERSIONS[(decoded.network, decoded.kind)]
    return base58.b58encode_check(bytes([version]) + decoded.hash160).decode("ascii")


def strip_prefix(address: str) -> str:
    """Drop the `prefix:` part of a cash or slp address."""
    return address.split(":", 1)[-1]


def address_network(address: str) -> Network:
    return decode_address(address).network


def validate_network(address: str, network: Network) -> bool:
    """True when the address belongs to `network`."""
    return address_network(address) == network
