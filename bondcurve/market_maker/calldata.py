"""
Call payloads for delegated order entry.

A collateral token's ``approve_and_call`` forwards an opaque payload to the
market maker. The payload is an ABI-encoded ``makeBuyOrder`` call: a 4-byte
selector followed by the arguments.
"""

from dataclasses import dataclass
from typing import List, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak, to_checksum_address

from ..chain import normalize_address
from ..constants import BUY_ORDER_SIGNATURE
from ..exceptions import NotBuyFunction


def compute_function_selector(function_signature: str) -> bytes:
    """First 4 bytes of keccak256 of a signature like ``makeBuyOrder(address,...)``."""
    return keccak(text=function_signature)[:4]


def argument_types(function_signature: str) -> List[str]:
    """ABI types listed between the parentheses of a signature."""
    inner = function_signature[function_signature.index('(') + 1:function_signature.rindex(')')]
    return [t.strip() for t in inner.split(',')] if inner else []


def encode_function_call(function_signature: str, *args) -> bytes:
    """Selector followed by the ABI-encoded ``args``."""
    types = argument_types(function_signature)
    if len(types) != len(args):
        raise ValueError(f"{function_signature} takes {len(types)} arguments, got {len(args)}")
    return compute_function_selector(function_signature) + (encode(types, list(args)) if types else b'')


BUY_ORDER_SELECTOR = compute_function_selector(BUY_ORDER_SIGNATURE)
BUY_ORDER_TYPES = argument_types(BUY_ORDER_SIGNATURE)


@dataclass(frozen=True)
class BuyOrderCall:
    buyer: str
    collateral: str
    deposit_amount: int
    min_return_amount: int


def encode_buy_order_call(buyer, collateral, deposit_amount: int, min_return_amount: int) -> bytes:
    """Payload for ``approve_and_call`` that places a buy order."""
    return encode_function_call(
        BUY_ORDER_SIGNATURE,
        normalize_address(buyer),
        normalize_address(collateral),
        deposit_amount,
        min_return_amount,
    )


def split_selector(data: bytes) -> Tuple[bytes, bytes]:
    if len(data) < 4:
        return b'', b''
    return data[:4], data[4:]


def decode_buy_order_call(data: bytes) -> BuyOrderCall:
    """
    Decode a ``makeBuyOrder`` payload.

    Raises:
        NotBuyFunction: if the selector is not ``makeBuyOrder`` or the
            arguments cannot be decoded.
    """
    selector, args = split_selector(bytes(data))
    if selector != BUY_ORDER_SELECTOR:
        raise NotBuyFunction(f"selector 0x{selector.hex()} is not makeBuyOrder")
    try:
        buyer, collateral, deposit_amount, min_return_amount = decode(BUY_ORDER_TYPES, args)
    except DecodingError as e:
        raise NotBuyFunction(f"undecodable makeBuyOrder payload: {e}") from e
    return BuyOrderCall(
        buyer=to_checksum_address(buyer),
        collateral=to_checksum_address(collateral),
        deposit_amount=deposit_amount,
        min_return_amount=min_return_amount,
    )
