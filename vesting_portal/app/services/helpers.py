#! app/services/helpers.py
import json
from datetime import datetime, timezone as dt_timezone

from eth_utils import is_address, to_checksum_address
from hexbytes import HexBytes
from web3 import Web3


class BigIntEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, (bytes, bytearray)):
            return Web3.to_hex(obj)
        return super(BigIntEncoder, self).default(obj)

    def encode(self, obj):
        # uint256 values overflow most JSON readers; ship them as strings
        return super().encode(_stringify_ints(obj))


def _stringify_ints(obj):
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, int):
        return str(obj)
    if isinstance(obj, dict):
        return {k: _stringify_ints(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_stringify_ints(v) for v in obj]
    return obj


def block_windows(start: int, end: int, size: int):
    """
    Splits the inclusive range [start, end] into consecutive inclusive windows
    of at most `size` blocks: block_windows(100, 399, 100) -> (100,199), (200,299), (300,399)
    """
    if size < 1:
        raise ValueError(f"window size must be positive, got {size}")
    lo = start
    while lo <= end:
        hi = min(lo + size - 1, end)
        yield lo, hi
        lo = hi + 1


def to_hex_str(value) -> str:
    """HexBytes / bytes / hex str -> '0x…' lowercase str"""
    return Web3.to_hex(HexBytes(value))


def normalize_address(address: str) -> str:
    if not is_address(address):
        raise ValueError(f"Invalid Ethereum address: {address!r}")
    return to_checksum_address(address)


def unix_to_datetime(seconds: int) -> datetime:
    return datetime.fromtimestamp(int(seconds), tz=dt_timezone.utc)
