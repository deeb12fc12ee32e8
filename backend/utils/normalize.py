import re
from typing import Optional

from web3 import Web3

_HEX_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_TX_HASH_RE = re.compile(r"^0x[a-f0-9]{64}$")


def normalize_address(value: Optional[str]) -> Optional[str]:
    """Return the lowercase form of a valid EVM address, else None.

    Mixed-case input must carry a valid EIP-55 checksum. Surrounding
    whitespace is not trimmed.
    """
    if not value or not isinstance(value, str):
        return None
    if not _HEX_ADDRESS_RE.match(value):
        return None
    digits = value[2:]
    if digits != digits.lower() and digits != digits.upper() and not Web3.is_checksum_address(value):
        return None
    return value.lower()


def normalize_tx_hash(value: Optional[str]) -> Optional[str]:
    if not value or not isinstance(value, str):
        return None
    candidate = value.strip().lower()
    return candidate if _TX_HASH_RE.match(candidate) else None
