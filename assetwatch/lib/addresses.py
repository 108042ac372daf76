"""
Address and token id normalization.

Every identity comparison between fetched and stored assets goes through
this module, so that the same contract written in two different casings
always collapses to one checksummed form.
"""

import re
from typing import Any, Iterable, Set, Tuple

from web3 import Web3


# ERC-721 token ids are uint256
MAX_TOKEN_ID = 2**256 - 1
MAX_TOKEN_ID_DIGITS = len(str(MAX_TOKEN_ID))

_DECIMAL_RE = re.compile(r"[0-9]+")


class InvalidAddressError(ValueError):
    """Raised when a value cannot be interpreted as an account/contract address."""

    pass


class InvalidTokenIdError(ValueError):
    """Raised when a token id is not a non-negative uint256 integer."""

    pass


def normalize_address(address: Any) -> str:
    """
    Convert an address in any casing to its EIP-55 checksum form.

    Args:
        address: Hex address, with or without mixed-case checksum

    Returns:
        Checksummed address string

    Raises:
        InvalidAddressError: If the value is not a 20-byte hex address
    """
    if not isinstance(address, str) or not Web3.is_address(address):
        raise InvalidAddressError(f"Invalid address: {address!r}")
    return Web3.to_checksum_address(address)


def parse_token_id(token_id: Any) -> int:
    """
    Parse a marketplace token id into an integer.

    Args:
        token_id: Decimal string or int

    Returns:
        The token id as int

    Raises:
        InvalidTokenIdError: If the id is non-numeric, negative or exceeds uint256
    """
    if isinstance(token_id, bool):
        raise InvalidTokenIdError(f"Invalid token id: {token_id!r}")
    if isinstance(token_id, int):
        value = token_id
    else:
        text = str(token_id).strip()
        if not _DECIMAL_RE.fullmatch(text):
            raise InvalidTokenIdError(f"Invalid token id: {token_id!r}")
        if len(text.lstrip("0")) > MAX_TOKEN_ID_DIGITS:
            raise InvalidTokenIdError(f"Token id out of range: {text[:20]}...")
        try:
            value = int(text)
        except ValueError as e:
            raise InvalidTokenIdError(f"Invalid token id: {text[:20]!r}") from e

    if value < 0 or value > MAX_TOKEN_ID:
        raise InvalidTokenIdError(f"Token id out of range: {token_id!r}")
    return value


def collectible_key(address: Any, token_id: Any) -> Tuple[str, int]:
    """Return the (checksum address, int token id) identity of a collectible."""
    return normalize_address(address), parse_token_id(token_id)


def normalize_address_set(addresses: Iterable[Any]) -> Set[str]:
    """Normalize a collection of addresses, silently dropping invalid ones."""
    normalized = set()
    for address in addresses:
        try:
            normalized.add(normalize_address(address))
        except InvalidAddressError:
            continue
    return normalized

