"""
Principals - caller identities.

A principal is an EIP-55 checksummed address. Every comparison in the
registry goes through to_principal() so "0xabc..." and "0xABC..." are the
same caller.
"""

from eth_utils import is_address, to_checksum_address

Principal = str


def to_principal(address: str) -> Principal:
    """Normalize an address. Raises ValueError if it is not one."""
    if not isinstance(address, str) or not is_address(address):
        raise ValueError(f"invalid address: {address!r}")
    return to_checksum_address(address)


def short(address: str) -> str:
    """Log-friendly form: first 10 chars."""
    return f"{address[:10]}..." if len(address) > 10 else address
