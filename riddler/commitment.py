"""
Answer commitments.

commit(text) == keccak256(abi.encodePacked(text)) on the Solidity side, so a
commitment computed here can be checked against one produced by ethers.js
(solidityKeccak256(["bytes"], [solidityPack(["string"], [text])])).
"""

from eth_abi.packed import encode_packed
from eth_utils import keccak, to_hex

DIGEST_SIZE = 32


def pack_text(text: str) -> bytes:
    """Canonical byte encoding of a text: packed ABI encoding of a string."""
    if not isinstance(text, str):
        raise ValueError(f"expected text, got {type(text).__name__}")
    return encode_packed(["string"], [text])


def commit(text: str) -> bytes:
    return keccak(pack_text(text))


def commit_hex(text: str) -> str:
    return to_hex(commit(text))


def matches(text: str, commitment: bytes) -> bool:
    """True if revealing `text` opens `commitment`."""
    return commit(text) == bytes(commitment)
