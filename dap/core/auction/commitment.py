"""
Bid commitments for the sealed-bid registrar.

A commitment binds bidder, amount and secret without revealing them:

    C = keccak256(address || uint256(amount) || secret)

which is Solidity's keccak256(abi.encodePacked(address, uint256, string)),
the exact digest the registrar recomputes when a bid is revealed. The
function is pure: the same triple always yields the same 32 bytes, and no
salt is mixed in beyond the secret itself.
"""

from typing import Union

from dap.crypto import address_to_bytes, bytes_to_hex, keccak256
from dap.core.amount import MAX_UINT256
from dap.core.errors import EncodingError


# =============================================================================
# Constants
# =============================================================================

UINT256_SIZE = 32

# 32-byte keccak digest
Commitment = bytes


# =============================================================================
# Encoding
# =============================================================================


def _encode_secret(secret: Union[str, bytes]) -> bytes:
    if isinstance(secret, (bytes, bytearray)):
        return bytes(secret)
    if isinstance(secret, str):
        try:
            return secret.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise EncodingError(f"Secret is not valid UTF-8 text: {exc.reason}") from exc
    raise EncodingError(f"Secret must be str or bytes, got {type(secret).__name__}")


def encode_commitment_preimage(
    account: str,
    amount: int,
    secret: Union[str, bytes],
) -> bytes:
    """
    Tightly-packed encoding of a bid.

    Args:
        account: Bidder address (0x + 40 hex chars)
        amount: Bid in base units
        secret: Bidder's secret, text is UTF-8 encoded

    Returns:
        20 address bytes + 32-byte big-endian amount + secret bytes

    Raises:
        EncodingError: Bad address, negative or oversized amount,
            or a secret that cannot be turned into bytes
    """
    try:
        account_bytes = address_to_bytes(account)
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"Invalid bidder account: {account!r}") from exc

    if isinstance(amount, bool) or not isinstance(amount, int):
        raise EncodingError(f"Amount must be an integer, got {type(amount).__name__}")
    if amount < 0:
        raise EncodingError(f"Amount must not be negative: {amount}")
    if amount > MAX_UINT256:
        raise EncodingError("Amount does not fit in uint256")

    return account_bytes + amount.to_bytes(UINT256_SIZE, "big") + _encode_secret(secret)


def compute_commitment(
    account: str,
    amount: int,
    secret: Union[str, bytes],
) -> Commitment:
    """Commitment for (account, amount, secret); see module docstring."""
    return keccak256(encode_commitment_preimage(account, amount, secret))


def commitment_hex(commitment: Commitment) -> str:
    return bytes_to_hex(commitment)


__all__ = [
    "Commitment",
    "MAX_UINT256",
    "encode_commitment_preimage",
    "compute_commitment",
    "commitment_hex",
]
