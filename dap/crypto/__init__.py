"""
Cryptographic primitives for DAP.

This module provides:
- Keccak-256 hashing (the EVM hash used for bid commitments)
- Hex/bytes conversion helpers
- Address parsing and normalization

Design Notes:
-------------
The auction contract verifies reveals with Solidity's keccak256 over a
tightly-packed encoding, so the client must produce byte-identical digests.
Keccak-256 is NOT the same as NIST SHA3-256 (different padding), which is
why hashlib.sha3_256 cannot be used here.

Addresses are handled as 0x-prefixed hex strings everywhere outside this
module; only the commitment encoder needs the raw 20 bytes.
"""

from Crypto.Hash import keccak


# =============================================================================
# Constants
# =============================================================================

ADDRESS_SIZE = 20

# Returned by the registrar for unregistered domains
ZERO_ADDRESS = "0x" + "00" * ADDRESS_SIZE


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: bid commitments, compatibility with EVM conventions.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Encoding Helpers
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def is_valid_address(address: str) -> bool:
    """Check if string is a valid address format."""
    if not isinstance(address, str):
        return False
    if not (address.startswith("0x") or address.startswith("0X")):
        return False
    if len(address) != 2 + ADDRESS_SIZE * 2:  # 0x + 40 hex chars
        return False
    try:
        int(address[2:], 16)
        return True
    except ValueError:
        return False


def address_to_bytes(address: str) -> bytes:
    """
    Decode an address into its raw 20 bytes.

    Raises:
        ValueError: If the address is not 0x + 40 hex characters
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return hex_to_bytes(address)


def normalize_address(address: str) -> str:
    """Lowercase an address so checksummed and plain forms compare equal."""
    return bytes_to_hex(address_to_bytes(address))


def is_zero_address(address) -> bool:
    """True for None, empty, or the all-zero address."""
    if not address:
        return True
    return is_valid_address(address) and int(address[2:], 16) == 0


__all__ = [
    "ADDRESS_SIZE",
    "ZERO_ADDRESS",
    "keccak256",
    "bytes_to_hex",
    "hex_to_bytes",
    "is_valid_address",
    "address_to_bytes",
    "normalize_address",
    "is_zero_address",
]
