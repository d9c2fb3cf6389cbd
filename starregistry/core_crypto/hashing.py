"""
Block Hashing

SHA-256 digests for ledger blocks:
- Canonical JSON encoding (sorted keys, compact separators)
- Hex digests of arbitrary bytes
- Block hash over {height, time, previous_block_hash, body}

The block hash is deterministic within a process; nothing here is meant to
be compatible with other implementations.
"""

import hashlib
import json
from typing import Any, Optional


HASH_HEX_LENGTH = 64  # SHA-256 digest as hex


def canonical_json(obj: Any) -> bytes:
    """
    Encode an object as canonical JSON bytes.

    Keys are sorted and no whitespace is emitted, so equal objects always
    produce equal bytes.

    Args:
        obj: JSON-serializable object

    Returns:
        UTF-8 encoded JSON
    """
    return json.dumps(
        obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False
    ).encode('utf-8')


def sha256(data: bytes) -> bytes:
    """Compute the raw 32-byte SHA-256 digest."""
    return hashlib.sha256(data).digest()


def sha256_hex(data: bytes) -> str:
    """
    Compute SHA-256 hash and return as hexadecimal string.

    Args:
        data: Input bytes to hash

    Returns:
        64-character hexadecimal string
    """
    return hashlib.sha256(data).hexdigest()


def hash_block(
    height: int,
    time: int,
    previous_block_hash: Optional[str],
    body: str
) -> str:
    """
    Compute the hash of a block from every field except the hash itself.

    Args:
        height: Block height
        time: Block timestamp (whole seconds)
        previous_block_hash: Hash of the predecessor, None for genesis
        body: Encoded block body

    Returns:
        64-character hexadecimal digest
    """
    return sha256_hex(canonical_json({
        'height': height,
        'time': time,
        'previous_block_hash': previous_block_hash,
        'body': body,
    }))
