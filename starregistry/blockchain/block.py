"""
Block Entity

A block holds one encoded payload plus the fields that place it in the chain.

Lifecycle:
- Block.new(data) builds an unattached candidate (body only)
- seal() assigns height, time and link and computes the hash
- validate() recomputes the hash and compares it to the stored one

Blocks are frozen dataclasses: sealing returns a new block, and a published
block never changes.

Body Format:
    hex(canonical JSON of the payload)
"""

import hmac
import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from ..core_crypto.hashing import canonical_json, hash_block
from .errors import BlockDecodeError


@dataclass(frozen=True)
class StarClaim:
    """
    A star registered to a wallet address.

    `star` is whatever descriptor the caller submitted (coordinates, story).
    """
    owner: str
    signature: str
    message: str
    star: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'owner': self.owner,
            'signature': self.signature,
            'message': self.message,
            'star': self.star,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StarClaim':
        """
        Create a claim from decoded block data.

        Raises:
            KeyError: If a claim field is missing
        """
        return cls(
            owner=data['owner'],
            signature=data['signature'],
            message=data['message'],
            star=data['star'],
        )


@dataclass(frozen=True)
class Block:
    """
    Immutable ledger block.

    An unattached block has only `body`; every other field is None until
    the ledger seals it.
    """
    body: str
    height: Optional[int] = None
    time: Optional[int] = None
    previous_block_hash: Optional[str] = None
    hash: Optional[str] = None

    @classmethod
    def new(cls, data: Dict[str, Any]) -> 'Block':
        """Create an unattached block carrying `data` as its body."""
        return cls(body=canonical_json(data).hex())

    @classmethod
    def for_star(cls, claim: StarClaim) -> 'Block':
        return cls.new(claim.to_dict())

    @property
    def is_sealed(self) -> bool:
        return self.hash is not None

    def compute_hash(self) -> str:
        """Hash over every field except `hash`."""
        return hash_block(self.height, self.time, self.previous_block_hash, self.body)

    def seal(self, height: int, time: int,
             previous_block_hash: Optional[str]) -> 'Block':
        """
        Place this block in the chain.

        Args:
            height: Height the block will occupy
            time: Timestamp in whole seconds
            previous_block_hash: Tip hash, None for genesis

        Returns:
            A new block with every field assigned
        """
        placed = replace(
            self,
            height=height,
            time=time,
            previous_block_hash=previous_block_hash,
            hash=None,
        )
        return replace(placed, hash=placed.compute_hash())

    def validate(self) -> bool:
        """Check that the stored hash matches the block's own content."""
        if self.hash is None:
            return False
        return hmac.compare_digest(
            self.compute_hash().encode('utf-8'),
            str(self.hash).encode('utf-8')
        )

    def decode_body(self) -> Any:
        """
        Decode the body back into the payload it was created from.

        Raises:
            BlockDecodeError: If the body is not hex-encoded JSON
        """
        try:
            return json.loads(bytes.fromhex(self.body).decode('utf-8'))
        except (ValueError, TypeError) as e:
            raise BlockDecodeError(f"Block body is not decodable: {e}", self.height) from e

    def get_bdata(self) -> Dict[str, Any]:
        """
        Decode the star data held by this block.

        Raises:
            BlockDecodeError: For the genesis block or a non-object body
        """
        if self.height == 0:
            raise BlockDecodeError("Genesis block carries no star data", 0)

        data = self.decode_body()
        if not isinstance(data, dict):
            raise BlockDecodeError("Block body is not a JSON object", self.height)
        return data

    def get_star(self) -> StarClaim:
        """
        Decode the star claim held by this block.

        Raises:
            BlockDecodeError: If the block holds no complete star claim
        """
        data = self.get_bdata()
        try:
            return StarClaim.from_dict(data)
        except KeyError as e:
            raise BlockDecodeError(f"Star claim missing field {e}", self.height) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert block to dictionary for serialization."""
        return {
            'height': self.height,
            'time': self.time,
            'previous_block_hash': self.previous_block_hash,
            'hash': self.hash,
            'body': self.body,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Block':
        """Create block from dictionary."""
        return cls(
            body=data['body'],
            height=data.get('height'),
            time=data.get('time'),
            previous_block_hash=data.get('previous_block_hash'),
            hash=data.get('hash'),
        )

    def __str__(self) -> str:
        return (
            f"Block #{self.height}\n"
            f"  Hash: {(self.hash or '')[:16]}...\n"
            f"  Prev: {(self.previous_block_hash or '-')[:16]}...\n"
            f"  Time: {self.time}"
        )
