"""
Blockchain Ledger Module

Implements the in-memory star ledger:
- Genesis block created on construction
- Linked append (height, timestamp, previous hash, block hash)
- Full chain validation after every append
- Lookups by hash, by height and by owner address

Concurrency:
- One RLock guards the chain and the height counter
- append() holds the lock through sealing, publishing and validation,
  so concurrent appends can never share a height or link to a stale tip
- Blocks are sealed before they are published, so readers never see a
  partially assigned block

State is memory-resident only and is lost on process exit.

Author: StarRegistry Project
"""

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Dict, Any

from ..config import RegistryConfig
from ..integration.event_logger import EventLogger, EventType
from .block import Block, StarClaim
from .errors import BlockDecodeError, ChainValidationError


logger = logging.getLogger(__name__)


# ============================================================================
# Validation Results
# ============================================================================

class IssueKind(Enum):
    """What went wrong with a block during validation."""
    SELF_HASH_MISMATCH = "self_hash_mismatch"
    LINK_MISMATCH = "link_mismatch"


@dataclass(frozen=True)
class ValidationIssue:
    """One problem found by Blockchain.validate()."""
    kind: IssueKind
    block_height: int
    detail: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'block_height': self.block_height,
            'detail': self.detail,
        }


@dataclass(frozen=True)
class DecodeFailure:
    """A block skipped by an owner query because its body is not a star claim."""
    block_height: int
    block_hash: Optional[str]
    reason: str


@dataclass
class StarLookup:
    """Result of scanning the chain for one owner's stars."""
    address: str
    stars: List[StarClaim] = field(default_factory=list)
    decode_failures: List[DecodeFailure] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.decode_failures)


# ============================================================================
# Blockchain
# ============================================================================

class Blockchain:
    """
    Append-only chain of hash-linked blocks.

    The constructor seeds the genesis block, so every other operation sees
    a non-empty chain.
    """

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        events: Optional[EventLogger] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize a new blockchain.

        Args:
            config: Registry settings; read from STARREGISTRY_* variables if None
            events: Audit trail to report to; a private one is created if None
            clock: Source of the current time in seconds
        """
        config = config or RegistryConfig.from_env()
        self._config = config
        self._events = events or EventLogger(config.event_history_limit, clock)
        self._clock = clock
        self._lock = threading.RLock()
        self._chain: List[Block] = []
        self._height = -1

        self._initialize_chain()

    def _initialize_chain(self) -> None:
        """Create the genesis block if the chain is still empty."""
        if self._height == -1:
            self.append(Block.new({'data': self._config.genesis_data}))

    # ========================================================================
    # Chain State
    # ========================================================================

    @property
    def height(self) -> int:
        """Height of the tip; -1 before the genesis block exists."""
        with self._lock:
            return self._height

    @property
    def length(self) -> int:
        with self._lock:
            return len(self._chain)

    @property
    def chain(self) -> List[Block]:
        """Get the blockchain (read-only copy)."""
        with self._lock:
            return list(self._chain)

    @property
    def last_block(self) -> Block:
        with self._lock:
            return self._chain[-1]

    @property
    def genesis(self) -> Block:
        with self._lock:
            return self._chain[0]

    @property
    def events(self) -> EventLogger:
        return self._events

    @property
    def config(self) -> RegistryConfig:
        return self._config

    # ========================================================================
    # Append
    # ========================================================================

    def append(self, candidate: Block) -> Block:
        """
        Link, seal and store a candidate block, then validate the chain.

        Args:
            candidate: Unattached block (body only)

        Returns:
            The appended block

        Raises:
            ValueError: If the candidate is already sealed
            ChainValidationError: If the chain fails validation after the append
        """
        if candidate.is_sealed:
            raise ValueError("Block is already sealed into a chain")

        with self._lock:
            previous_hash = None
            if self._height >= 0:
                previous_hash = self._chain[self._height].hash

            new_height = self._height + 1
            block = candidate.seal(
                height=new_height,
                time=int(self._clock()),
                previous_block_hash=previous_hash,
            )
            self._chain.append(block)
            self._height = new_height

            issues = self.validate()

        if issues:
            logger.warning(
                "Chain invalid after appending block %d: %d issue(s)",
                block.height, len(issues)
            )
            self._events.log(
                EventType.VALIDATION_FAILED,
                height=block.height,
                issues=[issue.to_dict() for issue in issues],
            )
            raise ChainValidationError(issues)

        logger.info("Appended block %d (%s)", block.height, block.hash[:16])
        self._events.log(
            EventType.GENESIS_CREATED if block.height == 0 else EventType.BLOCK_APPENDED,
            height=block.height,
            hash=block.hash,
        )
        return block

    def add_star(self, claim: StarClaim) -> Block:
        """Append a block holding a star claim."""
        return self.append(Block.for_star(claim))

    # ========================================================================
    # Queries
    # ========================================================================

    def find_by_hash(self, block_hash: str) -> Optional[Block]:
        """Get the first block with the given hash, or None."""
        with self._lock:
            return next((b for b in self._chain if b.hash == block_hash), None)

    def find_by_height(self, height: int) -> Optional[Block]:
        """Get the first block at the given height, or None."""
        with self._lock:
            return next((b for b in self._chain if b.height == height), None)

    def lookup_stars(self, address: str) -> StarLookup:
        """
        Scan the chain for stars owned by an address.

        Blocks whose body is not a star claim (always the genesis block)
        are recorded in `decode_failures` and skipped.

        Args:
            address: Wallet address of the owner

        Returns:
            StarLookup with matching stars in chain order
        """
        result = StarLookup(address=address)
        for block in self.chain:
            try:
                claim = block.get_star()
            except BlockDecodeError as e:
                logger.debug("Skipping block %s: %s", block.height, e)
                result.decode_failures.append(
                    DecodeFailure(block.height, block.hash, str(e))
                )
                continue
            if claim.owner == address:
                result.stars.append(claim)
        return result

    def stars_by_owner(self, address: str) -> List[StarClaim]:
        """Get the stars owned by an address, in chain order."""
        return self.lookup_stars(address).stars

    # ========================================================================
    # Validation
    # ========================================================================

    def validate(self) -> List[ValidationIssue]:
        """
        Validate the entire blockchain, walking from the tip to genesis.

        Every block is checked against its own hash. Every block above
        genesis must also link, by previous_block_hash, to the block
        directly below it.

        Returns:
            List of issues found; empty if the chain is valid
        """
        with self._lock:
            chain = list(self._chain)

            issues: List[ValidationIssue] = []
            for index in range(len(chain) - 1, -1, -1):
                block = chain[index]

                if not block.validate():
                    issues.append(ValidationIssue(
                        IssueKind.SELF_HASH_MISMATCH, index,
                        f"Stored hash {str(block.hash)[:16]} does not match block content"
                    ))

                if index == 0:
                    break

                expected = chain[index - 1]
                predecessor = None
                if block.previous_block_hash is not None:
                    predecessor = self.find_by_hash(block.previous_block_hash)

                if predecessor is None:
                    issues.append(ValidationIssue(
                        IssueKind.LINK_MISMATCH, index,
                        "Previous block hash not found in chain"
                    ))
                elif predecessor.hash != expected.hash:
                    issues.append(ValidationIssue(
                        IssueKind.LINK_MISMATCH, index,
                        f"Previous hash points to height {predecessor.height}, "
                        f"expected {index - 1}"
                    ))

        return issues

    def is_valid(self) -> bool:
        return not self.validate()

    # ========================================================================
    # Export
    # ========================================================================

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'height': self._height,
                'chain': [block.to_dict() for block in self._chain],
            }

    def to_json(self) -> str:
        """Snapshot the chain as JSON (inspection only, never reloaded)."""
        return json.dumps(self.to_dict(), indent=2)


# ============================================================================
# Convenience Functions
# ============================================================================

def create_blockchain(
    config: Optional[RegistryConfig] = None,
    events: Optional[EventLogger] = None
) -> Blockchain:
    """Create a new blockchain with its genesis block."""
    return Blockchain(config=config, events=events)
