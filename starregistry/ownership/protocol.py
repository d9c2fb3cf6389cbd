"""
Ownership Verification Protocol

Gates star submission behind a signed, time-windowed challenge:

1. issue_challenge(address) -> "<address>:<unix seconds>:starRegistry"
2. The wallet owner signs the challenge out-of-band
3. redeem(address, message, signature, star) checks the challenge age,
   verifies the signature and appends the star to the ledger

Challenges are stateless: nothing is stored when one is issued, and its
age is read back from the timestamp embedded in the message itself.

Security considerations:
- The window check happens before the signature check
- An unreadable timestamp is rejected as expired
- The ledger serializes the append; checks here run outside its lock
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from ..blockchain.block import Block, StarClaim
from ..blockchain.errors import ChallengeExpiredError, SignatureVerificationError
from ..blockchain.ledger import Blockchain
from ..core_crypto.signatures import SignatureVerifier, verify_message
from ..integration.event_logger import EventType


logger = logging.getLogger(__name__)

CHALLENGE_SEPARATOR = ":"
CHALLENGE_TIME_FIELD = 1  # address:TIME:tag


def parse_challenge_time(message: str) -> int:
    """
    Read the issue timestamp embedded in a challenge.

    Args:
        message: Challenge string

    Returns:
        Unix timestamp in seconds

    Raises:
        ValueError: If the message has no integer second field
    """
    fields = message.split(CHALLENGE_SEPARATOR)
    if len(fields) <= CHALLENGE_TIME_FIELD:
        raise ValueError("Challenge has no timestamp field")
    return int(fields[CHALLENGE_TIME_FIELD])


class OwnershipProtocol:
    """
    Challenge/response ownership verification in front of a Blockchain.
    """

    def __init__(
        self,
        blockchain: Blockchain,
        verifier: SignatureVerifier = verify_message,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the protocol.

        Args:
            blockchain: Ledger stars are appended to
            verifier: Callable (message, address, signature) -> bool
            clock: Source of the current time in seconds
        """
        self._blockchain = blockchain
        self._verifier = verifier
        self._clock = clock
        self._config = blockchain.config
        self._events = blockchain.events

    @property
    def blockchain(self) -> Blockchain:
        return self._blockchain

    def _now(self) -> int:
        return int(self._clock())

    def issue_challenge(self, address: str) -> str:
        """
        Create the message a wallet owner must sign.

        Args:
            address: Wallet address claiming ownership

        Returns:
            "<address>:<unix seconds>:<tag>"
        """
        if not address:
            raise ValueError("Address cannot be empty")

        message = CHALLENGE_SEPARATOR.join(
            [address, str(self._now()), self._config.challenge_tag]
        )
        logger.info("Issued ownership challenge for %s", address)
        self._events.log(EventType.CHALLENGE_ISSUED, address, message=message)
        return message

    def challenge_age(self, message: str) -> float:
        """
        Seconds elapsed since a challenge was issued.

        Raises:
            ValueError: If the challenge timestamp cannot be parsed
        """
        return float(self._now() - parse_challenge_time(message))

    def _check_fresh(self, address: str, message: str) -> None:
        try:
            elapsed = self.challenge_age(message)
        except ValueError as e:
            logger.warning("Rejected challenge from %s: %s", address, e)
            self._events.log(EventType.CHALLENGE_EXPIRED, address, reason=str(e))
            raise ChallengeExpiredError(
                f"Challenge timestamp could not be parsed: {e}"
            ) from e

        if elapsed / 60. > self._config.challenge_window_minutes:
            logger.warning(
                "Rejected challenge from %s: %.0f seconds old", address, elapsed
            )
            self._events.log(EventType.CHALLENGE_EXPIRED, address, elapsed=elapsed)
            raise ChallengeExpiredError(
                f"Challenge expired: {elapsed:.0f}s old, "
                f"window is {self._config.challenge_window_seconds}s",
                elapsed_seconds=elapsed,
            )

    def redeem(
        self,
        address: str,
        message: str,
        signature: str,
        star: Dict[str, Any]
    ) -> Block:
        """
        Register a star once the challenge and its signature check out.

        Args:
            address: Wallet address of the owner
            message: Challenge previously issued for the address
            signature: Wallet signature over the message
            star: Caller-defined star descriptor

        Returns:
            The appended block

        Raises:
            ChallengeExpiredError: If the challenge is older than the window
                or its timestamp is unreadable
            SignatureVerificationError: If the verifier rejects the signature
            ChainValidationError: If the ledger fails validation after appending
        """
        self._check_fresh(address, message)

        if not self._verifier(message, address, signature):
            logger.warning("Rejected signature from %s", address)
            self._events.log(EventType.SIGNATURE_FAILED, address)
            raise SignatureVerificationError(address)

        claim = StarClaim(
            owner=address,
            signature=signature,
            message=message,
            star=star,
        )
        block = self._blockchain.add_star(claim)

        self._events.log(
            EventType.STAR_REGISTERED, address,
            height=block.height, hash=block.hash,
        )
        return block

    # Aliases
    def request_ownership_message(self, address: str) -> str:
        return self.issue_challenge(address)

    def submit_star(self, address: str, message: str, signature: str,
                    star: Dict[str, Any]) -> Block:
        return self.redeem(address, message, signature, star)


def create_protocol(
    blockchain: Optional[Blockchain] = None,
    verifier: SignatureVerifier = verify_message
) -> OwnershipProtocol:
    """Create a protocol, with a fresh blockchain if none is given."""
    return OwnershipProtocol(blockchain or Blockchain(), verifier)
