"""
Registry Errors

Every failure the registry reports carries a FailureKind so callers can
branch on the kind without matching exception classes:

- VALIDATION_FAILURE: an append went through but the chain no longer validates
- EXPIRED: an ownership challenge was redeemed outside its window
- BAD_SIGNATURE: the signature verifier rejected a redemption
- DECODE_FAILURE: a block body is not a star claim

Lookups that find nothing return None and never raise.
"""

from enum import Enum
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .ledger import ValidationIssue


class FailureKind(Enum):
    """Kinds of registry failures."""
    VALIDATION_FAILURE = "validation_failure"
    EXPIRED = "expired"
    BAD_SIGNATURE = "bad_signature"
    DECODE_FAILURE = "decode_failure"


class RegistryError(Exception):
    """Base class for registry failures."""
    kind: FailureKind


class ChainValidationError(RegistryError):
    """Raised when post-append validation finds an inconsistent chain."""
    kind = FailureKind.VALIDATION_FAILURE

    def __init__(self, issues: List['ValidationIssue']):
        self.issues = list(issues)
        super().__init__(f"Chain validation failed with {len(self.issues)} issue(s)")


class ChallengeExpiredError(RegistryError):
    """Raised when a challenge is too old or its timestamp is unreadable."""
    kind = FailureKind.EXPIRED

    def __init__(self, message: str, elapsed_seconds: Optional[float] = None):
        self.elapsed_seconds = elapsed_seconds
        super().__init__(message)


class SignatureVerificationError(RegistryError):
    """Raised when a challenge signature does not verify for the address."""
    kind = FailureKind.BAD_SIGNATURE

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Message signature not verified for address {address}")


class BlockDecodeError(RegistryError):
    """Raised when a block body cannot be decoded into star data."""
    kind = FailureKind.DECODE_FAILURE

    def __init__(self, message: str, height: Optional[int] = None):
        self.height = height
        super().__init__(message)
