# Blockchain Module
"""
In-memory star ledger including:
- Immutable, hash-linked blocks
- Linked append with post-append validation
- Lookups by hash, height and owner

Security features:
- Immutable blocks (frozen dataclass)
- Full chain validation after every append
- Serialized appends (one writer at a time)
"""

from .block import Block, StarClaim
from .errors import (
    FailureKind,
    RegistryError,
    ChainValidationError,
    ChallengeExpiredError,
    SignatureVerificationError,
    BlockDecodeError,
)
from .ledger import (
    Blockchain,
    IssueKind,
    ValidationIssue,
    DecodeFailure,
    StarLookup,
    create_blockchain,
)

__all__ = [
    'Block',
    'StarClaim',
    'FailureKind',
    'RegistryError',
    'ChainValidationError',
    'ChallengeExpiredError',
    'SignatureVerificationError',
    'BlockDecodeError',
    'Blockchain',
    'IssueKind',
    'ValidationIssue',
    'DecodeFailure',
    'StarLookup',
    'create_blockchain',
]
