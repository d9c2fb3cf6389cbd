# Ownership Module
"""
Ownership verification in front of the ledger:
- Stateless, time-windowed challenges
- Signature check before any star is appended
"""

from .protocol import (
    OwnershipProtocol,
    parse_challenge_time,
    create_protocol,
)

__all__ = [
    'OwnershipProtocol',
    'parse_challenge_time',
    'create_protocol',
]
