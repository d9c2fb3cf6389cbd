# Integration Module
"""
Audit trail shared by the ledger and the ownership protocol.
"""

from .event_logger import (
    EventLogger,
    EventType,
    RegistryEvent,
    SYSTEM_ADDRESS,
)

__all__ = [
    'EventLogger',
    'EventType',
    'RegistryEvent',
    'SYSTEM_ADDRESS',
]
