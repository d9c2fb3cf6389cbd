"""
Event Logger Module

In-memory audit trail for the star registry. The ledger and the ownership
protocol report what they do here, so a caller can see rejected
redemptions that never reach the chain.

Features:
- Genesis and block append events
- Challenge issue, expiry and signature failure events
- Star registration events
- Callbacks notified on every event
- Bounded history (oldest events dropped first)

The trail lives in memory only and is lost on process exit.
"""

import json
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Callable

from ..config import EVENT_HISTORY_LIMIT


logger = logging.getLogger(__name__)

EVENT_VERSION = "1.0"
SYSTEM_ADDRESS = "system"


# ============================================================================
# Event Types
# ============================================================================

class EventType(Enum):
    """Types of registry events that can be logged."""

    # Ledger events
    GENESIS_CREATED = "genesis_created"
    BLOCK_APPENDED = "block_appended"
    VALIDATION_FAILED = "validation_failed"

    # Ownership events
    CHALLENGE_ISSUED = "challenge_issued"
    CHALLENGE_EXPIRED = "challenge_expired"
    SIGNATURE_FAILED = "signature_failed"
    STAR_REGISTERED = "star_registered"


# ============================================================================
# Event Structure
# ============================================================================

@dataclass
class RegistryEvent:
    """A single entry in the audit trail."""
    event_type: EventType
    address: str  # Wallet address, or "system" for ledger events
    timestamp: int  # Unix timestamp
    details: Dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> str:
        """Convert event to a compact JSON record."""
        return json.dumps({
            'version': EVENT_VERSION,
            'type': self.event_type.value,
            'address': self.address,
            'time': self.timestamp,
            'iso_time': datetime.fromtimestamp(self.timestamp).isoformat(),
            'details': self.details,
        }, separators=(',', ':'))

    @classmethod
    def from_record(cls, record: str) -> 'RegistryEvent':
        """Parse event from a JSON record."""
        data = json.loads(record)
        return cls(
            event_type=EventType(data['type']),
            address=data['address'],
            timestamp=data['time'],
            details=data.get('details', {}),
        )

    def __str__(self) -> str:
        dt = datetime.fromtimestamp(self.timestamp)
        return (
            f"[{dt.strftime('%Y-%m-%d %H:%M:%S')}] "
            f"{self.event_type.value} | "
            f"address:{self.address[:12]}"
        )


# ============================================================================
# Event Logger
# ============================================================================

class EventLogger:
    """
    Thread-safe in-memory audit trail of registry events.
    """

    def __init__(
        self,
        history_limit: int = EVENT_HISTORY_LIMIT,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the event logger.

        Args:
            history_limit: Maximum number of events kept
            clock: Source of the current time in seconds
        """
        if history_limit <= 0:
            raise ValueError("History limit must be positive")
        self._events: deque = deque(maxlen=history_limit)
        self._clock = clock
        self._lock = threading.Lock()
        self._total = 0
        self._callbacks: List[Callable[[RegistryEvent], None]] = []

    def log(
        self,
        event_type: EventType,
        address: str = SYSTEM_ADDRESS,
        **details: Any
    ) -> RegistryEvent:
        """
        Record an event.

        Args:
            event_type: What happened
            address: Wallet address involved, "system" if none
            **details: Extra JSON-serializable fields

        Returns:
            The logged event
        """
        event = RegistryEvent(
            event_type=event_type,
            address=address,
            timestamp=int(self._clock()),
            details=details,
        )
        with self._lock:
            self._events.append(event)
            self._total += 1
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception("Event callback failed for %s", event.event_type.value)

        return event

    def add_callback(self, callback: Callable[[RegistryEvent], None]) -> None:
        """Add a callback to be notified of new events."""
        with self._lock:
            self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[RegistryEvent], None]) -> None:
        """Remove a callback."""
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    # ========================================================================
    # Retrieval
    # ========================================================================

    @property
    def total_logged(self) -> int:
        """Number of events ever logged, including ones dropped from history."""
        return self._total

    def get_all_events(self) -> List[RegistryEvent]:
        """Get every event still in history, oldest first."""
        with self._lock:
            return list(self._events)

    def get_address_events(self, address: str) -> List[RegistryEvent]:
        """Get all events for a specific wallet address."""
        return [e for e in self.get_all_events() if e.address == address]

    def get_events_by_type(self, event_type: EventType) -> List[RegistryEvent]:
        """Get all events of a specific type."""
        return [e for e in self.get_all_events() if e.event_type == event_type]

    def get_recent_events(self, count: int = 10) -> List[RegistryEvent]:
        """Get the most recent events."""
        events = self.get_all_events()
        return events[-count:] if count > 0 else []

    def export_log(self) -> str:
        """Export the audit trail as a JSON array of records."""
        return json.dumps([json.loads(e.to_record()) for e in self.get_all_events()], indent=2)

    def print_audit_log(self, last_n: Optional[int] = None) -> None:
        """Print the audit log in a readable format."""
        events = self.get_all_events()
        if last_n:
            events = events[-last_n:]

        print("\n" + "=" * 70)
        print("REGISTRY AUDIT LOG")
        print("=" * 70)

        for event in events:
            print(event)
            for k, v in event.details.items():
                print(f"    {k}: {v}")

        print("=" * 70)
        print(f"Total events: {self._total}")
        print("=" * 70)
