"""
Registry Configuration

Runtime settings for the star registry:
- Ownership challenge window and tag
- Genesis block sentinel text
- Logging level
- Audit trail history size

Every setting has a module-level default and can be overridden from the
environment with a STARREGISTRY_* variable.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional


# ============================================================================
# Defaults
# ============================================================================

CHALLENGE_WINDOW_SECONDS = 300  # 5 minutes to redeem a challenge
CHALLENGE_TAG = "starRegistry"
GENESIS_DATA = "Genesis Block"
LOG_LEVEL = "WARNING"
EVENT_HISTORY_LIMIT = 1000

ENV_PREFIX = "STARREGISTRY_"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env(name: str, default: str) -> str:
    return os.getenv(ENV_PREFIX + name, default)


@dataclass(frozen=True)
class RegistryConfig:
    """Settings shared by the ledger, the ownership protocol and the event log."""
    challenge_window_seconds: int = CHALLENGE_WINDOW_SECONDS
    challenge_tag: str = CHALLENGE_TAG
    genesis_data: str = GENESIS_DATA
    log_level: str = LOG_LEVEL
    event_history_limit: int = EVENT_HISTORY_LIMIT

    def __post_init__(self):
        if self.challenge_window_seconds <= 0:
            raise ValueError("Challenge window must be positive")
        if not self.challenge_tag or ":" in self.challenge_tag:
            raise ValueError("Challenge tag must be non-empty and contain no ':'")
        if self.event_history_limit <= 0:
            raise ValueError("Event history limit must be positive")

    @property
    def challenge_window_minutes(self) -> float:
        """Window length in minutes, the unit redemption is checked in."""
        return self.challenge_window_seconds / 60.

    @classmethod
    def from_env(cls) -> 'RegistryConfig':
        """
        Build a config from STARREGISTRY_* environment variables.

        Unset variables fall back to the module defaults.

        Raises:
            ValueError: If a numeric variable is not an integer
        """
        return cls(
            challenge_window_seconds=int(
                _env("CHALLENGE_WINDOW", str(CHALLENGE_WINDOW_SECONDS))
            ),
            challenge_tag=_env("CHALLENGE_TAG", CHALLENGE_TAG),
            log_level=_env("LOG_LEVEL", LOG_LEVEL).upper(),
            event_history_limit=int(
                _env("EVENT_HISTORY", str(EVENT_HISTORY_LIMIT))
            ),
        )


def configure_logging(config: Optional[RegistryConfig] = None) -> None:
    """
    Install a basic stderr handler at the configured level.

    With no config, settings are read from the environment.
    """
    config = config or RegistryConfig.from_env()
    level = logging.getLevelName(config.log_level)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {config.log_level}")
    logging.basicConfig(level=level, format=LOG_FORMAT)
