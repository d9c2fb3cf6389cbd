# StarRegistry
"""
StarRegistry - in-memory star ledger with wallet ownership verification.

Modules:
  - Core Crypto (block hashing, wallet signatures)
  - Blockchain (blocks, ledger, validation)
  - Ownership (challenge/response protocol)
  - Integration (audit trail)
"""

__version__ = "0.1.0"
