# Core Cryptography Module
"""
Cryptographic building blocks for the registry:
- SHA-256 block hashing over canonical JSON
- ECDSA wallet signatures and address derivation
"""
