"""
Wallet Signatures

Implements message signing for wallet ownership proofs:
- ECDSA (P-256) wallet key pairs
- Wallet addresses derived from the public key
- Self-contained signatures (public key travels with the signature)
- Message verification against an address

Signature Format (base64 encoded):
    [compressed public key (33 bytes) | DER ECDSA signature (variable)]

Address Format:
    first 40 hex characters of SHA-256(compressed public key)

P-256 signatures cannot recover the signer's key, so the key is carried
inside the signature and bound to the address by its hash.
"""

import base64
import binascii
import hmac
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.backends import default_backend

from .hashing import sha256_hex


# Constants
CURVE = ec.SECP256R1()  # P-256 curve
COMPRESSED_KEY_SIZE = 33  # 0x02/0x03 prefix + 32-byte x coordinate
ADDRESS_HEX_LENGTH = 40   # 160 bits, like common wallet addresses

# (message, address, signature) -> bool
SignatureVerifier = Callable[[str, str, str], bool]


@dataclass
class WalletKeyPair:
    """ECDSA wallet key pair container."""
    private_key: Optional[ec.EllipticCurvePrivateKey]
    public_key: ec.EllipticCurvePublicKey

    @classmethod
    def generate(cls) -> 'WalletKeyPair':
        """Generate a new P-256 wallet."""
        private_key = ec.generate_private_key(CURVE, default_backend())
        return cls(private_key, private_key.public_key())

    @classmethod
    def from_public_bytes(cls, data: bytes) -> 'WalletKeyPair':
        """Create a verify-only wallet from public key bytes."""
        public_key = ec.EllipticCurvePublicKey.from_encoded_point(CURVE, data)
        return cls(None, public_key)

    def public_bytes(self) -> bytes:
        """Get public key as bytes (compressed point)."""
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.CompressedPoint
        )

    @property
    def address(self) -> str:
        """Wallet address of this key pair."""
        return address_from_public_bytes(self.public_bytes())


def address_from_public_bytes(public_bytes: bytes) -> str:
    """
    Derive a wallet address from a compressed public key.

    Args:
        public_bytes: Compressed X9.62 point

    Returns:
        40-character lowercase hex address
    """
    return sha256_hex(public_bytes)[:ADDRESS_HEX_LENGTH]


def sign_message(message: str, key_pair: WalletKeyPair) -> str:
    """
    Sign a message with a wallet.

    Signs the UTF-8 message with ECDSA over SHA-256 and prepends the
    compressed public key.

    Args:
        message: Text to sign (typically an ownership challenge)
        key_pair: Wallet with a private key

    Returns:
        Base64 signature string

    Raises:
        ValueError: If the wallet has no private key
    """
    if key_pair.private_key is None:
        raise ValueError("Private key required for signing")

    der_signature = key_pair.private_key.sign(
        message.encode('utf-8'),
        ec.ECDSA(hashes.SHA256())
    )
    return base64.b64encode(key_pair.public_bytes() + der_signature).decode('ascii')


def decode_signature(signature: str) -> Tuple[bytes, bytes]:
    """
    Split a base64 signature into (public key bytes, DER signature).

    Raises:
        ValueError: If the signature is not valid base64 or is too short
    """
    try:
        raw = base64.b64decode(signature, validate=True)
    except (binascii.Error, TypeError) as e:
        raise ValueError(f"Signature is not valid base64: {e}") from e

    if len(raw) <= COMPRESSED_KEY_SIZE:
        raise ValueError("Signature too short")

    return raw[:COMPRESSED_KEY_SIZE], raw[COMPRESSED_KEY_SIZE:]


def verify_message(message: str, address: str, signature: str) -> bool:
    """
    Verify that a message was signed by the wallet owning an address.

    Args:
        message: Signed text
        address: Claimed wallet address, matched exactly (lowercase hex)
        signature: Base64 signature from sign_message

    Returns:
        True if the signature is valid for the address, False otherwise
    """
    try:
        public_bytes, der_signature = decode_signature(signature)
    except ValueError:
        return False

    if not hmac.compare_digest(
        address_from_public_bytes(public_bytes).encode('utf-8'),
        address.encode('utf-8')
    ):
        return False

    try:
        public_key = ec.EllipticCurvePublicKey.from_encoded_point(CURVE, public_bytes)
        public_key.verify(der_signature, message.encode('utf-8'), ec.ECDSA(hashes.SHA256()))
        return True
    except (InvalidSignature, ValueError):
        return False
