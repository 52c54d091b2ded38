"""
microcred_core/crypto.py — Hashing and signing for the transaction journal

Uses the `cryptography` library exclusively. No custom crypto.
- SHA-256 for journal entry hashes
- Ed25519 for the optional operator seal on each entry

Credential proofs are NOT verified here or anywhere else: they are
opaque 32-byte blobs to the registry.
"""

from __future__ import annotations

import hashlib

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)


def sha256_hex(data: bytes) -> str:
    """Compute SHA-256 hash and return as lowercase hex string."""
    return hashlib.sha256(data).hexdigest()


# ---------------------------------------------------------------------------
# Key management
# ---------------------------------------------------------------------------

def generate_keypair() -> tuple[Ed25519PrivateKey, Ed25519PublicKey]:
    """Generate a new Ed25519 operator keypair."""
    private_key = Ed25519PrivateKey.generate()
    return private_key, private_key.public_key()


def public_key_to_pem(key: Ed25519PublicKey) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def public_key_from_pem(pem_data: bytes) -> Ed25519PublicKey:
    """Load an operator public key (as written by ``public_key_to_pem``)."""
    key = serialization.load_pem_public_key(pem_data)
    if not isinstance(key, Ed25519PublicKey):
        raise TypeError("Not an Ed25519 public key")
    return key


def key_fingerprint(key: Ed25519PublicKey) -> str:
    """Short stable identifier for a public key: sha256 of its raw bytes."""
    raw = key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return sha256_hex(raw)[:16]


# ---------------------------------------------------------------------------
# Signing and verification
# ---------------------------------------------------------------------------

def sign_bytes(private_key: Ed25519PrivateKey, data: bytes) -> str:
    """Sign data with Ed25519 private key. Returns hex-encoded signature."""
    return private_key.sign(data).hex()


def verify_signature(
    public_key: Ed25519PublicKey, data: bytes, signature_hex: str
) -> bool:
    """Verify Ed25519 signature. Returns True if valid, False otherwise."""
    try:
        public_key.verify(bytes.fromhex(signature_hex), data)
    except (InvalidSignature, ValueError):
        return False
    return True
