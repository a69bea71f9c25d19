"""Ed25519 signing for the local collaborators, via PyNaCl (libsodium).

The local compute service signs input proofs and decryption proofs with
these helpers; the local ledger verifies them.  Verification fails closed:
any malformed key or signature counts as invalid.
"""

from __future__ import annotations

import hashlib
import logging

import nacl.signing
from nacl.exceptions import BadSignatureError

logger = logging.getLogger(__name__)


def generate_keypair() -> tuple[str, str]:
    """Generate a signing key-pair.

    Returns
    -------
    tuple[str, str]
        ``(private_key_hex, public_key_hex)``
    """
    sk = nacl.signing.SigningKey.generate()
    return (sk.encode().hex(), sk.verify_key.encode().hex())


def public_key_for(private_key: str) -> str:
    """Return the hex public key matching hex *private_key*."""
    sk = nacl.signing.SigningKey(bytes.fromhex(private_key))
    return sk.verify_key.encode().hex()


def sign_data(data: bytes, private_key: str) -> str:
    """Sign *data* with hex *private_key*; return the hex signature (128 chars)."""
    sk = nacl.signing.SigningKey(bytes.fromhex(private_key))
    return sk.sign(data).signature.hex()


def verify_data(data: bytes, signature: str, public_key: str) -> bool:
    """Return ``True`` iff *signature* is valid for *data* under *public_key*."""
    if not signature or not public_key:
        return False
    try:
        vk = nacl.signing.VerifyKey(bytes.fromhex(public_key))
        vk.verify(data, bytes.fromhex(signature))
        return True
    except (BadSignatureError, ValueError, TypeError) as exc:
        logger.debug("Signature rejected: %s", type(exc).__name__)
        return False


def key_fingerprint(public_key: str) -> str:
    """First 16 hex characters of SHA-256(public_key) for display and logs."""
    if not public_key:
        return ""
    return hashlib.sha256(public_key.encode("utf-8")).hexdigest()[:16]
