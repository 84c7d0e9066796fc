"""
Vault Crypto Core — Key derivation and encryption/decryption.

Each credential record is sealed as:
    Argon2id(machine_key, salt) → 256-bit key → AES-256-GCM(nonce) → ciphertext+tag

The Argon2id parameters below are part of the on-disk format. Changing any
of them makes every existing record undecryptable; there is no migration.

Security Note:
    Never log plaintext, derived keys or ciphertext values.
    Salts and nonces are random per record and never reused.
"""
import os
import logging

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.kdf.argon2 import Argon2id
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import KeyDerivationFailed

logger = logging.getLogger("catalysh.vault")

NONCE_SIZE = 12  # 96-bit nonce
SALT_SIZE = 32
KEY_LENGTH = 32  # AES-256
TAG_SIZE = 16

# Argon2id cost parameters (on-disk format, do not change)
ARGON2_MEMORY_COST = 32768  # KiB
ARGON2_ITERATIONS = 3
ARGON2_LANES = 4


def new_salt() -> bytes:
    """Return a fresh random KDF salt."""
    return os.urandom(SALT_SIZE)


def new_nonce() -> bytes:
    """Return a fresh random 96-bit GCM nonce."""
    return os.urandom(NONCE_SIZE)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(machine_key: bytes, salt: bytes) -> bytes:
    """Derive a 32-byte encryption key using Argon2id.

    Args:
        machine_key: Host identity bytes.
        salt: Per-record random salt (SALT_SIZE bytes).

    Returns:
        32-byte derived key.

    Raises:
        KeyDerivationFailed: On invalid parameters, allocation failure or a
            crypto backend without Argon2 support.
    """
    if len(salt) != SALT_SIZE:
        raise KeyDerivationFailed(
            f"salt must be {SALT_SIZE} bytes, got {len(salt)}"
        )
    try:
        kdf = Argon2id(
            salt=salt,
            length=KEY_LENGTH,
            iterations=ARGON2_ITERATIONS,
            lanes=ARGON2_LANES,
            memory_cost=ARGON2_MEMORY_COST,
        )
        return kdf.derive(machine_key)
    except (UnsupportedAlgorithm, ValueError, MemoryError) as err:
        raise KeyDerivationFailed(f"Key derivation failed: {err}") from err


# ---------------------------------------------------------------------------
# Record encryption
# ---------------------------------------------------------------------------

def encrypt_secret(key: bytes, nonce: bytes, plaintext: bytes) -> bytes:
    """Encrypt plaintext with AES-256-GCM.

    Args:
        key: 32-byte key from ``derive_key``.
        nonce: NONCE_SIZE-byte nonce, unique for this key.
        plaintext: Data to encrypt.

    Returns:
        Ciphertext with the 16-byte GCM tag appended.
    """
    return AESGCM(key).encrypt(nonce, plaintext, None)


def decrypt_secret(key: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
    """Decrypt and authenticate AES-256-GCM ciphertext.

    Args:
        key: 32-byte key from ``derive_key``.
        nonce: Nonce stored with the record.
        ciphertext: Ciphertext with appended tag.

    Returns:
        Decrypted plaintext bytes.

    Raises:
        ValueError: If nonce or ciphertext are malformed.
        cryptography.exceptions.InvalidTag: If authentication fails.
    """
    if len(nonce) != NONCE_SIZE:
        raise ValueError(
            f"nonce must be {NONCE_SIZE} bytes, got {len(nonce)}"
        )
    if len(ciphertext) < TAG_SIZE:
        raise ValueError(
            f"ciphertext too short: {len(ciphertext)} bytes "
            f"(minimum {TAG_SIZE})"
        )
    return AESGCM(key).decrypt(nonce, ciphertext, None)
