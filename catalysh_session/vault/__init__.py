"""Credential Vault — Machine-bound encrypted password storage.

Security Note (Threat Model):
    The machine identity feeding key derivation is not a secret. The vault
    protects a copied database file, not a compromised host: anyone able
    to run code on the original machine can re-derive the key. Decrypted
    passwords exist in process memory while a token request is built.
"""

from .credential_vault import CredentialVault, CredentialRecord
from .identity import (
    MachineIdentity,
    LinuxIdentity,
    MacOSIdentity,
    WindowsIdentity,
    StaticIdentity,
    default_identity,
)
from .storage import VaultDatabase

__all__ = [
    "CredentialVault",
    "CredentialRecord",
    "MachineIdentity",
    "LinuxIdentity",
    "MacOSIdentity",
    "WindowsIdentity",
    "StaticIdentity",
    "default_identity",
    "VaultDatabase",
]
