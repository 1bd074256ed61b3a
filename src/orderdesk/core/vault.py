"""
Credential vault
================

Encrypts short secrets (order usernames and passwords) at rest with
AES-256-GCM under a single process-wide key.

Stored format::

    base64( nonce[12] || ciphertext || tag[16] )

The blob carries no key version. A new key makes every stored value
undecryptable.

Never log plaintexts, blobs or key material from this module.
"""

import base64
import binascii
import os
from functools import cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from orderdesk.shared import Logger, Secrets

logger = Logger(__name__).get_logger()

KEY_SIZE = 32  # AES-256
NONCE_SIZE = 12  # 96-bit, NIST recommended for GCM
TAG_SIZE = 16


class VaultError(Exception):
    """Base class for credential vault failures."""


class KeyUnavailable(VaultError):
    """The encryption key is missing or malformed."""


class EncryptionFailure(VaultError):
    """The cipher refused to encrypt the plaintext."""


class MalformedInput(VaultError):
    """A stored blob is not valid base64 or is shorter than a nonce."""


class AuthenticationFailure(VaultError):
    """A stored blob failed its integrity check."""


def generate_key() -> str:
    """Return a fresh base64-encoded 256-bit key suitable for ``ENCRYPT_KEY``."""
    return base64.b64encode(os.urandom(KEY_SIZE)).decode("ascii")


def load_key(value: str | None) -> bytes:
    """Decode a base64 key and require exactly :data:`KEY_SIZE` bytes."""
    if not value:
        raise KeyUnavailable("ENCRYPT_KEY is not set")

    try:
        key = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise KeyUnavailable("ENCRYPT_KEY is not valid base64") from e

    if len(key) != KEY_SIZE:
        raise KeyUnavailable(
            f"ENCRYPT_KEY must decode to {KEY_SIZE} bytes, got {len(key)}"
        )

    return key


class CredentialVault:
    """
    AES-256-GCM encryption of short UTF-8 secrets.

    Instances are immutable and safe to share across threads and tasks.

    Usage:
        vault = CredentialVault(load_key(os.environ["ENCRYPT_KEY"]))
        blob = vault.encrypt("alice")
        vault.decrypt(blob)  # "alice"
    """

    __slots__ = ("_aead",)

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise KeyUnavailable(f"Key must be exactly {KEY_SIZE} bytes")
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt ``plaintext`` under a fresh random nonce.

        Two calls with the same plaintext return different blobs.

        Raises:
            EncryptionFailure: If the cipher rejects the input.
        """
        nonce = os.urandom(NONCE_SIZE)
        try:
            sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        except (OverflowError, ValueError, UnicodeEncodeError) as e:
            raise EncryptionFailure(str(e)) from e

        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, blob: str) -> str:
        """
        Decrypt a blob produced by :meth:`encrypt`.

        Integrity is verified before any plaintext is returned.

        Raises:
            MalformedInput: Not base64, or fewer bytes than the nonce.
            AuthenticationFailure: Tag mismatch (tampering, wrong key, corruption).
        """
        try:
            raw = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedInput("Encrypted value is not valid base64") from e

        if len(raw) < NONCE_SIZE:
            raise MalformedInput(
                f"Encrypted value too short: {len(raw)} bytes (minimum {NONCE_SIZE})"
            )

        nonce, sealed = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
        try:
            plaintext = self._aead.decrypt(nonce, sealed, None)
        except InvalidTag as e:
            raise AuthenticationFailure("Encrypted value failed authentication") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise AuthenticationFailure("Decrypted value is not valid UTF-8") from e


@cache
def get_vault() -> CredentialVault:
    """Process-wide vault, built once from ``ENCRYPT_KEY``."""
    vault = CredentialVault(load_key(Secrets.from_env().encrypt_key))
    logger.info("Credential vault initialised")
    return vault
