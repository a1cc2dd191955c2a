"""
Encrypted-at-rest storage for the embedding provider API key.

The plaintext key only ever exists in memory; the option table holds a
Fernet token whose key is derived from process-wide secrets.
"""

from __future__ import annotations

import base64
import logging
import re

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .config import resolve_secret
from .storage import StorageBackend

logger = logging.getLogger(__name__)

API_KEY_OPTION = "api_key"
CREDENTIAL_PATTERN = re.compile(r"^sk-[A-Za-z0-9_\-]{20,}$")

_KDF_ITERATIONS = 200_000


def derive_fernet_key(secret: str, salt: str) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt.encode("utf-8"),
        iterations=_KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(secret.encode("utf-8")))


def is_valid_credential_format(api_key: str) -> bool:
    return bool(CREDENTIAL_PATTERN.match(api_key or ""))


def mask_credential(api_key: str) -> str:
    """Mask all but the first and last four characters."""
    if len(api_key) < 8:
        return "*" * len(api_key)
    return api_key[:4] + "*" * (len(api_key) - 8) + api_key[-4:]


class CredentialStore:
    """Persist the provider API key encrypted in the option table."""

    def __init__(
        self,
        storage: StorageBackend,
        *,
        secret: str | None = None,
        salt: str | None = None,
    ) -> None:
        self.storage = storage
        if secret is None:
            secret, env_salt = resolve_secret()
            salt = salt or env_salt
        self._fernet = Fernet(derive_fernet_key(secret, salt or "semsearch-credential-salt"))

    def get(self) -> str:
        """Return the decrypted key, or an empty string when none is usable."""
        token = self.storage.get_option(API_KEY_OPTION, "")
        if not token:
            return ""
        try:
            return self._fernet.decrypt(str(token).encode("ascii")).decode("utf-8")
        except (InvalidToken, ValueError):
            logger.warning("Stored API key could not be decrypted; treating as unset")
            return ""

    def store(self, api_key: str) -> None:
        """Encrypt and persist a key. An empty key removes the stored one."""
        if not api_key:
            self.storage.delete_option(API_KEY_OPTION)
            return
        token = self._fernet.encrypt(api_key.encode("utf-8")).decode("ascii")
        self.storage.set_option(API_KEY_OPTION, token)
        logger.info("Stored API key %s", mask_credential(api_key))

    def is_configured(self) -> bool:
        return bool(self.get())
