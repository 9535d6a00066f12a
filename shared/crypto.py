"""
Credential storage for the station's single shared password.

The password is never stored. A PBKDF2 hash with a random salt is written
once to credentials.json; there is no change-password path, so the record
is immutable after the first setup.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from shared.constants import (
    CREDENTIALS_FILENAME,
    KDF_DIGEST,
    KDF_ITERATIONS,
    KDF_KEY_LENGTH,
    KDF_SALT_BYTES,
    MIN_PASSWORD_LENGTH,
)
from shared.errors import (
    AlreadyConfigured,
    InvalidCredentials,
    MissingPassword,
    NotConfigured,
    WeakPassword,
)
from shared.models import CredentialRecord

logger = logging.getLogger(__name__)

DIGESTS = {
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


class CredentialStore:
    """Reads, creates and verifies the persisted credential record."""

    def __init__(self, data_dir: Path, iterations: int = KDF_ITERATIONS):
        self.data_dir = Path(data_dir).expanduser()
        self.path = self.data_dir / CREDENTIALS_FILENAME
        self.iterations = iterations

    @staticmethod
    def _kdf(salt: bytes, iterations: int, digest: str) -> PBKDF2HMAC:
        """
        Build a PBKDF2 instance for the given parameters.

        Args:
            salt: Random salt bytes
            iterations: PBKDF2 round count
            digest: Digest name as stored in the record

        Returns:
            Single-use key derivation object
        """
        algorithm = DIGESTS.get(digest)
        if algorithm is None:
            raise ValueError(f"Unsupported digest: {digest}")
        return PBKDF2HMAC(
            algorithm=algorithm(),
            length=KDF_KEY_LENGTH,
            salt=salt,
            iterations=iterations,
        )

    def is_configured(self) -> bool:
        return self.path.is_file()

    def load(self) -> Optional[CredentialRecord]:
        """Return the stored record, or None if setup has not happened."""
        if not self.path.is_file():
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            return CredentialRecord.from_dict(json.load(f))

    def create(self, password: str) -> CredentialRecord:
        """
        Derive and persist the credential record.

        The file is opened with O_EXCL so that of two concurrent setups only
        one can succeed.
        """
        if self.is_configured():
            raise AlreadyConfigured()
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise WeakPassword(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        salt = os.urandom(KDF_SALT_BYTES)
        derived = self._kdf(salt, self.iterations, KDF_DIGEST).derive(password.encode("utf-8"))
        record = CredentialRecord(
            salt=salt.hex(),
            iterations=self.iterations,
            digest=KDF_DIGEST,
            hash=derived.hex(),
            created_at=datetime.now(timezone.utc).isoformat(),
        )

        self.data_dir.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            raise AlreadyConfigured()
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(record.to_dict(), f, indent=2)
        logger.info("Credentials created at %s", self.path)
        return record

    def verify(self, password: str) -> None:
        """
        Check a password against the stored record.

        Raises NotConfigured, MissingPassword or InvalidCredentials; returns
        None on success. When nothing is configured a throwaway derivation
        still runs so the response time does not reveal it.
        """
        record = self.load()
        if record is None:
            self._kdf(os.urandom(KDF_SALT_BYTES), self.iterations, KDF_DIGEST).derive(
                (password or "").encode("utf-8"))
            raise NotConfigured()
        if not password:
            raise MissingPassword()

        kdf = self._kdf(bytes.fromhex(record.salt), record.iterations, record.digest)
        try:
            # constant-time comparison
            kdf.verify(password.encode("utf-8"), bytes.fromhex(record.hash))
        except InvalidKey:
            raise InvalidCredentials()
