"""Certificate and key storage for the mutual TLS client credential.

This module handles:
- Normalizing certificate/key text pasted from a service binding (escaped ``\\n``)
- Writing both files atomically under a dedicated directory
- Ensuring owner-only file permissions
"""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from loguru import logger

from ..atomic import write_atomic
from ..errors import StorageError, ValidationError

DEFAULT_CERT_FILE_NAME = "doc-grounding.crt"
DEFAULT_KEY_FILE_NAME = "doc-grounding.key"

OWNER_READ_WRITE = stat.S_IRUSR | stat.S_IWUSR


@dataclass(frozen=True)
class Credential:
    """Paths of the client certificate and private key."""

    cert_path: Path
    key_path: Path


def normalize_pem(text: str) -> str:
    """Turn literal backslash-n sequences into real line breaks."""
    normalized = text.replace("\\n", "\n")
    if not normalized.endswith("\n"):
        normalized += "\n"
    return normalized


class CredentialStore:
    """Secure storage for the client certificate and key."""

    def __init__(self, storage_dir: Optional[Path] = None):
        """Initialize credential store.

        Args:
            storage_dir: Directory for the adjusted files (defaults to ./credentials_adjusted)
        """
        self.storage_dir = Path(storage_dir) if storage_dir is not None else Path("credentials_adjusted")

    def store(
        self,
        cert_text: str,
        key_text: str,
        cert_file_name: str = DEFAULT_CERT_FILE_NAME,
        key_file_name: str = DEFAULT_KEY_FILE_NAME,
    ) -> Credential:
        """Normalize and persist a certificate/key pair.

        Args:
            cert_text: Certificate value, possibly a single line with escaped newlines
            key_text: Private key value, same format
            cert_file_name: Certificate file name inside the storage directory
            key_file_name: Key file name inside the storage directory

        Returns:
            Credential pointing at the written files

        Raises:
            ValidationError: If either value is empty
            StorageError: If the files cannot be written
        """
        if not cert_text or not cert_text.strip():
            raise ValidationError("Certificate value is empty")

        if not key_text or not key_text.strip():
            raise ValidationError("Key value is empty")

        self._ensure_storage_dir()

        # Only the base name is honored, files always land in the storage directory
        cert_path = self.storage_dir / Path(cert_file_name).name
        key_path = self.storage_dir / Path(key_file_name).name

        logger.info(f"Creating certificate file: {cert_path}")
        write_atomic(cert_path, normalize_pem(cert_text), mode=OWNER_READ_WRITE)

        logger.info(f"Creating key file: {key_path}")
        write_atomic(key_path, normalize_pem(key_text), mode=OWNER_READ_WRITE)

        logger.info(f"Certificate file size: {cert_path.stat().st_size} bytes")
        logger.info(f"Key file size: {key_path.stat().st_size} bytes")

        return Credential(cert_path=cert_path, key_path=key_path)

    def load(self, cert_path: Path, key_path: Path) -> Credential:
        """Check that existing certificate files are usable.

        Raises:
            ValidationError: If a file is missing, empty or readable by others
        """
        credential = Credential(cert_path=Path(cert_path), key_path=Path(key_path))

        for path in (credential.cert_path, credential.key_path):
            if not path.is_file():
                raise ValidationError(f"Certificate file not found: {path}")

            try:
                file_stat = path.stat()
            except OSError as e:
                raise StorageError(f"Failed to stat {path}: {e}") from e

            if file_stat.st_size == 0:
                raise ValidationError(f"Certificate file is empty: {path}")

            if file_stat.st_mode & (stat.S_IRWXG | stat.S_IRWXO):
                raise ValidationError(f"Certificate file has insecure permissions: {stat.filemode(file_stat.st_mode)} {path}")

        return credential

    def _ensure_storage_dir(self) -> None:
        """Ensure the storage directory exists."""
        try:
            self.storage_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
            os.chmod(self.storage_dir, stat.S_IRWXU)  # Owner read/write/execute only

        except OSError as e:
            raise StorageError(f"Failed to create credentials directory {self.storage_dir}: {e}") from e
