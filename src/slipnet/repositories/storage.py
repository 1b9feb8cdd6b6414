"""
Durable storage for the configuration document.

The whole store lives in one JSON document. Writes go to a temporary file in
the same directory which is fsynced and then renamed over the old document,
so a crash leaves either the previous or the new version on disk. With a
master key the document is Fernet-encrypted using a PBKDF2-derived key.
"""

import base64
import json
import os
import secrets
import tempfile
from pathlib import Path
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.logging import get_logger
from ..errors import StorageError


logger = get_logger(__name__)


class JsonFileStorage:
    """
    Reads and atomically replaces a JSON document on disk.

    Methods are blocking; the state store runs them in a worker thread.
    """

    PBKDF2_ITERATIONS = 600000

    def __init__(
        self,
        path: Path,
        master_key: Optional[str] = None,
        salt_file: Optional[Path] = None
    ):
        """
        Initialize the storage.

        Args:
            path: Path to the document
            master_key: Master key for encryption at rest
            salt_file: Path to salt file for key derivation
        """
        self.path = Path(path)
        self._salt_file = Path(salt_file) if salt_file else self.path.parent / ".salt"
        self._fernet = self._derive_fernet_key(master_key) if master_key else None

    @property
    def encrypted(self) -> bool:
        return self._fernet is not None

    def _derive_fernet_key(self, master_key: str) -> Fernet:
        """Derive a Fernet key from the master key using PBKDF2."""
        try:
            if self._salt_file.exists():
                salt = self._salt_file.read_bytes()
            else:
                salt = secrets.token_bytes(32)
                self._salt_file.parent.mkdir(parents=True, exist_ok=True)
                self._salt_file.write_bytes(salt)
                if os.name != 'nt':
                    os.chmod(self._salt_file, 0o600)
        except OSError as e:
            raise StorageError(f"Cannot access salt file {self._salt_file}: {e}") from e

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=self.PBKDF2_ITERATIONS,
        )
        key = base64.urlsafe_b64encode(kdf.derive(master_key.encode()))
        return Fernet(key)

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> Optional[dict]:
        """
        Load the document.

        Returns:
            The decoded document, or None if it has never been written

        Raises:
            StorageError: If the file cannot be read, decrypted or parsed
        """
        if not self.path.exists():
            logger.info("No store file found, starting fresh", path=str(self.path))
            return None

        try:
            raw = self.path.read_bytes()
        except OSError as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e

        if self._fernet:
            try:
                raw = self._fernet.decrypt(raw)
            except InvalidToken as e:
                raise StorageError(
                    f"Cannot decrypt {self.path}: wrong master key or corrupted file"
                ) from e

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise StorageError(f"Corrupted store file {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StorageError(f"Corrupted store file {self.path}: expected an object")

        return data

    def write(self, data: dict) -> None:
        """
        Atomically replace the document.

        Raises:
            StorageError: If the document cannot be written
        """
        payload = json.dumps(data, indent=2).encode("utf-8")
        if self._fernet:
            payload = self._fernet.encrypt(payload)

        tmp_path: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())

            if os.name != 'nt':
                os.chmod(tmp_path, 0o600)

            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise StorageError(f"Cannot write {self.path}: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)

        logger.debug("Saved store", path=str(self.path), bytes=len(payload))
