"""SHA-256 content digests for dedup and integrity."""

import hashlib
from pathlib import Path
from typing import Union

from common.logging_config import get_logger

logger = get_logger(__name__)


def compute_digest(data: bytes) -> str:
    """
    Compute SHA-256 digest for given content.

    Args:
        data: Full byte content of a file

    Returns:
        Lowercase hexadecimal SHA-256 digest
    """
    return hashlib.sha256(data).hexdigest()


class ContentHasher:
    """Computes the digest that identifies a file's content to the service."""

    algorithm = "sha256"

    def hash_bytes(self, data: bytes) -> str:
        """
        Hash already-loaded content.

        Args:
            data: Bytes to hash

        Returns:
            Lowercase hexadecimal digest
        """
        return compute_digest(data)

    def read_file(self, path: Union[str, Path]) -> bytes:
        """
        Read a file in full before any transfer decision is made.

        Args:
            path: Local file path

        Returns:
            File content

        Raises:
            IOError: If the file cannot be read
        """
        with open(path, 'rb') as f:
            return f.read()

    def hash_file(self, path: Union[str, Path]) -> str:
        """
        Read and hash a local file.

        Args:
            path: Local file path

        Returns:
            Lowercase hexadecimal digest

        Raises:
            IOError: If the file cannot be read
        """
        data = self.read_file(path)
        digest = self.hash_bytes(data)
        logger.debug(f"Hashed {path}: {len(data)} bytes -> {digest[:12]}...")
        return digest
