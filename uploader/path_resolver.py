"""Maps virtual folder paths to storage folder ids, creating folders on demand."""

import threading
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from common.constants import ROOT_FOLDER_ID, ROOT_KEYWORD
from common.logging_config import get_logger
from uploader.exceptions import (
    ConflictError,
    InconsistentStateError,
    PathNotFoundError,
    ValidationError,
)
from uploader.storage_client import StorageClient

logger = get_logger(__name__)


def normalize_path(value: Optional[str]) -> str:
    """Trim whitespace and turn backslashes into forward slashes."""
    return (value or '').strip().replace('\\', '/')


@dataclass(frozen=True)
class VirtualPath:
    """
    A parsed virtual path.

    Attributes:
        segments: Non-empty folder names in order
        from_root: True when the path ignores any base folder
    """
    segments: Tuple[str, ...]
    from_root: bool = False

    @classmethod
    def parse(cls, value: Optional[str]) -> 'VirtualPath':
        """
        Parse a user-supplied path.

        '' and '.' mean the base folder itself; '/' and 'root' mean the
        root folder; a leading '/' anchors the rest of the path at root.
        """
        normalized = normalize_path(value)
        if not normalized or normalized == '.':
            return cls(segments=())
        if normalized == '/' or normalized.lower() == ROOT_KEYWORD:
            return cls(segments=(), from_root=True)
        from_root = normalized.startswith('/')
        segments = tuple(part for part in normalized.split('/') if part)
        return cls(segments=segments, from_root=from_root)

    def base(self, base_id: int) -> int:
        return ROOT_FOLDER_ID if self.from_root else base_id

    def __str__(self) -> str:
        joined = '/'.join(self.segments)
        return f"/{joined}" if self.from_root else joined


class PathResolver:
    """
    Resolves folder names to ids with a per-parent cache.

    The cache is owned by this instance. Share one resolver across the
    files of a batch so ancestors are listed and created once; use a new
    resolver (or ``invalidate``) when the remote tree may have changed.
    """

    def __init__(self, client: StorageClient):
        self.client = client
        self._cache: Dict[int, Dict[str, int]] = {}
        self._prefixes: Dict[Tuple[int, str], int] = {}
        self._lock = threading.RLock()

    def invalidate(self, parent_id: Optional[int] = None) -> None:
        """
        Drop cached listings.

        Args:
            parent_id: Folder whose listing to drop; None drops everything,
                including materialized path prefixes
        """
        with self._lock:
            if parent_id is None:
                self._cache.clear()
                self._prefixes.clear()
            else:
                self._cache.pop(parent_id, None)

    def resolve(self, path: Optional[str], base_id: int = ROOT_FOLDER_ID, create_missing: bool = False) -> int:
        """
        Resolve a virtual path to a folder id.

        Args:
            path: Slash-separated path, relative to base_id unless it starts with '/'
            base_id: Folder that relative paths start from
            create_missing: Create missing folders instead of failing

        Returns:
            Folder id

        Raises:
            PathNotFoundError: If a segment is missing and create_missing is False
        """
        virtual = VirtualPath.parse(path)
        start = virtual.base(base_id)
        if not virtual.segments:
            return start

        if create_missing:
            return self.ensure_folder_path(start, virtual.segments)

        current = start
        for segment in virtual.segments:
            found = self.resolve_folder_id(current, segment)
            if found is None:
                raise PathNotFoundError(segment, current)
            current = found
        logger.debug(f"Resolved path '{virtual}' from {base_id} -> {current}")
        return current

    def resolve_folder_id(self, parent_id: int, name: str) -> Optional[int]:
        """
        Look up a child folder by name, listing the parent on a cache miss.

        Args:
            parent_id: Parent folder id
            name: Child folder name

        Returns:
            Folder id, or None if no such folder exists under the parent
        """
        with self._lock:
            children = self._cache.get(parent_id)
            if children is None:
                children = {
                    record.name: record.id
                    for record in self.client.list_children(parent_id)
                    if record.is_dir
                }
                self._cache[parent_id] = children
                logger.debug(f"Cached {len(children)} folder(s) under {parent_id}")
            return children.get(name)

    def ensure_folder(self, parent_id: int, name: str) -> int:
        """
        Get a child folder's id, creating the folder if it does not exist.

        A name conflict on creation means another writer created it
        first; the parent is re-listed and that folder is used.

        Args:
            parent_id: Parent folder id
            name: Folder name

        Returns:
            Folder id

        Raises:
            ValidationError: If the name is empty or contains '/'
            InconsistentStateError: If the folder is still missing after creation
        """
        if not name or not name.strip() or '/' in name:
            raise ValidationError(f"Invalid folder name: '{name}'")

        with self._lock:
            folder_id = self.resolve_folder_id(parent_id, name)
            if folder_id is not None:
                return folder_id

            try:
                self.client.create_folder(parent_id, name)
                logger.info(f"Created folder '{name}' under {parent_id}")
            except ConflictError:
                logger.info(f"Folder '{name}' already exists under {parent_id}, re-resolving")

            self.invalidate(parent_id)
            folder_id = self.resolve_folder_id(parent_id, name)
            if folder_id is None:
                logger.error(f"Folder '{name}' missing under {parent_id} after creation")
                raise InconsistentStateError(parent_id, name)
            return folder_id

    def ensure_folder_path(self, base_id: int, segments: Iterable[str]) -> int:
        """
        Materialize a chain of folders below base_id.

        Each distinct prefix is memoized, so many files under the same new
        subtree cause at most one creation per folder.

        Args:
            base_id: Folder to start from
            segments: Folder names, outermost first

        Returns:
            Id of the innermost folder
        """
        current = base_id
        prefix = ''
        for segment in segments:
            prefix = f"{prefix}/{segment}" if prefix else segment
            key = (base_id, prefix)
            with self._lock:
                cached = self._prefixes.get(key)
                if cached is not None:
                    current = cached
                    continue
                current = self.ensure_folder(current, segment)
                self._prefixes[key] = current
        return current
