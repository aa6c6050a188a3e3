"""Single-file and folder-tree upload flows."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Tuple, Union

from common.constants import DEFAULT_CHUNK_SIZE_BYTES, ROOT_FOLDER_ID
from common.logging_config import get_logger
from uploader.dedup_resolver import DedupResolver
from uploader.exceptions import UploadError, ValidationError
from uploader.hasher import ContentHasher
from uploader.path_resolver import PathResolver, normalize_path
from uploader.progress import Phase, ProgressEmitter, ProgressEvent, ProgressObserver
from uploader.schemas import FileRecord
from uploader.storage_client import StorageClient
from uploader.upload_session import UploadSession

logger = get_logger(__name__)


class UploadOutcome(str, Enum):
    INSTANT = "instant"                                  # probe hit
    INSTANT_AFTER_FALLBACK = "instant_after_fallback"    # probe missed, negotiation hit
    INSTANT_IN_SESSION = "instant_in_session"            # no probe, negotiation hit
    CHUNKED = "chunked"                                  # full chunked transfer


@dataclass
class UploadResult:
    """Result of uploading one file."""

    name: str
    parent_id: int
    size: int
    digest: str
    outcome: UploadOutcome
    file: Optional[FileRecord] = None
    probe_reason: Optional[str] = None
    transferred_chunks: List[int] = field(default_factory=list)
    relative_path: Optional[str] = None

    @property
    def instant(self) -> bool:
        return self.outcome is not UploadOutcome.CHUNKED


@dataclass(frozen=True)
class TreeEntry:
    """A local file and its path inside the uploaded tree (e.g. 'photos/2024/a.jpg')."""
    relative_path: str
    local_path: Path


@dataclass
class TreeFailure:
    relative_path: str
    error: UploadError


@dataclass
class TreeUploadResult:
    """Result of a folder-tree upload."""

    total_files: int
    results: List[UploadResult] = field(default_factory=list)
    failures: List[TreeFailure] = field(default_factory=list)

    @property
    def uploaded_files(self) -> int:
        return len(self.results)

    @property
    def failed_files(self) -> int:
        return len(self.failures)

    @property
    def all_success(self) -> bool:
        return self.failed_files == 0


def split_relative_path(relative_path: str) -> Tuple[Tuple[str, ...], str]:
    """
    Split a tree-relative path into folder segments and the file name.

    Raises:
        ValidationError: If the path has no file name
    """
    parts = tuple(part for part in normalize_path(relative_path).split('/') if part)
    if not parts:
        raise ValidationError(f"Empty relative path: '{relative_path}'")
    return parts[:-1], parts[-1]


def collect_tree(root: Union[str, Path]) -> List[TreeEntry]:
    """
    List the files under a local directory as tree entries.

    The directory's own name is the first segment of every relative path,
    matching what a folder picker submits.

    Args:
        root: Local directory

    Returns:
        Entries sorted by relative path

    Raises:
        ValidationError: If root is not a directory
    """
    root = Path(root)
    if not root.is_dir():
        raise ValidationError(f"Not a directory: {root}")
    entries = []
    for path in sorted(root.rglob('*')):
        if path.is_file():
            relative = PurePosixPath(root.name, *path.relative_to(root).parts)
            entries.append(TreeEntry(relative_path=str(relative), local_path=path))
    return entries


class UploadOrchestrator:
    """
    Sequences path resolution, hashing, the instant probe and chunked
    transfer. One orchestrator owns one PathResolver (and its folder
    cache) for its lifetime.
    """

    def __init__(
        self,
        client: StorageClient,
        chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES,
        resolver: Optional[PathResolver] = None,
        hasher: Optional[ContentHasher] = None,
        observers: Optional[List[ProgressObserver]] = None,
    ):
        if chunk_size <= 0:
            raise ValidationError(f"chunk_size must be positive, got {chunk_size}")
        self.client = client
        self.chunk_size = chunk_size
        self.resolver = resolver or PathResolver(client)
        self.hasher = hasher or ContentHasher()
        self.dedup = DedupResolver(client)
        self.emitter = ProgressEmitter(observers)

    def resolve_target(self, target_path: Optional[str], base_id: int = ROOT_FOLDER_ID, create_missing: bool = True) -> int:
        self.emitter.emit(ProgressEvent(phase=Phase.RESOLVING, file_name=target_path or '', message="target"))
        return self.resolver.resolve(target_path, base_id=base_id, create_missing=create_missing)

    def upload_file(
        self,
        local_path: Union[str, Path],
        target_path: Optional[str] = None,
        base_id: int = ROOT_FOLDER_ID,
        create_missing: bool = True,
        name: Optional[str] = None,
    ) -> UploadResult:
        """
        Upload one local file into a virtual folder.

        Args:
            local_path: File to upload
            target_path: Virtual folder path ('' keeps base_id)
            base_id: Folder that relative target paths start from
            create_missing: Create missing target folders
            name: Remote file name (defaults to the local name)

        Returns:
            UploadResult

        Raises:
            ValidationError: If the file is missing or empty
            IOError: If the file cannot be read
        """
        local_path = Path(local_path)
        if not local_path.is_file():
            raise ValidationError(f"File not found: {local_path}")
        parent_id = self.resolve_target(target_path, base_id=base_id, create_missing=create_missing)
        try:
            data = self.hasher.read_file(local_path)
        except OSError as e:
            raise ValidationError(f"Cannot read {local_path}: {e}") from e
        return self.upload_bytes(name or local_path.name, data, parent_id)

    def upload_bytes(self, name: str, data: bytes, parent_id: int) -> UploadResult:
        """
        Upload content into a resolved folder: probe first, chunked transfer on fallback.

        Args:
            name: Remote file name
            data: Full content
            parent_id: Target folder id

        Returns:
            UploadResult
        """
        self._validate(name, data)
        size = len(data)

        self.emitter.emit(ProgressEvent(phase=Phase.HASHING, file_name=name))
        digest = self.hasher.hash_bytes(data)

        self.emitter.emit(ProgressEvent(phase=Phase.PROBING, file_name=name))
        decision = self.dedup.try_instant(name, size, digest, parent_id)
        if decision.hit:
            record = FileRecord(id=decision.file_id, name=name, parent_id=parent_id, size=size, hash=digest)
            self.emitter.emit(ProgressEvent(phase=Phase.DONE, file_name=name, message="instant"))
            return UploadResult(
                name=name,
                parent_id=parent_id,
                size=size,
                digest=digest,
                outcome=UploadOutcome.INSTANT,
                file=record,
                probe_reason=decision.reason or None,
            )

        session = self._session(name, data, parent_id, digest)
        result = session.run()
        return UploadResult(
            name=name,
            parent_id=parent_id,
            size=size,
            digest=digest,
            outcome=UploadOutcome.INSTANT_AFTER_FALLBACK if result.instant else UploadOutcome.CHUNKED,
            file=result.file,
            probe_reason=decision.reason or None,
            transferred_chunks=result.transferred,
        )

    def upload_tree(
        self,
        entries: Iterable[TreeEntry],
        target_path: Optional[str] = None,
        base_id: int = ROOT_FOLDER_ID,
        create_missing: bool = True,
        max_workers: int = 1,
    ) -> TreeUploadResult:
        """
        Upload a set of files, recreating their folder structure.

        Every distinct directory prefix is materialized once before any
        file is sent. Files go straight to a chunked session; dedup is
        discovered during negotiation. A failing file is recorded and the
        rest of the batch continues.

        Args:
            entries: Files with their tree-relative paths
            target_path: Virtual folder that receives the tree
            base_id: Folder that relative target paths start from
            create_missing: Create missing target folders
            max_workers: Files uploaded in parallel (1 = strictly sequential)

        Returns:
            TreeUploadResult
        """
        entries = list(entries)
        outcome = TreeUploadResult(total_files=len(entries))
        if not entries:
            return outcome

        root_id = self.resolve_target(target_path, base_id=base_id, create_missing=create_missing)

        planned: List[Tuple[int, TreeEntry, str, int]] = []
        folder_ids: Dict[Tuple[str, ...], int] = {}
        folder_errors: Dict[Tuple[str, ...], UploadError] = {}
        for position, entry in enumerate(entries):
            try:
                folders, file_name = split_relative_path(entry.relative_path)
            except ValidationError as e:
                outcome.failures.append(TreeFailure(entry.relative_path, e))
                continue
            if folders not in folder_ids and folders not in folder_errors:
                try:
                    folder_ids[folders] = self.resolver.ensure_folder_path(root_id, folders)
                except UploadError as e:
                    logger.error(f"Cannot materialize folder '{'/'.join(folders)}': {e}")
                    folder_errors[folders] = e
            if folders in folder_errors:
                outcome.failures.append(TreeFailure(entry.relative_path, folder_errors[folders]))
                continue
            planned.append((position, entry, file_name, folder_ids[folders]))

        total = len(entries)

        def run_one(item: Tuple[int, TreeEntry, str, int]) -> Tuple[int, Union[UploadResult, TreeFailure]]:
            position, entry, file_name, parent_id = item
            self.emitter.emit(ProgressEvent(
                phase=Phase.UPLOADING,
                file_name=file_name,
                file_index=position,
                total_files=total,
                message=entry.relative_path,
            ))
            try:
                return position, self._upload_tree_file(entry, file_name, parent_id)
            except UploadError as e:
                logger.error(f"Tree upload failed for {entry.relative_path}: {e}")
                return position, TreeFailure(entry.relative_path, e)

        if max_workers > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                completed = list(pool.map(run_one, planned))
        else:
            completed = [run_one(item) for item in planned]

        for _, item in sorted(completed, key=lambda pair: pair[0]):
            if isinstance(item, TreeFailure):
                outcome.failures.append(item)
            else:
                outcome.results.append(item)

        logger.info(
            f"Tree upload finished: {outcome.uploaded_files}/{outcome.total_files} uploaded, "
            f"{outcome.failed_files} failed"
        )
        return outcome

    def _upload_tree_file(self, entry: TreeEntry, file_name: str, parent_id: int) -> UploadResult:
        try:
            data = self.hasher.read_file(entry.local_path)
        except OSError as e:
            raise ValidationError(f"Cannot read {entry.local_path}: {e}") from e
        self._validate(file_name, data)
        digest = self.hasher.hash_bytes(data)
        result = self._session(file_name, data, parent_id, digest).run()
        return UploadResult(
            name=file_name,
            parent_id=parent_id,
            size=len(data),
            digest=digest,
            outcome=UploadOutcome.INSTANT_IN_SESSION if result.instant else UploadOutcome.CHUNKED,
            file=result.file,
            transferred_chunks=result.transferred,
            relative_path=entry.relative_path,
        )

    def _session(self, name: str, data: bytes, parent_id: int, digest: str) -> UploadSession:
        return UploadSession(
            self.client,
            name=name,
            data=data,
            parent_id=parent_id,
            chunk_size=self.chunk_size,
            digest=digest,
            emitter=self.emitter,
            hasher=self.hasher,
        )

    @staticmethod
    def _validate(name: str, data: bytes) -> None:
        if not name or '/' in name:
            raise ValidationError(f"Invalid file name: '{name}'")
        if not data:
            raise ValidationError(f"File is empty: {name}")
