"""Resumable chunked upload session.

State machine::

    INIT -> NEGOTIATING -> INSTANT_SKIP -> DONE
                        -> UPLOADING -> COMPLETING -> DONE

FAILED is reachable from every non-terminal state. A failed session can
be run again: negotiation reports the chunks the service already holds,
so the retry resumes instead of starting over.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple

from common.logging_config import get_logger
from uploader.exceptions import (
    ChunkTransferError,
    NetworkError,
    SessionStateError,
    UploadError,
    ValidationError,
)
from uploader.hasher import ContentHasher
from uploader.progress import Phase, ProgressEmitter, ProgressEvent
from uploader.schemas import FileRecord, MultipartCompleteRequest, MultipartInitRequest
from uploader.storage_client import StorageClient

logger = get_logger(__name__)


def total_chunks_for(size: int, chunk_size: int) -> int:
    """Number of chunks for a file; an empty file still has one (empty) chunk."""
    if chunk_size <= 0:
        raise ValidationError(f"chunk_size must be positive, got {chunk_size}")
    if size < 0:
        raise ValidationError(f"size must not be negative, got {size}")
    return max(1, math.ceil(size / chunk_size))


def chunk_span(index: int, size: int, chunk_size: int) -> Tuple[int, int]:
    """Byte range [start, end) covered by chunk ``index``."""
    start = index * chunk_size
    return start, min(size, start + chunk_size)


class SessionState(str, Enum):
    INIT = "init"
    NEGOTIATING = "negotiating"
    INSTANT_SKIP = "instant_skip"
    UPLOADING = "uploading"
    COMPLETING = "completing"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    SessionState.INIT: {SessionState.NEGOTIATING, SessionState.FAILED},
    SessionState.NEGOTIATING: {SessionState.INSTANT_SKIP, SessionState.UPLOADING, SessionState.FAILED},
    SessionState.INSTANT_SKIP: {SessionState.DONE, SessionState.FAILED},
    SessionState.UPLOADING: {SessionState.COMPLETING, SessionState.FAILED},
    SessionState.COMPLETING: {SessionState.DONE, SessionState.FAILED},
    SessionState.DONE: set(),
    SessionState.FAILED: {SessionState.INIT},
}


@dataclass
class UploadTask:
    """Server-side session as seen by the client."""

    upload_id: str
    chunk_size: int
    total_chunks: int
    uploaded: Set[int] = field(default_factory=set)

    def merge(self, indices) -> None:
        """Add server-reported indices; the set only ever grows."""
        self.uploaded.update(i for i in indices if 0 <= i < self.total_chunks)

    def pending(self) -> List[int]:
        return [i for i in range(self.total_chunks) if i not in self.uploaded]

    @property
    def is_complete(self) -> bool:
        return len(self.uploaded) == self.total_chunks


@dataclass
class SessionResult:
    """
    Terminal result of a session.

    Attributes:
        instant: True when negotiation found the content and no chunk was sent
        file: Materialized record, when the service returned one
        task: Chunk bookkeeping (None for instant results)
        transferred: Chunk indices sent during this run, in order
    """
    instant: bool
    file: Optional[FileRecord] = None
    task: Optional[UploadTask] = None
    transferred: List[int] = field(default_factory=list)


class UploadSession:
    """Drives one file through negotiation, chunk transfer and completion."""

    def __init__(
        self,
        client: StorageClient,
        name: str,
        data: bytes,
        parent_id: int,
        chunk_size: int,
        digest: Optional[str] = None,
        user_id: Optional[int] = None,
        emitter: Optional[ProgressEmitter] = None,
        hasher: Optional[ContentHasher] = None,
    ):
        """
        Args:
            client: Storage API client
            name: File name to create
            data: Full file content
            parent_id: Target folder id
            chunk_size: Chunk size in bytes (> 0)
            digest: Known content digest; computed once if omitted
            user_id: Owner id; read from the client's token if omitted
            emitter: Progress event sink
            hasher: Digest implementation
        """
        if not name:
            raise ValidationError("File name is required")
        self.client = client
        self.name = name
        self.data = data
        self.size = len(data)
        self.parent_id = parent_id
        self.chunk_size = chunk_size
        self.total_chunks = total_chunks_for(self.size, chunk_size)
        self.digest = digest
        self.user_id = user_id
        self.emitter = emitter or ProgressEmitter()
        self.hasher = hasher or ContentHasher()

        self.state = SessionState.INIT
        self.task: Optional[UploadTask] = None
        self.error: Optional[UploadError] = None
        self.result: Optional[SessionResult] = None

    def _transition(self, target: SessionState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise SessionStateError(f"Illegal transition {self.state.value} -> {target.value} for {self.name}")
        logger.debug(f"Session {self.name}: {self.state.value} -> {target.value}")
        self.state = target

    def _emit(self, phase: Phase, chunk_index: Optional[int] = None, message: str = '') -> None:
        self.emitter.emit(ProgressEvent(
            phase=phase,
            file_name=self.name,
            chunk_index=chunk_index,
            total_chunks=self.total_chunks,
            message=message,
        ))

    def run(self) -> SessionResult:
        """
        Run the session to a terminal state.

        Returns:
            SessionResult

        Raises:
            UploadError: The error that moved the session to FAILED
        """
        if self.state is SessionState.DONE:
            return self.result
        if self.state is SessionState.FAILED:
            logger.info(f"Restarting session for {self.name} after: {self.error}")
            self._transition(SessionState.INIT)
            self.error = None
        elif self.state is not SessionState.INIT:
            raise SessionStateError(f"Session for {self.name} is already {self.state.value}")

        try:
            if self.digest is None:
                self._emit(Phase.HASHING)
                self.digest = self.hasher.hash_bytes(self.data)
            if self.user_id is None:
                self.user_id = self.client.current_user_id()

            if self._negotiate():
                self._transition(SessionState.DONE)
                self.result = SessionResult(instant=True)
                self._emit(Phase.DONE, message="instant")
                return self.result

            transferred = self._upload_chunks()
            record = self._complete()
        except UploadError as e:
            self._fail(e)
            raise

        self._transition(SessionState.DONE)
        self.result = SessionResult(instant=False, file=record, task=self.task, transferred=transferred)
        self._emit(Phase.DONE)
        logger.info(f"Upload completed: {self.name} ({len(transferred)}/{self.total_chunks} chunk(s) sent)")
        return self.result

    def _fail(self, error: UploadError) -> None:
        self.error = error
        if self.state not in (SessionState.DONE, SessionState.FAILED):
            self._transition(SessionState.FAILED)
        self._emit(Phase.FAILED, message=str(error))
        logger.error(f"Upload failed: {self.name} ({error.__class__.__name__}): {error}")

    def _negotiate(self) -> bool:
        """
        Open or resume the server-side session.

        Returns:
            True when the service reported an instant hit
        """
        self._transition(SessionState.NEGOTIATING)
        self._emit(Phase.NEGOTIATING)
        response = self.client.init_multipart(MultipartInitRequest(
            user_id=self.user_id,
            file_name=self.name,
            size=self.size,
            hash=self.digest,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
            parent_id=self.parent_id,
        ))

        if response.instant:
            logger.info(f"Instant hit during negotiation for {self.name}")
            self._transition(SessionState.INSTANT_SKIP)
            return True

        if not response.upload_id:
            raise NetworkError("Missing upload ID.")

        if self.task is None or self.task.upload_id != response.upload_id:
            self.task = UploadTask(
                upload_id=response.upload_id,
                chunk_size=self.chunk_size,
                total_chunks=self.total_chunks,
            )
        self.task.merge(response.uploaded)
        logger.debug(
            f"Session {self.task.upload_id} for {self.name}: "
            f"{len(self.task.uploaded)}/{self.total_chunks} chunk(s) already on server"
        )
        self._transition(SessionState.UPLOADING)
        return False

    def _upload_chunks(self) -> List[int]:
        transferred: List[int] = []
        for index in range(self.total_chunks):
            if index in self.task.uploaded:
                self._emit(Phase.UPLOADING, chunk_index=index, message="skipped")
                continue
            start, end = chunk_span(index, self.size, self.chunk_size)
            try:
                self.client.upload_chunk(self.task.upload_id, index, self.data[start:end], self.name)
            except NetworkError as e:
                raise ChunkTransferError(
                    f"Chunk {index + 1}/{self.total_chunks} of {self.name} failed: {e}",
                    chunk_index=index,
                    upload_id=self.task.upload_id,
                    status_code=e.status_code,
                ) from e
            self.task.uploaded.add(index)
            transferred.append(index)
            self._emit(Phase.UPLOADING, chunk_index=index)
        return transferred

    def _complete(self) -> Optional[FileRecord]:
        if not self.task.is_complete:
            raise SessionStateError(f"Cannot complete {self.name}: chunks {self.task.pending()} missing")
        self._transition(SessionState.COMPLETING)
        self._emit(Phase.COMPLETING)
        return self.client.complete_multipart(MultipartCompleteRequest(
            file_hash=self.digest,
            file_name=self.name,
            file_size=self.size,
            total_chunks=self.total_chunks,
            parent_id=self.parent_id,
        ))
