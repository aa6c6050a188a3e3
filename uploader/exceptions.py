"""Exception taxonomy for the upload core."""

from typing import Optional


class UploadError(Exception):
    """
    Base exception class for all upload-core errors.
    """
    pass


class ValidationError(UploadError):
    """
    Raised for missing or invalid input, such as an empty file or an
    empty path segment.
    """
    pass


class NotAuthenticatedError(ValidationError):
    """
    Raised when no bearer token is available or no user id can be read from it.
    """
    pass


class NetworkError(UploadError):
    """
    Raised on transport failure or a non-success HTTP status.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        endpoint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.endpoint = endpoint


class ConflictError(NetworkError):
    """
    Raised when a folder with the same name already exists under the parent.
    """
    pass


class ChunkTransferError(NetworkError):
    """
    Raised when a single chunk transfer fails. Chunks already accepted by
    the service stay valid for a later resume.
    """

    def __init__(self, message: str, chunk_index: int, upload_id: str, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code)
        self.chunk_index = chunk_index
        self.upload_id = upload_id


class PathNotFoundError(UploadError):
    """
    Raised when a path segment does not exist and creation was not requested.
    """

    def __init__(self, segment: str, parent_id: int):
        super().__init__(f"Folder not found: {segment}")
        self.segment = segment
        self.parent_id = parent_id


class InconsistentStateError(UploadError):
    """
    Raised when the service accepted a folder creation but a fresh listing
    of the parent does not show it.
    """

    def __init__(self, parent_id: int, name: str):
        super().__init__(f"Folder '{name}' not found under {parent_id} after creation")
        self.parent_id = parent_id
        self.name = name


class DedupAmbiguousError(UploadError):
    """
    Raised internally for a malformed instant-upload response. Never
    leaves the dedup resolver; it is downgraded to a fallback there.
    """
    pass


class SessionStateError(UploadError):
    """
    Raised on an illegal upload session state transition.
    """
    pass
