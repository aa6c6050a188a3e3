"""Project-wide constants shared by the upload core and the CLI."""

MIB: int = 1024 * 1024

ROOT_FOLDER_ID: int = 0
ROOT_KEYWORD: str = "root"

DEFAULT_CHUNK_SIZE_MB: int = 5
DEFAULT_CHUNK_SIZE_BYTES: int = DEFAULT_CHUNK_SIZE_MB * MIB

# Folder listings fetch a whole directory in one page.
LIST_PAGE_SIZE: int = 2000
LIST_ORDER_BY: str = "created_at"

DEFAULT_API_BASE: str = "http://localhost:8000/api"
DEFAULT_TIMEOUT_SECONDS: int = 30
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_BACKOFF_MULTIPLIER: float = 2

ENDPOINT_HASH_PROBE: str = "/file/upload/hash"
ENDPOINT_MULTIPART_INIT: str = "/file/upload/multipart/init"
ENDPOINT_MULTIPART_CHUNK: str = "/file/upload/multipart/chunk"
ENDPOINT_MULTIPART_COMPLETE: str = "/file/upload/multipart/complete"
ENDPOINT_FILE_LIST: str = "/file/list"
ENDPOINT_CREATE_FOLDER: str = "/file/folder"

REASON_OBJECT_MISSING: str = "object_missing"
REASON_SIZE_MISMATCH: str = "size_mismatch"
REASON_HASH_NOT_FOUND: str = "hash_not_found"
REASON_MALFORMED: str = "malformed"
REASON_PROBE_FAILED: str = "probe_failed"

FOLDER_CONFLICT_CODES: frozenset = frozenset({"FOLDER_ALREADY_EXISTS", "already_exists"})
