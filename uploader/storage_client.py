"""HTTP client for the storage service upload and folder endpoints."""

import re
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import httpx

from common.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BACKOFF_MULTIPLIER,
    DEFAULT_TIMEOUT_SECONDS,
    ENDPOINT_CREATE_FOLDER,
    ENDPOINT_FILE_LIST,
    ENDPOINT_HASH_PROBE,
    ENDPOINT_MULTIPART_CHUNK,
    ENDPOINT_MULTIPART_COMPLETE,
    ENDPOINT_MULTIPART_INIT,
    FOLDER_CONFLICT_CODES,
    LIST_PAGE_SIZE,
    MIB,
)
from common.logging_config import get_logger
from uploader.exceptions import ConflictError, NetworkError
from uploader.identity import user_id_from_token
from uploader.schemas import (
    CreateFolderRequest,
    FileListRequest,
    FileListResponse,
    FileRecord,
    HashProbeRequest,
    MultipartCompleteRequest,
    MultipartInitRequest,
    MultipartInitResponse,
    parse_completion,
)

logger = get_logger(__name__)

_FOLDER_EXISTS_MESSAGE = re.compile(r'\bfolder already exists\b', re.IGNORECASE)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry for transient failures: delay = backoff ** attempt."""
    max_retries: int = DEFAULT_MAX_RETRIES
    backoff: float = DEFAULT_RETRY_BACKOFF_MULTIPLIER


class StorageClient:
    """HTTP client for the storage API with retry logic and error mapping."""

    def __init__(
        self,
        base_url: str,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        retry: Optional[RetryPolicy] = None,
        list_page_size: int = LIST_PAGE_SIZE,
    ):
        """
        Initialize storage client.

        Args:
            base_url: Service base URL (e.g., "http://localhost:8000/api")
            token_provider: Callable returning the current bearer token, or None
            timeout: Default per-request timeout in seconds
            retry: Retry policy for 5xx responses and network failures
            list_page_size: Page size used to fetch a whole directory at once
        """
        self.base_url = base_url.rstrip('/')
        self.token_provider = token_provider or (lambda: None)
        self.retry = retry or RetryPolicy()
        self.list_page_size = list_page_size
        self.session = httpx.Client(base_url=self.base_url, timeout=timeout)
        self.request_id: Optional[str] = None
        logger.info(f"Initialized StorageClient [base_url={self.base_url}]")

    def __enter__(self) -> 'StorageClient':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def current_user_id(self) -> int:
        """
        Get the user id carried by the current bearer token.

        Raises:
            NotAuthenticatedError: If not logged in
        """
        return user_id_from_token(self.token_provider())

    def _calculate_upload_timeout(self, payload_size: int) -> float:
        """
        Calculate timeout for a chunk transfer based on its size.

        Args:
            payload_size: Chunk size in bytes

        Returns:
            Timeout in seconds (30s base + 0.1s per MiB)
        """
        return 30.0 + (payload_size / MIB) * 0.1

    def _headers(self) -> dict:
        headers = {'Accept': 'application/json'}
        token = self.token_provider()
        if token:
            headers['Authorization'] = f'Bearer {token}'
        return headers

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and transport failures.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses the client policy if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object (2xx, 4xx, or the last 5xx)

        Raises:
            NetworkError: If the service cannot be reached after all retries
        """
        max_retries = max_retries if max_retries is not None else self.retry.max_retries
        backoff = self.retry.backoff

        self.request_id = str(uuid.uuid4())
        headers = self._headers()
        headers.update(kwargs.pop('headers', None) or {})
        headers['X-Request-ID'] = self.request_id

        logger.debug(f"Making request: {method} {endpoint} [request_id={self.request_id}]")

        last_exception: Optional[Exception] = None
        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, headers=headers, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )

                if 400 <= response.status_code < 500:
                    logger.warning(
                        f"Client error: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                    )
                    return response

                if response.status_code >= 500 and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue

                return response

            except httpx.TransportError as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                )

        if isinstance(last_exception, httpx.TimeoutException):
            raise NetworkError("Request timed out. Server may be overloaded.", endpoint=endpoint) from last_exception
        if not isinstance(last_exception, httpx.ConnectError):
            raise NetworkError(
                f"Connection to storage server failed: {type(last_exception).__name__}", endpoint=endpoint
            ) from last_exception
        raise NetworkError("Cannot connect to storage server. Is it running?", endpoint=endpoint) from last_exception

    @staticmethod
    def _error_details(response: httpx.Response) -> tuple[str, Optional[str]]:
        """
        Extract a readable message and a structured error code.

        Returns:
            Tuple of (message, code); code is None when the service sent none
        """
        try:
            data = response.json()
        except ValueError:
            return (response.text or f"HTTP {response.status_code}"), None

        if not isinstance(data, dict):
            return str(data), None

        message = next(
            (data[key] for key in ('error', 'msg', 'message', 'detail') if data.get(key)),
            f"HTTP {response.status_code}",
        )
        code = data.get('code')
        return str(message), code if isinstance(code, str) else None

    def _unwrap(self, response: httpx.Response, endpoint: str) -> Any:
        """
        Check the status and strip the ``{code, msg, data}`` envelope.

        Raises:
            NetworkError: On a non-success status or a failed envelope
        """
        if not response.is_success:
            message, code = self._error_details(response)
            raise NetworkError(message, status_code=response.status_code, code=code, endpoint=endpoint)

        try:
            data = response.json()
        except ValueError:
            return None

        if isinstance(data, dict) and 'code' in data and 'data' in data:
            if data['code'] not in (0, None):
                raise NetworkError(
                    str(data.get('msg') or 'Request failed'),
                    status_code=response.status_code,
                    code=str(data['code']),
                    endpoint=endpoint,
                )
            return data['data']
        return data

    def probe_hash(self, request: HashProbeRequest) -> Any:
        """
        Ask whether content with this digest and size already exists.

        The raw payload is returned; deciding whether it is a usable hit
        belongs to the dedup resolver.

        Args:
            request: Probe request

        Returns:
            Unwrapped JSON payload
        """
        response = self._request_with_retry('POST', ENDPOINT_HASH_PROBE, json=request.model_dump())
        return self._unwrap(response, ENDPOINT_HASH_PROBE)

    def init_multipart(self, request: MultipartInitRequest) -> MultipartInitResponse:
        """
        Open (or resume) a chunked upload session.

        Args:
            request: Session metadata

        Returns:
            Parsed negotiation result
        """
        response = self._request_with_retry('POST', ENDPOINT_MULTIPART_INIT, json=request.model_dump())
        payload = self._unwrap(response, ENDPOINT_MULTIPART_INIT)
        try:
            return MultipartInitResponse.model_validate(payload or {})
        except ValueError as e:
            raise NetworkError(
                f"Malformed session response: {e}",
                status_code=response.status_code,
                endpoint=ENDPOINT_MULTIPART_INIT,
            ) from e

    def upload_chunk(self, upload_id: str, chunk_index: int, data: bytes, file_name: str) -> None:
        """
        Transfer one chunk as a multipart form.

        Args:
            upload_id: Session id issued by init
            chunk_index: Zero-based chunk index
            data: Exact chunk bytes
            file_name: File name attached to the binary part
        """
        response = self._request_with_retry(
            'POST',
            ENDPOINT_MULTIPART_CHUNK,
            data={'chunk_index': str(chunk_index), 'upload_id': upload_id},
            files={'chunk': (file_name, data, 'application/octet-stream')},
            timeout=self._calculate_upload_timeout(len(data)),
        )
        self._unwrap(response, ENDPOINT_MULTIPART_CHUNK)

    def complete_multipart(self, request: MultipartCompleteRequest) -> Optional[FileRecord]:
        """
        Ask the service to assemble the session's chunks into a file.

        Safe to call again after a lost response; the service treats it
        idempotently.

        Args:
            request: Completion metadata

        Returns:
            The materialized FileRecord when the service returns one
        """
        response = self._request_with_retry('POST', ENDPOINT_MULTIPART_COMPLETE, json=request.model_dump())
        return parse_completion(self._unwrap(response, ENDPOINT_MULTIPART_COMPLETE))

    def list_children(self, parent_id: int) -> List[FileRecord]:
        """
        List the direct children of a folder in one page.

        Args:
            parent_id: Folder id (0 for root)

        Returns:
            Child records
        """
        request = FileListRequest(parent_id=parent_id, page_size=self.list_page_size)
        response = self._request_with_retry('POST', ENDPOINT_FILE_LIST, json=request.model_dump())
        payload = self._unwrap(response, ENDPOINT_FILE_LIST)
        try:
            return FileListResponse.model_validate(payload or {}).files
        except ValueError as e:
            raise NetworkError(
                f"Malformed listing for folder {parent_id}: {e}",
                status_code=response.status_code,
                endpoint=ENDPOINT_FILE_LIST,
            ) from e

    def create_folder(self, parent_id: int, name: str) -> None:
        """
        Create a folder under a parent.

        Not retried here: a lost response followed by a retry would only
        surface as a conflict, which the path resolver reconciles itself.

        Args:
            parent_id: Parent folder id
            name: New folder name

        Raises:
            ConflictError: If a folder with this name already exists
            NetworkError: On any other failure
        """
        request = CreateFolderRequest(parent_id=parent_id, name=name)
        response = self._request_with_retry('POST', ENDPOINT_CREATE_FOLDER, max_retries=0, json=request.model_dump())
        try:
            self._unwrap(response, ENDPOINT_CREATE_FOLDER)
        except NetworkError as e:
            if self._is_folder_conflict(e):
                raise ConflictError(
                    e.message, status_code=e.status_code, code=e.code, endpoint=ENDPOINT_CREATE_FOLDER
                ) from e
            raise

    @staticmethod
    def _is_folder_conflict(error: NetworkError) -> bool:
        if error.status_code == 409:
            return True
        if error.code in FOLDER_CONFLICT_CODES:
            return True
        return bool(_FOLDER_EXISTS_MESSAGE.search(error.message))

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
