"""CLI facade over the upload core: runs operations and formats their results."""

from pathlib import Path
from typing import Optional

from cli.config import Config
from cli.utils import ProgressPrinter, format_file_size
from common.logging_config import get_logger
from uploader.exceptions import NotAuthenticatedError, PathNotFoundError, UploadError
from uploader.hasher import ContentHasher
from uploader.identity import user_id_from_token
from uploader.orchestrator import (
    TreeUploadResult,
    UploadOrchestrator,
    UploadOutcome,
    UploadResult,
    collect_tree,
)
from uploader.path_resolver import VirtualPath
from uploader.storage_client import RetryPolicy, StorageClient

logger = get_logger(__name__)


def join_display_path(base_path: str, target: Optional[str]) -> str:
    """
    Compute the absolute display path of a target relative to base_path.

    Args:
        base_path: Absolute display path of the base folder
        target: User-supplied virtual path

    Returns:
        Absolute display path (e.g., "/a/b")
    """
    virtual = VirtualPath.parse(target)
    if virtual.from_root:
        return '/' + '/'.join(virtual.segments)
    if not virtual.segments:
        return base_path or '/'
    return f"{(base_path or '/').rstrip('/')}/{'/'.join(virtual.segments)}"


class PanClient:
    """Owns one storage client and one orchestrator (and its folder cache) per CLI session."""

    def __init__(self, config: Config, storage: Optional[StorageClient] = None, show_progress: bool = True):
        """
        Initialize the CLI client.

        Args:
            config: Configuration instance
            storage: Storage client to use (built from config if None)
            show_progress: Render progress events to stdout
        """
        self.config = config
        retry = config.get_retry_config()
        self.storage = storage or StorageClient(
            config.get_base_url(),
            token_provider=config.get_token,
            timeout=config.get_timeout(),
            retry=RetryPolicy(
                max_retries=retry['max_retries'],
                backoff=retry['retry_backoff_multiplier'],
            ),
            list_page_size=config.get_list_page_size(),
        )
        self.hasher = ContentHasher()
        self.orchestrator = UploadOrchestrator(
            self.storage,
            chunk_size=config.get_chunk_size(),
            hasher=self.hasher,
            observers=[ProgressPrinter()] if show_progress else None,
        )

    def _require_token(self) -> None:
        if not self.config.get_token():
            raise NotAuthenticatedError("Not logged in. Please run: token <bearer-token>")

    def set_token(self, token: str) -> str:
        """
        Save a bearer token after checking it carries a user id.

        Returns:
            Success or error message
        """
        try:
            user_id = user_id_from_token(token)
        except NotAuthenticatedError:
            return "Error: Token does not carry a user id. Paste the token returned by login."
        self.config.set_token(token)
        self.orchestrator.resolver.invalidate()
        logger.info(f"Token saved for user #{user_id}")
        return f"Token saved (user #{user_id})."

    def logout(self) -> str:
        self.config.clear_token()
        self.orchestrator.resolver.invalidate()
        return "Logged out."

    def pwd(self) -> str:
        folder = self.config.get_last_folder()
        return f"Current folder: {folder['path']} (#{folder['id']})"

    def cd(self, path: str) -> str:
        """
        Change the remembered working folder.

        Returns:
            New location or error message
        """
        current = self.config.get_last_folder()
        try:
            self._require_token()
            folder_id = self.orchestrator.resolver.resolve(path, base_id=current['id'])
        except PathNotFoundError as e:
            return f"Error: Folder not found: {e.segment}"
        except UploadError as e:
            return f"Error: {e}"

        display = join_display_path(current['path'], path)
        self.config.set_last_folder(folder_id, display)
        return f"Current folder: {display} (#{folder_id})"

    def list_folder(self, path: Optional[str] = None) -> str:
        """
        List a remote folder.

        Returns:
            Formatted listing or error message
        """
        current = self.config.get_last_folder()
        try:
            self._require_token()
            folder_id = self.orchestrator.resolver.resolve(path, base_id=current['id'])
            records = self.storage.list_children(folder_id)
        except PathNotFoundError as e:
            return f"Error: Folder not found: {e.segment}"
        except UploadError as e:
            return f"Error: {e}"

        display = join_display_path(current['path'], path)
        if not records:
            return f"{display} is empty."

        output = [f"{display} ({len(records)} item(s)):"]
        for record in sorted(records, key=lambda r: (not r.is_dir, r.name.lower())):
            if record.is_dir:
                output.append(f"  [DIR] {record.name}/ (#{record.id})")
            else:
                output.append(f"        {record.name} (#{record.id}, {format_file_size(record.size)})")
        return '\n'.join(output)

    def mkdir(self, path: str) -> str:
        current = self.config.get_last_folder()
        try:
            self._require_token()
            folder_id = self.orchestrator.resolver.resolve(path, base_id=current['id'], create_missing=True)
        except UploadError as e:
            return f"Error: {e}"
        return f"Folder ready: {join_display_path(current['path'], path)} (#{folder_id})"

    def hash_file(self, file_path: str) -> str:
        path = Path(file_path).expanduser()
        if not path.is_file():
            return f"Error: File not found: {file_path}"
        try:
            digest = self.hasher.hash_file(path)
        except IOError as e:
            return f"Error reading file: {e}"
        return f"{digest}  {path.name}"

    def upload(self, file_path: str, target_path: Optional[str] = None, create_missing: bool = True) -> str:
        """
        Upload one file into the target folder.

        Returns:
            Outcome message
        """
        current = self.config.get_last_folder()
        try:
            self._require_token()
            result = self.orchestrator.upload_file(
                Path(file_path).expanduser(),
                target_path=target_path,
                base_id=current['id'],
                create_missing=create_missing,
            )
        except PathNotFoundError as e:
            return f"Error: Target folder not found: {e.segment} (use without --no-create to create it)"
        except UploadError as e:
            return f"Error uploading {file_path}: {e}"
        except IOError as e:
            return f"Error reading file: {e}"
        except Exception as e:
            logger.error(f"Unexpected error uploading {file_path}: {e}", exc_info=True)
            return f"Unexpected error uploading {file_path}: {e}"

        return self.describe_result(result)

    def upload_dir(self, dir_path: str, target_path: Optional[str] = None, create_missing: bool = True) -> str:
        """
        Upload a local folder tree into the target folder.

        Returns:
            Summary with one line per failed file
        """
        current = self.config.get_last_folder()
        try:
            self._require_token()
            entries = collect_tree(Path(dir_path).expanduser())
            if not entries:
                return f"No files found in {dir_path}."
            outcome = self.orchestrator.upload_tree(
                entries,
                target_path=target_path,
                base_id=current['id'],
                create_missing=create_missing,
            )
        except PathNotFoundError as e:
            return f"Error: Target folder not found: {e.segment} (use without --no-create to create it)"
        except UploadError as e:
            return f"Error uploading {dir_path}: {e}"
        except Exception as e:
            logger.error(f"Unexpected error uploading {dir_path}: {e}", exc_info=True)
            return f"Unexpected error uploading {dir_path}: {e}"

        return self.describe_tree(outcome)

    @staticmethod
    def describe_result(result: UploadResult) -> str:
        """Format one upload outcome, keeping the instant variants distinct."""
        file_ref = f" (#{result.file.id})" if result.file else ""
        reason = f"; probe: {result.probe_reason}" if result.probe_reason else ""
        if result.outcome is UploadOutcome.INSTANT:
            return f"Instant upload: {result.name}{file_ref}, {format_file_size(result.size)}"
        if result.outcome is UploadOutcome.INSTANT_AFTER_FALLBACK:
            return f"Instant upload after fallback: {result.name}{file_ref}{reason}"
        if result.outcome is UploadOutcome.INSTANT_IN_SESSION:
            return f"Instant upload: {result.name}{file_ref}"
        return (
            f"Uploaded: {result.name}{file_ref}, {format_file_size(result.size)}, "
            f"{len(result.transferred_chunks)} chunk(s) sent{reason}"
        )

    @staticmethod
    def describe_tree(outcome: TreeUploadResult) -> str:
        instant = sum(1 for r in outcome.results if r.instant)
        lines = [
            f"Folder upload: {outcome.uploaded_files}/{outcome.total_files} file(s) uploaded "
            f"({instant} instant), {outcome.failed_files} failed."
        ]
        for failure in outcome.failures:
            lines.append(f"  - {failure.relative_path}: {failure.error}")
        return '\n'.join(lines)

    def close(self) -> None:
        """Close the HTTP session."""
        self.storage.close()
