"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.config import Config
from cli.models import (
    CdCommand,
    CommandRequest,
    HashCommand,
    ListCommand,
    LogoutCommand,
    MkdirCommand,
    PwdCommand,
    TokenCommand,
    UploadCommand,
    UploadDirCommand,
)
from cli.pan_client import PanClient

logger = get_logger(__name__)


_client: Optional[PanClient] = None


def get_client() -> PanClient:
    """
    Get or create the PanClient for this CLI process.

    Returns:
        PanClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new PanClient instance")
        config = Config(Path.home() / '.panupload' / 'config.json')
        _client = PanClient(config)
    return _client


def close_client() -> None:
    """Close the process-wide PanClient, if one was created."""
    global _client
    if _client is not None:
        _client.close()
        _client = None


def handle_token(cmd: TokenCommand, client: Optional[PanClient] = None) -> str:
    """
    Handle 'token' command.

    Args:
        cmd: TokenCommand with the bearer token
        client: Optional PanClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    if client is None:
        client = get_client()
    return client.set_token(cmd.token)


def handle_logout(cmd: LogoutCommand, client: Optional[PanClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.logout()


def handle_pwd(cmd: PwdCommand, client: Optional[PanClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.pwd()


def handle_cd(cmd: CdCommand, client: Optional[PanClient] = None) -> str:
    """
    Handle 'cd' command.

    Args:
        cmd: CdCommand with the target path
        client: Optional PanClient for dependency injection (testing)

    Returns:
        New location or error message
    """
    if client is None:
        client = get_client()
    return client.cd(cmd.path)


def handle_list(cmd: ListCommand, client: Optional[PanClient] = None) -> str:
    """
    Handle 'ls' command.

    Args:
        cmd: ListCommand with optional path
        client: Optional PanClient for dependency injection (testing)

    Returns:
        Formatted folder listing
    """
    logger.info(f"Executing ls command: path={cmd.path}")
    if client is None:
        client = get_client()
    return client.list_folder(cmd.path)


def handle_mkdir(cmd: MkdirCommand, client: Optional[PanClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.mkdir(cmd.path)


def handle_hash(cmd: HashCommand, client: Optional[PanClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.hash_file(cmd.file_path)


def handle_upload(cmd: UploadCommand, client: Optional[PanClient] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with local file, target path and creation flag
        client: Optional PanClient for dependency injection (testing)

    Returns:
        Outcome message
    """
    logger.info(f"Executing upload command: file={cmd.file_path} target={cmd.target_path}")
    if client is None:
        client = get_client()
    result = client.upload(cmd.file_path, cmd.target_path, cmd.create_missing)
    logger.debug("Upload command completed")
    return result


def handle_upload_dir(cmd: UploadDirCommand, client: Optional[PanClient] = None) -> str:
    """
    Handle 'upload-dir' command.

    Args:
        cmd: UploadDirCommand with local folder, target path and creation flag
        client: Optional PanClient for dependency injection (testing)

    Returns:
        Summary message
    """
    logger.info(f"Executing upload-dir command: dir={cmd.dir_path} target={cmd.target_path}")
    if client is None:
        client = get_client()
    result = client.upload_dir(cmd.dir_path, cmd.target_path, cmd.create_missing)
    logger.debug("Upload-dir command completed")
    return result


_HANDLERS = {
    TokenCommand: handle_token,
    LogoutCommand: handle_logout,
    PwdCommand: handle_pwd,
    CdCommand: handle_cd,
    ListCommand: handle_list,
    MkdirCommand: handle_mkdir,
    HashCommand: handle_hash,
    UploadCommand: handle_upload,
    UploadDirCommand: handle_upload_dir,
}


def dispatch_command(cmd_obj: CommandRequest, client: Optional[PanClient] = None) -> str:
    """Dispatch parsed command to appropriate handler."""
    handler = _HANDLERS.get(type(cmd_obj))
    if handler is None:
        return f"Unknown command type: {type(cmd_obj)}"
    return handler(cmd_obj, client=client)
