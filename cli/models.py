"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class TokenCommand:
    """Store a bearer token."""

    token: str
    command: Literal["token"] = "token"


@dataclass(frozen=True)
class LogoutCommand:
    """Forget the stored token."""

    command: Literal["logout"] = "logout"


@dataclass(frozen=True)
class PwdCommand:
    """Show the current remote folder."""

    command: Literal["pwd"] = "pwd"


@dataclass(frozen=True)
class CdCommand:
    """Change the current remote folder."""

    path: str
    command: Literal["cd"] = "cd"


@dataclass(frozen=True)
class ListCommand:
    """List a remote folder."""

    path: str | None = None
    command: Literal["ls"] = "ls"


@dataclass(frozen=True)
class MkdirCommand:
    """Create a remote folder path."""

    path: str
    command: Literal["mkdir"] = "mkdir"


@dataclass(frozen=True)
class HashCommand:
    """Digest a local file."""

    file_path: str
    command: Literal["hash"] = "hash"


@dataclass(frozen=True)
class UploadCommand:
    """Upload one local file."""

    file_path: str
    target_path: str | None = None
    create_missing: bool = True
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class UploadDirCommand:
    """Upload a local folder tree."""

    dir_path: str
    target_path: str | None = None
    create_missing: bool = True
    command: Literal["upload-dir"] = "upload-dir"


CommandRequest = (
    TokenCommand
    | LogoutCommand
    | PwdCommand
    | CdCommand
    | ListCommand
    | MkdirCommand
    | HashCommand
    | UploadCommand
    | UploadDirCommand
)
