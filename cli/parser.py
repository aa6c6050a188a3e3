"""Command parser for CLI input."""

import shlex

from cli.constants import NO_CREATE_FLAG
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


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name, args = tokens[0], tokens[1:]

    if command_name == "token":
        return _parse_token(args)
    elif command_name == "logout":
        _expect_no_args("logout", args)
        return LogoutCommand()
    elif command_name == "pwd":
        _expect_no_args("pwd", args)
        return PwdCommand()
    elif command_name == "cd":
        return _parse_cd(args)
    elif command_name == "ls":
        return _parse_ls(args)
    elif command_name == "mkdir":
        return _parse_mkdir(args)
    elif command_name == "hash":
        return _parse_hash(args)
    elif command_name == "upload":
        source, target, create_missing = _parse_transfer("upload", "<file>", args)
        return UploadCommand(file_path=source, target_path=target, create_missing=create_missing)
    elif command_name == "upload-dir":
        source, target, create_missing = _parse_transfer("upload-dir", "<dir>", args)
        return UploadDirCommand(dir_path=source, target_path=target, create_missing=create_missing)
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _expect_no_args(name: str, args: list[str]) -> None:
    if args:
        raise ParseError(f"{name} takes no arguments")


def _parse_token(args: list[str]) -> TokenCommand:
    """Parse 'token <bearer-token>' command."""
    if len(args) != 1:
        raise ParseError("token requires exactly 1 argument: <bearer-token>")
    token = args[0]
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    return TokenCommand(token=token)


def _parse_cd(args: list[str]) -> CdCommand:
    """Parse 'cd <path>' command."""
    if len(args) != 1:
        raise ParseError("cd requires exactly 1 argument: <path>")
    return CdCommand(path=args[0])


def _parse_ls(args: list[str]) -> ListCommand:
    """Parse 'ls [path]' command."""
    if len(args) > 1:
        raise ParseError("ls takes at most 1 argument: [path]")
    return ListCommand(path=args[0] if args else None)


def _parse_mkdir(args: list[str]) -> MkdirCommand:
    """Parse 'mkdir <path>' command."""
    if len(args) != 1:
        raise ParseError("mkdir requires exactly 1 argument: <path>")
    if not args[0].strip("/ "):
        raise ParseError("mkdir requires a folder name")
    return MkdirCommand(path=args[0])


def _parse_hash(args: list[str]) -> HashCommand:
    """Parse 'hash <file>' command."""
    if len(args) != 1:
        raise ParseError("hash requires exactly 1 argument: <file>")
    return HashCommand(file_path=args[0])


def _parse_transfer(name: str, source_label: str, args: list[str]) -> tuple[str, str | None, bool]:
    """Parse '<source> [path] [--no-create]' arguments shared by upload commands."""
    create_missing = NO_CREATE_FLAG not in args
    positional = [arg for arg in args if arg != NO_CREATE_FLAG]

    unknown = [arg for arg in positional if arg.startswith("--")]
    if unknown:
        raise ParseError(f"Unknown option for {name}: {unknown[0]}")
    if not positional or len(positional) > 2:
        raise ParseError(f"{name} requires {source_label} and an optional target [path]")

    source = positional[0]
    target = positional[1] if len(positional) > 1 else None
    return source, target, create_missing
