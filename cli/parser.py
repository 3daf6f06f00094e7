"""Command parser for CLI input."""

import shlex

from cli.constants import PLAIN_FLAG
from cli.models import (
    AddCommand,
    ChangeDirectoryCommand,
    CommandRequest,
    GetCommand,
    ListCommand,
    LoginCommand,
    MkdirCommand,
    PwdCommand,
    RelayCommand,
    RemoveCommand,
    SecretCommand,
    StatusCommand,
    UploadCommand,
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

    command_name = tokens[0]
    args = tokens[1:]

    if command_name == "login":
        return LoginCommand(token=_single(args, "login requires exactly 1 argument: <token>"))
    elif command_name == "secret":
        return SecretCommand(token=_single(args, "secret requires exactly 1 argument: <token>"))
    elif command_name == "relay":
        return RelayCommand(url=_single(args, "relay requires exactly 1 argument: <url>"))
    elif command_name == "status":
        _no_args(args, "status")
        return StatusCommand()
    elif command_name == "ls":
        _no_args(args, "ls")
        return ListCommand()
    elif command_name == "cd":
        return ChangeDirectoryCommand(target=_single(args, "cd requires exactly 1 argument: <folder|..|/>"))
    elif command_name == "pwd":
        _no_args(args, "pwd")
        return PwdCommand()
    elif command_name == "upload":
        return _parse_upload(args)
    elif command_name == "mkdir":
        return _parse_mkdir(args)
    elif command_name == "add":
        return _parse_add(args)
    elif command_name == "rm":
        return RemoveCommand(name=_single(args, "rm requires exactly 1 argument: <name>"))
    elif command_name == "get":
        return _parse_get(args)
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _single(args: list[str], message: str) -> str:
    if len(args) != 1:
        raise ParseError(message)
    return args[0]


def _no_args(args: list[str], command_name: str) -> None:
    if args:
        raise ParseError(f"{command_name} takes no arguments")


def _split_plain_flag(args: list[str]) -> tuple[list[str], bool]:
    """Remove --plain from args; returns (remaining, encrypt)."""
    remaining = [arg for arg in args if arg != PLAIN_FLAG]
    return remaining, len(remaining) == len(args)


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload <file>... [--plain]' command."""
    files, encrypt = _split_plain_flag(args)
    if not files:
        raise ParseError("upload requires at least one file")
    return UploadCommand(file_list=tuple(files), encrypt=encrypt)


def _parse_mkdir(args: list[str]) -> MkdirCommand:
    """Parse 'mkdir <name> <file>... [--plain]' command."""
    remaining, encrypt = _split_plain_flag(args)
    if not remaining:
        raise ParseError("mkdir requires a folder name")
    return MkdirCommand(name=remaining[0], file_list=tuple(remaining[1:]), encrypt=encrypt)


def _parse_add(args: list[str]) -> AddCommand:
    """Parse 'add <file>...' command."""
    if not args:
        raise ParseError("add requires at least one file")
    return AddCommand(file_list=tuple(args))


def _parse_get(args: list[str]) -> GetCommand:
    """Parse 'get <name> [output_path]' command."""
    if len(args) < 1 or len(args) > 2:
        raise ParseError("get requires 1 or 2 arguments: <name> [output_path]")

    name = args[0]
    output_path = args[1] if len(args) > 1 else None

    return GetCommand(name=name, output_path=output_path)
