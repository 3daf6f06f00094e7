"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class LoginCommand:
    """Store the relay auth token."""

    token: str
    command: Literal["login"] = "login"


@dataclass(frozen=True)
class SecretCommand:
    """Store a dedicated encryption secret."""

    token: str
    command: Literal["secret"] = "secret"


@dataclass(frozen=True)
class RelayCommand:
    """Point the CLI at another relay."""

    url: str
    command: Literal["relay"] = "relay"


@dataclass(frozen=True)
class StatusCommand:
    """Check relay connectivity and authentication."""

    command: Literal["status"] = "status"


@dataclass(frozen=True)
class ListCommand:
    """List the root or the open folder."""

    command: Literal["ls"] = "ls"


@dataclass(frozen=True)
class ChangeDirectoryCommand:
    """Open a folder by name/address, go up with '..' or to the root with '/'."""

    target: str
    command: Literal["cd"] = "cd"


@dataclass(frozen=True)
class PwdCommand:
    """Show the current folder path."""

    command: Literal["pwd"] = "pwd"


@dataclass(frozen=True)
class UploadCommand:
    """Upload standalone files to the root."""

    file_list: tuple[str, ...]
    encrypt: bool = True
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class MkdirCommand:
    """Create a folder from local files."""

    name: str
    file_list: tuple[str, ...]
    encrypt: bool = True
    command: Literal["mkdir"] = "mkdir"


@dataclass(frozen=True)
class AddCommand:
    """Add files to the open folder."""

    file_list: tuple[str, ...]
    command: Literal["add"] = "add"


@dataclass(frozen=True)
class RemoveCommand:
    """Remove a file from the open folder, or delete a root entry."""

    name: str
    command: Literal["rm"] = "rm"


@dataclass(frozen=True)
class GetCommand:
    """Download a file by name."""

    name: str
    output_path: str | None = None
    command: Literal["get"] = "get"


CommandRequest = (
    LoginCommand
    | SecretCommand
    | RelayCommand
    | StatusCommand
    | ListCommand
    | ChangeDirectoryCommand
    | PwdCommand
    | UploadCommand
    | MkdirCommand
    | AddCommand
    | RemoveCommand
    | GetCommand
)
