"""Command handler functions for CLI operations."""

import functools
from pathlib import Path
from typing import Awaitable, Callable, Optional

from common.logging_config import get_logger
from common.types import DirectoryMember, FileEntry
from cli.config import Config
from cli.models import (
    AddCommand,
    ChangeDirectoryCommand,
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
from cli.utils import ProgressPrinter, format_file_entries, format_members, read_local_files
from drive.drive_service import DriveService
from drive.exceptions import DriveException
from drive.utils import strip_encrypted_suffix

logger = get_logger(__name__)


_config: Optional[Config] = None
_service: Optional[DriveService] = None


def get_config() -> Config:
    """
    Get or create global Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_service() -> DriveService:
    """
    Get or create global DriveService instance.

    Returns:
        DriveService instance
    """
    global _service
    if _service is None:
        logger.debug("Creating new DriveService instance")
        _service = DriveService.from_settings(get_config().get_drive_settings())
    return _service


async def shutdown_service() -> None:
    """Close the global DriveService, waiting for background work."""
    global _service
    if _service is not None:
        await _service.close()
        _service = None


def reports_errors(handler: Callable[..., Awaitable[str]]) -> Callable[..., Awaitable[str]]:
    """Turn drive and local file errors into 'Error: ...' messages."""

    @functools.wraps(handler)
    async def wrapper(*args, **kwargs) -> str:
        try:
            return await handler(*args, **kwargs)
        except DriveException as e:
            logger.debug(f"{handler.__name__} failed: {type(e).__name__}: {e}")
            return f"Error: {e.user_message()}"
        except OSError as e:
            return f"Error: {e}"

    return wrapper


def _matches_entry(entry: FileEntry, name: str) -> bool:
    return name in (
        entry.address,
        entry.name,
        entry.original_name,
        strip_encrypted_suffix(entry.name),
    )


async def _find_root_entry(service: DriveService, name: str) -> Optional[FileEntry]:
    for entry in await service.list_files():
        if _matches_entry(entry, name):
            return entry
    return None


async def _find_member(service: DriveService, name: str) -> Optional[DirectoryMember]:
    members = await service.list_folder()
    for member in members:
        if member.relative_path == name:
            return member
    for member in members:
        if member.final_segment == name:
            return member
    return None


@reports_errors
async def handle_login(
    cmd: LoginCommand,
    service: Optional[DriveService] = None,
    config: Optional[Config] = None,
) -> str:
    """
    Handle 'login' command.

    Args:
        cmd: LoginCommand with the relay token
        service: Optional DriveService for dependency injection (testing)
        config: Optional Config for dependency injection (testing)

    Returns:
        Confirmation message
    """
    (config or get_config()).set_auth_token(cmd.token)
    (service or get_service()).credentials.set_bearer_token(cmd.token)
    return "Auth token saved"


@reports_errors
async def handle_secret(
    cmd: SecretCommand,
    service: Optional[DriveService] = None,
    config: Optional[Config] = None,
) -> str:
    """Handle 'secret' command."""
    (config or get_config()).set_encryption_token(cmd.token)
    (service or get_service()).credentials.set_encryption_token(cmd.token)
    return "Encryption secret saved"


@reports_errors
async def handle_relay(cmd: RelayCommand, config: Optional[Config] = None) -> str:
    """
    Handle 'relay' command.

    The global service is rebuilt lazily against the new URL.
    """
    config = config or get_config()
    config.set_relay_url(cmd.url)
    await shutdown_service()
    return f"Relay set to {config.get_relay_url()}"


@reports_errors
async def handle_status(cmd: StatusCommand, service: Optional[DriveService] = None) -> str:
    """Handle 'status' command."""
    service = service or get_service()
    status = await service.check_connection()
    relay = "connected" if status.connected else "unreachable"
    auth = "authenticated" if status.authenticated else "not authenticated"
    return f"Relay {service.session.relay_url}: {relay}, {auth}"


@reports_errors
async def handle_list(cmd: ListCommand, service: Optional[DriveService] = None) -> str:
    """
    Handle 'ls' command.

    Args:
        cmd: ListCommand
        service: Optional DriveService for dependency injection (testing)

    Returns:
        Formatted listing of the root or the open folder
    """
    logger.info("Executing ls command")
    service = service or get_service()
    if service.navigation.at_root:
        return format_file_entries(await service.list_files())
    return format_members(await service.list_folder())


@reports_errors
async def handle_cd(cmd: ChangeDirectoryCommand, service: Optional[DriveService] = None) -> str:
    """Handle 'cd' command."""
    service = service or get_service()

    if cmd.target == "/":
        service.go_to(-1)
        return "Now in /"
    if cmd.target == "..":
        service.go_up()
        return f"Now in {service.navigation.path()}"

    address = cmd.target
    if service.navigation.at_root:
        entry = await _find_root_entry(service, cmd.target)
        if entry is not None:
            if not entry.is_directory:
                return f"Error: {cmd.target} is not a folder"
            address = entry.address

    await service.open_folder(address)
    return f"Now in {service.navigation.path()}"


@reports_errors
async def handle_pwd(cmd: PwdCommand, service: Optional[DriveService] = None) -> str:
    """Handle 'pwd' command."""
    service = service or get_service()
    current = service.navigation.current_address
    path = service.navigation.path()
    return f"{path} ({current})" if current else path


@reports_errors
async def handle_upload(cmd: UploadCommand, service: Optional[DriveService] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with file_list and encrypt flag
        service: Optional DriveService for dependency injection (testing)

    Returns:
        Per-file results
    """
    logger.info(f"Executing upload command: {len(cmd.file_list)} files, encrypt={cmd.encrypt}")
    service = service or get_service()
    files = read_local_files(cmd.file_list)
    summary = await service.upload_files(files, encrypt=cmd.encrypt)

    lines = [f"Uploaded {name} -> {address}" for name, address in summary.uploaded]
    lines.extend(f"Failed {name}: {message}" for name, message in summary.failed)
    lines.append(f"{len(summary.uploaded)} uploaded, {len(summary.failed)} failed")
    return "\n".join(lines)


@reports_errors
async def handle_mkdir(cmd: MkdirCommand, service: Optional[DriveService] = None) -> str:
    """Handle 'mkdir' command."""
    service = service or get_service()
    files = read_local_files(cmd.file_list)
    address = await service.create_folder(cmd.name, files, encrypt=cmd.encrypt)
    return f"Created folder {cmd.name} ({len(files)} files) -> {address}"


@reports_errors
async def handle_add(cmd: AddCommand, service: Optional[DriveService] = None) -> str:
    """
    Handle 'add' command.

    Args:
        cmd: AddCommand with file_list
        service: Optional DriveService for dependency injection (testing)

    Returns:
        New folder address
    """
    service = service or get_service()
    current = service.navigation.current_address
    if current is None:
        return "Error: Open a folder first (cd <folder>), or use upload at the root"

    files = read_local_files(cmd.file_list)
    logger.info(f"Executing add command: {len(files)} files into {current}")
    new_address = await service.add_files(current, files)
    return f"Added {len(files)} file(s), folder is now {new_address}"


@reports_errors
async def handle_rm(cmd: RemoveCommand, service: Optional[DriveService] = None) -> str:
    """
    Handle 'rm' command.

    At the root the entry is unpinned; inside a folder the member is removed
    and the folder re-synthesized.
    """
    service = service or get_service()
    current = service.navigation.current_address

    if current is None:
        entry = await _find_root_entry(service, cmd.name)
        if entry is None:
            return f"Error: No file named {cmd.name}"
        await service.delete(entry.address)
        return f"Deleted {entry.name}"

    new_address = await service.remove_file(current, cmd.name)
    return f"Removed {cmd.name}, folder is now {new_address}"


@reports_errors
async def handle_get(cmd: GetCommand, service: Optional[DriveService] = None) -> str:
    """
    Handle 'get' command.

    Args:
        cmd: GetCommand with name and optional output_path
        service: Optional DriveService for dependency injection (testing)

    Returns:
        Saved path and size
    """
    logger.info(f"Executing get command: name={cmd.name} output_path={cmd.output_path}")
    service = service or get_service()
    printer = ProgressPrinter(f"Downloading {cmd.name}")
    unsubscribe = service.on_progress(printer)

    try:
        if service.navigation.at_root:
            entry = await _find_root_entry(service, cmd.name)
            if entry is None:
                return f"Error: No file named {cmd.name}"
            data = await service.download_standalone(entry.address, encrypted=entry.encrypted)
            default_name = strip_encrypted_suffix(entry.original_name or entry.name)
        else:
            member = await _find_member(service, cmd.name)
            if member is None:
                return f"Error: No file named {cmd.name} in this folder"
            data = await service.download_member(service.navigation.current_address, member.relative_path)
            default_name = member.final_segment
    finally:
        unsubscribe()
        printer.finish()

    output = Path(cmd.output_path or default_name).expanduser()
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(data)
    return f"Saved {output} ({len(data)} bytes)"
