"""Tests for CLI command handlers."""

import pytest
from unittest.mock import AsyncMock, Mock

from cli.commands import (
    handle_add,
    handle_cd,
    handle_get,
    handle_list,
    handle_login,
    handle_mkdir,
    handle_pwd,
    handle_rm,
    handle_secret,
    handle_status,
    handle_upload,
)
from cli.models import (
    AddCommand,
    ChangeDirectoryCommand,
    GetCommand,
    ListCommand,
    LoginCommand,
    MkdirCommand,
    PwdCommand,
    RemoveCommand,
    SecretCommand,
    StatusCommand,
    UploadCommand,
)
from drive.credentials import CredentialProvider
from drive.drive_service import DriveService, UploadSummary
from drive.exceptions import NetworkUnavailableError


@pytest.mark.asyncio
async def test_handle_login_stores_token(temp_config):
    mock_service = Mock(spec=DriveService)
    mock_service.credentials = CredentialProvider()

    result = await handle_login(LoginCommand(token='abc'), service=mock_service, config=temp_config)

    assert result == "Auth token saved"
    assert temp_config.get_auth_token() == 'abc'
    assert mock_service.credentials.current.bearer_token == 'abc'


@pytest.mark.asyncio
async def test_handle_secret_stores_encryption_token(temp_config):
    mock_service = Mock(spec=DriveService)
    mock_service.credentials = CredentialProvider()

    result = await handle_secret(SecretCommand(token='s3cret'), service=mock_service, config=temp_config)

    assert result == "Encryption secret saved"
    assert temp_config.get_encryption_token() == 's3cret'
    assert mock_service.credentials.encryption_secret() == 's3cret'


@pytest.mark.asyncio
async def test_handle_status(service, relay):
    result = await handle_status(StatusCommand(), service=service)

    assert result == "Relay http://relay.test: connected, authenticated"

    relay.healthy = False
    result = await handle_status(StatusCommand(), service=service)
    assert "unreachable" in result


@pytest.mark.asyncio
async def test_handle_list_empty_root(service):
    assert await handle_list(ListCommand(), service=service) == "No files found"


@pytest.mark.asyncio
async def test_handle_list_reports_drive_errors():
    mock_service = Mock(spec=DriveService)
    mock_service.navigation = Mock(at_root=True)
    mock_service.list_files = AsyncMock(side_effect=NetworkUnavailableError("Cannot connect to relay server"))

    result = await handle_list(ListCommand(), service=mock_service)

    assert result.startswith("Error: Cannot connect to relay server")
    assert "try again" in result


@pytest.mark.asyncio
async def test_handle_upload_summarizes(service, sample_file):
    result = await handle_upload(UploadCommand(file_list=(str(sample_file),), encrypt=False), service=service)

    assert "Uploaded test.txt -> Qm" in result
    assert result.endswith("1 uploaded, 0 failed")


@pytest.mark.asyncio
async def test_handle_upload_reports_failures():
    mock_service = Mock(spec=DriveService)
    mock_service.upload_files = AsyncMock(return_value=UploadSummary(
        uploaded=[('a.txt', 'QmA')],
        failed=[('b.txt', 'Upload failed: HTTP 500')],
    ))

    result = await handle_upload(UploadCommand(file_list=()), service=mock_service)

    assert result.splitlines() == [
        "Uploaded a.txt -> QmA",
        "Failed b.txt: Upload failed: HTTP 500",
        "1 uploaded, 1 failed",
    ]


@pytest.mark.asyncio
async def test_handle_upload_missing_local_file(service):
    result = await handle_upload(UploadCommand(file_list=('/does/not/exist.txt',)), service=service)

    assert result == "Error: File not found: /does/not/exist.txt"


@pytest.mark.asyncio
async def test_folder_workflow(service, relay, multiple_sample_files, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    first, second, third = (str(p) for p in multiple_sample_files)

    result = await handle_mkdir(MkdirCommand(name='docs', file_list=(first, second), encrypt=False), service=service)
    assert result.startswith("Created folder docs (2 files) -> Qm")

    assert await handle_cd(ChangeDirectoryCommand(target='docs'), service=service) == "Now in /docs"
    assert (await handle_pwd(PwdCommand(), service=service)).startswith("/docs (Qm")

    result = await handle_add(AddCommand(file_list=(third,)), service=service)
    assert result.startswith("Added 1 file(s), folder is now Qm")
    assert 'test2.txt' in await handle_list(ListCommand(), service=service)

    result = await handle_rm(RemoveCommand(name='test0.txt'), service=service)
    assert result.startswith("Removed test0.txt, folder is now Qm")
    assert relay.member_paths(service.navigation.current_address) == ['test1.txt', 'test2.txt']

    result = await handle_get(GetCommand(name='test1.txt', output_path='out/copy.txt'), service=service)
    assert result == "Saved out/copy.txt (16 bytes)"
    assert (tmp_path / 'out' / 'copy.txt').read_text() == 'Sample content 1'

    assert await handle_cd(ChangeDirectoryCommand(target='..'), service=service) == "Now in /"


@pytest.mark.asyncio
async def test_handle_cd_rejects_files(service):
    await service.upload_standalone(b'plain', 'notes.txt', encrypt=False)

    result = await handle_cd(ChangeDirectoryCommand(target='notes.txt'), service=service)

    assert result == "Error: notes.txt is not a folder"


@pytest.mark.asyncio
async def test_handle_add_requires_open_folder(service):
    result = await handle_add(AddCommand(file_list=('x.txt',)), service=service)

    assert result.startswith("Error: Open a folder first")


@pytest.mark.asyncio
async def test_handle_get_encrypted_root_file(service, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    await service.upload_standalone(b'secret bytes', 'diary.txt', encrypt=True)

    result = await handle_get(GetCommand(name='diary.txt'), service=service)

    assert result == "Saved diary.txt (12 bytes)"
    assert (tmp_path / 'diary.txt').read_bytes() == b'secret bytes'


@pytest.mark.asyncio
async def test_handle_rm_at_root(service, relay):
    address = await service.upload_standalone(b'bye', 'old.txt', encrypt=False)

    assert await handle_rm(RemoveCommand(name='old.txt'), service=service) == "Deleted old.txt"
    assert address not in relay.pins
    assert await handle_rm(RemoveCommand(name='old.txt'), service=service) == "Error: No file named old.txt"
