"""Shared pytest fixtures for all tests."""

import pytest

from cli.config import Config
from drive.drive_service import DriveService
from drive.settings import DriveSettings
from fixtures.fake_relay import RELAY_URL, TOKEN, FakeRelay


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .shogun-drive directory
    """
    config_dir = tmp_path / '.shogun-drive'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir, monkeypatch):
    """
    Create temporary config instance.

    Returns:
        Config instance with temp config file
    """
    monkeypatch.delenv('DRIVE_RELAY_URL', raising=False)
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def relay():
    """Fresh in-memory relay."""
    return FakeRelay()


@pytest.fixture
def drive_settings(tmp_path):
    """
    Settings pointing at the fake relay with no settle delays or backoff.
    """
    return DriveSettings(
        relay_url=RELAY_URL,
        auth_token=TOKEN,
        retry_backoff_seconds=0.0,
        metadata_cache_path=str(tmp_path / 'metadata-cache.json'),
        upload_settle_seconds=0.0,
        delete_settle_seconds=0.0,
    )


@pytest.fixture
def service(relay, drive_settings):
    """DriveService wired to the fake relay through httpx.MockTransport."""
    return DriveService.from_settings(drive_settings, client=relay.client())


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing file uploads.

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture
def multiple_sample_files(tmp_path):
    """
    Create multiple sample files for testing bulk operations.

    Returns:
        List of Paths to sample files
    """
    files = []
    for i in range(3):
        file_path = tmp_path / f'test{i}.txt'
        file_path.write_text(f'Sample content {i}')
        files.append(file_path)
    return files
