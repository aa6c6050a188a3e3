"""Shared pytest fixtures for all tests."""

import pytest
from fastapi.testclient import TestClient

from cli.config import Config
from fake_storage import FakeStore, create_app, make_token
from uploader.storage_client import RetryPolicy, StorageClient


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .panupload directory
    """
    config_dir = tmp_path / '.panupload'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def token():
    """Bearer token for user #7."""
    return make_token(7)


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing file uploads.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture
def sample_tree(tmp_path):
    """
    Create a local folder tree:

        photos/a.jpg
        photos/2024/b.jpg
        photos/2024/c.jpg
        photos/notes/readme.txt
    """
    root = tmp_path / 'photos'
    (root / '2024').mkdir(parents=True)
    (root / 'notes').mkdir()
    (root / 'a.jpg').write_bytes(b'image a')
    (root / '2024' / 'b.jpg').write_bytes(b'image b')
    (root / '2024' / 'c.jpg').write_bytes(b'image c')
    (root / 'notes' / 'readme.txt').write_text('notes')
    return root


@pytest.fixture
def fake_store():
    """Empty in-memory storage service."""
    return FakeStore()


@pytest.fixture
def storage(fake_store, token):
    """
    StorageClient wired to the in-memory service.

    Retries are disabled so injected 5xx failures surface immediately.
    """
    client = StorageClient(
        'http://testserver',
        token_provider=lambda: token,
        retry=RetryPolicy(max_retries=0, backoff=0.01),
    )
    client.session = TestClient(create_app(fake_store))
    return client
