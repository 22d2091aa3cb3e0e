"""
Shared pytest fixtures for Blobvault tests.

This module provides fixtures for:
- Fixed AES key/IV material
- Source files and storage directories
- Configuration classes pointing at temporary paths
- Mock fixtures for external services (S3, Azure Blob, APScheduler)
"""

import base64
from unittest.mock import MagicMock, patch

import pytest
import boto3
from moto import mock_aws

from blobvault.config import TestingConfig
from blobvault.utils.crypto import CryptoMaterial
from blobvault import scheduler as scheduler_module


TEST_KEY = bytes(range(32))
TEST_IV = bytes(range(100, 116))


@pytest.fixture
def aes_key():
    """Fixed 32-byte AES-256 key."""
    return TEST_KEY


@pytest.fixture
def aes_iv():
    """Fixed 16-byte IV."""
    return TEST_IV


@pytest.fixture
def fixed_iv_material():
    """Crypto material with a configured IV (raw ciphertext layout)."""
    return CryptoMaterial(TEST_KEY, TEST_IV)


@pytest.fixture
def random_iv_material():
    """Crypto material without an IV (random IV prepended to each artifact)."""
    return CryptoMaterial(TEST_KEY)


@pytest.fixture
def source_file(tmp_path):
    """
    Create the source file to back up.

    Content: 10 bytes of 0xAB
    """
    source_dir = tmp_path / 'source'
    source_dir.mkdir()
    path = source_dir / 'sample_backup.bak'
    path.write_bytes(b'\xab' * 10)
    return path


@pytest.fixture
def artifact_dir(tmp_path):
    """Directory where artifacts are written."""
    path = tmp_path / 'artifacts'
    path.mkdir()
    return path


@pytest.fixture
def storage_dir(tmp_path):
    """Base directory for the local storage provider."""
    path = tmp_path / 'storage'
    path.mkdir()
    return path


@pytest.fixture
def test_config(tmp_path, source_file, artifact_dir, storage_dir):
    """
    Configuration class wired to temporary paths and the local provider.
    """

    class _TestConfig(TestingConfig):
        SOURCE_PATH = str(source_file)
        CONTAINER_NAME = 'backups'
        STORAGE_PROVIDER = 'local'
        LOCAL_STORAGE_DIR = str(storage_dir)
        AES_KEY = base64.b64encode(TEST_KEY).decode()
        AES_IV = None
        ARTIFACT_DIR = str(artifact_dir)
        ARTIFACT_SUFFIX = '_encrypted.zip'
        KEEP_ARTIFACT = True
        SCHEDULE_CRON = '0 2 * * *'
        SCHEDULER_TIMEZONE = 'UTC'
        LOG_DIR = str(tmp_path / 'logs')
        LOG_LEVEL = 'DEBUG'

    return _TestConfig


@pytest.fixture
def mock_s3():
    """
    Mock AWS S3 service using moto.

    Creates a test bucket 'test-bucket' in us-east-1 region.
    """
    with mock_aws():
        s3 = boto3.resource('s3', region_name='us-east-1')
        s3.create_bucket(Bucket='test-bucket')
        yield s3


@pytest.fixture
def mock_blob_service():
    """
    Mock azure BlobServiceClient.

    Yields the container client mock that storage handlers talk to.
    """
    with patch('blobvault.backup.storage.BlobServiceClient') as mock_service_class:
        container_client = MagicMock()
        service_client = MagicMock()
        service_client.get_container_client.return_value = container_client
        mock_service_class.from_connection_string.return_value = service_client

        yield container_client


@pytest.fixture
def mock_scheduler():
    """
    Mock APScheduler for testing scheduler functionality.
    """
    with patch('blobvault.scheduler.BlockingScheduler') as mock_sched:
        scheduler_instance = MagicMock()
        mock_sched.return_value = scheduler_instance

        scheduler_instance.running = False
        scheduler_instance.state = 0
        scheduler_instance.get_jobs.return_value = []

        yield scheduler_instance

    scheduler_module.scheduler = None
    scheduler_module.app_config = None
