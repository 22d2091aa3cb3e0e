"""
Storage handlers for encrypted backup artifacts.

Supports:
- AzureBlobStorage: Upload to an Azure Blob Storage container
- S3Storage: Upload to an AWS S3 bucket
- LocalStorage: Store in a local directory (development and tests)

Every handler addresses one container/bucket and offers the same
operations: ensure_container, upload (always overwrites), download and
list_blobs. Blobs are stored flat under the artifact file name.
"""

import os
import shutil
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import ClientError, BotoCoreError
from azure.core.exceptions import AzureError, ResourceExistsError
from azure.storage.blob import BlobServiceClient

from blobvault.errors import LocalIOError, RemoteStorageError


logger = logging.getLogger(__name__)


def _open_local(local_path: str):
    """
    Open a local artifact for upload.

    Raises:
        LocalIOError: If the file is missing or cannot be read
    """
    try:
        return open(local_path, 'rb')
    except FileNotFoundError as e:
        raise LocalIOError(f"Local file not found: {local_path}") from e
    except OSError as e:
        raise LocalIOError(f"Cannot read local file {local_path}: {e}") from e


class AzureBlobStorage:
    """Handler for uploading backups to an Azure Blob Storage container."""

    def __init__(self, connection_string: str, container_name: str):
        """
        Initialize Azure storage handler.

        Args:
            connection_string: Storage account connection string
            container_name: Blob container name
        """
        self.container_name = container_name

        try:
            service_client = BlobServiceClient.from_connection_string(connection_string)
            self.container_client = service_client.get_container_client(container_name)
        except (ValueError, AzureError) as e:
            raise RemoteStorageError(f"Failed to initialize Azure Blob client: {e}") from e

    def ensure_container(self):
        """
        Create the container if it doesn't exist (private access).

        Raises:
            RemoteStorageError: If the container cannot be created
        """
        try:
            self.container_client.create_container()
            logger.info(f"Created blob container '{self.container_name}'")
        except ResourceExistsError:
            logger.debug(f"Blob container '{self.container_name}' already exists")
        except AzureError as e:
            raise RemoteStorageError(
                f"Failed to create container '{self.container_name}': {e}"
            ) from e

    def upload(self, local_path: str, blob_name: Optional[str] = None) -> str:
        """
        Upload a file, replacing any blob with the same name.

        Args:
            local_path: Path to local artifact
            blob_name: Blob name (default: the file name)

        Returns:
            Name of the uploaded blob

        Raises:
            LocalIOError: If the local file is missing or unreadable
            RemoteStorageError: If upload fails
        """
        blob_name = blob_name or os.path.basename(local_path)

        with _open_local(local_path) as f:
            try:
                blob_client = self.container_client.get_blob_client(blob_name)
                blob_client.upload_blob(f, overwrite=True)
            except AzureError as e:
                raise RemoteStorageError(f"Azure upload failed: {e}") from e

        return blob_name

    def download(self, blob_name: str, dest_path: str) -> str:
        """
        Download a blob to a local file.

        Raises:
            RemoteStorageError: If download fails
        """
        try:
            blob_client = self.container_client.get_blob_client(blob_name)
            with open(dest_path, 'wb') as f:
                blob_client.download_blob().readinto(f)
            return dest_path
        except AzureError as e:
            raise RemoteStorageError(f"Azure download failed: {e}") from e

    def list_blobs(self, prefix: str = '') -> list:
        """
        List blobs in the container.

        Returns:
            List of dicts with 'name', 'modified' and 'size' keys
        """
        try:
            return [
                {
                    'name': blob.name,
                    'modified': blob.last_modified,
                    'size': blob.size
                }
                for blob in self.container_client.list_blobs(name_starts_with=prefix or None)
            ]
        except AzureError as e:
            raise RemoteStorageError(f"Failed to list blobs: {e}") from e


class S3Storage:
    """Handler for uploading backups to an AWS S3 bucket."""

    def __init__(
        self,
        bucket_name: str,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: str = 'us-east-1'
    ):
        """
        Initialize S3 storage handler.

        Args:
            bucket_name: S3 bucket name (the container)
            access_key: AWS access key ID (default credential chain if None)
            secret_key: AWS secret access key
            region: AWS region (default: us-east-1)
        """
        self.bucket_name = bucket_name
        self.container_name = bucket_name
        self.region = region

        try:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region
            )
        except (BotoCoreError, ValueError) as e:
            raise RemoteStorageError(f"Failed to initialize S3 client: {e}") from e

    def ensure_container(self):
        """
        Create the bucket if it doesn't exist and block public access.

        Raises:
            RemoteStorageError: If the bucket cannot be checked or created
        """
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            logger.debug(f"Bucket '{self.bucket_name}' already exists")
            return
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code not in ('404', 'NoSuchBucket', 'NotFound'):
                raise RemoteStorageError(
                    f"Cannot access bucket '{self.bucket_name}' ({error_code}): {e}"
                ) from e
        except BotoCoreError as e:
            raise RemoteStorageError(f"Failed to connect to S3: {e}") from e

        try:
            if self.region == 'us-east-1':
                self.s3_client.create_bucket(Bucket=self.bucket_name)
            else:
                self.s3_client.create_bucket(
                    Bucket=self.bucket_name,
                    CreateBucketConfiguration={'LocationConstraint': self.region}
                )
            self.s3_client.put_public_access_block(
                Bucket=self.bucket_name,
                PublicAccessBlockConfiguration={
                    'BlockPublicAcls': True,
                    'IgnorePublicAcls': True,
                    'BlockPublicPolicy': True,
                    'RestrictPublicBuckets': True
                }
            )
            logger.info(f"Created bucket '{self.bucket_name}'")
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code == 'BucketAlreadyOwnedByYou':
                return
            raise RemoteStorageError(
                f"Failed to create bucket '{self.bucket_name}' ({error_code}): {e}"
            ) from e
        except BotoCoreError as e:
            raise RemoteStorageError(f"Failed to create bucket: {e}") from e

    def upload(self, local_path: str, blob_name: Optional[str] = None) -> str:
        """
        Upload a file, replacing any object with the same key.

        Args:
            local_path: Path to local artifact
            blob_name: Object key (default: the file name)

        Returns:
            Key of the uploaded object

        Raises:
            LocalIOError: If the local file is missing or unreadable
            RemoteStorageError: If upload fails
        """
        blob_name = blob_name or os.path.basename(local_path)

        with _open_local(local_path) as f:
            try:
                self.s3_client.put_object(
                    Bucket=self.bucket_name,
                    Key=blob_name,
                    Body=f
                )
            except ClientError as e:
                error_code = e.response.get('Error', {}).get('Code', 'Unknown')
                raise RemoteStorageError(f"S3 upload failed ({error_code}): {e}") from e
            except BotoCoreError as e:
                raise RemoteStorageError(f"S3 upload failed: {e}") from e

        return blob_name

    def download(self, blob_name: str, dest_path: str) -> str:
        """
        Download an object to a local file.

        Raises:
            RemoteStorageError: If download fails
        """
        try:
            self.s3_client.download_file(self.bucket_name, blob_name, dest_path)
            return dest_path
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise RemoteStorageError(f"S3 download failed ({error_code}): {e}") from e
        except BotoCoreError as e:
            raise RemoteStorageError(f"S3 download failed: {e}") from e

    def list_blobs(self, prefix: str = '') -> list:
        """
        List objects in the bucket.

        Returns:
            List of dicts with 'name', 'modified' and 'size' keys
        """
        try:
            objects = []
            paginator = self.s3_client.get_paginator('list_objects_v2')

            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                for obj in page.get('Contents', []):
                    objects.append({
                        'name': obj['Key'],
                        'modified': obj['LastModified'],
                        'size': obj['Size']
                    })

            return objects

        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise RemoteStorageError(f"S3 list failed ({error_code}): {e}") from e
        except BotoCoreError as e:
            raise RemoteStorageError(f"S3 list failed: {e}") from e


class LocalStorage:
    """
    Handler for storing backups in a local directory.

    The container is a subdirectory: {base_path}/{container_name}/{blob_name}
    """

    def __init__(self, base_path: str, container_name: str):
        """
        Initialize local storage handler.

        Args:
            base_path: Base directory holding containers
            container_name: Container (subdirectory) name
        """
        self.base_path = Path(base_path)
        self.container_name = container_name
        self.container_path = self.base_path / container_name

    def ensure_container(self):
        """
        Create the container directory if it doesn't exist.

        Raises:
            RemoteStorageError: If the directory cannot be created
        """
        try:
            self.container_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RemoteStorageError(f"Failed to create local container: {e}") from e

    def upload(self, local_path: str, blob_name: Optional[str] = None) -> str:
        """
        Copy a file into the container, replacing any existing copy.

        Raises:
            LocalIOError: If the local file is missing
            RemoteStorageError: If the copy fails
        """
        if not os.path.exists(local_path):
            raise LocalIOError(f"Local file not found: {local_path}")

        blob_name = blob_name or os.path.basename(local_path)
        dest_path = self.container_path / blob_name

        try:
            shutil.copy2(local_path, dest_path)
            return blob_name
        except PermissionError as e:
            raise RemoteStorageError(f"Permission denied writing to {dest_path}: {e}") from e
        except OSError as e:
            raise RemoteStorageError(f"Failed to store locally: {e}") from e

    def download(self, blob_name: str, dest_path: str) -> str:
        """
        Copy a blob out of the container.

        Raises:
            RemoteStorageError: If the blob is missing or the copy fails
        """
        source = self.container_path / blob_name
        if not source.exists():
            raise RemoteStorageError(f"Blob not found: {blob_name}")

        try:
            shutil.copy2(source, dest_path)
            return dest_path
        except OSError as e:
            raise RemoteStorageError(f"Failed to copy {blob_name}: {e}") from e

    def list_blobs(self, prefix: str = '') -> list:
        """
        List blobs in the container.

        Returns:
            List of dicts with 'name', 'modified' and 'size' keys
        """
        if not self.container_path.exists():
            return []

        blobs = []
        for file_path in sorted(self.container_path.iterdir()):
            if file_path.is_file() and file_path.name.startswith(prefix):
                stat = file_path.stat()
                blobs.append({
                    'name': file_path.name,
                    'modified': datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    'size': stat.st_size
                })
        return blobs


def create_storage(provider: str, container_name: str, **settings):
    """
    Factory function to create the storage handler for a provider.

    Args:
        provider: 'azure', 's3' or 'local'
        container_name: Container/bucket name
        **settings: Provider settings (see config.storage_settings)

    Returns:
        Storage handler instance

    Raises:
        RemoteStorageError: If the provider is unknown or not configured
    """
    if not container_name:
        raise RemoteStorageError("Container name not configured")

    if provider == 'azure':
        connection_string = settings.get('connection_string')
        if not connection_string:
            raise RemoteStorageError(
                "Azure connection string not configured (AZURE_STORAGE_CONNECTION_STRING)"
            )
        return AzureBlobStorage(connection_string, container_name)

    if provider == 's3':
        return S3Storage(
            bucket_name=container_name,
            access_key=settings.get('access_key'),
            secret_key=settings.get('secret_key'),
            region=settings.get('region') or 'us-east-1'
        )

    if provider == 'local':
        base_path = settings.get('base_path')
        if not base_path:
            raise RemoteStorageError("Local storage directory not configured (LOCAL_STORAGE_DIR)")
        return LocalStorage(base_path, container_name)

    raise RemoteStorageError(
        f"Invalid storage provider: {provider}. Valid options: ['azure', 's3', 'local']"
    )
