"""
Backup executor - runs the complete backup pipeline for one file.

Workflow:
1. Validate encryption key/IV
2. Check the source file
3. Compress and encrypt the source into the local artifact
4. Ensure the remote container exists
5. Upload the artifact (overwrite)
6. Remove the local artifact (only if configured)

Failures never propagate out of execute(); they are logged and returned in
the BackupResult so the caller decides whether to exit non-zero.
"""

import os
import logging
from datetime import datetime, timezone
from typing import Optional

from blobvault.config import storage_settings as build_storage_settings
from blobvault.errors import BackupError, LocalIOError
from blobvault.utils.crypto import CryptoMaterial
from .compression import (
    DEFAULT_ARTIFACT_SUFFIX,
    check_source_file,
    compress_and_encrypt,
    derive_artifact_path,
    get_artifact_size
)
from .storage import create_storage


logger = logging.getLogger(__name__)


class BackupResult:
    """Outcome of a single backup run."""

    def __init__(self, source_path: str, container_name: str):
        self.source_path = source_path
        self.container_name = container_name
        self.status = 'running'
        self.started_at = datetime.now(timezone.utc)
        self.completed_at = None
        self.artifact_path = None
        self.blob_name = None
        self.source_size_bytes = None
        self.artifact_size_bytes = None
        self.error = None
        self.error_message = None
        self.logs = []

    @property
    def ok(self) -> bool:
        return self.status == 'success'

    def add_log(self, message: str):
        """Append a UTC-timestamped line to the run log."""
        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
        self.logs.append(f"[{timestamp}] {message}")

    def mark_failed(self, error: BackupError):
        """Record a failure and stamp the completion time."""
        self.status = 'failed'
        self.error = error
        self.error_message = str(error)
        self.completed_at = datetime.now(timezone.utc)

    def __repr__(self):
        return f'<BackupResult source={self.source_path} status={self.status}>'


class BackupExecutor:
    """
    Orchestrates the backup pipeline for a single source file.
    """

    def __init__(
        self,
        source_path: str,
        container_name: str,
        storage_provider: str,
        storage_settings: dict,
        key: bytes,
        iv: Optional[bytes] = None,
        artifact_dir: Optional[str] = None,
        artifact_suffix: str = DEFAULT_ARTIFACT_SUFFIX,
        keep_artifact: bool = True
    ):
        """
        Initialize backup executor.

        Args:
            source_path: File to back up
            container_name: Remote container/bucket
            storage_provider: 'azure', 's3' or 'local'
            storage_settings: Provider credentials (see config.storage_settings)
            key: 32-byte AES key
            iv: 16-byte IV, or None for a random IV stored in the artifact
            artifact_dir: Where the artifact is written (default: cwd)
            artifact_suffix: Suffix appended to the source stem
            keep_artifact: Leave the artifact on disk after upload
        """
        self.source_path = source_path
        self.container_name = container_name
        self.storage_provider = storage_provider
        self.storage_settings = storage_settings or {}
        self.key = key
        self.iv = iv
        self.artifact_dir = artifact_dir
        self.artifact_suffix = artifact_suffix
        self.keep_artifact = keep_artifact
        self.result = None

    def execute(self) -> BackupResult:
        """
        Execute the backup.

        Returns:
            BackupResult with status 'success' or 'failed'
        """
        self.result = BackupResult(self.source_path, self.container_name)
        self._log(f"Starting backup of {self.source_path}")

        try:
            self._execute_workflow()

            self.result.status = 'success'
            self._log("Backup completed successfully")

        except Exception as e:
            if not isinstance(e, BackupError):
                wrapped = BackupError(f"Unexpected error: {e}")
                wrapped.__cause__ = e
                e = wrapped

            self.result.mark_failed(e)
            self._log(f"Backup failed: {e}", level=logging.ERROR, exc_info=True)

        finally:
            self.result.completed_at = datetime.now(timezone.utc)

        return self.result

    def _execute_workflow(self):
        """Execute the pipeline steps in order."""
        # Step 1: Validate crypto material before touching any file
        material = CryptoMaterial(self.key, self.iv)
        if material.embeds_iv:
            self._log("Using a fresh random IV for this artifact")

        # Step 2: Check source
        check_source_file(self.source_path)
        self.result.source_size_bytes = os.path.getsize(self.source_path)

        # Step 3: Compress and encrypt
        artifact_path = derive_artifact_path(
            self.source_path, self.artifact_dir, self.artifact_suffix
        )
        self._log(f"Compressing and encrypting to {artifact_path}")
        compress_and_encrypt(self.source_path, artifact_path, material)
        self.result.artifact_path = artifact_path
        self.result.artifact_size_bytes = get_artifact_size(artifact_path)
        self._log(
            f"File '{self.source_path}' encrypted and compressed "
            f"({self.result.source_size_bytes} -> {self.result.artifact_size_bytes} bytes)"
        )

        # Step 4: Ensure container
        storage = create_storage(
            self.storage_provider, self.container_name, **self.storage_settings
        )
        storage.ensure_container()
        self._log(f"Container '{self.container_name}' is ready ({self.storage_provider})")

        # Step 5: Upload
        blob_name = os.path.basename(artifact_path)
        self._log(f"Uploading encrypted file: {blob_name}")
        self.result.blob_name = storage.upload(artifact_path, blob_name)
        self._log("File uploaded successfully")

        # Step 6: Optional cleanup
        if not self.keep_artifact:
            self._cleanup(artifact_path)

    def _cleanup(self, artifact_path: str):
        """Remove the local artifact after a successful upload."""
        try:
            os.remove(artifact_path)
            self._log("Removed local artifact")
        except OSError as e:
            self._log(f"Warning: Failed to remove local artifact: {e}", level=logging.WARNING)

    def _log(self, message: str, level: int = logging.INFO, exc_info: bool = False):
        """
        Record a timestamped message on the result and emit it to the logger.

        Args:
            message: Log message
            level: logging level
            exc_info: Attach the current exception's traceback
        """
        self.result.add_log(message)
        logger.log(level, message, exc_info=exc_info)


def run_backup(
    source_path: str,
    container_name: str,
    storage_provider: str,
    storage_settings: dict,
    key: bytes,
    iv: Optional[bytes] = None,
    artifact_dir: Optional[str] = None,
    artifact_suffix: str = DEFAULT_ARTIFACT_SUFFIX,
    keep_artifact: bool = True
) -> BackupResult:
    """
    Compress, encrypt and upload one file.

    Never raises; check BackupResult.ok.
    """
    executor = BackupExecutor(
        source_path=source_path,
        container_name=container_name,
        storage_provider=storage_provider,
        storage_settings=storage_settings,
        key=key,
        iv=iv,
        artifact_dir=artifact_dir,
        artifact_suffix=artifact_suffix,
        keep_artifact=keep_artifact
    )
    return executor.execute()


def run_backup_from_config(cfg, **overrides) -> BackupResult:
    """
    Run a backup with parameters taken from a config class.

    Both the CLI and the scheduler go through here, so a scheduled run uses
    exactly the parameters of a manual one.

    Args:
        cfg: Configuration class
        **overrides: source_path, container_name or storage_provider

    Returns:
        BackupResult
    """
    source_path = overrides.get('source_path') or cfg.SOURCE_PATH
    container_name = overrides.get('container_name') or cfg.CONTAINER_NAME
    provider = overrides.get('storage_provider') or cfg.STORAGE_PROVIDER

    try:
        if not source_path:
            raise LocalIOError("No source file configured (BACKUP_SOURCE_PATH)")
        material = CryptoMaterial.from_base64(cfg.AES_KEY, cfg.AES_IV)
    except BackupError as e:
        result = BackupResult(source_path, container_name)
        result.mark_failed(e)
        result.add_log(f"Backup failed: {e}")
        logger.error(f"Backup failed: {e}", exc_info=True)
        return result

    return run_backup(
        source_path=source_path,
        container_name=container_name,
        storage_provider=provider,
        storage_settings=build_storage_settings(cfg, provider),
        key=material.key,
        iv=material.iv,
        artifact_dir=cfg.ARTIFACT_DIR,
        artifact_suffix=cfg.ARTIFACT_SUFFIX,
        keep_artifact=cfg.KEEP_ARTIFACT
    )
