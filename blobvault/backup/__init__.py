"""
Backup module for Blobvault.

This module handles the core backup pipeline:
- Compression and encryption of the source file
- Storage (Azure Blob, S3 and local)
- Execution orchestration
"""

from .executor import BackupExecutor, BackupResult, run_backup, run_backup_from_config
from .compression import compress_and_encrypt, decrypt_and_decompress, derive_artifact_path
from .storage import AzureBlobStorage, S3Storage, LocalStorage, create_storage

__all__ = [
    'BackupExecutor',
    'BackupResult',
    'run_backup',
    'run_backup_from_config',
    'compress_and_encrypt',
    'decrypt_and_decompress',
    'derive_artifact_path',
    'AzureBlobStorage',
    'S3Storage',
    'LocalStorage',
    'create_storage'
]
