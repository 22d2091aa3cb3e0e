"""
Error classes for Blobvault.

Every failure inside a backup run is reported as one of these.
"""


class BackupError(Exception):
    """Base error for backup operations."""
    pass


class LocalIOError(BackupError):
    """Raised when the source cannot be read or the artifact cannot be written."""
    pass


class CryptoSetupError(BackupError):
    """Raised when the AES key/IV are invalid or the cipher cannot be used."""
    pass


class RemoteStorageError(BackupError):
    """Raised when a container or upload operation fails on the remote store."""
    pass
