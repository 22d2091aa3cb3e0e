"""
Compression and encryption of backup artifacts.

The write chain is:

    source file -> gzip -> AES-256-CBC -> artifact file

Compression runs before encryption; ciphertext does not compress.
"""

import os
import gzip
import zlib
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from blobvault.errors import LocalIOError
from blobvault.utils.crypto import AESCBCReader, AESCBCWriter, CryptoMaterial, CHUNK_SIZE


DEFAULT_ARTIFACT_SUFFIX = '_encrypted.zip'


def derive_artifact_path(
    source_path: str,
    artifact_dir: Optional[str] = None,
    suffix: str = DEFAULT_ARTIFACT_SUFFIX
) -> str:
    """
    Derive the artifact path from the original source file name.

    Format: {artifact_dir}/{source stem}{suffix}

    Args:
        source_path: Path of the file being backed up
        artifact_dir: Output directory (default: current working directory)
        suffix: Suffix appended to the stem

    Returns:
        Artifact path
    """
    stem = Path(source_path).stem
    directory = artifact_dir or os.getcwd()
    return os.path.join(directory, f"{stem}{suffix}")


def check_source_file(source_path: str):
    """
    Make sure the source exists and is a readable regular file.

    Raises:
        LocalIOError: If the file is missing, not a file or unreadable
    """
    if not os.path.exists(source_path):
        raise LocalIOError(f"Source file not found: {source_path}")
    if not os.path.isfile(source_path):
        raise LocalIOError(f"Source is not a regular file: {source_path}")
    if not os.access(source_path, os.R_OK):
        raise LocalIOError(f"Access denied reading source file: {source_path}")


def compress_and_encrypt(source_path: str, artifact_path: str, material: CryptoMaterial) -> str:
    """
    Gzip the source file and encrypt the compressed stream into the artifact.

    The artifact is created or truncated. All file handles are released
    even when a step fails.

    Args:
        source_path: File to back up
        artifact_path: Output artifact path
        material: AES key/IV

    Returns:
        The artifact path

    Raises:
        LocalIOError: If reading the source or writing the artifact fails
        CryptoSetupError: If the cipher cannot be initialized
    """
    try:
        parent = os.path.dirname(artifact_path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        with open(source_path, 'rb') as source, open(artifact_path, 'wb') as artifact:
            with AESCBCWriter(artifact, material) as encrypted:
                with gzip.GzipFile(fileobj=encrypted, mode='wb') as compressed:
                    shutil.copyfileobj(source, compressed, CHUNK_SIZE)

    except FileNotFoundError as e:
        raise LocalIOError(f"File not found: {e.filename}") from e
    except PermissionError as e:
        raise LocalIOError(f"Permission denied: {e.filename}") from e
    except OSError as e:
        raise LocalIOError(f"Failed to write artifact {artifact_path}: {e}") from e

    return artifact_path


def decrypt_and_decompress(artifact_path: str, output_path: str, material: CryptoMaterial) -> str:
    """
    Reverse compress_and_encrypt(): decrypt the artifact and gunzip it.

    The restored data goes to a temporary file next to output_path, which
    replaces output_path only once the gzip checksum has been verified. An
    existing output file is left untouched when the restore fails.

    Args:
        artifact_path: Encrypted artifact
        output_path: Where to write the restored file
        material: AES key, and the IV if the artifact was written with a fixed one

    Returns:
        The output path

    Raises:
        LocalIOError: If a file cannot be read/written or the gzip stream is corrupt
        CryptoSetupError: If decryption fails
    """
    parent = os.path.dirname(os.path.abspath(output_path))
    temp_path = None

    try:
        os.makedirs(parent, exist_ok=True)

        with open(artifact_path, 'rb') as artifact, tempfile.NamedTemporaryFile(
            dir=parent, prefix='.restore_', delete=False
        ) as output:
            temp_path = output.name
            decrypted = AESCBCReader(artifact, material)
            with gzip.GzipFile(fileobj=decrypted, mode='rb') as decompressed:
                shutil.copyfileobj(decompressed, output, CHUNK_SIZE)

        os.replace(temp_path, output_path)
        temp_path = None

    except FileNotFoundError as e:
        raise LocalIOError(f"File not found: {e.filename}") from e
    except (gzip.BadGzipFile, EOFError, zlib.error) as e:
        raise LocalIOError(f"Artifact does not contain a valid gzip stream: {e}") from e
    except OSError as e:
        raise LocalIOError(f"Failed to restore {artifact_path}: {e}") from e
    finally:
        if temp_path is not None and os.path.exists(temp_path):
            os.remove(temp_path)

    return output_path


def get_artifact_size(artifact_path: str) -> int:
    """
    Get the size of an artifact in bytes.

    Raises:
        LocalIOError: If the file doesn't exist or cannot be accessed
    """
    try:
        return os.path.getsize(artifact_path)
    except OSError as e:
        raise LocalIOError(f"Failed to get size of {artifact_path}: {e}") from e
