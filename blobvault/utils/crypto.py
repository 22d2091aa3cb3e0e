"""
Encryption utilities for backup artifacts.

Artifacts are encrypted with AES-256 in CBC mode with PKCS7 padding. When no
IV is configured a fresh random IV is generated per artifact and written as
the first 16 bytes of the file; with a configured IV the file is raw
ciphertext and the reader must be given the same IV.
"""

import os
import base64
import binascii
from typing import Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from blobvault.errors import CryptoSetupError


KEY_SIZE = 32  # AES-256
IV_SIZE = 16  # AES block size
CHUNK_SIZE = 64 * 1024


class CryptoMaterial:
    """AES key and optional IV, validated on construction."""

    def __init__(self, key: bytes, iv: Optional[bytes] = None):
        """
        Args:
            key: 32-byte AES-256 key
            iv: 16-byte IV, or None to use a random IV per artifact

        Raises:
            CryptoSetupError: If key or IV has the wrong length
        """
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
            raise CryptoSetupError(
                f"AES-256 key must be exactly {KEY_SIZE} bytes, got {_describe_length(key)}"
            )
        if iv is not None and (not isinstance(iv, (bytes, bytearray)) or len(iv) != IV_SIZE):
            raise CryptoSetupError(
                f"AES IV must be exactly {IV_SIZE} bytes, got {_describe_length(iv)}"
            )

        self.key = bytes(key)
        self.iv = bytes(iv) if iv is not None else None

    @property
    def embeds_iv(self) -> bool:
        """True when each artifact carries its own random IV as a prefix."""
        return self.iv is None

    @classmethod
    def from_base64(cls, key_b64: Optional[str], iv_b64: Optional[str] = None) -> 'CryptoMaterial':
        """
        Build crypto material from base64-encoded strings.

        Args:
            key_b64: Base64 key (required)
            iv_b64: Base64 IV, or None/empty for a random IV per artifact

        Raises:
            CryptoSetupError: If the key is missing or a value is not valid base64
        """
        if not key_b64:
            raise CryptoSetupError("Encryption key not configured (BACKUP_AES_KEY)")

        key = _decode_base64(key_b64, 'key')
        iv = _decode_base64(iv_b64, 'IV') if iv_b64 else None
        return cls(key, iv)

    def __repr__(self):
        return f'<CryptoMaterial embeds_iv={self.embeds_iv}>'


def _describe_length(value) -> str:
    if value is None:
        return 'nothing'
    try:
        return f"{len(value)} bytes"
    except TypeError:
        return type(value).__name__


def _decode_base64(value: str, label: str) -> bytes:
    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise CryptoSetupError(f"AES {label} is not valid base64: {e}") from e


def _new_cipher(key: bytes, iv: bytes) -> Cipher:
    try:
        return Cipher(algorithms.AES(key), modes.CBC(iv))
    except (ValueError, UnsupportedAlgorithm) as e:
        raise CryptoSetupError(f"Failed to initialize AES-CBC cipher: {e}") from e


def generate_key() -> str:
    """Return a new random AES-256 key, base64-encoded."""
    return base64.b64encode(os.urandom(KEY_SIZE)).decode()


def generate_iv() -> str:
    """Return a new random IV, base64-encoded."""
    return base64.b64encode(os.urandom(IV_SIZE)).decode()


class AESCBCWriter:
    """
    Write-only file object that encrypts everything written to it.

    Wraps an open binary file. Padding and the final cipher block are written
    on close(); the wrapped file is left open for its owner to close.
    """

    def __init__(self, fileobj, material: CryptoMaterial):
        iv = material.iv
        if iv is None:
            iv = os.urandom(IV_SIZE)

        self._encryptor = _new_cipher(material.key, iv).encryptor()
        self._padder = padding.PKCS7(algorithms.AES.block_size).padder()
        self._fileobj = fileobj
        self.closed = False

        if material.embeds_iv:
            fileobj.write(iv)

    def writable(self):
        return True

    def write(self, data) -> int:
        if self.closed:
            raise ValueError("write to closed AESCBCWriter")
        data = bytes(data)
        self._fileobj.write(self._encryptor.update(self._padder.update(data)))
        return len(data)

    def flush(self):
        self._fileobj.flush()

    def close(self):
        if self.closed:
            return
        tail = self._padder.finalize()
        self._fileobj.write(self._encryptor.update(tail) + self._encryptor.finalize())
        self._fileobj.flush()
        self.closed = True

    def abort(self):
        """Mark closed without writing the final block (used on error)."""
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.close()
        else:
            self.abort()
        return False


class AESCBCReader:
    """
    Read-only file object that decrypts an artifact as it is read.

    Raises CryptoSetupError when the ciphertext is truncated or the padding is
    invalid, which is what a wrong key or IV usually looks like.
    """

    def __init__(self, fileobj, material: CryptoMaterial):
        iv = material.iv
        if iv is None:
            iv = fileobj.read(IV_SIZE)
            if len(iv) != IV_SIZE:
                raise CryptoSetupError("Artifact is too short to contain an IV")

        self._decryptor = _new_cipher(material.key, iv).decryptor()
        self._unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        self._fileobj = fileobj
        self._buffer = b''
        self._eof = False

    def readable(self):
        return True

    def read(self, size=-1) -> bytes:
        while not self._eof and (size is None or size < 0 or len(self._buffer) < size):
            chunk = self._fileobj.read(CHUNK_SIZE)
            if chunk:
                self._buffer += self._unpadder.update(self._decryptor.update(chunk))
                continue

            try:
                tail = self._unpadder.update(self._decryptor.finalize())
                self._buffer += tail + self._unpadder.finalize()
            except ValueError as e:
                raise CryptoSetupError(
                    f"Decryption failed (wrong key/IV or corrupt artifact): {e}"
                ) from e
            self._eof = True

        if size is None or size < 0:
            data, self._buffer = self._buffer, b''
        else:
            data, self._buffer = self._buffer[:size], self._buffer[size:]
        return data
