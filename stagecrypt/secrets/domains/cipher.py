"""Streaming symmetric encryption of secrets files.

Two on-disk schemes are supported:

legacy
    AES-256-CBC with PKCS#7 padding. Key and IV come from the raw password
    through OpenSSL's ``EVP_BytesToKey`` (MD5, one round, no salt), which is
    what files written by the original deployment plugin use. The output is
    deterministic and interoperates with
    ``openssl enc -aes-256-cbc -md md5 -nosalt``.

aead
    ``STGCRY02 | salt(16) | nonce(12) | ciphertext | tag(16)``. The key is
    derived with scrypt and the body is AES-256-GCM, with the header bound
    in as associated data.

Decryption detects the scheme from the file prefix. Data moves through a
pull-based generator pipeline one chunk at a time: the writer asks for the
next block only once the previous one has been written, so memory stays
bounded regardless of file size.
"""
import hashlib
import logging
import os
import shutil
import tempfile
from enum import Enum
from itertools import chain
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Iterable, Iterator, Tuple, Union

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .errors import CipherError, DestinationWriteError, SourceNotFound

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

LEGACY = "legacy"
AEAD = "aead"
SCHEMES = (LEGACY, AEAD)
DEFAULT_SCHEME = LEGACY

LEGACY_KEY_LENGTH = 32
LEGACY_IV_LENGTH = 16

AEAD_MAGIC = b"STGCRY02"
SALT_LENGTH = 16
NONCE_LENGTH = 12
TAG_LENGTH = 16
AEAD_HEADER_LENGTH = len(AEAD_MAGIC) + SALT_LENGTH + NONCE_LENGTH
AEAD_KEY_LENGTH = 32
SCRYPT_N = 2 ** 15
SCRYPT_R = 8
SCRYPT_P = 1

PathLike = Union[str, "os.PathLike[str]"]
BlockStream = Iterator[bytes]


class Direction(str, Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


def evp_bytes_to_key(
    password: bytes,
    key_length: int = LEGACY_KEY_LENGTH,
    iv_length: int = LEGACY_IV_LENGTH,
) -> Tuple[bytes, bytes]:
    """OpenSSL ``EVP_BytesToKey`` with MD5, a single iteration and no salt."""
    material = b""
    block = b""
    while len(material) < key_length + iv_length:
        block = hashlib.md5(block + password).digest()
        material += block
    return material[:key_length], material[key_length:key_length + iv_length]


def _legacy_cipher(password: bytes) -> Cipher:
    key, iv = evp_bytes_to_key(password)
    return Cipher(algorithms.AES(key), modes.CBC(iv))


def _legacy_encrypt(chunks: Iterable[bytes], password: bytes) -> BlockStream:
    encryptor = _legacy_cipher(password).encryptor()
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    for chunk in chunks:
        yield encryptor.update(padder.update(chunk))
    yield encryptor.update(padder.finalize()) + encryptor.finalize()


def _legacy_decrypt(chunks: Iterable[bytes], password: bytes) -> BlockStream:
    decryptor = _legacy_cipher(password).decryptor()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    for chunk in chunks:
        yield unpadder.update(decryptor.update(chunk))
    try:
        final = unpadder.update(decryptor.finalize()) + unpadder.finalize()
    except ValueError as e:
        raise CipherError(
            "Decryption failed. The password may be wrong or the file corrupted."
        ) from e
    yield final


def _aead_key(password: bytes, salt: bytes) -> bytes:
    try:
        kdf = Scrypt(salt=salt, length=AEAD_KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
        return kdf.derive(password)
    except (UnsupportedAlgorithm, MemoryError) as e:
        raise CipherError(f"Key derivation failed: {e}") from e


def _aead_encrypt(chunks: Iterable[bytes], password: bytes) -> BlockStream:
    salt = os.urandom(SALT_LENGTH)
    nonce = os.urandom(NONCE_LENGTH)
    header = AEAD_MAGIC + salt + nonce
    encryptor = Cipher(algorithms.AES(_aead_key(password, salt)), modes.GCM(nonce)).encryptor()
    encryptor.authenticate_additional_data(header)
    yield header
    for chunk in chunks:
        yield encryptor.update(chunk)
    yield encryptor.finalize() + encryptor.tag


def _aead_decrypt(chunks: Iterator[bytes], password: bytes) -> BlockStream:
    header, rest = _split_prefix(chunks, AEAD_HEADER_LENGTH)
    if len(header) < AEAD_HEADER_LENGTH or not header.startswith(AEAD_MAGIC):
        raise CipherError("Encrypted file is truncated: incomplete header")
    salt = header[len(AEAD_MAGIC):len(AEAD_MAGIC) + SALT_LENGTH]
    nonce = header[-NONCE_LENGTH:]
    decryptor = Cipher(algorithms.AES(_aead_key(password, salt)), modes.GCM(nonce)).decryptor()
    decryptor.authenticate_additional_data(header)

    # the last TAG_LENGTH bytes seen so far may be the tag, hold them back
    tail = b""
    for chunk in rest:
        tail += chunk
        if len(tail) > TAG_LENGTH:
            yield decryptor.update(tail[:-TAG_LENGTH])
            tail = tail[-TAG_LENGTH:]
    if len(tail) < TAG_LENGTH:
        raise CipherError("Encrypted file is truncated: missing authentication tag")
    try:
        final = decryptor.finalize_with_tag(tail)
    except InvalidTag as e:
        raise CipherError(
            "Decryption failed. The password is wrong or the file was modified."
        ) from e
    yield final


_ENCRYPTORS: Dict[str, Callable[[Iterable[bytes], bytes], BlockStream]] = {
    LEGACY: _legacy_encrypt,
    AEAD: _aead_encrypt,
}


def _split_prefix(chunks: Iterator[bytes], size: int) -> Tuple[bytes, Iterator[bytes]]:
    """Take up to ``size`` bytes off the front of a chunk stream."""
    buffered = b""
    for chunk in chunks:
        buffered += chunk
        if len(buffered) >= size:
            break
    return buffered[:size], chain([buffered[size:]], chunks)


def _decrypt(chunks: Iterator[bytes], password: bytes) -> BlockStream:
    prefix, rest = _split_prefix(chunks, len(AEAD_MAGIC))
    stream = chain([prefix], rest)
    if prefix == AEAD_MAGIC:
        logger.debug("Detected aead ciphertext")
        return _aead_decrypt(stream, password)
    logger.debug("Detected legacy ciphertext")
    return _legacy_decrypt(stream, password)


def detect_scheme(path: PathLike) -> str:
    """Return the scheme an encrypted file was written with."""
    path = Path(path)
    try:
        with open(path, "rb") as f:
            prefix = f.read(len(AEAD_MAGIC))
    except OSError as e:
        raise SourceNotFound(f"Couldn't read '{path.name}' (looking in {path.parent}): {e.strerror}") from e
    return AEAD if prefix == AEAD_MAGIC else LEGACY


def _read_chunks(handle: BinaryIO, chunk_size: int, source: Path) -> BlockStream:
    while True:
        try:
            chunk = handle.read(chunk_size)
        except OSError as e:
            raise SourceNotFound(f"Failed reading '{source.name}': {e.strerror}") from e
        if not chunk:
            return
        yield chunk


def _discard(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def _write_atomically(blocks: Iterable[bytes], dest: Path) -> None:
    """
    Drain ``blocks`` into ``dest`` via a temporary sibling file.

    The destination is replaced only after every block has been written,
    flushed and fsynced; on failure the temporary file is removed and the
    existing destination is left as it was.
    """
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
    except OSError as e:
        raise DestinationWriteError(
            f"Couldn't create '{dest.name}' in {dest.parent}: {e.strerror}"
        ) from e

    try:
        with os.fdopen(fd, "wb") as out:
            for block in blocks:
                out.write(block)
            out.flush()
            os.fsync(out.fileno())
        if dest.exists():
            shutil.copymode(dest, tmp_path)
        os.replace(tmp_path, dest)
    except OSError as e:
        _discard(tmp_path)
        raise DestinationWriteError(f"Couldn't write '{dest.name}': {e.strerror or e}") from e
    except BaseException:
        _discard(tmp_path)
        raise


def transform(
    direction: Union[Direction, str],
    source: PathLike,
    dest: PathLike,
    password: str,
    scheme: str = DEFAULT_SCHEME,
    chunk_size: int = CHUNK_SIZE,
) -> None:
    """
    Encrypt or decrypt ``source`` into ``dest`` with a password.

    Returns only after ``dest`` is completely written and closed. ``scheme``
    selects the output format when encrypting; decryption detects it.

    Args:
        direction: Direction.ENCRYPT or Direction.DECRYPT
        source: File to read
        dest: File to create or replace
        password: Password used as key-derivation input
        scheme: "legacy" or "aead" (encryption only)
        chunk_size: Bytes read from ``source`` per step

    Raises:
        SourceNotFound: ``source`` is missing or unreadable
        CipherError: Wrong password, corrupted ciphertext, or bad scheme
        DestinationWriteError: ``dest`` cannot be created or written
    """
    direction = Direction(direction)
    if direction is Direction.ENCRYPT and scheme not in _ENCRYPTORS:
        raise CipherError(f"Unsupported cipher scheme: {scheme} (expected one of {', '.join(SCHEMES)})")

    source = Path(source)
    dest = Path(dest)
    secret = password.encode("utf-8")

    try:
        handle = open(source, "rb")
    except OSError as e:
        raise SourceNotFound(
            f"Couldn't read '{source.name}' (looking in {source.parent}): {e.strerror}"
        ) from e

    with handle:
        chunks = _read_chunks(handle, chunk_size, source)
        if direction is Direction.ENCRYPT:
            logger.debug(f"Encrypting {source} -> {dest} ({scheme})")
            blocks = _ENCRYPTORS[scheme](chunks, secret)
        else:
            logger.debug(f"Decrypting {source} -> {dest}")
            blocks = _decrypt(chunks, secret)
        _write_atomically(blocks, dest)
