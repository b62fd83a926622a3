#!/usr/bin/env python3
"""
QR File Split - Chunked-file codec for transferring files as QR code sequences

This module splits a file into a small number of ordered fragment files that a
QR encoder can turn into images one by one, and later rebuilds the original
file from those fragments. The first fragment carries a fixed 98-byte binary
header with the SHA-256 of the whole file, so a rebuilt file is only accepted
when it is byte-identical to the original.

REQUIREMENTS:
  Python 3.8+

  Install with:
    pip install -e .

FRAGMENT LAYOUT:
  <dir>/<stem>_0000.part   98-byte header followed by the first slice of data
  <dir>/<stem>_0001.part   second slice of data
  ...

  A <stem>_0000.tmp file is left behind only by an interrupted split and is
  never treated as a fragment.

USAGE:
  Split a file:
    import qr_file_split as qfs
    qfs.split_file('photo.jpg', 'out_dir', chunk_count=4)

  Rebuild it (fragments are deleted once the hash checks out):
    output_path, report = qfs.merge_fragments('out_dir')

  Look at a fragment directory without touching it:
    qfs.inspect_fragments('out_dir')
"""

import os
import re
import json
import math
import shutil
import hashlib
import time
from typing import List, Dict, Any, Optional, Tuple, Callable, NamedTuple, BinaryIO

import click

# Format constants
MIN_CHUNKS = 2
MAX_CHUNKS = 10000           # fragment index is 4 decimal digits
HASH_SIZE = 32               # SHA-256 digest
MAX_FILENAME_LENGTH = 46
METADATA_SIZE = 98           # Hash(32) + Total(4) + Size(8) + Time(8) + Name(46)

FRAGMENT_EXTENSION = '.part'
TEMP_EXTENSION = '.tmp'
FRAGMENT_PATTERN = re.compile(r'(?P<base>.*)_(?P<index>[0-9]{4})\.part', re.DOTALL)

# Filesystem constants
DEFAULT_FILE_PERMISSIONS = 0o644
DEFAULT_DIR_PERMISSIONS = 0o755
COPY_BUFFER_SIZE = 64 * 1024

# Fragment count planning thresholds: (max file size, bytes per fragment)
CHUNK_COUNT_STEPS = [
    (5000, 1000),
    (20000, 800),
]
SMALL_FILE_LIMIT = 1000
LARGE_FILE_BYTES_PER_CHUNK = 500


# ============================================================================
# ERRORS
# ============================================================================

class SplitError(Exception):
    """Base class for every error raised by this module."""


class ValidationError(SplitError, ValueError):
    """Invalid argument: chunk count below minimum, bad header field, etc."""


class FragmentIOError(SplitError, OSError):
    """A filesystem operation failed. The message names the operation and path."""


class IntegrityError(SplitError, ValueError):
    """The rebuilt data does not match the hash stored in the header."""


class DiscoveryError(SplitError, ValueError):
    """Fragment files are missing, mixed, or out of sequence."""


class EncodingError(SplitError, ValueError):
    """A header or serialized value could not be encoded or decoded."""


# ============================================================================
# METADATA FUNCTIONS
# ============================================================================

def pack_name(name) -> bytes:
    """Pack a file name into the fixed-width header name field.

    The name is converted with the filesystem encoding and cut to
    MAX_FILENAME_LENGTH bytes without regard for character boundaries, so a
    multi-byte character at the cut comes back as raw bytes on decode.

    Args:
        name: File name (str or bytes)

    Returns:
        MAX_FILENAME_LENGTH bytes, zero-padded on the right
    """
    raw = os.fsencode(name)[:MAX_FILENAME_LENGTH]
    return raw + b'\x00' * (MAX_FILENAME_LENGTH - len(raw))


def encode_metadata(meta: Dict[str, Any]) -> bytes:
    """Serialize a metadata record into the 98-byte fragment header.

    Binary format (big-endian, no padding):
    [Hash:32][Total:4][Size:8][Time:8][Name:46]

    Args:
        meta: Dict with 'hash' (32 bytes), 'total' (uint32), 'size' (int64),
              'time' (int64, seconds since epoch) and 'name' (str)

    Returns:
        METADATA_SIZE bytes

    Raises:
        ValidationError: If the hash has the wrong length or an integer
                         field does not fit its width

    Example:
        >>> header = encode_metadata({'hash': bytes(32), 'total': 2, 'size': 10,
        ...                           'time': 0, 'name': 'a.txt'})
        >>> len(header)
        98
    """
    file_hash = bytes(meta['hash'])
    if len(file_hash) != HASH_SIZE:
        raise ValidationError(f"Hash must be {HASH_SIZE} bytes, got {len(file_hash)}")

    header = bytearray()
    header.extend(file_hash)

    try:
        header.extend(meta['total'].to_bytes(4, byteorder='big'))
        header.extend(meta['size'].to_bytes(8, byteorder='big', signed=True))
        header.extend(meta['time'].to_bytes(8, byteorder='big', signed=True))
    except OverflowError as e:
        raise ValidationError(f"Metadata field out of range: {e}") from e

    header.extend(pack_name(meta['name']))

    return bytes(header)


def parse_metadata(data: bytes) -> Dict[str, Any]:
    """Parse the 98-byte fragment header from the start of a buffer.

    Bytes after the header are ignored, so the whole content of the first
    fragment can be passed in.

    Args:
        data: Raw bytes starting with the header

    Returns:
        Dict with 'hash', 'total', 'size', 'time' and 'name'

    Raises:
        EncodingError: If fewer than METADATA_SIZE bytes are available
    """
    if len(data) < METADATA_SIZE:
        raise EncodingError(
            f"Truncated header: expected {METADATA_SIZE} bytes, got {len(data)}"
        )

    offset = 0

    file_hash = bytes(data[offset:offset+HASH_SIZE])
    offset += HASH_SIZE

    total = int.from_bytes(data[offset:offset+4], byteorder='big')
    offset += 4

    size = int.from_bytes(data[offset:offset+8], byteorder='big', signed=True)
    offset += 8

    created = int.from_bytes(data[offset:offset+8], byteorder='big', signed=True)
    offset += 8

    # Trailing zero bytes are padding
    name = os.fsdecode(bytes(data[offset:offset+MAX_FILENAME_LENGTH]).rstrip(b'\x00'))

    return {
        'hash': file_hash,
        'total': total,
        'size': size,
        'time': created,
        'name': name,
    }


def decode_metadata(stream: BinaryIO) -> Dict[str, Any]:
    """Read and parse the header from a binary stream.

    The stream is left positioned just past the header.

    Raises:
        EncodingError: If the stream ends before METADATA_SIZE bytes
        FragmentIOError: If reading fails
    """
    try:
        data = _read_full(stream, METADATA_SIZE)
    except OSError as e:
        source = getattr(stream, 'name', '<stream>')
        raise FragmentIOError(f"Failed to read header from {source}: {e}") from e

    return parse_metadata(data)


def read_fragment_metadata(path: str) -> Dict[str, Any]:
    """Open a first fragment file and decode its header."""
    try:
        with open(path, 'rb') as f:
            return decode_metadata(f)
    except EncodingError as e:
        raise EncodingError(f"Failed to decode header of {path}: {e}") from e
    except FragmentIOError:
        raise
    except OSError as e:
        raise FragmentIOError(f"Failed to open fragment {path}: {e}") from e


# ============================================================================
# SPLITTING FUNCTIONS
# ============================================================================

def calculate_chunk_count(file_size: int) -> int:
    """Pick a fragment count that keeps each fragment small enough for one QR code.

    Args:
        file_size: Size of the file in bytes

    Returns:
        Number of fragments to request (at least MIN_CHUNKS)

    Example:
        >>> calculate_chunk_count(800)
        2
        >>> calculate_chunk_count(4500)  # ~1000 bytes per fragment
        5
        >>> calculate_chunk_count(100000)  # ~500 bytes per fragment
        201
    """
    if file_size <= SMALL_FILE_LIMIT:
        return MIN_CHUNKS

    for max_size, bytes_per_chunk in CHUNK_COUNT_STEPS:
        if file_size <= max_size:
            return file_size // bytes_per_chunk + 1

    return file_size // LARGE_FILE_BYTES_PER_CHUNK + 1


def calculate_buffer_size(size: int, chunk_count: int) -> int:
    """Return the read size used for each fragment: floor(size / chunk_count) + 1.

    The split produces ceil(size / buffer_size) fragments, which can be fewer
    than chunk_count for small inputs.
    """
    return size // chunk_count + 1


def fragment_name(stem: str, index: int, extension: str = FRAGMENT_EXTENSION) -> str:
    """Build a fragment file name like 'report_0003.part'."""
    return f"{stem}_{index:04d}{extension}"


def split_stream(source: BinaryIO, output_dir: str, chunk_count: int,
                 size: Optional[int] = None, name: Optional[str] = None) -> List[str]:
    """Split a binary stream into fragment files with a header on the first one.

    Each fragment holds exactly one full read of
    calculate_buffer_size(size, chunk_count) bytes (the last one holds what is
    left). The first fragment is written as a .tmp file and only becomes
    <stem>_0000.part once the whole stream has been hashed and the header
    has been put in front of it.

    Args:
        source: Readable binary stream
        output_dir: Directory for the fragments (created if missing)
        chunk_count: Requested number of fragments (minimum 2)
        size: Stream length in bytes (default: taken from the stream)
        name: Original file name stored in the header (default: source.name)

    Returns:
        Fragment paths in index order

    Raises:
        ValidationError: If chunk_count is below MIN_CHUNKS, the split would
                         write more than MAX_CHUNKS fragments, no name is
                         available, or the stream outgrows its size
        FragmentIOError: If any read, write or delete fails. Fragments already
                         written are left on disk.
    """
    if chunk_count < MIN_CHUNKS:
        raise ValidationError(f"chunk_count must be at least {MIN_CHUNKS}, got {chunk_count}")

    if name is None:
        name = getattr(source, 'name', None)
        if not isinstance(name, (str, bytes)):
            raise ValidationError("Source has no file name; pass name= explicitly")
    name = os.path.basename(os.fsdecode(name))
    if not name:
        raise ValidationError("File name must not be empty")

    if size is None:
        size = _stream_size(source)
    if size < 0:
        raise ValidationError(f"Stream size must not be negative, got {size}")

    buffer_size = calculate_buffer_size(size, chunk_count)
    fragment_count = math.ceil(size / buffer_size)
    if fragment_count > MAX_CHUNKS:
        raise ValidationError(
            f"{size:,} bytes in {chunk_count:,} chunks needs {fragment_count:,} fragments, "
            f"exceeds maximum of {MAX_CHUNKS:,}"
        )

    stem = os.path.splitext(name)[0]

    _make_dirs(output_dir)

    hasher = hashlib.sha256()
    temp_path = os.path.join(output_dir, fragment_name(stem, 0, TEMP_EXTENSION))
    paths = []
    bytes_read = 0

    while True:
        try:
            data = _read_full(source, buffer_size)
        except OSError as e:
            raise FragmentIOError(f"Failed to read source {name}: {e}") from e

        if not data:
            break

        index = len(paths)
        if index >= MAX_CHUNKS:
            raise ValidationError(f"Stream is longer than its declared size of {size:,} bytes")
        if index == 0:
            path = temp_path
        else:
            path = os.path.join(output_dir, fragment_name(stem, index))

        _write_file(path, data)
        hasher.update(data)
        bytes_read += len(data)
        paths.append(path)

    # An empty stream still gets a (header-only) first fragment
    if not paths:
        _write_file(temp_path, b'')
        paths.append(temp_path)

    meta = {
        'hash': hasher.digest(),
        'total': len(paths),
        'size': bytes_read,
        'time': int(time.time()),
        'name': name,
    }

    paths[0] = embed_metadata(temp_path, meta)

    click.echo(f"Split {bytes_read:,} bytes into {len(paths)} fragments in {output_dir}")

    return paths


def split_file(file_path: str, output_dir: str, chunk_count: Optional[int] = None) -> List[str]:
    """Split a file on disk into fragments.

    Args:
        file_path: Path to the file to split
        output_dir: Directory for the fragments
        chunk_count: Requested number of fragments (default: planned from the
                     file size with calculate_chunk_count)

    Returns:
        Fragment paths in index order
    """
    try:
        f = open(file_path, 'rb')
    except OSError as e:
        raise FragmentIOError(f"Failed to open {file_path}: {e}") from e

    with f:
        size = _stream_size(f)
        if chunk_count is None:
            chunk_count = calculate_chunk_count(size)
        return split_stream(f, output_dir, chunk_count, size=size,
                            name=os.path.basename(file_path))


def embed_metadata(temp_path: str, meta: Dict[str, Any]) -> str:
    """Turn the temporary first fragment into <stem>_0000.part with a header.

    Writes the encoded header followed by the full content of temp_path to
    the final fragment file, then deletes temp_path.

    Returns:
        Path of the final first fragment
    """
    final_path = os.path.splitext(temp_path)[0] + FRAGMENT_EXTENSION
    header = encode_metadata(meta)

    try:
        src = open(temp_path, 'rb')
    except OSError as e:
        raise FragmentIOError(f"Failed to open temporary fragment {temp_path}: {e}") from e

    with src:
        try:
            with _create_file(final_path) as dst:
                dst.write(header)
                shutil.copyfileobj(src, dst, COPY_BUFFER_SIZE)
        except OSError as e:
            raise FragmentIOError(f"Failed to write first fragment {final_path}: {e}") from e

    try:
        os.remove(temp_path)
    except OSError as e:
        raise FragmentIOError(f"Failed to remove temporary fragment {temp_path}: {e}") from e

    return final_path


# ============================================================================
# DISCOVERY FUNCTIONS
# ============================================================================

def parse_fragment_name(file_name: str) -> Optional[Tuple[str, int]]:
    """Parse a fragment file name into (stem, index).

    Returns:
        Tuple of (stem, index), or None if the name is not a fragment name

    Example:
        >>> parse_fragment_name('notes_0012.part')
        ('notes', 12)
        >>> parse_fragment_name('notes_0000.tmp') is None
        True
    """
    match = FRAGMENT_PATTERN.fullmatch(file_name)
    if match is None:
        return None
    return match.group('base'), int(match.group('index'))


def select_fragments(directory: str, file_names: List[str],
                     base: Optional[str] = None) -> List[Dict[str, Any]]:
    """Build sorted fragment descriptors from a list of file names.

    The order of file_names does not matter; the result is always sorted
    by index.

    Args:
        directory: Directory the names belong to
        file_names: Names of regular files in the directory
        base: Only keep fragments with this stem (default: keep all)

    Returns:
        List of dicts with 'first', 'path', 'index' and 'base'
    """
    fragments = []
    for file_name in file_names:
        parsed = parse_fragment_name(file_name)
        if parsed is None:
            continue

        stem, index = parsed
        if base is not None and stem != base:
            continue

        fragments.append({
            'first': index == 0,
            'path': os.path.join(directory, file_name),
            'index': index,
            'base': stem,
        })

    fragments.sort(key=lambda x: (x['index'], x['base']))
    return fragments


def discover_fragments(directory: str, base: Optional[str] = None) -> List[Dict[str, Any]]:
    """Find the fragment files in a directory, sorted by index.

    Raises:
        DiscoveryError: If no fragment files are found
        FragmentIOError: If the directory cannot be listed
    """
    try:
        with os.scandir(directory) as entries:
            file_names = [entry.name for entry in entries if entry.is_file()]
    except OSError as e:
        raise FragmentIOError(f"Failed to list directory {directory}: {e}") from e

    fragments = select_fragments(directory, file_names, base)
    if not fragments:
        if base is not None:
            raise DiscoveryError(f"No fragment files for '{base}' found in {directory}")
        raise DiscoveryError(f"No fragment files found in {directory}")

    return fragments


# ============================================================================
# MERGING FUNCTIONS
# ============================================================================

def merge_fragments(directory: str, base: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
    """Rebuild the original file from the fragments in a directory.

    The output file is written into the same directory under the name stored
    in the header. Fragments are deleted only after the SHA-256 of the copied
    data matches the header. On a mismatch both the fragments and the bad
    output file are left on disk.

    Args:
        directory: Directory containing the fragments
        base: Stem of the fragment set to merge (required only when the
              directory holds fragments of more than one file)

    Returns:
        Tuple of (output_path, report_dict)

    Raises:
        DiscoveryError: If fragments are missing, mixed, or out of sequence
        EncodingError: If the header is truncated or names an invalid file
        IntegrityError: If the rebuilt data does not match the header
        FragmentIOError: If any file operation fails
    """
    fragments, meta = _load_fragment_set(directory, base)
    validate_sequence(fragments, meta['total'])

    output_name = meta['name']
    if (not output_name or output_name in ('.', '..') or '\x00' in output_name
            or os.path.basename(output_name) != output_name):
        raise EncodingError(f"Header names an invalid output file: {output_name!r}")

    output_path = os.path.join(directory, output_name)
    hasher = hashlib.sha256()
    copied = 0

    try:
        out = _create_file(output_path)
    except OSError as e:
        raise FragmentIOError(f"Failed to create output file {output_path}: {e}") from e

    with out:
        for fragment in fragments:
            copied += _copy_fragment(fragment, out, hasher)

    actual_hash = hasher.digest()
    if actual_hash != meta['hash']:
        raise IntegrityError(
            f"Hash mismatch! "
            f"Expected: {meta['hash'].hex()}, "
            f"Got: {actual_hash.hex()}. "
            f"File not reconstructed properly; fragments kept in {directory}."
        )

    if copied != meta['size']:
        raise IntegrityError(
            f"Size mismatch! Header says {meta['size']:,} bytes, "
            f"rebuilt {copied:,} bytes; fragments kept in {directory}."
        )

    cleanup_failures = []
    for fragment in fragments:
        try:
            os.remove(fragment['path'])
        except OSError as e:
            click.echo(f"Warning: failed to remove fragment {fragment['path']}: {e}", err=True)
            cleanup_failures.append(fragment['path'])

    click.echo(f"Merge successful. File saved as: {output_path}")

    report = {
        'file_name': output_name,
        'file_size': copied,
        'hash': actual_hash.hex(),
        'hash_verified': True,
        'fragments': len(fragments),
        'created': meta['time'],
        'cleanup_failures': cleanup_failures,
    }

    return output_path, report


def validate_sequence(fragments: List[Dict[str, Any]], total: int) -> None:
    """Check that the fragment indices are exactly 0..total-1.

    Raises:
        DiscoveryError: If any index is missing or unexpected
    """
    actual = set(fragment['index'] for fragment in fragments)
    expected = set(range(total))

    missing = sorted(expected - actual)
    unexpected = sorted(actual - expected)

    if missing or unexpected:
        message = f"Fragment sequence does not match header (total={total})."
        if missing:
            message += f" Missing fragments: {missing}."
        if unexpected:
            message += f" Unexpected fragments: {unexpected}."
        raise DiscoveryError(message)


def inspect_fragments(directory: str, base: Optional[str] = None) -> Dict[str, Any]:
    """Describe a fragment directory without modifying it.

    Returns:
        Dict with 'file_name', 'file_size', 'hash' (hex), 'created',
        'total', 'found' and 'missing' (index lists) and 'payload_size'
        (bytes of file data currently on disk)
    """
    fragments, meta = _load_fragment_set(directory, base)

    payload_size = -METADATA_SIZE
    for fragment in fragments:
        try:
            payload_size += os.path.getsize(fragment['path'])
        except OSError as e:
            raise FragmentIOError(f"Failed to stat fragment {fragment['path']}: {e}") from e

    found = [fragment['index'] for fragment in fragments]

    return {
        'file_name': meta['name'],
        'file_size': meta['size'],
        'hash': meta['hash'].hex(),
        'created': meta['time'],
        'total': meta['total'],
        'found': found,
        'missing': sorted(set(range(meta['total'])) - set(found)),
        'payload_size': payload_size,
    }


def _load_fragment_set(directory: str, base: Optional[str]) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
    """Discover one fragment set and decode the header of its first fragment."""
    fragments = discover_fragments(directory, base)

    stems = sorted(set(fragment['base'] for fragment in fragments))
    if len(stems) > 1:
        raise DiscoveryError(
            f"Mixed fragment sets detected in {directory}: {stems}. "
            f"Pass base= to choose one."
        )

    first = next((fragment for fragment in fragments if fragment['first']), None)
    if first is None:
        raise DiscoveryError(f"First fragment (index 0) not found in {directory}")

    return fragments, read_fragment_metadata(first['path'])


def _copy_fragment(fragment: Dict[str, Any], out: BinaryIO, hasher: Any) -> int:
    """Append one fragment's data to out, feeding the hasher. Returns bytes copied."""
    copied = 0
    try:
        with open(fragment['path'], 'rb') as src:
            if fragment['first']:
                src.seek(METADATA_SIZE)
            while True:
                block = src.read(COPY_BUFFER_SIZE)
                if not block:
                    break
                out.write(block)
                hasher.update(block)
                copied += len(block)
    except OSError as e:
        raise FragmentIOError(f"Failed to copy fragment {fragment['path']}: {e}") from e

    return copied


# ============================================================================
# GENERIC VALUE SPLITTING
# ============================================================================

class Serializer(NamedTuple):
    """A serialize/deserialize pair for split_value and join_value."""
    serialize: Callable[[Any], bytes]
    deserialize: Callable[[bytes], Any]


def _json_serialize(value: Any) -> bytes:
    return json.dumps(value, sort_keys=True, separators=(',', ':')).encode('utf-8')


def _json_deserialize(data: bytes) -> Any:
    return json.loads(data.decode('utf-8'))


JSON_SERIALIZER = Serializer(serialize=_json_serialize, deserialize=_json_deserialize)


def split_bytes(data: bytes, chunk_count: int) -> List[bytes]:
    """Split a byte buffer into chunk_count ranges.

    Every range is len(data) // chunk_count bytes (at least 1 when data is
    not empty) except the last, which also takes the remainder. Ranges past
    the end of the data are empty. No header and no hash are added.

    Raises:
        ValidationError: If chunk_count < MIN_CHUNKS

    Example:
        >>> [len(p) for p in split_bytes(b'1234567', 3)]
        [2, 2, 3]
        >>> split_bytes(b'ab', 3)
        [b'a', b'b', b'']
    """
    if chunk_count < MIN_CHUNKS:
        raise ValidationError(f"chunk_count must be at least {MIN_CHUNKS}, got {chunk_count}")

    data = bytes(data)
    data_length = len(data)
    part_size = data_length // chunk_count
    if part_size == 0 and data_length > 0:
        part_size = 1

    parts = []
    for i in range(chunk_count):
        start = i * part_size
        end = start + part_size

        if i == chunk_count - 1 or end > data_length:
            end = data_length

        if start >= data_length:
            parts.append(b'')
        else:
            parts.append(data[start:end])

    return parts


def join_bytes(parts: List[bytes]) -> bytes:
    """Concatenate ranges in the order given.

    The order is trusted: ranges joined in a different order than
    split_bytes returned them give a different buffer.

    Raises:
        ValidationError: If parts is empty or a part is not bytes-like
    """
    if not parts:
        raise ValidationError("No parts provided")

    combined = bytearray()
    for i, part in enumerate(parts):
        if not isinstance(part, (bytes, bytearray, memoryview)):
            raise ValidationError(f"Part at index {i} is {type(part).__name__}, not bytes")
        combined.extend(part)

    return bytes(combined)


def split_value(value: Any, chunk_count: int,
                serializer: Serializer = JSON_SERIALIZER) -> List[bytes]:
    """Serialize a value and split the result with split_bytes.

    Raises:
        ValidationError: If value is None or chunk_count < MIN_CHUNKS
        EncodingError: If serialization fails
    """
    if value is None:
        raise ValidationError("Value is None")

    if chunk_count < MIN_CHUNKS:
        raise ValidationError(f"chunk_count must be at least {MIN_CHUNKS}, got {chunk_count}")

    try:
        data = serializer.serialize(value)
    except Exception as e:
        raise EncodingError(f"Serialization failed: {e}") from e

    return split_bytes(data, chunk_count)


def join_value(parts: List[bytes], serializer: Serializer = JSON_SERIALIZER) -> Any:
    """Join ranges with join_bytes and deserialize the result.

    There is no integrity check: a corrupted range is only detected if the
    deserializer rejects the joined buffer.

    Raises:
        ValidationError: If parts is empty or a part is not bytes-like
        EncodingError: If the joined buffer is empty or cannot be deserialized
    """
    data = join_bytes(parts)
    if not data:
        raise EncodingError("No data to decode")

    try:
        return serializer.deserialize(data)
    except Exception as e:
        raise EncodingError(f"Deserialization failed: {e}") from e


# ============================================================================
# FILE HELPERS
# ============================================================================

def _read_full(stream: BinaryIO, size: int) -> bytes:
    """Read up to size bytes, retrying short reads until size or end of stream."""
    parts = []
    remaining = size
    while remaining > 0:
        data = stream.read(remaining)
        if not data:
            break
        parts.append(data)
        remaining -= len(data)
    return b''.join(parts)


def _stream_size(stream: BinaryIO) -> int:
    """Number of bytes left in a stream, from its file descriptor or by seeking."""
    try:
        position = stream.tell()
    except OSError as e:
        raise ValidationError(f"Cannot determine stream size; pass size= explicitly ({e})") from e

    try:
        return os.fstat(stream.fileno()).st_size - position
    except (AttributeError, OSError):
        pass

    try:
        end = stream.seek(0, os.SEEK_END)
        stream.seek(position)
    except OSError as e:
        raise ValidationError(f"Cannot determine stream size; pass size= explicitly ({e})") from e

    return end - position


def _make_dirs(path: str) -> None:
    try:
        os.makedirs(path, mode=DEFAULT_DIR_PERMISSIONS, exist_ok=True)
    except OSError as e:
        raise FragmentIOError(f"Failed to create output directory {path}: {e}") from e


def _create_file(path: str) -> BinaryIO:
    flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | getattr(os, 'O_BINARY', 0)
    fd = os.open(path, flags, DEFAULT_FILE_PERMISSIONS)
    try:
        return os.fdopen(fd, 'wb')
    except Exception:
        os.close(fd)
        raise


def _write_file(path: str, data: bytes) -> None:
    try:
        with _create_file(path) as f:
            f.write(data)
    except OSError as e:
        raise FragmentIOError(f"Failed to write fragment {path}: {e}") from e
