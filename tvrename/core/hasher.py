"""Content fingerprint for video files.

The fingerprint is the OpenSubtitles "movie hash": file size plus the sum of
the 64-bit little-endian words in the first and last 64 KiB, wrapped to 64
bits and rendered big-endian as 16 hex digits. It depends only on the bytes,
so renaming or moving a file keeps its cache entries.
"""

import os
import struct
from pathlib import Path

CHUNK_SIZE = 65536
WORD_SIZE = struct.calcsize("<q")
_MASK = 0xFFFFFFFFFFFFFFFF


def _sum_words(chunk: bytes) -> int:
    """Sum the little-endian signed 64-bit words of a chunk.

    A trailing partial word is zero-padded.
    """
    remainder = len(chunk) % WORD_SIZE
    if remainder:
        chunk += b"\x00" * (WORD_SIZE - remainder)
    count = len(chunk) // WORD_SIZE
    return sum(struct.unpack(f"<{count}q", chunk)) if count else 0


def compute_fingerprint(path: Path | str) -> str:
    """Return the 16-character lowercase hex fingerprint of a file.

    Raises:
        OSError: If the file cannot be opened or read
    """
    with open(path, "rb") as f:
        size = os.fstat(f.fileno()).st_size
        accumulator = size

        accumulator += _sum_words(f.read(CHUNK_SIZE))

        f.seek(max(0, size - CHUNK_SIZE))
        accumulator += _sum_words(f.read(CHUNK_SIZE))

    return f"{accumulator & _MASK:016x}"
