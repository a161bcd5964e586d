"""Content-addressable file digests for citation integrity."""

import hashlib
from pathlib import Path

HASH_LENGTH = 16


def compute_content_hash(content: str | bytes) -> str:
    """SHA-256 of the whitespace-trimmed content, truncated to 16 hex chars.

    Text is hashed as its UTF-8 encoding; bytes are hashed as they are.
    """
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data.strip()).hexdigest()[:HASH_LENGTH]


def hash_file(path: Path | str) -> str:
    """Digest of a whole file's bytes. Raises OSError if the file cannot be read."""
    return compute_content_hash(Path(path).read_bytes())
