from __future__ import annotations

import hashlib
from pathlib import Path

from .errors import FileSystemError

HASH_PREFIX = "sha256:"


def compute_file_hash(path: Path) -> str:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise FileSystemError(f"Could not read file for hashing: {path} ({e.strerror or e})") from e
    return HASH_PREFIX + hashlib.sha256(data).hexdigest()
