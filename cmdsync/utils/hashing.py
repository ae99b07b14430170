"""Content fingerprinting used to detect drift between installs."""

from __future__ import annotations

import hashlib

HASH_LENGTH = 16


def content_hash(content: str | bytes) -> str:
    """Return the first 16 hex chars of the SHA-256 digest of *content*.

    Strings are encoded as UTF-8 before hashing, so a file read back as
    bytes hashes identically to the string it was written from.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()[:HASH_LENGTH]
