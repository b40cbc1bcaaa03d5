"""
Local asset resolution.

The host system owns its media repository; the pipeline only needs
"reference → (local path, stable content id)" or "not local".  Anything
implementing AssetResolver can be plugged in.  DirectoryAssetResolver is the
stand-alone implementation: references are file names under one directory.
"""
from __future__ import annotations

import hashlib
import logging
import threading
from pathlib import Path
from typing import Optional, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Host-style namespace prefixes that name a file rather than a path.
_FILE_PREFIXES = ("file:", "image:")


class LocalAsset(BaseModel):
    """A visual available on local disk."""
    reference: str
    path: Path
    content_id: str            # content hash, or the remote cache key


class AssetResolver(Protocol):
    def find(self, reference: str) -> Optional[LocalAsset]:
        """Return the local asset for *reference*, or None when it is not local."""
        ...


def strip_file_prefix(reference: str) -> str:
    """'File:Foo bar.jpg' → 'Foo bar.jpg' (case-insensitive prefix)."""
    reference = reference.strip()
    lowered = reference.lower()
    for prefix in _FILE_PREFIXES:
        if lowered.startswith(prefix):
            return reference[len(prefix):].strip()
    return reference


class DirectoryAssetResolver:
    """Resolve references to files directly under (or below) *root*."""

    def __init__(self, root: Optional[Path]) -> None:
        self.root = Path(root).resolve() if root else None
        self._hashes: dict[tuple[Path, int, int], str] = {}
        self._lock = threading.Lock()

    def find(self, reference: str) -> Optional[LocalAsset]:
        if self.root is None:
            return None
        name = strip_file_prefix(reference)
        if not name:
            return None
        candidates = [name]
        if " " in name:
            candidates.append(name.replace(" ", "_"))
        for candidate in candidates:
            path = (self.root / candidate).resolve()
            if not path.is_relative_to(self.root):
                logger.warning("Reference %r escapes the asset directory; ignored", reference)
                return None
            if path.is_file():
                return LocalAsset(
                    reference=reference,
                    path=path,
                    content_id="sha256:" + self._content_hash(path),
                )
        return None

    def _content_hash(self, path: Path) -> str:
        stat = path.stat()
        memo_key = (path, stat.st_mtime_ns, stat.st_size)
        with self._lock:
            cached = self._hashes.get(memo_key)
        if cached is not None:
            return cached
        digest = _sha256_file(path)
        with self._lock:
            self._hashes[memo_key] = digest
        return digest


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(65_536), b""):
            h.update(chunk)
    return h.hexdigest()
