"""
Content-addressed artifact store.

Layout under the store root:

  audios/    silence + synthesized speech   (<key>.mp3)
  scenes/    per-scene clips                (<key>.mp4)
  videos/    final concatenated videos      (<key>.mp4)
  tracks/    WebVTT caption tracks          (<key>.vtt)
  remote/    fetched remote media           (<key>[.<ext>])   never evicted
  counters/  small key/value files (speech character budget)

Guarantees:
  - A file at <namespace>/<key>.<ext> is a finished artifact.  Builders write
    to a dot-prefixed partial path in the same namespace and rename on
    success, so readers never see a half-written file, even across processes.
  - reserve() admits at most one builder per (namespace, key) in this
    process.  Losers block until the winner releases, then observe the
    committed artifact.  If the winner failed, nothing was committed and the
    next waiter builds it itself (no negative caching).
  - Artifacts are never modified after commit.  A cache hit refreshes the
    file's mtime, which evict() uses as the last-use time.
"""
from __future__ import annotations

import fcntl
import logging
import os
import threading
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from slidecast.errors import CacheIOError
from slidecast.store.fingerprint import ArtifactKind

logger = logging.getLogger(__name__)

NAMESPACES: dict[ArtifactKind, str] = {
    ArtifactKind.SILENCE: "audios",
    ArtifactKind.SPEECH: "audios",
    ArtifactKind.SCENE: "scenes",
    ArtifactKind.VIDEO: "videos",
    ArtifactKind.TRACK: "tracks",
    ArtifactKind.REMOTE_ASSET: "remote",
}

# Remote assets are immutable by convention and fetched at most once.
PERMANENT_NAMESPACES = frozenset({"remote"})

COUNTERS_DIR = "counters"
_PARTIAL_MARKER = ".partial"


class _KeyLockTable:
    """Reference-counted mutexes keyed by an arbitrary hashable identity."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[tuple, list] = {}   # ident → [Lock, refcount]

    def acquire(self, ident: tuple) -> None:
        with self._guard:
            entry = self._entries.setdefault(ident, [threading.Lock(), 0])
            entry[1] += 1
        lock: threading.Lock = entry[0]
        if not lock.acquire(blocking=False):
            logger.debug("Waiting for concurrent builder of %s", ident[1:])
            lock.acquire()

    def release(self, ident: tuple) -> None:
        with self._guard:
            entry = self._entries[ident]
            entry[0].release()
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[ident]

    def busy(self, ident: tuple) -> bool:
        with self._guard:
            return ident in self._entries


# Shared by every ArtifactStore in the process so two store objects over the
# same root still exclude each other.
_KEY_LOCKS = _KeyLockTable()


class Reservation:
    """
    Exclusive right to build one artifact.

    Usage::

        with store.reserve(ArtifactKind.SCENE, key, "mp4") as res:
            if res.exists:
                return res.path
            partial = res.partial_path()
            build_into(partial)
            return res.commit_file(partial)

    Leaving the block releases the lock; on an exception every partial path
    handed out is deleted and nothing is committed.
    """

    def __init__(self, store: "ArtifactStore", kind: ArtifactKind, key: str, ext: str) -> None:
        self.store = store
        self.kind = kind
        self.key = key
        self.ext = ext
        self.path = store.path_for(kind, key, ext)
        self.exists = False
        self._ident = (str(store.root), store.namespace(kind), self.path.name)
        self._partials: list[Path] = []
        self._held = False

    def acquire(self) -> "Reservation":
        _KEY_LOCKS.acquire(self._ident)
        self._held = True
        self.exists = self.store.lookup(self.kind, self.key, self.ext) is not None
        return self

    def release(self) -> None:
        for partial in self._partials:
            _unlink_quietly(partial)
        self._partials.clear()
        if self._held:
            self._held = False
            _KEY_LOCKS.release(self._ident)

    def partial_path(self, ext: Optional[str] = None) -> Path:
        """A fresh temp path in the artifact's namespace (default: same extension)."""
        partial = self.store.partial_path(self.kind, self.key, self.ext if ext is None else ext)
        self._partials.append(partial)
        return partial

    def commit(self, data: bytes) -> Path:
        path = self.store.commit(self.kind, self.key, self.ext, data)
        self.exists = True
        return path

    def commit_file(self, source: Path) -> Path:
        path = self.store.commit_file(self.kind, self.key, self.ext, source)
        if source in self._partials:
            self._partials.remove(source)
        self.exists = True
        return path

    def __enter__(self) -> "Reservation":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class ArtifactStore:

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()
        self._initialized = False

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Create the namespace directories (idempotent)."""
        if self._initialized:
            return
        try:
            for name in sorted(set(NAMESPACES.values()) | {COUNTERS_DIR}):
                (self.root / name).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheIOError(f"cannot create artifact store at {self.root}: {exc}") from exc
        self._initialized = True

    @staticmethod
    def namespace(kind: ArtifactKind) -> str:
        return NAMESPACES[ArtifactKind(kind)]

    def path_for(self, kind: ArtifactKind, key: str, ext: str) -> Path:
        name = f"{key}.{ext}" if ext else key
        return self.root / self.namespace(kind) / name

    def partial_path(self, kind: ArtifactKind, key: str, ext: str) -> Path:
        self.initialize()
        token = uuid.uuid4().hex[:12]
        # Keep the real extension last: ffmpeg picks the muxer from it.
        suffix = f".{ext}" if ext else ""
        return self.root / self.namespace(kind) / f".{key}.{token}{_PARTIAL_MARKER}{suffix}"

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def lookup(self, kind: ArtifactKind, key: str, ext: str) -> Optional[Path]:
        """Return the artifact path on a hit, None on a miss."""
        path = self.path_for(kind, key, ext)
        if not path.is_file():
            return None
        try:
            os.utime(path)
        except OSError as exc:
            logger.debug("Could not refresh mtime of %s: %s", path, exc)
        logger.debug("Cache hit: %s/%s", self.namespace(kind), path.name)
        return path

    def reserve(self, kind: ArtifactKind, key: str, ext: str) -> Reservation:
        """Take the single-builder lock for an artifact (use as a context manager)."""
        self.initialize()
        return Reservation(self, ArtifactKind(kind), key, ext)

    def commit(self, kind: ArtifactKind, key: str, ext: str, data: bytes) -> Path:
        """Atomically write *data* as the artifact."""
        if not data:
            raise CacheIOError(f"refusing to commit empty artifact {key}.{ext}")
        partial = self.partial_path(kind, key, ext)
        try:
            partial.write_bytes(data)
        except OSError as exc:
            _unlink_quietly(partial)
            raise CacheIOError(f"cannot write {partial}: {exc}") from exc
        return self.commit_file(kind, key, ext, partial)

    def commit_file(self, kind: ArtifactKind, key: str, ext: str, source: Path) -> Path:
        """Atomically move a finished file into place as the artifact."""
        path = self.path_for(kind, key, ext)
        source = Path(source)
        try:
            if not source.is_file() or source.stat().st_size == 0:
                raise CacheIOError(f"refusing to commit missing or empty file {source}")
            os.replace(source, path)
        except OSError as exc:
            _unlink_quietly(source)
            raise CacheIOError(f"cannot commit {path}: {exc}") from exc
        logger.info("Committed %s/%s", self.namespace(kind), path.name)
        return path

    # ------------------------------------------------------------------
    # Key/value (small counters)
    # ------------------------------------------------------------------

    def get_value(self, name: str) -> Optional[str]:
        self.initialize()
        path = self.root / COUNTERS_DIR / name
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheIOError(f"cannot read {path}: {exc}") from exc

    def put_value(self, name: str, value: str) -> None:
        self.initialize()
        path = self.root / COUNTERS_DIR / name
        partial = path.with_name(f".{name}.{uuid.uuid4().hex[:12]}{_PARTIAL_MARKER}")
        try:
            partial.write_text(value, encoding="utf-8")
            os.replace(partial, path)
        except OSError as exc:
            _unlink_quietly(partial)
            raise CacheIOError(f"cannot write {path}: {exc}") from exc

    @contextmanager
    def exclusive(self, name: str) -> Iterator[None]:
        """Hold *name* exclusively across threads and processes."""
        self.initialize()
        ident = (str(self.root), COUNTERS_DIR, name)
        _KEY_LOCKS.acquire(ident)
        try:
            lock_path = self.root / COUNTERS_DIR / f"{name}.lock"
            try:
                handle = open(lock_path, "a+")
            except OSError as exc:
                raise CacheIOError(f"cannot open lock file {lock_path}: {exc}") from exc
            with handle:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            _KEY_LOCKS.release(ident)

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    def evict(self, older_than: float, now: Optional[float] = None) -> list[Path]:
        """
        Delete artifacts unused for more than *older_than* seconds.

        Last use is the file mtime (refreshed by lookup()).  remote/ is
        permanent and never visited.  Artifacts reserved by a builder in this
        process are skipped.  Orphaned partial files past the cutoff are
        removed too.  Returns the deleted paths.
        """
        self.initialize()
        cutoff = (time.time() if now is None else now) - older_than
        removed: list[Path] = []
        for name in sorted(set(NAMESPACES.values()) - PERMANENT_NAMESPACES):
            for path in sorted((self.root / name).iterdir()):
                if not path.is_file():
                    continue
                if _KEY_LOCKS.busy((str(self.root), name, path.name)):
                    continue
                try:
                    if path.stat().st_mtime >= cutoff:
                        continue
                    path.unlink()
                except FileNotFoundError:
                    continue
                except OSError as exc:
                    logger.warning("Could not evict %s: %s", path, exc)
                    continue
                removed.append(path)
        logger.info("Evicted %d artifact(s) older than %.0fs", len(removed), older_than)
        return removed


def _unlink_quietly(path: Path) -> None:
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove partial file %s: %s", path, exc)
