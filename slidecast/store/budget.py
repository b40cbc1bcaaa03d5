"""
Speech character budget: a persisted, process-shared counter.

The counter counts characters *sent* to the paid speech service.  It is
incremented before the request is made, under an exclusive lock, so that
concurrent requests can never overrun the ceiling; a request that then
fails still counts (bounded worst-case spend, slight undercount of what
is left).  A request that would exceed the ceiling leaves the counter
unchanged and raises QuotaExceededError.
"""
from __future__ import annotations

import logging

from slidecast.errors import CacheIOError, QuotaExceededError
from slidecast.store.artifact_store import ArtifactStore

logger = logging.getLogger(__name__)

COUNTER_NAME = "speech-characters"


class CharacterBudget:

    def __init__(self, store: ArtifactStore, limit: int, name: str = COUNTER_NAME) -> None:
        if limit < 0:
            raise ValueError(f"budget limit must be >= 0, got {limit}")
        self.store = store
        self.limit = limit
        self.name = name

    @property
    def used(self) -> int:
        return self._read()

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self._read())

    def try_consume(self, chars: int) -> int:
        """
        Reserve *chars* characters of budget; return the new total used.

        Raises:
            QuotaExceededError: if used + chars would exceed the limit.
        """
        if chars < 0:
            raise ValueError(f"cannot consume a negative amount ({chars})")
        with self.store.exclusive(self.name):
            used = self._read()
            if used + chars > self.limit:
                logger.warning(
                    "Speech budget exhausted: %d used, %d requested, limit %d",
                    used, chars, self.limit,
                )
                raise QuotaExceededError(requested=chars, used=used, limit=self.limit)
            total = used + chars
            self.store.put_value(self.name, str(total))
        logger.debug("Speech budget: %d/%d used", total, self.limit)
        return total

    def _read(self) -> int:
        raw = self.store.get_value(self.name)
        if raw is None or not raw.strip():
            return 0
        try:
            return int(raw.strip())
        except ValueError as exc:
            raise CacheIOError(f"corrupt budget counter {self.name!r}: {raw!r}") from exc
