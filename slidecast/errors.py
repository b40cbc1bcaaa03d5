"""
Error taxonomy for the composition pipeline.

  InputError            empty or unresolvable composition request
  AssetResolutionError  a visual reference cannot be found locally or remotely
  QuotaExceededError    speech character budget exhausted (recovered per scene)
  ExternalServiceError  speech service failure
  EncodingError         encoder subprocess failed or produced no output
  CacheIOError          artifact store unreadable / unwritable

AssetResolutionError, EncodingError and CacheIOError abort a composition.
QuotaExceededError (and ExternalServiceError under the "silent" policy) turn
the affected scene silent and mark the result as degraded.
"""
from __future__ import annotations


class SlidecastError(Exception):
    """Base class for every error raised by the pipeline."""


class InputError(SlidecastError):
    """The composition request is empty or malformed."""


class AssetResolutionError(SlidecastError):
    """A media reference could not be resolved to local bytes."""


class QuotaExceededError(SlidecastError):
    """Sending more text would exceed the speech character budget."""

    def __init__(self, requested: int, used: int, limit: int) -> None:
        super().__init__(
            f"speech character budget exceeded: {used} used + {requested} "
            f"requested > {limit} allowed"
        )
        self.requested = requested
        self.used = used
        self.limit = limit


class ExternalServiceError(SlidecastError):
    """The speech service rejected or failed a request."""


class EncodingError(SlidecastError):
    """The encoder exited non-zero, timed out, or wrote no output."""


class CacheIOError(SlidecastError):
    """The artifact store could not be read or written."""
