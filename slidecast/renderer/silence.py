"""
Silence generator.

Fixed-duration silent MP3 clips made with ffmpeg's anullsrc source, cached
under audios/ as kind "silence" keyed by {duration, sample_rate}.  Every
scene's audio track is [silence, narration?, silence], so in practice one
clip (the padding length) serves the whole store.
"""
from __future__ import annotations

import logging
from pathlib import Path

from slidecast.renderer.ffmpeg_runner import FFmpegRunner
from slidecast.store.artifact_store import ArtifactStore
from slidecast.store.fingerprint import ArtifactKind, fingerprint

logger = logging.getLogger(__name__)

SILENCE_EXT = "mp3"


class SilenceGenerator:

    def __init__(self, store: ArtifactStore, runner: FFmpegRunner, sample_rate: int = 24_000) -> None:
        self.store = store
        self.runner = runner
        self.sample_rate = sample_rate

    def make(self, duration: float) -> Path:
        """Return the cached silent clip of *duration* seconds, building it on a miss."""
        if duration <= 0:
            raise ValueError(f"silence duration must be positive, got {duration}")
        key = fingerprint(
            ArtifactKind.SILENCE,
            {"duration": float(duration), "sample_rate": self.sample_rate},
        )
        with self.store.reserve(ArtifactKind.SILENCE, key, SILENCE_EXT) as res:
            if res.exists:
                return res.path
            partial = res.partial_path()
            self.runner.run(
                [
                    "-y",
                    "-f", "lavfi",
                    "-i", f"anullsrc=r={self.sample_rate}:cl=mono",
                    "-t", f"{duration:.3f}",
                    "-q:a", "9",
                    "-acodec", "libmp3lame",
                    "-fflags", "+bitexact",
                    "-map_metadata", "-1",
                    str(partial),
                ],
                output_path=partial,
            )
            logger.info("Built %.3fs silence clip", duration)
            return res.commit_file(partial)
