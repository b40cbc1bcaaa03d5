"""
WebVTT caption track for a composed video.

Cue times come from build_timeline(): absolute offsets of each captioned
scene in the final video.  Scenes without caption text produce no cue.

Output format (UTF-8):

  WEBVTT

  00:00.000 --> 00:03.000
  First caption

  00:04.000 --> 00:06.000
  Second caption

Timestamps are MM:SS.mmm; an hours field is added from one hour on.

The track is cached as kind "track" keyed by the ordered caption texts AND
the scene durations, so a timing change alone also produces a new track.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from pydantic import BaseModel, Field

from slidecast.renderer.timeline import build_timeline
from slidecast.schemas.composition import Cue
from slidecast.store.artifact_store import ArtifactStore
from slidecast.store.fingerprint import ArtifactKind, fingerprint

logger = logging.getLogger(__name__)

TRACK_EXT = "vtt"
VTT_HEADER = "WEBVTT"


class BuiltTrack(BaseModel):
    key: str
    path: Path
    cues: list[Cue] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def format_timestamp(seconds: float) -> str:
    """Convert seconds to a WebVTT timestamp: [HH:]MM:SS.mmm."""
    ms = max(0, int(round(seconds * 1000)))
    hours, remainder = divmod(ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1_000)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"
    return f"{minutes:02d}:{secs:02d}.{millis:03d}"


def render_vtt(cues: Sequence[Cue]) -> str:
    """
    Render *cues* as a WebVTT document.

    Returns the header alone (plus a trailing newline) when there are no cues;
    players accept an empty track.
    """
    blocks = [VTT_HEADER]
    for cue in cues:
        # A blank line inside cue text would end the cue early.
        text = "\n".join(line for line in cue.text.splitlines() if line.strip())
        blocks.append(
            f"{format_timestamp(cue.start)} --> {format_timestamp(cue.end)}\n{text}"
        )
    return "\n\n".join(blocks) + "\n"


class TrackBuilder:

    def __init__(self, store: ArtifactStore) -> None:
        self.store = store

    def track_key(self, captions: Sequence[str], durations: Sequence[float]) -> str:
        return fingerprint(
            ArtifactKind.TRACK,
            {"captions": list(captions), "durations": [float(d) for d in durations]},
        )

    def build(self, captions: Sequence[str], durations: Sequence[float]) -> BuiltTrack:
        """Return the cached or freshly written track for these scenes."""
        cues = build_timeline(captions, durations)
        key = self.track_key(captions, durations)
        with self.store.reserve(ArtifactKind.TRACK, key, TRACK_EXT) as res:
            if not res.exists:
                content = render_vtt(cues)
                res.commit(content.encode("utf-8"))
                logger.info("Wrote caption track %s (%d cues)", key, len(cues))
            return BuiltTrack(key=key, path=res.path, cues=cues)
