"""
Scene timing.

  scene_duration(audio, visual) = max(padding + audio + padding, visual)

With the default 0.5 s padding a 2.0 s narration gives a 3.0 s scene and a
silent still image gives 1.0 s; a timed visual (animated clip) longer than
its padded narration plays for its own length.

build_timeline() walks scenes in order.  A scene with caption text emits a
cue [elapsed, elapsed + duration); a scene without one emits nothing but
still advances the clock.
"""
from __future__ import annotations

from typing import Sequence

from slidecast.schemas.composition import Chapter, Cue

DEFAULT_PADDING = 0.5


def scene_duration(audio_duration: float, visual_duration: float, padding: float = DEFAULT_PADDING) -> float:
    audio_duration = max(0.0, audio_duration)
    visual_duration = max(0.0, visual_duration)
    padded = padding + audio_duration + padding
    # Millisecond precision keeps durations, cue times and keys in step.
    return round(max(padded, visual_duration), 3)


def build_timeline(captions: Sequence[str], durations: Sequence[float]) -> list[Cue]:
    if len(captions) != len(durations):
        raise ValueError(
            f"{len(captions)} captions but {len(durations)} scene durations"
        )
    cues: list[Cue] = []
    elapsed = 0.0
    for caption, duration in zip(captions, durations):
        text = caption.strip()
        end = round(elapsed + duration, 3)
        if text:
            cues.append(Cue(start=elapsed, end=end, text=text))
        elapsed = end
    return cues


def format_clock(seconds: float) -> str:
    """Whole seconds as MM:SS (H:MM:SS past one hour)."""
    total = int(seconds)
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def build_chapters(cues: Sequence[Cue]) -> list[Chapter]:
    """One chapter per caption cue."""
    return [
        Chapter(start_seconds=cue.start, label=format_clock(cue.start), text=cue.text)
        for cue in cues
    ]
