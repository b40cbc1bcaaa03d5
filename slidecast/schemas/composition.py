"""
Composition records: what the pipeline hands between stages and back to
the presentation layer.

BuiltScene / AssembledVideo are internal stage results.  CompositionResult
is the output contract: final video and track locations, chapter list,
canvas size and the degraded-result flag.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field


class BuiltScene(BaseModel):
    """One scene clip in the store, plus what the timeline needs to know."""
    key: str
    path: Path
    duration: float            # seconds, padding included
    caption: str = ""          # plain caption text; "" → no cue
    degraded: bool = False     # narration replaced by silence


class AssembledVideo(BaseModel):
    key: str
    path: Path
    width: int
    height: int
    scenes: list[BuiltScene] = Field(default_factory=list)

    @property
    def duration(self) -> float:
        return sum(s.duration for s in self.scenes)


class Cue(BaseModel):
    """A caption cue; times are absolute seconds from the video start."""
    start: float
    end: float
    text: str


class Chapter(BaseModel):
    start_seconds: float
    label: str                 # "MM:SS" for display
    text: str


class Canvas(BaseModel):
    width: int
    height: int


class PlayerAttributes(BaseModel):
    """Attributes for the presentation layer's video element."""
    width: Union[int, str]     # pixels or "auto"
    height: Union[int, str]
    controls: bool = True
    autoplay: bool = False
    captions: bool = False
    chapters: bool = False
    poster: Optional[str] = None


class CompositionResult(BaseModel):
    video_key: str
    video_path: str
    video_url: str
    track_key: str
    track_path: str
    track_url: str
    canvas: Canvas
    duration: float
    chapters: list[Chapter] = Field(default_factory=list)
    player: PlayerAttributes
    scene_keys: list[str] = Field(default_factory=list)
    degraded: bool = False
    degraded_scenes: list[int] = Field(default_factory=list)   # 0-based scene indexes
