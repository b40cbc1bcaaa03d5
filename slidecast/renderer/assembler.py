"""
Video assembler.

assemble(specs, options):
  1. resolve every visual and derive the canvas:
       width  = max intrinsic width,  clamped to [min_size, max_size], made even
       height = max intrinsic height, clamped to [min_size, max_size], made even
  2. build every scene in input order on that canvas
  3. key = fingerprint("video", {scenes: [scene keys in order]})
  4. miss → join the scene clips with the concat demuxer and ``-c copy``
     (no re-encode; every scene already shares canvas and codec parameters)

Editing one scene changes only that scene's key, so the other scenes are
cache hits and only the final join is redone.
"""
from __future__ import annotations

import logging
from typing import Sequence

from slidecast.errors import InputError
from slidecast.renderer.ffmpeg_runner import FFmpegRunner, write_concat_list
from slidecast.renderer.placeholder import PLACEHOLDER_VISUAL_ID
from slidecast.renderer.scene import SceneBuilder
from slidecast.schemas.composition import AssembledVideo, Canvas
from slidecast.schemas.scene_spec import SceneSpec
from slidecast.schemas.video_options import VideoOptions
from slidecast.store.artifact_store import ArtifactStore
from slidecast.store.fingerprint import ArtifactKind, fingerprint

logger = logging.getLogger(__name__)

VIDEO_EXT = "mp4"


def canvas_size(dimensions: Sequence[tuple[int, int]], min_size: int, max_size: int) -> Canvas:
    """
    Canvas for a set of intrinsic (width, height) pairs.

    With no dimensions at all (every scene is a placeholder) the canvas is
    min_size square.
    """
    widths = [w for w, _ in dimensions] or [min_size]
    heights = [h for _, h in dimensions] or [min_size]
    return Canvas(
        width=_even(_clamp(max(widths), min_size, max_size)),
        height=_even(_clamp(max(heights), min_size, max_size)),
    )


class VideoAssembler:

    def __init__(
        self,
        store: ArtifactStore,
        runner: FFmpegRunner,
        scenes: SceneBuilder,
        min_size: int = 100,
        max_size: int = 1280,
    ) -> None:
        self.store = store
        self.runner = runner
        self.scenes = scenes
        self.min_size = min_size
        self.max_size = max_size

    def assemble(self, specs: Sequence[SceneSpec], options: VideoOptions) -> AssembledVideo:
        if not specs:
            raise InputError("a composition needs at least one scene")

        visuals = [self.scenes.resolve_visual(spec) for spec in specs]
        dimensions = [
            self.runner.probe_dimensions(v.path)
            for v in visuals
            if v.content_id != PLACEHOLDER_VISUAL_ID
        ]
        canvas = canvas_size(dimensions, self.min_size, self.max_size)
        logger.debug("Canvas %dx%d for %d scene(s)", canvas.width, canvas.height, len(specs))

        option_voice = options.voice()
        built = []
        for spec, visual in zip(specs, visuals):
            spec = spec.model_copy(update={"voice": spec.voice.with_defaults(option_voice)})
            built.append(
                self.scenes.build(
                    spec,
                    canvas.width,
                    canvas.height,
                    effect=options.ken_burns_effect,
                    visual=visual,
                )
            )

        key = fingerprint(ArtifactKind.VIDEO, {"scenes": [s.key for s in built]})
        with self.store.reserve(ArtifactKind.VIDEO, key, VIDEO_EXT) as res:
            if not res.exists:
                partial = res.partial_path()
                scene_list = write_concat_list(res.partial_path("txt"), [s.path for s in built])
                self.runner.run(
                    [
                        "-y",
                        "-f", "concat", "-safe", "0", "-i", str(scene_list),
                        "-c", "copy",
                        "-fflags", "+bitexact",
                        "-map_metadata", "-1",
                        "-movflags", "+faststart",
                        str(partial),
                    ],
                    output_path=partial,
                )
                res.commit_file(partial)
                logger.info("Assembled video %s from %d scene(s)", key, len(built))

        return AssembledVideo(
            key=key,
            path=res.path,
            width=canvas.width,
            height=canvas.height,
            scenes=built,
        )


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _even(value: int) -> int:
    return value - 1 if value % 2 else value
