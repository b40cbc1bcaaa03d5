"""
Scene builder: one (visual, narration) pair → one MP4 clip on the canvas.

build(spec, width, height, effect):
  1. visual   spec.media resolved through the fetcher (local first, then
              remote); no media → the shared black placeholder with a
              constant visual id
  2. audio    narration synthesized through SpeechSynthesizer; no text →
              audio id "none".  Quota exhaustion, and speech failures under
              the "silent" policy, fall back to a silent scene flagged as
              degraded
  3. key      fingerprint("scene", {visual, audio, width, height, effect})
  4. miss     audio track  = concat demuxer [silence, speech?, silence]
              video track  = visual scaled to FIT the canvas and padded,
                             centred (scale factor min(W/iw, H/ih)); with the
                             effect flag, a still visual gets a slow zoompan
                             over the whole scene instead
              encoded to a partial file, committed only when ffmpeg exits 0
              and wrote a non-empty file

Every clip shares codec parameters (libx264 yuv420p at a fixed frame rate,
AAC mono 44.1 kHz) so the assembler can join them with a stream copy.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal, Optional

from slidecast.assets.remote import RemoteAssetFetcher
from slidecast.assets.resolver import LocalAsset
from slidecast.errors import ExternalServiceError, QuotaExceededError
from slidecast.renderer.ffmpeg_runner import FFmpegRunner, write_concat_list
from slidecast.renderer.placeholder import (
    PLACEHOLDER_FILENAME,
    PLACEHOLDER_VISUAL_ID,
    generate_placeholder,
)
from slidecast.renderer.silence import SilenceGenerator
from slidecast.renderer.timeline import scene_duration
from slidecast.schemas.composition import BuiltScene
from slidecast.schemas.scene_spec import SceneSpec
from slidecast.speech.synthesizer import SpeechResult, SpeechSynthesizer
from slidecast.store.artifact_store import ArtifactStore
from slidecast.store.fingerprint import ArtifactKind, fingerprint
from slidecast.text import PlainTextExtractor, TagStrippingExtractor

logger = logging.getLogger(__name__)

SCENE_EXT = "mp4"
NO_AUDIO_ID = "none"

# Ken Burns: zoom step per frame, and the upscale factor applied before
# zoompan so the motion does not jitter on integer pixel offsets.
_ZOOM_STEP = 0.001
_ZOOM_UPSCALE = 4

_AUDIO_SAMPLE_RATE = 44_100


class SceneBuilder:

    def __init__(
        self,
        store: ArtifactStore,
        runner: FFmpegRunner,
        fetcher: RemoteAssetFetcher,
        synthesizer: SpeechSynthesizer,
        silence: SilenceGenerator,
        extractor: Optional[PlainTextExtractor] = None,
        fps: int = 25,
        padding: float = 0.5,
        speech_failure_policy: Literal["silent", "raise"] = "silent",
    ) -> None:
        self.store = store
        self.runner = runner
        self.fetcher = fetcher
        self.synthesizer = synthesizer
        self.silence = silence
        self.extractor = extractor or TagStrippingExtractor()
        self.fps = fps
        self.padding = padding
        self.speech_failure_policy = speech_failure_policy

    # ------------------------------------------------------------------
    # Visuals
    # ------------------------------------------------------------------

    def placeholder(self) -> LocalAsset:
        self.store.initialize()
        path = generate_placeholder(self.store.root / PLACEHOLDER_FILENAME)
        return LocalAsset(reference="", path=path, content_id=PLACEHOLDER_VISUAL_ID)

    def resolve_visual(self, spec: SceneSpec) -> LocalAsset:
        """Local copy of the scene's visual (raises AssetResolutionError)."""
        if not spec.has_media:
            return self.placeholder()
        return self.fetcher.resolve(spec.media)

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(
        self,
        spec: SceneSpec,
        width: int,
        height: int,
        effect: bool = False,
        visual: Optional[LocalAsset] = None,
    ) -> BuiltScene:
        """
        Return the scene clip for *spec* on a width×height canvas.

        Args:
            spec:    Scene request (voice already merged with per-composition options).
            width:   Canvas width (even).
            height:  Canvas height (even).
            effect:  Apply the Ken Burns zoom to still visuals.
            visual:  Pre-resolved visual, when the caller already has it.

        Raises:
            AssetResolutionError: visual not found.
            EncodingError:        ffmpeg failed; nothing is committed.
            ExternalServiceError: speech failed and the policy is "raise".
        """
        if visual is None:
            visual = self.resolve_visual(spec)
        text = self.extractor.extract(spec.text)
        speech, degraded = self._speech_for(text.narration, spec)

        audio_duration = self.runner.probe_duration(speech.path) if speech else 0.0
        visual_duration = (
            0.0 if visual.content_id == PLACEHOLDER_VISUAL_ID
            else self.runner.probe_duration(visual.path)
        )
        duration = scene_duration(audio_duration, visual_duration, self.padding)

        key = fingerprint(
            ArtifactKind.SCENE,
            {
                "visual": visual.content_id,
                "audio": speech.key if speech else NO_AUDIO_ID,
                "width": width,
                "height": height,
                # zoompan only ever applies to stills
                "effect": bool(effect) and visual_duration == 0.0,
            },
        )
        with self.store.reserve(ArtifactKind.SCENE, key, SCENE_EXT) as res:
            if not res.exists:
                partial = res.partial_path()
                audio_list = res.partial_path("txt")
                self._write_audio_list(audio_list, speech, audio_duration)
                args = self._encode_args(
                    visual_path=visual.path,
                    still=visual_duration == 0.0,
                    audio_list=audio_list,
                    width=width,
                    height=height,
                    duration=duration,
                    effect=effect,
                    output=partial,
                )
                self.runner.run(args, output_path=partial)
                res.commit_file(partial)
                logger.info(
                    "Built scene %s (%dx%d, %.3fs, effect=%s)", key, width, height, duration, effect,
                )

        return BuiltScene(
            key=key,
            path=res.path,
            duration=duration,
            caption=text.caption,
            degraded=degraded,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _speech_for(self, narration: str, spec: SceneSpec) -> tuple[Optional[SpeechResult], bool]:
        """Synthesized narration, or (None, degraded) for a silent scene."""
        if not narration.strip():
            return None, False
        try:
            return self.synthesizer.synthesize(narration, spec.voice), False
        except QuotaExceededError as exc:
            logger.warning("Scene narration replaced by silence: %s", exc)
            return None, True
        except ExternalServiceError as exc:
            if self.speech_failure_policy == "raise":
                raise
            logger.warning("Speech synthesis failed, scene left silent: %s", exc)
            return None, True

    def _write_audio_list(
        self,
        list_path: Path,
        speech: Optional[SpeechResult],
        speech_duration: float,
    ) -> None:
        files: list[Path] = []
        durations: list[Optional[float]] = []
        pad = self.silence.make(self.padding) if self.padding > 0 else None
        if pad is not None:
            files.append(pad)
            durations.append(self.padding)
        if speech is not None:
            files.append(speech.path)
            durations.append(speech_duration or None)
        if pad is not None:
            files.append(pad)
            durations.append(self.padding)
        if not files:
            # No padding and no narration: one minimal silent clip so the
            # audio stream exists and every scene has the same layout.
            files.append(self.silence.make(0.1))
            durations.append(0.1)
        write_concat_list(list_path, files, durations)

    def _encode_args(
        self,
        visual_path: Path,
        still: bool,
        audio_list: Path,
        width: int,
        height: int,
        duration: float,
        effect: bool,
        output: Path,
    ) -> list[str]:
        fps = self.fps
        dur = f"{duration:.3f}"
        fit = (
            f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:black,"
            f"setsar=1"
        )

        if still and effect:
            frames = max(1, int(round(duration * fps)))
            video_input = ["-i", str(visual_path)]
            chain = (
                f"{fit},"
                f"scale={width * _ZOOM_UPSCALE}:{height * _ZOOM_UPSCALE},"
                f"zoompan=z='zoom+{_ZOOM_STEP}'"
                f":x='iw/2-(iw/zoom/2)':y='ih/2-(ih/zoom/2)'"
                f":d={frames}:s={width}x{height}:fps={fps},"
                f"setsar=1,format=yuv420p"
            )
        elif still:
            video_input = ["-loop", "1", "-framerate", str(fps), "-t", dur, "-i", str(visual_path)]
            chain = f"{fit},fps={fps},format=yuv420p"
        else:
            # Timed visual: loop it when the narration outlasts it.
            video_input = ["-stream_loop", "-1", "-t", dur, "-i", str(visual_path)]
            chain = f"{fit},fps={fps},format=yuv420p"

        return [
            "-y",
            *video_input,
            "-f", "concat", "-safe", "0", "-i", str(audio_list),
            "-filter_complex", f"[0:v]{chain}[v];[1:a]apad[a]",
            "-map", "[v]",
            "-map", "[a]",
            "-t", dur,
            "-c:v", "libx264",
            "-crf", "23",
            "-preset", "medium",
            "-pix_fmt", "yuv420p",
            "-r", str(fps),
            "-c:a", "aac",
            "-ar", str(_AUDIO_SAMPLE_RATE),
            "-ac", "1",
            "-fflags", "+bitexact",
            "-flags:v", "+bitexact",
            "-flags:a", "+bitexact",
            "-map_metadata", "-1",
            "-movflags", "+faststart",
            str(output),
        ]
