"""
Composer: the composition entry point.

compose(specs, options) runs synchronously on the calling thread:

  specs ──► VideoAssembler ──► scenes (SceneBuilder per spec) ──► video
                     │
                     └─ scene durations + captions ──► TrackBuilder ──► track

and returns a CompositionResult for the presentation layer: video/track
paths and URLs, canvas, chapter list, player attributes, and the degraded
flag (some narration was replaced by silence).

AssetResolutionError, EncodingError and CacheIOError propagate; nothing
partial is ever committed, so a failed composition leaves only finished,
reusable artifacts behind.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import requests

from slidecast.assets.remote import CommonsImageInfoLookup, MetadataLookup, RemoteAssetFetcher
from slidecast.assets.resolver import AssetResolver, DirectoryAssetResolver
from slidecast.config import Settings
from slidecast.errors import AssetResolutionError, InputError
from slidecast.renderer.assembler import VideoAssembler
from slidecast.renderer.captions import TrackBuilder
from slidecast.renderer.ffmpeg_runner import FFmpegRunner
from slidecast.renderer.scene import SceneBuilder
from slidecast.renderer.silence import SilenceGenerator
from slidecast.renderer.timeline import build_chapters
from slidecast.schemas.composition import (
    AssembledVideo,
    Canvas,
    CompositionResult,
    PlayerAttributes,
)
from slidecast.schemas.scene_spec import SceneSpec
from slidecast.schemas.video_options import VideoOptions
from slidecast.speech.google_tts import GoogleSpeechClient
from slidecast.speech.synthesizer import SpeechClient, SpeechSynthesizer
from slidecast.store.artifact_store import ArtifactStore
from slidecast.store.budget import CharacterBudget
from slidecast.text import PlainTextExtractor

logger = logging.getLogger(__name__)


class Composer:

    def __init__(
        self,
        settings: Settings,
        store: ArtifactStore,
        fetcher: RemoteAssetFetcher,
        assembler: VideoAssembler,
        tracks: TrackBuilder,
        budget: CharacterBudget,
    ) -> None:
        self.settings = settings
        self.store = store
        self.fetcher = fetcher
        self.assembler = assembler
        self.tracks = tracks
        self.budget = budget

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        runner: Optional[FFmpegRunner] = None,
        speech_client: Optional[SpeechClient] = None,
        resolver: Optional[AssetResolver] = None,
        lookup: Optional[MetadataLookup] = None,
        session: Optional[requests.Session] = None,
        extractor: Optional[PlainTextExtractor] = None,
    ) -> "Composer":
        """Wire the default collaborators; any of them can be replaced."""
        store = ArtifactStore(settings.cache_root)
        store.initialize()
        runner = runner or FFmpegRunner(
            ffmpeg=settings.ffmpeg_path,
            ffprobe=settings.ffprobe_path,
            timeout=settings.encode_timeout,
        )
        session = session or requests.Session()
        resolver = resolver or DirectoryAssetResolver(settings.asset_dir)
        lookup = lookup or CommonsImageInfoLookup(
            api_url=settings.commons_api_url,
            session=session,
            user_agent=settings.user_agent,
            timeout=settings.http_timeout,
        )
        fetcher = RemoteAssetFetcher(
            store=store,
            resolver=resolver,
            lookup=lookup,
            session=session,
            user_agent=settings.user_agent,
            timeout=settings.http_timeout,
        )
        budget = CharacterBudget(store, limit=settings.tts_max_chars)
        synthesizer = SpeechSynthesizer(
            store=store,
            budget=budget,
            client=speech_client or GoogleSpeechClient(settings.google_credentials_path),
            default_voice=settings.default_voice(),
        )
        scenes = SceneBuilder(
            store=store,
            runner=runner,
            fetcher=fetcher,
            synthesizer=synthesizer,
            silence=SilenceGenerator(store, runner, sample_rate=settings.audio_sample_rate),
            extractor=extractor,
            fps=settings.scene_fps,
            padding=settings.silence_padding,
            speech_failure_policy=settings.speech_failure_policy,
        )
        assembler = VideoAssembler(
            store=store,
            runner=runner,
            scenes=scenes,
            min_size=settings.min_size,
            max_size=settings.max_size,
        )
        return cls(
            settings=settings,
            store=store,
            fetcher=fetcher,
            assembler=assembler,
            tracks=TrackBuilder(store),
            budget=budget,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compose(
        self,
        specs: Sequence[SceneSpec],
        options: Optional[VideoOptions] = None,
    ) -> CompositionResult:
        """
        Build (or reuse) the video and caption track for *specs*.

        Raises:
            InputError:           *specs* is empty.
            AssetResolutionError: a visual cannot be resolved.
            EncodingError:        an encoder run failed.
            CacheIOError:         the artifact store is not usable.
        """
        if not specs:
            raise InputError("a composition needs at least one scene")
        options = options or VideoOptions()

        video = self.assembler.assemble(specs, options)
        track = self.tracks.build(
            [s.caption for s in video.scenes],
            [s.duration for s in video.scenes],
        )
        degraded_scenes = [i for i, s in enumerate(video.scenes) if s.degraded]
        if degraded_scenes:
            logger.warning(
                "Composition %s is degraded: scene(s) %s have no narration",
                video.key, degraded_scenes,
            )

        canvas = Canvas(width=video.width, height=video.height)
        logger.info(
            "Composed video %s (%dx%d, %.3fs, %d scene(s))",
            video.key, canvas.width, canvas.height, video.duration, len(video.scenes),
        )
        return CompositionResult(
            video_key=video.key,
            video_path=str(video.path),
            video_url=self.artifact_url(video.path),
            track_key=track.key,
            track_path=str(track.path),
            track_url=self.artifact_url(track.path),
            canvas=canvas,
            duration=round(video.duration, 3),
            chapters=build_chapters(track.cues),
            player=self.player_attributes(video, specs, options),
            scene_keys=[s.key for s in video.scenes],
            degraded=bool(degraded_scenes),
            degraded_scenes=degraded_scenes,
        )

    def artifact_url(self, path: Path) -> str:
        """Public URL under public_base_url when the file is in the store, else a file:// URI."""
        path = Path(path).resolve()
        base = self.settings.public_base_url
        if base and path.is_relative_to(self.store.root):
            return base.rstrip("/") + "/" + path.relative_to(self.store.root).as_posix()
        return path.as_uri()

    def player_attributes(
        self,
        video: AssembledVideo,
        specs: Sequence[SceneSpec],
        options: VideoOptions,
    ) -> PlayerAttributes:
        landscape = video.width >= video.height
        width: Union[int, str] = options.width or (video.width if landscape else "auto")
        height: Union[int, str] = options.height or (video.height if not landscape else "auto")
        return PlayerAttributes(
            width=width,
            height=height,
            controls=options.controls,
            autoplay=options.autoplay,
            captions=options.captions,
            chapters=options.chapters,
            poster=self.poster_url(specs, options),
        )

    def poster_url(self, specs: Sequence[SceneSpec], options: VideoOptions) -> Optional[str]:
        """Poster option, else the first scene with media; None when neither resolves."""
        reference = options.poster or next((s.media for s in specs if s.has_media), None)
        if reference is None:
            return None
        try:
            asset = self.fetcher.resolve(reference)
        except AssetResolutionError as exc:
            logger.warning("Poster %r not available: %s", reference, exc)
            return None
        return self.artifact_url(asset.path)
