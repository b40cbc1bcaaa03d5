"""
Speech synthesis with fingerprint caching and a character budget.

synthesize(text, voice):
  - blank text is never synthesized (the scene is silent) → None
  - the voice is completed from the process defaults, then
    key = fingerprint("speech", {text, language, gender, name})
  - cache hit → no network call, no budget spent
  - miss → budget.try_consume(len(text)) BEFORE the request (may raise
    QuotaExceededError), then one request to the speech client, then an
    atomic commit of the MP3 bytes

Concurrent callers asking for the same key wait on the store reservation,
so the paid request is made once.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol

from pydantic import BaseModel

from slidecast.errors import ExternalServiceError
from slidecast.schemas.scene_spec import VoiceConfig
from slidecast.store.artifact_store import ArtifactStore
from slidecast.store.budget import CharacterBudget
from slidecast.store.fingerprint import ArtifactKind, fingerprint

logger = logging.getLogger(__name__)

SPEECH_EXT = "mp3"


class SpeechRequest(BaseModel):
    text: str
    language_code: str
    gender: Optional[int] = None     # 1 = male, 2 = female, None = omitted
    voice_name: Optional[str] = None
    encoding: str = "mp3"


class SpeechClient(Protocol):
    def synthesize(self, request: SpeechRequest) -> bytes:
        """Return encoded audio; raise ExternalServiceError on failure."""
        ...


class SpeechResult(BaseModel):
    key: str
    path: Path


class SpeechSynthesizer:

    def __init__(
        self,
        store: ArtifactStore,
        budget: CharacterBudget,
        client: Optional[SpeechClient],
        default_voice: VoiceConfig,
    ) -> None:
        self.store = store
        self.budget = budget
        self.client = client
        self.default_voice = default_voice

    def resolve_voice(self, voice: VoiceConfig) -> VoiceConfig:
        return voice.with_defaults(self.default_voice)

    def speech_key(self, text: str, voice: VoiceConfig) -> str:
        resolved = self.resolve_voice(voice)
        return fingerprint(
            ArtifactKind.SPEECH,
            {
                "text": text,
                "language": resolved.language,
                "gender": resolved.gender.ssml_code,
                "name": resolved.name,
            },
        )

    def synthesize(self, text: str, voice: VoiceConfig) -> Optional[SpeechResult]:
        """
        Return the cached or freshly synthesized speech for *text*.

        Raises:
            QuotaExceededError:   budget would be exceeded (no request made).
            ExternalServiceError: the speech service failed or no client is set.
        """
        text = text.strip()
        if not text:
            return None

        resolved = self.resolve_voice(voice)
        key = self.speech_key(text, resolved)

        with self.store.reserve(ArtifactKind.SPEECH, key, SPEECH_EXT) as res:
            if res.exists:
                return SpeechResult(key=key, path=res.path)

            if self.client is None:
                raise ExternalServiceError("no speech client configured")
            if not resolved.language:
                raise ExternalServiceError("no voice language configured")

            self.budget.try_consume(len(text))
            request = SpeechRequest(
                text=text,
                language_code=resolved.language,
                gender=resolved.gender.ssml_code,
                voice_name=resolved.name,
            )
            logger.info(
                "Synthesizing %d chars (language=%s gender=%s name=%s)",
                len(text), request.language_code, request.gender, request.voice_name,
            )
            audio = self.client.synthesize(request)
            if not audio:
                raise ExternalServiceError("speech service returned no audio")
            path = res.commit(audio)
            return SpeechResult(key=key, path=path)
