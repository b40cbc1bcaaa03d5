"""
Google Cloud Text-to-Speech adapter for SpeechSynthesizer.

Credentials are opaque to the pipeline: either a service-account JSON path
or, when None, Application Default Credentials.  The API client is created
on the first request, so a composition without narration (or served fully
from cache) never needs credentials.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Optional

from slidecast.errors import ExternalServiceError
from slidecast.speech.synthesizer import SpeechRequest

logger = logging.getLogger(__name__)

_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


class GoogleSpeechClient:

    def __init__(self, credentials_path: Optional[Path] = None) -> None:
        self.credentials_path = credentials_path
        self._client: Any = None
        self._tts: Any = None
        self._lock = threading.Lock()

    def _ensure_client(self) -> None:
        with self._lock:
            if self._client is not None:
                return
            try:
                from google.cloud import texttospeech
            except ImportError as exc:
                raise ExternalServiceError(
                    "google-cloud-texttospeech is required for speech synthesis"
                ) from exc
            from google.auth import exceptions as auth_exceptions

            client_kwargs: dict[str, Any] = {}
            try:
                if self.credentials_path:
                    from google.oauth2 import service_account

                    client_kwargs["credentials"] = service_account.Credentials.from_service_account_file(
                        str(self.credentials_path), scopes=_SCOPES,
                    )
                    logger.info("Using service account credentials for TTS path=%s", self.credentials_path)
                self._client = texttospeech.TextToSpeechClient(**client_kwargs)
            except (auth_exceptions.GoogleAuthError, OSError, ValueError) as exc:
                raise ExternalServiceError(f"cannot create Google TTS client: {exc}") from exc
            self._tts = texttospeech

    def synthesize(self, request: SpeechRequest) -> bytes:
        self._ensure_client()
        from google.api_core import exceptions as api_exceptions

        tts = self._tts
        voice_kwargs: dict[str, Any] = {"language_code": request.language_code}
        if request.gender is not None:
            voice_kwargs["ssml_gender"] = tts.SsmlVoiceGender(request.gender)
        if request.voice_name:
            voice_kwargs["name"] = request.voice_name

        try:
            response = self._client.synthesize_speech(
                input=tts.SynthesisInput(text=request.text),
                voice=tts.VoiceSelectionParams(**voice_kwargs),
                audio_config=tts.AudioConfig(audio_encoding=tts.AudioEncoding.MP3),
            )
        except api_exceptions.GoogleAPIError as exc:
            raise ExternalServiceError(f"Google TTS request failed: {exc}") from exc
        return response.audio_content
