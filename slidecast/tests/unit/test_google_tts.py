"""
Unit tests for speech/google_tts.py.

TextToSpeechClient is replaced by a recording fake, so the tests check the
request the adapter builds (voice selection, encoding) and its error mapping
without network access or credentials.
"""
from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
from google.api_core import exceptions as api_exceptions
from google.cloud import texttospeech

from slidecast.errors import ExternalServiceError
from slidecast.speech.google_tts import GoogleSpeechClient
from slidecast.speech.synthesizer import SpeechRequest


class RecordingTTSClient:
    instances: list["RecordingTTSClient"] = []

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.calls: list[dict] = []
        self.error: Exception | None = None
        RecordingTTSClient.instances.append(self)

    def synthesize_speech(self, input, voice, audio_config):
        self.calls.append({"input": input, "voice": voice, "audio_config": audio_config})
        if self.error is not None:
            raise self.error
        return SimpleNamespace(audio_content=b"ID3mp3-bytes")


@pytest.fixture
def tts_client(monkeypatch: pytest.MonkeyPatch) -> type[RecordingTTSClient]:
    RecordingTTSClient.instances = []
    monkeypatch.setattr(texttospeech, "TextToSpeechClient", RecordingTTSClient)
    return RecordingTTSClient


class TestVoiceSelection:

    def test_female_with_name(self, tts_client):
        audio = GoogleSpeechClient().synthesize(
            SpeechRequest(text="Hello", language_code="en-US", gender=2, voice_name="en-US-X")
        )
        assert audio == b"ID3mp3-bytes"
        call = tts_client.instances[0].calls[0]
        assert call["input"].text == "Hello"
        assert call["voice"].language_code == "en-US"
        assert call["voice"].ssml_gender == texttospeech.SsmlVoiceGender.FEMALE
        assert call["voice"].name == "en-US-X"
        assert call["audio_config"].audio_encoding == texttospeech.AudioEncoding.MP3

    def test_male(self, tts_client):
        GoogleSpeechClient().synthesize(SpeechRequest(text="Hi", language_code="de-DE", gender=1))
        voice = tts_client.instances[0].calls[0]["voice"]
        assert voice.ssml_gender == texttospeech.SsmlVoiceGender.MALE

    def test_unset_gender_and_name_omitted(self, tts_client):
        GoogleSpeechClient().synthesize(SpeechRequest(text="Hi", language_code="en-GB"))
        voice = tts_client.instances[0].calls[0]["voice"]
        assert voice.ssml_gender == texttospeech.SsmlVoiceGender.SSML_VOICE_GENDER_UNSPECIFIED
        assert voice.name == ""


class TestClientLifecycle:

    def test_created_lazily_once(self, tts_client):
        client = GoogleSpeechClient()
        assert tts_client.instances == []
        client.synthesize(SpeechRequest(text="one", language_code="en-US"))
        client.synthesize(SpeechRequest(text="two", language_code="en-US"))
        assert len(tts_client.instances) == 1
        assert len(tts_client.instances[0].calls) == 2

    def test_missing_credentials_file(self, tts_client, tmp_path: Path):
        client = GoogleSpeechClient(credentials_path=tmp_path / "absent.json")
        with pytest.raises(ExternalServiceError):
            client.synthesize(SpeechRequest(text="Hi", language_code="en-US"))
        assert tts_client.instances == []


class TestServiceErrors:

    def test_api_error_wrapped(self, tts_client):
        client = GoogleSpeechClient()
        client.synthesize(SpeechRequest(text="warm up", language_code="en-US"))
        tts_client.instances[0].error = api_exceptions.ServiceUnavailable("backend down")
        with pytest.raises(ExternalServiceError, match="backend down"):
            client.synthesize(SpeechRequest(text="Hi", language_code="en-US"))
