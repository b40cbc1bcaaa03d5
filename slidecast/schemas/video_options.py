"""
VideoOptions: the closed set of per-composition options.

Option keys are accepted in either hyphenated ("voice-language") or
snake_case form; keys are trimmed and lower-cased and empty values are
treated as unset before validation.  Unknown keys are rejected.

  width / height     display size override; None → derived from the canvas
  controls           show player controls                      (True)
  autoplay           start playback on load                    (False)
  captions           caption track enabled by default          (False)
  chapters           show chapter navigation                   (False)
  voice-language     BCP-47 code; None → process default
  voice-gender       male | female | unspecified; None → process default
  voice-name         speech-service voice name; None → process default
  ken-burns-effect   slow zoom/pan over every scene (slow)     (False)
  poster             media reference for the poster frame; None → first media
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from slidecast.schemas.scene_spec import Gender, VoiceConfig


class VideoOptions(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
    )

    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)
    controls: bool = True
    autoplay: bool = False
    captions: bool = False
    chapters: bool = False
    voice_language: Optional[str] = Field(default=None, alias="voice-language")
    voice_gender: Optional[Gender] = Field(default=None, alias="voice-gender")
    voice_name: Optional[str] = Field(default=None, alias="voice-name")
    ken_burns_effect: bool = Field(default=False, alias="ken-burns-effect")
    poster: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            name = str(key).strip().lower()
            if isinstance(value, str):
                value = value.strip()
                if not value:
                    continue
            if name == "voice-gender" or name == "voice_gender":
                value = Gender.parse(value)
            normalized[name] = value
        return normalized

    def voice(self) -> VoiceConfig:
        """Voice selection carried by these options (unset fields stay unset)."""
        return VoiceConfig(
            language=self.voice_language,
            gender=self.voice_gender or Gender.UNSPECIFIED,
            name=self.voice_name,
        )
