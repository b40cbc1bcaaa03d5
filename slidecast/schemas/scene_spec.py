"""
SceneSpec: one (media reference, narration text) pair of a composition.

A composition request is an ordered list of SceneSpecs.  The list is
ephemeral; everything derived from it is cached by fingerprint.

  media   empty → blank placeholder visual
          otherwise a local asset identifier or a remote reference
  text    narration markup; empty → silent scene
  voice   per-scene voice selection; unset fields fall back to the
          process-wide defaults (see VoiceConfig.with_defaults)
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Gender(str, Enum):
    UNSPECIFIED = "unspecified"
    MALE = "male"
    FEMALE = "female"

    @property
    def ssml_code(self) -> Optional[int]:
        """Numeric gender understood by the speech service; None = omit."""
        return _SSML_GENDER.get(self)

    @classmethod
    def parse(cls, raw: object) -> "Gender":
        if isinstance(raw, Gender):
            return raw
        if raw is None:
            return cls.UNSPECIFIED
        value = str(raw).strip().lower()
        if not value:
            return cls.UNSPECIFIED
        return cls(value)


_SSML_GENDER: dict[Gender, int] = {
    Gender.MALE: 1,
    Gender.FEMALE: 2,
}


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class VoiceConfig(BaseModel):
    """Voice selection.  All fields optional; empty strings count as unset."""
    model_config = ConfigDict(frozen=True)

    language: Optional[str] = None
    gender: Gender = Gender.UNSPECIFIED
    name: Optional[str] = None

    @field_validator("language", "name", mode="before")
    @classmethod
    def _strip(cls, value: Optional[str]) -> Optional[str]:
        return _clean(value)

    @field_validator("gender", mode="before")
    @classmethod
    def _parse_gender(cls, value: object) -> Gender:
        return Gender.parse(value)

    def with_defaults(self, default: "VoiceConfig") -> "VoiceConfig":
        """Return a copy where every unset field is taken from *default*."""
        return VoiceConfig(
            language=self.language or default.language,
            gender=(
                self.gender
                if self.gender is not Gender.UNSPECIFIED
                else default.gender
            ),
            name=self.name or default.name,
        )


class SceneSpec(BaseModel):
    """Immutable scene request: optional media, optional narration, voice."""
    model_config = ConfigDict(frozen=True)

    media: Optional[str] = None
    text: str = ""
    voice: VoiceConfig = Field(default_factory=VoiceConfig)

    @field_validator("media", mode="before")
    @classmethod
    def _strip_media(cls, value: Optional[str]) -> Optional[str]:
        return _clean(value)

    @field_validator("text", mode="before")
    @classmethod
    def _strip_text(cls, value: Optional[str]) -> str:
        return (value or "").strip()

    @property
    def has_media(self) -> bool:
        return self.media is not None

    @property
    def has_text(self) -> bool:
        return bool(self.text)
