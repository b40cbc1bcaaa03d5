"""
Process-wide settings.

Settings are a pydantic model so a JSON config file and SLIDECAST_* environment
variables are validated the same way.  Precedence when both are used:
environment > file > defaults (see Settings.load).
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, Field, model_validator

from slidecast.schemas.scene_spec import Gender, VoiceConfig

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

ENV_PREFIX = "SLIDECAST_"


class Settings(BaseModel):
    cache_root: Path = Path("slidecast-cache")
    asset_dir: Optional[Path] = None
    public_base_url: Optional[str] = None

    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    encode_timeout: int = Field(default=600, gt=0)

    min_size: int = Field(default=100, gt=0)
    max_size: int = Field(default=1280, gt=0)
    silence_padding: float = Field(default=0.5, ge=0)
    scene_fps: int = Field(default=25, gt=0)
    # Google TTS MP3 output is 24 kHz mono; silence must match for the
    # concat demuxer to join the pieces.
    audio_sample_rate: int = 24_000

    default_voice_language: str = "en-US"
    default_voice_gender: Gender = Gender.UNSPECIFIED
    default_voice_name: Optional[str] = None

    tts_max_chars: int = Field(default=1_000_000, ge=0)
    speech_failure_policy: Literal["silent", "raise"] = "silent"
    google_credentials_path: Optional[Path] = None

    user_agent: str = f"slidecast/{VERSION}"
    commons_api_url: str = "https://commons.wikimedia.org/w/api.php"
    http_timeout: float = Field(default=30.0, gt=0)

    @model_validator(mode="after")
    def _check_size_range(self) -> "Settings":
        if self.min_size > self.max_size:
            raise ValueError(
                f"min_size ({self.min_size}) exceeds max_size ({self.max_size})"
            )
        return self

    def default_voice(self) -> VoiceConfig:
        return VoiceConfig(
            language=self.default_voice_language,
            gender=self.default_voice_gender,
            name=self.default_voice_name,
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_file(cls, path: Path) -> "Settings":
        """Load settings from a JSON file; raise on a missing file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"missing config file: {path}")
        return cls.model_validate_json(path.read_text(encoding="utf-8"))

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        base: Optional["Settings"] = None,
    ) -> "Settings":
        """Overlay SLIDECAST_<FIELD> environment variables onto *base*."""
        environ = os.environ if environ is None else environ
        data = base.model_dump() if base is not None else {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is not None:
                data[name] = raw
        return cls.model_validate(data)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        base = cls.from_file(config_path) if config_path else None
        settings = cls.from_env(base=base)
        logger.debug("Settings loaded: %s", json.dumps(settings.model_dump(mode="json")))
        return settings
