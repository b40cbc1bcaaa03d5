"""
Fingerprints: stable artifact keys derived from normalized inputs.

normalize() is applied inside fingerprint(); callers pass raw payloads.

Normalization rules:
  - field names are trimmed and lower-cased
  - fields irrelevant to the artifact kind are dropped
  - fields whose value is None are dropped (unset == absent)
  - strings are trimmed, recursively inside lists and dicts
  - floats are rounded to millisecond precision
  - enums are replaced by their value
  - the result is serialised as canonical JSON (sorted keys, compact
    separators, UTF-8) so dict ordering never affects the hash

The key is the first 128 bits of SHA-256 over "<kind>\\n<canonical json>".
"""
from __future__ import annotations

import hashlib
import json
from enum import Enum
from typing import Any, Mapping


class ArtifactKind(str, Enum):
    SILENCE = "silence"
    SPEECH = "speech"
    REMOTE_ASSET = "remote-asset"
    SCENE = "scene"
    VIDEO = "video"
    TRACK = "track"


# Fields that determine the bytes of each artifact kind.
RELEVANT_FIELDS: dict[ArtifactKind, frozenset[str]] = {
    ArtifactKind.SILENCE: frozenset({"duration", "sample_rate"}),
    ArtifactKind.SPEECH: frozenset({"text", "language", "gender", "name"}),
    ArtifactKind.REMOTE_ASSET: frozenset({"reference"}),
    ArtifactKind.SCENE: frozenset({"visual", "audio", "width", "height", "effect"}),
    ArtifactKind.VIDEO: frozenset({"scenes"}),
    ArtifactKind.TRACK: frozenset({"captions", "durations"}),
}

KEY_HEX_LENGTH = 32


def normalize(kind: ArtifactKind | str, payload: Mapping[str, Any]) -> dict[str, Any]:
    """Return the canonical dict for *payload* under *kind*."""
    kind = ArtifactKind(kind)
    relevant = RELEVANT_FIELDS[kind]
    normalized: dict[str, Any] = {}
    for raw_name, value in payload.items():
        name = str(raw_name).strip().lower()
        if name not in relevant or value is None:
            continue
        normalized[name] = _normalize_value(value)
    return normalized


def canonical_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def fingerprint(kind: ArtifactKind | str, payload: Mapping[str, Any]) -> str:
    """Deterministic key for an artifact of *kind* built from *payload*."""
    kind = ArtifactKind(kind)
    blob = f"{kind.value}\n{canonical_json(normalize(kind, payload))}"
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()[:KEY_HEX_LENGTH]


def _normalize_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return _normalize_value(value.value)
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        rounded = round(value, 3)
        # 2.0 and 2 must hash alike
        return int(rounded) if rounded.is_integer() else rounded
    if isinstance(value, Mapping):
        return {
            str(k).strip().lower(): _normalize_value(v)
            for k, v in value.items()
            if v is not None
        }
    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]
    return value
