"""
Shared pytest fixtures for slidecast/tests/.

Provides:
  - deterministic test images (generated with Pillow, not committed binaries)
  - an artifact store in a per-test temp directory
  - fake encoder / speech / lookup / HTTP collaborators (see _fakes.py)
  - a Composer wired to those fakes
  - require_ffmpeg: skip-marker for tests that need the ffmpeg binary
"""
from __future__ import annotations

import subprocess
from pathlib import Path

import pytest
from PIL import Image

from slidecast.assets.resolver import DirectoryAssetResolver
from slidecast.config import Settings
from slidecast.pipeline import Composer
from slidecast.store.artifact_store import ArtifactStore
from slidecast.tests._fakes import FakeLookup, FakeRunner, FakeSession, FakeSpeechClient

# ---------------------------------------------------------------------------
# Test images
# ---------------------------------------------------------------------------

# name → (size, RGB)
IMAGES: dict[str, tuple[tuple[int, int], tuple[int, int, int]]] = {
    "landscape.png": ((800, 600), (200, 60, 60)),
    "portrait.png": ((400, 800), (60, 200, 60)),
    "square.png": ((200, 200), (60, 60, 200)),
    "Sunset_beach.png": ((320, 240), (230, 140, 40)),
}


@pytest.fixture(scope="session")
def images_dir(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Solid-colour PNGs in a session-scoped directory (the local asset repository)."""
    root = tmp_path_factory.mktemp("assets", numbered=False)
    for name, (size, color) in IMAGES.items():
        Image.new("RGB", size, color=color).save(
            str(root / name), format="PNG", compress_level=9, optimize=False,
        )
    return root


# ---------------------------------------------------------------------------
# Store + collaborators
# ---------------------------------------------------------------------------

@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def store(cache_root: Path) -> ArtifactStore:
    s = ArtifactStore(cache_root)
    s.initialize()
    return s


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_speech() -> FakeSpeechClient:
    return FakeSpeechClient()


@pytest.fixture
def fake_lookup() -> FakeLookup:
    return FakeLookup()


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def settings(cache_root: Path, images_dir: Path) -> Settings:
    return Settings(
        cache_root=cache_root,
        asset_dir=images_dir,
        min_size=100,
        max_size=720,
        tts_max_chars=10_000,
    )


@pytest.fixture
def composer(
    settings: Settings,
    images_dir: Path,
    fake_runner: FakeRunner,
    fake_speech: FakeSpeechClient,
    fake_lookup: FakeLookup,
    fake_session: FakeSession,
) -> Composer:
    return Composer.from_settings(
        settings,
        runner=fake_runner,
        speech_client=fake_speech,
        resolver=DirectoryAssetResolver(images_dir),
        lookup=fake_lookup,
        session=fake_session,
    )


# ---------------------------------------------------------------------------
# FFmpeg availability check
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def require_ffmpeg():
    """Skip the test if ffmpeg / ffprobe are not available on PATH."""
    for binary in ("ffmpeg", "ffprobe"):
        try:
            result = subprocess.run([binary, "-version"], capture_output=True, timeout=5)
        except (FileNotFoundError, subprocess.TimeoutExpired):
            pytest.skip(f"{binary} not available; skipping render test.")
        if result.returncode != 0:
            pytest.skip(f"{binary} not available; skipping render test.")
