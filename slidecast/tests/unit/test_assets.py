"""
Unit tests for assets/resolver.py and assets/remote.py.

No network: HTTP goes through FakeSession.
"""
from __future__ import annotations

from pathlib import Path

import pytest

from slidecast.assets.remote import CommonsImageInfoLookup, RemoteAssetFetcher
from slidecast.assets.resolver import DirectoryAssetResolver, strip_file_prefix
from slidecast.errors import AssetResolutionError
from slidecast.store.artifact_store import ArtifactStore
from slidecast.tests._fakes import FakeLookup, FakeResponse, FakeSession

API_URL = "https://commons.example.org/w/api.php"
IMAGE_URL = "https://upload.example.org/a/ab/Remote_cat.jpg"


class TestStripFilePrefix:

    @pytest.mark.parametrize("raw, expected", [
        ("File:Cat.jpg", "Cat.jpg"),
        ("image: Cat.jpg", "Cat.jpg"),
        ("  Cat.jpg ", "Cat.jpg"),
        ("Filet.jpg", "Filet.jpg"),
    ])
    def test_prefixes(self, raw: str, expected: str):
        assert strip_file_prefix(raw) == expected


class TestDirectoryAssetResolver:

    def test_finds_local_file(self, images_dir: Path):
        asset = DirectoryAssetResolver(images_dir).find("File:landscape.png")
        assert asset is not None
        assert asset.path == (images_dir / "landscape.png").resolve()
        assert asset.content_id.startswith("sha256:")

    def test_spaces_match_underscores(self, images_dir: Path):
        asset = DirectoryAssetResolver(images_dir).find("Sunset beach.png")
        assert asset is not None
        assert asset.path.name == "Sunset_beach.png"

    def test_content_id_is_stable(self, images_dir: Path):
        resolver = DirectoryAssetResolver(images_dir)
        assert resolver.find("square.png").content_id == DirectoryAssetResolver(images_dir).find("square.png").content_id

    def test_missing_is_none(self, images_dir: Path):
        assert DirectoryAssetResolver(images_dir).find("nope.png") is None

    def test_no_root_is_none(self):
        assert DirectoryAssetResolver(None).find("landscape.png") is None

    def test_escape_rejected(self, images_dir: Path):
        assert DirectoryAssetResolver(images_dir / "sub").find("../landscape.png") is None


class TestCommonsImageInfoLookup:

    def _session(self, payload: object, status: int = 200) -> FakeSession:
        return FakeSession({API_URL: FakeResponse(status=status, json_data=payload)})

    def test_returns_first_url(self):
        session = self._session(
            {"query": {"pages": [{"title": "File:Remote cat.jpg", "imageinfo": [{"url": IMAGE_URL}]}]}}
        )
        lookup = CommonsImageInfoLookup(API_URL, session, user_agent="slidecast-test/1.0")
        assert lookup.content_url("Remote cat.jpg") == IMAGE_URL

        sent = session.requests[0]
        assert sent["params"]["titles"] == "File:Remote cat.jpg"
        assert sent["params"]["prop"] == "imageinfo"
        assert sent["headers"]["User-Agent"] == "slidecast-test/1.0"

    def test_missing_page_is_none(self):
        session = self._session({"query": {"pages": [{"title": "File:X.jpg", "missing": True}]}})
        assert CommonsImageInfoLookup(API_URL, session, "ua").content_url("X.jpg") is None

    def test_http_error_raises(self):
        session = self._session({}, status=500)
        with pytest.raises(AssetResolutionError):
            CommonsImageInfoLookup(API_URL, session, "ua").content_url("X.jpg")


class TestRemoteAssetFetcher:

    def _fetcher(self, store: ArtifactStore, images_dir: Path, session: FakeSession) -> tuple[RemoteAssetFetcher, FakeLookup]:
        lookup = FakeLookup({"Remote cat.jpg": IMAGE_URL})
        fetcher = RemoteAssetFetcher(
            store=store,
            resolver=DirectoryAssetResolver(images_dir),
            lookup=lookup,
            session=session,
            user_agent="slidecast-test/1.0",
        )
        return fetcher, lookup

    def test_local_reference_skips_network(self, store: ArtifactStore, images_dir: Path):
        session = FakeSession()
        fetcher, lookup = self._fetcher(store, images_dir, session)
        asset = fetcher.resolve("landscape.png")
        assert asset.path.parent == images_dir.resolve()
        assert lookup.calls == []
        assert session.requests == []

    def test_remote_fetched_once(self, store: ArtifactStore, images_dir: Path):
        session = FakeSession({IMAGE_URL: FakeResponse(body=b"\xff\xd8jpeg-bytes")})
        fetcher, lookup = self._fetcher(store, images_dir, session)

        first = fetcher.resolve("File:Remote cat.jpg")
        second = fetcher.resolve("File:Remote cat.jpg")

        assert first.path == second.path
        assert first.path.parent.name == "remote"
        assert first.path.suffix == ".jpg"
        assert first.path.read_bytes() == b"\xff\xd8jpeg-bytes"
        assert first.content_id.startswith("remote:")
        assert len(session.requests) == 1
        assert session.requests[0]["headers"]["User-Agent"] == "slidecast-test/1.0"
        assert len(lookup.calls) == 1

    def test_unknown_reference_raises(self, store: ArtifactStore, images_dir: Path):
        fetcher, _ = self._fetcher(store, images_dir, FakeSession())
        with pytest.raises(AssetResolutionError):
            fetcher.resolve("Nowhere.jpg")

    def test_failed_download_caches_nothing(self, store: ArtifactStore, images_dir: Path):
        session = FakeSession({IMAGE_URL: FakeResponse(status=404)})
        fetcher, _ = self._fetcher(store, images_dir, session)
        with pytest.raises(AssetResolutionError):
            fetcher.resolve("Remote cat.jpg")
        assert list((store.root / "remote").iterdir()) == []

    def test_empty_body_rejected(self, store: ArtifactStore, images_dir: Path):
        session = FakeSession({IMAGE_URL: FakeResponse(body=b"")})
        fetcher, _ = self._fetcher(store, images_dir, session)
        with pytest.raises(AssetResolutionError):
            fetcher.resolve("Remote cat.jpg")
        assert list((store.root / "remote").iterdir()) == []
