"""
Unit tests for cli.py: argument handling, input parsing, exit codes.

compose is only exercised on failure paths here; the full command runs
against real ffmpeg in integration/test_compose_ffmpeg.py.
"""
from __future__ import annotations

import json
import os
import time
from pathlib import Path

import pytest

from slidecast.cli import cmd_budget, cmd_compose, cmd_prune, load_scenes, main, parse_options
from slidecast.store.artifact_store import ArtifactStore
from slidecast.store.budget import CharacterBudget
from slidecast.store.fingerprint import ArtifactKind


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in list(os.environ):
        if name.startswith("SLIDECAST_"):
            monkeypatch.delenv(name)


class TestInputs:

    def test_load_scenes_array(self, tmp_path: Path):
        path = tmp_path / "scenes.json"
        path.write_text(json.dumps([
            {"media": "landscape.png", "text": "Hello"},
            {"text": "Silent visual-less", "voice": {"gender": "female"}},
        ]), encoding="utf-8")
        specs = load_scenes(path)
        assert [s.media for s in specs] == ["landscape.png", None]
        assert specs[1].voice.gender.value == "female"

    def test_load_scenes_object(self, tmp_path: Path):
        path = tmp_path / "scenes.json"
        path.write_text(json.dumps({"scenes": [{"media": "a.png"}]}), encoding="utf-8")
        assert load_scenes(path)[0].media == "a.png"

    def test_parse_options_inline(self):
        assert parse_options('{"ken-burns-effect": true}').ken_burns_effect is True

    def test_parse_options_file(self, tmp_path: Path):
        path = tmp_path / "options.json"
        path.write_text('{"autoplay": true}', encoding="utf-8")
        assert parse_options(f"@{path}").autoplay is True

    def test_parse_options_empty(self):
        assert parse_options(None).controls is True


class TestCompose:

    def test_missing_scene_file(self, tmp_path: Path, capsys: pytest.CaptureFixture):
        rc = cmd_compose(tmp_path / "absent.json", cache_dir=tmp_path / "cache")
        assert rc == 1
        assert capsys.readouterr().err.startswith("ERROR:")

    def test_empty_scene_list(self, tmp_path: Path, capsys: pytest.CaptureFixture):
        path = tmp_path / "scenes.json"
        path.write_text("[]", encoding="utf-8")
        rc = cmd_compose(path, cache_dir=tmp_path / "cache")
        assert rc == 1
        assert "at least one scene" in capsys.readouterr().err

    def test_bad_option(self, tmp_path: Path, capsys: pytest.CaptureFixture):
        path = tmp_path / "scenes.json"
        path.write_text('[{"text": "x"}]', encoding="utf-8")
        rc = cmd_compose(path, options='{"loop": true}', cache_dir=tmp_path / "cache")
        assert rc == 1
        assert "ERROR:" in capsys.readouterr().err

    def test_missing_config(self, tmp_path: Path, capsys: pytest.CaptureFixture):
        path = tmp_path / "scenes.json"
        path.write_text('[{"text": "x"}]', encoding="utf-8")
        rc = cmd_compose(path, config_path=tmp_path / "nope.json")
        assert rc == 1
        assert "missing config file" in capsys.readouterr().err


class TestBudget:

    def test_reports_usage(self, tmp_path: Path, capsys: pytest.CaptureFixture):
        cache = tmp_path / "cache"
        CharacterBudget(ArtifactStore(cache), limit=1_000_000).try_consume(42)
        assert cmd_budget(cache_dir=cache) == 0
        report = json.loads(capsys.readouterr().out)
        assert report == {"used": 42, "limit": 1_000_000, "remaining": 999_958}


class TestPrune:

    def test_removes_stale(self, tmp_path: Path, capsys: pytest.CaptureFixture):
        cache = tmp_path / "cache"
        store = ArtifactStore(cache)
        stale = store.commit(ArtifactKind.SCENE, "old", "mp4", b"clip")
        fresh = store.commit(ArtifactKind.SCENE, "new", "mp4", b"clip")
        old = time.time() - 3 * 86_400
        os.utime(stale, (old, old))

        assert cmd_prune(2, cache_dir=cache) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["removed"] == 1
        assert not stale.exists()
        assert fresh.exists()

    def test_negative_age_rejected(self, tmp_path: Path):
        assert cmd_prune(-1, cache_dir=tmp_path / "cache") == 1


class TestMain:

    def test_budget_subcommand_exit_code(self, tmp_path: Path, capsys: pytest.CaptureFixture):
        with pytest.raises(SystemExit) as excinfo:
            main(["budget", "--cache-dir", str(tmp_path / "cache")])
        assert excinfo.value.code == 0
        assert json.loads(capsys.readouterr().out)["used"] == 0

    def test_subcommand_required(self):
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 2
