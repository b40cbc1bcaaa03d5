#!/usr/bin/env python3
"""
slidecast: command-line entry point.

Subcommands
-----------
  slidecast compose SCENES.json   Build (or reuse) the video + caption track,
                                  print the CompositionResult JSON
  slidecast prune                 Evict artifacts unused for N days
  slidecast budget                Show the speech character budget

Every subcommand returns 0 on success and 1 on failure, with
``ERROR: <message>`` on stderr.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter

from slidecast.config import VERSION, Settings
from slidecast.pipeline import Composer
from slidecast.schemas.scene_spec import SceneSpec
from slidecast.schemas.video_options import VideoOptions
from slidecast.store.artifact_store import ArtifactStore
from slidecast.store.budget import CharacterBudget

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 86_400

_SCENE_LIST = TypeAdapter(list[SceneSpec])


# =============================================================================
# Shared helpers
# =============================================================================

def _load_settings(config_path: Optional[Path], cache_dir: Optional[Path]) -> Settings:
    settings = Settings.load(config_path)
    if cache_dir is not None:
        settings = settings.model_copy(update={"cache_root": cache_dir})
    return settings


def load_scenes(path: Path) -> list[SceneSpec]:
    """Read a scene list: a JSON array of {media, text, voice} objects.

    A JSON object with a "scenes" key is accepted too.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("scenes", [])
    return _SCENE_LIST.validate_python(raw)


def parse_options(raw: Optional[str]) -> VideoOptions:
    """--options value: inline JSON, or @path to a JSON file."""
    if not raw:
        return VideoOptions()
    if raw.startswith("@"):
        raw = Path(raw[1:]).read_text(encoding="utf-8")
    return VideoOptions.model_validate(json.loads(raw))


# =============================================================================
# Subcommands
# =============================================================================

def cmd_compose(
    scenes_path: Path,
    options: Optional[str] = None,
    config_path: Optional[Path] = None,
    cache_dir: Optional[Path] = None,
) -> int:
    """Compose SCENES.json; print CompositionResult JSON on success."""
    try:
        settings = _load_settings(config_path, cache_dir)
        specs = load_scenes(scenes_path)
        video_options = parse_options(options)
        result = Composer.from_settings(settings).compose(specs, video_options)
    except Exception as exc:  # noqa: BLE001
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(result.model_dump_json(indent=2))
    if result.degraded:
        print(
            f"WARNING: narration missing for scene(s) {result.degraded_scenes}",
            file=sys.stderr,
        )
    return 0


def cmd_prune(
    older_than_days: float,
    config_path: Optional[Path] = None,
    cache_dir: Optional[Path] = None,
) -> int:
    """Delete artifacts not used for *older_than_days* days (remote/ is kept)."""
    if older_than_days < 0:
        print("ERROR: --older-than-days must be >= 0", file=sys.stderr)
        return 1
    try:
        settings = _load_settings(config_path, cache_dir)
        removed = ArtifactStore(settings.cache_root).evict(older_than_days * _SECONDS_PER_DAY)
    except Exception as exc:  # noqa: BLE001
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(json.dumps({"removed": len(removed), "paths": [str(p) for p in removed]}, indent=2))
    return 0


def cmd_budget(
    config_path: Optional[Path] = None,
    cache_dir: Optional[Path] = None,
) -> int:
    try:
        settings = _load_settings(config_path, cache_dir)
        budget = CharacterBudget(ArtifactStore(settings.cache_root), limit=settings.tts_max_chars)
        used = budget.used
    except Exception as exc:  # noqa: BLE001
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(
        {"used": used, "limit": budget.limit, "remaining": max(0, budget.limit - used)},
        indent=2,
    ))
    return 0


# =============================================================================
# CLI entry point
# =============================================================================

def main(argv: Optional[list[str]] = None) -> None:
    # Shared by every subcommand so they may follow it on the command line.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    common.add_argument(
        "--config", type=Path, default=None, metavar="FILE",
        help="JSON settings file (SLIDECAST_* environment variables override it)",
    )
    common.add_argument(
        "--cache-dir", type=Path, default=None, metavar="DIR",
        help="Artifact store root (overrides cache_root)",
    )
    parser = argparse.ArgumentParser(
        prog="slidecast",
        description="slidecast: cached narrated-slideshow video composer",
    )
    parser.add_argument("--version", action="version", version=f"slidecast {VERSION}")
    sub = parser.add_subparsers(dest="command", required=True)

    # ── slidecast compose ────────────────────────────────────────────────────
    compose_parser = sub.add_parser(
        "compose",
        parents=[common],
        help="Compose scenes → video + WebVTT track, print the result JSON",
    )
    compose_parser.add_argument(
        "scenes", type=Path, metavar="SCENES.json",
        help='JSON array of {"media": ..., "text": ..., "voice": {...}} objects',
    )
    compose_parser.add_argument(
        "--options", default=None, metavar="JSON",
        help='Video options as inline JSON or @file (e.g. \'{"ken-burns-effect": true}\')',
    )

    # ── slidecast prune ──────────────────────────────────────────────────────
    prune_parser = sub.add_parser("prune", parents=[common], help="Evict artifacts unused for N days")
    prune_parser.add_argument(
        "--older-than-days", type=float, required=True, metavar="N",
        help="Last-use age above which artifacts are deleted",
    )

    # ── slidecast budget ─────────────────────────────────────────────────────
    sub.add_parser("budget", parents=[common], help="Show speech character budget usage")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "compose":
        sys.exit(cmd_compose(
            args.scenes,
            options=args.options,
            config_path=args.config,
            cache_dir=args.cache_dir,
        ))
    elif args.command == "prune":
        sys.exit(cmd_prune(
            args.older_than_days, config_path=args.config, cache_dir=args.cache_dir,
        ))
    elif args.command == "budget":
        sys.exit(cmd_budget(config_path=args.config, cache_dir=args.cache_dir))


if __name__ == "__main__":
    main()
