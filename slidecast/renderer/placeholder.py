"""
Placeholder visual for scenes without media.

One fixed 1×1 black PNG per store, shared by every blank scene; the scene
builder scales and pads it to the canvas like any other visual.  Its visual
id is the constant PLACEHOLDER_VISUAL_ID so blank scenes fingerprint
identically regardless of where the store lives.

No ffmpeg dependency, Pillow only.
"""
from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path

from PIL import Image

logger = logging.getLogger(__name__)

PLACEHOLDER_VISUAL_ID = "placeholder:black-pixel"
PLACEHOLDER_FILENAME = "black-pixel.png"
PLACEHOLDER_SIZE = (1, 1)
PLACEHOLDER_RGB = (0, 0, 0)


def generate_placeholder(output_path: Path) -> Path:
    """
    Write the placeholder PNG to *output_path* unless it already exists.

    Same Pillow version → bit-identical PNG.
    """
    output_path = Path(output_path)
    if output_path.exists():
        return output_path

    img = Image.new("RGB", PLACEHOLDER_SIZE, color=PLACEHOLDER_RGB)

    # Written beside the target and renamed so a concurrent reader never
    # opens a truncated PNG.
    output_path.parent.mkdir(parents=True, exist_ok=True)
    partial = output_path.with_name(f".{output_path.stem}.{uuid.uuid4().hex[:12]}.png")
    img.save(str(partial), format="PNG", compress_level=9, optimize=False)
    os.replace(partial, output_path)
    logger.debug("Generated placeholder: %s", output_path)
    return output_path
