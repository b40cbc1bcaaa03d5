"""
FFmpeg / ffprobe runner.

Every encoder invocation goes through FFmpegRunner so the pipeline can be
driven by a fake in tests.  A run is only successful when ffmpeg exits 0
AND the expected output file exists and is non-empty; anything else raises
an EncodingError subclass and the caller never commits the output.

Required ffmpeg version: >= 6.0 (libx264, aac, libmp3lame, concat demuxer).
"""
from __future__ import annotations

import logging
import os
import re
import signal
import subprocess
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from slidecast.errors import CacheIOError, EncodingError

logger = logging.getLogger(__name__)

FFMPEG_MIN_VERSION = "6.0"


class FFmpegError(EncodingError):
    """FFmpeg subprocess exited with a non-zero return code."""


class FFmpegNotFound(EncodingError):
    """ffmpeg binary is not available on PATH."""


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def run_ffmpeg(
    cmd: list[str],
    timeout: int = 600,
    output_path: Optional[Path] = None,
) -> None:
    """
    Run an FFmpeg command synchronously in its own process group.

    Args:
        cmd:         Complete command as a list of strings.
        timeout:     Maximum wall-clock seconds to allow (default 600 = 10 min).
        output_path: When given, the file that must exist and be non-empty
                     after a successful run.

    Raises:
        FFmpegNotFound: if the binary is missing.
        FFmpegError:    on a non-zero exit code or a missing / empty output.
        EncodingError:  if FFmpeg exceeds *timeout* seconds.
    """
    logger.debug("ffmpeg cmd: %s", " ".join(cmd[:10]) + (" ..." if len(cmd) > 10 else ""))

    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            preexec_fn=os.setsid,  # own process group → clean kill on timeout
        )
    except FileNotFoundError:
        raise FFmpegNotFound(
            f"{cmd[0]} not found on PATH. "
            f"Install ffmpeg >= {FFMPEG_MIN_VERSION}."
        )

    try:
        _, stderr = process.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill_group(process)
        process.communicate()
        raise EncodingError(
            f"FFmpeg exceeded timeout of {timeout}s and was killed. "
            f"Command: {' '.join(cmd[:6])} ..."
        )
    except BaseException:
        # Interrupted: stop writing into a partial file the caller discards.
        _kill_group(process)
        process.wait()
        raise

    if process.returncode != 0:
        # Surface the tail of stderr for diagnosis
        tail = stderr[-3000:] if len(stderr) > 3000 else stderr
        raise FFmpegError(
            f"FFmpeg exited {process.returncode}.\n"
            f"Command: {' '.join(cmd[:8])} ...\n"
            f"stderr (last 3000 chars):\n{tail}"
        )

    if output_path is not None:
        output_path = Path(output_path)
        if not output_path.is_file() or output_path.stat().st_size == 0:
            raise FFmpegError(
                f"FFmpeg exited 0 but produced no output at {output_path}. "
                f"Command: {' '.join(cmd[:8])} ..."
            )

    logger.debug("FFmpeg finished OK (rc=0)")


def parse_duration(raw: str) -> float:
    """Parse an ffprobe duration; "N/A" and blanks mean 0."""
    raw = raw.strip()
    if not raw or raw == "N/A":
        return 0.0
    try:
        return max(0.0, float(raw))
    except ValueError:
        raise EncodingError(f"unparseable ffprobe duration {raw!r}")


def write_concat_list(
    path: Path,
    files: list[Path],
    durations: Optional[list[Optional[float]]] = None,
) -> Path:
    """
    Write an ffmpeg concat-demuxer list.

    Each entry is a ``file '<abs path>'`` line, followed by a
    ``duration <seconds>`` line when a duration is given.  Read it with
    ``-f concat -safe 0 -i <path>``.
    """
    durations = durations or [None] * len(files)
    if len(durations) != len(files):
        raise ValueError("one duration (or None) is required per file")
    lines = ["ffconcat version 1.0"]
    for file, duration in zip(files, durations):
        quoted = str(Path(file).resolve()).replace("'", "'\\''")
        lines.append(f"file '{quoted}'")
        if duration is not None:
            lines.append(f"duration {duration:.3f}")
    path = Path(path)
    try:
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    except OSError as exc:
        raise CacheIOError(f"cannot write concat list {path}: {exc}") from exc
    return path


class FFmpegRunner:
    """
    The encoder as seen by the pipeline: run a command, probe a file.

    Dimensions of still images are read with Pillow; everything else
    (video, animated media Pillow cannot open) goes through ffprobe.
    """

    def __init__(
        self,
        ffmpeg: str = "ffmpeg",
        ffprobe: str = "ffprobe",
        timeout: int = 600,
    ) -> None:
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.timeout = timeout

    def run(self, args: list[str], output_path: Path) -> None:
        """Run ``ffmpeg <args>``; *output_path* must be produced."""
        run_ffmpeg([self.ffmpeg, *args], timeout=self.timeout, output_path=output_path)

    def probe_duration(self, path: Path) -> float:
        """Container duration in seconds; 0 for still images."""
        # The image2 demuxer reports one frame's worth of duration for a
        # still, so stills are recognised with Pillow instead.
        try:
            with Image.open(path) as img:
                if not getattr(img, "is_animated", False):
                    return 0.0
        except (UnidentifiedImageError, OSError):
            logger.debug("Not a still image: %s", path)
        out = self._probe(
            ["-show_entries", "format=duration",
             "-of", "default=noprint_wrappers=1:nokey=1", str(path)]
        )
        return parse_duration(out.splitlines()[0] if out.strip() else "")

    def probe_dimensions(self, path: Path) -> tuple[int, int]:
        """Intrinsic (width, height) of an image or the first video stream."""
        try:
            with Image.open(path) as img:
                return img.size
        except (UnidentifiedImageError, OSError):
            logger.debug("Pillow cannot open %s; probing with ffprobe", path)
        out = self._probe(
            ["-select_streams", "v:0", "-show_entries", "stream=width,height",
             "-of", "csv=s=x:p=0", str(path)]
        )
        m = re.match(r"\s*(\d+)x(\d+)", out)
        if not m:
            raise EncodingError(f"no video stream dimensions for {path}")
        return int(m.group(1)), int(m.group(2))

    def _probe(self, args: list[str]) -> str:
        cmd = [self.ffprobe, "-v", "quiet", *args]
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=60,
            )
        except FileNotFoundError:
            raise FFmpegNotFound(f"{self.ffprobe} not found on PATH.")
        except subprocess.TimeoutExpired:
            raise EncodingError(f"ffprobe timed out: {' '.join(cmd)}")
        if result.returncode != 0:
            raise FFmpegError(f"ffprobe exited {result.returncode}: {' '.join(cmd)}")
        return result.stdout


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _kill_group(process: subprocess.Popen) -> None:
    """Kill the process and its entire process group (SIGKILL)."""
    try:
        pgid = os.getpgid(process.pid)
        os.killpg(pgid, signal.SIGKILL)
    except ProcessLookupError:
        pass  # already dead
    except OSError as exc:
        logger.warning("Could not kill ffmpeg process group: %s", exc)
        process.kill()
