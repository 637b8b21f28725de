"""
Single-file encode primitives for media2web.

Contains:
- Image encoding with Pillow (WebP / AVIF)
- FFmpeg argument building for each video codec
- Video encoding through ffmpeg with progress parsing
- Tracking of running ffmpeg processes for cleanup on interrupt

Both primitives write to a temporary file next to the destination and
rename it into place once the encoder succeeded, so a failed or interrupted
encode never leaves a truncated output behind.
"""

import json
import logging
import os
import re
import subprocess
import threading
from collections import deque
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from PIL import Image, ImageOps, features

from media2web.config import ImageConfig, VideoConfig

logger = logging.getLogger(__name__)

# Hardware encoder choice, resolved by the caller: "cpu", "nvidia" or "amd"
HW_CHOICES = ("cpu", "nvidia", "amd")

# Percentage callback for video encodes
VideoProgressCallback = Callable[[float], None]


class EncoderError(RuntimeError):
    """Raised when an encoder could not produce the output file."""


def _tmp_path_for(output_path: Path) -> Path:
    """Per-thread temporary path, so concurrent writes to one destination never collide."""
    return output_path.with_name(f".{output_path.stem}.{os.getpid()}.{threading.get_ident()}.tmp{output_path.suffix}")


# -------------------- IMAGES --------------------


def avif_supported() -> bool:
    """Check if this Pillow build can write AVIF."""
    try:
        return bool(features.check("avif"))
    except Exception:
        return False


def prepare_image_for_save(img: Image.Image) -> Image.Image:
    """Apply EXIF orientation and convert to a mode WebP/AVIF can store."""
    img = ImageOps.exif_transpose(img)
    if img.mode in ("RGB", "RGBA"):
        return img
    if img.mode == "P" and "transparency" in img.info:
        return img.convert("RGBA")
    if img.mode in ("LA", "PA"):
        return img.convert("RGBA")
    return img.convert("RGB")


def image_save_params(config: ImageConfig) -> Dict[str, Any]:
    """Map an ImageConfig onto Pillow save() keyword arguments."""
    if config.format == "webp":
        return {
            "format": "WEBP",
            "quality": config.quality,
            "lossless": config.lossless,
            "method": config.effort,
        }
    # AVIF: speed runs 0 (slowest) .. 10 (fastest); lossless needs full chroma
    params: Dict[str, Any] = {
        "format": "AVIF",
        "quality": 100 if config.lossless else config.quality,
        "speed": 10 - config.effort,
    }
    if config.lossless:
        params["subsampling"] = "4:4:4"
    return params


def encode_image(input_path: Path, output_path: Path, config: ImageConfig) -> None:
    """
    Convert one image with Pillow.

    Args:
        input_path: Source image (JPEG or PNG).
        output_path: Destination file.
        config: Target format and quality.

    Raises:
        FileNotFoundError: If the source does not exist.
        PIL.UnidentifiedImageError: If the source is not a readable image.
        EncoderError: If the target format is not supported by this Pillow build.
    """
    if config.format == "avif" and not avif_supported():
        raise EncoderError("AVIF encoding is not supported by the installed Pillow")

    tmp_path = _tmp_path_for(output_path)
    try:
        with Image.open(input_path) as img:
            out_img = prepare_image_for_save(img)
            out_img.save(tmp_path, **image_save_params(config))
        os.replace(tmp_path, output_path)
    finally:
        tmp_path.unlink(missing_ok=True)


# -------------------- VIDEO ARGUMENTS --------------------

# libvpx-vp9 has no -preset; map the x264 preset names onto -cpu-used
_VP9_CPU_USED = {
    "ultrafast": 5,
    "superfast": 5,
    "veryfast": 4,
    "faster": 4,
    "fast": 3,
    "medium": 2,
    "slow": 1,
    "slower": 0,
    "veryslow": 0,
}

# NVENC presets: p1 (fastest) to p7 (slowest/best quality)
_NVENC_PRESETS = {
    "ultrafast": "p1",
    "superfast": "p2",
    "veryfast": "p3",
    "faster": "p4",
    "fast": "p4",
    "medium": "p5",
    "slow": "p6",
    "slower": "p7",
    "veryslow": "p7",
}

# AMF quality modes: speed, balanced, quality
_AMF_QUALITY = {
    "ultrafast": "speed",
    "superfast": "speed",
    "veryfast": "speed",
    "faster": "balanced",
    "fast": "balanced",
    "medium": "balanced",
    "slow": "quality",
    "slower": "quality",
    "veryslow": "quality",
}

_MUXERS = {"webm": "webm", "mp4": "mp4"}


def select_video_codec(config: VideoConfig, hw: str = "cpu") -> str:
    """
    Pick the encoder for a config and hardware choice.

    Hardware encoders only produce H.264, so they are used for MP4 output
    only; WebM output always uses the configured software codec.
    """
    if hw not in HW_CHOICES:
        raise ValueError(f"Unknown hardware encoder choice: {hw}")
    if config.format == "mp4":
        if hw == "nvidia":
            return "h264_nvenc"
        if hw == "amd":
            return "h264_amf"
    return config.codec


def video_codec_args(codec: str, config: VideoConfig) -> List[str]:
    """Get ffmpeg video encoding arguments for the given codec."""
    if codec == "libvpx-vp9":
        args = [
            "-c:v",
            "libvpx-vp9",
            "-crf",
            str(config.crf),
            "-deadline",
            "good",
            "-cpu-used",
            str(_VP9_CPU_USED[config.preset]),
            "-row-mt",
            "1",
        ]
        # Without a target bitrate VP9 needs -b:v 0 for constant quality
        if not config.bitrate:
            args += ["-b:v", "0"]
        return args
    if codec in ("libx264", "libx265"):
        args = ["-c:v", codec, "-crf", str(config.crf), "-preset", config.preset, "-pix_fmt", "yuv420p"]
        if codec == "libx265":
            args += ["-tag:v", "hvc1"]
        return args
    if codec == "h264_nvenc":
        return [
            "-c:v",
            "h264_nvenc",
            "-preset",
            _NVENC_PRESETS[config.preset],
            "-rc",
            "vbr",
            "-cq",
            str(config.crf),
            "-b:v",
            "0",
        ]
    if codec == "h264_amf":
        return [
            "-c:v",
            "h264_amf",
            "-quality",
            _AMF_QUALITY[config.preset],
            "-rc",
            "cqp",
            "-qp_i",
            str(config.crf),
            "-qp_p",
            str(config.crf),
        ]
    raise ValueError(f"Unsupported video codec: {codec}")


def build_ffmpeg_args(input_path: Path, output_path: Path, config: VideoConfig, hw: str = "cpu") -> List[str]:
    """
    Build the full ffmpeg command for one conversion.

    Progress is written as key=value lines to stdout (``-progress pipe:1``);
    stderr only carries errors.
    """
    codec = select_video_codec(config, hw)
    args = [
        "ffmpeg",
        "-hide_banner",
        "-nostdin",
        "-y",
        "-loglevel",
        "error",
        "-nostats",
        "-progress",
        "pipe:1",
        "-i",
        str(input_path),
    ]
    args += video_codec_args(codec, config)

    if config.bitrate:
        args += ["-b:v", config.bitrate]
    if config.resolution:
        width, height = config.resolution.split("x")
        args += ["-vf", f"scale={width}:{height}"]
    if config.fps:
        args += ["-r", f"{config.fps:g}"]

    args += ["-c:a", config.audio_codec, "-b:a", config.audio_bitrate]

    if config.format == "mp4":
        args += ["-movflags", "+faststart"]

    args += ["-f", _MUXERS[config.format], str(output_path)]
    return args


# -------------------- PROCESS TRACKING --------------------

# Track active ffmpeg processes for cleanup on interrupt
_active_processes: List[subprocess.Popen] = []
_processes_lock = threading.Lock()


def register_process(proc: subprocess.Popen) -> None:
    """Register a process for tracking."""
    with _processes_lock:
        _active_processes.append(proc)


def unregister_process(proc: subprocess.Popen) -> None:
    """Unregister a process from tracking."""
    with _processes_lock:
        if proc in _active_processes:
            _active_processes.remove(proc)


def active_process_count() -> int:
    with _processes_lock:
        return len(_active_processes)


def terminate_all_processes(timeout: float = 5.0) -> int:
    """Terminate all running ffmpeg processes. Returns how many were signalled."""
    with _processes_lock:
        procs = list(_active_processes)

    for proc in procs:
        if proc.poll() is None:
            try:
                proc.terminate()
            except OSError as e:
                logger.debug("terminate failed for pid %s: %s", proc.pid, e)

    for proc in procs:
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.kill()

    return len(procs)


# -------------------- VIDEO PROGRESS --------------------


_OUT_TIME_RE = re.compile(r"^out_time=\s*(\d+):(\d+):(\d+)(?:[\.,](\d+))?")


def parse_ffmpeg_progress(line: str, dur_ms: int) -> Dict[str, Any]:
    """
    Parse one line of ``ffmpeg -progress`` output.

    Args:
        line: A key=value line, e.g. ``out_time=00:01:23.450000``.
        dur_ms: Total duration in milliseconds (0 if unknown).

    Returns:
        Dict with:
        - current_time_ms: int or None if the line carries no timestamp
        - progress_percent: float (0-100), None if unknown
        - speed: str (e.g. "2.5x") or ""
        - done: True on the final ``progress=end`` line
    """
    result: Dict[str, Any] = {
        "current_time_ms": None,
        "progress_percent": None,
        "speed": "",
        "done": False,
    }
    line = line.strip()

    m = _OUT_TIME_RE.match(line)
    if m:
        h, mi, s = int(m.group(1)), int(m.group(2)), int(m.group(3))
        frac = m.group(4) or "0"
        current_ms = (h * 3600 + mi * 60 + s) * 1000 + int(frac[:3].ljust(3, "0"))
        result["current_time_ms"] = current_ms
        if dur_ms > 0:
            result["progress_percent"] = min(100.0, current_ms * 100.0 / dur_ms)
        return result

    m = re.match(r"^speed=\s*([0-9.]+)x", line)
    if m:
        result["speed"] = f"{float(m.group(1)):.1f}x"
        return result

    if line == "progress=end":
        result["done"] = True
        if dur_ms > 0:
            result["progress_percent"] = 100.0

    return result


def probe_duration_ms(path: Path) -> int:
    """Get media duration in milliseconds with ffprobe (0 if unknown)."""
    cmd = [
        "ffprobe",
        "-v",
        "error",
        "-of",
        "json",
        "-show_entries",
        "format=duration:stream=codec_type,duration",
        str(path),
    ]
    try:
        j = json.loads(subprocess.check_output(cmd, stderr=subprocess.DEVNULL, timeout=30))
    except (OSError, subprocess.SubprocessError, ValueError) as e:
        logger.debug("ffprobe failed for %s: %s", path, e)
        return 0

    dur = None
    if j.get("format", {}).get("duration"):
        dur = float(j["format"]["duration"])
    if (dur is None or dur <= 0) and "streams" in j:
        for s in j["streams"]:
            if s.get("codec_type") == "video" and s.get("duration"):
                d2 = float(s["duration"])
                if d2 > 0:
                    dur = d2
                    break
    if dur is None or dur <= 0:
        return 0
    return int(dur * 1000)


# -------------------- VIDEO ENCODING --------------------

# Lines of ffmpeg stderr kept for the error message
_STDERR_TAIL_LINES = 20


def _drain_stderr(stream, tail: deque) -> None:
    """Read ffmpeg stderr until EOF so a chatty encoder never blocks on a full pipe."""
    for line in stream:
        if line.strip():
            tail.append(line.rstrip())


def encode_video(
    input_path: Path,
    output_path: Path,
    config: VideoConfig,
    on_progress: Optional[VideoProgressCallback] = None,
    hw: str = "cpu",
) -> None:
    """
    Convert one video with ffmpeg.

    Args:
        input_path: Source video.
        output_path: Destination file.
        config: Codec, quality and container settings.
        on_progress: Optional callback receiving the completion percentage.
        hw: Hardware encoder choice ("cpu", "nvidia", "amd").

    Raises:
        FileNotFoundError: If the source does not exist.
        EncoderError: If ffmpeg is missing or exits with an error.
    """
    if not input_path.is_file():
        raise FileNotFoundError(f"No such file: {input_path}")

    tmp_path = _tmp_path_for(output_path)
    cmd = build_ffmpeg_args(input_path, tmp_path, config, hw)
    dur_ms = probe_duration_ms(input_path) if on_progress else 0
    logger.debug("Running: %s", " ".join(cmd))

    try:
        process = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, errors="replace")
    except FileNotFoundError as e:
        raise EncoderError("ffmpeg not found in PATH") from e

    register_process(process)
    stderr_tail: deque = deque(maxlen=_STDERR_TAIL_LINES)
    drainer = threading.Thread(target=_drain_stderr, args=(process.stderr, stderr_tail), daemon=True)
    drainer.start()
    try:
        last_pct = -1.0
        assert process.stdout is not None
        for line in process.stdout:
            if on_progress is None:
                continue
            info = parse_ffmpeg_progress(line, dur_ms)
            pct = info["progress_percent"]
            if pct is not None and pct > last_pct:
                last_pct = pct
                on_progress(round(pct, 1))

        rc = process.wait()
        drainer.join()
    finally:
        unregister_process(process)
        if process.stdout:
            process.stdout.close()
        if process.stderr:
            process.stderr.close()

    try:
        if rc != 0:
            detail = stderr_tail[-1] if stderr_tail else "no error output"
            raise EncoderError(f"ffmpeg exited with code {rc}: {detail}")
        os.replace(tmp_path, output_path)
    finally:
        tmp_path.unlink(missing_ok=True)
