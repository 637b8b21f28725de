"""
Configuration management for media2web.

Handles:
- Image and video conversion settings with validation
- Quality presets (high / medium / low)
- Concurrency level resolution
- XDG Base Directory compliance
- TOML configuration file loading
- Automatic script mode detection
"""

import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # pip install tomli


class ConfigError(ValueError):
    """Raised when a conversion setting is out of range or unsupported."""


# -------------------- CONSTANTS --------------------

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png")
VIDEO_EXTENSIONS = (".mp4", ".mov", ".avi", ".mkv")

IMAGE_FORMATS = ("webp", "avif")
VIDEO_FORMATS = ("webm", "mp4")

VIDEO_PRESETS = (
    "ultrafast",
    "superfast",
    "veryfast",
    "faster",
    "fast",
    "medium",
    "slow",
    "slower",
    "veryslow",
)
VIDEO_CODECS = ("libvpx-vp9", "libx264", "libx265", "h264_nvenc", "h264_amf")

# Video codecs each container can hold
CONTAINER_VIDEO_CODECS = {
    "webm": ("libvpx-vp9",),
    "mp4": ("libx264", "libx265", "h264_nvenc", "h264_amf"),
}
# WebM only carries Opus or Vorbis audio; MP4 takes whatever ffmpeg can mux
WEBM_AUDIO_CODECS = ("libopus", "libvorbis")

QUALITY_PRESETS = ("high", "medium", "low")
CONCURRENCY_LEVELS = ("maximum", "balanced", "light")

_RESOLUTION_RE = re.compile(r"^\d+x\d+$")


def _require_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    return value


# -------------------- CONVERSION SETTINGS --------------------


@dataclass(frozen=True)
class ImageConfig:
    """Settings for image conversion (WebP / AVIF)."""

    quality: int = 80
    format: str = "webp"
    lossless: bool = False
    effort: int = 4  # 0 (fastest) .. 6 (smallest)

    def __post_init__(self):
        quality = _require_int("Image quality", self.quality)
        if not 0 <= quality <= 100:
            raise ConfigError("Image quality must be between 0 and 100")
        if self.format not in IMAGE_FORMATS:
            raise ConfigError(f"Unsupported image format: {self.format}")
        effort = _require_int("Image effort", self.effort)
        if not 0 <= effort <= 6:
            raise ConfigError("Image effort must be between 0 and 6")

    @property
    def extension(self) -> str:
        return f".{self.format}"


@dataclass(frozen=True)
class VideoConfig:
    """Settings for video conversion (WebM / MP4)."""

    crf: int = 28
    preset: str = "medium"
    codec: str = "libvpx-vp9"
    bitrate: Optional[str] = None  # target video bitrate, None for pure CRF
    resolution: Optional[str] = None  # WIDTHxHEIGHT, None keeps the source size
    fps: Optional[float] = None  # None keeps the source frame rate
    format: str = "webm"
    audio_codec: str = "libopus"
    audio_bitrate: str = "128k"

    def __post_init__(self):
        crf = _require_int("Video CRF", self.crf)
        if not 0 <= crf <= 51:
            raise ConfigError("Video CRF must be between 0 and 51")
        if self.preset not in VIDEO_PRESETS:
            raise ConfigError(f"Invalid video preset: {self.preset}")
        if self.codec not in VIDEO_CODECS:
            raise ConfigError(f"Unsupported video codec: {self.codec}")
        if self.format not in VIDEO_FORMATS:
            raise ConfigError(f"Unsupported video format: {self.format}")
        if self.codec not in CONTAINER_VIDEO_CODECS[self.format]:
            allowed = ", ".join(CONTAINER_VIDEO_CODECS[self.format])
            raise ConfigError(f"Codec {self.codec} cannot be used for {self.format} output (expected one of: {allowed})")
        if self.format == "webm" and self.audio_codec not in WEBM_AUDIO_CODECS:
            raise ConfigError(f"Audio codec {self.audio_codec} cannot be used for webm output (expected libopus or libvorbis)")
        if self.resolution is not None and not _RESOLUTION_RE.match(self.resolution):
            raise ConfigError(f"Invalid resolution (expected WIDTHxHEIGHT): {self.resolution}")
        if self.fps is not None and (isinstance(self.fps, bool) or self.fps <= 0):
            raise ConfigError(f"Invalid frame rate: {self.fps}")

    @property
    def extension(self) -> str:
        return f".{self.format}"


MediaConfig = Union[ImageConfig, VideoConfig]

IMAGE_QUALITY_PRESETS: Dict[str, Dict[str, Any]] = {
    "high": {"quality": 90, "format": "webp"},
    "medium": {"quality": 80, "format": "webp"},
    "low": {"quality": 60, "format": "webp"},
}

VIDEO_QUALITY_PRESETS: Dict[str, Dict[str, Any]] = {
    "high": {"crf": 23, "preset": "slow", "codec": "libvpx-vp9", "format": "webm"},
    "medium": {"crf": 28, "preset": "medium", "codec": "libvpx-vp9", "format": "webm"},
    "low": {"crf": 35, "preset": "fast", "codec": "libvpx-vp9", "format": "webm"},
}


def image_config_for_preset(name: str = "medium", **overrides) -> ImageConfig:
    """Build an ImageConfig from a named preset, applying any overrides."""
    if name not in IMAGE_QUALITY_PRESETS:
        raise ConfigError(f"Unknown image quality preset: {name}")
    values = dict(IMAGE_QUALITY_PRESETS[name])
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ImageConfig(**values)


def video_config_for_preset(name: str = "medium", **overrides) -> VideoConfig:
    """Build a VideoConfig from a named preset, applying any overrides."""
    if name not in VIDEO_QUALITY_PRESETS:
        raise ConfigError(f"Unknown video quality preset: {name}")
    values = dict(VIDEO_QUALITY_PRESETS[name])
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides.get("format") == "mp4":
        # VP9 + Opus belong in WebM; MP4 output defaults to H.264 + AAC
        values["codec"] = "libx264"
        values["audio_codec"] = "aac"
    values.update(overrides)
    return VideoConfig(**values)


def create_image_config(quality: int = 80, format: str = "webp", **advanced) -> ImageConfig:
    """Create a validated ImageConfig. ``advanced`` carries the remaining fields."""
    return ImageConfig(quality=quality, format=format, **advanced)


def create_video_config(crf: int = 28, preset: str = "medium", codec: str = "libvpx-vp9", **advanced) -> VideoConfig:
    """Create a validated VideoConfig. ``advanced`` carries the remaining fields."""
    return VideoConfig(crf=crf, preset=preset, codec=codec, **advanced)


# -------------------- CONCURRENCY --------------------


def _cpu_count() -> int:
    try:
        return os.cpu_count() or 4
    except Exception:
        return 4


def default_concurrency(cpu_count: Optional[int] = None) -> int:
    """Available parallelism minus one, never below 1."""
    cpus = cpu_count if cpu_count is not None else _cpu_count()
    return max(1, cpus - 1)


def resolve_concurrency(
    level: Union[int, str, None],
    media_type: str = "image",
    cpu_count: Optional[int] = None,
) -> int:
    """
    Turn a concurrency preference into a batch size.

    Args:
        level: A positive integer (used as-is), a numeric string, one of
            "maximum", "balanced", "light", or None for the default.
        media_type: "image" or "video". Videos get smaller batches for the
            qualitative levels since each encode uses several cores.
        cpu_count: Override for the detected CPU count.

    Returns:
        Batch size >= 1.
    """
    cpus = cpu_count if cpu_count is not None else _cpu_count()

    if level is None:
        return default_concurrency(cpus)

    if isinstance(level, str):
        value = level.strip().lower()
        if value.isdigit():
            level = int(value)
        elif value == "maximum":
            return max(1, cpus - 1) if media_type == "image" else max(1, cpus // 2)
        elif value == "balanced":
            return max(1, cpus // 2) if media_type == "image" else max(1, cpus // 4)
        elif value == "light":
            return 2
        else:
            raise ConfigError(f"Unknown concurrency level: {level!r} (expected a number or one of {', '.join(CONCURRENCY_LEVELS)})")

    level = _require_int("Concurrency", level)
    if level < 1:
        raise ConfigError(f"Concurrency must be a positive integer, got {level}")
    return level


# -------------------- SCRIPT MODE DETECTION --------------------


def is_script_mode() -> bool:
    """
    Detect if output should stay plain (no Rich rendering).

    Returns True if stdout is not a TTY, or the NO_COLOR or
    MEDIA2WEB_SCRIPT_MODE environment variable is set.
    """
    if os.getenv("NO_COLOR") or os.getenv("MEDIA2WEB_SCRIPT_MODE"):
        return True
    try:
        return not sys.stdout.isatty()
    except Exception:
        return True


# -------------------- XDG DIRECTORIES --------------------


def get_xdg_config_home() -> Path:
    """Get XDG config home directory."""
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def get_app_dirs(create: bool = True) -> Dict[str, Path]:
    """Return all application directories, creating them if requested."""
    dirs = {
        "config": get_xdg_config_home() / "media2web",
    }
    if create:
        for d in dirs.values():
            d.mkdir(parents=True, exist_ok=True)
    return dirs


# -------------------- CONFIG FILE LOADING --------------------


def load_config_file(config_dir: Path) -> Dict[str, Any]:
    """
    Load ``config.toml`` from ``config_dir``.

    Returns an empty dict when the file is absent. A malformed file raises
    ConfigError so the user sees what is wrong instead of silently getting
    defaults.
    """
    path = config_dir / "config.toml"
    if not path.exists():
        return {}
    try:
        with path.open("rb") as f:
            return dict(tomllib.load(f))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e


def _get_default_config_toml() -> str:
    """Return default config as TOML string."""
    return """# media2web configuration file
# Command-line options take precedence over values in this file.

[image]
# quality = 80          # 0-100
# format = "webp"       # webp, avif
# effort = 4            # 0 (fast) - 6 (small)

[video]
# crf = 28              # 0-51, lower is better
# preset = "medium"
# codec = "libvpx-vp9"  # libvpx-vp9, libx264, libx265, h264_nvenc, h264_amf
# format = "webm"       # webm, mp4
# audio_bitrate = "128k"

[workers]
# Positive number, or one of: maximum, balanced, light
# concurrency = "balanced"

[output]
# Delete files produced by an interrupted run
# cleanup_on_interrupt = false
"""


def save_default_config(config_dir: Path) -> Path:
    """Create the default config file if it does not exist. Returns its path."""
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / "config.toml"
    if not path.exists():
        path.write_text(_get_default_config_toml())
    return path


def file_overrides(file_config: Dict[str, Any], section: str, allowed) -> Dict[str, Any]:
    """Return the keys of ``section`` that are settings of the given dataclass fields."""
    values = file_config.get(section) or {}
    if not isinstance(values, dict):
        raise ConfigError(f"[{section}] must be a table")
    unknown = sorted(set(values) - set(allowed))
    if unknown:
        raise ConfigError(f"Unknown key(s) in [{section}]: {', '.join(unknown)}")
    return dict(values)
