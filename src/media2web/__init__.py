"""
media2web - Batch converter for web-friendly images and videos.

Converts JPEG/PNG images to WebP or AVIF with Pillow, and MP4/MOV/AVI/MKV
videos to WebM or MP4 with ffmpeg, several files at a time.

Example usage:
    # As a command-line tool
    $ media2web image ./photos --format avif
    $ media2web video ./clips --quality high -j light

    # As a Python module
    from media2web import ImageConverter, ImageConfig

    result = ImageConverter().convert("photos", "photos/web", ImageConfig(quality=75))
    print(len(result.successes), "converted,", len(result.failures), "failed")
"""

__version__ = "1.0.0"
__description__ = "Batch converter for web-friendly images and videos"

# Public API exports
from media2web.config import (
    ConfigError,
    ImageConfig,
    VideoConfig,
    create_image_config,
    create_video_config,
    default_concurrency,
    image_config_for_preset,
    resolve_concurrency,
    video_config_for_preset,
)
from media2web.converter import (
    BaseConverter,
    ConversionTask,
    ImageConverter,
    InputFolderError,
    NoFilesFoundError,
    VideoConverter,
    convert_images,
    convert_videos,
    create_converter,
)
from media2web.encoders import EncoderError, build_ffmpeg_args, encode_image, encode_video
from media2web.json_progress import JSONProgressOutput
from media2web.progress import ProgressEvent, ProgressSink, ProgressStatus, ThreadSafeSink
from media2web.results import ConversionFailure, ConversionResult, ConversionSuccess, classify_results
from media2web.scheduler import process_in_batches
from media2web.stats import calculate_file_stats, format_bytes

__all__ = [
    "__version__",
    # Config
    "ConfigError",
    "ImageConfig",
    "VideoConfig",
    "create_image_config",
    "create_video_config",
    "image_config_for_preset",
    "video_config_for_preset",
    "default_concurrency",
    "resolve_concurrency",
    # Converters
    "BaseConverter",
    "ConversionTask",
    "ImageConverter",
    "VideoConverter",
    "create_converter",
    "convert_images",
    "convert_videos",
    "NoFilesFoundError",
    "InputFolderError",
    # Encoders
    "EncoderError",
    "encode_image",
    "encode_video",
    "build_ffmpeg_args",
    # Progress
    "ProgressEvent",
    "ProgressSink",
    "ProgressStatus",
    "ThreadSafeSink",
    "JSONProgressOutput",
    # Results
    "ConversionSuccess",
    "ConversionFailure",
    "ConversionResult",
    "classify_results",
    "process_in_batches",
    # Stats
    "calculate_file_stats",
    "format_bytes",
]
