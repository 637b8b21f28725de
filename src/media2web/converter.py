"""
Media converters for media2web.

Contains:
- Working-set resolution (explicit selection or directory listing)
- Per-file conversion handler with progress reporting
- ImageConverter (Pillow) and VideoConverter (ffmpeg)
- Converter construction by media type

Example:
    >>> from media2web import ImageConverter, ImageConfig
    >>> result = ImageConverter().convert("photos", "photos/web", ImageConfig(quality=75))
    >>> for s in result.successes:
    ...     print(f"{s.input_name} -> {s.output_name} ({s.reduction}%)")
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from media2web.config import (
    IMAGE_EXTENSIONS,
    VIDEO_EXTENSIONS,
    ImageConfig,
    MediaConfig,
    VideoConfig,
    default_concurrency,
)
from media2web.encoders import HW_CHOICES, VideoProgressCallback, encode_image, encode_video
from media2web.progress import ProgressEvent, ProgressSink, ProgressStatus, report_progress
from media2web.results import (
    ConversionFailure,
    ConversionOutcome,
    ConversionResult,
    ConversionSuccess,
    classify_results,
)
from media2web.scheduler import process_in_batches
from media2web.stats import calculate_file_stats

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

ImageEncoder = Callable[[Path, Path, ImageConfig], None]
VideoEncoder = Callable[..., None]


class NoFilesFoundError(RuntimeError):
    """Raised when a run has nothing to convert."""


class InputFolderError(OSError):
    """Raised when the input folder cannot be listed."""


@dataclass(frozen=True)
class ConversionTask:
    """One file of a run: where it comes from, where it goes, and its position."""

    file: str
    input_path: Path
    output_path: Path
    index: int


def output_name_for(file: str, extension: str) -> str:
    """Replace the extension of ``file`` with ``extension`` (photo.png -> photo.webp)."""
    return Path(file).stem + extension


def _error_message(error: BaseException) -> str:
    if isinstance(error, OSError) and error.strerror:
        name = error.filename if error.filename is not None else ""
        return f"{error.strerror}: {name}" if name else error.strerror
    return str(error) or type(error).__name__


class BaseConverter(ABC):
    """
    Shared batch conversion flow for one media type.

    Subclasses declare the extensions they accept and implement
    :meth:`convert_single`, the call into the actual encoder.
    """

    media_type: str = ""
    supported_extensions: Sequence[str] = ()

    def filter_files(self, folder: Path) -> List[str]:
        """List ``folder`` entries whose extension (case-insensitive) is supported, sorted by name."""
        try:
            entries = os.listdir(folder)
        except OSError as e:
            raise InputFolderError(e.errno, f"Failed to read directory {folder}: {_error_message(e)}", str(folder)) from e
        return sorted(f for f in entries if Path(f).suffix.lower() in self.supported_extensions)

    def resolve_files(self, input_folder: Path, selected_files: Optional[Sequence[str]]) -> List[str]:
        """Explicit selection if non-empty, otherwise the supported files of ``input_folder``."""
        if selected_files:
            return list(selected_files)
        return self.filter_files(input_folder)

    def make_task(self, file: str, index: int, input_folder: Path, output_folder: Path, config: MediaConfig) -> ConversionTask:
        return ConversionTask(
            file=file,
            input_path=input_folder / file,
            output_path=output_folder / output_name_for(file, config.extension),
            index=index,
        )

    def output_paths(self, output_folder: PathLike, files: Sequence[str], config: MediaConfig) -> List[Path]:
        """Destination paths a run over ``files`` would write."""
        return [Path(output_folder) / output_name_for(f, config.extension) for f in files]

    @abstractmethod
    def convert_single(
        self,
        task: ConversionTask,
        config: MediaConfig,
        on_progress: Optional[VideoProgressCallback] = None,
    ) -> None:
        """Encode one file. Raises on any failure."""

    def _convert_task(
        self,
        file: str,
        index: int,
        *,
        total: int,
        input_folder: Path,
        output_folder: Path,
        config: MediaConfig,
        progress_sink: Optional[ProgressSink],
    ) -> ConversionOutcome:
        """Per-file handler: never raises, every error becomes a ConversionFailure."""
        task = self.make_task(file, index, input_folder, output_folder, config)
        current = index + 1

        report_progress(
            progress_sink,
            ProgressEvent(current, total, file, ProgressStatus.CONVERTING, progress=self._initial_progress()),
        )

        def on_progress(pct: float) -> None:
            report_progress(progress_sink, ProgressEvent(current, total, file, ProgressStatus.CONVERTING, progress=pct))

        try:
            self.convert_single(task, config, on_progress if progress_sink else None)
            stats = calculate_file_stats(task.input_path, task.output_path)
        except Exception as e:
            message = _error_message(e)
            logger.warning("Failed to convert %s: %s", file, message)
            report_progress(progress_sink, ProgressEvent(current, total, file, ProgressStatus.FAILED, error=message))
            return ConversionFailure(file=file, error=message)

        logger.debug("Converted %s -> %s (%s%%)", file, stats.output_name, stats.reduction)
        report_progress(progress_sink, ProgressEvent(current, total, file, ProgressStatus.COMPLETED))
        return ConversionSuccess(stats=stats)

    def _initial_progress(self) -> Optional[float]:
        return None

    def convert(
        self,
        input_folder: PathLike,
        output_folder: PathLike,
        config: MediaConfig,
        selected_files: Optional[Sequence[str]] = None,
        progress_sink: Optional[ProgressSink] = None,
        concurrency: Optional[int] = None,
    ) -> ConversionResult:
        """
        Convert a folder (or a selection of it) into ``output_folder``.

        Args:
            input_folder: Folder holding the source files.
            output_folder: Destination folder, created (with parents) if absent.
            config: Settings for this media type, already validated.
            selected_files: Explicit file names relative to ``input_folder``.
                When empty or None, every supported file in the folder is used.
            progress_sink: Receives converting/completed/failed events.
            concurrency: Files converted at once. None uses the CPU count minus one.

        Returns:
            ConversionResult with successes and failures.

        Raises:
            NoFilesFoundError: Nothing to convert. The output folder is not created.
            InputFolderError: The input folder could not be listed.
            OSError: The output folder could not be created.
        """
        input_folder = Path(input_folder)
        output_folder = Path(output_folder)
        self.check_config(config)
        batch_size = concurrency if concurrency is not None else default_concurrency()
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
            raise ValueError(f"concurrency must be a positive integer, got {concurrency!r}")

        files = self.resolve_files(input_folder, selected_files)
        if not files:
            raise NoFilesFoundError(f"No {self.media_type} files found to convert.")

        output_folder.mkdir(parents=True, exist_ok=True)

        logger.info("Converting %d %s file(s), %d at a time", len(files), self.media_type, batch_size)
        handler = partial(
            self._convert_task,
            total=len(files),
            input_folder=input_folder,
            output_folder=output_folder,
            config=config,
            progress_sink=progress_sink,
        )
        outcomes = process_in_batches(files, batch_size, handler)
        return classify_results(outcomes)

    @abstractmethod
    def check_config(self, config: MediaConfig) -> None:
        """Reject a config meant for another media type."""


class ImageConverter(BaseConverter):
    """Converts JPEG/PNG images to WebP or AVIF."""

    media_type = "image"
    supported_extensions = IMAGE_EXTENSIONS

    def __init__(self, encoder: ImageEncoder = encode_image):
        self.encoder = encoder

    def check_config(self, config: MediaConfig) -> None:
        if not isinstance(config, ImageConfig):
            raise TypeError(f"ImageConverter needs an ImageConfig, got {type(config).__name__}")

    def convert_single(
        self,
        task: ConversionTask,
        config: MediaConfig,
        on_progress: Optional[VideoProgressCallback] = None,
    ) -> None:
        # Image encodes are a single library call: no intermediate progress
        self.encoder(task.input_path, task.output_path, config)


class VideoConverter(BaseConverter):
    """Converts MP4/MOV/AVI/MKV videos to WebM or MP4 with ffmpeg."""

    media_type = "video"
    supported_extensions = VIDEO_EXTENSIONS

    def __init__(self, encoder: VideoEncoder = encode_video, hw: str = "cpu"):
        if hw not in HW_CHOICES:
            raise ValueError(f"Unknown hardware encoder choice: {hw}")
        self.encoder = encoder
        self.hw = hw

    def check_config(self, config: MediaConfig) -> None:
        if not isinstance(config, VideoConfig):
            raise TypeError(f"VideoConverter needs a VideoConfig, got {type(config).__name__}")

    def _initial_progress(self) -> Optional[float]:
        return 0.0

    def convert_single(
        self,
        task: ConversionTask,
        config: MediaConfig,
        on_progress: Optional[VideoProgressCallback] = None,
    ) -> None:
        self.encoder(task.input_path, task.output_path, config, on_progress=on_progress, hw=self.hw)


def create_converter(media_type: str, **kwargs) -> BaseConverter:
    """Build a converter for "image" or "video". Extra keyword arguments go to its constructor."""
    if media_type == "image":
        return ImageConverter(**kwargs)
    if media_type == "video":
        return VideoConverter(**kwargs)
    raise ValueError(f"Unsupported converter type: {media_type}")


def convert_images(
    input_folder: PathLike,
    output_folder: PathLike,
    config: ImageConfig,
    selected_files: Optional[Sequence[str]] = None,
    progress_sink: Optional[ProgressSink] = None,
    concurrency: Optional[int] = None,
) -> ConversionResult:
    """Shortcut for ``ImageConverter().convert(...)``."""
    return ImageConverter().convert(input_folder, output_folder, config, selected_files, progress_sink, concurrency)


def convert_videos(
    input_folder: PathLike,
    output_folder: PathLike,
    config: VideoConfig,
    selected_files: Optional[Sequence[str]] = None,
    progress_sink: Optional[ProgressSink] = None,
    concurrency: Optional[int] = None,
    hw: str = "cpu",
) -> ConversionResult:
    """Shortcut for ``VideoConverter(hw=hw).convert(...)``."""
    return VideoConverter(hw=hw).convert(input_folder, output_folder, config, selected_files, progress_sink, concurrency)
