"""
Command-line interface for media2web.

This is the main entry point for the application.
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler

from media2web import __version__
from media2web.config import (
    IMAGE_FORMATS,
    QUALITY_PRESETS,
    VIDEO_CODECS,
    VIDEO_FORMATS,
    VIDEO_PRESETS,
    ConfigError,
    ImageConfig,
    MediaConfig,
    VideoConfig,
    file_overrides,
    get_app_dirs,
    image_config_for_preset,
    is_script_mode,
    load_config_file,
    resolve_concurrency,
    save_default_config,
    video_config_for_preset,
)
from media2web.converter import BaseConverter, InputFolderError, NoFilesFoundError, create_converter
from media2web.encoders import HW_CHOICES, terminate_all_processes
from media2web.json_progress import JSONProgressOutput
from media2web.progress import CollectingSink, ProgressStatus, combine_sinks
from media2web.results import ConversionResult
from media2web.ui import LegacyProgressUI, RichProgressUI

logger = logging.getLogger("media2web")

EXIT_OK = 0
EXIT_FAILED = 2
EXIT_INTERRUPTED = 130

_IMAGE_FILE_KEYS = ("quality", "format", "lossless", "effort")
_VIDEO_FILE_KEYS = (
    "crf",
    "preset",
    "codec",
    "bitrate",
    "resolution",
    "fps",
    "format",
    "audio_codec",
    "audio_bitrate",
)


# -------------------- ARGUMENT PARSING --------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="media2web",
        description="Batch-convert images to WebP/AVIF and videos to WebM/MP4.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s image ./photos                      # All JPEG/PNG files -> ./photos/converted/*.webp
  %(prog)s image ./photos ./web --format avif  # AVIF output in ./web
  %(prog)s image ./photos -f a.png -f b.jpg    # Only the selected files
  %(prog)s video ./clips --quality high        # VP9/WebM, CRF 23, slow preset
  %(prog)s video ./clips --format mp4 --hw nvidia
  %(prog)s video ./clips -j light              # Two conversions at a time
  %(prog)s --show-dirs                         # Show config directory
        """,
    )

    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument("media_type", nargs="?", choices=["image", "video"], help="What to convert")
    parser.add_argument("input_dir", nargs="?", help="Folder holding the source files")
    parser.add_argument("output_dir", nargs="?", help="Destination folder (default: INPUT_DIR/converted)")

    sel_group = parser.add_argument_group("File selection")
    sel_group.add_argument(
        "-f",
        "--file",
        dest="files",
        action="append",
        default=[],
        metavar="NAME",
        help="Convert only this file (relative to INPUT_DIR); repeatable",
    )

    q_group = parser.add_argument_group("Quality")
    q_group.add_argument("--quality", choices=QUALITY_PRESETS, default="medium", help="Quality preset (default: medium)")
    q_group.add_argument("--format", help=f"Output format: {', '.join(IMAGE_FORMATS)} (image) or {', '.join(VIDEO_FORMATS)} (video)")

    img_group = parser.add_argument_group("Image options")
    img_group.add_argument("-q", "--image-quality", type=int, metavar="0-100", help="Image quality")
    img_group.add_argument("--lossless", action="store_true", default=None, help="Lossless image encoding")
    img_group.add_argument("--effort", type=int, metavar="0-6", help="Image encoder effort (higher is smaller but slower)")

    vid_group = parser.add_argument_group("Video options")
    vid_group.add_argument("--crf", type=int, metavar="0-51", help="Constant rate factor (lower is better)")
    vid_group.add_argument("--preset", choices=VIDEO_PRESETS, help="Encoder speed preset")
    vid_group.add_argument("--codec", choices=VIDEO_CODECS, help="Video codec")
    vid_group.add_argument("--bitrate", help="Target video bitrate, e.g. 2M")
    vid_group.add_argument("--resolution", metavar="WxH", help="Scale to WIDTHxHEIGHT")
    vid_group.add_argument("--fps", type=float, help="Output frame rate")
    vid_group.add_argument("--audio-codec", help="Audio codec (default: libopus for WebM, aac for MP4)")
    vid_group.add_argument("--audio-bitrate", help="Audio bitrate (default: 128k)")
    vid_group.add_argument("--hw", choices=HW_CHOICES, default="cpu", help="Hardware encoder for MP4 output (default: cpu)")

    run_group = parser.add_argument_group("Execution")
    run_group.add_argument(
        "-j",
        "--concurrency",
        metavar="N|LEVEL",
        help="Files converted at once: a number, or maximum, balanced, light (default: CPU count - 1)",
    )
    run_group.add_argument("--json-progress", action="store_true", help="Emit JSON progress lines on stdout")
    run_group.add_argument(
        "--cleanup-on-interrupt",
        action="store_true",
        default=None,
        help="Delete files produced by this run when interrupted",
    )
    run_group.add_argument("--no-progress", action="store_false", dest="progress", help="Disable progress bars")

    debug_group = parser.add_argument_group("Debug")
    debug_group.add_argument("-d", "--debug", action="store_true", help="Enable debug output")
    debug_group.add_argument("--show-dirs", action="store_true", help="Show configuration directory and exit")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.show_dirs and (args.media_type is None or args.input_dir is None):
        parser.error("the following arguments are required: media_type, input_dir")
    return args


# -------------------- CONFIG MERGING --------------------


def build_media_config(args: argparse.Namespace, file_config: Dict[str, Any]) -> MediaConfig:
    """
    Build the conversion config for this run.

    Priority: command line > config file > quality preset.
    """
    if args.media_type == "image":
        values = file_overrides(file_config, "image", _IMAGE_FILE_KEYS)
        cli = {
            "quality": args.image_quality,
            "format": args.format,
            "lossless": args.lossless,
            "effort": args.effort,
        }
        values.update({k: v for k, v in cli.items() if v is not None})
        return image_config_for_preset(args.quality, **values)

    values = file_overrides(file_config, "video", _VIDEO_FILE_KEYS)
    cli = {
        "crf": args.crf,
        "preset": args.preset,
        "codec": args.codec,
        "bitrate": args.bitrate,
        "resolution": args.resolution,
        "fps": args.fps,
        "format": args.format,
        "audio_codec": args.audio_codec,
        "audio_bitrate": args.audio_bitrate,
    }
    values.update({k: v for k, v in cli.items() if v is not None})
    return video_config_for_preset(args.quality, **values)


def resolve_run_options(args: argparse.Namespace, file_config: Dict[str, Any]) -> Tuple[int, bool]:
    """Return (batch size, cleanup on interrupt) from the command line and config file."""
    workers = file_overrides(file_config, "workers", ("concurrency",))
    output = file_overrides(file_config, "output", ("cleanup_on_interrupt",))

    level = args.concurrency if args.concurrency is not None else workers.get("concurrency")
    batch_size = resolve_concurrency(level, args.media_type)

    cleanup = args.cleanup_on_interrupt
    if cleanup is None:
        cleanup = bool(output.get("cleanup_on_interrupt", False))
    return batch_size, cleanup


# -------------------- LOGGING --------------------


def setup_logging(debug: bool = False, plain: bool = False) -> None:
    """Route media2web log records to stderr, through Rich unless in plain mode."""
    if plain:
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger("media2web")
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.WARNING)
    root.propagate = False


# -------------------- INTERRUPT CLEANUP --------------------


def cleanup_outputs(paths: List[Path]) -> int:
    """Delete the given output files. Returns how many were removed."""
    removed = 0
    for path in paths:
        try:
            path.unlink()
            removed += 1
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("Could not remove %s: %s", path, e)
    return removed


# -------------------- MAIN --------------------


def run(args: argparse.Namespace, file_config: Dict[str, Any]) -> int:
    """Run one conversion. Returns the process exit code."""
    plain = is_script_mode() or not args.progress or args.json_progress

    config = build_media_config(args, file_config)
    batch_size, cleanup = resolve_run_options(args, file_config)

    input_dir = Path(args.input_dir)
    output_dir = Path(args.output_dir) if args.output_dir else input_dir / "converted"

    kwargs = {"hw": args.hw} if args.media_type == "video" else {}
    converter: BaseConverter = create_converter(args.media_type, **kwargs)

    recorder = CollectingSink()
    json_out: Optional[JSONProgressOutput] = None
    rich_ui: Optional[RichProgressUI] = None

    if args.json_progress:
        json_out = JSONProgressOutput()
        ui_sink = json_out
    elif plain:
        ui_sink = LegacyProgressUI(progress=args.progress)
    else:
        rich_ui = RichProgressUI()
        ui_sink = rich_ui

    if json_out is not None:
        files = converter.resolve_files(input_dir, args.files)
        json_out.start(len(files), args.media_type, batch_size)
    elif rich_ui is not None:
        rich_ui.console.print(f"[bold]media2web[/bold] v{__version__}")
        rich_ui.console.print(f"[dim]Input:[/dim] {input_dir}  [dim]Output:[/dim] {output_dir}")
        rich_ui.console.print(f"[dim]Concurrency:[/dim] {batch_size}")
        files = converter.resolve_files(input_dir, args.files)
        if files:
            rich_ui.start(len(files))

    start_time = time.time()
    try:
        result: ConversionResult = converter.convert(
            input_dir,
            output_dir,
            config,
            selected_files=args.files or None,
            progress_sink=combine_sinks(ui_sink, recorder),
            concurrency=batch_size,
        )
    except KeyboardInterrupt:
        stopped = terminate_all_processes()
        print(f"\nInterrupted ({stopped} encoder process(es) stopped)", file=sys.stderr, flush=True)
        if cleanup:
            done = [e.file for e in recorder.events if e.status == ProgressStatus.COMPLETED]
            removed = cleanup_outputs(converter.output_paths(output_dir, done, config))
            print(f"Removed {removed} output file(s)", file=sys.stderr, flush=True)
        return EXIT_INTERRUPTED
    finally:
        if rich_ui is not None:
            rich_ui.stop()

    elapsed = time.time() - start_time
    if json_out is not None:
        json_out.complete(result)
    elif rich_ui is not None:
        rich_ui.print_summary(result, elapsed)
    else:
        ui_sink.print_summary(result, elapsed)

    return EXIT_OK if result.ok else EXIT_FAILED


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.debug, plain=is_script_mode())

    if args.show_dirs:
        dirs = get_app_dirs(create=False)
        for name, path in dirs.items():
            print(f"{name}: {path}")
        print(f"config file: {dirs['config'] / 'config.toml'}")
        return EXIT_OK

    try:
        config_dir = get_app_dirs()["config"]
        save_default_config(config_dir)
        file_config = load_config_file(config_dir)
        return run(args, file_config)
    except (ConfigError, NoFilesFoundError) as e:
        logger.error("%s", e)
        return EXIT_FAILED
    except InputFolderError as e:
        logger.error("%s", e.strerror)
        return EXIT_FAILED
    except OSError as e:
        logger.error("Cannot prepare output: %s", e)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
