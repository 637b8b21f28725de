"""
File size statistics for converted media.

Produces the human-readable sizes and reduction percentage shown in the
conversion summary.
"""

from dataclasses import dataclass
from pathlib import Path

SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


@dataclass(frozen=True)
class FileStats:
    """Size comparison between an input file and its converted output."""

    input_name: str
    output_name: str
    input_size: str
    output_size: str
    reduction: str


def format_bytes(size: int, decimals: int = 2) -> str:
    """
    Format a byte count using base-1024 units.

    Trailing zeros are dropped, so 1024 formats as "1 KB" and 1536 as
    "1.5 KB". Sizes beyond the GB range stay in GB.

    Args:
        size: Number of bytes (>= 0).
        decimals: Maximum number of decimal places.

    Returns:
        Formatted string such as "0 Bytes", "512 Bytes" or "1.21 MB".
    """
    if size <= 0:
        return "0 Bytes"

    dm = max(0, decimals)
    i = 0
    while size >= 1024 ** (i + 1) and i < len(SIZE_UNITS) - 1:
        i += 1
    value = round(size / (1024**i), dm)
    text = f"{value:.{dm}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[i]}"


def reduction_percent(input_bytes: int, output_bytes: int) -> str:
    """Return ``(1 - out/in) * 100`` rounded to one decimal, as a string."""
    if input_bytes <= 0:
        return "0.0"
    return f"{(1 - output_bytes / input_bytes) * 100:.1f}"


def calculate_file_stats(input_path: Path, output_path: Path) -> FileStats:
    """Stat both files and build a FileStats record. Raises OSError if either is missing."""
    in_size = input_path.stat().st_size
    out_size = output_path.stat().st_size
    return FileStats(
        input_name=input_path.name,
        output_name=output_path.name,
        input_size=format_bytes(in_size),
        output_size=format_bytes(out_size),
        reduction=reduction_percent(in_size, out_size),
    )
