"""
Pytest configuration and shared fixtures for media2web tests.
"""

import shutil
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def image_dir(temp_dir: Path) -> Path:
    """
    Create a folder of small test images.

    Contains test.png (RGB), alpha.png (RGBA), photo.jpg and notes.txt.
    """
    from PIL import Image

    folder = temp_dir / "images"
    folder.mkdir()

    img = Image.new("RGB", (64, 48))
    for x in range(64):
        for y in range(48):
            img.putpixel((x, y), (x * 4, y * 5, (x + y) * 2))
    img.save(folder / "test.png")
    img.save(folder / "photo.jpg", quality=95)
    Image.new("RGBA", (32, 32), (255, 0, 0, 128)).save(folder / "alpha.png")
    (folder / "notes.txt").write_text("not an image")
    return folder


@pytest.fixture
def video_dir(temp_dir: Path) -> Path:
    """Create a folder with placeholder video files (not decodable)."""
    folder = temp_dir / "videos"
    folder.mkdir()
    for name in ("a.mp4", "b.mov", "c.mkv"):
        (folder / name).write_bytes(b"\x00" * 1000)
    (folder / "readme.md").write_text("skip me")
    return folder


@pytest.fixture(scope="session")
def test_sample_mp4(tmp_path_factory) -> Path:
    """Create a 2 second test video with ffmpeg."""
    if not shutil.which("ffmpeg"):
        pytest.skip("ffmpeg not available for creating test files")

    folder = tmp_path_factory.mktemp("video_data")
    mp4_path = folder / "test.mp4"
    cmd = [
        "ffmpeg",
        "-y",
        "-f",
        "lavfi",
        "-i",
        "testsrc=duration=2:size=160x120:rate=15",
        "-f",
        "lavfi",
        "-i",
        "sine=frequency=440:duration=2",
        "-c:v",
        "libx264",
        "-preset",
        "ultrafast",
        "-pix_fmt",
        "yuv420p",
        "-c:a",
        "aac",
        "-shortest",
        str(mp4_path),
    ]

    try:
        result = subprocess.run(cmd, capture_output=True, timeout=120)
        if result.returncode != 0:
            pytest.skip(f"Failed to create test file: {result.stderr.decode()[:200]}")
    except subprocess.TimeoutExpired:
        pytest.skip("Timeout creating test file")

    return mp4_path


@pytest.fixture
def mock_xdg_dirs(temp_dir: Path, monkeypatch):
    """Mock XDG directories to use temporary paths."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(temp_dir / "config"))


@pytest.fixture
def script_mode(monkeypatch):
    """Force plain output."""
    monkeypatch.setenv("MEDIA2WEB_SCRIPT_MODE", "1")


@pytest.fixture
def fake_video_encoder():
    """
    Video encoder stand-in: writes 400 bytes and reports 25/50/100 percent.

    Inputs whose name contains "broken" raise like a failing ffmpeg would.
    """
    from media2web.encoders import EncoderError

    calls = []

    def encoder(input_path, output_path, config, on_progress=None, hw="cpu"):
        calls.append((input_path, output_path, config, hw))
        if "broken" in input_path.name:
            raise EncoderError("ffmpeg exited with code 1: Invalid data found when processing input")
        if not input_path.exists():
            raise FileNotFoundError(2, "No such file or directory", str(input_path))
        for pct in (25.0, 50.0, 100.0):
            if on_progress:
                on_progress(pct)
        output_path.write_bytes(b"\x01" * 400)

    encoder.calls = calls
    return encoder
