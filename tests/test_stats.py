"""
Tests for file size statistics.
"""

import pytest


class TestFormatBytes:
    """Tests for human-readable byte formatting."""

    def test_zero_bytes(self):
        from media2web.stats import format_bytes

        assert format_bytes(0) == "0 Bytes"

    def test_small_sizes_stay_in_bytes(self):
        from media2web.stats import format_bytes

        assert format_bytes(1) == "1 Bytes"
        assert format_bytes(1023) == "1023 Bytes"

    def test_exact_units_drop_trailing_zeros(self):
        from media2web.stats import format_bytes

        assert format_bytes(1024) == "1 KB"
        assert format_bytes(1024 * 1024) == "1 MB"
        assert format_bytes(1024**3) == "1 GB"

    def test_two_decimals(self):
        from media2web.stats import format_bytes

        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(1234567) == "1.18 MB"

    def test_custom_decimals(self):
        from media2web.stats import format_bytes

        assert format_bytes(1234567, decimals=0) == "1 MB"
        assert format_bytes(1234567, decimals=3) == "1.177 MB"

    def test_beyond_gb_stays_in_gb(self):
        from media2web.stats import format_bytes

        assert format_bytes(2 * 1024**4) == "2048 GB"


class TestReduction:
    """Tests for the size reduction percentage."""

    def test_sixty_percent(self):
        from media2web.stats import reduction_percent

        assert reduction_percent(1000, 400) == "60.0"

    def test_rounds_to_one_decimal(self):
        from media2web.stats import reduction_percent

        assert reduction_percent(3, 1) == "66.7"

    def test_growth_is_negative(self):
        from media2web.stats import reduction_percent

        assert reduction_percent(100, 150) == "-50.0"

    def test_empty_input(self):
        from media2web.stats import reduction_percent

        assert reduction_percent(0, 10) == "0.0"


class TestCalculateFileStats:
    """Tests for calculate_file_stats."""

    def test_stats_from_files(self, temp_dir):
        from media2web.stats import calculate_file_stats

        inp = temp_dir / "photo.png"
        out = temp_dir / "photo.webp"
        inp.write_bytes(b"x" * 1000)
        out.write_bytes(b"x" * 400)

        stats = calculate_file_stats(inp, out)

        assert stats.input_name == "photo.png"
        assert stats.output_name == "photo.webp"
        assert stats.input_size == "1000 Bytes"
        assert stats.output_size == "400 Bytes"
        assert stats.reduction == "60.0"

    def test_missing_output_raises(self, temp_dir):
        from media2web.stats import calculate_file_stats

        inp = temp_dir / "photo.png"
        inp.write_bytes(b"x")

        with pytest.raises(FileNotFoundError):
            calculate_file_stats(inp, temp_dir / "missing.webp")
