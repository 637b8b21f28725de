"""
Tests for outcome aggregation.
"""

import pytest


def _success(name):
    from media2web.results import ConversionSuccess
    from media2web.stats import FileStats

    return ConversionSuccess(FileStats(name, name + ".webp", "1 KB", "512 Bytes", "50.0"))


class TestClassifyResults:
    """Tests for classify_results."""

    def test_partition_keeps_order(self):
        from media2web.results import ConversionFailure, classify_results

        outcomes = [
            _success("a"),
            ConversionFailure("b", "boom"),
            _success("c"),
            ConversionFailure("d", "bang"),
            _success("e"),
        ]

        result = classify_results(outcomes)

        assert [s.input_name for s in result.successes] == ["a", "c", "e"]
        assert [f.file for f in result.failures] == ["b", "d"]
        assert result.total == 5
        assert result.ok is False

    def test_empty(self):
        from media2web.results import classify_results

        result = classify_results([])
        assert result.successes == []
        assert result.failures == []
        assert result.ok is True

    def test_all_failed_is_a_valid_result(self):
        from media2web.results import ConversionFailure, classify_results

        result = classify_results([ConversionFailure("x", "err")])
        assert result.successes == []
        assert len(result.failures) == 1

    def test_unknown_outcome_rejected(self):
        from media2web.results import classify_results

        with pytest.raises(TypeError):
            classify_results(["not an outcome"])

    def test_success_exposes_stats(self):
        s = _success("photo")
        assert s.input_name == "photo"
        assert s.output_name == "photo.webp"
        assert s.input_size == "1 KB"
        assert s.output_size == "512 Bytes"
        assert s.reduction == "50.0"
