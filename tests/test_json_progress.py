"""
Tests for JSON progress output.
"""

import io
import json


def _lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def _event(current, status, file, progress=None, error=None):
    from media2web.progress import ProgressEvent, ProgressStatus

    return ProgressEvent(current, 2, file, ProgressStatus(status), progress=progress, error=error)


class TestJSONProgressOutput:
    """Tests for JSONProgressOutput."""

    def test_start(self):
        from media2web.json_progress import JSONProgressOutput

        out = io.StringIO()
        JSONProgressOutput(stream=out).start(2, "video", 3)

        (data,) = _lines(out)
        assert data["event"] == "start"
        assert data["version"] == "1.0"
        assert data["overall"]["total_files"] == 2
        assert data["overall"]["media_type"] == "video"
        assert data["overall"]["concurrency"] == 3

    def test_file_lifecycle(self):
        from media2web.json_progress import JSONProgressOutput

        out = io.StringIO()
        json_out = JSONProgressOutput(stream=out)
        json_out.start(2, "video", 2)
        json_out(_event(1, "converting", "a.mp4", progress=0.0))
        json_out(_event(1, "converting", "a.mp4", progress=50.0))
        json_out(_event(2, "converting", "b.mp4", progress=0.0))
        json_out(_event(1, "completed", "a.mp4"))
        json_out(_event(2, "failed", "b.mp4", error="ffmpeg exited with code 1"))

        events = _lines(out)
        assert [e["event"] for e in events] == ["start", "file_start", "progress", "file_start", "file_done", "file_done"]
        assert events[2]["overall"]["overall_percent"] == 25.0
        assert events[2]["files"]["1"]["progress_percent"] == 50.0

        last = events[-1]
        assert last["status"] == "failed"
        assert last["files"]["1"]["status"] == "completed"
        assert last["files"]["2"]["error"] == "ffmpeg exited with code 1"
        assert last["overall"]["processed_files"] == 2
        assert last["overall"]["converted_files"] == 1
        assert last["overall"]["failed_files"] == 1
        assert last["overall"]["overall_percent"] == 100.0

    def test_repeated_file_is_counted_twice(self):
        from media2web.json_progress import JSONProgressOutput

        out = io.StringIO()
        json_out = JSONProgressOutput(stream=out)
        json_out.start(2, "image", 1)
        for current in (1, 2):
            json_out(_event(current, "converting", "a.png"))
            json_out(_event(current, "completed", "a.png"))

        events = _lines(out)
        assert [e["event"] for e in events[1:]] == ["file_start", "file_done", "file_start", "file_done"]
        assert events[-1]["overall"]["converted_files"] == 2

    def test_same_name_in_one_batch(self):
        from media2web.json_progress import JSONProgressOutput

        out = io.StringIO()
        json_out = JSONProgressOutput(stream=out)
        json_out.start(2, "image", 2)
        json_out(_event(1, "converting", "a.png"))
        json_out(_event(2, "converting", "a.png"))
        json_out(_event(2, "completed", "a.png"))
        json_out(_event(1, "completed", "a.png"))

        events = _lines(out)
        assert [(e["event"], e["current"]) for e in events[1:]] == [
            ("file_start", 1),
            ("file_start", 2),
            ("file_done", 2),
            ("file_done", 1),
        ]
        assert set(events[-1]["files"]) == {"1", "2"}
        assert events[-1]["overall"]["converted_files"] == 2

    def test_complete_includes_results(self):
        from media2web.json_progress import JSONProgressOutput
        from media2web.results import ConversionFailure, ConversionResult, ConversionSuccess
        from media2web.stats import FileStats

        out = io.StringIO()
        result = ConversionResult(
            successes=[ConversionSuccess(FileStats("a.png", "a.webp", "2 KB", "1 KB", "50.0"))],
            failures=[ConversionFailure("b.png", "broken")],
        )
        JSONProgressOutput(stream=out).complete(result)

        (data,) = _lines(out)
        assert data["event"] == "complete"
        assert data["overall"]["overall_percent"] == 100.0
        assert data["successes"] == [
            {"input_name": "a.png", "output_name": "a.webp", "input_size": "2 KB", "output_size": "1 KB", "reduction": "50.0"}
        ]
        assert data["failures"] == [{"file": "b.png", "error": "broken"}]
