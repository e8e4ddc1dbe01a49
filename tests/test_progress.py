import logging

from wikigen.progress import LoggingProgressReporter, NullProgressReporter, format_duration, notify_safely
from wikigen.schemas import ProgressEvent


def _event(current: int = 2, total: int = 4) -> ProgressEvent:
    return ProgressEvent(
        current=current,
        total=total,
        current_item_label="lycaon",
        stage="processed",
        items_per_second=0.5,
        estimated_time_remaining=125.0,
        memory_usage_mb=64.0,
        success_count=current,
        failure_count=0,
        retry_count=1,
    )


def test_format_duration() -> None:
    assert format_duration(42) == "42s"
    assert format_duration(125) == "2m05s"
    assert format_duration(3725) == "1h02m05s"


def test_logging_reporter_writes_one_line(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="wikigen.progress"):
        LoggingProgressReporter().on_progress(_event())

    assert len(caplog.records) == 1
    assert "progress 2/4 (50.0%) lycaon" in caplog.text
    assert "eta=2m05s" in caplog.text


def test_notify_safely_continues_after_reporter_error(caplog) -> None:
    received: list[ProgressEvent] = []

    class Broken:
        def on_progress(self, event: ProgressEvent) -> None:
            raise ValueError("nope")

    class Collector:
        def on_progress(self, event: ProgressEvent) -> None:
            received.append(event)

    with caplog.at_level(logging.ERROR, logger="wikigen.progress"):
        notify_safely([Broken(), NullProgressReporter(), Collector()], _event())

    assert len(received) == 1
    assert "progress reporter failed" in caplog.text
