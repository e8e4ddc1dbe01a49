import logging
from typing import Protocol

from wikigen.schemas import ProgressEvent


logger = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    def on_progress(self, event: ProgressEvent) -> None: ...


class NullProgressReporter:
    def on_progress(self, event: ProgressEvent) -> None:
        return None


class LoggingProgressReporter:
    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logger

    def on_progress(self, event: ProgressEvent) -> None:
        remaining = format_duration(event.estimated_time_remaining) if event.estimated_time_remaining is not None else "-"
        self.log.info(
            "progress %d/%d (%.1f%%) %s [%s] ok=%d failed=%d retries=%d rate=%.2f/s eta=%s",
            event.current,
            event.total,
            event.percentage,
            event.current_item_label,
            event.stage,
            event.success_count,
            event.failure_count,
            event.retry_count,
            event.items_per_second,
            remaining,
            extra={"memory_usage_mb": event.memory_usage_mb},
        )


def notify_safely(reporters: list[ProgressReporter], event: ProgressEvent) -> None:
    for reporter in reporters:
        try:
            reporter.on_progress(event)
        except Exception:
            # Reporters are a side channel and must never stop the pipeline.
            logger.exception("progress reporter failed", extra={"reporter": type(reporter).__name__})


def format_duration(seconds: float) -> str:
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h{minutes:02d}m{secs:02d}s"
    if minutes:
        return f"{minutes}m{secs:02d}s"
    return f"{secs}s"
