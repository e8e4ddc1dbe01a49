from collections import Counter
import json
from pathlib import Path
import platform

from wikigen.config import Settings
from wikigen.schemas import Failure, FinalStatistics, NormalizedRecord


LOW_SUCCESS_RATE = 80.0
HIGH_SUCCESS_RATE = 95.0
SLOW_ITEMS_PER_SECOND = 0.1


def default_report_path(output_path: str) -> Path:
    path = Path(output_path)
    return path.with_name(f"{path.stem}-processing-report.json")


def build_report(
    *,
    run_key: str,
    status: str,
    settings: Settings,
    statistics: FinalStatistics,
    records: list[NormalizedRecord],
    failures: list[Failure],
    output_path: str,
    error: str | None = None,
) -> dict[str, object]:
    stage_counts = Counter(failure.stage.value for failure in failures)
    error_counts = Counter(failure.error for failure in failures)

    return {
        "run_key": run_key,
        "status": status,
        "output_path": output_path,
        "error": error,
        "settings": {
            "manifest": settings.scraping_file_path,
            "batch_size": settings.batch_size,
            "delay_ms": settings.delay_ms,
            "max_retries": settings.max_retries,
            "enable_validation": settings.enable_validation,
            "min_success_rate": settings.min_success_rate,
        },
        "statistics": {
            "total": statistics.total,
            "successful": statistics.successful,
            "failed": statistics.failed,
            "skipped": statistics.skipped,
            "retries": statistics.retry_count,
            "success_rate": round(statistics.success_rate, 2),
            "elapsed_seconds": round(statistics.elapsed_seconds, 3),
            "average_item_seconds": round(statistics.average_item_seconds, 3),
            "items_per_second": round(statistics.items_per_second, 3),
        },
        "failures_by_stage": dict(sorted(stage_counts.items())),
        "top_errors": [{"error": message, "count": count} for message, count in error_counts.most_common(10)],
        "failures": [
            {
                "entry_id": failure.entry.id,
                "page_id": failure.entry.page_id,
                "stage": failure.stage.value,
                "attempts": failure.attempts,
                "error": failure.error,
            }
            for failure in failures
        ],
        "generated": [record.id for record in records],
        "recommendations": recommendations(statistics, error_counts),
        "platform": {"python": platform.python_version(), "system": platform.system()},
    }


def recommendations(statistics: FinalStatistics, error_counts: Counter) -> list[str]:
    notes: list[str] = []
    attempted = statistics.total - statistics.skipped
    if attempted > 0 and statistics.success_rate < LOW_SUCCESS_RATE:
        notes.append(
            f"success rate is {statistics.success_rate:.0f}%; consider a longer delayMs or a smaller batchSize"
        )
    if attempted > 0 and statistics.retry_count > attempted * 0.5:
        notes.append("retry count is high; check network connectivity and upstream rate limits")
    if statistics.elapsed_seconds > 0 and statistics.items_per_second < SLOW_ITEMS_PER_SECOND:
        notes.append("throughput is low; check delayMs and system resources")
    if error_counts:
        message, count = error_counts.most_common(1)[0]
        if count > 1:
            notes.append(f"most frequent error ({count} items): {message}")
    if attempted > 0 and statistics.success_rate >= HIGH_SUCCESS_RATE:
        notes.append(f"success rate is {statistics.success_rate:.0f}%")
    return notes


def write_json(path: Path, payload: dict[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as outfile:
        json.dump(payload, outfile, indent=2, sort_keys=True, ensure_ascii=False)
        outfile.write("\n")
