from collections.abc import Callable
from datetime import UTC, datetime
import logging
from pathlib import Path
import time
import uuid

import psutil
from sqlalchemy.orm import Session, sessionmaker

from wikigen.config import EntryFilter, Settings
from wikigen.db_models import PipelineRun
from wikigen.errors import NetworkError, ParseError
from wikigen.generator import ArtifactGenerator
from wikigen.manifest import parse_manifest
from wikigen.processor import EntityProcessor
from wikigen.progress import ProgressReporter, notify_safely
from wikigen.report import build_report, default_report_path, write_json
from wikigen.retry import run_with_retries
from wikigen.run_store import create_run, finish_run
from wikigen.schemas import (
    BatchStatistics,
    EntryRecord,
    Failure,
    FailureStage,
    FinalStatistics,
    NormalizedRecord,
    PipelineResult,
    PipelineState,
    ProcessingOutcome,
    ProgressEvent,
    Success,
)


logger = logging.getLogger(__name__)

HEALTH_CHECK_INTERVAL = 5
HEALTH_CHECK_MIN_ITEMS = 10


def resident_memory_mb() -> float:
    return psutil.Process().memory_info().rss / (1024 * 1024)


def new_run_key() -> str:
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    return f"run-{stamp}-{uuid.uuid4().hex[:8]}"


def partial_output_path(output_path: str) -> Path:
    path = Path(output_path)
    return path.with_name(f"{path.stem}-partial{path.suffix}")


def failure_stage(exc: Exception) -> FailureStage:
    if isinstance(exc, NetworkError):
        return FailureStage.FETCH
    return FailureStage.MAPPING


def apply_entry_filter(entries: list[EntryRecord], entry_filter: EntryFilter) -> tuple[list[EntryRecord], int]:
    if not entry_filter.active:
        return entries, 0

    selected = entries
    if entry_filter.include_ids:
        wanted = set(entry_filter.include_ids)
        selected = [entry for entry in selected if entry.id in wanted or entry.page_id in wanted]
    if entry_filter.exclude_ids:
        unwanted = set(entry_filter.exclude_ids)
        selected = [entry for entry in selected if entry.id not in unwanted and entry.page_id not in unwanted]
    if entry_filter.max_items is not None:
        selected = selected[: entry_filter.max_items]
    return selected, len(entries) - len(selected)


def make_batches(entries: list[EntryRecord], batch_size: int) -> list[list[EntryRecord]]:
    return [entries[start : start + batch_size] for start in range(0, len(entries), batch_size)]


class BatchPipeline:
    """Runs one manifest through fetch, mapping and artifact generation.

    Items are processed sequentially in fixed-size batches. Per-item errors
    become ``Failure`` outcomes; errors while parsing the manifest or writing
    the artifact abort the run and propagate to the caller.
    """

    def __init__(
        self,
        settings: Settings,
        processor: EntityProcessor,
        generator: ArtifactGenerator,
        *,
        reporters: list[ProgressReporter] | None = None,
        session_factory: sessionmaker[Session] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        memory_reader: Callable[[], float] = resident_memory_mb,
    ) -> None:
        self.settings = settings
        self.processor = processor
        self.generator = generator
        self.reporters = list(reporters or [])
        self.session_factory = session_factory
        self.sleep = sleep
        self.clock = clock
        self.memory_reader = memory_reader
        self.state = PipelineState.IDLE
        self.result: PipelineResult | None = None

    def run(self, run_key: str | None = None) -> PipelineResult:
        run_key = run_key or new_run_key()
        stats = BatchStatistics()
        outcomes: list[ProcessingOutcome] = []
        started = self.clock()

        db = self.session_factory() if self.session_factory else None
        ledger_run = None
        try:
            if db is not None:
                ledger_run = create_run(
                    db,
                    run_key=run_key,
                    manifest_path=self.settings.scraping_file_path,
                    output_path=self.settings.output_path,
                )

            try:
                self._transition(PipelineState.PARSING, run_key)
                entries = parse_manifest(self.settings.scraping_file_path)
                entries, skipped = apply_entry_filter(entries, self.settings.entry_filter)
                stats.total = len(entries) + skipped
                stats.skipped = skipped
                if not entries:
                    raise ParseError("no entries left to process after filtering")
                logger.info(
                    "entries selected",
                    extra={"run_key": run_key, "entries": len(entries), "skipped": skipped},
                )

                self._transition(PipelineState.PROCESSING, run_key)
                self._process_batches(entries, stats, outcomes, started)

                self._transition(PipelineState.GENERATING, run_key)
                records = successful_records(outcomes)
                self._generate(records)
            except Exception as exc:
                stats.elapsed_seconds = self.clock() - started
                final = stats.freeze()
                self._transition(PipelineState.FAILED, run_key)
                logger.exception("pipeline run failed", extra={"run_key": run_key})
                self.result = self._build_result(run_key, "failed", False, outcomes, final, error=str(exc))
                self._publish(self.result, db, ledger_run)
                raise

            stats.elapsed_seconds = self.clock() - started
            final = stats.freeze()
            success = self._meets_threshold(final)
            self._transition(PipelineState.DONE, run_key)
            self.result = self._build_result(run_key, "succeeded", success, outcomes, final)
            self._publish(self.result, db, ledger_run)
            logger.info(
                "pipeline run finished",
                extra={
                    "run_key": run_key,
                    "successful": final.successful,
                    "failed": final.failed,
                    "skipped": final.skipped,
                    "retries": final.retry_count,
                    "success_rate": round(final.success_rate, 2),
                },
            )
            return self.result
        finally:
            if db is not None:
                db.close()

    def _transition(self, state: PipelineState, run_key: str) -> None:
        logger.info(
            "pipeline state %s -> %s",
            self.state.value,
            state.value,
            extra={"run_key": run_key},
        )
        self.state = state

    def _process_batches(
        self,
        entries: list[EntryRecord],
        stats: BatchStatistics,
        outcomes: list[ProcessingOutcome],
        started: float,
    ) -> None:
        batches = make_batches(entries, self.settings.batch_size)
        for index, batch in enumerate(batches, start=1):
            logger.info(
                "processing batch %d/%d",
                index,
                len(batches),
                extra={"batch_size": len(batch)},
            )
            for entry in batch:
                outcome = self._process_item(entry, stats)
                outcomes.append(outcome)
                stats.elapsed_seconds = self.clock() - started
                self._notify(entry, stats, len(entries), outcome)

            if index % HEALTH_CHECK_INTERVAL == 0:
                self._check_health(stats)
            if index < len(batches) and self.settings.delay_seconds > 0:
                self.sleep(self.settings.delay_seconds)

    def _process_item(self, entry: EntryRecord, stats: BatchStatistics) -> ProcessingOutcome:
        def log_attempt_failure(attempt: int, exc: Exception) -> None:
            logger.warning(
                "entry attempt failed: %s",
                exc,
                extra={"entry_id": entry.id, "page_id": entry.page_id, "attempt": attempt},
            )

        result = run_with_retries(
            lambda: self.processor.process(entry),
            max_retries=self.settings.max_retries,
            backoff_seconds=self.settings.delay_seconds,
            on_attempt_failure=log_attempt_failure,
            sleep=self.sleep,
        )
        stats.retry_count += result.retries

        if result.ok:
            stats.successful += 1
            return Success(entry=entry, record=result.value, attempts=result.attempts)

        stats.failed += 1
        stage = failure_stage(result.error)
        logger.error(
            "entry failed after %d attempts: %s",
            result.attempts,
            result.error,
            extra={"entry_id": entry.id, "page_id": entry.page_id, "stage": stage.value},
        )
        return Failure(entry=entry, stage=stage, error=str(result.error), attempts=result.attempts)

    def _notify(self, entry: EntryRecord, stats: BatchStatistics, total: int, outcome: ProcessingOutcome) -> None:
        if not self.reporters:
            return
        remaining = total - stats.processed
        eta = stats.average_item_seconds * remaining if stats.processed else None
        event = ProgressEvent(
            current=stats.processed,
            total=total,
            current_item_label=entry.display_name,
            stage="processed" if outcome.ok else "failed",
            items_per_second=stats.items_per_second,
            estimated_time_remaining=eta,
            memory_usage_mb=self.memory_reader(),
            success_count=stats.successful,
            failure_count=stats.failed,
            retry_count=stats.retry_count,
        )
        notify_safely(self.reporters, event)

    def _check_health(self, stats: BatchStatistics) -> None:
        memory_mb = self.memory_reader()
        if memory_mb > self.settings.memory_ceiling_mb:
            logger.warning(
                "memory usage %.0fMB exceeds ceiling %.0fMB",
                memory_mb,
                self.settings.memory_ceiling_mb,
            )
        if stats.processed > HEALTH_CHECK_MIN_ITEMS and stats.items_per_second < self.settings.min_items_per_second:
            logger.warning(
                "throughput %.3f items/s is below %.3f items/s",
                stats.items_per_second,
                self.settings.min_items_per_second,
            )

    def _generate(self, records: list[NormalizedRecord]) -> None:
        try:
            path = self.generator.generate(records, self.settings.output_path)
        except Exception:
            self._save_partial(records)
            raise
        logger.info("artifact written", extra={"output_path": str(path), "records": len(records)})

    def _save_partial(self, records: list[NormalizedRecord]) -> None:
        partial_path = partial_output_path(self.settings.output_path)
        try:
            self.generator.generate(records, partial_path, validate=False)
        except Exception:
            logger.exception("partial save failed", extra={"output_path": str(partial_path)})
            return
        logger.warning(
            "partial artifact saved",
            extra={"output_path": str(partial_path), "records": len(records)},
        )

    def _meets_threshold(self, statistics: FinalStatistics) -> bool:
        threshold = self.settings.min_success_rate
        if threshold is None:
            return True
        if statistics.success_rate / 100 >= threshold:
            return True
        logger.warning(
            "success rate %.1f%% is below the configured minimum %.1f%%",
            statistics.success_rate,
            threshold * 100,
        )
        return False

    def _build_result(
        self,
        run_key: str,
        status: str,
        success: bool,
        outcomes: list[ProcessingOutcome],
        statistics: FinalStatistics,
        error: str | None = None,
    ) -> PipelineResult:
        return PipelineResult(
            run_key=run_key,
            status=status,
            success=success,
            records=successful_records(outcomes),
            failures=[outcome for outcome in outcomes if isinstance(outcome, Failure)],
            statistics=statistics,
            output_path=self.settings.output_path,
            report_path=str(self._report_path()),
            error=error,
            outcomes=list(outcomes),
        )

    def _report_path(self) -> Path:
        if self.settings.report_path:
            return Path(self.settings.report_path)
        return default_report_path(self.settings.output_path)

    def _publish(self, result: PipelineResult, db: Session | None, ledger_run: PipelineRun | None) -> None:
        # A report that cannot be written does not fail the run.
        try:
            write_json(
                self._report_path(),
                build_report(
                    run_key=result.run_key,
                    status=result.status,
                    settings=self.settings,
                    statistics=result.statistics,
                    records=result.records,
                    failures=result.failures,
                    output_path=result.output_path,
                    error=result.error,
                ),
            )
        except OSError:
            logger.exception("processing report could not be written", extra={"report_path": result.report_path})

        if db is not None and ledger_run is not None:
            finish_run(
                db,
                ledger_run,
                status=result.status,
                statistics=result.statistics,
                failures=result.failures,
                error=result.error,
            )


def successful_records(outcomes: list[ProcessingOutcome]) -> list[NormalizedRecord]:
    return [outcome.record for outcome in outcomes if isinstance(outcome, Success)]
