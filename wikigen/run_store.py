from sqlalchemy import select
from sqlalchemy.orm import Session

from wikigen.db_models import FailedItem, PipelineRun, utc_now
from wikigen.schemas import Failure, FinalStatistics


def get_run_by_key(db: Session, run_key: str) -> PipelineRun | None:
    stmt = select(PipelineRun).where(PipelineRun.run_key == run_key)
    return db.execute(stmt).scalar_one_or_none()


def create_run(db: Session, *, run_key: str, manifest_path: str, output_path: str) -> PipelineRun:
    run = PipelineRun(run_key=run_key, manifest_path=manifest_path, output_path=output_path, status="running")
    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def finish_run(
    db: Session,
    run: PipelineRun,
    *,
    status: str,
    statistics: FinalStatistics,
    failures: list[Failure],
    error: str | None = None,
) -> None:
    run.status = status
    run.total_items = statistics.total
    run.successful_items = statistics.successful
    run.failed_items = statistics.failed
    run.skipped_items = statistics.skipped
    run.retry_count = statistics.retry_count
    run.elapsed_seconds = statistics.elapsed_seconds
    run.completed_at = utc_now()
    run.error = error

    for failure in failures:
        run.failures.append(
            FailedItem(
                entry_id=failure.entry.id,
                page_id=failure.entry.page_id,
                stage=failure.stage.value,
                attempts=failure.attempts,
                error=failure.error,
            )
        )
    db.commit()
