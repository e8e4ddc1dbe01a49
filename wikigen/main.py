import argparse
import logging

from wikigen.client import WikiClient
from wikigen.config import load_settings
from wikigen.database import build_session_factory
from wikigen.errors import WikigenError
from wikigen.field_mapper import FallbackTable, FieldMapper
from wikigen.generator import ArtifactGenerator
from wikigen.pipeline import BatchPipeline
from wikigen.processor import EntityProcessor
from wikigen.progress import LoggingProgressReporter
from wikigen.schemas import PipelineResult


logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate the character data module from the HoYoLAB wiki")
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Path to the processing config JSON (default: processing-config.json)",
    )
    return parser.parse_args(argv)


def print_summary(result: PipelineResult) -> None:
    stats = result.statistics
    print(
        "status={status} success={success} total={total} successful={successful} failed={failed} skipped={skipped} retries={retries} output={output} report={report}".format(
            status=result.status,
            success=result.success,
            total=stats.total,
            successful=stats.successful,
            failed=stats.failed,
            skipped=stats.skipped,
            retries=stats.retry_count,
            output=result.output_path,
            report=result.report_path,
        )
    )
    for failure in result.failures:
        print(f"failed id={failure.entry.id} page_id={failure.entry.page_id} stage={failure.stage.value} error={failure.error}")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    try:
        settings = load_settings(args.config)
    except WikigenError as exc:
        logging.basicConfig(level=logging.ERROR)
        logger.error("invalid configuration: %s", exc)
        print(f"status=failed error={exc}")
        raise SystemExit(1) from exc

    logging.basicConfig(
        level=settings.python_log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    session_factory = build_session_factory(settings.database_url) if settings.database_url else None
    field_mapper = FieldMapper(FallbackTable(settings.fallback_list_path), settings.default_attack_type)
    generator = ArtifactGenerator(enable_validation=settings.enable_validation)

    with WikiClient(base_url=settings.api_url, timeout_seconds=settings.request_timeout_seconds) as client:
        pipeline = BatchPipeline(
            settings,
            EntityProcessor(client, field_mapper, settings.locales),
            generator,
            reporters=[LoggingProgressReporter()],
            session_factory=session_factory,
        )
        try:
            result = pipeline.run()
        except WikigenError as exc:
            if pipeline.result is not None:
                print_summary(pipeline.result)
            print(f"error={exc}")
            raise SystemExit(1) from exc

    print_summary(result)


if __name__ == "__main__":
    main()
