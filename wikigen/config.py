from dataclasses import dataclass, field
import json
import logging
import math
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from wikigen.errors import ConfigError
from wikigen.schemas import AttackType


load_dotenv()

logger = logging.getLogger(__name__)

LOG_LEVELS = {"error", "warn", "info", "debug"}
DEFAULT_CONFIG_PATH = "processing-config.json"


@dataclass(frozen=True)
class EntryFilter:
    include_ids: tuple[str, ...] = ()
    exclude_ids: tuple[str, ...] = ()
    max_items: int | None = None

    @property
    def active(self) -> bool:
        return bool(self.include_ids or self.exclude_ids or self.max_items is not None)


@dataclass(frozen=True)
class Settings:
    batch_size: int = 5
    delay_ms: int = 200
    max_retries: int = 3
    output_path: str = "data/characters.ts"
    scraping_file_path: str = "Scraping.md"
    fallback_list_path: str = "json/data/list.json"
    enable_validation: bool = True
    log_level: str = "info"
    min_success_rate: float | None = None
    memory_ceiling_mb: float = 800.0
    min_items_per_second: float = 0.05
    request_timeout_seconds: float = 10.0
    api_url: str = "https://sg-wiki-api-static.hoyolab.com/hoyowiki/zzz/wapi/entry_page"
    locales: tuple[str, ...] = ("ja-jp", "en-us")
    report_path: str | None = None
    database_url: str = "sqlite:///./pipeline.db"
    default_attack_type: str = "strike"
    entry_filter: EntryFilter = field(default_factory=EntryFilter)

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000

    @property
    def python_log_level(self) -> int:
        name = "WARNING" if self.log_level == "warn" else self.log_level.upper()
        return getattr(logging, name, logging.INFO)


# config file key -> Settings field
_KEY_MAP = {
    "batchSize": "batch_size",
    "delayMs": "delay_ms",
    "maxRetries": "max_retries",
    "outputPath": "output_path",
    "outputFilePath": "output_path",
    "scrapingFilePath": "scraping_file_path",
    "discListPath": "scraping_file_path",
    "fallbackListPath": "fallback_list_path",
    "enableValidation": "enable_validation",
    "logLevel": "log_level",
    "minSuccessRate": "min_success_rate",
    "memoryCeilingMb": "memory_ceiling_mb",
    "minItemsPerSecond": "min_items_per_second",
    "requestTimeoutSeconds": "request_timeout_seconds",
    "apiUrl": "api_url",
    "locales": "locales",
    "reportPath": "report_path",
    "databaseUrl": "database_url",
    "defaultAttackType": "default_attack_type",
}


def load_settings(config_path: str | None = None) -> Settings:
    path = Path(config_path or DEFAULT_CONFIG_PATH)
    values: dict[str, Any] = {}

    if not path.exists():
        logger.warning("config file not found, using defaults", extra={"config_path": str(path)})
    else:
        values = _read_config_file(path)
        logger.info("config file loaded", extra={"config_path": str(path)})

    env_log_level = os.getenv("WIKIGEN_LOG_LEVEL")
    if env_log_level:
        values["log_level"] = env_log_level.lower()
    env_database_url = os.getenv("WIKIGEN_DATABASE_URL")
    if env_database_url is not None:
        values["database_url"] = env_database_url

    settings = Settings(**values)
    validate_settings(settings)
    return settings


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as infile:
            raw = json.load(infile)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"config file {path} must contain a JSON object")

    # Accept both a flat file and one scoped under characterProcessing.
    section = raw.get("characterProcessing")
    if isinstance(section, dict):
        raw = {**raw, **section}

    values: dict[str, Any] = {}
    for key, value in raw.items():
        field_name = _KEY_MAP.get(key)
        if field_name is None:
            continue
        if field_name == "locales":
            value = _string_tuple(value, key)
        values[field_name] = value

    raw_filter = raw.get("filter")
    if raw_filter is not None:
        if not isinstance(raw_filter, dict):
            raise ConfigError("filter must be a JSON object")
        values["entry_filter"] = EntryFilter(
            include_ids=_string_tuple(raw_filter.get("includeIds") or [], "filter.includeIds"),
            exclude_ids=_string_tuple(raw_filter.get("excludeIds") or [], "filter.excludeIds"),
            max_items=raw_filter.get("maxItems"),
        )
    return values


def _string_tuple(value: Any, key: str) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)) or not all(isinstance(item, str) and item for item in value):
        raise ConfigError(f"{key} must be a list of non-empty strings")
    return tuple(value)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def validate_settings(settings: Settings) -> None:
    if not _is_int(settings.batch_size) or settings.batch_size <= 0:
        raise ConfigError("batchSize must be an integer greater than 0")
    if not _is_int(settings.delay_ms) or settings.delay_ms < 0:
        raise ConfigError("delayMs must be an integer >= 0")
    if not _is_int(settings.max_retries) or settings.max_retries < 0:
        raise ConfigError("maxRetries must be an integer >= 0")
    if not isinstance(settings.log_level, str) or settings.log_level not in LOG_LEVELS:
        raise ConfigError(f"logLevel must be one of {sorted(LOG_LEVELS)}")
    if not isinstance(settings.enable_validation, bool):
        raise ConfigError("enableValidation must be true or false")
    if not _is_text(settings.output_path):
        raise ConfigError("outputPath is required")
    if not _is_text(settings.scraping_file_path):
        raise ConfigError("scrapingFilePath is required")
    if not _is_text(settings.fallback_list_path):
        raise ConfigError("fallbackListPath is required")
    if settings.min_success_rate is not None and (
        not _is_number(settings.min_success_rate) or not 0 <= settings.min_success_rate <= 1
    ):
        raise ConfigError("minSuccessRate must be a number between 0 and 1")
    if not _is_number(settings.memory_ceiling_mb) or settings.memory_ceiling_mb <= 0:
        raise ConfigError("memoryCeilingMb must be a number greater than 0")
    if not _is_number(settings.min_items_per_second) or settings.min_items_per_second < 0:
        raise ConfigError("minItemsPerSecond must be a number >= 0")
    if not _is_number(settings.request_timeout_seconds) or settings.request_timeout_seconds <= 0:
        raise ConfigError("requestTimeoutSeconds must be a number greater than 0")
    if not _is_text(settings.api_url):
        raise ConfigError("apiUrl is required")
    if isinstance(settings.locales, str) or not settings.locales:
        raise ConfigError("locales must name at least one locale")
    if settings.report_path is not None and not _is_text(settings.report_path):
        raise ConfigError("reportPath must be a non-empty string")
    if not isinstance(settings.database_url, str):
        raise ConfigError("databaseUrl must be a string")
    if not isinstance(settings.default_attack_type, str) or settings.default_attack_type not in {
        member.value for member in AttackType
    }:
        raise ConfigError("defaultAttackType must be one of slash, pierce, strike")
    max_items = settings.entry_filter.max_items
    if max_items is not None and (not _is_int(max_items) or max_items <= 0):
        raise ConfigError("filter.maxItems must be an integer greater than 0")
