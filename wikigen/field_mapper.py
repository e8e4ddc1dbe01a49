import json
import logging
from pathlib import Path
import threading
from typing import Any

from wikigen.errors import MappingError
from wikigen.mappings import (
    ATTACK_TYPE_MAPPING,
    ENGLISH_ATTACK_TYPE_MAPPING,
    FACTION_IDS_BY_NAME,
    RARITY_MAPPING,
    SPECIALTY_MAPPING,
    STATS_MAPPING,
)
from wikigen.schemas import AttackType, Rarity, Specialty, Stats

logger = logging.getLogger(__name__)


class FallbackTable:
    """
    Read-only index of the list dataset keyed by ``entry_page_id``.

    Loaded on first lookup and kept for the life of the process. A missing
    file or malformed content leaves the table empty; neither is fatal.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._items: dict[str, dict[str, Any]] = {}
        self._loaded = False
        self._lock = threading.Lock()

    def get(self, page_id: str) -> dict[str, Any] | None:
        self._ensure_loaded()
        return self._items.get(str(page_id))

    def field_values(self, page_id: str, field: str) -> list[str]:
        item = self.get(page_id)
        if item is None:
            return []
        filter_values = item.get("filter_values")
        if not isinstance(filter_values, dict):
            return []
        entry = filter_values.get(field)
        values = entry.get("values") if isinstance(entry, dict) else None
        if not isinstance(values, list):
            return []
        return [str(value) for value in values if value]

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            self._items = self._load()
            self._loaded = True

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            logger.warning("fallback list not found, attack type fallback disabled", extra={"path": str(self.path)})
            return {}

        try:
            with self.path.open("r", encoding="utf-8") as infile:
                document = json.load(infile)
            items = document["data"]["list"]
            if not isinstance(items, list):
                raise TypeError("data.list is not an array")
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.error("fallback list is malformed, attack type fallback disabled", extra={"path": str(self.path), "error": str(exc)})
            return {}

        indexed = {
            str(item["entry_page_id"]): item
            for item in items
            if isinstance(item, dict) and item.get("entry_page_id") is not None
        }
        logger.info("fallback list loaded", extra={"path": str(self.path), "entries": len(indexed)})
        return indexed


class FieldMapper:
    def __init__(self, fallback_table: FallbackTable | None = None, default_attack_type: AttackType | str = AttackType.STRIKE):
        self.fallback_table = fallback_table
        self.default_attack_type = AttackType(default_attack_type)

    def map_attack_type(self, raw_value: str | None, page_id: str) -> AttackType:
        if isinstance(raw_value, str) and raw_value.strip():
            mapped = ATTACK_TYPE_MAPPING.get(raw_value.strip())
            if mapped is not None:
                logger.debug("attack type resolved from primary source", extra={"page_id": page_id, "raw_value": raw_value})
                return mapped

        fallback = self._fallback_attack_type(page_id)
        if fallback is not None:
            return fallback

        logger.warning(
            "unrecognized attack type %r for page %s, using default %s",
            raw_value,
            page_id,
            self.default_attack_type.value,
            extra={"page_id": page_id, "raw_value": raw_value},
        )
        return self.default_attack_type

    def map_attack_types(self, raw_values: list[str] | None, page_id: str) -> list[AttackType]:
        if not raw_values:
            return [self.map_attack_type(None, page_id)]

        resolved: list[AttackType] = []
        for raw_value in raw_values:
            attack_type = self.map_attack_type(raw_value, page_id)
            if attack_type not in resolved:
                resolved.append(attack_type)
        return resolved

    def _fallback_attack_type(self, page_id: str) -> AttackType | None:
        if self.fallback_table is None:
            return None

        values = self.fallback_table.field_values(page_id, "agent_attack_type")
        if not values:
            return None

        # Only the first listed attack type is used.
        english_value = values[0]
        mapped = ENGLISH_ATTACK_TYPE_MAPPING.get(english_value)
        if mapped is None:
            logger.warning(
                "unrecognized fallback attack type %r for page %s, using default %s",
                english_value,
                page_id,
                self.default_attack_type.value,
                extra={"page_id": page_id, "raw_value": english_value},
            )
            return self.default_attack_type

        logger.info("attack type resolved from fallback list", extra={"page_id": page_id, "raw_value": english_value})
        return mapped

    def map_specialty(self, raw_value: str | None) -> Specialty:
        return _strict_lookup(SPECIALTY_MAPPING, raw_value, "specialty")

    def map_stats(self, raw_value: str | None) -> Stats:
        return _strict_lookup(STATS_MAPPING, raw_value, "stats")

    def map_rarity(self, raw_value: str | None) -> Rarity:
        return _strict_lookup(RARITY_MAPPING, raw_value, "rarity")

    def resolve_faction(self, raw_value: str | None) -> int:
        return _strict_lookup(FACTION_IDS_BY_NAME, raw_value, "faction")


def _strict_lookup(table: dict[str, Any], raw_value: str | None, field: str) -> Any:
    if not isinstance(raw_value, str) or raw_value.strip() == "":
        raise MappingError(f"{field} is missing")
    mapped = table.get(raw_value.strip())
    if mapped is None:
        raise MappingError(f"unknown {field} value {raw_value!r}; expected one of: {', '.join(table)}")
    return mapped
