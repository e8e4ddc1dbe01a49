import json
import logging
import re
from typing import Any

from wikigen.attributes import parse_ascension
from wikigen.client import WikiClient
from wikigen.errors import ValidationError
from wikigen.field_mapper import FieldMapper
from wikigen.schemas import REQUIRED_LOCALE, AssistType, EntryRecord, NormalizedRecord
from wikigen.validation import validate_record


logger = logging.getLogger(__name__)

RELEASE_VERSION_KEY = "実装バージョン"
VERSION_PATTERN = re.compile(r"Ver\.(\d+\.\d+)")
HTML_TAG_PATTERN = re.compile(r"<[^>]*>")

SKILL_MODULE_MARKERS = ("スキル", "Skills")
ASSIST_SKILL_MARKERS = ("支援", "Support")
# label fragment -> assist type, checked in order
ASSIST_TYPE_LABELS = (
    ("パリィ支援", AssistType.DEFENSIVE),
    ("Defensive Assist", AssistType.DEFENSIVE),
    ("回避支援", AssistType.EVASIVE),
    ("Evasive Assist", AssistType.EVASIVE),
)


class EntityProcessor:
    def __init__(self, client: WikiClient, field_mapper: FieldMapper, locales: tuple[str, ...] = ("ja-jp", "en-us")) -> None:
        self.client = client
        self.field_mapper = field_mapper
        self.locales = locales

    def process(self, entry: EntryRecord) -> NormalizedRecord:
        payloads = self.client.fetch_locales(entry.page_id, self.locales)
        try:
            record = self.normalize(entry, payloads)
        except (KeyError, TypeError, AttributeError) as exc:
            raise ValidationError(f"unexpected payload shape for {entry.id}: {exc!r}", record_id=entry.id) from exc

        validate_record(record)
        return record

    def normalize(self, entry: EntryRecord, payloads: dict[str, dict[str, Any]]) -> NormalizedRecord:
        # The first configured locale carries the labels the mapping tables expect.
        primary_page = payloads[self.locales[0]]["data"]["page"]
        filter_values = primary_page.get("filter_values") or {}

        names = localized_names(payloads)
        record = NormalizedRecord(
            id=entry.id,
            name=names,
            full_name=dict(names),
            specialty=self.field_mapper.map_specialty(first_value(filter_values, "agent_specialties")),
            stats=self.field_mapper.map_stats(first_value(filter_values, "agent_stats")),
            attack_type=self.field_mapper.map_attack_types(all_values(filter_values, "agent_attack_type"), entry.page_id),
            faction=self.field_mapper.resolve_faction(first_value(filter_values, "agent_faction")),
            rarity=self.field_mapper.map_rarity(first_value(filter_values, "agent_rarity")),
            attr=parse_ascension(find_component_data(primary_page, "ascension")),
            release_version=extract_release_version(primary_page),
            assist_type=extract_assist_type(primary_page),
        )
        logger.debug("entry normalized", extra={"entry_id": entry.id, "page_id": entry.page_id})
        return record


def localized_names(payloads: dict[str, dict[str, Any]]) -> dict[str, str]:
    names: dict[str, str] = {}
    for locale, payload in payloads.items():
        name = str(payload["data"]["page"].get("name") or "").strip()
        if name:
            names[locale.split("-")[0]] = name

    required = names.get(REQUIRED_LOCALE)
    if not required:
        raise ValidationError(f"page has no {REQUIRED_LOCALE} name")
    # Missing translations fall back to the required locale.
    for locale in payloads:
        names.setdefault(locale.split("-")[0], required)
    return names


def all_values(filter_values: dict[str, Any], key: str) -> list[str]:
    entry = filter_values.get(key)
    values = entry.get("values") if isinstance(entry, dict) else None
    if not isinstance(values, list):
        return []
    return [value for value in values if isinstance(value, str) and value]


def first_value(filter_values: dict[str, Any], key: str) -> str | None:
    values = all_values(filter_values, key)
    return values[0] if values else None


def find_component_data(page: dict[str, Any], component_id: str) -> str | None:
    for module in page.get("modules") or []:
        for component in module.get("components") or []:
            if component.get("component_id") == component_id:
                return component.get("data")
    return None


def extract_release_version(page: dict[str, Any]) -> float | None:
    raw = find_component_data(page, "baseInfo")
    if not raw:
        return None

    try:
        base_info = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("baseInfo component is not valid JSON", extra={"page_id": page.get("id")})
        return None
    if not isinstance(base_info, dict):
        return None

    for item in base_info.get("list") or []:
        if not isinstance(item, dict) or item.get("key") != RELEASE_VERSION_KEY:
            continue
        values = item.get("value") or item.get("values") or []
        if not values or not isinstance(values[0], str):
            return None
        match = VERSION_PATTERN.search(HTML_TAG_PATTERN.sub("", values[0]))
        return float(match.group(1)) if match else None
    return None


def extract_assist_type(page: dict[str, Any]) -> AssistType | None:
    skill_module = next(
        (
            module
            for module in page.get("modules") or []
            if isinstance(module, dict) and any(marker in str(module.get("name") or "") for marker in SKILL_MODULE_MARKERS)
        ),
        None,
    )
    if skill_module is None:
        return None

    raw = next(
        (
            component.get("data")
            for component in skill_module.get("components") or []
            if isinstance(component, dict) and component.get("component_id") == "agent_talent"
        ),
        None,
    )
    if not raw:
        return None

    try:
        talents = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("agent_talent component is not valid JSON", extra={"page_id": page.get("id")})
        return None
    items = talents.get("list") if isinstance(talents, dict) else None
    if not isinstance(items, list):
        return None

    assist_skill = next(
        (
            item
            for item in items
            if isinstance(item, dict) and any(marker in str(item.get("title") or "") for marker in ASSIST_SKILL_MARKERS)
        ),
        None,
    )
    if assist_skill is None:
        return None

    # Child titles name the assist; attribute keys are the older layout.
    labels = [str(child.get("title") or "") for child in assist_skill.get("children") or [] if isinstance(child, dict)]
    labels += [str(attr.get("key") or "") for attr in assist_skill.get("attributes") or [] if isinstance(attr, dict)]
    for label in labels:
        for fragment, assist_type in ASSIST_TYPE_LABELS:
            if fragment in label:
                return assist_type

    logger.debug("assist type not found", extra={"page_id": page.get("id"), "skill": assist_skill.get("title")})
    return None
