import json
from typing import Any

from wikigen.errors import ValidationError
from wikigen.mappings import STAT_NAME_MAPPING
from wikigen.schemas import ASCENSION_TIERS, Attributes


GROWTH_FIELDS = ("hp", "atk", "def_")
PERCENT_FIELDS = {"crit_rate", "crit_dmg", "pen_ratio"}
FLOAT_FIELDS = {"energy"}


def parse_ascension(raw_data: str | None) -> Attributes:
    """Build the attribute block from the serialized ``ascension`` component.

    Growth stats take the post-ascension value (``values[1]``) of each tier;
    fixed stats are read from tier 1.
    """
    if not raw_data or not raw_data.strip():
        raise ValidationError("ascension data is empty")

    try:
        document = json.loads(raw_data)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"ascension data is not valid JSON: {exc}") from exc

    levels = document.get("list") if isinstance(document, dict) else None
    if not isinstance(levels, list):
        raise ValidationError("ascension data has no list array")

    by_tier = {str(level.get("key")): level for level in levels if isinstance(level, dict)}

    growth: dict[str, list[int]] = {name: [] for name in GROWTH_FIELDS}
    for tier in ASCENSION_TIERS:
        combat = _combat_stats(by_tier, tier)
        for label, field_name in STAT_NAME_MAPPING.items():
            if field_name not in growth:
                continue
            if label not in combat:
                raise ValidationError(f"ascension tier {tier} is missing {label}")
            growth[field_name].append(parse_int(combat[label]))

    fixed = _combat_stats(by_tier, ASCENSION_TIERS[0])
    scalars: dict[str, Any] = {}
    for label, field_name in STAT_NAME_MAPPING.items():
        if field_name in growth:
            continue
        value = fixed.get(label)
        if field_name in PERCENT_FIELDS:
            scalars[field_name] = parse_percent(value)
        elif field_name in FLOAT_FIELDS:
            scalars[field_name] = parse_float(value)
        else:
            scalars[field_name] = parse_int(value)

    return Attributes(**growth, **scalars)


def _combat_stats(by_tier: dict[str, dict[str, Any]], tier: str) -> dict[str, str | None]:
    level = by_tier.get(tier)
    if level is None:
        raise ValidationError(f"ascension tier {tier} not found")

    combat_list = level.get("combatList")
    if not isinstance(combat_list, list):
        raise ValidationError(f"ascension tier {tier} has no combatList")

    stats: dict[str, str | None] = {}
    for stat in combat_list:
        if not isinstance(stat, dict):
            continue
        values = stat.get("values")
        # values is [before, after]; the post-ascension value wins.
        if isinstance(values, list) and len(values) >= 2:
            stats[str(stat.get("key"))] = values[1]
        else:
            stats[str(stat.get("key"))] = None
    return stats


def parse_int(value: str | None) -> int:
    if value in (None, "", "-"):
        return 0
    try:
        return int(float(str(value).replace(",", "").strip()))
    except ValueError:
        return 0


def parse_percent(value: str | None) -> float:
    if value in (None, "", "-"):
        return 0.0
    return _as_number(str(value).replace("%", ""))


def parse_float(value: str | None) -> float:
    if value in (None, "", "-"):
        return 0.0
    return _as_number(str(value))


def _as_number(text: str) -> float:
    try:
        number = float(text.strip())
    except ValueError:
        return 0.0
    return int(number) if number.is_integer() else number
