import math
from numbers import Real

from wikigen.errors import ValidationError
from wikigen.schemas import (
    ASCENSION_TIERS,
    REQUIRED_LOCALE,
    AssistType,
    AttackType,
    NormalizedRecord,
    Rarity,
    Specialty,
    Stats,
)


SCALAR_FIELDS = (
    "impact",
    "crit_rate",
    "crit_dmg",
    "anomaly_mastery",
    "anomaly_proficiency",
    "pen_ratio",
    "energy",
)


def _is_finite_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def record_errors(record: NormalizedRecord) -> list[str]:
    errors: list[str] = []

    if not isinstance(record.id, str) or not record.id.strip():
        errors.append("id is required")

    for label, names in (("name", record.name), ("full_name", record.full_name)):
        if not isinstance(names, dict) or not str(names.get(REQUIRED_LOCALE) or "").strip():
            errors.append(f"{label}.{REQUIRED_LOCALE} is required")

    for label, value, enum_type in (
        ("specialty", record.specialty, Specialty),
        ("stats", record.stats, Stats),
        ("rarity", record.rarity, Rarity),
    ):
        if not isinstance(value, enum_type):
            errors.append(f"{label} {value!r} is not a recognized value")

    if not record.attack_type:
        errors.append("attack_type must not be empty")
    for attack_type in record.attack_type or []:
        if not isinstance(attack_type, AttackType):
            errors.append(f"attack_type {attack_type!r} is not a recognized value")

    if isinstance(record.faction, bool) or not isinstance(record.faction, int):
        errors.append("faction must be an integer id")

    if record.release_version is not None and not _is_finite_number(record.release_version):
        errors.append("release_version must be a finite number")
    if record.assist_type is not None and not isinstance(record.assist_type, AssistType):
        errors.append(f"assist_type {record.assist_type!r} is not a recognized value")

    attr = record.attr
    if attr is None:
        errors.append("attr is required")
        return errors

    for growth in ("hp", "atk", "def_"):
        values = getattr(attr, growth)
        if not isinstance(values, list) or len(values) != len(ASCENSION_TIERS):
            errors.append(f"attr.{growth} must contain exactly {len(ASCENSION_TIERS)} values")
        elif not all(_is_finite_number(item) for item in values):
            errors.append(f"attr.{growth} must contain finite numbers")

    for scalar in SCALAR_FIELDS:
        value = getattr(attr, scalar)
        if not _is_finite_number(value):
            errors.append(f"attr.{scalar} must be a finite number")

    return errors


def validate_record(record: NormalizedRecord) -> None:
    errors = record_errors(record)
    if errors:
        raise ValidationError(f"record {record.id!r} is invalid: {'; '.join(errors)}", record_id=record.id)
