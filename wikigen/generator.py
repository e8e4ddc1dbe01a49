import json
import logging
import os
from pathlib import Path
import tempfile

from wikigen.errors import WriteError
from wikigen.schemas import REQUIRED_LOCALE, Attributes, NormalizedRecord
from wikigen.validation import validate_record


logger = logging.getLogger(__name__)

INDENT = "  "

# Attributes field -> output key, in output order
ATTR_KEYS = (
    ("hp", "hp"),
    ("atk", "atk"),
    ("def_", "def"),
    ("impact", "impact"),
    ("crit_rate", "critRate"),
    ("crit_dmg", "critDmg"),
    ("anomaly_mastery", "anomalyMastery"),
    ("anomaly_proficiency", "anomalyProficiency"),
    ("pen_ratio", "penRatio"),
    ("energy", "energy"),
)


class ArtifactGenerator:
    """Serializes normalized records into the TypeScript data module."""

    def __init__(self, enable_validation: bool = True, type_import_path: str = "../src/types") -> None:
        self.enable_validation = enable_validation
        self.type_import_path = type_import_path

    def generate(self, records: list[NormalizedRecord], output_path: str | Path, *, validate: bool | None = None) -> Path:
        should_validate = self.enable_validation if validate is None else validate
        if should_validate:
            for record in records:
                validate_record(record)

        content = self.render(records)
        path = Path(output_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WriteError(f"cannot create output directory {path.parent}: {exc}") from exc

        _replace_file(path, content)

        logger.info("artifact written", extra={"output_path": str(path), "records": len(records), "bytes": len(content.encode("utf-8"))})
        return path

    def render(self, records: list[NormalizedRecord]) -> str:
        header = f'import {{ Character }} from "{self.type_import_path}";\n\n'
        if not records:
            return header + "export default [] as Character[];\n"

        body = "\n".join(self._render_record(record) for record in records)
        return header + "export default [\n" + body + "\n] as Character[];\n"

    def _render_record(self, record: NormalizedRecord) -> str:
        pad = INDENT * 2
        lines = [
            f"{INDENT}{{",
            f"{pad}id: {_string(record.id)},",
            f"{pad}name: {_localized(record.name)},",
            f"{pad}fullName: {_localized(record.full_name)},",
            f"{pad}specialty: {_string(record.specialty.value)},",
            f"{pad}stats: {_string(record.stats.value)},",
            f"{pad}attackType: [{', '.join(_string(item.value) for item in record.attack_type)}],",
            f"{pad}faction: {record.faction},",
            f"{pad}rarity: {_string(record.rarity.value)},",
            f"{pad}attr: {{",
            *_render_attributes(record.attr, pad + INDENT),
            f"{pad}}},",
        ]
        if record.release_version is not None:
            lines.append(f"{pad}releaseVersion: {_number(record.release_version)},")
        if record.assist_type is not None:
            lines.append(f"{pad}assistType: {_string(record.assist_type.value)},")
        lines.append(f"{INDENT}}},")
        return "\n".join(lines)


def _render_attributes(attr: Attributes, pad: str) -> list[str]:
    lines = []
    for field_name, key in ATTR_KEYS:
        value = getattr(attr, field_name)
        if isinstance(value, list):
            rendered = "[" + ", ".join(_number(item) for item in value) + "]"
        else:
            rendered = _number(value)
        lines.append(f"{pad}{key}: {rendered},")
    return lines


def _localized(names: dict[str, str]) -> str:
    ordered = sorted(names, key=lambda locale: (locale != REQUIRED_LOCALE, locale))
    return "{ " + ", ".join(f"{locale}: {_string(names[locale])}" for locale in ordered) + " }"


def _string(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return f"{value:.1f}"
    return repr(value)


def _replace_file(path: Path, content: str) -> None:
    # The previous artifact stays intact until the new one is complete.
    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as outfile:
            tmp_path = Path(outfile.name)
            outfile.write(content)
        os.replace(tmp_path, path)
    except OSError as exc:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        raise WriteError(f"cannot write output file {path}: {exc}") from exc
