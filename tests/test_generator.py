from dataclasses import replace
import os
from pathlib import Path

import pytest

from wikigen.errors import ValidationError, WriteError
from wikigen.generator import ArtifactGenerator
from wikigen.schemas import AssistType, AttackType, Attributes, NormalizedRecord, Rarity, Specialty, Stats


def _record(record_id: str = "lycaon", release_version: float | None = 1.0) -> NormalizedRecord:
    return NormalizedRecord(
        id=record_id,
        name={"en": "Von Lycaon", "ja": "ライカン"},
        full_name={"en": "Von Lycaon", "ja": "フォン・ライカン"},
        specialty=Specialty.STUN,
        stats=Stats.ICE,
        attack_type=[AttackType.STRIKE],
        faction=2,
        rarity=Rarity.S,
        attr=Attributes(
            hp=[677, 1967, 3350, 4732, 6114, 7498, 8416],
            atk=[105, 197, 296, 394, 494, 592, 653],
            def_=[49, 141, 241, 341, 441, 541, 607],
            impact=119,
            crit_rate=5,
            crit_dmg=50,
            anomaly_mastery=91,
            anomaly_proficiency=90,
            pen_ratio=0,
            energy=1.2,
        ),
        release_version=release_version,
    )


def test_render_layout() -> None:
    content = ArtifactGenerator().render([_record()])

    assert content.startswith('import { Character } from "../src/types";\n\nexport default [\n')
    assert content.endswith("] as Character[];\n")
    assert 'name: { ja: "ライカン", en: "Von Lycaon" },' in content
    assert 'attackType: ["strike"],' in content
    assert "faction: 2," in content
    assert "def: [49, 141, 241, 341, 441, 541, 607]," in content
    assert "critRate: 5," in content
    assert "energy: 1.2," in content
    assert "releaseVersion: 1.0," in content


def test_release_version_omitted_when_unknown() -> None:
    content = ArtifactGenerator().render([_record(release_version=None)])

    assert "releaseVersion" not in content
    assert "assistType" not in content


def test_assist_type_rendered_after_release_version() -> None:
    content = ArtifactGenerator().render([replace(_record(), assist_type=AssistType.DEFENSIVE)])

    assert "releaseVersion: 1.0,\n    assistType: \"defensive\",\n  },\n" in content


def test_empty_record_list_renders_empty_array() -> None:
    content = ArtifactGenerator().render([])

    assert content.endswith("export default [] as Character[];\n")


def test_generate_is_deterministic(tmp_path: Path) -> None:
    generator = ArtifactGenerator()
    records = [_record("lycaon"), _record("ellen")]
    output = tmp_path / "nested" / "characters.ts"

    generator.generate(records, output)
    first = output.read_bytes()
    generator.generate(records, output)

    assert output.read_bytes() == first


def test_invalid_record_names_its_id(tmp_path: Path) -> None:
    broken = replace(_record("anby"), attack_type=[])

    with pytest.raises(ValidationError, match="anby") as excinfo:
        ArtifactGenerator().generate([_record(), broken], tmp_path / "characters.ts")

    assert excinfo.value.record_id == "anby"
    assert not (tmp_path / "characters.ts").exists()


def test_validation_can_be_disabled(tmp_path: Path) -> None:
    broken = replace(_record("anby"), attack_type=[])

    path = ArtifactGenerator().generate([broken], tmp_path / "characters.ts", validate=False)

    assert path.exists()


def test_unwritable_output_is_write_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(WriteError):
        ArtifactGenerator().generate([_record()], blocker / "characters.ts")


@pytest.mark.parametrize("field_name", ["crit_rate", "energy"])
def test_non_finite_attribute_is_rejected(tmp_path: Path, field_name: str) -> None:
    record = _record()
    broken = replace(record, attr=replace(record.attr, **{field_name: float("inf")}))

    with pytest.raises(ValidationError, match="finite"):
        ArtifactGenerator().generate([broken], tmp_path / "characters.ts")


def test_nan_in_growth_array_is_rejected(tmp_path: Path) -> None:
    record = _record()
    broken = replace(record, attr=replace(record.attr, hp=[float("nan")] * 7))

    with pytest.raises(ValidationError, match="attr.hp"):
        ArtifactGenerator().generate([broken], tmp_path / "characters.ts")


def test_failed_write_keeps_previous_artifact(tmp_path: Path, monkeypatch) -> None:
    output = tmp_path / "characters.ts"
    output.write_text("previous", encoding="utf-8")

    def refuse_replace(src, dst) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", refuse_replace)

    with pytest.raises(WriteError, match="disk full"):
        ArtifactGenerator().generate([_record()], output)

    assert output.read_text(encoding="utf-8") == "previous"
    assert [path.name for path in tmp_path.iterdir()] == ["characters.ts"]
