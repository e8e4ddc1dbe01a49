from collections.abc import Callable, Generator
import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from wikigen.client import WikiClient
from wikigen.config import Settings
from wikigen.field_mapper import FallbackTable, FieldMapper
from wikigen.processor import EntityProcessor


TIERS = ("1", "10", "20", "30", "40", "50", "60")


def ascension_data(base_hp: int = 600) -> str:
    levels = []
    for step, tier in enumerate(TIERS):
        levels.append(
            {
                "key": tier,
                "combatList": [
                    {"key": "HP", "values": ["-", str(base_hp + step * 1000)]},
                    {"key": "攻撃力", "values": ["-", str(100 + step * 100)]},
                    {"key": "防御力", "values": ["-", str(50 + step * 50)]},
                    {"key": "衝撃力", "values": ["-", "119"]},
                    {"key": "会心率", "values": ["-", "5%"]},
                    {"key": "会心ダメージ", "values": ["-", "50%"]},
                    {"key": "異常マスタリー", "values": ["-", "91"]},
                    {"key": "異常掌握", "values": ["-", "90"]},
                    {"key": "貫通率", "values": ["-", "0%"]},
                    {"key": "エネルギー自動回復", "values": ["-", "1.2"]},
                ],
            }
        )
    return json.dumps({"list": levels}, ensure_ascii=False)


def page_payload(
    page_id: str,
    name: str,
    *,
    specialty: str = "撃破",
    stats: str = "氷属性",
    attack_types: tuple[str, ...] = ("打撃",),
    faction: str = "ヴィクトリア家政",
    rarity: str = "S",
    version: str | None = "Ver.1.0",
    assist: str | None = None,
    talent_data: str | None = None,
) -> dict[str, Any]:
    components = [{"component_id": "ascension", "data": ascension_data()}]
    if version is not None:
        base_info = {"list": [{"key": "実装バージョン", "value": [f"<p>{version}</p>"]}]}
        components.append({"component_id": "baseInfo", "data": json.dumps(base_info, ensure_ascii=False)})
    modules = [{"name": "stats", "components": components}]
    if assist is not None and talent_data is None:
        talents = {"list": [{"title": "支援スキル", "children": [{"title": assist}]}]}
        talent_data = json.dumps(talents, ensure_ascii=False)
    if talent_data is not None:
        modules.append({"name": "エージェントスキル", "components": [{"component_id": "agent_talent", "data": talent_data}]})

    return {
        "retcode": 0,
        "message": "OK",
        "data": {
            "page": {
                "id": page_id,
                "name": name,
                "filter_values": {
                    "agent_specialties": {"values": [specialty]},
                    "agent_stats": {"values": [stats]},
                    "agent_attack_type": {"values": list(attack_types)},
                    "agent_faction": {"values": [faction]},
                    "agent_rarity": {"values": [rarity]},
                },
                "modules": modules,
            }
        },
    }


class FakeWikiApi:
    """In-memory entry_page endpoint served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.pages: dict[str, dict[str, dict[str, Any]]] = {}
        self.failures: dict[str, int] = {}
        self.requests: list[tuple[str, str]] = []

    def add_page(self, page_id: str, ja_name: str, en_name: str | None = None, **fields: Any) -> None:
        self.pages[page_id] = {
            "ja-jp": page_payload(page_id, ja_name, **fields),
            "en-us": page_payload(page_id, en_name or "", **fields),
        }

    def fail(self, page_id: str, times: int) -> None:
        self.failures[page_id] = times

    def handler(self, request: httpx.Request) -> httpx.Response:
        page_id = request.url.params["entry_page_id"]
        locale = request.url.params["lang"]
        self.requests.append((page_id, locale))

        remaining = self.failures.get(page_id, 0)
        if remaining:
            self.failures[page_id] = remaining - 1
            return httpx.Response(500, json={"retcode": -1, "message": "server error"})

        page = self.pages.get(page_id, {}).get(locale)
        if page is None:
            return httpx.Response(200, json={"retcode": 100010, "message": "entry not found", "data": None})
        return httpx.Response(200, json=page)


@pytest.fixture()
def fake_api() -> FakeWikiApi:
    return FakeWikiApi()


@pytest.fixture()
def wiki_client(fake_api: FakeWikiApi) -> Generator[WikiClient, None, None]:
    with WikiClient(client=httpx.Client(transport=httpx.MockTransport(fake_api.handler))) as client:
        yield client


@pytest.fixture()
def make_page() -> Callable[..., dict[str, Any]]:
    return page_payload


@pytest.fixture()
def make_ascension() -> Callable[..., str]:
    return ascension_data


@pytest.fixture()
def fallback_file(tmp_path: Path) -> Path:
    path = tmp_path / "list.json"
    document = {
        "retcode": 0,
        "message": "OK",
        "data": {
            "list": [
                {"entry_page_id": "28", "name": "Lycaon", "filter_values": {"agent_attack_type": {"values": ["Strike"]}}},
                {
                    "entry_page_id": "123",
                    "name": "Jane",
                    "filter_values": {"agent_attack_type": {"values": ["Slash", "Pierce"]}},
                },
                {"entry_page_id": "77", "name": "Odd", "filter_values": {"agent_attack_type": {"values": ["Blunt"]}}},
            ]
        },
    }
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


@pytest.fixture()
def field_mapper(fallback_file: Path) -> FieldMapper:
    return FieldMapper(FallbackTable(fallback_file))


@pytest.fixture()
def processor(wiki_client: WikiClient, field_mapper: FieldMapper) -> EntityProcessor:
    return EntityProcessor(wiki_client, field_mapper)


@pytest.fixture()
def write_manifest(tmp_path: Path) -> Callable[[list[tuple[str, str]]], Path]:
    def _write(entries: list[tuple[str, str]]) -> Path:
        path = tmp_path / "Scraping.md"
        lines = ["# Agents", ""]
        for entry_id, page_id in entries:
            lines.append(f"- [{entry_id}](https://wiki.hoyolab.com/pc/zzz/entry/{page_id}) - pageId: {page_id}")
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def test_settings(tmp_path: Path, fallback_file: Path) -> Settings:
    return Settings(
        batch_size=5,
        delay_ms=200,
        max_retries=2,
        output_path=str(tmp_path / "out" / "characters.ts"),
        scraping_file_path=str(tmp_path / "Scraping.md"),
        fallback_list_path=str(fallback_file),
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
    )


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def record_sleep(sleeps: list[float]) -> Callable[[float], None]:
    return sleeps.append
