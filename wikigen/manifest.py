import json
import logging
from pathlib import Path
import re
from typing import Any

from wikigen.errors import ParseError
from wikigen.schemas import EntryRecord, PageReference


logger = logging.getLogger(__name__)

MARKDOWN_ENTRY_PATTERN = re.compile(r"-\s*\[([^\]]+)\]\(([^)]+)\)\s*-\s*pageId:\s*(\S+)")
PAGE_ID_PATTERN = re.compile(r"^\d+$")


def parse_manifest(path: str | Path) -> list[EntryRecord]:
    manifest_path = Path(path)
    if not manifest_path.exists():
        raise ParseError(f"manifest file not found: {manifest_path}")

    try:
        content = manifest_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ParseError(f"cannot read manifest {manifest_path}: {exc}") from exc

    if manifest_path.suffix.lower() == ".json":
        entries = parse_list_json(content)
    else:
        entries = parse_markdown(content)

    logger.info("manifest parsed", extra={"manifest": str(manifest_path), "entries": len(entries)})
    return entries


def parse_markdown(content: str) -> list[EntryRecord]:
    entries: list[EntryRecord] = []
    for line_number, line in enumerate(content.splitlines(), start=1):
        match = MARKDOWN_ENTRY_PATTERN.search(line)
        if not match:
            continue

        entry_id, wiki_url, page_id = (part.strip() for part in match.groups())
        if not entry_id or not PAGE_ID_PATTERN.match(page_id):
            logger.warning("skipping malformed manifest line", extra={"line": line_number, "text": line.strip()})
            continue

        entries.append(
            EntryRecord(
                id=entry_id,
                display_name=entry_id,
                source_locator=PageReference(page_id=page_id, wiki_url=wiki_url),
            )
        )

    return _finalize(entries)


def parse_list_json(content: str) -> list[EntryRecord]:
    try:
        document = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ParseError(f"manifest is not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise ParseError("manifest JSON must be an object")
    if document.get("retcode", 0) != 0:
        raise ParseError(f"manifest JSON has non-zero retcode: {document.get('retcode')}")

    data = document.get("data")
    items = data.get("list") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise ParseError("manifest JSON is missing the data.list array")

    entries: list[EntryRecord] = []
    for index, item in enumerate(items):
        entry = _entry_from_list_item(item)
        if entry is None:
            logger.warning("skipping malformed manifest item", extra={"index": index})
            continue
        entries.append(entry)

    return _finalize(entries)


def _entry_from_list_item(item: Any) -> EntryRecord | None:
    if not isinstance(item, dict):
        return None

    page_id = str(item.get("entry_page_id") or "").strip()
    name = str(item.get("name") or "").strip()
    if not name or not PAGE_ID_PATTERN.match(page_id):
        return None

    return EntryRecord(
        id=page_id,
        display_name=name,
        source_locator=PageReference(page_id=page_id),
    )


def _finalize(entries: list[EntryRecord]) -> list[EntryRecord]:
    if not entries:
        raise ParseError("manifest contains no valid entries")

    seen: set[str] = set()
    for entry in entries:
        if entry.id in seen:
            raise ParseError(f"duplicate entry id in manifest: {entry.id}")
        seen.add(entry.id)
    return entries
