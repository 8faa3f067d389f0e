"""Backup export and import.

A JSON backup holds the whole archive in one document::

    {
      "exportDate": "2026-10-19T08:00:00Z",
      "totalMemories": 2,
      "memories": [...],
      "albums": [...]
    }

The CSV export is a flat, spreadsheet-friendly listing of memories only.
"""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime
from typing import Iterable

from pydantic import ValidationError as PydanticValidationError

from scrapbook.core.models import Album, Memory
from scrapbook.errors import DeserializationError
from scrapbook.storage.persistence import ArchiveSnapshot, find_duplicate_id

CSV_COLUMNS = ["Title", "Description", "Date", "Type", "Mood", "Tags"]


def export_json(
    memories: Iterable[Memory],
    albums: Iterable[Album],
    exported_at: datetime,
) -> str:
    """Serialize the archive as a JSON backup document."""
    memory_records = [m.to_record() for m in memories]
    document = {
        "exportDate": exported_at.isoformat(),
        "totalMemories": len(memory_records),
        "memories": memory_records,
        "albums": [a.to_record() for a in albums],
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def export_csv(memories: Iterable[Memory]) -> str:
    """Serialize memories as CSV (tags joined with ``;``)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for memory in memories:
        writer.writerow(
            [
                memory.title,
                memory.description or "",
                memory.date.date().isoformat(),
                memory.type.value,
                memory.mood.value if memory.mood else "",
                ";".join(memory.tags),
            ]
        )
    return buffer.getvalue()


def parse_backup(text: str) -> ArchiveSnapshot:
    """Read a JSON backup produced by :func:`export_json`.

    Backups written before albums were exported (memories only) are accepted.

    Raises:
        DeserializationError: If the document or any record is malformed.
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise DeserializationError("backup", f"not valid JSON ({e.msg})") from e
    if not isinstance(document, dict) or not isinstance(document.get("memories"), list):
        raise DeserializationError("backup", "missing 'memories' list")

    try:
        snapshot = ArchiveSnapshot(
            memories=[Memory.model_validate(r) for r in document["memories"]],
            albums=[Album.model_validate(r) for r in document.get("albums") or []],
        )
    except PydanticValidationError as e:
        raise DeserializationError("backup", str(e.errors()[0]["msg"])) from e

    for kind, records in (("memory", snapshot.memories), ("album", snapshot.albums)):
        duplicate = find_duplicate_id(records)
        if duplicate is not None:
            raise DeserializationError("backup", f"duplicate {kind} id {duplicate}")
    return snapshot
