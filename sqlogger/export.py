"""Export of log entries to TXT, CSV, XML, JSON and YAML files."""

from __future__ import annotations

import csv
import json
import logging
import xml.etree.ElementTree as ET
from enum import Enum
from pathlib import Path
from typing import Any, Sequence

import yaml

from sqlogger.errors import InvalidArgumentError
from sqlogger.models import LogEntry

logger = logging.getLogger(__name__)

# (label, LogEntry attribute) in export column order
FIELDS = (
    ("ID", "id"),
    ("Timestamp", "timestamp"),
    ("Level", "level"),
    ("Message", "message"),
    ("Function", "function"),
    ("File", "file"),
    ("Line", "line"),
    ("ThreadID", "thread_id"),
)

SOURCE_FIELDS = (
    ("SourceID", "source_id"),
    ("SourceUUID", "source_uuid"),
    ("SourceName", "source_name"),
)


class ExportFormat(str, Enum):
    """Supported export file formats."""

    TXT = "TXT"
    CSV = "CSV"
    XML = "XML"
    JSON = "JSON"
    YAML = "YAML"

    @classmethod
    def from_string(cls, value: str) -> "ExportFormat":
        """Parse a format name case-insensitively; raises InvalidArgumentError if unknown."""
        try:
            return cls(value.strip().upper())
        except (ValueError, AttributeError) as e:
            raise InvalidArgumentError(f"Unknown export format: {value!r}", operation="export") from e


def _fields(include_source: bool) -> tuple[tuple[str, str], ...]:
    return FIELDS + SOURCE_FIELDS if include_source else FIELDS


def _row(entry: LogEntry, fields: Sequence[tuple[str, str]]) -> list[Any]:
    row = []
    for _, attr in fields:
        value = getattr(entry, attr)
        row.append("" if value is None else value)
    return row


def format_txt_line(entry: LogEntry, delimiter: str = ",", include_field_names: bool = True,
                    include_source: bool = False) -> str:
    """Render one entry as a single text line."""
    fields = _fields(include_source)
    values = _row(entry, fields)
    if include_field_names:
        return delimiter.join(f"{label}: {value}" for (label, _), value in zip(fields, values))
    return delimiter.join(str(value) for value in values)


def _write_txt(path: Path, entries: Sequence[LogEntry], delimiter: str, include_field_names: bool,
               include_source: bool) -> None:
    with open(path, "w", encoding="utf-8") as f:
        for entry in entries:
            f.write(format_txt_line(entry, delimiter, include_field_names, include_source) + "\n")


def _write_csv(path: Path, entries: Sequence[LogEntry], delimiter: str, include_field_names: bool,
               include_source: bool) -> None:
    fields = _fields(include_source)
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, delimiter=delimiter)
        if include_field_names:
            writer.writerow([label for label, _ in fields])
        for entry in entries:
            writer.writerow(_row(entry, fields))


def _write_xml(path: Path, entries: Sequence[LogEntry], include_source: bool) -> None:
    fields = _fields(include_source)
    root = ET.Element("LogEntries")
    for entry in entries:
        node = ET.SubElement(root, "LogEntry")
        for (label, _), value in zip(fields, _row(entry, fields)):
            ET.SubElement(node, label).text = str(value)
    tree = ET.ElementTree(root)
    ET.indent(tree, space="  ")
    tree.write(path, encoding="UTF-8", xml_declaration=True)


def _records(entries: Sequence[LogEntry], include_source: bool) -> list[dict[str, Any]]:
    fields = _fields(include_source)
    return [
        {label: (getattr(entry, attr)) for label, attr in fields}
        for entry in entries
    ]


def _write_json(path: Path, entries: Sequence[LogEntry], include_source: bool) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(_records(entries, include_source), f, indent=2, ensure_ascii=False, default=str)
        f.write("\n")


def _write_yaml(path: Path, entries: Sequence[LogEntry], include_source: bool) -> None:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(_records(entries, include_source), f, sort_keys=False, allow_unicode=True)


def export_to(
    path: str | Path,
    fmt: ExportFormat | str,
    entries: Sequence[LogEntry],
    delimiter: str = ",",
    include_field_names: bool = True,
    include_source: bool = False,
) -> Path:
    """Write entries to ``path`` in the requested format.

    Args:
        path: Output file; parent directories are created.
        fmt: Export format, as enum or name.
        entries: Entries to export, written in the given order.
        delimiter: Field separator for TXT and CSV.
        include_field_names: Prefix TXT values with labels / write a CSV header.
        include_source: Add the source id, uuid and name columns.

    Returns:
        The written path.

    Raises:
        InvalidArgumentError: For an unknown format.
        OSError: If the file cannot be written.
    """
    if not isinstance(fmt, ExportFormat):
        fmt = ExportFormat.from_string(fmt)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == ExportFormat.TXT:
        _write_txt(path, entries, delimiter, include_field_names, include_source)
    elif fmt == ExportFormat.CSV:
        _write_csv(path, entries, delimiter, include_field_names, include_source)
    elif fmt == ExportFormat.XML:
        _write_xml(path, entries, include_source)
    elif fmt == ExportFormat.JSON:
        _write_json(path, entries, include_source)
    else:
        _write_yaml(path, entries, include_source)

    logger.info(f"Exported {len(entries)} log entries to {path} ({fmt.value})")
    return path
