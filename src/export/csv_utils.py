"""
CSV export/import of tasks in the column layout calendar importers expect.

Writing is strict (every cell quoted, quotes doubled). Reading is lenient:
loose header check, bad dates fall back to tomorrow, bad rows are skipped.
"""

import csv
import io
import logging
import os
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Union
from zoneinfo import ZoneInfo

from smart_todo.models import Task

logger = logging.getLogger(__name__)

EXPORT_TIMEZONE = os.getenv("EXPORT_TIMEZONE", "UTC").strip()

HEADERS = [
    "Subject",
    "Start Date",
    "Start Time",
    "End Date",
    "End Time",
    "All Day Event",
    "Description",
    "Location",
]

# Time of day is not exported; every task gets the same one-hour slot
DEFAULT_START_TIME = "10:00 AM"
DEFAULT_END_TIME = "11:00 AM"
DATE_FORMAT = "%m/%d/%Y"

IMPORTED_DESCRIPTION = "Imported from CSV"


class CsvFormatError(ValueError):
    pass


def _zone(tz_name: str) -> tzinfo:
    if tz_name.upper() in ("UTC", "Z"):
        return timezone.utc
    return ZoneInfo(tz_name)


def tasks_to_csv(tasks: Iterable[Union[Task, Dict[str, Any]]], tz_name: str = EXPORT_TIMEZONE) -> str:
    tz = _zone(tz_name)
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(HEADERS)

    for task in tasks:
        if isinstance(task, dict):
            task = Task.model_validate(task)
        start_date = task.deadline.astimezone(tz).strftime(DATE_FORMAT)
        writer.writerow(
            [
                task.title,
                start_date,
                DEFAULT_START_TIME,
                start_date,
                DEFAULT_END_TIME,
                "False",
                task.description,
                task.category_name or "",
            ]
        )

    return buf.getvalue().rstrip("\n")


def _parse_date(raw: str, tz: tzinfo) -> datetime:
    raw = raw.strip()
    for parse in (
        lambda s: datetime.strptime(s, DATE_FORMAT),
        lambda s: datetime.strptime(s, "%Y-%m-%d"),
        datetime.fromisoformat,
    ):
        try:
            parsed = parse(raw)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz)
        return parsed.astimezone(timezone.utc)

    return datetime.now(timezone.utc) + timedelta(days=1)


def parse_csv_to_tasks(content: str, tz_name: str = EXPORT_TIMEZONE) -> List[Dict[str, Any]]:
    tz = _zone(tz_name)
    content = content.lstrip()
    if not content:
        return []

    # Quoted cells may span several physical lines
    reader = csv.DictReader(io.StringIO(content))
    headers = [(h or "").replace('"', "").strip().lower() for h in reader.fieldnames or []]
    if not any(expected.lower() in h for expected in HEADERS for h in headers if h):
        raise CsvFormatError(
            "Invalid CSV format. Please ensure the file has the correct headers."
        )
    reader.fieldnames = headers

    tasks: List[Dict[str, Any]] = []
    for raw in reader:
        try:
            row = {
                key: value.strip()
                for key, value in raw.items()
                if key and isinstance(value, str)
            }

            subject = row.get("subject", "")
            if not subject:
                continue

            tasks.append(
                {
                    "title": subject,
                    "description": row.get("description") or IMPORTED_DESCRIPTION,
                    "deadline": _parse_date(row.get("start date", ""), tz).isoformat(),
                    "priority_label": "Medium",
                    "status": "Pending",
                    "category_name": row.get("location") or None,
                }
            )
        except Exception as e:
            logger.warning(f"Error parsing CSV row ending at line {reader.line_num}: {e}")
            continue

    return tasks
