"""
Reporting Module

User reports and event listings for managers and auditors, plus export of
the event log as dictionaries, CSV or JSON.
"""

import csv
import io
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from .directory import Role
from .events import Event, format_amount


SEPARATOR = "------------------------"


class ReportFormat(Enum):
    """Output formats for exports"""
    DICT = "dict"
    CSV = "csv"
    JSON = "json"


@dataclass(frozen=True)
class ReportEntry:
    """One user line of the ledger report; balance is None for staff"""
    user_id: int
    username: str
    role: Role
    balance: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'username': self.username,
            'role': self.role.value,
            'balance': self.balance,
        }


def format_report(entries: Sequence[ReportEntry]) -> str:
    """Render the user report as text blocks"""
    lines: List[str] = []
    for entry in entries:
        lines.append(f"User ID: {entry.user_id}")
        lines.append(f"Username: {entry.username}")
        lines.append(f"Role: {entry.role.label}")
        if entry.balance is not None:
            lines.append(f"Balance: {format_amount(entry.balance)}")
        lines.append(SEPARATOR)
    return "\n".join(lines)


def format_events(events: Sequence[Event], user_id: Optional[int] = None) -> str:
    """Render an event listing headed by the user it belongs to"""
    if user_id is None:
        heading = "===== Events for all users ====="
    else:
        heading = f"===== Events for User ID: {user_id} ====="
    return "\n".join([heading] + [event.describe() for event in events])


# Union of every field any event kind carries, in CSV column order
CSV_COLUMNS = [
    'event_type', 'id', 'to_id', 'amount', 'dust', 'interest', 'tax',
    'interest_rate', 'tax_rate',
]


def export_events(events: Sequence[Event],
                  fmt: ReportFormat = ReportFormat.DICT) -> Union[List[Dict[str, Any]], str]:
    """
    Export events in the requested format

    Args:
        events: Events to export, already in the desired order
        fmt: DICT returns a list of dictionaries, CSV and JSON return strings

    Returns:
        Exported events
    """
    rows = [event.to_dict() for event in events]

    if fmt == ReportFormat.DICT:
        return rows

    if fmt == ReportFormat.JSON:
        return json.dumps(rows, indent=2)

    if fmt == ReportFormat.CSV:
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=CSV_COLUMNS, lineterminator="\n")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
        return output.getvalue()

    raise ValueError(f"Unsupported export format: {fmt}")
