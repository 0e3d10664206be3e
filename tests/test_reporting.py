"""
Test suite for reporting module

Tests report rendering, event listings and event export formats.
"""

import csv
import io
import json

import pytest

from bank_ledger.directory import Role
from bank_ledger.events import Deposit, Tax, Transfer
from bank_ledger.ledger import Ledger
from bank_ledger.reporting import (
    ReportEntry, ReportFormat, export_events, format_events, format_report,
)


@pytest.fixture
def events():
    return [
        Deposit(id=1, amount=1000.0),
        Transfer(id=1, to_id=2, amount=250.0),
        Tax(id=2, tax=5.0),
    ]


class TestFormatReport:
    """Test text rendering of the user report"""

    def test_customer_and_staff_blocks(self):
        entries = [
            ReportEntry(user_id=1, username="roy", role=Role.CUSTOMER, balance=1000.0),
            ReportEntry(user_id=2, username="boss", role=Role.MANAGER),
        ]

        text = format_report(entries)

        assert text.splitlines() == [
            "User ID: 1",
            "Username: roy",
            "Role: Customer",
            "Balance: 1000",
            "------------------------",
            "User ID: 2",
            "Username: boss",
            "Role: Manager",
            "------------------------",
        ]

    def test_empty_report(self):
        assert format_report([]) == ""

    def test_report_from_ledger(self):
        ledger = Ledger()
        ledger.register("roy", "pw", Role.CUSTOMER)
        ledger.register("audit", "pw", Role.AUDITOR)
        roy, _ = ledger.login("roy", "pw")
        auditor, _ = ledger.login("audit", "pw")
        ledger.deposit(roy, 12.5)

        text = format_report(ledger.report(auditor))

        assert "Balance: 12.5" in text
        assert "Role: Auditor" in text

    def test_entry_to_dict(self):
        entry = ReportEntry(user_id=3, username="amy", role=Role.AUDITOR)
        assert entry.to_dict() == {
            'user_id': 3, 'username': 'amy', 'role': 'auditor', 'balance': None
        }


class TestFormatEvents:
    """Test event listings"""

    def test_user_heading(self, events):
        lines = format_events(events[:1], user_id=1).splitlines()
        assert lines == [
            "===== Events for User ID: 1 =====",
            "User ID: 1, Deposit - Amount: 1000",
        ]

    def test_all_users_heading(self, events):
        lines = format_events(events).splitlines()
        assert lines[0] == "===== Events for all users ====="
        assert len(lines) == 4


class TestExportEvents:
    """Test event export formats"""

    def test_dict_export(self, events):
        rows = export_events(events, ReportFormat.DICT)

        assert rows[0] == {'event_type': 'deposit', 'id': 1, 'amount': 1000.0}
        assert rows[1]['to_id'] == 2

    def test_json_export(self, events):
        data = json.loads(export_events(events, ReportFormat.JSON))

        assert [row['event_type'] for row in data] == ['deposit', 'transfer', 'tax']
        assert data[2]['tax'] == 5.0

    def test_csv_export(self, events):
        output = export_events(events, ReportFormat.CSV)
        rows = list(csv.DictReader(io.StringIO(output)))

        assert len(rows) == 3
        assert rows[1]['event_type'] == 'transfer'
        assert rows[1]['to_id'] == '2'
        assert rows[0]['to_id'] == ''
        assert rows[2]['tax'] == '5.0'

    def test_empty_export(self):
        assert export_events([], ReportFormat.DICT) == []
        assert json.loads(export_events([], ReportFormat.JSON)) == []
