"""Tests for the daily financial breakdown and worker reports."""

import csv
import io
from datetime import date, datetime
from types import SimpleNamespace

from opsdesk.models.models import TaskStatus
from opsdesk.services import reporting

WEEK_START = date(2024, 1, 1)
WEEK_END = date(2024, 1, 7)


def make_task(amount, day, status=TaskStatus.PENDING, deductions=(), project="Tiling"):
    return SimpleNamespace(
        id=f"t-{day.isoformat()}-{amount}",
        amount=amount,
        date=day,
        status=status,
        description=None,
        completed_at=datetime(2024, 1, 2, 17, 0) if status == TaskStatus.COMPLETED else None,
        project=SimpleNamespace(name=project),
        deductions=[SimpleNamespace(amount=d, reason="damage") for d in deductions],
    )


TASKS = [
    make_task(100, date(2024, 1, 2), TaskStatus.COMPLETED, deductions=[20]),
    make_task(50, date(2024, 1, 2), TaskStatus.PENDING),
    make_task(80, date(2024, 1, 5), TaskStatus.IN_PROGRESS, deductions=[5, 5]),
    # outside the window
    make_task(999, date(2024, 1, 8)),
]


def test_daily_breakdown_groups_by_day():
    rows = reporting.daily_breakdown(TASKS, WEEK_START, WEEK_END)
    assert [r.date for r in rows] == [date(2024, 1, 2), date(2024, 1, 5)]
    first, second = rows
    assert (first.total_tasks, first.total_amount, first.total_deductions, first.net_amount) == (2, 150, 20, 130)
    assert (second.total_tasks, second.total_amount, second.total_deductions, second.net_amount) == (1, 80, 10, 70)


def test_totals_sum_rows():
    rows = reporting.daily_breakdown(TASKS, WEEK_START, WEEK_END)
    assert reporting.totals(rows) == {
        "total_tasks": 3, "total_amount": 230, "total_deductions": 30, "net_amount": 200,
    }


def test_empty_breakdown():
    assert reporting.daily_breakdown([], WEEK_START, WEEK_END) == []
    assert reporting.totals([])["net_amount"] == 0


def test_week_bounds():
    assert reporting.week_bounds(date(2024, 1, 4)) == (WEEK_START, WEEK_END)


def test_financial_csv():
    rows = reporting.daily_breakdown(TASKS, WEEK_START, WEEK_END)
    parsed = list(csv.reader(io.StringIO(reporting.financial_csv(rows, "GHS"))))
    assert parsed[0] == reporting.FINANCIAL_CSV_HEADER
    assert parsed[1] == ["2024-01-02", "2", "₵ 150.00", "₵ 20.00", "₵ 130.00"]
    assert parsed[-1] == ["Total", "3", "₵ 230.00", "₵ 30.00", "₵ 200.00"]


def test_worker_report():
    worker = SimpleNamespace(id="w-1", name="Kofi Mensah", whatsapp="+233200000000")
    report = reporting.worker_report(worker, TASKS, WEEK_START, WEEK_END, "USD")

    summary = report["summary"]
    assert summary["total_tasks"] == 3
    assert summary["assigned_tasks"] == 1
    assert summary["completed_tasks"] == 1
    assert summary["completed_earnings"] == 80
    assert summary["completed_deductions"] == 20
    assert summary["weekly_project_total"] == 80 + 50 + 70

    first = report["tasks"][0]
    assert first["amount"] == "$ 100.00"
    assert first["net_amount"] == "$ 80.00"
    assert first["project"] == "Tiling"
    assert first["deduction_items"] == [{"amount": "$ 20.00", "reason": "damage"}]

    message = report["share_message"]
    assert message.startswith("*Work Report for Kofi Mensah*")
    assert "Period: Jan 01, 2024 - Jan 07, 2024" in message
    assert "Completed Earnings: $ 80.00" in message
