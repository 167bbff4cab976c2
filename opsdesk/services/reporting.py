"""Read-only reports built on the aggregation functions.

Nothing here writes to the database; routers fetch the tasks and hand them in.
"""

import csv
import io
from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import date, datetime

from opsdesk.models.models import TaskStatus
from opsdesk.services import aggregation
from opsdesk.services.currency import format_money

FINANCIAL_CSV_HEADER = ["Date", "Total Tasks", "Total Amount", "Total Deductions", "Net Amount"]


@dataclass
class DailyRow:
    date: date
    total_tasks: int = 0
    total_amount: float = 0.0
    total_deductions: float = 0.0
    net_amount: float = 0.0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        return data


def _task_day(task) -> date:
    value = task.date
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def daily_breakdown(tasks, start: date, end: date) -> list[DailyRow]:
    """One row per calendar day in [start, end] that has tasks, ordered by date."""
    by_day = defaultdict(list)
    for task in tasks:
        day = _task_day(task)
        if start <= day <= end:
            by_day[day].append(task)

    rows = []
    for day in sorted(by_day):
        summary = aggregation.summarize(by_day[day])
        rows.append(DailyRow(
            date=day,
            total_tasks=summary.total,
            total_amount=summary.gross,
            total_deductions=summary.deductions,
            net_amount=summary.net,
        ))
    return rows


def totals(rows: list[DailyRow]) -> dict:
    return {
        "total_tasks": sum(r.total_tasks for r in rows),
        "total_amount": sum(r.total_amount for r in rows),
        "total_deductions": sum(r.total_deductions for r in rows),
        "net_amount": sum(r.net_amount for r in rows),
    }


def week_bounds(week_of: date | None) -> tuple[date, date]:
    start, end = aggregation.week_window(week_of or date.today())
    return start.date(), end.date()


def financial_csv(rows: list[DailyRow], currency: str) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(FINANCIAL_CSV_HEADER)
    for row in rows:
        writer.writerow([
            row.date.isoformat(),
            row.total_tasks,
            format_money(row.total_amount, currency),
            format_money(row.total_deductions, currency),
            format_money(row.net_amount, currency),
        ])
    summary = totals(rows)
    writer.writerow([
        "Total",
        summary["total_tasks"],
        format_money(summary["total_amount"], currency),
        format_money(summary["total_deductions"], currency),
        format_money(summary["net_amount"], currency),
    ])
    return output.getvalue()


def _period(start: date, end: date) -> str:
    return f"{start.strftime('%b %d, %Y')} - {end.strftime('%b %d, %Y')}"


def share_message(worker_name: str, summary: dict, start: date, end: date, currency: str) -> str:
    lines = [
        f"*Work Report for {worker_name}*",
        f"Period: {_period(start, end)}",
        "",
        "*Summary*",
        f"Total Tasks: {summary['total_tasks']}",
        f"Assigned Tasks: {summary['assigned_tasks']}",
        f"Tasks Completed: {summary['completed_tasks']}",
        f"Weekly Project Total: {format_money(summary['weekly_project_total'], currency)}",
        f"Completed Earnings: {format_money(summary['completed_earnings'], currency)}",
        "",
        "Thank you for your service!",
    ]
    return "\n".join(lines)


def worker_report(worker, tasks, start: date, end: date, currency: str) -> dict:
    """Summary and per-task detail for one worker over [start, end]."""
    tasks = [t for t in tasks if start <= _task_day(t) <= end]
    tasks.sort(key=_task_day)
    completed = [t for t in tasks if aggregation.is_completed(t)]

    summary = {
        "total_tasks": len(tasks),
        "assigned_tasks": sum(1 for t in tasks if aggregation.is_assigned(t)),
        "completed_tasks": len(completed),
        "weekly_project_total": aggregation.total_payouts(tasks),
        "completed_earnings": aggregation.total_payouts(completed),
        "completed_deductions": sum(aggregation.deduction_total(t) for t in completed),
    }

    details = []
    for task in tasks:
        deductions = aggregation.deduction_total(task)
        details.append({
            "task_id": task.id,
            "date": _task_day(task).isoformat(),
            "project": task.project.name if task.project else "Unknown Project",
            "description": task.description,
            "status": TaskStatus(task.status).value,
            "completed_at": task.completed_at.isoformat() if task.completed_at else None,
            "amount": format_money(task.amount, currency),
            "deductions": format_money(deductions, currency),
            "net_amount": format_money(aggregation.net_amount(task), currency),
            "deduction_items": [
                {"amount": format_money(d.amount, currency), "reason": d.reason}
                for d in task.deductions
            ],
        })

    return {
        "worker_id": worker.id,
        "worker_name": worker.name,
        "whatsapp": worker.whatsapp,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "currency": currency,
        "summary": summary,
        "tasks": details,
        "share_message": share_message(worker.name, summary, start, end, currency),
    }

