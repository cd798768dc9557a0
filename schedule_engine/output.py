"""
Output Builder

Constructs the API responses: item views with their derived flags and allowed
actions, listing summaries, and permission reports.
"""

from datetime import date
from decimal import Decimal

from .lifecycle import ACTIONS
from .models import ITEM_STATUSES, PaymentScheduleItem

STATUS_LABELS = {
    "draft": "Draft",
    "pending": "Pending",
    "approved": "Approved",
    "in-progress": "In Progress",
    "completed": "Completed",
    "cancelled": "Cancelled",
    "retired": "Retired",
}


def to_money(value: Decimal) -> float:
    """Convert Decimal to float with 2 decimal places."""
    return round(float(value), 2)


def _fmt(value, currency: str = "USD") -> str:
    """Format a number as currency string for descriptions."""
    symbol = "$" if currency == "USD" else f"{currency} "
    return f"{symbol}{value:,.2f}"


def _due_description(item: PaymentScheduleItem, days: int, overdue: bool) -> str:
    if overdue:
        return f"Overdue by {-days} day{'s' if days != -1 else ''}"
    if item.status != "pending":
        return f"{STATUS_LABELS.get(item.status, item.status)}; due date no longer tracked"
    if days == 0:
        return "Due today"
    if days > 0:
        return f"Due in {days} day{'s' if days != 1 else ''}"
    return f"Due date passed {-days} days ago"


class OutputBuilder:
    """Builds API response bodies."""

    def build_item_view(self, item: PaymentScheduleItem, allowed_actions, today: date,
                        occurrences: list[date] | None = None) -> dict:
        """One item plus everything a view needs to render it."""
        days = item.days_until_due(today)
        overdue = item.is_overdue(today)
        return {
            "item": item.to_dict(),
            "status_label": STATUS_LABELS.get(item.status, item.status),
            "is_terminal": item.is_terminal,
            "is_overdue": overdue,
            "days_until_due": days,
            "due_description": _due_description(item, days, overdue),
            "amount": {
                "value": to_money(item.scheduled_amount),
                "display": _fmt(to_money(item.scheduled_amount), item.currency),
            },
            # Keep a stable order for buttons
            "allowed_actions": [a for a in ACTIONS if a in allowed_actions],
            "upcoming_occurrences": [d.isoformat() for d in occurrences or []],
        }

    def build_summary(self, items: list[PaymentScheduleItem], today: date) -> dict:
        """Counts and totals across a list of items."""
        by_status = {status: 0 for status in ITEM_STATUSES}
        total = Decimal("0")
        overdue_count = 0
        overdue_total = Decimal("0")

        for item in items:
            by_status[item.status] = by_status.get(item.status, 0) + 1
            if item.status not in ("cancelled", "retired"):
                total += item.scheduled_amount
            if item.is_overdue(today):
                overdue_count += 1
                overdue_total += item.scheduled_amount

        return {
            "total_items": len(items),
            "by_status": by_status,
            "total_scheduled_amount": to_money(total),
            "overdue_count": overdue_count,
            "overdue_amount": to_money(overdue_total),
        }

    def build_applied(self, item: PaymentScheduleItem | None, action: str, previous_status: str) -> dict:
        if item is None:
            return {"action": action, "deleted": True, "previous_status": previous_status}
        return {
            "action": action,
            "deleted": False,
            "previous_status": previous_status,
            "status": item.status,
            "item": item.to_dict(),
        }
