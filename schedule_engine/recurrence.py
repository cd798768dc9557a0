"""
Recurrence Planner

Projects the upcoming due dates of a recurring item for display. The backend
materialises the actual occurrences (POST /generate-recurring); this only
previews what it would create.
"""

from datetime import date

from dateutil.relativedelta import relativedelta

from .errors import ValidationError
from .models import FREQUENCY_ALIASES, PaymentScheduleItem, RecurringSettings

# Upper bound for open-ended schedules
DEFAULT_PREVIEW_LIMIT = 12


def frequency_step(frequency: str, interval: int = 1) -> relativedelta:
    """Calendar distance between two consecutive occurrences."""
    frequency = FREQUENCY_ALIASES.get(frequency, frequency)
    if frequency == "daily":
        return relativedelta(days=interval)
    if frequency == "weekly":
        return relativedelta(weeks=interval)
    if frequency == "monthly":
        return relativedelta(months=interval)
    if frequency == "quarterly":
        return relativedelta(months=3 * interval)
    if frequency == "yearly":
        return relativedelta(years=interval)
    raise ValidationError(f"Invalid frequency: {frequency}", field="recurringSettings.frequency")


class RecurrencePlanner:
    """Computes occurrence dates for recurring payment schedule items."""

    def project(self, item: PaymentScheduleItem, limit: int = DEFAULT_PREVIEW_LIMIT) -> list[date]:
        """
        Due dates of the occurrences following the item's own due date.

        Stops at the first of: end date passed, max occurrences reached, limit.
        Non-recurring items and terminal items project nothing.
        """
        if not item.is_recurring or item.recurring_settings is None or item.is_terminal:
            return []
        return self.occurrences(item.scheduled_due_date, item.recurring_settings, limit)

    def occurrences(self, start: date, settings: RecurringSettings,
                    limit: int = DEFAULT_PREVIEW_LIMIT) -> list[date]:
        if settings.interval < 1:
            raise ValidationError("Interval must be at least 1", field="recurringSettings.interval")

        cap = limit
        if settings.max_occurrences is not None:
            cap = min(cap, settings.max_occurrences)

        dates = []
        step = frequency_step(settings.frequency, settings.interval)
        # Offsets are taken from the start date so month-end dates do not drift
        n = 1
        while len(dates) < cap:
            current = start + step * n
            if settings.end_date is not None and current > settings.end_date:
                break
            dates.append(current)
            n += 1
        return dates

    def next_due_date(self, item: PaymentScheduleItem) -> date | None:
        upcoming = self.project(item, limit=1)
        return upcoming[0] if upcoming else None
