"""
Input Validation for the Payment Schedule Rules Engine

Form-level checks run before any request is sent. Each validator raises
ValidationError (a ValueError) naming the first offending field.
"""

import re
from decimal import Decimal, InvalidOperation

from .errors import ValidationError
from .models import FREQUENCIES, ITEM_TYPES, PRIORITIES, parse_date

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_MIN_LENGTH = 8
NAME_MIN_LENGTH = 2
DESCRIPTION_MAX_LENGTH = 500
REASON_MAX_LENGTH = 500
MIN_SCHEDULED_AMOUNT = Decimal("0.01")


def validate_reason(reason, action: str) -> str:
    """A retire/cancel reason must be present and non-blank. Returns it stripped."""
    if reason is None or not str(reason).strip():
        raise ValidationError(f"A reason is required to {action} a payment schedule item", field="reason")
    reason = str(reason).strip()
    if len(reason) > REASON_MAX_LENGTH:
        raise ValidationError(f"Reason cannot exceed {REASON_MAX_LENGTH} characters", field="reason")
    return reason


def _to_decimal(value, field: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a valid number, got: {value}", field=field)


class ItemValidator:
    """Validates create/update payloads for payment schedule items."""

    def validate(self, payload: dict, partial: bool = False) -> None:
        """
        Run all validations. With partial=True only the keys present are checked,
        which is how updates are validated.
        """
        self._validate_references(payload, partial)
        self._validate_classification(payload, partial)
        self._validate_amount_and_date(payload, partial)
        self._validate_description(payload, partial)
        if payload.get("isRecurring"):
            self._validate_recurring(payload.get("recurringSettings") or {})

    def _required(self, payload: dict, key: str, partial: bool) -> bool:
        """True when the key must be checked."""
        return not partial or key in payload

    def _validate_references(self, payload: dict, partial: bool) -> None:
        for key, label in (("agencyId", "Agency"), ("offerLetterId", "Offer Letter")):
            if self._required(payload, key, partial) and not payload.get(key):
                raise ValidationError(f"{label} is required", field=key)

    def _validate_classification(self, payload: dict, partial: bool) -> None:
        if self._required(payload, "itemType", partial):
            item_type = payload.get("itemType")
            if not item_type:
                raise ValidationError("Item Type is required", field="itemType")
            if item_type not in ITEM_TYPES:
                raise ValidationError(
                    f"Invalid itemType: {item_type}. Must be one of {', '.join(ITEM_TYPES)}",
                    field="itemType",
                )
            if item_type == "milestone" and not payload.get("milestoneType"):
                raise ValidationError("Milestone Type is required for milestone items", field="milestoneType")

        priority = payload.get("priority")
        if priority is not None and priority not in PRIORITIES:
            raise ValidationError(
                f"Invalid priority: {priority}. Must be one of {', '.join(PRIORITIES)}",
                field="priority",
            )

    def _validate_amount_and_date(self, payload: dict, partial: bool) -> None:
        if self._required(payload, "scheduledAmount", partial):
            amount = payload.get("scheduledAmount")
            if isinstance(amount, dict):
                amount = amount.get("value")
            if amount in (None, ""):
                raise ValidationError("Scheduled Amount is required", field="scheduledAmount")
            if _to_decimal(amount, "scheduledAmount") < MIN_SCHEDULED_AMOUNT:
                raise ValidationError("Amount must be greater than 0", field="scheduledAmount")

        if self._required(payload, "scheduledDueDate", partial):
            due = payload.get("scheduledDueDate")
            if not due:
                raise ValidationError("Scheduled Due Date is required", field="scheduledDueDate")
            try:
                parse_date(due)
            except ValueError:
                raise ValidationError(f"Invalid scheduledDueDate: {due}", field="scheduledDueDate")

    def _validate_description(self, payload: dict, partial: bool) -> None:
        if not self._required(payload, "description", partial):
            return
        description = payload.get("description")
        if not description or not str(description).strip():
            raise ValidationError("Description is required", field="description")
        if len(description) > DESCRIPTION_MAX_LENGTH:
            raise ValidationError(
                f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters", field="description"
            )

    def _validate_recurring(self, settings: dict) -> None:
        frequency = settings.get("frequency")
        if not frequency:
            raise ValidationError("Frequency is required for recurring items", field="recurringSettings.frequency")
        if frequency not in FREQUENCIES:
            raise ValidationError(
                f"Invalid frequency: {frequency}. Must be one of {', '.join(FREQUENCIES)}",
                field="recurringSettings.frequency",
            )

        interval = settings.get("interval")
        if interval in (None, ""):
            raise ValidationError("Interval is required for recurring items", field="recurringSettings.interval")
        try:
            interval = int(interval)
        except (TypeError, ValueError):
            raise ValidationError(f"Interval must be a whole number, got: {interval}",
                                  field="recurringSettings.interval")
        if interval < 1:
            raise ValidationError("Interval must be at least 1", field="recurringSettings.interval")

        max_occurrences = settings.get("maxOccurrences")
        if max_occurrences not in (None, ""):
            try:
                max_occurrences = int(max_occurrences)
            except (TypeError, ValueError):
                raise ValidationError(f"maxOccurrences must be a whole number, got: {max_occurrences}",
                                      field="recurringSettings.maxOccurrences")
            if max_occurrences < 1:
                raise ValidationError("maxOccurrences must be at least 1", field="recurringSettings.maxOccurrences")

        end_date = settings.get("endDate")
        if end_date:
            try:
                parse_date(end_date)
            except ValueError:
                raise ValidationError(f"Invalid endDate: {end_date}", field="recurringSettings.endDate")


class AgencyValidator:
    """Validates agency form payloads."""

    def validate(self, payload: dict) -> None:
        name = (payload.get("name") or "").strip()
        if not name:
            raise ValidationError("Agency name is required", field="name")
        if len(name) < 2:
            raise ValidationError("Agency name must be at least 2 characters", field="name")
        if len(name) > 100:
            raise ValidationError("Agency name must be less than 100 characters", field="name")

        description = payload.get("description")
        if description and len(description) > DESCRIPTION_MAX_LENGTH:
            raise ValidationError("Description must be less than 500 characters", field="description")

        split = payload.get("commissionSplitPercent")
        if split in (None, ""):
            raise ValidationError("Commission split percentage is required", field="commissionSplitPercent")
        split = _to_decimal(split, "commissionSplitPercent")
        if not (0 <= split <= 100):
            raise ValidationError(
                f"Commission split must be between 0 and 100, got: {split}", field="commissionSplitPercent"
            )

        if not payload.get("accountId"):
            raise ValidationError("Account is required", field="accountId")


class UserValidator:
    """Validates user form payloads (create and edit)."""

    def validate(self, payload: dict) -> None:
        email = payload.get("email")
        if not email:
            raise ValidationError("Email is required", field="email")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Please enter a valid email address", field="email")

        is_new = not (payload.get("_id") or payload.get("id"))
        password = payload.get("password")
        if is_new and not password:
            raise ValidationError("Password is required", field="password")
        if password and len(password) < PASSWORD_MIN_LENGTH:
            raise ValidationError(
                f"Password must be at least {PASSWORD_MIN_LENGTH} characters", field="password"
            )

        for key, label in (("firstName", "First name"), ("lastName", "Last name")):
            value = payload.get(key)
            if not value:
                raise ValidationError(f"{label} is required", field=key)
            if len(value) < NAME_MIN_LENGTH:
                raise ValidationError(f"{label} must be between 2 and 50 characters", field=key)

        portal_type = payload.get("portalType")
        if portal_type in ("account", "agency") and not payload.get("accountId"):
            raise ValidationError(f"Account is required for {portal_type} users", field="accountId")
        if portal_type == "agency" and not payload.get("agencyId"):
            raise ValidationError("Agency is required for agency users", field="agencyId")
