"""Shared fixtures: item and user factories."""

from datetime import date
from decimal import Decimal

import pytest

from schedule_engine.models import PaymentScheduleItem, RecurringSettings, User


def _item(**overrides) -> PaymentScheduleItem:
    fields = {
        "id": "item-1",
        "status": "pending",
        "item_type": "one-time",
        "scheduled_amount": Decimal("1500.00"),
        "scheduled_due_date": date(2025, 6, 1),
        "description": "Kickoff payment",
        "account_id": "account-1",
        "agency_id": "agency-1",
        "offer_letter_id": "offer-1",
    }
    fields.update(overrides)
    return PaymentScheduleItem(**fields)


def _user(role: str = "admin", portal_type: str = "account", **overrides) -> User:
    fields = {
        "id": f"{portal_type}-{role}",
        "role": role,
        "portal_type": portal_type,
        "account_id": "account-1",
        "agency_id": "agency-1" if portal_type == "agency" else None,
    }
    fields.update(overrides)
    return User(**fields)


@pytest.fixture
def make_item():
    return _item


@pytest.fixture
def make_user():
    return _user


@pytest.fixture
def admin():
    return _user("admin")


@pytest.fixture
def manager():
    return _user("manager")


@pytest.fixture
def basic_user():
    return _user("user")


@pytest.fixture
def superadmin():
    return _user("admin", "superadmin", account_id=None)


@pytest.fixture
def monthly_item():
    return _item(
        item_type="recurring",
        is_recurring=True,
        scheduled_due_date=date(2025, 1, 31),
        recurring_settings=RecurringSettings(frequency="monthly", interval=1),
    )


def item_json(**overrides) -> dict:
    """A server-shaped item document."""
    data = {
        "_id": "item-1",
        "status": "pending",
        "itemType": "one-time",
        "scheduledAmount": {"value": 1500, "currency": "USD"},
        "scheduledDueDate": "2025-06-01T00:00:00.000Z",
        "priority": "medium",
        "description": "Kickoff payment",
        "accountId": "account-1",
        "agencyId": {"_id": "agency-1", "name": "North Agency"},
        "offerLetterId": "offer-1",
    }
    data.update(overrides)
    return data


@pytest.fixture
def server_item():
    return item_json
