"""
Tests for ScheduleActions

Failures are reported as outcomes, never raised; local pre-checks stop bad
requests before they are sent.
"""

import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from schedule_engine.actions import ScheduleActions
from schedule_engine.client import PaymentScheduleClient, TokenStore
from schedule_engine.confirmation import ConfirmationResult

from conftest import item_json


class Backend:
    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.handler(request)


def respond_with(**item_overrides):
    return lambda r: httpx.Response(
        200, json={"success": True, "data": {"paymentScheduleItem": item_json(**item_overrides)}}
    )


@pytest.fixture
def build():
    def _build(user, handler):
        backend = Backend(handler)
        client = PaymentScheduleClient(
            base_url="http://backend.test/api",
            tokens=TokenStore("access-1", "refresh-1"),
            transport=httpx.MockTransport(backend),
        )
        return ScheduleActions(client, user), backend
    return _build


class TestPerform:

    def test_approve(self, build, manager, make_item):
        actions, backend = build(manager, respond_with(status="approved"))
        outcome = actions.perform(make_item(status="pending"), "approve")

        assert outcome.ok
        assert outcome.level == "success"
        assert outcome.message == "Payment schedule item approved successfully"
        assert outcome.item.status == "approved"
        assert backend.requests[0].url.path.endswith("/item-1/approve")

    def test_permission_checked_locally(self, build, basic_user, make_item):
        actions, backend = build(basic_user, respond_with(status="approved"))
        outcome = actions.perform(make_item(status="pending"), "approve")

        assert not outcome.ok
        assert outcome.error_type == "permission"
        assert backend.requests == []

    def test_declined_confirmation_is_skipped(self, build, admin, make_item):
        actions, backend = build(admin, respond_with())
        outcome = actions.perform(make_item(status="draft"), "delete", ConfirmationResult(confirmed=False))

        assert outcome.skipped
        assert outcome.level == "info"
        assert backend.requests == []

    def test_retire_sends_confirmed_reason(self, build, admin, make_item):
        actions, backend = build(admin, respond_with(status="retired"))
        outcome = actions.perform(
            make_item(status="approved"), "retire", ConfirmationResult(confirmed=True, reason="Contract ended")
        )

        assert outcome.ok
        assert json.loads(backend.requests[0].content) == {"reason": "Contract ended"}

    def test_missing_reason_fails_without_request(self, build, admin, make_item):
        actions, backend = build(admin, respond_with(status="cancelled"))
        outcome = actions.perform(make_item(status="approved"), "cancel", ConfirmationResult(confirmed=True))

        assert not outcome.ok
        assert outcome.error_type == "validation"
        assert backend.requests == []

    def test_server_conflict_reported(self, build, manager, make_item):
        actions, _ = build(
            manager, lambda r: httpx.Response(409, json={"success": False, "message": "Item is already approved"})
        )
        outcome = actions.perform(make_item(status="pending"), "approve")

        assert not outcome.ok
        assert outcome.level == "error"
        assert outcome.error_type == "invalid_state"
        assert outcome.message == "Item is already approved"

    def test_start_not_available(self, build, manager, make_item):
        actions, backend = build(manager, respond_with(status="in-progress"))
        outcome = actions.perform(make_item(status="approved"), "start")

        assert not outcome.ok
        assert outcome.error_type == "validation"
        assert backend.requests == []

    def test_edit_sends_camel_case(self, build, basic_user, make_item):
        actions, backend = build(basic_user, respond_with(scheduledAmount=2000))
        outcome = actions.perform(
            make_item(status="pending"),
            "edit",
            changes={"scheduled_amount": Decimal("2000"), "scheduled_due_date": date(2025, 7, 1)},
        )

        assert outcome.ok
        assert json.loads(backend.requests[0].content) == {
            "scheduledAmount": 2000.0,
            "scheduledDueDate": "2025-07-01",
        }
        assert outcome.item.scheduled_amount == Decimal("2000")

    def test_edit_derived_attribute_reported(self, build, admin, make_item):
        actions, backend = build(admin, respond_with())
        outcome = actions.perform(make_item(status="pending"), "edit", changes={"is_overdue": True})

        assert not outcome.ok
        assert outcome.error_type == "validation"
        assert backend.requests == []

    def test_delete_draft(self, build, admin, make_item):
        actions, backend = build(admin, lambda r: httpx.Response(200, json={"success": True, "message": "Deleted"}))
        outcome = actions.perform(make_item(status="draft"), "delete", ConfirmationResult(confirmed=True))

        assert outcome.ok
        assert outcome.item is None
        assert backend.requests[0].method == "DELETE"


class TestBulk:

    def test_one_failure_does_not_stop_the_rest(self, build, manager, make_item):
        actions, backend = build(manager, respond_with(status="approved"))
        items = [make_item(id="a", status="pending"), make_item(id="b", status="completed"),
                 make_item(id="c", status="pending")]
        result = actions.bulk(items, "approve", ConfirmationResult(confirmed=True))

        assert result.succeeded == 2
        assert result.failed == 1
        assert result.message == "2 of 3 items processed; 1 failed"
        assert len(backend.requests) == 2

    def test_generate_transactions(self, build, manager, make_item):
        actions, backend = build(manager, lambda r: httpx.Response(200, json={"success": True, "data": {}}))
        outcome = actions.generate_transactions([make_item(id="a"), make_item(id="b")],
                                                ConfirmationResult(confirmed=True))

        assert outcome.ok
        assert outcome.message == "Billing transactions generated for 2 items"
        assert json.loads(backend.requests[0].content) == {"itemIds": ["a", "b"]}


class TestReads:

    def test_load_items(self, build, basic_user):
        data = {"paymentScheduleItems": [item_json()], "pagination": {"totalItems": 1}}
        actions, _ = build(basic_user, lambda r: httpx.Response(200, json={"success": True, "data": data}))
        result = actions.load_items()

        assert result.ok
        assert result.data.total_items == 1

    def test_load_error_is_retryable(self, build, basic_user):
        actions, _ = build(basic_user, lambda r: httpx.Response(503, json={"message": "Service unavailable"}))
        result = actions.load_items()

        assert not result.ok
        assert result.retryable
        assert result.error_type == "network"
        assert result.data.items == []

    def test_load_missing_item(self, build, basic_user):
        actions, _ = build(basic_user, lambda r: httpx.Response(404, json={"message": "Not found"}))
        result = actions.load_item("missing")

        assert result.error_type == "not_found"
        assert result.data is None

    def test_unusable_refresh_is_reported(self, build, basic_user):
        def handler(request):
            if request.url.path.endswith("/auth/refresh"):
                return httpx.Response(200, json={"success": True, "data": {}})
            return httpx.Response(401, json={"message": "Token expired"})

        actions, _ = build(basic_user, handler)
        result = actions.load_items()

        assert not result.ok
        assert result.error_type == "session_expired"
