"""
Tests for the Payment Schedule API Client

The backend is replaced by an httpx.MockTransport; each test inspects the
requests the client sent.
"""

import json

import httpx
import pytest

from schedule_engine.cancellation import CancellationToken
from schedule_engine.client import PaymentScheduleClient, TokenStore
from schedule_engine.errors import (
    InvalidStateError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RequestCancelledError,
    SessionExpiredError,
    ValidationError,
)
from schedule_engine.models import ItemFilters

from conftest import item_json

BASE_URL = "http://backend.test/api"


class Backend:
    """Records requests and answers with a scripted handler."""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def paths(self):
        return [r.url.path for r in self.requests]


def envelope(data, status=200, message="OK"):
    return httpx.Response(status, json={"success": 200 <= status < 300, "message": message, "data": data})


def make_client(handler, token="access-1", refresh_token="refresh-1", on_logout=None):
    backend = Backend(handler)
    tokens = TokenStore(token, refresh_token, on_logout=on_logout)
    client = PaymentScheduleClient(base_url=BASE_URL, tokens=tokens, transport=httpx.MockTransport(backend))
    return client, backend


class TestAuthentication:

    def test_bearer_token_sent(self):
        client, backend = make_client(lambda r: envelope({"paymentScheduleItem": item_json()}))
        client.get_item("item-1")

        request = backend.requests[0]
        assert request.headers["Authorization"] == "Bearer access-1"
        assert request.url.path == "/api/payment-schedule-items/item-1"

    def test_refresh_on_401_then_retry(self):
        def handler(request):
            if request.url.path.endswith("/auth/refresh"):
                assert json.loads(request.content) == {"refreshToken": "refresh-1"}
                return envelope({"token": "access-2", "refreshToken": "refresh-2"})
            if request.headers["Authorization"] == "Bearer access-1":
                return httpx.Response(401, json={"success": False, "message": "Token expired"})
            return envelope({"paymentScheduleItem": item_json()})

        client, backend = make_client(handler)
        item = client.get_item("item-1")

        assert item.id == "item-1"
        assert client.tokens.token == "access-2"
        assert client.tokens.refresh_token == "refresh-2"
        assert backend.paths() == [
            "/api/payment-schedule-items/item-1",
            "/api/auth/refresh",
            "/api/payment-schedule-items/item-1",
        ]
        assert backend.requests[-1].headers["Authorization"] == "Bearer access-2"

    def test_failed_refresh_logs_out(self):
        logged_out = []

        def handler(request):
            return httpx.Response(401, json={"success": False, "message": "Invalid token"})

        client, backend = make_client(handler, on_logout=lambda: logged_out.append(True))
        with pytest.raises(SessionExpiredError):
            client.get_item("item-1")

        assert logged_out == [True]
        assert client.tokens.token is None
        assert client.tokens.refresh_token is None
        # No retry after a failed refresh
        assert len(backend.requests) == 2

    @pytest.mark.parametrize("refresh_response", [
        httpx.Response(200, json={}),
        httpx.Response(200, json={"success": True, "data": {}}),
        httpx.Response(200, text="<html>gateway</html>"),
    ])
    def test_refresh_without_token_logs_out(self, refresh_response):
        logged_out = []

        def handler(request):
            if request.url.path.endswith("/auth/refresh"):
                return refresh_response
            return httpx.Response(401, json={"success": False, "message": "Token expired"})

        client, backend = make_client(handler, on_logout=lambda: logged_out.append(True))
        with pytest.raises(SessionExpiredError):
            client.get_item("item-1")

        assert logged_out == [True]
        assert client.tokens.token is None
        assert len(backend.requests) == 2

    def test_401_without_refresh_token(self):
        client, backend = make_client(lambda r: httpx.Response(401), refresh_token=None)
        with pytest.raises(SessionExpiredError):
            client.get_item("item-1")
        assert backend.paths() == ["/api/payment-schedule-items/item-1"]


class TestErrorMapping:

    @pytest.mark.parametrize("status,error", [
        (403, PermissionDeniedError),
        (404, NotFoundError),
        (409, InvalidStateError),
        (422, InvalidStateError),
        (400, ValidationError),
        (500, NetworkError),
        (503, NetworkError),
    ])
    def test_status_codes(self, status, error):
        client, _ = make_client(lambda r: httpx.Response(status, json={"success": False, "message": "Nope"}))
        with pytest.raises(error) as exc:
            client.get_item("item-1")
        assert exc.value.status_code == status
        assert exc.value.message == "Nope"

    def test_400_on_transition_is_invalid_state(self):
        client, _ = make_client(
            lambda r: httpx.Response(400, json={"success": False, "message": "Item is already approved"})
        )
        with pytest.raises(InvalidStateError, match="already approved"):
            client.approve_item("item-1")

    def test_validation_error_names_field(self):
        body = {"success": False, "message": "Validation failed", "errors": [{"field": "description"}]}
        client, _ = make_client(lambda r: httpx.Response(400, json=body))
        with pytest.raises(ValidationError) as exc:
            client.update_item("item-1", {"description": "New text"})
        assert exc.value.field == "description"

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        client, _ = make_client(handler)
        with pytest.raises(NetworkError, match="Could not reach"):
            client.get_stats()

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow")

        client, _ = make_client(handler)
        with pytest.raises(NetworkError, match="timed out"):
            client.get_stats()


class TestLocalChecks:
    """Invalid input never reaches the network."""

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_retire_without_reason(self, reason):
        client, backend = make_client(lambda r: envelope({}))
        with pytest.raises(ValidationError):
            client.retire_item("item-1", reason)
        assert backend.requests == []

    def test_cancel_without_reason(self):
        client, backend = make_client(lambda r: envelope({}))
        with pytest.raises(ValidationError):
            client.cancel_item("item-1", " ")
        assert backend.requests == []

    def test_create_invalid_payload(self):
        client, backend = make_client(lambda r: envelope({}))
        with pytest.raises(ValidationError):
            client.create_item({"itemType": "milestone", "description": "Deposit"})
        assert backend.requests == []

    def test_generate_transactions_needs_items(self):
        client, backend = make_client(lambda r: envelope({}))
        with pytest.raises(ValidationError):
            client.generate_transactions([])
        assert backend.requests == []


class TestCancellation:

    def test_cancelled_before_send(self):
        client, backend = make_client(lambda r: envelope({}))
        token = CancellationToken("detail")
        token.cancel()

        with pytest.raises(RequestCancelledError):
            client.get_item("item-1", cancel_token=token)
        assert backend.requests == []

    def test_cancelled_in_flight_discards_response(self):
        token = CancellationToken("detail")

        def handler(request):
            token.cancel()
            return envelope({"paymentScheduleItem": item_json(status="approved")})

        client, backend = make_client(handler)
        with pytest.raises(RequestCancelledError):
            client.approve_item("item-1", cancel_token=token)
        assert len(backend.requests) == 1


class TestEndpoints:

    def test_list_items(self):
        data = {
            "paymentScheduleItems": [item_json(), item_json(_id="item-2", status="approved")],
            "pagination": {"currentPage": 1, "totalPages": 3, "totalItems": 25, "itemsPerPage": 10},
        }
        client, backend = make_client(lambda r: envelope(data))
        page = client.list_items(ItemFilters(status="pending", search=""))

        params = backend.requests[0].url.params
        assert params["status"] == "pending"
        assert params["page"] == "1"
        assert params["sortBy"] == "scheduledDueDate"
        assert "search" not in params

        assert [i.id for i in page.items] == ["item-1", "item-2"]
        assert page.total_pages == 3
        assert page.has_next_page
        assert page.items[0].agency_id == "agency-1"

    def test_upcoming(self):
        client, backend = make_client(lambda r: envelope([item_json()]))
        items = client.get_upcoming(days=7)

        assert backend.requests[0].url.path == "/api/payment-schedule-items/upcoming"
        assert backend.requests[0].url.params["days"] == "7"
        assert len(items) == 1

    def test_overdue(self):
        client, _ = make_client(lambda r: envelope({"paymentScheduleItems": [item_json()]}))
        assert [i.id for i in client.get_overdue()] == ["item-1"]

    def test_retire_sends_reason(self):
        client, backend = make_client(
            lambda r: envelope({"paymentScheduleItem": item_json(status="retired", retirementReason="Ended")})
        )
        item = client.retire_item("item-1", "  Ended ")

        request = backend.requests[0]
        assert request.method == "PATCH"
        assert request.url.path == "/api/payment-schedule-items/item-1/retire"
        assert json.loads(request.content) == {"reason": "Ended"}
        assert item.status == "retired"

    def test_delete(self):
        client, backend = make_client(lambda r: httpx.Response(200, json={"success": True, "message": "Deleted"}))
        assert client.delete_item("item-1") is None
        assert backend.requests[0].method == "DELETE"

    def test_generate_transactions(self):
        client, backend = make_client(lambda r: envelope({"transactions": [], "errors": []}))
        client.generate_transactions(["item-1", "item-2"], {"autoApprove": True})

        assert json.loads(backend.requests[0].content) == {"itemIds": ["item-1", "item-2"], "autoApprove": True}

    def test_generate_recurring(self):
        client, backend = make_client(lambda r: envelope({"items": [item_json(_id="item-9")]}))
        items = client.generate_recurring("item-1")

        assert backend.requests[0].url.path == "/api/payment-schedule-items/generate-recurring"
        assert json.loads(backend.requests[0].content) == {"parentItemId": "item-1"}
        assert items[0].id == "item-9"
