"""
Payment Schedule API Client

Thin wrapper around the REST backend. Every call carries the bearer token; a
401 triggers one token refresh and a single retry, and a failed refresh clears
the stored credentials and logs the user out. HTTP failures are mapped onto the
error taxonomy in errors.py. There is no automatic retry and no optimistic
update: callers apply the server's response or nothing.
"""

import logging
from typing import Any, Callable, Dict, Optional

import httpx

from . import config
from .cancellation import CancellationToken
from .errors import (
    InvalidStateError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    ScheduleError,
    SessionExpiredError,
    ValidationError,
)
from .models import ItemFilters, ItemPage, PaymentScheduleItem
from .validators import ItemValidator, validate_reason

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh"
ITEMS_PATH = "/payment-schedule-items"


class TokenStore:
    """Holds the access and refresh tokens of the signed-in user."""

    def __init__(self, token: str | None = None, refresh_token: str | None = None,
                 on_logout: Optional[Callable[[], None]] = None):
        self.token = token
        self.refresh_token = refresh_token
        self.on_logout = on_logout

    def set_credentials(self, token: str, refresh_token: str | None = None) -> None:
        self.token = token
        if refresh_token:
            self.refresh_token = refresh_token

    def clear(self) -> None:
        self.token = None
        self.refresh_token = None
        if self.on_logout is not None:
            self.on_logout()


class ApiClient:
    """Authenticated JSON requests with refresh-on-401."""

    def __init__(self, base_url: str = config.API_BASE_URL, tokens: TokenStore | None = None,
                 timeout: float | None = config.API_TIMEOUT, transport: httpx.BaseTransport | None = None):
        self.tokens = tokens or TokenStore()
        client_kwargs: Dict[str, Any] = {"base_url": base_url}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        if transport is not None:
            client_kwargs["transport"] = transport
        self._http = httpx.Client(**client_kwargs)

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def request(self, method: str, path: str, json: dict | None = None, params: dict | None = None,
                cancel_token: CancellationToken | None = None, transition: bool = False) -> Any:
        """
        Send a request and return the `data` part of the response envelope.

        `transition` marks status-changing calls, for which the backend reports a
        disallowed move as a plain 400.
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        response = self._send(method, path, json, params)
        if response.status_code == 401 and path != REFRESH_PATH:
            self._refresh()
            response = self._send(method, path, json, params)

        # A handle cancelled while in flight must not see its response applied
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        return self._unwrap(response, transition)

    def _send(self, method: str, path: str, json: dict | None, params: dict | None) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if self.tokens.token:
            headers["Authorization"] = f"Bearer {self.tokens.token}"
        try:
            return self._http.request(method, path, json=json, params=params, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(f"{method} {path} timed out: {str(e)}")
            raise NetworkError("The request timed out. Please try again.")
        except httpx.TransportError as e:
            logger.error(f"{method} {path} failed: {str(e)}")
            raise NetworkError("Could not reach the server. Please try again.")

    def _refresh(self) -> None:
        """Exchange the refresh token for new credentials, or log out."""
        refresh_token = self.tokens.refresh_token
        if not refresh_token:
            logger.warning("Received 401 without a refresh token; logging out")
            self.tokens.clear()
            raise SessionExpiredError("Your session has expired. Please sign in again.", status_code=401)

        response = self._send("POST", REFRESH_PATH, {"refreshToken": refresh_token}, None)
        if response.status_code != 200:
            logger.warning(f"Token refresh failed with status {response.status_code}; logging out")
            self.tokens.clear()
            raise SessionExpiredError("Your session has expired. Please sign in again.", status_code=401)

        try:
            data = (response.json() or {}).get("data") or {}
            token = data["token"]
        except (ValueError, AttributeError, KeyError, TypeError) as e:
            logger.warning(f"Token refresh returned an unusable body ({str(e)}); logging out")
            self.tokens.clear()
            raise SessionExpiredError("Your session has expired. Please sign in again.", status_code=401)

        self.tokens.set_credentials(token, data.get("refreshToken"))
        logger.info("Access token refreshed")

    def _unwrap(self, response: httpx.Response, transition: bool) -> Any:
        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}

        if response.is_success:
            if isinstance(body, dict) and "data" in body:
                return body["data"]
            return body

        message = (body.get("message") if isinstance(body, dict) else None) or response.reason_phrase
        raise self._map_error(response.status_code, message, body, transition)

    def _map_error(self, status: int, message: str, body: Any, transition: bool) -> ScheduleError:
        logger.error(f"API error {status}: {message}")
        if status == 401:
            self.tokens.clear()
            return SessionExpiredError(message, status_code=status)
        if status == 403:
            return PermissionDeniedError(message, status_code=status)
        if status == 404:
            return NotFoundError(message, status_code=status)
        if status in (409, 422) or (status == 400 and transition):
            return InvalidStateError(message, status_code=status)
        if 400 <= status < 500:
            field = None
            errors = body.get("errors") if isinstance(body, dict) else None
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                field = errors[0].get("field") or errors[0].get("path")
            return ValidationError(message, field=field, status_code=status)
        return NetworkError(message, status_code=status)


class PaymentScheduleClient(ApiClient):
    """Endpoints of /payment-schedule-items."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.validator = ItemValidator()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list_items(self, filters: ItemFilters | None = None,
                   cancel_token: CancellationToken | None = None) -> ItemPage:
        filters = filters or ItemFilters()
        data = self.request("GET", ITEMS_PATH, params=filters.to_params(), cancel_token=cancel_token)
        return ItemPage.from_dict(data)

    def get_item(self, item_id: str, cancel_token: CancellationToken | None = None) -> PaymentScheduleItem:
        data = self.request("GET", f"{ITEMS_PATH}/{item_id}", cancel_token=cancel_token)
        return _item_from(data)

    def get_overdue(self, cancel_token: CancellationToken | None = None) -> list[PaymentScheduleItem]:
        data = self.request("GET", f"{ITEMS_PATH}/overdue", cancel_token=cancel_token)
        return _items_from(data)

    def get_upcoming(self, days: int = config.UPCOMING_DAYS,
                     cancel_token: CancellationToken | None = None) -> list[PaymentScheduleItem]:
        data = self.request("GET", f"{ITEMS_PATH}/upcoming", params={"days": days}, cancel_token=cancel_token)
        return _items_from(data)

    def get_stats(self, filters: dict | None = None, cancel_token: CancellationToken | None = None) -> dict:
        params = {k: v for k, v in (filters or {}).items() if v not in (None, "")}
        return self.request("GET", f"{ITEMS_PATH}/stats", params=params, cancel_token=cancel_token)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create_item(self, payload: dict, cancel_token: CancellationToken | None = None) -> PaymentScheduleItem:
        self.validator.validate(payload)
        data = self.request("POST", ITEMS_PATH, json=payload, cancel_token=cancel_token)
        return _item_from(data)

    def update_item(self, item_id: str, changes: dict,
                    cancel_token: CancellationToken | None = None) -> PaymentScheduleItem:
        self.validator.validate(changes, partial=True)
        data = self.request("PUT", f"{ITEMS_PATH}/{item_id}", json=changes, cancel_token=cancel_token)
        return _item_from(data)

    def approve_item(self, item_id: str, cancel_token: CancellationToken | None = None) -> PaymentScheduleItem:
        data = self.request("PATCH", f"{ITEMS_PATH}/{item_id}/approve", cancel_token=cancel_token,
                            transition=True)
        return _item_from(data)

    def retire_item(self, item_id: str, reason: str | None,
                    cancel_token: CancellationToken | None = None) -> PaymentScheduleItem:
        reason = validate_reason(reason, "retire")
        data = self.request("PATCH", f"{ITEMS_PATH}/{item_id}/retire", json={"reason": reason},
                            cancel_token=cancel_token, transition=True)
        return _item_from(data)

    def cancel_item(self, item_id: str, reason: str | None,
                    cancel_token: CancellationToken | None = None) -> PaymentScheduleItem:
        reason = validate_reason(reason, "cancel")
        data = self.request("PATCH", f"{ITEMS_PATH}/{item_id}/cancel", json={"reason": reason},
                            cancel_token=cancel_token, transition=True)
        return _item_from(data)

    def complete_item(self, item_id: str, cancel_token: CancellationToken | None = None) -> PaymentScheduleItem:
        data = self.request("PATCH", f"{ITEMS_PATH}/{item_id}/complete", cancel_token=cancel_token,
                            transition=True)
        return _item_from(data)

    def delete_item(self, item_id: str, cancel_token: CancellationToken | None = None) -> None:
        self.request("DELETE", f"{ITEMS_PATH}/{item_id}", cancel_token=cancel_token, transition=True)

    def generate_transactions(self, item_ids: list[str], options: dict | None = None,
                              cancel_token: CancellationToken | None = None) -> dict:
        if not item_ids:
            raise ValidationError("Select at least one payment schedule item", field="itemIds")
        body = {"itemIds": list(item_ids), **(options or {})}
        return self.request("POST", f"{ITEMS_PATH}/generate-transactions", json=body, cancel_token=cancel_token)

    def generate_recurring(self, parent_item_id: str | None = None,
                           cancel_token: CancellationToken | None = None) -> list[PaymentScheduleItem]:
        body = {"parentItemId": parent_item_id} if parent_item_id else {}
        data = self.request("POST", f"{ITEMS_PATH}/generate-recurring", json=body, cancel_token=cancel_token)
        return _items_from(data)


def _item_from(data: Any) -> PaymentScheduleItem:
    if isinstance(data, dict) and "paymentScheduleItem" in data:
        data = data["paymentScheduleItem"]
    return PaymentScheduleItem.from_dict(data)


def _items_from(data: Any) -> list[PaymentScheduleItem]:
    if isinstance(data, dict):
        data = data.get("paymentScheduleItems") or data.get("items") or []
    return [PaymentScheduleItem.from_dict(item) for item in data or []]
