"""
Schedule Actions - Call-Site Orchestrator

Runs a user action end to end:
1. Check the confirmation result
2. Pre-check locally against the lifecycle (reason, state, role)
3. Send the request
4. Turn the outcome, success or failure, into a notification

No ScheduleError escapes: every failure is logged and returned as an
ActionOutcome for a transient notification. Reads return a ReadResult so the
view can render an inline error panel with a retry button.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable

from .cancellation import CancellationToken
from .client import PaymentScheduleClient
from .confirmation import ConfirmationResult
from .errors import ScheduleError, ValidationError
from .lifecycle import (
    APPROVE,
    CANCEL,
    COMPLETE,
    DELETE,
    EDIT,
    RETIRE,
    START,
    PaymentScheduleLifecycle,
)
from .models import ItemFilters, ItemPage, PaymentScheduleItem, User

logger = logging.getLogger(__name__)

SUCCESS_MESSAGES = {
    APPROVE: "Payment schedule item approved successfully",
    START: "Payment schedule item started",
    COMPLETE: "Payment schedule item marked as completed",
    CANCEL: "Payment schedule item cancelled successfully",
    RETIRE: "Payment schedule item retired successfully",
    EDIT: "Payment schedule item updated successfully",
    DELETE: "Payment schedule item deleted successfully",
}


@dataclass
class ActionOutcome:
    """Result of a mutation, ready to be shown as a notification."""

    ok: bool
    action: str
    message: str
    item: PaymentScheduleItem | None = None
    error_type: str | None = None
    skipped: bool = False

    @property
    def level(self) -> str:
        if self.skipped:
            return "info"
        return "success" if self.ok else "error"


@dataclass
class BulkOutcome:
    """Per-item outcomes of a bulk action."""

    action: str
    outcomes: list[ActionOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok and not o.skipped)

    @property
    def message(self) -> str:
        if self.failed:
            return f"{self.succeeded} of {len(self.outcomes)} items processed; {self.failed} failed"
        return f"{self.succeeded} items processed successfully"


@dataclass
class ReadResult:
    """Result of a query, ready to be rendered (data or an inline error panel)."""

    data: Any = None
    error: str | None = None
    error_type: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def retryable(self) -> bool:
        return not self.ok


class ScheduleActions:
    """Performs payment schedule actions on behalf of one signed-in user."""

    def __init__(self, client: PaymentScheduleClient, user: User,
                 lifecycle: PaymentScheduleLifecycle | None = None):
        self.client = client
        self.user = user
        self.lifecycle = lifecycle or PaymentScheduleLifecycle()

    # -------------------------------------------------------------------------
    # Single-item mutations
    # -------------------------------------------------------------------------

    def perform(self, item: PaymentScheduleItem, action: str,
                confirmation: ConfirmationResult | None = None, changes: dict | None = None,
                cancel_token: CancellationToken | None = None) -> ActionOutcome:
        """Run one action against one item and report the outcome."""
        if confirmation is not None and not confirmation.confirmed:
            return ActionOutcome(ok=False, action=action, message="Action cancelled", item=item, skipped=True)

        reason = confirmation.reason if confirmation is not None else None
        try:
            # Local pre-check; the server stays authoritative
            self.lifecycle.apply_action(item, action, self.user, reason=reason, changes=changes)
            updated = self._send(item, action, reason, changes, cancel_token)
        except ScheduleError as e:
            logger.error(f"Failed to {action} item {item.id}: {e.message}")
            return ActionOutcome(ok=False, action=action, message=e.message, item=item, error_type=e.kind)

        logger.info(f"Item {item.id}: {action} succeeded")
        return ActionOutcome(ok=True, action=action, message=SUCCESS_MESSAGES[action], item=updated)

    def _send(self, item: PaymentScheduleItem, action: str, reason: str | None, changes: dict | None,
              cancel_token: CancellationToken | None) -> PaymentScheduleItem | None:
        if action == APPROVE:
            return self.client.approve_item(item.id, cancel_token=cancel_token)
        if action == COMPLETE:
            return self.client.complete_item(item.id, cancel_token=cancel_token)
        if action == CANCEL:
            return self.client.cancel_item(item.id, reason, cancel_token=cancel_token)
        if action == RETIRE:
            return self.client.retire_item(item.id, reason, cancel_token=cancel_token)
        if action == EDIT:
            changes = dict(changes or {})
            if "item_type" in changes:
                changes.setdefault("milestone_type", item.milestone_type)
            return self.client.update_item(item.id, _to_payload(changes), cancel_token=cancel_token)
        if action == DELETE:
            self.client.delete_item(item.id, cancel_token=cancel_token)
            return None
        # START has no endpoint of its own
        raise ValidationError(f"Action '{action}' is not available from this client", field="action")

    # -------------------------------------------------------------------------
    # Bulk mutations
    # -------------------------------------------------------------------------

    def bulk(self, items: list[PaymentScheduleItem], action: str,
             confirmation: ConfirmationResult | None = None,
             cancel_token: CancellationToken | None = None) -> BulkOutcome:
        """Apply the same action to each selected item; one failure never stops the rest."""
        result = BulkOutcome(action=action)
        for item in items:
            result.outcomes.append(self.perform(item, action, confirmation, cancel_token=cancel_token))
        logger.info(f"Bulk {action}: {result.message}")
        return result

    def generate_transactions(self, items: list[PaymentScheduleItem],
                              confirmation: ConfirmationResult | None = None,
                              cancel_token: CancellationToken | None = None) -> ActionOutcome:
        action = "generate_transactions"
        if confirmation is not None and not confirmation.confirmed:
            return ActionOutcome(ok=False, action=action, message="Action cancelled", skipped=True)
        try:
            self.client.generate_transactions([item.id for item in items], cancel_token=cancel_token)
        except ScheduleError as e:
            logger.error(f"Failed to generate billing transactions: {e.message}")
            return ActionOutcome(ok=False, action=action, message=e.message, error_type=e.kind)
        return ActionOutcome(ok=True, action=action,
                             message=f"Billing transactions generated for {len(items)} items")

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def load_items(self, filters: ItemFilters | None = None,
                   cancel_token: CancellationToken | None = None) -> ReadResult:
        return self._read(lambda: self.client.list_items(filters, cancel_token=cancel_token), ItemPage())

    def load_item(self, item_id: str, cancel_token: CancellationToken | None = None) -> ReadResult:
        return self._read(lambda: self.client.get_item(item_id, cancel_token=cancel_token))

    def _read(self, fetch: Callable[[], Any], empty: Any = None) -> ReadResult:
        try:
            return ReadResult(data=fetch())
        except ScheduleError as e:
            logger.error(f"Failed to load payment schedule data: {e.message}")
            return ReadResult(data=empty, error=e.message, error_type=e.kind)


def _to_payload(changes: dict) -> dict:
    """snake_case field changes -> camelCase request body."""
    payload = {}
    for key, value in changes.items():
        head, *rest = key.split("_")
        camel = head + "".join(part.title() for part in rest)
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        payload[camel] = value
    return payload
