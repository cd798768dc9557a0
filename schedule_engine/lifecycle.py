"""
Payment Schedule Item Lifecycle

One transition table decides, for (current status, action, acting user), whether
the action is allowed and which status results. Every view asks this module
instead of re-deriving its own predicates.

    pending      --approve-->  approved
    approved     --start---->  in-progress
    approved, in-progress             --complete-->  completed
    pending, approved, in-progress    --cancel---->  cancelled
    draft, pending, approved, in-progress  --retire-->  retired

Terminal statuses (completed, cancelled, retired) have no outgoing transitions.
"""

import logging
from dataclasses import dataclass, fields, replace
from decimal import Decimal

from .errors import InvalidStateError, PermissionDeniedError, ValidationError
from .models import (
    APPROVED,
    CANCELLED,
    COMPLETED,
    DRAFT,
    IN_PROGRESS,
    PENDING,
    RETIRED,
    PaymentScheduleItem,
    User,
    parse_date,
)
from .permissions import ROLE_HIERARCHY, PermissionGate, role_rank
from .validators import ItemValidator, validate_reason

logger = logging.getLogger(__name__)

APPROVE = "approve"
START = "start"
COMPLETE = "complete"
CANCEL = "cancel"
RETIRE = "retire"
EDIT = "edit"
DELETE = "delete"

ACTIONS = (EDIT, APPROVE, START, COMPLETE, CANCEL, RETIRE, DELETE)

# Fields an edit may never touch; status only moves through transitions
IMMUTABLE_FIELDS = frozenset({
    "id", "status", "retirement_reason", "retired_by", "approved_by", "completed_by",
    "created_by", "updated_by", "created_at", "updated_at",
})

# Editable fields validated by ItemValidator, keyed to their payload names
EDITABLE_FIELDS = {
    "item_type": "itemType",
    "milestone_type": "milestoneType",
    "scheduled_amount": "scheduledAmount",
    "scheduled_due_date": "scheduledDueDate",
    "priority": "priority",
    "description": "description",
}


@dataclass(frozen=True)
class Transition:
    """One row of the transition table."""

    action: str
    sources: frozenset
    target: str | None  # None: no status change (edit) or removal (delete)
    min_rank: int = ROLE_HIERARCHY["user"]
    exact_role: str | None = None
    requires_reason: bool = False


TRANSITIONS = {
    APPROVE: Transition(APPROVE, frozenset({PENDING}), APPROVED, min_rank=ROLE_HIERARCHY["manager"]),
    START: Transition(START, frozenset({APPROVED}), IN_PROGRESS),
    COMPLETE: Transition(COMPLETE, frozenset({APPROVED, IN_PROGRESS}), COMPLETED),
    CANCEL: Transition(CANCEL, frozenset({PENDING, APPROVED, IN_PROGRESS}), CANCELLED, requires_reason=True),
    RETIRE: Transition(RETIRE, frozenset({DRAFT, PENDING, APPROVED, IN_PROGRESS}), RETIRED, requires_reason=True),
    EDIT: Transition(EDIT, frozenset({DRAFT, PENDING}), None),
    DELETE: Transition(DELETE, frozenset({DRAFT}), None, exact_role="admin"),
}


class PaymentScheduleLifecycle:
    """Pure state machine over PaymentScheduleItem statuses."""

    def __init__(self, gate: PermissionGate | None = None):
        self.gate = gate or PermissionGate()
        self.item_validator = ItemValidator()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def allowed_actions(self, item: PaymentScheduleItem, user: User | None) -> frozenset:
        """Every action the user could perform on the item right now.

        Reason-requiring actions are included; the reason is collected later.
        """
        return frozenset(
            action for action, transition in TRANSITIONS.items()
            if item.status in transition.sources and self._has_role(transition, user)
        )

    def can_perform(self, item: PaymentScheduleItem, action: str, user: User | None) -> bool:
        return action in self.allowed_actions(item, user)

    def next_status(self, item: PaymentScheduleItem, action: str) -> str | None:
        """Resulting status, without permission checks. Raises on invalid moves."""
        transition = self._transition(action)
        self._check_state(item, transition)
        return transition.target if transition.target is not None else item.status

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def apply_action(self, item: PaymentScheduleItem, action: str, user: User | None,
                     reason: str | None = None, changes: dict | None = None) -> PaymentScheduleItem | None:
        """
        Apply an action and return the resulting item (None when deleted).

        Checks run in a fixed order: reason, then source state, then role. The
        input item is never mutated.
        """
        transition = self._transition(action)

        if transition.requires_reason:
            reason = validate_reason(reason, action)

        self._check_state(item, transition)
        self._check_role(transition, user)

        logger.info(f"Applying {action} to item {item.id} ({item.status} -> {transition.target or item.status})")

        if action == DELETE:
            return None
        if action == EDIT:
            return self._apply_changes(item, changes or {})

        updates = {"status": transition.target}
        if action == APPROVE:
            updates["approved_by"] = user.id
        elif action == COMPLETE:
            updates["completed_by"] = user.id
        elif action in (RETIRE, CANCEL):
            updates["retirement_reason"] = reason
            updates["retired_by"] = user.id
        return replace(item, **updates)

    def approve(self, item: PaymentScheduleItem, user: User | None) -> PaymentScheduleItem:
        return self.apply_action(item, APPROVE, user)

    def start(self, item: PaymentScheduleItem, user: User | None) -> PaymentScheduleItem:
        return self.apply_action(item, START, user)

    def complete(self, item: PaymentScheduleItem, user: User | None) -> PaymentScheduleItem:
        return self.apply_action(item, COMPLETE, user)

    def cancel(self, item: PaymentScheduleItem, reason: str | None, user: User | None) -> PaymentScheduleItem:
        return self.apply_action(item, CANCEL, user, reason=reason)

    def retire(self, item: PaymentScheduleItem, reason: str | None, user: User | None) -> PaymentScheduleItem:
        return self.apply_action(item, RETIRE, user, reason=reason)

    def edit(self, item: PaymentScheduleItem, changes: dict, user: User | None) -> PaymentScheduleItem:
        return self.apply_action(item, EDIT, user, changes=changes)

    def delete_draft(self, item: PaymentScheduleItem, user: User | None) -> None:
        self.apply_action(item, DELETE, user)

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def _transition(self, action: str) -> Transition:
        transition = TRANSITIONS.get(action)
        if transition is None:
            raise ValidationError(f"Unknown action: {action}. Must be one of {', '.join(ACTIONS)}",
                                  field="action")
        return transition

    def _check_state(self, item: PaymentScheduleItem, transition: Transition) -> None:
        if item.status in transition.sources:
            return
        if item.is_terminal:
            raise InvalidStateError(f"Cannot {transition.action} item {item.id}: status '{item.status}' is final")
        allowed = ", ".join(sorted(transition.sources))
        raise InvalidStateError(
            f"Cannot {transition.action} item {item.id} with status '{item.status}' (allowed from: {allowed})"
        )

    def _has_role(self, transition: Transition, user: User | None) -> bool:
        if user is None:
            return False
        if transition.exact_role is not None:
            return user.role == transition.exact_role
        if transition.action == EDIT:
            return self.gate.role_permissions(user).get("can_edit", False)
        return role_rank(user.role) >= transition.min_rank

    def _check_role(self, transition: Transition, user: User | None) -> None:
        if self._has_role(transition, user):
            return
        role = user.role if user else "anonymous"
        if transition.exact_role is not None:
            raise PermissionDeniedError(f"Only {transition.exact_role} users can {transition.action} this item")
        raise PermissionDeniedError(f"Role '{role}' is not allowed to {transition.action} this item")

    def _apply_changes(self, item: PaymentScheduleItem, changes: dict) -> PaymentScheduleItem:
        """Apply snake_case field changes after validating the resulting item."""
        blocked = sorted(set(changes) & IMMUTABLE_FIELDS)
        if blocked:
            raise ValidationError(f"Fields cannot be edited directly: {', '.join(blocked)}", field=blocked[0])
        known = {f.name for f in fields(item)}
        unknown = sorted(k for k in changes if k not in known)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(unknown)}", field=unknown[0])

        payload = {EDITABLE_FIELDS[k]: v for k, v in changes.items() if k in EDITABLE_FIELDS}
        if "itemType" in payload or "milestoneType" in payload:
            payload.setdefault("itemType", item.item_type)
            payload.setdefault("milestoneType", item.milestone_type)
        self.item_validator.validate(payload, partial=True)

        changes = dict(changes)
        if "scheduled_amount" in changes:
            changes["scheduled_amount"] = Decimal(str(changes["scheduled_amount"]))
        if "scheduled_due_date" in changes:
            changes["scheduled_due_date"] = parse_date(changes["scheduled_due_date"])
        return replace(item, **changes)
