"""
Schedule Processor - Rules API Orchestrator

Dict-in/dict-out entry points over the lifecycle model and the permission gate,
used by the Flask app and the Lambda handler.
"""

import json
from datetime import date
from decimal import InvalidOperation
from typing import Any, Dict

from .errors import ValidationError
from .lifecycle import PaymentScheduleLifecycle
from .models import PaymentScheduleItem, User, parse_date
from .output import OutputBuilder
from .permissions import PermissionGate
from .recurrence import RecurrencePlanner

USER_FIELDS = (
    "first_name", "last_name", "email", "role", "portal_type", "account_id", "agency_id",
    "profile.phone", "profile.address", "profile.department", "profile.position",
)


class ScheduleProcessor:
    """
    Evaluates payment schedule rules for API callers.

    - evaluate: item view with allowed actions and derived flags
    - apply: run one transition and return the resulting item
    - permissions: what an acting user may do to a target user
    - summarize: counts and totals for a list of items
    """

    def __init__(self):
        self.gate = PermissionGate()
        self.lifecycle = PaymentScheduleLifecycle(self.gate)
        self.planner = RecurrencePlanner()
        self.output_builder = OutputBuilder()

    def evaluate(self, item: PaymentScheduleItem, user: User | None, today: date | None = None) -> dict:
        today = today or date.today()
        return self.output_builder.build_item_view(
            item,
            self.lifecycle.allowed_actions(item, user),
            today,
            self.planner.project(item),
        )

    def evaluate_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        item, user = self._parse(data, "item", "user")
        return self.evaluate(item, user, _today(data))

    def apply_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        item, user = self._parse(data, "item", "user")
        action = data.get("action")
        if not action:
            raise ValidationError("action is required", field="action")

        result = self.lifecycle.apply_action(
            item, action, user, reason=data.get("reason"), changes=data.get("changes"),
        )
        return self.output_builder.build_applied(result, action, item.status)

    def permissions_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            acting = User.from_dict(data["acting_user"])
            target = User.from_dict(data["target_user"])
        except KeyError as e:
            raise ValidationError(f"Missing required field: {e.args[0]}", field=e.args[0])

        return {
            "can_manage": self.gate.can_manage_user(acting, target),
            "can_delete": self.gate.can_delete_user(acting, target),
            "editable_fields": sorted(self.gate.editable_user_fields(acting, target, USER_FIELDS)),
            "available_roles": self.gate.available_roles(acting),
            "available_portal_types": self.gate.available_portal_types(acting),
            "permissions": self.gate.role_permissions(acting),
        }

    def summarize_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            items = [PaymentScheduleItem.from_dict(i) for i in data.get("items", [])]
        except KeyError as e:
            raise ValidationError(f"Missing required field: {e.args[0]}", field=e.args[0])
        return self.output_builder.build_summary(items, _today(data))

    def _parse(self, data: Dict[str, Any], item_key: str, user_key: str):
        try:
            item = PaymentScheduleItem.from_dict(data[item_key])
            user = User.from_dict(data[user_key]) if data.get(user_key) else None
        except KeyError as e:
            raise ValidationError(f"Missing required field: {e.args[0]}", field=e.args[0])
        except InvalidOperation:
            raise ValidationError("scheduledAmount must be a valid number", field="scheduledAmount")
        return item, user


def _today(data: Dict[str, Any]) -> date:
    return parse_date(data.get("today")) or date.today()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def evaluate_item_from_json(json_input: str) -> str:
    """
    Evaluate an item from a JSON string and return a JSON string.
    Errors are reported in the body rather than raised.
    """
    try:
        input_data = json.loads(json_input)
        processor = ScheduleProcessor()
        result = processor.evaluate_from_dict(input_data)
        return json.dumps(result, indent=2)

    except ValueError as e:
        error_response = {"error": str(e), "status": "validation_failed"}
        return json.dumps(error_response, indent=2)
