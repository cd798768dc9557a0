"""
Confirmation Prompts

Describes the confirm-intent (and optionally collect-a-reason) step that
precedes an irreversible transition, and turns the user's answer into a typed
result. Rendering the dialog is left to the view.
"""

from dataclasses import dataclass

from .errors import ValidationError
from .lifecycle import APPROVE, CANCEL, COMPLETE, DELETE, RETIRE, START
from .models import PaymentScheduleItem
from .validators import validate_reason


@dataclass(frozen=True)
class ConfirmationPrompt:
    """What the dialog should ask before an action."""

    action: str
    title: str
    message: str
    confirm_label: str
    requires_reason: bool = False
    destructive: bool = False


@dataclass(frozen=True)
class ConfirmationResult:
    """The user's answer."""

    confirmed: bool
    reason: str | None = None


_PROMPTS = {
    APPROVE: ("Approve item", "Are you sure you want to approve {label}?", "Approve", False, False),
    START: ("Start item", "Mark {label} as in progress?", "Start", False, False),
    COMPLETE: ("Complete item", "Are you sure you want to mark {label} as completed?", "Complete", False, False),
    CANCEL: ("Cancel item", "Please provide a reason for cancelling {label}.", "Cancel item", True, True),
    RETIRE: ("Retire item", "Please provide a reason for retiring {label}.", "Retire", True, True),
    DELETE: ("Delete item", "Are you sure you want to delete {label}? This action cannot be undone.",
             "Delete", False, True),
}

_BULK_PROMPTS = {
    APPROVE: ("Approve items", "Are you sure you want to approve {count} payment schedule items?", "Approve all"),
    DELETE: ("Delete items",
             "Are you sure you want to delete {count} payment schedule items? This action cannot be undone.",
             "Delete all"),
    "generate_transactions": ("Generate transactions",
                              "Are you sure you want to generate billing transactions for {count} "
                              "payment schedule items?", "Generate"),
}


def _label(item: PaymentScheduleItem | None) -> str:
    if item is not None and item.description:
        return f'payment schedule item "{item.description}"'
    return "this payment schedule item"


def prompt_for(action: str, item: PaymentScheduleItem | None = None) -> ConfirmationPrompt | None:
    """Prompt for a single-item action, or None when no confirmation is needed (edit)."""
    entry = _PROMPTS.get(action)
    if entry is None:
        return None
    title, message, confirm_label, requires_reason, destructive = entry
    return ConfirmationPrompt(
        action=action,
        title=title,
        message=message.format(label=_label(item)),
        confirm_label=confirm_label,
        requires_reason=requires_reason,
        destructive=destructive,
    )


def bulk_prompt_for(action: str, count: int) -> ConfirmationPrompt:
    entry = _BULK_PROMPTS.get(action)
    if entry is None:
        raise ValidationError(f"No bulk confirmation for action: {action}", field="action")
    title, message, confirm_label = entry
    return ConfirmationPrompt(
        action=action,
        title=title,
        message=message.format(count=count),
        confirm_label=confirm_label,
        destructive=action == DELETE,
    )


def resolve(prompt: ConfirmationPrompt | None, confirmed: bool, reason: str | None = None) -> ConfirmationResult:
    """
    Build the result of a dialog.

    A confirmed answer to a reason-requiring prompt must carry a non-blank
    reason; declining never needs one.
    """
    if not confirmed:
        return ConfirmationResult(confirmed=False)
    if prompt is not None and prompt.requires_reason:
        return ConfirmationResult(confirmed=True, reason=validate_reason(reason, prompt.action))
    return ConfirmationResult(confirmed=True, reason=reason.strip() if reason else None)
