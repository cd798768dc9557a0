"""
Domain Models for the Payment Schedule Rules Engine

Dataclasses mirroring the backend's JSON documents. Monetary values use Decimal,
dates are calendar dates. Server payloads use camelCase keys; from_dict/to_dict
translate at the boundary.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

# =============================================================================
# ENUMERATIONS
# =============================================================================

DRAFT = "draft"
PENDING = "pending"
APPROVED = "approved"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"
CANCELLED = "cancelled"
RETIRED = "retired"

ITEM_STATUSES = (DRAFT, PENDING, APPROVED, IN_PROGRESS, COMPLETED, CANCELLED, RETIRED)
TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED, RETIRED})

ITEM_TYPES = ("milestone", "recurring", "one-time", "retainer")
PRIORITIES = ("low", "medium", "high", "urgent")
FREQUENCIES = ("daily", "weekly", "monthly", "quarterly", "yearly")
# Older documents store recurringDetails with "annually"
FREQUENCY_ALIASES = {"annually": "yearly"}

ROLES = ("admin", "manager", "user")
PORTAL_TYPES = ("superadmin", "account", "agency")


def parse_date(value) -> date | None:
    """Parse an ISO date or datetime string (e.g. '2025-06-01T00:00:00.000Z')."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_datetime(value) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _ref_id(value):
    """Populated references arrive as objects; plain ones as ids."""
    if isinstance(value, dict):
        return value.get("_id") or value.get("id")
    return value


def _isoformat(value):
    return value.isoformat() if value is not None else None


# =============================================================================
# PAYMENT SCHEDULE ITEMS
# =============================================================================


@dataclass
class RecurringSettings:
    """How a recurring item repeats."""

    frequency: str
    interval: int = 1
    end_date: date | None = None
    max_occurrences: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "RecurringSettings":
        max_occurrences = data.get("maxOccurrences", data.get("occurrences"))
        frequency = data.get("frequency") or ""
        return cls(
            frequency=FREQUENCY_ALIASES.get(frequency, frequency),
            interval=int(data.get("interval") or 1),
            end_date=parse_date(data.get("endDate")),
            max_occurrences=int(max_occurrences) if max_occurrences not in (None, "") else None,
        )

    def to_dict(self) -> dict:
        return {
            "frequency": self.frequency,
            "interval": self.interval,
            "endDate": _isoformat(self.end_date),
            "maxOccurrences": self.max_occurrences,
        }


@dataclass
class PaymentScheduleItem:
    """A single scheduled payment belonging to an offer letter."""

    id: str
    status: str
    item_type: str
    scheduled_amount: Decimal
    scheduled_due_date: date
    currency: str = "USD"
    priority: str = "medium"
    milestone_type: str | None = None
    description: str = ""
    is_recurring: bool = False
    recurring_settings: RecurringSettings | None = None
    account_id: str | None = None
    agency_id: str | None = None
    offer_letter_id: str | None = None
    parent_item_id: str | None = None
    retirement_reason: str | None = None
    retired_by: str | None = None
    approved_by: str | None = None
    completed_by: str | None = None
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_overdue(self, today: date | None = None) -> bool:
        """Derived, never stored: only a pending item past its due date is overdue."""
        today = today or date.today()
        return self.status == PENDING and self.scheduled_due_date < today

    def days_until_due(self, today: date | None = None) -> int:
        """Negative once the due date has passed."""
        today = today or date.today()
        return (self.scheduled_due_date - today).days

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentScheduleItem":
        amount = data["scheduledAmount"]
        currency = "USD"
        if isinstance(amount, dict):
            currency = amount.get("currency") or currency
            amount = amount["value"]

        metadata = data.get("metadata") or {}
        recurring = data.get("recurringSettings") or data.get("recurringDetails")

        return cls(
            id=str(data.get("_id") or data.get("id") or ""),
            status=data.get("status", DRAFT),
            item_type=data["itemType"],
            scheduled_amount=Decimal(str(amount)),
            scheduled_due_date=parse_date(data["scheduledDueDate"]),
            currency=currency,
            priority=data.get("priority", "medium"),
            milestone_type=data.get("milestoneType") or None,
            description=data.get("description", ""),
            is_recurring=bool(data.get("isRecurring", False)),
            recurring_settings=RecurringSettings.from_dict(recurring) if recurring else None,
            account_id=_ref_id(data.get("accountId")),
            agency_id=_ref_id(data.get("agencyId")),
            offer_letter_id=_ref_id(data.get("offerLetterId")),
            parent_item_id=_ref_id(data.get("parentItemId")),
            retirement_reason=data.get("retirementReason"),
            retired_by=_ref_id(data.get("retiredBy")),
            approved_by=_ref_id(data.get("approvedBy") or metadata.get("approvedBy")),
            completed_by=_ref_id(data.get("completedBy") or metadata.get("completedBy")),
            created_by=_ref_id(data.get("createdBy")),
            updated_by=_ref_id(data.get("updatedBy")),
            created_at=parse_datetime(data.get("createdAt")),
            updated_at=parse_datetime(data.get("updatedAt")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "itemType": self.item_type,
            "milestoneType": self.milestone_type,
            "scheduledAmount": {"value": float(self.scheduled_amount), "currency": self.currency},
            "scheduledDueDate": self.scheduled_due_date.isoformat(),
            "priority": self.priority,
            "description": self.description,
            "isRecurring": self.is_recurring,
            "recurringSettings": self.recurring_settings.to_dict() if self.recurring_settings else None,
            "accountId": self.account_id,
            "agencyId": self.agency_id,
            "offerLetterId": self.offer_letter_id,
            "parentItemId": self.parent_item_id,
            "retirementReason": self.retirement_reason,
            "retiredBy": self.retired_by,
            "approvedBy": self.approved_by,
            "completedBy": self.completed_by,
            "createdBy": self.created_by,
            "updatedBy": self.updated_by,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }


# =============================================================================
# TENANCY
# =============================================================================


@dataclass
class User:
    """The acting (or target) user of a permission check."""

    id: str
    role: str
    portal_type: str
    account_id: str | None = None
    agency_id: str | None = None
    email: str = ""
    first_name: str = ""
    last_name: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(
            id=str(data.get("_id") or data.get("id") or ""),
            role=data["role"],
            portal_type=data["portalType"],
            account_id=_ref_id(data.get("accountId")),
            agency_id=_ref_id(data.get("agencyId")),
            email=data.get("email", ""),
            first_name=data.get("firstName", ""),
            last_name=data.get("lastName", ""),
        )


@dataclass
class Agency:
    """An agency owned by an account."""

    id: str
    account_id: str | None
    name: str = ""
    commission_split_percent: Decimal = Decimal("50")

    @classmethod
    def from_dict(cls, data: dict) -> "Agency":
        split = data.get("commissionSplitPercent")
        return cls(
            id=str(data.get("_id") or data.get("id") or ""),
            account_id=_ref_id(data.get("accountId")),
            name=data.get("name", ""),
            commission_split_percent=Decimal(str(split)) if split not in (None, "") else Decimal("50"),
        )


@dataclass
class Account:
    """A tenant account."""

    id: str
    name: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Account":
        return cls(id=str(data.get("_id") or data.get("id") or ""), name=data.get("name", ""))


# =============================================================================
# LIST QUERIES
# =============================================================================


@dataclass
class ItemFilters:
    """Query parameters for listing payment schedule items."""

    status: str | None = None
    item_type: str | None = None
    milestone_type: str | None = None
    priority: str | None = None
    search: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    account_id: str | None = None
    agency_id: str | None = None
    offer_letter_id: str | None = None
    is_overdue: bool = False
    page: int = 1
    limit: int = 10
    sort_by: str = "scheduledDueDate"
    sort_order: str = "asc"

    def to_params(self) -> dict:
        """Query-string parameters; empty values are never sent."""
        raw = {
            "status": self.status,
            "itemType": self.item_type,
            "milestoneType": self.milestone_type,
            "priority": self.priority,
            "search": self.search,
            "startDate": _isoformat(self.start_date),
            "endDate": _isoformat(self.end_date),
            "accountId": self.account_id,
            "agencyId": self.agency_id,
            "offerLetterId": self.offer_letter_id,
            "isOverdue": "true" if self.is_overdue else None,
            "page": self.page,
            "limit": self.limit,
            "sortBy": self.sort_by,
            "sortOrder": self.sort_order,
        }
        return {key: value for key, value in raw.items() if value not in (None, "")}


@dataclass
class ItemPage:
    """One page of a payment schedule item listing."""

    items: list[PaymentScheduleItem] = field(default_factory=list)
    total_items: int = 0
    current_page: int = 1
    items_per_page: int = 10

    @property
    def total_pages(self) -> int:
        if self.items_per_page <= 0:
            return 0
        return -(-self.total_items // self.items_per_page)

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @classmethod
    def from_dict(cls, data: dict) -> "ItemPage":
        pagination = data.get("pagination") or {}
        items = [PaymentScheduleItem.from_dict(i) for i in data.get("paymentScheduleItems", [])]
        return cls(
            items=items,
            total_items=int(pagination.get("totalItems", data.get("totalCount", len(items)))),
            current_page=int(pagination.get("currentPage", 1)),
            items_per_page=int(pagination.get("itemsPerPage", len(items) or 10)),
        )
