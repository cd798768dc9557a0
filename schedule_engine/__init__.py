"""
PAYMENT SCHEDULE RULES ENGINE
Lifecycle model, permission gate and API client for payment schedule items
"""

from .lifecycle import PaymentScheduleLifecycle
from .models import PaymentScheduleItem, User
from .permissions import PermissionGate
from .processor import ScheduleProcessor

__all__ = ['ScheduleProcessor', 'PaymentScheduleLifecycle', 'PermissionGate', 'PaymentScheduleItem', 'User']
