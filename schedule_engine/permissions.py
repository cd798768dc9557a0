"""
Permission Gate

Role-hierarchy comparison shared by every entity the UI can manage. A single
rank check (acting rank strictly above target rank) is parameterized by
per-entity field restrictions instead of being repeated for users, agencies
and accounts.

Checks here are advisory: the backend enforces the same rules authoritatively.
"""

from dataclasses import dataclass

from .models import Account, Agency, User

ROLE_HIERARCHY = {"admin": 3, "manager": 2, "user": 1}

SUPERADMIN = "superadmin"
ACCOUNT_PORTAL = "account"
AGENCY_PORTAL = "agency"


def role_rank(role: str | None) -> int:
    """Unknown roles rank below every known role."""
    return ROLE_HIERARCHY.get(role, 0)


@dataclass(frozen=True)
class EntityRules:
    """Field restrictions applied on top of the rank check for one entity type."""

    name: str
    # Fields only a superadmin may change
    restricted_fields: frozenset = frozenset()
    # Fields a user may change on their own record; None means no self-service
    self_service_fields: frozenset | None = None
    # Fields locked for everyone while editing an existing record
    locked_on_edit: frozenset = frozenset()


USER_RULES = EntityRules(
    name="user",
    restricted_fields=frozenset({"portal_type"}),
    self_service_fields=frozenset({
        "first_name",
        "last_name",
        "profile.phone",
        "profile.address",
        "profile.department",
        "profile.position",
    }),
)

AGENCY_RULES = EntityRules(name="agency", restricted_fields=frozenset({"account_id"}))

ACCOUNT_RULES = EntityRules(name="account", locked_on_edit=frozenset({"subscription.plan"}))


class PermissionGate:
    """Decides management rights between users and over tenant entities."""

    def can_manage(self, acting: User | None, target_rank: int,
                   target_id: str | None = None, rules: EntityRules | None = None) -> bool:
        """
        Generic management check.

        1. Superadmins may manage anything.
        2. Acting on one's own record is allowed only where the entity offers
           self-service fields.
        3. Otherwise the acting rank must be strictly greater than the target's.
        """
        if acting is None:
            return False
        if acting.portal_type == SUPERADMIN:
            return True
        if target_id is not None and acting.id == target_id:
            return bool(rules and rules.self_service_fields)
        return role_rank(acting.role) > target_rank

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def can_manage_user(self, acting: User | None, target: User | None) -> bool:
        if target is None:
            return False
        return self.can_manage(acting, role_rank(target.role), target.id, USER_RULES)

    def can_delete_user(self, acting: User | None, target: User | None) -> bool:
        """Admins only, never oneself, and only where management is allowed."""
        if acting is None or target is None:
            return False
        if acting.id == target.id:
            return False
        if acting.role != "admin":
            return False
        return self.can_manage_user(acting, target)

    def can_create_user(self, acting: User | None) -> bool:
        if acting is None:
            return False
        return acting.portal_type == SUPERADMIN or acting.role in ("admin", "manager")

    def editable_user_fields(self, acting: User | None, target: User | None, fields) -> set:
        """Subset of `fields` the acting user may change on the target user."""
        if not self.can_manage_user(acting, target):
            return set()
        if acting.portal_type != SUPERADMIN and acting.id == target.id:
            return {f for f in fields if f in USER_RULES.self_service_fields}
        if acting.portal_type == SUPERADMIN:
            return set(fields)
        return {f for f in fields if f not in USER_RULES.restricted_fields}

    def available_roles(self, acting: User | None) -> list[str]:
        """Roles the acting user may assign: strictly below their own rank."""
        if acting is None:
            return []
        if acting.portal_type == SUPERADMIN:
            return list(ROLE_HIERARCHY)
        own = role_rank(acting.role)
        return [role for role, rank in ROLE_HIERARCHY.items() if rank < own]

    def available_portal_types(self, acting: User | None) -> list[str]:
        if acting is None:
            return []
        if acting.portal_type == SUPERADMIN:
            return [SUPERADMIN, ACCOUNT_PORTAL, AGENCY_PORTAL]
        # Account and agency users can only create agency users
        return [AGENCY_PORTAL]

    # -------------------------------------------------------------------------
    # Agencies and accounts
    # -------------------------------------------------------------------------

    def can_edit_agency(self, acting: User | None, agency: Agency | None) -> bool:
        if acting is None or agency is None:
            return False
        if acting.portal_type == ACCOUNT_PORTAL and acting.account_id != agency.account_id:
            return False
        if acting.portal_type == AGENCY_PORTAL and acting.agency_id != agency.id:
            return False
        # Agencies are managed at manager rank, so only admins pass
        return self.can_manage(acting, ROLE_HIERARCHY["manager"], rules=AGENCY_RULES)

    def can_delete_agency(self, acting: User | None, agency: Agency | None) -> bool:
        if acting is None or agency is None:
            return False
        if acting.portal_type == SUPERADMIN:
            return True
        if acting.portal_type != ACCOUNT_PORTAL:
            return False
        return self.can_edit_agency(acting, agency)

    def editable_agency_fields(self, acting: User | None, agency: Agency | None, fields) -> set:
        if not self.can_edit_agency(acting, agency):
            return set()
        if acting.portal_type == SUPERADMIN:
            return set(fields)
        return {f for f in fields if f not in AGENCY_RULES.restricted_fields}

    def can_edit_account(self, acting: User | None, account: Account | None) -> bool:
        if acting is None or account is None:
            return False
        return acting.portal_type == SUPERADMIN

    def editable_account_fields(self, acting: User | None, account: Account | None,
                                fields, is_editing: bool = True) -> set:
        if not self.can_edit_account(acting, account):
            return set()
        if is_editing:
            return {f for f in fields if f not in ACCOUNT_RULES.locked_on_edit}
        return set(fields)

    # -------------------------------------------------------------------------
    # Capability matrix
    # -------------------------------------------------------------------------

    def role_permissions(self, user: User | None) -> dict:
        """Coarse capabilities by role, widened or narrowed by portal type."""
        if user is None:
            return {}

        is_admin = user.role == "admin"
        is_manager_or_above = role_rank(user.role) >= ROLE_HIERARCHY["manager"]
        perms = {
            "can_create": role_rank(user.role) > 0,
            "can_edit": role_rank(user.role) > 0,
            "can_delete": is_admin,
            "can_view": True,
            "can_manage_users": is_admin,
            "can_manage_settings": is_admin,
            "can_view_reports": is_manager_or_above,
            "can_export": is_manager_or_above,
        }

        if user.portal_type == SUPERADMIN:
            perms.update(
                can_manage_accounts=True,
                can_manage_agencies=True,
                can_view_all_data=True,
                can_manage_system=True,
            )
        elif user.portal_type == ACCOUNT_PORTAL:
            perms.update(
                can_manage_agencies=is_admin,
                can_view_account_data=True,
                can_manage_account_settings=is_admin,
            )
        elif user.portal_type == AGENCY_PORTAL:
            perms.update(can_view_agency_data=True, can_manage_agency_settings=is_admin)
        return perms

    def payment_permissions(self, user: User | None) -> dict:
        perms = self.role_permissions(user)
        return {
            "can_create_payments": perms.get("can_create", False),
            "can_edit_payments": perms.get("can_edit", False),
            "can_delete_payments": perms.get("can_delete", False),
            "can_view_payments": perms.get("can_view", False),
            "can_process_payments": perms.get("can_edit", False),
        }

    def data_scope(self, user: User | None) -> dict | None:
        if user is None:
            return None
        return {
            "account_id": user.account_id,
            "agency_id": user.agency_id,
            "portal_type": user.portal_type,
            "can_view_all_accounts": user.portal_type == SUPERADMIN,
            "can_view_all_agencies": (
                user.portal_type == SUPERADMIN
                or (user.portal_type == ACCOUNT_PORTAL and user.role == "admin")
            ),
        }
