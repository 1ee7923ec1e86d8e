"""Role-permission matrix and the two-stage authorization check.

Stage one is a pure role -> capability lookup. Stage two is a per-record
predicate: a manager may only touch records labelled with their own
department. The department rule is never folded into the table.
"""

from typing import Any, Mapping, Optional

from fastapi import Depends

from crm_access.core.exceptions import Forbidden
from crm_access.core.security import Claims, get_current_claims


class Capability:
    USER_CREATE = "user:create"
    USER_READ = "user:read"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"
    USER_PASSWORD_CHANGE = "user:password:change"

    ORG_CREATE = "org:create"
    ORG_READ = "org:read"
    ORG_UPDATE = "org:update"
    ORG_DELETE = "org:delete"

    DOC_CREATE = "doc:create"
    DOC_READ = "doc:read"
    DOC_UPDATE = "doc:update"
    DOC_DELETE = "doc:delete"

    FINANCIAL_READ = "financial:read"
    FINANCIAL_UPDATE = "financial:update"

    SYSTEM_CONFIG = "system:config"
    SYSTEM_EXPORT = "system:export"

    AUDIT_READ = "audit:read"

    ENTITY_CREATE = "entity:create"
    ENTITY_READ = "entity:read"
    ENTITY_UPDATE = "entity:update"
    ENTITY_DELETE = "entity:delete"

    @classmethod
    def all(cls) -> frozenset:
        return frozenset(
            value for name, value in vars(cls).items()
            if name.isupper() and isinstance(value, str)
        )


# admin is absent on purpose: it holds every capability and is never looked up.
ROLE_CAPABILITIES: dict[str, frozenset] = {
    "executive": frozenset({
        Capability.USER_READ,
        Capability.ORG_READ,
        Capability.DOC_READ,
        Capability.FINANCIAL_READ,
        Capability.AUDIT_READ,
        Capability.ENTITY_READ,
        Capability.SYSTEM_EXPORT,
    }),
    "manager": frozenset({
        Capability.USER_READ,
        Capability.ORG_READ,
        Capability.ORG_UPDATE,
        Capability.DOC_CREATE,
        Capability.DOC_READ,
        Capability.DOC_UPDATE,
        Capability.ENTITY_READ,
        Capability.ENTITY_UPDATE,
    }),
    "staff": frozenset({
        Capability.ORG_READ,
        Capability.DOC_READ,
        Capability.ENTITY_READ,
    }),
    "guest": frozenset({
        Capability.DOC_READ,
    }),
}

# Role names used by older account rows
LEGACY_ROLE_ALIASES = {"clerk": "staff"}


def normalize_role(role: Optional[str]) -> Optional[str]:
    return LEGACY_ROLE_ALIASES.get(role, role)


def has_capability(role: Optional[str], capability: str) -> bool:
    role = normalize_role(role)
    if role == "admin":
        return True
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def _resource_department(resource: Any) -> Optional[str]:
    if resource is None:
        return None
    if isinstance(resource, Mapping):
        return resource.get("department")
    return getattr(resource, "department", None)


def can_access_record(claims: Claims, resource: Any) -> bool:
    """Per-record predicate layered on top of the capability table."""
    if normalize_role(claims.role) != "manager":
        return True
    department = _resource_department(resource)
    if department and department != claims.department:
        return False
    return True


def authorize(claims: Optional[Claims], capability: str, resource: Any = None) -> Claims:
    """Raise Forbidden unless the claims hold the capability (and, for
    managers, the resource belongs to their department)."""
    if claims is None or not has_capability(claims.role, capability):
        raise Forbidden()
    if resource is not None and not can_access_record(claims, resource):
        raise Forbidden()
    return claims


def check_department_access(claims: Claims, department: Optional[str]) -> None:
    """Guard a department-filtered listing.

    Admins and executives may ask for any department; a manager asking for
    a department other than their own is refused.
    """
    role = normalize_role(claims.role)
    if role in ("admin", "executive") or not department:
        return
    if role == "manager" and department != claims.department:
        raise Forbidden()


class RequireCapability:
    """Dependency that checks a capability against the caller's role."""

    def __init__(self, capability: str):
        self.capability = capability

    async def __call__(self, claims: Claims = Depends(get_current_claims)) -> Claims:
        return authorize(claims, self.capability)


class RequireRole:
    """Dependency that admits only the listed roles."""

    def __init__(self, *roles: str):
        self.roles = frozenset(roles)

    async def __call__(self, claims: Claims = Depends(get_current_claims)) -> Claims:
        if normalize_role(claims.role) not in self.roles:
            raise Forbidden()
        return claims


# Convenience dependency factories
require_admin = RequireRole("admin")
require_audit_reader = RequireCapability(Capability.AUDIT_READ)
