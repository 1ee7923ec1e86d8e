"""Section overrides: per-user navigation and API visibility.

Resolution is three-state so that "no record" is never confused with an
explicit deny: a user with no overrides sees every section.
"""

import enum
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from crm_access.models.section_permission import SectionPermission
from crm_access.models.user import User

ALL_SECTIONS: List[Dict[str, str]] = [
    {"key": "dashboard", "label": "Dashboard"},
    {"key": "emails", "label": "Email"},
    {"key": "chat", "label": "Chat"},
    {"key": "calls", "label": "Calls"},
    {"key": "tasks", "label": "Tasks & Projects"},
    {"key": "projects", "label": "Projects"},
    {"key": "organizations", "label": "Contacts & Organizations"},
    {"key": "documents", "label": "Documents"},
    {"key": "calendar", "label": "Calendar & Scheduling"},
    {"key": "meetings", "label": "Meetings"},
    {"key": "customers", "label": "Customers"},
    {"key": "suppliers", "label": "Suppliers"},
    {"key": "products", "label": "Products"},
    {"key": "orders", "label": "Orders"},
    {"key": "leads", "label": "Leads"},
    {"key": "revenue", "label": "Revenue"},
    {"key": "audit", "label": "Audit Logs"},
]

SECTION_KEYS: List[str] = [s["key"] for s in ALL_SECTIONS]


class SectionState(str, enum.Enum):
    explicit_allow = "explicit_allow"
    explicit_deny = "explicit_deny"
    default_allow = "default_allow"

    @property
    def allowed(self) -> bool:
        return self is not SectionState.explicit_deny


class SectionService:
    """Reads and writes section overrides."""

    @staticmethod
    def _stored(db: Session, user_id: int) -> Dict[str, bool]:
        rows = db.query(SectionPermission).filter(SectionPermission.user_id == user_id).all()
        return {row.section: bool(row.enabled) for row in rows}

    @staticmethod
    def resolve_states(
        db: Session,
        user: User,
        keys: Optional[Iterable[str]] = None,
    ) -> Dict[str, SectionState]:
        """Resolve each key to its three-state value.

        Admins never hit storage: every key is allowed for them. When no
        keys are given, all known sections plus any stored extras are used.
        """
        if user.role == "admin":
            wanted = list(keys) if keys is not None else list(SECTION_KEYS)
            return {key: SectionState.default_allow for key in wanted}

        stored = SectionService._stored(db, user.id)
        if keys is None:
            wanted = list(SECTION_KEYS) + [k for k in stored if k not in SECTION_KEYS]
        else:
            wanted = list(keys)

        states = {}
        for key in wanted:
            if key not in stored:
                states[key] = SectionState.default_allow
            elif stored[key]:
                states[key] = SectionState.explicit_allow
            else:
                states[key] = SectionState.explicit_deny
        return states

    @staticmethod
    def resolve(
        db: Session,
        user: User,
        keys: Optional[Iterable[str]] = None,
    ) -> Dict[str, bool]:
        """Resolve sections to plain booleans (absent record -> True)."""
        states = SectionService.resolve_states(db, user, keys)
        return {key: state.allowed for key, state in states.items()}

    @staticmethod
    def set_overrides(db: Session, user: User, overrides: Dict[str, bool]) -> Dict[str, bool]:
        """Upsert overrides for a user and return the resolved map.

        Admins are exempt from overrides: the write is skipped, not refused.
        """
        if user.role == "admin":
            return SectionService.resolve(db, user)

        existing = {
            row.section: row
            for row in db.query(SectionPermission).filter(SectionPermission.user_id == user.id)
        }
        for section, enabled in overrides.items():
            row = existing.get(section)
            if row is not None:
                row.enabled = bool(enabled)
            else:
                db.add(SectionPermission(user_id=user.id, section=section, enabled=bool(enabled)))
        db.commit()
        return SectionService.resolve(db, user)


section_service = SectionService()
