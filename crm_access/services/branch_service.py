"""Branch administration and branch-scoped user discovery."""

from typing import Any, Dict, List, Mapping, Optional, Sequence, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Session

from crm_access.core.exceptions import ResourceConflictError, ResourceNotFoundError
from crm_access.core.permissions import normalize_role
from crm_access.models.branch import Branch
from crm_access.models.user import AccountStatus, User

T = TypeVar("T")

# Which recipient roles each sender role may email
EMAIL_RECIPIENT_ROLES: Dict[str, tuple] = {
    "admin": ("admin", "executive", "manager", "staff", "guest"),
    "executive": ("admin", "executive", "manager", "staff", "guest"),
    "manager": ("admin", "executive", "manager", "staff"),
    "staff": ("admin", "executive", "manager", "staff"),
    "guest": ("staff", "guest"),
}


def _attr(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def filter_by_branch(actor: Any, candidates: Sequence[T]) -> List[T]:
    """Narrow candidates to those sharing the actor's branch.

    Admins see everyone. An actor without a branch is not filtered either,
    so unassigned accounts form one implicit shared pool.
    """
    if normalize_role(_attr(actor, "role")) == "admin":
        return list(candidates)
    branch_id = _attr(actor, "branch_id")
    if branch_id is None:
        return list(candidates)
    return [c for c in candidates if _attr(c, "branch_id") == branch_id]


def can_email(sender_role: Optional[str], recipient_role: Optional[str]) -> bool:
    allowed = EMAIL_RECIPIENT_ROLES.get(normalize_role(sender_role), ())
    return normalize_role(recipient_role) in allowed


class BranchService:
    """Manages branches and branch-scoped user listings."""

    @staticmethod
    def _actor(db: Session, user_id: int) -> User:
        # Read the live row rather than the token snapshot so a branch
        # reassignment applies on the very next request.
        actor = db.query(User).filter(User.id == user_id).first()
        if not actor:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return actor

    @staticmethod
    def chat_peers(db: Session, user_id: int) -> List[User]:
        """Active accounts the user may open a direct chat with."""
        actor = BranchService._actor(db, user_id)
        candidates = (
            db.query(User)
            .filter(User.status == AccountStatus.active.value, User.id != actor.id)
            .order_by(User.name)
            .all()
        )
        return filter_by_branch(actor, candidates)

    @staticmethod
    def email_recipients(db: Session, user_id: int) -> List[User]:
        """Active accounts the user may address internal email to."""
        actor = BranchService._actor(db, user_id)
        allowed_roles = EMAIL_RECIPIENT_ROLES.get(normalize_role(actor.role), ())
        if not allowed_roles:
            return []
        candidates = (
            db.query(User)
            .filter(
                User.status == AccountStatus.active.value,
                User.id != actor.id,
                User.role.in_(allowed_roles),
            )
            .order_by(User.name)
            .all()
        )
        return filter_by_branch(actor, candidates)

    @staticmethod
    def list_branches(db: Session) -> List[Dict[str, Any]]:
        """List branches with their active member counts."""
        counts = dict(
            db.query(User.branch_id, func.count(User.id))
            .filter(User.status == AccountStatus.active.value, User.branch_id.isnot(None))
            .group_by(User.branch_id)
            .all()
        )
        branches = db.query(Branch).order_by(Branch.name).all()
        return [{"branch": b, "user_count": counts.get(b.id, 0)} for b in branches]

    @staticmethod
    def get(db: Session, branch_id: int) -> Branch:
        branch = db.query(Branch).filter(Branch.id == branch_id).first()
        if not branch:
            raise ResourceNotFoundError("Branch not found")
        return branch

    @staticmethod
    def create(db: Session, name: str, **fields) -> Branch:
        name = name.strip()
        existing = db.query(Branch).filter(Branch.name == name).first()
        if existing:
            raise ResourceConflictError("A branch with this name already exists")
        branch = Branch(name=name, **fields)
        db.add(branch)
        db.commit()
        db.refresh(branch)
        return branch

    @staticmethod
    def update(db: Session, branch_id: int, **fields) -> Branch:
        branch = BranchService.get(db, branch_id)
        name = fields.pop("name", None)
        if name is not None:
            name = name.strip()
            clash = db.query(Branch).filter(Branch.name == name, Branch.id != branch_id).first()
            if clash:
                raise ResourceConflictError("A branch with this name already exists")
            branch.name = name
        for key, value in fields.items():
            setattr(branch, key, value)
        db.commit()
        db.refresh(branch)
        return branch

    @staticmethod
    def delete(db: Session, branch_id: int) -> None:
        """Delete a branch that no account references any more."""
        branch = BranchService.get(db, branch_id)
        members = db.query(User).filter(User.branch_id == branch_id).count()
        if members > 0:
            raise ResourceConflictError(
                f"Cannot delete branch: {members} user(s) are still assigned to it. "
                "Reassign them first."
            )
        db.delete(branch)
        db.commit()


branch_service = BranchService()
