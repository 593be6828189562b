"""
Hostel scope: the tenant boundary applied to every ledger, occupancy and report query.

- Owner callers are pinned to the hostel in their token. A missing binding is an
  AuthorizationError; asking for another hostel is a ForbiddenError.
- Admin callers see every hostel unless they pass an explicit hostel filter.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.sql import Select

from app.auth.schemas import CurrentUser
from app.core.enums import RoleId
from app.core.exceptions import AuthorizationError, ForbiddenError, ValidationError


@dataclass(frozen=True)
class ScopeFilter:
    role_id: int
    hostel_id: Optional[int] = None
    user_id: Optional[int] = None

    @classmethod
    def from_user(cls, user: CurrentUser) -> "ScopeFilter":
        if user.role_id == RoleId.OWNER and not user.hostel_id:
            raise AuthorizationError()
        if user.role_id not in (RoleId.ADMIN, RoleId.OWNER):
            raise ForbiddenError("Unknown role")
        return cls(role_id=user.role_id, hostel_id=user.hostel_id, user_id=user.id)

    @classmethod
    def admin(cls, user_id: Optional[int] = None) -> "ScopeFilter":
        """Unrestricted scope for scheduled jobs and maintenance scripts."""
        return cls(role_id=RoleId.ADMIN, hostel_id=None, user_id=user_id)

    @classmethod
    def owner(cls, hostel_id: int, user_id: Optional[int] = None) -> "ScopeFilter":
        if not hostel_id:
            raise AuthorizationError()
        return cls(role_id=RoleId.OWNER, hostel_id=hostel_id, user_id=user_id)

    @property
    def is_admin(self) -> bool:
        return self.role_id == RoleId.ADMIN

    def effective_hostel_id(self, requested: Optional[int] = None) -> Optional[int]:
        """Hostel the query is constrained to, or None for an unconstrained admin query."""
        if self.is_admin:
            return requested
        if requested is not None and requested != self.hostel_id:
            raise ForbiddenError()
        return self.hostel_id

    def require_hostel_id(self, requested: Optional[int] = None) -> int:
        """Hostel for a write: owners default to theirs, admins must name one."""
        hostel_id = self.effective_hostel_id(requested)
        if hostel_id is None:
            raise ValidationError("hostel_id is required for admin users")
        return hostel_id

    def ensure_can_access(self, hostel_id: Optional[int]) -> None:
        if not self.is_admin and hostel_id != self.hostel_id:
            raise ForbiddenError()

    def apply(self, stmt: Select, column, requested: Optional[int] = None) -> Select:
        """Constrain a select on the given hostel_id column."""
        hostel_id = self.effective_hostel_id(requested)
        if hostel_id is None:
            return stmt
        return stmt.where(column == hostel_id)
