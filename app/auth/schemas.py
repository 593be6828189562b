from typing import Optional

from pydantic import BaseModel

from app.core.enums import RoleId


class CurrentUser(BaseModel):
    """Authenticated caller resolved from the bearer token.
    hostel_id is the hostel an owner is bound to; admins usually carry none.
    """

    id: int
    role_id: int
    hostel_id: Optional[int] = None
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role_id == RoleId.ADMIN

    @property
    def is_owner(self) -> bool:
        return self.role_id == RoleId.OWNER
