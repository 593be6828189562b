from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from app.auth.schemas import CurrentUser
from app.auth.security import decode_access_token
from app.core.enums import RoleId
from app.core.exceptions import ServiceError
from app.core.scope import ScopeFilter


# Tokens are issued by the auth service; this backend only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def _to_int(value) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Resolve the caller identity ({user_id, role_id, hostel_id}) from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except JWTError:
        raise credentials_exception

    try:
        user_id = _to_int(payload.get("user_id") or payload.get("sub"))
        role_id = _to_int(payload.get("role_id"))
        hostel_id = _to_int(payload.get("hostel_id"))
    except (TypeError, ValueError):
        raise credentials_exception

    if user_id is None or role_id not in (RoleId.ADMIN, RoleId.OWNER):
        raise credentials_exception

    return CurrentUser(
        id=user_id,
        role_id=role_id,
        hostel_id=hostel_id,
        email=payload.get("email"),
    )


async def get_scope(current_user: CurrentUser = Depends(get_current_user)) -> ScopeFilter:
    """Hostel scope of the caller; owners without a hostel binding are rejected here."""
    try:
        return ScopeFilter.from_user(current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
