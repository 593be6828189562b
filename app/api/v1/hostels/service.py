"""Hostels service. Admins manage every hostel; owners only read their own."""

from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenError, NotFoundError
from app.core.models import Hostel
from app.core.scope import ScopeFilter
from app.db.transaction import run_in_transaction

from .schemas import HostelCreate, HostelResponse, HostelUpdate


async def get_hostel_for_scope(db: AsyncSession, scope: ScopeFilter, hostel_id: int) -> Hostel:
    scope.ensure_can_access(hostel_id)
    hostel = await db.get(Hostel, hostel_id)
    if hostel is None:
        raise NotFoundError("Hostel not found")
    return hostel


async def create_hostel(db: AsyncSession, scope: ScopeFilter, payload: HostelCreate) -> HostelResponse:
    if not scope.is_admin:
        raise ForbiddenError("Only admins can create hostels")

    async def work() -> Hostel:
        hostel = Hostel(
            hostel_name=payload.hostel_name.strip(),
            address=payload.address,
            owner_user_id=payload.owner_user_id,
            is_active=True,
        )
        db.add(hostel)
        await db.flush()
        return hostel

    hostel = await run_in_transaction(db, work, operation="hostel creation")
    await db.refresh(hostel)
    return HostelResponse.model_validate(hostel)


async def list_hostels(
    db: AsyncSession,
    scope: ScopeFilter,
    active_only: bool = False,
) -> List[HostelResponse]:
    stmt = scope.apply(select(Hostel), Hostel.hostel_id)
    if active_only:
        stmt = stmt.where(Hostel.is_active.is_(True))
    rows = (await db.execute(stmt.order_by(Hostel.hostel_id))).scalars().all()
    return [HostelResponse.model_validate(h) for h in rows]


async def get_hostel(db: AsyncSession, scope: ScopeFilter, hostel_id: int) -> HostelResponse:
    return HostelResponse.model_validate(await get_hostel_for_scope(db, scope, hostel_id))


async def update_hostel(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: int,
    payload: HostelUpdate,
) -> HostelResponse:
    if not scope.is_admin:
        raise ForbiddenError("Only admins can update hostels")
    await get_hostel_for_scope(db, scope, hostel_id)
    data = payload.model_dump(exclude_unset=True)

    async def work() -> Hostel:
        hostel = (
            await db.execute(select(Hostel).where(Hostel.hostel_id == hostel_id).with_for_update())
        ).scalar_one()
        for field, value in data.items():
            setattr(hostel, field, value)
        return hostel

    hostel = await run_in_transaction(db, work, operation="hostel update")
    await db.refresh(hostel)
    return HostelResponse.model_validate(hostel)
