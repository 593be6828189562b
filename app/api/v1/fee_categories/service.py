"""Fee categories service. Categories drive due generation; deactivation stops future billing only."""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import log_fee_audit
from app.core.exceptions import ConflictError, NotFoundError
from app.core.models import FeeStructure
from app.core.scope import ScopeFilter
from app.db.transaction import run_in_transaction
from app.api.v1.hostels.service import get_hostel_for_scope

from .schemas import FeeCategoryCreate, FeeCategoryResponse, FeeCategoryUpdate


def _category_snapshot(fs: FeeStructure) -> dict:
    return {
        "fee_type": fs.fee_type,
        "amount": str(fs.amount),
        "frequency": fs.frequency,
        "is_active": bool(fs.is_active),
    }


async def _get_category_for_scope(db: AsyncSession, scope: ScopeFilter, fee_structure_id: int) -> FeeStructure:
    fs = await db.get(FeeStructure, fee_structure_id)
    if fs is None:
        raise NotFoundError("Fee category not found")
    scope.ensure_can_access(fs.hostel_id)
    return fs


async def _lock_category(db: AsyncSession, fee_structure_id: int) -> FeeStructure:
    return (
        await db.execute(
            select(FeeStructure).where(FeeStructure.fee_structure_id == fee_structure_id).with_for_update()
        )
    ).scalar_one()


async def _ensure_unique_fee_type(
    db: AsyncSession,
    hostel_id: int,
    fee_type: str,
    exclude_id: Optional[int] = None,
) -> None:
    stmt = select(FeeStructure.fee_structure_id).where(
        FeeStructure.hostel_id == hostel_id, FeeStructure.fee_type == fee_type
    )
    if exclude_id is not None:
        stmt = stmt.where(FeeStructure.fee_structure_id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise ConflictError(f"Fee category '{fee_type}' already exists for this hostel")


async def create_fee_category(
    db: AsyncSession,
    scope: ScopeFilter,
    payload: FeeCategoryCreate,
    changed_by: Optional[int] = None,
) -> FeeCategoryResponse:
    hostel_id = scope.require_hostel_id(payload.hostel_id)
    await get_hostel_for_scope(db, scope, hostel_id)
    fee_type = payload.fee_type.strip()
    await _ensure_unique_fee_type(db, hostel_id, fee_type)

    async def work() -> FeeStructure:
        fs = FeeStructure(
            hostel_id=hostel_id,
            fee_type=fee_type,
            amount=payload.amount,
            frequency=payload.frequency.value,
            is_active=True,
        )
        db.add(fs)
        await db.flush()
        await log_fee_audit(db, hostel_id, "fee_structure", fs.fee_structure_id, "CREATE", None, _category_snapshot(fs), changed_by)
        return fs

    fs = await run_in_transaction(db, work, operation="fee category creation")
    await db.refresh(fs)
    return FeeCategoryResponse.model_validate(fs)


async def list_fee_categories(
    db: AsyncSession,
    scope: ScopeFilter,
    hostel_id: Optional[int] = None,
    active_only: bool = True,
) -> List[FeeCategoryResponse]:
    stmt = scope.apply(select(FeeStructure), FeeStructure.hostel_id, hostel_id)
    if active_only:
        stmt = stmt.where(FeeStructure.is_active.is_(True))
    rows = (await db.execute(stmt.order_by(FeeStructure.hostel_id, FeeStructure.fee_type))).scalars().all()
    return [FeeCategoryResponse.model_validate(r) for r in rows]


async def update_fee_category(
    db: AsyncSession,
    scope: ScopeFilter,
    fee_structure_id: int,
    payload: FeeCategoryUpdate,
    changed_by: Optional[int] = None,
) -> FeeCategoryResponse:
    """Existing dues keep their amounts; the change applies from the next generation run."""
    fs = await _get_category_for_scope(db, scope, fee_structure_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("fee_type") is not None:
        data["fee_type"] = data["fee_type"].strip()
        await _ensure_unique_fee_type(db, fs.hostel_id, data["fee_type"], exclude_id=fee_structure_id)
    if data.get("frequency") is not None:
        data["frequency"] = data["frequency"].value
    old = _category_snapshot(fs)

    async def work() -> FeeStructure:
        fs = await _lock_category(db, fee_structure_id)
        for field, value in data.items():
            if value is not None:
                setattr(fs, field, value)
        await log_fee_audit(db, fs.hostel_id, "fee_structure", fs.fee_structure_id, "UPDATE", old, _category_snapshot(fs), changed_by)
        return fs

    fs = await run_in_transaction(db, work, operation="fee category update")
    await db.refresh(fs)
    return FeeCategoryResponse.model_validate(fs)


async def deactivate_fee_category(
    db: AsyncSession,
    scope: ScopeFilter,
    fee_structure_id: int,
    changed_by: Optional[int] = None,
) -> FeeCategoryResponse:
    fs = await _get_category_for_scope(db, scope, fee_structure_id)
    old = _category_snapshot(fs)

    async def work() -> FeeStructure:
        fs = await _lock_category(db, fee_structure_id)
        fs.is_active = False
        await log_fee_audit(db, fs.hostel_id, "fee_structure", fs.fee_structure_id, "DEACTIVATE", old, _category_snapshot(fs), changed_by)
        return fs

    fs = await run_in_transaction(db, work, operation="fee category deactivation")
    await db.refresh(fs)
    return FeeCategoryResponse.model_validate(fs)
