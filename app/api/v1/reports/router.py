"""Reports router: dashboard, profit and loss, occupancy, dues (JSON and Excel)."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_scope
from app.core.exceptions import ServiceError
from app.core.scope import ScopeFilter
from app.db.session import get_db

from .schemas import DashboardResponse, DuesReportResponse, HostelOccupancy, ProfitLossResponse
from . import service

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    hostel_id: Optional[int] = Query(None, description="Admins only"),
    month: Optional[str] = Query(None, description="YYYY-MM, defaults to the current month"),
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> DashboardResponse:
    try:
        return await service.dashboard(db, scope, hostel_id=hostel_id, month=month)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/profit-loss", response_model=ProfitLossResponse)
async def profit_loss(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    hostel_id: Optional[int] = Query(None, description="Admins only"),
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> ProfitLossResponse:
    try:
        return await service.profit_loss(db, scope, year or date.today().year, hostel_id=hostel_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/occupancy", response_model=List[HostelOccupancy])
async def occupancy_report(
    hostel_id: Optional[int] = Query(None, description="Admins only"),
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> List[HostelOccupancy]:
    try:
        return await service.occupancy_report(db, scope, hostel_id=hostel_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/dues", response_model=DuesReportResponse)
async def dues_report(
    hostel_id: Optional[int] = Query(None, description="Admins only"),
    due_month: Optional[str] = Query(None, description="YYYY-MM"),
    status_filter: Optional[str] = Query(None, alias="status", description="unpaid, partial, paid or carried"),
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> DuesReportResponse:
    try:
        return await service.dues_report(
            db, scope, hostel_id=hostel_id, due_month=due_month, status_filter=status_filter
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/dues/export")
async def export_dues(
    hostel_id: Optional[int] = Query(None, description="Admins only"),
    due_month: Optional[str] = Query(None, description="YYYY-MM"),
    status_filter: Optional[str] = Query(None, alias="status", description="unpaid, partial, paid or carried"),
    db: AsyncSession = Depends(get_db),
    scope: ScopeFilter = Depends(get_scope),
) -> Response:
    """Download the dues report as an Excel sheet."""
    try:
        content = await service.build_dues_excel(
            db, scope, hostel_id=hostel_id, due_month=due_month, status_filter=status_filter
        )
        filename = f"dues_{due_month}.xlsx" if due_month else "dues.xlsx"
        return Response(
            content=content,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
