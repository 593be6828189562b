"""
Audit logging for ledger state changes. Call on every dues/payment/occupancy mutation,
inside the same transaction as the change.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import FeeAuditLog


async def log_fee_audit(
    db: AsyncSession,
    hostel_id: int,
    reference_table: str,
    reference_id: int,
    action_type: str,
    old_value: Optional[dict],
    new_value: Optional[dict],
    changed_by: Optional[int],
) -> None:
    """Append one audit log entry. Caller must commit."""
    db.add(
        FeeAuditLog(
            hostel_id=hostel_id,
            reference_table=reference_table,
            reference_id=reference_id,
            action_type=action_type,
            old_value=old_value,
            new_value=new_value,
            changed_by=changed_by,
        )
    )


def due_snapshot(due) -> dict:
    return {
        "due_amount": str(due.due_amount),
        "paid_amount": str(due.paid_amount),
        "balance_amount": str(due.balance_amount),
        "is_paid": bool(due.is_paid),
        "carried_amount": str(due.carried_amount or 0),
        "carried_to_month": due.carried_to_month,
    }
