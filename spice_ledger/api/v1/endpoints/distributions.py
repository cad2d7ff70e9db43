"""API endpoints for distributions (caterer bills)."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from spice_ledger.api.deps import DB, CurrentUser
from spice_ledger.schemas.distribution import (
    BillSummaryResponse,
    DistributionCreate,
    DistributionListResponse,
    DistributionResponse,
    DistributionStatusUpdate,
    LedgerRepairResponse,
)
from spice_ledger.services.balance_sync_service import BalanceSyncService
from spice_ledger.services.distribution_service import DistributionService


router = APIRouter()


@router.get("", response_model=DistributionListResponse)
async def list_distributions(
    db: DB,
    current_user: CurrentUser,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    caterer_id: Optional[UUID] = None,
    status: Optional[str] = None,
):
    """List bills, newest first."""
    distributions, total = await DistributionService(db).list_distributions(
        caterer_id=caterer_id,
        status=status,
        skip=skip,
        limit=limit,
    )
    return DistributionListResponse(
        items=[DistributionResponse.model_validate(d) for d in distributions],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=DistributionResponse, status_code=status.HTTP_201_CREATED)
async def create_distribution(
    distribution_in: DistributionCreate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Create a bill for a caterer.

    Line amounts and GST are recomputed server side. A non-zero
    `amount_paid` is recorded as the bill's first payment.
    """
    distribution = await DistributionService(db).create_distribution(distribution_in)
    await db.commit()
    return distribution


@router.get("/summary", response_model=BillSummaryResponse)
async def get_bill_summary(
    db: DB,
    current_user: CurrentUser,
    caterer_id: Optional[UUID] = None,
):
    summary = await DistributionService(db).summarize(caterer_id=caterer_id)
    return BillSummaryResponse(
        total_bills=summary.total_bills,
        total_amount=summary.total_amount,
        total_paid=summary.total_paid,
        total_due=summary.total_due,
        overdue_amount=summary.overdue_amount,
        overdue_bills=summary.overdue_bills,
    )


@router.post("/repair-ledgers", response_model=LedgerRepairResponse)
async def repair_ledgers(
    db: DB,
    current_user: CurrentUser,
    caterer_id: Optional[UUID] = None,
):
    """Rebuild amount_paid / balance_due of bills from their linked payments."""
    report = await BalanceSyncService(db).repair_distribution_ledgers(caterer_id=caterer_id)
    await db.commit()
    return LedgerRepairResponse(
        checked=report.checked,
        repaired=report.repaired,
        bill_numbers=report.bill_numbers,
    )


@router.get("/{distribution_id}", response_model=DistributionResponse)
async def get_distribution(
    distribution_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    return await DistributionService(db).get_distribution(distribution_id)


@router.patch("/{distribution_id}/status", response_model=DistributionResponse)
async def update_distribution_status(
    distribution_id: UUID,
    status_in: DistributionStatusUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Move a bill to a new status.

    Only `cancelled` may be requested freely (and not once paid). Any other
    target must agree with what the bill's payments and dates imply.
    """
    distribution = await DistributionService(db).update_status(distribution_id, status_in.status)
    await db.commit()
    return distribution


@router.delete("/{distribution_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_distribution(
    distribution_id: UUID,
    db: DB,
    current_user: CurrentUser,
    cascade: bool = False,
):
    """Delete a bill. Refused with 409 while payments exist, unless `cascade` is set."""
    await DistributionService(db).delete_distribution(distribution_id, cascade=cascade)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
