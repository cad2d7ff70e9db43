"""API endpoints for caterers, their balances and balance sync."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from spice_ledger.api.deps import DB, CurrentUser
from spice_ledger.schemas.caterer import (
    BalanceSyncReportResponse,
    BalanceSyncResultResponse,
    CatererBalanceResponse,
    CatererCreate,
    CatererListResponse,
    CatererResponse,
    CatererUpdate,
    RelatedRecordsResponse,
)
from spice_ledger.services.balance_sync_service import BalanceSyncService, CatererBalance
from spice_ledger.services.caterer_service import CatererService


router = APIRouter()


def _balance_response(caterer_id: UUID, balance: CatererBalance, last_synced_at=None) -> CatererBalanceResponse:
    return CatererBalanceResponse(
        caterer_id=caterer_id,
        total_billed=balance.total_billed,
        total_paid=balance.total_paid,
        balance_due=balance.balance_due,
        total_orders=balance.total_orders,
        last_synced_at=last_synced_at,
    )


@router.get("", response_model=CatererListResponse)
async def list_caterers(
    db: DB,
    current_user: CurrentUser,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
):
    """List caterers with their balance aggregates."""
    caterers, total = await CatererService(db).list_caterers(search, is_active, skip, limit)
    return CatererListResponse(
        items=[CatererResponse.model_validate(c) for c in caterers],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=CatererResponse, status_code=status.HTTP_201_CREATED)
async def create_caterer(
    caterer_in: CatererCreate,
    db: DB,
    current_user: CurrentUser,
):
    caterer = await CatererService(db).create_caterer(caterer_in)
    await db.commit()
    return caterer


@router.post("/sync-balances", response_model=BalanceSyncReportResponse)
async def sync_all_balances(
    db: DB,
    current_user: CurrentUser,
):
    """Recompute every caterer's aggregate from bills and payments."""
    report = await BalanceSyncService(db).sync_all_caterer_balances()
    await db.commit()
    return BalanceSyncReportResponse(
        total=report.total,
        successful=report.successful,
        failed=report.failed,
        results=[
            BalanceSyncResultResponse(
                caterer_id=r.caterer_id,
                caterer_name=r.caterer_name,
                success=r.success,
                balance=_balance_response(r.caterer_id, r.balance) if r.balance else None,
                error=r.error,
            )
            for r in report.results
        ],
    )


@router.get("/{caterer_id}", response_model=CatererResponse)
async def get_caterer(
    caterer_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    return await CatererService(db).get_caterer(caterer_id)


@router.put("/{caterer_id}", response_model=CatererResponse)
async def update_caterer(
    caterer_id: UUID,
    caterer_in: CatererUpdate,
    db: DB,
    current_user: CurrentUser,
):
    caterer = await CatererService(db).update_caterer(caterer_id, caterer_in)
    await db.commit()
    return caterer


@router.delete("/{caterer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_caterer(
    caterer_id: UUID,
    db: DB,
    current_user: CurrentUser,
    force: bool = False,
    cascade: bool = False,
):
    """
    Delete a caterer.

    Refused with 409 and the related record counts while bills or payments
    exist, unless `force` or `cascade` is set.
    """
    await CatererService(db).delete_caterer(caterer_id, force=force, cascade=cascade)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{caterer_id}/related-records", response_model=RelatedRecordsResponse)
async def get_related_records(
    caterer_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    service = CatererService(db)
    await service.get_caterer(caterer_id)
    return await service.get_related_records_counts(caterer_id)


@router.get("/{caterer_id}/balance", response_model=CatererBalanceResponse)
async def get_caterer_balance(
    caterer_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Stored balance aggregate for one caterer."""
    service = CatererService(db)
    caterer = await service.get_caterer(caterer_id)
    balance = await service.get_balance(caterer_id)
    return _balance_response(caterer_id, balance, caterer.last_synced_at)


@router.post("/{caterer_id}/sync-balance", response_model=CatererBalanceResponse)
async def sync_caterer_balance(
    caterer_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Recompute one caterer's aggregate from its bills and payments."""
    balance = await BalanceSyncService(db).sync_caterer_balance(caterer_id)
    caterer = await CatererService(db).get_caterer(caterer_id)
    await db.commit()
    return _balance_response(caterer_id, balance, caterer.last_synced_at)
