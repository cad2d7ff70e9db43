"""API endpoints for caterer payments."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from spice_ledger.api.deps import DB, CurrentUser
from spice_ledger.core.exceptions import ValidationError
from spice_ledger.schemas.payment import (
    CatererPaymentCreate,
    CatererPaymentListResponse,
    CatererPaymentResponse,
    LedgerSnapshot,
    PaymentRecordedResponse,
)
from spice_ledger.services.billing_ledger import BillingLedgerService


router = APIRouter()


@router.get("", response_model=CatererPaymentListResponse)
async def list_payments(
    db: DB,
    current_user: CurrentUser,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    caterer_id: Optional[UUID] = None,
    distribution_id: Optional[UUID] = None,
):
    payments, total = await BillingLedgerService(db).list_payments(
        caterer_id=caterer_id,
        distribution_id=distribution_id,
        skip=skip,
        limit=limit,
    )
    return CatererPaymentListResponse(
        items=[CatererPaymentResponse.model_validate(p) for p in payments],
        total=total,
    )


@router.post("", response_model=PaymentRecordedResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    payment_in: CatererPaymentCreate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Record a payment.

    With `distribution_id` the payment is applied to that bill: it may not
    exceed the bill's balance, and `expected_balance_due` (when sent) must
    still match. Without it the payment is caterer-level and only reduces
    the caterer's aggregate balance.
    """
    ledger = BillingLedgerService(db)

    if payment_in.distribution_id is not None:
        if payment_in.caterer_id is not None:
            distribution = await ledger.get_distribution(payment_in.distribution_id)
            if distribution.caterer_id != payment_in.caterer_id:
                raise ValidationError(
                    "Distribution belongs to a different caterer",
                    {
                        "distribution_id": str(payment_in.distribution_id),
                        "caterer_id": str(payment_in.caterer_id),
                    },
                )

        result = await ledger.apply_payment(
            payment_in.distribution_id,
            payment_in.amount,
            payment_date=payment_in.payment_date,
            payment_mode=payment_in.payment_mode,
            reference_no=payment_in.reference_no,
            notes=payment_in.notes,
            receipt_image=payment_in.receipt_image,
            expected_balance_due=payment_in.expected_balance_due,
        )
        await db.commit()

        distribution = result.distribution
        return PaymentRecordedResponse(
            payment=CatererPaymentResponse.model_validate(result.payment),
            ledger=LedgerSnapshot(
                distribution_id=distribution.id,
                bill_no=distribution.bill_no,
                grand_total=distribution.grand_total,
                amount_paid=distribution.amount_paid,
                balance_due=distribution.balance_due,
                status=distribution.status,
            ),
            message=(
                f"Bill {distribution.bill_no} settled"
                if result.application.settles
                else f"Payment recorded, {distribution.balance_due} still due on {distribution.bill_no}"
            ),
        )

    if payment_in.caterer_id is None:
        raise ValidationError("caterer_id or distribution_id is required")

    result = await ledger.record_caterer_payment(
        payment_in.caterer_id,
        payment_in.amount,
        payment_date=payment_in.payment_date,
        payment_mode=payment_in.payment_mode,
        reference_no=payment_in.reference_no,
        notes=payment_in.notes,
        receipt_image=payment_in.receipt_image,
    )
    await db.commit()
    return PaymentRecordedResponse(
        payment=CatererPaymentResponse.model_validate(result.payment),
        message="Caterer payment recorded",
    )


@router.get("/{payment_id}", response_model=CatererPaymentResponse)
async def get_payment(
    payment_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    return await BillingLedgerService(db).get_payment(payment_id)
