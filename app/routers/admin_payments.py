# app/routers/admin_payments.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_admin
from app.core.payment_provider import PaymentProvider, get_payment_provider
from app.database import get_session
from app.schemas.payment import PaymentSyncRequest, PaymentSyncResult
from app.routers.payment import service

router = APIRouter(prefix="/admin/payments", tags=["Admin Payments"])


@router.post(
    "/sync",
    response_model=PaymentSyncResult,
    dependencies=[Depends(require_admin)],
)
def sync_payments(
    payload: PaymentSyncRequest,
    session: Session = Depends(get_session),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    """
    Record orders for paid provider sessions that have none
    (e.g. payments taken while the webhook was misconfigured).

    Each session is reported as created / skipped / error.
    """
    return service.sync_sessions(session, provider, payload.session_ids)
