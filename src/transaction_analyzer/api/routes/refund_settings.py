from typing import Annotated

from fastapi import APIRouter, Depends

from transaction_analyzer.api.dependencies import get_session
from transaction_analyzer.models import RefundSettings
from transaction_analyzer.services.pipeline import ImportSession

router = APIRouter()


@router.get("/api/settings/refunds")
async def get_refund_settings(
    session: Annotated[ImportSession, Depends(get_session)],
) -> RefundSettings:
    return session.refund_settings


@router.put("/api/settings/refunds")
async def update_refund_settings(
    refund_settings: RefundSettings,
    session: Annotated[ImportSession, Depends(get_session)],
) -> RefundSettings:
    session.update_refund_settings(refund_settings)
    return session.refund_settings
