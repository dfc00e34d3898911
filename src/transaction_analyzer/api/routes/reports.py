from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from transaction_analyzer.api.dependencies import get_session
from transaction_analyzer.core import settings
from transaction_analyzer.domain.aggregate import (
    monthly_cash_flow,
    monthly_trends,
    summarize_by_category,
    summarize_by_merchant,
)
from transaction_analyzer.domain.export import build_examples
from transaction_analyzer.models import (
    CategorySummary,
    MerchantSummary,
    MonthlyCashFlow,
    MonthlyTrend,
    Transaction,
)
from transaction_analyzer.services.pipeline import ImportSession

router = APIRouter()


def _processed(session: ImportSession) -> list[Transaction]:
    if not session.is_processed:
        raise HTTPException(status_code=409, detail="No confirmed import")
    return session.transactions


@router.get("/api/summary/categories")
async def category_summary(
    session: Annotated[ImportSession, Depends(get_session)],
    include_refunds: bool = False,
) -> list[CategorySummary]:
    return summarize_by_category(_processed(session), include_refunds=include_refunds)


@router.get("/api/summary/merchants")
async def merchant_summary(
    session: Annotated[ImportSession, Depends(get_session)],
) -> list[MerchantSummary]:
    return summarize_by_merchant(_processed(session))


@router.get("/api/summary/monthly")
async def monthly_summary(
    session: Annotated[ImportSession, Depends(get_session)],
) -> list[MonthlyTrend]:
    return monthly_trends(_processed(session))


@router.get("/api/summary/cash-flow")
async def cash_flow_summary(
    session: Annotated[ImportSession, Depends(get_session)],
) -> list[MonthlyCashFlow]:
    return monthly_cash_flow(_processed(session))


@router.get("/api/export")
async def export_examples(
    session: Annotated[ImportSession, Depends(get_session)],
) -> JSONResponse:
    examples = build_examples(_processed(session), limit=settings.export_sample_size())
    return JSONResponse(
        content=examples,
        headers={"Content-Disposition": 'attachment; filename="examples.json"'},
    )
