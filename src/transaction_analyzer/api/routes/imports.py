from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from transaction_analyzer.api.dependencies import get_session
from transaction_analyzer.api.schemas import ConfirmRequest, ImportRequest, TransactionsResponse
from transaction_analyzer.logger import get_logger
from transaction_analyzer.models import DEFAULT_CATEGORIES
from transaction_analyzer.services.pipeline import (
    ImportPreview,
    ImportSession,
    InvalidImportError,
    NoActiveImportError,
)

logger = get_logger(__name__)

router = APIRouter()


def _transactions_response(session: ImportSession) -> TransactionsResponse:
    return TransactionsResponse(
        file_name=session.file_name,
        account_type=session.account_type,
        warnings=session.warnings,
        transactions=session.transactions,
    )


@router.get("/api/categories")
async def get_categories() -> list[str]:
    return list(DEFAULT_CATEGORIES)


@router.post("/api/import", response_model=ImportPreview)
async def import_csv(
    req: ImportRequest,
    session: Annotated[ImportSession, Depends(get_session)],
) -> ImportPreview:
    try:
        return session.import_csv(req.csv_text, req.file_name)
    except InvalidImportError as exc:
        logger.warning("[IMPORT] Rejected upload %s: %s", req.file_name or "<unnamed>", exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.post("/api/import/confirm", response_model=TransactionsResponse)
async def confirm_import(
    req: ConfirmRequest,
    session: Annotated[ImportSession, Depends(get_session)],
) -> TransactionsResponse:
    try:
        session.confirm_mapping(req.mapping, req.account_type)
    except NoActiveImportError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _transactions_response(session)


@router.post("/api/reprocess", response_model=TransactionsResponse)
async def reprocess(
    session: Annotated[ImportSession, Depends(get_session)],
) -> TransactionsResponse:
    try:
        session.reprocess()
    except NoActiveImportError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _transactions_response(session)


@router.get("/api/transactions", response_model=TransactionsResponse)
async def get_transactions(
    session: Annotated[ImportSession, Depends(get_session)],
) -> TransactionsResponse:
    if not session.is_processed:
        raise HTTPException(status_code=409, detail="No confirmed import")
    return _transactions_response(session)


@router.delete("/api/import")
async def clear_import(
    session: Annotated[ImportSession, Depends(get_session)],
) -> dict[str, str]:
    session.reset()
    return {"status": "cleared"}
