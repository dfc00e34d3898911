from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from transaction_analyzer.api.dependencies import get_session
from transaction_analyzer.api.schemas import OverrideRequest
from transaction_analyzer.models import MerchantEntry
from transaction_analyzer.services.pipeline import ImportSession

router = APIRouter()


@router.get("/api/merchants")
async def list_merchants(
    session: Annotated[ImportSession, Depends(get_session)],
) -> list[MerchantEntry]:
    # User entries first, then the built-in ones they don't replace.
    return list(session.dictionary)


@router.put("/api/merchants")
async def upsert_merchant(
    entry: MerchantEntry,
    session: Annotated[ImportSession, Depends(get_session)],
) -> MerchantEntry:
    session.update_merchant(entry)
    return entry


@router.delete("/api/merchants/{name}")
async def delete_merchant(
    name: str,
    session: Annotated[ImportSession, Depends(get_session)],
) -> dict[str, str]:
    if not session.delete_merchant(name):
        raise HTTPException(status_code=404, detail=f"Merchant {name} not found")
    return {"status": "deleted", "name": name}


@router.get("/api/overrides")
async def list_overrides(
    session: Annotated[ImportSession, Depends(get_session)],
) -> dict[str, str]:
    return dict(session.overrides)


@router.post("/api/overrides")
async def add_override(
    req: OverrideRequest,
    session: Annotated[ImportSession, Depends(get_session)],
) -> dict[str, str]:
    session.add_override(req.raw_description, req.canonical_name)
    return dict(session.overrides)
