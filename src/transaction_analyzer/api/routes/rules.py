from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from transaction_analyzer.api.dependencies import get_session
from transaction_analyzer.models import Rule
from transaction_analyzer.services.pipeline import ImportSession

router = APIRouter()


@router.get("/api/rules")
async def list_rules(
    session: Annotated[ImportSession, Depends(get_session)],
) -> list[Rule]:
    return sorted(session.rules, key=lambda rule: rule.priority)


@router.post("/api/rules")
async def save_rule(
    rule: Rule,
    session: Annotated[ImportSession, Depends(get_session)],
) -> Rule:
    session.save_rule(rule)
    return rule


@router.delete("/api/rules/{rule_id}")
async def delete_rule(
    rule_id: str,
    session: Annotated[ImportSession, Depends(get_session)],
) -> dict[str, str]:
    if not session.remove_rule(rule_id):
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")
    return {"status": "deleted", "id": rule_id}
